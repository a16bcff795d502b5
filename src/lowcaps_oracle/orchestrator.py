"""Periodic refresh of dashboard data with retry and forced cold refresh.

State machine: ``idle -> refreshing -> {connected, error}``, cycling. Each
transition is pushed to subscribers as a ``DashboardStatus``.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Coroutine

import backoff

from .adapters.supply_adapters.base import BaseSupplyAdapter
from .clients.supra_rpc import SupraRpcClient
from .logger import get_logger
from .pipeline.cache import now_ms
from .pipeline.fallback import MetricSource, ResilientPricing
from .report.formatter import format_supply
from .report.generator import TokenData, generate_token_data
from .settings import DashboardSettings

logger = get_logger(__name__)


class ConnectionStatus(str, Enum):
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    ERROR = "error"


class RefreshPhase(str, Enum):
    IDLE = "idle"
    REFRESHING = "refreshing"
    CONNECTED = "connected"
    ERROR = "error"


@dataclass(frozen=True)
class LoadingState:
    price: bool = False
    supply: bool = False
    market_cap: bool = False


@dataclass
class RefreshState:
    last_success_ms: int = 0
    consecutive_errors: int = 0
    cached_snapshot: TokenData | None = None


@dataclass(frozen=True)
class DashboardStatus:
    """What the presentation layer sees after every transition."""

    connection_status: ConnectionStatus
    phase: RefreshPhase
    last_updated_ms: int
    is_loading: LoadingState
    token_data: TokenData
    consecutive_errors: int = 0
    message: str | None = None


StatusListener = Callable[[DashboardStatus], None]


@dataclass
class _PassResult:
    token_data: TokenData
    ok: bool
    message: str | None = None


def placeholder_token_data(total_supply: int) -> TokenData:
    """Figures shown before the first refresh completes."""
    return TokenData(
        total_supply=format_supply(total_supply),
        circulating_supply=format_supply(total_supply),
        price="$0.00000000",
        tokens_per_base="0.0000",
        market_cap="$0.00",
    )


class RefreshOrchestrator:
    """Keeps ``TokenData`` fresh and publishes connection status.

    While connected, periodic ticks refresh prices only; otherwise each tick
    is a full refresh. A failed pass schedules a bounded retry alongside the
    periodic timer. Nothing here raises to the caller.
    """

    def __init__(
        self,
        settings: DashboardSettings,
        client: SupraRpcClient,
        pricing: ResilientPricing,
        supply: BaseSupplyAdapter,
        *,
        clock: Callable[[], int] = now_ms,
    ):
        self.settings = settings
        self.client = client
        self.pricing = pricing
        self.supply = supply
        self.clock = clock

        self.state = RefreshState()
        self._connection_status = ConnectionStatus.CONNECTING
        self._phase = RefreshPhase.IDLE
        self._loading = LoadingState()
        self._token_data = placeholder_token_data(settings.total_supply)
        self._last_updated_ms = 0
        self._message: str | None = None

        self._listeners: list[StatusListener] = []
        self._periodic_task: asyncio.Task[None] | None = None
        self._retry_task: asyncio.Task[None] | None = None
        self._in_flight: set[asyncio.Task[Any]] = set()
        self._closed = False

    # ------------------------------------------------------------------ status
    @property
    def status(self) -> DashboardStatus:
        return DashboardStatus(
            connection_status=self._connection_status,
            phase=self._phase,
            last_updated_ms=self._last_updated_ms,
            is_loading=self._loading,
            token_data=self._token_data,
            consecutive_errors=self.state.consecutive_errors,
            message=self._message,
        )

    @property
    def token_data(self) -> TokenData:
        return self._token_data

    def cached_data(self) -> TokenData | None:
        """Last successful snapshot, without fetching."""
        return self.state.cached_snapshot

    def subscribe(self, listener: StatusListener) -> Callable[[], None]:
        """Register ``listener`` for status changes; returns an unsubscribe."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self) -> None:
        status = self.status
        for listener in list(self._listeners):
            try:
                listener(status)
            except Exception:
                logger.exception("Status listener failed")

    def _set_connection_status(self, status: ConnectionStatus) -> None:
        if status is not self._connection_status:
            logger.info("Connection status changed to: %s", status.value)
        self._connection_status = status

    def service_status(self) -> dict[str, Any]:
        now = self.clock()
        return {
            "last_success_ms": self.state.last_success_ms,
            "time_since_last_success_ms": now - self.state.last_success_ms,
            "consecutive_errors": self.state.consecutive_errors,
            "has_cached_data": self.state.cached_snapshot is not None,
            "is_healthy": self.state.consecutive_errors
            < self.settings.max_consecutive_errors,
            "connection_status": self._connection_status.value,
            "phase": self._phase.value,
            "last_updated_ms": self._last_updated_ms,
            "timestamp_ms": now,
            "cache": self.pricing.cache.status(),
        }

    # ---------------------------------------------------------------- refresh
    async def _run_pass(self, full: bool) -> _PassResult:
        snapshot = self.state.cached_snapshot
        full = full or snapshot is None

        if full:
            healthy = await self.client.health_check()
            if not healthy:
                logger.warning("Supra RPC health check failed, attempting anyway...")

        outcome = await self.pricing.resolve_metrics()

        if full:
            supply = await self.supply.fetch_supply()
            fresh = generate_token_data(
                outcome.metrics, supply.total_supply, supply.circulating_supply
            )
        else:
            assert snapshot is not None
            fresh = snapshot.with_prices(outcome.metrics)

        if outcome.is_live:
            return _PassResult(fresh, ok=True)

        if outcome.source is MetricSource.STALE and snapshot is not None:
            return _PassResult(
                snapshot, ok=False, message=f"Showing cached data: {outcome.error}"
            )
        return _PassResult(
            fresh, ok=False, message=f"Showing fallback data: {outcome.error}"
        )

    async def _refresh(self, full: bool, *, allow_retry: bool) -> bool:
        if self._closed:
            return False

        self._phase = RefreshPhase.REFRESHING
        self._loading = LoadingState(price=True, supply=full, market_cap=True)
        self._message = None
        if self._connection_status is ConnectionStatus.DISCONNECTED:
            self._set_connection_status(ConnectionStatus.CONNECTING)
        self._notify()

        try:
            result = await self._run_pass(full)
        except Exception as e:
            logger.exception("Token data refresh failed")
            result = _PassResult(
                self.state.cached_snapshot or self._token_data,
                ok=False,
                message=f"Failed to fetch token data: {e}",
            )

        if self._closed:
            logger.debug("Discarding refresh result after shutdown")
            return result.ok

        now = self.clock()
        self._token_data = result.token_data
        self._loading = LoadingState()
        self._message = result.message

        if result.ok:
            self.state.consecutive_errors = 0
            self.state.last_success_ms = now
            self.state.cached_snapshot = result.token_data
            self._last_updated_ms = now
            self._phase = RefreshPhase.CONNECTED
            self._set_connection_status(ConnectionStatus.CONNECTED)
            logger.info("Token data refreshed successfully (full=%s)", full)
        else:
            self.state.consecutive_errors += 1
            self._phase = RefreshPhase.ERROR
            self._set_connection_status(ConnectionStatus.ERROR)
            logger.error(
                "Token data refresh failed (attempt %d): %s",
                self.state.consecutive_errors,
                result.message,
            )

        self._notify()

        if not result.ok and allow_retry:
            self._schedule_retry(full)
        return result.ok

    async def refresh(self, full: bool = True) -> TokenData:
        """Run one refresh pass and return the data now being shown."""
        await self._refresh(full, allow_retry=True)
        return self._token_data

    async def tick(self) -> TokenData:
        """Periodic trigger: prices only while connected, full otherwise."""
        full = self._connection_status is not ConnectionStatus.CONNECTED
        return await self.refresh(full=full)

    # ------------------------------------------------------------------ retry
    def _schedule_retry(self, full: bool) -> None:
        if not self.settings.retry_enabled or self._closed:
            return
        if self._retry_task is not None and not self._retry_task.done():
            return
        logger.info(
            "Retrying in %.1f seconds...", self.settings.retry_delay_seconds
        )
        self._retry_task = asyncio.create_task(self._retry(full))

    async def _retry(self, full: bool) -> None:
        max_tries = self.settings.retry_max_attempts
        delay = self.settings.retry_delay_seconds

        def _on_backoff(details: Any) -> None:
            logger.warning(
                "Refresh retry failed (attempt %d of %d)", details["tries"], max_tries
            )

        def _on_giveup(details: Any) -> None:
            logger.error(
                "Refresh retries exhausted after %d attempts; waiting for next tick",
                details["tries"],
            )

        @backoff.on_predicate(
            backoff.constant,
            max_tries=max_tries,
            interval=delay,
            jitter=None,
            on_backoff=_on_backoff,
            on_giveup=_on_giveup,
        )
        async def _attempt() -> bool:
            # cancelling the retry stops its timer; a started pass still finishes
            return await asyncio.shield(
                self._spawn(self._refresh(full, allow_retry=False))
            )

        await asyncio.sleep(delay)
        await _attempt()

    def _cancel_retry(self) -> None:
        if self._retry_task is not None and not self._retry_task.done():
            self._retry_task.cancel()
        self._retry_task = None

    # -------------------------------------------------------------- lifecycle
    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        task = asyncio.create_task(coro)
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)
        return task

    async def _periodic(self) -> None:
        interval = self.settings.refresh_interval_seconds
        while True:
            await asyncio.sleep(interval)
            self._spawn(self.tick())

    def start(self) -> None:
        """Kick off the initial full refresh and the periodic timer."""
        if self._closed:
            raise RuntimeError("Orchestrator has been stopped")
        self._spawn(self.refresh(full=True))
        if self.settings.refresh_interval_seconds > 0:
            self._periodic_task = asyncio.create_task(self._periodic())

    def stop(self) -> None:
        """Cancel both timers. In-flight passes finish and are discarded."""
        self._closed = True
        if self._periodic_task is not None:
            self._periodic_task.cancel()
            self._periodic_task = None
        self._cancel_retry()
        self._loading = LoadingState()
        self._phase = RefreshPhase.IDLE
        self._set_connection_status(ConnectionStatus.DISCONNECTED)
        self._notify()

    async def aclose(self) -> None:
        """``stop``, wait for in-flight passes to drain and drop the connection."""
        self.stop()
        if self._in_flight:
            await asyncio.gather(*self._in_flight, return_exceptions=True)
        self.client.reset()

    async def force_refresh(self) -> TokenData:
        """Drop the node connection, reset error counters and refresh fully."""
        logger.info("Force refreshing all data...")
        self._cancel_retry()
        self.state.consecutive_errors = 0
        self.client.reset()
        self._set_connection_status(ConnectionStatus.CONNECTING)
        self._notify()

        await asyncio.sleep(self.settings.force_refresh_settle_seconds)
        return await self.refresh(full=True)
