from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from lowcaps_oracle.adapters.supply_adapters.base import SupplyData
from lowcaps_oracle.orchestrator import (
    ConnectionStatus,
    RefreshOrchestrator,
    RefreshPhase,
    placeholder_token_data,
)
from lowcaps_oracle.pipeline.cache import MetricCache
from lowcaps_oracle.pipeline.fallback import MetricSource, MetricsOutcome
from lowcaps_oracle.pipeline.pricing import TokenMetrics
from lowcaps_oracle.settings import DashboardSettings

LIVE = TokenMetrics(price_usd=0.0000798, market_cap_usd=79_800.0, target_per_base=5263.1578)
DEFAULTS = TokenMetrics(price_usd=0.00007971, market_cap_usd=79_710.0, target_per_base=52.9172)


def live() -> MetricsOutcome:
    return MetricsOutcome(metrics=LIVE, source=MetricSource.LIVE)


def stale(error: str = "pool unavailable") -> MetricsOutcome:
    return MetricsOutcome(metrics=LIVE, source=MetricSource.STALE, error=error)


def default(error: str = "node down") -> MetricsOutcome:
    return MetricsOutcome(metrics=DEFAULTS, source=MetricSource.DEFAULT, error=error)


class FakeClock:
    def __init__(self, now: int = 1_700_000_000_000):
        self.now = now

    def __call__(self) -> int:
        return self.now


@pytest.fixture
def settings():
    return DashboardSettings(
        refresh_interval_seconds=0,
        retry_enabled=False,
        retry_delay_seconds=0,
        retry_max_attempts=2,
        force_refresh_settle_seconds=0,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def client():
    mock = MagicMock()
    mock.health_check = AsyncMock(return_value=True)
    return mock


@pytest.fixture
def pricing(clock):
    mock = MagicMock()
    mock.resolve_metrics = AsyncMock(return_value=live())
    mock.cache = MetricCache(clock=clock)
    return mock


@pytest.fixture
def supply():
    mock = MagicMock()
    mock.fetch_supply = AsyncMock(
        return_value=SupplyData(total_supply=1_000_000_000, circulating_supply=900_000_000)
    )
    return mock


@pytest.fixture
def make_orchestrator(settings, client, pricing, supply, clock):
    def _make(**overrides) -> RefreshOrchestrator:
        config = settings.model_copy(update=overrides) if overrides else settings
        return RefreshOrchestrator(config, client, pricing, supply, clock=clock)

    return _make


@pytest.fixture
def orchestrator(make_orchestrator):
    return make_orchestrator()


def test_initial_status_is_connecting_with_placeholders(orchestrator):
    status = orchestrator.status

    assert status.connection_status is ConnectionStatus.CONNECTING
    assert status.phase is RefreshPhase.IDLE
    assert status.last_updated_ms == 0
    assert status.token_data == placeholder_token_data(1_000_000_000)
    assert orchestrator.cached_data() is None


@pytest.mark.asyncio
async def test_successful_refresh_connects(orchestrator, clock):
    seen = []
    orchestrator.subscribe(seen.append)

    data = await orchestrator.refresh()

    assert data.price == "$0.00007980"
    assert data.market_cap == "$79.80K"
    assert data.circulating_supply == "900000000.00"
    status = orchestrator.status
    assert status.connection_status is ConnectionStatus.CONNECTED
    assert status.phase is RefreshPhase.CONNECTED
    assert status.last_updated_ms == clock.now
    assert status.consecutive_errors == 0
    assert orchestrator.cached_data() == data

    assert [s.phase for s in seen] == [RefreshPhase.REFRESHING, RefreshPhase.CONNECTED]
    assert seen[0].is_loading.price and seen[0].is_loading.supply
    assert not seen[1].is_loading.price


@pytest.mark.asyncio
async def test_failure_after_success_keeps_cached_snapshot(orchestrator, pricing, clock):
    first = await orchestrator.refresh()
    connected_at = clock.now
    clock.now += 60_000
    pricing.resolve_metrics.return_value = stale()

    shown = await orchestrator.refresh()

    status = orchestrator.status
    assert shown == first
    assert status.connection_status is ConnectionStatus.ERROR
    assert status.phase is RefreshPhase.ERROR
    assert status.consecutive_errors == 1
    assert status.last_updated_ms == connected_at
    assert status.message == "Showing cached data: pool unavailable"


@pytest.mark.asyncio
async def test_failure_without_history_shows_fallback_figures(orchestrator, pricing):
    pricing.resolve_metrics.return_value = default()

    shown = await orchestrator.refresh()

    assert shown.price == "$0.00007971"
    assert shown.market_cap == "$79.71K"
    assert shown.tokens_per_base == "52.9172"
    assert orchestrator.status.connection_status is ConnectionStatus.ERROR
    assert orchestrator.status.message == "Showing fallback data: node down"
    assert orchestrator.cached_data() is None


@pytest.mark.asyncio
async def test_unexpected_exception_becomes_error_status(orchestrator, supply):
    supply.fetch_supply.side_effect = RuntimeError("boom")

    await orchestrator.refresh()

    status = orchestrator.status
    assert status.connection_status is ConnectionStatus.ERROR
    assert status.message == "Failed to fetch token data: boom"
    assert status.token_data == placeholder_token_data(1_000_000_000)


@pytest.mark.asyncio
async def test_tick_refreshes_prices_only_while_connected(orchestrator, supply, client):
    await orchestrator.refresh()
    await orchestrator.tick()
    await orchestrator.tick()

    assert supply.fetch_supply.await_count == 1
    assert client.health_check.await_count == 1


@pytest.mark.asyncio
async def test_tick_is_full_after_error(orchestrator, pricing, supply):
    await orchestrator.refresh()
    pricing.resolve_metrics.return_value = stale()
    await orchestrator.tick()
    pricing.resolve_metrics.return_value = live()

    await orchestrator.tick()

    assert supply.fetch_supply.await_count == 2
    assert orchestrator.status.connection_status is ConnectionStatus.CONNECTED


@pytest.mark.asyncio
async def test_partial_tick_keeps_supply_and_updates_price(orchestrator, pricing, supply):
    await orchestrator.refresh()
    supply.fetch_supply.return_value = SupplyData(1_000_000_000, 1)
    pricing.resolve_metrics.return_value = MetricsOutcome(
        metrics=TokenMetrics(0.0001, 100_000.0, 4200.0), source=MetricSource.LIVE
    )

    data = await orchestrator.tick()

    assert data.price == "$0.00010000"
    assert data.circulating_supply == "900000000.00"


@pytest.mark.asyncio
async def test_failed_refresh_retries_until_success(make_orchestrator, pricing):
    orchestrator = make_orchestrator(retry_enabled=True)
    pricing.resolve_metrics.side_effect = [default(), live()]

    await orchestrator.refresh()
    assert orchestrator.status.connection_status is ConnectionStatus.ERROR
    await orchestrator._retry_task

    assert orchestrator.status.connection_status is ConnectionStatus.CONNECTED
    assert orchestrator.status.consecutive_errors == 0
    assert pricing.resolve_metrics.await_count == 2


@pytest.mark.asyncio
async def test_retries_are_bounded(make_orchestrator, pricing):
    orchestrator = make_orchestrator(retry_enabled=True)
    pricing.resolve_metrics.return_value = default()

    await orchestrator.refresh()
    await orchestrator._retry_task

    # initial pass plus retry_max_attempts
    assert pricing.resolve_metrics.await_count == 3
    assert orchestrator.status.consecutive_errors == 3
    assert orchestrator.status.connection_status is ConnectionStatus.ERROR


@pytest.mark.asyncio
async def test_only_one_retry_outstanding(make_orchestrator, pricing):
    orchestrator = make_orchestrator(retry_enabled=True, retry_delay_seconds=60)
    pricing.resolve_metrics.return_value = default()

    await orchestrator.refresh()
    pending = orchestrator._retry_task
    await orchestrator.refresh()

    assert orchestrator._retry_task is pending
    await orchestrator.aclose()
    with pytest.raises(asyncio.CancelledError):
        await pending


@pytest.mark.asyncio
async def test_force_refresh_resets_connection_and_errors(orchestrator, pricing, client):
    pricing.resolve_metrics.return_value = default()
    await orchestrator.refresh()
    await orchestrator.refresh()
    assert orchestrator.status.consecutive_errors == 2

    seen = []
    orchestrator.subscribe(seen.append)
    pricing.resolve_metrics.return_value = live()
    await orchestrator.force_refresh()

    client.reset.assert_called_once()
    assert seen[0].connection_status is ConnectionStatus.CONNECTING
    assert seen[0].consecutive_errors == 0
    assert orchestrator.status.connection_status is ConnectionStatus.CONNECTED


@pytest.mark.asyncio
async def test_stop_disconnects_and_blocks_further_refreshes(orchestrator, pricing):
    await orchestrator.refresh()
    orchestrator.stop()

    status = orchestrator.status
    assert status.connection_status is ConnectionStatus.DISCONNECTED
    assert status.phase is RefreshPhase.IDLE

    await orchestrator.refresh()
    assert pricing.resolve_metrics.await_count == 1
    with pytest.raises(RuntimeError, match="stopped"):
        orchestrator.start()


@pytest.mark.asyncio
async def test_result_after_stop_is_discarded(orchestrator, pricing):
    release = asyncio.Event()

    async def slow_metrics():
        await release.wait()
        return live()

    pricing.resolve_metrics.side_effect = slow_metrics
    task = asyncio.create_task(orchestrator.refresh())
    await asyncio.sleep(0)

    orchestrator.stop()
    release.set()
    await task

    assert orchestrator.status.connection_status is ConnectionStatus.DISCONNECTED
    assert orchestrator.cached_data() is None


@pytest.mark.asyncio
async def test_stop_lets_running_retry_pass_finish(make_orchestrator, pricing):
    orchestrator = make_orchestrator(retry_enabled=True)
    release = asyncio.Event()
    finished = []

    async def metrics():
        if pricing.resolve_metrics.await_count == 1:
            return default()
        await release.wait()
        finished.append(True)
        return live()

    pricing.resolve_metrics.side_effect = metrics
    await orchestrator.refresh()
    while pricing.resolve_metrics.await_count < 2:
        await asyncio.sleep(0)

    orchestrator.stop()
    release.set()
    await asyncio.gather(*orchestrator._in_flight)

    assert finished == [True]
    status = orchestrator.status
    assert status.phase is RefreshPhase.IDLE
    assert status.connection_status is ConnectionStatus.DISCONNECTED
    assert orchestrator.cached_data() is None


@pytest.mark.asyncio
async def test_start_runs_initial_full_refresh(orchestrator, supply, client):
    orchestrator.start()
    await asyncio.gather(*orchestrator._in_flight)

    assert supply.fetch_supply.await_count == 1
    assert orchestrator.status.connection_status is ConnectionStatus.CONNECTED
    await orchestrator.aclose()
    client.reset.assert_called_once()


@pytest.mark.asyncio
async def test_periodic_ticks_refresh_prices(make_orchestrator, pricing, supply):
    orchestrator = make_orchestrator(refresh_interval_seconds=0.01)

    orchestrator.start()
    await asyncio.sleep(0.1)
    await orchestrator.aclose()

    assert pricing.resolve_metrics.await_count >= 2
    assert supply.fetch_supply.await_count == 1


@pytest.mark.asyncio
async def test_listener_errors_do_not_break_refresh(orchestrator):
    seen = []

    def broken(_status):
        raise ValueError("listener bug")

    orchestrator.subscribe(broken)
    unsubscribe = orchestrator.subscribe(seen.append)

    await orchestrator.refresh()
    assert orchestrator.status.connection_status is ConnectionStatus.CONNECTED
    assert len(seen) == 2

    unsubscribe()
    await orchestrator.refresh()
    assert len(seen) == 2


@pytest.mark.asyncio
async def test_service_status_reports_health(orchestrator, pricing, clock):
    pricing.cache.set("target-usd", 0.0000798)
    await orchestrator.refresh()
    clock.now += 5_000

    report = orchestrator.service_status()

    assert report["is_healthy"] is True
    assert report["has_cached_data"] is True
    assert report["time_since_last_success_ms"] == 5_000
    assert report["connection_status"] == "connected"
    assert report["cache"][0]["key"] == "target-usd"
