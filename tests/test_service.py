from __future__ import annotations

from typing import Any

import pytest

from lowcaps_oracle.clients.supra_rpc import CHAIN_ID_PATH
from lowcaps_oracle.orchestrator import ConnectionStatus
from lowcaps_oracle.pipeline.fallback import TARGET_USD
from lowcaps_oracle.service import build_orchestrator
from lowcaps_oracle.settings import DashboardSettings


class FakeResponse:
    def __init__(self, payload: Any):
        self.payload = payload

    def raise_for_status(self) -> None:
        return None

    def json(self) -> Any:
        return self.payload


class RouterSession:
    """A Supra node that knows two Dexlyn pools."""

    def __init__(self, reserves: dict[tuple[str, str], list[str]]):
        self.reserves = reserves
        self.closed = False

    def request(self, method: str, url: str, json: Any = None, timeout: float = 0):
        if url.endswith(CHAIN_ID_PATH):
            return FakeResponse({"id": 8})
        function_id = json["function"]
        pair = tuple(json["type_arguments"][:2])
        if function_id.endswith("router::get_reserves_size"):
            return FakeResponse({"result": self.reserves[pair]})
        if function_id.endswith("router::get_fees_config"):
            return FakeResponse({"result": ["25", "10000"]})
        return FakeResponse({"result": ["8"]})

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def settings():
    return DashboardSettings(
        rpc_url="https://rpc.example",
        rpc_max_tries=1,
        rpc_retry_base_delay=0,
        retry_enabled=False,
        refresh_interval_seconds=0,
        force_refresh_settle_seconds=0,
    )


@pytest.fixture
def session(settings):
    supra = settings.base_token.type_tag
    usdc = settings.stable_token.type_tag
    lowcaps = settings.target_token.type_tag
    # SUPRA sorts first in both pools.
    return RouterSession(
        {
            (supra, usdc): [str(10_000_000 * 10**8), str(4_200_000 * 10**6)],
            (supra, lowcaps): [str(19_000 * 10**8), str(100_000_000 * 10**6)],
        }
    )


@pytest.mark.asyncio
async def test_live_refresh_through_real_components(settings, session):
    orchestrator = build_orchestrator(settings, session_factory=lambda: session)

    data = await orchestrator.refresh()

    assert orchestrator.status.connection_status is ConnectionStatus.CONNECTED
    assert data.price.startswith("$0.0000")
    assert data.tokens_per_base == "5263.1578"
    assert data.total_supply == "1000000000.00"
    assert orchestrator.pricing.cache.peek(TARGET_USD) is not None


@pytest.mark.asyncio
async def test_empty_pool_serves_previous_snapshot(settings, session):
    orchestrator = build_orchestrator(settings, session_factory=lambda: session)
    first = await orchestrator.refresh()
    cached_price = orchestrator.pricing.cache.peek(TARGET_USD)

    supra = settings.base_token.type_tag
    session.reserves[(supra, settings.stable_token.type_tag)] = ["0", "4200000000000"]
    shown = await orchestrator.refresh()

    assert shown == first
    assert orchestrator.pricing.cache.peek(TARGET_USD) == cached_price
    assert orchestrator.status.connection_status is ConnectionStatus.ERROR
    assert orchestrator.status.consecutive_errors == 1
    assert "Showing cached data" in (orchestrator.status.message or "")


@pytest.mark.asyncio
async def test_aclose_releases_session(settings, session):
    orchestrator = build_orchestrator(settings, session_factory=lambda: session)
    await orchestrator.refresh()

    await orchestrator.aclose()

    assert session.closed
    assert orchestrator.status.connection_status is ConnectionStatus.DISCONNECTED
