"""Wires explicitly constructed components into a refresh orchestrator."""

from __future__ import annotations

from typing import Callable

import requests

from .adapters.supply_adapters import get_supply_adapter
from .clients.supra_rpc import SupraRpcClient
from .orchestrator import RefreshOrchestrator
from .pipeline.cache import MetricCache, now_ms
from .pipeline.fallback import ResilientPricing
from .pipeline.pricing import PriceDerivationPipeline
from .pools.oracle import FeeConfig, PoolOracle
from .settings import DashboardSettings


def build_client(
    settings: DashboardSettings,
    session_factory: Callable[[], requests.Session] = requests.Session,
) -> SupraRpcClient:
    return SupraRpcClient(
        settings.rpc_url,
        timeout=settings.rpc_timeout,
        expected_chain_id=settings.expected_chain_id,
        session_factory=session_factory,
    )


def build_pricing(
    settings: DashboardSettings,
    client: SupraRpcClient,
    clock: Callable[[], int] = now_ms,
) -> ResilientPricing:
    oracle = PoolOracle(
        client,
        router_address=settings.router_address,
        curve_type=settings.curve_type,
        default_fee=FeeConfig(
            settings.default_fee_numerator, settings.default_fee_scale
        ),
        max_tries=settings.rpc_max_tries,
        retry_base_delay=settings.rpc_retry_base_delay,
    )
    pipeline = PriceDerivationPipeline(
        oracle,
        target=settings.target_token,
        base=settings.base_token,
        stable=settings.stable_token,
        total_supply=settings.total_supply,
    )
    cache = MetricCache(ttl_seconds=settings.cache_ttl_seconds, clock=clock)
    return ResilientPricing(pipeline, cache)


def build_orchestrator(
    settings: DashboardSettings,
    *,
    session_factory: Callable[[], requests.Session] = requests.Session,
    clock: Callable[[], int] = now_ms,
) -> RefreshOrchestrator:
    """Build the gateway, oracle, pipeline, cache and orchestrator.

    Each call returns an independent set of components; nothing is shared
    through module state.
    """
    client = build_client(settings, session_factory)
    return RefreshOrchestrator(
        settings,
        client,
        build_pricing(settings, client, clock),
        get_supply_adapter(settings, client),
        clock=clock,
    )
