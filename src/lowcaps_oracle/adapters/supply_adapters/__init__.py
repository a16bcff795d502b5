from __future__ import annotations

from ...clients.supra_rpc import SupraRpcClient
from ...settings import DashboardSettings, SupplySource
from .base import BaseSupplyAdapter, SupplyData
from .onchain import OnChainSupplyAdapter
from .static import StaticSupplyAdapter

SUPPLY_ADAPTER_REGISTRY: dict[SupplySource, type[BaseSupplyAdapter]] = {
    SupplySource.STATIC: StaticSupplyAdapter,
    SupplySource.ONCHAIN: OnChainSupplyAdapter,
}


def get_supply_adapter(
    config: DashboardSettings, client: SupraRpcClient
) -> BaseSupplyAdapter:
    """Build the supply adapter selected by ``circulating_supply_source``."""
    adapter_class = SUPPLY_ADAPTER_REGISTRY[config.circulating_supply_source]
    return adapter_class(config, client)


__all__ = [
    "BaseSupplyAdapter",
    "OnChainSupplyAdapter",
    "StaticSupplyAdapter",
    "SupplyData",
    "SUPPLY_ADAPTER_REGISTRY",
    "get_supply_adapter",
]
