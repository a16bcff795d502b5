from __future__ import annotations

from .supply_adapters import SUPPLY_ADAPTER_REGISTRY, get_supply_adapter

__all__ = ["SUPPLY_ADAPTER_REGISTRY", "get_supply_adapter"]
