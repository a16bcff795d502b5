from __future__ import annotations

from .base import BaseSupplyAdapter, SupplyData


class StaticSupplyAdapter(BaseSupplyAdapter):
    """Treats the whole configured supply as circulating."""

    @property
    def adapter_name(self) -> str:
        return "static"

    async def fetch_supply(self) -> SupplyData:
        return SupplyData(
            total_supply=self.config.total_supply,
            circulating_supply=self.config.total_supply,
        )
