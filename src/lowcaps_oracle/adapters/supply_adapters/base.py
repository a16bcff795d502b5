from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from ...clients.supra_rpc import SupraRpcClient
from ...settings import DashboardSettings


@dataclass
class SupplyData:
    """Supply figures for the target token, in whole tokens."""

    total_supply: int
    circulating_supply: float


class BaseSupplyAdapter(ABC):
    """Where the circulating figure shown next to the total comes from."""

    def __init__(self, config: DashboardSettings, client: SupraRpcClient):
        """Bind the adapter to settings and the node gateway.

        Args:
            config: Dashboard configuration
            client: Shared Supra RPC client
        """
        self.config = config
        self.client = client

    @property
    @abstractmethod
    def adapter_name(self) -> str:
        """Short identifier used in logs."""
        ...

    @abstractmethod
    async def fetch_supply(self) -> SupplyData:
        """Fetch supply figures. Implementations must not raise."""
        ...
