from __future__ import annotations

import asyncio

from ...clients.supra_rpc import GatewayError, SupraRpcClient
from ...logger import get_logger
from ...settings import DashboardSettings
from ...units import to_decimal_amount
from .base import BaseSupplyAdapter, SupplyData

logger = get_logger(__name__)


class OnChainSupplyAdapter(BaseSupplyAdapter):
    """Circulating supply = minted supply minus balances of locked accounts.

    Minted supply comes from ``0x1::coin::supply``. Accounts listed in
    ``locked_supply_accounts`` (treasury, vesting, burn) are excluded.
    """

    def __init__(self, config: DashboardSettings, client: SupraRpcClient):
        super().__init__(config, client)
        self.token = config.target_token
        self.locked_accounts = list(config.locked_supply_accounts)
        self._last_good: SupplyData | None = None

    @property
    def adapter_name(self) -> str:
        return "onchain"

    async def _fetch_locked_total(self) -> int:
        balances = await asyncio.gather(
            *[
                self.client.get_coin_balance(account, self.token.type_tag)
                for account in self.locked_accounts
            ]
        )
        for account, balance in zip(self.locked_accounts, balances):
            logger.debug("Locked balance %s...: %d", account[:10], balance)
        return sum(balances)

    async def fetch_supply(self) -> SupplyData:
        """Fetch supply figures, falling back to the last good read.

        Notes:
            - Total supply stays the configured constant; only circulating
              supply is read from chain.
            - A coin that does not track supply uses the configured total.
        """
        total_supply = self.config.total_supply
        try:
            minted = await self.client.get_coin_supply(self.token.type_tag)
            locked = await self._fetch_locked_total()
        except GatewayError as e:
            if self._last_good is not None:
                logger.warning("Supply lookup failed, using last good value: %s", e)
                return self._last_good
            logger.warning("Supply lookup failed, using total supply: %s", e)
            return SupplyData(total_supply, total_supply)

        if minted is None:
            minted_tokens = float(total_supply)
        else:
            minted_tokens = to_decimal_amount(minted, self.token.decimals)
        circulating = max(
            0.0, minted_tokens - to_decimal_amount(locked, self.token.decimals)
        )

        self._last_good = SupplyData(total_supply, circulating)
        logger.debug(
            "%s circulating supply: %.2f of %d",
            self.token.symbol,
            circulating,
            total_supply,
        )
        return self._last_good
