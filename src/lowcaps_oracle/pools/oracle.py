"""Pool reserve and fee lookups against the Dexlyn router."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import backoff

from ..clients.supra_rpc import GatewayError, SupraRpcClient
from ..constants import GET_FEES_CONFIG, GET_RESERVES_SIZE
from ..logger import get_logger

logger = get_logger(__name__)


class ReserveError(Exception):
    """Raised when a pool is empty, missing, or reports malformed reserves."""


class FeeLookupError(Exception):
    """Raised internally when the router's fee config cannot be read."""


@dataclass(frozen=True)
class PoolReserves:
    """Pool reserves expressed in the caller's requested token order.

    ``reserve_base`` belongs to the first token passed to ``get_reserves`` and
    ``reserve_quote`` to the second. ``base_is_first`` records whether that
    first token also sorts first in the pool's canonical ordering.
    """

    reserve_base: int
    reserve_quote: int
    base_is_first: bool


@dataclass(frozen=True)
class FeeConfig:
    """Swap fee charged on input, as ``fee_numerator / fee_scale``."""

    fee_numerator: int
    fee_scale: int

    def __post_init__(self) -> None:
        if self.fee_scale <= 0 or not 0 <= self.fee_numerator < self.fee_scale:
            raise ValueError(
                f"Invalid fee {self.fee_numerator}/{self.fee_scale}: "
                "expected 0 <= numerator < scale"
            )

    @property
    def fraction(self) -> float:
        return self.fee_numerator / self.fee_scale


def is_canonical_order(token_a: str, token_b: str) -> bool:
    """Whether ``token_a`` sorts before ``token_b`` by type identifier."""
    if token_a == token_b:
        raise ReserveError(f"A pool needs two distinct coins, got {token_a} twice")
    return token_a < token_b


class PoolOracle:
    """Reads reserves and fees for uncorrelated-curve pools via the router."""

    def __init__(
        self,
        client: SupraRpcClient,
        *,
        router_address: str,
        curve_type: str,
        default_fee: FeeConfig,
        max_tries: int = 3,
        retry_base_delay: float = 1.0,
    ):
        self.client = client
        self.router_address = router_address
        self.curve_type = curve_type
        self.default_fee = default_fee
        self.max_tries = max_tries
        self.retry_base_delay = retry_base_delay

    def _function_id(self, name: str) -> str:
        return f"{self.router_address}::{name}"

    def _type_arguments(self, token_a: str, token_b: str) -> tuple[bool, list[str]]:
        a_first = is_canonical_order(token_a, token_b)
        if a_first:
            return a_first, [token_a, token_b, self.curve_type]
        return a_first, [token_b, token_a, self.curve_type]

    async def get_reserves(self, token_a: str, token_b: str) -> PoolReserves:
        """Fetch reserves for the ``token_a``/``token_b`` pool.

        Transport failures are retried with exponential backoff. Zero
        reserves are a real on-chain state and are not retried.

        Raises:
            ReserveError: If either reserve is zero.
            GatewayError: If the node stays unreachable after all tries.
        """
        a_first, type_arguments = self._type_arguments(token_a, token_b)
        function_id = self._function_id(GET_RESERVES_SIZE)

        def _on_backoff(details: Any) -> None:
            logger.warning(
                "Get reserves failed (attempt %d of %d): %s",
                details["tries"],
                self.max_tries,
                details.get("exception"),
            )

        @backoff.on_exception(
            backoff.expo,
            GatewayError,
            max_tries=self.max_tries,
            factor=self.retry_base_delay,
            on_backoff=_on_backoff,
        )
        async def _fetch() -> list[int]:
            return await self.client.call_view_u64(
                function_id, type_arguments, expected=2
            )

        reserve_x, reserve_y = await _fetch()

        if reserve_x == 0 or reserve_y == 0:
            raise ReserveError(
                f"Invalid reserves for {token_a[:20]}.../{token_b[:20]}...: "
                f"x={reserve_x}, y={reserve_y}"
            )

        logger.debug("Reserves: x=%d, y=%d, a_first=%s", reserve_x, reserve_y, a_first)
        if a_first:
            return PoolReserves(reserve_x, reserve_y, base_is_first=True)
        return PoolReserves(reserve_y, reserve_x, base_is_first=False)

    async def _fetch_fee_config(self, token_a: str, token_b: str) -> FeeConfig:
        _, type_arguments = self._type_arguments(token_a, token_b)
        function_id = self._function_id(GET_FEES_CONFIG)
        try:
            fee_numerator, fee_scale = await self.client.call_view_u64(
                function_id, type_arguments, expected=2
            )
            return FeeConfig(fee_numerator, fee_scale)
        except (GatewayError, ValueError) as e:
            raise FeeLookupError(f"Fee lookup failed: {e}") from e

    async def get_fee_config(self, token_a: str, token_b: str) -> FeeConfig:
        """Fee config for the pool, or the platform default if unavailable."""
        try:
            return await self._fetch_fee_config(token_a, token_b)
        except FeeLookupError as e:
            logger.warning(
                "Using default fee %d/%d: %s",
                self.default_fee.fee_numerator,
                self.default_fee.fee_scale,
                e,
            )
            return self.default_fee
