"""Two-hop price derivation: target -> base asset -> stable asset."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

from ..clients.supra_rpc import GatewayError
from ..logger import get_logger
from ..pools.oracle import PoolOracle, ReserveError
from ..processors.swap_quote import get_amount_out
from ..settings import TokenSpec
from ..units import to_base_units, to_decimal_amount

logger = get_logger(__name__)


class PipelineError(Exception):
    """Raised when derived metrics cannot be computed from upstream data."""


@dataclass
class TokenMetrics:
    """USD metrics for the target token, recomputed on every run."""

    price_usd: float
    market_cap_usd: float
    target_per_base: float


def compute_metrics(
    price_in_base: float, base_price_usd: float, total_supply: int
) -> TokenMetrics:
    """Combine the two hops into USD price, market cap and cross-rate."""
    price_usd = price_in_base * base_price_usd
    return TokenMetrics(
        price_usd=price_usd,
        market_cap_usd=price_usd * total_supply,
        target_per_base=1 / price_in_base if price_in_base > 0 else 0.0,
    )


class PriceDerivationPipeline:
    """Prices the target token in USD through its base-asset pool.

    The target token has no direct stable pool, so:
    1. Quote 1 base asset against the stable asset with the AMM formula.
    2. Take the target/base reserve ratio as the target's price in base.
    3. Multiply.
    """

    def __init__(
        self,
        oracle: PoolOracle,
        *,
        target: TokenSpec,
        base: TokenSpec,
        stable: TokenSpec,
        total_supply: int,
    ):
        self.oracle = oracle
        self.target = target
        self.base = base
        self.stable = stable
        self.total_supply = total_supply

    async def base_price_in_stable(self) -> float:
        """Stable-asset output for swapping exactly one base asset.

        Raises:
            PipelineError: If the pool is unavailable or the quote is zero.
        """
        try:
            reserves, fee = await asyncio.gather(
                self.oracle.get_reserves(self.base.type_tag, self.stable.type_tag),
                self.oracle.get_fee_config(self.base.type_tag, self.stable.type_tag),
            )
        except (GatewayError, ReserveError) as e:
            raise PipelineError(
                f"{self.base.symbol}/{self.stable.symbol} pool unavailable: {e}"
            ) from e

        amount_in = to_base_units(1, self.base.decimals)
        amount_out = get_amount_out(
            amount_in,
            reserves.reserve_base,
            reserves.reserve_quote,
            fee.fee_numerator,
            fee.fee_scale,
        )
        if amount_out <= 0:
            raise PipelineError(f"Failed to fetch {self.base.symbol} price")

        price = to_decimal_amount(amount_out, self.stable.decimals)
        logger.debug(
            "%s price: $%.6f (fee %.2f%%)", self.base.symbol, price, fee.fraction * 100
        )
        return price

    async def target_price_in_base(self) -> float:
        """Target token price in base asset from the pool's reserve ratio.

        Raises:
            PipelineError: If the pool is unavailable or reserves are invalid.
        """
        try:
            reserves = await self.oracle.get_reserves(
                self.target.type_tag, self.base.type_tag
            )
        except (GatewayError, ReserveError) as e:
            raise PipelineError(
                f"{self.target.symbol}/{self.base.symbol} pool unavailable: {e}"
            ) from e

        reserve_target = reserves.reserve_base
        reserve_base_asset = reserves.reserve_quote
        if reserve_target <= 0 or reserve_base_asset <= 0:
            raise PipelineError("Invalid reserves: zero or negative")

        return to_decimal_amount(
            reserve_base_asset, self.base.decimals
        ) / to_decimal_amount(reserve_target, self.target.decimals)

    async def derive_metrics(self) -> TokenMetrics:
        """Compute price, market cap and cross-rate for the target token.

        The base price is resolved first; the target price depends on it.

        Raises:
            PipelineError: If either hop cannot be priced.
        """
        logger.debug("Calculating %s metrics...", self.target.symbol)
        base_price = await self.base_price_in_stable()
        price_in_base = await self.target_price_in_base()

        metrics = compute_metrics(price_in_base, base_price, self.total_supply)
        logger.info(
            "%s metrics: price=$%.8f market_cap=$%.2f per_%s=%.4f (%s=$%.6f)",
            self.target.symbol,
            metrics.price_usd,
            metrics.market_cap_usd,
            self.base.symbol,
            metrics.target_per_base,
            self.base.symbol,
            base_price,
        )
        return metrics
