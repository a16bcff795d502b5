from __future__ import annotations

from dataclasses import asdict, dataclass, replace

from ..pipeline.pricing import TokenMetrics
from .formatter import (
    format_cross_rate,
    format_market_cap,
    format_price,
    format_supply,
)


@dataclass(frozen=True)
class TokenData:
    """Display-ready token figures handed to the presentation layer."""

    total_supply: str
    circulating_supply: str
    price: str
    tokens_per_base: str
    market_cap: str

    def to_dict(self) -> dict[str, str]:
        return asdict(self)

    def with_prices(self, metrics: TokenMetrics) -> "TokenData":
        """Copy with re-formatted price fields; supply fields are kept."""
        return replace(
            self,
            price=format_price(metrics.price_usd),
            tokens_per_base=format_cross_rate(metrics.target_per_base),
            market_cap=format_market_cap(metrics.market_cap_usd),
        )


def generate_token_data(
    metrics: TokenMetrics,
    total_supply: int,
    circulating_supply: float | int,
) -> TokenData:
    """Format derived metrics and supply figures for display."""
    return TokenData(
        total_supply=format_supply(total_supply),
        circulating_supply=format_supply(circulating_supply),
        price=format_price(metrics.price_usd),
        tokens_per_base=format_cross_rate(metrics.target_per_base),
        market_cap=format_market_cap(metrics.market_cap_usd),
    )
