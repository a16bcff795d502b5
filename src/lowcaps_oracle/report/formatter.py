"""Display formatting for dashboard figures.

Every figure leaves the core as a fixed-precision string, never a float.
"""

from __future__ import annotations

import math
from decimal import ROUND_DOWN, Decimal


def truncate_number(value: float | int, decimals: int = 2) -> str:
    """Fixed-point string that truncates extra digits instead of rounding.

    ``52.91729`` becomes ``"52.9172"`` at four decimals. Non-finite input
    renders as zero.
    """
    if isinstance(value, float) and not math.isfinite(value):
        value = 0
    # repr() gives the shortest round-tripping digits, so 0.1 stays 0.1
    exact = Decimal(repr(value)) if isinstance(value, float) else Decimal(value)
    quantum = Decimal(1).scaleb(-decimals)
    return f"{exact.quantize(quantum, rounding=ROUND_DOWN):f}"


def format_price(price: float) -> str:
    if price == 0:
        return "$0.000000"
    if price < 0.000001:
        return f"${price:.12f}"
    if price < 0.01:
        return f"${price:.8f}"
    return f"${price:.6f}"


def format_market_cap(market_cap: float) -> str:
    if market_cap == 0:
        return "$0.00"
    if market_cap < 1_000:
        return f"${market_cap:.2f}"
    if market_cap < 1_000_000:
        return f"${market_cap / 1_000:.2f}K"
    return f"${market_cap / 1_000_000:.2f}M"


def format_cross_rate(rate: float) -> str:
    if rate == 0:
        return "0.0000"
    return truncate_number(rate, 4)


def format_supply(supply: float | int) -> str:
    return truncate_number(supply, 2)
