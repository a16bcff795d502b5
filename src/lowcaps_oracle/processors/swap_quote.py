from __future__ import annotations

from ..logger import get_logger

logger = get_logger(__name__)


def get_amount_out(
    amount_in: int,
    reserve_in: int,
    reserve_out: int,
    fee_numerator: int,
    fee_scale: int,
) -> int:
    """Constant-product swap output after the input-side fee.

    Args:
        amount_in: Input amount in base units of the input coin.
        reserve_in: Pool reserve of the input coin.
        reserve_out: Pool reserve of the output coin.
        fee_numerator: Fee charged on the input, as ``fee_numerator / fee_scale``.
        fee_scale: Fee denominator.

    Returns:
        Output amount in base units of the output coin. ``0`` means the quote
        is unavailable, not that the price is zero.

    Notes:
        - Mirrors the router's on-chain math with truncating integer division:
          ``in_after_fee = amount_in * (scale - fee) // scale`` then
          ``out = in_after_fee * reserve_out // (reserve_in + in_after_fee)``.
        - Python ints are unbounded, so products of ~1e18 reserves are exact.
    """
    try:
        amount_in_after_fee = amount_in * (fee_scale - fee_numerator) // fee_scale
        return (amount_in_after_fee * reserve_out) // (reserve_in + amount_in_after_fee)
    except (ZeroDivisionError, TypeError) as e:
        logger.error("Swap quote failed: %s", e)
        return 0
