from __future__ import annotations


def to_base_units(amount: int, decimals: int) -> int:
    """Convert a whole-token amount to integer base units.

    Args:
        amount: Whole tokens (e.g. ``1`` SUPRA).
        decimals: Decimal precision of the coin.

    Returns:
        ``amount * 10**decimals`` as an arbitrary-precision integer.
    """
    if decimals < 0:
        raise ValueError(f"decimals must be non-negative, got {decimals}")
    return amount * (10**decimals)


def to_decimal_amount(value: int, decimals: int) -> float:
    """Normalize an on-chain integer amount to a float in whole tokens.

    Args:
        value: Integer amount expressed with ``decimals`` decimal places.
        decimals: Current decimal precision of ``value``.

    Returns:
        The amount as a float.

    Notes:
        - This is the single integer-to-float boundary. Call it only at the
          final ratio step, never on values that still feed AMM math.
        - Dividing two Python ints with ``/`` rounds correctly even when the
          operands exceed the float range of exact integers.
    """
    if decimals < 0:
        raise ValueError(f"decimals must be non-negative, got {decimals}")
    return value / (10**decimals)
