from __future__ import annotations

import pytest

from lowcaps_oracle.processors.swap_quote import get_amount_out

ONE_SUPRA = 10**8


def test_quote_matches_router_math():
    """1 SUPRA into a 5000 SUPRA / 1,000,000 dexUSDC pool at 0.25%."""
    amount_out = get_amount_out(ONE_SUPRA, 5 * 10**11, 10**12, 25, 10_000)

    # 1e8 * 9975 // 10000 = 99_750_000
    # 99_750_000 * 1e12 // (5e11 + 99_750_000) = 199_460_207
    assert amount_out == 199_460_207


def test_quote_without_fee():
    assert get_amount_out(ONE_SUPRA, 5 * 10**11, 10**12, 0, 10_000) == 199_960_007


def test_quote_is_exact_for_large_reserves():
    reserve = 10**30
    amount_out = get_amount_out(10**18, reserve, reserve, 0, 10_000)
    assert amount_out == (10**18 * reserve) // (reserve + 10**18)


@pytest.mark.parametrize("amount_in", [1, 10, 10**4, 10**8, 10**12])
def test_fee_never_increases_output(amount_in):
    reserves = (7 * 10**11, 3 * 10**12)
    with_fee = get_amount_out(amount_in, *reserves, 25, 10_000)
    without_fee = get_amount_out(amount_in, *reserves, 0, 10_000)
    assert with_fee <= without_fee


def test_output_is_monotonic_in_input():
    reserves = (5 * 10**11, 10**12)
    outputs = [
        get_amount_out(amount, *reserves, 25, 10_000)
        for amount in (10**6, 10**7, 10**8, 10**9, 10**10)
    ]
    assert outputs == sorted(outputs)


def test_output_never_drains_pool():
    reserve_out = 10**12
    amount_out = get_amount_out(10**20, 5 * 10**11, reserve_out, 25, 10_000)
    assert amount_out < reserve_out


def test_zero_denominator_returns_zero():
    assert get_amount_out(0, 0, 10**12, 25, 10_000) == 0


def test_zero_fee_scale_returns_zero():
    assert get_amount_out(ONE_SUPRA, 5 * 10**11, 10**12, 0, 0) == 0


def test_tiny_input_truncates_to_zero():
    assert get_amount_out(1, 10**12, 10**6, 25, 10_000) == 0
