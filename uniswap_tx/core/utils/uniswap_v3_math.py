"""Uniswap v3 liquidity math.

Integer versions of the position manager's liquidity/amount conversions, plus
the slippage and deadline helpers shared by every builder.
"""

from __future__ import annotations

import time

from uniswap_tx.core.constants.base import DEFAULT_DEADLINE_SECONDS
from uniswap_tx.core.errors import InvalidArgumentError
from uniswap_tx.core.types import Fraction, TickRange
from uniswap_tx.core.utils.fixed_point import Q96, sqrt_ratio_at_tick


def mul_div(a: int, b: int, denominator: int) -> int:
    return a * b // denominator


def mul_div_rounding_up(a: int, b: int, denominator: int) -> int:
    return -(-(a * b) // denominator)


def _sorted_bounds(
    sqrt_a: int, sqrt_b: int, *, allow_equal: bool = False
) -> tuple[int, int]:
    a, b = sorted((int(sqrt_a), int(sqrt_b)))
    if a == b and not allow_equal:
        raise InvalidArgumentError("sqrt price bounds must differ")
    if a <= 0:
        raise InvalidArgumentError("sqrt price bounds must be positive")
    return a, b


def max_liquidity_for_amount0(sqrt_a: int, sqrt_b: int, amount0: int) -> int:
    a, b = _sorted_bounds(sqrt_a, sqrt_b)
    return int(amount0) * a * b // (Q96 * (b - a))


def max_liquidity_for_amount1(sqrt_a: int, sqrt_b: int, amount1: int) -> int:
    a, b = _sorted_bounds(sqrt_a, sqrt_b)
    return int(amount1) * Q96 // (b - a)


def max_liquidity_for_amounts(
    sqrt_current: int, sqrt_a: int, sqrt_b: int, amount0: int, amount1: int
) -> int:
    a, b = _sorted_bounds(sqrt_a, sqrt_b)
    p = int(sqrt_current)
    if p <= a:
        return max_liquidity_for_amount0(a, b, amount0)
    if p < b:
        return min(
            max_liquidity_for_amount0(p, b, amount0),
            max_liquidity_for_amount1(a, p, amount1),
        )
    return max_liquidity_for_amount1(a, b, amount1)


def amount0_delta(sqrt_a: int, sqrt_b: int, liquidity: int, round_up: bool) -> int:
    a, b = _sorted_bounds(sqrt_a, sqrt_b, allow_equal=True)
    numerator1 = int(liquidity) << 96
    numerator2 = b - a
    if round_up:
        return mul_div_rounding_up(
            mul_div_rounding_up(numerator1, numerator2, b), 1, a
        )
    return mul_div(numerator1, numerator2, b) // a


def amount1_delta(sqrt_a: int, sqrt_b: int, liquidity: int, round_up: bool) -> int:
    a, b = _sorted_bounds(sqrt_a, sqrt_b, allow_equal=True)
    if round_up:
        return mul_div_rounding_up(int(liquidity), b - a, Q96)
    return mul_div(int(liquidity), b - a, Q96)


def _amounts(
    tick_current: int,
    sqrt_current: int,
    tick_range: TickRange,
    liquidity: int,
    round_up: bool,
) -> tuple[int, int]:
    sqrt_lower = sqrt_ratio_at_tick(tick_range.lower)
    sqrt_upper = sqrt_ratio_at_tick(tick_range.upper)
    if tick_current < tick_range.lower:
        return amount0_delta(sqrt_lower, sqrt_upper, liquidity, round_up), 0
    if tick_current < tick_range.upper:
        return (
            amount0_delta(sqrt_current, sqrt_upper, liquidity, round_up),
            amount1_delta(sqrt_lower, sqrt_current, liquidity, round_up),
        )
    return 0, amount1_delta(sqrt_lower, sqrt_upper, liquidity, round_up)


def mint_amounts(
    tick_current: int, sqrt_current: int, tick_range: TickRange, liquidity: int
) -> tuple[int, int]:
    """Token amounts the pool pulls to mint ``liquidity`` (rounded up)."""
    return _amounts(tick_current, sqrt_current, tick_range, liquidity, True)


def amounts_for_liquidity(
    tick_current: int, sqrt_current: int, tick_range: TickRange, liquidity: int
) -> tuple[int, int]:
    """Token amounts released by burning ``liquidity`` (rounded down)."""
    return _amounts(tick_current, sqrt_current, tick_range, liquidity, False)


def slippage_min(amount: int, tolerance: Fraction) -> int:
    amount = int(amount)
    return max(0, amount - tolerance.apply(amount))


def deadline(seconds: int = DEFAULT_DEADLINE_SECONDS) -> int:
    return int(time.time()) + int(seconds)
