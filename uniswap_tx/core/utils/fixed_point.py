"""X96 fixed point price math and the tick <-> sqrt ratio conversions.

Prices are integers scaled by 10**36 (``PRICE_SCALE``); sqrt prices are Q64.96
(``Q96``). Everything here is integer arithmetic, no floats leak out.
"""

from __future__ import annotations

import math

from uniswap_tx.core.errors import InvalidArgumentError

Q32 = 1 << 32
Q96 = 1 << 96
Q192 = 1 << 192
PRICE_SCALE = 10**36

MIN_TICK = -887272
MAX_TICK = 887272
MIN_SQRT_RATIO = 4295128739
MAX_SQRT_RATIO = 1461446703485210103287273052203988822378723970342

# Largest integer a double represents exactly.
_MAX_SAFE_INTEGER = 2**53 - 1


def integer_sqrt(value: int) -> int:
    """Return ``floor(sqrt(value))`` exactly, for arbitrarily large ints."""
    value = int(value)
    if value < 0:
        raise InvalidArgumentError(f"Cannot take square root of negative value {value}")
    if value < 2:
        return value

    if value <= _MAX_SAFE_INTEGER:
        # math.sqrt can be one off near 2**53
        x = int(math.sqrt(value))
        while x * x > value:
            x -= 1
        while (x + 1) * (x + 1) <= value:
            x += 1
        return x

    x = value
    y = value // 2 + 1
    while y < x:
        x = y
        y = (x + value // x) // 2
    return x


def price_from_sqrt_x96(sqrt_x96: int) -> int:
    sqrt_x96 = int(sqrt_x96)
    if sqrt_x96 < 0:
        raise InvalidArgumentError(f"sqrt price must be non-negative, got {sqrt_x96}")
    return sqrt_x96 * sqrt_x96 * PRICE_SCALE // Q192


def sqrt_x96_from_price(price: int) -> int:
    price = int(price)
    if price < 0:
        raise InvalidArgumentError(f"price must be non-negative, got {price}")
    return integer_sqrt(price * Q192 // PRICE_SCALE)


def sqrt_ratio_at_tick(tick: int) -> int:
    tick = int(tick)
    if tick < MIN_TICK or tick > MAX_TICK:
        raise InvalidArgumentError(f"tick {tick} out of range [{MIN_TICK}, {MAX_TICK}]")

    abs_tick = tick if tick >= 0 else -tick
    ratio = (
        0xFFFCB933BD6FAD37AA2D162D1A594001
        if abs_tick & 0x1
        else 0x100000000000000000000000000000000
    )

    if abs_tick & 0x2:
        ratio = (ratio * 0xFFF97272373D413259A46990580E213A) >> 128
    if abs_tick & 0x4:
        ratio = (ratio * 0xFFF2E50F5F656932EF12357CF3C7FDCC) >> 128
    if abs_tick & 0x8:
        ratio = (ratio * 0xFFE5CACA7E10E4E61C3624EAA0941CD0) >> 128
    if abs_tick & 0x10:
        ratio = (ratio * 0xFFCB9843D60F6159C9DB58835C926644) >> 128
    if abs_tick & 0x20:
        ratio = (ratio * 0xFF973B41FA98C081472E6896DFB254C0) >> 128
    if abs_tick & 0x40:
        ratio = (ratio * 0xFF2EA16466C96A3843EC78B326B52861) >> 128
    if abs_tick & 0x80:
        ratio = (ratio * 0xFE5DEE046A99A2A811C461F1969C3053) >> 128
    if abs_tick & 0x100:
        ratio = (ratio * 0xFCBE86C7900A88AEDCFFC83B479AA3A4) >> 128
    if abs_tick & 0x200:
        ratio = (ratio * 0xF987A7253AC413176F2B074CF7815E54) >> 128
    if abs_tick & 0x400:
        ratio = (ratio * 0xF3392B0822B70005940C7A398E4B70F3) >> 128
    if abs_tick & 0x800:
        ratio = (ratio * 0xE7159475A2C29B7443B29C7FA6E889D9) >> 128
    if abs_tick & 0x1000:
        ratio = (ratio * 0xD097F3BDFD2022B8845AD8F792AA5825) >> 128
    if abs_tick & 0x2000:
        ratio = (ratio * 0xA9F746462D870FDF8A65DC1F90E061E5) >> 128
    if abs_tick & 0x4000:
        ratio = (ratio * 0x70D869A156D2A1B890BB3DF62BAF32F7) >> 128
    if abs_tick & 0x8000:
        ratio = (ratio * 0x31BE135F97D08FD981231505542FCFA6) >> 128
    if abs_tick & 0x10000:
        ratio = (ratio * 0x9AA508B5B7A84E1C677DE54F3E99BC9) >> 128
    if abs_tick & 0x20000:
        ratio = (ratio * 0x5D6AF8DEDB81196699C329225EE604) >> 128
    if abs_tick & 0x40000:
        ratio = (ratio * 0x2216E584F5FA1EA926041BEDFE98) >> 128
    if abs_tick & 0x80000:
        ratio = (ratio * 0x48A170391F7DC42444E8FA2) >> 128

    if tick > 0:
        ratio = ((1 << 256) - 1) // ratio

    # Q128.128 -> Q64.96, rounding up
    sqrt_x96 = ratio >> 32
    if ratio & (Q32 - 1):
        sqrt_x96 += 1
    return sqrt_x96


def tick_at_sqrt_ratio(sqrt_x96: int) -> int:
    """Greatest tick whose sqrt ratio is ``<= sqrt_x96``."""
    sqrt_x96 = int(sqrt_x96)
    if sqrt_x96 < MIN_SQRT_RATIO or sqrt_x96 >= MAX_SQRT_RATIO:
        raise InvalidArgumentError(
            f"sqrt ratio {sqrt_x96} out of range [{MIN_SQRT_RATIO}, {MAX_SQRT_RATIO})"
        )

    lo, hi = MIN_TICK, MAX_TICK - 1
    while lo < hi:
        mid = (lo + hi + 1) // 2
        if sqrt_ratio_at_tick(mid) <= sqrt_x96:
            lo = mid
        else:
            hi = mid - 1
    return lo


def price_to_tick(price: int) -> int:
    return tick_at_sqrt_ratio(sqrt_x96_from_price(price))


def tick_to_price(tick: int) -> int:
    return price_from_sqrt_x96(sqrt_ratio_at_tick(tick))


def nearest_usable_tick(tick: int, tick_spacing: int) -> int:
    tick = int(tick)
    tick_spacing = int(tick_spacing)
    if tick_spacing <= 0:
        raise InvalidArgumentError(f"tick spacing must be positive, got {tick_spacing}")
    if tick < MIN_TICK or tick > MAX_TICK:
        raise InvalidArgumentError(f"tick {tick} out of range [{MIN_TICK}, {MAX_TICK}]")

    # round half toward +inf
    rounded = (2 * tick + tick_spacing) // (2 * tick_spacing) * tick_spacing
    if rounded < MIN_TICK:
        return rounded + tick_spacing
    if rounded > MAX_TICK:
        return rounded - tick_spacing
    return rounded
