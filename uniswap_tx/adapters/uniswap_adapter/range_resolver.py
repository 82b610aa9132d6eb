from __future__ import annotations

from dataclasses import dataclass

from loguru import logger

from uniswap_tx.core.errors import (
    InvalidArgumentError,
    InvalidTickRangeError,
    RangeNotSpecifiedError,
)
from uniswap_tx.core.types import Fraction, TickRange
from uniswap_tx.core.utils.fixed_point import (
    MAX_TICK,
    MIN_TICK,
    nearest_usable_tick,
    price_to_tick,
)


@dataclass(frozen=True)
class TicksSource:
    lower: int
    upper: int


@dataclass(frozen=True)
class PercentsSource:
    """Band around the current price, e.g. ``Fraction(10, 100)`` for 10%."""

    lower_band: Fraction
    upper_band: Fraction


@dataclass(frozen=True)
class PricesSource:
    price_lower: int
    price_upper: int


RangeSource = TicksSource | PercentsSource | PricesSource


class PositionRangeResolver:
    """Turns a range request into a tick range aligned to the pool spacing.

    Ranges that collapse (``lower >= upper`` after snapping) are rejected
    rather than widened.
    """

    def resolve(
        self,
        source: RangeSource | None,
        current_price: int,
        tick_spacing: int,
    ) -> TickRange:
        if source is None:
            raise RangeNotSpecifiedError()
        if tick_spacing <= 0:
            raise InvalidArgumentError(f"tick spacing must be positive, got {tick_spacing}")

        if isinstance(source, TicksSource):
            tick_range = self._from_ticks(source, tick_spacing)
        elif isinstance(source, PercentsSource):
            tick_range = self._from_percents(source, int(current_price), tick_spacing)
        elif isinstance(source, PricesSource):
            tick_range = self._from_prices(
                source.price_lower, source.price_upper, tick_spacing
            )
        else:
            raise InvalidArgumentError(f"Unknown range source: {source!r}")

        logger.debug(
            f"Resolved {source} to ticks [{tick_range.lower}, {tick_range.upper}] "
            f"(spacing {tick_spacing})"
        )
        return tick_range

    @staticmethod
    def _from_ticks(source: TicksSource, tick_spacing: int) -> TickRange:
        lower, upper = int(source.lower), int(source.upper)
        if lower % tick_spacing or upper % tick_spacing:
            raise InvalidTickRangeError(
                lower, upper, f"ticks must be multiples of tick spacing {tick_spacing}"
            )
        if lower < MIN_TICK or upper > MAX_TICK:
            raise InvalidTickRangeError(
                lower, upper, f"ticks must lie within [{MIN_TICK}, {MAX_TICK}]"
            )
        return TickRange(lower, upper)

    def _from_percents(
        self, source: PercentsSource, current_price: int, tick_spacing: int
    ) -> TickRange:
        lower_delta = source.lower_band.apply(current_price)
        if lower_delta >= current_price:
            raise InvalidArgumentError(
                f"Lower band {source.lower_band} leaves no positive lower price"
            )
        return self._from_prices(
            current_price - lower_delta,
            current_price + source.upper_band.apply(current_price),
            tick_spacing,
        )

    @staticmethod
    def _from_prices(price_lower: int, price_upper: int, tick_spacing: int) -> TickRange:
        lower = nearest_usable_tick(price_to_tick(price_lower), tick_spacing)
        upper = nearest_usable_tick(price_to_tick(price_upper), tick_spacing)
        return TickRange(lower, upper)
