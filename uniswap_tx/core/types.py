from __future__ import annotations

import math
from dataclasses import dataclass
from functools import total_ordering

from uniswap_tx.core.errors import InvalidArgumentError, InvalidTickRangeError


@total_ordering
@dataclass(frozen=True, eq=False)
class Fraction:
    """Unreduced ratio used for slippage tolerances and percent bands.

    Comparisons cross-multiply, so ``Fraction(1, 2) == Fraction(2, 4)``.
    """

    numerator: int
    denominator: int

    def __post_init__(self) -> None:
        if int(self.denominator) <= 0:
            raise InvalidArgumentError(
                f"Fraction denominator must be positive, got {self.denominator}"
            )
        if int(self.numerator) < 0:
            raise InvalidArgumentError(
                f"Fraction numerator must be non-negative, got {self.numerator}"
            )

    @classmethod
    def from_bps(cls, bps: int) -> Fraction:
        return cls(int(bps), 10_000)

    def apply(self, amount: int) -> int:
        return int(amount) * self.numerator // self.denominator

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Fraction):
            return NotImplemented
        return self.numerator * other.denominator == other.numerator * self.denominator

    def __lt__(self, other: Fraction) -> bool:
        if not isinstance(other, Fraction):
            return NotImplemented
        return self.numerator * other.denominator < other.numerator * self.denominator

    def __hash__(self) -> int:
        g = math.gcd(self.numerator, self.denominator)
        return hash((self.numerator // g, self.denominator // g))

    def __str__(self) -> str:
        return f"{self.numerator}/{self.denominator}"


@dataclass(frozen=True)
class TickRange:
    lower: int
    upper: int

    def __post_init__(self) -> None:
        if self.lower >= self.upper:
            raise InvalidTickRangeError(
                self.lower, self.upper, "lower tick must be below upper tick"
            )

    def contains(self, tick: int) -> bool:
        return self.lower <= tick < self.upper


@dataclass(frozen=True)
class PoolMetadata:
    fee: int
    tick_spacing: int
    liquidity: int
    sqrt_price_x96: int
    tick: int


@dataclass(frozen=True)
class PoolTokens:
    token0: str
    token1: str
