from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING

from loguru import logger

from uniswap_tx.adapters.uniswap_adapter.range_resolver import (
    PercentsSource,
    PositionRangeResolver,
    PricesSource,
    RangeSource,
    TicksSource,
)
from uniswap_tx.core.config import get_execution_defaults
from uniswap_tx.core.constants.base import DEFAULT_SLIPPAGE_TOLERANCE, MAX_UINT256
from uniswap_tx.core.constants.uniswap_v3_abi import NONFUNGIBLE_POSITION_MANAGER_ABI
from uniswap_tx.core.errors import (
    AddressRequiredForAllowanceCheckError,
    AmountsNotSpecifiedError,
    BuilderConsumedError,
    InvalidArgumentError,
    InvalidTickRangeError,
    RangeNotSpecifiedError,
)
from uniswap_tx.core.transactions.prepared_call import PreparedCall
from uniswap_tx.core.transactions.sequence import TransactionSequence
from uniswap_tx.core.types import Fraction, PoolMetadata, PoolTokens, TickRange
from uniswap_tx.core.utils.fixed_point import price_from_sqrt_x96, sqrt_ratio_at_tick
from uniswap_tx.core.utils.tokens import AllowanceGuard
from uniswap_tx.core.utils.transaction import checksum
from uniswap_tx.core.utils.uniswap_v3_math import (
    deadline as deadline_from_now,
    max_liquidity_for_amounts,
    mint_amounts,
    slippage_min,
)

if TYPE_CHECKING:
    from uniswap_tx.adapters.uniswap_adapter.pool import UniswapPool


@dataclass(frozen=True)
class AllowanceCheck:
    owner: str | None
    token0: bool = True
    token1: bool = True


@dataclass
class PositionSpec:
    """Everything the caller asked for, before any chain state is known."""

    amount0: int | None = None
    amount1: int | None = None
    range_source: RangeSource | None = None
    slippage: Fraction = field(default_factory=lambda: DEFAULT_SLIPPAGE_TOLERANCE)
    allowance_check: AllowanceCheck | None = None
    token_id: int | None = None

    def validate(self) -> None:
        if not self.amount0 and not self.amount1:
            raise AmountsNotSpecifiedError()
        if self.range_source is None and self.token_id is None:
            raise RangeNotSpecifiedError()
        if self.allowance_check is not None and not self.allowance_check.owner:
            raise AddressRequiredForAllowanceCheckError()


@dataclass(frozen=True)
class ResolvedPosition:
    tick_range: TickRange
    liquidity: int
    amount0: int
    amount1: int
    amount0_min: int
    amount1_min: int
    call: PreparedCall


def deadline_timestamp(deadline: int | datetime | None) -> int:
    if deadline is None:
        return deadline_from_now(get_execution_defaults()["deadline_s"])
    if isinstance(deadline, datetime):
        return int(deadline.timestamp())
    return int(deadline)


def _liquidity_for(
    spec: PositionSpec, metadata: PoolMetadata, tick_range: TickRange
) -> int:
    amount0 = int(spec.amount0 or 0)
    amount1 = int(spec.amount1 or 0)
    sqrt_lower = sqrt_ratio_at_tick(tick_range.lower)
    sqrt_upper = sqrt_ratio_at_tick(tick_range.upper)
    if amount0 and not amount1 and metadata.sqrt_price_x96 >= sqrt_upper:
        raise InvalidArgumentError(
            "Range lies below the current price; it can only be funded with token1"
        )
    if amount1 and not amount0 and metadata.sqrt_price_x96 <= sqrt_lower:
        raise InvalidArgumentError(
            "Range lies above the current price; it can only be funded with token0"
        )

    liquidity = max_liquidity_for_amounts(
        metadata.sqrt_price_x96,
        sqrt_lower,
        sqrt_upper,
        amount0 or MAX_UINT256,
        amount1 or MAX_UINT256,
    )
    if liquidity <= 0:
        raise InvalidArgumentError("Amounts are too small to mint any liquidity")
    return liquidity


def resolve_position_call(
    spec: PositionSpec,
    metadata: PoolMetadata,
    tokens: PoolTokens,
    position_manager: str,
    recipient: str | None,
    deadline: int,
    position_range: TickRange | None = None,
) -> ResolvedPosition:
    """Pure part of ``build``: range, liquidity, amounts and calldata.

    ``position_range`` is the stored range of the position an
    ``increaseLiquidity`` targets. A configured range must resolve to it.
    """
    spec.validate()
    tick_range = None
    if spec.range_source is not None:
        tick_range = PositionRangeResolver().resolve(
            spec.range_source,
            price_from_sqrt_x96(metadata.sqrt_price_x96),
            metadata.tick_spacing,
        )
    if spec.token_id is not None:
        if position_range is None:
            raise InvalidArgumentError(
                f"Range of position {spec.token_id} is required to increase liquidity"
            )
        if tick_range is not None and tick_range != position_range:
            raise InvalidTickRangeError(
                tick_range.lower,
                tick_range.upper,
                f"position {spec.token_id} spans "
                f"[{position_range.lower}, {position_range.upper}]",
            )
        tick_range = position_range
    liquidity = _liquidity_for(spec, metadata, tick_range)
    amount0, amount1 = mint_amounts(
        metadata.tick, metadata.sqrt_price_x96, tick_range, liquidity
    )
    amount0_min = slippage_min(amount0, spec.slippage)
    amount1_min = slippage_min(amount1, spec.slippage)

    if spec.token_id is not None:
        call = PreparedCall.from_function(
            position_manager,
            NONFUNGIBLE_POSITION_MANAGER_ABI,
            "increaseLiquidity",
            [
                (
                    int(spec.token_id),
                    amount0,
                    amount1,
                    amount0_min,
                    amount1_min,
                    int(deadline),
                )
            ],
        )
    else:
        if not recipient:
            raise InvalidArgumentError("recipient is required to mint a position")
        call = PreparedCall.from_function(
            position_manager,
            NONFUNGIBLE_POSITION_MANAGER_ABI,
            "mint",
            [
                (
                    checksum(tokens.token0),
                    checksum(tokens.token1),
                    int(metadata.fee),
                    tick_range.lower,
                    tick_range.upper,
                    amount0,
                    amount1,
                    amount0_min,
                    amount1_min,
                    checksum(recipient),
                    int(deadline),
                )
            ],
        )

    return ResolvedPosition(
        tick_range=tick_range,
        liquidity=liquidity,
        amount0=amount0,
        amount1=amount1,
        amount0_min=amount0_min,
        amount1_min=amount1_min,
        call=call,
    )


class LiquidityTransactionBuilder:
    """Accumulates a liquidity request and turns it into calls on ``build``.

    Fluent setters only record the request. ``build`` reads the pool once,
    resolves everything and consumes the builder.
    """

    def __init__(self, pool: UniswapPool, allowance_guard: AllowanceGuard | None = None):
        self.pool = pool
        self.allowance_guard = allowance_guard or AllowanceGuard(pool.reader)
        self._spec: PositionSpec | None = PositionSpec()

    def _open_spec(self) -> PositionSpec:
        if self._spec is None:
            raise BuilderConsumedError()
        return self._spec

    def from_amount0(self, amount0: int) -> LiquidityTransactionBuilder:
        self._open_spec().amount0 = int(amount0)
        return self

    def from_amount1(self, amount1: int) -> LiquidityTransactionBuilder:
        self._open_spec().amount1 = int(amount1)
        return self

    def from_amounts(self, amount0: int, amount1: int) -> LiquidityTransactionBuilder:
        spec = self._open_spec()
        spec.amount0 = int(amount0)
        spec.amount1 = int(amount1)
        return self

    def from_ticks(self, tick_lower: int, tick_upper: int) -> LiquidityTransactionBuilder:
        self._open_spec().range_source = TicksSource(int(tick_lower), int(tick_upper))
        return self

    def from_percents(
        self, lower_band: Fraction, upper_band: Fraction
    ) -> LiquidityTransactionBuilder:
        self._open_spec().range_source = PercentsSource(lower_band, upper_band)
        return self

    def from_prices(
        self, price_lower: int, price_upper: int
    ) -> LiquidityTransactionBuilder:
        self._open_spec().range_source = PricesSource(int(price_lower), int(price_upper))
        return self

    def with_slippage(self, tolerance: Fraction) -> LiquidityTransactionBuilder:
        self._open_spec().slippage = tolerance
        return self

    def request_allowance_check(
        self, owner: str | None, *, token0: bool = True, token1: bool = True
    ) -> LiquidityTransactionBuilder:
        self._open_spec().allowance_check = AllowanceCheck(owner, token0, token1)
        return self

    def for_position(self, token_id: int) -> LiquidityTransactionBuilder:
        self._open_spec().token_id = int(token_id)
        return self

    async def _position_range(self, token_id: int) -> TickRange:
        from uniswap_tx.adapters.uniswap_adapter.positions import PositionManager

        position = await PositionManager(
            self.pool.reader, self.pool.deployment
        ).get_position(token_id)
        tokens = self.pool.tokens
        if (
            position.token0.lower() != tokens.token0.lower()
            or position.token1.lower() != tokens.token1.lower()
            or position.fee != self.pool.fee
        ):
            raise InvalidArgumentError(
                f"Position {token_id} ({position.token0}/{position.token1}, "
                f"fee={position.fee}) does not belong to pool {self.pool.address}"
            )
        return TickRange(position.tick_lower, position.tick_upper)

    async def build(
        self,
        recipient: str | None = None,
        deadline: int | datetime | None = None,
    ) -> PreparedCall | TransactionSequence:
        spec = self._open_spec()
        spec.validate()
        if spec.token_id is None and not recipient:
            raise InvalidArgumentError("recipient is required to mint a position")
        self._spec = None

        metadata = await self.pool.get_pool_metadata()
        position_manager = self.pool.position_manager
        position_range = None
        if spec.token_id is not None:
            position_range = await self._position_range(spec.token_id)
        resolved = resolve_position_call(
            spec,
            metadata,
            self.pool.tokens,
            position_manager,
            recipient,
            deadline_timestamp(deadline),
            position_range,
        )
        logger.info(
            f"Built {'increaseLiquidity' if spec.token_id is not None else 'mint'} "
            f"on pool {self.pool.address}: ticks [{resolved.tick_range.lower}, "
            f"{resolved.tick_range.upper}] liquidity={resolved.liquidity} "
            f"amount0={resolved.amount0} amount1={resolved.amount1}"
        )

        check = spec.allowance_check
        if check is None:
            return resolved.call

        approvals: list[PreparedCall] = []
        for token, wanted, amount in (
            (self.pool.tokens.token0, check.token0, resolved.amount0),
            (self.pool.tokens.token1, check.token1, resolved.amount1),
        ):
            if not wanted or amount <= 0:
                continue
            approval = await self.allowance_guard.ensure_approved(
                token, check.owner, position_manager, amount
            )
            if approval is not None:
                approvals.append(approval)
        return TransactionSequence([*approvals, resolved.call])
