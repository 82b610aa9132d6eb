from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Literal

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from uniswap_tx.adapters.multicall_adapter.adapter import AtomicBatch
from uniswap_tx.adapters.uniswap_adapter.mint_builder import deadline_timestamp
from uniswap_tx.adapters.uniswap_adapter.pool import (
    compute_pool_address,
    read_pool_metadata,
)
from uniswap_tx.core.chain_reader import ChainReader, ReadCall
from uniswap_tx.core.constants.base import DEFAULT_SLIPPAGE_TOLERANCE, MAX_UINT128
from uniswap_tx.core.constants.contracts import UNISWAP_V3_POOL_INIT_CODE_HASH
from uniswap_tx.core.constants.uniswap_v3_abi import NONFUNGIBLE_POSITION_MANAGER_ABI
from uniswap_tx.core.transactions.prepared_call import PreparedCall
from uniswap_tx.core.types import Fraction, TickRange
from uniswap_tx.core.utils.transaction import checksum
from uniswap_tx.core.utils.uniswap_v3_math import amounts_for_liquidity, slippage_min


class PositionInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    token_id: int
    nonce: int
    operator: str
    token0: str
    token1: str
    fee: int
    tick_lower: int
    tick_upper: int
    liquidity: int
    fee_growth_inside0_last_x128: int
    fee_growth_inside1_last_x128: int
    tokens_owed0: int
    tokens_owed1: int

    @classmethod
    def from_struct(cls, token_id: int, raw: tuple | list) -> PositionInfo:
        return cls(
            token_id=int(token_id),
            nonce=int(raw[0]),
            operator=checksum(raw[1]),
            token0=checksum(raw[2]),
            token1=checksum(raw[3]),
            fee=int(raw[4]),
            tick_lower=int(raw[5]),
            tick_upper=int(raw[6]),
            liquidity=int(raw[7]),
            fee_growth_inside0_last_x128=int(raw[8]),
            fee_growth_inside1_last_x128=int(raw[9]),
            tokens_owed0=int(raw[10]),
            tokens_owed1=int(raw[11]),
        )


class PositionById(BaseModel):
    kind: Literal["id"] = "id"
    token_id: int


class PositionByRecord(BaseModel):
    kind: Literal["record"] = "record"
    position: PositionInfo


PositionRef = Annotated[PositionById | PositionByRecord, Field(discriminator="kind")]


class PositionManager:
    """Reads and closes positions held by the NonfungiblePositionManager."""

    def __init__(self, reader: ChainReader, deployment: dict[str, Any]):
        self.reader = reader
        self.deployment = deployment
        self.address = checksum(deployment["position_manager"])

    def _read(self, fn_name: str, *args: Any) -> ReadCall:
        return ReadCall(self.address, NONFUNGIBLE_POSITION_MANAGER_ABI, fn_name, args)

    async def get_position_token_ids(self, owner: str) -> list[int]:
        owner = checksum(owner)
        count = int(await self.reader.read(self._read("balanceOf", owner)) or 0)
        if count <= 0:
            return []
        ids = await self.reader.batch_read(
            [self._read("tokenOfOwnerByIndex", owner, i) for i in range(count)]
        )
        return [int(token_id) for token_id in ids]

    async def get_position(self, token_id: int) -> PositionInfo:
        raw = await self.reader.read(self._read("positions", int(token_id)))
        return PositionInfo.from_struct(token_id, raw)

    async def get_all_positions(self, owner: str) -> list[PositionInfo]:
        token_ids = await self.get_position_token_ids(owner)
        if not token_ids:
            return []
        raws = await self.reader.batch_read(
            [self._read("positions", token_id) for token_id in token_ids]
        )
        return [
            PositionInfo.from_struct(token_id, raw)
            for token_id, raw in zip(token_ids, raws, strict=True)
        ]

    async def get_active_positions(self, owner: str) -> list[PositionInfo]:
        return [p for p in await self.get_all_positions(owner) if p.liquidity > 0]

    async def get_fees(self, token_id: int, owner: str) -> tuple[int, int]:
        """Uncollected fees, via a static ``collect`` from the owner."""
        owner = checksum(owner)
        npm = self.reader.contract(self.address, NONFUNGIBLE_POSITION_MANAGER_ABI)
        amount0, amount1 = await npm.functions.collect(
            (int(token_id), owner, MAX_UINT128, MAX_UINT128)
        ).call({"from": owner}, block_identifier="latest")
        return int(amount0), int(amount1)

    async def resolve_position(
        self, ref: PositionRef | int
    ) -> PositionInfo:
        if isinstance(ref, int):
            ref = PositionById(token_id=ref)
        if isinstance(ref, PositionByRecord):
            return ref.position
        return await self.get_position(ref.token_id)

    def _call(self, fn_name: str, *args: Any) -> PreparedCall:
        return PreparedCall.from_function(
            self.address, NONFUNGIBLE_POSITION_MANAGER_ABI, fn_name, list(args)
        )

    async def close_and_burn_position(
        self,
        ref: PositionRef | int,
        recipient: str,
        deadline: int | datetime | None = None,
        slippage: Fraction = DEFAULT_SLIPPAGE_TOLERANCE,
    ) -> PreparedCall:
        """Remove all liquidity, collect everything owed and burn the NFT, atomically."""
        position = await self.resolve_position(ref)
        recipient = checksum(recipient)
        calls: list[PreparedCall] = []

        if position.liquidity > 0:
            pool_address = compute_pool_address(
                self.deployment["factory"],
                position.token0,
                position.token1,
                position.fee,
                self.deployment.get(
                    "pool_init_code_hash", UNISWAP_V3_POOL_INIT_CODE_HASH
                ),
            )
            metadata = await read_pool_metadata(self.reader, pool_address)
            amount0, amount1 = amounts_for_liquidity(
                metadata.tick,
                metadata.sqrt_price_x96,
                TickRange(position.tick_lower, position.tick_upper),
                position.liquidity,
            )
            calls.append(
                self._call(
                    "decreaseLiquidity",
                    (
                        position.token_id,
                        position.liquidity,
                        slippage_min(amount0, slippage),
                        slippage_min(amount1, slippage),
                        deadline_timestamp(deadline),
                    ),
                )
            )

        calls.append(
            self._call(
                "collect", (position.token_id, recipient, MAX_UINT128, MAX_UINT128)
            )
        )
        calls.append(self._call("burn", position.token_id))
        logger.info(
            f"Closing position {position.token_id} "
            f"(liquidity={position.liquidity}) into {len(calls)} batched calls"
        )
        return AtomicBatch.build(calls)
