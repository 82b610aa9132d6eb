from __future__ import annotations

from typing import TYPE_CHECKING, Any

from eth_abi import encode
from eth_utils import keccak, to_checksum_address
from hexbytes import HexBytes

from uniswap_tx.adapters.uniswap_adapter.mint_builder import (
    LiquidityTransactionBuilder,
)
from uniswap_tx.core.chain_reader import ChainReader, ReadCall
from uniswap_tx.core.config import get_deployment
from uniswap_tx.core.constants.contracts import UNISWAP_V3_POOL_INIT_CODE_HASH
from uniswap_tx.core.constants.uniswap_v3_abi import (
    UNISWAP_V3_POOL_ABI,
    UNISWAP_V3_QUOTER_ABI,
)
from uniswap_tx.core.errors import InvalidArgumentError
from uniswap_tx.core.types import PoolMetadata, PoolTokens
from uniswap_tx.core.utils.fixed_point import PRICE_SCALE, Q192, price_from_sqrt_x96
from uniswap_tx.core.utils.tokens import AllowanceGuard
from uniswap_tx.core.utils.transaction import checksum

if TYPE_CHECKING:
    from uniswap_tx.adapters.uniswap_adapter.positions import PositionInfo


def sort_tokens(token_a: str, token_b: str) -> tuple[str, str]:
    a, b = checksum(token_a), checksum(token_b)
    if a.lower() == b.lower():
        raise InvalidArgumentError(f"Pool tokens must differ, got {a} twice")
    return (a, b) if int(a, 16) < int(b, 16) else (b, a)


def compute_pool_address(
    factory: str,
    token_a: str,
    token_b: str,
    fee: int,
    init_code_hash: str = UNISWAP_V3_POOL_INIT_CODE_HASH,
) -> str:
    """CREATE2 address of the pool the factory deploys for this pair and fee."""
    token0, token1 = sort_tokens(token_a, token_b)
    salt = keccak(encode(["address", "address", "uint24"], [token0, token1, int(fee)]))
    digest = keccak(
        b"\xff" + bytes(HexBytes(checksum(factory))) + salt + bytes(HexBytes(init_code_hash))
    )
    return to_checksum_address(digest[12:])


async def read_pool_metadata(reader: ChainReader, address: str) -> PoolMetadata:
    fee, tick_spacing, liquidity, slot0 = await reader.batch_read(
        [
            ReadCall(address, UNISWAP_V3_POOL_ABI, "fee"),
            ReadCall(address, UNISWAP_V3_POOL_ABI, "tickSpacing"),
            ReadCall(address, UNISWAP_V3_POOL_ABI, "liquidity"),
            ReadCall(address, UNISWAP_V3_POOL_ABI, "slot0"),
        ]
    )
    return PoolMetadata(
        fee=int(fee),
        tick_spacing=int(tick_spacing),
        liquidity=int(liquidity),
        sqrt_price_x96=int(slot0[0]),
        tick=int(slot0[1]),
    )


class UniswapPool:
    """A v3 pool plus the periphery deployment used to act on it."""

    def __init__(
        self,
        reader: ChainReader,
        address: str,
        tokens: PoolTokens,
        fee: int,
        deployment: dict[str, Any],
    ):
        self.reader = reader
        self.address = checksum(address)
        self.tokens = tokens
        self.fee = int(fee)
        self.deployment = deployment

    def __repr__(self) -> str:
        return (
            f"UniswapPool({self.address}, {self.tokens.token0}/{self.tokens.token1}, "
            f"fee={self.fee})"
        )

    @staticmethod
    async def _deployment(
        reader: ChainReader, deployment: dict[str, Any] | None
    ) -> dict[str, Any]:
        if deployment is not None:
            return deployment
        return get_deployment(await reader.get_chain_id())

    @classmethod
    async def from_address(
        cls,
        reader: ChainReader,
        address: str,
        deployment: dict[str, Any] | None = None,
    ) -> UniswapPool:
        token0, token1, fee = await reader.batch_read(
            [
                ReadCall(address, UNISWAP_V3_POOL_ABI, "token0"),
                ReadCall(address, UNISWAP_V3_POOL_ABI, "token1"),
                ReadCall(address, UNISWAP_V3_POOL_ABI, "fee"),
            ]
        )
        return cls(
            reader,
            address,
            PoolTokens(checksum(token0), checksum(token1)),
            int(fee),
            await cls._deployment(reader, deployment),
        )

    @classmethod
    async def from_tokens(
        cls,
        reader: ChainReader,
        token_a: str,
        token_b: str,
        fee: int,
        deployment: dict[str, Any] | None = None,
    ) -> UniswapPool:
        deployment = await cls._deployment(reader, deployment)
        token0, token1 = sort_tokens(token_a, token_b)
        address = compute_pool_address(
            deployment["factory"],
            token0,
            token1,
            fee,
            deployment.get("pool_init_code_hash", UNISWAP_V3_POOL_INIT_CODE_HASH),
        )
        return cls(reader, address, PoolTokens(token0, token1), int(fee), deployment)

    @property
    def position_manager(self) -> str:
        return checksum(self.deployment["position_manager"])

    async def get_pool_metadata(self) -> PoolMetadata:
        return await read_pool_metadata(self.reader, self.address)

    async def get_pool_tokens(self) -> PoolTokens:
        token0, token1 = await self.reader.batch_read(
            [
                ReadCall(self.address, UNISWAP_V3_POOL_ABI, "token0"),
                ReadCall(self.address, UNISWAP_V3_POOL_ABI, "token1"),
            ]
        )
        return PoolTokens(checksum(token0), checksum(token1))

    async def get_price(self) -> int:
        """Price of token0 in token1, scaled by 10**36."""
        metadata = await self.get_pool_metadata()
        return price_from_sqrt_x96(metadata.sqrt_price_x96)

    async def get_token1_price(self) -> int:
        """Price of token1 in token0, scaled by 10**36."""
        metadata = await self.get_pool_metadata()
        return PRICE_SCALE * Q192 // (metadata.sqrt_price_x96**2)

    async def _quote(self, token_in: str, token_out: str, amount_in: int) -> int:
        amount_in = int(amount_in)
        if amount_in < 0:
            raise InvalidArgumentError(
                f"Quote amount must be non-negative, got {amount_in}"
            )
        quoter = self.deployment.get("quoter")
        if not quoter:
            raise ValueError(f"No quoter in deployment for pool {self.address}")
        amount_out = await self.reader.read(
            ReadCall(
                quoter,
                UNISWAP_V3_QUOTER_ABI,
                "quoteExactInputSingle",
                (token_in, token_out, self.fee, amount_in, 0),
            )
        )
        return int(amount_out)

    async def quote_token0(self, amount_in: int) -> int:
        """token1 received for selling ``amount_in`` token0 in this pool."""
        return await self._quote(self.tokens.token0, self.tokens.token1, amount_in)

    async def quote_token1(self, amount_in: int) -> int:
        """token0 received for selling ``amount_in`` token1 in this pool."""
        return await self._quote(self.tokens.token1, self.tokens.token0, amount_in)

    async def get_active_positions(self, owner: str) -> list[PositionInfo]:
        from uniswap_tx.adapters.uniswap_adapter.positions import PositionManager

        positions = await PositionManager(self.reader, self.deployment).get_active_positions(
            owner
        )
        return [
            position
            for position in positions
            if position.fee == self.fee
            and position.token0 == self.tokens.token0
            and position.token1 == self.tokens.token1
        ]

    def create_mint_transaction(
        self, allowance_guard: AllowanceGuard | None = None
    ) -> LiquidityTransactionBuilder:
        return LiquidityTransactionBuilder(self, allowance_guard)
