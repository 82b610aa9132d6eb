import pytest

from uniswap_tx.adapters.uniswap_adapter.mint_builder import (
    LiquidityTransactionBuilder,
)
from uniswap_tx.adapters.uniswap_adapter.pool import (
    UniswapPool,
    compute_pool_address,
    sort_tokens,
)
from uniswap_tx.core.constants.contracts import UNISWAP_V3_DEPLOYMENTS
from uniswap_tx.core.errors import InvalidArgumentError
from uniswap_tx.core.types import PoolTokens
from uniswap_tx.core.utils.fixed_point import (
    Q96,
    price_from_sqrt_x96,
    sqrt_ratio_at_tick,
)

USDC = "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48"
WETH = "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2"
POOL = "0x88e6A0c2dDD26FEEb64F039a2c41296FcB3f5640"
FACTORY = "0x1F98431c8aD98523631AE4a59f267346ea31F984"
NPM = "0xC36442b4a4522E871399CD717aBDD847Ab11FE88"
QUOTER = "0xb27308f9F90D607463bb33eA1BeBb41C27CE5AB6"
OWNER = "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed"


class TestComputePoolAddress:
    def test_usdc_weth_500(self):
        assert compute_pool_address(FACTORY, USDC, WETH, 500) == POOL

    def test_token_order_irrelevant(self):
        assert compute_pool_address(FACTORY, WETH.lower(), USDC, 500) == POOL

    def test_fee_changes_address(self):
        assert compute_pool_address(FACTORY, USDC, WETH, 3000) != POOL

    def test_sort_tokens(self):
        assert sort_tokens(WETH, USDC) == (USDC, WETH)
        with pytest.raises(InvalidArgumentError):
            sort_tokens(USDC, USDC.lower())


@pytest.mark.asyncio
class TestUniswapPool:
    async def test_from_address_reads_tokens_and_fee(self, fake_reader):
        pool = await UniswapPool.from_address(fake_reader, POOL.lower())

        assert pool.address == POOL
        assert pool.tokens == PoolTokens(USDC, WETH)
        assert pool.fee == 500
        assert pool.position_manager == NPM
        assert [c.fn_name for c in fake_reader.batches[0]] == ["token0", "token1", "fee"]
        fake_reader.get_chain_id.assert_awaited_once()

    async def test_from_tokens_uses_create2(self, fake_reader):
        pool = await UniswapPool.from_tokens(
            fake_reader, WETH, USDC, 500, UNISWAP_V3_DEPLOYMENTS[1]
        )

        assert pool.address == POOL
        assert pool.tokens == PoolTokens(USDC, WETH)
        fake_reader.batch_read.assert_not_called()
        fake_reader.get_chain_id.assert_not_called()

    async def test_from_tokens_unknown_chain(self, fake_reader):
        fake_reader.get_chain_id.return_value = 999_999
        with pytest.raises(ValueError, match="999999"):
            await UniswapPool.from_tokens(fake_reader, WETH, USDC, 500)

    async def test_metadata_and_price(self, fake_reader):
        pool = await UniswapPool.from_tokens(fake_reader, USDC, WETH, 500)

        metadata = await pool.get_pool_metadata()
        assert metadata.fee == 500
        assert metadata.tick_spacing == 10
        assert metadata.tick == 196256
        assert metadata.sqrt_price_x96 == sqrt_ratio_at_tick(196256) + 12345

        assert await pool.get_price() == price_from_sqrt_x96(metadata.sqrt_price_x96)
        assert await pool.get_pool_tokens() == PoolTokens(USDC, WETH)

    async def test_active_positions_filtered_to_pool(self, fake_reader):
        other_token = "0x6B175474E89094C44Da98b954EedeAC495271d0F"
        fake_reader.token_ids = [1, 2, 3, 4]
        fake_reader.positions = {
            1: _raw(USDC, WETH, 500, 10**12),
            2: _raw(USDC, WETH, 500, 0),
            3: _raw(USDC, WETH, 3000, 10**12),
            4: _raw(other_token, WETH, 500, 10**12),
        }
        pool = await UniswapPool.from_tokens(fake_reader, USDC, WETH, 500)

        positions = await pool.get_active_positions(OWNER)

        assert [p.token_id for p in positions] == [1]

    async def test_create_mint_transaction(self, fake_reader):
        pool = await UniswapPool.from_tokens(fake_reader, USDC, WETH, 500)
        builder = pool.create_mint_transaction()
        assert isinstance(builder, LiquidityTransactionBuilder)
        assert builder.pool is pool

    async def test_token1_price_is_inverse(self, fake_reader):
        pool = await UniswapPool.from_tokens(fake_reader, USDC, WETH, 500)

        token0_price = await pool.get_price()
        token1_price = await pool.get_token1_price()

        assert token0_price * token1_price <= 10**72
        assert 10**72 - token0_price * token1_price <= token0_price + token1_price

        fake_reader.pool_state["slot0"] = (Q96, 0, 0, 1, 1, 0, True)
        assert await pool.get_token1_price() == 10**36

    async def test_quotes_through_quoter(self, fake_reader):
        fake_reader.quote_amount_out = 4242
        pool = await UniswapPool.from_tokens(fake_reader, USDC, WETH, 500)

        assert await pool.quote_token0(10**6) == 4242
        (sell0,) = fake_reader.batches[-1]
        assert await pool.quote_token1(10**15) == 4242
        (sell1,) = fake_reader.batches[-1]

        assert sell0.address == QUOTER
        assert sell0.fn_name == "quoteExactInputSingle"
        assert sell0.args == (USDC, WETH, 500, 10**6, 0)
        assert sell1.args == (WETH, USDC, 500, 10**15, 0)

    async def test_quote_rejects_negative_amount(self, fake_reader):
        pool = await UniswapPool.from_tokens(fake_reader, USDC, WETH, 500)
        with pytest.raises(InvalidArgumentError):
            await pool.quote_token0(-1)

    async def test_quote_without_quoter(self, fake_reader):
        deployment = {"factory": FACTORY, "position_manager": NPM}
        pool = await UniswapPool.from_tokens(fake_reader, USDC, WETH, 500, deployment)
        with pytest.raises(ValueError, match="No quoter"):
            await pool.quote_token1(1)
        assert fake_reader.batches == []


def _raw(token0: str, token1: str, fee: int, liquidity: int) -> tuple:
    return (
        0,
        "0x0000000000000000000000000000000000000000",
        token0,
        token1,
        fee,
        195200,
        197210,
        liquidity,
        0,
        0,
        0,
        0,
    )
