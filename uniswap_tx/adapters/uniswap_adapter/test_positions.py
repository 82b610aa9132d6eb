from unittest.mock import AsyncMock

import pytest
from eth_abi import decode
from eth_utils import function_signature_to_4byte_selector
from pydantic import TypeAdapter

from uniswap_tx.adapters.uniswap_adapter.positions import (
    PositionById,
    PositionByRecord,
    PositionInfo,
    PositionManager,
    PositionRef,
)
from uniswap_tx.core.constants.base import MAX_UINT128
from uniswap_tx.core.constants.contracts import UNISWAP_V3_DEPLOYMENTS
from uniswap_tx.core.utils.fixed_point import Q96

USDC = "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48"
WETH = "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2"
POOL = "0x88e6A0c2dDD26FEEb64F039a2c41296FcB3f5640"
NPM = "0xC36442b4a4522E871399CD717aBDD847Ab11FE88"
OWNER = "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed"
DEADLINE = 1_900_000_000


def _selector(signature: str) -> bytes:
    return function_signature_to_4byte_selector(signature)


DECREASE = _selector("decreaseLiquidity((uint256,uint128,uint256,uint256,uint256))")
COLLECT = _selector("collect((uint256,address,uint128,uint128))")
BURN = _selector("burn(uint256)")
MULTICALL = _selector("multicall(bytes[])")


def _raw(liquidity: int, fee: int = 500) -> tuple:
    return (
        3,
        "0x0000000000000000000000000000000000000000",
        USDC.lower(),
        WETH.lower(),
        fee,
        195200,
        197210,
        liquidity,
        11,
        22,
        33,
        44,
    )


@pytest.fixture
def manager(fake_reader):
    fake_reader.token_ids = [7, 9]
    fake_reader.positions = {7: _raw(10**15), 9: _raw(0)}
    return PositionManager(fake_reader, UNISWAP_V3_DEPLOYMENTS[1])


def test_position_info_from_struct():
    info = PositionInfo.from_struct(7, _raw(10**15))
    assert info.token_id == 7
    assert info.nonce == 3
    assert info.token0 == USDC
    assert info.token1 == WETH
    assert (info.tick_lower, info.tick_upper) == (195200, 197210)
    assert info.fee_growth_inside1_last_x128 == 22
    assert (info.tokens_owed0, info.tokens_owed1) == (33, 44)


def test_position_ref_discriminator():
    adapter = TypeAdapter(PositionRef)
    by_id = adapter.validate_python({"kind": "id", "token_id": 5})
    assert isinstance(by_id, PositionById)
    record = adapter.validate_python(
        {
            "kind": "record",
            "position": PositionInfo.from_struct(7, _raw(1)).model_dump(),
        }
    )
    assert isinstance(record, PositionByRecord)
    assert record.position.token_id == 7


@pytest.mark.asyncio
class TestPositionReads:
    async def test_token_ids(self, manager):
        assert await manager.get_position_token_ids(OWNER) == [7, 9]

    async def test_no_positions(self, manager, fake_reader):
        fake_reader.token_ids = []
        assert await manager.get_all_positions(OWNER) == []

    async def test_all_and_active(self, manager):
        all_positions = await manager.get_all_positions(OWNER)
        assert [p.token_id for p in all_positions] == [7, 9]
        active = await manager.get_active_positions(OWNER)
        assert [p.token_id for p in active] == [7]

    async def test_get_position(self, manager):
        position = await manager.get_position(9)
        assert position.liquidity == 0

    async def test_get_fees_static_collect(self, manager, fake_reader):
        collect = fake_reader.contract.return_value.functions.collect
        collect.return_value.call = AsyncMock(return_value=[100, 200])

        assert await manager.get_fees(7, OWNER) == (100, 200)
        collect.assert_called_once_with((7, OWNER, MAX_UINT128, MAX_UINT128))
        collect.return_value.call.assert_awaited_once_with(
            {"from": OWNER}, block_identifier="latest"
        )


@pytest.mark.asyncio
class TestCloseAndBurn:
    def _inner_calls(self, call) -> list[bytes]:
        assert call.target_contract == NPM
        assert call.selector == MULTICALL
        (inner,) = decode(["bytes[]"], call.calldata[4:])
        return list(inner)

    async def test_by_id_with_liquidity(self, manager, fake_reader):
        call = await manager.close_and_burn_position(
            PositionById(token_id=7), OWNER, deadline=DEADLINE
        )

        inner = self._inner_calls(call)
        assert [c[:4] for c in inner] == [DECREASE, COLLECT, BURN]
        (decrease,) = decode(
            ["(uint256,uint128,uint256,uint256,uint256)"], inner[0][4:]
        )
        assert decrease[0] == 7
        assert decrease[1] == 10**15
        assert decrease[4] == DEADLINE
        (collect,) = decode(["(uint256,address,uint128,uint128)"], inner[1][4:])
        assert collect[1].lower() == OWNER.lower()
        assert collect[2] == collect[3] == MAX_UINT128
        (burned,) = decode(["uint256"], inner[2][4:])
        assert burned == 7

        # one positions read, then one batched pool read at the CREATE2 address
        assert [c.fn_name for c in fake_reader.batches[0]] == ["positions"]
        assert {c.address for c in fake_reader.batches[1]} == {POOL}

    async def test_by_record_skips_position_read(self, manager, fake_reader):
        record = PositionInfo.from_struct(7, _raw(10**15))

        call = await manager.close_and_burn_position(
            PositionByRecord(position=record), OWNER, deadline=DEADLINE
        )

        assert len(self._inner_calls(call)) == 3
        assert all(
            c.fn_name != "positions" for batch in fake_reader.batches for c in batch
        )

    async def test_empty_position_only_collects_and_burns(self, manager, fake_reader):
        call = await manager.close_and_burn_position(9, OWNER, deadline=DEADLINE)

        inner = self._inner_calls(call)
        assert [c[:4] for c in inner] == [COLLECT, BURN]
        assert len(fake_reader.batches) == 1

    async def test_price_on_lower_tick_of_position(self, manager, fake_reader):
        fake_reader.pool_state["slot0"] = (Q96, 0, 0, 1, 1, 0, True)
        record = PositionInfo.from_struct(7, _raw(10**15)).model_copy(
            update={"tick_lower": 0, "tick_upper": 600}
        )

        call = await manager.close_and_burn_position(
            PositionByRecord(position=record), OWNER, deadline=DEADLINE
        )

        (decrease,) = decode(
            ["(uint256,uint128,uint256,uint256,uint256)"], self._inner_calls(call)[0][4:]
        )
        assert decrease[1] == 10**15
        assert decrease[2] > 0
        assert decrease[3] == 0
