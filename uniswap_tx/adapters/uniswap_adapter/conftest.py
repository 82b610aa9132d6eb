from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from uniswap_tx.core.chain_reader import ReadCall
from uniswap_tx.core.utils.fixed_point import sqrt_ratio_at_tick

USDC = "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48"
WETH = "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2"
POOL_TICK = 196256


class FakeReader:
    """In-memory ChainReader for the mainnet USDC/WETH 0.05% pool."""

    def __init__(self):
        self.pool_state: dict[str, Any] = {
            "token0": USDC,
            "token1": WETH,
            "fee": 500,
            "tickSpacing": 10,
            "liquidity": 10**22,
            "slot0": (
                sqrt_ratio_at_tick(POOL_TICK) + 12345,
                POOL_TICK,
                0,
                1,
                1,
                0,
                True,
            ),
        }
        self.token_ids: list[int] = []
        self.positions: dict[int, tuple] = {}
        self.allowances: dict[str, int] = {}
        self.quote_amount_out = 0
        self.batches: list[list[ReadCall]] = []
        self.batch_read = AsyncMock(side_effect=self._batch_read)
        self.get_allowance = AsyncMock(side_effect=self._get_allowance)
        self.get_chain_id = AsyncMock(return_value=1)
        self.contract = MagicMock()

    def _value(self, call: ReadCall) -> Any:
        if call.fn_name == "balanceOf":
            return len(self.token_ids)
        if call.fn_name == "tokenOfOwnerByIndex":
            return self.token_ids[call.args[1]]
        if call.fn_name == "positions":
            return self.positions[call.args[0]]
        if call.fn_name == "quoteExactInputSingle":
            return self.quote_amount_out
        return self.pool_state[call.fn_name]

    async def _batch_read(self, calls: list[ReadCall]) -> list[Any]:
        self.batches.append(list(calls))
        return [self._value(call) for call in calls]

    async def read(self, call: ReadCall) -> Any:
        return (await self.batch_read([call]))[0]

    async def _get_allowance(self, token: str, owner: str, spender: str) -> int:
        return self.allowances.get(token, 0)


@pytest.fixture
def fake_reader() -> FakeReader:
    return FakeReader()
