"""Read side of the chain: batched contract reads, receipts and allowances."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any

from loguru import logger
from web3 import AsyncWeb3
from web3.exceptions import TransactionNotFound

from uniswap_tx.core.constants.erc20_abi import ERC20_ABI
from uniswap_tx.core.utils.transaction import checksum
from uniswap_tx.core.utils.web3 import web3_from_rpc_url

ReadRequest = Callable[[], Awaitable[Any]]


@dataclass(frozen=True)
class ReadCall:
    address: str
    abi: list[dict[str, Any]]
    fn_name: str
    args: tuple[Any, ...] = field(default_factory=tuple)
    block_identifier: str | int = "latest"


class ChainReader:
    """Thin async facade over an ``AsyncWeb3`` instance.

    ``batch_read`` sends its calls as one JSON-RPC batch. If the provider
    rejects the batch and ``fallback_to_gather`` is set, the calls are retried
    as concurrent requests, which may land on different blocks.
    """

    def __init__(self, web3: AsyncWeb3, *, fallback_to_gather: bool = True):
        self.web3 = web3
        self.fallback_to_gather = fallback_to_gather

    @classmethod
    @asynccontextmanager
    async def from_rpc_url(cls, rpc_url: str) -> AsyncIterator[ChainReader]:
        async with web3_from_rpc_url(rpc_url) as web3:
            yield cls(web3)

    def contract(self, address: str, abi: list[dict[str, Any]]):
        return self.web3.eth.contract(address=checksum(address), abi=abi)

    def _factory(self, call: ReadCall) -> ReadRequest:
        fn: Callable[..., Any] = getattr(
            self.contract(call.address, call.abi).functions, call.fn_name
        )
        return lambda: fn(*call.args).call(block_identifier=call.block_identifier)

    async def batch_read(self, calls: Sequence[ReadCall]) -> list[Any]:
        """Results come back in the order of ``calls``."""
        if not calls:
            return []
        requests = [self._factory(call) for call in calls]

        batch = None
        try:
            batch = self.web3.batch_requests()
            for request in requests:
                batch.add(request())
            return list(await batch.async_execute())
        except Exception as batch_exc:
            if batch is not None:
                try:
                    batch.cancel()
                except Exception as cancel_exc:
                    logger.debug(f"Failed to cancel JSON-RPC batch: {cancel_exc}")
            if not self.fallback_to_gather:
                raise
            logger.warning(
                f"JSON-RPC batch of {len(requests)} reads failed, "
                f"falling back to gather. Error: {batch_exc}"
            )
            try:
                return list(await asyncio.gather(*(request() for request in requests)))
            except Exception as gather_exc:
                raise gather_exc from batch_exc

    async def read(self, call: ReadCall) -> Any:
        return await self._factory(call)()

    async def get_transaction_receipt(self, tx_hash: str) -> dict[str, Any] | None:
        try:
            receipt = await self.web3.eth.get_transaction_receipt(tx_hash)
        except TransactionNotFound:
            return None
        return dict(receipt)

    async def get_allowance(self, token: str, owner: str, spender: str) -> int:
        allowance = await self.read(
            ReadCall(
                token,
                ERC20_ABI,
                "allowance",
                (checksum(owner), checksum(spender)),
            )
        )
        return int(allowance)

    async def get_chain_id(self) -> int:
        return int(await self.web3.eth.chain_id)
