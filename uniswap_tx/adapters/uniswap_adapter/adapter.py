from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from uniswap_tx.adapters.multicall_adapter.adapter import AtomicBatch
from uniswap_tx.adapters.uniswap_adapter.pool import UniswapPool
from uniswap_tx.adapters.uniswap_adapter.positions import PositionManager
from uniswap_tx.core.adapters.BaseAdapter import BaseAdapter
from uniswap_tx.core.chain_reader import ChainReader
from uniswap_tx.core.config import get_deployment, get_rpc_url
from uniswap_tx.core.transactions.prepared_call import PreparedCall
from uniswap_tx.core.utils.web3 import get_web3


class UniswapAdapter(BaseAdapter):
    """Entry point bound to one chain: pools, positions and multicall batching.

    ``config`` needs ``chain_id``; ``rpc_url`` and ``deployment`` default to the
    values in the global config for that chain.
    """

    adapter_type = "UNISWAP"

    def __init__(
        self,
        config: dict[str, Any],
        *,
        reader: ChainReader | None = None,
    ) -> None:
        super().__init__("uniswap_adapter", config)

        self.chain_id = int(self.require_config("chain_id"))
        self.deployment: dict[str, Any] = config.get("deployment") or get_deployment(
            self.chain_id
        )
        self.rpc_url: str | None = config.get("rpc_url")
        self._reader = reader
        self._owns_reader = reader is None

    @property
    def reader(self) -> ChainReader:
        if self._reader is None:
            rpc_url = self.rpc_url or get_rpc_url(self.chain_id)
            self._reader = ChainReader(get_web3(rpc_url))
            self.logger.debug(f"Connected reader for chain {self.chain_id}")
        return self._reader

    async def pool_from_address(self, address: str) -> UniswapPool:
        return await UniswapPool.from_address(self.reader, address, self.deployment)

    async def pool_from_tokens(self, token_a: str, token_b: str, fee: int) -> UniswapPool:
        return await UniswapPool.from_tokens(
            self.reader, token_a, token_b, fee, self.deployment
        )

    def position_manager(self) -> PositionManager:
        return PositionManager(self.reader, self.deployment)

    def multicall(self, calls: Iterable[PreparedCall]) -> PreparedCall:
        return AtomicBatch.build(calls)

    async def close(self) -> None:
        if self._owns_reader and self._reader is not None:
            await self._reader.web3.provider.disconnect()
            self._reader = None
