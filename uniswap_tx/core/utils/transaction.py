from __future__ import annotations

import asyncio
import math
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any, Protocol

from eth_abi.exceptions import EncodingError
from eth_account import Account
from eth_utils import to_checksum_address
from hexbytes import HexBytes
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field
from web3 import AsyncWeb3, Web3
from web3.exceptions import TimeExhausted, TransactionNotFound, Web3Exception

from uniswap_tx.core.constants.base import (
    DEFAULT_MAX_MINING_TIME,
    DEFAULT_MINING_POLL_INTERVAL,
    GAS_BUFFER_MULTIPLIER,
)
from uniswap_tx.core.errors import (
    InvalidArgumentError,
    MiningTimeoutError,
    MissingPrivateKeyError,
    MissingRpcEndpointError,
    TransactionRevertedError,
)
from uniswap_tx.core.utils.web3 import get_web3

if TYPE_CHECKING:
    from uniswap_tx.core.transactions.prepared_call import PreparedCall

ReceiptFetcher = Callable[[str], Awaitable[dict[str, Any] | None]]

# Encoding only, never connected.
_CODEC_WEB3 = Web3()


def encode_call_data(abi: list[dict[str, Any]], fn_name: str, args: list[Any]) -> bytes:
    contract = _CODEC_WEB3.eth.contract(abi=abi)
    try:
        data = contract.encode_abi(fn_name, args=args)
    except (ValueError, TypeError, Web3Exception, EncodingError) as exc:
        raise InvalidArgumentError(f"Failed to encode {fn_name}: {exc}") from exc
    return bytes(HexBytes(data))


def normalize_tx_hash(tx_hash: str | bytes) -> str:
    if isinstance(tx_hash, (bytes, bytearray)):
        tx_hash = bytes(tx_hash).hex()
    if not tx_hash.startswith("0x"):
        tx_hash = f"0x{tx_hash}"
    return tx_hash


class ExecutionParams(BaseModel):
    """Where and as whom a single call is submitted."""

    model_config = ConfigDict(frozen=True)

    rpc_url: str | None = None
    private_key: str | None = Field(default=None, repr=False)
    gas_price: int | None = None
    gas: int | None = None


class Broadcaster(Protocol):
    async def submit(self, call: PreparedCall, params: ExecutionParams) -> str: ...

    async def get_transaction_receipt(
        self, tx_hash: str, rpc_url: str | None
    ) -> dict[str, Any] | None: ...


class Web3Broadcaster:
    """Signs locally with eth_account and submits over an AsyncWeb3 provider.

    Providers are cached per rpc url; use as an async context manager (or call
    ``close``) to disconnect them.
    """

    def __init__(self, web3_factory: Callable[[str], AsyncWeb3] = get_web3):
        self._web3_factory = web3_factory
        self._web3s: dict[str, AsyncWeb3] = {}

    async def __aenter__(self) -> Web3Broadcaster:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        web3s = list(self._web3s.values())
        self._web3s.clear()
        for web3 in web3s:
            await web3.provider.disconnect()

    def _web3_for(self, rpc_url: str | None) -> AsyncWeb3:
        if not rpc_url:
            raise MissingRpcEndpointError()
        web3 = self._web3s.get(rpc_url)
        if web3 is None:
            web3 = self._web3_factory(rpc_url)
            self._web3s[rpc_url] = web3
        return web3

    async def submit(self, call: PreparedCall, params: ExecutionParams) -> str:
        if not params.rpc_url:
            raise MissingRpcEndpointError()
        if not params.private_key:
            raise MissingPrivateKeyError()

        account = Account.from_key(params.private_key)
        web3 = self._web3_for(params.rpc_url)

        transaction = call.to_transaction_dict(account.address)
        transaction["chainId"] = int(await web3.eth.chain_id)
        transaction["nonce"] = await web3.eth.get_transaction_count(
            account.address, block_identifier="pending"
        )
        if params.gas_price is not None:
            transaction["gasPrice"] = int(params.gas_price)
        else:
            transaction["gasPrice"] = int(await web3.eth.gas_price)

        if params.gas is not None:
            transaction["gas"] = int(params.gas)
        else:
            # estimation doubles as the revert check
            estimate = await web3.eth.estimate_gas(
                transaction, block_identifier="latest"
            )
            transaction["gas"] = int(math.ceil(estimate * GAS_BUFFER_MULTIPLIER))

        signed = account.sign_transaction(transaction)
        tx_hash = normalize_tx_hash(
            await web3.eth.send_raw_transaction(signed.raw_transaction)
        )
        logger.info(
            f"Transaction broadcasted: {tx_hash} to={transaction['to']} "
            f"nonce={transaction['nonce']} gas={transaction['gas']}"
        )
        return tx_hash

    async def get_transaction_receipt(
        self, tx_hash: str, rpc_url: str | None
    ) -> dict[str, Any] | None:
        web3 = self._web3_for(rpc_url)
        try:
            receipt = await web3.eth.get_transaction_receipt(tx_hash)
        except TransactionNotFound:
            return None
        return dict(receipt)

    async def wait_for_receipt(
        self,
        tx_hash: str,
        rpc_url: str | None,
        *,
        max_mining_time: float = DEFAULT_MAX_MINING_TIME,
        poll_interval: float = DEFAULT_MINING_POLL_INTERVAL,
    ) -> dict[str, Any]:
        web3 = self._web3_for(rpc_url)
        try:
            receipt = await web3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=max_mining_time, poll_latency=poll_interval
            )
        except TimeExhausted as exc:
            raise MiningTimeoutError(tx_hash, max_mining_time) from exc
        return _checked_receipt(tx_hash, dict(receipt))


def _revert_message(tx_hash: str, receipt: dict[str, Any]) -> str:
    gas_used = int(receipt.get("gasUsed") or 0)
    suffix = f" gasUsed={gas_used}" if gas_used else ""
    return f"Transaction reverted (status=0): {tx_hash}{suffix}"


async def wait_for_mined_receipt(
    fetch_receipt: ReceiptFetcher,
    tx_hash: str,
    *,
    max_mining_time: float = DEFAULT_MAX_MINING_TIME,
    poll_interval: float = DEFAULT_MINING_POLL_INTERVAL,
) -> dict[str, Any]:
    """Poll until the receipt carries a block number, then check its status."""
    receipt: dict[str, Any] | None = None
    deadline = asyncio.timeout(max_mining_time)
    try:
        async with deadline:
            while True:
                receipt = await fetch_receipt(tx_hash)
                if receipt and receipt.get("blockNumber") is not None:
                    break
                await asyncio.sleep(poll_interval)
    except TimeoutError as exc:
        if not deadline.expired():
            raise
        raise MiningTimeoutError(tx_hash, max_mining_time) from exc

    return _checked_receipt(tx_hash, receipt)


def _checked_receipt(tx_hash: str, receipt: dict[str, Any]) -> dict[str, Any]:
    logger.info(f"Transaction mined: {tx_hash} block={receipt['blockNumber']}")
    status = receipt.get("status")
    if status is not None and int(status) == 0:
        raise TransactionRevertedError(
            tx_hash, receipt, message=_revert_message(tx_hash, receipt)
        )
    return receipt


async def submit_and_wait(
    broadcaster: Broadcaster,
    call: PreparedCall,
    params: ExecutionParams,
    *,
    max_mining_time: float = DEFAULT_MAX_MINING_TIME,
    poll_interval: float = DEFAULT_MINING_POLL_INTERVAL,
) -> dict[str, Any]:
    tx_hash = await broadcaster.submit(call, params)
    if isinstance(broadcaster, Web3Broadcaster):
        return await broadcaster.wait_for_receipt(
            tx_hash,
            params.rpc_url,
            max_mining_time=max_mining_time,
            poll_interval=poll_interval,
        )

    async def _fetch(h: str) -> dict[str, Any] | None:
        return await broadcaster.get_transaction_receipt(h, params.rpc_url)

    return await wait_for_mined_receipt(
        _fetch,
        tx_hash,
        max_mining_time=max_mining_time,
        poll_interval=poll_interval,
    )


def checksum(address: str) -> str:
    try:
        return to_checksum_address(address)
    except (ValueError, TypeError) as exc:
        raise InvalidArgumentError(f"Invalid address: {address!r}") from exc
