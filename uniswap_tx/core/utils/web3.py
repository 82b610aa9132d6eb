from contextlib import asynccontextmanager

from web3 import AsyncHTTPProvider, AsyncWeb3

from uniswap_tx.core.config import get_rpc_url
from uniswap_tx.core.errors import MissingRpcEndpointError


def get_web3(rpc_url: str) -> AsyncWeb3:
    if not rpc_url:
        raise MissingRpcEndpointError()
    return AsyncWeb3(AsyncHTTPProvider(rpc_url))


@asynccontextmanager
async def web3_from_rpc_url(rpc_url: str):
    web3 = get_web3(rpc_url)
    try:
        yield web3
    finally:
        await web3.provider.disconnect()


@asynccontextmanager
async def web3_from_chain_id(chain_id: int):
    async with web3_from_rpc_url(get_rpc_url(chain_id)) as web3:
        yield web3
