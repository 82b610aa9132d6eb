__version__ = "0.1.0"

from uniswap_tx.adapters.multicall_adapter.adapter import AtomicBatch
from uniswap_tx.adapters.uniswap_adapter.adapter import UniswapAdapter
from uniswap_tx.adapters.uniswap_adapter.pool import UniswapPool
from uniswap_tx.adapters.uniswap_adapter.positions import PositionManager
from uniswap_tx.core.transactions.prepared_call import PreparedCall
from uniswap_tx.core.transactions.sequence import TransactionSequence
from uniswap_tx.core.types import Fraction

__all__ = [
    "__version__",
    "AtomicBatch",
    "Fraction",
    "PositionManager",
    "PreparedCall",
    "TransactionSequence",
    "UniswapAdapter",
    "UniswapPool",
]
