from uniswap_tx.core.types import Fraction

GAS_BUFFER_MULTIPLIER = 1.1

DEFAULT_SLIPPAGE_TOLERANCE = Fraction(50, 10_000)
DEFAULT_DEADLINE_SECONDS = 20 * 60

# Mining wait (seconds)
DEFAULT_MINING_POLL_INTERVAL = 0.5
DEFAULT_MAX_MINING_TIME = 60.0

MAX_UINT128 = 2**128 - 1
MAX_UINT256 = 2**256 - 1
