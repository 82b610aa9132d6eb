from __future__ import annotations

from typing import Any


class UniswapTxError(Exception):
    pass


class ConfigurationError(UniswapTxError, ValueError):
    """Raised before any I/O when a call is under-specified or inconsistent."""


class InvalidArgumentError(UniswapTxError, ValueError):
    pass


class AmountsNotSpecifiedError(ConfigurationError):
    def __init__(self, message: str = "Amounts are not set for mint transaction"):
        super().__init__(message)


class RangeNotSpecifiedError(ConfigurationError):
    def __init__(
        self, message: str = "No price range is set for current transaction"
    ):
        super().__init__(message)


class InvalidTickRangeError(ConfigurationError):
    def __init__(self, lower: int, upper: int, reason: str):
        self.lower = lower
        self.upper = upper
        super().__init__(f"Invalid tick range [{lower}, {upper}]: {reason}")


class AddressRequiredForAllowanceCheckError(ConfigurationError):
    def __init__(
        self, message: str = "Address is not set for allowance verification"
    ):
        super().__init__(message)


class MixedTargetContractsError(ConfigurationError):
    def __init__(self, index: int, expected: str, actual: str):
        self.index = index
        self.expected = expected
        self.actual = actual
        super().__init__(
            "Detected different contract addresses in the transaction list for "
            f"multicall, transactions[0] address: {expected}, "
            f"transactions[{index}] address: {actual}"
        )


class MissingRpcEndpointError(ConfigurationError):
    def __init__(self, message: str = "RPC url is required"):
        super().__init__(message)


class MissingPrivateKeyError(ConfigurationError):
    def __init__(self, message: str = "Private key is required"):
        super().__init__(message)


class BuilderConsumedError(UniswapTxError, RuntimeError):
    def __init__(self, message: str = "Builder has already produced a transaction"):
        super().__init__(message)


class MiningTimeoutError(UniswapTxError, TimeoutError):
    def __init__(self, tx_hash: str, timeout: float):
        self.tx_hash = tx_hash
        self.timeout = timeout
        super().__init__(
            f"Transaction mining timeout: {tx_hash} not mined within {timeout}s"
        )


class TransactionRevertedError(UniswapTxError, RuntimeError):
    def __init__(
        self,
        txn_hash: str,
        receipt: dict[str, Any] | None = None,
        message: str | None = None,
    ):
        self.txn_hash = txn_hash
        self.receipt = receipt or {}
        super().__init__(message or f"Transaction reverted: {txn_hash}")


class SequenceExecutionError(UniswapTxError):
    """A step of a TransactionSequence failed.

    ``receipts`` holds the mined receipts of every step before ``index``; those
    steps stay on chain. ``error`` is the collaborator's exception, untouched.
    """

    def __init__(self, index: int, receipts: list[dict[str, Any]], error: Exception):
        self.index = index
        self.receipts = list(receipts)
        self.error = error
        super().__init__(
            f"Transaction sequence failed at step {index} "
            f"({len(self.receipts)} step(s) already mined): {error}"
        )
