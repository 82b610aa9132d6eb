from __future__ import annotations

from collections.abc import Iterable

from loguru import logger

from uniswap_tx.core.constants.uniswap_v3_abi import UNISWAP_MULTICALL_ABI
from uniswap_tx.core.errors import InvalidArgumentError, MixedTargetContractsError
from uniswap_tx.core.transactions.prepared_call import PreparedCall


class AtomicBatch:
    """Folds calls on one periphery contract into a single ``multicall(bytes[])``.

    The contract executes the inner calls in order and reverts all of them if
    any one reverts. Only calls that share a target can be batched.
    """

    @staticmethod
    def build(calls: Iterable[PreparedCall]) -> PreparedCall:
        calls = list(calls)
        if not calls:
            raise InvalidArgumentError("Cannot build a multicall from zero calls")

        target = calls[0].target_contract
        for index, call in enumerate(calls[1:], start=1):
            if call.target_contract != target:
                raise MixedTargetContractsError(index, target, call.target_contract)

        logger.debug(f"Batching {len(calls)} calls into multicall on {target}")
        return PreparedCall.from_function(
            target,
            UNISWAP_MULTICALL_ABI,
            "multicall",
            [[call.calldata for call in calls]],
            value=0,
        )
