from __future__ import annotations

from loguru import logger

from uniswap_tx.core.chain_reader import ChainReader
from uniswap_tx.core.constants.erc20_abi import ERC20_ABI
from uniswap_tx.core.errors import InvalidArgumentError
from uniswap_tx.core.transactions.prepared_call import PreparedCall
from uniswap_tx.core.utils.transaction import checksum


def build_approve_call(token: str, spender: str, amount: int) -> PreparedCall:
    return PreparedCall.from_function(
        token, ERC20_ABI, "approve", [checksum(spender), int(amount)]
    )


class AllowanceGuard:
    """Emits an approval only when the current allowance is short."""

    def __init__(self, reader: ChainReader):
        self.reader = reader

    async def ensure_approved(
        self, token: str, owner: str, spender: str, required_amount: int
    ) -> PreparedCall | None:
        required_amount = int(required_amount)
        if required_amount < 0:
            raise InvalidArgumentError(
                f"Required allowance must be non-negative, got {required_amount}"
            )

        allowance = await self.reader.get_allowance(token, owner, spender)
        if allowance >= required_amount:
            logger.debug(
                f"Allowance sufficient for {token}: {allowance} >= {required_amount}"
            )
            return None

        logger.info(
            f"Allowance short for {token} (owner={owner} spender={spender}): "
            f"{allowance} < {required_amount}, approving exact amount"
        )
        return build_approve_call(token, spender, required_amount)
