from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from hexbytes import HexBytes

from uniswap_tx.core.config import get_execution_defaults
from uniswap_tx.core.errors import InvalidArgumentError
from uniswap_tx.core.utils.transaction import (
    Broadcaster,
    ExecutionParams,
    Web3Broadcaster,
    checksum,
    encode_call_data,
    submit_and_wait,
)


def _normalize_call_data(data: bytes | str) -> bytes:
    if isinstance(data, HexBytes):
        return bytes(data)
    if isinstance(data, (bytes, bytearray)):
        return bytes(data)
    if isinstance(data, str):
        body = data[2:] if data.startswith("0x") else data
        try:
            return bytes.fromhex(body)
        except ValueError as exc:
            raise InvalidArgumentError(f"Calldata is not valid hex: {data!r}") from exc
    raise InvalidArgumentError(f"Unsupported calldata type: {type(data).__name__}")


@dataclass(frozen=True)
class PreparedCall:
    """One contract call, ready to sign: calldata, native value and target."""

    calldata: bytes
    target_contract: str
    value: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "calldata", _normalize_call_data(self.calldata))
        object.__setattr__(self, "target_contract", checksum(self.target_contract))
        value = int(self.value)
        if value < 0:
            raise InvalidArgumentError(f"Call value must be non-negative, got {value}")
        object.__setattr__(self, "value", value)

    @classmethod
    def from_function(
        cls,
        target: str,
        abi: list[dict[str, Any]],
        fn_name: str,
        args: list[Any],
        *,
        value: int = 0,
    ) -> PreparedCall:
        return cls(
            calldata=encode_call_data(abi, fn_name, args),
            target_contract=target,
            value=value,
        )

    @property
    def selector(self) -> bytes:
        return self.calldata[:4]

    def to_transaction_dict(self, from_address: str | None = None) -> dict[str, Any]:
        transaction: dict[str, Any] = {
            "to": self.target_contract,
            "data": "0x" + self.calldata.hex(),
            "value": self.value,
        }
        if from_address is not None:
            transaction["from"] = checksum(from_address)
        return transaction

    async def execute(
        self,
        params: ExecutionParams,
        *,
        broadcaster: Broadcaster | None = None,
        max_mining_time: float | None = None,
        poll_interval: float | None = None,
    ) -> dict[str, Any]:
        """Submit this call and wait for it to be mined. Returns the receipt."""
        defaults = get_execution_defaults()
        wait_kwargs = {
            "max_mining_time": (
                defaults["max_mining_time_s"]
                if max_mining_time is None
                else max_mining_time
            ),
            "poll_interval": (
                defaults["mining_poll_interval_s"]
                if poll_interval is None
                else poll_interval
            ),
        }
        if broadcaster is not None:
            return await submit_and_wait(broadcaster, self, params, **wait_kwargs)
        async with Web3Broadcaster() as owned:
            return await submit_and_wait(owned, self, params, **wait_kwargs)
