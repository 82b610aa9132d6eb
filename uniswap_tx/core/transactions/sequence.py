from __future__ import annotations

from collections.abc import Iterable, Iterator
from enum import StrEnum
from typing import Any

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from uniswap_tx.core.config import get_execution_defaults
from uniswap_tx.core.errors import InvalidArgumentError, SequenceExecutionError
from uniswap_tx.core.transactions.prepared_call import PreparedCall
from uniswap_tx.core.utils.transaction import (
    Broadcaster,
    ExecutionParams,
    Web3Broadcaster,
    submit_and_wait,
)


class SequenceStatus(StrEnum):
    PENDING = "pending"
    EXECUTING = "executing"
    COMPLETED = "completed"
    FAILED = "failed"


class StepOverrides(BaseModel):
    model_config = ConfigDict(frozen=True)

    rpc_url: str | None = None
    private_key: str | None = Field(default=None, repr=False)
    gas_price: int | None = None
    gas: int | None = None


class SequenceExecutionParams(BaseModel):
    """Defaults for every step, plus per-step overrides keyed by step index."""

    model_config = ConfigDict(frozen=True)

    rpc_url: str | None = None
    private_key: str | None = Field(default=None, repr=False)
    gas_price: int | None = None
    step_overrides: dict[int, StepOverrides] = Field(default_factory=dict)
    max_mining_time: float | None = None
    poll_interval: float | None = None

    def for_step(self, index: int) -> ExecutionParams:
        overrides = self.step_overrides.get(index) or StepOverrides()
        return ExecutionParams(
            rpc_url=overrides.rpc_url or self.rpc_url,
            private_key=overrides.private_key or self.private_key,
            gas_price=(
                overrides.gas_price
                if overrides.gas_price is not None
                else self.gas_price
            ),
            gas=overrides.gas,
        )


class TransactionSequence:
    """Ordered calls executed one at a time, each mined before the next is sent.

    Mined steps are never undone. On failure the sequence stops, reports the
    failed index and keeps the receipts gathered so far; ``execute`` can be
    called again with ``start_index`` to resume.
    """

    def __init__(self, calls: Iterable[PreparedCall]):
        self._calls: tuple[PreparedCall, ...] = tuple(calls)
        if not self._calls:
            raise InvalidArgumentError("TransactionSequence needs at least one call")
        self._status = SequenceStatus.PENDING
        self._current_index: int | None = None
        self._failed_index: int | None = None
        self._receipts: list[dict[str, Any]] = []

    def __len__(self) -> int:
        return len(self._calls)

    def __iter__(self) -> Iterator[PreparedCall]:
        return iter(self._calls)

    def __repr__(self) -> str:
        return f"TransactionSequence(steps={len(self._calls)}, status={self._status})"

    @property
    def status(self) -> SequenceStatus:
        return self._status

    @property
    def current_index(self) -> int | None:
        return self._current_index

    @property
    def failed_index(self) -> int | None:
        return self._failed_index

    @property
    def receipts(self) -> tuple[dict[str, Any], ...]:
        return tuple(self._receipts)

    def get_underlying_transactions(self) -> tuple[PreparedCall, ...]:
        return self._calls

    async def execute(
        self,
        params: SequenceExecutionParams,
        *,
        broadcaster: Broadcaster | None = None,
        start_index: int = 0,
    ) -> list[dict[str, Any]]:
        if not 0 <= start_index < len(self._calls):
            raise InvalidArgumentError(
                f"start_index {start_index} outside [0, {len(self._calls)})"
            )
        if start_index > len(self._receipts):
            raise InvalidArgumentError(
                f"Cannot resume at step {start_index}: only "
                f"{len(self._receipts)} step(s) have been mined"
            )
        if broadcaster is not None:
            return await self._run(params, broadcaster, start_index)
        async with Web3Broadcaster() as owned:
            return await self._run(params, owned, start_index)

    async def _run(
        self,
        params: SequenceExecutionParams,
        broadcaster: Broadcaster,
        start_index: int,
    ) -> list[dict[str, Any]]:
        defaults = get_execution_defaults()
        max_mining_time = (
            params.max_mining_time
            if params.max_mining_time is not None
            else defaults["max_mining_time_s"]
        )
        poll_interval = (
            params.poll_interval
            if params.poll_interval is not None
            else defaults["mining_poll_interval_s"]
        )

        self._status = SequenceStatus.EXECUTING
        self._failed_index = None
        self._receipts = self._receipts[:start_index]

        for index in range(start_index, len(self._calls)):
            self._current_index = index
            call = self._calls[index]
            logger.info(
                f"Executing step {index + 1}/{len(self._calls)} "
                f"to={call.target_contract}"
            )
            try:
                receipt = await submit_and_wait(
                    broadcaster,
                    call,
                    params.for_step(index),
                    max_mining_time=max_mining_time,
                    poll_interval=poll_interval,
                )
            except Exception as exc:
                self._status = SequenceStatus.FAILED
                self._failed_index = index
                logger.error(f"Transaction sequence failed at step {index}: {exc}")
                raise SequenceExecutionError(index, self._receipts, exc) from exc
            self._receipts.append(receipt)

        self._status = SequenceStatus.COMPLETED
        return list(self._receipts)
