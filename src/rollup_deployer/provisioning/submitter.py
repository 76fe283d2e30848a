"""Idempotent Submitter — reconciles ambiguous write failures against the ledger."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

import structlog

from rollup_deployer.ledger.base import Receipt
from rollup_deployer.provisioning.awaiter import TransactionAwaiter
from rollup_deployer.provisioning.outcomes import (
    AmbiguousFailure,
    Confirmed,
    HardFailure,
    Reverted,
    Success,
    SubmissionOutcome,
    TimedOut,
    classify_failure,
)

logger = structlog.get_logger()

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class Submitted(Generic[T]):
    """Result of a submission; ``recovered`` marks a reconciled success."""

    value: T
    recovered: bool = False


class IdempotentSubmitter:
    """Runs one state-changing call and never submits it twice.

    When the call fails with an error that carries a transaction hash, the
    transaction may already be on the ledger. Instead of retrying, the
    submitter waits for that hash: a confirmed receipt becomes a success via
    *recover*; a revert or timeout re-raises the original error object.
    """

    def __init__(self, awaiter: TransactionAwaiter) -> None:
        self._awaiter = awaiter

    async def submit(
        self,
        action: Callable[[], Awaitable[T]],
        *,
        label: str,
        recover: Callable[[Receipt], T],
        on_ambiguous: Callable[[str], None] | None = None,
    ) -> Submitted[T]:
        outcome: SubmissionOutcome
        try:
            outcome = Success(await action())
        except Exception as exc:
            outcome = classify_failure(exc)

        if isinstance(outcome, Success):
            return Submitted(outcome.value)
        if isinstance(outcome, HardFailure):
            raise outcome.error
        if on_ambiguous is not None:
            on_ambiguous(outcome.transaction_hash)
        return await self._reconcile(outcome, label, recover)

    async def _reconcile(
        self,
        failure: AmbiguousFailure,
        label: str,
        recover: Callable[[Receipt], T],
    ) -> Submitted[T]:
        logger.warning(
            "submission.ambiguous",
            action=label,
            tx_hash=failure.transaction_hash,
            error=str(failure.error),
        )
        result = await self._awaiter.wait_for(failure.transaction_hash)

        if isinstance(result, Confirmed):
            value = recover(result.receipt)
            logger.info(
                "submission.recovered",
                action=label,
                tx_hash=failure.transaction_hash,
            )
            return Submitted(value, recovered=True)

        reason = "reverted" if isinstance(result, Reverted) else "timed_out"
        assert isinstance(result, Reverted | TimedOut)
        logger.error(
            "submission.unrecovered",
            action=label,
            tx_hash=failure.transaction_hash,
            reason=reason,
        )
        raise failure.error
