"""Tagged outcomes for submissions and transaction waits."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from rollup_deployer.ledger.base import Receipt

T = TypeVar("T")


# -- Transaction Awaiter -------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Confirmed:
    """Mined with success status."""

    receipt: Receipt


@dataclass(frozen=True, slots=True)
class Reverted:
    """Mined with failure status. Callers must treat this as a hard failure."""

    receipt: Receipt


@dataclass(frozen=True, slots=True)
class TimedOut:
    """No terminal state observed in time; neither success nor failure."""

    transaction_hash: str
    timeout: float


TransactionOutcome = Confirmed | Reverted | TimedOut


# -- Idempotent Submitter ------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Success(Generic[T]):
    value: T


@dataclass(frozen=True, slots=True)
class AmbiguousFailure:
    """The call failed after the transaction may have reached the ledger."""

    transaction_hash: str
    error: Exception


@dataclass(frozen=True, slots=True)
class HardFailure:
    error: Exception


SubmissionOutcome = Success[Any] | AmbiguousFailure | HardFailure


def classify_failure(error: Exception) -> AmbiguousFailure | HardFailure:
    """An error carrying a transaction hash is ambiguous; anything else is hard."""
    tx_hash = getattr(error, "transaction_hash", None)
    if isinstance(tx_hash, str) and tx_hash:
        return AmbiguousFailure(transaction_hash=tx_hash, error=error)
    return HardFailure(error=error)
