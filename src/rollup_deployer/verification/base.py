"""Verifier protocol for the source-verification side channel."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Protocol, runtime_checkable


class VerificationStatus(StrEnum):
    VERIFIED = "verified"
    ALREADY_VERIFIED = "already_verified"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True, slots=True)
class VerificationRequest:
    name: str
    address: str
    constructor_args: tuple[Any, ...] = ()
    # Fully qualified "path/File.sol:Contract" when the name is ambiguous.
    contract_path: str | None = None


@dataclass(frozen=True, slots=True)
class VerificationResult:
    status: VerificationStatus
    message: str = ""


@runtime_checkable
class Verifier(Protocol):
    """Submits deployed source for verification on a block explorer."""

    async def verify(self, request: VerificationRequest) -> VerificationResult:
        ...
