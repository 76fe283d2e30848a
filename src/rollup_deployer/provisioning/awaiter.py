"""Transaction Awaiter — waits for a transaction to reach a terminal state."""

from __future__ import annotations

import asyncio

import httpx
import structlog

from rollup_deployer.errors import RpcError
from rollup_deployer.ledger.base import Ledger, Receipt, receipt_status
from rollup_deployer.provisioning.outcomes import (
    Confirmed,
    Reverted,
    TimedOut,
    TransactionOutcome,
)

logger = structlog.get_logger()

DEFAULT_TIMEOUT_SECONDS = 90.0
DEFAULT_RETRY_INTERVAL_SECONDS = 1.0

# Failures of a single receipt poll. They leave the transaction unresolved.
_POLL_ERRORS = (httpx.HTTPError, RpcError, ValueError)


class TransactionAwaiter:
    """Classifies a transaction as confirmed, reverted or still unresolved.

    A failing receipt poll does not end the wait: polling resumes after
    ``retry_interval`` until the timeout is spent, and only then is the
    transaction reported as ``TimedOut``.
    """

    def __init__(
        self,
        ledger: Ledger,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        retry_interval: float = DEFAULT_RETRY_INTERVAL_SECONDS,
    ) -> None:
        if timeout <= 0:
            msg = f"timeout must be positive, got {timeout}"
            raise ValueError(msg)
        if retry_interval <= 0:
            msg = f"retry_interval must be positive, got {retry_interval}"
            raise ValueError(msg)
        self._ledger = ledger
        self._timeout = timeout
        self._retry_interval = retry_interval

    @property
    def timeout(self) -> float:
        return self._timeout

    async def _receipt(self, tx_hash: str, limit: float) -> Receipt | None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + limit
        remaining = limit
        while True:
            try:
                return await self._ledger.wait_for_receipt(tx_hash, remaining)
            except TimeoutError:
                return None
            except _POLL_ERRORS as exc:
                logger.warning(
                    "transaction.poll_failed", tx_hash=tx_hash, error=str(exc)
                )
            remaining = deadline - loop.time()
            if remaining <= 0:
                return None
            await asyncio.sleep(min(self._retry_interval, remaining))
            remaining = deadline - loop.time()
            if remaining <= 0:
                return None

    async def wait_for(
        self, tx_hash: str, timeout: float | None = None
    ) -> TransactionOutcome:
        limit = self._timeout if timeout is None else timeout
        receipt = await self._receipt(tx_hash, limit)
        if receipt is None:
            logger.warning("transaction.timed_out", tx_hash=tx_hash, timeout=limit)
            return TimedOut(transaction_hash=tx_hash, timeout=limit)

        if receipt_status(receipt) == 0:
            logger.warning("transaction.reverted", tx_hash=tx_hash)
            return Reverted(receipt)
        logger.info("transaction.confirmed", tx_hash=tx_hash)
        return Confirmed(receipt)
