"""Local private-key signer with nonce tracking."""

from __future__ import annotations

from typing import Any

import httpx
import structlog
from eth_account import Account
from eth_utils import to_hex

from rollup_deployer.errors import RpcError, SubmissionError, TransactionRevertedError
from rollup_deployer.ledger.base import Receipt, receipt_status
from rollup_deployer.ledger.rpc import JsonRpcClient

logger = structlog.get_logger()

# Node replies meaning "this exact transaction is already in the pool".
_ALREADY_KNOWN = ("already known", "known transaction", "already imported")


class LocalSigner:
    """Signs legacy transactions with a local key and submits them raw.

    The signer owns the account nonce: it is read once from the node and
    advanced locally for every transaction the node may have accepted.
    """

    def __init__(
        self,
        private_key: str,
        client: JsonRpcClient,
        *,
        chain_id: int,
        confirmation_timeout: float | None = None,
    ) -> None:
        self._account = Account.from_key(private_key)
        self._client = client
        self._chain_id = chain_id
        self._confirmation_timeout = (
            confirmation_timeout
            if confirmation_timeout is not None
            else client.config.confirmation_timeout_seconds
        )
        self._nonce: int | None = None

    @property
    def address(self) -> str:
        return str(self._account.address)

    @property
    def client(self) -> JsonRpcClient:
        return self._client

    async def _next_nonce(self) -> int:
        if self._nonce is None:
            self._nonce = await self._client.get_transaction_count(self.address)
        return self._nonce

    async def _build(self, tx: dict[str, Any], gas_limit: int | None) -> dict[str, Any]:
        built: dict[str, Any] = {
            "value": 0,
            **tx,
            "chainId": self._chain_id,
            "nonce": await self._next_nonce(),
            "gasPrice": await self._client.gas_price(),
        }
        if gas_limit is None:
            estimate_tx = {k: v for k, v in tx.items() if k in ("to", "data", "value")}
            if isinstance(estimate_tx.get("value"), int):
                estimate_tx["value"] = hex(estimate_tx["value"])
            gas_limit = await self._client.estimate_gas(
                {"from": self.address, **estimate_tx}
            )
        built["gas"] = gas_limit
        return built

    def _lost_reply(
        self, built: dict[str, Any], tx_hash: str, exc: Exception
    ) -> SubmissionError:
        # Nonce stays consumed: the node may hold this transaction.
        self._nonce = built["nonce"] + 1
        return SubmissionError(
            f"Lost reply while sending {tx_hash}: {exc}",
            transaction_hash=tx_hash,
        )

    async def send_transaction(
        self, tx: dict[str, Any], gas_limit: int | None = None
    ) -> str:
        """Sign and broadcast *tx*; return its hash without waiting."""
        built = await self._build(tx, gas_limit)
        signed = self._account.sign_transaction(built)
        tx_hash = to_hex(signed.hash)
        try:
            await self._client.send_raw_transaction(to_hex(signed.raw_transaction))
        except httpx.TransportError as exc:
            raise self._lost_reply(built, tx_hash, exc) from exc
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code < 500:
                self._nonce = None
                raise
            # 5xx: a gateway may already have forwarded the request.
            raise self._lost_reply(built, tx_hash, exc) from exc
        except ValueError as exc:
            # Reply body is not JSON.
            raise self._lost_reply(built, tx_hash, exc) from exc
        except RpcError as exc:
            if any(marker in exc.rpc_message.lower() for marker in _ALREADY_KNOWN):
                self._nonce = built["nonce"] + 1
                raise SubmissionError(
                    f"Node already knows {tx_hash}: {exc.rpc_message}",
                    transaction_hash=tx_hash,
                ) from exc
            self._nonce = None
            raise
        self._nonce = built["nonce"] + 1
        logger.debug("signer.sent", tx_hash=tx_hash, nonce=built["nonce"])
        return tx_hash

    async def transact(
        self, tx: dict[str, Any], gas_limit: int | None = None
    ) -> Receipt:
        """Send *tx* and wait for a successful receipt."""
        tx_hash = await self.send_transaction(tx, gas_limit)
        try:
            receipt = await self._client.wait_for_receipt(
                tx_hash, self._confirmation_timeout
            )
        except TimeoutError as exc:
            raise SubmissionError(
                f"No receipt for {tx_hash} after {self._confirmation_timeout}s",
                transaction_hash=tx_hash,
            ) from exc
        except httpx.TransportError as exc:
            raise SubmissionError(
                f"Lost connection while waiting for {tx_hash}: {exc}",
                transaction_hash=tx_hash,
            ) from exc
        if receipt_status(receipt) == 0:
            raise TransactionRevertedError(
                f"Transaction {tx_hash} reverted",
                transaction_hash=tx_hash,
                receipt=receipt,
            )
        return receipt
