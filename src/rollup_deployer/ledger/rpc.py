"""Async JSON-RPC client for the parent chain."""

from __future__ import annotations

import asyncio
import itertools
from typing import Any

import httpx
import structlog
from eth_utils import function_signature_to_4byte_selector, to_hex
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from rollup_deployer.config.models import LedgerConfig
from rollup_deployer.errors import RpcError
from rollup_deployer.ledger.base import Receipt

logger = structlog.get_logger()

ARB_SYS_ADDRESS = "0x0000000000000000000000000000000000000064"
_ARB_OS_VERSION = to_hex(function_signature_to_4byte_selector("arbOSVersion()"))


class JsonRpcClient:
    """Thin async wrapper around an Ethereum JSON-RPC endpoint.

    Read calls are retried on transport errors. ``send_raw_transaction`` is
    not: a lost reply to a write must surface to the caller so it can be
    reconciled by transaction hash.
    """

    def __init__(self, config: LedgerConfig) -> None:
        self._config = config
        self._ids = itertools.count(1)
        self._client = httpx.AsyncClient(timeout=config.request_timeout_seconds)

    @property
    def config(self) -> LedgerConfig:
        return self._config

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> JsonRpcClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # -- Transport -------------------------------------------------------------

    async def request(self, method: str, params: list[Any] | None = None) -> Any:
        """Send one JSON-RPC request and return its ``result``."""
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params or [],
        }
        resp = await self._client.post(self._config.rpc_url, json=payload)
        resp.raise_for_status()
        body = resp.json()
        error = body.get("error")
        if error is not None:
            raise RpcError(
                error.get("code"), error.get("message", ""), error.get("data")
            )
        return body.get("result")

    async def _read(self, method: str, params: list[Any] | None = None) -> Any:
        @retry(
            retry=retry_if_exception_type(httpx.TransportError),
            stop=stop_after_attempt(self._config.retry_max_attempts),
            wait=wait_exponential(
                multiplier=self._config.retry_wait_seconds, max=30
            ),
            reraise=True,
        )
        async def _call() -> Any:
            return await self.request(method, params)

        return await _call()

    # -- Reads -----------------------------------------------------------------

    async def chain_id(self) -> int:
        return int(await self._read("eth_chainId"), 16)

    async def gas_price(self) -> int:
        return int(await self._read("eth_gasPrice"), 16)

    async def get_transaction_count(self, address: str, block: str = "pending") -> int:
        return int(await self._read("eth_getTransactionCount", [address, block]), 16)

    async def estimate_gas(self, tx: dict[str, Any]) -> int:
        return int(await self._read("eth_estimateGas", [tx]), 16)

    async def call(self, tx: dict[str, Any], block: str = "latest") -> str:
        result: str = await self._read("eth_call", [tx, block])
        return result

    async def get_transaction_receipt(self, tx_hash: str) -> Receipt | None:
        receipt: Receipt | None = await self._read(
            "eth_getTransactionReceipt", [tx_hash]
        )
        return receipt

    async def wait_for_receipt(self, tx_hash: str, timeout: float) -> Receipt:
        """Poll until the transaction is mined; TimeoutError after *timeout*."""
        async with asyncio.timeout(timeout):
            while True:
                receipt = await self.get_transaction_receipt(tx_hash)
                if receipt is not None:
                    return receipt
                await asyncio.sleep(self._config.poll_interval_seconds)

    async def is_arbitrum(self) -> bool:
        """Probe ArbSys; only Arbitrum chains have code at 0x64."""
        try:
            result = await self.call({"to": ARB_SYS_ADDRESS, "data": _ARB_OS_VERSION})
        except RpcError as exc:
            logger.debug("ledger.arbsys_probe_failed", error=str(exc))
            return False
        return bool(result) and result != "0x"

    # -- Writes ----------------------------------------------------------------

    async def send_raw_transaction(self, raw_tx: str) -> str:
        tx_hash: str = await self.request("eth_sendRawTransaction", [raw_tx])
        return tx_hash
