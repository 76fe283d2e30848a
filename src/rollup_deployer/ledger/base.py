"""Protocols for the parent-chain collaborators.

The provisioning core only sees these narrow interfaces; the concrete
JSON-RPC client, local signer and artifact backend live next to them.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable

Receipt = Mapping[str, Any]


def receipt_status(receipt: Receipt) -> int:
    """Return the receipt status as an int (RPC nodes send hex strings)."""
    status = receipt.get("status")
    if status is None:
        msg = f"Receipt has no status field: {dict(receipt)}"
        raise ValueError(msg)
    if isinstance(status, str):
        return int(status, 16)
    return int(status)


@runtime_checkable
class Ledger(Protocol):
    """Read access to the parent chain."""

    async def chain_id(self) -> int:
        """Return the chain id served by the endpoint."""
        ...

    async def get_transaction_receipt(self, tx_hash: str) -> Receipt | None:
        """Return the receipt, or None while the transaction is not mined."""
        ...

    async def wait_for_receipt(self, tx_hash: str, timeout: float) -> Receipt:
        """Block until a receipt exists; raise TimeoutError after *timeout*."""
        ...

    async def is_arbitrum(self) -> bool:
        """Whether the parent chain is itself an Arbitrum chain."""
        ...


@runtime_checkable
class Signer(Protocol):
    """An account able to authorize and pay for transactions."""

    @property
    def address(self) -> str: ...

    async def transact(
        self, tx: dict[str, Any], gas_limit: int | None = None
    ) -> Receipt:
        """Sign, send and wait for *tx*; return its successful receipt."""
        ...


@runtime_checkable
class ContractBinding(Protocol):
    """A deployed contract bound to a signer."""

    @property
    def address(self) -> str: ...

    async def transact(
        self, method: str, *args: Any, gas_limit: int | None = None
    ) -> Receipt: ...


@runtime_checkable
class DeployFactory(Protocol):
    """Creates (or re-attaches to) instances of one contract template."""

    async def deploy(self, *args: Any, gas_limit: int | None = None) -> Any: ...

    def attach(self, address: str) -> Any: ...


@runtime_checkable
class ContractBackend(Protocol):
    """Resolves a code template name to a factory bound to *signer*."""

    def get_factory(self, code_template: str, signer: Signer) -> DeployFactory: ...
