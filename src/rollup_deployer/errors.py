"""Exception hierarchy for rollup deployment."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any


class DeploymentError(Exception):
    """Base class for every error raised by the deployer."""


class SubmissionError(DeploymentError):
    """A transaction was handed to the node but its completion was not observed.

    ``transaction_hash`` identifies the transaction so that its fate can be
    reconciled against the ledger instead of re-submitting it.
    """

    def __init__(self, message: str, *, transaction_hash: str) -> None:
        super().__init__(message)
        self.transaction_hash = transaction_hash


class TransactionRevertedError(DeploymentError):
    """A transaction was mined with a failure status."""

    def __init__(
        self,
        message: str,
        *,
        transaction_hash: str,
        receipt: Mapping[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.transaction_hash = transaction_hash
        self.receipt = receipt


class RpcError(DeploymentError):
    """The node answered a JSON-RPC request with an error object."""

    def __init__(self, code: int | None, message: str, data: Any = None) -> None:
        super().__init__(f"RPC error {code}: {message}")
        self.code = code
        self.rpc_message = message
        self.data = data


class ParameterMissingError(DeploymentError):
    """One or more required deployment parameters are not set."""

    def __init__(self, names: Iterable[str]) -> None:
        self.names = tuple(names)
        super().__init__(", ".join(f"{name} not set" for name in self.names))


class ChainMismatchError(DeploymentError):
    """The RPC endpoint serves a different chain than the configured one."""


class GraphError(DeploymentError):
    """The resource graph is malformed (duplicate, unknown or cyclic deps)."""


class UnresolvedReferenceError(DeploymentError):
    """A resource was deployed before all of its references had addresses."""


class ArtifactError(DeploymentError):
    """A compiled contract artifact is missing, ambiguous or malformed."""


class ConfigurationError(DeploymentError):
    """The configuration call's receipt does not match the intended target."""


class RollupCreationError(DeploymentError):
    """The child rollup creation step failed."""


class ManifestWriteError(DeploymentError):
    """Manifests could not be written after provisioning succeeded.

    ``replaced`` lists the manifests already swapped in before the failure;
    they hold this run's data while the others are left as they were.
    """

    def __init__(
        self,
        paths: Iterable[Path],
        addresses: Mapping[str, str],
        cause: BaseException,
        replaced: Iterable[Path] = (),
    ) -> None:
        self.paths = tuple(paths)
        self.addresses = dict(addresses)
        self.replaced = tuple(replaced)
        listing = ", ".join(f"{name}={addr}" for name, addr in self.addresses.items())
        targets = ", ".join(str(p) for p in self.paths)
        state = ""
        if self.replaced:
            stale = [str(p) for p in self.paths if p not in self.replaced]
            state = (
                f" Already replaced: {', '.join(str(p) for p in self.replaced)}; "
                f"not updated: {', '.join(stale) or '-'}."
            )
        super().__init__(
            f"Failed to write manifests ({targets}): {cause}.{state} "
            "Contracts already exist on the parent chain; rebuild the manifests "
            f"from these addresses instead of re-deploying: {listing}"
        )
