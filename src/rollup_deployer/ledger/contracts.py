"""Compiled-artifact backend: contract factories and signer-bound bindings."""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog
from eth_abi import decode, encode
from eth_utils import function_signature_to_4byte_selector, to_checksum_address

from rollup_deployer.errors import ArtifactError
from rollup_deployer.ledger.base import Receipt, Signer

logger = structlog.get_logger()


def abi_type(param: dict[str, Any]) -> str:
    """Canonical ABI type string for one input/output entry (tuples expanded)."""
    type_ = str(param["type"])
    if type_.startswith("tuple"):
        inner = ",".join(abi_type(c) for c in param.get("components", []))
        return f"({inner}){type_[len('tuple'):]}"
    return type_


def _strip_0x(value: str) -> str:
    return value[2:] if value.startswith(("0x", "0X")) else value


@dataclass(frozen=True, slots=True)
class Artifact:
    """ABI and creation bytecode of one contract."""

    contract_name: str
    abi: list[dict[str, Any]]
    bytecode: str
    source_path: Path | None = field(default=None, compare=False)

    @classmethod
    def from_file(cls, path: Path) -> Artifact:
        try:
            data = json.loads(path.read_text())
        except (OSError, json.JSONDecodeError) as exc:
            msg = f"Cannot read artifact {path}: {exc}"
            raise ArtifactError(msg) from exc
        if not isinstance(data, dict) or "abi" not in data or "bytecode" not in data:
            msg = f"Artifact {path} has no abi/bytecode"
            raise ArtifactError(msg)
        bytecode = data["bytecode"]
        if isinstance(bytecode, dict):  # foundry layout
            bytecode = bytecode.get("object", "")
        return cls(
            contract_name=data.get("contractName", path.stem),
            abi=list(data["abi"]),
            bytecode=str(bytecode),
            source_path=path,
        )

    def constructor_types(self) -> list[str]:
        for entry in self.abi:
            if entry.get("type") == "constructor":
                return [abi_type(p) for p in entry.get("inputs", [])]
        return []

    def function(self, name: str, arg_count: int) -> dict[str, Any]:
        candidates = [
            e
            for e in self.abi
            if e.get("type") == "function"
            and e.get("name") == name
            and len(e.get("inputs", [])) == arg_count
        ]
        if len(candidates) != 1:
            msg = (
                f"{self.contract_name}.{name} with {arg_count} argument(s): "
                f"{len(candidates)} ABI match(es)"
            )
            raise ArtifactError(msg)
        return candidates[0]


def encode_call(entry: dict[str, Any], args: tuple[Any, ...]) -> str:
    """Selector + ABI-encoded arguments for a function entry."""
    types = [abi_type(p) for p in entry.get("inputs", [])]
    signature = f"{entry['name']}({','.join(types)})"
    selector = function_signature_to_4byte_selector(signature)
    return "0x" + (selector + encode(types, list(args))).hex()


class Contract:
    """A deployed contract instance bound to a signer."""

    def __init__(self, artifact: Artifact, address: str, signer: Signer) -> None:
        self._artifact = artifact
        self._address = to_checksum_address(address)
        self._signer = signer

    @property
    def address(self) -> str:
        return self._address

    @property
    def artifact(self) -> Artifact:
        return self._artifact

    @property
    def signer(self) -> Signer:
        return self._signer

    def encode(self, method: str, *args: Any) -> str:
        return encode_call(self._artifact.function(method, len(args)), args)

    async def transact(
        self, method: str, *args: Any, gas_limit: int | None = None
    ) -> Receipt:
        data = self.encode(method, *args)
        return await self._signer.transact(
            {"to": self._address, "data": data}, gas_limit
        )

    async def call(self, method: str, *args: Any) -> Any:
        """Read-only call through the signer's RPC client."""
        entry = self._artifact.function(method, len(args))
        client = getattr(self._signer, "client", None)
        if client is None:
            msg = "Signer exposes no RPC client for read-only calls"
            raise RuntimeError(msg)
        raw = await client.call({"to": self._address, "data": encode_call(entry, args)})
        out_types = [abi_type(p) for p in entry.get("outputs", [])]
        values = decode(out_types, bytes.fromhex(_strip_0x(raw)))
        return values[0] if len(values) == 1 else values

    def __repr__(self) -> str:
        return f"Contract({self._artifact.contract_name}@{self._address})"


class ContractFactory:
    """Deploys new instances of one artifact, or attaches to existing ones."""

    def __init__(self, artifact: Artifact, signer: Signer) -> None:
        self._artifact = artifact
        self._signer = signer

    @property
    def artifact(self) -> Artifact:
        return self._artifact

    def deploy_data(self, args: tuple[Any, ...]) -> str:
        bytecode = _strip_0x(self._artifact.bytecode)
        if not bytecode:
            msg = f"{self._artifact.contract_name} has no creation bytecode"
            raise ArtifactError(msg)
        types = self._artifact.constructor_types()
        if len(types) != len(args):
            msg = (
                f"{self._artifact.contract_name} constructor takes {len(types)} "
                f"argument(s), got {len(args)}"
            )
            raise ArtifactError(msg)
        encoded = encode(types, list(args)).hex() if types else ""
        return "0x" + bytecode + encoded

    async def deploy(self, *args: Any, gas_limit: int | None = None) -> Contract:
        receipt = await self._signer.transact(
            {"data": self.deploy_data(args)}, gas_limit
        )
        address = receipt.get("contractAddress")
        if not address:
            msg = f"Receipt for {self._artifact.contract_name} has no contractAddress"
            raise ArtifactError(msg)
        return self.attach(address)

    def attach(self, address: str) -> Contract:
        return Contract(self._artifact, address, self._signer)


class ArtifactBackend:
    """Looks up Hardhat/Foundry artifacts by contract name under a directory.

    ``overrides`` pins a template name to an artifact file outside the
    directory. A template ending in ``.json`` is read as a file path.
    """

    def __init__(
        self, artifacts_dir: Path, overrides: Mapping[str, Path] | None = None
    ) -> None:
        self._root = Path(artifacts_dir)
        self._overrides = {k: Path(v) for k, v in (overrides or {}).items()}
        self._cache: dict[str, Artifact] = {}

    @property
    def overrides(self) -> dict[str, Path]:
        return dict(self._overrides)

    def _find(self, name: str) -> Path:
        explicit = self._overrides.get(name)
        if explicit is None and name.endswith(".json"):
            explicit = Path(name)
        if explicit is not None:
            if not explicit.is_file():
                msg = f"Artifact file for '{name}' not found: {explicit}"
                raise ArtifactError(msg)
            return explicit
        if not self._root.is_dir():
            msg = f"Artifacts directory not found: {self._root}"
            raise ArtifactError(msg)
        matches = sorted(self._root.rglob(f"{name}.json"))
        if not matches:
            msg = f"No artifact named '{name}' under {self._root}"
            raise ArtifactError(msg)
        if len(matches) > 1:
            msg = f"Artifact '{name}' is ambiguous: {[str(m) for m in matches]}"
            raise ArtifactError(msg)
        return matches[0]

    def load(self, name: str) -> Artifact:
        if name in self._cache:
            return self._cache[name]
        path = self._find(name)
        artifact = Artifact.from_file(path)
        self._cache[name] = artifact
        logger.debug("artifact.loaded", contract=name, path=str(path))
        return artifact

    def get_factory(self, code_template: str, signer: Signer) -> ContractFactory:
        return ContractFactory(self.load(code_template), signer)
