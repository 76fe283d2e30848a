"""Resource Deployer — creates one contract and builds its handle."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import structlog

from rollup_deployer.errors import UnresolvedReferenceError
from rollup_deployer.ledger.base import ContractBackend, Receipt, Signer
from rollup_deployer.provisioning.graph import ResourceSpec
from rollup_deployer.provisioning.submitter import IdempotentSubmitter
from rollup_deployer.verification.base import (
    VerificationRequest,
    VerificationStatus,
    Verifier,
)

logger = structlog.get_logger()


@dataclass(frozen=True, slots=True)
class ResourceHandle:
    """A created resource: its address and a signer-bound binding."""

    name: str
    address: str
    contract: Any
    recovered: bool = False


class ResourceDeployer:
    """Deploys a resolved ResourceSpec through the idempotent submitter."""

    def __init__(
        self,
        backend: ContractBackend,
        submitter: IdempotentSubmitter,
        verifier: Verifier | None = None,
    ) -> None:
        self._backend = backend
        self._submitter = submitter
        self._verifier = verifier

    async def deploy(
        self,
        spec: ResourceSpec,
        signer: Signer,
        verify: bool = False,
        *,
        on_ambiguous: Callable[[str], None] | None = None,
    ) -> ResourceHandle:
        if not spec.is_resolved:
            msg = f"Resource '{spec.name}' still has unresolved references"
            raise UnresolvedReferenceError(msg)

        factory = self._backend.get_factory(spec.code_template, signer)

        async def _create() -> Any:
            return await factory.deploy(*spec.constructor_args)

        def _recover(receipt: Receipt) -> Any:
            return factory.attach(receipt["contractAddress"])

        submitted = await self._submitter.submit(
            _create,
            label=f"deploy {spec.name}",
            recover=_recover,
            on_ambiguous=on_ambiguous,
        )
        contract = submitted.value
        handle = ResourceHandle(
            name=spec.name,
            address=contract.address,
            contract=contract,
            recovered=submitted.recovered,
        )
        logger.info(
            "resource.recovered" if handle.recovered else "resource.deployed",
            resource=spec.name,
            template=spec.code_template,
            address=handle.address,
        )

        if verify and spec.verify and self._verifier is not None:
            await self._verify(spec, handle)
        return handle

    async def _verify(self, spec: ResourceSpec, handle: ResourceHandle) -> None:
        """Best-effort: the outcome is logged and never affects the deployment."""
        request = VerificationRequest(
            name=spec.name,
            address=handle.address,
            constructor_args=spec.constructor_args,
            contract_path=spec.contract_path,
        )
        assert self._verifier is not None
        try:
            result = await self._verifier.verify(request)
        except Exception as exc:
            logger.warning(
                "verification.failed", resource=spec.name, error=str(exc)
            )
            return

        if result.status == VerificationStatus.FAILED:
            logger.warning(
                "verification.failed", resource=spec.name, error=result.message
            )
        else:
            logger.info(
                "verification.done", resource=spec.name, status=result.status.value
            )
