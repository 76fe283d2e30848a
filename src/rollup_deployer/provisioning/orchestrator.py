"""Provisioning Orchestrator — deploys the graph, then wires it together."""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass, field
from enum import StrEnum

import structlog

from rollup_deployer.errors import ConfigurationError
from rollup_deployer.ledger.base import Receipt, Signer
from rollup_deployer.provisioning.deployer import ResourceDeployer, ResourceHandle
from rollup_deployer.provisioning.graph import ConfigurationCall, ResourceGraph
from rollup_deployer.provisioning.rollup_graph import (
    ProvisioningParams,
    build_rollup_graph,
)
from rollup_deployer.provisioning.submitter import IdempotentSubmitter

logger = structlog.get_logger()

GraphBuilder = Callable[[ProvisioningParams], ResourceGraph]


class ResourceState(StrEnum):
    PENDING = "pending"
    SUBMITTING = "submitting"
    CREATED = "created"
    AMBIGUOUS_SUBMITTED = "ambiguous_submitted"
    RECOVERED = "recovered"
    FAILED_HARD = "failed_hard"


@dataclass
class ProvisioningResult(Mapping[str, ResourceHandle]):
    """Handles for every resource of the graph, keyed by resource name."""

    handles: dict[str, ResourceHandle] = field(default_factory=dict)
    configured: bool = False

    def __getitem__(self, name: str) -> ResourceHandle:
        return self.handles[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self.handles)

    def __len__(self) -> int:
        return len(self.handles)

    def addresses(self) -> dict[str, str]:
        return {name: h.address for name, h in self.handles.items()}

    @property
    def recovered(self) -> list[str]:
        return [name for name, h in self.handles.items() if h.recovered]


class ProvisioningOrchestrator:
    """Deploys a resource graph sequentially and issues its configuration call.

    Any unrecovered failure aborts the run with the original error; the
    configuration call only happens once every resource has a handle.
    """

    def __init__(
        self,
        deployer: ResourceDeployer,
        submitter: IdempotentSubmitter,
        graph_builder: GraphBuilder = build_rollup_graph,
    ) -> None:
        self._deployer = deployer
        self._submitter = submitter
        self._graph_builder = graph_builder
        self.states: dict[str, ResourceState] = {}

    async def provision_all(
        self, signer: Signer, params: ProvisioningParams
    ) -> ProvisioningResult:
        graph = self._graph_builder(params)
        order = graph.topological_order()
        self.states = {spec.name: ResourceState.PENDING for spec in order}
        result = ProvisioningResult()

        logger.info(
            "provisioning.started",
            resources=len(order),
            deployer=signer.address,
            on_arbitrum=params.on_arbitrum,
        )
        for spec in order:
            resolved = spec.resolve(result.addresses())
            self.states[spec.name] = ResourceState.SUBMITTING

            def _mark_ambiguous(tx_hash: str, name: str = spec.name) -> None:
                self.states[name] = ResourceState.AMBIGUOUS_SUBMITTED

            try:
                handle = await self._deployer.deploy(
                    resolved, signer, params.verify, on_ambiguous=_mark_ambiguous
                )
            except Exception as exc:
                self.states[spec.name] = ResourceState.FAILED_HARD
                logger.error(
                    "resource.failed",
                    resource=spec.name,
                    error=str(exc),
                    created=len(result),
                )
                raise
            self.states[spec.name] = (
                ResourceState.RECOVERED if handle.recovered else ResourceState.CREATED
            )
            result.handles[spec.name] = handle

        if graph.configuration is not None:
            await self._configure(graph, graph.configuration, result)
            result.configured = True

        logger.info(
            "provisioning.completed",
            resources=len(result),
            recovered=result.recovered,
        )
        return result

    async def _configure(
        self,
        graph: ResourceGraph,
        call: ConfigurationCall,
        result: ProvisioningResult,
    ) -> None:
        missing = [name for name in graph.names if name not in result]
        if missing:
            msg = f"Refusing {call.method}: no handle for {missing}"
            raise ConfigurationError(msg)

        target = result[call.target]
        args = call.arguments(result.addresses())
        label = f"{call.target}.{call.method}"
        logger.info("configuration.started", call=label, arguments=list(args))

        async def _send() -> Receipt:
            return await target.contract.transact(
                call.method, *args, gas_limit=call.gas_limit
            )

        def _check(receipt: Receipt) -> Receipt:
            to = receipt.get("to")
            if to is not None and str(to).lower() != target.address.lower():
                msg = (
                    f"Recovered {label} receipt targets {to}, "
                    f"expected {target.address}"
                )
                raise ConfigurationError(msg)
            return receipt

        submitted = await self._submitter.submit(_send, label=label, recover=_check)
        logger.info(
            "configuration.completed", call=label, recovered=submitted.recovered
        )
