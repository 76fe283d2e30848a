"""Bootstrap driver: config → templates → setTemplates → rollup → manifests."""

from __future__ import annotations

from collections.abc import AsyncIterator, Mapping
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path

import structlog
from rich.console import Console
from rich.markup import escape

from rollup_deployer.config.loader import load_deployment_config
from rollup_deployer.config.models import DeploymentConfig
from rollup_deployer.errors import ChainMismatchError, ParameterMissingError
from rollup_deployer.ledger.base import ContractBackend, Ledger, Signer
from rollup_deployer.ledger.contracts import ArtifactBackend
from rollup_deployer.ledger.rpc import JsonRpcClient
from rollup_deployer.ledger.signer import LocalSigner
from rollup_deployer.manifests import write_manifests
from rollup_deployer.provisioning.awaiter import TransactionAwaiter
from rollup_deployer.provisioning.deployer import ResourceDeployer
from rollup_deployer.provisioning.orchestrator import (
    ProvisioningOrchestrator,
    ProvisioningResult,
)
from rollup_deployer.provisioning.rollup_graph import (
    READER4844_TEMPLATE,
    UPGRADE_EXECUTOR_TEMPLATE,
    ProvisioningParams,
)
from rollup_deployer.provisioning.submitter import IdempotentSubmitter
from rollup_deployer.rollup.creator import (
    CommandRollupCreator,
    RollupCreation,
    RollupCreator,
)
from rollup_deployer.verification.base import Verifier
from rollup_deployer.verification.hardhat import HardhatVerifier

logger = structlog.get_logger()
err_console = Console(stderr=True)


@dataclass(frozen=True, slots=True)
class Collaborators:
    """External services the driver talks to; injectable for tests."""

    ledger: Ledger
    signer: Signer
    backend: ContractBackend
    rollup_creator: RollupCreator
    verifier: Verifier | None = None


@dataclass(frozen=True, slots=True)
class BootstrapResult:
    provisioning: ProvisioningResult
    creation: RollupCreation
    chain_id: int


async def bootstrap(
    config: DeploymentConfig, collaborators: Collaborators
) -> BootstrapResult:
    """Deploy templates, wire them and create the rollup. Performs no file I/O."""
    ledger = collaborators.ledger
    chain_id = await ledger.chain_id()
    if chain_id != config.ledger.chain_id:
        msg = (
            f"PARENT_CHAIN_ID is {config.ledger.chain_id} but "
            f"{config.ledger.rpc_url} serves chain {chain_id}"
        )
        raise ChainMismatchError(msg)

    on_arbitrum = await ledger.is_arbitrum()
    params = ProvisioningParams(
        max_data_size=config.max_data_size,
        on_arbitrum=on_arbitrum,
        verify=config.verification.enabled and collaborators.verifier is not None,
        set_templates_gas_limit=config.set_templates_gas_limit,
    )

    awaiter = TransactionAwaiter(
        ledger,
        timeout=config.ledger.confirmation_timeout_seconds,
        retry_interval=config.ledger.poll_interval_seconds,
    )
    submitter = IdempotentSubmitter(awaiter)
    deployer = ResourceDeployer(
        collaborators.backend, submitter, collaborators.verifier
    )
    orchestrator = ProvisioningOrchestrator(deployer, submitter)
    provisioning = await orchestrator.provision_all(collaborators.signer, params)

    rollup_creator_address = provisioning["rollupCreator"].address
    logger.info(
        "rollup.creating",
        chain_id=chain_id,
        rollup_creator=rollup_creator_address,
        fee_token=config.fee_token,
    )
    creation = await collaborators.rollup_creator.create(
        collaborators.signer,
        True,
        rollup_creator_address,
        config.fee_token,
    )
    return BootstrapResult(
        provisioning=provisioning, creation=creation, chain_id=chain_id
    )


@asynccontextmanager
async def default_collaborators(
    config: DeploymentConfig,
) -> AsyncIterator[Collaborators]:
    """Real collaborators built from *config*; closes the RPC client on exit."""
    private_key = config.deployer_private_key.get_secret_value()
    async with JsonRpcClient(config.ledger) as client:
        signer = LocalSigner(private_key, client, chain_id=config.ledger.chain_id)
        verifier = (
            HardhatVerifier(config.verification)
            if config.verification.enabled
            else None
        )
        yield Collaborators(
            ledger=client,
            signer=signer,
            backend=ArtifactBackend(
                config.artifacts_dir,
                overrides={
                    READER4844_TEMPLATE: config.reader4844_artifact,
                    UPGRADE_EXECUTOR_TEMPLATE: config.upgrade_executor_artifact,
                },
            ),
            rollup_creator=CommandRollupCreator(config.rollup_creation, private_key),
            verifier=verifier,
        )


async def run(
    environ: Mapping[str, str] | None = None,
    config_path: str | Path | None = None,
    collaborators: Collaborators | None = None,
) -> int:
    """Entry workflow; returns the process exit code."""
    try:
        config = load_deployment_config(config_path, environ)
    except (ParameterMissingError, ValueError, TypeError, FileNotFoundError) as exc:
        logger.error("bootstrap.invalid_parameters", error=str(exc))
        err_console.print(f"[red]error:[/red] {escape(str(exc))}")
        return 1

    logger.info(
        "bootstrap.started",
        chain_name=config.chain_name,
        parent_chain_id=config.ledger.chain_id,
        fee_token=config.fee_token,
        native_fee_token=config.uses_native_fee_token,
    )
    try:
        if collaborators is None:
            async with default_collaborators(config) as built:
                result = await bootstrap(config, built)
        else:
            result = await bootstrap(config, collaborators)

        write_manifests(
            result.creation,
            config.chain_name,
            config.deployment_manifest,
            config.chain_info_manifest,
            addresses=result.provisioning.addresses(),
        )
    except Exception as exc:
        logger.error(
            "bootstrap.failed", error=str(exc), error_type=type(exc).__name__
        )
        err_console.print(f"[red]error:[/red] {escape(str(exc))}")
        return 1

    logger.info(
        "bootstrap.completed",
        chain_name=config.chain_name,
        resources=len(result.provisioning),
        deployment_manifest=str(config.deployment_manifest),
        chain_info_manifest=str(config.chain_info_manifest),
    )
    return 0
