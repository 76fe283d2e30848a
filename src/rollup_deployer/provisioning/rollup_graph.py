"""The rollup template set deployed ahead of RollupCreator.setTemplates."""

from __future__ import annotations

from dataclasses import dataclass

from rollup_deployer.config.models import DEFAULT_MAX_DATA_SIZE, ZERO_ADDRESS
from rollup_deployer.provisioning.graph import (
    ConfigurationCall,
    Ref,
    ResourceGraph,
    ResourceSpec,
)

SET_TEMPLATES_GAS_LIMIT = 5_000_000

# Templates built outside the main artifacts directory.
READER4844_TEMPLATE = "Reader4844"
UPGRADE_EXECUTOR_TEMPLATE = "UpgradeExecutor"

# Bridge, SequencerInbox, Inbox, RollupEventInbox, Outbox
ETH_BRIDGE_SET = (
    "ethBridge",
    "ethSequencerInbox",
    "ethInbox",
    "ethRollupEventInbox",
    "ethOutbox",
)
ERC20_BRIDGE_SET = (
    "erc20Bridge",
    "erc20SequencerInbox",
    "erc20Inbox",
    "erc20RollupEventInbox",
    "erc20Outbox",
)
PROVERS = ("prover0", "proverMem", "proverMath", "proverHostIo")

# Positional parameters of RollupCreator.setTemplates.
SET_TEMPLATES_SLOTS = (
    "bridgeCreator",
    "osp",
    "challengeManager",
    "rollupAdmin",
    "rollupUser",
    "upgradeExecutor",
    "validatorUtils",
    "validatorWalletCreator",
    "deployHelper",
)


@dataclass(frozen=True, slots=True)
class ProvisioningParams:
    max_data_size: int = DEFAULT_MAX_DATA_SIZE
    on_arbitrum: bool = False
    verify: bool = False
    set_templates_gas_limit: int = SET_TEMPLATES_GAS_LIMIT


def build_rollup_graph(params: ProvisioningParams) -> ResourceGraph:
    """Templates for native-asset and ERC20-fee rollups plus the creator set.

    On an Arbitrum parent chain there is no blob reader; both sequencer
    inboxes get the zero address instead.
    """
    size = params.max_data_size
    reader: Ref | str = ZERO_ADDRESS if params.on_arbitrum else Ref("reader4844")

    specs: list[ResourceSpec] = [
        ResourceSpec("ethBridge", "Bridge"),
    ]
    if not params.on_arbitrum:
        specs.append(ResourceSpec("reader4844", READER4844_TEMPLATE, verify=False))
    specs += [
        ResourceSpec("ethSequencerInbox", "SequencerInbox", (size, reader, False)),
        ResourceSpec("ethInbox", "Inbox", (size,)),
        ResourceSpec("ethRollupEventInbox", "RollupEventInbox"),
        ResourceSpec("ethOutbox", "Outbox"),
        ResourceSpec("erc20Bridge", "ERC20Bridge"),
        ResourceSpec("erc20SequencerInbox", "SequencerInbox", (size, reader, True)),
        ResourceSpec("erc20Inbox", "ERC20Inbox", (size,)),
        ResourceSpec("erc20RollupEventInbox", "ERC20RollupEventInbox"),
        ResourceSpec("erc20Outbox", "ERC20Outbox"),
        ResourceSpec(
            "bridgeCreator",
            "BridgeCreator",
            (
                tuple(Ref(name) for name in ETH_BRIDGE_SET),
                tuple(Ref(name) for name in ERC20_BRIDGE_SET),
            ),
        ),
        ResourceSpec("prover0", "OneStepProver0"),
        ResourceSpec("proverMem", "OneStepProverMemory"),
        ResourceSpec("proverMath", "OneStepProverMath"),
        ResourceSpec("proverHostIo", "OneStepProverHostIo"),
        ResourceSpec(
            "osp", "OneStepProofEntry", tuple(Ref(name) for name in PROVERS)
        ),
        ResourceSpec("challengeManager", "ChallengeManager"),
        ResourceSpec("rollupAdmin", "RollupAdminLogic"),
        ResourceSpec("rollupUser", "RollupUserLogic"),
        ResourceSpec("upgradeExecutor", UPGRADE_EXECUTOR_TEMPLATE, verify=False),
        ResourceSpec("validatorUtils", "ValidatorUtils"),
        ResourceSpec("validatorWalletCreator", "ValidatorWalletCreator"),
        ResourceSpec("rollupCreator", "RollupCreator"),
        ResourceSpec("deployHelper", "DeployHelper"),
    ]

    configuration = ConfigurationCall(
        target="rollupCreator",
        method="setTemplates",
        slots=SET_TEMPLATES_SLOTS,
        gas_limit=params.set_templates_gas_limit,
    )
    return ResourceGraph(tuple(specs), configuration)
