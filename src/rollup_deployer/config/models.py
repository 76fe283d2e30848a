"""Pydantic configuration models for a rollup deployment run."""

from __future__ import annotations

import re
from pathlib import Path

from pydantic import BaseModel, Field, SecretStr, field_validator

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
DEFAULT_MAX_DATA_SIZE = 117964
DEFAULT_READER4844_ARTIFACT = Path("out/yul/Reader4844.yul/Reader4844.json")
DEFAULT_UPGRADE_EXECUTOR_ARTIFACT = Path(
    "node_modules/@offchainlabs/upgrade-executor/build/contracts/src/"
    "UpgradeExecutor.sol/UpgradeExecutor.json"
)

_ADDRESS_PATTERN = re.compile(r"^0x[0-9a-fA-F]{40}$")
_PRIVATE_KEY_PATTERN = re.compile(r"^(0x)?[0-9a-fA-F]{64}$")


class LedgerConfig(BaseModel):
    """Parent chain RPC endpoint and transaction timing."""

    rpc_url: str
    chain_id: int = Field(ge=1)
    request_timeout_seconds: float = Field(default=30.0, gt=0)
    confirmation_timeout_seconds: float = Field(default=90.0, ge=1.0)
    poll_interval_seconds: float = Field(default=1.0, gt=0)
    retry_max_attempts: int = Field(default=5, ge=1)
    retry_wait_seconds: float = Field(default=1.0, gt=0)

    @field_validator("rpc_url")
    @classmethod
    def validate_http_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            msg = (
                "rpc_url must be an http(s) JSON-RPC endpoint; WebSocket "
                f"(ws://, wss://) endpoints are not supported, got '{v}'"
            )
            raise ValueError(msg)
        return v


class VerificationConfig(BaseModel):
    """Source verification through the Hardhat toolchain."""

    enabled: bool = False
    network: str | None = None
    project_dir: Path = Path(".")
    command: list[str] = Field(default_factory=lambda: ["npx", "hardhat"])
    timeout_seconds: float = Field(default=300.0, gt=0)


class RollupCreationConfig(BaseModel):
    """External command that creates the child rollup from RollupCreator."""

    command: list[str] = Field(
        default_factory=lambda: ["npx", "hardhat", "run", "scripts/createRollup.ts"]
    )
    network: str | None = None
    cwd: Path = Path(".")
    timeout_seconds: float = Field(default=900.0, gt=0)


class DeploymentConfig(BaseModel):
    """Everything a single deployment run needs."""

    chain_name: str = Field(min_length=1)
    deployer_private_key: SecretStr
    ledger: LedgerConfig
    max_data_size: int = Field(default=DEFAULT_MAX_DATA_SIZE, ge=1)
    fee_token: str = ZERO_ADDRESS
    deployment_manifest: Path = Path("deploy.json")
    chain_info_manifest: Path = Path("l2_chain_info.json")
    artifacts_dir: Path = Path("build/contracts")
    reader4844_artifact: Path = DEFAULT_READER4844_ARTIFACT
    upgrade_executor_artifact: Path = DEFAULT_UPGRADE_EXECUTOR_ARTIFACT
    set_templates_gas_limit: int = Field(default=5_000_000, ge=21_000)
    verification: VerificationConfig = Field(default_factory=VerificationConfig)
    rollup_creation: RollupCreationConfig = Field(
        default_factory=RollupCreationConfig
    )

    @field_validator("fee_token")
    @classmethod
    def validate_address(cls, v: str) -> str:
        if not _ADDRESS_PATTERN.match(v):
            msg = f"fee_token must be a 20-byte hex address, got '{v}'"
            raise ValueError(msg)
        return v

    @field_validator("deployer_private_key")
    @classmethod
    def validate_private_key(cls, v: SecretStr) -> SecretStr:
        if not _PRIVATE_KEY_PATTERN.match(v.get_secret_value()):
            msg = "deployer_private_key must be 32 bytes of hex"
            raise ValueError(msg)
        return v

    @property
    def uses_native_fee_token(self) -> bool:
        return int(self.fee_token, 16) == 0
