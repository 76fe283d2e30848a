"""Child rollup creation — an opaque step driven by an external script."""

from __future__ import annotations

import asyncio
import json
import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

import structlog

from rollup_deployer.config.models import RollupCreationConfig
from rollup_deployer.errors import RollupCreationError
from rollup_deployer.ledger.base import Signer

logger = structlog.get_logger()


@dataclass(frozen=True, slots=True)
class RollupCreation:
    creation_result: dict[str, Any]
    chain_info: dict[str, Any]


@runtime_checkable
class RollupCreator(Protocol):
    async def create(
        self,
        signer: Signer,
        dev_deployment: bool,
        rollup_creator_address: str,
        fee_token: str,
    ) -> RollupCreation:
        """Create a rollup; raise RollupCreationError on failure."""
        ...


def parse_creation_output(output: str) -> RollupCreation:
    """Take the last stdout line holding ``rollupCreationResult`` and ``chainInfo``."""
    for line in reversed(output.splitlines()):
        line = line.strip()
        if not line.startswith("{"):
            continue
        try:
            data = json.loads(line)
        except json.JSONDecodeError:
            continue
        if (
            isinstance(data, dict)
            and isinstance(data.get("rollupCreationResult"), dict)
            and isinstance(data.get("chainInfo"), dict)
        ):
            return RollupCreation(
                creation_result=data["rollupCreationResult"],
                chain_info=data["chainInfo"],
            )
    msg = "Rollup creation produced no result line"
    raise RollupCreationError(msg)


class CommandRollupCreator:
    """Runs the configured creation command and parses its JSON result."""

    def __init__(
        self,
        config: RollupCreationConfig,
        private_key: str,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self._config = config
        self._private_key = private_key
        self._environ = dict(os.environ if environ is None else environ)

    def _command(self) -> list[str]:
        cmd = list(self._config.command)
        if self._config.network:
            cmd += ["--network", self._config.network]
        return cmd

    async def create(
        self,
        signer: Signer,
        dev_deployment: bool,
        rollup_creator_address: str,
        fee_token: str,
    ) -> RollupCreation:
        env = {
            **self._environ,
            "ROLLUP_CREATOR_ADDRESS": rollup_creator_address,
            "FEE_TOKEN_ADDRESS": fee_token,
            "DEPLOYER_PRIVKEY": self._private_key,
            "DEPLOYER_ADDRESS": signer.address,
            "IS_DEV_DEPLOYMENT": "true" if dev_deployment else "false",
        }
        cmd = self._command()
        logger.info(
            "rollup.creation_started",
            rollup_creator=rollup_creator_address,
            fee_token=fee_token,
        )
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                cwd=self._config.cwd,
                env=env,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            msg = f"Cannot start rollup creation command {cmd}: {exc}"
            raise RollupCreationError(msg) from exc

        try:
            stdout, stderr = await asyncio.wait_for(
                proc.communicate(), timeout=self._config.timeout_seconds
            )
        except TimeoutError as exc:
            proc.kill()
            await proc.wait()
            msg = f"Rollup creation timed out after {self._config.timeout_seconds}s"
            raise RollupCreationError(msg) from exc

        if proc.returncode != 0:
            detail = stderr.decode(errors="replace").strip()
            msg = f"Rollup creation failed (exit {proc.returncode}): {detail}"
            raise RollupCreationError(msg)
        return parse_creation_output(stdout.decode(errors="replace"))
