"""Source verification through ``hardhat verify``."""

from __future__ import annotations

import asyncio
import json
import os
import tempfile
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import structlog

from rollup_deployer.config.models import VerificationConfig
from rollup_deployer.verification.base import (
    VerificationRequest,
    VerificationResult,
    VerificationStatus,
)

logger = structlog.get_logger()


def _js_value(value: Any) -> Any:
    # Integers become strings so uint256 values survive JavaScript numbers.
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return str(value)
    if isinstance(value, (tuple, list)):
        return [_js_value(v) for v in value]
    return value


def constructor_args_module(args: tuple[Any, ...]) -> str:
    """Render constructor arguments as a CommonJS module for ``--constructor-args``."""
    return f"module.exports = {json.dumps(_js_value(args), indent=2)};\n"


class HardhatVerifier:
    """Runs ``npx hardhat verify`` for one deployed contract at a time."""

    def __init__(
        self,
        config: VerificationConfig,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self._config = config
        self._environ = os.environ if environ is None else environ

    def _command(self, request: VerificationRequest, args_file: Path) -> list[str]:
        cmd = [*self._config.command, "verify"]
        if self._config.network:
            cmd += ["--network", self._config.network]
        if request.contract_path:
            cmd += ["--contract", request.contract_path]
        cmd += ["--constructor-args", str(args_file), request.address]
        return cmd

    async def verify(self, request: VerificationRequest) -> VerificationResult:
        if self._environ.get("DISABLE_VERIFICATION"):
            return VerificationResult(VerificationStatus.SKIPPED, "disabled")

        with tempfile.TemporaryDirectory(prefix="verify-") as tmp:
            args_file = Path(tmp) / "args.js"
            args_file.write_text(constructor_args_module(request.constructor_args))
            cmd = self._command(request, args_file)
            logger.debug("verification.started", resource=request.name, cmd=cmd)

            proc = await asyncio.create_subprocess_exec(
                *cmd,
                cwd=self._config.project_dir,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
            try:
                stdout, _ = await asyncio.wait_for(
                    proc.communicate(), timeout=self._config.timeout_seconds
                )
            except TimeoutError:
                proc.kill()
                await proc.wait()
                return VerificationResult(
                    VerificationStatus.FAILED,
                    f"timed out after {self._config.timeout_seconds}s",
                )

        output = stdout.decode(errors="replace").strip()
        if "already verified" in output.lower():
            return VerificationResult(VerificationStatus.ALREADY_VERIFIED, output)
        if proc.returncode == 0:
            return VerificationResult(VerificationStatus.VERIFIED, output)
        return VerificationResult(VerificationStatus.FAILED, output)
