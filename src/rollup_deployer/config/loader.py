"""Environment variable + YAML config loader."""

from __future__ import annotations

import os
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Any, cast

import yaml
from pydantic import ValidationError

from rollup_deployer.config.models import DeploymentConfig
from rollup_deployer.errors import ParameterMissingError

# Matches ${VAR} or ${VAR:-default}
_ENV_PATTERN = re.compile(r"\$\{([^}:]+)(?::-((?:[^}\\]|\\.)*))?}")

# Environment variable -> dotted path in DeploymentConfig.
REQUIRED_ENV: dict[str, str] = {
    "CHILD_CHAIN_NAME": "chain_name",
    "DEPLOYER_PRIVKEY": "deployer_private_key",
    "PARENT_CHAIN_RPC": "ledger.rpc_url",
    "PARENT_CHAIN_ID": "ledger.chain_id",
}

OPTIONAL_ENV: dict[str, str] = {
    "MAX_DATA_SIZE": "max_data_size",
    "FEE_TOKEN_ADDRESS": "fee_token",
    "CHAIN_DEPLOYMENT_INFO": "deployment_manifest",
    "CHILD_CHAIN_INFO": "chain_info_manifest",
    "ARTIFACTS_DIR": "artifacts_dir",
    "READER4844_ARTIFACT": "reader4844_artifact",
    "UPGRADE_EXECUTOR_ARTIFACT": "upgrade_executor_artifact",
    "VERIFY_CONTRACTS": "verification.enabled",
    "HARDHAT_NETWORK": "verification.network",
}

_TRUTHY = {"1", "true", "yes", "on"}


def _resolve_env_str(value: str, environ: Mapping[str, str]) -> str:
    """Replace all ${VAR} / ${VAR:-default} references in a string."""

    def _replace(match: re.Match[str]) -> str:
        var_name = match.group(1)
        default = match.group(2)
        env_val = environ.get(var_name)
        if env_val is not None:
            return env_val
        if default is not None:
            return default.replace("\\}", "}")
        msg = f"Environment variable '{var_name}' is not set and no default provided"
        raise ValueError(msg)

    return _ENV_PATTERN.sub(_replace, value)


def resolve_env_vars(data: Any, environ: Mapping[str, str] | None = None) -> Any:
    """Recursively resolve ${VAR} and ${VAR:-default} in parsed YAML data."""
    env = os.environ if environ is None else environ
    if isinstance(data, str):
        return _resolve_env_str(data, env)
    if isinstance(data, dict):
        return {k: resolve_env_vars(v, env) for k, v in data.items()}
    if isinstance(data, list):
        return [resolve_env_vars(item, env) for item in data]
    return data


def load_yaml(
    path: str | Path, environ: Mapping[str, str] | None = None
) -> dict[str, Any]:
    """Load a YAML file and return its contents as a dict."""
    p = Path(path)
    if not p.exists():
        msg = f"Config file not found: {p}"
        raise FileNotFoundError(msg)
    try:
        with p.open() as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as exc:
        msg = f"Failed to parse YAML in {p}"
        if hasattr(exc, "problem_mark") and exc.problem_mark is not None:
            mark = exc.problem_mark
            msg += f" at line {mark.line + 1}, column {mark.column + 1}"
        msg += f": {exc}"
        raise ValueError(msg) from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        msg = f"Expected a YAML mapping at top level in {p}, got {type(data).__name__}"
        raise TypeError(msg)
    return cast(dict[str, Any], resolve_env_vars(data, environ))


def merge_configs(base: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    """Recursively deep-merge *overrides* into *base* (non-mutating)."""
    merged: dict[str, Any] = {**base}
    for key, value in overrides.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = merge_configs(merged[key], value)
        else:
            merged[key] = value
    return merged


def _nest(dotted: str, value: Any) -> dict[str, Any]:
    head, _, rest = dotted.partition(".")
    return {head: _nest(rest, value) if rest else value}


def _lookup(data: Mapping[str, Any], dotted: str) -> Any:
    node: Any = data
    for part in dotted.split("."):
        if not isinstance(node, Mapping) or part not in node:
            return None
        node = node[part]
    return node


def env_overrides(environ: Mapping[str, str]) -> dict[str, Any]:
    """Translate deployment environment variables into a config overlay.

    Empty values count as unset.
    """
    overlay: dict[str, Any] = {}
    for name, dotted in {**REQUIRED_ENV, **OPTIONAL_ENV}.items():
        raw = environ.get(name)
        if not raw:
            continue
        value: Any = raw
        if name == "VERIFY_CONTRACTS":
            value = raw.strip().lower() in _TRUTHY
        overlay = merge_configs(overlay, _nest(dotted, value))

    network = environ.get("HARDHAT_NETWORK")
    if network:
        overlay = merge_configs(overlay, _nest("rollup_creation.network", network))
    if environ.get("DISABLE_VERIFICATION"):
        overlay = merge_configs(overlay, _nest("verification.enabled", False))
    return overlay


def load_deployment_config(
    path: str | Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> DeploymentConfig:
    """Build a validated DeploymentConfig from an optional YAML file and env vars.

    Precedence is model defaults < YAML < environment. Raises
    ParameterMissingError before anything else when a required parameter is
    absent from both sources.
    """
    env = os.environ if environ is None else environ
    base = load_yaml(path, env) if path is not None else {}
    merged = merge_configs(base, env_overrides(env))

    missing = [
        name
        for name, dotted in REQUIRED_ENV.items()
        if _lookup(merged, dotted) in (None, "")
    ]
    if missing:
        raise ParameterMissingError(missing)

    try:
        return DeploymentConfig.model_validate(merged)
    except ValidationError as exc:
        source = path or "environment"
        msg = f"Invalid deployment config ({source}):\n{exc}"
        raise ValueError(msg) from exc
