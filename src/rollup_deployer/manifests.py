"""Deployment manifests written at the end of a successful run."""

from __future__ import annotations

import json
import os
import tempfile
from collections.abc import Mapping
from contextlib import suppress
from pathlib import Path
from typing import Any

import structlog

from rollup_deployer.errors import ManifestWriteError
from rollup_deployer.rollup.creator import RollupCreation

logger = structlog.get_logger()


def chain_info_document(
    chain_info: Mapping[str, Any], chain_name: str
) -> list[dict[str, Any]]:
    """Single-element list with the chain info tagged by its human-readable name."""
    return [{**chain_info, "chain-name": chain_name}]


def _render(document: Any) -> str:
    return json.dumps(document, indent=2, default=str)


def _stage(path: Path, content: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
    with os.fdopen(fd, "w", encoding="utf-8") as f:
        f.write(content)
    return Path(tmp)


def write_manifests(
    creation: RollupCreation,
    chain_name: str,
    deployment_path: Path,
    chain_info_path: Path,
    addresses: Mapping[str, str] | None = None,
) -> None:
    """Write both manifests, replacing previous ones.

    Both files are staged before either is moved into place, so a failure
    while rendering or staging leaves the old manifests untouched. Any error
    is raised as ManifestWriteError listing *addresses* and any manifest
    already replaced.
    """
    paths = (deployment_path, chain_info_path)
    staged: dict[Path, Path] = {}
    replaced: list[Path] = []
    try:
        documents = {
            deployment_path: _render(creation.creation_result),
            chain_info_path: _render(
                chain_info_document(creation.chain_info, chain_name)
            ),
        }
        for target, content in documents.items():
            staged[target] = _stage(target, content)
        for target, tmp in staged.items():
            os.replace(tmp, target)
            replaced.append(target)
    except (OSError, TypeError, ValueError) as exc:
        for tmp in staged.values():
            with suppress(OSError):
                tmp.unlink(missing_ok=True)
        raise ManifestWriteError(paths, addresses or {}, exc, replaced) from exc

    for target in paths:
        logger.info("manifest.written", path=str(target))
