"""Typer CLI for the rollup deployer."""

from __future__ import annotations

import asyncio
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from rollup_deployer.bootstrap import run
from rollup_deployer.config.loader import load_deployment_config
from rollup_deployer.config.models import DEFAULT_MAX_DATA_SIZE
from rollup_deployer.errors import ParameterMissingError
from rollup_deployer.logging_config import configure_logging
from rollup_deployer.provisioning.rollup_graph import (
    ProvisioningParams,
    build_rollup_graph,
)

console = Console()
app = typer.Typer(name="rollup-deployer", help="Rollup template deployer CLI")


@app.command()
def deploy(
    config_path: str | None = typer.Option(
        None, "--config", help="Optional YAML with deployment settings"
    ),
    json_logs: bool = typer.Option(False, "--json-logs", help="Emit JSON log lines"),
    log_level: str = typer.Option("INFO", "--log-level", help="Minimum log level"),
) -> None:
    """Deploy templates, set them on RollupCreator, create the rollup."""
    configure_logging(json_logs=json_logs, level=log_level)
    code = asyncio.run(run(config_path=config_path))
    if code == 0:
        console.print("[green]Rollup deployment done[/green]")
    raise typer.Exit(code)


@app.command()
def validate(
    config_path: str | None = typer.Option(
        None, "--config", help="Optional YAML with deployment settings"
    ),
) -> None:
    """Check deployment parameters without contacting the parent chain."""
    try:
        cfg = load_deployment_config(Path(config_path) if config_path else None)
    except ParameterMissingError as exc:
        console.print(f"[red]Missing parameters:[/red] {exc}")
        raise typer.Exit(1) from exc
    except Exception as exc:
        console.print(f"[red]Validation error:[/red] {exc}")
        raise typer.Exit(1) from exc

    console.print(f"[green]Valid[/green] — chain_name={cfg.chain_name}")
    console.print(f"  parent chain: {cfg.ledger.chain_id} via {cfg.ledger.rpc_url}")
    console.print(f"  max data size: {cfg.max_data_size}")
    fee = "native" if cfg.uses_native_fee_token else cfg.fee_token
    console.print(f"  fee token: {fee}")
    console.print(f"  artifacts: {cfg.artifacts_dir}")
    status = "enabled" if cfg.verification.enabled else "disabled"
    console.print(f"  verification: {status}")
    console.print(
        f"  manifests: {cfg.deployment_manifest}, {cfg.chain_info_manifest}"
    )


@app.command()
def graph(
    on_arbitrum: bool = typer.Option(
        False, "--on-arbitrum", help="Plan for an Arbitrum parent chain"
    ),
    max_data_size: int = typer.Option(
        DEFAULT_MAX_DATA_SIZE, "--max-data-size", help="Inbox max data size"
    ),
) -> None:
    """Print the deployment order and the setTemplates wiring."""
    resource_graph = build_rollup_graph(
        ProvisioningParams(max_data_size=max_data_size, on_arbitrum=on_arbitrum)
    )

    table = Table(title="Deployment order")
    table.add_column("#", justify="right")
    table.add_column("Resource", style="cyan")
    table.add_column("Template")
    table.add_column("Depends on")
    for i, spec in enumerate(resource_graph.topological_order(), start=1):
        table.add_row(
            str(i),
            spec.name,
            spec.code_template,
            ", ".join(sorted(spec.depends_on)) or "-",
        )
    console.print(table)

    call = resource_graph.configuration
    if call is not None:
        console.print(
            f"[yellow]{call.target}.{call.method}[/yellow]({', '.join(call.slots)})"
        )
