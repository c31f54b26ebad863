"""``sitedeploy plan ENV`` — show what a deploy would change.

Loads the build output, lists what the environment currently publishes,
and prints the upload / delete / skip plan.  Read-only: nothing is
written to the store or the CDN.
"""

from __future__ import annotations

from pathlib import Path

import typer

from sitedeploy.cli._common import (
    CONFIG_OPTION_HELP,
    console,
    load_settings,
    require_source,
    resolve_environment,
)
from sitedeploy.clients import TransferError, create_clients
from sitedeploy.core.artifact_loader import load_artifact_set
from sitedeploy.core.planner import PlanConflictError, plan
from sitedeploy.report.renderer import ReportRenderer


def plan_cmd(
    environment: str = typer.Argument(..., help="Target environment name."),
    source: Path = typer.Option(
        Path("dist"), "--source", "-s", help="Build output directory."
    ),
    config_file: Path = typer.Option(None, "--config", "-c", help=CONFIG_OPTION_HELP),
    show_skipped: bool = typer.Option(
        False, "--show-skipped", help="Also list unchanged paths."
    ),
) -> None:
    """Print the deploy plan for ENV without changing anything."""
    settings = load_settings(environments_file=config_file)
    descriptor = resolve_environment(settings, environment)
    require_source(source)

    try:
        artifacts = load_artifact_set(source)
        store, _ = create_clients(descriptor, settings.credentials())
        remote_state = store.list()
        deploy_plan = plan(artifacts, remote_state)
    except PlanConflictError as exc:
        console.print(f"[bold red]Malformed build output:[/bold red] {exc}")
        raise typer.Exit(code=1)
    except TransferError as exc:
        console.print(f"[bold red]Could not list {descriptor.location}:[/bold red] {exc}")
        raise typer.Exit(code=1)

    ReportRenderer(console=console).print_plan(
        deploy_plan,
        descriptor.cache_policy,
        environment=environment,
        show_skipped=show_skipped,
    )
