"""``sitedeploy deploy ENV`` — publish a build to an environment.

Runs plan -> apply -> invalidate -> verify under the environment lease,
records every transition in the deploy ledger and prints the report.

Exit codes: 0 succeeded, 1 failed, 2 partially failed (content live at
the origin, CDN propagation unconfirmed).
"""

from __future__ import annotations

import signal
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
from sitedeploy.core.env_lock import EnvironmentLockedError
from sitedeploy.core.orchestrator import CancelToken, DeployOrchestrator
from sitedeploy.core.planner import PlanConflictError, plan
from sitedeploy.core.production_guard import ProductionConfigError
from sitedeploy.report.renderer import ReportRenderer


def deploy_cmd(
    environment: str = typer.Argument(..., help="Target environment name."),
    source: Path = typer.Option(
        Path("dist"), "--source", "-s", help="Build output directory."
    ),
    config_file: Path = typer.Option(None, "--config", "-c", help=CONFIG_OPTION_HELP),
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Plan and print, without touching the store or CDN."
    ),
    wait: bool = typer.Option(
        True, "--wait/--no-wait", help="Wait for CDN invalidation to complete."
    ),
    verify_preconditions: bool = typer.Option(
        None,
        "--verify-preconditions/--no-verify-preconditions",
        help="Re-check each object's hash right before writing it.",
    ),
    lock_wait: float = typer.Option(
        None, "--lock-wait", help="Seconds to wait for another deploy's lease."
    ),
    show_skipped: bool = typer.Option(
        False, "--show-skipped", help="Also list unchanged paths."
    ),
) -> None:
    """Deploy the build output in --source to ENV."""
    settings = load_settings(
        environments_file=config_file,
        verify_preconditions=verify_preconditions,
        lock_wait_seconds=lock_wait,
    )
    descriptor = resolve_environment(settings, environment)
    require_source(source)
    renderer = ReportRenderer(console=console)

    try:
        artifacts = load_artifact_set(source)
    except PlanConflictError as exc:
        console.print(f"[bold red]Malformed build output:[/bold red] {exc}")
        raise typer.Exit(code=1)

    if dry_run:
        # No orchestrator: a dry run must not create the ledger or take the lease.
        try:
            store, _ = create_clients(descriptor, settings.credentials())
            remote_state = store.list()
        except TransferError as exc:
            console.print(f"[bold red]Could not list {descriptor.location}:[/bold red] {exc}")
            raise typer.Exit(code=1)
        renderer.print_plan(
            plan(artifacts, remote_state),
            descriptor.cache_policy,
            environment=environment,
            show_skipped=show_skipped,
        )
        console.print("[dim]Dry run: nothing was changed.[/dim]")
        return

    try:
        orchestrator = DeployOrchestrator.from_settings(descriptor, settings)
    except ProductionConfigError as exc:
        console.print(f"[bold red]{exc}[/bold red]")
        raise typer.Exit(code=1)

    # First Ctrl+C requests cancellation; objects not yet written are skipped.
    cancel = CancelToken()
    previous_handler = signal.getsignal(signal.SIGINT)

    def _on_interrupt(signum, frame) -> None:
        console.print("[yellow]Cancelling deploy after in-flight operations...[/yellow]")
        cancel.cancel()
        signal.signal(signal.SIGINT, previous_handler)

    console.print(
        f"[bold cyan]Deploying {len(artifacts)} file(s) to {environment}[/bold cyan] "
        f"[dim]({descriptor.location})[/dim]"
    )
    try:
        signal.signal(signal.SIGINT, _on_interrupt)
    except ValueError:
        # Not on the main thread (e.g. embedded runners); no signal hook.
        previous_handler = None

    try:
        report = orchestrator.deploy(artifacts, None, descriptor.cache_policy, cancel=cancel, wait=wait)
    except EnvironmentLockedError as exc:
        console.print(f"[bold red]{exc}[/bold red]")
        raise typer.Exit(code=1)
    except (PlanConflictError, TransferError) as exc:
        console.print(f"[bold red]Deploy aborted before any change:[/bold red] {exc}")
        raise typer.Exit(code=1)
    finally:
        if previous_handler is not None:
            signal.signal(signal.SIGINT, previous_handler)

    console.print()
    renderer.print_report(report, show_skipped=show_skipped)
    raise typer.Exit(code=report.exit_code)
