"""``sitedeploy history`` — past deploy runs from the ledger."""

from __future__ import annotations

from pathlib import Path

import typer

from sitedeploy.cli._common import console, load_settings
from sitedeploy.core.run_ledger import DeployLedger, LedgerIntegrityError
from sitedeploy.report.renderer import ReportRenderer


def history_cmd(
    environment: str = typer.Argument(None, help="Only show runs for this environment."),
    limit: int = typer.Option(20, "--limit", "-n", help="Maximum number of runs."),
    ledger_path: Path = typer.Option(None, "--ledger", help="Path to the ledger database."),
    verify_chain: bool = typer.Option(
        False, "--verify-chain", help="Check each run's hash chain."
    ),
) -> None:
    """List recent deploy runs, newest first."""
    settings = load_settings(ledger_path=ledger_path)
    if not settings.ledger_path.exists():
        console.print(f"[dim]No deploys recorded yet ({settings.ledger_path}).[/dim]")
        return

    ledger = DeployLedger(settings.ledger_path)
    runs = ledger.list_runs(environment=environment, limit=limit)
    if not runs:
        console.print("[dim]No matching deploy runs.[/dim]")
        return

    console.print(ReportRenderer(console=console).render_history(runs, environment=environment or ""))

    if verify_chain:
        broken: list[str] = []
        for run in runs:
            try:
                ledger.verify_chain(run.run_id)
            except LedgerIntegrityError as exc:
                console.print(f"[red]{exc}[/red]")
                broken.append(run.run_id)
        if broken:
            console.print(f"[bold red]Hash chain broken for:[/bold red] {', '.join(broken)}")
            raise typer.Exit(code=1)
        console.print(f"[green]Hash chain intact for {len(runs)} run(s).[/green]")
