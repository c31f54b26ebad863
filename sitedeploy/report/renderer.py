"""Rich terminal renderer for deploy plans, reports and run history.

Color scheme
------------
- green     : uploaded / succeeded
- cyan      : deleted
- dim       : skipped
- bold red  : failed
- yellow    : cancelled / partially failed
"""

from __future__ import annotations

from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from sitedeploy.models.ledger import RunSummary
from sitedeploy.models.plan import DeployAction, DeployPlan
from sitedeploy.models.policy import CachePolicy
from sitedeploy.models.reports import DeployReport, PathOutcome
from sitedeploy.models.states import DeployState

# ---------------------------------------------------------------------------
# Outcome -> Rich markup
# ---------------------------------------------------------------------------

_OUTCOME_ICONS: dict[PathOutcome, str] = {
    PathOutcome.UPLOADED: "[green]UPLOADED[/green]",
    PathOutcome.DELETED: "[cyan]DELETED[/cyan]",
    PathOutcome.SKIPPED: "[dim]SKIPPED[/dim]",
    PathOutcome.FAILED: "[bold red]FAILED[/bold red]",
    PathOutcome.CANCELLED: "[yellow]CANCELLED[/yellow]",
}

_ACTION_ICONS: dict[DeployAction, str] = {
    DeployAction.UPLOAD: "[green]upload[/green]",
    DeployAction.DELETE: "[cyan]delete[/cyan]",
    DeployAction.SKIP: "[dim]skip[/dim]",
}

_STATE_STYLES: dict[str, str] = {
    DeployState.SUCCEEDED.value: "bold green",
    DeployState.PARTIALLY_FAILED.value: "bold yellow",
    DeployState.FAILED.value: "bold red",
}


class ReportRenderer:
    """Renders plans and DeployReports as Rich terminal output.

    Parameters
    ----------
    console:
        Rich Console instance.  A new one is created if not provided.
    """

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    # ------------------------------------------------------------------
    # Plan
    # ------------------------------------------------------------------

    def render_plan(
        self,
        plan: DeployPlan,
        policy: CachePolicy | None = None,
        *,
        environment: str = "",
        show_skipped: bool = False,
    ) -> Panel:
        table = Table(show_header=True, header_style="bold cyan", expand=True)
        table.add_column("Action", width=8, justify="center")
        table.add_column("Path", min_width=30)
        table.add_column("Cache-Control", min_width=20)

        for entry in plan.entries:
            if entry.action == DeployAction.SKIP and not show_skipped:
                continue
            cache = (
                policy.resolve(entry.path)
                if policy is not None and entry.action == DeployAction.UPLOAD
                else "[dim]-[/dim]"
            )
            table.add_row(_ACTION_ICONS[entry.action], entry.path, cache)

        summary = plan.summary()
        footer = "  |  ".join([
            f"[bold]Upload:[/bold] {summary['upload']}",
            f"[bold]Delete:[/bold] {summary['delete']}",
            f"[bold]Skip:[/bold] {summary['skip']}",
            f"[bold]Plan:[/bold] {plan.plan_hash[:12]}",
        ])
        body = (
            Group(table, Text(""), Text.from_markup(footer))
            if not plan.is_noop or show_skipped
            else Text.from_markup(f"[green]Nothing to deploy.[/green]  {footer}")
        )
        return Panel(
            body,
            title=f"[bold]Deploy plan[/bold] {environment}".rstrip(),
            border_style="blue",
            padding=(1, 2),
        )

    def print_plan(self, plan: DeployPlan, policy: CachePolicy | None = None, **kwargs) -> None:
        self.console.print(self.render_plan(plan, policy, **kwargs))

    # ------------------------------------------------------------------
    # Report
    # ------------------------------------------------------------------

    def render_report(self, report: DeployReport, *, show_skipped: bool = False) -> Panel:
        table = Table(show_header=True, header_style="bold cyan", expand=True)
        table.add_column("Path", min_width=30)
        table.add_column("Outcome", min_width=10, justify="center")
        table.add_column("Attempts", width=8, justify="right")
        table.add_column("Details", min_width=20)

        for result in report.paths:
            if result.outcome == PathOutcome.SKIPPED and not show_skipped:
                continue
            table.add_row(
                result.path,
                _OUTCOME_ICONS[result.outcome],
                str(result.attempts) if result.attempts else "[dim]-[/dim]",
                f"[red]{result.error}[/red]" if result.error else "[dim]-[/dim]",
            )

        counts = report.counts()
        state_style = _STATE_STYLES.get(report.state.value, "bold")
        summary_parts = [
            f"[bold]Run:[/bold] {report.run_id}",
            f"[bold]State:[/bold] [{state_style}]{report.state.value.upper()}[/{state_style}]",
            f"[bold]Uploaded:[/bold] {counts['uploaded']}",
            f"[bold]Deleted:[/bold] {counts['deleted']}",
            f"[bold]Skipped:[/bold] {counts['skipped']}",
            f"[bold]Failed:[/bold] {counts['failed']}",
        ]
        inv = report.invalidation
        if inv is not None and inv.paths:
            if inv.confirmed:
                inv_status = "[green]confirmed[/green]"
            elif inv.submitted:
                inv_status = f"[yellow]{inv.status.value if inv.status else 'submitted'}[/yellow]"
            else:
                inv_status = "[bold red]not submitted[/bold red]"
            summary_parts.append(f"[bold]Invalidation:[/bold] {inv_status}")

        parts: list = [table, Text(""), Text.from_markup("  |  ".join(summary_parts))]
        for note in report.notes:
            parts.append(Text(f"- {note}", style="yellow"))

        return Panel(
            Group(*parts),
            title=f"[bold]Deploy report[/bold] {report.environment}",
            subtitle=f"Plan {report.plan_hash[:12]}",
            border_style=state_style.replace("bold ", ""),
            padding=(1, 2),
        )

    def print_report(self, report: DeployReport, **kwargs) -> None:
        self.console.print(self.render_report(report, **kwargs))

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def render_history(self, runs: list[RunSummary], *, environment: str = "") -> Table:
        table = Table(
            title=f"Deploy history {environment}".rstrip(),
            show_header=True,
            header_style="bold cyan",
        )
        table.add_column("Run", style="cyan")
        table.add_column("Environment")
        table.add_column("State", justify="center")
        table.add_column("Started (UTC)")
        table.add_column("Duration", justify="right")
        table.add_column("Plan", style="dim")

        for run in runs:
            style = _STATE_STYLES.get(run.final_state, "yellow")
            duration = (run.finished_at - run.started_at).total_seconds()
            table.add_row(
                run.run_id,
                run.environment,
                f"[{style}]{run.final_state}[/{style}]",
                run.started_at.strftime("%Y-%m-%d %H:%M:%S"),
                f"{duration:.1f}s",
                run.plan_hash[:12] or "-",
            )
        return table
