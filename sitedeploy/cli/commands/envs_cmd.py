"""``sitedeploy envs`` — list configured deploy environments."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.table import Table

from sitedeploy.cli._common import CONFIG_OPTION_HELP, console, load_settings
from sitedeploy.core.environments import EnvironmentConfigError, load_environments


def envs_cmd(
    config_file: Path = typer.Option(None, "--config", "-c", help=CONFIG_OPTION_HELP),
) -> None:
    """Show every environment in the environments file."""
    settings = load_settings(environments_file=config_file)
    try:
        environments = load_environments(settings.environments_file)
    except EnvironmentConfigError as exc:
        console.print(f"[bold red]Environment error:[/bold red] {exc}")
        raise typer.Exit(code=1)

    if not environments:
        console.print(f"[dim]No environments defined in {settings.environments_file}.[/dim]")
        return

    table = Table(title="Deploy environments")
    table.add_column("Name", style="cyan")
    table.add_column("Backend")
    table.add_column("Location")
    table.add_column("CDN")
    table.add_column("Cache rules", justify="right")

    for name in sorted(environments):
        env = environments[name]
        cdn = env.distribution_id if env.has_cdn else "[dim]-[/dim]"
        table.add_row(name, env.backend, env.location, cdn, str(len(env.cache_policy.rules)))

    console.print(table)
