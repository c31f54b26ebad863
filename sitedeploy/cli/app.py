"""Main Typer application — imports and registers all CLI commands.

Entry point: ``sitedeploy`` (configured via pyproject.toml scripts).
"""

from __future__ import annotations

import typer

from sitedeploy import __version__
from sitedeploy.cli._common import configure_logging, console, load_settings
from sitedeploy.cli.commands.deploy_cmd import deploy_cmd
from sitedeploy.cli.commands.envs_cmd import envs_cmd
from sitedeploy.cli.commands.history_cmd import history_cmd
from sitedeploy.cli.commands.plan_cmd import plan_cmd

app = typer.Typer(
    name="sitedeploy",
    help="Sitedeploy: incremental, cache-correct static site deploys.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"sitedeploy {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    log_level: str = typer.Option(
        None, "--log-level", help="Log level (default: SITEDEPLOY_LOG_LEVEL or INFO)."
    ),
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True, help="Show version and exit."
    ),
) -> None:
    """Incremental, cache-correct static site deploys."""
    configure_logging(log_level or load_settings().log_level)


# Register subcommands
app.command(name="plan", help="Show what a deploy would change.")(plan_cmd)
app.command(name="deploy", help="Deploy a build to an environment.")(deploy_cmd)
app.command(name="history", help="List recent deploy runs.")(history_cmd)
app.command(name="envs", help="List configured environments.")(envs_cmd)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
