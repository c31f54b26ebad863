"""Shared CLI helpers: settings, logging, environment lookup."""

from __future__ import annotations

import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler

from sitedeploy.config import DeploySettings
from sitedeploy.core.environments import (
    EnvironmentConfigError,
    EnvironmentNotFoundError,
    get_environment,
)
from sitedeploy.models.environment import EnvironmentDescriptor

console = Console()

CONFIG_OPTION_HELP = "Environments file (default: SITEDEPLOY_ENVIRONMENTS_FILE or sitedeploy.toml)."


def configure_logging(level: str) -> None:
    """Route log records through Rich so they interleave with CLI output."""
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def load_settings(**overrides) -> DeploySettings:
    """Settings from env/.env, with non-None CLI overrides applied."""
    values = {k: v for k, v in overrides.items() if v is not None}
    return DeploySettings(**values)


def resolve_environment(settings: DeploySettings, name: str) -> EnvironmentDescriptor:
    """Look up ``name`` or exit with a readable error."""
    try:
        return get_environment(settings.environments_file, name)
    except (EnvironmentConfigError, EnvironmentNotFoundError) as exc:
        console.print(f"[bold red]Environment error:[/bold red] {exc}")
        raise typer.Exit(code=1)


def require_source(source: Path) -> Path:
    if not source.is_dir():
        console.print(f"[bold red]Build output not found:[/bold red] {source}")
        console.print("[dim]Run your build first, or pass --source.[/dim]")
        raise typer.Exit(code=1)
    return source
