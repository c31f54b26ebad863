"""Environment descriptors loaded from ``sitedeploy.toml``.

Example::

    [environments.production]
    backend = "s3"
    bucket = "example-site-prod"
    region = "us-east-1"
    distribution_id = "E2EXAMPLE"
    cdn_path_prefix = ""

    [environments.production.cache_policy.rules]
    "" = { max_age = 0, revalidate = true }
    "assets/" = { max_age = 31536000, immutable = true }
    "index.html" = { max_age = 60, revalidate = true }

    [environments.preview]
    backend = "local"
    root = "build/preview-origin"
"""

from __future__ import annotations

import logging
import tomllib
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from sitedeploy.models.environment import EnvironmentDescriptor

logger = logging.getLogger(__name__)


class EnvironmentConfigError(RuntimeError):
    """The environments file is missing, unreadable or invalid."""


class EnvironmentNotFoundError(RuntimeError):
    """No environment with the requested name is configured."""


def parse_environments(data: dict[str, Any], *, base_dir: Path | None = None) -> dict[str, EnvironmentDescriptor]:
    """Build descriptors from the parsed ``[environments.*]`` tables.

    Relative ``root`` paths are resolved against ``base_dir`` (the directory
    holding the TOML file).
    """
    tables = data.get("environments", {})
    if not isinstance(tables, dict):
        raise EnvironmentConfigError("'environments' must be a table")

    descriptors: dict[str, EnvironmentDescriptor] = {}
    for name, table in tables.items():
        if not isinstance(table, dict):
            raise EnvironmentConfigError(f"environments.{name} must be a table")
        fields = dict(table)
        if base_dir is not None and "root" in fields and not Path(fields["root"]).is_absolute():
            fields["root"] = base_dir / fields["root"]
        try:
            descriptors[name] = EnvironmentDescriptor(name=name, **fields)
        except ValidationError as exc:
            raise EnvironmentConfigError(f"Invalid environment {name!r}: {exc}") from exc
    return descriptors


def load_environments(path: Path) -> dict[str, EnvironmentDescriptor]:
    """Load every environment defined in the TOML file at ``path``."""
    path = Path(path)
    try:
        with path.open("rb") as fh:
            data = tomllib.load(fh)
    except FileNotFoundError as exc:
        raise EnvironmentConfigError(f"Environments file not found: {path}") from exc
    except tomllib.TOMLDecodeError as exc:
        raise EnvironmentConfigError(f"Invalid TOML in {path}: {exc}") from exc

    descriptors = parse_environments(data, base_dir=path.parent)
    logger.debug("Loaded %d environment(s) from %s", len(descriptors), path)
    return descriptors


def get_environment(path: Path, name: str) -> EnvironmentDescriptor:
    environments = load_environments(path)
    try:
        return environments[name]
    except KeyError:
        raise EnvironmentNotFoundError(
            f"Environment {name!r} not found in {path}. "
            f"Configured: {sorted(environments) or 'none'}"
        ) from None
