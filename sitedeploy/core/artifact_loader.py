"""Build an ArtifactSet from a build output directory (e.g. ``dist/``)."""

from __future__ import annotations

import fnmatch
import logging
from collections.abc import Iterable
from pathlib import Path

from sitedeploy.models.artifacts import Artifact, ArtifactSet, PlanConflictError

logger = logging.getLogger(__name__)

# Tooling and VCS files that never belong on the published site.
DEFAULT_EXCLUDES: tuple[str, ...] = (
    ".git",
    ".git/*",
    "*/.git/*",
    ".DS_Store",
    "*/.DS_Store",
    "__pycache__/*",
    "*/__pycache__/*",
    "*.pyc",
    ".sitedeploy-index.json",
    "Thumbs.db",
)


def is_excluded(path: str, patterns: Iterable[str]) -> bool:
    return any(fnmatch.fnmatchcase(path, pattern) for pattern in patterns)


def load_artifact_set(
    root: Path,
    *,
    exclude: Iterable[str] = DEFAULT_EXCLUDES,
    build_id: str = "",
) -> ArtifactSet:
    """Walk ``root`` and return a path-sorted ArtifactSet.

    Raises
    ------
    PlanConflictError
        If ``root`` is not a directory.
    """
    root = Path(root)
    if not root.is_dir():
        raise PlanConflictError(f"Build output directory not found: {root}")

    patterns = tuple(exclude)
    artifacts: list[Artifact] = []
    skipped = 0
    for file_path in sorted(p for p in root.rglob("*") if p.is_file()):
        relative = file_path.relative_to(root).as_posix()
        if is_excluded(relative, patterns):
            skipped += 1
            continue
        artifacts.append(Artifact.from_bytes(relative, file_path.read_bytes()))

    artifact_set = ArtifactSet(artifacts=tuple(artifacts), build_id=build_id)
    artifact_set.validate_paths()
    logger.info(
        "Loaded %d artifact(s) (%d bytes) from %s, %d excluded",
        len(artifact_set),
        artifact_set.total_bytes,
        root,
        skipped,
    )
    return artifact_set
