"""Build artifact models — immutable once produced by a build.

An ``ArtifactSet`` is scoped to one build and discarded once the deploy
that consumed it completes.  ``RemoteObjectState`` is the last-known view
of what the object store currently publishes.
"""

from __future__ import annotations

import mimetypes
from collections.abc import Iterable, Iterator
from posixpath import normpath

from pydantic import BaseModel, ConfigDict, Field

from sitedeploy.core.hasher import content_address

DEFAULT_CONTENT_TYPE = "application/octet-stream"


class PlanConflictError(RuntimeError):
    """Raised when an ArtifactSet is malformed (duplicate or invalid paths).

    Indicates a corrupt build rather than a transient condition; a deploy
    that hits this aborts before any side effect.
    """


def check_relative_path(path: str) -> str:
    """Validate a published path and return it unchanged.

    Paths are POSIX-relative: no leading slash, no backslashes, no ``..``
    segments, and already in normalized form.
    """
    if not path or path == "." or path.startswith("/") or "\\" in path:
        raise PlanConflictError(f"Artifact path must be relative: {path!r}")
    if normpath(path) != path or path.split("/")[0] == "..":
        raise PlanConflictError(f"Artifact path is not normalized: {path!r}")
    return path


def guess_content_type(path: str) -> str:
    content_type, _ = mimetypes.guess_type(path)
    return content_type or DEFAULT_CONTENT_TYPE


class Artifact(BaseModel):
    """One built file to be published.

    ``content_hash`` is the "sha256:<hex>" content address of ``content``.
    """

    model_config = ConfigDict(frozen=True)

    path: str
    content: bytes = Field(repr=False)
    content_hash: str
    content_type: str = DEFAULT_CONTENT_TYPE

    @classmethod
    def from_bytes(
        cls, path: str, data: bytes, *, content_type: str | None = None
    ) -> Artifact:
        """Build an Artifact, hashing ``data`` and guessing its content type."""
        check_relative_path(path)
        return cls(
            path=path,
            content=data,
            content_hash=content_address(data),
            content_type=content_type or guess_content_type(path),
        )

    @property
    def size_bytes(self) -> int:
        return len(self.content)


class ArtifactSet(BaseModel):
    """Ordered collection of artifacts produced by one build.

    The order is the producer's order and is preserved through planning.
    Path uniqueness is checked by ``validate_paths()``; the planner calls it
    before computing anything.
    """

    model_config = ConfigDict(frozen=True)

    artifacts: tuple[Artifact, ...] = ()
    build_id: str = ""

    @classmethod
    def from_pairs(
        cls, pairs: Iterable[tuple[str, bytes]], *, build_id: str = ""
    ) -> ArtifactSet:
        """Build a validated set from ``(path, bytes)`` pairs."""
        artifact_set = cls(
            artifacts=tuple(Artifact.from_bytes(p, d) for p, d in pairs),
            build_id=build_id,
        )
        artifact_set.validate_paths()
        return artifact_set

    def validate_paths(self) -> None:
        """Raise PlanConflictError on duplicate or non-relative paths."""
        seen: set[str] = set()
        duplicates: list[str] = []
        for artifact in self.artifacts:
            check_relative_path(artifact.path)
            if artifact.path in seen:
                duplicates.append(artifact.path)
            seen.add(artifact.path)
        if duplicates:
            raise PlanConflictError(
                f"Duplicate artifact paths in build: {sorted(set(duplicates))}"
            )

    def __iter__(self) -> Iterator[Artifact]:  # type: ignore[override]
        return iter(self.artifacts)

    def __len__(self) -> int:
        return len(self.artifacts)

    def __contains__(self, path: object) -> bool:
        return any(a.path == path for a in self.artifacts)

    @property
    def paths(self) -> list[str]:
        return [a.path for a in self.artifacts]

    def get(self, path: str) -> Artifact | None:
        for artifact in self.artifacts:
            if artifact.path == path:
                return artifact
        return None

    def hashes(self) -> dict[str, str]:
        """Return path -> content hash, in build order."""
        return {a.path: a.content_hash for a in self.artifacts}

    @property
    def total_bytes(self) -> int:
        return sum(a.size_bytes for a in self.artifacts)


class RemoteObjectState(BaseModel):
    """Published path -> content hash, as last listed from the object store.

    Durable state is owned by the store; this model is a snapshot.  A new
    snapshot is derived after a deploy via ``advance()`` rather than by
    mutation.
    """

    model_config = ConfigDict(frozen=True)

    objects: dict[str, str] = {}

    def __contains__(self, path: object) -> bool:
        return path in self.objects

    def __len__(self) -> int:
        return len(self.objects)

    def get(self, path: str) -> str | None:
        return self.objects.get(path)

    @property
    def paths(self) -> list[str]:
        return sorted(self.objects)

    def advance(
        self, uploaded: dict[str, str], deleted: Iterable[str]
    ) -> RemoteObjectState:
        """Return the state after applying successful uploads and deletes."""
        objects = dict(self.objects)
        objects.update(uploaded)
        for path in deleted:
            objects.pop(path, None)
        return RemoteObjectState(objects=objects)

    @classmethod
    def from_artifacts(cls, artifacts: ArtifactSet) -> RemoteObjectState:
        """The state a store would hold after publishing exactly ``artifacts``."""
        return cls(objects=artifacts.hashes())
