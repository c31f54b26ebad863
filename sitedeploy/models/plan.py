"""Deploy plan models — derived from an ArtifactSet and a RemoteObjectState."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict

from sitedeploy.core.hasher import compute_plan_hash
from sitedeploy.models.artifacts import Artifact


class DeployAction(str, Enum):
    """What the orchestrator does with one published path."""

    UPLOAD = "upload"
    SKIP = "skip"
    DELETE = "delete"


class PlanEntry(BaseModel):
    """One (path, action) pair of a DeployPlan.

    ``artifact`` is set for uploads and skips; ``remote_hash`` is the hash
    the plan saw in the store ("" when the path was absent).
    """

    model_config = ConfigDict(frozen=True)

    path: str
    action: DeployAction
    artifact: Artifact | None = None
    remote_hash: str = ""

    @property
    def local_hash(self) -> str:
        return self.artifact.content_hash if self.artifact else ""


class DeployPlan(BaseModel):
    """Ordered plan entries: build-order uploads/skips, then sorted deletes."""

    model_config = ConfigDict(frozen=True)

    entries: tuple[PlanEntry, ...] = ()

    def _with(self, action: DeployAction) -> list[PlanEntry]:
        return [e for e in self.entries if e.action == action]

    @property
    def uploads(self) -> list[PlanEntry]:
        return self._with(DeployAction.UPLOAD)

    @property
    def deletes(self) -> list[PlanEntry]:
        return self._with(DeployAction.DELETE)

    @property
    def skips(self) -> list[PlanEntry]:
        return self._with(DeployAction.SKIP)

    @property
    def changed_paths(self) -> set[str]:
        return {e.path for e in self.entries if e.action != DeployAction.SKIP}

    @property
    def is_noop(self) -> bool:
        return not self.changed_paths

    def as_pairs(self) -> list[tuple[str, DeployAction]]:
        return [(e.path, e.action) for e in self.entries]

    @property
    def plan_hash(self) -> str:
        return compute_plan_hash([
            {
                "path": e.path,
                "action": e.action.value,
                "local_hash": e.local_hash,
                "remote_hash": e.remote_hash,
            }
            for e in self.entries
        ])

    def summary(self) -> dict[str, int]:
        return {
            "upload": len(self.uploads),
            "delete": len(self.deletes),
            "skip": len(self.skips),
        }


class InvalidationBatch(BaseModel):
    """Published paths whose action was upload or delete, submitted once."""

    model_config = ConfigDict(frozen=True)

    paths: tuple[str, ...]
    caller_reference: str

    @classmethod
    def from_paths(cls, paths: set[str], caller_reference: str) -> InvalidationBatch:
        return cls(paths=tuple(sorted(paths)), caller_reference=caller_reference)
