"""Deploy outcome models — per-path results, invalidation outcome, final report."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from sitedeploy.models.artifacts import RemoteObjectState
from sitedeploy.models.plan import DeployAction
from sitedeploy.models.states import DeployState


class PathOutcome(str, Enum):
    UPLOADED = "uploaded"
    DELETED = "deleted"
    SKIPPED = "skipped"
    FAILED = "failed"
    CANCELLED = "cancelled"


class InvalidationStatus(str, Enum):
    """Status reported by the CDN for a submitted invalidation."""

    PENDING = "pending"
    DONE = "done"
    FAILED = "failed"


class PathResult(BaseModel):
    """Outcome of one plan entry."""

    model_config = ConfigDict(frozen=True)

    path: str
    action: DeployAction
    outcome: PathOutcome
    attempts: int = 0
    content_hash: str = ""  # hash now published (uploads only)
    error: str = ""


class DeployResult(BaseModel):
    """Output of ``DeployOrchestrator.apply`` — one PathResult per plan entry."""

    model_config = ConfigDict(frozen=True)

    results: tuple[PathResult, ...] = ()
    cancelled: bool = False

    def _where(self, action: DeployAction, outcome: PathOutcome) -> list[PathResult]:
        return [r for r in self.results if r.action == action and r.outcome == outcome]

    @property
    def uploaded(self) -> list[PathResult]:
        return self._where(DeployAction.UPLOAD, PathOutcome.UPLOADED)

    @property
    def deleted(self) -> list[PathResult]:
        return self._where(DeployAction.DELETE, PathOutcome.DELETED)

    @property
    def failed_uploads(self) -> list[PathResult]:
        return self._where(DeployAction.UPLOAD, PathOutcome.FAILED)

    @property
    def failed_deletes(self) -> list[PathResult]:
        return self._where(DeployAction.DELETE, PathOutcome.FAILED)

    @property
    def changed_paths(self) -> set[str]:
        """Paths whose published content actually changed."""
        return {r.path for r in self.uploaded} | {r.path for r in self.deleted}

    @property
    def has_changes(self) -> bool:
        return bool(self.changed_paths)

    def outcome_for(self, path: str) -> PathOutcome | None:
        for result in self.results:
            if result.path == path:
                return result.outcome
        return None


class InvalidationResult(BaseModel):
    """Outcome of submitting (and optionally verifying) one invalidation batch."""

    model_config = ConfigDict(frozen=True)

    paths: tuple[str, ...] = ()
    submitted: bool = False
    invalidation_id: str = ""
    caller_reference: str = ""
    status: InvalidationStatus | None = None
    attempts: int = 0
    timed_out: bool = False
    error: str = ""

    @property
    def confirmed(self) -> bool:
        """True once the CDN reports the invalidation complete."""
        return self.status == InvalidationStatus.DONE


class DeployReport(BaseModel):
    """User-visible record of one deploy run.

    Enumerates every path and its outcome.  ``state`` is SUCCEEDED only if
    every upload succeeded and the invalidation (when one was needed) was
    confirmed within the verification timeout.
    """

    model_config = ConfigDict(frozen=True)

    run_id: str
    environment: str
    state: DeployState
    plan_hash: str = ""
    paths: tuple[PathResult, ...] = ()
    invalidation: InvalidationResult | None = None
    resulting_state: RemoteObjectState = Field(default_factory=RemoteObjectState)
    notes: list[str] = []
    started_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    finished_at: datetime | None = None

    @property
    def succeeded(self) -> bool:
        return self.state == DeployState.SUCCEEDED

    @property
    def exit_code(self) -> int:
        """Process exit code: 0 succeeded, 1 failed, 2 partially failed."""
        if self.state == DeployState.SUCCEEDED:
            return 0
        if self.state == DeployState.PARTIALLY_FAILED:
            return 2
        return 1

    def outcome_for(self, path: str) -> PathOutcome | None:
        for result in self.paths:
            if result.path == path:
                return result.outcome
        return None

    def counts(self) -> dict[str, int]:
        counts = {o.value: 0 for o in PathOutcome}
        for result in self.paths:
            counts[result.outcome.value] += 1
        return counts
