"""sitedeploy data models — all Pydantic v2, all frozen (immutable)."""

from sitedeploy.models.artifacts import (
    Artifact,
    ArtifactSet,
    PlanConflictError,
    RemoteObjectState,
)
from sitedeploy.models.environment import DeployCredentials, EnvironmentDescriptor
from sitedeploy.models.ledger import LedgerEntry, RunSummary
from sitedeploy.models.plan import DeployAction, DeployPlan, InvalidationBatch, PlanEntry
from sitedeploy.models.policy import NO_CACHE_HEADER, CachePolicy, CacheRule
from sitedeploy.models.reports import (
    DeployReport,
    DeployResult,
    InvalidationResult,
    InvalidationStatus,
    PathOutcome,
    PathResult,
)
from sitedeploy.models.states import TERMINAL_STATES, VALID_TRANSITIONS, DeployState

__all__ = [
    # artifacts
    "Artifact",
    "ArtifactSet",
    "RemoteObjectState",
    "PlanConflictError",
    # policy
    "CachePolicy",
    "CacheRule",
    "NO_CACHE_HEADER",
    # plan
    "DeployAction",
    "PlanEntry",
    "DeployPlan",
    "InvalidationBatch",
    # reports
    "PathOutcome",
    "PathResult",
    "DeployResult",
    "InvalidationStatus",
    "InvalidationResult",
    "DeployReport",
    # states
    "DeployState",
    "VALID_TRANSITIONS",
    "TERMINAL_STATES",
    # environment
    "DeployCredentials",
    "EnvironmentDescriptor",
    # ledger
    "LedgerEntry",
    "RunSummary",
]
