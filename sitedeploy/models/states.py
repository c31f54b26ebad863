"""Deploy run state machine models."""

from __future__ import annotations

from enum import Enum


class DeployState(str, Enum):
    """Lifecycle of one deploy run against one environment."""

    PLANNING = "planning"
    APPLYING = "applying"
    INVALIDATING = "invalidating"
    VERIFYING = "verifying"
    SUCCEEDED = "succeeded"
    PARTIALLY_FAILED = "partially_failed"
    FAILED = "failed"


TERMINAL_STATES: frozenset[DeployState] = frozenset({
    DeployState.SUCCEEDED,
    DeployState.PARTIALLY_FAILED,
    DeployState.FAILED,
})


# Valid state transitions, enforced structurally by DeployStateMachine.
# Terminal states have no outgoing transitions.
VALID_TRANSITIONS: dict[DeployState, set[DeployState]] = {
    # PLANNING fails only on malformed input or cancellation
    DeployState.PLANNING: {DeployState.APPLYING, DeployState.FAILED},
    # Nothing changed: no invalidation to submit
    DeployState.APPLYING: {
        DeployState.INVALIDATING,
        DeployState.SUCCEEDED,
        DeployState.PARTIALLY_FAILED,
        DeployState.FAILED,
    },
    DeployState.INVALIDATING: {
        DeployState.VERIFYING,
        DeployState.PARTIALLY_FAILED,
        DeployState.FAILED,
    },
    DeployState.VERIFYING: {
        DeployState.SUCCEEDED,
        DeployState.PARTIALLY_FAILED,
        DeployState.FAILED,
    },
    DeployState.SUCCEEDED: set(),
    DeployState.PARTIALLY_FAILED: set(),
    DeployState.FAILED: set(),
}
