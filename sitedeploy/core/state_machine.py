"""Deploy run state machine.

Enforces:
- Valid state transitions only (VALID_TRANSITIONS table)
- No transition out of a terminal state
- Every transition recorded in the deploy ledger, when one is attached
"""

from __future__ import annotations

import logging

from sitedeploy.core.run_ledger import DeployLedger
from sitedeploy.models.ledger import LedgerEntry
from sitedeploy.models.states import TERMINAL_STATES, VALID_TRANSITIONS, DeployState

logger = logging.getLogger(__name__)


class InvalidTransitionError(RuntimeError):
    """Raised when a requested state transition is not valid."""


class DeployStateMachine:
    """Tracks one deploy run from PLANNING to a terminal state.

    Parameters
    ----------
    run_id:
        The deploy run this machine belongs to.
    environment:
        Target environment name, recorded on every ledger entry.
    ledger:
        Optional ledger to append transitions into.
    tool_version:
        Recorded on every ledger entry.
    """

    def __init__(
        self,
        run_id: str,
        environment: str,
        *,
        ledger: DeployLedger | None = None,
        tool_version: str = "",
    ) -> None:
        self.run_id = run_id
        self.environment = environment
        self._ledger = ledger
        self._tool_version = tool_version
        self._state = DeployState.PLANNING
        self._history: list[tuple[DeployState, DeployState]] = []

    @property
    def state(self) -> DeployState:
        return self._state

    @property
    def is_terminal(self) -> bool:
        return self._state in TERMINAL_STATES

    @property
    def history(self) -> list[tuple[DeployState, DeployState]]:
        return list(self._history)

    def can_transition(self, target: DeployState) -> bool:
        return target in VALID_TRANSITIONS.get(self._state, set())

    def transition(
        self,
        target: DeployState,
        *,
        plan_hash: str = "",
        detail: dict[str, str] | None = None,
    ) -> LedgerEntry | None:
        """Move to ``target``, recording the transition.

        Returns the sealed LedgerEntry, or None when no ledger is attached.
        """
        if not self.can_transition(target):
            allowed = sorted(s.value for s in VALID_TRANSITIONS.get(self._state, set()))
            raise InvalidTransitionError(
                f"Cannot transition run {self.run_id} from {self._state.value} "
                f"to {target.value}. Allowed: {allowed}"
            )

        current = self._state
        self._state = target
        self._history.append((current, target))
        logger.info(
            "Run %s [%s]: %s -> %s",
            self.run_id,
            self.environment,
            current.value,
            target.value,
        )

        if self._ledger is None:
            return None
        return self._ledger.append(
            LedgerEntry(
                run_id=self.run_id,
                environment=self.environment,
                state_transition=f"{current.value}->{target.value}",
                plan_hash=plan_hash,
                detail=detail or {},
                tool_version=self._tool_version,
            )
        )
