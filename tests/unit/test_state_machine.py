"""Tests for DeployStateMachine — structural transition enforcement."""

from __future__ import annotations

import pytest

from sitedeploy.core.run_ledger import DeployLedger
from sitedeploy.core.state_machine import DeployStateMachine, InvalidTransitionError
from sitedeploy.models.states import TERMINAL_STATES, VALID_TRANSITIONS, DeployState


class TestTransitions:
    def test_starts_in_planning(self):
        machine = DeployStateMachine("run-1", "staging")
        assert machine.state == DeployState.PLANNING
        assert not machine.is_terminal

    def test_happy_path(self):
        machine = DeployStateMachine("run-1", "staging")
        for target in (
            DeployState.APPLYING,
            DeployState.INVALIDATING,
            DeployState.VERIFYING,
            DeployState.SUCCEEDED,
        ):
            machine.transition(target)
        assert machine.is_terminal
        assert machine.history[0] == (DeployState.PLANNING, DeployState.APPLYING)
        assert len(machine.history) == 4

    def test_planning_cannot_skip_to_invalidating(self):
        machine = DeployStateMachine("run-1", "staging")
        with pytest.raises(InvalidTransitionError, match="planning"):
            machine.transition(DeployState.INVALIDATING)
        assert machine.state == DeployState.PLANNING

    def test_planning_cannot_partially_fail(self):
        machine = DeployStateMachine("run-1", "staging")
        assert not machine.can_transition(DeployState.PARTIALLY_FAILED)

    @pytest.mark.parametrize("terminal", sorted(TERMINAL_STATES, key=lambda s: s.value))
    def test_terminal_states_have_no_exits(self, terminal):
        assert VALID_TRANSITIONS[terminal] == set()

    def test_no_transition_after_terminal(self):
        machine = DeployStateMachine("run-1", "staging")
        machine.transition(DeployState.FAILED)
        with pytest.raises(InvalidTransitionError):
            machine.transition(DeployState.APPLYING)


class TestLedgerRecording:
    def test_without_ledger_returns_none(self):
        assert DeployStateMachine("run-1", "staging").transition(DeployState.APPLYING) is None

    def test_transitions_are_recorded(self, ledger: DeployLedger):
        machine = DeployStateMachine("run-1", "staging", ledger=ledger, tool_version="0.1.0")
        machine.transition(DeployState.APPLYING, plan_hash="abc", detail={"upload": "2"})
        entry = machine.transition(DeployState.SUCCEEDED, plan_hash="abc")

        assert entry.to_state == "succeeded"
        entries = ledger.get_run_entries("run-1")
        assert [e.state_transition for e in entries] == [
            "planning->applying",
            "applying->succeeded",
        ]
        assert entries[0].detail == {"upload": "2"}
        assert entries[0].environment == "staging"
        assert entries[0].tool_version == "0.1.0"

    def test_rejected_transition_is_not_recorded(self, ledger: DeployLedger):
        machine = DeployStateMachine("run-1", "staging", ledger=ledger)
        with pytest.raises(InvalidTransitionError):
            machine.transition(DeployState.VERIFYING)
        assert ledger.get_run_entries("run-1") == []
