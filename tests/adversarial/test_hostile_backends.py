"""Adversarial tests — store and CDN backends that misbehave.

These tests verify that:
1. A store failing every write never yields a SUCCEEDED run
2. A CDN that reports failure is never upgraded to success
3. Unexpected exceptions still leave a terminal ledger record
4. Malformed build paths never reach the store
"""

from __future__ import annotations

import pytest

from sitedeploy.clients.memory import InMemoryCdn, InMemoryObjectStore
from sitedeploy.models.artifacts import PlanConflictError
from sitedeploy.models.reports import InvalidationStatus, PathOutcome
from sitedeploy.models.states import DeployState


class _RejectingCdn(InMemoryCdn):
    def status(self, invalidation_id: str) -> InvalidationStatus:
        return InvalidationStatus.FAILED


class _ExplodingStore(InMemoryObjectStore):
    def put(self, path, data, **kwargs):
        raise MemoryError("simulated crash")


class TestHostileBackends:
    def test_every_write_failing_is_failed(self, make_orchestrator, make_artifacts, policy, store, cdn):
        for name in ("index.html", "app.js", "style.css"):
            store.put_failures[name] = -1
        report = make_orchestrator().deploy(
            make_artifacts({"index.html": "x", "app.js": "y", "style.css": "z"}), None, policy
        )
        assert report.state == DeployState.FAILED
        assert all(r.outcome == PathOutcome.FAILED for r in report.paths)
        assert cdn.submissions == []
        assert report.resulting_state.objects == {}

    def test_cdn_failure_is_partial_not_success(self, make_orchestrator, make_artifacts, policy):
        report = make_orchestrator(cdn=_RejectingCdn()).deploy(
            make_artifacts({"index.html": "x"}), None, policy
        )
        assert report.state == DeployState.PARTIALLY_FAILED
        assert report.invalidation.status == InvalidationStatus.FAILED
        assert any("reported failure" in note for note in report.notes)

    def test_unexpected_exception_is_recorded_as_failed(self, make_orchestrator, make_artifacts, policy, ledger):
        orchestrator = make_orchestrator(store=_ExplodingStore(), ledger=ledger)
        with pytest.raises(MemoryError):
            orchestrator.deploy(make_artifacts({"index.html": "x"}), None, policy, run_id="crash")
        assert ledger.get_latest("crash").to_state == "failed"
        assert ledger.verify_chain("crash")

    @pytest.mark.parametrize("path", ["../../etc/passwd", "/etc/passwd", "a/./b.html"])
    def test_malformed_paths_rejected_before_store(self, make_artifacts, path):
        with pytest.raises(PlanConflictError):
            make_artifacts({path: "x"})
