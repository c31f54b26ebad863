"""Integration test: successive deploys of an evolving build to a local origin.

Exercises the real loader, planner, LocalDirectoryStore, ledger and lease
together, wired through ``DeployOrchestrator.from_settings``.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from sitedeploy.clients.local import LocalDirectoryStore
from sitedeploy.clients.memory import InMemoryCdn
from sitedeploy.config import DeploySettings
from sitedeploy.core.artifact_loader import load_artifact_set
from sitedeploy.core.orchestrator import DeployOrchestrator
from sitedeploy.core.planner import plan
from sitedeploy.core.run_ledger import DeployLedger
from sitedeploy.models.environment import EnvironmentDescriptor
from sitedeploy.models.policy import CachePolicy, CacheRule
from sitedeploy.models.reports import PathOutcome
from sitedeploy.models.states import DeployState


def _write(root: Path, files: dict[str, str]) -> None:
    for rel, text in files.items():
        target = root / rel
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(text)


@pytest.fixture
def settings(tmp_dir: Path) -> DeploySettings:
    return DeploySettings(
        _env_file=None,
        ledger_path=tmp_dir / "state" / "ledger.db",
        lock_path=tmp_dir / "state" / "locks.db",
        backoff_base_seconds=0.0,
        invalidation_poll_seconds=0.0,
    )


@pytest.fixture
def descriptor(tmp_dir: Path) -> EnvironmentDescriptor:
    return EnvironmentDescriptor(
        name="preview",
        backend="local",
        root=tmp_dir / "origin",
        cache_policy=CachePolicy(rules={
            "": CacheRule(max_age=60, revalidate=True),
            "assets/": CacheRule(max_age=31536000, immutable=True),
        }),
    )


class TestLocalDeployPipeline:
    def test_three_builds(self, tmp_dir, settings, descriptor):
        dist = tmp_dir / "dist"
        cdn = InMemoryCdn(polls_until_done=1)
        orchestrator = DeployOrchestrator.from_settings(descriptor, settings, cdn=cdn)
        store = orchestrator.store
        assert isinstance(store, LocalDirectoryStore)

        # Build 1: fresh site
        _write(dist, {"index.html": "v1", "assets/app.1.js": "a1", "about.html": "about"})
        first = orchestrator.deploy(load_artifact_set(dist), None, descriptor.cache_policy)
        assert first.state == DeployState.SUCCEEDED
        assert first.counts()["uploaded"] == 3
        assert store.metadata("assets/app.1.js")["cache_control"] == (
            "public, max-age=31536000, immutable"
        )

        # Build 2: new bundle name, changed index, about untouched
        (dist / "assets" / "app.1.js").unlink()
        _write(dist, {"index.html": "v2", "assets/app.2.js": "a2"})
        second = orchestrator.deploy(load_artifact_set(dist), None, descriptor.cache_policy)
        assert second.state == DeployState.SUCCEEDED
        assert second.outcome_for("about.html") == PathOutcome.SKIPPED
        assert second.outcome_for("assets/app.1.js") == PathOutcome.DELETED
        assert second.invalidation.paths == ("assets/app.1.js", "assets/app.2.js", "index.html")
        assert not (descriptor.root / "assets" / "app.1.js").exists()

        # Build 3: identical to build 2
        third = orchestrator.deploy(load_artifact_set(dist), None, descriptor.cache_policy)
        assert third.state == DeployState.SUCCEEDED
        assert third.invalidation is None
        assert plan(load_artifact_set(dist), store.list()).is_noop

        # Audit trail
        ledger = DeployLedger(settings.ledger_path)
        runs = ledger.list_runs(environment="preview")
        assert [r.run_id for r in runs] == [third.run_id, second.run_id, first.run_id]
        assert all(r.final_state == "succeeded" for r in runs)
        assert all(ledger.verify_chain(r.run_id) for r in runs)
        assert len(cdn.submissions) == 2
        assert orchestrator.lock.holder("preview") is None
