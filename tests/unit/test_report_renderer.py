"""Tests for ReportRenderer — Rich output for plans, reports and history."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from rich.console import Console

from sitedeploy.core.planner import plan
from sitedeploy.models.artifacts import RemoteObjectState
from sitedeploy.models.ledger import RunSummary
from sitedeploy.models.plan import DeployAction
from sitedeploy.models.reports import DeployReport, PathOutcome, PathResult
from sitedeploy.models.states import DeployState
from sitedeploy.report.renderer import ReportRenderer


def _renderer() -> ReportRenderer:
    return ReportRenderer(console=Console(record=True, width=160))


class TestReportRenderer:
    def test_plan_shows_actions_and_cache_headers(self, make_artifacts, policy):
        renderer = _renderer()
        deploy_plan = plan(
            make_artifacts({"assets/app.js": "x"}), RemoteObjectState(objects={"old.js": "sha256:1"})
        )
        renderer.print_plan(deploy_plan, policy, environment="staging")
        text = renderer.console.export_text()

        assert "assets/app.js" in text
        assert "immutable" in text
        assert "old.js" in text
        assert "Upload: 1" in text

    def test_noop_plan(self, make_artifacts):
        renderer = _renderer()
        artifacts = make_artifacts({"index.html": "x"})
        renderer.print_plan(plan(artifacts, RemoteObjectState.from_artifacts(artifacts)))
        assert "Nothing to deploy" in renderer.console.export_text()

    def test_report_lists_failures_and_notes(self):
        renderer = _renderer()
        report = DeployReport(
            run_id="sd-1",
            environment="production",
            state=DeployState.FAILED,
            paths=(
                PathResult(path="index.html", action=DeployAction.UPLOAD,
                           outcome=PathOutcome.UPLOADED, attempts=1),
                PathResult(path="app.js", action=DeployAction.UPLOAD,
                           outcome=PathOutcome.FAILED, attempts=3, error="SlowDown"),
            ),
            notes=["1 upload(s) failed: app.js"],
        )
        renderer.print_report(report)
        text = renderer.console.export_text()

        assert "FAILED" in text
        assert "SlowDown" in text
        assert "1 upload(s) failed" in text

    def test_history_table(self):
        renderer = _renderer()
        start = datetime(2026, 1, 1, tzinfo=timezone.utc)
        run = RunSummary(
            run_id="sd-20260101-000000-abcdef",
            environment="production",
            final_state="partially_failed",
            plan_hash="f" * 64,
            started_at=start,
            finished_at=start + timedelta(seconds=42),
            entry_count=4,
        )
        renderer.console.print(renderer.render_history([run], environment="production"))
        text = renderer.console.export_text()

        assert "sd-20260101-000000-abcdef" in text
        assert "partially_failed" in text
        assert "42.0s" in text
