"""Terminal rendering of deploy plans, reports and history."""

from sitedeploy.report.renderer import ReportRenderer

__all__ = ["ReportRenderer"]
