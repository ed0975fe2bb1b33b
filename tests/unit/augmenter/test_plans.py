"""
Unit tests for plan parsing and markdown rendering.
"""

import pytest

from dbsage.augmenter import (
    parse_maintenance_plan,
    parse_project_plan,
    render_maintenance_plan,
    render_project_plan,
)
from dbsage.augmenter.plans import format_minutes
from dbsage.errors import ExtractionError
from dbsage.schemas.plan import MaintenancePlan, MaintenanceTask, ProjectPlan, ProjectTask


# ─────────────────────────────────────────────────────────────────────────────
# Test: Parsing
# ─────────────────────────────────────────────────────────────────────────────

class TestParsePlans:
    """Model JSON to validated plans."""

    def test_task_status_reset(self):
        """Test: Statuses written by the model are ignored."""
        plan = parse_maintenance_plan(
            '{"title": "t", "status": "completed", "tasks": [{"title": "a", "status": "done"}]}'
        )
        assert plan.status.value == "pending"
        assert plan.tasks[0].status.value == "pending"

    def test_unknown_priority_rejected(self):
        """Test: Priorities are limited to high, medium and low."""
        with pytest.raises(ExtractionError):
            parse_maintenance_plan('{"title": "t", "priority": "urgent", "tasks": [{"title": "a"}]}')

    def test_negative_estimate_rejected(self):
        """Test: Estimates cannot be negative."""
        with pytest.raises(ExtractionError):
            parse_project_plan('{"project_name": "p", "tasks": [{"title": "a", "estimated_time_minutes": -5}]}')

    def test_blank_due_date(self):
        """Test: An empty due date means none."""
        plan = parse_project_plan('{"project_name": "p", "tasks": [{"title": "a", "due_date": ""}]}', "origin")
        assert plan.tasks[0].due_date is None
        assert plan.created_from == "origin"


# ─────────────────────────────────────────────────────────────────────────────
# Test: Rendering
# ─────────────────────────────────────────────────────────────────────────────

class TestRenderPlans:
    """Markdown output."""

    @pytest.mark.parametrize("minutes,text", [(0, "not estimated"), (45, "45 min"), (120, "2 h"), (150, "2 h 30 min")])
    def test_format_minutes(self, minutes, text):
        """Test: Durations in minutes and hours."""
        assert format_minutes(minutes) == text

    def test_maintenance_plan(self):
        """Test: Header, numbered tasks, steps and dependencies."""
        plan = MaintenancePlan(
            title="Reclaim disk space",
            description="Shrink the largest tables.",
            priority="high",
            tasks=[
                MaintenanceTask(title="Vacuum orders", steps=["VACUUM FULL orders", "ANALYZE orders"], estimated_time_minutes=30),
                MaintenanceTask(title="Reindex orders", estimated_time_minutes=45, dependencies=[1]),
            ],
        )

        text = render_maintenance_plan(plan)

        assert text.startswith("# Reclaim disk space\n\n**Priority:** high\n**Status:** pending\n")
        assert "**Estimated duration:** 1 h 15 min" in text
        assert "### 1. Vacuum orders" in text
        assert "**Steps:**\n\n1. VACUUM FULL orders\n2. ANALYZE orders\n" in text
        assert "### 2. Reindex orders" in text
        assert "**Depends on:** tasks 1" in text
        assert text.endswith("\n") and not text.endswith("\n\n")

    def test_project_plan(self):
        """Test: Origin and due dates are shown when present."""
        plan = ProjectPlan(
            project_name="Disk cleanup",
            created_from="Weekly disk review",
            tasks=[ProjectTask(title="Archive old orders", due_date="2026-12-31"), ProjectTask(title="Drop temp tables")],
        )

        text = render_project_plan(plan)

        assert "**Created from:** Weekly disk review" in text
        assert "**Due:** 2026-12-31" in text
        assert text.count("**Due:**") == 1
        assert "**Estimated effort:** not estimated" in text
        assert "**Steps:**" not in text
