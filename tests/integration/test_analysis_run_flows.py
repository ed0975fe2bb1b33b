"""
Analysis Run Integration Tests.

dispatch -> augment -> records store, end to end:
- Completed runs with insight and visualization
- Insight failures that keep the report
- Dispatch and augmentation failures that mark the record as failed
"""

import pytest

from conftest import FakeBackend, FakeConnection
from dbsage.errors import BackendError, ConfigurationError, DatabaseConnectionError
from dbsage.schemas.analysis import AnalysisKind, AnalysisStatus
from dbsage.schemas.chart import ChartKind
from dbsage.schemas.connection import DatabaseKind
from dbsage.services import run_analysis
from dbsage.storage import get_record, list_records

pytestmark = pytest.mark.integration

CHART_JSON = '{"labels": ["Storage", "Backup"], "series": [{"name": "Items", "values": [1, 1]}], "title": "Items per category"}'


# ─────────────────────────────────────────────────────────────────────────────
# Test: Completed runs
# ─────────────────────────────────────────────────────────────────────────────

class TestCompletedRuns:
    """The record ends completed."""

    def test_with_visualization(self, db, make_request, test_settings):
        """Test: Insight stored, chart appended to the stored report."""
        backend = FakeBackend(["## Summary\nRoutine checks.", CHART_JSON])
        request = make_request(DatabaseKind.POSTGRESQL, AnalysisKind.CHECKLIST)

        run = run_analysis(db, request, FakeConnection(), backend=backend,
                           chart_kind=ChartKind.TABLE, settings=test_settings)

        record = get_record(db, run.record.id)
        assert record.status == AnalysisStatus.COMPLETED.value
        assert record.insight == "## Summary\nRoutine checks."
        assert record.report == run.text
        assert run.text.startswith(run.report.text)
        assert "\n\n## Visualization\n\n**Type:** table\n**Reason:** Requested by the caller\n\n```\n" in run.text
        assert "| Storage | 1.00 |" in run.text

    def test_html_visualization(self, db, make_request, test_settings):
        """Test: HTML charts are fenced as html."""
        backend = FakeBackend(["insight", CHART_JSON])
        request = make_request(DatabaseKind.MYSQL, AnalysisKind.CHECKLIST)

        run = run_analysis(db, request, FakeConnection(), backend=backend,
                           chart_kind=ChartKind.HTML, settings=test_settings)

        assert "```html\n<!DOCTYPE html>" in run.text

    def test_insight_failure_keeps_report(self, db, make_request, test_settings):
        """Test: A failed insight completes the record with the bare report."""
        backend = FakeBackend([BackendError("rate limited")])
        request = make_request(DatabaseKind.POSTGRESQL, AnalysisKind.CHECKLIST)

        run = run_analysis(db, request, FakeConnection(), backend=backend, settings=test_settings)

        assert run.augmentation is None
        assert run.text == run.report.text
        record = get_record(db, run.record.id)
        assert record.status == "completed"
        assert record.insight is None

    def test_without_augmentation(self, db, make_request, test_settings):
        """Test: augment=False makes no backend call."""
        backend = FakeBackend()
        request = make_request(DatabaseKind.ORACLE, AnalysisKind.CHECKLIST, title="deep")

        run = run_analysis(db, request, FakeConnection(), backend=backend, augment=False, settings=test_settings)

        assert backend.calls == []
        assert run.record.status == "completed"
        assert run.text.startswith("# Deep Checklist - Oracle")

    def test_no_chart_data(self, db, make_request, test_settings):
        """Test: Nothing plottable means no visualization section."""
        backend = FakeBackend(["insight", '{"chart_type": "bar", "reason": "x"}', "nothing to plot"])
        request = make_request(DatabaseKind.POSTGRESQL, AnalysisKind.CHECKLIST)

        run = run_analysis(db, request, FakeConnection(), backend=backend, settings=test_settings)

        assert "## Visualization" not in run.text
        assert run.record.insight == "insight"


# ─────────────────────────────────────────────────────────────────────────────
# Test: Failed runs
# ─────────────────────────────────────────────────────────────────────────────

class TestFailedRuns:
    """The record ends in error and the exception reaches the caller."""

    def test_connection_lost(self, db, make_request, test_settings):
        """Test: A dead connection fails the run."""
        connection = FakeConnection(default=DatabaseConnectionError("server closed the connection"))
        request = make_request(DatabaseKind.POSTGRESQL, AnalysisKind.DIAGNOSTIC)

        with pytest.raises(DatabaseConnectionError):
            run_analysis(db, request, connection, settings=test_settings)

        (record,) = list_records(db)
        assert record.status == AnalysisStatus.ERROR.value
        assert record.error_message == "server closed the connection"

    def test_configuration_error(self, db, make_request, test_settings):
        """Test: A rejected request is recorded before raising."""
        request = make_request(DatabaseKind.POSTGRESQL, AnalysisKind.LOGS)

        with pytest.raises(ConfigurationError):
            run_analysis(db, request, FakeConnection(), settings=test_settings)

        (record,) = list_records(db)
        assert record.status == "error"
        assert "log file path" in record.error_message

    def test_unexpected_augment_failure(self, db, make_request, test_settings):
        """Test: An error other than BackendError during augmentation fails the record with its report."""
        backend = FakeBackend([RuntimeError("backend adapter crashed")])
        request = make_request(DatabaseKind.POSTGRESQL, AnalysisKind.CHECKLIST)

        with pytest.raises(RuntimeError):
            run_analysis(db, request, FakeConnection(), backend=backend, settings=test_settings)

        (record,) = list_records(db)
        assert record.status == AnalysisStatus.ERROR.value
        assert record.error_message == "backend adapter crashed"
        assert "Checklist - " in record.report
