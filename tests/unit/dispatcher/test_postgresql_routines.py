"""
Unit tests for the PostgreSQL analysis routines.
"""

import pytest

from conftest import FakeConnection, query_error
from dbsage.dispatcher import dispatch
from dbsage.schemas.analysis import AnalysisKind
from dbsage.schemas.connection import DatabaseKind

PG = DatabaseKind.POSTGRESQL


def section_table_rows(text: str, heading: str) -> list[str]:
    """Data rows of the first markdown table under ``heading``."""
    section = text.split(f"## {heading}", 1)[1]
    table = []
    for line in section.splitlines()[1:]:
        if line.startswith("## "):
            break
        if line.startswith("|"):
            table.append(line)
        elif table:
            break
    return table[2:]


BLOCKING_ROWS = [
    {
        "blocked_pid": 101 + i,
        "blocked_user": "app",
        "blocking_pid": 200,
        "blocking_user": "batch" if i else None,
        "blocked_statement": f"UPDATE orders SET status = 'x' WHERE id = {i}",
        "blocking_statement": "LOCK TABLE orders IN EXCLUSIVE MODE",
    }
    for i in range(3)
]

ACTIVE_LOCK_ROWS = [
    {
        "pid": 200, "usename": "batch", "locktype": "relation", "relation": "orders",
        "mode": "ExclusiveLock", "granted": True, "query": "LOCK TABLE orders", "age": "00:05:00",
    },
]


# ─────────────────────────────────────────────────────────────────────────────
# Test: Locks
# ─────────────────────────────────────────────────────────────────────────────

class TestPostgresLocks:
    """Lock analysis."""

    @pytest.mark.parametrize("kind", [AnalysisKind.LOCKS, AnalysisKind.POSTGRES_LOCKS])
    def test_three_blocking_rows(self, make_request, kind):
        """Test: Three blocked sessions give exactly three blocking data rows."""
        connection = FakeConnection(
            [
                ("blocked_locks", BLOCKING_ROWS),
                ("FROM pg_locks l", ACTIVE_LOCK_ROWS),
            ]
        )

        report = dispatch(make_request(PG, kind), connection)

        rows = section_table_rows(report.text, "Blocking Locks")
        assert len(rows) == 3
        assert rows[0].startswith("| 101 (app) | 200 (N/A) |")
        assert "200 (batch)" in rows[1]
        assert report.skipped == []

    def test_no_blocked_sessions(self, make_request):
        """Test: No blocking rows gives a success line."""
        connection = FakeConnection([("blocked_locks", []), ("FROM pg_locks l", ACTIVE_LOCK_ROWS)])

        report = dispatch(make_request(PG, AnalysisKind.LOCKS), connection)

        assert "✅ No blocked sessions" in report.text

    def test_active_locks_denied_still_reports_blocking(self, make_request):
        """Test: A failed section degrades to a warning; the rest runs."""
        connection = FakeConnection(
            [
                ("blocked_locks", BLOCKING_ROWS),
                ("FROM pg_locks l", query_error("permission denied for relation pg_locks")),
            ]
        )

        report = dispatch(make_request(PG, AnalysisKind.LOCKS), connection)

        assert [s.title for s in report.skipped] == ["Active locks"]
        assert "⚠️ Active locks unavailable" in report.text
        assert len(section_table_rows(report.text, "Blocking Locks")) == 3


# ─────────────────────────────────────────────────────────────────────────────
# Test: Other routines
# ─────────────────────────────────────────────────────────────────────────────

class TestPostgresRoutines:
    """Diagnostic, tuning, replication, fragmentation and plans."""

    def test_diagnostic(self, make_request):
        """Test: Version, connections and per-database statistics."""
        connection = FakeConnection(
            [
                ("version()", [{"version": "PostgreSQL 16.2"}]),
                ("count(*) AS connections", [{"connections": 12}]),
                ("pg_stat_database", [
                    {"datname": "orders", "numbackends": 5, "xact_commit": 100,
                     "xact_rollback": 1, "blks_read": 10, "blks_hit": 990},
                ]),
            ]
        )

        report = dispatch(make_request(PG, AnalysisKind.DIAGNOSTIC), connection)

        assert report.text.startswith("# PostgreSQL Diagnostic")
        assert "- **Version:** PostgreSQL 16.2" in report.text
        assert "- **Active connections:** 12" in report.text
        assert "| orders | 5 | 100 | 1 | 10 | 990 |" in report.text

    def test_tuning_low_hit_ratio_warns(self, make_request):
        """Test: A cache hit ratio under 99% is flagged."""
        connection = FakeConnection(
            [
                ("hit_ratio", [{"hit_ratio": 91.5}]),
                ("pg_settings", [{"name": "work_mem", "setting": "4096", "unit": "kB"}]),
            ]
        )

        report = dispatch(make_request(PG, AnalysisKind.TUNING), connection)

        assert "| work_mem | 4096 | kB |" in report.text
        assert "Cache hit ratio below 99%" in report.text

    def test_queries_without_pg_stat_statements(self, make_request):
        """Test: A missing extension skips only its section."""
        connection = FakeConnection(
            [
                ("pg_stat_statements", query_error('relation "pg_stat_statements" does not exist')),
                ("pg_stat_activity", []),
            ]
        )

        report = dispatch(make_request(PG, AnalysisKind.QUERY), connection)

        assert len(report.skipped) == 1
        assert "## Current Activity" in report.text

    def test_replication_inactive_slot(self, make_request):
        """Test: Inactive replication slots are warned about."""
        connection = FakeConnection(
            [
                ("pg_replication_slots", [
                    {"slot_name": "standby1", "plugin": None, "slot_type": "physical",
                     "database": None, "active": False, "restart_lsn": "0/3000000"},
                ]),
                ("pg_stat_replication", []),
            ]
        )

        report = dispatch(make_request(PG, AnalysisKind.POSTGRES_REPLICATION), connection)

        assert "No streaming replicas connected" in report.text
        assert "Inactive slots retain WAL: standby1" in report.text

    def test_fragmentation_table(self, make_request):
        """Test: Dead tuple percentages and vacuum dates."""
        connection = FakeConnection(
            [
                ("n_dead_tup", [
                    {"schemaname": "public", "tablename": "orders", "total_size": "1 GB",
                     "table_size": "800 MB", "n_dead_tup": 5000, "dead_tuple_percent": 12.5,
                     "last_vacuum": None, "last_autovacuum": "2024-05-01"},
                ]),
            ]
        )

        report = dispatch(make_request(PG, AnalysisKind.FRAGMENTATION), connection)

        assert "| public | orders | 1 GB | 800 MB | 5000 | 12.50% | Auto: 2024-05-01 |" in report.text

    def test_execution_plan(self, make_request):
        """Test: EXPLAIN runs on the given statement and the JSON plan is shown."""
        connection = FakeConnection([("EXPLAIN", [{"QUERY PLAN": [{"Plan": {"Node Type": "Seq Scan"}}]}])])
        request = make_request(PG, AnalysisKind.EXECUTION_PLAN, title="SELECT * FROM orders;")

        report = dispatch(request, connection)

        assert connection.queries == ["EXPLAIN (FORMAT JSON) SELECT * FROM orders"]
        assert '"Node Type": "Seq Scan"' in report.text
