"""
Chat Session Integration Tests.

Full turns through the compiled graph with a scripted backend and
connection:
- Query turns (success and failure)
- Conversational turns
- Cancellation and deadlines
- History sessions over stored analyses
"""

import threading

import pytest

from conftest import FakeBackend, FakeConnection, query_error
from dbsage.agents.chat_agent import open_history_session, open_session
from dbsage.config import Settings
from dbsage.errors import DeadlineExceededError, TurnCancelledError
from dbsage.prompts import HISTORY_CHAT_SYSTEM
from dbsage.schemas.analysis import AnalysisKind
from dbsage.schemas.chat import TurnRole
from dbsage.schemas.connection import DatabaseKind
from dbsage.storage import create_record, list_records, save_record

pytestmark = pytest.mark.integration


def blocking_reply(started: threading.Event, release: threading.Event, reply: str = "late"):
    """Backend reply that blocks until ``release`` is set."""
    def _reply(system_prompt, messages):
        started.set()
        release.wait(timeout=5)
        return reply
    return _reply


# ─────────────────────────────────────────────────────────────────────────────
# Test: Query turns
# ─────────────────────────────────────────────────────────────────────────────

class TestQueryTurns:
    """Generate, execute, interpret."""

    def test_successful_turn(self, make_descriptor, test_settings):
        """Test: The statement is capped, executed and interpreted."""
        backend = FakeBackend(["```sql\nSELECT COUNT(*) AS n FROM orders;\n```", "There are 42 orders."])
        connection = FakeConnection([("FROM orders", [{"n": 42}])])
        session = open_session(make_descriptor(DatabaseKind.POSTGRESQL), connection, backend, settings=test_settings)

        reply = session.send("how many rows in orders?")

        assert reply == "There are 42 orders."
        assert connection.queries == ["SELECT COUNT(*) AS n FROM orders LIMIT 100"]

        user_turn, assistant_turn = session.transcript.turns
        assert user_turn.role == TurnRole.USER
        assert user_turn.content == "how many rows in orders?"
        assert assistant_turn.query == "SELECT COUNT(*) AS n FROM orders LIMIT 100"
        assert assistant_turn.result == "n\n-\n42"

        generate, interpret = backend.calls
        assert (generate["max_tokens"], generate["temperature"]) == (500, 0.3)
        assert "PostgreSQL" in generate["system"]
        assert "how many rows in orders?" in generate["prompt"]
        assert (interpret["max_tokens"], interpret["temperature"]) == (1500, 0.7)
        assert "n\n-\n42" in interpret["prompt"]

    def test_failed_query_is_explained(self, make_descriptor, test_settings):
        """Test: A failing statement is explained and the session stays usable."""
        backend = FakeBackend(
            ["SELECT * FROM missing", "The table 'missing' does not exist.", "SELECT 1 AS one", "One row."]
        )
        connection = FakeConnection([("FROM missing", query_error('relation "missing" does not exist'))])
        session = open_session(make_descriptor(DatabaseKind.POSTGRESQL), connection, backend, settings=test_settings)

        reply = session.send("show rows from missing")

        assert reply == "The table 'missing' does not exist."
        failed = session.transcript.turns[1]
        assert failed.query == "SELECT * FROM missing LIMIT 100"
        assert not failed.result
        explain = backend.calls[1]
        assert (explain["max_tokens"], explain["temperature"]) == (1000, 0.7)
        assert 'relation "missing" does not exist' in explain["prompt"]

        assert session.send("show me one row") == "One row."
        assert len(session.transcript) == 4
        followup_prompt = backend.calls[2]["prompt"]
        assert "[User]: show rows from missing" in followup_prompt
        assert "[Query executed]: SELECT * FROM missing LIMIT 100" in followup_prompt

    def test_empty_statement(self, make_descriptor, test_settings):
        """Test: An empty generation is explained without touching the database."""
        backend = FakeBackend(["   ", "I could not write a query for that."])
        connection = FakeConnection()
        session = open_session(make_descriptor(DatabaseKind.MYSQL), connection, backend, settings=test_settings)

        reply = session.send("list the tables")

        assert reply == "I could not write a query for that."
        assert connection.queries == []
        assert "The model did not return a statement" in backend.calls[1]["prompt"]

    def test_mongodb_uses_command_prompt(self, make_descriptor, test_settings):
        """Test: MongoDB sessions ask for a JSON command and do not cap it."""
        command = '{"count": "orders", "$db": "shop"}'
        backend = FakeBackend([command, "12 documents."])
        connection = FakeConnection([('"count"', [{"n": 12, "ok": 1.0}])])
        session = open_session(make_descriptor(DatabaseKind.MONGODB), connection, backend, settings=test_settings)

        assert session.send("count documents in orders") == "12 documents."
        assert connection.queries == [command]


# ─────────────────────────────────────────────────────────────────────────────
# Test: Conversational turns
# ─────────────────────────────────────────────────────────────────────────────

class TestConversationalTurns:
    """No statement is generated."""

    def test_conversational_turn(self, make_descriptor, test_settings):
        """Test: Greetings are answered directly."""
        backend = FakeBackend(["Hello! Ask me about your database."])
        connection = FakeConnection()
        session = open_session(make_descriptor(DatabaseKind.ORACLE), connection, backend, settings=test_settings)

        reply = session.send("hello there, thanks!")

        assert reply == "Hello! Ask me about your database."
        assert connection.queries == []
        assert len(backend.calls) == 1
        assert "Oracle" in backend.calls[0]["system"]
        assistant_turn = session.transcript.turns[1]
        assert assistant_turn.query is None
        assert assistant_turn.result is None

    def test_context_window(self, make_descriptor):
        """Test: Older turns are summarized as omitted."""
        settings = Settings(_env_file=None, records_database_url="sqlite://", chat_history_window=2)
        backend = FakeBackend(default="ok")
        session = open_session(make_descriptor(DatabaseKind.POSTGRESQL), FakeConnection(), backend, settings=settings)

        session.send("hello")
        session.send("good morning")
        session.send("thank you")

        last_prompt = backend.calls[-1]["prompt"]
        assert "[2 earlier turns omitted]" in last_prompt
        assert "[User]: good morning" in last_prompt
        assert "[User]: hello" not in last_prompt
        assert "Host: db01:" in last_prompt


# ─────────────────────────────────────────────────────────────────────────────
# Test: Cancellation and deadlines
# ─────────────────────────────────────────────────────────────────────────────

class TestCancellation:
    """A turn that raises leaves the transcript unchanged."""

    def test_cancel_without_turn(self, make_descriptor, test_settings):
        """Test: Nothing to cancel."""
        session = open_session(make_descriptor(), FakeConnection(), FakeBackend(), settings=test_settings)
        assert session.cancel() is False

    def test_cancel_in_flight_turn(self, make_descriptor, test_settings):
        """Test: cancel() stops a blocked turn; the session resumes."""
        started, release = threading.Event(), threading.Event()
        backend = FakeBackend([blocking_reply(started, release), "Welcome back."])
        session = open_session(make_descriptor(), FakeConnection(), backend, settings=test_settings)
        outcome = {}

        def run_turn():
            try:
                session.send("hello")
            except TurnCancelledError as e:
                outcome["error"] = e

        worker = threading.Thread(target=run_turn)
        worker.start()
        try:
            assert started.wait(timeout=5)
            assert session.cancel() is True
            worker.join(timeout=5)
        finally:
            release.set()

        assert isinstance(outcome.get("error"), TurnCancelledError)
        assert len(session.transcript) == 0
        assert session.send("hello again") == "Welcome back."
        assert len(session.transcript) == 2

    def test_next_turn_waits_for_abandoned_statement(self, make_descriptor, test_settings):
        """Test: A statement left running by a cancelled turn never overlaps the next one."""
        started, release = threading.Event(), threading.Event()
        guard = threading.Lock()
        active, overlaps = [], []

        def run_statement(sql):
            with guard:
                if active:
                    overlaps.append(active + [sql])
                active.append(sql)
            if "SELECT 1" in sql:
                started.set()
                release.wait(timeout=5)
            with guard:
                active.remove(sql)
            return [{"n": 2}]

        backend = FakeBackend(["SELECT 1 AS n", "SELECT 2 AS n", "Two."])
        connection = FakeConnection(default=run_statement)
        session = open_session(make_descriptor(), connection, backend, settings=test_settings)
        outcome = {}

        def run_turn():
            try:
                session.send("how many rows in orders?")
            except TurnCancelledError as e:
                outcome["error"] = e

        worker = threading.Thread(target=run_turn)
        worker.start()
        try:
            assert started.wait(timeout=5)
            assert session.cancel() is True
            worker.join(timeout=5)
            assert isinstance(outcome.get("error"), TurnCancelledError)

            threading.Timer(0.3, release.set).start()
            reply = session.send("how many rows in orders now?")
        finally:
            release.set()

        assert reply == "Two."
        assert overlaps == []
        assert connection.queries == ["SELECT 1 AS n LIMIT 100", "SELECT 2 AS n LIMIT 100"]

    def test_deadline_exceeded(self, make_descriptor):
        """Test: A slow backend exceeds the turn deadline."""
        settings = Settings(_env_file=None, records_database_url="sqlite://", chat_turn_timeout_seconds=0.2)
        started, release = threading.Event(), threading.Event()
        backend = FakeBackend([blocking_reply(started, release)])
        session = open_session(make_descriptor(), FakeConnection(), backend, settings=settings)

        try:
            with pytest.raises(DeadlineExceededError):
                session.send("hello")
        finally:
            release.set()

        assert len(session.transcript) == 0


# ─────────────────────────────────────────────────────────────────────────────
# Test: History sessions
# ─────────────────────────────────────────────────────────────────────────────

class TestHistorySession:
    """Conversations about stored analyses."""

    def test_history_turn(self, db, make_request, test_settings):
        """Test: Stored records are summarized in the prompt; no statement runs."""
        done = create_record(db, make_request(DatabaseKind.POSTGRESQL, AnalysisKind.LOCKS))
        done.mark_processing()
        done.mark_completed("# PostgreSQL Lock Analysis\n\nNo blocking.", insight="Nothing blocked.")
        save_record(db, done)
        failed = create_record(db, make_request(DatabaseKind.ORACLE, AnalysisKind.AWR))
        failed.mark_processing()
        failed.mark_failed("ORA-01031: insufficient privileges")
        save_record(db, failed)

        backend = FakeBackend(["The AWR analysis failed for lack of privileges."])
        session = open_history_session(list_records(db), backend, settings=test_settings)

        reply = session.send("which analyses failed, and how many tables were locked?")

        assert reply == "The AWR analysis failed for lack of privileges."
        call = backend.calls[0]
        assert call["system"] == HISTORY_CHAT_SYSTEM
        assert f"### Analysis #{failed.id}: awr on oracle" in call["prompt"]
        assert "Error: ORA-01031: insufficient privileges" in call["prompt"]
        assert "AI insight:\nNothing blocked." in call["prompt"]
        assert session.transcript.turns[1].query is None

    def test_empty_history(self, fake_backend, test_settings):
        """Test: No records still opens a session."""
        session = open_history_session([], fake_backend, settings=test_settings)

        session.send("anything stored?")

        assert "(no analyses stored yet)" in fake_backend.calls[0]["prompt"]
