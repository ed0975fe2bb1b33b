"""
Unit tests for the chat turn nodes and routes.
"""

from conftest import FakeBackend, FakeConnection, query_error
from dbsage.agents.chat_agent.classifier import KeywordIntentClassifier
from dbsage.agents.chat_agent.deadline import TurnDeadline
from dbsage.agents.chat_agent.nodes import (
    EMPTY_QUERY_ERROR,
    TurnDependencies,
    classify_node,
    execute_query_node,
    generate_query_node,
    get_execution_route,
    get_intent_route,
)
from dbsage.dialects import get_dialect
from dbsage.schemas.chat import TurnIntent
from dbsage.schemas.connection import DatabaseKind


def make_deps(settings, backend=None, connection=None, kind=DatabaseKind.POSTGRESQL) -> TurnDependencies:
    return TurnDependencies(
        backend=backend or FakeBackend(),
        classifier=KeywordIntentClassifier(),
        settings=settings,
        conversational_system="system",
        connection=connection,
        dialect=get_dialect(kind),
    )


def make_state(**kwargs) -> dict:
    state = {"message": "show tables", "context": "ctx", "deadline": TurnDeadline.start(5.0)}
    state.update(kwargs)
    return state


# ─────────────────────────────────────────────────────────────────────────────
# Test: Classification and routes
# ─────────────────────────────────────────────────────────────────────────────

class TestClassifyAndRoutes:
    """Intent and execution routing."""

    def test_classify_with_connection(self, test_settings):
        """Test: The classifier decides when a connection exists."""
        deps = make_deps(test_settings, connection=FakeConnection())
        assert classify_node(make_state(), deps) == {"intent": TurnIntent.NEEDS_QUERY}

    def test_classify_without_connection(self, test_settings):
        """Test: No connection means conversational."""
        deps = make_deps(test_settings)
        assert classify_node(make_state(), deps) == {"intent": TurnIntent.CONVERSATIONAL}

    def test_intent_route(self):
        """Test: NeedsQuery generates a statement."""
        assert get_intent_route({"intent": TurnIntent.NEEDS_QUERY}) == "generate_query"
        assert get_intent_route({"intent": TurnIntent.CONVERSATIONAL}) == "converse"

    def test_execution_route(self):
        """Test: Errors are explained, results interpreted."""
        assert get_execution_route({"error": "boom"}) == "explain_error"
        assert get_execution_route({"error": None}) == "interpret_result"


# ─────────────────────────────────────────────────────────────────────────────
# Test: Generation and execution
# ─────────────────────────────────────────────────────────────────────────────

class TestGenerateQuery:
    """Statement generation."""

    def test_sqlserver_top(self, test_settings):
        """Test: SQL Server statements get TOP."""
        backend = FakeBackend(["Here you go:\nSELECT name FROM sys.tables"])
        deps = make_deps(test_settings, backend=backend, connection=FakeConnection(), kind=DatabaseKind.SQLSERVER)

        update = generate_query_node(make_state(), deps)

        assert update == {"query": "SELECT TOP 100 name FROM sys.tables"}
        assert "SELECT TOP 100 ..." in backend.calls[0]["prompt"]

    def test_empty_reply(self, test_settings):
        """Test: Nothing usable gives an empty query."""
        deps = make_deps(test_settings, backend=FakeBackend(["```\n```"]), connection=FakeConnection())
        assert generate_query_node(make_state(), deps) == {"query": ""}


class TestExecuteQuery:
    """Statement execution."""

    def test_rows_tabulated(self, test_settings):
        """Test: Rows become a plain-text table."""
        connection = FakeConnection([("SELECT", [{"a": 1, "b": None}])])
        deps = make_deps(test_settings, connection=connection)

        update = execute_query_node(make_state(query="SELECT a, b FROM t LIMIT 100"), deps)

        assert update == {"result": "a | b\n-----\n1 | NULL", "error": None}

    def test_failure_kept_in_state(self, test_settings):
        """Test: Statement errors are returned, not raised."""
        connection = FakeConnection(default=query_error("syntax error at or near FORM"))
        deps = make_deps(test_settings, connection=connection)

        update = execute_query_node(make_state(query="SELECT * FORM t"), deps)

        assert update == {"result": "", "error": "syntax error at or near FORM"}

    def test_empty_query(self, test_settings):
        """Test: An empty statement is an error without I/O."""
        connection = FakeConnection()
        deps = make_deps(test_settings, connection=connection)

        assert execute_query_node(make_state(query=""), deps) == {"result": "", "error": EMPTY_QUERY_ERROR}
        assert connection.queries == []
