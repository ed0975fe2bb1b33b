"""
Pytest configuration and fixtures for the dbsage test suite.

Provides:
- FakeConnection: scripted DatabaseConnection matched on SQL substrings
- FakeBackend: scripted LLMBackend that records every call
- Records store session on in-memory SQLite
- Request/descriptor factories
"""

import os
from typing import Any, Callable, Generator

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

# Set test environment before importing dbsage modules
os.environ["ENVIRONMENT"] = "development"
os.environ["RECORDS_DATABASE_URL"] = "sqlite://"
os.environ.setdefault("GROQ_API_KEY", "test-key")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from dbsage.config import Settings
from dbsage.database import Base
from dbsage.errors import QueryExecutionError
from dbsage.models import AnalysisRecord  # noqa: F401  (registers the table)
from dbsage.schemas.analysis import AnalysisKind, AnalysisRequest
from dbsage.schemas.connection import ConnectionDescriptor, DatabaseKind


# ─────────────────────────────────────────────────────────────────────────────
# Fakes
# ─────────────────────────────────────────────────────────────────────────────

class FakeConnection:
    """
    DatabaseConnection double.
    
    ``rules`` is an ordered list of (substring, outcome); the first rule
    whose substring occurs in the SQL wins. An outcome is a row list, an
    exception instance to raise, or a callable taking the SQL. Unmatched
    statements return ``default`` (an empty list unless given).
    """

    def __init__(self, rules: list[tuple[str, Any]] | None = None, default: Any = None):
        self.rules = list(rules or [])
        self.default = default if default is not None else []
        self.queries: list[str] = []
        self.closed = False

    def add(self, substring: str, outcome: Any) -> "FakeConnection":
        self.rules.append((substring, outcome))
        return self

    def query(self, sql: str) -> list[dict[str, Any]]:
        self.queries.append(sql)
        outcome = self.default
        for substring, candidate in self.rules:
            if substring in sql:
                outcome = candidate
                break
        if isinstance(outcome, Exception):
            raise outcome
        if callable(outcome):
            return outcome(sql)
        return [dict(row) for row in outcome]

    def close(self) -> None:
        self.closed = True

    def ran(self, substring: str) -> bool:
        return any(substring in sql for sql in self.queries)


class FakeBackend:
    """
    LLMBackend double.
    
    Replies are taken from ``responses`` in order (an exception instance is
    raised instead of returned); ``default`` answers once they run out.
    Every call is recorded in ``calls``.
    """

    def __init__(self, responses: list[Any] | None = None, default: str = "OK"):
        self.responses = list(responses or [])
        self.default = default
        self.calls: list[dict[str, Any]] = []

    def complete(
        self,
        system_prompt: str,
        messages: list[dict],
        max_tokens: int,
        temperature: float,
    ) -> str:
        self.calls.append(
            {
                "system": system_prompt,
                "messages": messages,
                "prompt": messages[-1]["content"] if messages else "",
                "max_tokens": max_tokens,
                "temperature": temperature,
            }
        )
        reply = self.responses.pop(0) if self.responses else self.default
        if isinstance(reply, Exception):
            raise reply
        if callable(reply):
            return reply(system_prompt, messages)
        return reply


def query_error(message: str = "permission denied", sql: str | None = None) -> QueryExecutionError:
    return QueryExecutionError(message, sql=sql)


# ─────────────────────────────────────────────────────────────────────────────
# Fixtures: fakes and settings
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def fake_connection() -> FakeConnection:
    return FakeConnection()


@pytest.fixture
def fake_backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def test_settings() -> Settings:
    """Settings isolated from any local .env file."""
    return Settings(
        _env_file=None,
        records_database_url="sqlite://",
        chat_turn_timeout_seconds=5.0,
    )


# ─────────────────────────────────────────────────────────────────────────────
# Fixtures: requests
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def make_descriptor() -> Callable[..., ConnectionDescriptor]:
    def _make(kind: DatabaseKind = DatabaseKind.POSTGRESQL, **kwargs) -> ConnectionDescriptor:
        values = {"host": "db01", "database": "orders", "username": "app", "password": "secret"}
        values.update(kwargs)
        return ConnectionDescriptor(kind=kind, **values)

    return _make


@pytest.fixture
def make_request(make_descriptor) -> Callable[..., AnalysisRequest]:
    def _make(
        database_kind: DatabaseKind = DatabaseKind.POSTGRESQL,
        analysis_kind: AnalysisKind = AnalysisKind.DIAGNOSTIC,
        **kwargs,
    ) -> AnalysisRequest:
        return AnalysisRequest(
            database_kind=database_kind,
            analysis_kind=analysis_kind,
            connection=make_descriptor(database_kind),
            **kwargs,
        )

    return _make


# ─────────────────────────────────────────────────────────────────────────────
# Fixtures: records store
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def engine():
    """Fresh in-memory SQLite engine with the records tables."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine) -> Generator[Session, None, None]:
    """Records store session for one test."""
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
