"""
Unit tests for the SQLAlchemy connection adapter and URL building.

The adapter is exercised against in-memory SQLite; it runs statements
verbatim, so any SQLAlchemy dialect behaves the same here.
"""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from dbsage.connections.sql import SQLAlchemyConnection, build_url
from dbsage.errors import ConfigurationError, QueryExecutionError
from dbsage.schemas.connection import ConnectionDescriptor, DatabaseKind


@pytest.fixture
def sqlite_connection():
    engine = create_engine("sqlite://", poolclass=StaticPool)
    connection = SQLAlchemyConnection(engine, engine.connect())
    yield connection
    connection.close()


# ─────────────────────────────────────────────────────────────────────────────
# Test: SQLAlchemyConnection
# ─────────────────────────────────────────────────────────────────────────────

class TestSQLAlchemyConnection:
    """Rows as dicts and error translation."""

    def test_rows_as_dicts(self, sqlite_connection):
        """Test: Rows come back keyed by column name."""
        rows = sqlite_connection.query("SELECT 1 AS one, 'x' AS letter")
        assert rows == [{"one": 1, "letter": "x"}]

    def test_statement_without_rows_returns_empty_list(self, sqlite_connection):
        """Test: DDL/DML return []."""
        assert sqlite_connection.query("CREATE TABLE t (a INTEGER)") == []

    def test_failed_statement_raises_query_error(self, sqlite_connection):
        """Test: A bad statement raises QueryExecutionError carrying the SQL."""
        with pytest.raises(QueryExecutionError) as exc_info:
            sqlite_connection.query("SELECT * FROM missing_table")
        assert exc_info.value.sql == "SELECT * FROM missing_table"

    def test_connection_usable_after_failure(self, sqlite_connection):
        """Test: A failure does not poison the next statement."""
        with pytest.raises(QueryExecutionError):
            sqlite_connection.query("SELEC nonsense")
        assert sqlite_connection.query("SELECT 2 AS two") == [{"two": 2}]


# ─────────────────────────────────────────────────────────────────────────────
# Test: build_url
# ─────────────────────────────────────────────────────────────────────────────

class TestBuildUrl:
    """Driver URLs from descriptors."""

    def test_postgres_fields(self):
        """Test: Discrete fields and the default port."""
        url = build_url(ConnectionDescriptor(kind=DatabaseKind.POSTGRESQL, host="db01", database="orders", username="app"))
        assert url.drivername == "postgresql+psycopg2"
        assert url.port == 5432
        assert url.database == "orders"

    def test_oracle_service_name(self):
        """Test: Oracle puts the database in service_name."""
        url = build_url(ConnectionDescriptor(kind=DatabaseKind.ORACLE, host="ora", database="ORCLPDB1"))
        assert url.database is None
        assert url.query["service_name"] == "ORCLPDB1"
        assert url.port == 1521

    def test_sqlserver_odbc_driver(self):
        """Test: SQL Server names its ODBC driver."""
        url = build_url(ConnectionDescriptor(kind=DatabaseKind.SQLSERVER, host="mssql"))
        assert url.drivername == "mssql+pyodbc"
        assert "driver" in url.query

    def test_connection_string_wins(self):
        """Test: A raw connection string is used as-is."""
        descriptor = ConnectionDescriptor(
            kind=DatabaseKind.MYSQL,
            connection_string="mysql+pymysql://u:p@h:3307/db",
        )
        assert build_url(descriptor) == "mysql+pymysql://u:p@h:3307/db"

    def test_jdbc_url_translated(self):
        """Test: A PostgreSQL JDBC URL becomes a driver URL."""
        descriptor = ConnectionDescriptor(
            kind=DatabaseKind.POSTGRESQL,
            jdbc_url="jdbc:postgresql://db01:5433/orders",
        )
        assert build_url(descriptor) == "postgresql+psycopg2://db01:5433/orders"

    def test_mongodb_rejected(self):
        """Test: MongoDB has no SQL driver."""
        with pytest.raises(ConfigurationError):
            build_url(ConnectionDescriptor(kind=DatabaseKind.MONGODB))
