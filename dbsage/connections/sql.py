"""
SQLAlchemy-backed connections for PostgreSQL, MySQL, Oracle and SQL Server.

Statements are passed to the driver verbatim (exec_driver_sql): the
dispatcher's system-view queries and model-generated SQL are dialect
specific and must not be rewritten.
"""

import logging
from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.engine import URL, Connection, Engine
from sqlalchemy.exc import DBAPIError, SQLAlchemyError

from dbsage.connections.base import serialize_row
from dbsage.errors import ConfigurationError, DatabaseConnectionError, QueryExecutionError
from dbsage.schemas.connection import ConnectionDescriptor, DatabaseKind

logger = logging.getLogger(__name__)


DRIVERS: dict[DatabaseKind, str] = {
    DatabaseKind.POSTGRESQL: "postgresql+psycopg2",
    DatabaseKind.MYSQL: "mysql+pymysql",
    DatabaseKind.ORACLE: "oracle+oracledb",
    DatabaseKind.SQLSERVER: "mssql+pyodbc",
}

JDBC_SCHEMES: dict[str, DatabaseKind] = {
    "jdbc:postgresql://": DatabaseKind.POSTGRESQL,
    "jdbc:mysql://": DatabaseKind.MYSQL,
}


def build_url(descriptor: ConnectionDescriptor) -> str | URL:
    """
    Build the SQLAlchemy URL for a descriptor.
    
    Precedence: connection_string, then a jdbc_url the driver can understand
    (postgresql/mysql), then the discrete fields.
    
    Raises:
        ConfigurationError: For MongoDB descriptors
    """
    if descriptor.kind not in DRIVERS:
        raise ConfigurationError(f"No SQL driver for database kind '{descriptor.kind.value}'")

    driver = DRIVERS[descriptor.kind]

    if descriptor.connection_string:
        return descriptor.connection_string

    if descriptor.jdbc_url:
        for prefix, kind in JDBC_SCHEMES.items():
            if descriptor.jdbc_url.startswith(prefix) and kind == descriptor.kind:
                return f"{driver}://" + descriptor.jdbc_url[len(prefix):]
        logger.warning(f"Ignoring unsupported jdbc_url for {descriptor.kind.value}")

    query: dict[str, str] = {}
    database = descriptor.database or None
    if descriptor.kind == DatabaseKind.SQLSERVER:
        query["driver"] = "ODBC Driver 18 for SQL Server"
        query["TrustServerCertificate"] = "yes"
    if descriptor.kind == DatabaseKind.ORACLE and database:
        query["service_name"] = database
        database = None

    return URL.create(
        drivername=driver,
        username=descriptor.username or None,
        password=descriptor.password or None,
        host=descriptor.host,
        port=descriptor.effective_port,
        database=database,
        query=query,
    )


class SQLAlchemyConnection:
    """
    DatabaseConnection over a single SQLAlchemy Connection.
    
    Work is rolled back after every row-returning statement and after every
    failure, so nothing is ever committed and a failed statement never
    poisons the next one. A statement without rows (EXPLAIN PLAN) leaves its
    transaction open for the SELECT that reads its effects.
    """

    def __init__(self, engine: Engine, connection: Connection):
        self._engine = engine
        self._connection = connection

    def query(self, sql: str) -> list[dict[str, Any]]:
        try:
            result = self._connection.exec_driver_sql(
                sql, execution_options={"no_parameters": True}
            )
            if not result.returns_rows:
                return []
            rows = [serialize_row(dict(row)) for row in result.mappings()]
            self._connection.rollback()
            logger.debug(f"Statement returned {len(rows)} rows")
            return rows
        except DBAPIError as e:
            self._safe_rollback()
            if e.connection_invalidated:
                logger.error(f"Connection lost: {e.orig}")
                raise DatabaseConnectionError(f"Connection lost: {e.orig}") from e
            logger.warning(f"Statement failed: {e.orig}")
            raise QueryExecutionError(str(e.orig), sql=sql) from e
        except SQLAlchemyError as e:
            self._safe_rollback()
            raise QueryExecutionError(str(e), sql=sql) from e

    def _safe_rollback(self) -> None:
        try:
            self._connection.rollback()
        except SQLAlchemyError as e:
            # An invalidated connection cannot roll back; the original error wins
            logger.debug(f"Rollback after failure also failed: {e}")

    def close(self) -> None:
        self._connection.close()
        self._engine.dispose()


def open_sql_connection(descriptor: ConnectionDescriptor, connect_timeout: int = 10) -> SQLAlchemyConnection:
    """
    Connect to a SQL database described by ``descriptor``.
    
    Raises:
        ConfigurationError: Unsupported kind
        DatabaseConnectionError: The server cannot be reached or rejects the login
    """
    url = build_url(descriptor)
    connect_args: dict[str, Any] = {}
    if descriptor.kind in (DatabaseKind.POSTGRESQL, DatabaseKind.MYSQL):
        connect_args["connect_timeout"] = connect_timeout
    elif descriptor.kind == DatabaseKind.SQLSERVER:
        connect_args["timeout"] = connect_timeout

    engine = create_engine(url, pool_pre_ping=True, connect_args=connect_args)
    try:
        connection = engine.connect()
    except SQLAlchemyError as e:
        engine.dispose()
        logger.error(f"Could not connect to {descriptor.kind.value} at {descriptor.host}: {e}")
        raise DatabaseConnectionError(
            f"Could not connect to {descriptor.kind.value} at {descriptor.host}: {e}"
        ) from e

    logger.info(f"Connected to {descriptor.kind.value} at {descriptor.host}")
    return SQLAlchemyConnection(engine, connection)
