"""
Unit tests for the pymongo connection adapter (client mocked).
"""

from unittest.mock import MagicMock, patch

import pytest
from pymongo.errors import ConnectionFailure, OperationFailure, ServerSelectionTimeoutError

from dbsage.connections.mongo import MongoConnection, open_mongo_connection
from dbsage.errors import DatabaseConnectionError, QueryExecutionError
from dbsage.schemas.connection import ConnectionDescriptor, DatabaseKind


@pytest.fixture
def client():
    client = MagicMock()
    database = MagicMock()
    database.command.return_value = {"ok": 1.0, "members": [{"name": "m1:27017", "health": 1}]}
    client.__getitem__.return_value = database
    return client


# ─────────────────────────────────────────────────────────────────────────────
# Test: Commands
# ─────────────────────────────────────────────────────────────────────────────

class TestMongoConnectionQuery:
    """JSON commands routed to a database."""

    def test_command_routed_by_db_key(self, client):
        """Test: $db selects the database and is not sent with the command."""
        connection = MongoConnection(client, "shop")

        rows = connection.query('{"replSetGetStatus": 1, "$db": "admin"}')

        client.__getitem__.assert_called_once_with("admin")
        client["admin"].command.assert_called_once_with({"replSetGetStatus": 1})
        assert rows == [{"name": "m1:27017", "health": 1}]

    def test_default_database(self, client):
        """Test: Without $db the descriptor's database is used."""
        MongoConnection(client, "shop").query('{"dbStats": 1}')
        client.__getitem__.assert_called_once_with("shop")

    @pytest.mark.parametrize("statement", ["SELECT 1", "[1, 2]", "{}"])
    def test_invalid_command(self, client, statement):
        """Test: Only non-empty JSON objects are commands."""
        with pytest.raises(QueryExecutionError):
            MongoConnection(client, "shop").query(statement)
        client.__getitem__.assert_not_called()

    def test_operation_failure(self, client):
        """Test: A rejected command fails only the statement."""
        client["admin"].command.side_effect = OperationFailure("not authorized on admin")

        with pytest.raises(QueryExecutionError) as exc_info:
            MongoConnection(client, "admin").query('{"listShards": 1}')

        assert "not authorized" in str(exc_info.value)
        assert exc_info.value.sql == '{"listShards": 1}'

    def test_connection_failure(self, client):
        """Test: A lost server is a connection error."""
        client["admin"].command.side_effect = ConnectionFailure("connection closed")

        with pytest.raises(DatabaseConnectionError):
            MongoConnection(client, "admin").query('{"serverStatus": 1}')

    def test_close(self, client):
        """Test: close() closes the client."""
        MongoConnection(client, "admin").close()
        client.close.assert_called_once()


# ─────────────────────────────────────────────────────────────────────────────
# Test: Opening
# ─────────────────────────────────────────────────────────────────────────────

class TestOpenMongoConnection:
    """Connect and ping."""

    def test_ping_failure(self):
        """Test: An unreachable server raises and the client is closed."""
        descriptor = ConnectionDescriptor(kind=DatabaseKind.MONGODB, host="mongo01")
        with patch("dbsage.connections.mongo.MongoClient") as client_cls:
            client_cls.return_value.admin.command.side_effect = ServerSelectionTimeoutError("timed out")

            with pytest.raises(DatabaseConnectionError) as exc_info:
                open_mongo_connection(descriptor)

        assert "mongo01" in str(exc_info.value)
        client_cls.return_value.close.assert_called_once()

    def test_connects_with_uri(self):
        """Test: The descriptor URI is used and the ping must answer."""
        descriptor = ConnectionDescriptor(kind=DatabaseKind.MONGODB, connection_string="mongodb://mongo01:27017/shop")
        with patch("dbsage.connections.mongo.MongoClient") as client_cls:
            connection = open_mongo_connection(descriptor, timeout_ms=500)

        client_cls.assert_called_once_with("mongodb://mongo01:27017/shop", serverSelectionTimeoutMS=500)
        client_cls.return_value.admin.command.assert_called_once_with("ping")
        assert isinstance(connection, MongoConnection)
