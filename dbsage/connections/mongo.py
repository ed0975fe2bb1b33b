"""
pymongo-backed connection.

MongoDB has no SQL; a "statement" here is a JSON database command such as
``{"replSetGetStatus": 1, "$db": "admin"}``. The optional ``$db`` key picks
the database the command runs against.
"""

import json
import logging
from typing import Any

from pymongo import MongoClient
from pymongo.errors import ConnectionFailure, OperationFailure, PyMongoError

from dbsage.connections.base import serialize_row
from dbsage.errors import DatabaseConnectionError, QueryExecutionError
from dbsage.schemas.connection import ConnectionDescriptor

logger = logging.getLogger(__name__)

# Reply keys that hold the row-like payload of common commands
_LIST_KEYS = ("members", "shards", "databases", "inprog", "collections")


def reply_to_rows(reply: dict[str, Any]) -> list[dict[str, Any]]:
    """Flatten a command reply into rows."""
    cursor = reply.get("cursor")
    if isinstance(cursor, dict) and "firstBatch" in cursor:
        return [serialize_row(doc) for doc in cursor["firstBatch"]]
    for key in _LIST_KEYS:
        if isinstance(reply.get(key), list):
            return [serialize_row(doc) if isinstance(doc, dict) else {key: doc} for doc in reply[key]]
    return [serialize_row(reply)]


class MongoConnection:
    """DatabaseConnection running JSON commands through pymongo."""

    def __init__(self, client: MongoClient, default_database: str):
        self._client = client
        self._default_database = default_database

    def query(self, sql: str) -> list[dict[str, Any]]:
        try:
            command = json.loads(sql)
        except json.JSONDecodeError as e:
            raise QueryExecutionError(f"Invalid MongoDB command: {e}", sql=sql) from e
        if not isinstance(command, dict) or not command:
            raise QueryExecutionError("MongoDB command must be a non-empty JSON object", sql=sql)

        database = command.pop("$db", None) or self._default_database
        try:
            reply = self._client[database].command(command)
        except ConnectionFailure as e:
            logger.error(f"MongoDB connection lost: {e}")
            raise DatabaseConnectionError(f"MongoDB connection lost: {e}") from e
        except OperationFailure as e:
            logger.warning(f"MongoDB command failed: {e}")
            raise QueryExecutionError(str(e), sql=sql) from e
        except PyMongoError as e:
            raise QueryExecutionError(str(e), sql=sql) from e

        return reply_to_rows(reply)

    def close(self) -> None:
        self._client.close()


def open_mongo_connection(descriptor: ConnectionDescriptor, timeout_ms: int = 10000) -> MongoConnection:
    """
    Connect to MongoDB and verify the server answers a ping.
    
    Raises:
        DatabaseConnectionError: Server unreachable or authentication failed
    """
    client = MongoClient(descriptor.mongo_uri(), serverSelectionTimeoutMS=timeout_ms)
    try:
        client.admin.command("ping")
    except PyMongoError as e:
        client.close()
        raise DatabaseConnectionError(f"Could not connect to MongoDB at {descriptor.host}: {e}") from e

    logger.info(f"Connected to MongoDB at {descriptor.host}")
    return MongoConnection(client, descriptor.database or "admin")
