"""
Connections to target databases.

Usage:
    from dbsage.connections import open_connection

    connection = open_connection(descriptor)
    try:
        rows = connection.query("SELECT version()")
    finally:
        connection.close()
"""

from dbsage.connections.base import DatabaseConnection, serialize_row, serialize_value, tabulate_rows
from dbsage.schemas.connection import ConnectionDescriptor, DatabaseKind


def open_connection(descriptor: ConnectionDescriptor) -> DatabaseConnection:
    """Open a connection of the right flavour for the descriptor's kind."""
    if descriptor.kind == DatabaseKind.MONGODB:
        from dbsage.connections.mongo import open_mongo_connection

        return open_mongo_connection(descriptor)

    from dbsage.connections.sql import open_sql_connection

    return open_sql_connection(descriptor)


__all__ = [
    "DatabaseConnection",
    "open_connection",
    "serialize_row",
    "serialize_value",
    "tabulate_rows",
]
