"""
Database access capability consumed by the dispatcher and the chat agent.
"""

from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Any, Protocol, runtime_checkable
from uuid import UUID


@runtime_checkable
class DatabaseConnection(Protocol):
    """
    An already-connected, read-mostly handle on a target database.
    
    Implementations raise DatabaseConnectionError when the connection itself
    is unusable and QueryExecutionError when a single statement fails.
    A connection must not be driven from several threads at once.
    """

    def query(self, sql: str) -> list[dict[str, Any]]:
        """Run one statement and return rows as column-name dicts."""
        ...

    def close(self) -> None:
        ...


def serialize_value(value: Any) -> Any:
    """Convert driver values to plain, printable Python values."""
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, timedelta):
        return str(value)
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).decode("utf-8", errors="replace")
    return value


def serialize_row(row: dict) -> dict:
    """Serialize a row dict for reports and prompts."""
    return {k: serialize_value(v) for k, v in row.items()}


def tabulate_rows(rows: list[dict[str, Any]], limit: int = 100) -> str:
    """
    Plain-text result table for prompts and transcripts.
    
    Header ``col | col``, a dash line of the same width, one line per row
    with NULL for None, at most ``limit`` rows.
    """
    if not rows:
        return "No results found."

    columns = list(rows[0].keys())
    header = " | ".join(columns)
    lines = [header, "-" * len(header)]
    for row in rows[:limit]:
        lines.append(" | ".join("NULL" if row.get(c) is None else str(row.get(c)) for c in columns))
    if len(rows) > limit:
        lines.append("")
        lines.append(f"... more results (limited to {limit})")
    return "\n".join(lines)
