"""
SQL dialect facts per database kind.

Row-limiting clause, display label and a few quoting helpers used by the
chat agent, the dynamic analysis and the dispatcher routines.
"""

import re
from dataclasses import dataclass
from typing import Literal

import sqlparse
from sqlparse import tokens as T

from dbsage.schemas.connection import DatabaseKind


LimitStyle = Literal["limit", "top", "fetch_first", "none"]


@dataclass(frozen=True)
class Dialect:
    """Syntax facts for one database kind."""

    kind: DatabaseKind
    label: str
    limit_style: LimitStyle

    def limit_hint(self, row_limit: int) -> str:
        """How to cap rows in this dialect, phrased for a prompt."""
        if self.limit_style == "limit":
            return f"LIMIT {row_limit}"
        if self.limit_style == "top":
            return f"SELECT TOP {row_limit} ..."
        if self.limit_style == "fetch_first":
            return f"FETCH FIRST {row_limit} ROWS ONLY"
        return f"at most {row_limit} documents"


DIALECTS: dict[DatabaseKind, Dialect] = {
    DatabaseKind.POSTGRESQL: Dialect(DatabaseKind.POSTGRESQL, "PostgreSQL", "limit"),
    DatabaseKind.MYSQL: Dialect(DatabaseKind.MYSQL, "MySQL", "limit"),
    DatabaseKind.SQLSERVER: Dialect(DatabaseKind.SQLSERVER, "SQL Server", "top"),
    DatabaseKind.ORACLE: Dialect(DatabaseKind.ORACLE, "Oracle", "fetch_first"),
    DatabaseKind.MONGODB: Dialect(DatabaseKind.MONGODB, "MongoDB", "none"),
}


def get_dialect(kind: DatabaseKind) -> Dialect:
    return DIALECTS[kind]


# Words that cap rows when they appear in the outermost query
_LIMIT_WORDS = {"LIMIT", "TOP", "FETCH", "ROWNUM"}

_SELECT_HEAD = re.compile(r"^\s*SELECT\s+(DISTINCT\s+)?", re.IGNORECASE)


def statement_type(sql: str) -> str:
    """sqlparse statement type of the first statement ('UNKNOWN' if none)."""
    parsed = sqlparse.parse(sql)
    if not parsed:
        return "UNKNOWN"
    return parsed[0].get_type()


def is_select(sql: str) -> bool:
    return bool(sql.strip()) and statement_type(sql) == "SELECT"


def has_row_limit(sql: str) -> bool:
    """
    True when the outermost query already caps its rows.
    
    Only tokens outside parentheses count: a LIMIT inside a subquery, or
    the word in a string literal or comment, leaves the outer query uncapped.
    """
    parsed = sqlparse.parse(sql)
    if not parsed:
        return False

    depth = 0
    for token in parsed[0].flatten():
        if token.ttype in T.Punctuation:
            if token.value == "(":
                depth += 1
            elif token.value == ")":
                depth -= 1
            continue
        if depth or token.ttype in T.String or token.ttype in T.Comment:
            continue
        words = token.value.upper().split()
        if words and words[0] in _LIMIT_WORDS:
            return True
    return False


def strip_comments(sql: str) -> str:
    """Remove SQL comments, so a clause appended at the end is never commented out."""
    return sqlparse.format(sql, strip_comments=True).strip()


def ensure_row_limit(sql: str, kind: DatabaseKind, row_limit: int = 100) -> str:
    """
    Make sure a SELECT statement carries a row cap in its dialect.
    
    Statements that already limit their rows, non-SELECT statements and
    MongoDB commands are returned unchanged (minus a trailing semicolon).
    Comments are removed from capped statements. SQL Server only gets TOP
    when the statement starts with SELECT; a CTE is left as written.
    
    Args:
        sql: Single cleaned statement
        kind: Target database kind
        row_limit: Cap to apply
        
    Returns:
        Statement with the row-limiting clause
    """
    sql = sql.strip().rstrip(";").rstrip()
    dialect = get_dialect(kind)

    if dialect.limit_style == "none" or not is_select(sql):
        return sql

    sql = strip_comments(sql).rstrip(";").rstrip()
    if has_row_limit(sql):
        return sql

    if dialect.limit_style == "limit":
        return f"{sql} LIMIT {row_limit}"

    if dialect.limit_style == "fetch_first":
        return f"{sql} FETCH FIRST {row_limit} ROWS ONLY"

    match = _SELECT_HEAD.match(sql)
    if not match:
        return sql
    return f"{sql[:match.end()]}TOP {row_limit} {sql[match.end():]}"


def quote_literal(value: str) -> str:
    """Single-quoted SQL string literal."""
    return "'" + value.replace("'", "''") + "'"
