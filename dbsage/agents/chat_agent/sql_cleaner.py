"""
Output-shape cleanup for model-generated SQL.

Models wrap statements in markdown fences, prefix them with prose
("Here is the query:") and append explanations. clean_sql() keeps exactly
one statement. It is idempotent and total: it never raises and
clean_sql(clean_sql(x)) == clean_sql(x).

This is NOT a safety check. The statement is executed as written.
"""

import re

import sqlparse
from sqlparse import tokens as T

# A markdown fence opens a line or closes one; backticks inside a literal do neither
_FENCE_LINE = re.compile(r"^[ \t]*```[ \t]*[A-Za-z0-9_+-]*[ \t]*$", re.MULTILINE)
_FENCE_CLOSE = re.compile(r"```[ \t]*$", re.MULTILINE)
_FENCE_INLINE_OPEN = re.compile(r"^```(?:(?:sql|json|mysql|postgresql|tsql|plsql)\b)?[ \t]*", re.IGNORECASE)

_STATEMENT_START = re.compile(
    r"^\s*(?:(?:SELECT|WITH|SHOW|DESCRIBE|DESC|EXPLAIN|VALUES|INSERT|UPDATE|DELETE|MERGE|"
    r"CREATE|ALTER|DROP|TRUNCATE|EXEC|EXECUTE|CALL|PRAGMA|USE|SET|GRANT|REVOKE)\b|\{)",
    re.IGNORECASE | re.MULTILINE,
)

_BLANK_LINE = re.compile(r"\n[ \t]*\n")

# "This lists all orders." / "Note: it counts rows"
_SENTENCE = re.compile(r"^\s*[A-Z][a-z']*[:,]?(?:\s+[a-z][a-z'-]*[,.:]?){2,}")


def _unfence(text: str) -> str:
    opening = _FENCE_LINE.search(text)
    if not opening:
        return text
    body = text[opening.end():]
    closing = _FENCE_CLOSE.search(body)
    return body[:closing.start()] if closing else body


def _starts_with_keyword(line: str) -> bool:
    parsed = sqlparse.parse(line)
    if not parsed:
        return False
    for token in parsed[0].flatten():
        if token.is_whitespace:
            continue
        return token.ttype in T.Keyword
    return False


def _is_prose(line: str) -> bool:
    return bool(_SENTENCE.match(line)) and not _starts_with_keyword(line)


def _cut_trailing_prose(statement: str) -> str:
    lines = statement.split("\n")
    for index, line in enumerate(lines[1:], start=1):
        if _is_prose(line):
            return "\n".join(lines[:index])
    return statement


def clean_sql(raw: str | None) -> str:
    """
    Reduce model output to a single bare statement.
    
    Steps: take the first fenced block (if any), drop any remaining fence
    lines, skip prose before the first line that starts a statement,
    keep the first statement, cut it at the first blank line or prose
    line and drop the trailing semicolon.
    
    Returns:
        The statement, or "" when nothing usable is left
    """
    if not raw:
        return ""

    text = _unfence(raw)
    text = _FENCE_CLOSE.sub("", _FENCE_LINE.sub("", text)).strip()
    text = _FENCE_INLINE_OPEN.sub("", text)
    if len(text) >= 2 and text[0] == "`" and text[-1] == "`":
        text = text.strip("`").strip()

    start = _STATEMENT_START.search(text)
    if start:
        text = text[start.start():]

    statements = [s.strip() for s in sqlparse.split(text) if s.strip()]
    if not statements:
        return ""
    statement = statements[0]

    # Prose after a statement without a semicolon
    statement = _BLANK_LINE.split(statement, maxsplit=1)[0]
    statement = _cut_trailing_prose(statement)

    return statement.strip().rstrip(";").strip()
