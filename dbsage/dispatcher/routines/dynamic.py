"""
Natural-language ("dynamic") analysis.

The request title is turned into one dialect query by the backend, the
query is executed with a row cap and the result is interpreted by a
second backend call.
"""

from dbsage.agents.chat_agent.sql_cleaner import clean_sql
from dbsage.connections.base import tabulate_rows
from dbsage.dialects import ensure_row_limit
from dbsage.dispatcher.registry import routine
from dbsage.dispatcher.report import RoutineContext
from dbsage.errors import BackendError, QueryExecutionError
from dbsage.logging_config import get_logger
from dbsage.prompts import (
    DYNAMIC_INTERPRETATION_SYSTEM,
    DYNAMIC_INTERPRETATION_USER,
    DYNAMIC_QUERY_SYSTEM,
    DYNAMIC_QUERY_USER,
)
from dbsage.schemas.analysis import AnalysisKind
from dbsage.schemas.connection import DatabaseKind

logger = get_logger(__name__)

DEFAULT_REQUEST = "show general information about the database"

SCHEMA_UNAVAILABLE = "Schema information unavailable"

SCHEMA_QUERIES: dict[DatabaseKind, str] = {
    DatabaseKind.POSTGRESQL: """
        SELECT table_schema, table_name, column_name, data_type
        FROM information_schema.columns
        WHERE table_schema NOT IN ('pg_catalog', 'information_schema')
        ORDER BY table_schema, table_name, ordinal_position
        LIMIT 100
    """,
    DatabaseKind.MYSQL: """
        SELECT table_schema AS table_schema, table_name AS table_name,
               column_name AS column_name, data_type AS data_type
        FROM information_schema.columns
        WHERE table_schema NOT IN ('information_schema', 'mysql', 'performance_schema', 'sys')
        ORDER BY table_schema, table_name, ordinal_position
        LIMIT 100
    """,
    DatabaseKind.SQLSERVER: """
        SELECT TOP 100
            TABLE_SCHEMA AS table_schema, TABLE_NAME AS table_name,
            COLUMN_NAME AS column_name, DATA_TYPE AS data_type
        FROM INFORMATION_SCHEMA.COLUMNS
        WHERE TABLE_SCHEMA NOT IN ('sys', 'information_schema')
        ORDER BY TABLE_SCHEMA, TABLE_NAME, ORDINAL_POSITION
    """,
    DatabaseKind.ORACLE: """
        SELECT owner AS table_schema, table_name, column_name, data_type
        FROM all_tab_columns
        WHERE owner NOT IN ('SYS', 'SYSTEM', 'SYSAUX')
          AND ROWNUM <= 100
        ORDER BY owner, table_name, column_id
    """,
}

GENERATE_MAX_TOKENS = 1000
GENERATE_TEMPERATURE = 0.3
INTERPRET_MAX_TOKENS = 2000
INTERPRET_TEMPERATURE = 0.7


def schema_info(ctx: RoutineContext) -> str:
    """Best-effort column listing for the prompt. Never fails."""
    try:
        rows = ctx.connection.query(SCHEMA_QUERIES[ctx.request.database_kind])
    except QueryExecutionError as e:
        logger.warning("dynamic_schema_unavailable", error=str(e))
        return SCHEMA_UNAVAILABLE
    if not rows:
        return SCHEMA_UNAVAILABLE

    lines = [f"{ctx.dialect.label} schema:"]
    lines.extend(
        f"- {r['table_schema']}.{r['table_name']}.{r['column_name']} ({r['data_type']})" for r in rows
    )
    return "\n".join(lines)


@routine(DatabaseKind.POSTGRESQL, AnalysisKind.DYNAMIC)
@routine(DatabaseKind.MYSQL, AnalysisKind.DYNAMIC)
@routine(DatabaseKind.SQLSERVER, AnalysisKind.DYNAMIC)
@routine(DatabaseKind.ORACLE, AnalysisKind.DYNAMIC)
def dynamic_analysis(ctx: RoutineContext) -> None:
    """
    Answer a natural-language request with one generated query.
    
    A BackendError while generating the query propagates; a failed query
    or interpretation degrades the report.
    """
    request = (ctx.request.title or "").strip() or DEFAULT_REQUEST
    row_limit = ctx.settings.dynamic_row_limit
    dialect = ctx.dialect
    backend = ctx.backend

    raw = backend.complete(
        DYNAMIC_QUERY_SYSTEM.format(database_label=dialect.label),
        [{
            "role": "user",
            "content": DYNAMIC_QUERY_USER.format(
                database_label=dialect.label,
                schema=schema_info(ctx),
                request=request,
                limit_hint=dialect.limit_hint(row_limit),
            ),
        }],
        max_tokens=GENERATE_MAX_TOKENS,
        temperature=GENERATE_TEMPERATURE,
    )
    sql = ensure_row_limit(clean_sql(raw), ctx.request.database_kind, row_limit)

    report = ctx.report
    report.heading("Dynamic Analysis", 1)
    report.detail("Request", request)
    report.text()
    report.heading("Generated Query")
    report.code(sql or "-- empty", "sql")

    if not sql:
        ctx.skip("Results", "the model returned no query")
        return

    rows = ctx.query(sql, "Results")
    if rows is None:
        return
    result = tabulate_rows(rows, limit=row_limit)

    report.heading("Results")
    report.code(result)

    try:
        interpretation = backend.complete(
            DYNAMIC_INTERPRETATION_SYSTEM,
            [{
                "role": "user",
                "content": DYNAMIC_INTERPRETATION_USER.format(request=request, query=sql, result=result),
            }],
            max_tokens=INTERPRET_MAX_TOKENS,
            temperature=INTERPRET_TEMPERATURE,
        )
    except BackendError as e:
        logger.warning("dynamic_interpretation_failed", error=str(e))
        ctx.skip("AI Interpretation", "backend failed", error=str(e), warn=False)
        return

    report.heading("AI Interpretation")
    report.text(interpretation.strip())
