"""SQL Server analysis routines."""

from dbsage.dispatcher.registry import routine
from dbsage.dispatcher.report import RoutineContext, truncate
from dbsage.schemas.analysis import AnalysisKind
from dbsage.schemas.connection import DatabaseKind

MSSQL = DatabaseKind.SQLSERVER

RUNNING_QUERY_LIMIT = 10

LOCKS_DMV_SQL = """
    SELECT
        l.request_session_id,
        l.resource_database_id,
        l.resource_type,
        l.request_mode,
        l.request_status,
        OBJECT_NAME(p.object_id) AS object_name,
        i.name AS index_name
    FROM sys.dm_tran_locks l
    LEFT JOIN sys.partitions p ON l.resource_associated_entity_id = p.hobt_id
    LEFT JOIN sys.indexes i ON p.object_id = i.object_id AND p.index_id = i.index_id
    WHERE l.resource_database_id = DB_ID()
    ORDER BY l.request_session_id
"""

ACTIVE_SESSIONS_SQL = """
    SELECT
        s.session_id,
        s.login_name,
        s.program_name,
        r.command,
        r.status AS request_status,
        r.cpu_time,
        r.total_elapsed_time,
        t.text AS sql_text
    FROM sys.dm_exec_sessions s
    INNER JOIN sys.dm_exec_requests r ON s.session_id = r.session_id
    OUTER APPLY sys.dm_exec_sql_text(r.sql_handle) t
    WHERE s.is_user_process = 1
    ORDER BY r.start_time DESC
"""

BLOCKING_SESSIONS_SQL = """
    SELECT
        blocking.session_id AS blocking_session_id,
        blocking.login_name AS blocking_login,
        blocked.session_id AS blocked_session_id,
        blocked_session.login_name AS blocked_login,
        blocked.wait_type,
        blocked.wait_time,
        blocked.wait_resource,
        t.text AS blocked_sql_text
    FROM sys.dm_exec_sessions blocking
    INNER JOIN sys.dm_exec_requests blocked ON blocking.session_id = blocked.blocking_session_id
    INNER JOIN sys.dm_exec_sessions blocked_session ON blocked_session.session_id = blocked.session_id
    OUTER APPLY sys.dm_exec_sql_text(blocked.sql_handle) t
    WHERE blocking.is_user_process = 1
"""

RUNNING_QUERIES_SQL = """
    SELECT
        r.session_id,
        r.request_id,
        r.start_time,
        r.status,
        r.command,
        r.cpu_time,
        r.total_elapsed_time,
        r.reads,
        r.writes,
        r.logical_reads,
        SUBSTRING(t.text, (r.statement_start_offset / 2) + 1,
            ((CASE r.statement_end_offset
                WHEN -1 THEN DATALENGTH(t.text)
                ELSE r.statement_end_offset
            END - r.statement_start_offset) / 2) + 1) AS statement_text,
        s.login_name,
        s.program_name,
        s.host_name
    FROM sys.dm_exec_requests r
    CROSS APPLY sys.dm_exec_sql_text(r.sql_handle) t
    INNER JOIN sys.dm_exec_sessions s ON r.session_id = s.session_id
    WHERE r.status IN ('running', 'runnable', 'suspended')
    ORDER BY r.total_elapsed_time DESC
"""


def bracket(name: str) -> str:
    """Quote an identifier with brackets."""
    return "[" + name.replace("]", "]]") + "]"


@routine(MSSQL, AnalysisKind.DIAGNOSTIC)
def sqlserver_diagnostic(ctx: RoutineContext) -> None:
    report = ctx.report
    report.heading("SQL Server Diagnostic", 1)

    rows = ctx.query("SELECT @@VERSION AS version", "Version")
    if rows:
        report.detail("Version", rows[0]["version"])

    report.heading("Top Waits")
    rows = ctx.query(
        """
        SELECT TOP 10 wait_type, waiting_tasks_count, wait_time_ms, max_wait_time_ms, signal_wait_time_ms
        FROM sys.dm_os_wait_stats
        WHERE wait_time_ms > 0
        ORDER BY wait_time_ms DESC
        """,
        "Wait statistics",
    )
    if rows is not None:
        report.table(
            ["Wait Type", "Tasks", "Wait (ms)", "Max Wait (ms)", "Signal (ms)"],
            [[r["wait_type"], r["waiting_tasks_count"], r["wait_time_ms"], r["max_wait_time_ms"], r["signal_wait_time_ms"]] for r in rows],
        )


@routine(MSSQL, AnalysisKind.TABLES)
def sqlserver_tables(ctx: RoutineContext) -> None:
    report = ctx.report
    report.heading("SQL Server Tables", 1)
    rows = ctx.query(
        """
        SELECT TOP 20
            SCHEMA_NAME(t.schema_id) AS schema_name,
            t.name AS table_name,
            SUM(p.rows) AS row_count,
            t.modify_date
        FROM sys.tables t
        INNER JOIN sys.partitions p ON p.object_id = t.object_id AND p.index_id IN (0, 1)
        GROUP BY t.schema_id, t.name, t.modify_date
        ORDER BY SUM(p.rows) DESC
        """,
        "Tables",
    )
    if rows is not None:
        report.table(
            ["Schema", "Table", "Rows", "Modified"],
            [[r["schema_name"], r["table_name"], r["row_count"], r["modify_date"]] for r in rows],
        )


@routine(MSSQL, AnalysisKind.QUERY)
def sqlserver_queries(ctx: RoutineContext) -> None:
    report = ctx.report
    report.heading("SQL Server Query Analysis", 1)
    report.heading("Top Queries by CPU")
    rows = ctx.query(
        """
        SELECT TOP 20
            qs.execution_count,
            qs.total_worker_time / 1000 AS total_cpu_ms,
            qs.total_elapsed_time / 1000 AS total_elapsed_ms,
            qs.total_logical_reads,
            qs.last_execution_time,
            t.text AS sql_text
        FROM sys.dm_exec_query_stats qs
        CROSS APPLY sys.dm_exec_sql_text(qs.sql_handle) t
        ORDER BY qs.total_worker_time DESC
        """,
        "Query statistics",
    )
    if rows is not None:
        report.table(
            ["Query", "Executions", "CPU (ms)", "Elapsed (ms)", "Logical Reads", "Last Run"],
            [
                [truncate(r["sql_text"]), r["execution_count"], r["total_cpu_ms"], r["total_elapsed_ms"],
                 r["total_logical_reads"], r["last_execution_time"]]
                for r in rows
            ],
        )


@routine(MSSQL, AnalysisKind.DISK)
def sqlserver_disk(ctx: RoutineContext) -> None:
    report = ctx.report
    report.heading("SQL Server Disk Usage", 1)
    _database_sizes(ctx)
    _io_stats(ctx)


@routine(MSSQL, AnalysisKind.EXECUTION_PLAN)
def sqlserver_execution_plan(ctx: RoutineContext) -> None:
    statement = ctx.request.title.strip().rstrip(";")
    report = ctx.report
    report.heading("SQL Server Execution Plan", 1)
    report.code(statement, "sql")

    # SET SHOWPLAN_ALL must be alone in its batch
    if ctx.query("SET SHOWPLAN_ALL ON", "Execution plan") is None:
        return
    try:
        rows = ctx.query(statement, "Execution plan")
    finally:
        ctx.query("SET SHOWPLAN_ALL OFF", "Showplan reset", warn=False)
    if not rows:
        return

    report.heading("Plan Operators")
    report.table(
        ["Operation", "Estimated Rows", "Estimated I/O", "Estimated CPU", "Subtree Cost"],
        [
            [str(r.get("StmtText") or "").strip(), r.get("EstimateRows"), r.get("EstimateIO"),
             r.get("EstimateCPU"), r.get("TotalSubtreeCost")]
            for r in rows
        ],
    )


@routine(MSSQL, AnalysisKind.LOCKS)
def sqlserver_locks(ctx: RoutineContext) -> None:
    report = ctx.report
    report.heading("SQL Server Lock Analysis", 1)

    report.heading("Locks (sp_lock)")
    rows = ctx.query("EXEC sp_lock", "sp_lock", warn=False)
    if rows:
        report.table(
            ["SPID", "DBID", "ObjID", "IndId", "Type", "Resource", "Mode", "Status"],
            [[r.get("spid"), r.get("dbid"), r.get("ObjId"), r.get("IndId"), r.get("Type"),
              r.get("Resource"), r.get("Mode"), r.get("Status")] for r in rows],
        )
    elif rows is None:
        report.text("sp_lock unavailable, using sys.dm_tran_locks only.")
        report.text()

    report.heading("Detailed Locks (DMV)")
    rows = ctx.query(LOCKS_DMV_SQL, "Lock DMV")
    if rows is not None:
        report.table(
            ["Session ID", "Database", "Object", "Index", "Resource Type", "Mode", "Status"],
            [
                [r["request_session_id"], r["resource_database_id"], r["object_name"], r["index_name"],
                 r["resource_type"], r["request_mode"], r["request_status"]]
                for r in rows
            ],
        )


@routine(MSSQL, AnalysisKind.ACTIVE_SESSIONS)
def sqlserver_active_sessions(ctx: RoutineContext) -> None:
    report = ctx.report
    report.heading("SQL Server Active Sessions", 1)

    report.heading("Running Requests")
    rows = ctx.query(ACTIVE_SESSIONS_SQL, "Active sessions")
    if rows is not None:
        report.table(
            ["Session ID", "Login", "Program", "Command", "Status", "CPU (ms)", "Elapsed (ms)", "SQL Text"],
            [
                [r["session_id"], r["login_name"], r["program_name"], r["command"], r["request_status"],
                 r["cpu_time"], r["total_elapsed_time"], truncate(r["sql_text"], 100)]
                for r in rows
            ],
        )

    report.heading("Blocking Between Sessions")
    rows = ctx.query(BLOCKING_SESSIONS_SQL, "Blocking sessions")
    if rows is None:
        return
    if not rows:
        report.success("No blocked sessions")
        return
    report.table(
        ["Blocking (Session)", "Blocked (Session)", "Wait Type", "Wait Time (ms)", "Wait Resource", "SQL Text"],
        [
            [f"{r['blocking_session_id']} ({r['blocking_login']})",
             f"{r['blocked_session_id']} ({r['blocked_login']})",
             r["wait_type"], r["wait_time"], r["wait_resource"], truncate(r["blocked_sql_text"])]
            for r in rows
        ],
    )


@routine(MSSQL, AnalysisKind.RUNNING_QUERIES)
def sqlserver_running_queries(ctx: RoutineContext) -> None:
    report = ctx.report
    report.heading("SQL Server Running Queries", 1)

    rows = ctx.query(RUNNING_QUERIES_SQL, "Running queries")
    if rows is None:
        return
    if not rows:
        report.success("No queries running")
        return

    for r in rows[:RUNNING_QUERY_LIMIT]:
        report.heading(f"Query {r['request_id']} (Session: {r['session_id']})", 3)
        report.detail("Login", r["login_name"])
        report.detail("Program", r["program_name"])
        report.detail("Host", r["host_name"])
        report.detail("Status", r["status"])
        report.detail("Command", r["command"])
        report.detail("Started", r["start_time"])
        report.detail("CPU Time (ms)", r["cpu_time"])
        report.detail("Elapsed Time (ms)", r["total_elapsed_time"])
        report.bullet(f"**Reads:** {r['reads']} | **Writes:** {r['writes']} | **Logical Reads:** {r['logical_reads']}")
        report.text()
        if r["statement_text"]:
            report.code(r["statement_text"], "sql")

    if len(rows) > RUNNING_QUERY_LIMIT:
        report.text(f"... more queries (limited to {RUNNING_QUERY_LIMIT})")


@routine(MSSQL, AnalysisKind.INSTANCE)
def sqlserver_instance(ctx: RoutineContext) -> None:
    report = ctx.report
    report.heading("SQL Server Instance", 1)

    report.heading("Instance Information")
    rows = ctx.query(
        """
        SELECT
            @@SERVERNAME AS server_name,
            @@VERSION AS version,
            @@SERVICENAME AS service_name,
            @@MAX_CONNECTIONS AS max_connections,
            DB_NAME() AS current_database,
            GETDATE() AS server_time
        """,
        "Instance information",
    )
    if rows:
        r = rows[0]
        report.detail("Server", r["server_name"])
        report.detail("Version", truncate(r["version"], 120))
        report.detail("Service", r["service_name"])
        report.detail("Max Connections", r["max_connections"])
        report.detail("Current Database", r["current_database"])
        report.detail("Server Time", r["server_time"])

    report.heading("Memory and CPU")
    rows = ctx.query(
        """
        SELECT
            cpu_count,
            hyperthread_ratio,
            physical_memory_kb / 1024 AS physical_memory_mb,
            committed_kb / 1024 AS committed_mb,
            committed_target_kb / 1024 AS committed_target_mb,
            sqlserver_start_time
        FROM sys.dm_os_sys_info
        """,
        "Memory and CPU",
    )
    if rows:
        r = rows[0]
        report.detail("CPUs", r["cpu_count"])
        report.detail("Hyperthread Ratio", r["hyperthread_ratio"])
        report.detail("Physical Memory (MB)", r["physical_memory_mb"])
        report.detail("Committed (MB)", r["committed_mb"])
        report.detail("Committed Target (MB)", r["committed_target_mb"])
        report.detail("Started", r["sqlserver_start_time"])

    report.heading("User Connections")
    rows = ctx.query(
        """
        SELECT
            COUNT(*) AS total_connections,
            SUM(CASE WHEN status = 'running' THEN 1 ELSE 0 END) AS running,
            SUM(CASE WHEN status = 'sleeping' THEN 1 ELSE 0 END) AS sleeping,
            SUM(CASE WHEN status = 'runnable' THEN 1 ELSE 0 END) AS runnable
        FROM sys.dm_exec_sessions
        WHERE is_user_process = 1
        """,
        "User connections",
    )
    if rows:
        r = rows[0]
        report.table(
            ["Total", "Running", "Sleeping", "Runnable"],
            [[r["total_connections"], r["running"], r["sleeping"], r["runnable"]]],
        )


def _database_sizes(ctx: RoutineContext) -> None:
    ctx.report.heading("Database Sizes")
    rows = ctx.query(
        """
        SELECT d.name, SUM(CAST(mf.size AS BIGINT)) * 8 / 1024 AS size_mb
        FROM sys.master_files mf
        INNER JOIN sys.databases d ON mf.database_id = d.database_id
        GROUP BY d.name
        ORDER BY size_mb DESC
        """,
        "Database sizes",
    )
    if rows is not None:
        ctx.report.table(["Database", "Size (MB)"], [[r["name"], r["size_mb"]] for r in rows])


def _io_stats(ctx: RoutineContext) -> None:
    ctx.report.heading("I/O per Database")
    rows = ctx.query(
        """
        SELECT
            DB_NAME(database_id) AS database_name,
            SUM(num_of_reads) AS total_reads,
            SUM(num_of_writes) AS total_writes,
            SUM(io_stall_read_ms) AS read_stall_ms,
            SUM(io_stall_write_ms) AS write_stall_ms
        FROM sys.dm_io_virtual_file_stats(NULL, NULL)
        GROUP BY database_id
        ORDER BY total_reads DESC
        """,
        "I/O statistics",
    )
    if rows is not None:
        ctx.report.table(
            ["Database", "Reads", "Writes", "Read Stall (ms)", "Write Stall (ms)"],
            [[r["database_name"], r["total_reads"], r["total_writes"], r["read_stall_ms"], r["write_stall_ms"]] for r in rows],
        )


@routine(MSSQL, AnalysisKind.DATABASES)
def sqlserver_databases(ctx: RoutineContext) -> None:
    report = ctx.report
    report.heading("SQL Server Databases", 1)

    report.heading("Databases")
    rows = ctx.query(
        """
        SELECT database_id, name, state_desc, recovery_model_desc, compatibility_level, user_access_desc
        FROM sys.databases
        ORDER BY name
        """,
        "Database list",
    )
    if rows is not None:
        report.table(
            ["ID", "Name", "State", "Recovery", "Compatibility", "Access"],
            [
                [r["database_id"], r["name"], r["state_desc"], r["recovery_model_desc"],
                 r["compatibility_level"], r["user_access_desc"]]
                for r in rows
            ],
        )
        offline = [r["name"] for r in rows if r["state_desc"] != "ONLINE"]
        if offline:
            report.warning(f"Databases not ONLINE: {', '.join(offline)}")

    _database_sizes(ctx)
    _io_stats(ctx)


@routine(MSSQL, AnalysisKind.DATABASE)
def sqlserver_database(ctx: RoutineContext) -> None:
    name = (ctx.request.title or "").strip() or ctx.request.connection.database
    quoted = bracket(name)
    literal = name.replace("'", "''")
    report = ctx.report
    report.heading(f"SQL Server Database: {name}", 1)

    report.heading("Database Information")
    rows = ctx.query(
        f"""
        SELECT name, database_id, recovery_model_desc, state_desc, user_access_desc, is_read_only
        FROM sys.databases
        WHERE name = N'{literal}'
        """,
        "Database information",
    )
    if rows is not None:
        if not rows:
            report.warning(f"Database '{name}' not found")
            return
        r = rows[0]
        report.detail("Database", r["name"])
        report.detail("ID", r["database_id"])
        report.detail("Recovery Model", r["recovery_model_desc"])
        report.detail("Status", r["state_desc"])
        report.detail("Access", r["user_access_desc"])
        report.detail("Read Only", bool(r["is_read_only"]))

    report.heading("Tables")
    rows = ctx.query(
        f"""
        SELECT TOP 20
            s.name AS schema_name,
            t.name AS table_name,
            t.create_date,
            t.modify_date
        FROM {quoted}.sys.tables t
        INNER JOIN {quoted}.sys.schemas s ON s.schema_id = t.schema_id
        ORDER BY t.name
        """,
        "Tables",
    )
    if rows is not None:
        report.table(
            ["Schema", "Table", "Created", "Modified"],
            [[r["schema_name"], r["table_name"], r["create_date"], r["modify_date"]] for r in rows],
        )

    report.heading("Space")
    rows = ctx.query(
        f"""
        SELECT
            SUM(CAST(size AS BIGINT)) * 8 / 1024 AS total_size_mb,
            SUM(CASE WHEN type_desc = 'ROWS' THEN CAST(size AS BIGINT) ELSE 0 END) * 8 / 1024 AS data_size_mb,
            SUM(CASE WHEN type_desc = 'LOG' THEN CAST(size AS BIGINT) ELSE 0 END) * 8 / 1024 AS log_size_mb
        FROM {quoted}.sys.database_files
        """,
        "Space",
    )
    if rows:
        r = rows[0]
        report.detail("Total (MB)", r["total_size_mb"])
        report.detail("Data (MB)", r["data_size_mb"])
        report.detail("Log (MB)", r["log_size_mb"])
