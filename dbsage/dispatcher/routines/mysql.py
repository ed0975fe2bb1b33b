"""MySQL analysis routines."""

from dbsage.dispatcher.registry import routine
from dbsage.dispatcher.report import RoutineContext, format_size, truncate
from dbsage.schemas.analysis import AnalysisKind
from dbsage.schemas.connection import DatabaseKind

MYSQL = DatabaseKind.MYSQL

# MySQL 8 reports information_schema headings in upper case, so every column
# read by name is aliased
SYSTEM_SCHEMAS = "('information_schema', 'mysql', 'performance_schema', 'sys')"

# Keys worth surfacing from SHOW SLAVE STATUS, in display order
REPLICA_STATUS_KEYS = [
    "Master_Host",
    "Master_Port",
    "Slave_IO_Running",
    "Slave_SQL_Running",
    "Master_Log_File",
    "Read_Master_Log_Pos",
    "Relay_Master_Log_File",
    "Exec_Master_Log_Pos",
    "Last_IO_Error",
    "Last_SQL_Error",
    "Seconds_Behind_Master",
]


@routine(MYSQL, AnalysisKind.DIAGNOSTIC)
def mysql_diagnostic(ctx: RoutineContext) -> None:
    report = ctx.report
    report.heading("MySQL Diagnostic", 1)

    rows = ctx.query("SELECT VERSION() AS version", "Version")
    if rows:
        report.detail("Version", rows[0]["version"])

    report.heading("Server Status")
    rows = ctx.query(
        "SHOW GLOBAL STATUS WHERE Variable_name IN "
        "('Threads_connected', 'Threads_running', 'Uptime', 'Slow_queries', 'Aborted_connects')",
        "Server status",
    )
    if rows is not None:
        for row in rows:
            report.bullet(f"{row['Variable_name']}: {row['Value']}")


@routine(MYSQL, AnalysisKind.TUNING)
def mysql_tuning(ctx: RoutineContext) -> None:
    report = ctx.report
    report.heading("MySQL Tuning", 1)

    report.heading("Key Variables")
    rows = ctx.query(
        "SHOW GLOBAL VARIABLES WHERE Variable_name IN "
        "('innodb_buffer_pool_size', 'max_connections', 'innodb_log_file_size', "
        "'tmp_table_size', 'max_heap_table_size', 'slow_query_log', 'long_query_time')",
        "Variables",
    )
    if rows is not None:
        report.table(["Variable", "Value"], [[r["Variable_name"], r["Value"]] for r in rows])

    report.heading("Buffer Pool Efficiency")
    rows = ctx.query(
        "SHOW GLOBAL STATUS WHERE Variable_name IN "
        "('Innodb_buffer_pool_read_requests', 'Innodb_buffer_pool_reads')",
        "Buffer pool status",
    )
    if rows:
        values = {r["Variable_name"]: float(r["Value"]) for r in rows}
        requests = values.get("Innodb_buffer_pool_read_requests", 0)
        disk_reads = values.get("Innodb_buffer_pool_reads", 0)
        if requests:
            ratio = 100.0 * (1 - disk_reads / requests)
            report.detail("Buffer pool hit ratio (%)", ratio)
            if ratio < 99:
                report.warning("Buffer pool hit ratio below 99%: consider raising innodb_buffer_pool_size")


@routine(MYSQL, AnalysisKind.TABLES)
def mysql_tables(ctx: RoutineContext) -> None:
    report = ctx.report
    report.heading("MySQL Tables", 1)
    rows = ctx.query(
        f"""
        SELECT table_schema AS table_schema, table_name AS table_name, engine AS engine,
               table_rows AS table_rows, data_length AS data_length, index_length AS index_length
        FROM information_schema.tables
        WHERE table_schema NOT IN {SYSTEM_SCHEMAS}
        ORDER BY data_length + index_length DESC
        LIMIT 20
        """,
        "Tables",
    )
    if rows is not None:
        report.table(
            ["Schema", "Table", "Engine", "Rows", "Data", "Indexes"],
            [
                [r["table_schema"], r["table_name"], r["engine"], r["table_rows"],
                 format_size(r["data_length"]), format_size(r["index_length"])]
                for r in rows
            ],
        )


@routine(MYSQL, AnalysisKind.INDEXES)
def mysql_indexes(ctx: RoutineContext) -> None:
    report = ctx.report
    report.heading("MySQL Indexes", 1)
    report.heading("Unused Indexes")
    rows = ctx.query(
        "SELECT object_schema AS object_schema, object_name AS object_name, index_name AS index_name "
        "FROM sys.schema_unused_indexes LIMIT 20",
        "Unused indexes (requires the sys schema)",
    )
    if rows is not None:
        if rows:
            report.table(
                ["Schema", "Table", "Index"],
                [[r["object_schema"], r["object_name"], r["index_name"]] for r in rows],
            )
        else:
            report.success("No unused indexes found")

    report.heading("Tables without a Primary Key")
    rows = ctx.query(
        f"""
        SELECT t.table_schema AS table_schema, t.table_name AS table_name
        FROM information_schema.tables t
        LEFT JOIN information_schema.table_constraints c
            ON c.table_schema = t.table_schema
            AND c.table_name = t.table_name
            AND c.constraint_type = 'PRIMARY KEY'
        WHERE t.table_schema NOT IN {SYSTEM_SCHEMAS}
        AND t.table_type = 'BASE TABLE'
        AND c.constraint_name IS NULL
        LIMIT 20
        """,
        "Tables without primary key",
    )
    if rows is not None:
        if rows:
            report.table(["Schema", "Table"], [[r["table_schema"], r["table_name"]] for r in rows])
        else:
            report.success("Every table has a primary key")


@routine(MYSQL, AnalysisKind.QUERY)
def mysql_queries(ctx: RoutineContext) -> None:
    report = ctx.report
    report.heading("MySQL Query Analysis", 1)
    report.heading("Top Statements by Total Latency")
    rows = ctx.query(
        """
        SELECT digest_text AS digest_text, count_star AS count_star,
               sum_timer_wait / 1000000000 AS total_ms,
               avg_timer_wait / 1000000000 AS avg_ms, sum_rows_examined AS sum_rows_examined
        FROM performance_schema.events_statements_summary_by_digest
        ORDER BY sum_timer_wait DESC
        LIMIT 20
        """,
        "Statement digests (performance_schema)",
    )
    if rows is not None:
        report.table(
            ["Query", "Calls", "Total (ms)", "Avg (ms)", "Rows Examined"],
            [[truncate(r["digest_text"]), r["count_star"], r["total_ms"], r["avg_ms"], r["sum_rows_examined"]] for r in rows],
        )


@routine(MYSQL, AnalysisKind.DISK)
def mysql_disk(ctx: RoutineContext) -> None:
    report = ctx.report
    report.heading("MySQL Disk Usage", 1)
    rows = ctx.query(
        """
        SELECT table_schema AS table_schema, SUM(data_length) AS data_bytes, SUM(index_length) AS index_bytes,
               SUM(data_free) AS free_bytes
        FROM information_schema.tables
        GROUP BY table_schema
        ORDER BY SUM(data_length + index_length) DESC
        """,
        "Schema sizes",
    )
    if rows is not None:
        report.table(
            ["Schema", "Data", "Indexes", "Free"],
            [[r["table_schema"], format_size(r["data_bytes"]), format_size(r["index_bytes"]), format_size(r["free_bytes"])] for r in rows],
        )


@routine(MYSQL, AnalysisKind.EXECUTION_PLAN)
def mysql_execution_plan(ctx: RoutineContext) -> None:
    statement = ctx.request.title.strip().rstrip(";")
    report = ctx.report
    report.heading("MySQL Execution Plan", 1)
    report.code(statement, "sql")

    rows = ctx.query(f"EXPLAIN FORMAT=JSON {statement}", "Execution plan")
    if rows:
        report.heading("Plan")
        report.code(str(next(iter(rows[0].values()))), "json")


@routine(MYSQL, AnalysisKind.REPLICATION, AnalysisKind.MYSQL_REPLICATION)
def mysql_replication(ctx: RoutineContext) -> None:
    report = ctx.report
    report.heading("MySQL Replication", 1)

    replica = ctx.query("SHOW SLAVE STATUS", "Replica status", warn=False)
    if replica:
        status = replica[0]
        report.heading("Replication Status (Replica)")
        report.table(
            ["Parameter", "Value"],
            [[key, status.get(key)] for key in REPLICA_STATUS_KEYS if key in status],
        )
        lag = status.get("Seconds_Behind_Master")
        if lag is None:
            report.warning("Replication lag unknown: the SQL thread is not running")
        else:
            report.text(f"Replication lag: {lag} seconds")
        return

    primary = ctx.query("SHOW MASTER STATUS", "Primary status", warn=False)
    if primary:
        status = primary[0]
        report.heading("Replication Status (Primary)")
        report.table(
            ["Parameter", "Value"],
            [
                ["File", status.get("File")],
                ["Position", status.get("Position")],
                ["Binlog Do DB", status.get("Binlog_Do_DB")],
                ["Binlog Ignore DB", status.get("Binlog_Ignore_DB")],
            ],
        )
        return

    report.warning("Replication not configured or no permission to read its status")


@routine(MYSQL, AnalysisKind.LOCKS, AnalysisKind.MYSQL_LOCKS)
def mysql_locks(ctx: RoutineContext) -> None:
    report = ctx.report
    report.heading("MySQL Lock Analysis", 1)

    report.heading("Active Processes")
    rows = ctx.query(
        """
        SELECT id AS id, user AS user, host AS host, db AS db, command AS command,
               time AS time, state AS state, info AS info
        FROM information_schema.PROCESSLIST
        WHERE command != 'Sleep' OR time > 0
        ORDER BY time DESC
        """,
        "Process list",
    )
    if rows is not None:
        report.table(
            ["ID", "User", "Host", "DB", "Command", "Time (s)", "State", "Query"],
            [[r["id"], r["user"], r["host"], r["db"], r["command"], r["time"], r["state"], truncate(r["info"])] for r in rows],
        )

    report.heading("InnoDB Lock Waits")
    rows = ctx.query(
        """
        SELECT
            r.trx_mysql_thread_id AS waiting_thread,
            r.trx_query AS waiting_query,
            b.trx_mysql_thread_id AS blocking_thread,
            b.trx_query AS blocking_query
        FROM information_schema.INNODB_LOCK_WAITS w
        INNER JOIN information_schema.INNODB_TRX b ON b.trx_id = w.blocking_trx_id
        INNER JOIN information_schema.INNODB_TRX r ON r.trx_id = w.requesting_trx_id
        """,
        "InnoDB lock waits",
    )
    if rows is None:
        return
    if not rows:
        report.success("No InnoDB lock waits")
        return
    report.table(
        ["Blocked (Thread)", "Blocking (Thread)", "Blocked Query", "Blocking Query"],
        [[r["waiting_thread"], r["blocking_thread"], truncate(r["waiting_query"]), truncate(r["blocking_query"])] for r in rows],
    )


@routine(MYSQL, AnalysisKind.FRAGMENTATION, AnalysisKind.MYSQL_FRAGMENTATION)
def mysql_fragmentation(ctx: RoutineContext) -> None:
    report = ctx.report
    report.heading("MySQL Fragmentation", 1)
    report.heading("Tables with Free Space")
    rows = ctx.query(
        f"""
        SELECT
            table_schema AS table_schema,
            table_name AS table_name,
            ROUND(((data_length + index_length) / 1024 / 1024), 2) AS size_mb,
            ROUND((data_free / 1024 / 1024), 2) AS free_mb,
            ROUND((data_free / (data_length + index_length + data_free)) * 100, 2) AS frag_percent,
            table_rows AS table_rows
        FROM information_schema.tables
        WHERE table_schema NOT IN {SYSTEM_SCHEMAS}
        AND data_free > 0
        ORDER BY data_free DESC
        LIMIT 20
        """,
        "Fragmentation",
    )
    if rows is None:
        return
    if not rows:
        report.success("No fragmented tables")
        return
    report.table(
        ["Schema", "Table", "Size (MB)", "Free (MB)", "% Fragmented", "Rows"],
        [[r["table_schema"], r["table_name"], r["size_mb"], r["free_mb"], r["frag_percent"], r["table_rows"]] for r in rows],
    )
    worst = [r["table_name"] for r in rows if float(r["frag_percent"] or 0) > 20]
    if worst:
        report.warning(f"Consider OPTIMIZE TABLE for: {', '.join(worst)}")
