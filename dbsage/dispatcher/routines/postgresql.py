"""PostgreSQL analysis routines."""

import json

from dbsage.dispatcher.registry import routine
from dbsage.dispatcher.report import RoutineContext, format_size, truncate
from dbsage.schemas.analysis import AnalysisKind
from dbsage.schemas.connection import DatabaseKind

PG = DatabaseKind.POSTGRESQL


DATABASE_STATS_SQL = """
    SELECT datname, numbackends, xact_commit, xact_rollback, blks_read, blks_hit
    FROM pg_stat_database
    WHERE datname NOT IN ('template0', 'template1', 'postgres')
    ORDER BY blks_hit DESC
"""

ACTIVE_LOCKS_SQL = """
    SELECT
        l.locktype,
        l.relation::regclass AS relation,
        l.pid,
        l.mode,
        l.granted,
        a.usename,
        a.query,
        age(now(), a.query_start) AS age
    FROM pg_locks l
    LEFT JOIN pg_stat_activity a ON l.pid = a.pid
    WHERE l.database = (SELECT oid FROM pg_database WHERE datname = current_database())
    ORDER BY a.query_start
"""

BLOCKING_LOCKS_SQL = """
    SELECT
        blocked_locks.pid AS blocked_pid,
        blocked_activity.usename AS blocked_user,
        blocking_locks.pid AS blocking_pid,
        blocking_activity.usename AS blocking_user,
        blocked_activity.query AS blocked_statement,
        blocking_activity.query AS blocking_statement
    FROM pg_catalog.pg_locks blocked_locks
    JOIN pg_catalog.pg_stat_activity blocked_activity ON blocked_activity.pid = blocked_locks.pid
    JOIN pg_catalog.pg_locks blocking_locks
        ON blocking_locks.locktype = blocked_locks.locktype
        AND blocking_locks.database IS NOT DISTINCT FROM blocked_locks.database
        AND blocking_locks.relation IS NOT DISTINCT FROM blocked_locks.relation
        AND blocking_locks.page IS NOT DISTINCT FROM blocked_locks.page
        AND blocking_locks.tuple IS NOT DISTINCT FROM blocked_locks.tuple
        AND blocking_locks.virtualxid IS NOT DISTINCT FROM blocked_locks.virtualxid
        AND blocking_locks.transactionid IS NOT DISTINCT FROM blocked_locks.transactionid
        AND blocking_locks.classid IS NOT DISTINCT FROM blocked_locks.classid
        AND blocking_locks.objid IS NOT DISTINCT FROM blocked_locks.objid
        AND blocking_locks.objsubid IS NOT DISTINCT FROM blocked_locks.objsubid
        AND blocking_locks.pid != blocked_locks.pid
    JOIN pg_catalog.pg_stat_activity blocking_activity ON blocking_activity.pid = blocking_locks.pid
    WHERE NOT blocked_locks.granted
"""

REPLICATION_SQL = """
    SELECT
        client_addr,
        state,
        sync_state,
        pg_wal_lsn_diff(pg_current_wal_lsn(), sent_lsn) AS sent_lag,
        pg_wal_lsn_diff(pg_current_wal_lsn(), write_lsn) AS write_lag,
        pg_wal_lsn_diff(pg_current_wal_lsn(), flush_lsn) AS flush_lag,
        pg_wal_lsn_diff(pg_current_wal_lsn(), replay_lsn) AS replay_lag
    FROM pg_stat_replication
"""

REPLICATION_SLOTS_SQL = """
    SELECT slot_name, plugin, slot_type, database, active, restart_lsn
    FROM pg_replication_slots
"""

FRAGMENTATION_SQL = """
    SELECT
        schemaname,
        relname AS tablename,
        pg_size_pretty(pg_total_relation_size(relid)) AS total_size,
        pg_size_pretty(pg_relation_size(relid)) AS table_size,
        pg_total_relation_size(relid) - pg_relation_size(relid)
            - COALESCE(pg_indexes_size(relid), 0) AS bloat_size,
        n_dead_tup,
        n_live_tup,
        CASE
            WHEN n_live_tup + n_dead_tup > 0
            THEN ROUND(100.0 * n_dead_tup / (n_live_tup + n_dead_tup), 2)
            ELSE 0
        END AS dead_tuple_percent,
        last_vacuum,
        last_autovacuum
    FROM pg_stat_user_tables
    WHERE n_dead_tup > 0
    ORDER BY bloat_size DESC
    LIMIT 20
"""


@routine(PG, AnalysisKind.DIAGNOSTIC)
def postgres_diagnostic(ctx: RoutineContext) -> None:
    report = ctx.report
    report.heading("PostgreSQL Diagnostic", 1)

    rows = ctx.query("SELECT version() AS version", "Version")
    if rows:
        report.detail("Version", rows[0]["version"])

    rows = ctx.query("SELECT count(*) AS connections FROM pg_stat_activity", "Active connections")
    if rows:
        report.detail("Active connections", rows[0]["connections"])

    report.heading("Database Statistics")
    rows = ctx.query(DATABASE_STATS_SQL, "Database statistics")
    if rows is not None:
        report.table(
            ["Database", "Backends", "Commits", "Rollbacks", "Blks Read", "Blks Hit"],
            [
                [r["datname"], r["numbackends"], r["xact_commit"], r["xact_rollback"], r["blks_read"], r["blks_hit"]]
                for r in rows
            ],
        )


@routine(PG, AnalysisKind.TUNING)
def postgres_tuning(ctx: RoutineContext) -> None:
    report = ctx.report
    report.heading("PostgreSQL Tuning", 1)

    report.heading("Memory and Planner Settings")
    rows = ctx.query(
        """
        SELECT name, setting, unit
        FROM pg_settings
        WHERE name IN ('shared_buffers', 'effective_cache_size', 'work_mem',
                       'maintenance_work_mem', 'max_connections', 'random_page_cost')
        ORDER BY name
        """,
        "Settings",
    )
    if rows is not None:
        report.table(["Setting", "Value", "Unit"], [[r["name"], r["setting"], r["unit"]] for r in rows])

    report.heading("Cache Hit Ratio")
    rows = ctx.query(
        """
        SELECT ROUND(100.0 * sum(blks_hit) / NULLIF(sum(blks_hit) + sum(blks_read), 0), 2) AS hit_ratio
        FROM pg_stat_database
        """,
        "Cache hit ratio",
    )
    if rows:
        ratio = rows[0]["hit_ratio"]
        report.detail("Buffer cache hit ratio (%)", ratio)
        if ratio is not None and float(ratio) < 99:
            report.warning("Cache hit ratio below 99%: consider raising shared_buffers")


@routine(PG, AnalysisKind.TABLES)
def postgres_tables(ctx: RoutineContext) -> None:
    report = ctx.report
    report.heading("PostgreSQL Tables", 1)
    rows = ctx.query(
        """
        SELECT schemaname, relname, seq_scan, idx_scan, n_live_tup, n_dead_tup,
               pg_total_relation_size(relid) AS total_bytes
        FROM pg_stat_user_tables
        ORDER BY COALESCE(seq_scan, 0) + COALESCE(idx_scan, 0) DESC
        LIMIT 20
        """,
        "Table statistics",
    )
    if rows is not None:
        report.table(
            ["Schema", "Table", "Seq Scans", "Index Scans", "Live Rows", "Dead Rows", "Size"],
            [
                [r["schemaname"], r["relname"], r["seq_scan"], r["idx_scan"], r["n_live_tup"],
                 r["n_dead_tup"], format_size(r["total_bytes"])]
                for r in rows
            ],
        )


@routine(PG, AnalysisKind.INDEXES)
def postgres_indexes(ctx: RoutineContext) -> None:
    report = ctx.report
    report.heading("PostgreSQL Indexes", 1)
    report.heading("Unused Indexes")
    rows = ctx.query(
        """
        SELECT schemaname, relname, indexrelname, idx_scan,
               pg_relation_size(indexrelid) AS index_bytes
        FROM pg_stat_user_indexes
        WHERE idx_scan = 0
        ORDER BY pg_relation_size(indexrelid) DESC
        LIMIT 10
        """,
        "Unused indexes",
    )
    if rows is None:
        return
    if not rows:
        report.success("No unused indexes found")
        return
    report.table(
        ["Schema", "Table", "Index", "Scans", "Size"],
        [[r["schemaname"], r["relname"], r["indexrelname"], r["idx_scan"], format_size(r["index_bytes"])] for r in rows],
    )


@routine(PG, AnalysisKind.QUERY)
def postgres_queries(ctx: RoutineContext) -> None:
    report = ctx.report
    report.heading("PostgreSQL Query Analysis", 1)

    report.heading("Top Queries by Total Time")
    rows = ctx.query(
        """
        SELECT query, calls, total_exec_time, mean_exec_time, max_exec_time
        FROM pg_stat_statements
        ORDER BY total_exec_time DESC
        LIMIT 20
        """,
        "pg_stat_statements (extension may not be enabled)",
    )
    if rows is not None:
        report.table(
            ["Query", "Calls", "Total (ms)", "Mean (ms)", "Max (ms)"],
            [[truncate(r["query"]), r["calls"], r["total_exec_time"], r["mean_exec_time"], r["max_exec_time"]] for r in rows],
        )

    report.heading("Current Activity")
    rows = ctx.query(
        """
        SELECT pid, usename, application_name, state, wait_event_type, wait_event, query
        FROM pg_stat_activity
        WHERE pid != pg_backend_pid()
        ORDER BY query_start
        """,
        "Current activity",
    )
    if rows is not None:
        report.table(
            ["PID", "User", "Application", "State", "Wait Event", "Query"],
            [
                [r["pid"], r["usename"], r["application_name"], r["state"],
                 f"{r['wait_event_type']}:{r['wait_event']}" if r["wait_event"] else None,
                 truncate(r["query"])]
                for r in rows
            ],
        )


@routine(PG, AnalysisKind.DISK)
def postgres_disk(ctx: RoutineContext) -> None:
    report = ctx.report
    report.heading("PostgreSQL Disk Usage", 1)

    report.heading("Databases")
    rows = ctx.query(
        "SELECT datname, pg_database_size(datname) AS size_bytes FROM pg_database "
        "WHERE NOT datistemplate ORDER BY size_bytes DESC",
        "Database sizes",
    )
    if rows is not None:
        report.table(["Database", "Size"], [[r["datname"], format_size(r["size_bytes"])] for r in rows])

    report.heading("Largest Relations")
    rows = ctx.query(
        """
        SELECT schemaname, relname, pg_total_relation_size(relid) AS total_bytes,
               pg_indexes_size(relid) AS index_bytes
        FROM pg_stat_user_tables
        ORDER BY pg_total_relation_size(relid) DESC
        LIMIT 20
        """,
        "Relation sizes",
    )
    if rows is not None:
        report.table(
            ["Schema", "Table", "Total Size", "Index Size"],
            [[r["schemaname"], r["relname"], format_size(r["total_bytes"]), format_size(r["index_bytes"])] for r in rows],
        )


@routine(PG, AnalysisKind.EXECUTION_PLAN)
def postgres_execution_plan(ctx: RoutineContext) -> None:
    statement = ctx.request.title.strip().rstrip(";")
    report = ctx.report
    report.heading("PostgreSQL Execution Plan", 1)
    report.code(statement, "sql")

    rows = ctx.query(f"EXPLAIN (FORMAT JSON) {statement}", "Execution plan")
    if rows:
        plan = next(iter(rows[0].values()))
        if not isinstance(plan, str):
            plan = json.dumps(plan, indent=2)
        report.heading("Plan")
        report.code(plan, "json")


@routine(PG, AnalysisKind.LOCKS, AnalysisKind.POSTGRES_LOCKS)
def postgres_locks(ctx: RoutineContext) -> None:
    report = ctx.report
    report.heading("PostgreSQL Lock Analysis", 1)

    report.heading("Active Locks")
    rows = ctx.query(ACTIVE_LOCKS_SQL, "Active locks")
    if rows is not None:
        report.table(
            ["PID", "User", "Type", "Relation", "Mode", "Granted", "Query", "Age"],
            [
                [r["pid"], r["usename"], r["locktype"], r["relation"], r["mode"], r["granted"],
                 truncate(r["query"]), r["age"]]
                for r in rows
            ],
        )

    report.heading("Blocking Locks")
    rows = ctx.query(BLOCKING_LOCKS_SQL, "Blocking locks")
    if rows is None:
        return
    if not rows:
        report.success("No blocked sessions")
        return
    report.table(
        ["Blocked (PID)", "Blocking (PID)", "Blocked Query", "Blocking Query"],
        [
            [f"{r['blocked_pid']} ({r['blocked_user'] or 'N/A'})",
             f"{r['blocking_pid']} ({r['blocking_user'] or 'N/A'})",
             truncate(r["blocked_statement"]),
             truncate(r["blocking_statement"])]
            for r in rows
        ],
    )


@routine(PG, AnalysisKind.REPLICATION, AnalysisKind.POSTGRES_REPLICATION)
def postgres_replication(ctx: RoutineContext) -> None:
    report = ctx.report
    report.heading("PostgreSQL Replication", 1)

    report.heading("Streaming Replicas")
    rows = ctx.query(REPLICATION_SQL, "Streaming replicas")
    if rows is not None:
        if rows:
            report.table(
                ["Client", "State", "Sync State", "Sent Lag", "Write Lag", "Flush Lag", "Replay Lag"],
                [
                    [r["client_addr"], r["state"], r["sync_state"], format_size(r["sent_lag"]),
                     format_size(r["write_lag"]), format_size(r["flush_lag"]), format_size(r["replay_lag"])]
                    for r in rows
                ],
            )
        else:
            report.warning("No streaming replicas connected to this server")

    report.heading("Replication Slots")
    rows = ctx.query(REPLICATION_SLOTS_SQL, "Replication slots")
    if rows is not None:
        report.table(
            ["Slot", "Plugin", "Type", "Database", "Active", "Restart LSN"],
            [[r["slot_name"], r["plugin"], r["slot_type"], r["database"], r["active"], r["restart_lsn"]] for r in rows],
        )
        inactive = [r["slot_name"] for r in rows if not r["active"]]
        if inactive:
            report.warning(f"Inactive slots retain WAL: {', '.join(inactive)}")


@routine(PG, AnalysisKind.FRAGMENTATION, AnalysisKind.POSTGRES_FRAGMENTATION)
def postgres_fragmentation(ctx: RoutineContext) -> None:
    report = ctx.report
    report.heading("PostgreSQL Fragmentation", 1)
    report.heading("Tables with Dead Tuples")

    rows = ctx.query(FRAGMENTATION_SQL, "Fragmentation")
    if rows is None:
        return
    if not rows:
        report.success("No tables with dead tuples")
        return

    def last_vacuum(row: dict) -> str:
        if row["last_vacuum"]:
            return str(row["last_vacuum"])
        if row["last_autovacuum"]:
            return f"Auto: {row['last_autovacuum']}"
        return "Never"

    report.table(
        ["Schema", "Table", "Total Size", "Table Size", "Dead Tuples", "% Dead", "Last Vacuum"],
        [
            [r["schemaname"], r["tablename"], r["total_size"], r["table_size"], r["n_dead_tup"],
             f"{float(r['dead_tuple_percent'] or 0):.2f}%", last_vacuum(r)]
            for r in rows
        ],
    )
