"""
Oracle RAC (Real Application Clusters) analysis routines.

Every routine first checks that the database is clustered and stops with a
warning otherwise.
"""

from dbsage.dispatcher.registry import routine
from dbsage.dispatcher.report import RoutineContext, truncate
from dbsage.schemas.analysis import AnalysisKind
from dbsage.schemas.connection import DatabaseKind

ORACLE = DatabaseKind.ORACLE

CLUSTERWARE_COMMANDS = [
    "crsctl check cluster -all",
    "crsctl status resource -t",
    "olsnodes -n -s",
]

CROSS_INSTANCE_BLOCKING_SQL = """
    SELECT
        l1.inst_id AS blocking_inst,
        l1.sid AS blocking_sid,
        l2.inst_id AS waiting_inst,
        l2.sid AS waiting_sid,
        l1.type AS lock_type,
        l2.ctime AS wait_seconds
    FROM gv$lock l1
    JOIN gv$lock l2 ON l1.id1 = l2.id1 AND l1.id2 = l2.id2
    WHERE l1.block > 0
      AND l2.request > 0
      AND l1.inst_id != l2.inst_id
"""


def is_rac(ctx: RoutineContext) -> bool:
    """True when the database runs as a cluster."""
    rows = ctx.query(
        "SELECT value FROM v$parameter WHERE name = 'cluster_database'",
        "Cluster detection",
        warn=False,
    )
    if rows:
        return str(rows[0]["value"]).upper() == "TRUE"

    rows = ctx.query(
        "SELECT COUNT(DISTINCT instance_number) AS instances FROM gv$instance",
        "Cluster detection",
    )
    return bool(rows) and int(rows[0]["instances"] or 0) > 1


def _require_rac(ctx: RoutineContext) -> bool:
    if is_rac(ctx):
        return True
    ctx.report.warning("This database is not running as Oracle RAC (cluster_database = FALSE)")
    return False


def _interconnects(ctx: RoutineContext) -> None:
    ctx.report.heading("Cluster Interconnects")
    rows = ctx.query(
        "SELECT inst_id, name, ip_address, is_public, source FROM gv$cluster_interconnects ORDER BY inst_id",
        "Cluster interconnects",
    )
    if rows is not None:
        ctx.report.table(
            ["Instance", "Interface", "IP Address", "Public", "Source"],
            [[r["inst_id"], r["name"], r["ip_address"], r["is_public"], r["source"]] for r in rows],
        )


@routine(ORACLE, AnalysisKind.RAC_HEALTH)
def rac_health(ctx: RoutineContext) -> None:
    report = ctx.report
    report.heading("Oracle RAC Health", 1)
    if not _require_rac(ctx):
        return

    report.heading("Cluster Instances")
    rows = ctx.query(
        """
        SELECT inst_id, instance_name, host_name, version, status, database_status, startup_time
        FROM gv$instance
        ORDER BY inst_id
        """,
        "Cluster instances",
    )
    if rows is not None:
        report.table(
            ["Instance", "Name", "Host", "Version", "Status", "Database Status", "Started"],
            [
                [r["inst_id"], r["instance_name"], r["host_name"], r["version"], r["status"],
                 r["database_status"], r["startup_time"]]
                for r in rows
            ],
        )
        report.heading("Node Status")
        for r in rows:
            mark = "✅" if r["status"] == "OPEN" else "❌"
            report.bullet(f"{mark} {r['instance_name']} on {r['host_name']}: {r['status']}")
        report.text()

    report.heading("Services")
    rows = ctx.query(
        """
        SELECT s.inst_id, s.name, s.network_name, NVL(a.status, 'NOT RUNNING') AS status
        FROM gv$services s
        LEFT JOIN gv$active_services a ON a.inst_id = s.inst_id AND a.name = s.name
        WHERE s.name NOT LIKE 'SYS%'
        ORDER BY s.name, s.inst_id
        """,
        "Services",
    )
    if rows is not None:
        report.table(
            ["Instance", "Service", "Network Name", "Status"],
            [
                [r["inst_id"], r["name"], r["network_name"],
                 ("✅ " if r["status"] == "READY" else "⚠️ ") + str(r["status"])]
                for r in rows
            ],
        )

    _interconnects(ctx)


@routine(ORACLE, AnalysisKind.RAC_ERRORS)
def rac_errors(ctx: RoutineContext) -> None:
    report = ctx.report
    report.heading("Oracle RAC Errors", 1)
    if not _require_rac(ctx):
        return

    report.heading("Alert Log (last 24 hours)")
    rows = ctx.query(
        """
        SELECT inst_id, originating_timestamp, message_text
        FROM gv$diag_alert_ext
        WHERE originating_timestamp >= SYSTIMESTAMP - INTERVAL '1' DAY
          AND (message_text LIKE '%ORA-%' OR message_level <= 2)
        ORDER BY originating_timestamp DESC
        FETCH FIRST 50 ROWS ONLY
        """,
        "Alert log",
        warn=False,
    )
    if rows is not None:
        if rows:
            report.table(
                ["Instance", "Time", "Message"],
                [[r["inst_id"], r["originating_timestamp"], truncate(r["message_text"], 120)] for r in rows],
            )
        else:
            report.success("No alert log errors in the last 24 hours")
    else:
        rows = ctx.query(
            """
            SELECT inst_id, instance_name, status, database_status
            FROM gv$instance
            WHERE status != 'OPEN' OR database_status != 'ACTIVE'
            """,
            "Instance problems",
        )
        if rows is not None:
            if rows:
                report.table(
                    ["Instance", "Name", "Status", "Database Status"],
                    [[r["inst_id"], r["instance_name"], r["status"], r["database_status"]] for r in rows],
                )
            else:
                report.success("All instances OPEN and ACTIVE")

    report.heading("Clusterware")
    report.text("Clusterware state is not visible from SQL. Check it on a cluster node with:")
    report.text()
    report.code("\n".join(CLUSTERWARE_COMMANDS), "bash")

    _interconnects(ctx)

    report.heading("Cluster Network")
    rows = ctx.query(
        "SELECT inst_id, name, ip_address FROM gv$cluster_network ORDER BY inst_id",
        "Cluster network",
    )
    if rows is not None:
        report.table(["Instance", "Interface", "IP Address"], [[r["inst_id"], r["name"], r["ip_address"]] for r in rows])

    report.heading("Deadlocks (last 7 days)")
    rows = ctx.query(
        """
        SELECT inst_id, deadlock_time, sql_text
        FROM gv$deadlock_history
        WHERE deadlock_time >= SYSTIMESTAMP - INTERVAL '7' DAY
        ORDER BY deadlock_time DESC
        """,
        "Deadlock history",
    )
    if rows is not None:
        if rows:
            report.table(
                ["Instance", "Time", "SQL"],
                [[r["inst_id"], r["deadlock_time"], truncate(r["sql_text"])] for r in rows],
            )
        else:
            report.success("No deadlocks recorded")


@routine(ORACLE, AnalysisKind.RAC_LISTENER)
def rac_listener(ctx: RoutineContext) -> None:
    report = ctx.report
    report.heading("Oracle RAC Listeners", 1)
    if not _require_rac(ctx):
        return

    report.heading("Service Registration")
    rows = ctx.query(
        """
        SELECT s.inst_id, s.name, NVL(a.status, 'NOT RUNNING') AS status
        FROM gv$services s
        LEFT JOIN gv$active_services a ON a.inst_id = s.inst_id AND a.name = s.name
        WHERE s.name NOT LIKE 'SYS%'
        ORDER BY s.inst_id, s.name
        """,
        "Registered services",
    )
    if rows is not None:
        per_instance: dict = {}
        for r in rows:
            total, ready = per_instance.get(r["inst_id"], (0, 0))
            per_instance[r["inst_id"]] = (total + 1, ready + (1 if r["status"] == "READY" else 0))
        for inst_id, (total, ready) in sorted(per_instance.items()):
            mark = "✅" if ready == total else "⚠️"
            report.bullet(f"{mark} Instance {inst_id}: {ready}/{total} services READY")
        report.text()
        report.table(["Instance", "Service", "Status"], [[r["inst_id"], r["name"], r["status"]] for r in rows])
    report.text("Listener status itself is reported by `lsnrctl status` on each node.")
    report.text()

    report.heading("Connections per Instance")
    rows = ctx.query(
        """
        SELECT inst_id, program, status, COUNT(*) AS sessions
        FROM gv$session
        WHERE type = 'USER'
        GROUP BY inst_id, program, status
        ORDER BY inst_id, sessions DESC
        """,
        "Sessions per instance",
    )
    if rows is not None:
        report.table(
            ["Instance", "Program", "Status", "Sessions"],
            [[r["inst_id"], truncate(r["program"], 30), r["status"], r["sessions"]] for r in rows],
        )

    report.heading("Session Errors")
    rows = ctx.query(
        """
        SELECT inst_id, sid, username, event, seconds_in_wait
        FROM gv$session
        WHERE type = 'USER' AND state = 'WAITING' AND wait_class = 'Network'
        ORDER BY seconds_in_wait DESC
        FETCH FIRST 20 ROWS ONLY
        """,
        "Session errors",
    )
    if rows is not None:
        if rows:
            report.table(
                ["Instance", "SID", "User", "Event", "Seconds Waiting"],
                [[r["inst_id"], r["sid"], r["username"], r["event"], r["seconds_in_wait"]] for r in rows],
            )
        else:
            report.success("No sessions stuck on network waits")

    if ctx.request.log_path:
        report.text(f"Listener log supplied: {ctx.request.log_path} (run a 'logs' analysis on it for details).")
        report.text()


@routine(ORACLE, AnalysisKind.RAC_LATENCY)
def rac_latency(ctx: RoutineContext) -> None:
    report = ctx.report
    report.heading("Oracle RAC Latency", 1)
    if not _require_rac(ctx):
        return

    report.heading("SQL Elapsed Time per Instance")
    rows = ctx.query(
        """
        SELECT
            inst_id,
            ROUND(AVG(elapsed_time / NULLIF(executions, 0)) / 1000, 2) AS avg_ms,
            ROUND(MAX(elapsed_time / NULLIF(executions, 0)) / 1000, 2) AS max_ms,
            ROUND(MIN(elapsed_time / NULLIF(executions, 0)) / 1000, 2) AS min_ms
        FROM gv$sqlstats
        WHERE executions > 0
        GROUP BY inst_id
        ORDER BY inst_id
        """,
        "SQL latency",
    )
    if rows is not None:
        report.table(
            ["Instance", "Avg (ms)", "Max (ms)", "Min (ms)"],
            [[r["inst_id"], r["avg_ms"], r["max_ms"], r["min_ms"]] for r in rows],
        )

    report.heading("Global Cache Statistics")
    rows = ctx.query(
        """
        SELECT inst_id, name, value
        FROM gv$sysstat
        WHERE name LIKE 'gc %' OR name LIKE '%global cache%'
        ORDER BY inst_id, name
        """,
        "Global cache statistics",
    )
    if rows is not None:
        report.table(["Instance", "Statistic", "Value"], [[r["inst_id"], r["name"], r["value"]] for r in rows])

    report.heading("Cross-Instance Blocking")
    rows = ctx.query(CROSS_INSTANCE_BLOCKING_SQL, "Cross-instance blocking")
    if rows is not None:
        if rows:
            report.table(
                ["Blocking (Inst/SID)", "Waiting (Inst/SID)", "Lock Type", "Waiting (s)"],
                [
                    [f"{r['blocking_inst']}/{r['blocking_sid']}", f"{r['waiting_inst']}/{r['waiting_sid']}",
                     r["lock_type"], r["wait_seconds"]]
                    for r in rows
                ],
            )
        else:
            report.success("No cross-instance blocking")
