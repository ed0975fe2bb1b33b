"""
Oracle analysis routines (single instance and multitenant).

Column names come back lower-cased: SQLAlchemy normalizes Oracle's
upper-case identifiers.
"""

from dbsage.dialects import quote_literal
from dbsage.dispatcher.registry import routine
from dbsage.dispatcher.report import RoutineContext, format_size, truncate
from dbsage.schemas.analysis import AnalysisKind
from dbsage.schemas.connection import DatabaseKind

ORACLE = DatabaseKind.ORACLE

ASH_WINDOW_MINUTES = 30
AWR_WINDOW_HOURS = 2
TABLESPACE_WARNING_PCT = 85

AWR_SNAPSHOTS_SQL = f"""
    SELECT snap_id, begin_interval_time, end_interval_time
    FROM dba_hist_snapshot
    WHERE begin_interval_time >= SYSTIMESTAMP - INTERVAL '{AWR_WINDOW_HOURS}' HOUR
    ORDER BY snap_id
"""

PDB_SIZES_SQL = """
    SELECT p.pdb_name, ROUND(SUM(f.bytes) / 1024 / 1024, 2) AS size_mb
    FROM cdb_pdbs p
    JOIN cdb_data_files f ON f.con_id = p.con_id
    GROUP BY p.pdb_name
    ORDER BY size_mb DESC
"""


@routine(ORACLE, AnalysisKind.DIAGNOSTIC)
def oracle_diagnostic(ctx: RoutineContext) -> None:
    report = ctx.report
    report.heading("Oracle Diagnostic", 1)

    rows = ctx.query("SELECT banner FROM v$version", "Version")
    if rows:
        report.detail("Version", rows[0]["banner"])

    report.heading("Instance")
    rows = ctx.query(
        "SELECT instance_name, host_name, status, database_status, startup_time FROM v$instance",
        "Instance",
    )
    if rows:
        r = rows[0]
        report.detail("Instance", r["instance_name"])
        report.detail("Host", r["host_name"])
        report.detail("Status", r["status"])
        report.detail("Database Status", r["database_status"])
        report.detail("Started", r["startup_time"])

    report.heading("Top Wait Events")
    rows = ctx.query(
        """
        SELECT event, total_waits, ROUND(time_waited_micro / 1000000, 2) AS time_waited_s
        FROM v$system_event
        WHERE wait_class != 'Idle'
        ORDER BY time_waited_micro DESC
        FETCH FIRST 10 ROWS ONLY
        """,
        "Wait events",
    )
    if rows is not None:
        report.table(
            ["Event", "Waits", "Time Waited (s)"],
            [[r["event"], r["total_waits"], r["time_waited_s"]] for r in rows],
        )


@routine(ORACLE, AnalysisKind.TABLESPACE)
def oracle_tablespace(ctx: RoutineContext) -> None:
    report = ctx.report
    report.heading("Oracle Tablespaces", 1)

    rows = ctx.query(
        """
        SELECT
            m.tablespace_name,
            ROUND(m.used_space * t.block_size / 1024 / 1024, 2) AS used_mb,
            ROUND(m.tablespace_size * t.block_size / 1024 / 1024, 2) AS total_mb,
            ROUND(m.used_percent, 2) AS used_percent
        FROM dba_tablespace_usage_metrics m
        JOIN dba_tablespaces t ON t.tablespace_name = m.tablespace_name
        ORDER BY m.used_percent DESC
        """,
        "Tablespace usage",
        warn=False,
    )
    if rows is None:
        # Older releases / missing grants: fall back to file sizes only
        rows = ctx.query(
            """
            SELECT tablespace_name, ROUND(SUM(bytes) / 1024 / 1024, 2) AS total_mb
            FROM dba_data_files
            GROUP BY tablespace_name
            ORDER BY total_mb DESC
            """,
            "Tablespace sizes",
        )
        if rows is not None:
            report.table(["Tablespace", "Size (MB)"], [[r["tablespace_name"], r["total_mb"]] for r in rows])
        return

    report.table(
        ["Tablespace", "Used (MB)", "Total (MB)", "Used %"],
        [[r["tablespace_name"], r["used_mb"], r["total_mb"], r["used_percent"]] for r in rows],
    )
    for r in rows:
        if r["used_percent"] is not None and r["used_percent"] >= TABLESPACE_WARNING_PCT:
            report.warning(f"Tablespace {r['tablespace_name']} is {r['used_percent']}% full")


@routine(ORACLE, AnalysisKind.DISK)
def oracle_disk(ctx: RoutineContext) -> None:
    report = ctx.report
    report.heading("Oracle Disk Usage", 1)

    report.heading("Data Files")
    rows = ctx.query(
        """
        SELECT file_name, tablespace_name, bytes, autoextensible
        FROM dba_data_files
        ORDER BY bytes DESC
        """,
        "Data files",
    )
    if rows is not None:
        report.table(
            ["File", "Tablespace", "Size", "Autoextend"],
            [[r["file_name"], r["tablespace_name"], format_size(r["bytes"]), r["autoextensible"]] for r in rows],
        )

    report.heading("Largest Segments")
    rows = ctx.query(
        """
        SELECT owner, segment_name, segment_type, bytes
        FROM dba_segments
        ORDER BY bytes DESC
        FETCH FIRST 20 ROWS ONLY
        """,
        "Segments",
    )
    if rows is not None:
        report.table(
            ["Owner", "Segment", "Type", "Size"],
            [[r["owner"], r["segment_name"], r["segment_type"], format_size(r["bytes"])] for r in rows],
        )


@routine(ORACLE, AnalysisKind.EXECUTION_PLAN)
def oracle_execution_plan(ctx: RoutineContext) -> None:
    statement = ctx.request.title.strip().rstrip(";")
    report = ctx.report
    report.heading("Oracle Execution Plan", 1)
    report.code(statement, "sql")

    if ctx.query(f"EXPLAIN PLAN FOR {statement}", "Execution plan") is None:
        return
    rows = ctx.query("SELECT plan_table_output FROM TABLE(DBMS_XPLAN.DISPLAY())", "Execution plan")
    if rows:
        report.heading("Plan")
        report.code("\n".join(str(r["plan_table_output"]) for r in rows))


@routine(ORACLE, AnalysisKind.AWR)
def oracle_awr(ctx: RoutineContext) -> None:
    report = ctx.report
    report.heading("Oracle AWR Report", 1)

    snapshots = ctx.query(AWR_SNAPSHOTS_SQL, "AWR snapshots")
    if snapshots is None:
        return
    if len(snapshots) < 2:
        report.warning(
            f"Not enough AWR snapshots in the last {AWR_WINDOW_HOURS} hours "
            f"(found {len(snapshots)}, need at least 2)"
        )
        return

    begin_id = snapshots[0]["snap_id"]
    end_id = snapshots[-1]["snap_id"]
    report.detail("Begin Snapshot", f"{begin_id} ({snapshots[0]['begin_interval_time']})")
    report.detail("End Snapshot", f"{end_id} ({snapshots[-1]['end_interval_time']})")

    db_rows = ctx.query("SELECT dbid FROM v$database", "Database id")
    inst_rows = ctx.query("SELECT instance_number FROM v$instance", "Instance number")
    if not db_rows or not inst_rows:
        return

    rows = ctx.query(
        f"""
        SELECT output FROM TABLE(DBMS_WORKLOAD_REPOSITORY.AWR_REPORT_TEXT(
            {int(db_rows[0]['dbid'])}, {int(inst_rows[0]['instance_number'])}, {int(begin_id)}, {int(end_id)}
        ))
        """,
        "AWR report",
    )
    if rows:
        report.heading("Report")
        report.code("\n".join(str(r["output"] or "") for r in rows))


@routine(ORACLE, AnalysisKind.ASH)
def oracle_ash(ctx: RoutineContext) -> None:
    report = ctx.report
    report.heading("Oracle Active Session History", 1)
    report.text(f"Window: last {ASH_WINDOW_MINUTES} minutes")
    report.text()

    report.heading("Top Events")
    rows = ctx.query(
        f"""
        SELECT NVL(event, 'ON CPU') AS event, NVL(wait_class, 'CPU') AS wait_class, COUNT(*) AS samples
        FROM v$active_session_history
        WHERE sample_time >= SYSTIMESTAMP - INTERVAL '{ASH_WINDOW_MINUTES}' MINUTE
        GROUP BY NVL(event, 'ON CPU'), NVL(wait_class, 'CPU')
        ORDER BY samples DESC
        FETCH FIRST 20 ROWS ONLY
        """,
        "ASH events",
    )
    if rows is not None:
        report.table(["Event", "Wait Class", "Samples"], [[r["event"], r["wait_class"], r["samples"]] for r in rows])

    report.heading("Top SQL")
    rows = ctx.query(
        f"""
        SELECT sql_id, COUNT(*) AS samples
        FROM v$active_session_history
        WHERE sample_time >= SYSTIMESTAMP - INTERVAL '{ASH_WINDOW_MINUTES}' MINUTE
          AND sql_id IS NOT NULL
        GROUP BY sql_id
        ORDER BY samples DESC
        FETCH FIRST 100 ROWS ONLY
        """,
        "ASH top SQL",
    )
    if rows is not None:
        report.table(["SQL ID", "Samples"], [[r["sql_id"], r["samples"]] for r in rows])


@routine(ORACLE, AnalysisKind.PDBS)
def oracle_pdbs(ctx: RoutineContext) -> None:
    report = ctx.report
    report.heading("Oracle Pluggable Databases", 1)

    report.heading("PDBs")
    rows = ctx.query(
        "SELECT con_id, pdb_name, status, creation_time FROM cdb_pdbs ORDER BY con_id",
        "PDB list",
    )
    if rows is not None:
        if not rows:
            report.warning("No pluggable databases found (is this a CDB?)")
            return
        report.table(
            ["Con ID", "PDB", "Status", "Created"],
            [[r["con_id"], r["pdb_name"], r["status"], r["creation_time"]] for r in rows],
        )

    report.heading("Storage per PDB")
    rows = ctx.query(PDB_SIZES_SQL, "PDB storage")
    if rows is not None:
        report.table(["PDB", "Size (MB)"], [[r["pdb_name"], r["size_mb"]] for r in rows])

    report.heading("Sessions per PDB")
    rows = ctx.query(
        """
        SELECT p.pdb_name, COUNT(s.sid) AS sessions
        FROM cdb_pdbs p
        LEFT JOIN v$session s ON s.con_id = p.con_id
        GROUP BY p.pdb_name
        ORDER BY sessions DESC
        """,
        "PDB sessions",
    )
    if rows is not None:
        report.table(["PDB", "Sessions"], [[r["pdb_name"], r["sessions"]] for r in rows])

    report.heading("SQL Activity per PDB")
    rows = ctx.query(
        """
        SELECT p.pdb_name, SUM(q.executions) AS executions, ROUND(SUM(q.elapsed_time) / 1000000, 2) AS elapsed_s
        FROM cdb_pdbs p
        JOIN v$sqlstats q ON q.con_id = p.con_id
        GROUP BY p.pdb_name
        ORDER BY elapsed_s DESC
        """,
        "PDB SQL activity",
    )
    if rows is not None:
        report.table(
            ["PDB", "Executions", "Elapsed (s)"],
            [[r["pdb_name"], r["executions"], r["elapsed_s"]] for r in rows],
        )


@routine(ORACLE, AnalysisKind.PDB)
def oracle_pdb(ctx: RoutineContext) -> None:
    pdb_name = ctx.request.title.strip().upper()
    report = ctx.report
    report.heading(f"Oracle PDB: {pdb_name}", 1)

    rows = ctx.query(
        f"""
        SELECT con_id, pdb_name, status, creation_time
        FROM cdb_pdbs
        WHERE pdb_name = {quote_literal(pdb_name)}
        """,
        "PDB information",
    )
    if rows is None:
        return
    if not rows:
        report.warning(f"PDB '{pdb_name}' not found")
        return

    pdb = rows[0]
    con_id = int(pdb["con_id"])
    report.detail("Con ID", con_id)
    report.detail("Status", pdb["status"])
    report.detail("Created", pdb["creation_time"])

    report.heading("Largest Tables")
    rows = ctx.query(
        f"""
        SELECT owner, table_name, num_rows, last_analyzed
        FROM cdb_tables
        WHERE con_id = {con_id}
        ORDER BY num_rows DESC NULLS LAST
        FETCH FIRST 20 ROWS ONLY
        """,
        "PDB tables",
    )
    if rows is not None:
        report.table(
            ["Owner", "Table", "Rows", "Last Analyzed"],
            [[r["owner"], r["table_name"], r["num_rows"], r["last_analyzed"]] for r in rows],
        )

    report.heading("Sessions")
    rows = ctx.query(
        f"""
        SELECT username, status, COUNT(*) AS sessions
        FROM v$session
        WHERE con_id = {con_id} AND username IS NOT NULL
        GROUP BY username, status
        ORDER BY sessions DESC
        """,
        "PDB sessions",
    )
    if rows is not None:
        report.table(["User", "Status", "Sessions"], [[r["username"], r["status"], r["sessions"]] for r in rows])

    report.heading("Top SQL")
    rows = ctx.query(
        f"""
        SELECT sql_text, executions, ROUND(elapsed_time / 1000000, 2) AS elapsed_s
        FROM v$sqlstats
        WHERE con_id = {con_id}
        ORDER BY elapsed_time DESC
        FETCH FIRST 10 ROWS ONLY
        """,
        "PDB top SQL",
    )
    if rows is not None:
        report.table(
            ["Query", "Executions", "Elapsed (s)"],
            [[truncate(r["sql_text"]), r["executions"], r["elapsed_s"]] for r in rows],
        )
