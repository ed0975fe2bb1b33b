"""
MongoDB analysis routines.

Statements are JSON database commands (see dbsage.connections.mongo).
"""

import json
from datetime import datetime

from dbsage.dispatcher.registry import routine
from dbsage.dispatcher.report import RoutineContext, format_size
from dbsage.schemas.analysis import AnalysisKind
from dbsage.schemas.connection import DatabaseKind

MONGO = DatabaseKind.MONGODB


def command(name: str, database: str = "admin", **options) -> str:
    """JSON text for a database command."""
    return json.dumps({name: 1, **options, "$db": database})


def _parse_time(value) -> datetime | None:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            return None
    return None


def _server_status(ctx: RoutineContext, section: str) -> dict | None:
    rows = ctx.query(command("serverStatus"), section)
    if not rows:
        return None
    return rows[0]


@routine(MONGO, AnalysisKind.REPLICATION)
def mongodb_replication(ctx: RoutineContext) -> None:
    report = ctx.report
    report.heading("MongoDB Replica Set", 1)

    members = ctx.query(command("replSetGetStatus"), "Replica set status")
    if members is None:
        return
    if not members:
        report.warning("Replica set has no members")
        return

    primary_optime = None
    for member in members:
        if member.get("stateStr") == "PRIMARY":
            primary_optime = _parse_time(member.get("optimeDate"))

    rows = []
    for member in members:
        optime = _parse_time(member.get("optimeDate"))
        lag = None
        if primary_optime and optime and member.get("stateStr") != "PRIMARY":
            lag = (primary_optime - optime).total_seconds()
        rows.append([member.get("name"), member.get("stateStr"), member.get("health"), member.get("optimeDate"), lag])

    report.table(["Member", "State", "Health", "Last Optime", "Lag (s)"], rows)

    if primary_optime is None:
        report.warning("No PRIMARY member found")
    unhealthy = [m.get("name") for m in members if m.get("health") not in (1, 1.0, True)]
    if unhealthy:
        report.warning(f"Unhealthy members: {', '.join(str(n) for n in unhealthy)}")


@routine(MONGO, AnalysisKind.SHARDING)
def mongodb_sharding(ctx: RoutineContext) -> None:
    report = ctx.report
    report.heading("MongoDB Sharding", 1)

    shards = ctx.query(command("listShards"), "Shard list")
    if shards is None:
        return
    if not shards:
        report.warning("No shards registered (not a sharded cluster?)")
        return
    report.table(
        ["Shard", "Host", "State"],
        [[s.get("_id"), s.get("host"), s.get("state")] for s in shards],
    )

    report.heading("Databases")
    rows = ctx.query(command("listDatabases"), "Database list")
    if rows is not None:
        report.table(
            ["Database", "Size", "Empty"],
            [[r.get("name"), format_size(r.get("sizeOnDisk")), r.get("empty")] for r in rows],
        )


@routine(MONGO, AnalysisKind.LATENCY)
def mongodb_latency(ctx: RoutineContext) -> None:
    report = ctx.report
    report.heading("MongoDB Operation Latency", 1)

    status = _server_status(ctx, "Server status")
    if status is None:
        return
    latencies = status.get("opLatencies") or {}
    if not latencies:
        report.warning("opLatencies not reported by this server")
        return

    rows = []
    for operation in ("reads", "writes", "commands", "transactions"):
        stats = latencies.get(operation)
        if not isinstance(stats, dict):
            continue
        ops = stats.get("ops") or 0
        total_us = stats.get("latency") or 0
        average = total_us / ops if ops else None
        rows.append([operation, ops, total_us, average])
    report.table(["Operation", "Ops", "Total Latency (µs)", "Avg Latency (µs)"], rows)


@routine(MONGO, AnalysisKind.PERFORMANCE)
def mongodb_performance(ctx: RoutineContext) -> None:
    report = ctx.report
    report.heading("MongoDB Performance", 1)

    status = _server_status(ctx, "Server status")
    if status is None:
        return

    report.detail("Version", status.get("version"))
    report.detail("Uptime (s)", status.get("uptime"))

    connections = status.get("connections") or {}
    report.heading("Connections")
    report.detail("Current", connections.get("current"))
    report.detail("Available", connections.get("available"))
    report.detail("Total Created", connections.get("totalCreated"))

    opcounters = status.get("opcounters") or {}
    report.heading("Operation Counters")
    report.table(["Operation", "Count"], [[name, count] for name, count in opcounters.items()])

    memory = status.get("mem") or {}
    report.heading("Memory")
    report.detail("Resident (MB)", memory.get("resident"))
    report.detail("Virtual (MB)", memory.get("virtual"))
