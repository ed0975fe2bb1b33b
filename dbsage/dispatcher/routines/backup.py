"""
Backup inventory analysis for every database kind, with an optional
AI review of the inventory when a backend is supplied.
"""

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

from dbsage.dispatcher.registry import routine
from dbsage.dispatcher.report import RoutineContext, format_size
from dbsage.errors import BackendError
from dbsage.logging_config import get_logger
from dbsage.prompts import BACKUP_REVIEW_USER, INSIGHT_SYSTEM
from dbsage.schemas.analysis import AnalysisKind
from dbsage.schemas.connection import DatabaseKind

logger = get_logger(__name__)

REVIEW_MAX_TOKENS = 1500
REVIEW_TEMPERATURE = 0.7

SQLSERVER_BACKUP_TYPES = {"D": "Full", "I": "Differential", "L": "Log", "F": "File"}


@dataclass
class BackupEntry:
    """One backup (or archive checkpoint) found in the inventory."""

    date: str | None
    backup_type: str
    size_bytes: float | None = None
    duration_seconds: float | None = None
    status: str = "N/A"
    location: str | None = None


def parse_timestamp(value) -> datetime | None:
    if isinstance(value, datetime):
        return value
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value))
    except ValueError:
        return None


def format_duration(seconds: float | None) -> str:
    if not seconds:
        return "N/A"
    minutes, secs = divmod(int(seconds), 60)
    hours, minutes = divmod(minutes, 60)
    if hours:
        return f"{hours}h{minutes:02d}m{secs:02d}s"
    if minutes:
        return f"{minutes}m{secs:02d}s"
    return f"{secs}s"


def _seconds_between(start, end) -> float | None:
    start_ts, end_ts = parse_timestamp(start), parse_timestamp(end)
    if start_ts is None or end_ts is None:
        return None
    return (end_ts - start_ts).total_seconds()


# =============================================================================
# Inventory per database kind
# =============================================================================

def _oracle_backups(ctx: RoutineContext) -> list[BackupEntry] | None:
    rows = ctx.query(
        """
        SELECT start_time, end_time, elapsed_seconds, status, input_type, output_bytes, output_device_type
        FROM v$rman_backup_job_details
        ORDER BY start_time DESC
        FETCH FIRST 20 ROWS ONLY
        """,
        "RMAN backup jobs",
    )
    if rows is None:
        return None
    return [
        BackupEntry(
            date=r["start_time"],
            backup_type=r["input_type"] or "N/A",
            size_bytes=r["output_bytes"],
            duration_seconds=r["elapsed_seconds"],
            status=r["status"] or "N/A",
            location=r["output_device_type"],
        )
        for r in rows
    ]


def _sqlserver_backups(ctx: RoutineContext) -> list[BackupEntry] | None:
    rows = ctx.query(
        """
        SELECT TOP 20
            bs.database_name,
            bs.backup_start_date,
            bs.backup_finish_date,
            bs.type,
            bs.backup_size,
            bmf.physical_device_name
        FROM msdb.dbo.backupset bs
        INNER JOIN msdb.dbo.backupmediafamily bmf ON bs.media_set_id = bmf.media_set_id
        ORDER BY bs.backup_start_date DESC
        """,
        "Backup history (msdb)",
    )
    if rows is None:
        return None
    return [
        BackupEntry(
            date=r["backup_start_date"],
            backup_type=f"{SQLSERVER_BACKUP_TYPES.get(r['type'], r['type'])} ({r['database_name']})",
            size_bytes=r["backup_size"],
            duration_seconds=_seconds_between(r["backup_start_date"], r["backup_finish_date"]),
            status="success",
            location=r["physical_device_name"],
        )
        for r in rows
    ]


def _postgres_backups(ctx: RoutineContext) -> list[BackupEntry] | None:
    rows = ctx.query(
        """
        SELECT archived_count, last_archived_wal, last_archived_time,
               failed_count, last_failed_wal, last_failed_time
        FROM pg_stat_archiver
        """,
        "WAL archiver",
    )
    if rows is None:
        return None

    entries = []
    for r in rows:
        if r["last_archived_time"]:
            entries.append(BackupEntry(
                date=r["last_archived_time"],
                backup_type=f"WAL archive ({r['archived_count']} segments)",
                status="success",
                location=r["last_archived_wal"],
            ))
        if r["last_failed_time"]:
            entries.append(BackupEntry(
                date=r["last_failed_time"],
                backup_type=f"WAL archive ({r['failed_count']} failures)",
                status="failed",
                location=r["last_failed_wal"],
            ))
    return entries


def _mysql_backups(ctx: RoutineContext) -> list[BackupEntry] | None:
    # Only populated by MySQL Enterprise Backup
    rows = ctx.query(
        """
        SELECT start_time AS start_time, end_time AS end_time, backup_type AS backup_type,
               exit_state AS exit_state, backup_destination AS backup_destination
        FROM mysql.backup_history
        ORDER BY start_time DESC
        LIMIT 20
        """,
        "Backup history (mysql.backup_history)",
        warn=False,
    )
    if rows is None:
        return []
    return [
        BackupEntry(
            date=r["start_time"],
            backup_type=r["backup_type"] or "N/A",
            duration_seconds=_seconds_between(r["start_time"], r["end_time"]),
            status=r["exit_state"] or "N/A",
            location=r["backup_destination"],
        )
        for r in rows
    ]


def _oplog_entry(ctx: RoutineContext, direction: int) -> dict | None:
    rows = ctx.query(
        json.dumps({
            "find": "oplog.rs",
            "sort": {"$natural": direction},
            "limit": 1,
            "projection": {"ts": 1, "wall": 1},
            "$db": "local",
        }),
        "Oplog window",
    )
    return rows[0] if rows else None


def _mongodb_backups(ctx: RoutineContext) -> list[BackupEntry] | None:
    first = _oplog_entry(ctx, 1)
    if first is None:
        return None
    last = _oplog_entry(ctx, -1)
    if last is None:
        return None
    return [
        BackupEntry(
            date=last.get("wall"),
            backup_type="Oplog window (point-in-time recovery range)",
            duration_seconds=_seconds_between(first.get("wall"), last.get("wall")),
            status="available",
            location="local.oplog.rs",
        )
    ]


INVENTORIES: dict[DatabaseKind, Callable[[RoutineContext], list[BackupEntry] | None]] = {
    DatabaseKind.ORACLE: _oracle_backups,
    DatabaseKind.SQLSERVER: _sqlserver_backups,
    DatabaseKind.POSTGRESQL: _postgres_backups,
    DatabaseKind.MYSQL: _mysql_backups,
    DatabaseKind.MONGODB: _mongodb_backups,
}


def hours_since(entries: list[BackupEntry], now: datetime | None = None) -> float | None:
    """Hours elapsed since the most recent entry (None when no entry has a date)."""
    dates = [d for d in (parse_timestamp(e.date) for e in entries) if d is not None]
    if not dates:
        return None
    latest = max(dates, key=lambda d: d.replace(tzinfo=None))
    if now is None:
        now = datetime.now(timezone.utc) if latest.tzinfo else datetime.now()
    elif latest.tzinfo is None and now.tzinfo is not None:
        now = now.replace(tzinfo=None)
    return (now - latest).total_seconds() / 3600


def backup_summary(label: str, entries: list[BackupEntry]) -> str:
    lines = [f"Database type: {label}", "", "Backups found:"]
    for e in entries:
        lines.append(
            f"- Date: {e.date or 'N/A'}, Type: {e.backup_type}, Status: {e.status}, "
            f"Size: {format_size(e.size_bytes)}"
        )
    return "\n".join(lines)


@routine(DatabaseKind.POSTGRESQL, AnalysisKind.BACKUP)
@routine(DatabaseKind.MYSQL, AnalysisKind.BACKUP)
@routine(DatabaseKind.SQLSERVER, AnalysisKind.BACKUP)
@routine(DatabaseKind.ORACLE, AnalysisKind.BACKUP)
@routine(DatabaseKind.MONGODB, AnalysisKind.BACKUP)
def backup_analysis(ctx: RoutineContext) -> None:
    label = ctx.dialect.label
    report = ctx.report
    report.heading(f"Backup Analysis - {label}", 1)

    entries = INVENTORIES[ctx.request.database_kind](ctx)
    if entries is None:
        return
    if not entries:
        report.warning("No backups found, or backup information is not available")
        return

    report.heading("Backups Found")
    report.table(
        ["Date", "Type", "Size", "Duration", "Status", "Location"],
        [
            [e.date, e.backup_type, format_size(e.size_bytes), format_duration(e.duration_seconds), e.status, e.location]
            for e in entries
        ],
    )

    elapsed = hours_since(entries)
    if elapsed is not None:
        report.detail("Hours since last backup", round(elapsed, 1))
        report.text()

    if ctx.backend is None:
        return

    report.heading("Analysis and Recommendations (AI)")
    prompt = BACKUP_REVIEW_USER.format(
        backup_summary=backup_summary(label, entries),
        hours_since_backup="unknown" if elapsed is None else f"{elapsed:.1f}",
    )
    try:
        review = ctx.backend.complete(
            INSIGHT_SYSTEM,
            [{"role": "user", "content": prompt}],
            max_tokens=REVIEW_MAX_TOKENS,
            temperature=REVIEW_TEMPERATURE,
        )
    except BackendError as e:
        logger.warning("backup_review_failed", error=str(e))
        ctx.skip("AI recommendations", "backend failed", error=str(e))
        return
    report.text(review.strip())
