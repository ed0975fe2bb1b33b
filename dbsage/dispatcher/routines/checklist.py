"""
Maintenance checklists (daily / weekly / deep) for every database kind.

No database I/O: the checklist is generated from a fixed item catalog.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Literal

from dbsage.dispatcher.registry import routine
from dbsage.dispatcher.report import RoutineContext
from dbsage.schemas.analysis import AnalysisKind
from dbsage.schemas.connection import DatabaseKind

ChecklistLevel = Literal["daily", "weekly", "deep"]


@dataclass(frozen=True)
class ChecklistItem:
    title: str
    category: str
    priority: str  # high, medium, low
    status: str = "pending"


def _items(*entries: tuple[str, str, str]) -> list[ChecklistItem]:
    return [ChecklistItem(title, category, priority) for title, category, priority in entries]


CATALOG: dict[DatabaseKind, dict[str, list[ChecklistItem]]] = {
    DatabaseKind.ORACLE: {
        "daily": _items(
            ("Check database alerts", "Monitoring", "high"),
            ("Check tablespace free space", "Storage", "high"),
            ("Check active processes", "Performance", "medium"),
            ("Check error logs", "Logs", "high"),
            ("Check backup status", "Backup", "high"),
        ),
        "weekly": _items(
            ("Review AWR reports", "Performance", "high"),
            ("Check table fragmentation", "Maintenance", "medium"),
            ("Review object statistics", "Optimization", "medium"),
            ("Check unused indexes", "Optimization", "low"),
            ("Review ASH for slow queries", "Performance", "high"),
            ("Check data integrity", "Integrity", "high"),
            ("Review security settings", "Security", "medium"),
        ),
        "deep": _items(
            ("Full performance analysis (AWR)", "Performance", "high"),
            ("Full security audit", "Security", "high"),
            ("Capacity and growth analysis", "Capacity", "high"),
            ("Full index review", "Optimization", "high"),
            ("Full fragmentation analysis", "Maintenance", "medium"),
            ("Review instance parameters", "Configuration", "high"),
            ("Test backup restore", "Backup", "high"),
            ("Review replication / Data Guard", "High Availability", "high"),
            ("Review permissions and roles", "Security", "high"),
            ("Analyse network latency", "Network", "medium"),
        ),
    },
    DatabaseKind.SQLSERVER: {
        "daily": _items(
            ("Check SQL Agent jobs", "Jobs", "high"),
            ("Check data file free space", "Storage", "high"),
            ("Check locks and blocking", "Performance", "high"),
            ("Check error logs", "Logs", "high"),
            ("Check backup status", "Backup", "high"),
        ),
        "weekly": _items(
            ("Review performance DMVs", "Performance", "high"),
            ("Check index fragmentation", "Maintenance", "medium"),
            ("Review table statistics", "Optimization", "medium"),
            ("Check unused indexes", "Optimization", "low"),
            ("Review slow queries", "Performance", "high"),
            ("Check data integrity (DBCC)", "Integrity", "high"),
            ("Review security settings", "Security", "medium"),
        ),
        "deep": _items(
            ("Full performance analysis (DMVs)", "Performance", "high"),
            ("Full security audit", "Security", "high"),
            ("Capacity and growth analysis", "Capacity", "high"),
            ("Full index review", "Optimization", "high"),
            ("Full fragmentation analysis", "Maintenance", "medium"),
            ("Review server configuration", "Configuration", "high"),
            ("Test backup restore", "Backup", "high"),
            ("Review AlwaysOn / replication", "High Availability", "high"),
            ("Review permissions and roles", "Security", "high"),
            ("Analyse I/O latency", "Performance", "medium"),
        ),
    },
    DatabaseKind.MYSQL: {
        "daily": _items(
            ("Check slow processes", "Performance", "high"),
            ("Check disk space", "Storage", "high"),
            ("Check locks and blocking", "Performance", "high"),
            ("Check error logs", "Logs", "high"),
            ("Check backup status", "Backup", "high"),
            ("Check replication status", "Replication", "high"),
        ),
        "weekly": _items(
            ("Review the slow query log", "Performance", "high"),
            ("Check table fragmentation", "Maintenance", "medium"),
            ("Review table statistics", "Optimization", "medium"),
            ("Check unused indexes", "Optimization", "low"),
            ("Review slow queries", "Performance", "high"),
            ("Check data integrity", "Integrity", "high"),
            ("Review security settings", "Security", "medium"),
            ("Review replication lag", "Replication", "high"),
        ),
        "deep": _items(
            ("Full performance analysis", "Performance", "high"),
            ("Full security audit", "Security", "high"),
            ("Capacity and growth analysis", "Capacity", "high"),
            ("Full index review", "Optimization", "high"),
            ("Full fragmentation analysis", "Maintenance", "medium"),
            ("Review server configuration", "Configuration", "high"),
            ("Test backup restore", "Backup", "high"),
            ("Full replication review", "Replication", "high"),
            ("Review permissions and users", "Security", "high"),
            ("Review binlog and logs", "Logs", "medium"),
        ),
    },
    DatabaseKind.POSTGRESQL: {
        "daily": _items(
            ("Check active processes", "Performance", "high"),
            ("Check disk space", "Storage", "high"),
            ("Check locks and blocking", "Performance", "high"),
            ("Check error logs", "Logs", "high"),
            ("Check backup status", "Backup", "high"),
            ("Check replication status", "Replication", "high"),
        ),
        "weekly": _items(
            ("Review pg_stat_statements", "Performance", "high"),
            ("Check bloat (VACUUM)", "Maintenance", "medium"),
            ("Review statistics (ANALYZE)", "Optimization", "medium"),
            ("Check unused indexes", "Optimization", "low"),
            ("Review slow queries", "Performance", "high"),
            ("Check data integrity", "Integrity", "high"),
            ("Review security settings", "Security", "medium"),
            ("Review replication lag", "Replication", "high"),
        ),
        "deep": _items(
            ("Full performance analysis", "Performance", "high"),
            ("Full security audit", "Security", "high"),
            ("Capacity and growth analysis", "Capacity", "high"),
            ("Full index review", "Optimization", "high"),
            ("Full fragmentation analysis", "Maintenance", "medium"),
            ("Review configuration (postgresql.conf)", "Configuration", "high"),
            ("Test backup restore", "Backup", "high"),
            ("Full replication review", "Replication", "high"),
            ("Review permissions and roles", "Security", "high"),
            ("Review WAL and logs", "Logs", "medium"),
        ),
    },
    DatabaseKind.MONGODB: {
        "daily": _items(
            ("Check replication status", "Replication", "high"),
            ("Check disk space", "Storage", "high"),
            ("Check active connections", "Performance", "medium"),
            ("Check error logs", "Logs", "high"),
            ("Check backup status", "Backup", "high"),
            ("Check sharding status", "Sharding", "high"),
        ),
        "weekly": _items(
            ("Review slow queries", "Performance", "high"),
            ("Check unused indexes", "Optimization", "low"),
            ("Review collection statistics", "Optimization", "medium"),
            ("Review operation latency", "Performance", "high"),
            ("Check data integrity", "Integrity", "high"),
            ("Review security settings", "Security", "medium"),
            ("Review replication lag", "Replication", "high"),
            ("Check chunk distribution", "Sharding", "medium"),
        ),
        "deep": _items(
            ("Full performance analysis", "Performance", "high"),
            ("Full security audit", "Security", "high"),
            ("Capacity and growth analysis", "Capacity", "high"),
            ("Full index review", "Optimization", "high"),
            ("Full sharding review", "Sharding", "high"),
            ("Review server configuration", "Configuration", "high"),
            ("Test backup restore", "Backup", "high"),
            ("Full replication review", "Replication", "high"),
            ("Review permissions and roles", "Security", "high"),
            ("Review oplog and logs", "Logs", "medium"),
        ),
    },
}

LEVELS: dict[str, tuple[str, ...]] = {
    "daily": ("daily",),
    "weekly": ("daily", "weekly"),
    "deep": ("daily", "weekly", "deep"),
}


def checklist_level(title: str | None) -> ChecklistLevel:
    """Pick the checklist level from the request title (default daily)."""
    text = (title or "").lower()
    if "deep" in text or "profundo" in text:
        return "deep"
    if "weekly" in text or "semanal" in text:
        return "weekly"
    return "daily"


def checklist_items(kind: DatabaseKind, level: ChecklistLevel) -> list[ChecklistItem]:
    catalog = CATALOG[kind]
    return [item for part in LEVELS[level] for item in catalog[part]]


@routine(DatabaseKind.POSTGRESQL, AnalysisKind.CHECKLIST)
@routine(DatabaseKind.MYSQL, AnalysisKind.CHECKLIST)
@routine(DatabaseKind.SQLSERVER, AnalysisKind.CHECKLIST)
@routine(DatabaseKind.ORACLE, AnalysisKind.CHECKLIST)
@routine(DatabaseKind.MONGODB, AnalysisKind.CHECKLIST)
def checklist(ctx: RoutineContext) -> None:
    kind = ctx.request.database_kind
    level = checklist_level(ctx.request.title)
    items = checklist_items(kind, level)

    report = ctx.report
    report.heading(f"{level.capitalize()} Checklist - {ctx.dialect.label}", 1)
    report.detail("Created", datetime.now().strftime("%Y-%m-%d %H:%M:%S"))
    report.detail("Items", len(items))
    report.text()

    categories: dict[str, list[ChecklistItem]] = {}
    for item in items:
        categories.setdefault(item.category, []).append(item)

    for category, category_items in categories.items():
        report.heading(category)
        report.table(
            ["Item", "Priority", "Status"],
            [[item.title, item.priority, item.status] for item in category_items],
        )

