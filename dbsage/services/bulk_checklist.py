"""
Bulk checklists.

A bulk checklist is a CSV of operator-maintained items (title, description,
category and optionally priority, status and notes). It is tallied and
rendered as a markdown report grouped by category; no database is touched.
Templates give a starting CSV for each checklist kind.
"""

import csv
import io
import time
from collections import Counter
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field, field_validator

from dbsage.errors import ConfigurationError
from dbsage.logging_config import get_logger

logger = get_logger(__name__)

REQUIRED_COLUMNS = ("title", "description", "category")
NOTES_PREVIEW = 50
UNCATEGORIZED = "Uncategorized"

COMPLETED_STATUSES = {"completed", "done", "ok"}
FAILED_STATUSES = {"failed", "error"}

PRIORITY_ICONS = {"high": "🔴", "medium": "🟡", "low": "🟢"}
STATUS_ICONS = {"completed": "✅", "done": "✅", "ok": "✅", "pending": "⏳",
                "failed": "❌", "error": "❌", "in_progress": "🔄"}
UNKNOWN_ICON = "⚪"


class BulkChecklistKind(str, Enum):
    GENERIC = "generic"
    DAILY = "daily"
    WEEKLY = "weekly"
    DEEP = "deep"
    BACKUP = "backup"
    SECURITY = "security"
    PERFORMANCE = "performance"
    MAINTENANCE = "maintenance"


class BulkChecklistItem(BaseModel):
    title: str
    description: str = Field(default="")
    category: str = Field(default="")
    priority: str = Field(default="medium")
    status: str = Field(default="pending")
    notes: str = Field(default="")

    @field_validator("priority", "status", mode="before")
    @classmethod
    def blank_means_default(cls, value, info):
        if isinstance(value, str) and not value.strip():
            return "medium" if info.field_name == "priority" else "pending"
        return value.strip() if isinstance(value, str) else value

    @property
    def outcome(self) -> str:
        status = self.status.lower()
        if status in COMPLETED_STATUSES:
            return "completed"
        if status in FAILED_STATUSES:
            return "failed"
        return "pending"


class BulkChecklistResult(BaseModel):
    """Tallied checklist; counts are derived from the items."""

    items: list[BulkChecklistItem] = Field(default_factory=list)
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    execution_seconds: float = Field(default=0.0, ge=0)

    @property
    def counts(self) -> Counter:
        return Counter(item.outcome for item in self.items)

    @property
    def total(self) -> int:
        return len(self.items)


# Columns beyond the required ones, plus sample rows, per checklist kind
TEMPLATES: dict[BulkChecklistKind, tuple[list[str], list[list[str]]]] = {
    BulkChecklistKind.GENERIC: (
        [],
        [
            ["Item 1", "Description of item 1", "Category 1", "high", "pending", "Extra notes"],
            ["Item 2", "Description of item 2", "Category 2", "medium", "pending", ""],
            ["Item 3", "Description of item 3", "Category 1", "low", "completed", "Done"],
        ],
    ),
    BulkChecklistKind.DAILY: (
        ["check_time", "result"],
        [
            ["Active connections", "Count active sessions", "Monitoring", "high", "pending", "", "09:00", ""],
            ["Disk space", "Check free space in tablespaces", "Storage", "high", "pending", "", "09:00", ""],
            ["Error logs", "Review the last 24h of error logs", "Logs", "medium", "pending", "", "09:00", ""],
            ["Backups", "Confirm scheduled backups ran", "Backup", "high", "pending", "", "10:00", ""],
        ],
    ),
    BulkChecklistKind.WEEKLY: (
        ["week", "assigned_to"],
        [
            ["Performance review", "Review slow queries and indexes", "Performance", "high", "pending", "", "Week 1", ""],
            ["Security review", "Audit users and privileges", "Security", "high", "pending", "", "Week 1", ""],
            ["Statistics", "Run ANALYZE or UPDATE STATISTICS", "Maintenance", "medium", "pending", "", "Week 1", ""],
            ["Fragmentation", "Check table fragmentation", "Maintenance", "medium", "pending", "", "Week 1", ""],
        ],
    ),
    BulkChecklistKind.DEEP: (
        ["impact", "effort", "risk_level"],
        [
            ["Security audit", "Full security review of the database", "Security", "high", "pending", "", "High", "High", "Medium"],
            ["Capacity analysis", "Growth and capacity projection", "Capacity", "high", "pending", "", "High", "Medium", "Low"],
            ["Index optimization", "Review and tune every index", "Performance", "medium", "pending", "", "Medium", "High", "Low"],
            ["Architecture review", "Assess the architecture and suggest improvements", "Architecture", "high", "pending", "", "High", "High", "Medium"],
        ],
    ),
    BulkChecklistKind.BACKUP: (
        ["backup_type", "retention_days", "last_backup"],
        [
            ["Full backup", "Check the full backup ran", "Backup", "high", "pending", "", "Full", "30", ""],
            ["Incremental backup", "Check the incremental backup ran", "Backup", "high", "pending", "", "Incremental", "7", ""],
            ["Restore test", "Test the restore procedure", "Backup", "high", "pending", "", "Test", "", ""],
            ["Retention", "Confirm retention policies", "Backup", "medium", "pending", "", "Policy", "", ""],
        ],
    ),
    BulkChecklistKind.SECURITY: (
        ["severity", "compliance", "remediation"],
        [
            ["Audit users", "Review users and drop inactive ones", "Security", "high", "pending", "", "High", "SOX", "Remove inactive users"],
            ["Review privileges", "Audit grants and roles", "Security", "high", "pending", "", "High", "PCI-DSS", "Apply least privilege"],
            ["Encryption", "Confirm sensitive data is encrypted", "Security", "high", "pending", "", "High", "GDPR", "Enable TDE"],
            ["Access logs", "Review access and authentication logs", "Security", "medium", "pending", "", "Medium", "SOX", "Configure alerts"],
        ],
    ),
    BulkChecklistKind.PERFORMANCE: (
        ["metric", "threshold", "current_value"],
        [
            ["CPU utilization", "Monitor CPU usage", "Performance", "high", "pending", "", "CPU %", "80%", ""],
            ["Memory usage", "Monitor memory usage", "Performance", "high", "pending", "", "Memory %", "85%", ""],
            ["Disk I/O", "Monitor disk I/O", "Performance", "medium", "pending", "", "IOPS", "1000", ""],
            ["Query performance", "Find slow queries", "Performance", "high", "pending", "", "Query time", "5s", ""],
        ],
    ),
    BulkChecklistKind.MAINTENANCE: (
        ["frequency", "last_execution", "next_execution"],
        [
            ["Vacuum/Analyze", "Run VACUUM and ANALYZE", "Maintenance", "medium", "pending", "", "Weekly", "", ""],
            ["Reindex", "Reindex fragmented tables", "Maintenance", "low", "pending", "", "Monthly", "", ""],
            ["Update statistics", "Refresh optimizer statistics", "Maintenance", "medium", "pending", "", "Weekly", "", ""],
            ["Log cleanup", "Purge old logs", "Maintenance", "low", "pending", "", "Monthly", "", ""],
        ],
    ),
}

BASE_COLUMNS = ["title", "description", "category", "priority", "status", "notes"]


def parse_bulk_checklist(text: str) -> BulkChecklistResult:
    """
    Tally a bulk checklist from CSV text.

    Lines starting with # are comments. Column names are case-insensitive;
    rows with fewer cells than the header are skipped.

    Raises:
        ConfigurationError: No data rows, or a required column is missing
    """
    started = time.monotonic()
    rows = [
        row for row in csv.reader(io.StringIO(text), skipinitialspace=True)
        if row and not row[0].lstrip().startswith("#")
    ]
    if len(rows) < 2:
        raise ConfigurationError("Bulk checklist needs a header and at least one data row")

    header = {name.strip().lower(): i for i, name in enumerate(rows[0])}
    missing = [column for column in REQUIRED_COLUMNS if column not in header]
    if missing:
        raise ConfigurationError(f"Bulk checklist is missing required column(s): {', '.join(missing)}")

    items = []
    skipped = 0
    for row in rows[1:]:
        if len(row) < len(header):
            skipped += 1
            continue
        values = {name: row[i].strip() for name, i in header.items() if name in BASE_COLUMNS}
        items.append(BulkChecklistItem(**values))

    result = BulkChecklistResult(items=items, execution_seconds=time.monotonic() - started)
    logger.info("bulk_checklist_parsed", items=result.total, skipped=skipped, **result.counts)
    return result


def load_bulk_checklist(path: str | Path) -> BulkChecklistResult:
    """
    Raises:
        ConfigurationError: The file cannot be read or is not a valid checklist
    """
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigurationError(f"Cannot read bulk checklist {path}: {e}") from e
    return parse_bulk_checklist(text)


def _icon(icons: dict[str, str], value: str) -> str:
    return icons.get(value.lower(), UNKNOWN_ICON)


def render_bulk_checklist(result: BulkChecklistResult) -> str:
    """Markdown report: totals, a table per category, then every item in full."""
    counts = result.counts
    lines = [
        "# Bulk Checklist - Results",
        "",
        f"**Generated:** {result.generated_at:%Y-%m-%d %H:%M:%S}",
        f"**Execution time:** {result.execution_seconds:.0f}s",
        "",
        "## Totals",
        "",
        "| Metric | Value |",
        "|---|---|",
        f"| Total items | {result.total} |",
        f"| ✅ Completed | {counts['completed']} |",
        f"| ⏳ Pending | {counts['pending']} |",
        f"| ❌ Failed | {counts['failed']} |",
        "",
        "## Items by Category",
        "",
    ]

    categories: dict[str, list[BulkChecklistItem]] = {}
    for item in result.items:
        categories.setdefault(item.category or UNCATEGORIZED, []).append(item)

    for category, items in categories.items():
        lines += [f"### {category}", "", "| Title | Priority | Status | Notes |", "|---|---|---|---|"]
        for item in items:
            notes = item.notes if len(item.notes) <= NOTES_PREVIEW else item.notes[:NOTES_PREVIEW] + "..."
            lines.append(
                f"| {item.title} | {_icon(PRIORITY_ICONS, item.priority)} {item.priority} "
                f"| {_icon(STATUS_ICONS, item.status)} {item.status} | {notes} |"
            )
        lines.append("")

    lines += ["## Details", ""]
    for i, item in enumerate(result.items, start=1):
        lines += [
            f"### {i}. {item.title}",
            "",
            f"**Category:** {item.category or UNCATEGORIZED}  ",
            f"**Priority:** {item.priority}  ",
            f"**Status:** {item.status}  ",
            f"**Description:** {item.description}  ",
            "",
        ]
        if item.notes:
            lines += [f"**Notes:** {item.notes}  ", ""]
        lines += ["---", ""]

    return "\n".join(lines)


def checklist_template(kind: BulkChecklistKind = BulkChecklistKind.GENERIC) -> str:
    """CSV text with the columns and a few sample rows for a checklist kind."""
    extra_columns, sample_rows = TEMPLATES[kind]
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(BASE_COLUMNS + extra_columns)
    writer.writerows(sample_rows)
    return buffer.getvalue()
