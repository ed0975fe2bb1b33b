"""
Report building blocks shared by every analysis routine.

Routines write markdown through ReportBuilder and run their queries through
RoutineContext.query(), which turns a failed sub-query into an inline warning
plus a SkippedSection so degradation is visible both to readers and to code.
"""

from dataclasses import dataclass, field
from typing import Any, Iterable, Sequence

from dbsage.config import Settings
from dbsage.connections.base import DatabaseConnection
from dbsage.dialects import Dialect, get_dialect
from dbsage.errors import QueryExecutionError
from dbsage.llm.backend import LLMBackend
from dbsage.logging_config import get_logger
from dbsage.schemas.analysis import AnalysisRequest

logger = get_logger(__name__)


def truncate(value: Any, limit: int = 50) -> str:
    """Shorten long text (queries, messages) for table cells."""
    if value is None:
        return "N/A"
    text = str(value)
    if len(text) > limit:
        return text[:limit] + "..."
    return text


def format_cell(value: Any) -> str:
    if value is None:
        return "N/A"
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if isinstance(value, float):
        return f"{value:.2f}"
    return str(value).replace("\r", " ").replace("\n", " ").replace("|", "\\|")


def format_size(size_bytes: float | int | None) -> str:
    """Human-readable size with 1024-based units; 0 or unknown renders N/A."""
    if not size_bytes:
        return "N/A"
    size = float(size_bytes)
    for unit in ("B", "KB", "MB", "GB", "TB", "PB"):
        if size < 1024:
            return f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} EB"


class ReportBuilder:
    """Accumulates markdown lines for one report."""

    def __init__(self):
        self._lines: list[str] = []

    def heading(self, text: str, level: int = 2) -> "ReportBuilder":
        if self._lines and self._lines[-1] != "":
            self._lines.append("")
        self._lines.append(f"{'#' * level} {text}")
        self._lines.append("")
        return self

    def text(self, line: str = "") -> "ReportBuilder":
        self._lines.append(line)
        return self

    def detail(self, label: str, value: Any) -> "ReportBuilder":
        self._lines.append(f"- **{label}:** {format_cell(value)}")
        return self

    def bullet(self, line: str) -> "ReportBuilder":
        self._lines.append(f"- {line}")
        return self

    def warning(self, line: str) -> "ReportBuilder":
        self._lines.append(f"⚠️ {line}")
        self._lines.append("")
        return self

    def success(self, line: str) -> "ReportBuilder":
        self._lines.append(f"✅ {line}")
        self._lines.append("")
        return self

    def code(self, body: str, language: str = "") -> "ReportBuilder":
        self._lines.append(f"```{language}")
        self._lines.append(body.rstrip("\n"))
        self._lines.append("```")
        self._lines.append("")
        return self

    def table(self, headers: Sequence[str], rows: Iterable[Sequence[Any]]) -> int:
        """
        Append a markdown table.
        
        Returns:
            Number of data rows written
        """
        self._lines.append("| " + " | ".join(headers) + " |")
        self._lines.append("|" + "|".join("---" for _ in headers) + "|")
        count = 0
        for row in rows:
            self._lines.append("| " + " | ".join(format_cell(value) for value in row) + " |")
            count += 1
        self._lines.append("")
        return count

    def build(self) -> str:
        return "\n".join(self._lines).strip() + "\n"


@dataclass(frozen=True)
class SkippedSection:
    """A report section that could not be produced."""

    title: str
    reason: str
    error: str | None = None


@dataclass
class AnalysisReport:
    """
    Dispatcher output.
    
    ``text`` is always the complete markdown report; ``skipped`` lists the
    sections replaced by warnings.
    """

    text: str
    skipped: list[SkippedSection] = field(default_factory=list)

    @property
    def partial(self) -> bool:
        return bool(self.skipped)


@dataclass
class RoutineContext:
    """Everything a routine needs for one run."""

    request: AnalysisRequest
    connection: DatabaseConnection
    settings: Settings
    backend: LLMBackend | None = None
    report: ReportBuilder = field(default_factory=ReportBuilder)
    skipped: list[SkippedSection] = field(default_factory=list)

    @property
    def dialect(self) -> Dialect:
        return get_dialect(self.request.database_kind)

    def query(self, sql: str, section: str, warn: bool = True) -> list[dict[str, Any]] | None:
        """
        Run one sub-query for ``section``.
        
        A QueryExecutionError is recorded as a skipped section and, unless
        ``warn`` is False (the caller has a fallback), written as an inline
        warning. DatabaseConnectionError propagates.
        
        Returns:
            Rows, or None when the query failed
        """
        try:
            return self.connection.query(sql)
        except QueryExecutionError as e:
            logger.warning(
                "routine_subquery_failed",
                section=section,
                analysis_kind=self.request.analysis_kind.value,
                error=str(e),
            )
            self.skip(section, "query failed", error=str(e), warn=warn)
            return None

    def skip(self, section: str, reason: str, error: str | None = None, warn: bool = True) -> None:
        self.skipped.append(SkippedSection(title=section, reason=reason, error=error))
        if warn:
            detail = f": {error}" if error else ""
            self.report.warning(f"{section} unavailable ({reason}){detail}")

    def result(self) -> AnalysisReport:
        return AnalysisReport(text=self.report.build(), skipped=list(self.skipped))
