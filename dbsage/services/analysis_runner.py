"""
Analysis runner.

Ties the dispatcher, the augmenter and the records store together: one
call creates the record, runs the routine, adds insight and chart, and
leaves the record completed or failed.
"""

from dataclasses import dataclass

from sqlalchemy.orm import Session

from dbsage.augmenter import AugmentResult, Augmenter
from dbsage.config import Settings, settings as default_settings
from dbsage.connections.base import DatabaseConnection
from dbsage.dispatcher import AnalysisReport, dispatch
from dbsage.errors import BackendError
from dbsage.llm.backend import LLMBackend
from dbsage.logging_config import get_logger
from dbsage.models import AnalysisRecord
from dbsage.schemas.analysis import AnalysisRequest
from dbsage.schemas.chart import ChartKind
from dbsage.storage.analysis_repository import create_record, save_record

logger = get_logger(__name__)


@dataclass
class AnalysisRun:
    """Outcome of run_analysis()."""

    record: AnalysisRecord
    report: AnalysisReport
    text: str  # Report plus the visualization section, as stored
    augmentation: AugmentResult | None = None


def visualization_section(result: AugmentResult) -> str:
    """Markdown block appended to a report that has a rendered chart."""
    suggestion = result.suggestion
    language = "html" if suggestion.chart_type == ChartKind.HTML else ""
    return (
        "\n\n## Visualization\n\n"
        f"**Type:** {suggestion.chart_type.value}\n"
        f"**Reason:** {suggestion.reason}\n\n"
        f"```{language}\n{result.rendered_chart}\n```\n"
    )


def run_analysis(
    db: Session,
    request: AnalysisRequest,
    connection: DatabaseConnection,
    backend: LLMBackend | None = None,
    augment: bool = True,
    chart_kind: ChartKind | None = None,
    settings: Settings | None = None,
) -> AnalysisRun:
    """
    Run and persist one analysis.
    
    Args:
        db: Records store session
        request: What to analyse
        connection: Already-connected target database
        backend: Language model for insight, charts and AI-assisted routines
        augment: Add insight and chart when a backend is available
        chart_kind: Renderer for the chart (backend suggestion when omitted)
        settings: Settings override
        
    Returns:
        AnalysisRun with the completed record
        
    Raises:
        Whatever dispatch() raises, after the record is marked as failed
    """
    settings = settings or default_settings

    record = create_record(db, request)
    record.mark_processing()
    save_record(db, record)

    log = logger.bind(
        record_id=record.id,
        database_kind=request.database_kind.value,
        analysis_kind=request.analysis_kind.value,
    )
    log.info("analysis_run_started")

    try:
        report = dispatch(request, connection, backend=backend, settings=settings)
    except Exception as e:
        log.error("analysis_run_failed", error=str(e), exc_info=True)
        record.mark_failed(str(e))
        save_record(db, record)
        raise

    text = report.text
    augmentation = None
    if backend is not None and augment:
        try:
            augmentation = Augmenter(backend, settings).augment(
                report.text,
                request.analysis_kind,
                chart_kind=chart_kind,
                database_kind=request.database_kind,
            )
        except BackendError as e:
            log.warning("analysis_insight_failed", error=str(e))
        except Exception as e:
            log.error("analysis_augment_failed", error=str(e), exc_info=True)
            record.mark_failed(str(e), report=text)
            save_record(db, record)
            raise
        else:
            if augmentation.rendered_chart:
                text += visualization_section(augmentation)

    record.mark_completed(text, augmentation.insight if augmentation else None)
    save_record(db, record)

    log.info(
        "analysis_run_completed",
        skipped=len(report.skipped),
        has_insight=augmentation is not None,
    )
    return AnalysisRun(record=record, report=report, text=text, augmentation=augmentation)
