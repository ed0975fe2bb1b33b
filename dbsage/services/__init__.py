"""Application services."""

from dbsage.services.analysis_runner import AnalysisRun, run_analysis
from dbsage.services.bulk_checklist import (
    BulkChecklistKind,
    BulkChecklistResult,
    checklist_template,
    load_bulk_checklist,
    parse_bulk_checklist,
    render_bulk_checklist,
)

__all__ = [
    "AnalysisRun",
    "run_analysis",
    "BulkChecklistKind",
    "BulkChecklistResult",
    "checklist_template",
    "load_bulk_checklist",
    "parse_bulk_checklist",
    "render_bulk_checklist",
]
