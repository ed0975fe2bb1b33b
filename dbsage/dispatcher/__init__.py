"""
Analysis dispatcher.

Usage:
    from dbsage.dispatcher import dispatch

    report = dispatch(request, connection, backend=backend)
    print(report.text)
    for section in report.skipped:
        print(section.title, section.reason)
"""

from dbsage.dispatcher import routines  # noqa: F401  (registers routines)
from dbsage.dispatcher.registry import dispatch, is_supported, supported_analyses
from dbsage.dispatcher.report import AnalysisReport, ReportBuilder, SkippedSection

__all__ = [
    "AnalysisReport",
    "ReportBuilder",
    "SkippedSection",
    "dispatch",
    "is_supported",
    "supported_analyses",
]
