"""
Insight and visualization augmenter.

Usage:
    from dbsage.augmenter import Augmenter

    result = Augmenter(backend).augment(report.text, AnalysisKind.DISK)
    print(result.insight)
    if result.rendered_chart:
        print(result.rendered_chart)
"""

from dbsage.augmenter.augmenter import AugmentResult, Augmenter
from dbsage.augmenter.extraction import (
    parse_chart_spec,
    parse_chart_suggestion,
    parse_maintenance_plan,
    parse_project_plan,
    strip_fences,
)
from dbsage.augmenter.plans import render_maintenance_plan, render_project_plan
from dbsage.augmenter.renderers import render_ascii, render_chart, render_html, render_table

__all__ = [
    "AugmentResult",
    "Augmenter",
    "parse_chart_spec",
    "parse_chart_suggestion",
    "parse_maintenance_plan",
    "parse_project_plan",
    "render_ascii",
    "render_chart",
    "render_html",
    "render_maintenance_plan",
    "render_project_plan",
    "render_table",
    "strip_fences",
]
