"""
Insight and visualization augmenter.

Takes a finished report and adds an AI insight plus, when the report holds
plottable numbers, a chart. Only the insight is mandatory: chart
suggestion and extraction degrade instead of failing. Maintenance plans and
projects are built on request and are None when the backend cannot supply one.
"""

from dataclasses import dataclass

from dbsage.augmenter.extraction import (
    parse_chart_spec,
    parse_chart_suggestion,
    parse_maintenance_plan,
    parse_project_plan,
)
from dbsage.augmenter.renderers import render_chart
from dbsage.config import Settings, settings as default_settings
from dbsage.dialects import get_dialect
from dbsage.errors import BackendError, ExtractionError
from dbsage.llm.backend import LLMBackend
from dbsage.logging_config import get_logger
from dbsage.prompts import (
    CHART_EXTRACTION_SYSTEM,
    CHART_EXTRACTION_USER,
    CHART_SUGGESTION_SYSTEM,
    CHART_SUGGESTION_USER,
    INSIGHT_SYSTEM,
    INSIGHT_USER,
    MAINTENANCE_PLAN_SYSTEM,
    MAINTENANCE_PLAN_USER,
    PROJECT_PLAN_SYSTEM,
    PROJECT_PLAN_USER,
)
from dbsage.schemas.analysis import AnalysisKind
from dbsage.schemas.chart import ChartKind, ChartSpec, ChartSuggestion
from dbsage.schemas.connection import DatabaseKind
from dbsage.schemas.plan import MaintenancePlan, ProjectPlan

logger = get_logger(__name__)

GENERIC_DATABASE_LABEL = "relational and document"
REQUESTED_REASON = "Requested by the caller"
FALLBACK_REASON = "No suggestion available; showing a table"


@dataclass
class AugmentResult:
    """
    Augmentation output.
    
    Attributes:
        insight: Markdown insight from the backend
        chart: Extracted chart data (None when nothing plottable was found)
        suggestion: Renderer kind and why it was chosen
        rendered_chart: Chart rendered with the chosen renderer (None without chart)
    """

    insight: str
    chart: ChartSpec | None
    suggestion: ChartSuggestion
    rendered_chart: str | None = None


class Augmenter:
    """Adds insight and chart data to report text. Never mutates its input."""

    def __init__(self, backend: LLMBackend, settings: Settings | None = None):
        self.backend = backend
        self.settings = settings or default_settings

    def _ask(self, system: str, prompt: str, max_tokens: int, temperature: float) -> str:
        return self.backend.complete(
            system,
            [{"role": "user", "content": prompt}],
            max_tokens=max_tokens,
            temperature=temperature,
        )

    def _label(self, database_kind: DatabaseKind | None) -> str:
        return get_dialect(database_kind).label if database_kind else GENERIC_DATABASE_LABEL

    def generate_insight(
        self,
        report_text: str,
        analysis_kind: AnalysisKind,
        database_kind: DatabaseKind | None = None,
    ) -> str:
        """
        Raises:
            BackendError: The backend failed
        """
        prompt = INSIGHT_USER.format(
            database_label=self._label(database_kind),
            analysis_kind=analysis_kind.value,
            report=report_text,
        )
        return self._ask(INSIGHT_SYSTEM, prompt, max_tokens=2000, temperature=0.7)

    def suggest_chart(self, report_text: str) -> ChartSuggestion:
        """Backend-suggested renderer; falls back to a table."""
        try:
            raw = self._ask(
                CHART_SUGGESTION_SYSTEM,
                CHART_SUGGESTION_USER.format(report=report_text),
                max_tokens=500,
                temperature=0.3,
            )
            return parse_chart_suggestion(raw)
        except (BackendError, ExtractionError) as e:
            logger.warning("chart_suggestion_failed", error=str(e))
            return ChartSuggestion(chart_type=ChartKind.TABLE, reason=FALLBACK_REASON)

    def extract_chart(self, report_text: str, chart_kind: ChartKind) -> ChartSpec | None:
        """Chart data from the report, or None when there is none to plot."""
        try:
            raw = self._ask(
                CHART_EXTRACTION_SYSTEM,
                CHART_EXTRACTION_USER.format(chart_type=chart_kind.value, report=report_text),
                max_tokens=2000,
                temperature=0.3,
            )
            return parse_chart_spec(raw, chart_kind)
        except (BackendError, ExtractionError) as e:
            logger.info("chart_extraction_failed", chart_kind=chart_kind.value, error=str(e))
            return None

    def augment(
        self,
        report_text: str,
        analysis_kind: AnalysisKind,
        chart_kind: ChartKind | None = None,
        database_kind: DatabaseKind | None = None,
    ) -> AugmentResult:
        """
        Insight plus optional chart for a report.
        
        Args:
            report_text: Report markdown (left untouched)
            analysis_kind: Analysis that produced the report
            chart_kind: Renderer to use; asks the backend when omitted
            database_kind: Engine the report is about, for the insight prompt
            
        Raises:
            BackendError: Insight generation failed
        """
        log = logger.bind(analysis_kind=analysis_kind.value)
        log.info("augment_started", chart_kind=chart_kind.value if chart_kind else None)

        insight = self.generate_insight(report_text, analysis_kind, database_kind)

        if chart_kind is not None:
            suggestion = ChartSuggestion(chart_type=chart_kind, reason=REQUESTED_REASON)
        else:
            suggestion = self.suggest_chart(report_text)

        chart = self.extract_chart(report_text, suggestion.chart_type)
        rendered = None
        if chart is not None:
            rendered = render_chart(chart, suggestion.chart_type, self.settings.chart_ascii_height)

        log.info(
            "augment_completed",
            chart_type=suggestion.chart_type.value,
            has_chart=chart is not None,
        )
        return AugmentResult(
            insight=insight,
            chart=chart,
            suggestion=suggestion,
            rendered_chart=rendered,
        )

    def maintenance_plan(
        self,
        report_text: str,
        analysis_kind: AnalysisKind,
        database_kind: DatabaseKind | None = None,
    ) -> MaintenancePlan | None:
        """Task-by-task maintenance plan for the report's findings, or None when unavailable."""
        prompt = MAINTENANCE_PLAN_USER.format(
            database_label=self._label(database_kind),
            analysis_kind=analysis_kind.value,
            report=report_text,
        )
        try:
            raw = self._ask(MAINTENANCE_PLAN_SYSTEM, prompt, max_tokens=3000, temperature=0.5)
            plan = parse_maintenance_plan(raw)
        except (BackendError, ExtractionError) as e:
            logger.warning("maintenance_plan_failed", analysis_kind=analysis_kind.value, error=str(e))
            return None

        logger.info("maintenance_plan_generated", tasks=len(plan.tasks), priority=plan.priority.value)
        return plan

    def project_plan(
        self,
        report_text: str,
        analysis_kind: AnalysisKind,
        title: str,
        database_kind: DatabaseKind | None = None,
    ) -> ProjectPlan | None:
        """
        Project with tasks built from the report's problems and recommendations.
        
        Args:
            report_text: Report markdown
            analysis_kind: Analysis that produced the report
            title: Analysis title; recorded as the project's origin
            database_kind: Engine the report is about
            
        Returns:
            The project, or None when the backend fails or returns no usable plan
        """
        prompt = PROJECT_PLAN_USER.format(
            database_label=self._label(database_kind),
            analysis_kind=analysis_kind.value,
            title=title,
            report=report_text,
        )
        try:
            raw = self._ask(PROJECT_PLAN_SYSTEM, prompt, max_tokens=3000, temperature=0.5)
            plan = parse_project_plan(raw, created_from=title)
        except (BackendError, ExtractionError) as e:
            logger.warning("project_plan_failed", analysis_kind=analysis_kind.value, error=str(e))
            return None

        logger.info("project_plan_generated", tasks=len(plan.tasks), priority=plan.priority.value)
        return plan
