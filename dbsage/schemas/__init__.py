"""Pydantic schemas and value types shared across dbsage."""

from dbsage.schemas.analysis import (
    AnalysisKind,
    AnalysisRequest,
    AnalysisStatus,
    OutputKind,
)
from dbsage.schemas.chart import ChartKind, ChartSeries, ChartSpec, ChartSuggestion
from dbsage.schemas.chat import ChatTurn, TurnIntent, TurnRole
from dbsage.schemas.connection import DEFAULT_PORTS, ConnectionDescriptor, DatabaseKind
from dbsage.schemas.plan import (
    MaintenancePlan,
    MaintenanceTask,
    PlanPriority,
    PlanStatus,
    ProjectPlan,
    ProjectTask,
)

__all__ = [
    "AnalysisKind",
    "AnalysisRequest",
    "AnalysisStatus",
    "OutputKind",
    "ChartKind",
    "ChartSeries",
    "ChartSpec",
    "ChartSuggestion",
    "ChatTurn",
    "TurnIntent",
    "TurnRole",
    "ConnectionDescriptor",
    "DatabaseKind",
    "DEFAULT_PORTS",
    "MaintenancePlan",
    "MaintenanceTask",
    "PlanPriority",
    "PlanStatus",
    "ProjectPlan",
    "ProjectTask",
]
