"""
Centralized prompts for dbsage.

All LLM prompts live in this package so wording changes do not touch the
orchestration code.
"""

from dbsage.prompts.analysis import (
    BACKUP_REVIEW_USER,
    DYNAMIC_INTERPRETATION_SYSTEM,
    DYNAMIC_INTERPRETATION_USER,
    DYNAMIC_QUERY_SYSTEM,
    DYNAMIC_QUERY_USER,
    INSIGHT_SYSTEM,
    INSIGHT_USER,
)
from dbsage.prompts.charts import (
    CHART_EXTRACTION_SYSTEM,
    CHART_EXTRACTION_USER,
    CHART_SUGGESTION_SYSTEM,
    CHART_SUGGESTION_USER,
)
from dbsage.prompts.chat import (
    CHAT_CONTEXT_HEADER,
    CONVERSATIONAL_SYSTEM,
    CONVERSATIONAL_USER,
    ERROR_EXPLANATION_SYSTEM,
    ERROR_EXPLANATION_USER,
    HISTORY_CHAT_CONTEXT,
    HISTORY_CHAT_SYSTEM,
    MONGO_COMMAND_USER,
    RESULT_INTERPRETATION_SYSTEM,
    RESULT_INTERPRETATION_USER,
    SQL_GENERATION_SYSTEM,
    SQL_GENERATION_USER,
)
from dbsage.prompts.plans import (
    MAINTENANCE_PLAN_SYSTEM,
    MAINTENANCE_PLAN_USER,
    PROJECT_PLAN_SYSTEM,
    PROJECT_PLAN_USER,
)

__all__ = [
    # Analyses
    "BACKUP_REVIEW_USER",
    "DYNAMIC_INTERPRETATION_SYSTEM",
    "DYNAMIC_INTERPRETATION_USER",
    "DYNAMIC_QUERY_SYSTEM",
    "DYNAMIC_QUERY_USER",
    "INSIGHT_SYSTEM",
    "INSIGHT_USER",
    # Charts
    "CHART_EXTRACTION_SYSTEM",
    "CHART_EXTRACTION_USER",
    "CHART_SUGGESTION_SYSTEM",
    "CHART_SUGGESTION_USER",
    # Plans
    "MAINTENANCE_PLAN_SYSTEM",
    "MAINTENANCE_PLAN_USER",
    "PROJECT_PLAN_SYSTEM",
    "PROJECT_PLAN_USER",
    # Chat
    "CHAT_CONTEXT_HEADER",
    "CONVERSATIONAL_SYSTEM",
    "CONVERSATIONAL_USER",
    "ERROR_EXPLANATION_SYSTEM",
    "ERROR_EXPLANATION_USER",
    "HISTORY_CHAT_CONTEXT",
    "HISTORY_CHAT_SYSTEM",
    "MONGO_COMMAND_USER",
    "RESULT_INTERPRETATION_SYSTEM",
    "RESULT_INTERPRETATION_USER",
    "SQL_GENERATION_SYSTEM",
    "SQL_GENERATION_USER",
]
