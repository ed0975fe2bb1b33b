"""
Node functions for the chat turn graph.

Every node takes the turn state plus the session's TurnDependencies (bound
with functools.partial when the graph is built) and returns a partial
state update. Backend and database calls go through run_with_deadline.
"""

import threading
from dataclasses import dataclass, field
from typing import Literal

from dbsage.agents.chat_agent.classifier import IntentClassifier
from dbsage.agents.chat_agent.deadline import run_with_deadline
from dbsage.agents.chat_agent.sql_cleaner import clean_sql
from dbsage.agents.chat_agent.state import ChatTurnState
from dbsage.config import Settings
from dbsage.connections.base import DatabaseConnection, tabulate_rows
from dbsage.dialects import Dialect, ensure_row_limit
from dbsage.errors import QueryExecutionError
from dbsage.llm.backend import LLMBackend
from dbsage.logging_config import get_logger
from dbsage.prompts import (
    CONVERSATIONAL_USER,
    ERROR_EXPLANATION_SYSTEM,
    ERROR_EXPLANATION_USER,
    MONGO_COMMAND_USER,
    RESULT_INTERPRETATION_SYSTEM,
    RESULT_INTERPRETATION_USER,
    SQL_GENERATION_SYSTEM,
    SQL_GENERATION_USER,
)
from dbsage.schemas.chat import TurnIntent

logger = get_logger(__name__)

EMPTY_QUERY_ERROR = "The model did not return a statement"


@dataclass(frozen=True)
class CallBudget:
    max_tokens: int
    temperature: float


GENERATE = CallBudget(500, 0.3)
EXPLAIN = CallBudget(1000, 0.7)
INTERPRET = CallBudget(1500, 0.7)
CONVERSE = CallBudget(1500, 0.7)


@dataclass
class TurnDependencies:
    """Collaborators shared by every turn of one session."""

    backend: LLMBackend
    classifier: IntentClassifier
    settings: Settings
    conversational_system: str
    connection: DatabaseConnection | None = None
    dialect: Dialect | None = None
    # Held while a statement runs; a worker left behind by a cancelled turn keeps it
    connection_lock: threading.Lock = field(default_factory=threading.Lock)


def _complete(state: ChatTurnState, deps: TurnDependencies, system: str, prompt: str, budget: CallBudget) -> str:
    return run_with_deadline(
        state["deadline"],
        deps.backend.complete,
        system,
        [{"role": "user", "content": prompt}],
        max_tokens=budget.max_tokens,
        temperature=budget.temperature,
    )


# =============================================================================
# Nodes
# =============================================================================

def classify_node(state: ChatTurnState, deps: TurnDependencies) -> dict:
    """Decide whether the message needs a query."""
    if deps.connection is None:
        return {"intent": TurnIntent.CONVERSATIONAL}
    return {"intent": deps.classifier.classify(state["message"])}


def generate_query_node(state: ChatTurnState, deps: TurnDependencies) -> dict:
    """Ask the backend for one statement, then clean and row-cap it."""
    dialect = deps.dialect
    row_limit = deps.settings.chat_row_limit
    template = MONGO_COMMAND_USER if dialect.limit_style == "none" else SQL_GENERATION_USER
    prompt = template.format(
        context=state["context"],
        message=state["message"],
        database_label=dialect.label,
        row_limit=row_limit,
        limit_hint=dialect.limit_hint(row_limit),
    )
    raw = _complete(state, deps, SQL_GENERATION_SYSTEM.format(database_label=dialect.label), prompt, GENERATE)

    query = clean_sql(raw)
    if query:
        query = ensure_row_limit(query, dialect.kind, row_limit)
    logger.debug("chat_query_generated", query=query[:200])
    return {"query": query}


def _query_exclusively(deadline, deps: TurnDependencies, query: str) -> list[dict]:
    with deps.connection_lock:
        deadline.check()
        return deps.connection.query(query)


def execute_query_node(state: ChatTurnState, deps: TurnDependencies) -> dict:
    """Run the statement; a statement failure is kept in state, not raised."""
    query = state.get("query") or ""
    if not query:
        return {"result": "", "error": EMPTY_QUERY_ERROR}

    try:
        rows = run_with_deadline(state["deadline"], _query_exclusively, state["deadline"], deps, query)
    except QueryExecutionError as e:
        logger.info("chat_query_failed", error=str(e))
        return {"result": "", "error": str(e)}

    return {"result": tabulate_rows(rows, limit=deps.settings.chat_row_limit), "error": None}


def explain_error_node(state: ChatTurnState, deps: TurnDependencies) -> dict:
    prompt = ERROR_EXPLANATION_USER.format(
        context=state["context"],
        query=state.get("query") or "(none)",
        error=state["error"],
    )
    return {"response": _complete(state, deps, ERROR_EXPLANATION_SYSTEM, prompt, EXPLAIN)}


def interpret_result_node(state: ChatTurnState, deps: TurnDependencies) -> dict:
    prompt = RESULT_INTERPRETATION_USER.format(
        context=state["context"],
        message=state["message"],
        query=state["query"],
        result=state["result"],
    )
    return {"response": _complete(state, deps, RESULT_INTERPRETATION_SYSTEM, prompt, INTERPRET)}


def converse_node(state: ChatTurnState, deps: TurnDependencies) -> dict:
    prompt = CONVERSATIONAL_USER.format(context=state["context"], message=state["message"])
    return {"response": _complete(state, deps, deps.conversational_system, prompt, CONVERSE)}


# =============================================================================
# Conditional edges
# =============================================================================

def get_intent_route(state: ChatTurnState) -> Literal["generate_query", "converse"]:
    if state.get("intent") == TurnIntent.NEEDS_QUERY:
        return "generate_query"
    return "converse"


def get_execution_route(state: ChatTurnState) -> Literal["explain_error", "interpret_result"]:
    if state.get("error"):
        return "explain_error"
    return "interpret_result"
