"""
Chat turn state.

Defines the state that flows through the LangGraph nodes of one turn.
"""

from typing import TypedDict

from dbsage.agents.chat_agent.deadline import TurnDeadline
from dbsage.schemas.chat import TurnIntent


class ChatTurnState(TypedDict, total=False):
    """State for one chat turn."""

    # Input
    message: str
    context: str  # Header plus transcript window
    deadline: TurnDeadline

    # Classification
    intent: TurnIntent

    # Query path
    query: str | None
    result: str | None  # Tabulated rows ('' when execution failed)
    error: str | None

    # Output
    response: str
