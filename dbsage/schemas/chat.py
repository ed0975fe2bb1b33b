"""Chat transcript types."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class TurnRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class TurnIntent(str, Enum):
    """Classifier outcome for a user message."""

    NEEDS_QUERY = "needs_query"
    CONVERSATIONAL = "conversational"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ChatTurn:
    """
    One transcript entry.
    
    Assistant turns that ran a statement carry it in ``query``; ``result`` is
    the tabulated excerpt ('' when execution failed).
    """

    role: TurnRole
    content: str
    query: str | None = None
    result: str | None = None
    timestamp: datetime = field(default_factory=_utcnow)
