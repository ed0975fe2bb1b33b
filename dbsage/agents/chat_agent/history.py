"""
Conversation over stored analyses.

A history session has no live database: its context is a digest of
AnalysisRecords taken when the session opens, and every turn goes down
the conversational path.
"""

from dbsage.agents.chat_agent.agent import ChatSession
from dbsage.agents.chat_agent.classifier import KeywordIntentClassifier
from dbsage.agents.chat_agent.nodes import TurnDependencies
from dbsage.config import Settings, settings as default_settings
from dbsage.llm.backend import LLMBackend
from dbsage.logging_config import get_logger
from dbsage.models import AnalysisRecord
from dbsage.prompts import HISTORY_CHAT_CONTEXT, HISTORY_CHAT_SYSTEM

logger = get_logger(__name__)

REPORT_EXCERPT_CHARS = 1500
INSIGHT_EXCERPT_CHARS = 800


def _excerpt(text: str | None, limit: int) -> str:
    text = (text or "").strip()
    if len(text) <= limit:
        return text
    return text[:limit].rstrip() + " [...]"


def render_record(record: AnalysisRecord) -> str:
    """Prompt digest of one stored analysis."""
    created = record.created_at.strftime("%Y-%m-%d %H:%M") if record.created_at else "unknown date"
    lines = [
        f"### Analysis #{record.id}: {record.analysis_kind} on {record.database_kind}",
        f"Date: {created} | Status: {record.status}",
    ]
    title = (record.request_snapshot or {}).get("title")
    if title:
        lines.append(f"Title: {title}")
    if record.error_message:
        lines.append(f"Error: {record.error_message}")
    if record.insight:
        lines.append(f"AI insight:\n{_excerpt(record.insight, INSIGHT_EXCERPT_CHARS)}")
    if record.report:
        lines.append(f"Report excerpt:\n{_excerpt(record.report, REPORT_EXCERPT_CHARS)}")
    return "\n".join(lines)


def render_records(records: list[AnalysisRecord]) -> str:
    if not records:
        return "(no analyses stored yet)"
    return "\n\n".join(render_record(record) for record in records)


def open_history_session(
    records: list[AnalysisRecord],
    backend: LLMBackend,
    settings: Settings | None = None,
) -> ChatSession:
    """
    Start a conversation about past analyses.
    
    Args:
        records: Stored analyses, most recent first (e.g. list_records())
        backend: Language model
        settings: Settings override
        
    Returns:
        ChatSession whose turns are always conversational
    """
    settings = settings or default_settings
    deps = TurnDependencies(
        backend=backend,
        classifier=KeywordIntentClassifier(),
        settings=settings,
        conversational_system=HISTORY_CHAT_SYSTEM,
    )
    header = HISTORY_CHAT_CONTEXT.format(analyses=render_records(records))

    session = ChatSession(deps, header)
    logger.info("history_session_opened", session_id=session.id, records=len(records))
    return session
