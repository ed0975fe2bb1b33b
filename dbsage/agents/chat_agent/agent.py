"""
Chat Agent - Main Entry Point.

A ChatSession answers natural-language questions about one live database:
each turn is classified, and either answered conversationally or turned
into one row-capped statement that is executed and interpreted.

Features:
- Bounded transcript window in every prompt
- Query failures are explained, not raised; the session stays usable
- Turn-wide deadline and explicit cancel()
- A turn that raises leaves the transcript unchanged

Usage:
    from dbsage.agents.chat_agent import open_session

    session = open_session(descriptor, connection, backend)
    print(session.send("how many rows in orders?"))
"""

import threading
import uuid
from datetime import datetime, timezone

from dbsage.agents.chat_agent.classifier import IntentClassifier, KeywordIntentClassifier
from dbsage.agents.chat_agent.deadline import CancelToken, TurnDeadline
from dbsage.agents.chat_agent.graph import compile_chat_turn_graph
from dbsage.agents.chat_agent.nodes import TurnDependencies
from dbsage.agents.chat_agent.state import ChatTurnState
from dbsage.agents.chat_agent.transcript import Transcript, render_turns
from dbsage.config import Settings, settings as default_settings
from dbsage.connections.base import DatabaseConnection
from dbsage.dialects import get_dialect
from dbsage.errors import DeadlineExceededError, TurnCancelledError
from dbsage.llm.backend import LLMBackend
from dbsage.logging_config import get_logger
from dbsage.prompts import CHAT_CONTEXT_HEADER, CONVERSATIONAL_SYSTEM
from dbsage.schemas.chat import ChatTurn, TurnIntent, TurnRole
from dbsage.schemas.connection import ConnectionDescriptor

logger = get_logger(__name__)


class ChatSession:
    """
    One conversation.
    
    Turns run strictly one at a time; cancel() may be called from another
    thread while send() is blocked.
    
    Attributes:
        id: Session identifier
        descriptor: Target database (None for history sessions)
        transcript: Committed user/assistant turns
    """

    def __init__(
        self,
        deps: TurnDependencies,
        header: str,
        descriptor: ConnectionDescriptor | None = None,
    ):
        self.id = str(uuid.uuid4())
        self.descriptor = descriptor
        self.transcript = Transcript()
        self.created_at = datetime.now(timezone.utc)
        self.updated_at = self.created_at

        self._deps = deps
        self._settings = deps.settings
        self._header = header
        self._graph = compile_chat_turn_graph(deps)

        self._send_lock = threading.Lock()
        self._token_lock = threading.Lock()
        self._active_token: CancelToken | None = None

    def build_context(self) -> str:
        omitted, turns = self.transcript.window(self._settings.chat_history_window)
        history = render_turns(omitted, turns)
        if not history:
            return self._header
        return f"{self._header}\n{history}"

    def send(self, text: str) -> str:
        """
        Process one user message and return the assistant's reply.
        
        Raises:
            TurnCancelledError: cancel() was called during the turn
            DeadlineExceededError: The turn ran past chat_turn_timeout_seconds
            BackendError: The language model failed
            DatabaseConnectionError: The connection is gone
        """
        with self._send_lock:
            token = CancelToken()
            with self._token_lock:
                self._active_token = token

            log = logger.bind(session_id=self.id)
            log.info("chat_turn_started", message_preview=text[:50])

            try:
                initial_state: ChatTurnState = {
                    "message": text,
                    "context": self.build_context(),
                    "deadline": TurnDeadline.start(self._settings.chat_turn_timeout_seconds, token),
                    "query": None,
                    "result": None,
                    "error": None,
                }
                final_state = self._graph.invoke(initial_state)
            except TurnCancelledError:
                log.info("chat_turn_cancelled")
                raise
            except DeadlineExceededError:
                log.warning(
                    "chat_turn_deadline_exceeded",
                    timeout_seconds=self._settings.chat_turn_timeout_seconds,
                )
                raise
            finally:
                with self._token_lock:
                    self._active_token = None

            response = final_state.get("response", "")
            ran_query = final_state.get("intent") == TurnIntent.NEEDS_QUERY

            self.transcript.append_exchange(
                ChatTurn(role=TurnRole.USER, content=text),
                ChatTurn(
                    role=TurnRole.ASSISTANT,
                    content=response,
                    query=final_state.get("query") if ran_query else None,
                    result=final_state.get("result") if ran_query else None,
                ),
            )
            self.updated_at = datetime.now(timezone.utc)

            log.info(
                "chat_turn_completed",
                intent=final_state.get("intent"),
                query_failed=bool(final_state.get("error")),
                response_length=len(response),
            )
            return response

    def cancel(self) -> bool:
        """
        Cancel the in-flight turn, if any.
        
        Returns:
            True when a turn was running and has been signalled
        """
        with self._token_lock:
            if self._active_token is None:
                return False
            self._active_token.cancel()
            return True


def open_session(
    descriptor: ConnectionDescriptor,
    connection: DatabaseConnection,
    backend: LLMBackend,
    classifier: IntentClassifier | None = None,
    settings: Settings | None = None,
) -> ChatSession:
    """
    Start a chat session against an already-open connection.
    
    Args:
        descriptor: Connection descriptor (for the dialect and the prompt header)
        connection: Live connection; owned by the caller
        backend: Language model
        classifier: Intent classifier (keyword classifier by default)
        settings: Settings override
        
    Returns:
        New ChatSession with an empty transcript
    """
    settings = settings or default_settings
    dialect = get_dialect(descriptor.kind)

    deps = TurnDependencies(
        backend=backend,
        classifier=classifier or KeywordIntentClassifier(),
        settings=settings,
        conversational_system=CONVERSATIONAL_SYSTEM.format(database_label=dialect.label),
        connection=connection,
        dialect=dialect,
    )
    header = CHAT_CONTEXT_HEADER.format(
        database_label=dialect.label,
        connection_summary=descriptor.summary(),
    )

    session = ChatSession(deps, header, descriptor=descriptor)
    logger.info("chat_session_opened", session_id=session.id, database_kind=descriptor.kind.value)
    return session
