"""
Conversational query agent.

Usage:
    from dbsage.agents.chat_agent import open_session

    session = open_session(descriptor, connection, backend)
    reply = session.send("show me the ten largest tables")
"""

from dbsage.agents.chat_agent.agent import ChatSession, open_session
from dbsage.agents.chat_agent.classifier import IntentClassifier, KeywordIntentClassifier
from dbsage.agents.chat_agent.deadline import CancelToken, TurnDeadline, run_with_deadline
from dbsage.agents.chat_agent.history import open_history_session
from dbsage.agents.chat_agent.sql_cleaner import clean_sql

__all__ = [
    "CancelToken",
    "ChatSession",
    "IntentClassifier",
    "KeywordIntentClassifier",
    "TurnDeadline",
    "clean_sql",
    "open_history_session",
    "open_session",
    "run_with_deadline",
]
