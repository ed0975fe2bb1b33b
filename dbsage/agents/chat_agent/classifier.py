"""
Intent classification for chat turns.

The agent only depends on the IntentClassifier protocol; the keyword
classifier below is the default and needs no model call.
"""

import re
from typing import Protocol

from dbsage.schemas.chat import TurnIntent


class IntentClassifier(Protocol):
    def classify(self, message: str) -> TurnIntent:
        ...


# ─────────────────────────────────────────────────────────────────────────────
# Keywords
# ─────────────────────────────────────────────────────────────────────────────

# A message starting with one of these is a statement or a direct request
QUERY_VERBS = [
    "select", "show", "describe", "desc", "explain", "list",
    # Portuguese
    "mostre", "mostrar", "liste", "listar", "consulte", "consultar", "exibir",
]

# Interrogative and domain vocabulary anywhere in the message
QUERY_KEYWORDS = [
    # Quantities and questions
    "how many", "how much", "how big", "how large", "which", "count", "total",
    "top", "largest", "biggest", "smallest", "slowest", "most", "average",
    # Requests
    "show", "list", "display", "find", "get", "check", "give me",
    # Database vocabulary
    "table", "tables", "row", "rows", "column", "columns", "index", "indexes",
    "schema", "schemas", "size", "status", "lock", "locks", "session", "sessions",
    "query", "queries", "data", "statistics", "stats", "user", "users",
    "process", "processes", "connections", "tablespace", "database", "databases",
    # Portuguese
    "quantos", "quantas", "quais", "qual", "quem", "onde", "quando",
    "mostre", "mostrar", "liste", "listar", "consulte", "consultar", "buscar",
    "encontrar", "exibir", "verificar", "analisar", "tabela", "tabelas",
    "dados", "informações", "informacoes", "estatísticas", "estatisticas",
    "bancos", "índices", "indices", "tamanho", "sessões", "sessoes",
]


def _word_pattern(words: list[str]) -> re.Pattern:
    alternatives = "|".join(re.escape(w) for w in sorted(words, key=len, reverse=True))
    return re.compile(rf"(?<!\w)(?:{alternatives})(?!\w)", re.IGNORECASE)


class KeywordIntentClassifier:
    """
    Deterministic classifier: NeedsQuery when the message starts with a
    query verb or mentions query vocabulary (matched on word boundaries),
    Conversational otherwise.
    
    Example:
        >>> KeywordIntentClassifier().classify("how many rows in orders")
        <TurnIntent.NEEDS_QUERY: 'needs_query'>
    """

    def __init__(self, verbs: list[str] | None = None, keywords: list[str] | None = None):
        self._leading = re.compile(
            rf"^\s*(?:{'|'.join(re.escape(v) for v in (verbs or QUERY_VERBS))})(?!\w)",
            re.IGNORECASE,
        )
        self._keywords = _word_pattern(keywords or QUERY_KEYWORDS)

    def classify(self, message: str) -> TurnIntent:
        if self._leading.search(message) or self._keywords.search(message):
            return TurnIntent.NEEDS_QUERY
        return TurnIntent.CONVERSATIONAL
