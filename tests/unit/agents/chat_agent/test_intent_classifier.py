"""
Unit tests for the keyword intent classifier.
"""

import pytest

from dbsage.agents.chat_agent.classifier import KeywordIntentClassifier
from dbsage.schemas.chat import TurnIntent


@pytest.fixture
def classifier():
    return KeywordIntentClassifier()


# ─────────────────────────────────────────────────────────────────────────────
# Test: Default vocabulary
# ─────────────────────────────────────────────────────────────────────────────

class TestKeywordIntentClassifier:
    """English and Portuguese vocabulary."""

    @pytest.mark.parametrize(
        "message",
        [
            "show me the tables",
            "how many rows in orders",
            "SELECT * FROM orders",
            "describe orders",
            "which sessions are blocked?",
            "quantos pedidos existem?",
            "liste as tabelas",
            "mostre o tamanho do banco",
        ],
    )
    def test_needs_query(self, classifier, message):
        """Test: Query verbs and domain words need a query."""
        assert classifier.classify(message) == TurnIntent.NEEDS_QUERY

    @pytest.mark.parametrize(
        "message",
        [
            "thanks, bye",
            "hello!",
            "obrigado",
            "great, that helps a lot",
        ],
    )
    def test_conversational(self, classifier, message):
        """Test: Small talk stays conversational."""
        assert classifier.classify(message) == TurnIntent.CONVERSATIONAL

    def test_word_boundaries(self, classifier):
        """Test: Keywords inside other words do not match."""
        # "stable" contains "table", "showcase" starts with "show"
        assert classifier.classify("that sounds stable") == TurnIntent.CONVERSATIONAL
        assert classifier.classify("nice showcase") == TurnIntent.CONVERSATIONAL

    def test_case_insensitive(self, classifier):
        """Test: Matching ignores case."""
        assert classifier.classify("HOW MANY ROWS?") == TurnIntent.NEEDS_QUERY


class TestCustomVocabulary:
    """Injected word lists."""

    def test_custom_keywords_replace_defaults(self):
        """Test: Only the supplied vocabulary is used."""
        classifier = KeywordIntentClassifier(verbs=["fetch"], keywords=["invoice"])

        assert classifier.classify("fetch everything") == TurnIntent.NEEDS_QUERY
        assert classifier.classify("any invoice left?") == TurnIntent.NEEDS_QUERY
        assert classifier.classify("show me the tables") == TurnIntent.CONVERSATIONAL
