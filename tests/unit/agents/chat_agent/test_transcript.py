"""
Unit tests for the session transcript and its prompt rendering.
"""

import pytest

from dbsage.agents.chat_agent.transcript import Transcript, render_turns
from dbsage.schemas.chat import ChatTurn, TurnRole


def user(text: str) -> ChatTurn:
    return ChatTurn(role=TurnRole.USER, content=text)


def assistant(text: str, query: str | None = None, result: str | None = None) -> ChatTurn:
    return ChatTurn(role=TurnRole.ASSISTANT, content=text, query=query, result=result)


# ─────────────────────────────────────────────────────────────────────────────
# Test: Transcript
# ─────────────────────────────────────────────────────────────────────────────

class TestTranscript:
    """Append-only pairs and the sliding window."""

    def test_append_exchange_keeps_order(self):
        """Test: Turns are stored user then assistant, in call order."""
        transcript = Transcript()
        transcript.append_exchange(user("q1"), assistant("a1"))
        transcript.append_exchange(user("q2"), assistant("a2"))

        assert [t.content for t in transcript.turns] == ["q1", "a1", "q2", "a2"]
        assert len(transcript) == 4

    def test_append_exchange_rejects_wrong_roles(self):
        """Test: An assistant turn cannot open an exchange."""
        transcript = Transcript()
        with pytest.raises(ValueError):
            transcript.append_exchange(assistant("a"), user("q"))
        assert len(transcript) == 0

    def test_turns_is_a_snapshot(self):
        """Test: Mutating the returned list does not touch the transcript."""
        transcript = Transcript()
        transcript.append_exchange(user("q"), assistant("a"))
        transcript.turns.clear()
        assert len(transcript) == 2

    def test_window_counts_omitted_turns(self):
        """Test: Older turns are counted, recent ones returned."""
        transcript = Transcript()
        for i in range(5):
            transcript.append_exchange(user(f"q{i}"), assistant(f"a{i}"))

        omitted, turns = transcript.window(4)

        assert omitted == 6
        assert [t.content for t in turns] == ["q3", "a3", "q4", "a4"]

    def test_window_larger_than_transcript(self):
        """Test: Nothing is omitted when everything fits."""
        transcript = Transcript()
        transcript.append_exchange(user("q"), assistant("a"))
        assert transcript.window(8) == (0, transcript.turns)


# ─────────────────────────────────────────────────────────────────────────────
# Test: render_turns
# ─────────────────────────────────────────────────────────────────────────────

class TestRenderTurns:
    """Prompt text for a window."""

    def test_empty(self):
        """Test: No turns render as an empty string."""
        assert render_turns(0, []) == ""

    def test_omission_marker(self):
        """Test: The omitted count is stated explicitly."""
        text = render_turns(6, [user("q"), assistant("a")])
        assert "[6 earlier turns omitted]" in text

    def test_query_and_result_header(self):
        """Test: Queries are shown with the result's first line only."""
        text = render_turns(
            0,
            [
                user("how many orders?"),
                assistant("There are 3.", query="SELECT count(*) AS n FROM orders", result="n\n-\n3"),
            ],
        )

        assert text.startswith("Conversation so far:")
        assert "[User]: how many orders?" in text
        assert "[Assistant]: There are 3." in text
        assert "  [Query executed]: SELECT count(*) AS n FROM orders" in text
        assert "  [Result]: n..." in text
        assert "3" not in text.split("[Result]:")[1]

    def test_no_results_not_repeated(self):
        """Test: An empty result adds no result line."""
        text = render_turns(0, [user("q"), assistant("none", query="SELECT 1", result="No results found.")])
        assert "[Result]" not in text

    def test_failed_query_without_result(self):
        """Test: A failed query (empty result) still shows the query."""
        text = render_turns(0, [user("q"), assistant("bad column", query="SELECT x", result="")])
        assert "[Query executed]: SELECT x" in text
        assert "[Result]" not in text
