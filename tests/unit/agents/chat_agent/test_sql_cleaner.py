"""
Unit tests for clean_sql.

Tests:
- Fence and prose removal
- Exactly one statement kept
- Idempotence and totality
"""

import pytest

from dbsage.agents.chat_agent.sql_cleaner import clean_sql


MODEL_OUTPUTS = [
    "SELECT * FROM orders",
    "SELECT * FROM orders;",
    "```sql\nSELECT * FROM orders;\n```",
    "Here is the query:\n```sql\nSELECT id FROM orders WHERE total > 10;\n```\nIt lists big orders.",
    "Here is the query:\nSELECT count(*) FROM orders;\nThis counts the rows.",
    "SELECT 1; SELECT 2;",
    "`SELECT now()`",
    "```\nSELECT a\nFROM t\n\nThis selects a.\n```",
    "```sql\nSELECT name FROM users",
    '```json\n{"listCollections": 1}\n```',
    "I cannot help with that.",
    "",
    "```",
    ";;;",
    "SELECT * FROM orders\nThis lists all orders.",
    "```sql SELECT 1```",
]


# ─────────────────────────────────────────────────────────────────────────────
# Test: Shapes
# ─────────────────────────────────────────────────────────────────────────────

class TestCleanSqlShapes:
    """Typical model output shapes."""

    def test_plain_statement(self):
        """Test: A bare statement loses only its semicolon."""
        assert clean_sql("SELECT * FROM orders;") == "SELECT * FROM orders"

    def test_fenced_block_with_prose(self):
        """Test: Prose around a fenced block is dropped."""
        raw = "Here is the query:\n```sql\nSELECT id FROM orders WHERE total > 10;\n```\nIt lists big orders."
        assert clean_sql(raw) == "SELECT id FROM orders WHERE total > 10"

    def test_unfenced_prose_before_statement(self):
        """Test: Leading prose lines are skipped."""
        raw = "Here is the query:\nSELECT count(*) FROM orders;\nThis counts the rows."
        assert clean_sql(raw) == "SELECT count(*) FROM orders"

    def test_first_statement_only(self):
        """Test: Only the first of several statements is kept."""
        assert clean_sql("SELECT 1; SELECT 2;") == "SELECT 1"

    def test_multiline_statement_cut_at_blank_line(self):
        """Test: An explanation after a blank line is not part of the statement."""
        assert clean_sql("```\nSELECT a\nFROM t\n\nThis selects a.\n```") == "SELECT a\nFROM t"

    def test_unclosed_fence(self):
        """Test: An opening fence without a closing one is still removed."""
        assert clean_sql("```sql\nSELECT name FROM users") == "SELECT name FROM users"

    def test_inline_backticks(self):
        """Test: Single backticks around the statement are removed."""
        assert clean_sql("`SELECT now()`") == "SELECT now()"

    def test_mongo_command(self):
        """Test: A JSON command survives cleaning."""
        assert clean_sql('```json\n{"listCollections": 1}\n```') == '{"listCollections": 1}'

    def test_unfenced_trailing_prose_cut(self):
        """Test: A prose line right after an unterminated statement is dropped."""
        assert clean_sql("SELECT * FROM orders\nThis lists all orders.") == "SELECT * FROM orders"

    def test_continuation_lines_kept(self):
        """Test: Clause lines of a multi-line statement stay in place."""
        raw = "SELECT id, total\nFROM orders\nWhere total > 10\nOrder by total desc"
        assert clean_sql(raw) == raw

    def test_backticks_inside_literal_kept(self):
        """Test: Backticks inside a string literal are not treated as a fence."""
        assert clean_sql("SELECT '```' AS x") == "SELECT '```' AS x"

    def test_single_line_fence(self):
        """Test: A fence opened and closed on the statement's own line is removed."""
        assert clean_sql("```sql SELECT 1```") == "SELECT 1"

    @pytest.mark.parametrize("raw", [None, "", "   ", "```", "```sql\n```"])
    def test_empty_inputs(self, raw):
        """Test: Nothing usable gives an empty string."""
        assert clean_sql(raw) == ""


# ─────────────────────────────────────────────────────────────────────────────
# Test: Properties
# ─────────────────────────────────────────────────────────────────────────────

class TestCleanSqlProperties:
    """Idempotence, totality and fence removal over many shapes."""

    @pytest.mark.parametrize("raw", MODEL_OUTPUTS)
    def test_idempotent(self, raw):
        """Test: Cleaning twice equals cleaning once."""
        once = clean_sql(raw)
        assert clean_sql(once) == once

    @pytest.mark.parametrize("raw", MODEL_OUTPUTS)
    def test_no_fence_markers_left(self, raw):
        """Test: Output never contains a code fence."""
        assert "```" not in clean_sql(raw)

    @pytest.mark.parametrize("raw", MODEL_OUTPUTS)
    def test_no_trailing_semicolon(self, raw):
        """Test: Output never ends with a semicolon."""
        assert not clean_sql(raw).endswith(";")
