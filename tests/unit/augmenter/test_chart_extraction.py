"""
Unit tests for parsing model-emitted chart JSON.
"""

import pytest

from dbsage.augmenter.extraction import (
    load_json_object,
    parse_chart_spec,
    parse_chart_suggestion,
    strip_fences,
)
from dbsage.errors import ExtractionError
from dbsage.schemas.chart import ChartKind

CHART_JSON = '{"labels": ["a", "b"], "series": [{"name": "rows", "values": [1, 2]}], "title": "Rows", "chart_type": "pie"}'


# ─────────────────────────────────────────────────────────────────────────────
# Test: Fences and JSON objects
# ─────────────────────────────────────────────────────────────────────────────

class TestStripFences:
    """Code fence handling."""

    @pytest.mark.parametrize("text,expected", [
        ('```json\n{"a": 1}\n```', '{"a": 1}'),
        ('```\n{"a": 1}\n```', '{"a": 1}'),
        ('```json\n{"a": 1}', '{"a": 1}'),
        ('  {"a": 1}  ', '{"a": 1}'),
        ("```", ""),
    ])
    def test_strip(self, text, expected):
        """Test: Fenced, unclosed and bare replies."""
        assert strip_fences(text) == expected


class TestLoadJsonObject:
    """Object extraction from prose."""

    def test_surrounding_prose(self):
        """Test: Text around the object is ignored."""
        assert load_json_object('Here it is: {"a": {"b": 2}} hope it helps') == {"a": {"b": 2}}

    @pytest.mark.parametrize("text", [
        "no json here",
        "[1, 2, 3]",
        "{not valid}",
        "} backwards {",
    ])
    def test_invalid(self, text):
        """Test: Anything but a JSON object raises."""
        with pytest.raises(ExtractionError):
            load_json_object(text)


# ─────────────────────────────────────────────────────────────────────────────
# Test: Chart spec and suggestion
# ─────────────────────────────────────────────────────────────────────────────

class TestParseChartSpec:
    """Validated chart data."""

    def test_valid(self):
        """Test: Values become floats; the model's chart type is kept."""
        spec = parse_chart_spec(f"```json\n{CHART_JSON}\n```")

        assert spec.labels == ["a", "b"]
        assert spec.series[0].values == [1.0, 2.0]
        assert spec.chart_type == ChartKind.PIE

    def test_kind_override(self):
        """Test: The requested kind wins."""
        assert parse_chart_spec(CHART_JSON, ChartKind.LINE).chart_type == ChartKind.LINE

    def test_mismatched_series(self):
        """Test: Series lengths must match the labels."""
        text = '{"labels": ["a", "b"], "series": [{"name": "rows", "values": [1]}]}'
        with pytest.raises(ExtractionError):
            parse_chart_spec(text)

    def test_empty_labels(self):
        """Test: Nothing to plot is an error."""
        with pytest.raises(ExtractionError):
            parse_chart_spec('{"labels": [], "series": []}')

    def test_non_numeric_values(self):
        """Test: Values must be numbers."""
        text = '{"labels": ["a"], "series": [{"name": "rows", "values": ["many"]}]}'
        with pytest.raises(ExtractionError):
            parse_chart_spec(text)


class TestParseChartSuggestion:
    """Renderer suggestions."""

    def test_valid(self):
        """Test: Kind and reason are read."""
        suggestion = parse_chart_suggestion('{"chart_type": "line", "reason": "values over time"}')

        assert suggestion.chart_type == ChartKind.LINE
        assert suggestion.reason == "values over time"

    def test_unknown_kind(self):
        """Test: Unknown chart types are rejected."""
        with pytest.raises(ExtractionError):
            parse_chart_suggestion('{"chart_type": "radar", "reason": "x"}')
