"""
Prompts for chart extraction and chart-type suggestion.
Both ask for strict JSON; the parser tolerates code fences only.
"""

CHART_EXTRACTION_SYSTEM = (
    "You are a data analysis expert who extracts structured information "
    "from text for chart visualization."
)

CHART_EXTRACTION_USER = """Analyse the following database analysis result and extract numeric data that can be plotted as a {chart_type} chart.

Analysis result:
{report}

Return ONLY valid JSON with this structure:
{{
  "labels": ["label1", "label2"],
  "series": [
    {{
      "name": "Series name",
      "values": [1.0, 2.0]
    }}
  ],
  "title": "Chart title",
  "x_axis": "X axis label",
  "y_axis": "Y axis label",
  "chart_type": "{chart_type}"
}}

Every series must have one value per label. If there is not enough numeric data, return the same structure with empty arrays."""

CHART_SUGGESTION_SYSTEM = (
    "You are a data visualization expert who suggests the best chart type for different kinds of data."
)

CHART_SUGGESTION_USER = """Analyse the following database analysis result and suggest the most appropriate chart type to visualize it.

Result:
{report}

Return ONLY JSON with:
{{
  "chart_type": "line" or "bar" or "pie" or "area" or "table",
  "reason": "short explanation"
}}"""
