"""
Chart renderers: ASCII, markdown table and a standalone Chart.js page.

Renderers are total: degenerate data gives a short message instead of an
exception.
"""

import html
import json

from dbsage.schemas.chart import ChartKind, ChartSpec

NOT_ENOUGH_DATA = "Not enough data to render chart"
ALL_ZERO = "All values are zero"
NO_TABLE_DATA = "No data to display"

DEFAULT_HEIGHT = 20
LABEL_WIDTH = 8
AXIS_PAD = " " * 6

BAR = "█"
POINT = "●"


def _title_block(title: str) -> list[str]:
    if not title:
        return []
    return [title, "=" * len(title), ""]


def render_ascii(spec: ChartSpec, height: int = DEFAULT_HEIGHT) -> str:
    """
    Fixed-height text chart.
    
    Line charts plot a point in the one row whose band holds the value;
    every other kind is drawn as bars. Each label gets an 8-character
    column.
    """
    if not spec.series or not spec.labels:
        return NOT_ENOUGH_DATA

    max_value = max((v for series in spec.series for v in series.values), default=0.0)
    if max_value <= 0:
        return ALL_ZERO

    is_line = spec.chart_type == ChartKind.LINE
    band = max_value / height
    width = len(spec.labels)

    lines = _title_block(spec.title)
    lines.append(spec.y_axis)
    lines.append("│")

    for row in range(height, -1, -1):
        level = max_value * row / height
        cells = []
        for j in range(width):
            values = [s.values[j] for s in spec.series if j < len(s.values)]
            if is_line:
                hit = any(-band / 2 <= v - level < band / 2 for v in values)
                cell = POINT if hit else " "
            else:
                hit = any(v >= level for v in values)
                cell = BAR * (LABEL_WIDTH - 2) if hit else " " * (LABEL_WIDTH - 2)
            cells.append(cell.center(LABEL_WIDTH))
        lines.append(f"{level:6.1f}│{''.join(cells).rstrip()}")

    lines.append(f"{AXIS_PAD}└{'─' * (width * LABEL_WIDTH)}")
    lines.append(AXIS_PAD + " " + "".join(f"{label[:LABEL_WIDTH]:<{LABEL_WIDTH}}" for label in spec.labels))
    lines.append(f"{AXIS_PAD}{spec.x_axis}")
    lines.append("")

    glyph = POINT if is_line else BAR
    for series in spec.series:
        lines.append(f"  {series.name}: {glyph}")

    return "\n".join(lines)


def render_table(spec: ChartSpec) -> str:
    """Markdown table, one row per label and one column per series."""
    if not spec.labels:
        return NO_TABLE_DATA

    lines = _title_block(spec.title)
    header = [spec.x_axis or "Label"] + [s.name for s in spec.series]
    lines.append("| " + " | ".join(header) + " |")
    lines.append("|" + "---|" * len(header))

    for i, label in enumerate(spec.labels):
        cells = [label]
        for series in spec.series:
            cells.append(f"{series.values[i]:.2f}" if i < len(series.values) else "N/A")
        lines.append("| " + " | ".join(cells) + " |")

    return "\n".join(lines)


# Chart.js has no "area" type; an area chart is a filled line
_CHARTJS_TYPES = {
    ChartKind.LINE: "line",
    ChartKind.BAR: "bar",
    ChartKind.PIE: "pie",
    ChartKind.AREA: "line",
}

HTML_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <title>{title}</title>
    <script src="https://cdn.jsdelivr.net/npm/chart.js"></script>
    <style>
        body {{ font-family: Arial, sans-serif; margin: 20px; }}
        .chart-container {{ width: 800px; height: 400px; margin: 20px 0; }}
    </style>
</head>
<body>
    <h1>{title}</h1>
    <div class="chart-container">
        <canvas id="chart"></canvas>
    </div>
    <script>
        const ctx = document.getElementById('chart').getContext('2d');
        new Chart(ctx, {config});
    </script>
</body>
</html>
"""


def chartjs_config(spec: ChartSpec) -> dict:
    """Chart.js configuration object for a spec."""
    datasets = []
    for series in spec.series:
        dataset = {"label": series.name, "data": series.values}
        if series.color:
            dataset["backgroundColor"] = series.color
            dataset["borderColor"] = series.color
        if spec.chart_type == ChartKind.AREA:
            dataset["fill"] = True
        datasets.append(dataset)

    return {
        "type": _CHARTJS_TYPES.get(spec.chart_type, "bar"),
        "data": {"labels": spec.labels, "datasets": datasets},
        "options": {
            "responsive": True,
            "maintainAspectRatio": False,
            "scales": {
                "y": {"beginAtZero": True, "title": {"display": True, "text": spec.y_axis}},
                "x": {"title": {"display": True, "text": spec.x_axis}},
            },
        },
    }


def render_html(spec: ChartSpec) -> str:
    """Self-contained HTML page; labels and datasets are embedded as JSON."""
    # "</" would close the script element early
    config = json.dumps(chartjs_config(spec), ensure_ascii=False).replace("</", "<\\/")
    return HTML_TEMPLATE.format(title=html.escape(spec.title or "Chart"), config=config)


def render_chart(spec: ChartSpec, kind: ChartKind, ascii_height: int = DEFAULT_HEIGHT) -> str:
    """Render with the renderer for ``kind``; chart kinds without their own renderer use ASCII."""
    if kind == ChartKind.TABLE:
        return render_table(spec)
    if kind == ChartKind.HTML:
        return render_html(spec)
    return render_ascii(spec, height=ascii_height)
