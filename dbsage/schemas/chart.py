"""
Chart schemas produced by the augmenter.
ChartSpec is also the validation target for model-emitted chart JSON.
"""

from enum import Enum

from pydantic import BaseModel, Field, model_validator


class ChartKind(str, Enum):
    LINE = "line"
    BAR = "bar"
    PIE = "pie"
    AREA = "area"
    TABLE = "table"
    ASCII = "ascii"
    HTML = "html"


class ChartSeries(BaseModel):
    """One named numeric series."""

    name: str = Field(..., min_length=1)
    values: list[float] = Field(..., min_length=1)
    color: str | None = Field(default=None, examples=["#36a2eb"])


class ChartSpec(BaseModel):
    """Chart-ready data extracted from a report."""

    labels: list[str] = Field(..., min_length=1)
    series: list[ChartSeries] = Field(..., min_length=1)
    title: str = Field(default="")
    x_axis: str = Field(default="")
    y_axis: str = Field(default="")
    chart_type: ChartKind = Field(default=ChartKind.BAR)

    @model_validator(mode="after")
    def check_series_lengths(self) -> "ChartSpec":
        for series in self.series:
            if len(series.values) != len(self.labels):
                raise ValueError(
                    f"series '{series.name}' has {len(series.values)} values "
                    f"for {len(self.labels)} labels"
                )
        return self


class ChartSuggestion(BaseModel):
    """Backend-suggested renderer and its justification."""

    chart_type: ChartKind = Field(default=ChartKind.TABLE)
    reason: str = Field(default="")
