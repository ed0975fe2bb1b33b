"""
Deterministic parsing of model-emitted JSON.

The model is asked for bare JSON; code fences and prose around the object
are tolerated, anything else raises ExtractionError.
"""

import json
import re

from pydantic import ValidationError

from dbsage.errors import ExtractionError
from dbsage.schemas.chart import ChartKind, ChartSpec, ChartSuggestion
from dbsage.schemas.plan import MaintenancePlan, ProjectPlan

_FENCE = re.compile(r"```[a-zA-Z]*\s*(.*?)```", re.DOTALL)


def strip_fences(text: str) -> str:
    """Contents of the first code fence, or the stripped text when unfenced."""
    text = text.strip()
    match = _FENCE.search(text)
    if match:
        return match.group(1).strip()
    if text.startswith("```"):
        # Unclosed fence
        return text.split("\n", 1)[1].strip() if "\n" in text else ""
    return text


def load_json_object(text: str) -> dict:
    """
    Decode the JSON object contained in a model reply.
    
    Raises:
        ExtractionError: No object, or invalid JSON
    """
    body = strip_fences(text)
    start, end = body.find("{"), body.rfind("}")
    if start == -1 or end < start:
        raise ExtractionError("No JSON object in model output")

    try:
        data = json.loads(body[start:end + 1])
    except json.JSONDecodeError as e:
        raise ExtractionError(f"Invalid JSON in model output: {e}") from e

    if not isinstance(data, dict):
        raise ExtractionError("Model output is not a JSON object")
    return data


def parse_chart_spec(text: str, chart_kind: ChartKind | None = None) -> ChartSpec:
    """
    Parse and validate chart data.
    
    Args:
        text: Raw model reply
        chart_kind: Overrides whatever chart_type the model wrote
        
    Raises:
        ExtractionError: Malformed JSON, empty data or mismatched series
    """
    data = load_json_object(text)
    if chart_kind is not None:
        data["chart_type"] = chart_kind.value

    try:
        return ChartSpec.model_validate(data)
    except ValidationError as e:
        raise ExtractionError(f"Chart data failed validation: {e.error_count()} errors") from e


def parse_chart_suggestion(text: str) -> ChartSuggestion:
    """
    Raises:
        ExtractionError: Malformed JSON or unknown chart type
    """
    data = load_json_object(text)
    try:
        return ChartSuggestion.model_validate(data)
    except ValidationError as e:
        raise ExtractionError(f"Chart suggestion failed validation: {e.error_count()} errors") from e


def parse_maintenance_plan(text: str) -> MaintenancePlan:
    """
    Parse and validate a maintenance plan. A new plan is always pending.
    
    Raises:
        ExtractionError: Malformed JSON, no tasks or dangling dependencies
    """
    data = load_json_object(text)
    data.pop("status", None)
    for task in data.get("tasks") or []:
        if isinstance(task, dict):
            task.pop("status", None)
    try:
        return MaintenancePlan.model_validate(data)
    except ValidationError as e:
        raise ExtractionError(f"Maintenance plan failed validation: {e.error_count()} errors") from e


def parse_project_plan(text: str, created_from: str | None = None) -> ProjectPlan:
    """
    Raises:
        ExtractionError: Malformed JSON, no tasks or a bad due date
    """
    data = load_json_object(text)
    data["created_from"] = created_from
    try:
        return ProjectPlan.model_validate(data)
    except ValidationError as e:
        raise ExtractionError(f"Project plan failed validation: {e.error_count()} errors") from e
