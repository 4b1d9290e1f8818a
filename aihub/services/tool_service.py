"""
Tool catalog and dynamic form handling.

Each tool describes its inputs as a list of typed field descriptors. This
module produces the initial form state, validates and coerces submitted
values against the descriptors, and estimates run time from history.
"""

from collections.abc import Sequence
from typing import Any

from aihub.config import settings
from aihub.infrastructure.observability.logging import get_logger
from aihub.models.domain.tool_domain import Tool, ToolField
from aihub.repositories.tool_repository import ExecutionRepository, ToolRepository

logger = get_logger(__name__)

_TRUE_STRINGS = {"true", "1", "yes", "on"}
_FALSE_STRINGS = {"false", "0", "no", "off", ""}


class ToolNotFoundError(LookupError):
    """No tool with the requested id."""


class ToolInputError(ValueError):
    """Submitted form values do not satisfy the tool's field descriptors."""

    def __init__(self, errors: dict[str, str]):
        super().__init__("; ".join(f"{name}: {message}" for name, message in errors.items()))
        self.errors = errors


async def list_tools(category: str | None = None) -> list[Tool]:
    return await ToolRepository.list_tools(category)


async def get_tool(tool_id: str) -> Tool:
    tool = await ToolRepository.get_tool(tool_id)
    if not tool:
        raise ToolNotFoundError(f"Tool {tool_id} not found")
    return tool


def initial_form_values(fields: Sequence[ToolField]) -> dict[str, Any]:
    """Default value per field, "" when none is given (False for checkboxes)."""
    values: dict[str, Any] = {}
    for field in fields:
        if field.type == "checkbox":
            values[field.name] = bool(field.default_value)
        elif field.default_value is None or field.default_value == "":
            values[field.name] = ""
        else:
            values[field.name] = field.default_value
    return values


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _coerce_checkbox(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    if isinstance(value, (int, float)):
        return value != 0
    text = str(value).strip().lower()
    if text in _TRUE_STRINGS:
        return True
    if text in _FALSE_STRINGS:
        return False
    raise ValueError("must be true or false")


def _coerce_number(value: Any) -> int | float:
    if isinstance(value, bool):
        raise ValueError("must be a number")
    if isinstance(value, (int, float)):
        return value
    text = str(value).strip()
    try:
        return int(text)
    except ValueError:
        pass
    try:
        return float(text)
    except ValueError as e:
        raise ValueError("must be a number") from e


def coerce_form_input(fields: Sequence[ToolField], data: dict[str, Any]) -> dict[str, Any]:
    """
    Validate submitted values against the field descriptors.

    Keys without a descriptor are passed through untouched.

    Raises:
        ToolInputError: with a message per offending field
    """
    result = dict(data)
    errors: dict[str, str] = {}

    for field in fields:
        value = data.get(field.name)
        label = field.label or field.name

        if field.type == "checkbox":
            try:
                checked = _coerce_checkbox(value)
            except ValueError as e:
                errors[field.name] = f"{label} {e}"
                continue
            if field.required and not checked:
                errors[field.name] = f"{label} must be checked"
            result[field.name] = checked
            continue

        if _is_blank(value):
            if field.required:
                errors[field.name] = f"{label} is required"
            result[field.name] = None if field.type == "number" else ""
            continue

        if field.type == "number":
            try:
                result[field.name] = _coerce_number(value)
            except ValueError as e:
                errors[field.name] = f"{label} {e}"
            continue

        text = value if isinstance(value, str) else str(value)
        if field.type == "select" and field.options and text not in field.options:
            errors[field.name] = f"{label} must be one of: {', '.join(field.options)}"
        result[field.name] = text

    if errors:
        raise ToolInputError(errors)
    return result


def format_duration_estimate(average_ms: int | None) -> str | None:
    """Human-readable estimate, e.g. "Estimated time: 1 minute 5 seconds"."""
    if average_ms is None:
        return None

    minutes = average_ms // 60000
    seconds = (average_ms % 60000) // 1000

    if minutes > 0:
        text = f"Estimated time: {minutes} minute{'s' if minutes > 1 else ''}"
        if seconds > 0:
            text += f" {seconds} second{'s' if seconds > 1 else ''}"
        return text
    if seconds > 0:
        return f"Estimated time: {seconds} second{'s' if seconds > 1 else ''}"
    return "Estimated time: Less than a minute"


async def estimate_duration(user_id: str, tool_id: str) -> dict[str, Any]:
    """Average of the user's most recent completed runs of the tool."""
    durations = await ExecutionRepository.recent_durations(
        user_id, tool_id, settings.EXECUTION_ESTIMATE_SAMPLE_SIZE
    )
    average_ms = round(sum(durations) / len(durations)) if durations else None
    return {
        "average_ms": average_ms,
        "sample_size": len(durations),
        "message": format_duration_estimate(average_ms),
    }

