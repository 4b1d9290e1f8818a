"""
Tests for tool field descriptors, form defaults and input coercion.
"""

import pytest
from pydantic import ValidationError

from aihub.models.domain.tool_domain import Tool
from aihub.services.tool_service import (
    ToolInputError,
    coerce_form_input,
    format_duration_estimate,
    initial_form_values,
)


def _tool(fields):
    return Tool(id="tool-1", name="Lead Finder", input_schema=fields)


def test_input_schema_accepts_wrapped_field_list_and_defaults_type():
    tool = _tool({"fields": [{"name": "query", "label": "Query"}]})

    assert tool.input_schema[0].type == "text"
    assert tool.input_schema[0].label == "Query"


def test_field_names_must_be_unique():
    with pytest.raises(ValidationError, match="Duplicate input field names: query"):
        _tool([{"name": "query", "type": "text"}, {"name": "query", "type": "textarea"}])


def test_unknown_field_type_is_rejected():
    with pytest.raises(ValidationError):
        _tool([{"name": "when", "type": "date"}])


def test_initial_values_follow_descriptor_defaults():
    tool = _tool(
        [
            {"name": "query", "type": "text"},
            {"name": "country", "type": "select", "options": ["US", "DE"], "defaultValue": "US"},
            {"name": "verified", "type": "checkbox"},
            {"name": "limit", "type": "number", "defaultValue": 25},
        ]
    )

    assert initial_form_values(tool.input_schema) == {
        "query": "",
        "country": "US",
        "verified": False,
        "limit": 25,
    }


def test_coercion_converts_numbers_and_checkboxes():
    tool = _tool(
        [
            {"name": "limit", "type": "number"},
            {"name": "verified", "type": "checkbox"},
            {"name": "query", "type": "text"},
        ]
    )

    values = coerce_form_input(
        tool.input_schema, {"limit": "10", "verified": "on", "query": " CTO ", "extra": 1}
    )

    assert values == {"limit": 10, "verified": True, "query": " CTO ", "extra": 1}


def test_coercion_collects_every_field_error():
    tool = _tool(
        [
            {"name": "query", "type": "text", "label": "Search query", "required": True},
            {"name": "country", "type": "select", "options": ["US", "DE"]},
            {"name": "limit", "type": "number"},
            {"name": "terms", "type": "checkbox", "label": "Terms", "required": True},
        ]
    )

    with pytest.raises(ToolInputError) as exc_info:
        coerce_form_input(
            tool.input_schema, {"query": "  ", "country": "FR", "limit": "many", "terms": False}
        )

    assert exc_info.value.errors == {
        "query": "Search query is required",
        "country": "country must be one of: US, DE",
        "limit": "limit must be a number",
        "terms": "Terms must be checked",
    }


def test_blank_optional_number_becomes_none():
    tool = _tool([{"name": "limit", "type": "number"}])

    assert coerce_form_input(tool.input_schema, {"limit": ""}) == {"limit": None}


@pytest.mark.parametrize(
    ("average_ms", "expected"),
    [
        (None, None),
        (400, "Estimated time: Less than a minute"),
        (1000, "Estimated time: 1 second"),
        (45_000, "Estimated time: 45 seconds"),
        (65_000, "Estimated time: 1 minute 5 seconds"),
        (120_000, "Estimated time: 2 minutes"),
    ],
)
def test_duration_estimate_text(average_ms, expected):
    assert format_duration_estimate(average_ms) == expected
