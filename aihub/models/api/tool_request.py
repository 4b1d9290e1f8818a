# aihub/models/api/tool_request.py
from typing import Any

from pydantic import BaseModel, Field


class ExecuteToolRequest(BaseModel):
    """Form values keyed by input field name."""

    input: dict[str, Any] = Field(default_factory=dict)
