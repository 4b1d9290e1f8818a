# aihub/models/api/tool_response.py
from datetime import datetime
from typing import Any

from pydantic import BaseModel

from aihub.features.contacts.domain.models import OutputShape
from aihub.features.contacts.services.lead_detection import classify_output, detect_lead_array
from aihub.models.domain.tool_domain import Tool, ToolExecution, ToolField


class ToolSummary(BaseModel):
    id: str
    name: str
    description: str | None = None
    category: str | None = None
    credit_cost: int
    rating: float | None = None
    total_uses: int = 0

    @classmethod
    def from_domain(cls, tool: Tool) -> "ToolSummary":
        return cls(
            id=tool.id,
            name=tool.name,
            description=tool.description,
            category=tool.category,
            credit_cost=tool.credit_cost,
            rating=tool.rating,
            total_uses=tool.total_uses,
        )


class ToolListResponse(BaseModel):
    tools: list[ToolSummary]


class ToolDetailResponse(ToolSummary):
    """Tool plus what the client needs to render its form."""

    input_schema: list[ToolField]
    output_schema: dict[str, Any] | None = None
    initial_values: dict[str, Any]


class DurationEstimateResponse(BaseModel):
    average_ms: int | None = None
    sample_size: int
    message: str | None = None


class ExecutionResponse(BaseModel):
    id: str
    tool_id: str
    status: str
    input_data: dict[str, Any] | None = None
    output_data: Any = None
    output_shape: OutputShape
    # Present when output_shape is lead_array
    leads: list[dict[str, Any]] | None = None
    credits_used: int | None = None
    duration_ms: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_domain(cls, execution: ToolExecution) -> "ExecutionResponse":
        shape = classify_output(execution.output_data)
        leads = detect_lead_array(execution.output_data).leads if shape == OutputShape.LEAD_ARRAY else None
        return cls(
            id=execution.id,
            tool_id=execution.tool_id,
            status=execution.status,
            input_data=execution.input_data,
            output_data=execution.output_data,
            output_shape=shape,
            leads=leads,
            credits_used=execution.credits_used,
            duration_ms=execution.duration_ms,
            created_at=execution.created_at,
            updated_at=execution.updated_at,
        )


class ExecuteToolResponse(BaseModel):
    execution: ExecutionResponse
    credits_remaining: int | None = None


class ExecutionListResponse(BaseModel):
    executions: list[ExecutionResponse]
