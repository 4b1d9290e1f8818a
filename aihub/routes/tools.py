"""
tools.py
--------
Purpose:
    Tool catalog, dynamic form metadata, execution and execution history.

    POST /tools/{tool_id}/execute answers 402 with a checkout URL when the
    live balance does not cover the tool's cost; no execution is created in
    that case.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status

from aihub.auth.verify import get_current_user
from aihub.db.helpers import DatabaseError
from aihub.infrastructure.observability.logging import get_logger
from aihub.middleware.rate_limit_dependencies import rate_limit_executions, rate_limit_user
from aihub.models.api.tool_request import ExecuteToolRequest
from aihub.models.api.tool_response import (
    DurationEstimateResponse,
    ExecuteToolResponse,
    ExecutionListResponse,
    ExecutionResponse,
    ToolDetailResponse,
    ToolListResponse,
    ToolSummary,
)
from aihub.models.domain.user_domain import CurrentUser
from aihub.services import tool_execution_service, tool_service
from aihub.services.tool_execution_service import (
    ExecutionNotFoundError,
    InsufficientCreditsError,
    ToolUnavailableError,
)
from aihub.services.tool_service import ToolInputError, ToolNotFoundError

router = APIRouter(tags=["tools"])
logger = get_logger(__name__)


def _storage_failure(operation: str, error: Exception) -> HTTPException:
    logger.error("Tool storage operation failed", operation=operation, error=str(error))
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Failed to {operation}. Please try again.",
    )


@router.get("/tools", response_model=ToolListResponse)
async def list_tools(
    category: str | None = Query(default=None),
    user: CurrentUser = Depends(get_current_user),
    _rate: None = Depends(rate_limit_user),
):
    try:
        tools = await tool_service.list_tools(category)
    except DatabaseError as e:
        raise _storage_failure("load tools", e) from e
    return ToolListResponse(tools=[ToolSummary.from_domain(tool) for tool in tools])


@router.get("/tools/{tool_id}", response_model=ToolDetailResponse)
async def get_tool(
    tool_id: UUID,
    user: CurrentUser = Depends(get_current_user),
    _rate: None = Depends(rate_limit_user),
):
    try:
        tool = await tool_service.get_tool(str(tool_id))
    except ToolNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except DatabaseError as e:
        raise _storage_failure("load tool", e) from e

    return ToolDetailResponse(
        **ToolSummary.from_domain(tool).model_dump(),
        input_schema=tool.input_schema,
        output_schema=tool.output_schema,
        initial_values=tool_service.initial_form_values(tool.input_schema),
    )


@router.get("/tools/{tool_id}/estimate", response_model=DurationEstimateResponse)
async def estimate_tool_duration(
    tool_id: UUID,
    user: CurrentUser = Depends(get_current_user),
    _rate: None = Depends(rate_limit_user),
):
    """Expected run time from the caller's recent runs of this tool."""
    try:
        estimate = await tool_service.estimate_duration(user.id, str(tool_id))
    except DatabaseError as e:
        raise _storage_failure("estimate duration", e) from e
    return DurationEstimateResponse(**estimate)


@router.post("/tools/{tool_id}/execute", response_model=ExecuteToolResponse)
async def execute_tool(
    tool_id: UUID,
    body: ExecuteToolRequest,
    user: CurrentUser = Depends(get_current_user),
    _rate: None = Depends(rate_limit_user),
    _exec_rate: None = Depends(rate_limit_executions),
):
    """
    Run a tool. A failed webhook still answers 200 with the execution in
    `error` status and no credits charged.
    """
    try:
        outcome = await tool_execution_service.execute_tool(user, str(tool_id), body.input)
    except ToolNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except ToolInputError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"error": "invalid_input", "fields": e.errors},
        ) from e
    except ToolUnavailableError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e)) from e
    except InsufficientCreditsError as e:
        raise HTTPException(
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            detail={
                "error": "insufficient_credits",
                "message": str(e),
                "required": e.required,
                "available": e.available,
                "checkout_url": e.checkout_url,
            },
        ) from e
    except DatabaseError as e:
        raise _storage_failure("execute tool", e) from e

    return ExecuteToolResponse(
        execution=ExecutionResponse.from_domain(outcome.execution),
        credits_remaining=outcome.credits_remaining,
    )


@router.get("/executions", response_model=ExecutionListResponse)
async def list_executions(
    tool_id: UUID | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200),
    user: CurrentUser = Depends(get_current_user),
    _rate: None = Depends(rate_limit_user),
):
    try:
        executions = await tool_execution_service.list_executions(
            user.id, str(tool_id) if tool_id else None, limit
        )
    except DatabaseError as e:
        raise _storage_failure("load executions", e) from e
    return ExecutionListResponse(
        executions=[ExecutionResponse.from_domain(execution) for execution in executions]
    )


@router.get("/executions/{execution_id}", response_model=ExecutionResponse)
async def get_execution(
    execution_id: UUID,
    user: CurrentUser = Depends(get_current_user),
    _rate: None = Depends(rate_limit_user),
):
    try:
        execution = await tool_execution_service.get_execution(user.id, str(execution_id))
    except ExecutionNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except DatabaseError as e:
        raise _storage_failure("load execution", e) from e
    return ExecutionResponse.from_domain(execution)
