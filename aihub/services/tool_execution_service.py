"""
Tool execution with credit accounting.

Steps run strictly in order: load the tool, validate input, re-read the live
balance, create a pending execution, call the tool's webhook, then either
complete or fail the execution.

Credits are only taken after the webhook succeeded, inside the same
transaction that marks the execution completed, writes the ledger row and
bumps the tool's usage counter. The debit is conditional on the balance
still covering the cost, so concurrent runs cannot overdraw an account.
A failed run is never charged, so there is nothing to refund.
"""

import time
from dataclasses import dataclass
from typing import Any

import httpx

from aihub.config import settings
from aihub.db.helpers import DatabaseError
from aihub.db.pool import get_db_transaction
from aihub.infrastructure.observability.logging import get_logger
from aihub.models.domain.tool_domain import Tool, ToolExecution
from aihub.models.domain.user_domain import CurrentUser
from aihub.repositories.tool_repository import ExecutionRepository, ToolRepository
from aihub.repositories.user_repository import UserRepository
from aihub.services.billing_service import build_checkout_url
from aihub.services.tool_service import coerce_form_input, get_tool
from aihub.services.user_service import get_live_credits

logger = get_logger(__name__)


class InsufficientCreditsError(Exception):
    """Balance does not cover the tool's cost; nothing was executed."""

    def __init__(self, required: int, available: int, checkout_url: str):
        super().__init__(f"You need {required} credits to use this tool")
        self.required = required
        self.available = available
        self.checkout_url = checkout_url


class ToolUnavailableError(Exception):
    """The tool has no webhook to call."""


class ExecutionNotFoundError(LookupError):
    """No execution with that id belongs to the user."""


class WebhookError(Exception):
    """The tool webhook did not produce a usable response."""


class _DebitDeclined(Exception):
    pass


@dataclass(slots=True)
class ExecutionOutcome:
    execution: ToolExecution
    credits_remaining: int | None


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


async def call_tool_webhook(tool: Tool, payload: dict[str, Any]) -> Any:
    """
    POST the payload to the tool's webhook.

    Returns:
        The decoded JSON body, or the raw text for non-JSON responses

    Raises:
        WebhookError: HTTP error status, transport failure or timeout
    """
    timeout = settings.TOOL_WEBHOOK_TIMEOUT_SECONDS
    try:
        async with httpx.AsyncClient(timeout=timeout) as client:
            response = await client.post(tool.webhook_link, json=payload)
            response.raise_for_status()
    except httpx.TimeoutException as e:
        raise WebhookError(f"Tool webhook timed out after {timeout:g} seconds") from e
    except httpx.HTTPStatusError as e:
        raise WebhookError(f"Tool webhook returned HTTP {e.response.status_code}") from e
    except httpx.HTTPError as e:
        raise WebhookError(f"Tool webhook request failed: {e}") from e

    try:
        return response.json()
    except ValueError:
        return response.text


async def _complete(
    user_id: str, tool: Tool, execution: ToolExecution, output: Any, duration_ms: int
) -> tuple[ToolExecution, int]:
    """Debit, complete, write the ledger row and count the use, all or nothing."""
    async with await get_db_transaction() as conn:
        balance = await UserRepository.debit_credits(user_id, tool.credit_cost, connection=conn)
        if balance is None:
            raise _DebitDeclined()

        completed = await ExecutionRepository.mark_completed(
            execution.id, output, tool.credit_cost, duration_ms, connection=conn
        )
        if completed is None:
            raise DatabaseError(
                "Execution is no longer pending", operation="complete_execution", recoverable=False
            )

        await ExecutionRepository.record_transaction(
            user_id, tool.id, tool.credit_cost, execution.input_data or {}, output, connection=conn
        )
        await ToolRepository.increment_uses(tool.id, connection=conn)

    return completed, balance


async def execute_tool(user: CurrentUser, tool_id: str, data: dict[str, Any]) -> ExecutionOutcome:
    """
    Run a tool for the user.

    Raises:
        ToolNotFoundError, ToolInputError, ToolUnavailableError before anything is stored
        InsufficientCreditsError when the live balance is short (no execution row is created)
    """
    tool = await get_tool(tool_id)
    input_data = coerce_form_input(tool.input_schema, data)

    if not tool.webhook_link:
        raise ToolUnavailableError(f"Tool {tool.name} is not available right now")

    available = await get_live_credits(user.id)
    if available < tool.credit_cost:
        logger.info(
            "Insufficient credits for tool",
            user_id=user.id,
            tool_id=tool.id,
            required=tool.credit_cost,
            available=available,
        )
        raise InsufficientCreditsError(
            tool.credit_cost, available, build_checkout_url(user.id, user.email)
        )

    execution = await ExecutionRepository.create_pending(user.id, tool.id, input_data)
    log = logger.bind(user_id=user.id, tool_id=tool.id, execution_id=execution.id)
    log.info("Tool execution started", credit_cost=tool.credit_cost)

    started = time.perf_counter()
    payload = {**input_data, "user_id": user.id, "tool_id": tool.id, "execution_id": execution.id}

    try:
        output = await call_tool_webhook(tool, payload)
    except WebhookError as e:
        duration_ms = _elapsed_ms(started)
        log.warning("Tool webhook failed", error=str(e), duration_ms=duration_ms)
        failed = await _fail(log, execution, str(e), duration_ms)
        return ExecutionOutcome(execution=failed, credits_remaining=available)
    except Exception as e:
        duration_ms = _elapsed_ms(started)
        log.exception("Tool webhook call raised", error=str(e), duration_ms=duration_ms)
        failed = await _fail(log, execution, "Tool webhook request failed", duration_ms)
        return ExecutionOutcome(execution=failed, credits_remaining=available)

    duration_ms = _elapsed_ms(started)

    try:
        completed, balance = await _complete(user.id, tool, execution, output, duration_ms)
    except _DebitDeclined:
        log.warning("Balance spent before completion, execution not charged")
        failed = await _fail(log, execution, "Insufficient credits to complete execution", duration_ms)
        try:
            available = await get_live_credits(user.id)
        except DatabaseError as e:
            log.warning("Balance re-read failed", error=str(e))
        return ExecutionOutcome(execution=failed, credits_remaining=available)
    except Exception as e:
        log.exception("Recording execution result failed", error=str(e))
        failed = await _fail(log, execution, "Failed to record execution result", duration_ms)
        return ExecutionOutcome(execution=failed, credits_remaining=available)

    log.info("Tool execution completed", duration_ms=duration_ms, credits_remaining=balance)
    return ExecutionOutcome(execution=completed, credits_remaining=balance)


async def _fail(log, execution: ToolExecution, message: str, duration_ms: int) -> ToolExecution:
    """
    Move a pending execution to `error`. Never raises: when the status write
    itself fails the row stays pending and the caller still gets an error result.
    """
    try:
        failed = await ExecutionRepository.mark_error(execution.id, message, duration_ms)
    except Exception as e:
        log.error("Marking execution failed did not persist", error=str(e), message=message)
        failed = None
    return failed or execution.model_copy(
        update={
            "status": "error",
            "output_data": {"error": message},
            "credits_used": 0,
            "duration_ms": duration_ms,
        }
    )


async def get_execution(user_id: str, execution_id: str) -> ToolExecution:
    execution = await ExecutionRepository.get_execution(user_id, execution_id)
    if not execution:
        raise ExecutionNotFoundError(f"Execution {execution_id} not found")
    return execution


async def list_executions(user_id: str, tool_id: str | None = None, limit: int = 50) -> list[ToolExecution]:
    return await ExecutionRepository.list_executions(user_id, tool_id, limit)
