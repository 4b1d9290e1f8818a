"""
Tests for tool execution: credit gating, webhook handling and the
all-or-nothing completion transaction.
"""

from contextlib import asynccontextmanager
from unittest.mock import AsyncMock

import httpx
import pytest

from aihub.db.helpers import DatabaseError
from aihub.models.domain.tool_domain import Tool, ToolExecution
from aihub.models.domain.user_domain import CurrentUser
from aihub.repositories.tool_repository import ExecutionRepository, ToolRepository
from aihub.repositories.user_repository import UserRepository
from aihub.services import tool_execution_service
from aihub.services.tool_execution_service import (
    InsufficientCreditsError,
    ToolUnavailableError,
    WebhookError,
    call_tool_webhook,
    execute_tool,
)
from aihub.services.tool_service import ToolInputError

USER = CurrentUser(id="user-123", email="user@example.com")
MODULE = "aihub.services.tool_execution_service"


def _tool(**overrides):
    values = {
        "id": "tool-1",
        "name": "Lead Finder",
        "credit_cost": 5,
        "input_schema": [{"name": "query", "type": "text", "required": True}],
        "webhook_link": "https://hooks.example.com/lead-finder",
    }
    values.update(overrides)
    return Tool(**values)


def _execution(status="pending", **overrides):
    values = {
        "id": "exec-1",
        "user_id": USER.id,
        "tool_id": "tool-1",
        "input_data": {"query": "cto"},
        "status": status,
    }
    values.update(overrides)
    return ToolExecution(**values)


@pytest.fixture
def repositories(monkeypatch):
    """Patch every repository call execute_tool makes; returns the mocks by name."""
    conn = object()

    @asynccontextmanager
    async def _transaction():
        yield conn

    async def _get_db_transaction():
        return _transaction()

    mocks = {
        "create_pending": AsyncMock(return_value=_execution()),
        "mark_error": AsyncMock(
            side_effect=lambda execution_id, message, duration_ms: _execution(
                "error", output_data={"error": message}, credits_used=0
            )
        ),
        "mark_completed": AsyncMock(
            side_effect=lambda execution_id, output, cost, duration_ms, connection: _execution(
                "completed", output_data=output, credits_used=cost
            )
        ),
        "record_transaction": AsyncMock(return_value=None),
        "increment_uses": AsyncMock(return_value=None),
        "debit_credits": AsyncMock(return_value=15),
    }
    monkeypatch.setattr(f"{MODULE}.get_db_transaction", _get_db_transaction)
    monkeypatch.setattr(ExecutionRepository, "create_pending", mocks["create_pending"])
    monkeypatch.setattr(ExecutionRepository, "mark_error", mocks["mark_error"])
    monkeypatch.setattr(ExecutionRepository, "mark_completed", mocks["mark_completed"])
    monkeypatch.setattr(ExecutionRepository, "record_transaction", mocks["record_transaction"])
    monkeypatch.setattr(ToolRepository, "increment_uses", mocks["increment_uses"])
    monkeypatch.setattr(UserRepository, "debit_credits", mocks["debit_credits"])
    monkeypatch.setattr(f"{MODULE}.get_tool", AsyncMock(return_value=_tool()))
    mocks["conn"] = conn
    return mocks


@pytest.mark.asyncio
async def test_insufficient_credits_creates_no_execution(monkeypatch, repositories):
    monkeypatch.setattr(f"{MODULE}.get_live_credits", AsyncMock(return_value=3))
    webhook = AsyncMock()
    monkeypatch.setattr(f"{MODULE}.call_tool_webhook", webhook)

    with pytest.raises(InsufficientCreditsError) as exc_info:
        await execute_tool(USER, "tool-1", {"query": "cto"})

    error = exc_info.value
    assert error.required == 5
    assert error.available == 3
    assert "client_reference_id=user-123" in error.checkout_url
    repositories["create_pending"].assert_not_called()
    webhook.assert_not_called()


@pytest.mark.asyncio
async def test_successful_run_debits_inside_one_transaction(monkeypatch, repositories):
    monkeypatch.setattr(f"{MODULE}.get_live_credits", AsyncMock(return_value=20))
    output = {"leads": [{"name": "Jane"}]}
    webhook = AsyncMock(return_value=output)
    monkeypatch.setattr(f"{MODULE}.call_tool_webhook", webhook)

    outcome = await execute_tool(USER, "tool-1", {"query": "cto"})

    assert outcome.execution.status == "completed"
    assert outcome.execution.credits_used == 5
    assert outcome.credits_remaining == 15

    payload = webhook.await_args.args[1]
    assert payload == {"query": "cto", "user_id": "user-123", "tool_id": "tool-1", "execution_id": "exec-1"}

    conn = repositories["conn"]
    repositories["debit_credits"].assert_awaited_once_with("user-123", 5, connection=conn)
    assert repositories["mark_completed"].await_args.kwargs["connection"] is conn
    repositories["record_transaction"].assert_awaited_once_with(
        "user-123", "tool-1", 5, {"query": "cto"}, output, connection=conn
    )
    repositories["increment_uses"].assert_awaited_once_with("tool-1", connection=conn)
    repositories["mark_error"].assert_not_called()


@pytest.mark.asyncio
async def test_webhook_failure_marks_error_and_charges_nothing(monkeypatch, repositories):
    monkeypatch.setattr(f"{MODULE}.get_live_credits", AsyncMock(return_value=20))
    monkeypatch.setattr(
        f"{MODULE}.call_tool_webhook", AsyncMock(side_effect=WebhookError("Tool webhook returned HTTP 502"))
    )

    outcome = await execute_tool(USER, "tool-1", {"query": "cto"})

    assert outcome.execution.status == "error"
    assert outcome.execution.output_data == {"error": "Tool webhook returned HTTP 502"}
    assert outcome.credits_remaining == 20
    repositories["debit_credits"].assert_not_called()
    repositories["record_transaction"].assert_not_called()


@pytest.mark.asyncio
async def test_balance_spent_concurrently_fails_the_run(monkeypatch, repositories):
    monkeypatch.setattr(f"{MODULE}.get_live_credits", AsyncMock(side_effect=[20, 2]))
    monkeypatch.setattr(f"{MODULE}.call_tool_webhook", AsyncMock(return_value={"ok": True}))
    repositories["debit_credits"].return_value = None

    outcome = await execute_tool(USER, "tool-1", {"query": "cto"})

    assert outcome.execution.status == "error"
    assert outcome.execution.output_data == {"error": "Insufficient credits to complete execution"}
    assert outcome.credits_remaining == 2
    repositories["mark_completed"].assert_not_called()


@pytest.mark.asyncio
async def test_unexpected_webhook_exception_fails_the_pending_run(monkeypatch, repositories):
    monkeypatch.setattr(f"{MODULE}.get_live_credits", AsyncMock(return_value=20))
    monkeypatch.setattr(
        f"{MODULE}.call_tool_webhook", AsyncMock(side_effect=httpx.InvalidURL("Invalid port: 'abc'"))
    )

    outcome = await execute_tool(USER, "tool-1", {"query": "cto"})

    assert outcome.execution.status == "error"
    assert outcome.execution.output_data == {"error": "Tool webhook request failed"}
    assert outcome.credits_remaining == 20
    repositories["mark_error"].assert_awaited_once()
    repositories["debit_credits"].assert_not_called()


@pytest.mark.asyncio
async def test_unexpected_completion_exception_fails_the_pending_run(monkeypatch, repositories):
    monkeypatch.setattr(f"{MODULE}.get_live_credits", AsyncMock(return_value=20))
    monkeypatch.setattr(f"{MODULE}.call_tool_webhook", AsyncMock(return_value={"ok": True}))
    repositories["debit_credits"].side_effect = RuntimeError("pool is closed")

    outcome = await execute_tool(USER, "tool-1", {"query": "cto"})

    assert outcome.execution.status == "error"
    assert outcome.execution.output_data == {"error": "Failed to record execution result"}
    assert outcome.credits_remaining == 20
    repositories["mark_completed"].assert_not_called()


@pytest.mark.asyncio
async def test_failure_to_mark_error_still_returns_an_error_result(monkeypatch, repositories):
    monkeypatch.setattr(f"{MODULE}.get_live_credits", AsyncMock(return_value=20))
    monkeypatch.setattr(
        f"{MODULE}.call_tool_webhook", AsyncMock(side_effect=WebhookError("Tool webhook timed out"))
    )
    repositories["mark_error"].side_effect = DatabaseError("connection lost", operation="fetch_one")

    outcome = await execute_tool(USER, "tool-1", {"query": "cto"})

    assert outcome.execution.id == "exec-1"
    assert outcome.execution.status == "error"
    assert outcome.execution.output_data == {"error": "Tool webhook timed out"}
    assert outcome.execution.credits_used == 0
    assert outcome.credits_remaining == 20


@pytest.mark.asyncio
async def test_invalid_input_is_rejected_before_credit_check(monkeypatch, repositories):
    credits = AsyncMock(return_value=20)
    monkeypatch.setattr(f"{MODULE}.get_live_credits", credits)

    with pytest.raises(ToolInputError):
        await execute_tool(USER, "tool-1", {"query": ""})

    credits.assert_not_called()
    repositories["create_pending"].assert_not_called()


@pytest.mark.asyncio
async def test_tool_without_webhook_is_unavailable(monkeypatch, repositories):
    monkeypatch.setattr(f"{MODULE}.get_tool", AsyncMock(return_value=_tool(webhook_link=None)))

    with pytest.raises(ToolUnavailableError):
        await execute_tool(USER, "tool-1", {"query": "cto"})


def _patch_transport(monkeypatch, handler):
    real_client = httpx.AsyncClient

    def _client(**kwargs):
        return real_client(transport=httpx.MockTransport(handler), **kwargs)

    monkeypatch.setattr(tool_execution_service.httpx, "AsyncClient", _client)


@pytest.mark.asyncio
async def test_webhook_json_body_is_decoded(monkeypatch):
    _patch_transport(monkeypatch, lambda request: httpx.Response(200, json={"leads": []}))

    assert await call_tool_webhook(_tool(), {"query": "cto"}) == {"leads": []}


@pytest.mark.asyncio
async def test_webhook_plain_text_body_is_kept_as_text(monkeypatch):
    _patch_transport(monkeypatch, lambda request: httpx.Response(200, text="Report generated"))

    assert await call_tool_webhook(_tool(), {"query": "cto"}) == "Report generated"


@pytest.mark.asyncio
async def test_webhook_error_status_raises(monkeypatch):
    _patch_transport(monkeypatch, lambda request: httpx.Response(502))

    with pytest.raises(WebhookError, match="HTTP 502"):
        await call_tool_webhook(_tool(), {"query": "cto"})


@pytest.mark.asyncio
async def test_webhook_timeout_raises(monkeypatch):
    def _timeout(request):
        raise httpx.ReadTimeout("timed out", request=request)

    _patch_transport(monkeypatch, _timeout)

    with pytest.raises(WebhookError, match="timed out"):
        await call_tool_webhook(_tool(), {"query": "cto"})
