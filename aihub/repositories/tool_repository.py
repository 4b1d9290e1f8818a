"""
Read access to the tool catalog and persistence of tool executions.
"""

import json
from typing import Any

import psycopg
from psycopg.types.json import Jsonb

from aihub.db.helpers import fetch_all, fetch_one
from aihub.infrastructure.observability.logging import get_logger
from aihub.models.domain.tool_domain import Tool, ToolExecution

logger = get_logger(__name__)

TOOL_COLUMNS = """
    id, name, description, category, credit_cost, input_schema, output_schema,
    webhook_link, rating, total_uses, execution_type
"""

EXECUTION_COLUMNS = """
    id, user_id, tool_id, input_data, output_data, status,
    credits_used, duration_ms, created_at, updated_at
"""


def _json(value: Any) -> Any:
    # jsonb arrives decoded; text columns holding JSON do not
    if isinstance(value, str):
        try:
            return json.loads(value)
        except ValueError:
            return value
    return value


def _row_to_tool(row: dict | None) -> Tool | None:
    if not row:
        return None
    return Tool(
        id=str(row["id"]),
        name=row["name"],
        description=row.get("description"),
        category=row.get("category"),
        credit_cost=row.get("credit_cost") or 0,
        input_schema=_json(row.get("input_schema")),
        output_schema=_json(row.get("output_schema")),
        webhook_link=row.get("webhook_link"),
        rating=row.get("rating"),
        total_uses=row.get("total_uses") or 0,
        execution_type=row.get("execution_type"),
    )


def _row_to_execution(row: dict | None) -> ToolExecution | None:
    if not row:
        return None
    return ToolExecution(
        id=str(row["id"]),
        user_id=str(row["user_id"]),
        tool_id=str(row["tool_id"]),
        input_data=_json(row.get("input_data")),
        output_data=_json(row.get("output_data")),
        status=row["status"],
        credits_used=row.get("credits_used"),
        duration_ms=row.get("duration_ms"),
        created_at=row.get("created_at"),
        updated_at=row.get("updated_at"),
    )


class ToolRepository:
    @classmethod
    async def list_tools(cls, category: str | None = None) -> list[Tool]:
        if category:
            rows = await fetch_all(
                f"SELECT {TOOL_COLUMNS} FROM tools WHERE category = %s ORDER BY name", (category,)
            )
        else:
            rows = await fetch_all(f"SELECT {TOOL_COLUMNS} FROM tools ORDER BY name")
        return [_row_to_tool(row) for row in rows]

    @classmethod
    async def get_tool(cls, tool_id: str) -> Tool | None:
        row = await fetch_one(f"SELECT {TOOL_COLUMNS} FROM tools WHERE id = %s", (tool_id,))
        return _row_to_tool(row)

    @classmethod
    async def increment_uses(cls, tool_id: str, *, connection: psycopg.AsyncConnection) -> None:
        await connection.execute(
            "UPDATE tools SET total_uses = COALESCE(total_uses, 0) + 1 WHERE id = %s", (tool_id,)
        )


class ExecutionRepository:
    @classmethod
    async def create_pending(cls, user_id: str, tool_id: str, input_data: dict) -> ToolExecution:
        row = await fetch_one(
            f"""
            INSERT INTO tool_executions (user_id, tool_id, input_data, status)
            VALUES (%s, %s, %s, 'pending')
            RETURNING {EXECUTION_COLUMNS}
            """,
            (user_id, tool_id, Jsonb(input_data)),
        )
        return _row_to_execution(row)

    @classmethod
    async def get_execution(cls, user_id: str, execution_id: str) -> ToolExecution | None:
        row = await fetch_one(
            f"SELECT {EXECUTION_COLUMNS} FROM tool_executions WHERE id = %s AND user_id = %s",
            (execution_id, user_id),
        )
        return _row_to_execution(row)

    @classmethod
    async def list_executions(
        cls, user_id: str, tool_id: str | None = None, limit: int = 50
    ) -> list[ToolExecution]:
        if tool_id:
            rows = await fetch_all(
                f"""
                SELECT {EXECUTION_COLUMNS} FROM tool_executions
                WHERE user_id = %s AND tool_id = %s
                ORDER BY created_at DESC LIMIT %s
                """,
                (user_id, tool_id, limit),
            )
        else:
            rows = await fetch_all(
                f"""
                SELECT {EXECUTION_COLUMNS} FROM tool_executions
                WHERE user_id = %s
                ORDER BY created_at DESC LIMIT %s
                """,
                (user_id, limit),
            )
        return [_row_to_execution(row) for row in rows]

    @classmethod
    async def recent_durations(cls, user_id: str, tool_id: str, limit: int) -> list[int]:
        rows = await fetch_all(
            """
            SELECT duration_ms FROM tool_executions
            WHERE user_id = %s AND tool_id = %s
              AND status = 'completed' AND duration_ms IS NOT NULL
            ORDER BY created_at DESC
            LIMIT %s
            """,
            (user_id, tool_id, limit),
        )
        return [row["duration_ms"] for row in rows]

    @classmethod
    async def mark_error(
        cls,
        execution_id: str,
        message: str,
        duration_ms: int | None = None,
        *,
        connection: psycopg.AsyncConnection | None = None,
    ) -> ToolExecution | None:
        """pending -> error; terminal rows are left untouched."""
        row = await fetch_one(
            f"""
            UPDATE tool_executions
            SET status = 'error', output_data = %s, duration_ms = %s,
                credits_used = 0, updated_at = NOW()
            WHERE id = %s AND status = 'pending'
            RETURNING {EXECUTION_COLUMNS}
            """,
            (Jsonb({"error": message}), duration_ms, execution_id),
            connection=connection,
        )
        return _row_to_execution(row)

    @classmethod
    async def mark_completed(
        cls,
        execution_id: str,
        output_data: Any,
        credits_used: int,
        duration_ms: int,
        *,
        connection: psycopg.AsyncConnection,
    ) -> ToolExecution | None:
        """pending -> completed; terminal rows are left untouched."""
        row = await fetch_one(
            f"""
            UPDATE tool_executions
            SET status = 'completed', output_data = %s, credits_used = %s,
                duration_ms = %s, updated_at = NOW()
            WHERE id = %s AND status = 'pending'
            RETURNING {EXECUTION_COLUMNS}
            """,
            (Jsonb(output_data), credits_used, duration_ms, execution_id),
            connection=connection,
        )
        return _row_to_execution(row)

    @classmethod
    async def record_transaction(
        cls,
        user_id: str,
        tool_id: str,
        credits_used: int,
        input_data: dict,
        output_data: Any,
        *,
        connection: psycopg.AsyncConnection,
    ) -> None:
        await connection.execute(
            """
            INSERT INTO transactions (user_id, tool_id, credits_used, input_data, output_data)
            VALUES (%s, %s, %s, %s, %s)
            """,
            (user_id, tool_id, credits_used, Jsonb(input_data), Jsonb(output_data)),
        )
