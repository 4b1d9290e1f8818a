"""
Tests for the database retry decorator.
"""

from unittest.mock import AsyncMock

import psycopg
import pytest

from aihub.db.helpers import DatabaseError, with_db_retry


@pytest.mark.asyncio
async def test_transient_failures_are_retried(monkeypatch):
    monkeypatch.setattr("aihub.db.helpers.asyncio.sleep", AsyncMock())
    operation = AsyncMock(side_effect=[psycopg.OperationalError("connection reset"), 42])

    @with_db_retry(max_retries=3, base_delay=0.01)
    async def load():
        return await operation()

    assert await load() == 42
    assert operation.await_count == 2


@pytest.mark.asyncio
async def test_gives_up_after_max_retries(monkeypatch):
    sleep = AsyncMock()
    monkeypatch.setattr("aihub.db.helpers.asyncio.sleep", sleep)
    operation = AsyncMock(side_effect=DatabaseError("pool timeout", recoverable=True))

    @with_db_retry(max_retries=2, base_delay=0.1)
    async def load():
        return await operation()

    with pytest.raises(DatabaseError) as exc_info:
        await load()

    assert exc_info.value.recoverable is False
    assert operation.await_count == 3
    assert [call.args[0] for call in sleep.await_args_list] == [0.1, 0.2]


@pytest.mark.asyncio
async def test_permanent_errors_are_not_retried(monkeypatch):
    monkeypatch.setattr("aihub.db.helpers.asyncio.sleep", AsyncMock())
    operation = AsyncMock(side_effect=DatabaseError("duplicate key", recoverable=False))

    @with_db_retry(max_retries=3)
    async def save():
        return await operation()

    with pytest.raises(DatabaseError, match="duplicate key"):
        await save()

    assert operation.await_count == 1
