"""
Database helper functions for common patterns.
Reduces boilerplate in repositories and services.
"""

import asyncio
from typing import Any

import psycopg

from aihub.db.pool import get_db_connection
from aihub.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class DatabaseError(Exception):
    """Custom exception for database operations."""

    def __init__(self, message: str, operation: str = "unknown", recoverable: bool = True):
        super().__init__(message)
        self.operation = operation
        self.recoverable = recoverable


async def fetch_one(
    query: str, params: tuple = (), *, connection: psycopg.AsyncConnection | None = None
) -> dict[str, Any] | None:
    """
    Execute query and return single row as dict.

    Args:
        query: SQL query with %s placeholders
        params: Query parameters
        connection: Optional existing connection (e.g. inside a transaction)

    Returns:
        Dict with row data or None if no results
    """
    try:
        if connection:
            async with connection.cursor() as cur:
                await cur.execute(query, params)
                row = await cur.fetchone()
                return row if row else None
        else:
            async with await get_db_connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(query, params)
                    row = await cur.fetchone()
                    return row if row else None

    except psycopg.Error as e:
        logger.error("Database fetch_one error", query=query[:100], error=str(e))
        raise DatabaseError(
            f"Query failed: {e}", operation="fetch_one", recoverable=_is_recoverable(e)
        ) from e


async def fetch_all(
    query: str, params: tuple = (), *, connection: psycopg.AsyncConnection | None = None
) -> list[dict[str, Any]]:
    """
    Execute query and return all rows as list of dicts.

    Args:
        query: SQL query with %s placeholders
        params: Query parameters
        connection: Optional existing connection

    Returns:
        List of dicts with row data
    """
    try:
        if connection:
            async with connection.cursor() as cur:
                await cur.execute(query, params)
                return await cur.fetchall()
        else:
            async with await get_db_connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(query, params)
                    return await cur.fetchall()

    except psycopg.Error as e:
        logger.error("Database fetch_all error", query=query[:100], error=str(e))
        raise DatabaseError(
            f"Query failed: {e}", operation="fetch_all", recoverable=_is_recoverable(e)
        ) from e


async def execute_query(
    query: str, params: tuple = (), *, connection: psycopg.AsyncConnection | None = None
) -> int:
    """
    Execute query and return number of affected rows.

    Args:
        query: SQL query with %s placeholders
        params: Query parameters
        connection: Optional existing connection

    Returns:
        Number of affected rows
    """
    try:
        if connection:
            cursor = await connection.execute(query, params)
            return cursor.rowcount
        else:
            async with await get_db_connection() as conn:
                cursor = await conn.execute(query, params)
                return cursor.rowcount

    except psycopg.Error as e:
        logger.error("Database execute error", query=query[:100], error=str(e))
        raise DatabaseError(
            f"Query failed: {e}", operation="execute", recoverable=_is_recoverable(e)
        ) from e


def _is_recoverable(error: psycopg.Error) -> bool:
    """Connection drops and timeouts are worth retrying; constraint and data errors are not."""
    return isinstance(error, psycopg.OperationalError)


# Decorator for automatic retry on temporary failures
def with_db_retry(max_retries: int = 3, base_delay: float = 0.1):
    """
    Decorator to retry database operations on temporary failures.

    Retries psycopg operational errors and recoverable DatabaseErrors raised by
    the helpers above; everything else propagates on the first attempt.

    Args:
        max_retries: Maximum number of retry attempts
        base_delay: Base delay between retries (exponential backoff)
    """

    def decorator(func):
        async def wrapper(*args, **kwargs):
            for attempt in range(max_retries + 1):
                try:
                    return await func(*args, **kwargs)

                except (psycopg.OperationalError, DatabaseError) as e:
                    if isinstance(e, DatabaseError) and not e.recoverable:
                        raise

                    if attempt < max_retries:
                        delay = base_delay * (2**attempt)
                        logger.warning(
                            "Database operation failed, retrying",
                            attempt=attempt + 1,
                            max_retries=max_retries,
                            delay=delay,
                            error=str(e),
                        )
                        await asyncio.sleep(delay)
                    else:
                        logger.error(
                            "Database operation failed after all retries",
                            attempts=max_retries + 1,
                            error=str(e),
                        )
                        raise DatabaseError(
                            f"Operation failed after {max_retries} retries: {e}",
                            operation=func.__name__,
                            recoverable=False,
                        ) from e

                except (psycopg.IntegrityError, psycopg.DataError) as e:
                    logger.error("Database operation failed with permanent error", error=str(e))
                    raise DatabaseError(
                        f"Permanent database error: {e}", operation=func.__name__, recoverable=False
                    ) from e

        wrapper.__name__ = func.__name__
        wrapper.__doc__ = func.__doc__
        return wrapper

    return decorator
