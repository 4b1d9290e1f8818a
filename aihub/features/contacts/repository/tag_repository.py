"""
Persistence layer for user_tags.

Tag names are unique per user and outlive the contacts that carry them.
"""

from collections.abc import Sequence

import psycopg

from aihub.db.helpers import fetch_all
from aihub.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class TagRepository:
    @classmethod
    async def list_user_tags(cls, user_id: str) -> list[str]:
        rows = await fetch_all(
            "SELECT tag_name FROM user_tags WHERE user_id = %s ORDER BY tag_name",
            (user_id,),
        )
        return [row["tag_name"] for row in rows]

    @classmethod
    async def ensure_tags(
        cls,
        user_id: str,
        tags: Sequence[str],
        *,
        connection: psycopg.AsyncConnection | None = None,
    ) -> list[str]:
        """
        Insert tag names the user does not have yet.

        Returns:
            The names that were newly created
        """
        names = list(dict.fromkeys(tag.strip() for tag in tags if tag and tag.strip()))
        if not names:
            return []

        rows = await fetch_all(
            """
            INSERT INTO user_tags (user_id, tag_name)
            SELECT %s, name FROM unnest(%s::text[]) AS name
            ON CONFLICT (user_id, tag_name) DO NOTHING
            RETURNING tag_name
            """,
            (user_id, names),
            connection=connection,
        )
        created = [row["tag_name"] for row in rows]
        if created:
            logger.info("User tags created", user_id=user_id, tags=created)
        return created
