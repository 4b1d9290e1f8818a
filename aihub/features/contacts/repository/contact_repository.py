"""
Persistence layer for contacts.

Every statement is scoped by the owning user id. Ingestion writes a whole
batch in one transaction, so a storage error fails the batch and nothing
is reported as inserted.
"""

from collections.abc import Iterable, Sequence

import psycopg

from aihub.db.helpers import DatabaseError, execute_query, fetch_all
from aihub.db.pool import get_db_transaction
from aihub.features.contacts.domain.models import (
    DEFAULT_STATUS,
    Contact,
    ContactData,
    ContactQuery,
    IngestionResult,
)
from aihub.features.contacts.repository.tag_repository import TagRepository
from aihub.features.contacts.services.query_builder import CONTACT_COLUMNS, build_contacts_query
from aihub.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

INSERT_COLUMNS = (
    "user_id",
    "name",
    "email",
    "phone_number",
    "company_name",
    "contact_position",
    "address",
    "status",
    "tags",
)

# Postgres caps a statement at 65535 bind parameters.
INSERT_BATCH_ROWS = 1000


def clean_tags(tags: Iterable[str] | None) -> list[str] | None:
    """Trim and de-duplicate preserving order; an empty result is stored as NULL."""
    if not tags:
        return None
    cleaned = [tag.strip() for tag in tags if isinstance(tag, str) and tag.strip()]
    return list(dict.fromkeys(cleaned)) or None


class ContactRepository:
    """Queries against public.contacts."""

    @classmethod
    def _row_to_contact(cls, row: dict) -> Contact:
        return Contact(
            id=str(row["id"]),
            user_id=str(row["user_id"]),
            name=row.get("name"),
            email=row.get("email"),
            phone_number=row.get("phone_number"),
            company_name=row.get("company_name"),
            contact_position=row.get("contact_position"),
            address=row.get("address"),
            status=row.get("status") or DEFAULT_STATUS,
            tags=row.get("tags"),
            added_at_date=row.get("added_at_date"),
        )

    @classmethod
    def _row_values(cls, record: ContactData, user_id: str) -> tuple:
        return (
            user_id,
            record.name or None,
            record.email or None,
            record.phone_number or None,
            record.company_name or None,
            record.contact_position or None,
            record.address or None,
            record.status or DEFAULT_STATUS,
            clean_tags(record.tags),
        )

    @classmethod
    async def insert_contacts(
        cls, records: Sequence[ContactData], user_id: str, *, tags: Sequence[str] | None = None
    ) -> IngestionResult:
        """
        Insert a batch of normalized contacts for one user.

        Rows are written in chunks of INSERT_BATCH_ROWS inside one transaction,
        together with registering `tags` in the user's tag list. Any storage
        error rolls the whole batch back. No duplicate detection: the same
        person imported twice is stored twice.
        """
        if not records:
            return IngestionResult(success=True, count=0)

        row_placeholder = "(" + ", ".join(["%s"] * len(INSERT_COLUMNS)) + ")"
        rows: list[dict] = []
        try:
            async with await get_db_transaction() as conn:
                for start in range(0, len(records), INSERT_BATCH_ROWS):
                    chunk = records[start : start + INSERT_BATCH_ROWS]
                    params = tuple(
                        value for record in chunk for value in cls._row_values(record, user_id)
                    )
                    query = f"""
                        INSERT INTO contacts ({", ".join(INSERT_COLUMNS)})
                        VALUES {", ".join([row_placeholder] * len(chunk))}
                        RETURNING {CONTACT_COLUMNS}
                    """
                    rows.extend(await fetch_all(query, params, connection=conn))
                if tags:
                    await TagRepository.ensure_tags(user_id, list(tags), connection=conn)
        except (DatabaseError, psycopg.Error) as e:
            message = str(e.__cause__ or e)
            logger.error("Contact ingestion failed", user_id=user_id, attempted=len(records), error=message)
            return IngestionResult(success=False, count=0, error=f"Failed to add contacts: {message}")

        contacts = [cls._row_to_contact(row) for row in rows]
        logger.info("Contacts ingested", user_id=user_id, count=len(contacts))
        return IngestionResult(success=True, count=len(contacts), data=contacts)

    @classmethod
    async def list_contacts(cls, user_id: str, query: ContactQuery) -> list[Contact]:
        sql, params = build_contacts_query(user_id, query)
        rows = await fetch_all(sql, params)
        return [cls._row_to_contact(row) for row in rows]

    @classmethod
    async def get_contacts(cls, user_id: str, contact_ids: Sequence[str]) -> list[Contact]:
        """Contacts among `contact_ids` owned by the user, newest first."""
        if not contact_ids:
            return []
        rows = await fetch_all(
            f"""
            SELECT {CONTACT_COLUMNS} FROM contacts
            WHERE user_id = %s AND id = ANY(%s::uuid[])
            ORDER BY added_at_date DESC
            """,
            (user_id, list(contact_ids)),
        )
        return [cls._row_to_contact(row) for row in rows]

    @classmethod
    async def delete_contacts(cls, user_id: str, contact_ids: Sequence[str]) -> int:
        if not contact_ids:
            return 0
        deleted = await execute_query(
            "DELETE FROM contacts WHERE user_id = %s AND id = ANY(%s::uuid[])",
            (user_id, list(contact_ids)),
        )
        logger.info("Contacts deleted", user_id=user_id, requested=len(contact_ids), deleted=deleted)
        return deleted

    @classmethod
    async def replace_tags(cls, user_id: str, contact_ids: Sequence[str], tags: Sequence[str]) -> int:
        """
        Overwrite the tag list of every selected contact (not a merge) and
        register any new tag names, in one transaction.
        """
        if not contact_ids:
            return 0

        new_tags = clean_tags(tags)
        try:
            async with await get_db_transaction() as conn:
                cursor = await conn.execute(
                    """
                    UPDATE contacts SET tags = %s
                    WHERE user_id = %s AND id = ANY(%s::uuid[])
                    """,
                    (new_tags, user_id, list(contact_ids)),
                )
                updated = cursor.rowcount
                if new_tags:
                    await TagRepository.ensure_tags(user_id, new_tags, connection=conn)
        except psycopg.Error as e:
            logger.error("Tag replacement failed", user_id=user_id, error=str(e))
            raise DatabaseError(f"Failed to update tags: {e}", operation="replace_tags") from e

        logger.info("Contact tags replaced", user_id=user_id, contacts=updated, tags=new_tags or [])
        return updated
