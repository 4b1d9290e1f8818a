"""
Contact management use cases.

Creation (manual, file import, promotion from tool output), listing, bulk
tagging, deletion and export. Every call is scoped to the acting user.
"""

from collections.abc import Sequence
from dataclasses import dataclass, field, replace
from datetime import date

from aihub.features.contacts.domain.models import (
    Contact,
    ContactData,
    ContactQuery,
    ImportPreview,
    IngestionResult,
    TagSuggestions,
)
from aihub.features.contacts.repository.contact_repository import ContactRepository, clean_tags
from aihub.features.contacts.repository.tag_repository import TagRepository
from aihub.features.contacts.services.csv_export import contacts_to_csv, export_filename
from aihub.features.contacts.services.file_import import parse_contacts, preview_import
from aihub.features.contacts.services.lead_detection import detect_lead_array
from aihub.features.contacts.services.lead_selection import LeadSelection
from aihub.features.contacts.services.normalization import normalize_contact
from aihub.features.contacts.services.tagging import common_tags, suggest_tags
from aihub.infrastructure.observability.logging import get_logger
from aihub.services.tool_execution_service import get_execution

logger = get_logger(__name__)


class ContactValidationError(ValueError):
    """Request rejected before anything was written."""


@dataclass(slots=True)
class PromotionResult:
    ingestion: IngestionResult
    added_indexes: list[int] = field(default_factory=list)


def _with_tags(records: Sequence[ContactData], tags: Sequence[str] | None) -> list[ContactData]:
    cleaned = clean_tags(tags)
    return [replace(record, tags=list(cleaned) if cleaned else None) for record in records]


async def _ingest(user_id: str, records: list[ContactData], tags: Sequence[str] | None) -> IngestionResult:
    """Contacts and any new tag names are written in one transaction."""
    return await ContactRepository.insert_contacts(records, user_id, tags=clean_tags(tags))


async def list_contacts(user_id: str, query: ContactQuery) -> list[Contact]:
    return await ContactRepository.list_contacts(user_id, query)


async def create_contact(user_id: str, contact: ContactData) -> IngestionResult:
    """Manual entry: a name or an email is required."""
    if not (contact.name or "").strip() and not (contact.email or "").strip():
        raise ContactValidationError("Please provide at least a name or email")

    record = replace(
        contact,
        **{
            attr: (getattr(contact, attr) or "").strip() or None
            for attr in ("name", "email", "phone_number", "company_name", "contact_position", "address")
        },
    )
    return await _ingest(user_id, _with_tags([record], contact.tags), contact.tags)


def preview_file(content: bytes, filename: str | None, content_type: str | None) -> ImportPreview:
    return preview_import(content, filename, content_type)


async def import_file(
    user_id: str,
    content: bytes,
    filename: str | None,
    content_type: str | None,
    tags: Sequence[str] | None = None,
) -> IngestionResult:
    """
    Parse, normalize and ingest a spreadsheet upload with optional initial tags.

    Raises:
        FileImportError: the upload could not be parsed
    """
    _, records = parse_contacts(content, filename, content_type)
    if not records:
        raise ContactValidationError("No contacts found in file")

    result = await _ingest(user_id, _with_tags(records, tags), tags)
    logger.info(
        "Contact file imported",
        user_id=user_id,
        filename=filename,
        rows=len(records),
        inserted=result.count,
        success=result.success,
    )
    return result


async def promote_leads(
    user_id: str,
    execution_id: str,
    row_indexes: Sequence[int],
    tags: Sequence[str] | None = None,
    added_indexes: Sequence[int] = (),
) -> PromotionResult:
    """
    Add selected rows of an execution's lead table as contacts.

    `added_indexes` are the rows of this table already added by earlier calls;
    they cannot be selected again. The result carries the updated set.

    Raises:
        ExecutionNotFoundError: unknown execution for this user
        ContactValidationError: output holds no lead list, or a row is out of
            range or already added
    """
    execution = await get_execution(user_id, execution_id)
    match = detect_lead_array(execution.output_data)
    if not match.found:
        raise ContactValidationError("Execution output does not contain a list of leads")

    selection = LeadSelection(row_count=len(match.leads))
    selection.mark_added(added_indexes)
    indexes = list(dict.fromkeys(row_indexes))
    if not indexes:
        raise ContactValidationError("Select at least one lead")
    out_of_range = [index for index in indexes if not 0 <= index < selection.row_count]
    if out_of_range:
        raise ContactValidationError(f"Lead rows out of range: {out_of_range}")
    already_added = [index for index in indexes if not selection.toggle(index)]
    if already_added:
        raise ContactValidationError(f"Lead rows already added: {already_added}")

    selected = selection.selected_rows()
    records = [normalize_contact(match.leads[index]) for index in selected]
    result = await _ingest(user_id, _with_tags(records, tags), tags)
    if result.success:
        selection.mark_added(selected)

    logger.info(
        "Leads promoted to contacts",
        user_id=user_id,
        execution_id=execution_id,
        source=match.source,
        selected=len(selected),
        inserted=result.count,
    )
    return PromotionResult(ingestion=result, added_indexes=sorted(selection.added))


async def list_tags(user_id: str) -> list[str]:
    return await TagRepository.list_user_tags(user_id)


async def create_tags(user_id: str, tags: Sequence[str]) -> list[str]:
    return await TagRepository.ensure_tags(user_id, tags)


async def suggest_user_tags(user_id: str, text: str, selected: Sequence[str] = ()) -> TagSuggestions:
    return suggest_tags(await TagRepository.list_user_tags(user_id), text, selected)


async def shared_tags(user_id: str, contact_ids: Sequence[str]) -> list[str]:
    """Tags every selected contact already has, to pre-fill the bulk editor."""
    return common_tags(await ContactRepository.get_contacts(user_id, contact_ids))


async def replace_tags(user_id: str, contact_ids: Sequence[str], tags: Sequence[str]) -> int:
    if not contact_ids:
        raise ContactValidationError("Select at least one contact")
    return await ContactRepository.replace_tags(user_id, contact_ids, tags)


async def delete_contacts(user_id: str, contact_ids: Sequence[str]) -> int:
    if not contact_ids:
        raise ContactValidationError("Select at least one contact")
    return await ContactRepository.delete_contacts(user_id, contact_ids)


async def export_contacts(
    user_id: str, contact_ids: Sequence[str], today: date | None = None
) -> tuple[str, str]:
    """
    Returns:
        (filename, csv text) for the selected contacts the user owns
    """
    if not contact_ids:
        raise ContactValidationError("Select at least one contact to export")
    contacts = await ContactRepository.get_contacts(user_id, contact_ids)
    logger.info("Contacts exported", user_id=user_id, requested=len(contact_ids), exported=len(contacts))
    return export_filename(today), contacts_to_csv(contacts)
