"""
Contacts and tags routes.

Thin HTTP layer: parses requests, calls the contact service, converts
domain results to response models and maps domain errors to status codes.
"""

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Response, UploadFile, status

from aihub.auth.verify import get_current_user
from aihub.config import settings
from aihub.db.helpers import DatabaseError
from aihub.features.contacts.api.schemas import (
    AffectedResponse,
    ContactCreateRequest,
    ContactListResponse,
    ContactPreviewRow,
    ContactResponse,
    ContactSelectionRequest,
    CreateTagsRequest,
    ImportPreviewResponse,
    IngestionResponse,
    PromoteLeadsRequest,
    PromoteLeadsResponse,
    ReplaceTagsRequest,
    TagSuggestionsResponse,
    TagsResponse,
)
from aihub.features.contacts.domain.models import ContactQuery, IngestionResult, SortField, SortOrder
from aihub.features.contacts.services import contact_service
from aihub.features.contacts.services.contact_service import ContactValidationError
from aihub.features.contacts.services.file_import import FileImportError
from aihub.features.contacts.services.query_builder import InvalidQueryError
from aihub.infrastructure.observability.logging import get_logger
from aihub.middleware.rate_limit_dependencies import rate_limit_user
from aihub.models.domain.user_domain import CurrentUser
from aihub.services.tool_execution_service import ExecutionNotFoundError

router = APIRouter(tags=["contacts"])
logger = get_logger(__name__)


def _storage_failure(operation: str, error: Exception) -> HTTPException:
    logger.error("Contacts storage operation failed", operation=operation, error=str(error))
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Failed to {operation}. Please try again.",
    )


def _ingestion_response(result: IngestionResult) -> IngestionResponse:
    if not result.success:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"processed": 0, "error": result.error},
        )
    return IngestionResponse.from_result(result)


async def _read_upload(file: UploadFile) -> bytes:
    content = await file.read(settings.IMPORT_MAX_FILE_BYTES + 1)
    if len(content) > settings.IMPORT_MAX_FILE_BYTES:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail={"processed": 0, "error": "File is too large"},
        )
    return content


@router.get("/contacts", response_model=ContactListResponse)
async def list_contacts(
    search: str = Query(default="", max_length=200),
    search_field: str = Query(default="name"),
    tags: list[str] = Query(default=[]),
    sort_by: SortField = Query(default=SortField.ADDED_AT_DATE),
    sort_order: SortOrder | None = Query(default=None),
    user: CurrentUser = Depends(get_current_user),
    _rate: None = Depends(rate_limit_user),
):
    """
    List the caller's contacts.

    Search is a case-insensitive substring match on the one `search_field`;
    `tags` must all be present on a contact. `sort_order` defaults to newest
    first for `added_at_date` and A-Z for `name`.
    """
    query = ContactQuery(
        search=search, search_field=search_field, tags=tags, sort_by=sort_by, sort_order=sort_order
    )
    try:
        contacts = await contact_service.list_contacts(user.id, query)
    except InvalidQueryError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e
    except DatabaseError as e:
        raise _storage_failure("load contacts", e) from e

    return ContactListResponse(
        contacts=[ContactResponse.from_domain(contact) for contact in contacts], count=len(contacts)
    )


@router.post("/contacts", response_model=IngestionResponse, status_code=status.HTTP_201_CREATED)
async def create_contact(
    body: ContactCreateRequest,
    user: CurrentUser = Depends(get_current_user),
    _rate: None = Depends(rate_limit_user),
):
    try:
        result = await contact_service.create_contact(user.id, body.to_domain())
    except ContactValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    except DatabaseError as e:
        raise _storage_failure("add contact", e) from e
    return _ingestion_response(result)


@router.post("/contacts/import/preview", response_model=ImportPreviewResponse)
async def preview_import(
    file: UploadFile = File(...),
    user: CurrentUser = Depends(get_current_user),
    _rate: None = Depends(rate_limit_user),
):
    """Parse an upload and show what would be imported, without storing anything."""
    content = await _read_upload(file)
    try:
        preview = contact_service.preview_file(content, file.filename, file.content_type)
    except FileImportError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail={"processed": 0, "error": str(e)}
        ) from e

    return ImportPreviewResponse(
        total_rows=preview.total_rows,
        headers=preview.headers,
        preview=[
            ContactPreviewRow(
                name=row.name,
                email=row.email,
                phone_number=row.phone_number,
                company_name=row.company_name,
                contact_position=row.contact_position,
                address=row.address,
                status=row.status,
            )
            for row in preview.preview
        ],
    )


@router.post("/contacts/import", response_model=IngestionResponse, status_code=status.HTTP_201_CREATED)
async def import_contacts(
    file: UploadFile = File(...),
    tags: list[str] = Form(default=[]),
    user: CurrentUser = Depends(get_current_user),
    _rate: None = Depends(rate_limit_user),
):
    content = await _read_upload(file)
    try:
        result = await contact_service.import_file(
            user.id, content, file.filename, file.content_type, tags
        )
    except (FileImportError, ContactValidationError) as e:
        logger.warning("Contact import rejected", user_id=user.id, filename=file.filename, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail={"processed": 0, "error": str(e)}
        ) from e
    except DatabaseError as e:
        raise _storage_failure("import contacts", e) from e
    return _ingestion_response(result)


@router.post(
    "/contacts/from-execution",
    response_model=PromoteLeadsResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_leads_from_execution(
    body: PromoteLeadsRequest,
    user: CurrentUser = Depends(get_current_user),
    _rate: None = Depends(rate_limit_user),
):
    """Add selected rows of a tool's lead table to contacts, tagged with `tags`."""
    try:
        promotion = await contact_service.promote_leads(
            user.id, str(body.execution_id), body.row_indexes, body.tags, body.added_indexes
        )
    except ExecutionNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except ContactValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    except DatabaseError as e:
        raise _storage_failure("add contacts", e) from e

    response = _ingestion_response(promotion.ingestion)
    return PromoteLeadsResponse(**response.model_dump(), added_indexes=promotion.added_indexes)


@router.put("/contacts/tags", response_model=AffectedResponse)
async def replace_contact_tags(
    body: ReplaceTagsRequest,
    user: CurrentUser = Depends(get_current_user),
    _rate: None = Depends(rate_limit_user),
):
    try:
        updated = await contact_service.replace_tags(user.id, body.ids, body.tags)
    except ContactValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    except DatabaseError as e:
        raise _storage_failure("update tags", e) from e
    return AffectedResponse(count=updated)


@router.post("/contacts/tags/common", response_model=TagsResponse)
async def common_contact_tags(
    body: ContactSelectionRequest,
    user: CurrentUser = Depends(get_current_user),
    _rate: None = Depends(rate_limit_user),
):
    try:
        tags = await contact_service.shared_tags(user.id, body.ids)
    except DatabaseError as e:
        raise _storage_failure("load tags", e) from e
    return TagsResponse(tags=tags)


@router.post("/contacts/delete", response_model=AffectedResponse)
async def delete_contacts(
    body: ContactSelectionRequest,
    user: CurrentUser = Depends(get_current_user),
    _rate: None = Depends(rate_limit_user),
):
    try:
        deleted = await contact_service.delete_contacts(user.id, body.ids)
    except ContactValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    except DatabaseError as e:
        raise _storage_failure("delete contacts", e) from e
    return AffectedResponse(count=deleted)


@router.post("/contacts/export")
async def export_contacts(
    body: ContactSelectionRequest,
    user: CurrentUser = Depends(get_current_user),
    _rate: None = Depends(rate_limit_user),
):
    """CSV download of the selected contacts."""
    try:
        filename, content = await contact_service.export_contacts(user.id, body.ids)
    except DatabaseError as e:
        raise _storage_failure("export contacts", e) from e
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/tags", response_model=TagsResponse, tags=["tags"])
async def list_tags(
    user: CurrentUser = Depends(get_current_user),
    _rate: None = Depends(rate_limit_user),
):
    try:
        return TagsResponse(tags=await contact_service.list_tags(user.id))
    except DatabaseError as e:
        raise _storage_failure("load tags", e) from e


@router.post("/tags", response_model=TagsResponse, status_code=status.HTTP_201_CREATED, tags=["tags"])
async def create_tags(
    body: CreateTagsRequest,
    user: CurrentUser = Depends(get_current_user),
    _rate: None = Depends(rate_limit_user),
):
    """Register tag names; names the user already has are left alone."""
    try:
        created = await contact_service.create_tags(user.id, body.tags)
    except DatabaseError as e:
        raise _storage_failure("create tags", e) from e
    return TagsResponse(tags=created)


@router.get("/tags/suggest", response_model=TagSuggestionsResponse, tags=["tags"])
async def suggest_tags(
    q: str = Query(default="", max_length=100),
    selected: list[str] = Query(default=[]),
    user: CurrentUser = Depends(get_current_user),
    _rate: None = Depends(rate_limit_user),
):
    try:
        suggestions = await contact_service.suggest_user_tags(user.id, q, selected)
    except DatabaseError as e:
        raise _storage_failure("load tags", e) from e
    return TagSuggestionsResponse(
        suggestions=suggestions.suggestions, can_create=suggestions.can_create
    )
