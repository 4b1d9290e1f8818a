"""
Request and response models for the contacts API.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from aihub.features.contacts.domain.models import Contact, ContactData, IngestionResult


class ContactResponse(BaseModel):
    id: str
    name: str | None = None
    email: str | None = None
    phone_number: str | None = None
    company_name: str | None = None
    contact_position: str | None = None
    address: str | None = None
    status: str
    tags: list[str] | None = None
    added_at_date: datetime | None = None

    @classmethod
    def from_domain(cls, contact: Contact) -> "ContactResponse":
        return cls(
            id=contact.id,
            name=contact.name,
            email=contact.email,
            phone_number=contact.phone_number,
            company_name=contact.company_name,
            contact_position=contact.contact_position,
            address=contact.address,
            status=contact.status,
            tags=contact.tags,
            added_at_date=contact.added_at_date,
        )


class ContactListResponse(BaseModel):
    contacts: list[ContactResponse]
    count: int


class ContactCreateRequest(BaseModel):
    name: str | None = Field(default=None, max_length=255)
    email: str | None = Field(default=None, max_length=255)
    phone_number: str | None = Field(default=None, max_length=64)
    company_name: str | None = Field(default=None, max_length=255)
    contact_position: str | None = Field(default=None, max_length=255)
    address: str | None = Field(default=None, max_length=500)
    status: str = Field(default="new", max_length=50)
    tags: list[str] = []

    def to_domain(self) -> ContactData:
        return ContactData(
            name=self.name,
            email=self.email,
            phone_number=self.phone_number,
            company_name=self.company_name,
            contact_position=self.contact_position,
            address=self.address,
            status=self.status or "new",
            tags=self.tags,
        )


class IngestionResponse(BaseModel):
    success: bool
    count: int
    contacts: list[ContactResponse] = []
    error: str | None = None

    @classmethod
    def from_result(cls, result: IngestionResult) -> "IngestionResponse":
        return cls(
            success=result.success,
            count=result.count,
            contacts=[ContactResponse.from_domain(contact) for contact in result.data],
            error=result.error,
        )


class ContactPreviewRow(BaseModel):
    name: str | None = None
    email: str | None = None
    phone_number: str | None = None
    company_name: str | None = None
    contact_position: str | None = None
    address: str | None = None
    status: str


class ImportPreviewResponse(BaseModel):
    total_rows: int
    headers: list[str]
    preview: list[ContactPreviewRow]


class PromoteLeadsRequest(BaseModel):
    execution_id: UUID
    row_indexes: list[int] = Field(..., min_length=1)
    tags: list[str] = []
    # Rows of this table added by earlier requests
    added_indexes: list[int] = []


class PromoteLeadsResponse(IngestionResponse):
    added_indexes: list[int] = []


class ContactSelectionRequest(BaseModel):
    contact_ids: list[UUID] = Field(..., min_length=1)

    @property
    def ids(self) -> list[str]:
        return [str(contact_id) for contact_id in self.contact_ids]


class ReplaceTagsRequest(ContactSelectionRequest):
    # Replaces, never merges; an empty list clears the selected contacts' tags
    tags: list[str] = []


class TagsResponse(BaseModel):
    tags: list[str]


class CreateTagsRequest(BaseModel):
    tags: list[str] = Field(..., min_length=1)


class TagSuggestionsResponse(BaseModel):
    suggestions: list[str]
    can_create: bool


class AffectedResponse(BaseModel):
    success: bool = True
    count: int
