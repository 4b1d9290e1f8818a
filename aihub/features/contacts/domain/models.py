"""
Domain models for the contacts feature.

Plain dataclasses shared by the normalizer, repositories, services and the
API layer. They carry no persistence logic.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

DEFAULT_STATUS = "new"


@dataclass(slots=True)
class ContactData:
    """Canonical contact shape before storage. Every field may be missing."""

    name: str | None = None
    email: str | None = None
    phone_number: str | None = None
    company_name: str | None = None
    contact_position: str | None = None
    address: str | None = None
    status: str = DEFAULT_STATUS
    tags: list[str] | None = None


@dataclass(slots=True)
class Contact:
    """A stored contacts row."""

    id: str
    user_id: str
    name: str | None
    email: str | None
    phone_number: str | None
    company_name: str | None
    contact_position: str | None
    address: str | None
    status: str
    tags: list[str] | None
    added_at_date: datetime | None


@dataclass(slots=True)
class IngestionResult:
    success: bool
    count: int = 0
    data: list[Contact] = field(default_factory=list)
    error: str | None = None


class SortField(StrEnum):
    ADDED_AT_DATE = "added_at_date"
    NAME = "name"


class SortOrder(StrEnum):
    ASC = "asc"
    DESC = "desc"


@dataclass(slots=True)
class ContactQuery:
    """Listing parameters: single-field search, tag containment and one sort key."""

    search: str = ""
    search_field: str = "name"
    tags: list[str] = field(default_factory=list)
    sort_by: SortField = SortField.ADDED_AT_DATE
    # None picks the field's natural direction (newest first, A-Z)
    sort_order: SortOrder | None = None


class OutputShape(StrEnum):
    """How a tool's output is rendered."""

    TEXT = "text"
    OBJECT = "object"
    LEAD_ARRAY = "lead_array"
    EMPTY = "empty"


@dataclass(slots=True)
class LeadArrayMatch:
    found: bool
    leads: list[dict[str, Any]] = field(default_factory=list)
    # Name of the detection strategy that matched, e.g. "top_level" or "leads"
    source: str | None = None


@dataclass(slots=True)
class TagSuggestions:
    suggestions: list[str]
    can_create: bool


@dataclass(slots=True)
class ImportPreview:
    total_rows: int
    preview: list[ContactData]
    headers: list[str]
