"""
Contact field normalization.

Lead-generation tools and spreadsheets name the same fields differently
(`full_name` vs `name`, `headline` vs `position`, a nested `contact_info`
block, ...). `normalize_contact` maps one such record onto `ContactData`
using a fixed, first-match-wins priority list per canonical field.

Key lookup ignores case, spaces, underscores and hyphens so spreadsheet
headers like "Full Name" or "Phone Number" resolve the same way as JSON
keys. Source tags are never imported.
"""

import re
from collections.abc import Callable, Mapping
from typing import Any

from aihub.features.contacts.domain.models import DEFAULT_STATUS, ContactData

_KEY_NOISE = re.compile(r"[\s_\-]+")

# Wrapper keys tool providers use around a list of leads.
ENVELOPE_KEYS = ("leads", "data")


def fold_key(name: str) -> str:
    return _KEY_NOISE.sub("", name).lower()


def _index(record: Mapping[str, Any]) -> dict[str, Any]:
    """Lookup table keyed by folded key; the first spelling of a key wins."""
    folded: dict[str, Any] = {}
    for key, value in record.items():
        if isinstance(key, str):
            folded.setdefault(fold_key(key), value)
    return folded


def _text(value: Any) -> str | None:
    """Scalar to trimmed string; blanks, booleans and containers count as absent."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, float) and value.is_integer():
        # Spreadsheet readers hand back phone numbers and zip codes as floats
        value = int(value)
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        return value.strip() or None
    return None


def _field(name: str) -> Callable[[dict[str, Any]], str | None]:
    def resolve(record: dict[str, Any]) -> str | None:
        return _text(record.get(fold_key(name)))

    return resolve


def _nested(parent: str, child: str) -> Callable[[dict[str, Any]], str | None]:
    def resolve(record: dict[str, Any]) -> str | None:
        block = record.get(fold_key(parent))
        if not isinstance(block, Mapping):
            return None
        return _text(_index(block).get(fold_key(child)))

    return resolve


def _joined(first: str, last: str) -> Callable[[dict[str, Any]], str | None]:
    def resolve(record: dict[str, Any]) -> str | None:
        first_value = _text(record.get(fold_key(first)))
        last_value = _text(record.get(fold_key(last)))
        if first_value and last_value:
            return f"{first_value} {last_value}"
        return None

    return resolve


# Canonical field -> ordered candidates. Shared by the ingestion adapter and
# the file importer so every entry point resolves fields identically.
FIELD_PRIORITIES: dict[str, tuple[Callable[[dict[str, Any]], str | None], ...]] = {
    "name": (_field("name"), _field("full_name"), _joined("firstName", "lastName")),
    "email": (_field("email"), _nested("contact_info", "email")),
    "phone_number": (_field("phone"), _field("phone_number"), _nested("contact_info", "phone")),
    "company_name": (_field("company"), _field("company_name")),
    "contact_position": (
        _field("position"),
        _field("contact_position"),
        _field("headline"),
        _field("title"),
    ),
    "address": (_field("address"), _field("location")),
    "status": (_field("status"),),
}


def _resolve(record: dict[str, Any], canonical: str) -> str | None:
    for candidate in FIELD_PRIORITIES[canonical]:
        value = candidate(record)
        if value is not None:
            return value
    return None


def normalize_contact(record: Mapping[str, Any]) -> ContactData:
    """
    Map one loosely-shaped record onto ContactData.

    Never raises for mapping input. A record without name and email still
    normalizes; deciding whether that is acceptable is up to the caller.
    """
    folded = _index(record)
    return ContactData(
        name=_resolve(folded, "name"),
        email=_resolve(folded, "email"),
        phone_number=_resolve(folded, "phone_number"),
        company_name=_resolve(folded, "company_name"),
        contact_position=_resolve(folded, "contact_position"),
        address=_resolve(folded, "address"),
        status=_resolve(folded, "status") or DEFAULT_STATUS,
        tags=None,
    )


def normalize_contact_data(payload: Any) -> list[ContactData]:
    """
    Normalize a whole payload: a list of records, a `leads`/`data` envelope
    or a single record. Non-mapping list elements are skipped.
    """
    if payload is None:
        return []

    if isinstance(payload, Mapping):
        for envelope in ENVELOPE_KEYS:
            if isinstance(payload.get(envelope), list):
                return normalize_contact_data(payload[envelope])
        return [normalize_contact(payload)]

    if isinstance(payload, list):
        return [normalize_contact(item) for item in payload if isinstance(item, Mapping)]

    return []
