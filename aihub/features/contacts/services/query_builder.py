"""
Contacts listing query composition.

Builds the single SELECT behind the contacts view: owner scope, an optional
case-insensitive substring search on exactly one column, tag containment
(AND across the selected tags) and one sort key. No pagination.
"""

from aihub.features.contacts.domain.models import ContactQuery, SortField, SortOrder

CONTACT_COLUMNS = (
    "id, user_id, name, email, phone_number, company_name, "
    "contact_position, address, status, tags, added_at_date"
)

SEARCHABLE_COLUMNS = frozenset(
    {"name", "email", "phone_number", "company_name", "contact_position", "address", "status"}
)

# Field names used by the client's search picker
SEARCH_FIELD_ALIASES = {
    "phone": "phone_number",
    "company": "company_name",
    "position": "contact_position",
}

DEFAULT_SORT_ORDER = {
    SortField.ADDED_AT_DATE: SortOrder.DESC,
    SortField.NAME: SortOrder.ASC,
}


class InvalidQueryError(ValueError):
    """Raised for a search field or sort key outside the whitelist."""


def resolve_search_column(search_field: str) -> str:
    column = SEARCH_FIELD_ALIASES.get(search_field, search_field)
    if column not in SEARCHABLE_COLUMNS:
        raise InvalidQueryError(f"Cannot search contacts by '{search_field}'")
    return column


def escape_like(text: str) -> str:
    """Escape LIKE wildcards so user input matches literally."""
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def effective_sort_order(query: ContactQuery) -> SortOrder:
    if query.sort_order is not None:
        return SortOrder(query.sort_order)
    return DEFAULT_SORT_ORDER[SortField(query.sort_by)]


def build_contacts_query(user_id: str, query: ContactQuery) -> tuple[str, tuple]:
    """
    Compose the listing SELECT for one user.

    Returns:
        (sql, params) ready for fetch_all
    """
    try:
        sort_by = SortField(query.sort_by)
    except ValueError as e:
        raise InvalidQueryError(f"Cannot sort contacts by '{query.sort_by}'") from e

    conditions = ["user_id = %s"]
    params: list = [user_id]

    search = (query.search or "").strip()
    if search:
        column = resolve_search_column(query.search_field)
        conditions.append(f"{column} ILIKE %s")
        params.append(f"%{escape_like(search)}%")

    tags = [tag for tag in dict.fromkeys(query.tags or []) if tag]
    if tags:
        conditions.append("tags @> %s::text[]")
        params.append(tags)

    direction = effective_sort_order(query).value.upper()

    sql = (
        f"SELECT {CONTACT_COLUMNS} FROM contacts "
        f"WHERE {' AND '.join(conditions)} "
        f"ORDER BY {sort_by.value} {direction}"
    )
    return sql, tuple(params)
