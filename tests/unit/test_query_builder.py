import pytest

from aihub.features.contacts.domain.models import ContactQuery, SortField, SortOrder
from aihub.features.contacts.services.query_builder import (
    InvalidQueryError,
    build_contacts_query,
    escape_like,
)


def test_default_query_is_scoped_and_newest_first():
    sql, params = build_contacts_query("user-1", ContactQuery())

    assert "WHERE user_id = %s ORDER BY added_at_date DESC" in sql
    assert params == ("user-1",)


def test_search_targets_exactly_one_column():
    sql, params = build_contacts_query(
        "user-1", ContactQuery(search=" acme ", search_field="company_name")
    )

    assert "company_name ILIKE %s" in sql
    assert "name ILIKE" not in sql.replace("company_name ILIKE", "")
    assert params == ("user-1", "%acme%")


def test_search_field_aliases_resolve_to_columns():
    sql, _ = build_contacts_query("user-1", ContactQuery(search="555", search_field="phone"))

    assert "phone_number ILIKE %s" in sql


def test_blank_search_adds_no_predicate():
    sql, params = build_contacts_query("user-1", ContactQuery(search="   ", search_field="email"))

    assert "ILIKE" not in sql
    assert params == ("user-1",)


def test_unknown_search_field_is_rejected():
    with pytest.raises(InvalidQueryError):
        build_contacts_query("user-1", ContactQuery(search="x", search_field="user_id"))


def test_like_wildcards_in_search_are_escaped():
    assert escape_like("50%_off\\") == "50\\%\\_off\\\\"

    _, params = build_contacts_query("user-1", ContactQuery(search="100%", search_field="name"))

    assert params[1] == "%100\\%%"


def test_tag_filter_uses_containment_with_all_tags():
    sql, params = build_contacts_query("user-1", ContactQuery(tags=["vip", "urgent", "vip"]))

    assert "tags @> %s::text[]" in sql
    assert params == ("user-1", ["vip", "urgent"])


def test_empty_tag_filter_adds_no_predicate():
    sql, _ = build_contacts_query("user-1", ContactQuery(tags=[]))

    assert "@>" not in sql


@pytest.mark.parametrize(
    ("sort_by", "sort_order", "expected"),
    [
        (SortField.ADDED_AT_DATE, None, "ORDER BY added_at_date DESC"),
        (SortField.NAME, None, "ORDER BY name ASC"),
        (SortField.NAME, SortOrder.DESC, "ORDER BY name DESC"),
        (SortField.ADDED_AT_DATE, SortOrder.ASC, "ORDER BY added_at_date ASC"),
    ],
)
def test_sort_direction_defaults_per_field(sort_by, sort_order, expected):
    sql, _ = build_contacts_query("user-1", ContactQuery(sort_by=sort_by, sort_order=sort_order))

    assert sql.endswith(expected)


def test_unknown_sort_field_is_rejected():
    with pytest.raises(InvalidQueryError):
        build_contacts_query("user-1", ContactQuery(sort_by="email"))
