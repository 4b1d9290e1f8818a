"""
Tests for mapping heterogeneous lead records onto the canonical contact shape.
"""

from aihub.features.contacts.domain.models import ContactData
from aihub.features.contacts.services.normalization import (
    normalize_contact,
    normalize_contact_data,
)


def test_name_falls_back_through_full_name_then_first_and_last():
    assert normalize_contact({"name": "Ada", "full_name": "Ada Lovelace"}).name == "Ada"
    assert normalize_contact({"full_name": "Ada Lovelace"}).name == "Ada Lovelace"
    assert normalize_contact({"firstName": "Ada", "lastName": "Lovelace"}).name == "Ada Lovelace"


def test_missing_name_sources_give_none_not_undefined_text():
    assert normalize_contact({"email": "a@b.com"}).name is None
    assert normalize_contact({"firstName": "Ada"}).name is None
    assert normalize_contact({"lastName": "Lovelace"}).name is None


def test_nested_contact_info_supplies_phone_and_email():
    contact = normalize_contact({"contact_info": {"phone": "555", "email": "x@y.com"}})

    assert contact.phone_number == "555"
    assert contact.email == "x@y.com"


def test_top_level_phone_wins_over_contact_info():
    contact = normalize_contact({"phone_number": "111", "contact_info": {"phone": "555"}})

    assert contact.phone_number == "111"


def test_malformed_contact_info_is_ignored():
    contact = normalize_contact({"contact_info": "call me maybe", "name": "Bob"})

    assert contact.phone_number is None
    assert contact.email is None
    assert contact.name == "Bob"


def test_tags_from_source_are_always_discarded():
    for tags in (["vip"], "vip", None, {"a": 1}, []):
        assert normalize_contact({"name": "A", "tags": tags}).tags is None


def test_position_priority_and_location_alias():
    contact = normalize_contact(
        {"headline": "CTO at Acme", "title": "Engineer", "location": "Berlin", "company": "Acme"}
    )

    assert contact.contact_position == "CTO at Acme"
    assert contact.address == "Berlin"
    assert contact.company_name == "Acme"


def test_status_defaults_to_new():
    assert normalize_contact({}).status == "new"
    assert normalize_contact({"status": "  "}).status == "new"
    assert normalize_contact({"status": "qualified"}).status == "qualified"


def test_spreadsheet_headers_match_regardless_of_case_and_spacing():
    contact = normalize_contact(
        {"Name": "Jane Doe", "Email": "jane@x.com", "Phone Number": "123", "Company-Name": "X"}
    )

    assert contact == ContactData(
        name="Jane Doe", email="jane@x.com", phone_number="123", company_name="X", status="new"
    )


def test_blank_values_count_as_absent():
    contact = normalize_contact({"name": "   ", "full_name": "Real Name", "email": ""})

    assert contact.name == "Real Name"
    assert contact.email is None


def test_numbers_are_rendered_as_text():
    contact = normalize_contact({"phone": 5551234.0, "address": 10115})

    assert contact.phone_number == "5551234"
    assert contact.address == "10115"


def test_non_scalar_values_count_as_absent():
    contact = normalize_contact({"name": ["A"], "full_name": "B", "email": True})

    assert contact.name == "B"
    assert contact.email is None


def test_record_without_name_or_email_still_normalizes():
    contact = normalize_contact({"company": "Acme"})

    assert contact.name is None
    assert contact.email is None
    assert contact.company_name == "Acme"


def test_normalize_contact_data_accepts_envelopes_lists_and_single_records():
    assert normalize_contact_data(None) == []
    assert [c.name for c in normalize_contact_data([{"name": "A"}, "junk", {"name": "B"}])] == ["A", "B"]
    assert [c.email for c in normalize_contact_data({"leads": [{"email": "a@b.com"}]})] == ["a@b.com"]
    assert [c.name for c in normalize_contact_data({"data": [{"full_name": "C"}]})] == ["C"]
    assert [c.name for c in normalize_contact_data({"name": "Solo"})] == ["Solo"]
