from datetime import date, datetime

from aihub.features.contacts.domain.models import Contact
from aihub.features.contacts.services.csv_export import contacts_to_csv, export_filename


def _contact(**overrides):
    values = {
        "id": "c1",
        "user_id": "u1",
        "name": "Jane Doe",
        "email": "jane@x.com",
        "phone_number": None,
        "company_name": 'Acme "Labs"',
        "contact_position": "CTO",
        "address": None,
        "status": "new",
        "tags": ["vip", "b2b"],
        "added_at_date": datetime(2024, 3, 5, 14, 7, 9),
    }
    values.update(overrides)
    return Contact(**values)


def test_every_field_is_quoted_and_quotes_are_doubled():
    output = contacts_to_csv([_contact()])

    header, row = output.splitlines()
    assert header == '"Name","Email","Phone","Company","Position","Address","Status","Tags","Added Date"'
    assert row == (
        '"Jane Doe","jane@x.com","","Acme ""Labs""","CTO","","new","vip, b2b","2024-03-05 14:07:09"'
    )


def test_missing_tags_and_date_export_as_empty_strings():
    output = contacts_to_csv([_contact(tags=None, added_at_date=None)])

    assert output.splitlines()[1].endswith('"new","",""')


def test_empty_selection_exports_only_the_header():
    assert contacts_to_csv([]).count("\n") == 1


def test_filename_carries_the_export_date():
    assert export_filename(date(2024, 3, 5)) == "contacts_2024-03-05.csv"
