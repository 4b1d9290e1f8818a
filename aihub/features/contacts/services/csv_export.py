"""
CSV export of selected contacts.
"""

import csv
import io
from collections.abc import Sequence
from datetime import date, datetime

from aihub.features.contacts.domain.models import Contact

EXPORT_COLUMNS = (
    ("Name", "name"),
    ("Email", "email"),
    ("Phone", "phone_number"),
    ("Company", "company_name"),
    ("Position", "contact_position"),
    ("Address", "address"),
    ("Status", "status"),
    ("Tags", "tags"),
    ("Added Date", "added_at_date"),
)

EXPORT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _value(contact: Contact, attribute: str) -> str:
    value = getattr(contact, attribute)
    if value is None:
        return ""
    if attribute == "tags":
        return ", ".join(value)
    if isinstance(value, datetime):
        return value.strftime(EXPORT_DATE_FORMAT)
    return str(value)


def export_filename(today: date | None = None) -> str:
    return f"contacts_{(today or date.today()).isoformat()}.csv"


def contacts_to_csv(contacts: Sequence[Contact]) -> str:
    """Every field is double-quoted; embedded quotes are doubled."""
    output = io.StringIO()
    writer = csv.writer(output, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow([header for header, _ in EXPORT_COLUMNS])
    for contact in contacts:
        writer.writerow([_value(contact, attribute) for _, attribute in EXPORT_COLUMNS])
    return output.getvalue()
