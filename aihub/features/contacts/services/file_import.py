"""
Spreadsheet parsing for contact import.

CSV, .xls and .xlsx uploads are read into header-keyed rows and fed through
the field normalizer. Only the first sheet of a workbook is read and its
first row supplies the headers; empty cells become "".
"""

import csv
import io
from datetime import date, datetime
from pathlib import PurePath
from typing import Any

import xlrd
from openpyxl import load_workbook

from aihub.config import settings
from aihub.features.contacts.domain.models import ContactData, ImportPreview
from aihub.features.contacts.services.normalization import normalize_contact
from aihub.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

SUPPORTED_EXTENSIONS = {".csv": "csv", ".xls": "xls", ".xlsx": "xlsx"}
SUPPORTED_CONTENT_TYPES = {
    "text/csv": "csv",
    "application/csv": "csv",
    "application/vnd.ms-excel": "xls",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": "xlsx",
}


class FileImportError(ValueError):
    """The upload could not be read as a contacts spreadsheet."""


def detect_format(filename: str | None, content_type: str | None) -> str:
    """Extension wins; some browsers label .csv uploads as application/vnd.ms-excel."""
    suffix = PurePath(filename or "").suffix.lower()
    if suffix in SUPPORTED_EXTENSIONS:
        return SUPPORTED_EXTENSIONS[suffix]

    media_type = (content_type or "").split(";")[0].strip().lower()
    if media_type in SUPPORTED_CONTENT_TYPES:
        return SUPPORTED_CONTENT_TYPES[media_type]

    raise FileImportError("Please upload a CSV or Excel file (.csv, .xls, .xlsx)")


def _decode(content: bytes) -> str:
    try:
        return content.decode("utf-8-sig")
    except UnicodeDecodeError:
        return content.decode("latin-1")


def _cell(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def _rows_from_table(table: list[list[Any]]) -> tuple[list[str], list[dict[str, Any]]]:
    """First row is the header row; blank rows are skipped, short rows padded with ""."""
    if not table:
        return [], []

    headers = [str(_cell(value)).strip() for value in table[0]]
    rows = []
    for values in table[1:]:
        cells = [_cell(value) for value in values]
        if all(isinstance(cell, str) and not cell.strip() for cell in cells):
            continue
        cells += [""] * (len(headers) - len(cells))
        row = {}
        for header, cell in zip(headers, cells):
            if header and header not in row:
                row[header] = cell
        rows.append(row)
    return [header for header in headers if header], rows


def _read_csv(content: bytes) -> list[list[Any]]:
    return list(csv.reader(io.StringIO(_decode(content))))


def _read_xlsx(content: bytes) -> list[list[Any]]:
    workbook = load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    try:
        sheet = workbook.worksheets[0]
        return [list(row) for row in sheet.iter_rows(values_only=True)]
    finally:
        workbook.close()


def _read_xls(content: bytes) -> list[list[Any]]:
    book = xlrd.open_workbook(file_contents=content)
    sheet = book.sheet_by_index(0)
    table = []
    for index in range(sheet.nrows):
        row = []
        for cell in sheet.row(index):
            if cell.ctype == xlrd.XL_CELL_DATE:
                row.append(xlrd.xldate.xldate_as_datetime(cell.value, book.datemode))
            else:
                row.append(cell.value)
        table.append(row)
    return table


READERS = {"csv": _read_csv, "xlsx": _read_xlsx, "xls": _read_xls}


def parse_rows(
    content: bytes, filename: str | None, content_type: str | None = None
) -> tuple[list[str], list[dict[str, Any]]]:
    """
    Read an upload into (headers, rows).

    Raises:
        FileImportError: unsupported type, oversized or unreadable file
    """
    file_format = detect_format(filename, content_type)

    if len(content) > settings.IMPORT_MAX_FILE_BYTES:
        raise FileImportError(
            f"File is too large (limit {settings.IMPORT_MAX_FILE_BYTES // (1024 * 1024)} MB)"
        )

    try:
        table = READERS[file_format](content)
    except Exception as e:
        logger.warning("Spreadsheet could not be parsed", filename=filename, file_format=file_format, error=str(e))
        raise FileImportError(f"Could not read {file_format.upper()} file: {e}") from e

    headers, rows = _rows_from_table(table)
    if not headers:
        raise FileImportError("The file has no header row")
    return headers, rows


def parse_contacts(
    content: bytes, filename: str | None, content_type: str | None = None
) -> tuple[list[str], list[ContactData]]:
    headers, rows = parse_rows(content, filename, content_type)
    return headers, [normalize_contact(row) for row in rows]


def preview_import(
    content: bytes, filename: str | None, content_type: str | None = None
) -> ImportPreview:
    """Total row count plus the first few normalized rows, before anything is stored."""
    headers, contacts = parse_contacts(content, filename, content_type)
    return ImportPreview(
        total_rows=len(contacts),
        preview=contacts[: settings.IMPORT_PREVIEW_ROWS],
        headers=headers,
    )
