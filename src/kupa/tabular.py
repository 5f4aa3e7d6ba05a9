"""Raw statement bytes to 2D grids of text cells.

Every cell comes out as a string: empty cells are ``""``, numbers keep their
plain textual form (``45000``, ``11.68``), and date-formatted cells are
turned back into their Excel serial so downstream date normalization treats
them exactly like the raw numeric serials most bank exports contain.
"""

import csv
import io
import zipfile
from datetime import date, datetime, time

from openpyxl import load_workbook
from openpyxl.utils.datetime import to_excel
from openpyxl.utils.exceptions import InvalidFileException

from kupa.errors import StatementReadError
from kupa.models import Sheet


def cell_to_text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return str(int(value)) if value.is_integer() else repr(value)
    if isinstance(value, (datetime, date)):
        return str(int(to_excel(value)))
    if isinstance(value, time):
        return value.isoformat()
    return str(value)


def _is_blank(row: list[str]) -> bool:
    return all(not c.strip() for c in row)


def read_xlsx(data: bytes, file_name: str = "") -> list[Sheet]:
    """Read every worksheet of an XLSX workbook into a dense grid.

    Blank rows are kept so row positions match the sheet's own numbering.
    """
    # Corrupt part XML surfaces as a SyntaxError subclass (ElementTree or lxml ParseError).
    try:
        wb = load_workbook(io.BytesIO(data), data_only=True)
        sheets = [
            Sheet(name=ws.title, rows=[[cell_to_text(v) for v in values] for values in ws.iter_rows(values_only=True)])
            for ws in wb.worksheets
        ]
    except (zipfile.BadZipFile, InvalidFileException, KeyError, OSError,
            SyntaxError, ValueError, TypeError) as exc:
        raise StatementReadError(file_name or "<bytes>", str(exc)) from exc
    wb.close()
    return sheets


def read_csv_rows(text: str) -> list[list[str]]:
    """Split CSV text into rows. Quoted fields may hold commas, newlines and ``""``."""
    text = text.lstrip("\ufeff").replace("\r\n", "\n").replace("\r", "\n")
    reader = csv.reader(io.StringIO(text, newline=""))
    return [row for row in reader if not _is_blank(row)]


def decode_text(data: bytes) -> str:
    """Decode CSV bytes; Israeli bank exports are UTF-8 or Windows-1255."""
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError:
        return data.decode("cp1255", errors="replace")
