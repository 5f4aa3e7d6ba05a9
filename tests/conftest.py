import csv
import io

import pytest
from openpyxl import Workbook

from kupa.directory import MemoryDirectory

CREDIT_ROWS = [
    ["פירוט עסקאות לכרטיס המסתיים ב-1234"],
    ["עסקאות לחיוב ב-10/03/2024"],
    ["תאריך עסקה", "שם בית העסק", "סכום עסקה", "סכום חיוב", "ענף"],
    ["01/02/24", "שופרסל", "250.00", "250.00", "מזון"],
    ["05/02/24", "פז", "200.00", "200.00", "רכב"],
    ["12/02/24", "זארה", "-50.00", "-50.00", "ביגוד"],
]

BANK_ROWS = [
    ["תאריך", "תיאור פעולה", "חובה", "זכות", "יתרה"],
    ["01/03/24", "משכורת", "", "10,000.00", "15,000.00"],
    ["05/03/24", "חשמל", "300.00", "", "14,700.00"],
    ["11/03/24", "מקס איט פיננסים", "400.00", "", "14,300.00"],
]


def make_xlsx(sheets: dict[str, list[list]]) -> bytes:
    """Build an XLSX workbook in memory, one worksheet per entry."""
    wb = Workbook()
    for i, (name, rows) in enumerate(sheets.items()):
        ws = wb.active if i == 0 else wb.create_sheet()
        ws.title = name
        for row in rows:
            ws.append(row)
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


def to_csv(rows: list[list[str]]) -> str:
    buf = io.StringIO()
    csv.writer(buf).writerows(rows)
    return buf.getvalue()


@pytest.fixture
def credit_rows():
    return [list(r) for r in CREDIT_ROWS]


@pytest.fixture
def bank_rows():
    return [list(r) for r in BANK_ROWS]


@pytest.fixture
def statement_dir():
    """A credit workbook plus the bank statement that pays it."""
    return MemoryDirectory({
        "credit.xlsx": make_xlsx({"פירוט עסקאות": CREDIT_ROWS}),
        "bank.csv": to_csv(BANK_ROWS),
    })


@pytest.fixture
def xlsx():
    """Callable building workbook bytes from {sheet name: rows}."""
    return make_xlsx


@pytest.fixture
def csv_text():
    return to_csv
