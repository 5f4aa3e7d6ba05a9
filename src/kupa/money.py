import re
from datetime import date, timedelta

from kupa.models import Transaction

EXCEL_EPOCH = date(1899, 12, 30)  # accounts for the 1900 leap year bug

_SERIAL_RE = re.compile(r"^\d{1,5}$")
_FLOAT_PREFIX_RE = re.compile(r"^[-+]?(?:\d+\.?\d*|\.\d+)")


def _float_prefix(s: str) -> float | None:
    """Parse the longest leading decimal number, ignoring trailing junk."""
    m = _FLOAT_PREFIX_RE.match(s)
    if m is None:
        return None
    return float(m.group(0))


def parse_credit_amount(raw: str) -> float | None:
    """Signed amount from a credit statement cell, or None if there is none.

    The comma is taken as the decimal separator here, so ``1,234`` reads as
    1.234; there is no locale information to tell it apart from 1234.
    """
    s = raw.replace("₪", "").strip()
    s = re.sub(r"[^\d.,-]", "", s).replace(",", ".", 1)
    return _float_prefix(s)


def parse_bank_number(raw) -> float:
    """Signed number from a bank statement cell; 0 when nothing parses.

    With both a comma and a period present the comma is a thousands
    separator (``2,989.38``); a lone comma is a decimal point (``50,00``).
    """
    if raw is None:
        return 0.0
    s = re.sub(r"\s+", "", str(raw).strip())
    s = s.replace("₪", "").replace("\u200f", "")
    has_comma = "," in s
    has_dot = "." in s
    if has_comma and has_dot:
        s = s.replace(",", "")
    elif has_comma:
        s = s.replace(",", ".")
    s = re.sub(r"[^0-9.\-]", "", s)
    value = _float_prefix(s)
    return 0.0 if value is None else value


def excel_serial_to_date(serial: int, pad: bool = False) -> str:
    """Convert an Excel serial day number to ``D/M/YY`` (``DD/MM/YY`` if padded)."""
    d = EXCEL_EPOCH + timedelta(days=int(serial))
    yy = str(d.year)[-2:]
    if pad:
        return f"{d.day:02d}/{d.month:02d}/{yy}"
    return f"{d.day}/{d.month}/{yy}"


def normalize_date(raw, pad: bool = False) -> str:
    s = str(raw if raw is not None else "").strip()
    if not s:
        return ""
    if _SERIAL_RE.match(s):
        return excel_serial_to_date(int(s), pad=pad)
    return s.replace(".", "/").replace("-", "/")


def parse_dmy(value: str | None) -> date | None:
    """Parse ``D/M/YY`` or ``D/M/YYYY``; two-digit years are 20YY."""
    if not value:
        return None
    parts = value.split("/")
    if len(parts) < 3:
        return None
    try:
        day, month, year = int(parts[0]), int(parts[1]), int(parts[2].strip()[:4])
        if year < 100:
            year += 2000
        return date(year, month, day)
    except ValueError:
        return None


def js_number(value: float) -> str:
    """Render a float the way a browser would print it (``100``, ``11.68``)."""
    if value == 0:
        return "0"
    if value.is_integer() and abs(value) < 1e21:
        return str(int(value))
    return repr(value)


def signed_amount(t: Transaction) -> float:
    return t.amount if t.direction == "income" else -t.amount


def should_skip(t: Transaction) -> bool:
    """True when a row must be left out of totals to avoid double counting."""
    if t.transaction_type == "credit_charge":
        # A bill payment without an itemized breakdown is the only record of the spending.
        return bool(t.related_transaction_ids)
    if t.transaction_type == "credit_charge_combined":
        return True
    return t.neutral


def net_total(details: list[Transaction]) -> float:
    return sum(signed_amount(t) for t in details if not should_skip(t))
