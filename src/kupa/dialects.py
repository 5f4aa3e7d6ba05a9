"""Header vocabularies of the known statement dialects.

Each table maps a canonical field to the header spellings seen in the wild,
in probing order. Credit statements are looked up by exact (normalized)
header name, bank statements by substring, because bank exports decorate
their headers (``תאריך ערך``, ``סכום בש"ח``) far more than card issuers do.
"""

import re

# Free-text lines above a credit statement's header row.
CHARGE_DATE_LINE_RE = re.compile(r"עסקאות לחיוב ב-(\d{2}/\d{2}/\d{4})")
CARD_LAST4_LINE_RE = re.compile(r"המסתיים ב-(\d{4})")
CREDIT_ANCHOR_RE = re.compile(r"עסקאות לחיוב ב-|המסתיים ב-")

CREDIT_FIELDS: dict[str, list[str]] = {
    "date": ["תאריך עסקה", "תאריךעסקה", "תאריך"],
    "description": ["שם בית העסק", "שם בית עסק", "בית עסק"],
    "amount": ["סכום חיוב", "סכום עסקה", "סכוםחיוב", "סכוםעסקה"],
    "category": ["ענף", "קטגוריה"],
    "charge_date": ["תאריך חיוב"],
    "card_last4": ["4 ספרות אחרונות של כרטיס האשראי", "4 ספרות אחרונות"],
}

BANK_FIELDS: dict[str, list[str]] = {
    "date": ["תאריך", "Date"],
    "description": ["תיאור פעולה", "הפעולה", "תיאור", "תאור", "פירוט", "פרטים", "Description"],
    "action": ["הפעולה"],
    "details": ["פרטים", "פירוט", "תיאור פעולה"],
    "debit_credit": ["חובה/זכות"],
    "debit": ["חובה", "Debit"],
    "credit": ["זכות", "Credit"],
    "amount": ["סכום", "Amount"],
}

# Header-row detection for bank statements (any cell matching).
BANK_HEADER_PATTERNS: dict[str, re.Pattern] = {
    "date": re.compile(r"תאריך|Date", re.IGNORECASE),
    "description": re.compile(r"תיאור פעולה|הפעולה|תיאור|תאור|פירוט|פרטים|Description", re.IGNORECASE),
    "debit_credit": re.compile(r"חובה/זכות"),
    "debit": re.compile(r"חובה|Debit", re.IGNORECASE),
    "credit": re.compile(r"זכות|Credit", re.IGNORECASE),
    "amount": re.compile(r"סכום|Amount", re.IGNORECASE),
}

SHEET_TYPE_HINTS: dict[str, list[str]] = {
    "bank": ["חובה/זכות", "חובה", "זכות", "Debit", "Credit", "יתרה", "אסמכתא", "תיאור פעולה", "סוג תנועה"],
    "credit": ["תאריך עסקה", "שם בית העסק", "שם בית עסק", "סכום חיוב", "סכום עסקה", "תאריך חיוב", "סכום בשח", "מועד חיוב"],
}


def normalize_cell(value) -> str:
    """Strip quotes and embedded line breaks, as header cells often carry both."""
    return re.sub(r"\r?\n", "", str(value if value is not None else "").replace('"', "")).strip()


def find_column(headers: list[str], candidates: list[str], exclude: tuple[int, ...] = ()) -> int:
    """Index of the first header containing any candidate, or -1."""
    for i, h in enumerate(headers):
        if i in exclude:
            continue
        if any(c in h for c in candidates):
            return i
    return -1


def first_value(row_obj: dict[str, str], candidates: list[str]) -> str:
    """First non-empty value among exactly-named columns."""
    for name in candidates:
        value = row_obj.get(name, "")
        if value:
            return value
    return ""
