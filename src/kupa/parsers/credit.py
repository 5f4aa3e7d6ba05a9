from kupa.dialects import (
    CARD_LAST4_LINE_RE, CHARGE_DATE_LINE_RE, CREDIT_FIELDS, first_value, normalize_cell,
)
from kupa.money import js_number, normalize_date, parse_credit_amount
from kupa.models import Transaction


def _is_poalim_header(row: list[str]) -> bool:
    # Poalim exports break header cells over two lines ("תאריך\nעסקה").
    return any("תאריך" in c and "עסקה" in c for c in row) and "שם בית עסק" in row


def _is_standard_header(row: list[str]) -> bool:
    if "תאריך עסקה" in row and "שם בית העסק" in row and "סכום חיוב" in row:
        return True
    return '"תאריך\nעסקה"' in row and "שם בית עסק" in row and any("סכום" in c for c in row)


def find_credit_header(rows: list[list[str]]) -> tuple[int, str, str]:
    """Locate the header row, collecting the charge date and card number printed above it.

    Returns (header index or -1, charge date, card last 4).
    """
    charge_date = ""
    card_last4 = ""
    for i, raw in enumerate(rows):
        row = [str(c).strip() for c in raw]
        joined = " ".join(row)
        if not charge_date:
            m = CHARGE_DATE_LINE_RE.search(joined)
            if m:
                charge_date = m.group(1)
        if not card_last4:
            m = CARD_LAST4_LINE_RE.search(joined)
            if m:
                card_last4 = m.group(1)
        if _is_poalim_header(row) or _is_standard_header(row):
            return i, charge_date, card_last4
    return -1, charge_date, card_last4


def parse_credit_rows(rows: list[list[str]], file_name: str, sheet_name: str | None = None) -> list[Transaction]:
    """Parse a credit card statement grid (XLSX sheet or CSV rows alike)."""
    header_idx, charge_date_from_header, card_from_header = find_credit_header(rows)
    if header_idx == -1:
        return []

    headers = [normalize_cell(h) for h in rows[header_idx]]
    details: list[Transaction] = []
    for i in range(header_idx + 1, len(rows)):
        row = rows[i]
        if not row or len(row) < 3:
            continue
        row_obj = {h: (str(row[idx]).strip() if idx < len(row) else "") for idx, h in enumerate(headers)}

        date = first_value(row_obj, CREDIT_FIELDS["date"])
        description = first_value(row_obj, CREDIT_FIELDS["description"])
        amount_raw = first_value(row_obj, CREDIT_FIELDS["amount"])
        category = first_value(row_obj, CREDIT_FIELDS["category"])
        charge_date = first_value(row_obj, CREDIT_FIELDS["charge_date"]) or charge_date_from_header
        card_last4 = first_value(row_obj, CREDIT_FIELDS["card_last4"]) or card_from_header

        if not (date and amount_raw and description):
            continue
        raw = parse_credit_amount(amount_raw)
        if raw is None:
            continue

        date = normalize_date(date)
        direction = "income" if raw < 0 else "expense"
        details.append(Transaction(
            id=f"{date}-{js_number(raw)}-{description}",
            date=date,
            description=description,
            amount=abs(raw),
            direction=direction,
            direction_detected=direction,
            source="credit",
            category=category or None,
            charge_date=normalize_date(charge_date) or None,
            card_last4=card_last4 or None,
            file_name=file_name,
            row_index=i,
            header_idx=header_idx,
        ))
    return details
