from kupa.dialects import BANK_FIELDS, BANK_HEADER_PATTERNS, find_column, normalize_cell
from kupa.money import normalize_date, parse_bank_number
from kupa.models import Transaction

HEADER_SCAN_ROWS = 30


def _cell(row: list[str], idx: int) -> str:
    if 0 <= idx < len(row):
        return str(row[idx]).strip()
    return ""


def find_bank_header(rows: list[list[str]]) -> int:
    """Index of the first row holding date, description and amount headers, or -1."""
    p = BANK_HEADER_PATTERNS
    for i, raw in enumerate(rows[:HEADER_SCAN_ROWS]):
        row = [normalize_cell(c) for c in (raw or [])]

        def has(name: str) -> bool:
            return any(p[name].search(h) for h in row)

        has_debit_credit = has("debit_credit") or (has("debit") and has("credit"))
        if has("date") and has("description") and (has_debit_credit or has("amount")):
            return i
    return -1


def _description(row: list[str], columns: tuple[int, ...]) -> str:
    parts: list[str] = []
    for idx in columns:
        value = _cell(row, idx)
        if value and value not in parts:
            parts.append(value)
    return " - ".join(parts).strip()


def _resolve_amount(row: list[str], debit_idx: int, credit_idx: int, amount_idx: int) -> tuple[str, float] | None:
    """Return (direction, absolute amount), or None when the row has no amount column."""
    if debit_idx >= 0 or credit_idx >= 0:
        debit = parse_bank_number(_cell(row, debit_idx)) if debit_idx >= 0 else 0.0
        credit = parse_bank_number(_cell(row, credit_idx)) if credit_idx >= 0 else 0.0
        if debit > 0 and credit <= 0:
            return "expense", abs(debit)
        if credit > 0 and debit <= 0:
            return "income", abs(credit)
        if debit > 0 and credit > 0:
            return ("expense", abs(debit)) if debit >= credit else ("income", abs(credit))
    elif amount_idx < 0:
        return None
    amt = parse_bank_number(_cell(row, amount_idx)) if amount_idx >= 0 else 0.0
    return ("expense" if amt < 0 else "income"), abs(amt)


def bank_transaction_id(file_name: str, sheet_name: str | None, row_index: int,
                        date: str, amount: float, description: str) -> str:
    parts = ["bank", file_name]
    if sheet_name is not None:
        parts.append(sheet_name)
    parts += [str(row_index), date, f"{amount:.2f}", description.strip().lower()]
    return "|".join(parts)


def parse_bank_rows(rows: list[list[str]], file_name: str, sheet_name: str | None = None) -> list[Transaction]:
    """Parse a bank account statement grid."""
    header_idx = find_bank_header(rows)
    if header_idx == -1:
        return []

    headers = [normalize_cell(h) for h in rows[header_idx]]
    f = BANK_FIELDS
    date_idx = find_column(headers, f["date"])
    desc_idx = find_column(headers, f["description"])
    details_idx = find_column(headers, f["details"])
    action_idx = find_column(headers, f["action"])
    # A single "חובה/זכות" column carries a signed amount, not a debit/credit pair.
    combined_idx = find_column(headers, f["debit_credit"])
    skip = (combined_idx,) if combined_idx >= 0 else ()
    debit_idx = find_column(headers, f["debit"], exclude=skip)
    credit_idx = find_column(headers, f["credit"], exclude=skip)
    amount_idx = find_column(headers, f["amount"])
    if amount_idx < 0:
        amount_idx = combined_idx

    details: list[Transaction] = []
    for r in range(header_idx + 1, len(rows)):
        row = rows[r] or []
        date = normalize_date(_cell(row, date_idx), pad=True) if date_idx >= 0 else ""
        description = _description(row, (desc_idx, details_idx, action_idx))
        if not date or not description:
            continue

        resolved = _resolve_amount(row, debit_idx, credit_idx, amount_idx)
        if resolved is None:
            continue
        direction, amount = resolved

        details.append(Transaction(
            id=bank_transaction_id(file_name, sheet_name, r, date, amount, description),
            date=date,
            description=description,
            amount=amount,
            direction=direction,
            direction_detected=direction,
            source="bank",
            file_name=file_name,
            row_index=r,
            header_idx=header_idx,
        ))
    return details
