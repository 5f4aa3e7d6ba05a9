from typing import Callable

from kupa.dialects import CREDIT_ANCHOR_RE, SHEET_TYPE_HINTS, normalize_cell
from kupa.errors import UserCancelled
from kupa.models import SheetTypeResult

SCAN_ROWS = 15

# Called with (file_name, sheet_name) when a sheet cannot be classified;
# returns "bank", "credit", or None to skip the sheet.
SheetTypePrompt = Callable[[str, str | None], str | None]


def detect_sheet_type(rows: list[list[str]]) -> str:
    """Classify a grid as bank, credit, unknown or empty from its first rows."""
    rows = [r for r in rows or [] if any(str(c).strip() for c in (r or []))]
    if len(rows) < 2:
        return "empty"

    tokens: set[str] = set()
    for raw in rows[:SCAN_ROWS]:
        row = [normalize_cell(c) for c in (raw or [])]
        tokens.update(c for c in row if c)
        if CREDIT_ANCHOR_RE.search(" ".join(row)):
            return "credit"

    def has_token(needle: str) -> bool:
        return any(needle in t for t in tokens)

    is_bank = any(has_token(h) for h in SHEET_TYPE_HINTS["bank"])
    is_credit = any(has_token(h) for h in SHEET_TYPE_HINTS["credit"])
    if is_bank and not is_credit:
        return "bank"
    if is_credit and not is_bank:
        return "credit"
    return "unknown"


def override_key(file_name: str, sheet_name: str | None = None) -> str:
    return f"{file_name}::{sheet_name}" if sheet_name is not None else file_name


def get_sheet_type(
    overrides: dict[str, str],
    file_name: str,
    sheet_name: str | None,
    rows: list[list[str]],
) -> SheetTypeResult:
    """Look up or detect a sheet's type. Detected types are written into ``overrides``."""
    key = override_key(file_name, sheet_name)
    if overrides.get(key) in ("bank", "credit"):
        return SheetTypeResult(type=overrides[key], needs_user_input=False, key=key)

    detected = detect_sheet_type(rows)
    if detected == "empty":
        return SheetTypeResult(type=None, needs_user_input=False, key=key)
    if detected == "unknown":
        return SheetTypeResult(type=None, needs_user_input=True, key=key)

    overrides[key] = detected
    return SheetTypeResult(type=detected, needs_user_input=False, key=key)


def get_csv_type(overrides: dict[str, str], file_name: str, rows: list[list[str]]) -> SheetTypeResult:
    return get_sheet_type(overrides, file_name, None, rows)


def resolve_sheet_type(
    overrides: dict[str, str],
    file_name: str,
    sheet_name: str | None,
    rows: list[list[str]],
    prompt: SheetTypePrompt | None = None,
) -> str | None:
    """Return bank/credit, or None for an empty sheet.

    Ambiguous sheets go to ``prompt`` and the answer is remembered in
    ``overrides``. Raises UserCancelled when there is no answer.
    """
    result = get_sheet_type(overrides, file_name, sheet_name, rows)
    if not result.needs_user_input:
        return result.type

    chosen = prompt(file_name, sheet_name) if prompt is not None else None
    if chosen not in ("bank", "credit"):
        raise UserCancelled(result.key)
    overrides[result.key] = chosen
    return chosen
