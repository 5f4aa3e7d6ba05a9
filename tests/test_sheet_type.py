import pytest

from kupa.errors import UserCancelled
from kupa.sheet_type import (
    detect_sheet_type, get_csv_type, get_sheet_type, override_key, resolve_sheet_type,
)

AMBIGUOUS = [["תאריך עסקה", "חובה"], ["1/3/24", "10"]]


def test_detects_credit_from_charge_date_line(credit_rows):
    assert detect_sheet_type(credit_rows) == "credit"


def test_detects_credit_from_headers_alone():
    rows = [["תאריך עסקה", "שם בית העסק", "סכום חיוב"], ["1/3/24", "פז", "10"]]
    assert detect_sheet_type(rows) == "credit"


def test_detects_bank(bank_rows):
    assert detect_sheet_type(bank_rows) == "bank"


def test_conflicting_or_missing_signals_are_unknown():
    assert detect_sheet_type(AMBIGUOUS) == "unknown"
    assert detect_sheet_type([["a", "b"], ["c", "d"]]) == "unknown"


def test_too_few_rows_is_empty():
    assert detect_sheet_type([]) == "empty"
    assert detect_sheet_type([["תאריך", "חובה"]]) == "empty"
    assert detect_sheet_type([["", ""], ["תאריך", "חובה"], ["", ""]]) == "empty"


def test_leading_blank_rows_are_ignored(bank_rows):
    assert detect_sheet_type([["", ""]] * 20 + bank_rows) == "bank"


def test_override_key():
    assert override_key("a.xlsx", "Sheet1") == "a.xlsx::Sheet1"
    assert override_key("a.csv") == "a.csv"


def test_get_sheet_type_records_detection(bank_rows):
    overrides = {}
    result = get_sheet_type(overrides, "a.xlsx", "Sheet1", bank_rows)
    assert result.type == "bank"
    assert not result.needs_user_input
    assert overrides == {"a.xlsx::Sheet1": "bank"}


def test_override_wins_over_detection(bank_rows):
    overrides = {"a.csv": "credit"}
    assert get_csv_type(overrides, "a.csv", bank_rows).type == "credit"


def test_unknown_needs_user_input():
    overrides = {}
    result = get_sheet_type(overrides, "a.xlsx", "S", AMBIGUOUS)
    assert result.type is None
    assert result.needs_user_input
    assert result.key == "a.xlsx::S"
    assert overrides == {}


def test_resolve_asks_once_and_remembers():
    calls = []

    def prompt(file_name, sheet_name):
        calls.append((file_name, sheet_name))
        return "bank"

    overrides = {}
    assert resolve_sheet_type(overrides, "a.xlsx", "S", AMBIGUOUS, prompt) == "bank"
    assert resolve_sheet_type(overrides, "a.xlsx", "S", AMBIGUOUS, prompt) == "bank"
    assert calls == [("a.xlsx", "S")]
    assert overrides["a.xlsx::S"] == "bank"


def test_resolve_without_answer_cancels():
    with pytest.raises(UserCancelled) as exc:
        resolve_sheet_type({}, "a.csv", None, AMBIGUOUS)
    assert exc.value.key == "a.csv"

    with pytest.raises(UserCancelled):
        resolve_sheet_type({}, "a.csv", None, AMBIGUOUS, lambda f, s: None)


def test_resolve_empty_sheet_returns_none():
    assert resolve_sheet_type({}, "a.xlsx", "S", [["only one row"]]) is None
