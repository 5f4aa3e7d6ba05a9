import pytest

from kupa.models import Transaction
from kupa.reports import filter_month, summarize


def _tx(id, amount, direction="expense", category=None, date="5/3/24", **kw):
    return Transaction(id=id, date=date, description=id, amount=amount, direction=direction,
                       source="bank", category=category, **kw)


def test_summarize_groups_by_category_and_skips_settled_charges():
    details = [
        _tx("salary", 1000, "income", "Salary"),
        _tx("food1", 100, category="Food"),
        _tx("food2", 50, category="Food"),
        _tx("misc", 20),
        _tx("bill", 150, transaction_type="credit_charge", related_transaction_ids=["food1"]),
    ]
    summary = summarize(details)
    assert summary["income"] == [{"name": "Salary", "total": 1000}]
    assert summary["expenses"] == [{"name": "Food", "total": 150}, {"name": "Uncategorized", "total": 20}]
    assert summary["total_expenses"] == 170
    assert summary["net"] == 830
    assert summary["skipped"] == 1


def test_filter_month():
    details = [_tx("a", 1, date="5/3/24"), _tx("b", 1, date="05/04/2024"), _tx("c", 1, date="bad")]
    assert [d.id for d in filter_month(details, "03/2024")] == ["a"]
    with pytest.raises(ValueError):
        filter_month(details, "March")
