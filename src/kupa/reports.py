from kupa.models import Transaction
from kupa.money import parse_dmy, should_skip

UNCATEGORIZED = "Uncategorized"


def filter_month(details: list[Transaction], month: str) -> list[Transaction]:
    """Rows whose date falls in ``MM/YYYY``."""
    try:
        mm, yyyy = (int(p) for p in month.split("/"))
    except ValueError:
        raise ValueError(f"Month must look like MM/YYYY, got {month!r}") from None
    out = []
    for d in details:
        day = parse_dmy(d.date)
        if day is not None and day.month == mm and day.year == yyyy:
            out.append(d)
    return out


def summarize(details: list[Transaction]) -> dict:
    """Income/expense totals and per-category sums, leaving out double-counted rows."""
    income: dict[str, float] = {}
    expenses: dict[str, float] = {}
    skipped = 0
    for d in details:
        if should_skip(d):
            skipped += 1
            continue
        bucket = income if d.direction == "income" else expenses
        name = d.category or UNCATEGORIZED
        bucket[name] = bucket.get(name, 0.0) + d.amount

    total_income = round(sum(income.values()), 2)
    total_expenses = round(sum(expenses.values()), 2)
    return {
        "income": [{"name": k, "total": round(v, 2)} for k, v in sorted(income.items(), key=lambda kv: -kv[1])],
        "expenses": [{"name": k, "total": round(v, 2)} for k, v in sorted(expenses.items(), key=lambda kv: -kv[1])],
        "total_income": total_income,
        "total_expenses": total_expenses,
        "net": round(total_income - total_expenses, 2),
        "skipped": skipped,
    }
