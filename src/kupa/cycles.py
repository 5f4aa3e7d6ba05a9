from kupa.models import CycleSummary, Transaction


def cycle_key(charge_date: str, card_last4: str | None) -> str:
    return f"{charge_date}::{card_last4 or ''}"


def compute_credit_charge_cycles(details: list[Transaction]) -> list[CycleSummary]:
    """Group credit rows into billing cycles, in order of first appearance.

    A row without a charge date falls into the cycle of its purchase date.
    """
    cycles: dict[str, CycleSummary] = {}
    for d in details:
        if d.source != "credit":
            continue
        charge_date = (d.charge_date or "").strip() or d.date
        key = cycle_key(charge_date, d.card_last4)
        cycle = cycles.get(key)
        if cycle is None:
            cycle = cycles[key] = CycleSummary(
                charge_date=charge_date,
                card_last4=d.card_last4 or "",
                cycle_key=key,
            )
        if d.direction == "expense":
            cycle.total_expenses += d.amount
        else:
            cycle.total_refunds += d.amount
        cycle.transaction_ids.append(d.id)

    for cycle in cycles.values():
        cycle.net_charge = round(cycle.total_expenses - cycle.total_refunds, 2)
    return list(cycles.values())
