"""Category aliases and category rules.

Rules are an ordered list evaluated front to back; the first matching
rule decides a transaction's category. Rules pinned to a single
transaction id are consulted before all others. Every function here
returns new lists and leaves its inputs untouched.
"""

import re
import time
import uuid
from dataclasses import replace
from datetime import date, datetime, timezone
from functools import lru_cache

from kupa.models import CategoryRule, RuleConditions, Transaction
from kupa.money import parse_dmy


def _resolve_alias(category: str, aliases: dict[str, str]) -> str:
    seen = {category}
    while category in aliases:
        category = aliases[category]
        if category in seen:
            break
        seen.add(category)
    return category


def apply_aliases(
    details: list[Transaction],
    category_aliases: dict[str, str] | None = None,
    description_categories: dict[str, str] | None = None,
) -> list[Transaction]:
    """Rename aliased categories, then fill uncategorized rows by description."""
    category_aliases = category_aliases or {}
    description_categories = description_categories or {}
    out: list[Transaction] = []
    for d in details:
        category = d.category or ""
        if category and category in category_aliases:
            category = _resolve_alias(category, category_aliases)
        if not category and d.description in description_categories:
            category = _resolve_alias(description_categories[d.description], category_aliases)
        if category and category != d.category:
            d = replace(d, category=category)
        out.append(d)
    return out


def clean_description(description: str) -> str:
    """Lowercased description without dates, long numbers or ``*#-_`` noise."""
    if not description:
        return ""
    s = re.sub(r"\d{1,2}[/\-.]\d{1,2}([/\-.]\d{2,4})?", "", description)
    s = re.sub(r"\d{4,}", "", s)
    s = re.sub(r"[*#\-_]+", " ", s)
    return re.sub(r"\s+", " ", s).strip().lower()


@lru_cache(maxsize=256)
def _compile(pattern: str) -> re.Pattern | None:
    try:
        return re.compile(pattern, re.IGNORECASE)
    except re.error:
        return None


def _number(value) -> float | None:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _iso_date(value: str | None) -> date | None:
    if not value:
        return None
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        return None


def rule_matches(rule: CategoryRule, d: Transaction) -> bool:
    """All of a rule's conditions, ANDed together."""
    c = rule.conditions
    if c.transaction_id and c.transaction_id != d.id:
        return False
    if c.description_equals and c.description_equals != d.description:
        return False
    if c.description_contains and c.description_contains.lower() not in clean_description(d.description):
        return False
    if c.description_regex:
        pattern = _compile(c.description_regex)
        if pattern is None or not pattern.search(d.description):
            return False

    amount = abs(d.amount)
    min_amount = _number(c.min_amount)
    if min_amount is not None and amount < min_amount:
        return False
    max_amount = _number(c.max_amount)
    if max_amount is not None and amount > max_amount:
        return False

    if c.source and d.source != c.source:
        return False
    # Rules run before direction overrides, so they see the detected direction.
    if c.direction and (d.direction_detected or d.direction) != c.direction:
        return False

    date_from, date_to = _iso_date(c.date_from), _iso_date(c.date_to)
    if date_from or date_to:
        tx_date = parse_dmy(d.date)
        if tx_date is None:
            return False
        if date_from and tx_date < date_from:
            return False
        if date_to and tx_date > date_to:
            return False
    return True


def apply_category_rules(details: list[Transaction], rules: list[CategoryRule]) -> list[Transaction]:
    active = [r for r in rules if r.active and r.category]
    if not active:
        return list(details)

    pins: dict[str, CategoryRule] = {}
    for r in active:
        if r.conditions.transaction_id:
            pins.setdefault(r.conditions.transaction_id, r)
    ordered = [r for r in active if not r.conditions.transaction_id]

    out: list[Transaction] = []
    for d in details:
        rule = pins.get(d.id) or next((r for r in ordered if rule_matches(r, d)), None)
        if rule is not None and rule.category != d.category:
            d = replace(d, category=rule.category)
        out.append(d)
    return out


# --- Rule editing ---

def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def create_rule(category: str, conditions: RuleConditions, source: str = "user") -> CategoryRule:
    if not category:
        raise ValueError("A rule needs a category")
    if conditions.is_empty():
        raise ValueError("A rule needs at least one condition")
    return CategoryRule(
        id=f"r_{int(time.time() * 1000)}_{uuid.uuid4().hex[:6]}",
        category=category,
        conditions=conditions,
        active=True,
        created_at=_now_iso(),
        source=source,
    )


def add_rule(rules: list[CategoryRule], rule: CategoryRule) -> list[CategoryRule]:
    return [*rules, rule]


def add_description_equals_rule(rules: list[CategoryRule], description: str, category: str) -> list[CategoryRule]:
    """Categorize every transaction with exactly this description. No-op if the rule exists."""
    if any(r.conditions.description_equals == description and r.category == category for r in rules):
        return list(rules)
    return add_rule(rules, create_rule(category, RuleConditions(description_equals=description)))


def add_transaction_category_rule(rules: list[CategoryRule], transaction_id: str, category: str) -> list[CategoryRule]:
    """Pin one transaction to a category, replacing any earlier pin for it."""
    kept = [r for r in rules if r.conditions.transaction_id != transaction_id]
    return add_rule(kept, create_rule(category, RuleConditions(transaction_id=transaction_id)))


def add_rule_with_amount_range(
    rules: list[CategoryRule],
    description: str,
    category: str,
    min_amount: float | None = None,
    max_amount: float | None = None,
) -> list[CategoryRule]:
    conditions = RuleConditions(description_equals=description, min_amount=min_amount, max_amount=max_amount)
    return add_rule(rules, create_rule(category, conditions))


def add_description_contains_rule(rules: list[CategoryRule], search_term: str, category: str) -> list[CategoryRule]:
    pattern = re.escape(search_term)
    if any(r.conditions.description_regex == pattern and r.category == category for r in rules):
        return list(rules)
    return add_rule(rules, create_rule(category, RuleConditions(description_regex=pattern)))


def conditions_from_filters(
    text: str | None = None,
    min_amount: float | None = None,
    max_amount: float | None = None,
    date_from: str | None = None,
    date_to: str | None = None,
) -> RuleConditions:
    """Turn search filters into rule conditions; text becomes an escaped regex."""
    return RuleConditions(
        description_regex=re.escape(text) if text else None,
        min_amount=min_amount,
        max_amount=max_amount,
        date_from=date_from or None,
        date_to=date_to or None,
    )


def add_advanced_rule(rules: list[CategoryRule], category: str, **filters) -> list[CategoryRule]:
    return add_rule(rules, create_rule(category, conditions_from_filters(**filters)))


def _index_of(rules: list[CategoryRule], rule_id: str) -> int:
    for i, r in enumerate(rules):
        if r.id == rule_id:
            return i
    raise ValueError(f"Unknown rule: {rule_id}")


def update_rule(
    rules: list[CategoryRule],
    rule_id: str,
    category: str | None = None,
    conditions: RuleConditions | None = None,
    active: bool | None = None,
) -> list[CategoryRule]:
    idx = _index_of(rules, rule_id)
    if conditions is not None and conditions.is_empty():
        raise ValueError("A rule needs at least one condition")
    old = rules[idx]
    updated = replace(
        old,
        category=category or old.category,
        conditions=conditions if conditions is not None else old.conditions,
        active=old.active if active is None else active,
        updated_at=_now_iso(),
    )
    return [*rules[:idx], updated, *rules[idx + 1:]]


def move_rule(rules: list[CategoryRule], rule_id: str, position: int) -> list[CategoryRule]:
    """Move a rule to ``position`` (0-based, clamped) in evaluation order."""
    idx = _index_of(rules, rule_id)
    rest = [*rules[:idx], *rules[idx + 1:]]
    position = max(0, min(position, len(rest)))
    return [*rest[:position], rules[idx], *rest[position:]]


def remove_rule(rules: list[CategoryRule], rule_id: str) -> list[CategoryRule]:
    idx = _index_of(rules, rule_id)
    return [*rules[:idx], *rules[idx + 1:]]


def migrate_description_map(mapping: dict[str, str]) -> list[CategoryRule]:
    """One exact-description rule per entry of the legacy description map."""
    return [
        create_rule(str(category), RuleConditions(description_equals=description), source="migration")
        for description, category in mapping.items()
        if description and category
    ]
