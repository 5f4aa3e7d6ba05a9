import pytest

from kupa.models import CategoryRule, RuleConditions, Transaction
from kupa.rules import (
    add_advanced_rule, add_description_contains_rule, add_description_equals_rule,
    add_rule_with_amount_range, add_transaction_category_rule, apply_aliases,
    apply_category_rules, clean_description, create_rule, migrate_description_map,
    move_rule, remove_rule, rule_matches, update_rule,
)


def _tx(id="t1", description="שופרסל דיל", amount=120.0, **kw):
    base = dict(id=id, date="5/3/24", description=description, amount=amount, direction="expense", source="credit")
    return Transaction(**{**base, **kw})


def _rule(id, category, **conditions):
    return CategoryRule(id=id, category=category, conditions=RuleConditions(**conditions))


# --- Aliases ---

def test_category_alias_rewrites_category():
    [d] = apply_aliases([_tx(category="Food")], {"Food": "Groceries"})
    assert d.category == "Groceries"


def test_alias_chain_is_followed_and_cycles_stop():
    [d] = apply_aliases([_tx(category="A")], {"A": "B", "B": "C"})
    assert d.category == "C"
    [d] = apply_aliases([_tx(category="A")], {"A": "B", "B": "A"})
    assert d.category in ("A", "B")


def test_description_map_only_fills_uncategorized():
    details = [_tx(id="1"), _tx(id="2", category="Other")]
    out = apply_aliases(details, {}, {"שופרסל דיל": "Groceries"})
    assert [d.category for d in out] == ["Groceries", "Other"]


def test_description_category_goes_through_aliases():
    [d] = apply_aliases([_tx()], {"Food": "Groceries"}, {"שופרסל דיל": "Food"})
    assert d.category == "Groceries"


def test_apply_aliases_twice_changes_nothing():
    aliases = {"Food": "Groceries", "A": "B", "B": "A"}
    descriptions = {"שופרסל דיל": "Food", "פז": "A"}
    details = [_tx(id="1"), _tx(id="2", description="פז"), _tx(id="3", category="Food")]
    once = apply_aliases(details, aliases, descriptions)
    assert apply_aliases(once, aliases, descriptions) == once


def test_apply_aliases_does_not_mutate_input():
    details = [_tx(category="Food")]
    apply_aliases(details, {"Food": "Groceries"})
    assert details[0].category == "Food"


# --- Matching ---

def test_clean_description():
    assert clean_description("PAYPAL *SPOTIFY 05/03/24 123456") == "paypal spotify"


def test_conditions_are_anded():
    rule = _rule("r", "Big groceries", description_regex="שופרסל", min_amount=100)
    assert rule_matches(rule, _tx(amount=120))
    assert not rule_matches(rule, _tx(amount=80))
    assert not rule_matches(rule, _tx(description="רמי לוי", amount=120))


def test_amount_bounds_accept_numeric_strings():
    rule = _rule("r", "Mid", min_amount="100", max_amount="200")
    assert rule_matches(rule, _tx(amount=150))
    assert not rule_matches(rule, _tx(amount=250))


def test_invalid_regex_never_matches():
    assert not rule_matches(_rule("r", "X", description_regex="(unclosed"), _tx())


def test_contains_uses_cleaned_description():
    rule = _rule("r", "Music", description_contains="Spotify")
    assert rule_matches(rule, _tx(description="PAYPAL *SPOTIFY 123456"))


def test_source_direction_and_dates():
    rule = _rule("r", "X", source="credit", direction="expense", date_from="2024-03-01", date_to="2024-03-31")
    assert rule_matches(rule, _tx())
    assert not rule_matches(rule, _tx(source="bank"))
    assert not rule_matches(rule, _tx(direction="income"))
    assert not rule_matches(rule, _tx(date="5/4/24"))
    assert not rule_matches(rule, _tx(date="garbage"))


def test_direction_condition_uses_detected_direction():
    rule = _rule("r", "X", direction="expense")
    overridden = _tx(direction="income", direction_detected="expense", user_adjusted_direction=True)
    assert rule_matches(rule, overridden)


# --- Application ---

def test_first_matching_rule_wins():
    rules = [_rule("a", "First", description_regex="שופרסל"), _rule("b", "Second", description_regex="דיל")]
    [d] = apply_category_rules([_tx()], rules)
    assert d.category == "First"


def test_inactive_rules_are_ignored():
    rule = _rule("a", "First", description_regex="שופרסל")
    rule.active = False
    [d] = apply_category_rules([_tx()], [rule])
    assert d.category is None


def test_transaction_pin_beats_earlier_rules():
    rules = [_rule("a", "General", description_regex="שופרסל"), _rule("b", "Pinned", transaction_id="t1")]
    out = apply_category_rules([_tx(id="t1"), _tx(id="t2")], rules)
    assert [d.category for d in out] == ["Pinned", "General"]


def test_unchanged_category_keeps_same_object():
    d = _tx(category="General")
    [out] = apply_category_rules([d], [_rule("a", "General", description_regex="שופרסל")])
    assert out is d


def test_rule_application_is_idempotent():
    rules = [_rule("a", "Food", description_regex="שופרסל"), _rule("b", "Big", min_amount=500)]
    details = [_tx(id="1"), _tx(id="2", description="IKEA", amount=900), _tx(id="3", description="x", amount=5)]
    once = apply_category_rules(details, rules)
    assert apply_category_rules(once, rules) == once


# --- Editing ---

def test_create_rule_validates():
    with pytest.raises(ValueError):
        create_rule("", RuleConditions(description_equals="x"))
    with pytest.raises(ValueError):
        create_rule("Food", RuleConditions())
    rule = create_rule("Food", RuleConditions(description_equals="x"))
    assert rule.id.startswith("r_")
    assert rule.created_at.endswith("Z")
    assert rule.source == "user"


def test_add_description_equals_rule_skips_duplicates():
    rules = add_description_equals_rule([], "פז", "Fuel")
    assert add_description_equals_rule(rules, "פז", "Fuel") == rules
    assert len(add_description_equals_rule(rules, "פז", "Car")) == 2


def test_add_transaction_category_rule_replaces_pin():
    rules = add_transaction_category_rule([], "t1", "A")
    rules = add_transaction_category_rule(rules, "t1", "B")
    assert [(r.conditions.transaction_id, r.category) for r in rules] == [("t1", "B")]


def test_add_contains_rule_escapes_text():
    [rule] = add_description_contains_rule([], "A+B (ltd)", "X")
    assert rule_matches(rule, _tx(description="shop A+B (ltd) tlv"))


def test_amount_range_and_advanced_rules():
    rules = add_rule_with_amount_range([], "פז", "Fuel", min_amount=50, max_amount=300)
    rules = add_advanced_rule(rules, "March", text="דיל", date_from="2024-03-01", date_to="2024-03-31")
    assert rules[0].conditions.max_amount == 300
    assert rules[1].conditions.description_regex == "דיל"
    assert rules[1].conditions.date_to == "2024-03-31"
    [d] = apply_category_rules([_tx()], rules)
    assert d.category == "March"


def test_update_move_and_remove():
    rules = [_rule("a", "A", description_equals="1"), _rule("b", "B", description_equals="2"), _rule("c", "C", description_equals="3")]
    moved = move_rule(rules, "c", 0)
    assert [r.id for r in moved] == ["c", "a", "b"]
    assert [r.id for r in move_rule(rules, "a", 99)] == ["b", "c", "a"]

    updated = update_rule(rules, "b", category="BB", active=False)
    assert (updated[1].category, updated[1].active) == ("BB", False)
    assert updated[1].updated_at
    assert rules[1].category == "B"

    assert [r.id for r in remove_rule(rules, "a")] == ["b", "c"]
    with pytest.raises(ValueError):
        remove_rule(rules, "zzz")


def test_migrate_description_map():
    rules = migrate_description_map({"פז": "Fuel", "": "X", "שופרסל": ""})
    assert len(rules) == 1
    assert rules[0].source == "migration"
    assert rules[0].conditions.description_equals == "פז"
