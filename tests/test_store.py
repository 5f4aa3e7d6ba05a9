import json

from kupa.directory import MemoryDirectory
from kupa.models import CategoryDef, CreditChargePattern, DirectionOverride, RuleConditions, RuleSet, Transaction
from kupa.rules import create_rule, rule_matches
from kupa.store import CATEGORY_RULES_FILE, SidecarStore, rule_from_dict, rule_to_dict


def test_empty_directory_loads_defaults():
    rule_set = SidecarStore(MemoryDirectory()).load()
    assert rule_set == RuleSet()


def test_legacy_description_map_is_migrated_and_saved():
    directory = MemoryDirectory({"description-categories.json": json.dumps({"פז": "Fuel"})})
    rule_set = SidecarStore(directory).load()

    [rule] = rule_set.rules
    assert rule.category == "Fuel"
    assert rule.conditions.description_equals == "פז"
    assert rule.source == "migration"
    assert rule_set.description_categories == {"פז": "Fuel"}

    saved = json.loads(directory.files[CATEGORY_RULES_FILE])
    assert saved[0]["conditions"] == {"descriptionEquals": "פז"}
    assert saved[0]["source"] == "migration"


def test_existing_rules_file_blocks_migration():
    directory = MemoryDirectory({
        "description-categories.json": json.dumps({"פז": "Fuel"}),
        CATEGORY_RULES_FILE: "[]",
    })
    assert SidecarStore(directory).load().rules == []


def test_rule_json_uses_camel_case():
    rule = create_rule("Food", RuleConditions(description_regex="שופרסל", min_amount=10, date_from="2024-01-01"))
    data = rule_to_dict(rule)
    assert data["conditions"] == {"descriptionRegex": "שופרסל", "minAmount": 10, "dateFrom": "2024-01-01"}
    assert data["createdAt"] == rule.created_at
    assert rule_from_dict(data) == rule


def test_save_then_load():
    directory = MemoryDirectory()
    store = SidecarStore(directory)
    rule_set = RuleSet(
        categories=[CategoryDef(name="Food", color="#ff0000")],
        category_aliases={"Groceries": "Food"},
        description_categories={"פז": "Fuel"},
        rules=[create_rule("Food", RuleConditions(description_equals="שופרסל"))],
        direction_overrides={"t1": DirectionOverride(direction="income", updated_at="2024-03-01T00:00:00.000Z", note="gift")},
        sheet_type_overrides={"a.xlsx::S": "bank"},
        credit_charge_patterns=[CreditChargePattern(value="מקס")],
    )
    assert store.save(rule_set)
    assert store.load() == rule_set
    assert json.loads(directory.files["directionOverrides.json"])["t1"]["updatedAt"] == "2024-03-01T00:00:00.000Z"


def test_corrupt_or_wrong_shape_files_load_as_empty():
    directory = MemoryDirectory({
        "categories.json": "{not json",
        "categories-aliases.json": "[1, 2]",
        "sheetTypeOverrides.json": json.dumps({"a.csv": "payroll", "b.csv": "credit"}),
        "directionOverrides.json": json.dumps({"t1": {"direction": "up"}}),
    })
    rule_set = SidecarStore(directory).load()
    assert rule_set.categories == []
    assert rule_set.category_aliases == {}
    assert rule_set.sheet_type_overrides == {"b.csv": "credit"}
    assert rule_set.direction_overrides == {}


def test_failed_write_returns_false():
    directory = MemoryDirectory({"description-categories.json": json.dumps({"פז": "Fuel"})}, read_only=True)
    store = SidecarStore(directory)
    # Migration still yields rules even when they cannot be persisted.
    assert len(store.load().rules) == 1
    assert store.save_sheet_type_overrides({"a.csv": "bank"}) is False
    assert store.save(RuleSet()) is False


def test_hand_edited_condition_types_are_coerced_or_dropped():
    directory = MemoryDirectory({CATEGORY_RULES_FILE: json.dumps([
        {"id": "r1", "category": "A", "conditions": {"descriptionContains": 5, "minAmount": "10"}},
        {"id": "r2", "category": "B", "conditions": {"descriptionRegex": 5, "source": ["bank"]}},
        {"id": "r3", "category": "C", "conditions": {"descriptionRegex": {"x": 1}}},
    ])})
    r1, r2 = SidecarStore(directory).load_rules()
    assert r1.conditions.description_contains == "5"
    assert r1.conditions.min_amount == "10"
    assert r2.conditions.description_regex == "5"
    assert r2.conditions.source is None
    assert rule_matches(r1, Transaction(id="t", date="1/3/24", description="קופה 5", amount=20.0,
                                        direction="expense", source="bank"))
