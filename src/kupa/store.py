"""Sidecar JSON files kept next to the statements.

The on-disk shapes use camelCase keys so a directory stays readable by
anything else that edits the same files. A missing or corrupt file loads
as its empty default; a failed write is logged and reported as ``False``.
"""

import json

from kupa.directory import Directory
from kupa.logging_setup import get_logger
from kupa.models import (
    CategoryDef, CategoryRule, CreditChargePattern, DirectionOverride, RuleConditions, RuleSet,
)
from kupa.rules import migrate_description_map

log = get_logger("kupa.store")

CATEGORIES_FILE = "categories.json"
CATEGORY_ALIASES_FILE = "categories-aliases.json"
DESCRIPTION_CATEGORIES_FILE = "description-categories.json"
CATEGORY_RULES_FILE = "category-rules.json"
DIRECTION_OVERRIDES_FILE = "directionOverrides.json"
SHEET_TYPE_OVERRIDES_FILE = "sheetTypeOverrides.json"
CREDIT_CHARGE_PATTERNS_FILE = "creditChargePatterns.json"

_CONDITION_KEYS = {
    "description_equals": "descriptionEquals",
    "description_contains": "descriptionContains",
    "description_regex": "descriptionRegex",
    "transaction_id": "transactionId",
    "min_amount": "minAmount",
    "max_amount": "maxAmount",
    "source": "source",
    "direction": "direction",
    "date_from": "dateFrom",
    "date_to": "dateTo",
}


# --- JSON shapes ---

def conditions_to_dict(c: RuleConditions) -> dict:
    return {key: getattr(c, attr) for attr, key in _CONDITION_KEYS.items() if getattr(c, attr) not in (None, "")}


_AMOUNT_CONDITIONS = ("min_amount", "max_amount")


def _condition_value(attr: str, value):
    """Hand-edited files may hold numbers where text is expected; anything else is dropped."""
    if value is None or isinstance(value, bool):
        return None
    if attr in _AMOUNT_CONDITIONS:
        return value if isinstance(value, (int, float, str)) else None
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)):
        return str(value)
    return None


def conditions_from_dict(data: dict) -> RuleConditions:
    return RuleConditions(**{attr: _condition_value(attr, data.get(key)) for attr, key in _CONDITION_KEYS.items()})


def rule_to_dict(rule: CategoryRule) -> dict:
    d = {
        "id": rule.id,
        "category": rule.category,
        "active": rule.active,
        "createdAt": rule.created_at,
        "source": rule.source,
        "conditions": conditions_to_dict(rule.conditions),
    }
    if rule.updated_at:
        d["updatedAt"] = rule.updated_at
    return d


def rule_from_dict(data: dict) -> CategoryRule | None:
    if not isinstance(data, dict) or not data.get("id") or not isinstance(data.get("conditions"), dict):
        return None
    conditions = conditions_from_dict(data["conditions"])
    if conditions.is_empty():
        return None
    return CategoryRule(
        id=str(data["id"]),
        category=str(data.get("category") or ""),
        conditions=conditions,
        active=data.get("active", True) is not False,
        created_at=data.get("createdAt") or "",
        updated_at=data.get("updatedAt"),
        source=data.get("source") or "user",
    )


def _override_to_dict(ov: DirectionOverride) -> dict:
    d = {"direction": ov.direction, "updatedAt": ov.updated_at}
    if ov.note:
        d["note"] = ov.note
    return d


def _override_from_dict(data) -> DirectionOverride | None:
    if not isinstance(data, dict) or data.get("direction") not in ("income", "expense"):
        return None
    return DirectionOverride(direction=data["direction"], updated_at=data.get("updatedAt") or "", note=data.get("note"))


def _string_map(data) -> dict[str, str]:
    if not isinstance(data, dict):
        return {}
    return {str(k): str(v) for k, v in data.items() if isinstance(v, str)}


class SidecarStore:
    """Load and save a directory's RuleSet through a Directory port."""

    def __init__(self, directory: Directory):
        self.directory = directory

    def _read_json(self, name: str, expected: type):
        try:
            text = self.directory.read_text(name)
            if text is None:
                return None
            data = json.loads(text)
        except (json.JSONDecodeError, UnicodeDecodeError):
            log.warning("Ignoring unreadable %s", name)
            return None
        if not isinstance(data, expected):
            log.warning("Ignoring %s: expected a JSON %s", name, "array" if expected is list else "object")
            return None
        return data

    def _write_json(self, name: str, data) -> bool:
        try:
            self.directory.write_text(name, json.dumps(data, indent=2, ensure_ascii=False))
        except OSError as exc:
            log.warning("Could not save %s: %s", name, exc)
            return False
        return True

    # --- load ---

    def load_categories(self) -> list[CategoryDef]:
        data = self._read_json(CATEGORIES_FILE, list) or []
        return [
            CategoryDef(name=str(c["name"]), color=c.get("color"), icon=c.get("icon"))
            for c in data if isinstance(c, dict) and c.get("name")
        ]

    def load_rules(self, description_categories: dict[str, str] | None = None) -> list[CategoryRule]:
        """Load category rules, migrating the legacy description map the first time."""
        data = self._read_json(CATEGORY_RULES_FILE, list)
        if data is not None:
            return [r for r in (rule_from_dict(x) for x in data) if r is not None]
        if CATEGORY_RULES_FILE in self.directory.list_files():
            # Present but unreadable: don't overwrite it with a migration.
            return []

        if description_categories is None:
            description_categories = _string_map(self._read_json(DESCRIPTION_CATEGORIES_FILE, dict))
        rules = migrate_description_map(description_categories)
        if rules:
            log.info("Migrated %d description mappings to category rules", len(rules))
            self.save_rules(rules)
        return rules

    def load_direction_overrides(self) -> dict[str, DirectionOverride]:
        data = self._read_json(DIRECTION_OVERRIDES_FILE, dict) or {}
        overrides = {}
        for txn_id, raw in data.items():
            ov = _override_from_dict(raw)
            if ov is not None:
                overrides[str(txn_id)] = ov
        return overrides

    def load_sheet_type_overrides(self) -> dict[str, str]:
        data = self._read_json(SHEET_TYPE_OVERRIDES_FILE, dict) or {}
        return {str(k): v for k, v in data.items() if v in ("bank", "credit")}

    def load_credit_charge_patterns(self) -> list[CreditChargePattern]:
        data = self._read_json(CREDIT_CHARGE_PATTERNS_FILE, list) or []
        return [
            CreditChargePattern(
                value=str(p["value"]),
                type="regex" if p.get("type") == "regex" else "contains",
                active=p.get("active", True) is not False,
            )
            for p in data if isinstance(p, dict) and p.get("value")
        ]

    def load(self) -> RuleSet:
        description_categories = _string_map(self._read_json(DESCRIPTION_CATEGORIES_FILE, dict))
        return RuleSet(
            categories=self.load_categories(),
            category_aliases=_string_map(self._read_json(CATEGORY_ALIASES_FILE, dict)),
            description_categories=description_categories,
            rules=self.load_rules(description_categories),
            direction_overrides=self.load_direction_overrides(),
            sheet_type_overrides=self.load_sheet_type_overrides(),
            credit_charge_patterns=self.load_credit_charge_patterns(),
        )

    # --- save ---

    def save_categories(self, categories: list[CategoryDef]) -> bool:
        data = []
        for c in categories:
            d = {"name": c.name}
            if c.color:
                d["color"] = c.color
            if c.icon:
                d["icon"] = c.icon
            data.append(d)
        return self._write_json(CATEGORIES_FILE, data)

    def save_category_aliases(self, aliases: dict[str, str]) -> bool:
        return self._write_json(CATEGORY_ALIASES_FILE, aliases)

    def save_description_categories(self, mapping: dict[str, str]) -> bool:
        return self._write_json(DESCRIPTION_CATEGORIES_FILE, mapping)

    def save_rules(self, rules: list[CategoryRule]) -> bool:
        return self._write_json(CATEGORY_RULES_FILE, [rule_to_dict(r) for r in rules])

    def save_direction_overrides(self, overrides: dict[str, DirectionOverride]) -> bool:
        return self._write_json(DIRECTION_OVERRIDES_FILE, {k: _override_to_dict(v) for k, v in overrides.items()})

    def save_sheet_type_overrides(self, overrides: dict[str, str]) -> bool:
        return self._write_json(SHEET_TYPE_OVERRIDES_FILE, overrides)

    def save_credit_charge_patterns(self, patterns: list[CreditChargePattern]) -> bool:
        return self._write_json(
            CREDIT_CHARGE_PATTERNS_FILE,
            [{"value": p.value, "type": p.type, "active": p.active} for p in patterns],
        )

    def save(self, rule_set: RuleSet) -> bool:
        """Write every sidecar file. True only if all writes succeeded."""
        results = [
            self.save_categories(rule_set.categories),
            self.save_category_aliases(rule_set.category_aliases),
            self.save_description_categories(rule_set.description_categories),
            self.save_rules(rule_set.rules),
            self.save_direction_overrides(rule_set.direction_overrides),
            self.save_sheet_type_overrides(rule_set.sheet_type_overrides),
            self.save_credit_charge_patterns(rule_set.credit_charge_patterns),
        ]
        return all(results)
