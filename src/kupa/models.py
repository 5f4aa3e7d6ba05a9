from dataclasses import dataclass, field
from typing import Callable


@dataclass
class Transaction:
    id: str
    date: str  # D/M/YY family, day and month not necessarily zero-padded
    description: str
    amount: float  # always the absolute value; sign lives in direction
    direction: str  # income or expense
    source: str  # credit or bank
    direction_detected: str | None = None
    category: str | None = None
    charge_date: str | None = None
    card_last4: str | None = None
    file_name: str | None = None
    row_index: int | None = None
    header_idx: int | None = None
    transaction_type: str = "regular"  # regular, credit_charge, credit_charge_combined, debit, cash, fee
    match_reason: str | None = None
    matched_card_last4: str | None = None
    matched_card_last4_all: list[str] = field(default_factory=list)
    matched_cycle_keys: list[str] = field(default_factory=list)
    matched_combo_size: int | None = None
    matched_charge_date: str | None = None
    related_transaction_ids: list[str] = field(default_factory=list)
    total_charge_amount: float | None = None
    neutral: bool = False
    user_adjusted_direction: bool = False
    user_adjustment_note: str | None = None


@dataclass
class CycleSummary:
    """One billing cycle: every credit row sharing a charge date and card."""
    charge_date: str
    card_last4: str
    cycle_key: str  # chargeDate::cardLast4
    total_expenses: float = 0.0
    total_refunds: float = 0.0
    net_charge: float = 0.0
    transaction_ids: list[str] = field(default_factory=list)
    bank_match_status: str = "none"  # full, multi, grouped, none
    bank_matched_amount: float = 0.0
    bank_transaction_ids: list[str] = field(default_factory=list)


@dataclass
class RuleConditions:
    description_equals: str | None = None
    description_contains: str | None = None
    description_regex: str | None = None
    transaction_id: str | None = None
    min_amount: float | str | None = None
    max_amount: float | str | None = None
    source: str | None = None
    direction: str | None = None
    date_from: str | None = None  # YYYY-MM-DD
    date_to: str | None = None

    def is_empty(self) -> bool:
        return all(v in (None, "") for v in vars(self).values())


@dataclass
class CategoryRule:
    id: str
    category: str
    conditions: RuleConditions
    active: bool = True
    created_at: str = ""
    updated_at: str | None = None
    source: str = "user"  # user, migration, system


@dataclass
class DirectionOverride:
    direction: str
    updated_at: str
    note: str | None = None


@dataclass
class CategoryDef:
    name: str
    color: str | None = None
    icon: str | None = None


@dataclass
class CreditChargePattern:
    value: str
    type: str = "contains"  # contains or regex
    active: bool = True


@dataclass
class RuleSet:
    """Everything persisted in a statement directory's sidecar files."""
    categories: list[CategoryDef] = field(default_factory=list)
    category_aliases: dict[str, str] = field(default_factory=dict)
    description_categories: dict[str, str] = field(default_factory=dict)
    rules: list[CategoryRule] = field(default_factory=list)  # evaluated front to back
    direction_overrides: dict[str, DirectionOverride] = field(default_factory=dict)
    sheet_type_overrides: dict[str, str] = field(default_factory=dict)
    credit_charge_patterns: list[CreditChargePattern] = field(default_factory=list)


@dataclass
class Sheet:
    name: str
    rows: list[list[str]]


@dataclass
class SheetTypeResult:
    type: str | None  # bank, credit, or None when empty/undecided
    needs_user_input: bool
    key: str


@dataclass
class ParserInfo:
    """Metadata and parse function for one statement family."""
    key: str
    name: str
    sheet_type: str
    parse: Callable
    version: str = "1.0"


@dataclass
class MatchOptions:
    tolerance_ratio: float = 0.01
    min_tolerance_amount: float = 2.0
    days_before_charge: int = 1
    days_after_charge: int = 6
    max_combo_size: int = 4
    split_matches: bool = True


@dataclass
class UnmatchedCreditCharge:
    description: str
    amount: float
    date: str
    is_known_description: bool


@dataclass
class DuplicateFileGroup:
    hash: str
    paths: list[str]
    file_size: int


@dataclass
class OverlappingDateRange:
    source: str
    card_last4: str | None
    file1: str
    range1: dict
    file2: str
    range2: dict
    overlap_days: int
    overlap_percent: int


@dataclass
class AnalysisResult:
    details: list[Transaction]
    credit_charge_cycles: list[CycleSummary]
    total_amount: float = 0.0
    average_amount: float = 0.0
    skipped_files: list[str] = field(default_factory=list)
    cancelled_sheets: list[str] = field(default_factory=list)
    duplicate_files: list[DuplicateFileGroup] = field(default_factory=list)
    overlapping_ranges: list[OverlappingDateRange] = field(default_factory=list)
    unmatched_credit_charges: list[UnmatchedCreditCharge] = field(default_factory=list)

    @property
    def missing_bank_matches(self) -> list[CycleSummary]:
        return [c for c in self.credit_charge_cycles if c.bank_match_status == "none"]
