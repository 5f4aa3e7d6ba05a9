"""Match credit card billing cycles against the bank debits that pay them.

A card issuer collects a whole cycle of purchases as one bank debit. When
both statements are loaded, that debit and the itemized purchases describe
the same money, so the debit is annotated (``credit_charge`` or
``credit_charge_combined``, ``neutral``) and totals skip it.

Matching runs in three passes over cycles that are still unmatched:

1. full: one bank debit equals one cycle's net charge,
2. grouped: one bank debit equals the sum of 2..N cycles sharing a charge date,
3. split: 2..N bank debits that look like card bills add up to one cycle.

Each bank row settles at most one cycle or group, and each cycle is settled
at most once. Anything left over keeps ``bank_match_status == "none"``.
"""

import itertools
import re
from dataclasses import dataclass, replace

from kupa.cycles import compute_credit_charge_cycles
from kupa.logging_setup import get_logger
from kupa.models import (
    CreditChargePattern, CycleSummary, MatchOptions, Transaction, UnmatchedCreditCharge,
)
from kupa.money import parse_dmy

log = get_logger("kupa.reconciler")

# Bank descriptions of known card issuers' monthly charges.
KNOWN_CREDIT_CHARGE_DESCRIPTIONS = ["מקס", "ישראכרט", "לאומי קארד", "אמריקן אקספרס"]

# Candidate bank rows considered per cycle in the split pass.
SPLIT_CANDIDATE_LIMIT = 12


def is_known_credit_charge_description(description: str) -> bool:
    desc = description.strip().lower()
    if not desc:
        return False
    return any(known.lower() in desc for known in KNOWN_CREDIT_CHARGE_DESCRIPTIONS)


def detect_unmatched_credit_charges(details: list[Transaction]) -> list[UnmatchedCreditCharge]:
    """Bank expenses that look like card bills but were not reconciled."""
    unmatched: list[UnmatchedCreditCharge] = []
    for d in details:
        if d.source != "bank" or d.direction != "expense":
            continue
        if d.transaction_type in ("credit_charge", "credit_charge_combined") or d.neutral:
            continue
        if is_known_credit_charge_description(d.description):
            unmatched.append(UnmatchedCreditCharge(
                description=d.description, amount=d.amount, date=d.date, is_known_description=True,
            ))
    return unmatched


def compile_pattern(p: CreditChargePattern) -> re.Pattern | None:
    value = p.value.strip()
    if not value or not p.active:
        return None
    if p.type == "regex":
        try:
            return re.compile(value, re.IGNORECASE)
        except re.error:
            return None
    return re.compile(re.escape(value), re.IGNORECASE)


def days_from_charge(bank_date: str, charge_date: str) -> int | None:
    """Days from a cycle's charge date to a bank row's date (positive = after)."""
    b, c = parse_dmy(bank_date), parse_dmy(charge_date)
    if b is None or c is None:
        return None
    return (b - c).days


def is_in_window(bank_date: str, charge_date: str, options: MatchOptions) -> bool:
    days = days_from_charge(bank_date, charge_date)
    return days is not None and -options.days_before_charge <= days <= options.days_after_charge


def _tolerance(target: float, options: MatchOptions) -> float:
    return max(target * options.tolerance_ratio, options.min_tolerance_amount)


@dataclass
class _Candidate:
    bank_idx: int
    cycle: CycleSummary
    diff: float
    days: int
    pattern_matched: bool

    def sort_key(self):
        return (not self.pattern_matched, round(self.diff, 2), abs(self.days), self.days < 0, self.bank_idx)


class _Matcher:
    def __init__(self, details: list[Transaction], cycles: list[CycleSummary],
                 patterns: list[re.Pattern], options: MatchOptions):
        self.details = list(details)
        self.cycles = cycles
        self.patterns = patterns
        self.options = options

    def _pattern_matched(self, d: Transaction) -> bool:
        return any(p.search(d.description or "") for p in self.patterns)

    def _open_bank_rows(self) -> list[int]:
        return [
            i for i, d in enumerate(self.details)
            if d.source == "bank" and d.direction == "expense" and not d.neutral
            and d.transaction_type not in ("credit_charge", "credit_charge_combined")
        ]

    def _open_cycles(self) -> list[CycleSummary]:
        return [c for c in self.cycles if c.bank_match_status == "none" and c.net_charge > 0]

    def match_full(self) -> None:
        candidates: list[_Candidate] = []
        cycles = self._open_cycles()
        for idx in self._open_bank_rows():
            d = self.details[idx]
            pattern_matched = self._pattern_matched(d)
            for c in cycles:
                days = days_from_charge(d.date, c.charge_date)
                if days is None or not -self.options.days_before_charge <= days <= self.options.days_after_charge:
                    continue
                diff = abs(d.amount - c.net_charge)
                if diff <= _tolerance(c.net_charge, self.options):
                    candidates.append(_Candidate(idx, c, diff, days, pattern_matched))
        candidates.sort(key=_Candidate.sort_key)

        by_cycle: dict[str, list[_Candidate]] = {}
        for cand in candidates:
            by_cycle.setdefault(cand.cycle.cycle_key, []).append(cand)

        # Best-ranked pairs first, then augmenting paths so no cycle is left
        # unmatched while a one-to-one assignment covering it exists.
        row_owner: dict[int, _Candidate] = {}
        cycle_match: dict[str, _Candidate] = {}
        for cand in candidates:
            if cand.bank_idx in row_owner or cand.cycle.cycle_key in cycle_match:
                continue
            row_owner[cand.bank_idx] = cand
            cycle_match[cand.cycle.cycle_key] = cand

        def augment(key: str, visited: set[int]) -> bool:
            options = by_cycle[key]
            for cand in options:
                if cand.bank_idx not in row_owner:
                    row_owner[cand.bank_idx] = cand
                    cycle_match[key] = cand
                    return True
            for cand in options:
                if cand.bank_idx in visited:
                    continue
                visited.add(cand.bank_idx)
                if augment(row_owner[cand.bank_idx].cycle.cycle_key, visited):
                    row_owner[cand.bank_idx] = cand
                    cycle_match[key] = cand
                    return True
            return False

        for key in by_cycle:
            if key not in cycle_match:
                augment(key, set())

        for cand in sorted(cycle_match.values(), key=_Candidate.sort_key):
            c = cand.cycle
            d = self.details[cand.bank_idx]
            self.details[cand.bank_idx] = replace(
                d,
                transaction_type="credit_charge",
                neutral=True,
                related_transaction_ids=list(c.transaction_ids),
                match_reason="pattern+amount" if cand.pattern_matched else "amount",
                matched_card_last4=c.card_last4 or None,
                matched_card_last4_all=[c.card_last4] if c.card_last4 else [],
                matched_charge_date=c.charge_date,
                total_charge_amount=c.net_charge,
            )
            c.bank_match_status = "full"
            c.bank_matched_amount = d.amount
            c.bank_transaction_ids = [d.id]

    def match_grouped(self) -> None:
        by_date: dict[str, list[CycleSummary]] = {}
        for c in self._open_cycles():
            by_date.setdefault(c.charge_date, []).append(c)
        if not by_date:
            return

        for idx in self._open_bank_rows():
            d = self.details[idx]
            combo = self._find_combo(d, by_date)
            if combo is None:
                continue
            total = round(sum(c.net_charge for c in combo), 2)
            self.details[idx] = replace(
                d,
                transaction_type="credit_charge_combined",
                neutral=True,
                related_transaction_ids=[tid for c in combo for tid in c.transaction_ids],
                matched_cycle_keys=[c.cycle_key for c in combo],
                matched_combo_size=len(combo),
                matched_charge_date=combo[0].charge_date,
                matched_card_last4_all=[c.card_last4 for c in combo if c.card_last4],
                match_reason=f"combined_{len(combo)}",
                total_charge_amount=total,
            )
            for c in combo:
                c.bank_match_status = "grouped"
                c.bank_matched_amount = c.net_charge
                c.bank_transaction_ids = [*c.bank_transaction_ids, d.id]

    def _find_combo(self, d: Transaction, by_date: dict[str, list[CycleSummary]]) -> tuple | None:
        for charge_date, group in by_date.items():
            if not is_in_window(d.date, charge_date, self.options):
                continue
            available = [c for c in group if c.bank_match_status == "none"]
            # Largest groups first.
            for size in range(min(self.options.max_combo_size, len(available)), 1, -1):
                for combo in itertools.combinations(available, size):
                    total = sum(c.net_charge for c in combo)
                    if abs(d.amount - total) <= _tolerance(total, self.options):
                        return combo
        return None

    def match_split(self) -> None:
        for c in self._open_cycles():
            rows = []
            for idx in self._open_bank_rows():
                d = self.details[idx]
                if not (self._pattern_matched(d) or is_known_credit_charge_description(d.description)):
                    continue
                days = days_from_charge(d.date, c.charge_date)
                if days is None or not -self.options.days_before_charge <= days <= self.options.days_after_charge:
                    continue
                if d.amount < c.net_charge:
                    rows.append((abs(days), idx))
            rows = [idx for _, idx in sorted(rows)[:SPLIT_CANDIDATE_LIMIT]]

            found = None
            for size in range(2, min(self.options.max_combo_size, len(rows)) + 1):
                for combo in itertools.combinations(rows, size):
                    total = sum(self.details[i].amount for i in combo)
                    if abs(total - c.net_charge) <= _tolerance(c.net_charge, self.options):
                        found = combo
                        break
                if found:
                    break
            if not found:
                continue

            for i in found:
                self.details[i] = replace(
                    self.details[i],
                    transaction_type="credit_charge",
                    neutral=True,
                    related_transaction_ids=list(c.transaction_ids),
                    match_reason=f"split_{len(found)}",
                    matched_card_last4=c.card_last4 or None,
                    matched_card_last4_all=[c.card_last4] if c.card_last4 else [],
                    matched_charge_date=c.charge_date,
                    total_charge_amount=c.net_charge,
                )
            c.bank_match_status = "multi"
            c.bank_matched_amount = round(sum(self.details[i].amount for i in found), 2)
            c.bank_transaction_ids = [self.details[i].id for i in found]


def reconcile(
    details: list[Transaction],
    patterns: list[CreditChargePattern] | None = None,
    options: MatchOptions | None = None,
) -> tuple[list[Transaction], list[CycleSummary]]:
    """Annotate bank rows that pay card cycles. Returns (details, cycle summaries)."""
    options = options or MatchOptions()
    cycles = compute_credit_charge_cycles(details)
    if not cycles:
        return list(details), []

    compiled = [p for p in (compile_pattern(x) for x in patterns or []) if p is not None]
    matcher = _Matcher(details, cycles, compiled, options)
    matcher.match_full()
    matcher.match_grouped()
    if options.split_matches:
        matcher.match_split()

    counts: dict[str, int] = {}
    for c in cycles:
        counts[c.bank_match_status] = counts.get(c.bank_match_status, 0) + 1
    log.debug("Reconciled %d cycles: %s", len(cycles), counts)
    return matcher.details, cycles
