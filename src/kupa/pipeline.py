"""Open a statement directory and turn it into an AnalysisResult.

Files are read and parsed one at a time; a file or sheet that cannot be
handled is recorded and skipped. Once every file's rows are collected the
rule layers and reconciliation run over the whole set, since a card
statement and the bank statement paying it usually live in different files.
"""

from kupa.directory import Directory
from kupa.duplicates import find_duplicate_files, find_overlapping_date_ranges
from kupa.errors import NoStatementFiles, StatementReadError, UserCancelled
from kupa.logging_setup import get_logger
from kupa.models import AnalysisResult, MatchOptions, RuleSet, Transaction
from kupa.money import net_total, should_skip
from kupa.overrides import apply_direction_overrides
from kupa.reconciler import detect_unmatched_credit_charges, reconcile
from kupa.registry import registry
from kupa.rules import apply_aliases, apply_category_rules
from kupa.sheet_type import SheetTypePrompt, resolve_sheet_type
from kupa.store import SidecarStore
from kupa.tabular import decode_text, read_csv_rows, read_xlsx

log = get_logger("kupa.pipeline")

STATEMENT_EXTENSIONS = (".csv", ".xlsx")


def is_statement_file(name: str) -> bool:
    return name.lower().endswith(STATEMENT_EXTENSIONS) and not name.startswith("~$")


def _parse_grid(rows, file_name, sheet_name, sheet_overrides, prompt, cancelled) -> list[Transaction]:
    try:
        sheet_type = resolve_sheet_type(sheet_overrides, file_name, sheet_name, rows, prompt)
    except UserCancelled as exc:
        log.info("Skipping %s: sheet type not chosen", exc.key)
        cancelled.append(exc.key)
        return []
    if sheet_type is None:
        return []
    parser = registry.get_for_sheet_type(sheet_type)
    if parser is None:
        return []
    return parser.parse(rows, file_name, sheet_name)


def parse_statement(
    file_name: str,
    data: bytes,
    sheet_overrides: dict[str, str],
    prompt: SheetTypePrompt | None = None,
    cancelled: list[str] | None = None,
) -> list[Transaction]:
    """Parse one statement file. Raises StatementReadError for an unreadable workbook."""
    cancelled = cancelled if cancelled is not None else []
    if file_name.lower().endswith(".csv"):
        rows = read_csv_rows(decode_text(data))
        return _parse_grid(rows, file_name, None, sheet_overrides, prompt, cancelled)

    details: list[Transaction] = []
    for sheet in read_xlsx(data, file_name):
        details.extend(_parse_grid(sheet.rows, file_name, sheet.name, sheet_overrides, prompt, cancelled))
    return details


def apply_rule_set(details: list[Transaction], rule_set: RuleSet) -> list[Transaction]:
    """Aliases, then category rules, then direction overrides."""
    details = apply_aliases(details, rule_set.category_aliases, rule_set.description_categories)
    details = apply_category_rules(details, rule_set.rules)
    return apply_direction_overrides(details, rule_set.direction_overrides)


def analyze_directory(
    directory: Directory,
    store: SidecarStore | None = None,
    prompt: SheetTypePrompt | None = None,
    options: MatchOptions | None = None,
) -> AnalysisResult:
    store = store or SidecarStore(directory)
    rule_set = store.load()

    names = [n for n in directory.list_files() if is_statement_file(n)]
    if not names:
        raise NoStatementFiles(directory.name)

    skipped: list[str] = []
    contents: dict[str, bytes] = {}
    for name in names:
        try:
            contents[name] = directory.read_bytes(name)
        except OSError as exc:
            log.warning("Skipping %s: %s", name, exc)
            skipped.append(name)

    duplicate_files = find_duplicate_files(contents)
    for group in duplicate_files:
        for dup in group.paths[1:]:
            log.warning("Skipping %s: identical to %s", dup, group.paths[0])
            skipped.append(dup)
            del contents[dup]

    sheet_overrides = dict(rule_set.sheet_type_overrides)
    cancelled: list[str] = []
    details: list[Transaction] = []
    for name, data in contents.items():
        try:
            details.extend(parse_statement(name, data, sheet_overrides, prompt, cancelled))
        except StatementReadError as exc:
            log.warning("Skipping %s: %s", name, exc)
            skipped.append(name)

    if sheet_overrides != rule_set.sheet_type_overrides:
        store.save_sheet_type_overrides(sheet_overrides)

    details = apply_rule_set(details, rule_set)
    details, cycles = reconcile(details, rule_set.credit_charge_patterns, options)

    counted = [d for d in details if not should_skip(d)]
    total = round(net_total(details), 2)
    return AnalysisResult(
        details=details,
        credit_charge_cycles=cycles,
        total_amount=total,
        average_amount=round(total / len(counted), 2) if counted else 0.0,
        skipped_files=skipped,
        cancelled_sheets=cancelled,
        duplicate_files=duplicate_files,
        overlapping_ranges=find_overlapping_date_ranges(details, set(skipped)),
        unmatched_credit_charges=detect_unmatched_credit_charges(details),
    )
