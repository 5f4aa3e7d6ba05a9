from pathlib import Path

import typer
from rich.console import Console
from rich.prompt import Prompt
from rich.table import Table

from kupa.directory import LocalDirectory
from kupa.errors import NoStatementFiles
from kupa.logging_setup import configure_logging
from kupa.settings import load_settings, match_options
from kupa.store import SidecarStore

app = typer.Typer(help="Kupa: bank and credit card statement analysis.", invoke_without_command=True)

console = Console()


@app.callback()
def main():
    """Kupa: bank and credit card statement analysis."""
    configure_logging(load_settings().get("log_level"))


def _store(directory: Path) -> SidecarStore:
    return SidecarStore(LocalDirectory(directory))


def _money(amount: float) -> str:
    return f"₪{amount:,.2f}"


# --- Analyze ---

from kupa.money import should_skip
from kupa.pipeline import analyze_directory
from kupa.reports import filter_month, summarize


def _ask_sheet_type(file_name: str, sheet_name: str | None) -> str | None:
    label = f"{file_name} / {sheet_name}" if sheet_name is not None else file_name
    answer = Prompt.ask(
        f"Could not tell what [bold]{label}[/bold] is. Statement type",
        choices=["bank", "credit", "skip"],
        default="skip",
    )
    return None if answer == "skip" else answer


@app.command()
def analyze(
    directory: Path = typer.Argument(help="Folder holding CSV/XLSX statements"),
    month: str = typer.Option(None, help="Only show one month: MM/YYYY"),
    no_prompt: bool = typer.Option(False, "--no-prompt", help="Skip sheets of unknown type instead of asking"),
):
    """Parse, categorize and reconcile every statement in a folder."""
    try:
        result = analyze_directory(
            LocalDirectory(directory),
            prompt=None if no_prompt else _ask_sheet_type,
            options=match_options(),
        )
    except NoStatementFiles as exc:
        typer.echo(str(exc))
        raise typer.Exit(1)

    details = result.details
    if month:
        try:
            details = filter_month(details, month)
        except ValueError as exc:
            typer.echo(str(exc))
            raise typer.Exit(1)

    table = Table(title=f"Transactions ({len(details)})")
    table.add_column("Date")
    table.add_column("Description")
    table.add_column("Category")
    table.add_column("Source", style="dim")
    table.add_column("Amount", justify="right")
    table.add_column("Note", style="dim")
    for d in details:
        color = "green" if d.direction == "income" else "red"
        amount = f"[{color}]{_money(d.amount)}[/{color}]"
        if should_skip(d):
            amount = f"[dim]({_money(d.amount)})[/dim]"
        note = d.match_reason or ("adjusted" if d.user_adjusted_direction else "")
        table.add_row(d.date, d.description, d.category or "", d.source, amount, note)
    console.print(table)

    if result.credit_charge_cycles:
        ctable = Table(title="Card Cycles")
        ctable.add_column("Charge Date")
        ctable.add_column("Card")
        ctable.add_column("Net", justify="right")
        ctable.add_column("Bank Match")
        for c in result.credit_charge_cycles:
            status = c.bank_match_status if c.bank_match_status != "none" else "[yellow]none[/yellow]"
            ctable.add_row(c.charge_date, c.card_last4, _money(c.net_charge), status)
        console.print(ctable)

    totals = summarize(details)
    console.print(
        f"Income: {_money(totals['total_income'])}  "
        f"Expenses: {_money(totals['total_expenses'])}  "
        f"Net: {_money(totals['net'])}"
    )

    missing = result.missing_bank_matches
    if missing:
        console.print(f"[yellow]{len(missing)} card cycle(s) have no matching bank charge.[/yellow]")
    for u in result.unmatched_credit_charges:
        console.print(f"[yellow]Possible card bill not matched: {u.date} {u.description} {_money(u.amount)}[/yellow]")
    for name in result.skipped_files:
        console.print(f"[yellow]Skipped file: {name}[/yellow]")
    for key in result.cancelled_sheets:
        console.print(f"[yellow]Skipped sheet (type not chosen): {key}[/yellow]")
    for o in result.overlapping_ranges:
        console.print(
            f"[yellow]{o.file1} and {o.file2} overlap by {o.overlap_percent}% "
            f"({o.range1['from']}-{o.range1['to']})[/yellow]"
        )


# --- Rules ---

from kupa.models import RuleConditions
from kupa.rules import create_rule, move_rule, remove_rule
from kupa.store import conditions_to_dict

rules_app = typer.Typer(help="Manage category rules.")
app.add_typer(rules_app, name="rules")


def _save_rules(store: SidecarStore, rules) -> None:
    if not store.save_rules(rules):
        typer.echo("Warning: could not save category-rules.json")


@rules_app.command("list")
def rules_list(directory: Path = typer.Argument(help="Statement folder")):
    """List category rules in evaluation order."""
    rules = _store(directory).load().rules

    table = Table(title="Rules")
    table.add_column("#", style="dim")
    table.add_column("ID", style="dim")
    table.add_column("Category")
    table.add_column("Conditions")
    table.add_column("Active")
    for i, r in enumerate(rules, start=1):
        conditions = ", ".join(f"{k}={v}" for k, v in conditions_to_dict(r.conditions).items())
        table.add_row(str(i), r.id, r.category, conditions, "yes" if r.active else "no")
    console.print(table)


@rules_app.command("add")
def rules_add(
    directory: Path = typer.Argument(help="Statement folder"),
    category: str = typer.Argument(help="Category to assign"),
    equals: str = typer.Option(None, help="Exact description"),
    contains: str = typer.Option(None, help="Text contained in the cleaned description"),
    regex: str = typer.Option(None, help="Regular expression on the description"),
    txn: str = typer.Option(None, help="Pin a single transaction id"),
    min_amount: float = typer.Option(None, "--min", help="Minimum amount"),
    max_amount: float = typer.Option(None, "--max", help="Maximum amount"),
    source: str = typer.Option(None, help="credit or bank"),
    direction: str = typer.Option(None, help="income or expense"),
    date_from: str = typer.Option(None, "--date-from", help="YYYY-MM-DD"),
    date_to: str = typer.Option(None, "--date-to", help="YYYY-MM-DD"),
):
    """Append a category rule."""
    conditions = RuleConditions(
        description_equals=equals,
        description_contains=contains,
        description_regex=regex,
        transaction_id=txn,
        min_amount=min_amount,
        max_amount=max_amount,
        source=source,
        direction=direction,
        date_from=date_from,
        date_to=date_to,
    )
    try:
        rule = create_rule(category, conditions)
    except ValueError as exc:
        typer.echo(str(exc))
        raise typer.Exit(1)

    store = _store(directory)
    rules = store.load().rules
    _save_rules(store, [*rules, rule])
    typer.echo(f"Added rule {rule.id} → {category}")


@rules_app.command("move")
def rules_move(
    directory: Path = typer.Argument(help="Statement folder"),
    rule_id: str = typer.Argument(help="Rule id"),
    position: int = typer.Argument(help="New position, 1 = evaluated first"),
):
    """Change where a rule sits in evaluation order."""
    store = _store(directory)
    try:
        rules = move_rule(store.load().rules, rule_id, position - 1)
    except ValueError as exc:
        typer.echo(str(exc))
        raise typer.Exit(1)
    _save_rules(store, rules)
    typer.echo(f"Moved rule {rule_id} to position {max(1, min(position, len(rules)))}")


@rules_app.command("remove")
def rules_remove(
    directory: Path = typer.Argument(help="Statement folder"),
    rule_id: str = typer.Argument(help="Rule id"),
):
    """Delete a rule."""
    store = _store(directory)
    try:
        rules = remove_rule(store.load().rules, rule_id)
    except ValueError as exc:
        typer.echo(str(exc))
        raise typer.Exit(1)
    _save_rules(store, rules)
    typer.echo(f"Removed rule {rule_id}")


# --- Overrides and aliases ---

from kupa.overrides import clear_direction_override, set_direction_override


@app.command()
def direction(
    directory: Path = typer.Argument(help="Statement folder"),
    transaction_id: str = typer.Argument(help="Transaction id"),
    value: str = typer.Argument(None, help="income or expense"),
    note: str = typer.Option(None, help="Why the direction was changed"),
    clear: bool = typer.Option(False, "--clear", help="Remove the override"),
):
    """Force a transaction's direction, or clear a forced direction."""
    store = _store(directory)
    overrides = store.load_direction_overrides()
    if clear:
        overrides = clear_direction_override(overrides, transaction_id)
        message = f"Cleared direction override for {transaction_id}"
    else:
        try:
            overrides = set_direction_override(overrides, transaction_id, value or "", note)
        except ValueError as exc:
            typer.echo(str(exc))
            raise typer.Exit(1)
        message = f"{transaction_id} → {value}"
    if not store.save_direction_overrides(overrides):
        typer.echo("Warning: could not save directionOverrides.json")
    typer.echo(message)


@app.command()
def alias(
    directory: Path = typer.Argument(help="Statement folder"),
    from_category: str = typer.Argument(help="Category to rename"),
    to_category: str = typer.Argument(help="Category it becomes"),
):
    """Merge one category name into another."""
    store = _store(directory)
    aliases = store.load().category_aliases
    aliases[from_category] = to_category
    if not store.save_category_aliases(aliases):
        typer.echo("Warning: could not save categories-aliases.json")
    typer.echo(f"Alias: {from_category} → {to_category}")


@app.command()
def describe(
    directory: Path = typer.Argument(help="Statement folder"),
    description: str = typer.Argument(help="Exact transaction description"),
    category: str = typer.Argument(help="Category for uncategorized rows with this description"),
):
    """Give uncategorized transactions with a description a default category."""
    store = _store(directory)
    mapping = store.load().description_categories
    mapping[description] = category
    if not store.save_description_categories(mapping):
        typer.echo("Warning: could not save description-categories.json")
    typer.echo(f"{description} → {category}")


@app.command("sheet-type")
def sheet_type(
    directory: Path = typer.Argument(help="Statement folder"),
    key: str = typer.Argument(help="file.xlsx::Sheet name, or file.csv"),
    value: str = typer.Argument(help="bank or credit"),
):
    """Record what kind of statement a sheet is."""
    if value not in ("bank", "credit"):
        typer.echo(f"Sheet type must be bank or credit, got {value!r}")
        raise typer.Exit(1)
    store = _store(directory)
    overrides = store.load_sheet_type_overrides()
    overrides[key] = value
    if not store.save_sheet_type_overrides(overrides):
        typer.echo("Warning: could not save sheetTypeOverrides.json")
    typer.echo(f"{key} → {value}")


if __name__ == "__main__":
    app()
