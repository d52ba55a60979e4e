"""
clubfin CLI

Command-line interface over a SQLite document database.
Provides commands for budgets, maintenance items, CAPEX projects,
transactions, alerts and cash flow.

Usage:
    clubfin init --db club.db
    clubfin budget create --fiscal-year 2026 --starting-balance 18500
    clubfin maintenance add --fiscal-year 2026 --name "Pool resurfacing" \\
        --amount 12000 --month 5 --min-years 7 --max-years 10
    clubfin txn add --date 2026-04-10 --amount 9000 --type expense \\
        --expense-type OPEX --maintenance-id <id>
    clubfin alerts
    clubfin cashflow --fiscal-year 2026
"""

import json
from datetime import date
from decimal import Decimal, InvalidOperation
from functools import wraps
from pathlib import Path
from typing import Any, Callable, Optional

import typer
from pydantic import ValidationError
from typing_extensions import Annotated

from clubfin.fiscal.calendar import fiscal_month_name
from clubfin.kernel.errors import ClubFinError
from clubfin.kernel.logging import configure_logging
from clubfin.kernel.store import SQLiteDocumentStore
from clubfin.service import ClubFinance
from clubfin.transactions.models import TransactionInput

# Logs go to stderr so --json output on stdout stays parseable
configure_logging(log_level="WARNING")

app = typer.Typer(
    name="clubfin",
    help="clubfin - club budgets, maintenance forecasting and CAPEX planning",
    add_completion=False,
)

budget_app = typer.Typer(help="Annual budget commands")
maintenance_app = typer.Typer(help="Major-maintenance item commands")
capex_app = typer.Typer(help="CAPEX project commands")
txn_app = typer.Typer(help="Transaction commands")

app.add_typer(budget_app, name="budget")
app.add_typer(maintenance_app, name="maintenance")
app.add_typer(capex_app, name="capex")
app.add_typer(txn_app, name="txn")

DEFAULT_DB = Path(".clubfin.db")

DbOption = Annotated[Optional[Path], typer.Option("--db", help="Database path")]
JsonOption = Annotated[bool, typer.Option("--json", help="Output as JSON")]


def get_club(db_path: Optional[Path] = None) -> ClubFinance:
    """Open the club database"""
    db = db_path or DEFAULT_DB
    if not db.exists():
        typer.echo(f"Error: Database not found: {db}", err=True)
        typer.echo(f"Run 'clubfin init --db {db}' to initialize", err=True)
        raise typer.Exit(1)
    return ClubFinance(SQLiteDocumentStore(db))


def reports_errors(func: Callable[..., Any]) -> Callable[..., Any]:
    """Turn domain and validation errors into a message and exit code 1"""

    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except (ClubFinError, ValidationError) as e:
            typer.echo(f"Error: {e}", err=True)
            raise typer.Exit(1) from e

    return wrapper


def parse_amount(value: str) -> Decimal:
    try:
        return Decimal(value)
    except InvalidOperation:
        typer.echo(f"Error: Not an amount: {value}", err=True)
        raise typer.Exit(1) from None


def parse_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        typer.echo(f"Error: Expected YYYY-MM-DD, got {value}", err=True)
        raise typer.Exit(1) from None


def dump_json(data: Any) -> None:
    typer.echo(json.dumps(data, indent=2, default=str))


# Initialization command


@app.command()
def init(
    db: Annotated[Path, typer.Option(help="Database path")] = DEFAULT_DB,
) -> None:
    """Initialize a new clubfin database"""
    if db.exists():
        typer.echo(f"Error: Database already exists: {db}", err=True)
        raise typer.Exit(1)

    SQLiteDocumentStore(db)
    typer.echo(f"✓ Initialized clubfin database: {db}")


# Budget commands


@budget_app.command("create")
@reports_errors
def budget_create(
    fiscal_year: Annotated[int, typer.Option("--fiscal-year", help="Fiscal year")],
    starting_balance: Annotated[
        str, typer.Option("--starting-balance", help="Cash on October 1")
    ] = "0",
    threshold: Annotated[
        Optional[str],
        typer.Option("--threshold", help="Low-balance warning threshold"),
    ] = None,
    db: DbOption = None,
) -> None:
    """Create the budget for a fiscal year"""
    club = get_club(db)
    budget = club.create_budget(
        fiscal_year,
        starting_balance=parse_amount(starting_balance),
        low_balance_threshold=parse_amount(threshold) if threshold else None,
    )
    typer.echo(f"✓ Created budget for FY{budget.fiscal_year}")
    typer.echo(f"  Starting balance: ${budget.starting_balance}")
    typer.echo(f"  Low-balance threshold: ${budget.low_balance_threshold}")


@budget_app.command("show")
@reports_errors
def budget_show(
    fiscal_year: Annotated[int, typer.Option("--fiscal-year", help="Fiscal year")],
    db: DbOption = None,
    json_output: JsonOption = False,
) -> None:
    """Show the twelve monthly buckets of a budget"""
    club = get_club(db)
    budget = club.get_budget(fiscal_year)

    if json_output:
        dump_json(budget.model_dump(mode="json"))
        return

    typer.echo(f"\nBudget FY{budget.fiscal_year}")
    typer.echo(f"  Starting balance: ${budget.starting_balance}")
    typer.echo(f"  Budgeted year-end balance: ${budget.year_end_budgeted_balance()}")
    typer.echo(f"\n  {'Month':<10} {'Revenue':>12} {'OPEX':>12} {'CAPEX':>12} {'G&A':>12}")
    for month, entry in enumerate(budget.monthly_budgets):
        name = fiscal_month_name(month, fiscal_year).month_name
        closed = " (closed)" if budget.is_month_closed(month) else ""
        typer.echo(
            f"  {name:<10} {entry.revenue:>12} {entry.opex:>12} "
            f"{entry.capex:>12} {entry.ga:>12}{closed}"
        )


@budget_app.command("set-month")
@reports_errors
def budget_set_month(
    fiscal_year: Annotated[int, typer.Option("--fiscal-year", help="Fiscal year")],
    month: Annotated[int, typer.Option("--month", help="Fiscal month (0 = October)")],
    revenue: Annotated[Optional[str], typer.Option("--revenue")] = None,
    opex: Annotated[Optional[str], typer.Option("--opex")] = None,
    capex: Annotated[Optional[str], typer.Option("--capex")] = None,
    ga: Annotated[Optional[str], typer.Option("--ga")] = None,
    db: DbOption = None,
) -> None:
    """Set planned amounts for one month"""
    club = get_club(db)
    updates = {
        field: parse_amount(value)
        for field, value in (("revenue", revenue), ("opex", opex), ("capex", capex), ("ga", ga))
        if value is not None
    }
    if not updates:
        typer.echo("Nothing to update", err=True)
        raise typer.Exit(1)

    club.update_budget_month(fiscal_year, month, **updates)
    typer.echo(f"✓ Updated {fiscal_month_name(month, fiscal_year).month_name} FY{fiscal_year}")


@budget_app.command("close-month")
@reports_errors
def budget_close_month(
    fiscal_year: Annotated[int, typer.Option("--fiscal-year", help="Fiscal year")],
    month: Annotated[int, typer.Option("--month", help="Fiscal month (0 = October)")],
    db: DbOption = None,
) -> None:
    """Lock a month against transaction changes"""
    club = get_club(db)
    budget = club.close_month(fiscal_year, month)
    typer.echo(f"✓ Closed month {month} of FY{fiscal_year}")
    typer.echo(f"  Closed months: {budget.closed_months}")


@budget_app.command("reopen-month")
@reports_errors
def budget_reopen_month(
    fiscal_year: Annotated[int, typer.Option("--fiscal-year", help="Fiscal year")],
    month: Annotated[int, typer.Option("--month", help="Fiscal month (0 = October)")],
    db: DbOption = None,
) -> None:
    """Reopen a closed month"""
    club = get_club(db)
    club.reopen_month(fiscal_year, month)
    typer.echo(f"✓ Reopened month {month} of FY{fiscal_year}")


@budget_app.command("close-year")
@reports_errors
def budget_close_year(
    fiscal_year: Annotated[int, typer.Option("--fiscal-year", help="Fiscal year to close")],
    db: DbOption = None,
) -> None:
    """Create next year's budget from this year's actuals"""
    club = get_club(db)
    next_budget = club.close_fiscal_year(fiscal_year)
    typer.echo(f"✓ Closed FY{fiscal_year}, created budget for FY{next_budget.fiscal_year}")
    typer.echo(f"  Starting balance: ${next_budget.starting_balance}")
    typer.echo("  CAPEX starts at $0 and major maintenance is excluded; plan them again")


# Maintenance commands


@maintenance_app.command("add")
@reports_errors
def maintenance_add(
    fiscal_year: Annotated[int, typer.Option("--fiscal-year", help="Fiscal year")],
    name: Annotated[str, typer.Option("--name", help="Item name")],
    amount: Annotated[str, typer.Option("--amount", help="Planned cost")],
    month: Annotated[int, typer.Option("--month", help="Fiscal month (0 = October)")],
    min_years: Annotated[int, typer.Option("--min-years", help="Minimum years between")],
    max_years: Annotated[int, typer.Option("--max-years", help="Maximum years between")],
    alert_year: Annotated[
        Optional[int], typer.Option("--alert-year", help="Planning reminder year")
    ] = None,
    description: Annotated[str, typer.Option("--description")] = "",
    db: DbOption = None,
) -> None:
    """Plan a major-maintenance item"""
    club = get_club(db)
    item = club.add_maintenance_item(
        fiscal_year,
        name,
        parse_amount(amount),
        month,
        recurrence_years_min=min_years,
        recurrence_years_max=max_years,
        alert_year=alert_year,
        description=description,
    )
    typer.echo(f"✓ Added maintenance item: {item.id}")
    typer.echo(f"  {item.name}: ${item.budget_amount} in month {item.month}")
    if item.next_expected_cost is not None:
        typer.echo(f"  Forecast: ${item.next_expected_cost} on {item.next_due_date_min}")


@maintenance_app.command("list")
@reports_errors
def maintenance_list(
    fiscal_year: Annotated[
        Optional[int], typer.Option("--fiscal-year", help="Filter by fiscal year")
    ] = None,
    db: DbOption = None,
    json_output: JsonOption = False,
) -> None:
    """List maintenance items"""
    club = get_club(db)
    items = club.list_maintenance_items(fiscal_year)

    if json_output:
        dump_json([item.model_dump(mode="json") for item in items])
        return

    if not items:
        typer.echo("No maintenance items")
        return

    typer.echo(f"Maintenance items ({len(items)}):")
    for item in items:
        state = "linked" if item.is_linked else "planned"
        typer.echo(
            f"  {item.id}: {item.name} FY{item.fiscal_year} month {item.month} "
            f"${item.budget_amount} [{state}]"
        )
        if item.is_linked:
            typer.echo(
                f"    Actual: ${item.total_actual_amount} "
                f"({len(item.linked_transactions)} transaction(s), "
                f"planned in month {item.original_month})"
            )


@maintenance_app.command("delete")
@reports_errors
def maintenance_delete(
    item_id: Annotated[str, typer.Option("--id", help="Maintenance item ID")],
    db: DbOption = None,
) -> None:
    """Delete an item along with its linked transactions"""
    club = get_club(db)
    club.delete_maintenance_item(item_id)
    typer.echo(f"✓ Deleted maintenance item: {item_id}")


# CAPEX commands


@capex_app.command("add")
@reports_errors
def capex_add(
    fiscal_year: Annotated[int, typer.Option("--fiscal-year", help="Fiscal year")],
    name: Annotated[str, typer.Option("--name", help="Project name")],
    amount: Annotated[str, typer.Option("--amount", help="Planned cost")],
    month: Annotated[int, typer.Option("--month", help="Fiscal month (0 = October)")],
    alert_year: Annotated[
        Optional[int], typer.Option("--alert-year", help="Replacement reminder year")
    ] = None,
    description: Annotated[str, typer.Option("--description")] = "",
    db: DbOption = None,
) -> None:
    """Plan a CAPEX project"""
    club = get_club(db)
    project = club.add_capex_project(
        fiscal_year,
        name,
        parse_amount(amount),
        month,
        alert_year=alert_year,
        description=description,
    )
    typer.echo(f"✓ Added CAPEX project: {project.id}")
    typer.echo(f"  {project.name}: ${project.amount} in month {project.month}")


@capex_app.command("list")
@reports_errors
def capex_list(
    fiscal_year: Annotated[
        Optional[int], typer.Option("--fiscal-year", help="Filter by fiscal year")
    ] = None,
    db: DbOption = None,
    json_output: JsonOption = False,
) -> None:
    """List CAPEX projects"""
    club = get_club(db)
    projects = club.list_capex_projects(fiscal_year)

    if json_output:
        dump_json([project.model_dump(mode="json") for project in projects])
        return

    if not projects:
        typer.echo("No CAPEX projects")
        return

    typer.echo(f"CAPEX projects ({len(projects)}):")
    for project in projects:
        state = "completed" if project.completed else ("linked" if project.is_linked else "planned")
        typer.echo(
            f"  {project.id}: {project.name} FY{project.fiscal_year} month {project.month} "
            f"${project.amount} [{state}]"
        )


@capex_app.command("delete")
@reports_errors
def capex_delete(
    project_id: Annotated[str, typer.Option("--id", help="CAPEX project ID")],
    db: DbOption = None,
) -> None:
    """Delete a project along with its linked transactions"""
    club = get_club(db)
    club.delete_capex_project(project_id)
    typer.echo(f"✓ Deleted CAPEX project: {project_id}")


# Transaction commands


@txn_app.command("add")
@reports_errors
def txn_add(
    txn_date: Annotated[str, typer.Option("--date", help="Date (YYYY-MM-DD)")],
    amount: Annotated[str, typer.Option("--amount", help="Amount (unsigned)")],
    txn_type: Annotated[str, typer.Option("--type", help="revenue or expense")],
    expense_type: Annotated[
        Optional[str], typer.Option("--expense-type", help="OPEX, CAPEX or G&A")
    ] = None,
    description: Annotated[str, typer.Option("--description")] = "",
    maintenance_id: Annotated[
        Optional[str], typer.Option("--maintenance-id", help="Link to maintenance item")
    ] = None,
    capex_id: Annotated[
        Optional[str], typer.Option("--capex-id", help="Link to CAPEX project")
    ] = None,
    fiscal_year: Annotated[
        Optional[int], typer.Option("--fiscal-year", help="Book under this fiscal year")
    ] = None,
    complete: Annotated[
        bool, typer.Option("--complete", help="Mark the linked item complete")
    ] = False,
    db: DbOption = None,
) -> None:
    """Record a transaction"""
    club = get_club(db)
    result = club.save_transaction(
        TransactionInput(
            date=parse_date(txn_date),
            amount=parse_amount(amount),
            type=txn_type,
            expense_type=expense_type,
            description=description,
            major_maintenance_item_id=maintenance_id,
            capex_project_id=capex_id,
            fiscal_year=fiscal_year,
            mark_item_complete=complete,
        )
    )
    _report_save(result)


@txn_app.command("edit")
@reports_errors
def txn_edit(
    transaction_id: Annotated[str, typer.Option("--id", help="Transaction ID")],
    txn_date: Annotated[Optional[str], typer.Option("--date", help="New date")] = None,
    amount: Annotated[Optional[str], typer.Option("--amount", help="New amount")] = None,
    description: Annotated[Optional[str], typer.Option("--description")] = None,
    complete: Annotated[
        bool, typer.Option("--complete", help="Mark the linked item complete")
    ] = False,
    db: DbOption = None,
) -> None:
    """Change a transaction's date, amount or description"""
    club = get_club(db)
    current = club.get_transaction(transaction_id)

    changes: dict[str, Any] = {"mark_item_complete": complete}
    if txn_date is not None:
        changes["date"] = parse_date(txn_date)
    if amount is not None:
        changes["amount"] = parse_amount(amount)
    if description is not None:
        changes["description"] = description

    data = TransactionInput.model_validate(
        {**current.model_dump(include=set(TransactionInput.model_fields)), **changes}
    )
    _report_save(club.save_transaction(data))


@txn_app.command("list")
@reports_errors
def txn_list(
    fiscal_year: Annotated[
        Optional[int], typer.Option("--fiscal-year", help="Filter by fiscal year")
    ] = None,
    db: DbOption = None,
    json_output: JsonOption = False,
) -> None:
    """List transactions"""
    club = get_club(db)
    transactions = club.list_transactions(fiscal_year)

    if json_output:
        dump_json([txn.model_dump(mode="json") for txn in transactions])
        return

    if not transactions:
        typer.echo("No transactions")
        return

    typer.echo(f"Transactions ({len(transactions)}):")
    for txn in transactions:
        kind = txn.expense_type.value if txn.expense_type else txn.type.value
        link = f" -> {txn.linked_item_id}" if txn.linked_item_id else ""
        typer.echo(f"  {txn.id}: {txn.date} {kind} ${txn.amount} {txn.description}{link}")


@txn_app.command("delete")
@reports_errors
def txn_delete(
    transaction_id: Annotated[str, typer.Option("--id", help="Transaction ID")],
    db: DbOption = None,
) -> None:
    """Delete a transaction and reverse its budget effect"""
    club = get_club(db)
    outcome = club.delete_transaction(transaction_id)
    typer.echo(f"✓ Deleted transaction: {transaction_id}")
    if outcome.item is not None and not outcome.item.is_linked:
        typer.echo(f"  Planned allocation back in month {outcome.item.month}")


def _report_save(result: Any) -> None:
    txn = result.transaction
    typer.echo(f"✓ Saved transaction: {txn.id}")
    typer.echo(f"  {txn.date} ${txn.amount} (FY{txn.fiscal_year})")

    outcome = result.reallocation
    if outcome.item is not None:
        typer.echo(
            f"  Linked to {outcome.item.name}: now in month {outcome.item.month}, "
            f"actual ${outcome.item.total_actual_amount}"
        )
    for skip in outcome.skips:
        typer.echo(f"  Warning: {skip.message}", err=True)


# Reporting commands


@app.command()
@reports_errors
def alerts(
    db: DbOption = None,
    json_output: JsonOption = False,
) -> None:
    """Show maintenance and CAPEX alerts, most urgent first"""
    club = get_club(db)
    maintenance = club.maintenance_alerts()
    capex = club.capex_alerts()

    if json_output:
        dump_json(
            {
                "maintenance": [entry.model_dump(mode="json") for entry in maintenance],
                "capex": [entry.model_dump(mode="json") for entry in capex],
            }
        )
        return

    if not maintenance and not capex:
        typer.echo("No tracked items with due dates")
        return

    for title, entries in (("Maintenance", maintenance), ("CAPEX", capex)):
        if not entries:
            continue
        typer.echo(f"\n{title} alerts ({len(entries)}):")
        for entry in entries:
            alert = entry.alert
            typer.echo(
                f"  [{alert.status.value.upper():<8}] {entry.item.name}: due {alert.due_date} "
                f"({alert.years_until:.1f} years)"
            )


@app.command()
@reports_errors
def cashflow(
    fiscal_year: Annotated[int, typer.Option("--fiscal-year", help="Fiscal year")],
    month: Annotated[
        Optional[int], typer.Option("--month", help="Current fiscal month (default: today)")
    ] = None,
    db: DbOption = None,
    json_output: JsonOption = False,
) -> None:
    """Show the cash-flow projection and balance warnings"""
    club = get_club(db)
    report = club.cash_flow(fiscal_year, month)

    if json_output:
        dump_json(report.model_dump(mode="json"))
        return

    typer.echo(f"\nCash flow FY{fiscal_year}")
    typer.echo(f"  {'Month':<10} {'Actual net':>12} {'Balance':>12} {'Budget net':>12} {'Budgeted':>12}")
    for row in report.projection:
        marker = "*" if row.is_current else " "
        typer.echo(
            f" {marker}{row.month_name:<10} {row.actual_net:>12} {row.actual_balance:>12} "
            f"{row.budgeted_net:>12} {row.budgeted_balance:>12}"
        )

    for warning in report.warnings:
        level = "CRITICAL" if warning.is_critical else "WARNING"
        typer.echo(
            f"\n{level}: {warning.month_name} budgeted balance ${warning.balance} "
            f"is ${warning.deficit} below ${warning.threshold}"
        )


def main() -> None:
    """Main entry point"""
    app()


if __name__ == "__main__":
    main()
