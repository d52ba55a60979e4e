"""
Budget Projections - Actuals, cash flow and budget performance

Views built from a BudgetDocument and the year's transactions, plus the
next year's budget seeded from this year's actuals at year end.
Nothing here writes; the reallocation engine is what keeps the budget's
OPEX and CAPEX buckets following real spending.
"""

from collections.abc import Iterable
from decimal import Decimal

from pydantic import BaseModel, Field

from clubfin.budget.models import BudgetDocument, MonthlyBudget
from clubfin.fiscal.calendar import MONTHS_PER_YEAR, fiscal_month_name, fiscal_month_of
from clubfin.kernel.logging import get_logger
from clubfin.ledger.models import MaintenanceItem
from clubfin.transactions.models import ExpenseType, Transaction, TransactionType

logger = get_logger(__name__)

ZERO = Decimal("0")


class MonthlyActuals(BaseModel):
    """Transaction totals for one fiscal month"""

    month: int
    revenue: Decimal = ZERO
    opex: Decimal = ZERO
    capex: Decimal = ZERO
    ga: Decimal = ZERO
    transaction_count: int = 0

    @property
    def net(self) -> Decimal:
        return self.revenue - self.opex - self.capex - self.ga


class CashFlowRow(BaseModel):
    """One month of the cash-flow projection"""

    month: int
    month_name: str
    calendar_date: str
    is_past: bool
    is_current: bool
    has_actuals: bool
    revenue: Decimal
    opex: Decimal
    capex: Decimal
    ga: Decimal
    actual_net: Decimal
    actual_balance: Decimal
    revenue_budget: Decimal
    opex_budget: Decimal
    capex_budget: Decimal
    ga_budget: Decimal
    budgeted_net: Decimal
    budgeted_balance: Decimal
    transaction_count: int


class BalanceWarning(BaseModel):
    month: int
    month_name: str
    balance: Decimal
    threshold: Decimal
    deficit: Decimal
    is_critical: bool


class LinePerformance(BaseModel):
    budget: Decimal = ZERO
    actual: Decimal = ZERO

    @property
    def variance(self) -> Decimal:
        """Actual minus budget (positive = over budget for expenses)"""
        return self.actual - self.budget


class BudgetPerformance(BaseModel):
    """
    Year-to-date budget vs actual

    G&A is reported inside OPEX; the ga line is kept for report layouts
    and always reads zero.
    """

    revenue: LinePerformance = Field(default_factory=LinePerformance)
    opex: LinePerformance = Field(default_factory=LinePerformance)
    capex: LinePerformance = Field(default_factory=LinePerformance)
    ga: LinePerformance = Field(default_factory=LinePerformance)
    net: LinePerformance = Field(default_factory=LinePerformance)


def calculate_monthly_actuals(
    transactions: Iterable[Transaction], fiscal_year: int
) -> list[MonthlyActuals]:
    """
    Total the year's transactions by fiscal month

    Transactions dated outside the fiscal year are ignored.
    """
    actuals = [MonthlyActuals(month=month) for month in range(MONTHS_PER_YEAR)]

    for txn in transactions:
        month = fiscal_month_of(txn.date, fiscal_year)
        if month is None:
            continue

        bucket = actuals[month]
        if txn.type == TransactionType.REVENUE:
            bucket.revenue += txn.amount
        elif txn.expense_type == ExpenseType.OPEX:
            bucket.opex += txn.amount
        elif txn.expense_type == ExpenseType.CAPEX:
            bucket.capex += txn.amount
        elif txn.expense_type == ExpenseType.GA:
            bucket.ga += txn.amount
        else:
            logger.warning(
                "Unrecognized expense type",
                transaction_id=txn.id,
                expense_type=txn.expense_type,
            )
            continue
        bucket.transaction_count += 1

    return actuals


def generate_cash_flow_projection(
    budget: BudgetDocument, actuals: list[MonthlyActuals], current_month: int
) -> list[CashFlowRow]:
    """
    Running actual and budgeted balances from starting_balance

    Months up to and including current_month are flagged as past.
    """
    actual_balance = budget.starting_balance
    budgeted_balance = budget.starting_balance
    rows: list[CashFlowRow] = []

    for month in range(MONTHS_PER_YEAR):
        planned = budget.monthly_budgets[month]
        actual = actuals[month]
        actual_balance += actual.net
        budgeted_balance += planned.net()
        name = fiscal_month_name(month, budget.fiscal_year)

        rows.append(
            CashFlowRow(
                month=month,
                month_name=name.month_name,
                calendar_date=name.calendar_date,
                is_past=month <= current_month,
                is_current=month == current_month,
                has_actuals=actual.transaction_count > 0,
                revenue=actual.revenue,
                opex=actual.opex,
                capex=actual.capex,
                ga=actual.ga,
                actual_net=actual.net,
                actual_balance=actual_balance,
                revenue_budget=planned.revenue,
                opex_budget=planned.opex,
                capex_budget=planned.capex,
                ga_budget=planned.ga,
                budgeted_net=planned.net(),
                budgeted_balance=budgeted_balance,
                transaction_count=actual.transaction_count,
            )
        )

    return rows


def check_balance_warnings(
    projection: list[CashFlowRow], threshold: Decimal = Decimal("20000")
) -> list[BalanceWarning]:
    """
    Warn when the year-end (September) budgeted balance is below threshold

    The warning is critical when that balance is negative.
    """
    if len(projection) < MONTHS_PER_YEAR:
        return []

    year_end = projection[MONTHS_PER_YEAR - 1]
    if year_end.budgeted_balance >= threshold:
        return []

    return [
        BalanceWarning(
            month=year_end.month,
            month_name=year_end.month_name,
            balance=year_end.budgeted_balance,
            threshold=threshold,
            deficit=threshold - year_end.budgeted_balance,
            is_critical=year_end.budgeted_balance < 0,
        )
    ]


def calculate_budget_performance(
    budget: BudgetDocument, actuals: list[MonthlyActuals], current_month: int
) -> BudgetPerformance:
    """Year-to-date totals through current_month (inclusive)"""
    performance = BudgetPerformance()

    for month in range(min(current_month, MONTHS_PER_YEAR - 1) + 1):
        planned = budget.monthly_budgets[month]
        actual = actuals[month]

        performance.revenue.budget += planned.revenue
        performance.revenue.actual += actual.revenue
        performance.opex.budget += planned.opex + planned.ga
        performance.opex.actual += actual.opex + actual.ga
        performance.capex.budget += planned.capex
        performance.capex.actual += actual.capex

    performance.net.budget = (
        performance.revenue.budget - performance.opex.budget - performance.capex.budget
    )
    performance.net.actual = (
        performance.revenue.actual - performance.opex.actual - performance.capex.actual
    )
    return performance


def build_next_year_budget(
    budget: BudgetDocument,
    actuals: list[MonthlyActuals],
    maintenance_items: Iterable[MaintenanceItem],
) -> BudgetDocument:
    """
    Next fiscal year's budget, seeded from this year's actuals

    Revenue and G&A repeat this year's actuals month by month. OPEX repeats
    the actuals less the major maintenance planned in that month (never
    below zero), since recurring projects are budgeted again by hand.
    CAPEX starts at zero. The starting balance carries over as
    starting_balance + revenue - opex - capex - ga.

    Args:
        budget: This fiscal year's budget
        actuals: calculate_monthly_actuals() for this fiscal year
        maintenance_items: This fiscal year's major-maintenance items

    Returns:
        Unsaved BudgetDocument for budget.fiscal_year + 1
    """
    maintenance_by_month = [ZERO] * MONTHS_PER_YEAR
    for item in maintenance_items:
        maintenance_by_month[item.month] += item.budget_amount

    months = []
    for actual in actuals:
        excluded = maintenance_by_month[actual.month]
        note = f"Based on FY{budget.fiscal_year} actuals"
        if excluded > 0:
            note += " (major maintenance excluded)"
        months.append(
            MonthlyBudget(
                revenue=actual.revenue,
                opex=max(ZERO, actual.opex - excluded),
                capex=ZERO,
                ga=actual.ga,
                notes=note,
            )
        )

    return BudgetDocument(
        fiscal_year=budget.fiscal_year + 1,
        monthly_budgets=months,
        starting_balance=budget.starting_balance + sum((a.net for a in actuals), ZERO),
        low_balance_threshold=budget.low_balance_threshold,
    )
