"""
Tests for budget models and read-only projections (actuals, cash flow,
performance)
"""

from datetime import date
from decimal import Decimal

import pytest
from pydantic import ValidationError

from clubfin.budget.models import BudgetBucket, BudgetDocument, MonthlyBudget
from clubfin.budget.projections import (
    build_next_year_budget,
    calculate_budget_performance,
    calculate_monthly_actuals,
    check_balance_warnings,
    generate_cash_flow_projection,
)
from clubfin.kernel.errors import InvalidFiscalMonth
from clubfin.ledger.models import MaintenanceItem
from clubfin.transactions.models import Transaction


# ========== Fixtures ==========


@pytest.fixture
def transactions() -> list[Transaction]:
    def txn(tid: str, on: date, amount: str, kind: str, expense_type: str | None = None):
        return Transaction(
            id=tid, date=on, amount=Decimal(amount), type=kind, expense_type=expense_type
        )

    return [
        txn("t1", date(2025, 10, 15), "6000", "revenue"),
        txn("t2", date(2025, 10, 20), "800", "expense", "OPEX"),
        txn("t3", date(2025, 11, 1), "200", "expense", "G&A"),
        txn("t4", date(2026, 3, 1), "300", "expense", "CAPEX"),
        txn("t5", date(2026, 10, 5), "999", "expense", "OPEX"),  # FY2027
    ]


# ========== BudgetDocument ==========


def test_budget_has_twelve_months() -> None:
    assert len(BudgetDocument(fiscal_year=2026).monthly_budgets) == 12
    with pytest.raises(ValidationError):
        BudgetDocument(fiscal_year=2026, monthly_budgets=[MonthlyBudget()] * 13)


def test_adjust_bucket(budget: BudgetDocument) -> None:
    assert budget.adjust(5, BudgetBucket.OPEX, Decimal("-250")) == Decimal("750")
    assert budget.bucket(5, BudgetBucket.OPEX) == Decimal("750")
    with pytest.raises(InvalidFiscalMonth):
        budget.adjust(12, BudgetBucket.OPEX, Decimal("1"))


def test_closed_months_normalized() -> None:
    budget = BudgetDocument(fiscal_year=2026, closed_months=[3, 1, 3])
    assert budget.closed_months == [1, 3]
    assert budget.is_month_closed(1)
    with pytest.raises(ValidationError):
        BudgetDocument(fiscal_year=2026, closed_months=[12])


def test_year_end_budgeted_balance(budget: BudgetDocument) -> None:
    # 25000 + 12 x (5000 - 1000 - 500)
    assert budget.year_end_budgeted_balance() == Decimal("67000")


# ========== Actuals ==========


def test_monthly_actuals(transactions: list[Transaction]) -> None:
    actuals = calculate_monthly_actuals(transactions, 2026)

    assert actuals[0].revenue == Decimal("6000")
    assert actuals[0].opex == Decimal("800")
    assert actuals[0].transaction_count == 2
    assert actuals[1].ga == Decimal("200")
    assert actuals[5].capex == Decimal("300")
    # October 2026 belongs to FY2027
    assert sum(a.transaction_count for a in actuals) == 4


# ========== Cash flow ==========


def test_cash_flow_projection(budget: BudgetDocument, transactions: list[Transaction]) -> None:
    actuals = calculate_monthly_actuals(transactions, 2026)
    rows = generate_cash_flow_projection(budget, actuals, current_month=1)

    assert len(rows) == 12
    assert rows[0].month_name == "October"
    assert rows[0].calendar_date == "2025-10"
    assert rows[0].actual_net == Decimal("5200")
    assert rows[0].actual_balance == Decimal("30200")
    assert rows[1].actual_balance == Decimal("30000")
    assert rows[1].is_current
    assert rows[0].is_past and rows[1].is_past and not rows[2].is_past
    assert not rows[2].has_actuals
    assert rows[0].budgeted_balance == Decimal("28500")
    assert rows[11].budgeted_balance == Decimal("67000")


def test_no_warning_above_threshold(budget: BudgetDocument) -> None:
    rows = generate_cash_flow_projection(budget, calculate_monthly_actuals([], 2026), 0)
    assert check_balance_warnings(rows, budget.low_balance_threshold) == []


def test_year_end_balance_warning() -> None:
    budget = BudgetDocument(
        fiscal_year=2026,
        monthly_budgets=[MonthlyBudget(opex=Decimal("1000")) for _ in range(12)],
        starting_balance=Decimal("10000"),
    )
    rows = generate_cash_flow_projection(budget, calculate_monthly_actuals([], 2026), 0)
    warnings = check_balance_warnings(rows, Decimal("20000"))

    assert len(warnings) == 1
    assert warnings[0].month == 11
    assert warnings[0].month_name == "September"
    assert warnings[0].balance == Decimal("-2000")
    assert warnings[0].deficit == Decimal("22000")
    assert warnings[0].is_critical


# ========== Performance ==========


def test_budget_performance_year_to_date(
    budget: BudgetDocument, transactions: list[Transaction]
) -> None:
    actuals = calculate_monthly_actuals(transactions, 2026)
    performance = calculate_budget_performance(budget, actuals, current_month=1)

    assert performance.revenue.budget == Decimal("10000")
    assert performance.revenue.actual == Decimal("6000")
    # G&A is reported inside OPEX
    assert performance.opex.actual == Decimal("1000")
    assert performance.opex.variance == Decimal("-1000")
    assert performance.ga.actual == Decimal("0")
    assert performance.capex.budget == Decimal("1000")
    assert performance.net.budget == Decimal("7000")
    assert performance.net.actual == Decimal("5000")


def test_performance_before_year_start(budget: BudgetDocument) -> None:
    performance = calculate_budget_performance(budget, calculate_monthly_actuals([], 2026), -1)
    assert performance.revenue.budget == Decimal("0")


# ========== Year-end rollover ==========


def test_next_year_budget_from_actuals(
    budget: BudgetDocument, transactions: list[Transaction], pool_item: MaintenanceItem
) -> None:
    gutters = pool_item.model_copy(
        update={"id": "majormaint_gutters", "month": 0, "budget_amount": Decimal("500")}
    )
    actuals = calculate_monthly_actuals(transactions, 2026)

    next_budget = build_next_year_budget(budget, actuals, [pool_item, gutters])

    assert next_budget.fiscal_year == 2027
    # 25000 + 6000 - 800 - 200 - 300
    assert next_budget.starting_balance == Decimal("29700")
    assert next_budget.low_balance_threshold == budget.low_balance_threshold

    october = next_budget.monthly_budgets[0]
    assert october.revenue == Decimal("6000")
    assert october.opex == Decimal("300")
    assert october.notes == "Based on FY2026 actuals (major maintenance excluded)"
    assert next_budget.monthly_budgets[1].ga == Decimal("200")
    assert next_budget.monthly_budgets[1].notes == "Based on FY2026 actuals"
    # maintenance planned beyond the actual spend never goes negative
    assert next_budget.monthly_budgets[5].opex == Decimal("0")
    assert next_budget.bucket_total(BudgetBucket.CAPEX) == Decimal("0")
