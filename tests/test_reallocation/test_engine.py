"""
Tests for the reallocation engine

Budget fixture: every FY2026 month carries 1000 OPEX and 500 CAPEX of
ordinary spending. The pool item parks 12000 in March (month 5), the roof
project parks 30000 in June (month 8).
"""

from decimal import Decimal

import pytest

from clubfin.budget.models import BudgetBucket, BudgetDocument
from clubfin.kernel.config import Settings
from clubfin.kernel.errors import LinkedItemNotFound, UnmappedFiscalMonth
from clubfin.kernel.time import FixedClock
from clubfin.ledger.models import CapexProject, MaintenanceItem, Planned
from clubfin.reallocation.engine import ReallocationEngine
from clubfin.repository import FinanceRepository

from tests.helpers import FY, make_expense

OPEX = BudgetBucket.OPEX
CAPEX = BudgetBucket.CAPEX


def opex(repo: FinanceRepository, month: int, fiscal_year: int = FY) -> Decimal:
    budget = repo.get_budget(fiscal_year)
    assert budget is not None
    return budget.bucket(month, OPEX)


def capex(repo: FinanceRepository, month: int) -> Decimal:
    budget = repo.get_budget(FY)
    assert budget is not None
    return budget.bucket(month, CAPEX)


def pool(repo: FinanceRepository) -> MaintenanceItem:
    item = repo.get_maintenance_item("majormaint_pool")
    assert item is not None
    return item


# ========== Create ==========


def test_first_link_releases_plan_and_applies_actual(
    engine: ReallocationEngine, repo: FinanceRepository, planned_pool: MaintenanceItem
) -> None:
    """Planned 12000 leaves March; 3000 spent in March lands in March"""
    assert opex(repo, 5) == Decimal("13000")

    txn = make_expense("txn_a", "2026-03-10", "3000", maintenance_id=planned_pool.id)
    outcome = engine.on_create(txn, False, repo)

    assert outcome.touched_budgets == [FY]
    assert outcome.skips == []
    assert opex(repo, 5) == Decimal("4000")

    item = pool(repo)
    assert item.allocation_released
    assert item.original_month == 5
    assert item.linked_transactions[0].applied_month == 5


def test_pool_scenario_two_payments(
    engine: ReallocationEngine, repo: FinanceRepository, planned_pool: MaintenanceItem
) -> None:
    """3000 deposit in March, 9000 balance in April"""
    engine.on_create(make_expense("txn_a", "2026-03-10", "3000", maintenance_id=planned_pool.id), False, repo)
    engine.on_create(make_expense("txn_b", "2026-04-10", "9000", maintenance_id=planned_pool.id), True, repo)

    assert opex(repo, 5) == Decimal("4000")
    assert opex(repo, 6) == Decimal("10000")

    item = pool(repo)
    assert item.completed
    assert item.total_actual_amount == Decimal("12000")
    assert item.last_occurrence is not None
    assert str(item.last_occurrence.date) == "2026-04-10"


def test_total_opex_conserved_when_actual_matches_plan(
    engine: ReallocationEngine, repo: FinanceRepository, planned_pool: MaintenanceItem
) -> None:
    before = repo.get_budget(FY).bucket_total(OPEX)

    engine.on_create(make_expense("txn_a", "2026-03-10", "3000", maintenance_id=planned_pool.id), False, repo)
    engine.on_create(make_expense("txn_b", "2026-04-10", "9000", maintenance_id=planned_pool.id), False, repo)

    assert repo.get_budget(FY).bucket_total(OPEX) == before


def test_plain_expense_touches_nothing(
    engine: ReallocationEngine, repo: FinanceRepository, budget: BudgetDocument
) -> None:
    outcome = engine.on_create(make_expense("txn_x", "2026-03-10", "50"), False, repo)
    assert outcome.item is None
    assert outcome.touched_budgets == []
    assert opex(repo, 5) == Decimal("1000")


def test_capex_project_link(
    engine: ReallocationEngine, repo: FinanceRepository, planned_roof: CapexProject
) -> None:
    txn = make_expense("txn_r", "2026-06-20", "28500", capex_id=planned_roof.id)
    outcome = engine.on_create(txn, True, repo)

    assert capex(repo, 8) == Decimal("29000")
    assert opex(repo, 8) == Decimal("1000")
    assert isinstance(outcome.item, CapexProject)
    assert outcome.item.completed
    assert outcome.item.actual_amount == Decimal("28500")


def test_unknown_item_aborts_without_writes(
    engine: ReallocationEngine, repo: FinanceRepository, planned_pool: MaintenanceItem
) -> None:
    txn = make_expense("txn_a", "2026-03-10", "3000", maintenance_id="majormaint_nope")

    with pytest.raises(LinkedItemNotFound) as exc_info:
        engine.on_create(txn, False, repo)

    assert exc_info.value.item_id == "majormaint_nope"
    assert opex(repo, 5) == Decimal("13000")
    assert not pool(repo).is_linked


# ========== Edit ==========


def test_amount_edit_nets_difference(
    engine: ReallocationEngine, repo: FinanceRepository, planned_pool: MaintenanceItem
) -> None:
    old = make_expense("txn_a", "2026-03-10", "3000", maintenance_id=planned_pool.id)
    engine.on_create(old, False, repo)

    new = make_expense("txn_a", "2026-03-10", "3500", maintenance_id=planned_pool.id)
    engine.on_edit(old, new, False, repo)

    assert opex(repo, 5) == Decimal("4500")
    item = pool(repo)
    assert len(item.linked_transactions) == 1
    assert item.total_actual_amount == Decimal("3500")


def test_repeated_identical_edit_is_idempotent(
    engine: ReallocationEngine, repo: FinanceRepository, planned_pool: MaintenanceItem
) -> None:
    txn = make_expense("txn_a", "2026-03-10", "3000", maintenance_id=planned_pool.id)
    engine.on_create(txn, False, repo)
    engine.on_edit(txn, txn, False, repo)
    engine.on_edit(txn, txn, False, repo)

    assert opex(repo, 5) == Decimal("4000")
    assert len(pool(repo).linked_transactions) == 1


def test_date_edit_moves_money_between_months(
    engine: ReallocationEngine, repo: FinanceRepository, planned_pool: MaintenanceItem
) -> None:
    old = make_expense("txn_a", "2026-03-10", "3000", maintenance_id=planned_pool.id)
    engine.on_create(old, False, repo)

    new = make_expense("txn_a", "2026-05-10", "3000", maintenance_id=planned_pool.id)
    engine.on_edit(old, new, False, repo)

    assert opex(repo, 5) == Decimal("1000")
    assert opex(repo, 7) == Decimal("4000")
    assert pool(repo).linked_transactions[0].applied_month == 7


def test_edit_to_other_item_is_delete_then_create(
    engine: ReallocationEngine,
    repo: FinanceRepository,
    planned_pool: MaintenanceItem,
    planned_roof: CapexProject,
) -> None:
    old = make_expense("txn_a", "2026-03-10", "3000", maintenance_id=planned_pool.id)
    engine.on_create(old, False, repo)

    new = make_expense("txn_a", "2026-03-10", "3000", capex_id=planned_roof.id)
    outcome = engine.on_edit(old, new, False, repo)

    # pool plan restored, roof plan released into March
    assert opex(repo, 5) == Decimal("13000")
    assert isinstance(pool(repo).linkage, Planned)
    assert capex(repo, 8) == Decimal("500")
    assert capex(repo, 5) == Decimal("3500")
    assert isinstance(outcome.item, CapexProject)
    assert outcome.touched_budgets == [FY]


def test_edit_to_unknown_item_moves_nothing(
    engine: ReallocationEngine, repo: FinanceRepository, planned_pool: MaintenanceItem
) -> None:
    old = make_expense("txn_a", "2026-03-10", "3000", maintenance_id=planned_pool.id)
    engine.on_create(old, False, repo)

    new = make_expense("txn_a", "2026-03-10", "3000", capex_id="capex_nope")
    with pytest.raises(LinkedItemNotFound):
        engine.on_edit(old, new, False, repo)

    assert opex(repo, 5) == Decimal("4000")
    assert pool(repo).is_linked


def test_unlinking_edit_restores_plan(
    engine: ReallocationEngine, repo: FinanceRepository, planned_pool: MaintenanceItem
) -> None:
    old = make_expense("txn_a", "2026-03-10", "3000", maintenance_id=planned_pool.id)
    engine.on_create(old, False, repo)

    engine.on_edit(old, make_expense("txn_a", "2026-03-10", "3000"), False, repo)
    assert opex(repo, 5) == Decimal("13000")


# ========== Delete ==========


def test_delete_all_restores_original_budget(
    engine: ReallocationEngine, repo: FinanceRepository, planned_pool: MaintenanceItem
) -> None:
    original = repo.get_budget(FY)
    a = make_expense("txn_a", "2026-03-10", "3000", maintenance_id=planned_pool.id)
    b = make_expense("txn_b", "2026-04-10", "9000", maintenance_id=planned_pool.id)
    engine.on_create(a, False, repo)
    engine.on_create(b, True, repo)

    engine.on_delete(b, repo)
    assert opex(repo, 6) == Decimal("1000")
    assert opex(repo, 5) == Decimal("4000")
    assert pool(repo).allocation_released

    outcome = engine.on_delete(a, repo)
    assert opex(repo, 5) == Decimal("13000")
    assert repo.get_budget(FY).monthly_budgets == original.monthly_budgets

    item = outcome.item
    assert item is not None
    assert isinstance(item.linkage, Planned)
    assert item.month == 5
    assert not item.completed


def test_delete_unlinked_transaction_is_noop(
    engine: ReallocationEngine, repo: FinanceRepository, planned_pool: MaintenanceItem
) -> None:
    outcome = engine.on_delete(make_expense("txn_x", "2026-03-10", "50"), repo)
    assert outcome.item is None
    assert opex(repo, 5) == Decimal("13000")


def test_delete_transaction_missing_from_ledger(
    engine: ReallocationEngine, repo: FinanceRepository, planned_pool: MaintenanceItem
) -> None:
    stray = make_expense("txn_stray", "2026-03-10", "50", maintenance_id=planned_pool.id)
    outcome = engine.on_delete(stray, repo)
    assert outcome.touched_budgets == []
    assert opex(repo, 5) == Decimal("13000")


def test_delete_with_missing_item_is_tolerated(
    engine: ReallocationEngine, repo: FinanceRepository, budget: BudgetDocument
) -> None:
    orphan = make_expense("txn_o", "2026-03-10", "50", maintenance_id="majormaint_gone")
    outcome = engine.on_delete(orphan, repo)
    assert outcome.item is None


# ========== Fiscal-month edge cases ==========


def test_unmapped_date_is_skipped(
    engine: ReallocationEngine, repo: FinanceRepository, planned_pool: MaintenanceItem
) -> None:
    """Booked under FY2026 but dated in October 2026: no bucket is touched"""
    txn = make_expense("txn_late", "2026-10-05", "500", maintenance_id=planned_pool.id)
    outcome = engine.on_create(txn, False, repo)

    assert [skip.code for skip in outcome.skips] == ["UNMAPPED_FISCAL_MONTH"]
    assert outcome.skips[0].transaction_id == "txn_late"
    assert outcome.touched_budgets == []
    assert opex(repo, 5) == Decimal("13000")

    item = pool(repo)
    assert item.is_linked
    assert not item.allocation_released
    assert item.linked_transactions[0].applied_month is None

    # deleting it reverses nothing and leaves the plan parked
    engine.on_delete(txn, repo)
    assert opex(repo, 5) == Decimal("13000")
    assert not pool(repo).is_linked


def test_unmapped_date_routed_to_own_fiscal_year(
    repo: FinanceRepository, clock: FixedClock, planned_pool: MaintenanceItem
) -> None:
    repo.save_budget(BudgetDocument(fiscal_year=2027))
    engine = ReallocationEngine(Settings(unmapped_fiscal_month_policy="ROUTE"), clock)

    txn = make_expense("txn_late", "2026-10-05", "500", maintenance_id=planned_pool.id)
    outcome = engine.on_create(txn, False, repo)

    assert outcome.skips == []
    assert sorted(outcome.touched_budgets) == [2026, 2027]
    assert opex(repo, 5) == Decimal("1000")
    assert opex(repo, 0, fiscal_year=2027) == Decimal("500")

    entry = pool(repo).linked_transactions[0]
    assert (entry.fiscal_year, entry.applied_month) == (2027, 0)

    engine.on_delete(txn, repo)
    assert opex(repo, 0, fiscal_year=2027) == Decimal("0")
    assert opex(repo, 5) == Decimal("13000")


def test_unmapped_date_rejected(
    repo: FinanceRepository, clock: FixedClock, planned_pool: MaintenanceItem
) -> None:
    engine = ReallocationEngine(Settings(unmapped_fiscal_month_policy="REJECT"), clock)
    txn = make_expense("txn_late", "2026-10-05", "500", maintenance_id=planned_pool.id)

    with pytest.raises(UnmappedFiscalMonth) as exc_info:
        engine.on_create(txn, False, repo)

    assert exc_info.value.fiscal_year == FY
    assert not pool(repo).is_linked


def test_missing_budget_records_skip(
    engine: ReallocationEngine, repo: FinanceRepository, pool_item: MaintenanceItem
) -> None:
    repo.save_item(pool_item)
    txn = make_expense("txn_a", "2026-03-10", "3000", maintenance_id=pool_item.id)
    outcome = engine.on_create(txn, False, repo)

    assert [skip.code for skip in outcome.skips] == ["BUDGET_DOCUMENT_MISSING"]
    assert outcome.touched_budgets == []
    assert repo.get_budget(FY) is None
    assert pool(repo).is_linked
    assert not pool(repo).allocation_released


def test_first_applied_link_releases_after_unmapped_one(
    engine: ReallocationEngine, repo: FinanceRepository, planned_pool: MaintenanceItem
) -> None:
    engine.on_create(
        make_expense("txn_late", "2026-10-05", "500", maintenance_id=planned_pool.id), False, repo
    )
    engine.on_create(
        make_expense("txn_a", "2026-04-01", "3000", maintenance_id=planned_pool.id), False, repo
    )

    assert opex(repo, 5) == Decimal("1000")
    assert opex(repo, 6) == Decimal("4000")
    assert pool(repo).allocation_released


# ========== Planning ==========


def test_plan_parks_amount(
    engine: ReallocationEngine, repo: FinanceRepository, budget: BudgetDocument, pool_item: MaintenanceItem
) -> None:
    engine.on_plan(pool_item, repo)
    assert opex(repo, 5) == Decimal("13000")
    assert repo.get_maintenance_item(pool_item.id) is not None


def test_replan_moves_parked_amount(
    engine: ReallocationEngine, repo: FinanceRepository, planned_pool: MaintenanceItem
) -> None:
    moved = planned_pool.model_copy(update={"month": 7, "budget_amount": Decimal("14000")})
    engine.on_replan(planned_pool, moved, repo)

    assert opex(repo, 5) == Decimal("1000")
    assert opex(repo, 7) == Decimal("15000")


def test_replan_without_planning_change_touches_nothing(
    engine: ReallocationEngine, repo: FinanceRepository, planned_pool: MaintenanceItem
) -> None:
    renamed = planned_pool.model_copy(update={"name": "Pool replaster"})
    outcome = engine.on_replan(planned_pool, renamed, repo)

    assert outcome.touched_budgets == []
    assert pool(repo).name == "Pool replaster"


def test_unplan_removes_parked_amount(
    engine: ReallocationEngine, repo: FinanceRepository, planned_pool: MaintenanceItem
) -> None:
    engine.on_unplan(planned_pool, repo)
    assert opex(repo, 5) == Decimal("1000")


def test_unplan_released_item_leaves_budget(
    engine: ReallocationEngine, repo: FinanceRepository, planned_pool: MaintenanceItem
) -> None:
    engine.on_create(
        make_expense("txn_a", "2026-03-10", "3000", maintenance_id=planned_pool.id), False, repo
    )
    outcome = engine.on_unplan(pool(repo), repo)
    assert outcome.touched_budgets == []
    assert opex(repo, 5) == Decimal("4000")
