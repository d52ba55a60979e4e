"""
Pytest configuration and shared fixtures

Most tests run on FY2026 (October 1 2025 - September 30 2026) with the
clock frozen on its first day, an in-memory store and an empty budget.
"""

import tempfile
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Iterator

import pytest

from clubfin.budget.models import BudgetDocument, MonthlyBudget
from clubfin.kernel.config import Settings
from clubfin.kernel.store import InMemoryDocumentStore, SQLiteDocumentStore
from clubfin.kernel.time import FixedClock
from clubfin.ledger.models import CapexProject, MaintenanceItem
from clubfin.reallocation.engine import ReallocationEngine
from clubfin.repository import FinanceRepository
from clubfin.service import ClubFinance

from tests.helpers import FY


@pytest.fixture
def temp_db() -> Iterator[Path]:
    """Provide a temporary database file that's cleaned up after test"""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir) / "clubfin.db"


@pytest.fixture
def clock() -> FixedClock:
    """Frozen on 2025-10-01, the first day of FY2026"""
    return FixedClock(datetime(2025, 10, 1, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def settings() -> Settings:
    return Settings()


@pytest.fixture
def memory_store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def sqlite_store(temp_db: Path) -> SQLiteDocumentStore:
    return SQLiteDocumentStore(temp_db)


@pytest.fixture
def repo(memory_store: InMemoryDocumentStore) -> FinanceRepository:
    return FinanceRepository(memory_store)


@pytest.fixture
def engine(settings: Settings, clock: FixedClock) -> ReallocationEngine:
    return ReallocationEngine(settings, clock)


@pytest.fixture
def budget(repo: FinanceRepository) -> BudgetDocument:
    """
    FY2026 budget: 1000 OPEX and 500 CAPEX of ordinary spending per month

    The pool item below is not parked here; tests that need it parked use
    the planned_pool fixture.
    """
    document = BudgetDocument(
        fiscal_year=FY,
        monthly_budgets=[
            MonthlyBudget(revenue=Decimal("5000"), opex=Decimal("1000"), capex=Decimal("500"))
            for _ in range(12)
        ],
        starting_balance=Decimal("25000"),
    )
    repo.save_budget(document)
    return document


@pytest.fixture
def pool_item() -> MaintenanceItem:
    """The FY2026 pool resurfacing item: 12000 planned in March (month 5)"""
    return MaintenanceItem(
        id="majormaint_pool",
        fiscal_year=FY,
        name="Pool resurfacing",
        budget_amount=Decimal("12000"),
        month=5,
        recurrence_years_min=7,
        recurrence_years_max=10,
    )


@pytest.fixture
def planned_pool(
    repo: FinanceRepository, budget: BudgetDocument, pool_item: MaintenanceItem
) -> MaintenanceItem:
    """Pool item stored, with its 12000 parked in March OPEX"""
    budget.adjust(pool_item.month, pool_item.budget_bucket, pool_item.budget_amount)
    repo.save_budget(budget)
    repo.save_item(pool_item)
    return pool_item


@pytest.fixture
def planned_roof(repo: FinanceRepository, budget: BudgetDocument) -> CapexProject:
    """Clubhouse roof CAPEX project: 30000 parked in June (month 8)"""
    project = CapexProject(
        id="capex_roof",
        fiscal_year=FY,
        name="Clubhouse roof",
        amount=Decimal("30000"),
        month=8,
    )
    budget.adjust(project.month, project.budget_bucket, project.amount)
    repo.save_budget(budget)
    repo.save_item(project)
    return project


@pytest.fixture
def club(memory_store: InMemoryDocumentStore, settings: Settings, clock: FixedClock) -> ClubFinance:
    return ClubFinance(memory_store, settings=settings, clock=clock)

