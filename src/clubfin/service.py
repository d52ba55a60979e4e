"""
ClubFinance - Main façade class

This is the primary interface to clubfin. It ties the document store,
the reallocation engine and the planning rules together behind one
explicitly constructed object: no module-level store, no ambient
"current user".

Example:
    >>> from clubfin import ClubFinance, SQLiteDocumentStore
    >>> club = ClubFinance(SQLiteDocumentStore("club.db"))
    >>> club.create_budget(2026, starting_balance=Decimal("18500"))
    >>> pool = club.add_maintenance_item(
    ...     2026, "Pool resurfacing", Decimal("12000"), month=5,
    ...     recurrence_years_min=7, recurrence_years_max=10,
    ... )
    >>> club.save_transaction(TransactionInput(
    ...     date=date(2026, 4, 10), amount=Decimal("9000"), type="expense",
    ...     expense_type="OPEX", major_maintenance_item_id=pool.id,
    ... ))
"""

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel

from clubfin.budget.models import BudgetDocument, MonthlyBudget
from clubfin.budget.projections import (
    BalanceWarning,
    BudgetPerformance,
    CashFlowRow,
    build_next_year_budget,
    calculate_budget_performance,
    calculate_monthly_actuals,
    check_balance_warnings,
    generate_cash_flow_projection,
)
from clubfin.fiscal.calendar import (
    MONTHS_PER_YEAR,
    fiscal_month_of,
    fiscal_year_range,
    validate_fiscal_month,
)
from clubfin.kernel.config import Settings, default_settings
from clubfin.kernel.errors import (
    BudgetAlreadyExists,
    BudgetNotFound,
    ItemHasLinkedTransactions,
    ItemNotFound,
    MonthClosed,
    PermissionDenied,
    TransactionNotFound,
)
from clubfin.kernel.ids import CAPEX_PREFIX, MAINTENANCE_PREFIX, TRANSACTION_PREFIX, generate_id
from clubfin.kernel.logging import LogOperation, get_logger
from clubfin.kernel.metrics import track_operation_duration, update_alert_metrics
from clubfin.kernel.store import InMemoryDocumentStore, SQLiteDocumentStore
from clubfin.kernel.time import Clock, RealClock
from clubfin.ledger.models import CapexProject, MaintenanceItem, TrackedItem
from clubfin.ledger.rules import refresh_forecast
from clubfin.reallocation.engine import ReallocationEngine, ReallocationOutcome
from clubfin.recurrence.alerts import (
    Alert,
    capex_alert,
    count_by_status,
    maintenance_alert,
    should_show_on_dashboard,
)
from clubfin.repository import FinanceRepository
from clubfin.transactions.models import Transaction, TransactionInput

logger = get_logger(__name__)


class Role(str, Enum):
    """
    User roles

    ADMIN: Full access, including deletes and user management
    EDITOR: Create and edit, no deletes of financial records
    VIEWER: Read-only
    """

    ADMIN = "admin"
    EDITOR = "editor"
    VIEWER = "viewer"


class Permission(str, Enum):
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"
    MANAGE_USERS = "manage_users"
    APPROVE_BUDGET = "approve_budget"
    PROCESS_REFUND = "process_refund"
    DELETE_TRANSACTION = "delete_transaction"


ROLE_PERMISSIONS: dict[Role, frozenset[Permission]] = {
    Role.ADMIN: frozenset(Permission),
    Role.EDITOR: frozenset(
        {
            Permission.CREATE,
            Permission.READ,
            Permission.UPDATE,
            Permission.APPROVE_BUDGET,
            Permission.PROCESS_REFUND,
        }
    ),
    Role.VIEWER: frozenset({Permission.READ}),
}


class UserContext(BaseModel):
    """The user on whose behalf the façade acts"""

    user_id: str
    role: Role

    def can(self, permission: Permission) -> bool:
        return permission in ROLE_PERMISSIONS[self.role]


SYSTEM_USER = UserContext(user_id="system", role=Role.ADMIN)


class SaveResult(BaseModel):
    transaction: Transaction
    reallocation: ReallocationOutcome


class ItemAlert(BaseModel):
    item: MaintenanceItem | CapexProject
    alert: Alert


class CashFlowReport(BaseModel):
    fiscal_year: int
    current_month: int
    projection: list[CashFlowRow]
    warnings: list[BalanceWarning]
    performance: BudgetPerformance


class ClubFinance:
    """
    clubfin main façade

    Provides a unified API for:
    - Transactions (with reallocation of linked maintenance/CAPEX spending)
    - Annual budgets and month closing
    - Maintenance item and CAPEX project planning
    - Alerts, dashboard and cash-flow reporting
    """

    def __init__(
        self,
        store: InMemoryDocumentStore | SQLiteDocumentStore,
        settings: Settings | None = None,
        clock: Clock | None = None,
        user: UserContext | None = None,
    ) -> None:
        """
        Initialize the façade

        Args:
            store: Document store backend
            settings: Rule settings (defaults if None)
            clock: Clock (real time if None)
            user: Acting user (system administrator if None)
        """
        self.store = store
        self.settings = settings or default_settings
        self.clock = clock or RealClock()
        self.user = user or SYSTEM_USER
        self.engine = ReallocationEngine(self.settings, self.clock)
        self.repo = FinanceRepository(store)

    def as_user(self, user: UserContext) -> "ClubFinance":
        """Same store and settings, acting as another user"""
        return ClubFinance(self.store, self.settings, self.clock, user)

    @contextmanager
    def _unit_of_work(self) -> Iterator[FinanceRepository]:
        """Repository whose writes commit together (or not at all)"""
        if self.settings.transactional_writes:
            with self.store.transaction() as tx:
                yield FinanceRepository(tx)
        else:
            yield self.repo

    def _require(self, permission: Permission) -> None:
        if not self.user.can(permission):
            logger.warning(
                "Permission denied",
                user_id=self.user.user_id,
                role=self.user.role.value,
                permission=permission.value,
            )
            raise PermissionDenied(self.user.user_id, self.user.role.value, permission.value)

    def _audit(self) -> dict[str, Any]:
        return {"updated_at": self.clock.now(), "updated_by": self.user.user_id}

    # Transaction operations

    @track_operation_duration("save_transaction")
    def save_transaction(self, data: TransactionInput) -> SaveResult:
        """
        Create or edit a transaction

        A linked expense moves budget money through the reallocation engine
        in the same unit of work as the transaction itself.

        Args:
            data: Transaction fields; id None (or unknown) creates

        Returns:
            SaveResult with the stored transaction and the reallocation outcome

        Raises:
            LinkedItemNotFound: Linked item does not exist (nothing is saved)
            MonthClosed: Transaction falls in (or moves out of) a closed month
            PermissionDenied: Role lacks create/update
        """
        with LogOperation(
            logger,
            "save_transaction",
            transaction_id=data.id,
            user_id=self.user.user_id,
        ):
            with self._unit_of_work() as repo:
                existing = repo.get_transaction(data.id) if data.id else None
                now = self.clock.now()

                if existing is None:
                    self._require(Permission.CREATE)
                    transaction = data.to_transaction(
                        data.id or generate_id(TRANSACTION_PREFIX),
                        created_at=now,
                        created_by=self.user.user_id,
                        updated_at=now,
                        updated_by=self.user.user_id,
                    )
                    self._ensure_month_open(repo, transaction)
                    outcome = self.engine.on_create(
                        transaction, data.mark_item_complete, repo
                    )
                else:
                    self._require(Permission.UPDATE)
                    transaction = data.to_transaction(
                        existing.id,
                        previous=existing,
                        created_at=existing.created_at,
                        created_by=existing.created_by,
                        updated_at=now,
                        updated_by=self.user.user_id,
                    )
                    self._ensure_month_open(repo, existing)
                    self._ensure_month_open(repo, transaction)
                    outcome = self.engine.on_edit(
                        existing, transaction, data.mark_item_complete, repo
                    )

                repo.save_transaction(transaction)

        return SaveResult(transaction=transaction, reallocation=outcome)

    @track_operation_duration("delete_transaction")
    def delete_transaction(self, transaction_id: str) -> ReallocationOutcome:
        """
        Delete a transaction, reversing its budget effect

        Raises:
            TransactionNotFound: Unknown id
            MonthClosed: Transaction is in a closed month
            PermissionDenied: Only administrators delete transactions
        """
        self._require(Permission.DELETE_TRANSACTION)
        with LogOperation(
            logger,
            "delete_transaction",
            transaction_id=transaction_id,
            user_id=self.user.user_id,
        ):
            with self._unit_of_work() as repo:
                transaction = repo.get_transaction(transaction_id)
                if transaction is None:
                    raise TransactionNotFound(transaction_id)
                self._ensure_month_open(repo, transaction)
                outcome = self.engine.on_delete(transaction, repo)
                repo.delete_transaction(transaction_id)
        return outcome

    def get_transaction(self, transaction_id: str) -> Transaction:
        self._require(Permission.READ)
        transaction = self.repo.get_transaction(transaction_id)
        if transaction is None:
            raise TransactionNotFound(transaction_id)
        return transaction

    def list_transactions(self, fiscal_year: int | None = None) -> list[Transaction]:
        self._require(Permission.READ)
        return self.repo.list_transactions(fiscal_year)

    def _ensure_month_open(self, repo: FinanceRepository, transaction: Transaction) -> None:
        fiscal_year = transaction.fiscal_year
        if fiscal_year is None:
            return
        month = fiscal_month_of(transaction.date, fiscal_year)
        if month is not None:
            self._ensure_open(repo, fiscal_year, month)

    def _ensure_parked_month_open(self, repo: FinanceRepository, item: TrackedItem) -> None:
        """Planning writes touch the month an unreleased allocation is parked in"""
        if not item.allocation_released:
            self._ensure_open(repo, item.fiscal_year, item.original_month)

    def _ensure_open(self, repo: FinanceRepository, fiscal_year: int, month: int) -> None:
        budget = repo.get_budget(fiscal_year)
        if budget is not None and budget.is_month_closed(month):
            raise MonthClosed(fiscal_year, month)

    # Budget operations

    @track_operation_duration("create_budget")
    def create_budget(
        self,
        fiscal_year: int,
        monthly_budgets: list[MonthlyBudget] | None = None,
        starting_balance: Decimal = Decimal("0"),
        low_balance_threshold: Decimal | None = None,
    ) -> BudgetDocument:
        """
        Create the budget for a fiscal year

        Raises:
            BudgetAlreadyExists: Fiscal year already has a budget
        """
        self._require(Permission.CREATE)
        with self._unit_of_work() as repo:
            if repo.get_budget(fiscal_year) is not None:
                raise BudgetAlreadyExists(fiscal_year)

            fields: dict[str, Any] = {
                "fiscal_year": fiscal_year,
                "starting_balance": starting_balance,
                "low_balance_threshold": (
                    low_balance_threshold
                    if low_balance_threshold is not None
                    else self.settings.default_low_balance_threshold
                ),
                **self._audit(),
            }
            if monthly_budgets is not None:
                fields["monthly_budgets"] = monthly_budgets
            budget = BudgetDocument(**fields)
            repo.save_budget(budget)

        logger.info("Budget created", fiscal_year=fiscal_year)
        return budget

    def get_budget(self, fiscal_year: int) -> BudgetDocument:
        self._require(Permission.READ)
        budget = self.repo.get_budget(fiscal_year)
        if budget is None:
            raise BudgetNotFound(fiscal_year)
        return budget

    def list_budgets(self) -> list[BudgetDocument]:
        self._require(Permission.READ)
        return self.repo.list_budgets()

    def update_budget_month(self, fiscal_year: int, month: int, **updates: Any) -> BudgetDocument:
        """
        Overwrite planned amounts (revenue, opex, capex, ga, notes) of one month

        Parked maintenance and CAPEX amounts are part of opex/capex; editing
        those buckets by hand overrides them.
        """
        self._require(Permission.UPDATE)
        validate_fiscal_month(month)
        with self._unit_of_work() as repo:
            budget = self._load_budget(repo, fiscal_year)
            current = budget.monthly_budgets[month].model_dump()
            budget.monthly_budgets[month] = MonthlyBudget.model_validate({**current, **updates})
            budget = budget.model_copy(update=self._audit())
            repo.save_budget(budget)

        logger.info(
            "Budget month updated",
            fiscal_year=fiscal_year,
            month=month,
            fields=sorted(updates),
        )
        return budget

    def close_month(self, fiscal_year: int, month: int) -> BudgetDocument:
        """Lock a fiscal month against transaction writes"""
        return self._set_month_closed(fiscal_year, month, closed=True)

    def reopen_month(self, fiscal_year: int, month: int) -> BudgetDocument:
        return self._set_month_closed(fiscal_year, month, closed=False)

    def _set_month_closed(self, fiscal_year: int, month: int, closed: bool) -> BudgetDocument:
        self._require(Permission.APPROVE_BUDGET)
        validate_fiscal_month(month)
        with self._unit_of_work() as repo:
            budget = self._load_budget(repo, fiscal_year)
            months = set(budget.closed_months)
            if closed:
                months.add(month)
            else:
                months.discard(month)
            budget = BudgetDocument.model_validate(
                {**budget.model_dump(), "closed_months": sorted(months), **self._audit()}
            )
            repo.save_budget(budget)

        logger.info(
            "Month closed" if closed else "Month reopened",
            fiscal_year=fiscal_year,
            month=month,
        )
        return budget

    @track_operation_duration("close_fiscal_year")
    def close_fiscal_year(self, fiscal_year: int) -> BudgetDocument:
        """
        Year-end close: create next year's budget from this year's actuals

        This year's budget and transactions stay editable. See
        build_next_year_budget for how the new months are seeded.

        Returns:
            The new budget for fiscal_year + 1

        Raises:
            BudgetNotFound: fiscal_year has no budget
            BudgetAlreadyExists: fiscal_year + 1 already has a budget
        """
        self._require(Permission.APPROVE_BUDGET)
        with LogOperation(logger, "close_fiscal_year", fiscal_year=fiscal_year):
            with self._unit_of_work() as repo:
                budget = self._load_budget(repo, fiscal_year)
                if repo.get_budget(fiscal_year + 1) is not None:
                    raise BudgetAlreadyExists(fiscal_year + 1)

                actuals = calculate_monthly_actuals(repo.list_transactions(), fiscal_year)
                next_budget = build_next_year_budget(
                    budget, actuals, repo.list_maintenance_items(fiscal_year)
                )
                next_budget = next_budget.model_copy(update=self._audit())
                repo.save_budget(next_budget)

        logger.info(
            "Fiscal year closed",
            fiscal_year=fiscal_year,
            next_fiscal_year=next_budget.fiscal_year,
            starting_balance=str(next_budget.starting_balance),
        )
        return next_budget

    def _load_budget(self, repo: FinanceRepository, fiscal_year: int) -> BudgetDocument:
        budget = repo.get_budget(fiscal_year)
        if budget is None:
            raise BudgetNotFound(fiscal_year)
        return budget

    # Maintenance item and CAPEX project planning

    @track_operation_duration("add_maintenance_item")
    def add_maintenance_item(
        self,
        fiscal_year: int,
        name: str,
        budget_amount: Decimal,
        month: int,
        recurrence_years_min: int,
        recurrence_years_max: int,
        **fields: Any,
    ) -> MaintenanceItem:
        """
        Plan a major-maintenance item and park its amount in month's OPEX

        Optional fields: description, alert_year, tracking_enabled, notes.
        """
        item = MaintenanceItem(
            id=generate_id(MAINTENANCE_PREFIX),
            fiscal_year=fiscal_year,
            name=name,
            budget_amount=budget_amount,
            month=month,
            recurrence_years_min=recurrence_years_min,
            recurrence_years_max=recurrence_years_max,
            created_at=self.clock.now(),
            updated_at=self.clock.now(),
            **fields,
        )
        return self._add_item(refresh_forecast(item, self.clock.today(), self.settings))

    @track_operation_duration("add_capex_project")
    def add_capex_project(
        self,
        fiscal_year: int,
        name: str,
        amount: Decimal,
        month: int,
        **fields: Any,
    ) -> CapexProject:
        """
        Plan a CAPEX project and park its amount in month's CAPEX

        Optional fields: description, alert_year, tracking_enabled, notes.
        """
        project = CapexProject(
            id=generate_id(CAPEX_PREFIX),
            fiscal_year=fiscal_year,
            name=name,
            amount=amount,
            month=month,
            created_at=self.clock.now(),
            updated_at=self.clock.now(),
            **fields,
        )
        return self._add_item(project)

    def update_maintenance_item(self, item_id: str, **changes: Any) -> MaintenanceItem:
        """
        Change a maintenance item

        Raises:
            ItemHasLinkedTransactions: Amount, month or fiscal year changed
                while transactions are linked
            MonthClosed: The parked amount would leave or enter a closed month
        """
        return self._update_item("maintenance", item_id, changes)

    def update_capex_project(self, project_id: str, **changes: Any) -> CapexProject:
        return self._update_item("capex", project_id, changes)

    @track_operation_duration("delete_maintenance_item")
    def delete_maintenance_item(self, item_id: str) -> None:
        """
        Delete an item, its linked transactions and its parked amount

        Raises:
            MonthClosed: A linked transaction or the parked amount is in a
                closed month (nothing is deleted)
        """
        self._delete_item("maintenance", item_id)

    @track_operation_duration("delete_capex_project")
    def delete_capex_project(self, project_id: str) -> None:
        self._delete_item("capex", project_id)

    def get_maintenance_item(self, item_id: str) -> MaintenanceItem:
        self._require(Permission.READ)
        item = self.repo.get_maintenance_item(item_id)
        if item is None:
            raise ItemNotFound("maintenance", item_id)
        return item

    def get_capex_project(self, project_id: str) -> CapexProject:
        self._require(Permission.READ)
        project = self.repo.get_capex_project(project_id)
        if project is None:
            raise ItemNotFound("capex", project_id)
        return project

    def list_maintenance_items(self, fiscal_year: int | None = None) -> list[MaintenanceItem]:
        self._require(Permission.READ)
        return self.repo.list_maintenance_items(fiscal_year)

    def list_capex_projects(self, fiscal_year: int | None = None) -> list[CapexProject]:
        self._require(Permission.READ)
        return self.repo.list_capex_projects(fiscal_year)

    def _add_item(self, item: Any) -> Any:
        self._require(Permission.CREATE)
        with LogOperation(
            logger, f"add_{item.item_kind}", item_id=item.id, fiscal_year=item.fiscal_year
        ):
            with self._unit_of_work() as repo:
                self._ensure_parked_month_open(repo, item)
                self.engine.on_plan(item, repo)
        return item

    def _update_item(self, kind: str, item_id: str, changes: dict[str, Any]) -> Any:
        self._require(Permission.UPDATE)
        with LogOperation(logger, f"update_{kind}", item_id=item_id, fields=sorted(changes)):
            with self._unit_of_work() as repo:
                old = repo.get_item(kind, item_id)
                if old is None:
                    raise ItemNotFound(kind, item_id)

                # linkage and id are owned by the ledger
                changes = {k: v for k, v in changes.items() if k not in {"id", "linkage"}}
                new = type(old).model_validate(
                    {**old.model_dump(), **changes, "updated_at": self.clock.now()}
                )

                # compare validated values
                replanned = (old.fiscal_year, old.month, old.planned_amount) != (
                    new.fiscal_year,
                    new.month,
                    new.planned_amount,
                )
                if replanned:
                    if old.is_linked:
                        raise ItemHasLinkedTransactions(item_id, len(old.linked_transactions))
                    self._ensure_parked_month_open(repo, old)
                    self._ensure_parked_month_open(repo, new)

                new = refresh_forecast(new, self.clock.today(), self.settings)
                self.engine.on_replan(old, new, repo)
        return new

    def _delete_item(self, kind: str, item_id: str) -> None:
        self._require(Permission.DELETE)
        with LogOperation(logger, f"delete_{kind}", item_id=item_id):
            with self._unit_of_work() as repo:
                item = repo.get_item(kind, item_id)
                if item is None:
                    raise ItemNotFound(kind, item_id)

                linked = repo.transactions_linked_to(kind, item_id)
                for transaction in linked:
                    self._ensure_month_open(repo, transaction)
                self._ensure_parked_month_open(repo, item)

                for transaction in linked:
                    self.engine.on_delete(transaction, repo)
                    repo.delete_transaction(transaction.id)

                item = repo.get_item(kind, item_id) or item
                self.engine.on_unplan(item, repo)
                repo.delete_item(item)

        logger.info(
            "Item deleted",
            kind=kind,
            item_id=item_id,
            linked_transactions_deleted=len(linked),
        )

    # Alerts and reporting

    def maintenance_alerts(self, fiscal_year: int | None = None) -> list[ItemAlert]:
        """Tracked maintenance items with a due date, most urgent first"""
        self._require(Permission.READ)
        today = self.clock.today()
        alerts = []
        for item in self.repo.list_maintenance_items(fiscal_year):
            alert = maintenance_alert(item, today, self.settings)
            if alert is not None:
                alerts.append(ItemAlert(item=item, alert=alert))
        update_alert_metrics("maintenance", count_by_status([a.alert for a in alerts]))
        return sorted(alerts, key=lambda entry: entry.alert.years_until)

    def capex_alerts(self, fiscal_year: int | None = None) -> list[ItemAlert]:
        """CAPEX projects with a reminder year, most urgent first"""
        self._require(Permission.READ)
        today = self.clock.today()
        alerts = []
        for project in self.repo.list_capex_projects(fiscal_year):
            alert = capex_alert(project, today, self.settings)
            if alert is not None:
                alerts.append(ItemAlert(item=project, alert=alert))
        update_alert_metrics("capex", count_by_status([a.alert for a in alerts]))
        return sorted(alerts, key=lambda entry: entry.alert.years_until)

    def dashboard_items(self) -> list[MaintenanceItem]:
        """Completed maintenance items coming due within the dashboard horizon"""
        self._require(Permission.READ)
        today = self.clock.today()
        return [
            item
            for item in self.repo.list_maintenance_items()
            if should_show_on_dashboard(item, today, self.settings)
        ]

    def cash_flow(self, fiscal_year: int, current_month: int | None = None) -> CashFlowReport:
        """
        Cash-flow projection, year-end balance warnings and YTD performance

        current_month defaults to today's fiscal month (-1 before the year
        starts, 11 after it ends).
        """
        self._require(Permission.READ)
        budget = self.get_budget(fiscal_year)
        if current_month is None:
            current_month = self._current_fiscal_month(fiscal_year)

        actuals = calculate_monthly_actuals(self.repo.list_transactions(), fiscal_year)
        projection = generate_cash_flow_projection(budget, actuals, current_month)
        return CashFlowReport(
            fiscal_year=fiscal_year,
            current_month=current_month,
            projection=projection,
            warnings=check_balance_warnings(projection, budget.low_balance_threshold),
            performance=calculate_budget_performance(budget, actuals, current_month),
        )

    def _current_fiscal_month(self, fiscal_year: int) -> int:
        today: date = self.clock.today()
        month = fiscal_month_of(today, fiscal_year)
        if month is not None:
            return month
        start, _ = fiscal_year_range(fiscal_year)
        return -1 if today < start else MONTHS_PER_YEAR - 1
