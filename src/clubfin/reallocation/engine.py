"""
Reallocation Engine - Keep budget buckets following linked spending

When an expense is linked to a maintenance item or CAPEX project, the
amount planned for that item stops being "parked" in its planned month
and the real amount shows up in the month the money went out:

    create: release planned amount from original_month (first applied link)
            add transaction amount to the transaction's fiscal month
    edit:   reverse the old entry where it was applied, apply the new one
    delete: reverse the entry; if the ledger empties, park the planned
            amount in original_month again

Every budget movement is recorded on the ledger entry (fiscal_year +
applied_month), so reversal never has to guess where money went.

The engine works through a FinanceRepository bound to the caller's unit
of work and never commits by itself.
"""

from decimal import Decimal

from pydantic import BaseModel, Field

from clubfin.budget.models import BudgetBucket, BudgetDocument
from clubfin.fiscal.calendar import fiscal_month_of, fiscal_year_of
from clubfin.kernel.config import Settings, default_settings
from clubfin.kernel.errors import (
    BudgetDocumentMissing,
    LinkedItemNotFound,
    ReallocationSkipped,
    UnmappedFiscalMonth,
)
from clubfin.kernel.logging import get_logger
from clubfin.kernel.metrics import (
    allocations_restored_total,
    linked_item_not_found_total,
    reallocation_skips_total,
    reallocations_total,
)
from clubfin.kernel.time import Clock, RealClock
from clubfin.ledger.models import CapexProject, MaintenanceItem, TrackedItem
from clubfin.ledger.rules import link_transaction, release_allocation, unlink_transaction
from clubfin.repository import FinanceRepository
from clubfin.transactions.models import Transaction

logger = get_logger(__name__)


class ReallocationSkip(BaseModel):
    """A budget step that was skipped without failing the save"""

    code: str
    message: str
    fiscal_year: int
    transaction_id: str | None = None


class ReallocationOutcome(BaseModel):
    """
    Result of one reallocation flow

    Attributes:
        item: Linked item after the flow (None when nothing was linked)
        touched_budgets: Fiscal years whose budget documents changed
        skips: Budget steps skipped (UNMAPPED month, missing budget)
    """

    item: MaintenanceItem | CapexProject | None = None
    touched_budgets: list[int] = Field(default_factory=list)
    skips: list[ReallocationSkip] = Field(default_factory=list)


class _BudgetBook:
    """
    Budgets touched during one flow

    Loads each fiscal year's budget once, applies adjustments in memory and
    writes back only the ones that changed.
    """

    def __init__(self, repo: FinanceRepository, operation: str) -> None:
        self._repo = repo
        self._operation = operation
        self._budgets: dict[int, BudgetDocument | None] = {}
        self._touched: list[int] = []
        self.skips: list[ReallocationSkip] = []

    def load(self, fiscal_year: int) -> BudgetDocument | None:
        if fiscal_year not in self._budgets:
            budget = self._repo.get_budget(fiscal_year)
            self._budgets[fiscal_year] = budget
            if budget is None:
                self.skip(BudgetDocumentMissing(fiscal_year), fiscal_year)
        return self._budgets[fiscal_year]

    def skip(
        self,
        reason: ReallocationSkipped,
        fiscal_year: int,
        transaction_id: str | None = None,
    ) -> None:
        self.skips.append(
            ReallocationSkip(
                code=reason.code,
                message=str(reason),
                fiscal_year=fiscal_year,
                transaction_id=transaction_id,
            )
        )
        reallocation_skips_total.labels(reason=reason.code).inc()
        logger.warning(
            "Reallocation step skipped",
            operation=self._operation,
            reason=reason.code,
            fiscal_year=fiscal_year,
            transaction_id=transaction_id,
        )

    def adjust(
        self,
        fiscal_year: int,
        month: int,
        bucket: BudgetBucket,
        delta: Decimal,
        step: str,
    ) -> bool:
        """Apply delta to one bucket; False when the budget does not exist"""
        budget = self.load(fiscal_year)
        if budget is None:
            return False

        new_value = budget.adjust(month, bucket, delta)
        if fiscal_year not in self._touched:
            self._touched.append(fiscal_year)

        reallocations_total.labels(operation=self._operation, bucket=bucket.value).inc()
        logger.info(
            "Budget bucket adjusted",
            operation=self._operation,
            step=step,
            fiscal_year=fiscal_year,
            month=month,
            bucket=bucket.value,
            delta=str(delta),
            new_value=str(new_value),
        )
        return True

    def flush(self) -> list[int]:
        for fiscal_year in self._touched:
            budget = self._budgets[fiscal_year]
            if budget is not None:
                self._repo.save_budget(budget)
        return list(self._touched)


class ReallocationEngine:
    """
    Create / edit / delete flows for linked transactions

    Only LinkedItemNotFound (and UnmappedFiscalMonth under the REJECT
    policy) abort a flow. Everything else that cannot be applied is
    recorded as a skip on the outcome.
    """

    def __init__(self, settings: Settings = default_settings, clock: Clock | None = None) -> None:
        self.settings = settings
        self.clock = clock or RealClock()

    # Flows

    def on_create(
        self, transaction: Transaction, mark_complete: bool, repo: FinanceRepository
    ) -> ReallocationOutcome:
        """Link a newly saved transaction and move its budget allocation"""
        if transaction.linked_item_id is None:
            return ReallocationOutcome()

        item = self._resolve(transaction, repo)
        book = _BudgetBook(repo, "create")
        item = self._link(item, transaction, mark_complete, book)
        return self._finish(item, book, repo)

    def on_edit(
        self,
        old: Transaction,
        new: Transaction,
        mark_complete: bool,
        repo: FinanceRepository,
    ) -> ReallocationOutcome:
        """
        Re-apply an edited transaction

        The old entry is reversed where it was applied and the new amount is
        applied at the new date's fiscal month, so a pure amount edit nets to
        new - old in one month and a date edit moves the money. A changed
        link target is a delete on the old item and a create on the new one.
        """
        same_target = (
            old.linked_item_id is not None
            and old.linked_item_kind == new.linked_item_kind
            and old.linked_item_id == new.linked_item_id
        )

        if not same_target:
            outcome = ReallocationOutcome()
            if new.linked_item_id is not None:
                # Resolve first so a bad new link aborts before anything moves
                self._resolve(new, repo)
            if old.linked_item_id is not None:
                outcome = self.on_delete(old, repo)
            if new.linked_item_id is not None:
                created = self.on_create(new, mark_complete, repo)
                created.skips = outcome.skips + created.skips
                created.touched_budgets = sorted(
                    set(outcome.touched_budgets) | set(created.touched_budgets)
                )
                outcome = created
            return outcome

        item = self._resolve(new, repo)
        book = _BudgetBook(repo, "edit")

        entry = item.find_linked(old.id)
        if entry is not None and entry.applied_month is not None:
            book.adjust(
                entry.fiscal_year,
                entry.applied_month,
                item.budget_bucket,
                -entry.amount,
                step="reverse_old_amount",
            )

        item = self._link(item, new, mark_complete, book)
        return self._finish(item, book, repo)

    def on_delete(self, transaction: Transaction, repo: FinanceRepository) -> ReallocationOutcome:
        """Reverse a deleted transaction and restore the plan if it was the last"""
        kind = transaction.linked_item_kind
        if kind is None or transaction.linked_item_id is None:
            return ReallocationOutcome()

        item = repo.get_item(kind, transaction.linked_item_id)
        if item is None:
            logger.warning(
                "Linked item missing on delete - nothing to reverse",
                transaction_id=transaction.id,
                kind=kind,
                item_id=transaction.linked_item_id,
            )
            return ReallocationOutcome()

        book = _BudgetBook(repo, "delete")
        bucket = item.budget_bucket

        entry = item.find_linked(transaction.id)
        if entry is None:
            logger.warning(
                "Transaction not in item ledger - nothing to reverse",
                transaction_id=transaction.id,
                item_id=item.id,
            )
            return ReallocationOutcome(item=item)

        if entry.applied_month is not None:
            book.adjust(
                entry.fiscal_year,
                entry.applied_month,
                bucket,
                -entry.amount,
                step="reverse_transaction",
            )

        result = unlink_transaction(item, transaction.id, self.clock.today(), self.settings)
        item = result.item

        if result.restore_required:
            restored = book.adjust(
                item.fiscal_year,
                item.month,
                bucket,
                item.planned_amount,
                step="restore_planned_allocation",
            )
            if restored:
                allocations_restored_total.labels(bucket=bucket.value).inc()
                logger.info(
                    "Planned allocation restored",
                    item_id=item.id,
                    fiscal_year=item.fiscal_year,
                    month=item.month,
                )

        return self._finish(item, book, repo)

    # Planning

    def on_plan(self, item: TrackedItem, repo: FinanceRepository) -> ReallocationOutcome:
        """Park a new item's planned amount in its month"""
        book = _BudgetBook(repo, "plan")
        book.adjust(item.fiscal_year, item.month, item.budget_bucket, item.planned_amount, "park")
        return self._finish(item, book, repo)

    def on_replan(
        self, old: TrackedItem, new: TrackedItem, repo: FinanceRepository
    ) -> ReallocationOutcome:
        """
        Move a planned item's parked amount after its month, amount or
        fiscal year changed

        Linked items keep their budget where the transactions put it.
        """
        book = _BudgetBook(repo, "plan")
        moved = (old.fiscal_year, old.month, old.planned_amount) != (
            new.fiscal_year,
            new.month,
            new.planned_amount,
        )
        if moved and not old.allocation_released:
            bucket = new.budget_bucket
            book.adjust(old.fiscal_year, old.month, bucket, -old.planned_amount, "unpark")
            book.adjust(new.fiscal_year, new.month, bucket, new.planned_amount, "park")
        return self._finish(new, book, repo)

    def on_unplan(self, item: TrackedItem, repo: FinanceRepository) -> ReallocationOutcome:
        """
        Remove a deleted item's parked amount

        The caller deletes the item document; nothing is parked once the
        allocation has been released to linked transactions.
        """
        book = _BudgetBook(repo, "plan")
        if not item.allocation_released:
            book.adjust(
                item.fiscal_year, item.month, item.budget_bucket, -item.planned_amount, "unpark"
            )
        touched = book.flush()
        return ReallocationOutcome(item=item, touched_budgets=touched, skips=book.skips)

    # Steps

    def _resolve(self, transaction: Transaction, repo: FinanceRepository) -> TrackedItem:
        kind = transaction.linked_item_kind
        item_id = transaction.linked_item_id
        item = repo.get_item(kind, item_id) if kind and item_id else None
        if item is None:
            linked_item_not_found_total.labels(kind=kind or "unknown").inc()
            logger.error(
                "Linked item not found",
                transaction_id=transaction.id,
                kind=kind,
                item_id=item_id,
            )
            raise LinkedItemNotFound(kind or "item", item_id or "")
        return item

    def _placement(
        self, transaction: Transaction, book: _BudgetBook
    ) -> tuple[int, int] | None:
        """
        (fiscal_year, fiscal_month) the transaction's amount belongs in

        None when the amount cannot be applied; the reason is recorded.
        """
        fiscal_year = transaction.fiscal_year or fiscal_year_of(transaction.date)
        month = fiscal_month_of(transaction.date, fiscal_year)

        if month is None:
            policy = self.settings.unmapped_fiscal_month_policy
            unmapped = UnmappedFiscalMonth(
                transaction.id, transaction.date.isoformat(), fiscal_year
            )
            if policy == "REJECT":
                reallocation_skips_total.labels(reason=unmapped.code).inc()
                raise unmapped
            if policy == "SKIP":
                book.skip(unmapped, fiscal_year, transaction.id)
                return None

            routed_year = fiscal_year_of(transaction.date)
            logger.info(
                "Routing transaction to its own fiscal year",
                transaction_id=transaction.id,
                booked_fiscal_year=fiscal_year,
                fiscal_year=routed_year,
            )
            fiscal_year = routed_year
            month = fiscal_month_of(transaction.date, fiscal_year)
            if month is None:
                return None

        if book.load(fiscal_year) is None:
            return None
        return fiscal_year, month

    def _link(
        self,
        item: TrackedItem,
        transaction: Transaction,
        mark_complete: bool,
        book: _BudgetBook,
    ) -> TrackedItem:
        placement = self._placement(transaction, book)
        applied_year, applied_month = placement if placement else (None, None)

        result = link_transaction(
            item,
            transaction,
            mark_complete,
            self.clock.today(),
            self.settings,
            applied_month=applied_month,
            applied_fiscal_year=applied_year,
        )
        item = result.item
        if placement is None:
            return item

        fiscal_year, month = placement
        bucket = item.budget_bucket

        if not item.allocation_released:
            released = book.adjust(
                item.fiscal_year,
                item.original_month,
                bucket,
                -item.planned_amount,
                step="release_planned_allocation",
            )
            if released:
                item = release_allocation(item, month)

        book.adjust(fiscal_year, month, bucket, transaction.amount, step="apply_transaction")
        return item

    def _finish(
        self, item: TrackedItem, book: _BudgetBook, repo: FinanceRepository
    ) -> ReallocationOutcome:
        repo.save_item(item)
        touched = book.flush()
        return ReallocationOutcome(item=item, touched_budgets=touched, skips=book.skips)
