"""
Linkage Ledger Rules - Link and unlink transactions on tracked items

Pure functions over MaintenanceItem / CapexProject. Each returns a new
model copy; the caller owns persistence and every budget movement.

Rules:
- Re-linking a transaction id replaces its entry in place (edits are idempotent)
- The first link moves the item from Planned to Linked and records original_month
- Marking complete snapshots the ledger into last_occurrence (maintenance) or
  completion fields (CAPEX)
- Removing the last entry returns the item to Planned at original_month
"""

from datetime import date
from decimal import Decimal
from typing import NamedTuple, Protocol, TypeVar

from clubfin.kernel.config import Settings, default_settings
from clubfin.ledger.models import (
    CapexProject,
    LastOccurrence,
    Linked,
    LinkedTransaction,
    MaintenanceItem,
    Planned,
    TrackedItem,
)
from clubfin.recurrence.alerts import alert_year_forecast
from clubfin.recurrence.calculator import calculate_inflated_cost, calculate_next_due_dates

ItemT = TypeVar("ItemT", bound=TrackedItem)


class LinkableTransaction(Protocol):
    id: str
    date: date
    amount: Decimal
    fiscal_year: int


class LinkResult(NamedTuple):
    item: TrackedItem
    is_first: bool


class UnlinkResult(NamedTuple):
    """
    Outcome of removing a ledger entry

    restore_required is True when the ledger emptied after the planned
    allocation had been released; the caller must put planned_amount back
    into original_month.
    """

    item: TrackedItem
    removed: LinkedTransaction | None
    emptied: bool
    restore_required: bool


def link_transaction(
    item: ItemT,
    transaction: LinkableTransaction,
    mark_complete: bool,
    today: date,
    settings: Settings = default_settings,
    applied_month: int | None = None,
    applied_fiscal_year: int | None = None,
) -> LinkResult:
    """
    Add or replace the ledger entry for a transaction

    Args:
        item: Maintenance item or CAPEX project
        transaction: Anything with id, date, amount and fiscal_year
        mark_complete: Snapshot the ledger as a completed occurrence
        today: Completion date for CAPEX projects
        settings: Inflation settings for the maintenance forecast
        applied_month: Fiscal month the amount was added to (None = not applied)
        applied_fiscal_year: Budget year applied_month belongs to, when it is
            not the transaction's own fiscal_year

    Returns:
        LinkResult with the updated copy and whether this was the first link
    """
    entry = LinkedTransaction(
        id=transaction.id,
        date=transaction.date,
        amount=transaction.amount,
        fiscal_year=applied_fiscal_year or transaction.fiscal_year,
        applied_month=applied_month,
    )

    updated = item.model_copy(deep=True)
    is_first = not isinstance(updated.linkage, Linked)

    if isinstance(updated.linkage, Linked):
        entries = updated.linkage.linked_transactions
        for index, existing in enumerate(entries):
            if existing.id == entry.id:
                entries[index] = entry
                break
        else:
            entries.append(entry)
    else:
        updated.linkage = Linked(original_month=updated.month, linked_transactions=[entry])

    if mark_complete or updated.completed:
        updated = _complete(updated, today, settings)

    return LinkResult(item=updated, is_first=is_first)


def release_allocation(item: ItemT, month: int) -> ItemT:
    """
    Record that the planned allocation left original_month

    The item's month follows the transaction that released it.
    """
    if not isinstance(item.linkage, Linked):
        return item
    released = item.linkage.model_copy(update={"allocation_released": True}, deep=True)
    return item.model_copy(update={"linkage": released, "month": month}, deep=True)


def unlink_transaction(
    item: ItemT,
    transaction_id: str,
    today: date | None = None,
    settings: Settings = default_settings,
) -> UnlinkResult:
    """
    Remove a transaction's ledger entry

    When the last entry goes, the item is Planned again at original_month
    with its completion cleared and its forecast re-derived. When entries
    remain on a completed item, last_occurrence is rebuilt from them.
    """
    linkage = item.linkage
    existing = item.find_linked(transaction_id)
    if existing is None or not isinstance(linkage, Linked):
        return UnlinkResult(item=item, removed=None, emptied=False, restore_required=False)

    remaining = [
        entry.model_copy() for entry in linkage.linked_transactions if entry.id != transaction_id
    ]
    updated = item.model_copy(deep=True)

    if remaining:
        updated.linkage = Linked(
            original_month=linkage.original_month,
            allocation_released=linkage.allocation_released,
            linked_transactions=remaining,
        )
        if updated.completed:
            updated = _complete(updated, today or existing.date, settings)
        return UnlinkResult(item=updated, removed=existing, emptied=False, restore_required=False)

    restore_required = linkage.allocation_released
    updated.month = linkage.original_month
    updated.linkage = Planned()
    updated.completed = False

    if isinstance(updated, MaintenanceItem):
        updated.last_occurrence = None
        if today is not None:
            updated = refresh_forecast(updated, today, settings)
    elif isinstance(updated, CapexProject):
        updated.completed_date = None
        updated.install_date = None
        updated.actual_amount = None

    return UnlinkResult(
        item=updated, removed=existing, emptied=True, restore_required=restore_required
    )


def refresh_forecast(item: ItemT, today: date, settings: Settings = default_settings) -> ItemT:
    """
    Re-derive next due dates and expected cost of a maintenance item

    From last_occurrence when there is one, else from alert_year, else cleared.
    CAPEX projects carry no forecast and are returned unchanged.
    """
    if not isinstance(item, MaintenanceItem):
        return item

    updated = item.model_copy(deep=True)

    if updated.last_occurrence is not None:
        due = calculate_next_due_dates(
            updated.last_occurrence.date,
            updated.recurrence_years_min,
            updated.recurrence_years_max,
        )
        updated.next_due_date_min = due.min
        updated.next_due_date_max = due.max
        updated.next_expected_cost = calculate_inflated_cost(
            updated.last_occurrence.amount,
            updated.recurrence_years_min,
            rate=settings.inflation_rate,
            clamp_negative=settings.clamp_negative_inflation_years,
        )
    elif updated.alert_year is not None:
        forecast = alert_year_forecast(updated.budget_amount, updated.alert_year, today, settings)
        updated.next_due_date_min = forecast.next_due_date_min
        updated.next_due_date_max = forecast.next_due_date_max
        updated.next_expected_cost = forecast.expected_cost
    else:
        updated.next_due_date_min = None
        updated.next_due_date_max = None
        updated.next_expected_cost = None

    return updated


def _complete(item: ItemT, today: date, settings: Settings) -> ItemT:
    entries = item.linked_transactions
    if not entries:
        return item

    latest = max(entries, key=lambda entry: entry.date)
    total = item.total_actual_amount
    item.completed = True

    if isinstance(item, MaintenanceItem):
        item.last_occurrence = LastOccurrence(
            date=latest.date,
            amount=total,
            transaction_ids=[entry.id for entry in entries],
        )
        return refresh_forecast(item, today, settings)

    if isinstance(item, CapexProject):
        if item.completed_date is None:
            item.completed_date = today
        item.install_date = latest.date
        item.actual_amount = total

    return item
