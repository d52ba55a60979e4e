"""
Ledger Models - Maintenance items, CAPEX projects and their linked transactions

Both kinds of tracked item share one shape: a planned amount parked in a
fiscal month, plus a linkage that is either Planned (nothing linked yet) or
Linked (one or more real transactions, with the month the allocation was
first planned in kept for restoration).

Making the linkage a tagged union means "has this ever been linked" is a
type-level fact: original_month only exists on the Linked variant.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, ClassVar, Literal

from pydantic import BaseModel, Field, model_validator

from clubfin.budget.models import BudgetBucket

SUBCATEGORY_MAJOR_MAINTENANCE = "Major Maintenance"


class LinkedTransaction(BaseModel):
    """
    Ledger entry for one linked transaction

    applied_month records where the amount was added: fiscal month
    applied_month of fiscal_year's budget. None means the amount never
    reached a budget (the date fell outside the fiscal year, or the budget
    did not exist), so there is nothing to reverse.
    """

    id: str
    date: date
    amount: Decimal = Field(gt=0)
    fiscal_year: int
    applied_month: int | None = Field(default=None, ge=0, le=11)


class LastOccurrence(BaseModel):
    """Most recent completed occurrence of a recurring item"""

    date: date
    amount: Decimal
    transaction_ids: list[str] = Field(default_factory=list)


class Planned(BaseModel):
    """No transaction linked; the planned amount sits in the item's month"""

    kind: Literal["planned"] = "planned"


class Linked(BaseModel):
    """
    At least one transaction linked

    Attributes:
        original_month: Fiscal month the allocation was first planned in
        allocation_released: True once the planned amount has been taken
            out of original_month
        linked_transactions: Ledger entries in link order
    """

    kind: Literal["linked"] = "linked"
    original_month: int = Field(ge=0, le=11)
    allocation_released: bool = False
    linked_transactions: list[LinkedTransaction] = Field(min_length=1)


Linkage = Annotated[Planned | Linked, Field(discriminator="kind")]


class TrackedItem(BaseModel):
    """
    Common shape of MaintenanceItem and CapexProject

    Subclasses define item_kind, budget_bucket and planned_amount.
    """

    item_kind: ClassVar[str]
    budget_bucket: ClassVar[BudgetBucket]

    id: str
    fiscal_year: int = Field(ge=1900, le=2200)
    name: str = Field(min_length=1, max_length=200)
    description: str = ""
    month: int = Field(ge=0, le=11)
    linkage: Linkage = Field(default_factory=Planned)
    completed: bool = False
    tracking_enabled: bool = True
    alert_year: int | None = Field(default=None, ge=1900, le=2200)
    notes: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def planned_amount(self) -> Decimal:
        raise NotImplementedError

    @property
    def is_linked(self) -> bool:
        return isinstance(self.linkage, Linked)

    @property
    def linked_transactions(self) -> list[LinkedTransaction]:
        if isinstance(self.linkage, Linked):
            return self.linkage.linked_transactions
        return []

    @property
    def original_month(self) -> int:
        """Month the allocation was first planned in (current month while planned)"""
        if isinstance(self.linkage, Linked):
            return self.linkage.original_month
        return self.month

    @property
    def allocation_released(self) -> bool:
        return isinstance(self.linkage, Linked) and self.linkage.allocation_released

    @property
    def total_actual_amount(self) -> Decimal:
        return sum((entry.amount for entry in self.linked_transactions), Decimal("0"))

    def find_linked(self, transaction_id: str) -> LinkedTransaction | None:
        for entry in self.linked_transactions:
            if entry.id == transaction_id:
                return entry
        return None


class MaintenanceItem(TrackedItem):
    """
    Major-maintenance record (recurring OPEX with multi-year forecasting)

    Attributes:
        budget_amount: Planned cost of this occurrence
        recurrence_years_min / recurrence_years_max: Recurrence window
        last_occurrence: Set when an occurrence is marked complete
        next_due_date_min / next_due_date_max: Forecast due window
        next_expected_cost: Inflation-adjusted forecast
    """

    item_kind: ClassVar[str] = "maintenance"
    budget_bucket: ClassVar[BudgetBucket] = BudgetBucket.OPEX

    budget_amount: Decimal = Field(gt=0)
    recurrence_years_min: int = Field(ge=1)
    recurrence_years_max: int = Field(ge=1)
    last_occurrence: LastOccurrence | None = None
    next_due_date_min: date | None = None
    next_due_date_max: date | None = None
    next_expected_cost: Decimal | None = None
    category: Literal["OPEX"] = "OPEX"
    subcategory: str = SUBCATEGORY_MAJOR_MAINTENANCE

    @model_validator(mode="after")
    def _check_recurrence_window(self) -> "MaintenanceItem":
        if self.recurrence_years_min > self.recurrence_years_max:
            raise ValueError(
                f"recurrence_years_min {self.recurrence_years_min} exceeds "
                f"recurrence_years_max {self.recurrence_years_max}"
            )
        return self

    @property
    def planned_amount(self) -> Decimal:
        return self.budget_amount

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "id": "majormaint_0193a1b2-0c4d-7000-8000-1a2b3c4d5e6f",
                    "fiscal_year": 2026,
                    "name": "Pool resurfacing",
                    "budget_amount": "12000.00",
                    "month": 5,
                    "recurrence_years_min": 7,
                    "recurrence_years_max": 10,
                    "linkage": {"kind": "planned"},
                    "completed": False,
                    "tracking_enabled": True,
                }
            ]
        }
    }


class CapexProject(TrackedItem):
    """
    Planned capital project (no recurrence forecast)

    Attributes:
        amount: Planned cost
        completed_date: When it was marked complete
        install_date: Date of the latest linked transaction at completion
        actual_amount: Total linked spending at completion
    """

    item_kind: ClassVar[str] = "capex"
    budget_bucket: ClassVar[BudgetBucket] = BudgetBucket.CAPEX

    amount: Decimal = Field(gt=0)
    completed_date: date | None = None
    install_date: date | None = None
    actual_amount: Decimal | None = None

    @property
    def planned_amount(self) -> Decimal:
        return self.amount
