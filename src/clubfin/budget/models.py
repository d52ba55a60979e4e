"""
Budget Domain Models - Per-fiscal-year monthly budget buckets

One BudgetDocument per fiscal year holds twelve monthly buckets of planned
revenue, OPEX, CAPEX and G&A, indexed by fiscal month (0 = October).

Planned maintenance items and CAPEX projects are "parked" in the bucket of
their planned month. Once real spending is linked, the reallocation engine
moves the amount to the month(s) the money actually went out.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field, field_validator

from clubfin.fiscal.calendar import MONTHS_PER_YEAR, validate_fiscal_month


class BudgetBucket(str, Enum):
    """
    Monthly budget line

    OPEX carries major maintenance, CAPEX carries capital projects.
    """

    REVENUE = "revenue"
    OPEX = "opex"
    CAPEX = "capex"
    GA = "ga"


class MonthlyBudget(BaseModel):
    """Planned amounts for one fiscal month"""

    revenue: Decimal = Decimal("0")
    opex: Decimal = Decimal("0")
    capex: Decimal = Decimal("0")
    ga: Decimal = Decimal("0")
    notes: str = ""

    def net(self) -> Decimal:
        """Budgeted net for the month (revenue minus all expenses)"""
        return self.revenue - self.opex - self.capex - self.ga


def budget_doc_id(fiscal_year: int) -> str:
    return f"budget_{fiscal_year}"


class BudgetDocument(BaseModel):
    """
    Annual budget, one per fiscal year

    Attributes:
        fiscal_year: Fiscal year this budget covers (named by its September year)
        monthly_budgets: Exactly twelve buckets, index = fiscal month
        starting_balance: Cash at October 1, for cash-flow projection
        low_balance_threshold: Year-end balance below this raises a warning
        closed_months: Fiscal months locked against transaction writes
        updated_at: Last write time
        updated_by: Last writer
    """

    fiscal_year: int = Field(ge=1900, le=2200)
    monthly_budgets: list[MonthlyBudget] = Field(
        default_factory=lambda: [MonthlyBudget() for _ in range(MONTHS_PER_YEAR)],
        min_length=MONTHS_PER_YEAR,
        max_length=MONTHS_PER_YEAR,
    )
    starting_balance: Decimal = Decimal("0")
    low_balance_threshold: Decimal = Decimal("20000")
    closed_months: list[int] = Field(default_factory=list)
    updated_at: datetime | None = None
    updated_by: str | None = None

    @field_validator("closed_months")
    @classmethod
    def _valid_closed_months(cls, months: list[int]) -> list[int]:
        for month in months:
            validate_fiscal_month(month)
        return sorted(set(months))

    @property
    def doc_id(self) -> str:
        return budget_doc_id(self.fiscal_year)

    def bucket(self, month: int, bucket: BudgetBucket) -> Decimal:
        validate_fiscal_month(month)
        return getattr(self.monthly_budgets[month], bucket.value)

    def adjust(self, month: int, bucket: BudgetBucket, delta: Decimal) -> Decimal:
        """
        Add delta to one bucket of one month

        Returns:
            The bucket's new value
        """
        validate_fiscal_month(month)
        entry = self.monthly_budgets[month]
        new_value = getattr(entry, bucket.value) + delta
        setattr(entry, bucket.value, new_value)
        return new_value

    def bucket_total(self, bucket: BudgetBucket) -> Decimal:
        return sum(
            (getattr(entry, bucket.value) for entry in self.monthly_budgets),
            Decimal("0"),
        )

    def is_month_closed(self, month: int) -> bool:
        return month in self.closed_months

    def year_end_budgeted_balance(self) -> Decimal:
        return self.starting_balance + sum(
            (entry.net() for entry in self.monthly_budgets), Decimal("0")
        )

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "fiscal_year": 2026,
                    "monthly_budgets": [
                        {"revenue": "0", "opex": "4500.00", "capex": "0", "ga": "250.00"}
                    ]
                    * 12,
                    "starting_balance": "18500.00",
                    "low_balance_threshold": "20000.00",
                    "closed_months": [],
                }
            ]
        },
    }
