"""
Transaction Models - Revenue and expense records

Amounts are unsigned; the sign comes from the type. An expense may link
to at most one maintenance item or CAPEX project, and that link is what
triggers the reallocation engine.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, model_validator

from clubfin.fiscal.calendar import fiscal_year_of


class TransactionType(str, Enum):
    REVENUE = "revenue"
    EXPENSE = "expense"


class ExpenseType(str, Enum):
    """
    Expense classification, one per budget bucket

    OPEX: Operating costs, including major maintenance
    CAPEX: Capital projects
    GA: General and administrative
    """

    OPEX = "OPEX"
    CAPEX = "CAPEX"
    GA = "G&A"


class PaymentMethod(str, Enum):
    BILLPAY = "BillPay"
    AUTOPAY = "AutoPay"
    PAYPAL = "PayPal"
    ZELLE = "Zelle"
    WEB_ACH = "Web ACH"
    WEB_CREDIT = "Web Credit Card"
    CHECK = "Check"
    OTHER = "Other"


class TransactionFields(BaseModel):
    """
    Fields shared by stored transactions and save requests

    Invariants enforced:
    - expense_type is set exactly when type is expense
    - at most one of major_maintenance_item_id / capex_project_id
    - links only on expenses
    - fiscal_year defaults to the fiscal year of date
    """

    date: date
    amount: Decimal = Field(gt=0)
    type: TransactionType
    expense_type: ExpenseType | None = None
    description: str = ""
    category: str = ""
    payment_method: PaymentMethod | None = None
    major_maintenance_item_id: str | None = None
    capex_project_id: str | None = None
    # Fiscal year the transaction is booked under (None = the date's own)
    fiscal_year: int | None = Field(default=None, ge=1900, le=2200)

    @model_validator(mode="after")
    def _check_classification(self) -> Any:
        if self.type == TransactionType.EXPENSE and self.expense_type is None:
            raise ValueError("expense_type is required for expenses")
        if self.type == TransactionType.REVENUE and self.expense_type is not None:
            raise ValueError("expense_type is only valid for expenses")

        if self.major_maintenance_item_id and self.capex_project_id:
            raise ValueError(
                "A transaction links to a maintenance item or a CAPEX project, not both"
            )
        if self.linked_item_id and self.type != TransactionType.EXPENSE:
            raise ValueError("Only expenses can be linked to maintenance items or CAPEX projects")

        if self.fiscal_year is None:
            self.fiscal_year = fiscal_year_of(self.date)
        return self

    @property
    def linked_item_id(self) -> str | None:
        return self.major_maintenance_item_id or self.capex_project_id

    @property
    def linked_item_kind(self) -> str | None:
        """'maintenance', 'capex' or None"""
        if self.major_maintenance_item_id:
            return "maintenance"
        if self.capex_project_id:
            return "capex"
        return None

    def signed_amount(self) -> Decimal:
        """Amount with the sign implied by type (expenses negative)"""
        return self.amount if self.type == TransactionType.REVENUE else -self.amount


class Transaction(TransactionFields):
    """
    Stored transaction

    Attributes:
        id: Transaction id ("txn_...")
        created_at / created_by: Set on first save
        updated_at / updated_by: Set on every save
    """

    id: str
    created_at: datetime | None = None
    created_by: str | None = None
    updated_at: datetime | None = None
    updated_by: str | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "id": "txn_0193a1b2-0c4d-7000-8000-1a2b3c4d5e6f",
                    "date": "2026-04-10",
                    "amount": "9000.00",
                    "type": "expense",
                    "expense_type": "OPEX",
                    "description": "Pool resurfacing - final invoice",
                    "payment_method": "Check",
                    "major_maintenance_item_id": "majormaint_0193a1b2-0c4d-7000-8000-1a2b3c4d5e6f",
                    "fiscal_year": 2026,
                }
            ]
        }
    }


class TransactionInput(TransactionFields):
    """
    Save request for a transaction

    id is None for a new transaction. mark_item_complete is a one-shot
    instruction to the ledger and is never stored.
    """

    id: str | None = None
    mark_item_complete: bool = False

    def to_transaction(
        self, transaction_id: str, previous: Transaction | None = None, **audit: Any
    ) -> Transaction:
        """
        Stored transaction for this request

        On an edit (previous given), a booking year carried over from a
        transaction booked under its own date's fiscal year follows the new
        date. Bookings that differ from the date's year are kept as given.
        """
        data = self.model_dump(exclude={"id", "mark_item_complete"})
        if previous is not None and self.fiscal_year == previous.fiscal_year == fiscal_year_of(
            previous.date
        ):
            data["fiscal_year"] = fiscal_year_of(self.date)
        return Transaction(id=transaction_id, **data, **audit)
