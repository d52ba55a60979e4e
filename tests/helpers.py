"""
Test Helper Functions - Builders for transactions and save requests

Keeps engine and façade tests short: one line per expense instead of a
full Transaction constructor.
"""

from datetime import date
from decimal import Decimal

from clubfin.transactions.models import Transaction, TransactionInput

FY = 2026


def make_expense(
    transaction_id: str,
    on: str,
    amount: str,
    *,
    maintenance_id: str | None = None,
    capex_id: str | None = None,
    fiscal_year: int | None = FY,
) -> Transaction:
    """
    Builder for a stored expense, optionally linked to an item

    expense_type follows the link: CAPEX for projects, OPEX otherwise.
    """
    return Transaction(
        id=transaction_id,
        date=date.fromisoformat(on),
        amount=Decimal(amount),
        type="expense",
        expense_type="CAPEX" if capex_id else "OPEX",
        major_maintenance_item_id=maintenance_id,
        capex_project_id=capex_id,
        fiscal_year=fiscal_year,
    )


def expense_input(
    on: str,
    amount: str,
    *,
    transaction_id: str | None = None,
    maintenance_id: str | None = None,
    capex_id: str | None = None,
    fiscal_year: int | None = None,
    complete: bool = False,
) -> TransactionInput:
    """Builder for a save request through the ClubFinance façade"""
    return TransactionInput(
        id=transaction_id,
        date=date.fromisoformat(on),
        amount=Decimal(amount),
        type="expense",
        expense_type="CAPEX" if capex_id else "OPEX",
        major_maintenance_item_id=maintenance_id,
        capex_project_id=capex_id,
        fiscal_year=fiscal_year,
        mark_item_complete=complete,
    )
