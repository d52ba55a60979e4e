"""
Tests for transaction validation
"""

from datetime import date
from decimal import Decimal

import pytest
from pydantic import ValidationError

from clubfin.transactions.models import (
    ExpenseType,
    Transaction,
    TransactionInput,
    TransactionType,
)


def test_fiscal_year_defaults_from_date() -> None:
    txn = Transaction(
        id="txn_1", date=date(2025, 11, 3), amount=Decimal("40"), type="revenue"
    )
    assert txn.fiscal_year == 2026
    assert txn.signed_amount() == Decimal("40")


def test_explicit_fiscal_year_is_kept() -> None:
    txn = Transaction(
        id="txn_1",
        date=date(2026, 10, 3),
        amount=Decimal("40"),
        type="expense",
        expense_type="OPEX",
        fiscal_year=2026,
    )
    assert txn.fiscal_year == 2026
    assert txn.signed_amount() == Decimal("-40")


def test_expense_requires_expense_type() -> None:
    with pytest.raises(ValidationError, match="expense_type is required"):
        Transaction(id="txn_1", date=date(2026, 1, 5), amount=Decimal("10"), type="expense")


def test_revenue_rejects_expense_type() -> None:
    with pytest.raises(ValidationError, match="only valid for expenses"):
        Transaction(
            id="txn_1",
            date=date(2026, 1, 5),
            amount=Decimal("10"),
            type="revenue",
            expense_type="OPEX",
        )


def test_amount_must_be_positive() -> None:
    with pytest.raises(ValidationError):
        Transaction(
            id="txn_1", date=date(2026, 1, 5), amount=Decimal("-10"), type="expense", expense_type="OPEX"
        )


def test_link_to_both_kinds_rejected() -> None:
    with pytest.raises(ValidationError, match="not both"):
        Transaction(
            id="txn_1",
            date=date(2026, 1, 5),
            amount=Decimal("10"),
            type="expense",
            expense_type="OPEX",
            major_maintenance_item_id="majormaint_1",
            capex_project_id="capex_1",
        )


def test_revenue_cannot_link() -> None:
    with pytest.raises(ValidationError, match="Only expenses"):
        Transaction(
            id="txn_1",
            date=date(2026, 1, 5),
            amount=Decimal("10"),
            type="revenue",
            capex_project_id="capex_1",
        )


def test_linked_item_kind() -> None:
    maintenance = Transaction(
        id="txn_1",
        date=date(2026, 1, 5),
        amount=Decimal("10"),
        type="expense",
        expense_type="OPEX",
        major_maintenance_item_id="majormaint_1",
    )
    plain = Transaction(
        id="txn_2", date=date(2026, 1, 5), amount=Decimal("10"), type="expense", expense_type="G&A"
    )
    assert maintenance.linked_item_kind == "maintenance"
    assert maintenance.linked_item_id == "majormaint_1"
    assert plain.linked_item_kind is None
    assert plain.expense_type == ExpenseType.GA


def test_input_to_transaction_drops_instruction() -> None:
    data = TransactionInput(
        date=date(2026, 4, 10),
        amount=Decimal("9000"),
        type="expense",
        expense_type="OPEX",
        major_maintenance_item_id="majormaint_1",
        mark_item_complete=True,
    )
    txn = data.to_transaction("txn_new", created_by="treasurer")

    assert txn.id == "txn_new"
    assert txn.type == TransactionType.EXPENSE
    assert txn.created_by == "treasurer"
    assert txn.fiscal_year == 2026
    assert "mark_item_complete" not in txn.model_dump()


def test_edit_into_next_fiscal_year_follows_date() -> None:
    """A booking year copied from the stored transaction moves with the new date"""
    stored = Transaction(
        id="txn_1",
        date=date(2026, 9, 20),
        amount=Decimal("9000"),
        type="expense",
        expense_type="OPEX",
    )
    copied = stored.model_dump(include=set(TransactionInput.model_fields))
    edit = TransactionInput.model_validate({**copied, "date": date(2026, 10, 5)})
    assert edit.fiscal_year == 2026

    assert edit.to_transaction(stored.id, previous=stored).fiscal_year == 2027


def test_edit_keeps_booking_that_differs_from_date() -> None:
    stored = Transaction(
        id="txn_1",
        date=date(2026, 10, 3),
        amount=Decimal("40"),
        type="revenue",
        fiscal_year=2026,
    )
    edit = TransactionInput(
        date=date(2026, 10, 20), amount=Decimal("40"), type="revenue", fiscal_year=2026
    )

    assert edit.to_transaction(stored.id, previous=stored).fiscal_year == 2026
