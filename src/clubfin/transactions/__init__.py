"""Revenue and expense transactions"""

from clubfin.transactions.models import (
    ExpenseType,
    PaymentMethod,
    Transaction,
    TransactionInput,
    TransactionType,
)

__all__ = ["ExpenseType", "PaymentMethod", "Transaction", "TransactionInput", "TransactionType"]
