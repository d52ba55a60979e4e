"""
Custom exceptions for clubfin

Well-defined error hierarchy enables precise error handling and
clear error messages for the treasurer and for operators.

Only LinkedItemNotFound is fatal to a transaction save by default. The
reallocation skips (UnmappedFiscalMonth, BudgetDocumentMissing) are
recorded on the outcome and logged; they are raised only when the
configured policy asks for it.
"""


class ClubFinError(Exception):
    """Base exception for all clubfin errors"""

    pass


class StoreError(ClubFinError):
    """Base class for document store errors"""

    pass


class InvariantViolation(ClubFinError):
    """
    Raised when a domain invariant would be violated

    Examples: recurrence window min > max, a 13th budget month,
    re-planning an item whose allocation already follows its transactions.
    """

    pass


class InvalidFiscalMonth(InvariantViolation):
    """Raised when a fiscal month index is outside 0..11"""

    def __init__(self, month: int) -> None:
        self.month = month
        super().__init__(f"Fiscal month {month} is outside 0..11")


# Reallocation errors


class ReallocationError(ClubFinError):
    """Base class for reallocation-specific errors"""

    pass


class LinkedItemNotFound(ReallocationError):
    """
    Raised when a transaction references a maintenance item or CAPEX project
    that does not resolve

    Aborts the whole save: the transaction is not persisted.
    """

    def __init__(self, kind: str, item_id: str) -> None:
        self.kind = kind
        self.item_id = item_id
        super().__init__(
            f"Linked {kind} {item_id} not found - transaction was not saved"
        )


class ReallocationSkipped(ReallocationError):
    """Base class for non-fatal conditions that skip a budget mutation"""

    code = "SKIPPED"


class UnmappedFiscalMonth(ReallocationSkipped):
    """Raised (or recorded) when a date falls outside the budget's fiscal year"""

    code = "UNMAPPED_FISCAL_MONTH"

    def __init__(self, transaction_id: str, date: str, fiscal_year: int) -> None:
        self.transaction_id = transaction_id
        self.date = date
        self.fiscal_year = fiscal_year
        super().__init__(
            f"Transaction {transaction_id} dated {date} is outside fiscal year "
            f"{fiscal_year} - no budget bucket was touched"
        )


class BudgetDocumentMissing(ReallocationSkipped):
    """Recorded when no budget document exists for the fiscal year involved"""

    code = "BUDGET_DOCUMENT_MISSING"

    def __init__(self, fiscal_year: int) -> None:
        self.fiscal_year = fiscal_year
        super().__init__(
            f"No budget for fiscal year {fiscal_year} - reallocation skipped"
        )


# Lookup and lifecycle errors


class TransactionNotFound(ClubFinError):
    """Raised when transaction does not exist"""

    def __init__(self, transaction_id: str) -> None:
        self.transaction_id = transaction_id
        super().__init__(f"Transaction {transaction_id} not found")


class ItemNotFound(ClubFinError):
    """Raised when a maintenance item or CAPEX project does not exist"""

    def __init__(self, kind: str, item_id: str) -> None:
        self.kind = kind
        self.item_id = item_id
        super().__init__(f"{kind} {item_id} not found")


class BudgetNotFound(ClubFinError):
    """Raised when an operation requires a budget that does not exist"""

    def __init__(self, fiscal_year: int) -> None:
        self.fiscal_year = fiscal_year
        super().__init__(f"Budget for fiscal year {fiscal_year} not found")


class BudgetAlreadyExists(ClubFinError):
    """Raised when creating a second budget for the same fiscal year"""

    def __init__(self, fiscal_year: int) -> None:
        self.fiscal_year = fiscal_year
        super().__init__(f"Budget for fiscal year {fiscal_year} already exists")


class ItemHasLinkedTransactions(InvariantViolation):
    """Raised when re-planning an item whose allocation follows its transactions"""

    def __init__(self, item_id: str, linked_count: int) -> None:
        self.item_id = item_id
        self.linked_count = linked_count
        super().__init__(
            f"Item {item_id} has {linked_count} linked transaction(s) - "
            "unlink them before changing its planned amount, month or fiscal year"
        )


class MonthClosed(ClubFinError):
    """Raised when writing a transaction into a closed fiscal month"""

    def __init__(self, fiscal_year: int, month: int) -> None:
        self.fiscal_year = fiscal_year
        self.month = month
        super().__init__(
            f"Fiscal month {month} of {fiscal_year} is closed - reopen it first"
        )


class PermissionDenied(ClubFinError):
    """Raised when the acting user's role lacks a permission"""

    def __init__(self, user_id: str, role: str, permission: str) -> None:
        self.user_id = user_id
        self.role = role
        self.permission = permission
        super().__init__(f"Role {role} does not grant {permission}")
