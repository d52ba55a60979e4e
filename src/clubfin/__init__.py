"""
clubfin - Club finances on an October-September fiscal year

Budgets, transactions, major-maintenance recurrence forecasting and CAPEX
planning. When an expense is linked to a planned maintenance item or
CAPEX project, the reallocation engine moves the planned amount out of
its parked month and books the real spending where it happened.
"""

from clubfin.kernel.config import Settings
from clubfin.kernel.store import InMemoryDocumentStore, SQLiteDocumentStore
from clubfin.service import ClubFinance, Role, UserContext

__version__ = "0.1.0"
__all__ = [
    "ClubFinance",
    "InMemoryDocumentStore",
    "Role",
    "SQLiteDocumentStore",
    "Settings",
    "UserContext",
    "__version__",
]
