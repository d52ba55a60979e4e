"""
Kernel - Shared infrastructure for clubfin

Errors, settings, clock, IDs, logging, metrics and the document store.
Domain modules build on these and never reach for ambient globals.
"""

from clubfin.kernel.config import Settings, default_settings
from clubfin.kernel.errors import (
    BudgetDocumentMissing,
    ClubFinError,
    InvariantViolation,
    LinkedItemNotFound,
    StoreError,
    UnmappedFiscalMonth,
)
from clubfin.kernel.ids import generate_id
from clubfin.kernel.store import (
    DocumentStore,
    InMemoryDocumentStore,
    SQLiteDocumentStore,
    StoreTransaction,
)
from clubfin.kernel.time import Clock, FixedClock, RealClock

__all__ = [
    # Settings
    "Settings",
    "default_settings",
    # Time & IDs
    "Clock",
    "RealClock",
    "FixedClock",
    "generate_id",
    # Store
    "DocumentStore",
    "InMemoryDocumentStore",
    "SQLiteDocumentStore",
    "StoreTransaction",
    # Errors
    "ClubFinError",
    "StoreError",
    "InvariantViolation",
    "LinkedItemNotFound",
    "UnmappedFiscalMonth",
    "BudgetDocumentMissing",
]
