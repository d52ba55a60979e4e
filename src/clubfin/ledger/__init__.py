"""Linkage ledger: tracked items and the transactions linked to them"""

from clubfin.ledger.models import (
    CapexProject,
    LastOccurrence,
    Linked,
    LinkedTransaction,
    MaintenanceItem,
    Planned,
    TrackedItem,
)
from clubfin.ledger.rules import (
    LinkResult,
    UnlinkResult,
    link_transaction,
    refresh_forecast,
    release_allocation,
    unlink_transaction,
)

__all__ = [
    "CapexProject",
    "LastOccurrence",
    "LinkResult",
    "Linked",
    "LinkedTransaction",
    "MaintenanceItem",
    "Planned",
    "TrackedItem",
    "UnlinkResult",
    "link_transaction",
    "refresh_forecast",
    "release_allocation",
    "unlink_transaction",
]
