"""Reallocation engine: budget movements driven by linked transactions"""

from clubfin.reallocation.engine import (
    ReallocationEngine,
    ReallocationOutcome,
    ReallocationSkip,
)

__all__ = ["ReallocationEngine", "ReallocationOutcome", "ReallocationSkip"]
