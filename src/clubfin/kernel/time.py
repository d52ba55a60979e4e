"""
Clock abstraction for deterministic testing

Recurrence forecasts and alert buckets depend on "today". Injecting the
clock keeps every calculation reproducible in tests.
"""

from datetime import date, datetime, timedelta, timezone
from typing import Protocol


class Clock(Protocol):
    """Protocol for clocks - allows deterministic testing"""

    def now(self) -> datetime:
        """Return current UTC datetime"""
        ...

    def today(self) -> date:
        """Return the current calendar date"""
        ...


class RealClock:
    """Production clock using the system clock"""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def today(self) -> date:
        return date.today()


class FixedClock:
    """
    Controllable clock for deterministic tests

    Allows tests to freeze time and advance it by whole days.
    """

    def __init__(self, initial_time: datetime | None = None) -> None:
        """
        Initialize with optional fixed time

        Args:
            initial_time: Starting time (defaults to 2025-10-01 UTC, first day of FY2026)
        """
        self._current_time = initial_time or datetime(2025, 10, 1, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self._current_time

    def today(self) -> date:
        return self._current_time.date()

    def set_time(self, dt: datetime) -> None:
        """Set current time to specific value"""
        self._current_time = dt

    def advance_days(self, days: int) -> None:
        """Advance time by specified days"""
        self._current_time += timedelta(days=days)
