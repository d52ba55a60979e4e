"""
Recurrence Calculator - Next-due windows and inflation-adjusted costs

Pure functions: no I/O, no clock access. Callers pass "today" in.

A recurring major-maintenance item (pool resurfacing, parking lot sealing)
comes back every recurrence_years_min..recurrence_years_max years. From the
last occurrence we forecast the due window and what it will cost then.
"""

from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import NamedTuple

DAYS_PER_YEAR = 365.25
CENT = Decimal("0.01")
DEFAULT_INFLATION_RATE = Decimal("0.03")


class AlertStatus(str, Enum):
    """
    Dashboard urgency of a tracked item

    OVERDUE: due date already passed
    CRITICAL: due within critical_years (default 1)
    WARNING: due within warning_years (default 2)
    GOOD: further out
    """

    OVERDUE = "overdue"
    CRITICAL = "critical"
    WARNING = "warning"
    GOOD = "good"


class NextDueDates(NamedTuple):
    min: date | None
    max: date | None


def add_years(d: date, years: int) -> date:
    """
    Calendar-year arithmetic preserving month and day

    Feb 29 moved into a non-leap year becomes Mar 1.
    """
    try:
        return d.replace(year=d.year + years)
    except ValueError:
        return date(d.year + years, 3, 1)


def calculate_next_due_dates(
    last_date: date | None, min_years: int, max_years: int
) -> NextDueDates:
    """
    Due window after an occurrence

    Example:
        >>> calculate_next_due_dates(date(2024, 3, 1), 7, 10)
        NextDueDates(min=datetime.date(2031, 3, 1), max=datetime.date(2034, 3, 1))
    """
    if last_date is None:
        return NextDueDates(min=None, max=None)
    return NextDueDates(min=add_years(last_date, min_years), max=add_years(last_date, max_years))


def calculate_years_until(target: date | None, today: date) -> float | None:
    """
    Fractional years from today to target (negative when overdue)

    Whole-day difference over 365.25, so the result never jitters within a day.
    """
    if target is None:
        return None
    return (target - today).days / DAYS_PER_YEAR


def calculate_inflated_cost(
    base_amount: Decimal,
    years: float | int | Decimal,
    rate: Decimal = DEFAULT_INFLATION_RATE,
    clamp_negative: bool = True,
) -> Decimal:
    """
    base_amount x (1 + rate)^years, rounded to cents

    Negative years are clamped to zero by default so a past-due item is never
    forecast cheaper than it last cost.

    Example:
        >>> calculate_inflated_cost(Decimal("10000"), 5)
        Decimal('11592.74')
    """
    exponent = Decimal(str(years))
    if clamp_negative and exponent < 0:
        exponent = Decimal(0)

    if exponent == exponent.to_integral_value():
        factor = (1 + rate) ** int(exponent)
    else:
        factor = (1 + rate) ** exponent

    return (Decimal(base_amount) * factor).quantize(CENT, rounding=ROUND_HALF_UP)


def classify_years_until(
    years_until: float,
    critical_years: float = 1.0,
    warning_years: float = 2.0,
) -> AlertStatus:
    """Bucket a years-until value into an AlertStatus"""
    if years_until < 0:
        return AlertStatus.OVERDUE
    if years_until <= critical_years:
        return AlertStatus.CRITICAL
    if years_until <= warning_years:
        return AlertStatus.WARNING
    return AlertStatus.GOOD
