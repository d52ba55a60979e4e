"""
Fiscal Calendar - October-to-September fiscal years

Fiscal year Y runs from October 1 of Y-1 through September 30 of Y and is
named by its September year. Fiscal month 0 is October, 11 is September.
"""

import calendar
from datetime import date
from typing import NamedTuple

from clubfin.kernel.errors import InvalidFiscalMonth

# A date outside the fiscal year window has no fiscal month
UNMAPPED = None

FISCAL_YEAR_START_MONTH = 10  # October
MONTHS_PER_YEAR = 12


class FiscalMonthName(NamedTuple):
    month_name: str
    calendar_date: str  # "YYYY-MM"
    fiscal_month: int


def validate_fiscal_month(month: int) -> int:
    """Return month unchanged, or raise InvalidFiscalMonth if outside 0..11"""
    if not 0 <= month < MONTHS_PER_YEAR:
        raise InvalidFiscalMonth(month)
    return month


def fiscal_month_of(d: date, fiscal_year: int) -> int | None:
    """
    Map a calendar date to its fiscal month within fiscal_year

    Oct-Dec of fiscal_year-1 map to 0..2, Jan-Sep of fiscal_year to 3..11.

    Returns:
        Fiscal month 0..11, or UNMAPPED (None) when d is outside the window

    Example:
        >>> fiscal_month_of(date(2025, 10, 15), 2026)
        0
        >>> fiscal_month_of(date(2026, 10, 1), 2026) is UNMAPPED
        True
    """
    if d.year == fiscal_year - 1 and d.month >= FISCAL_YEAR_START_MONTH:
        return d.month - FISCAL_YEAR_START_MONTH
    if d.year == fiscal_year and d.month < FISCAL_YEAR_START_MONTH:
        return d.month + 2
    return UNMAPPED


def fiscal_year_of(d: date) -> int:
    """The fiscal year a calendar date belongs to"""
    return d.year + 1 if d.month >= FISCAL_YEAR_START_MONTH else d.year


def calendar_month_of(fiscal_month: int, fiscal_year: int) -> tuple[int, int]:
    """
    Inverse of fiscal_month_of

    Returns:
        (calendar year, calendar month 1..12)
    """
    validate_fiscal_month(fiscal_month)
    if fiscal_month < 3:
        return fiscal_year - 1, fiscal_month + FISCAL_YEAR_START_MONTH
    return fiscal_year, fiscal_month - 2


def fiscal_month_name(fiscal_month: int, fiscal_year: int) -> FiscalMonthName:
    year, month = calendar_month_of(fiscal_month, fiscal_year)
    return FiscalMonthName(
        month_name=calendar.month_name[month],
        calendar_date=f"{year}-{month:02d}",
        fiscal_month=fiscal_month,
    )


def fiscal_year_range(fiscal_year: int) -> tuple[date, date]:
    """First and last day of the fiscal year (inclusive)"""
    return date(fiscal_year - 1, FISCAL_YEAR_START_MONTH, 1), date(fiscal_year, 9, 30)


def is_date_in_fiscal_year(d: date, fiscal_year: int) -> bool:
    start, end = fiscal_year_range(fiscal_year)
    return start <= d <= end
