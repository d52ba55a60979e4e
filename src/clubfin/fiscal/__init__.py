"""Fiscal calendar mapping (October-September fiscal years)"""

from clubfin.fiscal.calendar import (
    UNMAPPED,
    calendar_month_of,
    fiscal_month_name,
    fiscal_month_of,
    fiscal_year_of,
    fiscal_year_range,
    is_date_in_fiscal_year,
)

__all__ = [
    "UNMAPPED",
    "calendar_month_of",
    "fiscal_month_name",
    "fiscal_month_of",
    "fiscal_year_of",
    "fiscal_year_range",
    "is_date_in_fiscal_year",
]
