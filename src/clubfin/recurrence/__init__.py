"""Recurrence forecasting and alert classification"""

from clubfin.recurrence.alerts import (
    Alert,
    AlertYearForecast,
    alert_year_forecast,
    capex_alert,
    maintenance_alert,
    should_show_on_dashboard,
)
from clubfin.recurrence.calculator import (
    AlertStatus,
    NextDueDates,
    add_years,
    calculate_inflated_cost,
    calculate_next_due_dates,
    calculate_years_until,
    classify_years_until,
)

__all__ = [
    "Alert",
    "AlertStatus",
    "AlertYearForecast",
    "NextDueDates",
    "add_years",
    "alert_year_forecast",
    "calculate_inflated_cost",
    "calculate_next_due_dates",
    "calculate_years_until",
    "capex_alert",
    "classify_years_until",
    "maintenance_alert",
    "should_show_on_dashboard",
]
