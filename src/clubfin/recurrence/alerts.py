"""
Alerts - Dashboard urgency of maintenance items and CAPEX projects

Read-only consumers of the recurrence calculator. Nothing in the
reallocation path depends on these; they feed the dashboard, the CLI
alerts command and the alert-status gauge.
"""

from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING, NamedTuple

from clubfin.kernel.config import Settings
from clubfin.recurrence.calculator import (
    DAYS_PER_YEAR,
    AlertStatus,
    calculate_inflated_cost,
    calculate_years_until,
    classify_years_until,
)

if TYPE_CHECKING:
    from clubfin.ledger.models import CapexProject, MaintenanceItem


class Alert(NamedTuple):
    status: AlertStatus
    years_until: float
    months_until: int
    due_date: date


class AlertYearForecast(NamedTuple):
    next_due_date_min: date
    next_due_date_max: date
    expected_cost: Decimal


def alert_year_due_date(alert_year: int) -> date:
    """Reminders for an alert year fall due on January 1 of that year"""
    return date(alert_year, 1, 1)


def _alert_for(due: date, today: date, settings: Settings) -> Alert:
    years_until = (due - today).days / DAYS_PER_YEAR
    status = classify_years_until(
        years_until,
        critical_years=settings.critical_years,
        warning_years=settings.warning_years,
    )
    return Alert(
        status=status,
        years_until=years_until,
        months_until=round(years_until * 12),
        due_date=due,
    )


def maintenance_alert(
    item: "MaintenanceItem", today: date, settings: Settings
) -> Alert | None:
    """
    Alert for a maintenance item

    Uses next_due_date_min when forecast, else January 1 of alert_year.

    Returns:
        None when tracking is disabled or nothing is due
    """
    if not item.tracking_enabled:
        return None

    if item.next_due_date_min is not None:
        due = item.next_due_date_min
    elif item.alert_year is not None:
        due = alert_year_due_date(item.alert_year)
    else:
        return None

    return _alert_for(due, today, settings)


def capex_alert(project: "CapexProject", today: date, settings: Settings) -> Alert | None:
    """Alert for a CAPEX project with a replacement reminder year"""
    if not project.tracking_enabled or project.alert_year is None:
        return None
    return _alert_for(alert_year_due_date(project.alert_year), today, settings)


def should_show_on_dashboard(item: "MaintenanceItem", today: date, settings: Settings) -> bool:
    """
    Completed item coming due within the dashboard horizon

    Example:
        Last done 2019-06-01, every 7-10 years, today 2025-10-01:
        next_due_date_min 2026-06-01 is 0.67 years out, so it shows.
    """
    if not item.tracking_enabled:
        return False
    if item.last_occurrence is None or item.next_due_date_min is None:
        return False

    years_until = calculate_years_until(item.next_due_date_min, today)
    return years_until is not None and 0 <= years_until <= settings.dashboard_warning_years


def alert_year_forecast(
    base_amount: Decimal, alert_year: int, today: date, settings: Settings
) -> AlertYearForecast:
    """
    Forecast for an item planned by reminder year rather than by occurrence

    Both due dates are January 1 of alert_year; the cost is base_amount
    inflated by the whole years between today's year and alert_year.
    """
    due = alert_year_due_date(alert_year)
    cost = calculate_inflated_cost(
        base_amount,
        alert_year - today.year,
        rate=settings.inflation_rate,
        clamp_negative=settings.clamp_negative_inflation_years,
    )
    return AlertYearForecast(next_due_date_min=due, next_due_date_max=due, expected_cost=cost)


def count_by_status(alerts: list[Alert | None]) -> dict[str, int]:
    counts: dict[str, int] = {status.value: 0 for status in AlertStatus}
    for alert in alerts:
        if alert is not None:
            counts[alert.status.value] += 1
    return counts
