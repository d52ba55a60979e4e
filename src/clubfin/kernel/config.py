"""
Settings - Tunable parameters of the reallocation and forecast rules

Everything the treasurer might reasonably want to change without touching
code lives here: the inflation rate, alert thresholds, and what to do with
a transaction dated outside its fiscal year.
"""

from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field, model_validator


class Settings(BaseModel):
    """
    clubfin runtime settings

    Defaults reproduce the club's existing behaviour: 3% yearly inflation,
    alerts at one and two years out, and UNMAPPED transactions left out of
    the budget with a warning.
    """

    inflation_rate: Decimal = Field(
        default=Decimal("0.03"),
        ge=0,
        le=1,
        description="Annual inflation applied to recurring maintenance forecasts",
    )

    clamp_negative_inflation_years: bool = Field(
        default=True,
        description="Treat negative years as zero so overdue items never deflate",
    )

    # Alert buckets (years until next due date)
    critical_years: float = Field(
        default=1.0,
        ge=0,
        description="Items due within this many years are critical",
    )

    warning_years: float = Field(
        default=2.0,
        ge=0,
        description="Items due within this many years are a warning",
    )

    dashboard_warning_years: float = Field(
        default=2.0,
        ge=0,
        description="Completed items due within this horizon appear on the dashboard",
    )

    # Reallocation
    unmapped_fiscal_month_policy: Literal["SKIP", "ROUTE", "REJECT"] = Field(
        default="SKIP",
        description=(
            "Transaction dated outside its fiscal year: SKIP (warn, no budget change), "
            "ROUTE (use the budget of the date's own fiscal year), "
            "REJECT (abort the save)"
        ),
    )

    transactional_writes: bool = Field(
        default=True,
        description="Commit transaction, item and budget writes as one atomic batch",
    )

    default_low_balance_threshold: Decimal = Field(
        default=Decimal("20000"),
        description="Low-balance threshold for new budgets",
    )

    model_config = {
        "frozen": True,
        "json_schema_extra": {
            "description": "Tunable parameters of the reallocation and forecast rules"
        },
    }

    @model_validator(mode="after")
    def _check_alert_order(self) -> "Settings":
        if self.critical_years > self.warning_years:
            raise ValueError("critical_years must not exceed warning_years")
        return self


# Default global settings instance
default_settings = Settings()
