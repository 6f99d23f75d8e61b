"""
Financial aggregation engine.

Pure, synchronous functions: records in, snapshots out.
"""

from maaser.engine.aggregator import aggregate_years, collect_years, fixed_monthly_income
from maaser.engine.balance import (
    compute_dashboard_years,
    compute_year,
    compute_years,
    month_progress,
    next_starting_balance,
)
from maaser.engine.currency import USD_TO_ILS_RATE, convert_amount, percent_to_decimal
from maaser.engine.schedule import (
    add_months,
    donation_applies_to_month,
    income_applies_to_month,
    last_scheduled_month,
    month_index_of,
    months_since_start,
)

__all__ = [
    "USD_TO_ILS_RATE",
    "add_months",
    "aggregate_years",
    "collect_years",
    "compute_dashboard_years",
    "compute_year",
    "compute_years",
    "convert_amount",
    "donation_applies_to_month",
    "fixed_monthly_income",
    "income_applies_to_month",
    "last_scheduled_month",
    "month_index_of",
    "month_progress",
    "months_since_start",
    "next_starting_balance",
    "percent_to_decimal",
]
