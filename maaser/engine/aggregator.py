"""
Monthly Aggregation

Folds a user's raw income and donation records into per-(year, month)
totals expressed in the user's base currency.

DESIGN DECISION: The aggregator is a pure function of its inputs.
It never reads the wall clock: the caller passes `current_year`, which is
always included in the output even when the user has no records yet.

Output shape:
- One YearSnapshot per year, sorted newest first
- Exactly 12 MonthlySnapshots per year (zero-filled), January first
- Amounts already converted to the base currency
- Cross-currency entries counted in converted_entries / converted_total
"""

from decimal import Decimal
from typing import Iterable, Optional

from maaser.engine.currency import USD_TO_ILS_RATE, convert_amount, percent_to_decimal
from maaser.engine.schedule import (
    donation_applies_to_month,
    income_applies_to_month,
    last_scheduled_month,
)
from maaser.models.finance import (
    Currency,
    DonationRecord,
    IncomeSchedule,
    MonthlySnapshot,
    UserFinancialSettings,
    VariableIncomeRecord,
    YearSnapshot,
)


def fixed_monthly_income(settings: UserFinancialSettings) -> Decimal:
    """personal + spouse (when included), in the base currency."""
    return settings.fixed_income.monthly_total


def collect_years(
    incomes: Iterable[VariableIncomeRecord],
    donations: Iterable[DonationRecord],
    current_year: int,
) -> set[int]:
    """
    Years that get a snapshot.

    The current year, every income anchor year, every donation start year,
    and the closing year of multi-month incomes that cross a year boundary.
    """
    years = {current_year}
    for income in incomes:
        years.add(income.date.year)
        if income.schedule == IncomeSchedule.MULTI_MONTH:
            last = last_scheduled_month(income)
            if last is not None:
                years.add(last[0])
    for donation in donations:
        years.add(donation.start_date.year)
    return years


def _empty_months(year: int) -> list[MonthlySnapshot]:
    return [
        MonthlySnapshot(id=f"{year}-{month_index + 1:02d}", month_index=month_index)
        for month_index in range(12)
    ]


def _add_converted(
    month: MonthlySnapshot,
    record_currency: Currency,
    base_currency: Currency,
    converted: Decimal,
) -> None:
    if record_currency != base_currency:
        month.converted_entries += 1
        month.converted_total += converted


def aggregate_years(
    incomes: Iterable[VariableIncomeRecord],
    donations: Iterable[DonationRecord],
    settings: UserFinancialSettings,
    current_year: int,
    year: Optional[int] = None,
    rate: Decimal = USD_TO_ILS_RATE,
    years: Optional[Iterable[int]] = None,
) -> list[YearSnapshot]:
    """
    Build the yearly snapshots for one user.

    Args:
        incomes: All of the user's variable income records
        donations: All of the user's donation records
        settings: The user's financial settings (base currency, fixed income, ...)
        current_year: Always included in the output
        year: If given, only this year is produced
        rate: ILS per 1 USD
        years: If given, exactly these years are produced (overrides `year`)

    Returns:
        YearSnapshots sorted by year, newest first
    """
    incomes = list(incomes)
    donations = list(donations)
    base_currency = settings.currency

    if years is not None:
        selected = set(years)
    elif year is not None:
        selected = {year}
    else:
        selected = collect_years(incomes, donations, current_year)

    months_by_year = {y: _empty_months(y) for y in selected}

    fixed_amount = fixed_monthly_income(settings)
    if fixed_amount != 0:
        # Fixed income is perpetual: every month of every tracked year.
        fixed_base = convert_amount(fixed_amount, base_currency, base_currency, rate)
        for months in months_by_year.values():
            for month in months:
                month.incomes_base += fixed_base
                month.fixed_income_base += fixed_base

    for income in incomes:
        converted = convert_amount(income.amount, income.currency, base_currency, rate)
        for y, months in months_by_year.items():
            for month in months:
                if not income_applies_to_month(income, y, month.month_index):
                    continue
                month.incomes_base += converted
                month.variable_income_base += converted
                _add_converted(month, income.currency, base_currency, converted)

    for donation in donations:
        months = months_by_year.get(donation.start_date.year)
        if months is None:
            continue
        month = months[donation.start_date.month - 1]
        if not donation_applies_to_month(donation, donation.start_date.year, month.month_index):
            continue
        converted = convert_amount(donation.amount, donation.currency, base_currency, rate)
        month.donations_base += converted
        _add_converted(month, donation.currency, base_currency, converted)

    tithe_fraction = percent_to_decimal(settings.tithe_percent)

    return [
        YearSnapshot(
            year=y,
            base_currency=base_currency,
            tithe_percent=tithe_fraction,
            starting_balance=settings.starting_balance,
            carry_strategy=settings.carry_strategy,
            monthly=months_by_year[y],
        )
        for y in sorted(months_by_year, reverse=True)
    ]
