"""
Obligation & Balance Calculation

A pure fold over the twelve months of a YearSnapshot:

    obligation[m]      = incomes_base[m] * tithe_percent
    running_balance[m] = running_balance[m-1] + donations_base[m] - obligation[m]
    progress[m]        = clamp(donations_base[m] / obligation[m], 0, 1)  (0 if no obligation)

The first month starts from the snapshot's starting_balance. A positive
balance is a surplus (given more than owed), a negative one a debt.

Across years the carry strategy decides what the next year starts from:
- CARRY: the previous year's terminal balance
- CARRY_POSITIVE_ONLY: the previous terminal balance if it is a surplus, else 0
- RESET: the configured starting balance, every year
"""

from decimal import Decimal
from typing import Iterable, Optional

from maaser.engine.aggregator import aggregate_years, collect_years
from maaser.engine.currency import USD_TO_ILS_RATE
from maaser.models.finance import (
    CarryStrategy,
    ComputedMonth,
    ComputedYear,
    DonationRecord,
    UserFinancialSettings,
    VariableIncomeRecord,
    YearSnapshot,
    YearTotals,
)

ZERO = Decimal("0")
ONE = Decimal("1")


def month_progress(donations: Decimal, obligation: Decimal) -> Decimal:
    if obligation == 0:
        return ZERO
    return min(ONE, max(ZERO, donations / obligation))


def compute_year(snapshot: YearSnapshot) -> ComputedYear:
    """Apply obligation, running balance and progress to every month."""
    running_balance = snapshot.starting_balance
    months: list[ComputedMonth] = []
    totals = YearTotals(balance=snapshot.starting_balance)

    for month in snapshot.monthly:
        obligation = month.incomes_base * snapshot.tithe_percent
        running_balance = running_balance + month.donations_base - obligation
        months.append(
            ComputedMonth(
                **month.model_dump(),
                obligation=obligation,
                running_balance=running_balance,
                progress=month_progress(month.donations_base, obligation),
            )
        )

        totals.income += month.incomes_base
        totals.donations += month.donations_base
        totals.obligation += obligation
        totals.converted_total += month.converted_total
        totals.converted_count += month.converted_entries
        # The terminal carry value, not a sum
        totals.balance = running_balance

    return ComputedYear(year=snapshot, months=months, totals=totals)


def next_starting_balance(
    previous_balance: Decimal,
    strategy: CarryStrategy,
    configured_start: Decimal,
) -> Decimal:
    """Starting balance of the year following one that closed at previous_balance."""
    if strategy == CarryStrategy.RESET:
        return configured_start
    if strategy == CarryStrategy.CARRY_POSITIVE_ONLY:
        return previous_balance if previous_balance > 0 else ZERO
    return previous_balance


def compute_years(
    snapshots: Iterable[YearSnapshot],
    starting_balance: Decimal,
    carry_strategy: CarryStrategy,
) -> list[ComputedYear]:
    """
    Compute every year, threading balances across year boundaries.

    Years are processed oldest first; the earliest year starts from
    `starting_balance`. The snapshots must cover consecutive years: each
    one starts from the outcome of whichever snapshot precedes it.

    Returns:
        ComputedYears sorted newest first
    """
    computed: list[ComputedYear] = []
    start = starting_balance

    for snapshot in sorted(snapshots, key=lambda s: s.year):
        year = compute_year(
            snapshot.model_copy(
                update={"starting_balance": start, "carry_strategy": carry_strategy}
            )
        )
        computed.append(year)
        start = next_starting_balance(year.totals.balance, carry_strategy, starting_balance)

    computed.reverse()
    return computed


def compute_dashboard_years(
    incomes: Iterable[VariableIncomeRecord],
    donations: Iterable[DonationRecord],
    settings: UserFinancialSettings,
    current_year: int,
    year: Optional[int] = None,
    rate: Decimal = USD_TO_ILS_RATE,
) -> list[ComputedYear]:
    """
    Computed years for the dashboard, with balances carried through every
    calendar year between the first and last tracked year.

    Untracked years inside that range still accrue fixed and recurring
    obligations; they take part in the carry but are only returned when
    asked for via `year`. A requested year before the first tracked year
    stands alone and starts from the configured starting balance.

    Args:
        year: If given, only this year is returned

    Returns:
        ComputedYears sorted newest first
    """
    incomes = list(incomes)
    donations = list(donations)
    tracked = collect_years(incomes, donations, current_year)
    first = min(tracked)

    if year is not None and year < first:
        snapshots = aggregate_years(
            incomes, donations, settings, current_year, year=year, rate=rate
        )
        return compute_years(snapshots, settings.starting_balance, settings.carry_strategy)

    last = max(tracked) if year is None else max(max(tracked), year)
    snapshots = aggregate_years(
        incomes, donations, settings, current_year, rate=rate, years=range(first, last + 1)
    )
    computed = compute_years(snapshots, settings.starting_balance, settings.carry_strategy)

    wanted = tracked if year is None else {year}
    return [c for c in computed if c.year.year in wanted]
