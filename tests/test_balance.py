"""Tests for obligation and running-balance computation."""

from datetime import date
from decimal import Decimal

from maaser.engine.aggregator import aggregate_years
from maaser.engine.balance import (
    compute_dashboard_years,
    compute_year,
    compute_years,
    month_progress,
    next_starting_balance,
)
from maaser.models.finance import (
    CarryStrategy,
    FixedIncomeSettings,
    UserFinancialSettings,
)


class TestComputeYear:

    def test_obligation_is_income_times_percent(self, make_income):
        incomes = [make_income(schedule="recurring", amount=Decimal("1234"), date=date(2024, 2, 1))]
        snapshot = aggregate_years(incomes, [], UserFinancialSettings(), current_year=2024)[0]
        computed = compute_year(snapshot)
        for month in computed.months:
            assert month.obligation == month.incomes_base * Decimal("0.1")
            assert month.obligation >= 0

    def test_starting_balance_unchanged_without_activity(self):
        settings = UserFinancialSettings(starting_balance=Decimal("100"))
        computed = compute_year(aggregate_years([], [], settings, current_year=2024)[0])
        assert all(m.running_balance == Decimal("100") for m in computed.months)
        assert computed.totals.balance == Decimal("100")

    def test_fixed_income_and_one_donation(self, make_donation):
        """5000 fixed, 10%, 300 donated in January."""
        settings = UserFinancialSettings(
            fixed_income=FixedIncomeSettings(personal=Decimal("5000"))
        )
        donations = [make_donation(amount=Decimal("300"), start_date=date(2024, 1, 15))]
        computed = compute_year(aggregate_years([], donations, settings, current_year=2024)[0])
        january, february = computed.months[0], computed.months[1]
        assert january.obligation == Decimal("500")
        assert january.running_balance == Decimal("-200")
        assert january.progress == Decimal("0.6")
        assert february.running_balance == Decimal("-700")
        assert computed.totals.income == Decimal("60000")
        assert computed.totals.donations == Decimal("300")
        assert computed.totals.obligation == Decimal("6000")
        assert computed.totals.balance == Decimal("-5700")

    def test_totals_sum_conversions(self, make_income):
        incomes = [make_income(amount=Decimal("10"), currency="USD")]
        computed = compute_year(aggregate_years(incomes, [], UserFinancialSettings(), current_year=2024)[0])
        assert computed.totals.converted_count == 1
        assert computed.totals.converted_total == Decimal("35")


class TestProgress:

    def test_zero_obligation(self):
        assert month_progress(Decimal("50"), Decimal("0")) == 0

    def test_clamped_to_one(self):
        assert month_progress(Decimal("500"), Decimal("100")) == 1


class TestCarryStrategies:

    def test_next_starting_balance(self):
        assert next_starting_balance(Decimal("-50"), CarryStrategy.CARRY, Decimal("10")) == Decimal("-50")
        assert next_starting_balance(Decimal("-50"), CarryStrategy.CARRY_POSITIVE_ONLY, Decimal("10")) == 0
        assert next_starting_balance(Decimal("40"), CarryStrategy.CARRY_POSITIVE_ONLY, Decimal("10")) == Decimal("40")
        assert next_starting_balance(Decimal("-50"), CarryStrategy.RESET, Decimal("10")) == Decimal("10")

    def _two_years(self, make_income, strategy, starting_balance=Decimal("0")):
        incomes = [make_income(amount=Decimal("1000"), date=date(2023, 5, 1))]
        settings = UserFinancialSettings(starting_balance=starting_balance, carry_strategy=strategy)
        snapshots = aggregate_years(incomes, [], settings, current_year=2024)
        return compute_years(snapshots, starting_balance, strategy)

    def test_carry_threads_debt_into_next_year(self, make_income):
        years = self._two_years(make_income, CarryStrategy.CARRY)
        assert [y.year.year for y in years] == [2024, 2023]
        assert years[1].totals.balance == Decimal("-100")
        assert years[0].year.starting_balance == Decimal("-100")
        assert years[0].months[0].running_balance == Decimal("-100")

    def test_carry_positive_only_drops_debt(self, make_income):
        years = self._two_years(make_income, CarryStrategy.CARRY_POSITIVE_ONLY)
        assert years[0].year.starting_balance == 0

    def test_reset_restarts_at_configured_balance(self, make_income):
        years = self._two_years(make_income, CarryStrategy.RESET, starting_balance=Decimal("25"))
        assert years[1].year.starting_balance == Decimal("25")
        assert years[1].totals.balance == Decimal("-75")
        assert years[0].year.starting_balance == Decimal("25")


class TestDashboardYears:

    def test_gap_year_obligation_is_carried(self, make_income):
        """Recurring 1000/month from 2022: 2024 opens after two years of 100/month."""
        incomes = [make_income(schedule="recurring", amount=Decimal("1000"), date=date(2022, 1, 1))]
        years = compute_dashboard_years(incomes, [], UserFinancialSettings(), current_year=2024)

        assert [y.year.year for y in years] == [2024, 2022]
        assert years[1].totals.balance == Decimal("-1200")
        assert years[0].year.starting_balance == Decimal("-2400")

    def test_gap_year_view_agrees_with_full_view(self, make_income):
        settings = UserFinancialSettings(fixed_income=FixedIncomeSettings(personal=Decimal("1000")))
        incomes = [make_income(amount=Decimal("1"), date=date(2022, 1, 1))]

        full = compute_dashboard_years(incomes, [], settings, current_year=2024)
        gap = compute_dashboard_years(incomes, [], settings, current_year=2024, year=2023)

        assert [y.year.year for y in gap] == [2023]
        assert gap[0].year.starting_balance == full[1].totals.balance
        assert full[0].year.starting_balance == gap[0].totals.balance
        assert full[0].year.starting_balance == Decimal("-2400.1")

    def test_year_before_tracking_starts_fresh(self, make_income):
        settings = UserFinancialSettings(starting_balance=Decimal("30"))
        incomes = [make_income(date=date(2023, 1, 1))]
        years = compute_dashboard_years(incomes, [], settings, current_year=2024, year=2019)
        assert [y.year.year for y in years] == [2019]
        assert years[0].year.starting_balance == Decimal("30")

    def test_future_year_carries_through_current(self):
        settings = UserFinancialSettings(fixed_income=FixedIncomeSettings(personal=Decimal("100")))
        years = compute_dashboard_years([], [], settings, current_year=2024, year=2026)
        assert [y.year.year for y in years] == [2026]
        assert years[0].year.starting_balance == Decimal("-240")
