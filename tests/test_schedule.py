"""Tests for schedule resolution."""

from datetime import date

from maaser.engine.schedule import (
    add_months,
    donation_applies_to_month,
    income_applies_to_month,
    last_scheduled_month,
    months_since_start,
)


def _applicable_months(record, years):
    return [
        (year, month_index)
        for year in years
        for month_index in range(12)
        if income_applies_to_month(record, year, month_index)
    ]


class TestIncomeSchedules:
    """Months are 0-based: March is 2."""

    def test_one_time_applies_to_exactly_one_month(self, make_income):
        income = make_income(schedule="oneTime", date=date(2024, 3, 10))
        assert _applicable_months(income, [2023, 2024, 2025]) == [(2024, 2)]

    def test_recurring_applies_from_anchor_onward(self, make_income):
        income = make_income(schedule="recurring", date=date(2024, 3, 31))
        assert income_applies_to_month(income, 2024, 2)
        assert income_applies_to_month(income, 2024, 3)
        assert income_applies_to_month(income, 2025, 0)
        assert income_applies_to_month(income, 2030, 11)
        assert not income_applies_to_month(income, 2024, 1)
        assert not income_applies_to_month(income, 2023, 11)

    def test_multi_month_window(self, make_income):
        """June 2024 for 3 months covers June, July and August only."""
        income = make_income(schedule="multiMonth", total_months=3, date=date(2024, 6, 1))
        assert _applicable_months(income, [2024]) == [(2024, 5), (2024, 6), (2024, 7)]

    def test_multi_month_crosses_year_boundary(self, make_income):
        income = make_income(schedule="multiMonth", total_months=4, date=date(2024, 11, 1))
        assert _applicable_months(income, [2024, 2025]) == [
            (2024, 10), (2024, 11), (2025, 0), (2025, 1),
        ]

    def test_multi_month_without_span_degrades_to_one_time(self, make_income):
        for total in (None, 0, -2):
            income = make_income(schedule="multiMonth", total_months=total, date=date(2024, 6, 1))
            assert _applicable_months(income, [2024, 2025]) == [(2024, 5)]


class TestDonationSchedules:

    def test_donations_only_hit_start_month(self, make_donation):
        """Recurring and installment donations are not projected forward."""
        for donation_type in ("oneTime", "recurring", "installments"):
            donation = make_donation(
                type=donation_type, start_date=date(2024, 4, 20), installments_total=3
            )
            hits = [
                m for m in range(12) if donation_applies_to_month(donation, 2024, m)
            ]
            assert hits == [3]
            assert not donation_applies_to_month(donation, 2025, 3)


class TestCalendarHelpers:

    def test_months_since_start_ignores_day(self):
        assert months_since_start(date(2024, 1, 31), date(2024, 2, 1)) == 1
        assert months_since_start(date(2024, 5, 1), date(2024, 3, 1)) == -2

    def test_add_months_clamps_day(self):
        assert add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)
        assert add_months(date(2024, 11, 15), 3) == date(2025, 2, 15)

    def test_last_scheduled_month(self, make_income):
        multi = make_income(schedule="multiMonth", total_months=3, date=date(2024, 11, 5))
        recurring = make_income(schedule="recurring")
        one_time = make_income(schedule="oneTime", date=date(2024, 7, 1))
        assert last_scheduled_month(multi) == (2025, 0)
        assert last_scheduled_month(recurring) is None
        assert last_scheduled_month(one_time) == (2024, 6)
