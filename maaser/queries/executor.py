"""
Month Details Query

DESIGN DECISION: Query execution is DETERMINISTIC.
The breakdown is computed from stored records with the same schedule
rules the dashboard uses, so the rows of a month always add up to what
the dashboard shows for its variable income and donations.
"""

import asyncio
import calendar
from decimal import Decimal
from typing import Optional

from maaser.engine.currency import USD_TO_ILS_RATE, convert_amount
from maaser.engine.schedule import donation_applies_to_month, income_applies_to_month
from maaser.models.finance import Currency
from maaser.models.query import (
    MonthDetails,
    MonthDonationRow,
    MonthIncomeRow,
    MonthTotals,
)
from maaser.services.storage import (
    FinancialRecordStorageInterface,
    SettingsStorageInterface,
)


class InvalidQueryError(ValueError):
    """The query parameters are out of range."""
    pass


class MonthDetailsExecutor:
    """
    Lists the income and donation rows behind one month.

    GUARANTEES:
    - Only returns real data from storage
    - Amounts are converted to the user's base currency
    - An empty month is a valid, empty result
    """

    def __init__(
        self,
        record_storage: FinancialRecordStorageInterface,
        settings_storage: SettingsStorageInterface,
        default_currency: Currency = Currency.ILS,
        rate: Decimal = USD_TO_ILS_RATE,
    ):
        self._records = record_storage
        self._settings = settings_storage
        self._default_currency = default_currency
        self._rate = rate

    async def execute(
        self,
        user_id: str,
        year: int,
        month_index: int,
        base_currency: Optional[Currency] = None,
    ) -> MonthDetails:
        """
        Build the breakdown for (year, month_index).

        Args:
            base_currency: Overrides the currency from the user's settings

        Raises:
            InvalidQueryError: If month_index is outside 0-11
        """
        if not isinstance(month_index, int) or not 0 <= month_index <= 11:
            raise InvalidQueryError(f"month_index must be between 0 and 11, got {month_index!r}")

        settings, incomes, donations = await asyncio.gather(
            self._settings.get_settings(user_id),
            self._records.list_incomes(user_id),
            self._records.list_donations(user_id),
        )
        if base_currency is None:
            base_currency = settings.currency if settings else self._default_currency

        income_rows = [
            MonthIncomeRow(
                id=income.id,
                description=income.description,
                amount=income.amount,
                currency=income.currency,
                amount_base=convert_amount(income.amount, income.currency, base_currency, self._rate),
            )
            for income in incomes
            if income_applies_to_month(income, year, month_index)
        ]
        donation_rows = [
            MonthDonationRow(
                id=donation.id,
                organization=donation.organization,
                amount=donation.amount,
                currency=donation.currency,
                amount_base=convert_amount(donation.amount, donation.currency, base_currency, self._rate),
            )
            for donation in donations
            if donation_applies_to_month(donation, year, month_index)
        ]

        return MonthDetails(
            year=year,
            month_index=month_index,
            currency=base_currency,
            incomes=income_rows,
            donations=donation_rows,
            totals=MonthTotals(
                income=sum((row.amount_base for row in income_rows), Decimal("0")),
                donations=sum((row.amount_base for row in donation_rows), Decimal("0")),
            ),
            query_description=self._describe(year, month_index, len(income_rows), len(donation_rows)),
        )

    def _describe(self, year: int, month_index: int, income_count: int, donation_count: int) -> str:
        """Format a short description of the result."""
        month_name = calendar.month_name[month_index + 1]
        if not income_count and not donation_count:
            return f"No activity in {month_name} {year}"
        return f"{income_count} income(s) and {donation_count} donation(s) in {month_name} {year}"
