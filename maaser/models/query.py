"""
Month Details Models

The per-month breakdown behind a single dashboard cell: which income and
donation rows were counted, each already converted to the base currency.
"""

from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field

from maaser.models.finance import Currency


class MonthIncomeRow(BaseModel):
    id: UUID
    description: str
    amount: Decimal = Field(..., description="Amount in the record's own currency")
    currency: Currency
    amount_base: Decimal = Field(..., description="Amount in the user's base currency")


class MonthDonationRow(BaseModel):
    id: UUID
    organization: str
    amount: Decimal
    currency: Currency
    amount_base: Decimal


class MonthTotals(BaseModel):
    income: Decimal = Decimal("0")
    donations: Decimal = Decimal("0")


class MonthDetails(BaseModel):
    """
    Rows contributing to one (year, month).

    Fixed monthly income from settings is not a row; it appears only in the
    dashboard snapshot.
    """

    year: int
    month_index: int = Field(..., ge=0, le=11)
    currency: Currency
    incomes: list[MonthIncomeRow] = Field(default_factory=list)
    donations: list[MonthDonationRow] = Field(default_factory=list)
    totals: MonthTotals = Field(default_factory=MonthTotals)
    query_description: str = ""

    @property
    def result_count(self) -> int:
        return len(self.incomes) + len(self.donations)
