"""
Schedule Resolution

Decides whether a record contributes to a given (year, month) bucket.

Months are compared on a flat index: year * 12 + month_index, where
month_index is 0 for January and 11 for December.

IMPORTANT: Income records are expanded across months according to their
schedule. Donation records are NOT. A donation, whatever its type, is
attributed only to the calendar month of its start_date. Recurring and
installment donations are not projected forward.
"""

from calendar import monthrange
from datetime import date
from typing import Optional

from maaser.models.finance import (
    DonationRecord,
    IncomeSchedule,
    VariableIncomeRecord,
)


def to_month_index(year: int, month_index: int) -> int:
    return year * 12 + month_index


def month_index_of(value: date) -> int:
    """Flat month index of a calendar date."""
    return to_month_index(value.year, value.month - 1)


def split_month_index(flat_index: int) -> tuple[int, int]:
    """Inverse of to_month_index: (year, month_index)."""
    return divmod(flat_index, 12)


def months_since_start(start: date, target: date) -> int:
    """Calendar months between two dates, ignoring the day of month."""
    return month_index_of(target) - month_index_of(start)


def add_months(value: date, months: int) -> date:
    """Shift a date by whole months, clamping the day to the month's length."""
    year, month_index = split_month_index(month_index_of(value) + months)
    last_day = monthrange(year, month_index + 1)[1]
    return date(year, month_index + 1, min(value.day, last_day))


def effective_span(record: VariableIncomeRecord) -> Optional[int]:
    """
    Number of months a multiMonth income covers.

    Returns None for records that should be treated as one-time
    (non multiMonth, or missing / non-positive total_months).
    """
    if record.schedule != IncomeSchedule.MULTI_MONTH:
        return None
    total = record.total_months or 0
    if total <= 0:
        return None
    return total


def income_applies_to_month(
    record: VariableIncomeRecord,
    year: int,
    month_index: int,
) -> bool:
    """
    Does this income contribute to (year, month_index)?

    - oneTime: only its anchor month
    - recurring: every month from the anchor onward, unbounded
    - multiMonth: the half-open window [anchor, anchor + total_months);
      a missing or non-positive total_months degrades to oneTime
    """
    start_idx = month_index_of(record.date)
    target_idx = to_month_index(year, month_index)

    if record.schedule == IncomeSchedule.RECURRING:
        return target_idx >= start_idx

    if record.schedule == IncomeSchedule.MULTI_MONTH:
        total = effective_span(record)
        if total is None:
            return start_idx == target_idx
        return start_idx <= target_idx < start_idx + total

    return start_idx == target_idx


def donation_applies_to_month(
    record: DonationRecord,
    year: int,
    month_index: int,
) -> bool:
    """A donation belongs to the literal month of its start_date only."""
    return month_index_of(record.start_date) == to_month_index(year, month_index)


def last_scheduled_month(record: VariableIncomeRecord) -> Optional[tuple[int, int]]:
    """
    (year, month_index) of the final month an income applies to.

    None for recurring incomes, which never end.
    """
    if record.schedule == IncomeSchedule.RECURRING:
        return None
    start_idx = month_index_of(record.date)
    total = effective_span(record) or 1
    return split_month_index(start_idx + total - 1)
