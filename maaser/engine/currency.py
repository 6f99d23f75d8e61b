"""
Currency Conversion

DESIGN DECISION: Conversion uses a single FIXED USD→ILS rate.
There is no live FX lookup. Changing the rate is a configuration change
(TrackerSettings.usd_to_ils_rate), never a per-request fetch.

Conversion never raises on bad data:
- Non-finite or non-numeric amounts become 0
- Same-currency conversion is an exact passthrough
- Any pair other than USD<->ILS is returned unconverted
"""

from decimal import Decimal, InvalidOperation
from typing import Union

from maaser.models.finance import Currency

USD_TO_ILS_RATE = Decimal("3.5")

ZERO = Decimal("0")

Amount = Union[Decimal, int, float, str]


def _coerce_amount(amount: Amount) -> Decimal:
    if isinstance(amount, bool):
        return ZERO
    if isinstance(amount, Decimal):
        value = amount
    else:
        try:
            value = Decimal(str(amount))
        except (InvalidOperation, TypeError, ValueError):
            return ZERO
    if not value.is_finite():
        return ZERO
    return value


def convert_amount(
    amount: Amount,
    from_currency: Union[Currency, str],
    to_currency: Union[Currency, str],
    rate: Amount = USD_TO_ILS_RATE,
) -> Decimal:
    """
    Convert an amount between the two supported currencies.

    Args:
        amount: Amount in `from_currency`
        from_currency: Source currency
        to_currency: Target currency
        rate: ILS per 1 USD

    Returns:
        The converted amount (0 if `amount` is not a finite number)
    """
    value = _coerce_amount(amount)
    if from_currency == to_currency:
        return value

    fx_rate = _coerce_amount(rate)
    if from_currency == Currency.USD and to_currency == Currency.ILS:
        return value * fx_rate
    if from_currency == Currency.ILS and to_currency == Currency.USD:
        # Division by a zero rate has no finite result
        return value / fx_rate if fx_rate != ZERO else ZERO

    return value


def percent_to_decimal(percent: Amount) -> Decimal:
    """10 -> 0.10"""
    return _coerce_amount(percent) / Decimal("100")
