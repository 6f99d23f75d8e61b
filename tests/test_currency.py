"""Tests for fixed-rate currency conversion."""

from decimal import Decimal

import pytest

from maaser.engine.currency import USD_TO_ILS_RATE, convert_amount, percent_to_decimal
from maaser.models.finance import Currency


class TestConvertAmount:

    @pytest.mark.parametrize("amount", ["0", "1", "100", "1234.56", "0.01", "999999.99"])
    def test_round_trip_through_usd(self, amount):
        """ILS -> USD -> ILS returns the original amount within tolerance."""
        original = Decimal(amount)
        usd = convert_amount(original, Currency.ILS, Currency.USD)
        back = convert_amount(usd, Currency.USD, Currency.ILS)
        assert abs(back - original) < Decimal("1e-18")

    @pytest.mark.parametrize("currency", [Currency.ILS, Currency.USD])
    def test_same_currency_is_exact(self, currency):
        """No rate is applied when the currencies match."""
        amount = Decimal("123.456")
        assert convert_amount(amount, currency, currency) == amount

    def test_usd_to_ils_uses_fixed_rate(self):
        assert USD_TO_ILS_RATE == Decimal("3.5")
        assert convert_amount(Decimal("100"), Currency.USD, Currency.ILS) == Decimal("350")

    def test_ils_to_usd_divides(self):
        assert convert_amount(Decimal("350"), Currency.ILS, Currency.USD) == Decimal("100")

    def test_custom_rate(self):
        assert convert_amount(Decimal("10"), Currency.USD, Currency.ILS, rate=Decimal("4")) == Decimal("40")

    def test_zero_rate_converts_to_zero(self):
        assert convert_amount(Decimal("10"), Currency.USD, Currency.ILS, rate=0) == 0
        assert convert_amount(Decimal("10"), Currency.ILS, Currency.USD, rate=0) == 0

    @pytest.mark.parametrize("bad", [float("nan"), float("inf"), "abc", None, True])
    def test_non_numeric_amounts_become_zero(self, bad):
        """Bad amounts never raise."""
        assert convert_amount(bad, Currency.USD, Currency.ILS) == Decimal("0")

    def test_unknown_pair_is_passthrough(self):
        assert convert_amount(Decimal("10"), "EUR", Currency.ILS) == Decimal("10")


class TestPercentToDecimal:

    def test_whole_percent(self):
        assert percent_to_decimal(Decimal("10")) == Decimal("0.1")

    def test_fractional_percent(self):
        assert percent_to_decimal("12.5") == Decimal("0.125")
