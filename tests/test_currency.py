"""Tests for currency conversion and the money helpers."""

import itertools

import pytest
from decimal import Decimal

from finance_engine.config import DEFAULT_EXCHANGE_RATES, CurrencySettings, validate_all_settings
from finance_engine.services.currency import CurrencyConverter
from finance_engine.utils import round2


def make_converter() -> CurrencyConverter:
    return CurrencyConverter(rates=DEFAULT_EXCHANGE_RATES, base_currency="MVR")


class TestRound2:

    def test_half_up(self):
        assert round2(Decimal("2.675")) == Decimal("2.68")
        assert round2(Decimal("-2.675")) == Decimal("-2.68")

    def test_accepts_int_and_float(self):
        assert round2(5) == Decimal("5.00")
        assert round2(1.005) == Decimal("1.01")

    def test_none_is_zero(self):
        assert round2(None) == Decimal("0.00")


class TestCurrencyConverter:

    def test_convert_to_base(self):
        converter = make_converter()
        assert converter.to_base(Decimal("10"), "USD") == Decimal("154.20")

    def test_convert_from_base(self):
        converter = make_converter()
        assert converter.convert(Decimal("154.20"), "MVR", "USD") == Decimal("10.00")

    def test_cross_rate_goes_through_base(self):
        converter = make_converter()
        # 100 EUR = 1632 MVR = 87.98 GBP
        assert converter.convert(Decimal("100"), "EUR", "GBP") == Decimal("87.98")

    def test_same_currency_is_identity(self):
        converter = make_converter()
        assert converter.convert(Decimal("12.34"), "USD", "usd") == Decimal("12.34")

    def test_codes_are_case_insensitive(self):
        converter = make_converter()
        assert converter.to_base(Decimal("1"), "usd") == Decimal("15.42")

    def test_unknown_currency_uses_rate_one(self):
        converter = make_converter()
        assert converter.rate("XYZ") == Decimal("1")
        assert converter.convert(Decimal("10"), "XYZ", "MVR") == Decimal("10.00")

    def test_defaults_come_from_settings(self):
        converter = CurrencyConverter()
        assert converter.base_currency == "MVR"
        assert "USD" in converter.currencies

    @pytest.mark.parametrize(
        "source,target",
        list(itertools.permutations(DEFAULT_EXCHANGE_RATES, 2)),
    )
    def test_round_trip_within_rounding_tolerance(self, source, target):
        """
        Converting there and back lands within one cent of the
        intermediate currency, expressed in the source currency.
        """
        converter = make_converter()
        rates = {code: Decimal(rate) for code, rate in DEFAULT_EXCHANGE_RATES.items()}
        tolerance = Decimal("0.01") * max(Decimal("1"), rates[target] / rates[source])

        for amount in (Decimal("0.01"), Decimal("1.00"), Decimal("99.99"), Decimal("12345.67")):
            there = converter.convert(amount, source, target)
            back = converter.convert(there, target, source)
            assert abs(back - amount) <= tolerance


class TestCurrencySettings:

    def test_rates_are_upper_cased(self):
        settings = CurrencySettings(exchange_rates={"mvr": Decimal("1"), "usd": Decimal("15")})
        assert set(settings.exchange_rates) == {"MVR", "USD"}

    def test_rejects_non_positive_rate(self):
        with pytest.raises(ValueError):
            CurrencySettings(exchange_rates={"MVR": Decimal("1"), "USD": Decimal("0")})

    def test_base_rate_must_be_one(self):
        with pytest.raises(ValueError):
            CurrencySettings(base_currency="USD", exchange_rates={"USD": Decimal("2")})

    def test_validate_all_settings(self):
        results = validate_all_settings()
        assert results["currency"] is True
        assert results["engine"] is True
        assert results["logging"] is True
