"""
Unit tests for Money and decimal handling.

Verifies:
- Half-up rounding to 2 places
- Caller input validation (floats rejected, precision bounded)
- Money arithmetic stays within one currency
- Exchange rates convert without rounding
"""

from decimal import ROUND_DOWN, Decimal

import pytest

from ledger_kernel.db.types import MONEY_DECIMAL_PLACES, round_money, round_optional
from ledger_kernel.domain.values import ExchangeRate, Money, require_amount
from ledger_kernel.exceptions import InvalidAmountError


class TestRoundMoney:
    """Tests for round_money function."""

    def test_half_up_on_exact_half(self):
        assert round_money(Decimal("2.345")) == Decimal("2.35")
        assert round_money(Decimal("2.335")) == Decimal("2.34")

    def test_negative_half_rounds_away_from_zero(self):
        assert round_money(Decimal("-2.345")) == Decimal("-2.35")

    def test_default_places_is_two(self):
        assert MONEY_DECIMAL_PLACES == 2
        assert round_money(Decimal("10")) == Decimal("10.00")
        assert str(round_money(Decimal("10"))) == "10.00"

    def test_custom_places(self):
        assert round_money(Decimal("156.4102"), decimal_places=1) == Decimal("156.4")

    def test_custom_rounding_mode(self):
        assert round_money(Decimal("2.349"), rounding=ROUND_DOWN) == Decimal("2.34")

    def test_round_optional_passes_none(self):
        assert round_optional(None) is None
        assert round_optional(Decimal("33.3333")) == Decimal("33.33")


class TestRequireAmount:
    """Tests for require_amount validation."""

    def test_decimal_accepted(self):
        assert require_amount(Decimal("100.50"), "amount") == Decimal("100.50")

    def test_int_and_string_accepted(self):
        assert require_amount(5, "amount") == Decimal("5")
        assert require_amount(" 12.30 ", "amount") == Decimal("12.30")

    def test_float_rejected(self):
        with pytest.raises(InvalidAmountError) as exc_info:
            require_amount(10.5, "amount")
        assert exc_info.value.field == "amount"

    def test_bool_rejected(self):
        with pytest.raises(InvalidAmountError):
            require_amount(True, "amount")

    def test_zero_rejected_by_default(self):
        with pytest.raises(InvalidAmountError, match="greater than zero"):
            require_amount(Decimal("0"), "amount")

    def test_zero_allowed_when_requested(self):
        assert require_amount(Decimal("0"), "unit_cost", allow_zero=True) == Decimal("0")

    def test_negative_rejected_even_with_allow_zero(self):
        with pytest.raises(InvalidAmountError, match="must not be negative"):
            require_amount(Decimal("-1"), "unit_cost", allow_zero=True)

    def test_extra_precision_rejected(self):
        with pytest.raises(InvalidAmountError, match="at most 2 decimal places"):
            require_amount(Decimal("10.005"), "amount")

    def test_trailing_zeros_are_not_extra_precision(self):
        assert require_amount(Decimal("10.500"), "amount") == Decimal("10.5")

    def test_non_numeric_rejected(self):
        with pytest.raises(InvalidAmountError, match="must be numeric"):
            require_amount("ten", "amount")

    def test_infinity_rejected(self):
        with pytest.raises(InvalidAmountError, match="finite"):
            require_amount(Decimal("Infinity"), "amount")

    def test_error_code(self):
        with pytest.raises(InvalidAmountError) as exc_info:
            require_amount(Decimal("-5"), "amount")
        assert exc_info.value.code == "INVALID_AMOUNT"


class TestMoney:
    """Tests for the Money value object."""

    def test_of_normalizes_currency(self):
        money = Money.of("10.00", "ghs")
        assert money.currency.code == "GHS"
        assert money.amount == Decimal("10.00")

    def test_float_prohibited(self):
        with pytest.raises(TypeError):
            Money(10.5, "USD")

    def test_unsupported_currency_rejected(self):
        from ledger_kernel.exceptions import UnsupportedCurrencyError

        with pytest.raises(UnsupportedCurrencyError):
            Money.of("1", "EUR")

    def test_round_half_up(self):
        assert Money.of("1.005", "USD").round().amount == Decimal("1.01")

    def test_addition_same_currency(self):
        total = Money.of("10.25", "GHS") + Money.of("4.75", "GHS")
        assert total == Money.of("15.00", "GHS")

    def test_addition_across_currencies_rejected(self):
        with pytest.raises(ValueError, match="different currencies"):
            Money.of("1", "GHS") + Money.of("1", "USD")

    def test_multiply_by_int_and_decimal(self):
        assert (Money.of("2.50", "USD") * 3).amount == Decimal("7.50")
        assert (Decimal("2") * Money.of("2.50", "USD")).amount == Decimal("5.00")

    def test_multiply_by_float_rejected(self):
        with pytest.raises(TypeError):
            Money.of("2.50", "USD") * 1.5

    def test_negation_and_predicates(self):
        money = Money.of("3", "USD")
        assert (-money).amount == Decimal("-3")
        assert money.is_positive
        assert Money.zero("USD").is_zero

    def test_comparison(self):
        assert Money.of("1", "GHS") < Money.of("2", "GHS")
        assert Money.of("2", "GHS") >= Money.of("2", "GHS")

    def test_str(self):
        assert str(Money.of("12.50", "GBP")) == "12.50 GBP"


class TestExchangeRate:
    """Tests for the ExchangeRate value object."""

    def test_convert_is_not_rounded(self):
        rate = ExchangeRate.of("USD", "GHS", "12.345")
        converted = rate.convert(Money.of("1.00", "USD"))
        assert converted.currency.code == "GHS"
        assert converted.amount == Decimal("12.34500")

    def test_convert_wrong_currency_rejected(self):
        rate = ExchangeRate.of("USD", "GHS", "12.5")
        with pytest.raises(ValueError, match="doesn't match"):
            rate.convert(Money.of("1", "GBP"))

    def test_non_positive_rate_rejected(self):
        with pytest.raises(ValueError):
            ExchangeRate.of("USD", "GHS", "0")
        with pytest.raises(ValueError):
            ExchangeRate.of("USD", "GHS", "-1")

    def test_inverse(self):
        rate = ExchangeRate.of("USD", "GHS", "12.5")
        inverse = rate.inverse()
        assert inverse.pair == ("GHS", "USD")
        assert inverse.rate == Decimal("0.08")
