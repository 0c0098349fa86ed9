"""
Tests for the supported-currency registry.

The set is closed (USD, GHS, GBP); anything else is rejected at the
domain boundary.
"""

import pytest
from decimal import Decimal

from ledger_kernel.domain.currency import CurrencyRegistry
from ledger_kernel.domain.values import Currency
from ledger_kernel.exceptions import UnsupportedCurrencyError


class TestCurrencyRegistry:

    def test_supported_codes(self):
        assert CurrencyRegistry.all_codes() == ("USD", "GHS", "GBP")
        for code in ("USD", "GHS", "GBP"):
            assert CurrencyRegistry.is_supported(code)
            assert CurrencyRegistry.validate(code) == code

    def test_lowercase_and_whitespace_normalized(self):
        assert CurrencyRegistry.validate(" ghs ") == "GHS"
        assert CurrencyRegistry.validate("usd") == "USD"

    @pytest.mark.parametrize("code", ["EUR", "JPY", "", "US", None, 840])
    def test_unsupported_codes_rejected(self, code):
        assert not CurrencyRegistry.is_supported(code)
        with pytest.raises(UnsupportedCurrencyError) as exc_info:
            CurrencyRegistry.validate(code)
        assert exc_info.value.supported == ("USD", "GHS", "GBP")

    def test_symbols(self):
        assert CurrencyRegistry.symbol("USD") == "$"
        assert CurrencyRegistry.symbol("GHS") == "₵"
        assert CurrencyRegistry.symbol("GBP") == "£"

    def test_precision_is_two_places(self):
        for code in CurrencyRegistry.all_codes():
            info = CurrencyRegistry.get_info(code)
            assert info.decimal_places == 2
            assert info.quantize_exponent == Decimal("0.01")


class TestCurrencyValueObject:

    def test_normalizes_code(self):
        assert Currency("gbp").code == "GBP"
        assert str(Currency("gbp")) == "GBP"

    def test_equality_by_code(self):
        assert Currency("usd") == Currency("USD")

    def test_rejects_unsupported(self):
        with pytest.raises(UnsupportedCurrencyError):
            Currency("EUR")
