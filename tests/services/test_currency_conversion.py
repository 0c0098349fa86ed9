"""
Tests for CurrencyConversionService.

Covers the rate resolution order (identity, cache, live, fallback,
default), the base-currency markup, conversion rounding, profit/markup
calculation and display formatting.
"""

from decimal import Decimal

import httpx
import pytest

from ledger_config.schema import LedgerSettings, RateSourceSettings
from ledger_kernel.domain.clock import DeterministicClock
from ledger_kernel.domain.values import Money
from ledger_kernel.exceptions import (
    InvalidAmountError,
    RateSourceError,
    UnsupportedCurrencyError,
)
from ledger_services import (
    CurrencyConversionService,
    HttpRateSource,
    RateCache,
    RateOrigin,
    StaticRateSource,
)


class CountingSource:
    """Rate source double that counts calls and can be switched off."""

    name = "counting"

    def __init__(self, rates: dict[str, Decimal]):
        self._static = StaticRateSource(rates)
        self.calls: list[tuple[str, str]] = []
        self.available = True

    def fetch_rate(self, base: str, quote: str) -> Decimal:
        self.calls.append((base, quote))
        if not self.available:
            raise RateSourceError(base, quote, "source offline")
        return self._static.fetch_rate(base, quote)


@pytest.fixture
def clock():
    return DeterministicClock()


@pytest.fixture
def source():
    return CountingSource({"USD_GHS": Decimal("12.5"), "GBP_GHS": Decimal("16.0")})


@pytest.fixture
def conversion(source, clock):
    return CurrencyConversionService(
        source=source,
        cache=RateCache(ttl_seconds=3600, clock=clock),
        fallback_rates={"USD_GHS": Decimal("12.0"), "USD_GBP": Decimal("0.79")},
        base_currency="GHS",
        markup=Decimal("0.5"),
        clock=clock,
    )


# =============================================================================
# Rate resolution
# =============================================================================


class TestRateResolution:

    def test_identity(self, conversion, source):
        quote = conversion.quote("GHS", "GHS")
        assert quote.rate == Decimal("1")
        assert quote.origin is RateOrigin.IDENTITY
        assert source.calls == []

    def test_live_rate_into_base_currency_gets_markup(self, conversion):
        quote = conversion.quote("USD", "GHS")
        assert quote.rate == Decimal("13.0")
        assert quote.origin is RateOrigin.LIVE

    def test_live_rate_out_of_base_currency_has_no_markup(self, conversion):
        assert conversion.get_rate("GHS", "USD") == Decimal("0.08")

    def test_second_lookup_served_from_cache(self, conversion, source):
        conversion.get_rate("USD", "GHS")
        quote = conversion.quote("USD", "GHS")
        assert quote.origin is RateOrigin.CACHE
        assert quote.rate == Decimal("13.0")
        assert source.calls == [("USD", "GHS")]

    def test_cache_expiry_refetches(self, conversion, source, clock):
        conversion.get_rate("USD", "GHS")
        clock.advance(3600)
        assert conversion.quote("USD", "GHS").origin is RateOrigin.LIVE
        assert len(source.calls) == 2

    def test_fallback_when_source_fails(self, conversion, source, captured_logs):
        source.available = False
        quote = conversion.quote("USD", "GHS")
        assert quote.origin is RateOrigin.FALLBACK
        assert quote.rate == Decimal("12.5")

        messages = [r["message"] for r in captured_logs()]
        assert "exchange_rate_fetch_failed" in messages
        assert "exchange_rate_fallback_used" in messages

    def test_fallback_not_cached(self, conversion, source):
        source.available = False
        conversion.get_rate("USD", "GHS")
        assert len(conversion.cache) == 0

        source.available = True
        assert conversion.quote("USD", "GHS").origin is RateOrigin.LIVE

    def test_fallback_uses_inverse_pair(self, conversion, source):
        source.available = False
        # 1 / 0.79, no markup since GBP is not the base currency
        assert conversion.get_rate("GBP", "USD") == Decimal("1") / Decimal("0.79")

    def test_default_rate_when_nothing_known(self, conversion, source, captured_logs):
        source.available = False
        quote = conversion.quote("GBP", "GHS")
        assert quote.origin is RateOrigin.DEFAULT
        assert quote.rate == Decimal("1")
        assert any(r["message"] == "exchange_rate_defaulted" for r in captured_logs())

    def test_no_source_goes_straight_to_fallback(self, clock):
        service = CurrencyConversionService(
            source=None,
            fallback_rates={"USD_GHS": Decimal("12.5")},
            clock=clock,
        )
        assert service.quote("USD", "GHS").origin is RateOrigin.FALLBACK

    def test_unsupported_currency(self, conversion):
        with pytest.raises(UnsupportedCurrencyError):
            conversion.get_rate("EUR", "GHS")

    def test_http_source_failure_falls_back(self, clock):
        client = httpx.Client(transport=httpx.MockTransport(lambda r: httpx.Response(500)))
        service = CurrencyConversionService(
            source=HttpRateSource("https://rates.example.test", client=client),
            fallback_rates={"USD_GHS": Decimal("12.5")},
            clock=clock,
        )
        assert service.quote("USD", "GHS").origin is RateOrigin.FALLBACK


# =============================================================================
# Conversion and profit
# =============================================================================


class TestConversion:

    def test_convert_rounds_half_up(self, conversion):
        # 0.37 x 13.0 = 4.81
        converted = conversion.convert(Money.of("0.37", "USD"), "GHS")
        assert converted == Money.of("4.81", "GHS")

    def test_convert_same_currency_is_identity(self, conversion):
        money = Money.of("10.00", "GHS")
        assert conversion.convert(money, "ghs") is money

    def test_convert_amount(self, conversion):
        assert conversion.convert_amount(Decimal("150"), "USD", "GHS") == Decimal("1950.00")


class TestProfitAndMarkup:

    def test_cross_currency_profit(self, conversion):
        result = conversion.calculate_profit_and_markup(
            Decimal("150"), "USD", Decimal("5000"), "GHS",
        )
        assert result.cost_in_selling_currency == Money.of("1950.00", "GHS")
        assert result.profit == Money.of("3050.00", "GHS")
        assert result.profit_equivalent == Money.of("244.00", "USD")
        assert result.markup_percent == Decimal("156.41")

    def test_same_currency_has_no_equivalent(self, conversion):
        result = conversion.calculate_profit_and_markup(
            Decimal("2000"), "GHS", Decimal("5000"), "GHS",
        )
        assert result.profit == Money.of("3000.00", "GHS")
        assert result.profit_equivalent is None
        assert result.markup_percent == Decimal("150.00")

    def test_loss(self, conversion):
        result = conversion.calculate_profit_and_markup(
            Decimal("100"), "USD", Decimal("1000"), "GHS",
        )
        assert result.profit == Money.of("-300.00", "GHS")
        assert result.profit_equivalent == Money.of("-24.00", "USD")
        assert result.markup_percent == Decimal("-23.08")

    @pytest.mark.parametrize("cost,selling", [("0", "10"), ("10", "0"), ("-1", "10")])
    def test_non_positive_amounts_rejected(self, conversion, cost, selling):
        with pytest.raises(InvalidAmountError):
            conversion.calculate_profit_and_markup(
                Decimal(cost), "GHS", Decimal(selling), "GHS",
            )


# =============================================================================
# Display
# =============================================================================


class TestFormatting:

    def test_format_money(self):
        money = Money.of("1950", "USD")
        assert CurrencyConversionService.format_money(money) == "USD 1,950.00"
        assert CurrencyConversionService.format_money(money, use_symbol=True) == "$1,950.00"

    def test_format_negative(self):
        money = Money.of("-24", "GBP")
        assert CurrencyConversionService.format_money(money) == "GBP -24.00"
        assert CurrencyConversionService.format_money(money, use_symbol=True) == "-£24.00"

    def test_format_with_equivalent(self, conversion):
        text = conversion.format_with_equivalent(Money.of("150", "USD"), "GHS")
        assert text == "USD 150.00 (≈ GHS 1,950.00)"

    def test_format_with_equivalent_same_currency(self, conversion):
        assert conversion.format_with_equivalent(Money.of("5", "GHS"), "GHS") == "GHS 5.00"

    def test_format_profit(self, conversion):
        result = conversion.calculate_profit_and_markup(
            Decimal("150"), "USD", Decimal("5000"), "GHS",
        )
        assert conversion.format_profit(result) == "GHS 3,050.00 (≈ USD 244.00)"
        assert conversion.format_profit(None) == "—"

    def test_format_markup(self):
        assert CurrencyConversionService.format_markup(Decimal("156.41")) == "156.4%"
        assert CurrencyConversionService.format_markup(Decimal("150")) == "150.0%"
        assert CurrencyConversionService.format_markup(None) == "—"


class TestFromSettings:

    def test_builds_http_source_when_url_set(self):
        settings = LedgerSettings(
            rate_source=RateSourceSettings(url="https://rates.example.test", timeout_seconds=2.0),
        )
        service = CurrencyConversionService.from_settings(settings)
        assert isinstance(service._source, HttpRateSource)
        assert service.base_currency == "GHS"

    def test_offline_settings_use_fallback_table(self):
        service = CurrencyConversionService.from_settings(LedgerSettings(), clock=DeterministicClock())
        quote = service.quote("USD", "GHS")
        assert quote.origin is RateOrigin.FALLBACK
        assert quote.rate == Decimal("13.0")

    def test_closing_the_service_closes_its_http_client(self):
        settings = LedgerSettings(rate_source=RateSourceSettings(url="https://rates.example.test"))
        with CurrencyConversionService.from_settings(settings) as service:
            client = service._source._client
            assert not client.is_closed
        assert client.is_closed

    def test_close_without_closable_source(self, conversion, source):
        conversion.close()
        assert conversion.quote("USD", "GHS").origin is RateOrigin.LIVE
