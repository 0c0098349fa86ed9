"""
CurrencyConversionService -- exchange rates for display and profit reporting.

Responsibility:
    Resolves the rate between two supported currencies, converts amounts,
    computes display-only profit and markup for a cost/selling pair, and
    renders amounts with an optional converted equivalent.

Architecture position:
    Services -- imperative shell.  Consumed by reporting and UI layers.
    Never consulted by the ledger: stored invoice amounts are always in the
    invoice's single currency and no stored field depends on a rate.

Rate resolution (``quote()``):
    1. base == quote                 -> 1 (IDENTITY)
    2. cache hit for "BASE_QUOTE"    -> cached final rate (CACHE)
    3. live source                   -> raw + markup, cached (LIVE)
    4. source failed, table route    -> raw + markup, not cached (FALLBACK)
    5. no route at all               -> 1 (DEFAULT)

    The markup is added only when the quote currency is the merchant's base
    currency (buying foreign currency with cedis), never when converting
    away from it.

Invariants enforced:
    - A rate source failure never escapes this service.
    - Source calls are bounded by the source's own timeout; the cache lock
      is never held across a fetch.
    - Concurrent refreshes of one key are idempotent; last write wins.

Failure modes:
    - UnsupportedCurrencyError for currency codes outside the registry.
    - InvalidAmountError for non-positive cost or selling amounts.

Audit relevance:
    Every fallback is logged at WARNING with the source error code so an
    outage of the rate feed is visible even though callers never see it.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Mapping

from ledger_kernel.db.types import round_money
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.currency import CurrencyRegistry
from ledger_kernel.domain.values import ExchangeRate, Money, require_amount
from ledger_kernel.exceptions import RateSourceError
from ledger_kernel.logging_config import get_logger
from ledger_services.rates import (
    HttpRateSource,
    RateCache,
    RateSource,
    StaticRateSource,
    pair_key,
)

logger = get_logger("services.currency_conversion")

_ONE = Decimal("1")
_HUNDRED = Decimal("100")
_ONE_PLACE = Decimal("0.1")
_NO_VALUE = "—"


class RateOrigin(str, Enum):
    """Where a quoted rate came from."""

    IDENTITY = "identity"
    CACHE = "cache"
    LIVE = "live"
    FALLBACK = "fallback"
    DEFAULT = "default"


@dataclass(frozen=True, slots=True)
class RateQuote:
    """A resolved rate: 1 ``base`` = ``rate`` ``quote``, markup included."""

    base: str
    quote: str
    rate: Decimal
    origin: RateOrigin


@dataclass(frozen=True, slots=True)
class ProfitAndMarkup:
    """
    Display-only profit of selling an item bought in another currency.

    ``profit`` is in the selling currency.  ``profit_equivalent`` is the same
    profit in the cost currency, or None when both currencies match.
    ``markup_percent`` is profit over converted cost, x 100.
    """

    cost_in_selling_currency: Money
    profit: Money
    profit_equivalent: Money | None
    markup_percent: Decimal | None


class CurrencyConversionService:
    """
    Rate lookup with markup, TTL cache and static fallback.

    Contract:
        Constructed with an explicit ``RateCache`` and ``RateSource``; both
        are swappable so tests run with fixed rates and a deterministic
        clock.

    Guarantees:
        - ``get_rate`` always returns a positive Decimal.
        - Fallback and default rates are never written to the cache, so the
          live source is retried on the next lookup.

    Non-goals:
        - Does NOT persist rates or keep rate history.
        - Does NOT round rates; only converted amounts are rounded.
    """

    def __init__(
        self,
        source: RateSource | None,
        cache: RateCache | None = None,
        fallback_rates: Mapping[str, Decimal] | None = None,
        base_currency: str = "GHS",
        markup: Decimal = Decimal("0.5"),
        clock: Clock | None = None,
    ):
        self._clock = clock or SystemClock()
        self._source = source
        self._cache = cache or RateCache(clock=self._clock)
        self._fallback = StaticRateSource(fallback_rates or {})
        self._base_currency = CurrencyRegistry.validate(base_currency)
        self._markup = markup

    @classmethod
    def from_settings(
        cls,
        settings,
        source: RateSource | None = None,
        clock: Clock | None = None,
    ) -> CurrencyConversionService:
        """
        Build the service from ``LedgerSettings``.

        An ``HttpRateSource`` is created when the settings name a rate source
        URL and no explicit source is given.
        """
        if source is None and settings.rate_source.url:
            source = HttpRateSource(
                settings.rate_source.url,
                timeout=settings.rate_source.timeout_seconds,
            )
        clock = clock or SystemClock()
        return cls(
            source=source,
            cache=RateCache(ttl_seconds=settings.rate_cache_ttl_seconds, clock=clock),
            fallback_rates=settings.fallback_rate_table,
            base_currency=settings.base_currency,
            markup=settings.fx_markup,
            clock=clock,
        )

    @property
    def base_currency(self) -> str:
        return self._base_currency

    @property
    def cache(self) -> RateCache:
        return self._cache

    def close(self) -> None:
        """Release the rate source's connections, if it holds any."""
        close = getattr(self._source, "close", None)
        if close is not None:
            close()

    def __enter__(self) -> CurrencyConversionService:
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # =========================================================================
    # Rates
    # =========================================================================

    def quote(self, base: str, quote: str) -> RateQuote:
        """Resolve the rate for ``base`` -> ``quote`` and report its origin."""
        base = CurrencyRegistry.validate(base)
        quote = CurrencyRegistry.validate(quote)
        if base == quote:
            return RateQuote(base, quote, _ONE, RateOrigin.IDENTITY)

        key = pair_key(base, quote)
        cached = self._cache.get(key)
        if cached is not None:
            return RateQuote(base, quote, cached, RateOrigin.CACHE)

        if self._source is not None:
            try:
                raw = self._source.fetch_rate(base, quote)
            except RateSourceError as e:
                logger.warning("exchange_rate_fetch_failed", extra={
                    "base_currency": base,
                    "quote_currency": quote,
                    "source": self._source.name,
                    "error_code": e.code,
                    "reason": e.reason,
                })
            else:
                rate = self._apply_markup(raw, quote)
                self._cache.put(key, rate)
                logger.info("exchange_rate_fetched", extra={
                    "base_currency": base,
                    "quote_currency": quote,
                    "raw_rate": str(raw),
                    "rate": str(rate),
                })
                return RateQuote(base, quote, rate, RateOrigin.LIVE)

        try:
            raw = self._fallback.fetch_rate(base, quote)
        except RateSourceError:
            logger.warning("exchange_rate_defaulted", extra={
                "base_currency": base,
                "quote_currency": quote,
            })
            return RateQuote(base, quote, _ONE, RateOrigin.DEFAULT)

        rate = self._apply_markup(raw, quote)
        logger.info("exchange_rate_fallback_used", extra={
            "base_currency": base,
            "quote_currency": quote,
            "rate": str(rate),
        })
        return RateQuote(base, quote, rate, RateOrigin.FALLBACK)

    def get_rate(self, base: str, quote: str) -> Decimal:
        return self.quote(base, quote).rate

    def _apply_markup(self, raw_rate: Decimal, quote: str) -> Decimal:
        if quote == self._base_currency:
            return raw_rate + self._markup
        return raw_rate

    # =========================================================================
    # Conversion
    # =========================================================================

    def convert(self, money: Money, to_currency: str) -> Money:
        """Convert ``money``, rounding half-up to the target currency's places."""
        to_currency = CurrencyRegistry.validate(to_currency)
        if money.currency.code == to_currency:
            return money
        rate = self.get_rate(money.currency.code, to_currency)
        return ExchangeRate.of(money.currency, to_currency, rate).convert(money).round()

    def convert_amount(self, amount: Decimal, from_currency: str, to_currency: str) -> Decimal:
        return self.convert(Money(amount, from_currency), to_currency).amount

    def calculate_profit_and_markup(
        self,
        cost_amount: Decimal,
        cost_currency: str,
        selling_amount: Decimal,
        selling_currency: str,
    ) -> ProfitAndMarkup:
        """
        Profit and markup of selling at ``selling_amount`` something that cost
        ``cost_amount``.

        profit = selling - cost converted into the selling currency.
        markup% = profit / converted cost x 100 (None if converted cost is 0).

        Raises:
            InvalidAmountError: Cost or selling amount is not positive.
        """
        cost = Money(require_amount(cost_amount, "cost_amount"), cost_currency)
        selling = Money(require_amount(selling_amount, "selling_amount"), selling_currency)

        cost_converted = self.convert(cost, selling.currency.code)
        profit = (selling - cost_converted).round()

        equivalent = None
        if cost.currency != selling.currency:
            equivalent = self.convert(profit, cost.currency.code)

        markup = None
        if cost_converted.amount > 0:
            markup = round_money(profit.amount / cost_converted.amount * _HUNDRED)

        return ProfitAndMarkup(
            cost_in_selling_currency=cost_converted,
            profit=profit,
            profit_equivalent=equivalent,
            markup_percent=markup,
        )

    # =========================================================================
    # Display
    # =========================================================================

    @staticmethod
    def format_money(money: Money, use_symbol: bool = False) -> str:
        """
        ``"USD 1,950.00"``, or ``"$1,950.00"`` with ``use_symbol``.
        """
        rounded = money.round().amount
        digits = f"{abs(rounded):,.{money.currency.decimal_places}f}"
        sign = "-" if rounded < 0 else ""
        if use_symbol:
            return f"{sign}{money.currency.symbol}{digits}"
        return f"{money.currency.code} {sign}{digits}"

    def format_with_equivalent(self, money: Money, equivalent_currency: str) -> str:
        """``"USD 150.00 (≈ GHS 1,950.00)"``; no bracket when currencies match."""
        primary = self.format_money(money)
        if money.currency.code == CurrencyRegistry.validate(equivalent_currency):
            return primary
        converted = self.convert(money, equivalent_currency)
        return f"{primary} (≈ {self.format_money(converted)})"

    def format_profit(self, result: ProfitAndMarkup | None) -> str:
        if result is None:
            return _NO_VALUE
        primary = self.format_money(result.profit)
        if result.profit_equivalent is None:
            return primary
        return f"{primary} (≈ {self.format_money(result.profit_equivalent)})"

    @staticmethod
    def format_markup(markup_percent: Decimal | None) -> str:
        """One decimal place, e.g. ``"156.4%"``."""
        if markup_percent is None:
            return _NO_VALUE
        return f"{round_money(markup_percent, decimal_places=1)}%"
