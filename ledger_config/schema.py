"""
Ledger Settings Schema (``ledger_config.schema``).

Frozen dataclasses describing deployment settings: the merchant's base
currency, the FX markup and rate cache TTL, the fallback rate table, the
live rate source, invoice numbering and the database URL.

Instances are produced by ``ledger_config.loader`` from YAML and are
immutable once built.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from ledger_kernel.domain.currency import CurrencyRegistry


@dataclass(frozen=True)
class FallbackRate:
    """One entry of the static rate table (1 base = rate quote)."""

    base: str
    quote: str
    rate: Decimal

    def __post_init__(self) -> None:
        object.__setattr__(self, "base", CurrencyRegistry.validate(self.base))
        object.__setattr__(self, "quote", CurrencyRegistry.validate(self.quote))
        if self.base == self.quote:
            raise ValueError(f"Fallback rate pairs a currency with itself: {self.base}")
        if self.rate <= 0:
            raise ValueError(f"Fallback rate {self.base}/{self.quote} must be positive")

    @property
    def key(self) -> str:
        return f"{self.base}_{self.quote}"


DEFAULT_FALLBACK_RATES: tuple[FallbackRate, ...] = (
    FallbackRate("USD", "GHS", Decimal("12.5")),
    FallbackRate("GBP", "GHS", Decimal("16.0")),
    FallbackRate("USD", "GBP", Decimal("0.79")),
    FallbackRate("GBP", "USD", Decimal("1.27")),
)


@dataclass(frozen=True)
class RateSourceSettings:
    """Live exchange-rate endpoint.  ``url=None`` disables live fetching."""

    url: str | None = None
    timeout_seconds: float = 5.0

    def __post_init__(self) -> None:
        if self.timeout_seconds <= 0:
            raise ValueError("rate source timeout_seconds must be positive")


@dataclass(frozen=True)
class LedgerSettings:
    """
    Complete deployment settings for the invoice ledger.

    Field defaults match a Ghana-based merchant invoicing in cedis with
    US and UK suppliers.
    """

    base_currency: str = "GHS"
    default_invoice_currency: str = "GHS"
    supported_currencies: tuple[str, ...] = ("USD", "GHS", "GBP")
    fx_markup: Decimal = Decimal("0.5")
    rate_cache_ttl_seconds: int = 3600
    fallback_rates: tuple[FallbackRate, ...] = DEFAULT_FALLBACK_RATES
    rate_source: RateSourceSettings = field(default_factory=RateSourceSettings)
    invoice_number_prefix: str = "INV"
    invoice_number_width: int = 6
    database_url: str = "sqlite:///ledger.db"
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        supported = tuple(CurrencyRegistry.validate(c) for c in self.supported_currencies)
        object.__setattr__(self, "supported_currencies", supported)
        for name in ("base_currency", "default_invoice_currency"):
            code = CurrencyRegistry.validate(getattr(self, name))
            if code not in supported:
                raise ValueError(f"{name} {code} is not in supported_currencies")
            object.__setattr__(self, name, code)
        if self.fx_markup < 0:
            raise ValueError("fx_markup must not be negative")
        if self.rate_cache_ttl_seconds <= 0:
            raise ValueError("rate_cache_ttl_seconds must be positive")
        if not self.invoice_number_prefix or not self.invoice_number_prefix.strip():
            raise ValueError("invoice_number_prefix cannot be empty")
        if self.invoice_number_width < 1:
            raise ValueError("invoice_number_width must be at least 1")

    @property
    def fallback_rate_table(self) -> dict[str, Decimal]:
        """Fallback rates keyed ``"BASE_QUOTE"``."""
        return {r.key: r.rate for r in self.fallback_rates}
