"""
Module: ledger_services
Responsibility:
    Imperative-shell services that sit beside the ledger: exchange-rate
    lookup, conversion and profit/markup reporting.

Architecture position:
    Services -- may import ledger_kernel and ledger_config.
    MUST NOT be imported by ledger_engines.  The invoicing module never
    consults exchange rates for stored amounts.
"""

from ledger_services.currency_conversion import (
    CurrencyConversionService,
    ProfitAndMarkup,
    RateOrigin,
    RateQuote,
)
from ledger_services.rates import (
    HttpRateSource,
    RateCache,
    RateSource,
    StaticRateSource,
    pair_key,
)

__all__ = [
    "CurrencyConversionService",
    "ProfitAndMarkup",
    "RateOrigin",
    "RateQuote",
    "HttpRateSource",
    "RateCache",
    "RateSource",
    "StaticRateSource",
    "pair_key",
]
