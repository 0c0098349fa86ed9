"""
ledger_config -- deployment settings for the invoice ledger.

``load_settings()`` reads the packaged defaults, an optional deployment
YAML file and ``LEDGER_*`` environment overrides, and returns a frozen
``LedgerSettings``.  Services receive settings (or objects built from them)
by injection; they never read files or the environment themselves.
"""

from ledger_config.loader import load_settings, parse_settings
from ledger_config.schema import FallbackRate, LedgerSettings, RateSourceSettings

__all__ = [
    "load_settings",
    "parse_settings",
    "LedgerSettings",
    "FallbackRate",
    "RateSourceSettings",
]
