"""Currency -- supported-currency registry and precision-derived rounding."""

from dataclasses import dataclass
from decimal import Decimal
from typing import ClassVar

from ledger_kernel.exceptions import UnsupportedCurrencyError


@dataclass(frozen=True)
class CurrencyInfo:
    """Information about a single supported currency."""

    code: str
    decimal_places: int
    name: str
    symbol: str

    @property
    def quantize_exponent(self) -> Decimal:
        """Exponent for Decimal.quantize() at this currency's precision."""
        return Decimal(1).scaleb(-self.decimal_places)


class CurrencyRegistry:
    """
    Registry of the currencies an invoice may be denominated in.

    The merchant trades in Ghana with US and UK suppliers, so the set is
    closed: invoices, payments and conversions outside it are rejected.
    """

    _CURRENCIES: ClassVar[dict[str, CurrencyInfo]] = {
        "USD": CurrencyInfo("USD", 2, "US Dollar", "$"),
        "GHS": CurrencyInfo("GHS", 2, "Ghanaian Cedi", "₵"),
        "GBP": CurrencyInfo("GBP", 2, "Pound Sterling", "£"),
    }

    @classmethod
    def is_supported(cls, code: str) -> bool:
        """Check if a currency code is in the supported set."""
        if not code or not isinstance(code, str):
            return False
        return code.upper().strip() in cls._CURRENCIES

    @classmethod
    def get_info(cls, code: str) -> CurrencyInfo:
        """Get currency information, raising for unsupported codes."""
        return cls._CURRENCIES[cls.validate(code)]

    @classmethod
    def validate(cls, code: str) -> str:
        """Validate and normalize a currency code."""
        if not cls.is_supported(code):
            raise UnsupportedCurrencyError(str(code), cls.all_codes())
        return code.upper().strip()

    @classmethod
    def symbol(cls, code: str) -> str:
        return cls.get_info(code).symbol

    @classmethod
    def all_codes(cls) -> tuple[str, ...]:
        """Supported codes in registry order."""
        return tuple(cls._CURRENCIES)
