"""
Invoicing Configuration Schema.

Defines the ledger policy knobs and their defaults.  Deployments build it
from ``LedgerSettings`` with ``InvoicingConfig.from_settings``.
"""

from dataclasses import dataclass
from typing import Self

from ledger_kernel.domain.currency import CurrencyRegistry
from ledger_kernel.logging_config import get_logger
from ledger_modules.invoicing.models import PaymentMethod

logger = get_logger("modules.invoicing.config")


@dataclass
class InvoicingConfig:
    """
    Configuration schema for the invoicing module.

        config = InvoicingConfig(
            invoice_number_prefix="POS",
            supported_currencies=("GHS",),
        )
    """

    # Invoice numbering: {prefix}-{year}-{sequence}
    invoice_number_prefix: str = "INV"
    invoice_number_width: int = 6

    # Currencies
    default_currency: str = "GHS"
    supported_currencies: tuple[str, ...] = ("USD", "GHS", "GBP")

    # Payments
    default_payment_method: PaymentMethod = PaymentMethod.CASH

    # Voids and cancellation
    require_cancellation_reason: bool = True
    block_last_item_void_when_paid: bool = True

    # Hard delete of soft-deleted invoices
    allow_purge: bool = True

    def __post_init__(self):
        if not self.invoice_number_prefix or not self.invoice_number_prefix.strip():
            raise ValueError("invoice_number_prefix cannot be empty")
        if self.invoice_number_width < 1:
            raise ValueError("invoice_number_width must be at least 1")
        self.supported_currencies = tuple(
            CurrencyRegistry.validate(c) for c in self.supported_currencies
        )
        self.default_currency = CurrencyRegistry.validate(self.default_currency)
        if self.default_currency not in self.supported_currencies:
            raise ValueError(
                f"default_currency {self.default_currency} is not supported"
            )
        self.default_payment_method = PaymentMethod(self.default_payment_method)
        logger.info(
            "invoicing_config_initialized",
            extra={
                "invoice_number_prefix": self.invoice_number_prefix,
                "default_currency": self.default_currency,
                "supported_currencies": list(self.supported_currencies),
            },
        )

    @classmethod
    def from_settings(cls, settings) -> Self:
        """Derive the module config from ``LedgerSettings``."""
        return cls(
            invoice_number_prefix=settings.invoice_number_prefix,
            invoice_number_width=settings.invoice_number_width,
            default_currency=settings.default_invoice_currency,
            supported_currencies=settings.supported_currencies,
        )

    def format_invoice_number(self, year: int, sequence: int) -> str:
        return f"{self.invoice_number_prefix}-{year}-{sequence:0{self.invoice_number_width}d}"
