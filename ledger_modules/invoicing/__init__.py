"""
Invoicing Module.

The invoice financial ledger: line items, two-tier discounts, payments,
refunds, voids and cancellation, with every derived total recomputed by
the engines after each mutation.
"""

from ledger_modules.invoicing.collaborators import (
    Actor,
    InMemoryInventoryGateway,
    InventoryGateway,
    NullInventoryGateway,
)
from ledger_modules.invoicing.config import InvoicingConfig
from ledger_modules.invoicing.models import (
    DiscountDescriptor,
    Invoice,
    InvoiceItem,
    InvoiceTransaction,
    PaymentMethod,
    PaymentSummary,
)
from ledger_modules.invoicing.service import InvoiceLedgerService, derive_invoice

__all__ = [
    "Actor",
    "InMemoryInventoryGateway",
    "InventoryGateway",
    "NullInventoryGateway",
    "InvoicingConfig",
    "DiscountDescriptor",
    "Invoice",
    "InvoiceItem",
    "InvoiceTransaction",
    "PaymentMethod",
    "PaymentSummary",
    "InvoiceLedgerService",
    "derive_invoice",
]
