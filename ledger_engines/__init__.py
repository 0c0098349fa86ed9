"""
Module: ledger_engines
Responsibility:
    Package entrypoint that re-exports the pure calculation engines used by
    the invoice ledger: discounts, totals, the status state machine and
    transaction arithmetic.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import ledger_kernel (exceptions, rounding, logging).
    MUST NOT import ledger_services or ledger_modules.

Invariants enforced:
    - Decimal-only arithmetic; floats are rejected.
    - Half-up rounding to 2 places via ``round_money``.
    - Determinism: identical inputs always produce identical outputs.
"""

from ledger_engines.discount import (
    DiscountSpec,
    DiscountType,
    compute_discount,
    discount_amount,
    effective_percent,
    validate_discount,
)
from ledger_engines.ledger import (
    LedgerEntry,
    TransactionType,
    check_payment,
    check_refund,
    check_void,
    max_payment_allowed,
    max_refund_allowed,
    net_paid,
    signed_amount,
)
from ledger_engines.status import (
    ALLOWED_OPERATIONS,
    InvoiceStatus,
    LedgerOperation,
    assert_can_cancel,
    assert_operation_allowed,
    derive_status,
    is_operation_allowed,
)
from ledger_engines.totals import (
    InvoiceTotals,
    LineSnapshot,
    LineTotals,
    compute_line,
    recalculate,
)

__all__ = [
    # discount
    "DiscountSpec",
    "DiscountType",
    "compute_discount",
    "discount_amount",
    "effective_percent",
    "validate_discount",
    # ledger
    "LedgerEntry",
    "TransactionType",
    "check_payment",
    "check_refund",
    "check_void",
    "max_payment_allowed",
    "max_refund_allowed",
    "net_paid",
    "signed_amount",
    # status
    "ALLOWED_OPERATIONS",
    "InvoiceStatus",
    "LedgerOperation",
    "assert_can_cancel",
    "assert_operation_allowed",
    "derive_status",
    "is_operation_allowed",
    # totals
    "InvoiceTotals",
    "LineSnapshot",
    "LineTotals",
    "compute_line",
    "recalculate",
]
