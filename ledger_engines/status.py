"""
Invoice Status State Machine.

Pure functions with deterministic behavior. No I/O.

Two concerns:

1. Derivation.  Apart from CANCELLED, an invoice's status is a function of
   amount paid versus total:

       amount_paid <= 0       -> UNPAID
       amount_paid >= total   -> PAID
       otherwise              -> PARTIALLY_PAID

   CANCELLED is sticky: it is entered only by explicit cancellation and no
   payment-driven derivation ever overwrites it.

2. Permissions.  Which ledger operations each status admits:

   ==================  ======  ==============  ====  =========
   operation           UNPAID  PARTIALLY_PAID  PAID  CANCELLED
   ==================  ======  ==============  ====  =========
   add/remove item     yes     -               -     -
   update item         yes     yes             -     -
   set discount        yes     yes             -     -
   update header       yes     yes             yes   -
   payment/refund      yes     yes             yes   -
   void transaction    yes     yes             yes   -
   void item           yes     yes             yes   -
   cancel              yes     yes             yes   -
   delete (soft)       yes     -               -     yes
   ==================  ======  ==============  ====  =========

   Cancellation additionally requires net paid of exactly zero.
"""

from __future__ import annotations

from decimal import Decimal
from enum import Enum

from ledger_kernel.exceptions import (
    CancellationNotAllowedError,
    InvoiceCancelledError,
    InvoiceLockedError,
)
from ledger_kernel.logging_config import get_logger

logger = get_logger("engines.status")


class InvoiceStatus(str, Enum):
    """Invoice lifecycle states."""

    UNPAID = "UNPAID"
    PARTIALLY_PAID = "PARTIALLY_PAID"
    PAID = "PAID"
    CANCELLED = "CANCELLED"


class LedgerOperation(str, Enum):
    """Operations gated by invoice status."""

    ADD_ITEM = "add item"
    UPDATE_ITEM = "update item"
    REMOVE_ITEM = "remove item"
    SET_DISCOUNT = "set invoice discount"
    UPDATE_HEADER = "update invoice"
    ADD_PAYMENT = "record payment"
    ADD_REFUND = "record refund"
    VOID_TRANSACTION = "void transaction"
    VOID_ITEM = "void item"
    CANCEL = "cancel invoice"
    DELETE = "delete invoice"


_ALWAYS_OPEN = frozenset({
    LedgerOperation.UPDATE_HEADER,
    LedgerOperation.ADD_PAYMENT,
    LedgerOperation.ADD_REFUND,
    LedgerOperation.VOID_TRANSACTION,
    LedgerOperation.VOID_ITEM,
    LedgerOperation.CANCEL,
})

ALLOWED_OPERATIONS: dict[InvoiceStatus, frozenset[LedgerOperation]] = {
    InvoiceStatus.UNPAID: _ALWAYS_OPEN | {
        LedgerOperation.ADD_ITEM,
        LedgerOperation.UPDATE_ITEM,
        LedgerOperation.REMOVE_ITEM,
        LedgerOperation.SET_DISCOUNT,
        LedgerOperation.DELETE,
    },
    InvoiceStatus.PARTIALLY_PAID: _ALWAYS_OPEN | {
        LedgerOperation.UPDATE_ITEM,
        LedgerOperation.SET_DISCOUNT,
    },
    InvoiceStatus.PAID: _ALWAYS_OPEN,
    InvoiceStatus.CANCELLED: frozenset({LedgerOperation.DELETE}),
}


def derive_status(
    current: InvoiceStatus,
    amount_paid: Decimal,
    total_amount: Decimal,
) -> InvoiceStatus:
    """
    Status implied by amount paid versus total.

    CANCELLED is returned unchanged.
    """
    current = InvoiceStatus(current)
    if current is InvoiceStatus.CANCELLED:
        return current
    if amount_paid <= 0:
        return InvoiceStatus.UNPAID
    if amount_paid >= total_amount:
        return InvoiceStatus.PAID
    return InvoiceStatus.PARTIALLY_PAID


def is_operation_allowed(status: InvoiceStatus, operation: LedgerOperation) -> bool:
    return operation in ALLOWED_OPERATIONS[InvoiceStatus(status)]


def assert_operation_allowed(
    status: InvoiceStatus,
    operation: LedgerOperation,
    invoice_id: object,
) -> None:
    """
    Raise if ``operation`` is not legal in ``status``.

    Raises:
        InvoiceCancelledError: The invoice is cancelled.
        InvoiceLockedError: The status forbids the operation.
    """
    status = InvoiceStatus(status)
    if is_operation_allowed(status, operation):
        return
    logger.info("ledger_operation_blocked", extra={
        "status": status.value,
        "operation": operation.value,
    })
    if status is InvoiceStatus.CANCELLED:
        raise InvoiceCancelledError(str(invoice_id), operation.value)
    raise InvoiceLockedError(str(invoice_id), status.value, operation.value)


def assert_can_cancel(
    status: InvoiceStatus,
    net_paid: Decimal,
    invoice_id: object,
) -> None:
    """
    Cancellation is legal from any non-CANCELLED state with net paid of 0.

    Raises:
        InvoiceCancelledError: Already cancelled.
        CancellationNotAllowedError: Net paid is not zero.
    """
    assert_operation_allowed(status, LedgerOperation.CANCEL, invoice_id)
    if net_paid != 0:
        raise CancellationNotAllowedError(str(invoice_id), net_paid)
