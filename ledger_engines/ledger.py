"""
Transaction Ledger Arithmetic.

Pure functions with deterministic behavior. No I/O.

Payments and refunds are append-only events against an invoice.  Amounts
are always stored positive; the transaction type carries the sign.  The
invoice's amount paid is never adjusted incrementally: it is re-summed over
every non-voided transaction each time it is needed, so voiding any event
(in any order) leaves the ledger consistent.

Bounds:
- A payment may not push amount paid above the invoice total.
- A refund may not exceed the current amount paid.
- A void may not leave net paid below zero.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Iterable

from ledger_kernel.db.types import round_money
from ledger_kernel.exceptions import (
    NetPaidWouldGoNegativeError,
    OverpaymentError,
    RefundExceedsPaidError,
)

_ZERO = Decimal("0")


class TransactionType(str, Enum):
    """Direction of a money movement."""

    PAYMENT = "PAYMENT"
    REFUND = "REFUND"


@dataclass(frozen=True, slots=True)
class LedgerEntry:
    """Minimal view of a transaction for arithmetic."""

    transaction_type: TransactionType
    amount: Decimal
    voided: bool = False


def signed_amount(entry: LedgerEntry) -> Decimal:
    """+amount for payments, -amount for refunds."""
    if TransactionType(entry.transaction_type) is TransactionType.REFUND:
        return -entry.amount
    return entry.amount


def net_paid(entries: Iterable[LedgerEntry]) -> Decimal:
    """Signed sum of every non-voided entry, rounded to 2 places."""
    return round_money(sum((signed_amount(e) for e in entries if not e.voided), _ZERO))


def max_payment_allowed(total_amount: Decimal, amount_paid: Decimal) -> Decimal:
    """Largest payment that keeps amount paid within the total."""
    return max(round_money(_ZERO), round_money(total_amount - amount_paid))


def max_refund_allowed(amount_paid: Decimal) -> Decimal:
    return max(round_money(_ZERO), round_money(amount_paid))


def check_payment(
    invoice_id: object,
    amount: Decimal,
    total_amount: Decimal,
    amount_paid: Decimal,
) -> None:
    """
    Raises:
        OverpaymentError: amount_paid + amount would exceed total_amount.
    """
    if amount_paid + amount > total_amount:
        raise OverpaymentError(
            str(invoice_id), amount, max_payment_allowed(total_amount, amount_paid)
        )


def check_refund(invoice_id: object, amount: Decimal, amount_paid: Decimal) -> None:
    """
    Raises:
        RefundExceedsPaidError: amount exceeds the current amount paid.
    """
    if amount > amount_paid:
        raise RefundExceedsPaidError(str(invoice_id), amount, max_refund_allowed(amount_paid))


def check_void(
    invoice_id: object,
    transaction_id: object,
    remaining: Iterable[LedgerEntry],
) -> Decimal:
    """
    Net paid once a transaction is voided.

    Args:
        remaining: Every entry with the one being voided already marked
            voided.

    Raises:
        NetPaidWouldGoNegativeError: Refunds would outweigh payments.
    """
    resulting = net_paid(remaining)
    if resulting < 0:
        raise NetPaidWouldGoNegativeError(str(invoice_id), str(transaction_id), resulting)
    return resulting
