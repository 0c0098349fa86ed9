"""
Invoicing Domain Models (``ledger_modules.invoicing.models``).

Responsibility
--------------
Frozen dataclass value objects representing the nouns of the invoice
ledger: invoices, line items, payment/refund transactions, discount
descriptors and payment summaries.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.  Produced by
``InvoiceModel.to_dto()`` and returned by ``InvoiceLedgerService``.  No
dependency on the database or on kernel services.

Invariants enforced
-------------------
* All models are ``frozen=True`` (immutable after construction).
* All monetary fields use ``Decimal`` -- NEVER ``float``.
* Transaction amounts are positive; the sign lives in ``transaction_type``.

Failure modes
-------------
* Construction with invalid enum values raises ``ValueError``.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from ledger_engines.discount import DiscountSpec, DiscountType
from ledger_engines.ledger import LedgerEntry, TransactionType
from ledger_engines.status import InvoiceStatus
from ledger_engines.totals import LineSnapshot


class PaymentMethod(str, Enum):
    """How money changed hands."""
    CASH = "Cash"
    MOMO = "MoMo"
    CARD = "Card"
    ACH = "ACH"
    OTHER = "Other"


@dataclass(frozen=True)
class DiscountDescriptor:
    """
    A stored discount: the request (type, value) plus what it worked out
    to at the last recalculation (percent, amount).
    """
    discount_type: DiscountType = DiscountType.NONE
    value: Decimal = Decimal("0")
    percent: Decimal = Decimal("0")
    amount: Decimal = Decimal("0")

    def to_spec(self) -> DiscountSpec:
        return DiscountSpec(self.discount_type, self.value)


@dataclass(frozen=True)
class InvoiceItem:
    """One priced, quantified line on an invoice."""
    id: UUID
    invoice_id: UUID
    line_number: int
    description: str
    quantity: int
    unit_price_amount: Decimal
    unit_cost_amount: Decimal
    line_total_amount: Decimal
    line_cost_amount: Decimal
    line_profit_amount: Decimal
    discount: DiscountDescriptor = field(default_factory=DiscountDescriptor)
    asset_id: UUID | None = None
    original_cost_currency: str | None = None
    original_cost_amount: Decimal | None = None
    split_from_item_id: UUID | None = None  # set on the voided half of a partial void
    voided_at: datetime | None = None
    void_reason: str | None = None
    voided_by: UUID | None = None

    @property
    def is_voided(self) -> bool:
        return self.voided_at is not None

    def to_snapshot(self) -> LineSnapshot:
        return LineSnapshot(
            quantity=self.quantity,
            unit_cost=self.unit_cost_amount,
            line_total=self.line_total_amount,
            voided=self.is_voided,
        )


@dataclass(frozen=True)
class InvoiceTransaction:
    """A payment or refund recorded against an invoice."""
    id: UUID
    invoice_id: UUID
    entry_number: int
    transaction_type: TransactionType
    amount: Decimal
    currency: str
    payment_method: PaymentMethod
    comment: str
    transaction_date: date
    received_by: UUID
    payment_method_other_text: str | None = None
    voided_at: datetime | None = None
    void_reason: str | None = None
    voided_by: UUID | None = None

    @property
    def is_voided(self) -> bool:
        return self.voided_at is not None

    @property
    def signed_amount(self) -> Decimal:
        if self.transaction_type is TransactionType.REFUND:
            return -self.amount
        return self.amount

    def to_entry(self) -> LedgerEntry:
        return LedgerEntry(self.transaction_type, self.amount, self.is_voided)


@dataclass(frozen=True)
class Invoice:
    """
    An invoice with its line items and transactions.

    Derived amounts (subtotal through balance_due) are the values written by
    the last recalculation; the service re-derives them before returning.
    """
    id: UUID
    invoice_number: str
    invoice_date: date
    currency: str
    status: InvoiceStatus
    subtotal_amount: Decimal
    total_amount: Decimal
    amount_paid: Decimal
    balance_due: Decimal
    total_cost_amount: Decimal
    total_profit_amount: Decimal
    margin_percent: Decimal | None = None
    discount: DiscountDescriptor = field(default_factory=DiscountDescriptor)
    customer_id: UUID | None = None
    notes: str | None = None
    cancelled_at: datetime | None = None
    cancelled_by: UUID | None = None
    cancellation_reason: str | None = None
    is_deleted: bool = False
    deleted_at: datetime | None = None
    deleted_by: UUID | None = None
    version: int = 1
    items: tuple[InvoiceItem, ...] = ()
    transactions: tuple[InvoiceTransaction, ...] = ()

    @property
    def active_items(self) -> tuple[InvoiceItem, ...]:
        return tuple(i for i in self.items if not i.is_voided)

    @property
    def active_transactions(self) -> tuple[InvoiceTransaction, ...]:
        return tuple(t for t in self.transactions if not t.is_voided)

    @property
    def is_cancelled(self) -> bool:
        return self.status is InvoiceStatus.CANCELLED


@dataclass(frozen=True)
class PaymentSummary:
    """Payment position of an invoice, for receipts and reporting."""
    invoice_id: UUID
    currency: str
    status: InvoiceStatus
    total_amount: Decimal
    total_payments: Decimal
    total_refunds: Decimal
    amount_paid: Decimal
    balance_due: Decimal
    payment_count: int
    refund_count: int
    voided_count: int
