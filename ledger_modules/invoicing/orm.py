"""
Invoicing ORM Models (``ledger_modules.invoicing.orm``).

Responsibility
--------------
SQLAlchemy persistence models for the invoice ledger.  Maps the frozen
domain dataclasses from ``models.py`` to the ``invoices``,
``invoice_items`` and ``invoice_transactions`` tables.

Architecture position
---------------------
**Modules layer** -- persistence.  Imports from ``ledger_kernel.db`` and
sibling ``models.py``.  MUST NOT be imported by ``ledger_kernel`` or
``ledger_engines``.

Invariants enforced
-------------------
* Money columns are ``Numeric(38, 9)``; DTOs are rounded half-up to 2
  places on the way out.
* ``invoices.version`` is the mapper's version counter.  Every UPDATE is
  qualified by the version read, so a racing write fails with
  ``StaleDataError`` instead of overwriting.
* Items and transactions are owned by their invoice
  (``cascade="all, delete-orphan"``).
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TrackedBase
from ledger_kernel.db.types import (
    MONEY_TYPE,
    PERCENT_TYPE,
    MoneyColumn,
    round_money,
    round_optional,
)


def _descriptor(discount_type: str, value: Decimal, percent: Decimal, amount: Decimal):
    from ledger_engines.discount import DiscountType
    from ledger_modules.invoicing.models import DiscountDescriptor

    return DiscountDescriptor(
        discount_type=DiscountType(discount_type),
        value=round_money(value),
        percent=round_money(percent),
        amount=round_money(amount),
    )


# ---------------------------------------------------------------------------
# 1. InvoiceModel
# ---------------------------------------------------------------------------


class InvoiceModel(TrackedBase):
    """
    ORM model for invoices.

    Maps to the ``Invoice`` frozen dataclass.  Items and transactions live
    in child tables loaded eagerly with ``selectin``.

    Guarantees:
        - invoice_number is unique (uq_invoices_invoice_number).
        - status stored as the InvoiceStatus string value.
        - version increments on every UPDATE of the row.
    """

    __tablename__ = "invoices"

    __table_args__ = (
        UniqueConstraint("invoice_number", name="uq_invoices_invoice_number"),
        Index("idx_invoices_customer_id", "customer_id"),
        Index("idx_invoices_status", "status"),
        Index("idx_invoices_is_deleted", "is_deleted"),
    )

    invoice_number: Mapped[str] = mapped_column(String(50), nullable=False)
    customer_id: Mapped[UUID | None] = mapped_column(nullable=True)
    invoice_date: Mapped[date] = mapped_column(Date, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="UNPAID")

    subtotal_amount: Mapped[MoneyColumn]
    total_amount: Mapped[MoneyColumn]
    amount_paid: Mapped[MoneyColumn]
    balance_due: Mapped[MoneyColumn]
    total_cost_amount: Mapped[MoneyColumn]
    total_profit_amount: Mapped[MoneyColumn]
    margin_percent: Mapped[Decimal | None] = mapped_column(PERCENT_TYPE, nullable=True)

    discount_type: Mapped[str] = mapped_column(String(20), default="none")
    discount_value: Mapped[Decimal] = mapped_column(MONEY_TYPE, default=Decimal("0"))
    discount_percent: Mapped[Decimal] = mapped_column(PERCENT_TYPE, default=Decimal("0"))
    discount_amount: Mapped[MoneyColumn]

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    cancelled_at: Mapped[datetime | None] = mapped_column(nullable=True)
    cancelled_by: Mapped[UUID | None] = mapped_column(nullable=True)
    cancellation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False)
    deleted_at: Mapped[datetime | None] = mapped_column(nullable=True)
    deleted_by: Mapped[UUID | None] = mapped_column(nullable=True)

    version: Mapped[int] = mapped_column(nullable=False)

    __mapper_args__ = {"version_id_col": version}

    items: Mapped[list["InvoiceItemModel"]] = relationship(
        back_populates="invoice",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="InvoiceItemModel.line_number",
    )

    transactions: Mapped[list["InvoiceTransactionModel"]] = relationship(
        back_populates="invoice",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="InvoiceTransactionModel.entry_number",
    )

    def to_dto(self):
        """Convert ORM model to frozen dataclass."""
        from ledger_engines.status import InvoiceStatus
        from ledger_modules.invoicing.models import Invoice

        return Invoice(
            id=self.id,
            invoice_number=self.invoice_number,
            customer_id=self.customer_id,
            invoice_date=self.invoice_date,
            currency=self.currency,
            status=InvoiceStatus(self.status),
            subtotal_amount=round_money(self.subtotal_amount),
            total_amount=round_money(self.total_amount),
            amount_paid=round_money(self.amount_paid),
            balance_due=round_money(self.balance_due),
            total_cost_amount=round_money(self.total_cost_amount),
            total_profit_amount=round_money(self.total_profit_amount),
            margin_percent=round_optional(self.margin_percent),
            discount=_descriptor(
                self.discount_type,
                self.discount_value,
                self.discount_percent,
                self.discount_amount,
            ),
            notes=self.notes,
            cancelled_at=self.cancelled_at,
            cancelled_by=self.cancelled_by,
            cancellation_reason=self.cancellation_reason,
            is_deleted=self.is_deleted,
            deleted_at=self.deleted_at,
            deleted_by=self.deleted_by,
            version=self.version,
            items=tuple(item.to_dto() for item in self.items),
            transactions=tuple(tx.to_dto() for tx in self.transactions),
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID) -> "InvoiceModel":
        """Create ORM model from frozen dataclass."""
        model = cls(
            id=dto.id,
            invoice_number=dto.invoice_number,
            customer_id=dto.customer_id,
            invoice_date=dto.invoice_date,
            currency=dto.currency,
            status=dto.status.value,
            subtotal_amount=dto.subtotal_amount,
            total_amount=dto.total_amount,
            amount_paid=dto.amount_paid,
            balance_due=dto.balance_due,
            total_cost_amount=dto.total_cost_amount,
            total_profit_amount=dto.total_profit_amount,
            margin_percent=dto.margin_percent,
            discount_type=dto.discount.discount_type.value,
            discount_value=dto.discount.value,
            discount_percent=dto.discount.percent,
            discount_amount=dto.discount.amount,
            notes=dto.notes,
            is_deleted=dto.is_deleted,
            created_by_id=created_by_id,
        )
        model.items = [
            InvoiceItemModel.from_dto(item, created_by_id) for item in dto.items
        ]
        model.transactions = [
            InvoiceTransactionModel.from_dto(tx, created_by_id)
            for tx in dto.transactions
        ]
        return model

    def __repr__(self) -> str:
        return (
            f"<InvoiceModel {self.invoice_number} "
            f"status={self.status} balance={self.balance_due}>"
        )


# ---------------------------------------------------------------------------
# 2. InvoiceItemModel
# ---------------------------------------------------------------------------


class InvoiceItemModel(TrackedBase):
    """
    ORM model for invoice line items.

    Maps to the ``InvoiceItem`` frozen dataclass.  A voided line keeps its
    row; ``voided_at`` excludes it from every total.

    Guarantees:
        - invoice_id FK to invoices.id.
        - (invoice_id, line_number) is unique.
        - quantity is at least 1.
    """

    __tablename__ = "invoice_items"

    __table_args__ = (
        UniqueConstraint("invoice_id", "line_number", name="uq_invoice_items_line"),
        CheckConstraint("quantity >= 1", name="ck_invoice_items_quantity_positive"),
        Index("idx_invoice_items_invoice_id", "invoice_id"),
        Index("idx_invoice_items_asset_id", "asset_id"),
    )

    invoice_id: Mapped[UUID] = mapped_column(
        ForeignKey("invoices.id"), nullable=False
    )
    line_number: Mapped[int] = mapped_column(nullable=False)
    asset_id: Mapped[UUID | None] = mapped_column(nullable=True)
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    quantity: Mapped[int] = mapped_column(nullable=False)
    unit_price_amount: Mapped[MoneyColumn]
    unit_cost_amount: Mapped[MoneyColumn]

    discount_type: Mapped[str] = mapped_column(String(20), default="none")
    discount_value: Mapped[Decimal] = mapped_column(MONEY_TYPE, default=Decimal("0"))
    discount_percent: Mapped[Decimal] = mapped_column(PERCENT_TYPE, default=Decimal("0"))
    discount_amount: Mapped[MoneyColumn]

    line_total_amount: Mapped[MoneyColumn]
    line_cost_amount: Mapped[MoneyColumn]
    line_profit_amount: Mapped[MoneyColumn]

    original_cost_currency: Mapped[str | None] = mapped_column(String(3), nullable=True)
    original_cost_amount: Mapped[Decimal | None] = mapped_column(MONEY_TYPE, nullable=True)

    split_from_item_id: Mapped[UUID | None] = mapped_column(nullable=True)
    voided_at: Mapped[datetime | None] = mapped_column(nullable=True)
    void_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    voided_by: Mapped[UUID | None] = mapped_column(nullable=True)

    invoice: Mapped["InvoiceModel"] = relationship(back_populates="items")

    def to_dto(self):
        """Convert ORM model to frozen dataclass."""
        from ledger_modules.invoicing.models import InvoiceItem

        return InvoiceItem(
            id=self.id,
            invoice_id=self.invoice_id,
            line_number=self.line_number,
            asset_id=self.asset_id,
            description=self.description,
            quantity=self.quantity,
            unit_price_amount=round_money(self.unit_price_amount),
            unit_cost_amount=round_money(self.unit_cost_amount),
            discount=_descriptor(
                self.discount_type,
                self.discount_value,
                self.discount_percent,
                self.discount_amount,
            ),
            line_total_amount=round_money(self.line_total_amount),
            line_cost_amount=round_money(self.line_cost_amount),
            line_profit_amount=round_money(self.line_profit_amount),
            original_cost_currency=self.original_cost_currency,
            original_cost_amount=round_optional(self.original_cost_amount),
            split_from_item_id=self.split_from_item_id,
            voided_at=self.voided_at,
            void_reason=self.void_reason,
            voided_by=self.voided_by,
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID) -> "InvoiceItemModel":
        """Create ORM model from frozen dataclass."""
        return cls(
            id=dto.id,
            invoice_id=dto.invoice_id,
            line_number=dto.line_number,
            asset_id=dto.asset_id,
            description=dto.description,
            quantity=dto.quantity,
            unit_price_amount=dto.unit_price_amount,
            unit_cost_amount=dto.unit_cost_amount,
            discount_type=dto.discount.discount_type.value,
            discount_value=dto.discount.value,
            discount_percent=dto.discount.percent,
            discount_amount=dto.discount.amount,
            line_total_amount=dto.line_total_amount,
            line_cost_amount=dto.line_cost_amount,
            line_profit_amount=dto.line_profit_amount,
            original_cost_currency=dto.original_cost_currency,
            original_cost_amount=dto.original_cost_amount,
            split_from_item_id=dto.split_from_item_id,
            voided_at=dto.voided_at,
            void_reason=dto.void_reason,
            voided_by=dto.voided_by,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return (
            f"<InvoiceItemModel #{self.line_number} {self.description!r} "
            f"qty={self.quantity} total={self.line_total_amount}>"
        )


# ---------------------------------------------------------------------------
# 3. InvoiceTransactionModel
# ---------------------------------------------------------------------------


class InvoiceTransactionModel(TrackedBase):
    """
    ORM model for payments and refunds.

    Maps to the ``InvoiceTransaction`` frozen dataclass.  Rows are never
    updated except to record a void.

    Guarantees:
        - amount is strictly positive (ck_invoice_transactions_amount_positive).
        - (invoice_id, entry_number) is unique.
    """

    __tablename__ = "invoice_transactions"

    __table_args__ = (
        UniqueConstraint("invoice_id", "entry_number", name="uq_invoice_transactions_entry"),
        CheckConstraint("amount > 0", name="ck_invoice_transactions_amount_positive"),
        Index("idx_invoice_transactions_invoice_id", "invoice_id"),
    )

    invoice_id: Mapped[UUID] = mapped_column(
        ForeignKey("invoices.id"), nullable=False
    )
    entry_number: Mapped[int] = mapped_column(nullable=False)
    transaction_type: Mapped[str] = mapped_column(String(10), nullable=False)
    amount: Mapped[MoneyColumn]
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    payment_method: Mapped[str] = mapped_column(String(20), nullable=False)
    payment_method_other_text: Mapped[str | None] = mapped_column(String(100), nullable=True)
    comment: Mapped[str] = mapped_column(Text, nullable=False)
    transaction_date: Mapped[date] = mapped_column(Date, nullable=False)
    received_by: Mapped[UUID] = mapped_column(nullable=False)

    voided_at: Mapped[datetime | None] = mapped_column(nullable=True)
    void_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    voided_by: Mapped[UUID | None] = mapped_column(nullable=True)

    invoice: Mapped["InvoiceModel"] = relationship(back_populates="transactions")

    def to_dto(self):
        """Convert ORM model to frozen dataclass."""
        from ledger_engines.ledger import TransactionType
        from ledger_modules.invoicing.models import InvoiceTransaction, PaymentMethod

        return InvoiceTransaction(
            id=self.id,
            invoice_id=self.invoice_id,
            entry_number=self.entry_number,
            transaction_type=TransactionType(self.transaction_type),
            amount=round_money(self.amount),
            currency=self.currency,
            payment_method=PaymentMethod(self.payment_method),
            payment_method_other_text=self.payment_method_other_text,
            comment=self.comment,
            transaction_date=self.transaction_date,
            received_by=self.received_by,
            voided_at=self.voided_at,
            void_reason=self.void_reason,
            voided_by=self.voided_by,
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID) -> "InvoiceTransactionModel":
        """Create ORM model from frozen dataclass."""
        return cls(
            id=dto.id,
            invoice_id=dto.invoice_id,
            entry_number=dto.entry_number,
            transaction_type=dto.transaction_type.value,
            amount=dto.amount,
            currency=dto.currency,
            payment_method=dto.payment_method.value,
            payment_method_other_text=dto.payment_method_other_text,
            comment=dto.comment,
            transaction_date=dto.transaction_date,
            received_by=dto.received_by,
            voided_at=dto.voided_at,
            void_reason=dto.void_reason,
            voided_by=dto.voided_by,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return (
            f"<InvoiceTransactionModel #{self.entry_number} "
            f"{self.transaction_type} {self.amount} {self.currency}>"
        )
