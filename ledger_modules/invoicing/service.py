"""
Invoice Ledger Service - orchestrates every invoice mutation via engines + kernel.

Thin glue layer that:
1. Locks the invoice row through the caller's LedgerUnitOfWork
2. Validates input and checks the status permission matrix
3. Calls the discount, totals, ledger and status engines
4. Writes the re-derived fields back and flushes

All computation lives in ledger_engines.  The caller's unit of work owns
the transaction boundary: this service flushes but never commits, so a
failure anywhere (validation, inventory, flush) leaves nothing behind.

Every mutating operation returns the fully recomputed ``Invoice``.

Usage:
    service = InvoiceLedgerService(inventory=gateway, clock=clock)
    with unit_of_work(get_session_factory()) as uow:
        invoice = service.create_invoice(uow, actor, currency="GHS")
        invoice = service.add_item(
            uow, invoice.id, actor, "Laptop", 2, Decimal("100.00"),
        )
        invoice = service.add_payment(
            uow, invoice.id, actor, Decimal("200.00"), "cash",
        )
"""

from __future__ import annotations

import time
from dataclasses import replace
from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import select

from ledger_engines.discount import DiscountSpec, effective_percent, validate_discount
from ledger_engines.ledger import (
    LedgerEntry,
    TransactionType,
    check_payment,
    check_refund,
    check_void,
    net_paid,
)
from ledger_engines.status import (
    InvoiceStatus,
    LedgerOperation,
    assert_can_cancel,
    assert_operation_allowed,
    derive_status,
    is_operation_allowed,
)
from ledger_engines.totals import compute_line, recalculate
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.currency import CurrencyRegistry
from ledger_kernel.domain.values import require_amount
from ledger_kernel.exceptions import (
    AlreadyVoidedError,
    CommentRequiredError,
    DiscountLimitExceededError,
    InvalidQuantityError,
    InvoiceDeletionError,
    InvoiceItemNotFoundError,
    InvoiceNotFoundError,
    LastItemVoidError,
    PaymentMethodError,
    ReasonRequiredError,
    TransactionNotFoundError,
    UnsupportedCurrencyError,
    ValidationError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.services.sequence_service import SequenceService, invoice_sequence_name
from ledger_kernel.services.unit_of_work import LedgerUnitOfWork
from ledger_modules.invoicing.collaborators import (
    Actor,
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
from ledger_modules.invoicing.orm import (
    InvoiceItemModel,
    InvoiceModel,
    InvoiceTransactionModel,
)

logger = get_logger("modules.invoicing.service")

_ZERO = Decimal("0")

# Marks an optional argument the caller did not pass, where None is a value
_UNSET = object()


# =============================================================================
# Derivation
# =============================================================================


def _derive_item(item: InvoiceItem) -> InvoiceItem:
    line = compute_line(
        item.quantity,
        item.unit_price_amount,
        item.unit_cost_amount,
        item.discount.to_spec(),
    )
    return replace(
        item,
        discount=replace(
            item.discount,
            percent=line.discount_percent,
            amount=line.discount_amount,
        ),
        line_total_amount=line.line_total,
        line_cost_amount=line.line_cost,
        line_profit_amount=line.line_profit,
    )


def derive_invoice(invoice: Invoice) -> Invoice:
    """
    Re-derive every computed field of ``invoice`` from its base facts.

    Pure function - no side effects, deterministic output.  Line totals are
    recomputed from quantity, prices and line discount; amount paid is
    re-summed over non-voided transactions; invoice totals come from the
    totals engine; status from the state machine.  A CANCELLED invoice has
    no contributing lines.
    """
    items = tuple(_derive_item(item) for item in invoice.items)
    paid = net_paid(tx.to_entry() for tx in invoice.transactions)
    lines = () if invoice.is_cancelled else tuple(i.to_snapshot() for i in items)
    totals = recalculate(lines, invoice.discount.to_spec(), paid)
    return replace(
        invoice,
        items=items,
        status=derive_status(invoice.status, totals.amount_paid, totals.total_amount),
        subtotal_amount=totals.subtotal_amount,
        discount=replace(
            invoice.discount,
            percent=totals.discount_percent,
            amount=totals.discount_amount,
        ),
        total_amount=totals.total_amount,
        total_cost_amount=totals.total_cost_amount,
        total_profit_amount=totals.total_profit_amount,
        margin_percent=totals.margin_percent,
        amount_paid=totals.amount_paid,
        balance_due=totals.balance_due,
    )


def _write_discount(model, descriptor: DiscountDescriptor) -> None:
    model.discount_type = descriptor.discount_type.value
    model.discount_value = descriptor.value
    model.discount_percent = descriptor.percent
    model.discount_amount = descriptor.amount


def _require_text(value: str | None) -> str | None:
    if value is None or not value.strip():
        return None
    return value.strip()


def _require_quantity(quantity: object, maximum: int | None = None) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise InvalidQuantityError(quantity, 1, maximum)
    if quantity < 1 or (maximum is not None and quantity > maximum):
        raise InvalidQuantityError(quantity, 1, maximum)
    return quantity


def _line_base(unit_price: Decimal, quantity: int) -> Decimal:
    """Pre-discount amount of a line."""
    return unit_price * quantity


class InvoiceLedgerService:
    """
    Orchestrates invoice ledger operations through engines and kernel.

    Contract:
        Every operation takes the caller's ``LedgerUnitOfWork`` first and
        the acting ``Actor`` after the invoice id.  Mutations lock the
        invoice row, validate everything, then mutate, re-derive and flush.

    Guarantees:
        - Validation and state errors are raised before any mutation.
        - Derived fields are written only from ``derive_invoice``.
        - Inventory reservations happen before the ledger rows change; an
          InventoryError aborts the operation.

    Non-goals:
        - Does NOT commit; the unit of work owns the transaction.
        - Does NOT decide whether the actor may call an operation at all.
          Only the pre-computed discount capability is enforced here.
    """

    def __init__(
        self,
        inventory: InventoryGateway | None = None,
        config: InvoicingConfig | None = None,
        clock: Clock | None = None,
    ):
        self._inventory = inventory or NullInventoryGateway()
        self._config = config or InvoicingConfig()
        self._clock = clock or SystemClock()

    # =========================================================================
    # Internal helpers
    # =========================================================================

    def _lock_invoice(
        self,
        uow: LedgerUnitOfWork,
        invoice_id: UUID,
        include_deleted: bool = False,
    ) -> InvoiceModel:
        model = uow.lock(InvoiceModel, invoice_id)
        if model is None or (model.is_deleted and not include_deleted):
            raise InvoiceNotFoundError(str(invoice_id))
        return model

    def _find_item(self, model: InvoiceModel, item_id: UUID) -> InvoiceItemModel:
        for item in model.items:
            if item.id == item_id:
                return item
        raise InvoiceItemNotFoundError(str(model.id), str(item_id))

    def _find_active_item(self, model: InvoiceModel, item_id: UUID) -> InvoiceItemModel:
        item = self._find_item(model, item_id)
        if item.voided_at is not None:
            raise AlreadyVoidedError("invoice_item", str(item_id))
        return item

    def _find_transaction(
        self, model: InvoiceModel, transaction_id: UUID,
    ) -> InvoiceTransactionModel:
        for tx in model.transactions:
            if tx.id == transaction_id:
                return tx
        raise TransactionNotFoundError(str(model.id), str(transaction_id))

    def _recalculate(self, model: InvoiceModel) -> Invoice:
        """Re-derive the invoice and write every computed field back."""
        derived = derive_invoice(model.to_dto())
        for item_model, item in zip(model.items, derived.items):
            _write_discount(item_model, item.discount)
            item_model.line_total_amount = item.line_total_amount
            item_model.line_cost_amount = item.line_cost_amount
            item_model.line_profit_amount = item.line_profit_amount

        model.status = derived.status.value
        model.subtotal_amount = derived.subtotal_amount
        _write_discount(model, derived.discount)
        model.total_amount = derived.total_amount
        model.total_cost_amount = derived.total_cost_amount
        model.total_profit_amount = derived.total_profit_amount
        model.margin_percent = derived.margin_percent
        model.amount_paid = derived.amount_paid
        model.balance_due = derived.balance_due
        return derived

    def _finish(
        self,
        uow: LedgerUnitOfWork,
        model: InvoiceModel,
        actor: Actor,
        event: str,
        started: float,
        **extra,
    ) -> Invoice:
        """Re-derive, bump the invoice version, flush, log and return the DTO."""
        self._recalculate(model)
        model.touch(actor.actor_id)
        uow.flush()
        invoice = model.to_dto()
        logger.info(event, extra={
            "invoice_number": invoice.invoice_number,
            "status": invoice.status.value,
            "total_amount": str(invoice.total_amount),
            "amount_paid": str(invoice.amount_paid),
            "balance_due": str(invoice.balance_due),
            "version": invoice.version,
            "duration_ms": round((time.monotonic() - started) * 1000, 2),
            **extra,
        })
        return invoice

    def _check_discount_limit(
        self, actor: Actor, base_amount: Decimal, spec: DiscountSpec,
    ) -> None:
        if actor.max_discount_percent is None or spec.is_none:
            return
        percent = effective_percent(base_amount, spec)
        if percent > actor.max_discount_percent:
            raise DiscountLimitExceededError(percent, actor.max_discount_percent)

    def _validate_discount(self, discount: DiscountSpec | None) -> DiscountSpec:
        spec = discount or DiscountSpec.none()
        validate_discount(spec)
        return spec

    def _resolve_payment_method(
        self,
        payment_method: PaymentMethod | str | None,
        other_text: str | None,
    ) -> tuple[PaymentMethod, str | None]:
        if payment_method is None:
            method = self._config.default_payment_method
        else:
            try:
                method = PaymentMethod(payment_method)
            except ValueError as e:
                raise PaymentMethodError(str(payment_method), "unknown payment method") from e
        if method is PaymentMethod.OTHER:
            text = _require_text(other_text)
            if text is None:
                raise PaymentMethodError(method.value, "a description is required for Other")
            return method, text
        return method, None

    def _next_line_number(self, model: InvoiceModel) -> int:
        return max((i.line_number for i in model.items), default=0) + 1

    def _next_entry_number(self, model: InvoiceModel) -> int:
        return max((t.entry_number for t in model.transactions), default=0) + 1

    # =========================================================================
    # Invoice lifecycle
    # =========================================================================

    def create_invoice(
        self,
        uow: LedgerUnitOfWork,
        actor: Actor,
        customer_id: UUID | None = None,
        invoice_date: date | None = None,
        currency: str | None = None,
        notes: str | None = None,
    ) -> Invoice:
        """
        Create an UNPAID invoice with zero totals and the next invoice number.

        Numbers are allocated per calendar year of ``invoice_date``:
        ``INV-2024-000001``.
        """
        started = time.monotonic()
        currency = CurrencyRegistry.validate(currency or self._config.default_currency)
        if currency not in self._config.supported_currencies:
            raise UnsupportedCurrencyError(currency, self._config.supported_currencies)
        invoice_date = invoice_date or self._clock.today()

        sequence = SequenceService(uow.session).next_value(
            invoice_sequence_name(invoice_date.year)
        )
        dto = Invoice(
            id=uuid4(),
            invoice_number=self._config.format_invoice_number(invoice_date.year, sequence),
            customer_id=customer_id,
            invoice_date=invoice_date,
            currency=currency,
            status=InvoiceStatus.UNPAID,
            subtotal_amount=_ZERO,
            total_amount=_ZERO,
            amount_paid=_ZERO,
            balance_due=_ZERO,
            total_cost_amount=_ZERO,
            total_profit_amount=_ZERO,
            notes=_require_text(notes),
        )

        with LogContext.bind(invoice_id=dto.id, actor_id=actor.actor_id, operation="create_invoice"):
            model = InvoiceModel.from_dto(dto, created_by_id=actor.actor_id)
            uow.add(model)
            return self._finish(
                uow, model, actor, "invoice_created", started,
                currency=currency,
            )

    def update_invoice_header(
        self,
        uow: LedgerUnitOfWork,
        invoice_id: UUID,
        actor: Actor,
        customer_id: UUID | None | object = _UNSET,
        invoice_date: date | None = None,
        notes: str | None | object = _UNSET,
    ) -> Invoice:
        """Change customer, date or notes.  Amounts are untouched."""
        started = time.monotonic()
        with LogContext.bind(invoice_id=invoice_id, actor_id=actor.actor_id, operation="update_invoice_header"):
            model = self._lock_invoice(uow, invoice_id)
            assert_operation_allowed(model.status, LedgerOperation.UPDATE_HEADER, invoice_id)

            changed = []
            if customer_id is not _UNSET:
                model.customer_id = customer_id
                changed.append("customer_id")
            if invoice_date is not None:
                model.invoice_date = invoice_date
                changed.append("invoice_date")
            if notes is not _UNSET:
                model.notes = _require_text(notes)
                changed.append("notes")

            return self._finish(
                uow, model, actor, "invoice_header_updated", started,
                changed_fields=changed,
            )

    def cancel_invoice(
        self,
        uow: LedgerUnitOfWork,
        invoice_id: UUID,
        actor: Actor,
        reason: str | None,
    ) -> Invoice:
        """
        Cancel an invoice with no net payment.

        Releases the stock of every non-voided asset line.  CANCELLED is
        terminal: the invoice then contributes no lines to its totals and
        admits no further line or payment mutation.

        Raises:
            ReasonRequiredError: No reason given.
            CancellationNotAllowedError: Net paid is not zero.
            InvoiceCancelledError: Already cancelled.
        """
        started = time.monotonic()
        reason = _require_text(reason)
        if reason is None and self._config.require_cancellation_reason:
            raise ReasonRequiredError(LedgerOperation.CANCEL.value)

        with LogContext.bind(invoice_id=invoice_id, actor_id=actor.actor_id, operation="cancel_invoice"):
            model = self._lock_invoice(uow, invoice_id)
            current = self._recalculate(model)
            assert_can_cancel(model.status, current.amount_paid, invoice_id)

            released = 0
            for item in model.items:
                if item.voided_at is None and item.asset_id is not None:
                    self._inventory.release(item.asset_id, item.quantity)
                    released += item.quantity

            model.status = InvoiceStatus.CANCELLED.value
            model.cancelled_at = self._clock.now()
            model.cancelled_by = actor.actor_id
            model.cancellation_reason = reason

            return self._finish(
                uow, model, actor, "invoice_cancelled", started,
                reason=reason,
                released_quantity=released,
            )

    def delete_invoice(
        self,
        uow: LedgerUnitOfWork,
        invoice_id: UUID,
        actor: Actor,
    ) -> Invoice:
        """
        Soft-delete an invoice.

        Allowed for CANCELLED invoices, and for UNPAID invoices without
        active line items.  The row is kept; mutations then treat the
        invoice as not found.
        """
        started = time.monotonic()
        with LogContext.bind(invoice_id=invoice_id, actor_id=actor.actor_id, operation="delete_invoice"):
            model = self._lock_invoice(uow, invoice_id, include_deleted=True)
            if model.is_deleted:
                raise InvoiceDeletionError(str(invoice_id), model.status, "invoice is already deleted")
            if not is_operation_allowed(model.status, LedgerOperation.DELETE):
                raise InvoiceDeletionError(
                    str(invoice_id), model.status,
                    "only unpaid or cancelled invoices can be deleted",
                )
            if model.status == InvoiceStatus.UNPAID.value and any(
                item.voided_at is None for item in model.items
            ):
                raise InvoiceDeletionError(
                    str(invoice_id), model.status,
                    "remove all items or cancel the invoice first",
                )

            model.is_deleted = True
            model.deleted_at = self._clock.now()
            model.deleted_by = actor.actor_id
            return self._finish(uow, model, actor, "invoice_deleted", started)

    def purge_invoice(
        self,
        uow: LedgerUnitOfWork,
        invoice_id: UUID,
        actor: Actor,
    ) -> None:
        """Hard-delete a soft-deleted invoice with its items and transactions."""
        with LogContext.bind(invoice_id=invoice_id, actor_id=actor.actor_id, operation="purge_invoice"):
            model = self._lock_invoice(uow, invoice_id, include_deleted=True)
            if not self._config.allow_purge:
                raise InvoiceDeletionError(str(invoice_id), model.status, "purging is disabled")
            if not model.is_deleted:
                raise InvoiceDeletionError(
                    str(invoice_id), model.status,
                    "soft-delete the invoice before purging it",
                )
            invoice_number = model.invoice_number
            uow.delete(model)
            uow.flush()
            logger.warning("invoice_purged", extra={"invoice_number": invoice_number})

    # =========================================================================
    # Line items
    # =========================================================================

    def add_item(
        self,
        uow: LedgerUnitOfWork,
        invoice_id: UUID,
        actor: Actor,
        description: str,
        quantity: int,
        unit_price: Decimal,
        unit_cost: Decimal = _ZERO,
        asset_id: UUID | None = None,
        discount: DiscountSpec | None = None,
        original_cost_currency: str | None = None,
        original_cost_amount: Decimal | None = None,
    ) -> Invoice:
        """
        Add a line, or grow the existing line for the same asset.

        Adding an asset already on the invoice increases that line's
        quantity; its price and discount stay as they are.  Asset lines
        reserve the added quantity with the inventory collaborator.
        """
        started = time.monotonic()
        description = _require_text(description)
        if description is None:
            raise ValidationError("Item description is required")
        quantity = _require_quantity(quantity)
        unit_price = require_amount(unit_price, "unit_price", allow_zero=True)
        unit_cost = require_amount(unit_cost, "unit_cost", allow_zero=True)
        spec = self._validate_discount(discount)
        if original_cost_currency is not None:
            original_cost_currency = CurrencyRegistry.validate(original_cost_currency)
        if original_cost_amount is not None:
            original_cost_amount = require_amount(
                original_cost_amount, "original_cost_amount", allow_zero=True,
            )

        with LogContext.bind(invoice_id=invoice_id, actor_id=actor.actor_id, operation="add_item"):
            model = self._lock_invoice(uow, invoice_id)
            assert_operation_allowed(model.status, LedgerOperation.ADD_ITEM, invoice_id)

            existing = None
            if asset_id is not None:
                existing = next(
                    (i for i in model.items if i.asset_id == asset_id and i.voided_at is None),
                    None,
                )

            if existing is not None:
                new_quantity = existing.quantity + quantity
                self._check_discount_limit(
                    actor,
                    _line_base(existing.unit_price_amount, new_quantity),
                    DiscountSpec(existing.discount_type, existing.discount_value),
                )
                self._inventory.reserve(asset_id, quantity)
                existing.quantity = new_quantity
                return self._finish(
                    uow, model, actor, "invoice_item_quantity_increased", started,
                    item_id=str(existing.id),
                    quantity_added=quantity,
                    new_quantity=new_quantity,
                )

            line = compute_line(quantity, unit_price, unit_cost, spec)
            self._check_discount_limit(actor, line.base_amount, spec)
            if asset_id is not None:
                self._inventory.reserve(asset_id, quantity)

            item = InvoiceItem(
                id=uuid4(),
                invoice_id=model.id,
                line_number=self._next_line_number(model),
                description=description,
                quantity=quantity,
                unit_price_amount=unit_price,
                unit_cost_amount=unit_cost,
                line_total_amount=line.line_total,
                line_cost_amount=line.line_cost,
                line_profit_amount=line.line_profit,
                discount=DiscountDescriptor(
                    spec.discount_type, spec.value, line.discount_percent, line.discount_amount,
                ),
                asset_id=asset_id,
                original_cost_currency=original_cost_currency,
                original_cost_amount=original_cost_amount,
            )
            model.items.append(InvoiceItemModel.from_dto(item, created_by_id=actor.actor_id))
            return self._finish(
                uow, model, actor, "invoice_item_added", started,
                item_id=str(item.id),
                quantity=quantity,
                unit_price=str(unit_price),
                line_total=str(line.line_total),
            )

    def update_item(
        self,
        uow: LedgerUnitOfWork,
        invoice_id: UUID,
        actor: Actor,
        item_id: UUID,
        quantity: int | None = None,
        unit_price: Decimal | None = None,
        unit_cost: Decimal | None = None,
        discount: DiscountSpec | None = None,
        description: str | None = None,
    ) -> Invoice:
        """
        Change a line's quantity, prices, discount or description.

        A quantity change on an asset line reserves or releases the
        difference.
        """
        started = time.monotonic()
        if quantity is not None:
            quantity = _require_quantity(quantity)
        if unit_price is not None:
            unit_price = require_amount(unit_price, "unit_price", allow_zero=True)
        if unit_cost is not None:
            unit_cost = require_amount(unit_cost, "unit_cost", allow_zero=True)
        if discount is not None:
            validate_discount(discount)
        if description is not None:
            description = _require_text(description)
            if description is None:
                raise ValidationError("Item description is required")

        with LogContext.bind(invoice_id=invoice_id, actor_id=actor.actor_id, operation="update_item"):
            model = self._lock_invoice(uow, invoice_id)
            assert_operation_allowed(model.status, LedgerOperation.UPDATE_ITEM, invoice_id)
            item = self._find_active_item(model, item_id)

            new_quantity = quantity if quantity is not None else item.quantity
            new_price = unit_price if unit_price is not None else item.unit_price_amount
            spec = discount if discount is not None else DiscountSpec(
                item.discount_type, item.discount_value,
            )
            self._check_discount_limit(actor, _line_base(new_price, new_quantity), spec)

            delta = new_quantity - item.quantity
            if item.asset_id is not None and delta > 0:
                self._inventory.reserve(item.asset_id, delta)
            elif item.asset_id is not None and delta < 0:
                self._inventory.release(item.asset_id, -delta)

            item.quantity = new_quantity
            item.unit_price_amount = new_price
            if unit_cost is not None:
                item.unit_cost_amount = unit_cost
            if description is not None:
                item.description = description
            item.discount_type = spec.discount_type.value
            item.discount_value = spec.value
            item.touch(actor.actor_id)

            return self._finish(
                uow, model, actor, "invoice_item_updated", started,
                item_id=str(item_id),
                quantity_delta=delta,
            )

    def remove_item(
        self,
        uow: LedgerUnitOfWork,
        invoice_id: UUID,
        actor: Actor,
        item_id: UUID,
    ) -> Invoice:
        """Delete a line from an UNPAID invoice and release its stock."""
        started = time.monotonic()
        with LogContext.bind(invoice_id=invoice_id, actor_id=actor.actor_id, operation="remove_item"):
            model = self._lock_invoice(uow, invoice_id)
            assert_operation_allowed(model.status, LedgerOperation.REMOVE_ITEM, invoice_id)
            item = self._find_active_item(model, item_id)

            if item.asset_id is not None:
                self._inventory.release(item.asset_id, item.quantity)
            model.items.remove(item)

            return self._finish(
                uow, model, actor, "invoice_item_removed", started,
                item_id=str(item_id),
                quantity=item.quantity,
            )

    def void_item(
        self,
        uow: LedgerUnitOfWork,
        invoice_id: UUID,
        actor: Actor,
        item_id: UUID,
        reason: str | None,
        quantity_to_void: int | None = None,
    ) -> Invoice:
        """
        Void all or part of a line.

        A full void marks the line voided.  A partial void reduces the
        line's quantity (its totals and line discount are recomputed on the
        smaller base) and records the voided quantity as a separate voided
        line split from the original.  Amount paid is never touched, so
        the balance may go negative.

        Raises:
            ReasonRequiredError: No reason given.
            InvalidQuantityError: quantity_to_void outside [1, quantity].
            LastItemVoidError: Full void of the last active line while money
                is held against the invoice.
        """
        started = time.monotonic()
        reason = _require_text(reason)
        if reason is None:
            raise ReasonRequiredError(LedgerOperation.VOID_ITEM.value)

        with LogContext.bind(invoice_id=invoice_id, actor_id=actor.actor_id, operation="void_item"):
            model = self._lock_invoice(uow, invoice_id)
            assert_operation_allowed(model.status, LedgerOperation.VOID_ITEM, invoice_id)
            item = self._find_active_item(model, item_id)

            if quantity_to_void is None:
                quantity_to_void = item.quantity
            quantity_to_void = _require_quantity(quantity_to_void, maximum=item.quantity)
            full_void = quantity_to_void == item.quantity

            if full_void and self._config.block_last_item_void_when_paid:
                current = self._recalculate(model)
                if len(current.active_items) <= 1 and current.amount_paid > 0:
                    raise LastItemVoidError(str(invoice_id), str(item_id))

            if item.asset_id is not None:
                self._inventory.release(item.asset_id, quantity_to_void)

            now = self._clock.now()
            if full_void:
                item.voided_at = now
                item.voided_by = actor.actor_id
                item.void_reason = reason
            else:
                item.quantity -= quantity_to_void
                source = item.to_dto()
                split = replace(
                    source,
                    id=uuid4(),
                    line_number=self._next_line_number(model),
                    quantity=quantity_to_void,
                    split_from_item_id=item.id,
                    voided_at=now,
                    voided_by=actor.actor_id,
                    void_reason=reason,
                )
                model.items.append(
                    InvoiceItemModel.from_dto(_derive_item(split), created_by_id=actor.actor_id)
                )

            return self._finish(
                uow, model, actor, "invoice_item_voided", started,
                item_id=str(item_id),
                quantity_voided=quantity_to_void,
                full_void=full_void,
                reason=reason,
            )

    # =========================================================================
    # Discount
    # =========================================================================

    def set_invoice_discount(
        self,
        uow: LedgerUnitOfWork,
        invoice_id: UUID,
        actor: Actor,
        discount: DiscountSpec | None,
    ) -> Invoice:
        """
        Set (or clear, with None) the invoice-level discount.

        The discount applies to the subtotal of post-line-discount totals.
        Percentages outside [0, 100] and negative amounts are rejected.
        """
        started = time.monotonic()
        spec = self._validate_discount(discount)

        with LogContext.bind(invoice_id=invoice_id, actor_id=actor.actor_id, operation="set_invoice_discount"):
            model = self._lock_invoice(uow, invoice_id)
            assert_operation_allowed(model.status, LedgerOperation.SET_DISCOUNT, invoice_id)
            current = self._recalculate(model)
            self._check_discount_limit(actor, current.subtotal_amount, spec)

            model.discount_type = spec.discount_type.value
            model.discount_value = spec.value
            return self._finish(
                uow, model, actor, "invoice_discount_set", started,
                discount_type=spec.discount_type.value,
                discount_value=str(spec.value),
            )

    # =========================================================================
    # Payments
    # =========================================================================

    def add_payment(
        self,
        uow: LedgerUnitOfWork,
        invoice_id: UUID,
        actor: Actor,
        amount: Decimal,
        comment: str | None,
        transaction_date: date | None = None,
        payment_method: PaymentMethod | str | None = None,
        payment_method_other_text: str | None = None,
    ) -> Invoice:
        """
        Record a payment.

        Raises:
            InvalidAmountError: amount is not positive.
            CommentRequiredError: comment is blank.
            InvoiceCancelledError: invoice is CANCELLED.
            OverpaymentError: amount paid would exceed the total; the error
                states the maximum payment allowed.
        """
        return self._record_transaction(
            uow, invoice_id, actor, TransactionType.PAYMENT, amount, comment,
            transaction_date, payment_method, payment_method_other_text,
        )

    def add_refund(
        self,
        uow: LedgerUnitOfWork,
        invoice_id: UUID,
        actor: Actor,
        amount: Decimal,
        comment: str | None,
        transaction_date: date | None = None,
        payment_method: PaymentMethod | str | None = None,
        payment_method_other_text: str | None = None,
    ) -> Invoice:
        """
        Record a refund, bounded by the amount currently paid.

        Raises:
            RefundExceedsPaidError: amount exceeds amount paid; the error
                states the maximum refund allowed.
        """
        return self._record_transaction(
            uow, invoice_id, actor, TransactionType.REFUND, amount, comment,
            transaction_date, payment_method, payment_method_other_text,
        )

    def _record_transaction(
        self,
        uow: LedgerUnitOfWork,
        invoice_id: UUID,
        actor: Actor,
        transaction_type: TransactionType,
        amount: Decimal,
        comment: str | None,
        transaction_date: date | None,
        payment_method: PaymentMethod | str | None,
        payment_method_other_text: str | None,
    ) -> Invoice:
        started = time.monotonic()
        amount = require_amount(amount, "amount")
        comment = _require_text(comment)
        if comment is None:
            raise CommentRequiredError(transaction_type.value)
        method, other_text = self._resolve_payment_method(
            payment_method, payment_method_other_text,
        )
        if transaction_type is TransactionType.PAYMENT:
            operation = LedgerOperation.ADD_PAYMENT
            event = "payment_recorded"
        else:
            operation = LedgerOperation.ADD_REFUND
            event = "refund_recorded"

        with LogContext.bind(invoice_id=invoice_id, actor_id=actor.actor_id, operation=operation.name.lower()):
            model = self._lock_invoice(uow, invoice_id)
            assert_operation_allowed(model.status, operation, invoice_id)
            current = self._recalculate(model)
            if transaction_type is TransactionType.PAYMENT:
                check_payment(invoice_id, amount, current.total_amount, current.amount_paid)
            else:
                check_refund(invoice_id, amount, current.amount_paid)

            tx = InvoiceTransaction(
                id=uuid4(),
                invoice_id=model.id,
                entry_number=self._next_entry_number(model),
                transaction_type=transaction_type,
                amount=amount,
                currency=model.currency,
                payment_method=method,
                payment_method_other_text=other_text,
                comment=comment,
                transaction_date=transaction_date or self._clock.today(),
                received_by=actor.actor_id,
            )
            model.transactions.append(
                InvoiceTransactionModel.from_dto(tx, created_by_id=actor.actor_id)
            )
            return self._finish(
                uow, model, actor, event, started,
                transaction_id=str(tx.id),
                amount=str(amount),
                payment_method=method.value,
            )

    def void_transaction(
        self,
        uow: LedgerUnitOfWork,
        invoice_id: UUID,
        actor: Actor,
        transaction_id: UUID,
        reason: str | None,
    ) -> Invoice:
        """
        Void a payment or refund.  Permanent.

        Amount paid is re-summed over the remaining non-voided transactions.

        Raises:
            ReasonRequiredError: No reason given.
            AlreadyVoidedError: The transaction is already voided.
            NetPaidWouldGoNegativeError: Voiding a payment would leave
                refunds outweighing payments.
        """
        started = time.monotonic()
        reason = _require_text(reason)
        if reason is None:
            raise ReasonRequiredError(LedgerOperation.VOID_TRANSACTION.value)

        with LogContext.bind(invoice_id=invoice_id, actor_id=actor.actor_id, operation="void_transaction"):
            model = self._lock_invoice(uow, invoice_id)
            assert_operation_allowed(model.status, LedgerOperation.VOID_TRANSACTION, invoice_id)
            tx = self._find_transaction(model, transaction_id)
            if tx.voided_at is not None:
                raise AlreadyVoidedError("transaction", str(transaction_id))

            remaining = [
                LedgerEntry(
                    TransactionType(t.transaction_type),
                    t.amount,
                    voided=t.voided_at is not None or t.id == transaction_id,
                )
                for t in model.transactions
            ]
            resulting = check_void(invoice_id, transaction_id, remaining)

            tx.voided_at = self._clock.now()
            tx.voided_by = actor.actor_id
            tx.void_reason = reason
            tx.touch(actor.actor_id)

            return self._finish(
                uow, model, actor, "transaction_voided", started,
                transaction_id=str(transaction_id),
                transaction_type=tx.transaction_type,
                amount=str(tx.amount),
                resulting_amount_paid=str(resulting),
                reason=reason,
            )

    # =========================================================================
    # Queries
    # =========================================================================

    def get_invoice(
        self,
        uow: LedgerUnitOfWork,
        invoice_id: UUID,
        include_deleted: bool = False,
    ) -> Invoice:
        """Read an invoice with every computed field re-derived."""
        model = uow.session.get(InvoiceModel, invoice_id)
        if model is None or (model.is_deleted and not include_deleted):
            raise InvoiceNotFoundError(str(invoice_id))
        return derive_invoice(model.to_dto())

    def list_invoices(
        self,
        uow: LedgerUnitOfWork,
        status: InvoiceStatus | None = None,
        customer_id: UUID | None = None,
        include_deleted: bool = False,
    ) -> list[Invoice]:
        query = select(InvoiceModel).order_by(InvoiceModel.invoice_number)
        if status is not None:
            query = query.where(InvoiceModel.status == InvoiceStatus(status).value)
        if customer_id is not None:
            query = query.where(InvoiceModel.customer_id == customer_id)
        if not include_deleted:
            query = query.where(InvoiceModel.is_deleted.is_(False))
        models = uow.session.execute(query).scalars().all()
        return [derive_invoice(m.to_dto()) for m in models]

    def list_transactions(
        self,
        uow: LedgerUnitOfWork,
        invoice_id: UUID,
        include_voided: bool = True,
    ) -> tuple[InvoiceTransaction, ...]:
        invoice = self.get_invoice(uow, invoice_id)
        if include_voided:
            return invoice.transactions
        return invoice.active_transactions

    def get_payment_summary(
        self,
        uow: LedgerUnitOfWork,
        invoice_id: UUID,
    ) -> PaymentSummary:
        """Totals of non-voided payments and refunds against an invoice."""
        invoice = self.get_invoice(uow, invoice_id)
        active = invoice.active_transactions
        payments = [t for t in active if t.transaction_type is TransactionType.PAYMENT]
        refunds = [t for t in active if t.transaction_type is TransactionType.REFUND]
        return PaymentSummary(
            invoice_id=invoice.id,
            currency=invoice.currency,
            status=invoice.status,
            total_amount=invoice.total_amount,
            total_payments=sum((t.amount for t in payments), _ZERO),
            total_refunds=sum((t.amount for t in refunds), _ZERO),
            amount_paid=invoice.amount_paid,
            balance_due=invoice.balance_due,
            payment_count=len(payments),
            refund_count=len(refunds),
            voided_count=len(invoice.transactions) - len(active),
        )
