"""
Typed Exception Hierarchy for the Invoice Ledger.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the ledger (HTTP handlers, batch jobs, tests) must be able to tell
an overpayment from a cancelled invoice without parsing message strings.
Every error therefore:
  1. Has its own exception class (catch by type, not message)
  2. Carries a ``code`` class attribute (machine-readable, API-safe)
  3. Stores the values that caused it as attributes (structured data)

Example:
    try:
        service.add_payment(uow, invoice_id, actor, amount, comment)
    except OverpaymentError as e:
        return {"error": e.code, "max_allowed": str(e.max_allowed)}

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    LedgerError (base)
    |
    +-- ValidationError
    |   +-- InvalidAmountError
    |   +-- CommentRequiredError
    |   +-- ReasonRequiredError
    |   +-- InvalidDiscountError
    |   +-- DiscountLimitExceededError
    |   +-- InvalidQuantityError
    |   +-- PaymentMethodError
    |
    +-- InvoiceStateError
    |   +-- InvoiceCancelledError
    |   +-- InvoiceLockedError
    |   +-- OverpaymentError
    |   +-- RefundExceedsPaidError
    |   +-- CancellationNotAllowedError
    |   +-- AlreadyVoidedError
    |   +-- LastItemVoidError
    |   +-- NetPaidWouldGoNegativeError
    |   +-- InvoiceDeletionError
    |
    +-- NotFoundError
    |   +-- InvoiceNotFoundError
    |   +-- InvoiceItemNotFoundError
    |   +-- TransactionNotFoundError
    |
    +-- CurrencyError
    |   +-- UnsupportedCurrencyError
    |   +-- RateSourceError
    |
    +-- InventoryError
    |
    +-- ConcurrencyError
        +-- OptimisticLockError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                        | When Raised
-------------|-----------------------------|--------------------------------------
Validation   | INVALID_AMOUNT              | Amount/price non-numeric or out of range
             | COMMENT_REQUIRED            | Payment/refund without a comment
             | REASON_REQUIRED             | Void/cancel without a reason
             | INVALID_DISCOUNT            | Negative value, or percentage > 100
             | DISCOUNT_LIMIT_EXCEEDED     | Above the actor's discount capability
             | INVALID_QUANTITY            | Quantity outside the permitted range
             | INVALID_PAYMENT_METHOD      | Unknown method, or Other without text
-------------|-----------------------------|--------------------------------------
State        | INVOICE_CANCELLED           | Any mutation of a CANCELLED invoice
             | INVOICE_LOCKED              | Operation not permitted in the status
             | OVERPAYMENT                 | Payment above the balance due
             | REFUND_EXCEEDS_PAID         | Refund above the amount paid
             | CANCELLATION_NOT_ALLOWED    | Cancel with net payments recorded
             | ALREADY_VOIDED              | Voiding a voided line/transaction
             | LAST_ITEM_VOID              | Voiding the last line of a paid invoice
             | NET_PAID_NEGATIVE           | Void would leave net paid below zero
             | INVOICE_DELETION_NOT_ALLOWED| Delete/purge outside permitted states
-------------|-----------------------------|--------------------------------------
Not found    | INVOICE_NOT_FOUND           | Unknown or soft-deleted invoice
             | INVOICE_ITEM_NOT_FOUND      | Item not on the invoice
             | TRANSACTION_NOT_FOUND       | Transaction not on the invoice
-------------|-----------------------------|--------------------------------------
Currency     | UNSUPPORTED_CURRENCY        | Currency outside the supported set
             | RATE_SOURCE_ERROR           | Rate source unreachable or malformed
-------------|-----------------------------|--------------------------------------
Inventory    | INVENTORY_ERROR             | Reserve/release rejected by inventory
-------------|-----------------------------|--------------------------------------
Concurrency  | OPTIMISTIC_LOCK_CONFLICT    | Invoice changed by another transaction

Validation and state errors are raised before any mutation happens.
ConcurrencyError is the only category that is safe to retry blindly.
"""

from decimal import Decimal


class LedgerError(Exception):
    """
    Base exception for all ledger errors.

    All subclasses must have a ``code`` class attribute for
    machine-readable error identification.
    """

    code: str = "LEDGER_ERROR"


# Validation exceptions


class ValidationError(LedgerError):
    """Base exception for rejected input."""

    code: str = "VALIDATION_ERROR"


class InvalidAmountError(ValidationError):
    """Monetary input is not a valid amount for the field."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, field: str, value: object, constraint: str):
        self.field = field
        self.value = str(value)
        self.constraint = constraint
        super().__init__(f"{field} {constraint}, got {value!r}")


class CommentRequiredError(ValidationError):
    """Payments and refunds must carry a non-empty comment."""

    code: str = "COMMENT_REQUIRED"

    def __init__(self, transaction_type: str):
        self.transaction_type = transaction_type
        super().__init__(f"A comment is required to record a {transaction_type.lower()}")


class ReasonRequiredError(ValidationError):
    """Voids and cancellations must carry a non-empty reason."""

    code: str = "REASON_REQUIRED"

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"A reason is required to {operation}")


class InvalidDiscountError(ValidationError):
    """Discount descriptor is malformed or out of range."""

    code: str = "INVALID_DISCOUNT"

    def __init__(self, discount_type: str, value: object, reason: str):
        self.discount_type = discount_type
        self.value = str(value)
        self.reason = reason
        super().__init__(f"Invalid {discount_type} discount {value}: {reason}")


class DiscountLimitExceededError(ValidationError):
    """Requested discount is above what the actor may grant."""

    code: str = "DISCOUNT_LIMIT_EXCEEDED"

    def __init__(self, requested_percent: Decimal, max_percent: Decimal):
        self.requested_percent = requested_percent
        self.max_percent = max_percent
        super().__init__(
            f"Discount of {requested_percent}% exceeds the maximum allowed "
            f"discount of {max_percent}%"
        )


class InvalidQuantityError(ValidationError):
    """Quantity is not a whole number inside the permitted range."""

    code: str = "INVALID_QUANTITY"

    def __init__(self, quantity: object, minimum: int, maximum: int | None = None):
        self.quantity = quantity
        self.minimum = minimum
        self.maximum = maximum
        if maximum is None:
            bound = f"at least {minimum}"
        else:
            bound = f"between {minimum} and {maximum}"
        super().__init__(f"Quantity must be a whole number {bound}, got {quantity!r}")


class PaymentMethodError(ValidationError):
    """Payment method is unknown or missing required detail."""

    code: str = "INVALID_PAYMENT_METHOD"

    def __init__(self, payment_method: str, reason: str):
        self.payment_method = payment_method
        self.reason = reason
        super().__init__(f"Invalid payment method {payment_method!r}: {reason}")


# Invoice state exceptions


class InvoiceStateError(LedgerError):
    """Base exception for operations the invoice state does not permit."""

    code: str = "INVOICE_STATE_ERROR"


class InvoiceCancelledError(InvoiceStateError):
    """The invoice is cancelled; no further mutation is legal."""

    code: str = "INVOICE_CANCELLED"

    def __init__(self, invoice_id: str, operation: str):
        self.invoice_id = invoice_id
        self.operation = operation
        super().__init__(f"Cannot {operation}: invoice {invoice_id} is cancelled")


class InvoiceLockedError(InvoiceStateError):
    """The operation is not permitted while the invoice is in this status."""

    code: str = "INVOICE_LOCKED"

    def __init__(self, invoice_id: str, status: str, operation: str):
        self.invoice_id = invoice_id
        self.status = status
        self.operation = operation
        super().__init__(
            f"Cannot {operation}: invoice {invoice_id} is {status}"
        )


class OverpaymentError(InvoiceStateError):
    """Payment would push amount paid above the invoice total."""

    code: str = "OVERPAYMENT"

    def __init__(self, invoice_id: str, amount: Decimal, max_allowed: Decimal):
        self.invoice_id = invoice_id
        self.amount = amount
        self.max_allowed = max_allowed
        super().__init__(
            f"Payment of {amount} exceeds the balance due on invoice "
            f"{invoice_id}; maximum payment allowed: {max_allowed}"
        )


class RefundExceedsPaidError(InvoiceStateError):
    """Refund is larger than the amount currently paid."""

    code: str = "REFUND_EXCEEDS_PAID"

    def __init__(self, invoice_id: str, amount: Decimal, max_allowed: Decimal):
        self.invoice_id = invoice_id
        self.amount = amount
        self.max_allowed = max_allowed
        super().__init__(
            f"Refund of {amount} exceeds the amount paid on invoice "
            f"{invoice_id}; maximum refund allowed: {max_allowed}"
        )


class CancellationNotAllowedError(InvoiceStateError):
    """Invoice cannot be cancelled while payments are outstanding."""

    code: str = "CANCELLATION_NOT_ALLOWED"

    def __init__(self, invoice_id: str, net_paid: Decimal):
        self.invoice_id = invoice_id
        self.net_paid = net_paid
        super().__init__(
            f"Cannot cancel invoice {invoice_id} with net payments of "
            f"{net_paid}; refund or void the payments first"
        )


class AlreadyVoidedError(InvoiceStateError):
    """The line item or transaction has already been voided."""

    code: str = "ALREADY_VOIDED"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} {entity_id} is already voided")


class LastItemVoidError(InvoiceStateError):
    """Voiding the only contributing line of an invoice that has payments."""

    code: str = "LAST_ITEM_VOID"

    def __init__(self, invoice_id: str, item_id: str):
        self.invoice_id = invoice_id
        self.item_id = item_id
        super().__init__(
            f"Cannot void item {item_id}: it is the last item on invoice "
            f"{invoice_id}, which has payments. Void the payments first"
        )


class NetPaidWouldGoNegativeError(InvoiceStateError):
    """Voiding the transaction would leave refunds above payments."""

    code: str = "NET_PAID_NEGATIVE"

    def __init__(self, invoice_id: str, transaction_id: str, resulting_net_paid: Decimal):
        self.invoice_id = invoice_id
        self.transaction_id = transaction_id
        self.resulting_net_paid = resulting_net_paid
        super().__init__(
            f"Voiding transaction {transaction_id} would leave invoice "
            f"{invoice_id} with net paid of {resulting_net_paid}"
        )


class InvoiceDeletionError(InvoiceStateError):
    """Invoice is not in a state that permits deletion."""

    code: str = "INVOICE_DELETION_NOT_ALLOWED"

    def __init__(self, invoice_id: str, status: str, reason: str):
        self.invoice_id = invoice_id
        self.status = status
        self.reason = reason
        super().__init__(f"Cannot delete invoice {invoice_id} ({status}): {reason}")


# Lookup exceptions


class NotFoundError(LedgerError):
    """Base exception for unknown identifiers."""

    code: str = "NOT_FOUND"


class InvoiceNotFoundError(NotFoundError):
    """Invoice with given ID does not exist or is deleted."""

    code: str = "INVOICE_NOT_FOUND"

    def __init__(self, invoice_id: str):
        self.invoice_id = invoice_id
        super().__init__(f"Invoice not found: {invoice_id}")


class InvoiceItemNotFoundError(NotFoundError):
    """Item with given ID is not on the invoice."""

    code: str = "INVOICE_ITEM_NOT_FOUND"

    def __init__(self, invoice_id: str, item_id: str):
        self.invoice_id = invoice_id
        self.item_id = item_id
        super().__init__(f"Item {item_id} not found on invoice {invoice_id}")


class TransactionNotFoundError(NotFoundError):
    """Transaction with given ID is not on the invoice."""

    code: str = "TRANSACTION_NOT_FOUND"

    def __init__(self, invoice_id: str, transaction_id: str):
        self.invoice_id = invoice_id
        self.transaction_id = transaction_id
        super().__init__(
            f"Transaction {transaction_id} not found on invoice {invoice_id}"
        )


# Currency exceptions


class CurrencyError(LedgerError):
    """Base exception for currency errors."""

    code: str = "CURRENCY_ERROR"


class UnsupportedCurrencyError(CurrencyError):
    """Currency code is not in the supported set."""

    code: str = "UNSUPPORTED_CURRENCY"

    def __init__(self, currency: str, supported: tuple[str, ...] = ()):
        self.currency = currency
        self.supported = supported
        if supported:
            message = (
                f"Unsupported currency {currency!r}; supported currencies: "
                f"{', '.join(supported)}"
            )
        else:
            message = f"Unsupported currency {currency!r}"
        super().__init__(message)


class RateSourceError(CurrencyError):
    """
    Rate source could not supply a rate.

    Never escapes CurrencyConversionService, which degrades to the
    fallback table instead.
    """

    code: str = "RATE_SOURCE_ERROR"

    def __init__(self, base_currency: str, quote_currency: str, reason: str):
        self.base_currency = base_currency
        self.quote_currency = quote_currency
        self.reason = reason
        super().__init__(
            f"No rate for {base_currency}/{quote_currency}: {reason}"
        )


# Collaborator exceptions


class InventoryError(LedgerError):
    """Inventory collaborator rejected a reserve or release."""

    code: str = "INVENTORY_ERROR"

    def __init__(self, asset_id: str, quantity: int, reason: str):
        self.asset_id = asset_id
        self.quantity = quantity
        self.reason = reason
        super().__init__(
            f"Inventory operation for asset {asset_id} (quantity {quantity}) "
            f"failed: {reason}"
        )


# Concurrency exceptions


class ConcurrencyError(LedgerError):
    """Base exception for concurrency errors. Safe to retry."""

    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """Row was modified by another transaction since it was read."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"Concurrent modification detected for {entity_type} {entity_id}"
        )
