"""
Hypothesis-based properties of the invoice ledger arithmetic.

Property-based testing generates adversarial line items, discounts and
transaction sequences and checks the invariants that must hold for every
reachable invoice:

- Idempotence: re-deriving a derived invoice changes nothing
- Conservation: subtotal - discount == total, total - paid == balance
- Payment bound: amount paid is the signed sum of non-voided transactions
- Discount bound: fixed never exceeds its base; percentage within 0.01
- Status derivation, with CANCELLED sticky
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import uuid4

from hypothesis import given, settings
from hypothesis import strategies as st
from hypothesis.strategies import composite

from ledger_engines.discount import DiscountSpec, DiscountType, discount_amount
from ledger_engines.ledger import LedgerEntry, TransactionType, net_paid
from ledger_engines.status import InvoiceStatus, derive_status
from ledger_modules.invoicing.models import (
    DiscountDescriptor,
    Invoice,
    InvoiceItem,
    InvoiceTransaction,
    PaymentMethod,
)
from ledger_modules.invoicing.service import derive_invoice

_ZERO = Decimal("0")
VOIDED_AT = datetime(2024, 1, 2, tzinfo=timezone.utc)

money = st.decimals(
    min_value=Decimal("0.00"),
    max_value=Decimal("99999.99"),
    places=2,
    allow_nan=False,
    allow_infinity=False,
)
positive_money = st.decimals(
    min_value=Decimal("0.01"),
    max_value=Decimal("99999.99"),
    places=2,
    allow_nan=False,
    allow_infinity=False,
)
percentages = st.decimals(
    min_value=Decimal("0.00"),
    max_value=Decimal("100.00"),
    places=2,
    allow_nan=False,
    allow_infinity=False,
)


@composite
def discounts(draw):
    """Generate a storable discount descriptor."""
    kind = draw(st.sampled_from(list(DiscountType)))
    if kind is DiscountType.PERCENTAGE:
        return DiscountDescriptor(kind, draw(percentages))
    if kind is DiscountType.FIXED:
        return DiscountDescriptor(kind, draw(money))
    return DiscountDescriptor()


@composite
def items(draw, invoice_id):
    """Generate a line item with stale (zero) derived fields."""
    return InvoiceItem(
        id=uuid4(),
        invoice_id=invoice_id,
        line_number=draw(st.integers(min_value=1, max_value=500)),
        description="fuzz",
        quantity=draw(st.integers(min_value=1, max_value=50)),
        unit_price_amount=draw(money),
        unit_cost_amount=draw(money),
        line_total_amount=_ZERO,
        line_cost_amount=_ZERO,
        line_profit_amount=_ZERO,
        discount=draw(discounts()),
        voided_at=draw(st.sampled_from([None, None, None, VOIDED_AT])),
    )


@composite
def transactions(draw, invoice_id):
    return InvoiceTransaction(
        id=uuid4(),
        invoice_id=invoice_id,
        entry_number=draw(st.integers(min_value=1, max_value=500)),
        transaction_type=draw(st.sampled_from(list(TransactionType))),
        amount=draw(positive_money),
        currency="GHS",
        payment_method=PaymentMethod.CASH,
        comment="fuzz",
        transaction_date=date(2024, 1, 1),
        received_by=uuid4(),
        voided_at=draw(st.sampled_from([None, None, VOIDED_AT])),
    )


@composite
def invoices(draw, statuses=st.sampled_from(list(InvoiceStatus))):
    """Generate an invoice whose derived fields are all stale."""
    invoice_id = uuid4()
    return Invoice(
        id=invoice_id,
        invoice_number="INV-2024-000001",
        invoice_date=date(2024, 1, 1),
        currency="GHS",
        status=draw(statuses),
        subtotal_amount=_ZERO,
        total_amount=_ZERO,
        amount_paid=_ZERO,
        balance_due=_ZERO,
        total_cost_amount=_ZERO,
        total_profit_amount=_ZERO,
        discount=draw(discounts()),
        items=tuple(draw(st.lists(items(invoice_id), max_size=8))),
        transactions=tuple(draw(st.lists(transactions(invoice_id), max_size=8))),
    )


class TestDerivationProperties:

    @given(invoice=invoices())
    @settings(max_examples=300)
    def test_derivation_is_idempotent(self, invoice):
        once = derive_invoice(invoice)
        assert derive_invoice(once) == once

    @given(invoice=invoices())
    @settings(max_examples=300)
    def test_conservation(self, invoice):
        derived = derive_invoice(invoice)
        assert derived.subtotal_amount - derived.discount.amount == derived.total_amount
        assert derived.total_amount - derived.amount_paid == derived.balance_due
        assert derived.total_amount - derived.total_cost_amount == derived.total_profit_amount

    @given(invoice=invoices())
    @settings(max_examples=300)
    def test_amount_paid_is_signed_sum_of_active_transactions(self, invoice):
        derived = derive_invoice(invoice)
        expected = sum(
            (t.signed_amount for t in invoice.transactions if not t.is_voided), _ZERO,
        )
        assert derived.amount_paid == expected

    @given(invoice=invoices())
    @settings(max_examples=300)
    def test_voided_lines_never_contribute(self, invoice):
        derived = derive_invoice(invoice)
        active_total = sum((i.line_total_amount for i in derived.active_items), _ZERO)
        if derived.is_cancelled:
            assert derived.subtotal_amount == _ZERO
        else:
            assert derived.subtotal_amount == active_total

    @given(invoice=invoices())
    @settings(max_examples=300)
    def test_status_follows_amount_paid(self, invoice):
        derived = derive_invoice(invoice)
        if invoice.status is InvoiceStatus.CANCELLED:
            assert derived.status is InvoiceStatus.CANCELLED
        elif derived.amount_paid <= 0:
            assert derived.status is InvoiceStatus.UNPAID
        elif derived.amount_paid >= derived.total_amount:
            assert derived.status is InvoiceStatus.PAID
        else:
            assert derived.status is InvoiceStatus.PARTIALLY_PAID

    @given(invoice=invoices())
    @settings(max_examples=200)
    def test_totals_never_negative(self, invoice):
        derived = derive_invoice(invoice)
        assert derived.subtotal_amount >= 0
        assert derived.total_amount >= 0
        for item in derived.items:
            assert item.line_total_amount >= 0


class TestDiscountProperties:

    @given(base=money, value=money)
    def test_fixed_discount_never_exceeds_base(self, base, value):
        assert discount_amount(base, DiscountSpec.fixed(value)) <= base

    @given(base=money, value=percentages)
    def test_percentage_discount_proportional(self, base, value):
        amount = discount_amount(base, DiscountSpec.percentage(value))
        assert abs(amount - base * value / Decimal("100")) <= Decimal("0.01")


class TestLedgerProperties:

    @given(entries=st.lists(
        st.builds(
            LedgerEntry,
            st.sampled_from(list(TransactionType)),
            positive_money,
            st.booleans(),
        ),
        max_size=20,
    ))
    def test_net_paid_independent_of_order(self, entries):
        assert net_paid(entries) == net_paid(list(reversed(entries)))

    @given(
        current=st.sampled_from(list(InvoiceStatus)),
        paid=money,
        total=money,
    )
    def test_cancelled_is_sticky(self, current, paid, total):
        status = derive_status(current, paid, total)
        if current is InvoiceStatus.CANCELLED:
            assert status is InvoiceStatus.CANCELLED
        else:
            assert status is not InvoiceStatus.CANCELLED
