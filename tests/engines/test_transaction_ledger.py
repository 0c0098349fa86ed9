"""
Tests for transaction ledger arithmetic: net paid, bounds and void checks.
"""

from decimal import Decimal

import pytest

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
from ledger_kernel.exceptions import (
    NetPaidWouldGoNegativeError,
    OverpaymentError,
    RefundExceedsPaidError,
)

PAY = TransactionType.PAYMENT
REFUND = TransactionType.REFUND


class TestNetPaid:

    def test_signed_amount(self):
        assert signed_amount(LedgerEntry(PAY, Decimal("10"))) == Decimal("10")
        assert signed_amount(LedgerEntry(REFUND, Decimal("10"))) == Decimal("-10")

    def test_empty(self):
        assert net_paid([]) == Decimal("0.00")

    def test_payments_minus_refunds(self):
        entries = [
            LedgerEntry(PAY, Decimal("50.00")),
            LedgerEntry(PAY, Decimal("25.50")),
            LedgerEntry(REFUND, Decimal("10.25")),
        ]
        assert net_paid(entries) == Decimal("65.25")

    def test_voided_entries_ignored(self):
        entries = [
            LedgerEntry(PAY, Decimal("50.00")),
            LedgerEntry(PAY, Decimal("30.00"), voided=True),
            LedgerEntry(REFUND, Decimal("5.00"), voided=True),
        ]
        assert net_paid(entries) == Decimal("50.00")

    def test_order_independent(self):
        entries = [
            LedgerEntry(PAY, Decimal("40")),
            LedgerEntry(REFUND, Decimal("15")),
            LedgerEntry(PAY, Decimal("5")),
        ]
        assert net_paid(entries) == net_paid(reversed(entries))


class TestBounds:

    def test_max_payment(self):
        assert max_payment_allowed(Decimal("100"), Decimal("30")) == Decimal("70.00")
        assert max_payment_allowed(Decimal("100"), Decimal("130")) == Decimal("0.00")

    def test_max_refund(self):
        assert max_refund_allowed(Decimal("30")) == Decimal("30.00")
        assert max_refund_allowed(Decimal("-1")) == Decimal("0.00")

    def test_exact_payment_allowed(self):
        check_payment("inv-1", Decimal("70"), Decimal("100"), Decimal("30"))

    def test_overpayment_states_maximum(self):
        with pytest.raises(OverpaymentError) as exc_info:
            check_payment("inv-1", Decimal("70.01"), Decimal("100"), Decimal("30"))
        assert exc_info.value.max_allowed == Decimal("70.00")
        assert exc_info.value.code == "OVERPAYMENT"

    def test_payment_on_zero_total_rejected(self):
        with pytest.raises(OverpaymentError):
            check_payment("inv-1", Decimal("0.01"), Decimal("0"), Decimal("0"))

    def test_exact_refund_allowed(self):
        check_refund("inv-1", Decimal("30"), Decimal("30"))

    def test_refund_exceeding_paid_states_maximum(self):
        with pytest.raises(RefundExceedsPaidError) as exc_info:
            check_refund("inv-1", Decimal("30.01"), Decimal("30"))
        assert exc_info.value.max_allowed == Decimal("30.00")


class TestCheckVoid:

    def test_returns_resulting_net_paid(self):
        remaining = [
            LedgerEntry(PAY, Decimal("50"), voided=True),
            LedgerEntry(PAY, Decimal("20")),
        ]
        assert check_void("inv-1", "tx-1", remaining) == Decimal("20.00")

    def test_void_leaving_refunds_outweighing_payments_rejected(self):
        remaining = [
            LedgerEntry(PAY, Decimal("50"), voided=True),
            LedgerEntry(REFUND, Decimal("20")),
        ]
        with pytest.raises(NetPaidWouldGoNegativeError) as exc_info:
            check_void("inv-1", "tx-1", remaining)
        assert exc_info.value.resulting_net_paid == Decimal("-20.00")

    def test_voiding_refund_always_allowed(self):
        remaining = [
            LedgerEntry(PAY, Decimal("50")),
            LedgerEntry(REFUND, Decimal("20"), voided=True),
        ]
        assert check_void("inv-1", "tx-2", remaining) == Decimal("50.00")
