"""
Tests for the invoice status state machine and permission matrix.
"""

from decimal import Decimal

import pytest

from ledger_engines.status import (
    ALLOWED_OPERATIONS,
    InvoiceStatus,
    LedgerOperation,
    assert_can_cancel,
    assert_operation_allowed,
    derive_status,
    is_operation_allowed,
)
from ledger_kernel.exceptions import (
    CancellationNotAllowedError,
    InvoiceCancelledError,
    InvoiceLockedError,
)


class TestDeriveStatus:

    @pytest.mark.parametrize("paid,total,expected", [
        ("0", "100", InvoiceStatus.UNPAID),
        ("0", "0", InvoiceStatus.UNPAID),
        ("-5", "100", InvoiceStatus.UNPAID),
        ("0.01", "100", InvoiceStatus.PARTIALLY_PAID),
        ("99.99", "100", InvoiceStatus.PARTIALLY_PAID),
        ("100", "100", InvoiceStatus.PAID),
        ("120", "100", InvoiceStatus.PAID),
        ("10", "0", InvoiceStatus.PAID),
    ])
    def test_payment_driven_status(self, paid, total, expected):
        assert derive_status(InvoiceStatus.UNPAID, Decimal(paid), Decimal(total)) is expected

    def test_paid_reverts_when_payment_voided(self):
        assert derive_status(InvoiceStatus.PAID, Decimal("0"), Decimal("50")) is InvoiceStatus.UNPAID

    def test_cancelled_is_sticky(self):
        assert derive_status(
            InvoiceStatus.CANCELLED, Decimal("100"), Decimal("100"),
        ) is InvoiceStatus.CANCELLED

    def test_accepts_stored_string(self):
        assert derive_status("PAID", Decimal("1"), Decimal("2")) is InvoiceStatus.PARTIALLY_PAID


class TestPermissionMatrix:

    def test_unpaid_allows_everything(self):
        assert ALLOWED_OPERATIONS[InvoiceStatus.UNPAID] == frozenset(LedgerOperation)

    @pytest.mark.parametrize("operation", [
        LedgerOperation.ADD_ITEM,
        LedgerOperation.REMOVE_ITEM,
        LedgerOperation.DELETE,
    ])
    def test_partially_paid_forbids_structure_changes(self, operation):
        assert not is_operation_allowed(InvoiceStatus.PARTIALLY_PAID, operation)

    @pytest.mark.parametrize("operation", [
        LedgerOperation.UPDATE_ITEM,
        LedgerOperation.SET_DISCOUNT,
        LedgerOperation.ADD_PAYMENT,
        LedgerOperation.VOID_ITEM,
    ])
    def test_partially_paid_allows(self, operation):
        assert is_operation_allowed(InvoiceStatus.PARTIALLY_PAID, operation)

    @pytest.mark.parametrize("operation", [
        LedgerOperation.UPDATE_ITEM,
        LedgerOperation.SET_DISCOUNT,
    ])
    def test_paid_forbids_repricing(self, operation):
        assert not is_operation_allowed(InvoiceStatus.PAID, operation)

    def test_paid_allows_refunds_and_voids(self):
        for operation in (
            LedgerOperation.ADD_REFUND,
            LedgerOperation.VOID_TRANSACTION,
            LedgerOperation.VOID_ITEM,
            LedgerOperation.CANCEL,
        ):
            assert is_operation_allowed(InvoiceStatus.PAID, operation)

    def test_cancelled_only_allows_delete(self):
        assert ALLOWED_OPERATIONS[InvoiceStatus.CANCELLED] == frozenset({LedgerOperation.DELETE})

    def test_cancelled_raises_cancelled_error(self):
        with pytest.raises(InvoiceCancelledError) as exc_info:
            assert_operation_allowed("CANCELLED", LedgerOperation.ADD_PAYMENT, "inv-1")
        assert exc_info.value.operation == "record payment"

    def test_locked_status_raises_locked_error(self):
        with pytest.raises(InvoiceLockedError) as exc_info:
            assert_operation_allowed(InvoiceStatus.PAID, LedgerOperation.ADD_ITEM, "inv-1")
        assert exc_info.value.status == "PAID"

    def test_blocked_operation_is_logged(self, captured_logs):
        with pytest.raises(InvoiceLockedError):
            assert_operation_allowed(InvoiceStatus.PAID, LedgerOperation.SET_DISCOUNT, "inv-1")
        records = [r for r in captured_logs() if r["message"] == "ledger_operation_blocked"]
        assert records[0]["operation"] == "set invoice discount"


class TestAssertCanCancel:

    def test_zero_net_paid_allowed(self):
        assert_can_cancel(InvoiceStatus.UNPAID, Decimal("0"), "inv-1")

    def test_positive_net_paid_rejected(self):
        with pytest.raises(CancellationNotAllowedError) as exc_info:
            assert_can_cancel(InvoiceStatus.PARTIALLY_PAID, Decimal("25.00"), "inv-1")
        assert exc_info.value.net_paid == Decimal("25.00")

    def test_already_cancelled(self):
        with pytest.raises(InvoiceCancelledError):
            assert_can_cancel(InvoiceStatus.CANCELLED, Decimal("0"), "inv-1")
