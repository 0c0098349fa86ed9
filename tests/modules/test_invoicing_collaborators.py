"""
Tests for the inventory gateways.
"""

from uuid import uuid4

import pytest

from ledger_kernel.exceptions import InventoryError
from ledger_modules.invoicing import InMemoryInventoryGateway, NullInventoryGateway


class TestInMemoryInventoryGateway:

    def test_untracked_accepts_everything(self):
        gateway = InMemoryInventoryGateway()
        asset = uuid4()
        gateway.reserve(asset, 1000)
        assert gateway.available(asset) is None
        assert gateway.net_reserved(asset) == 1000

    def test_tracked_stock_decrements_and_restores(self):
        asset = uuid4()
        gateway = InMemoryInventoryGateway({asset: 5})
        gateway.reserve(asset, 3)
        assert gateway.available(asset) == 2
        gateway.release(asset, 1)
        assert gateway.available(asset) == 3
        assert gateway.calls == [("reserve", asset, 3), ("release", asset, 1)]

    def test_insufficient_stock(self):
        asset = uuid4()
        gateway = InMemoryInventoryGateway({asset: 2})
        with pytest.raises(InventoryError) as exc_info:
            gateway.reserve(asset, 3)
        assert exc_info.value.quantity == 3
        assert "2 available" in exc_info.value.reason
        assert gateway.available(asset) == 2
        assert gateway.calls == []

    def test_net_reserved_is_per_asset(self):
        a, b = uuid4(), uuid4()
        gateway = InMemoryInventoryGateway()
        gateway.reserve(a, 4)
        gateway.reserve(b, 1)
        gateway.release(a, 4)
        assert gateway.net_reserved(a) == 0
        assert gateway.net_reserved(b) == 1

    def test_logs_reservations(self, captured_logs):
        InMemoryInventoryGateway().reserve(uuid4(), 2)
        assert any(r["message"] == "inventory_reserved" for r in captured_logs())


def test_null_gateway_accepts_everything():
    gateway = NullInventoryGateway()
    assert gateway.reserve(uuid4(), 10) is None
    assert gateway.release(uuid4(), 10) is None
