"""
Invoicing Collaborator Contracts (``ledger_modules.invoicing.collaborators``).

Responsibility
--------------
Abstract contracts for the two collaborators the ledger consumes but does
not own: the inventory service (stock reservation) and the identity /
permission gate (the acting user and their pre-computed capabilities).

Architecture position
---------------------
**Modules layer** -- ports.  ``InvoiceLedgerService`` depends on the
protocol only; deployments inject a real adapter.

Failure modes
-------------
* Inventory adapters raise ``InventoryError``.  The ledger treats it as
  fatal to the triggering operation, and the unit of work rolls back the
  ledger side.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from decimal import Decimal
from typing import Mapping, Protocol
from uuid import UUID

from ledger_kernel.exceptions import InventoryError
from ledger_kernel.logging_config import get_logger

logger = get_logger("modules.invoicing.collaborators")


@dataclass(frozen=True)
class Actor:
    """
    The acting user, as supplied by the permission gate.

    ``max_discount_percent`` of None means the gate places no limit on the
    discounts this actor may grant.
    """
    actor_id: UUID
    max_discount_percent: Decimal | None = None
    display_name: str | None = None


class InventoryGateway(Protocol):
    """Stock reservation for asset-backed invoice lines."""

    def reserve(self, asset_id: UUID, quantity: int) -> None:
        """Hold ``quantity`` units of ``asset_id`` for an invoice line."""
        ...

    def release(self, asset_id: UUID, quantity: int) -> None:
        """Return ``quantity`` previously reserved units of ``asset_id``."""
        ...


class NullInventoryGateway:
    """Gateway for deployments without stock tracking. Accepts everything."""

    def reserve(self, asset_id: UUID, quantity: int) -> None:
        return None

    def release(self, asset_id: UUID, quantity: int) -> None:
        return None


class InMemoryInventoryGateway:
    """
    Process-local stock levels.

    Used by tests and single-process installs.  When constructed without
    stock levels every reservation succeeds; with levels, a reservation
    beyond what is available raises InventoryError.  Every successful call
    is recorded in ``calls`` as ``(action, asset_id, quantity)``.
    """

    def __init__(self, stock: Mapping[UUID, int] | None = None):
        self._tracked = stock is not None
        self._available: Counter[UUID] = Counter(stock or {})
        self.calls: list[tuple[str, UUID, int]] = []

    def available(self, asset_id: UUID) -> int | None:
        if not self._tracked:
            return None
        return self._available[asset_id]

    def reserve(self, asset_id: UUID, quantity: int) -> None:
        if self._tracked and self._available[asset_id] < quantity:
            raise InventoryError(
                str(asset_id),
                quantity,
                f"insufficient stock: {self._available[asset_id]} available, "
                f"{quantity} requested",
            )
        if self._tracked:
            self._available[asset_id] -= quantity
        self.calls.append(("reserve", asset_id, quantity))
        logger.debug("inventory_reserved", extra={
            "asset_id": str(asset_id),
            "quantity": quantity,
        })

    def release(self, asset_id: UUID, quantity: int) -> None:
        if self._tracked:
            self._available[asset_id] += quantity
        self.calls.append(("release", asset_id, quantity))
        logger.debug("inventory_released", extra={
            "asset_id": str(asset_id),
            "quantity": quantity,
        })

    def net_reserved(self, asset_id: UUID) -> int:
        """Reserved minus released for ``asset_id`` over every recorded call."""
        total = 0
        for action, called_asset, quantity in self.calls:
            if called_asset != asset_id:
                continue
            total += quantity if action == "reserve" else -quantity
        return total
