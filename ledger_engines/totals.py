"""
Invoice Totals Engine.

Pure functions with deterministic behavior. No I/O.

Derives every monetary field of an invoice from its base facts: the
contributing (non-voided) line items, the invoice-level discount
descriptor, and the amount paid.  Derived fields are never trusted from
storage; the service calls ``recalculate`` after every mutation and writes
the result back.

Pipeline:
    1. Only non-voided lines contribute.
    2. subtotal = sum of post-line-discount line totals.
    3. total_cost = sum of quantity x unit cost.
    4. invoice discount computed on the subtotal (see discount.py); its
       percent is stored back (literal for percentage, back-derived for
       fixed, 0 when the subtotal is 0).
    5. total = subtotal - invoice discount.
    6. profit = total - total_cost.
    7. margin = profit / total x 100 when total > 0, else absent.
    8. balance_due = total - amount_paid.

``recalculate`` is idempotent: the same inputs always give the same
totals, and feeding a result's inputs back in reproduces it exactly.

Usage:
    from ledger_engines.totals import LineSnapshot, recalculate

    totals = recalculate(
        [LineSnapshot(quantity=2, unit_cost=Decimal("60"), line_total=Decimal("200"))],
        DiscountSpec.percentage("10"),
        amount_paid=Decimal("0"),
    )
    totals.total_amount  # Decimal("180.00")
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from ledger_engines.discount import DiscountSpec, discount_amount, effective_percent
from ledger_kernel.db.types import round_money
from ledger_kernel.logging_config import get_logger

logger = get_logger("engines.totals")

_ZERO = Decimal("0")
_HUNDRED = Decimal("100")


# ============================================================================
# Value Objects
# ============================================================================


@dataclass(frozen=True, slots=True)
class LineTotals:
    """Derived amounts for one line item."""

    base_amount: Decimal
    discount_amount: Decimal
    discount_percent: Decimal
    line_total: Decimal
    line_cost: Decimal
    line_profit: Decimal


@dataclass(frozen=True, slots=True)
class LineSnapshot:
    """The facts about a line item that invoice totals depend on."""

    quantity: int
    unit_cost: Decimal
    line_total: Decimal
    voided: bool = False


@dataclass(frozen=True, slots=True)
class InvoiceTotals:
    """Every derived monetary field of an invoice."""

    subtotal_amount: Decimal
    discount_amount: Decimal
    discount_percent: Decimal
    total_amount: Decimal
    total_cost_amount: Decimal
    total_profit_amount: Decimal
    margin_percent: Decimal | None
    amount_paid: Decimal
    balance_due: Decimal
    contributing_lines: int


# ============================================================================
# Calculations
# ============================================================================


def compute_line(
    quantity: int,
    unit_price: Decimal,
    unit_cost: Decimal,
    line_discount: DiscountSpec,
) -> LineTotals:
    """
    Derive a line's totals from its quantity, prices and discount.

    line_total = max(0, quantity x unit_price - line discount).  The fixed
    discount cap at the base already keeps the result non-negative; the
    floor guards percentage values above 100.
    """
    base = round_money(unit_price * quantity)
    discount = discount_amount(base, line_discount)
    line_total = max(round_money(_ZERO), round_money(base - discount))
    line_cost = round_money(unit_cost * quantity)
    return LineTotals(
        base_amount=base,
        discount_amount=discount,
        discount_percent=effective_percent(base, line_discount),
        line_total=line_total,
        line_cost=line_cost,
        line_profit=round_money(line_total - line_cost),
    )


def recalculate(
    lines: Iterable[LineSnapshot],
    invoice_discount: DiscountSpec,
    amount_paid: Decimal,
) -> InvoiceTotals:
    """
    Recompute all derived invoice totals.

    Pure function - no side effects, no I/O, deterministic output.

    Args:
        lines: Every line on the invoice; voided lines are skipped.
        invoice_discount: Invoice-level discount descriptor.
        amount_paid: Net of non-voided payments minus refunds.

    Returns:
        InvoiceTotals with every field rounded half-up to 2 places
        (margin may be None).
    """
    subtotal = _ZERO
    total_cost = _ZERO
    contributing = 0
    for line in lines:
        if line.voided:
            continue
        contributing += 1
        subtotal += line.line_total
        total_cost += line.unit_cost * line.quantity

    subtotal = round_money(subtotal)
    total_cost = round_money(total_cost)
    discount = discount_amount(subtotal, invoice_discount)
    total = round_money(subtotal - discount)
    profit = round_money(total - total_cost)
    margin = round_money(profit / total * _HUNDRED) if total > 0 else None
    paid = round_money(amount_paid)

    totals = InvoiceTotals(
        subtotal_amount=subtotal,
        discount_amount=discount,
        discount_percent=effective_percent(subtotal, invoice_discount),
        total_amount=total,
        total_cost_amount=total_cost,
        total_profit_amount=profit,
        margin_percent=margin,
        amount_paid=paid,
        balance_due=round_money(total - paid),
        contributing_lines=contributing,
    )

    logger.debug("invoice_totals_recalculated", extra={
        "contributing_lines": contributing,
        "subtotal": str(totals.subtotal_amount),
        "discount": str(totals.discount_amount),
        "total": str(totals.total_amount),
        "amount_paid": str(totals.amount_paid),
        "balance_due": str(totals.balance_due),
    })
    return totals
