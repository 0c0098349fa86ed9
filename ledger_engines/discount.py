"""
Discount Calculator.

Pure functions with deterministic behavior. No I/O.

Computes the monetary value of a discount descriptor against a base amount.
Used twice per invoice: once per line item (base = quantity x unit price)
and once at invoice level (base = subtotal of post-discount line totals).

Rules:
- ``none``, or any value <= 0, discounts nothing.
- ``percentage`` discounts base x value / 100.
- ``fixed`` discounts value, capped at the base.
- Every result is rounded half-up to 2 places.

The calculator does not clamp percentages above 100; range checks live in
``validate_discount`` and are applied by the service before anything is
stored.

Usage:
    from ledger_engines.discount import DiscountSpec, compute_discount

    spec = DiscountSpec.percentage("10")
    compute_discount(Decimal("200.00"), spec.discount_type, spec.value)
    # Decimal("20.00")
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum

from ledger_kernel.db.types import round_money
from ledger_kernel.exceptions import InvalidDiscountError

_ZERO = Decimal("0")
_HUNDRED = Decimal("100")


class DiscountType(str, Enum):
    """How a discount value is interpreted."""

    NONE = "none"
    PERCENTAGE = "percentage"
    FIXED = "fixed"


@dataclass(frozen=True, slots=True)
class DiscountSpec:
    """
    Requested discount: a type and a raw value.

    ``none`` always carries a zero value so two "no discount" specs compare
    equal regardless of what the caller passed.
    """

    discount_type: DiscountType = DiscountType.NONE
    value: Decimal = field(default=_ZERO)

    def __post_init__(self) -> None:
        try:
            object.__setattr__(self, "discount_type", DiscountType(self.discount_type))
        except ValueError as e:
            raise InvalidDiscountError(str(self.discount_type), self.value, "unknown discount type") from e
        if isinstance(self.value, float):
            raise InvalidDiscountError(self.discount_type.value, self.value, "value must not be a float")
        if not isinstance(self.value, Decimal):
            try:
                object.__setattr__(self, "value", Decimal(str(self.value)))
            except (InvalidOperation, ValueError) as e:
                raise InvalidDiscountError(self.discount_type.value, self.value, "value must be numeric") from e
        if not self.value.is_finite():
            raise InvalidDiscountError(self.discount_type.value, self.value, "value must be finite")
        if self.discount_type is DiscountType.NONE:
            object.__setattr__(self, "value", _ZERO)

    @classmethod
    def none(cls) -> DiscountSpec:
        return cls()

    @classmethod
    def percentage(cls, value: Decimal | int | str) -> DiscountSpec:
        return cls(DiscountType.PERCENTAGE, value)

    @classmethod
    def fixed(cls, value: Decimal | int | str) -> DiscountSpec:
        return cls(DiscountType.FIXED, value)

    @property
    def is_none(self) -> bool:
        return self.discount_type is DiscountType.NONE or self.value <= 0


def compute_discount(
    base_amount: Decimal,
    discount_type: DiscountType | str,
    value: Decimal,
) -> Decimal:
    """
    Monetary discount for ``base_amount``.

    Pure function - no side effects, deterministic output.

    Args:
        base_amount: Amount the discount applies to (>= 0).
        discount_type: none, percentage or fixed.
        value: Percent (for percentage) or amount (for fixed).

    Returns:
        Discount amount rounded half-up to 2 places.
    """
    discount_type = DiscountType(discount_type)
    if discount_type is DiscountType.NONE or value <= 0:
        return round_money(_ZERO)
    if discount_type is DiscountType.PERCENTAGE:
        return round_money(base_amount * value / _HUNDRED)
    return round_money(min(value, base_amount))


def discount_amount(base_amount: Decimal, spec: DiscountSpec) -> Decimal:
    """compute_discount() for a DiscountSpec."""
    return compute_discount(base_amount, spec.discount_type, spec.value)


def effective_percent(base_amount: Decimal, spec: DiscountSpec) -> Decimal:
    """
    Percent of ``base_amount`` the discount removes.

    Percentage discounts report their literal value.  Fixed discounts are
    back-derived from the (capped) discount amount, and report 0 when the
    base is 0.
    """
    if spec.is_none:
        return round_money(_ZERO)
    if spec.discount_type is DiscountType.PERCENTAGE:
        return round_money(spec.value)
    if base_amount <= 0:
        return round_money(_ZERO)
    return round_money(discount_amount(base_amount, spec) / base_amount * _HUNDRED)


def validate_discount(spec: DiscountSpec) -> None:
    """
    Reject discount values that cannot be stored.

    Raises:
        InvalidDiscountError: Negative values of any type, or percentages
            above 100.
    """
    if spec.discount_type is DiscountType.NONE:
        return
    if spec.value < 0:
        raise InvalidDiscountError(spec.discount_type.value, spec.value, "value must not be negative")
    if spec.discount_type is DiscountType.PERCENTAGE and spec.value > _HUNDRED:
        raise InvalidDiscountError(spec.discount_type.value, spec.value, "percentage must not exceed 100")
    if spec.value != round_money(spec.value):
        raise InvalidDiscountError(spec.discount_type.value, spec.value, "value must have at most 2 decimal places")
