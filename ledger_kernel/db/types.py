"""
Module: ledger_kernel.db.types
Responsibility: Column type definitions and the sanctioned rounding
    function for monetary values.
Architecture position: Kernel > DB.  Imported by models, engines and
    services.  MUST NOT import from any of those layers.

Invariants enforced:
    - round_money() is the only rounding function for ledger amounts.
      Half-up to 2 places unless told otherwise.
    - No floats: every monetary column is Numeric.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Annotated

from sqlalchemy import Numeric
from sqlalchemy.orm import mapped_column

from ledger_kernel.exceptions import InvalidAmountError

# 38 digits total, 9 decimal places
MONEY_TYPE = Numeric(38, 9)

# Discount and margin percentages
PERCENT_TYPE = Numeric(24, 4)

# Non-null monetary column that starts at zero
MoneyColumn = Annotated[
    Decimal,
    mapped_column(MONEY_TYPE, nullable=False, default=Decimal("0")),
]


MONEY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to specified decimal places.

    Every discount, total, profit and margin computation in the ledger
    delegates to this function so that rounding is identical everywhere.

    Args:
        value: The Decimal value to round.
        decimal_places: Number of decimal places to round to.
        rounding: Rounding mode (default: ROUND_HALF_UP).

    Returns:
        Rounded Decimal value.

    Raises:
        InvalidAmountError: If the value has more integer digits than the
            decimal context can hold at ``decimal_places``.
    """
    try:
        return value.quantize(Decimal(1).scaleb(-decimal_places), rounding=rounding)
    except InvalidOperation as e:
        raise InvalidAmountError("amount", value, "is too large to represent") from e


def round_optional(value: Decimal | None) -> Decimal | None:
    """round_money() that passes None through (margin may be absent)."""
    if value is None:
        return None
    return round_money(value)
