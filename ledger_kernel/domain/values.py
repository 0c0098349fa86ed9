"""
Values -- Immutable, self-validating domain value objects.

Responsibility:
    Provides Currency, Money and ExchangeRate for the conversion and display
    paths, and ``require_amount`` for turning caller input into a Decimal
    amount at every service boundary.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Amounts are Decimal, never float.
    - Currency codes are validated against CurrencyRegistry at construction.
    - Arithmetic between Money values never mixes currencies.

Failure modes:
    - UnsupportedCurrencyError on construction with an unknown currency.
    - InvalidAmountError from ``require_amount`` on non-numeric, float,
      negative or over-precise input.
    - ValueError when Money arithmetic mixes currencies.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from functools import total_ordering

from ledger_kernel.domain.currency import CurrencyRegistry
from ledger_kernel.exceptions import InvalidAmountError


def require_amount(
    value: Decimal | int | str,
    field: str,
    *,
    allow_zero: bool = False,
    decimal_places: int = 2,
) -> Decimal:
    """
    Convert caller input into a validated monetary Decimal.

    Floats are rejected outright; amounts carrying more precision than the
    currency supports are rejected rather than silently rounded.

    Raises:
        InvalidAmountError: If the value is not a finite number, is a float,
            is negative (or zero when ``allow_zero`` is False), or has more
            than ``decimal_places`` fractional digits.
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise InvalidAmountError(field, value, "must be a Decimal, int or numeric string")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError) as e:
        raise InvalidAmountError(field, value, "must be numeric") from e
    if not amount.is_finite():
        raise InvalidAmountError(field, value, "must be a finite number")
    if allow_zero:
        if amount < 0:
            raise InvalidAmountError(field, value, "must not be negative")
    elif amount <= 0:
        raise InvalidAmountError(field, value, "must be greater than zero")
    try:
        quantized = amount.quantize(Decimal(1).scaleb(-decimal_places))
    except InvalidOperation as e:
        raise InvalidAmountError(field, value, "is too large") from e
    if amount != quantized:
        raise InvalidAmountError(
            field, value, f"must have at most {decimal_places} decimal places"
        )
    return amount


@dataclass(frozen=True, slots=True)
class Currency:
    """
    Supported currency code value object.

    Guarantees:
        - code is always uppercase and a member of CurrencyRegistry.
    """

    code: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "code", CurrencyRegistry.validate(self.code))

    @property
    def decimal_places(self) -> int:
        return CurrencyRegistry.get_info(self.code).decimal_places

    @property
    def symbol(self) -> str:
        return CurrencyRegistry.get_info(self.code).symbol

    def __str__(self) -> str:
        return self.code

    def __repr__(self) -> str:
        return f"Currency({self.code!r})"


def _as_currency(value: str | Currency) -> Currency:
    if isinstance(value, Currency):
        return value
    if isinstance(value, str):
        return Currency(value)
    raise TypeError(f"currency must be Currency or str, got {type(value).__name__}")


@total_ordering
@dataclass(frozen=True, slots=True)
class Money:
    """
    An amount in one supported currency.

    Used on the conversion and display paths; stored ledger amounts are
    plain Decimals in the invoice currency.  Arithmetic and ordering refuse
    to mix currencies.  Nothing is rounded until ``round()`` is called.
    """

    amount: Decimal
    currency: Currency

    def __post_init__(self) -> None:
        if isinstance(self.amount, float):
            raise TypeError("Money amount must not be a float")
        if not isinstance(self.amount, Decimal):
            try:
                object.__setattr__(self, "amount", Decimal(str(self.amount)))
            except (InvalidOperation, ValueError) as e:
                raise ValueError(f"Invalid amount: {self.amount}") from e
        object.__setattr__(self, "currency", _as_currency(self.currency))

    @classmethod
    def of(cls, amount: Decimal | str | int, currency: str | Currency) -> Money:
        return cls(amount=amount, currency=currency)

    @classmethod
    def zero(cls, currency: str | Currency) -> Money:
        return cls(amount=Decimal("0"), currency=currency)

    @property
    def is_zero(self) -> bool:
        return self.amount == 0

    @property
    def is_positive(self) -> bool:
        return self.amount > 0

    def round(self, rounding: str = ROUND_HALF_UP) -> Money:
        """Round to the currency's decimal places (half-up by default)."""
        exponent = Decimal(1).scaleb(-self.currency.decimal_places)
        return Money(self.amount.quantize(exponent, rounding=rounding), self.currency)

    def _same_currency(self, other: object, verb: str) -> bool:
        if not isinstance(other, Money):
            return False
        if other.currency != self.currency:
            raise ValueError(
                f"Cannot {verb} Money with different currencies: "
                f"{self.currency} and {other.currency}"
            )
        return True

    def __add__(self, other: Money) -> Money:
        if not self._same_currency(other, "add"):
            return NotImplemented
        return Money(self.amount + other.amount, self.currency)

    def __sub__(self, other: Money) -> Money:
        if not self._same_currency(other, "subtract"):
            return NotImplemented
        return Money(self.amount - other.amount, self.currency)

    def __neg__(self) -> Money:
        return Money(-self.amount, self.currency)

    def __mul__(self, factor: Decimal | int) -> Money:
        if isinstance(factor, bool) or not isinstance(factor, (Decimal, int)):
            return NotImplemented
        return Money(self.amount * factor, self.currency)

    __rmul__ = __mul__

    def __lt__(self, other: Money) -> bool:
        if not self._same_currency(other, "compare"):
            return NotImplemented
        return self.amount < other.amount

    def __str__(self) -> str:
        return f"{self.amount} {self.currency.code}"


@dataclass(frozen=True, slots=True)
class ExchangeRate:
    """``1 base = rate quote``; the rate is positive and finite."""

    base: Currency
    quote: Currency
    rate: Decimal

    def __post_init__(self) -> None:
        object.__setattr__(self, "base", _as_currency(self.base))
        object.__setattr__(self, "quote", _as_currency(self.quote))
        if isinstance(self.rate, float):
            raise TypeError("Exchange rate must not be a float")
        try:
            rate = Decimal(str(self.rate))
        except (InvalidOperation, ValueError) as e:
            raise ValueError(f"Invalid exchange rate: {self.rate}") from e
        if not rate.is_finite() or rate <= 0:
            raise ValueError(f"Exchange rate must be positive: {self.rate}")
        object.__setattr__(self, "rate", rate)

    @classmethod
    def of(
        cls,
        base: str | Currency,
        quote: str | Currency,
        rate: Decimal | str | int,
    ) -> ExchangeRate:
        return cls(base=base, quote=quote, rate=rate)

    @property
    def pair(self) -> tuple[str, str]:
        return (self.base.code, self.quote.code)

    def convert(self, money: Money) -> Money:
        """Unrounded conversion of ``money`` from ``base`` into ``quote``."""
        if money.currency != self.base:
            raise ValueError(
                f"Money currency {money.currency} doesn't match "
                f"rate base currency {self.base}"
            )
        return Money(money.amount * self.rate, self.quote)

    def inverse(self) -> ExchangeRate:
        return ExchangeRate(self.quote, self.base, Decimal("1") / self.rate)

    def __str__(self) -> str:
        return f"{self.base}/{self.quote} = {self.rate}"
