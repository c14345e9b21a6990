"""
Values -- Immutable, self-validating money value object.

Responsibility:
    Provides ``Money`` and ``round_money``, the foundation of every
    calculation in the engine. Amounts are decimal, never binary floating
    point, and are held at cent precision.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Imported by every other domain and engine module.

Invariants enforced:
    - Every Money amount is quantized to 0.01 with ROUND_HALF_UP
      (half away from zero) at construction, so each arithmetic result is
      rounded immediately after the operation that produced it.
    - Floats are rejected; NaN and infinities are rejected.
    - Arithmetic and ordering across currencies raise CurrencyMismatchError.

Failure modes:
    - TypeError when a float (or other unsupported type) is supplied.
    - ValueError on non-finite or unparsable amounts, or malformed currency.
    - CurrencyMismatchError when operands carry different currencies.

Audit relevance:
    Rounding happens in exactly one place (``round_money``). Replaying any
    calculation therefore produces identical cents.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from estate_kernel.exceptions import CurrencyMismatchError

CENT = Decimal("0.01")
DEFAULT_CURRENCY = "EUR"


def to_decimal(value: Decimal | int | str) -> Decimal:
    """Convert a supported scalar to Decimal, rejecting floats and non-finite values."""
    if isinstance(value, bool) or isinstance(value, float):
        raise TypeError(f"Monetary values must not be float or bool: {value!r}")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, str)):
        try:
            result = Decimal(value)
        except InvalidOperation as exc:
            raise ValueError(f"Invalid decimal value: {value!r}") from exc
    else:
        raise TypeError(f"Unsupported monetary type: {type(value).__name__}")
    if not result.is_finite():
        raise ValueError(f"Monetary value must be finite: {value!r}")
    return result


def round_money(value: Decimal | int | str) -> Decimal:
    """
    Round a monetary value to the cent, half away from zero.

    This is the only sanctioned rounding function for money. Python's
    ``ROUND_HALF_UP`` rounds ties away from zero, so ``-0.005`` becomes
    ``-0.01``.
    """
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True, slots=True)
class Money:
    """
    Monetary amount with currency.

    Contract:
        Immutable pairing of a cent-precision Decimal and a three-letter
        currency code.

    Guarantees:
        - ``amount`` is always quantized to 0.01 (ROUND_HALF_UP).
        - Equality and hashing agree with integer cents plus currency.
        - Operations never mix currencies silently.

    Non-goals:
        - No currency conversion.
        - No sub-cent precision; full-precision intermediates stay Decimal.
    """

    amount: Decimal
    currency: str = DEFAULT_CURRENCY

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", round_money(self.amount))
        if (
            not isinstance(self.currency, str)
            or len(self.currency) != 3
            or not self.currency.isalpha()
        ):
            raise ValueError(f"Invalid currency code: {self.currency!r}")
        object.__setattr__(self, "currency", self.currency.upper())

    # -- Constructors ---------------------------------------------------

    @classmethod
    def of(cls, amount: Decimal | int | str, currency: str = DEFAULT_CURRENCY) -> Money:
        return cls(amount=to_decimal(amount), currency=currency)

    @classmethod
    def zero(cls, currency: str = DEFAULT_CURRENCY) -> Money:
        return cls(amount=Decimal("0"), currency=currency)

    @classmethod
    def from_cents(cls, cents: int, currency: str = DEFAULT_CURRENCY) -> Money:
        return cls(amount=Decimal(cents) * CENT, currency=currency)

    @classmethod
    def total(cls, items: Iterable[Money], currency: str = DEFAULT_CURRENCY) -> Money:
        """Sum an iterable of Money; an empty iterable sums to zero."""
        result = cls.zero(currency)
        for item in items:
            result = result + item
        return result

    # -- Predicates -----------------------------------------------------

    @property
    def cents(self) -> int:
        return int(self.amount / CENT)

    @property
    def is_zero(self) -> bool:
        return self.amount == 0

    @property
    def is_positive(self) -> bool:
        return self.amount > 0

    @property
    def is_negative(self) -> bool:
        return self.amount < 0

    # -- Arithmetic -----------------------------------------------------

    def _check_currency(self, other: Money) -> None:
        if not isinstance(other, Money):
            raise TypeError(f"Expected Money, got {type(other).__name__}")
        if other.currency != self.currency:
            raise CurrencyMismatchError(self.currency, other.currency)

    def __add__(self, other: Money) -> Money:
        self._check_currency(other)
        return Money(self.amount + other.amount, self.currency)

    def __sub__(self, other: Money) -> Money:
        self._check_currency(other)
        return Money(self.amount - other.amount, self.currency)

    def __mul__(self, factor: Decimal | int | str) -> Money:
        return Money(self.amount * to_decimal(factor), self.currency)

    __rmul__ = __mul__

    def __truediv__(self, divisor: Decimal | int | str) -> Money:
        d = to_decimal(divisor)
        if d == 0:
            raise ZeroDivisionError("Cannot divide Money by zero")
        return Money(self.amount / d, self.currency)

    def __neg__(self) -> Money:
        return Money(-self.amount, self.currency)

    def __abs__(self) -> Money:
        return Money(abs(self.amount), self.currency)

    # -- Ordering -------------------------------------------------------

    def __lt__(self, other: Money) -> bool:
        self._check_currency(other)
        return self.amount < other.amount

    def __le__(self, other: Money) -> bool:
        self._check_currency(other)
        return self.amount <= other.amount

    def __gt__(self, other: Money) -> bool:
        self._check_currency(other)
        return self.amount > other.amount

    def __ge__(self, other: Money) -> bool:
        self._check_currency(other)
        return self.amount >= other.amount

    def __str__(self) -> str:
        return f"{self.amount} {self.currency}"

    def percent(self, rate: Decimal | int | str) -> Money:
        """``rate`` percent of this amount, rounded once."""
        return Money(self.amount * to_decimal(rate) / 100, self.currency)
