"""
Currency-aware monetary values.

Money stores an integer amount of minor units (cents, centavos, ...) together
with an ISO currency code. Every operation returns a new value; combining two
values of different currencies raises ``CurrencyMismatchError``.

Rounding rule: any operation that yields a fractional number of minor units
(multiply, divide, apply_percentage, from_major) is rounded immediately to the
nearest minor unit, ties away from zero (``ROUND_HALF_UP``). Rounding happens
after each operation, not at output time, so cascaded computations see the
same values a ledger would.
"""

import json
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Iterable, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..errors import CurrencyMismatchError

Number = Union[int, float, Decimal]

# Currencies whose minor unit is not 1/100
_MINOR_UNIT_EXPONENTS: Dict[str, int] = {
    "JPY": 0,
    "KRW": 0,
    "VND": 0,
    "CLP": 0,
    "BHD": 3,
    "KWD": 3,
    "OMR": 3,
    "JOD": 3,
    "TND": 3,
}


def minor_unit_exponent(currency_code: str) -> int:
    """Number of decimal places used by a currency's minor unit."""
    return _MINOR_UNIT_EXPONENTS.get(currency_code.upper(), 2)


def _to_decimal(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise TypeError("Booleans are not valid monetary scalars")
    # str() avoids binary float artifacts (0.1 -> 0.1000000000000000055...)
    return Decimal(str(value))


def _round_minor(value: Decimal) -> int:
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))


class Money(BaseModel):
    """Immutable monetary amount in integer minor units."""

    model_config = ConfigDict(frozen=True)

    minor_units: int = Field(..., description="Amount in minor units (e.g. cents)")
    currency_code: str = Field(..., description="ISO 4217 currency code")

    @field_validator("currency_code")
    @classmethod
    def validate_currency_code(cls, v: str) -> str:
        if not isinstance(v, str) or len(v) != 3 or not v.isalpha():
            raise ValueError("Currency code must be a 3-letter code")
        return v.upper()

    # Construction

    @classmethod
    def zero(cls, currency_code: str) -> "Money":
        """Zero amount in the given currency."""
        return cls(minor_units=0, currency_code=currency_code)

    @classmethod
    def from_major(cls, amount: Number, currency_code: str) -> "Money":
        """
        Build a Money value from a major-unit amount.

        Args:
            amount: Amount in major units (e.g. 12.34 for 12 pesos 34 centavos)
            currency_code: ISO currency code

        Returns:
            Money rounded to the currency's minor unit
        """
        exponent = minor_unit_exponent(currency_code)
        minor = _to_decimal(amount).scaleb(exponent)
        return cls(minor_units=_round_minor(minor), currency_code=currency_code)

    @classmethod
    def sum_of(cls, values: Iterable["Money"], currency_code: str) -> "Money":
        """Sum a sequence of Money values; an empty sequence sums to zero."""
        total = cls.zero(currency_code)
        for value in values:
            total = total.add(value)
        return total

    # Conversion

    @property
    def exponent(self) -> int:
        return minor_unit_exponent(self.currency_code)

    def to_major(self) -> Decimal:
        """Exact major-unit amount as a Decimal."""
        return Decimal(self.minor_units).scaleb(-self.exponent)

    def to_float(self) -> float:
        return float(self.to_major())

    def format(self) -> str:
        """Human readable representation, e.g. ``PHP 1,234.50``."""
        return f"{self.currency_code} {self.to_major():,.{self.exponent}f}"

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")

    @classmethod
    def parse_from_json(cls, data: Union[str, Dict[str, Any]]) -> "Money":
        if isinstance(data, str):
            data = json.loads(data)
        return cls.model_validate(data)

    # Arithmetic

    def _check_currency(self, other: "Money") -> None:
        if not isinstance(other, Money):
            raise TypeError(f"Expected Money, got {type(other).__name__}")
        if other.currency_code != self.currency_code:
            raise CurrencyMismatchError(
                f"Currency mismatch: {self.currency_code} vs {other.currency_code}"
            )

    def _with_minor(self, minor_units: int) -> "Money":
        return Money(minor_units=minor_units, currency_code=self.currency_code)

    def add(self, other: "Money") -> "Money":
        self._check_currency(other)
        return self._with_minor(self.minor_units + other.minor_units)

    def subtract(self, other: "Money") -> "Money":
        self._check_currency(other)
        return self._with_minor(self.minor_units - other.minor_units)

    def multiply(self, factor: Number) -> "Money":
        return self._with_minor(
            _round_minor(Decimal(self.minor_units) * _to_decimal(factor))
        )

    def divide(self, divisor: Number) -> "Money":
        divisor = _to_decimal(divisor)
        if divisor == 0:
            raise ZeroDivisionError("Cannot divide Money by zero")
        return self._with_minor(_round_minor(Decimal(self.minor_units) / divisor))

    def apply_percentage(self, rate: Number) -> "Money":
        """
        Apply a rate expressed as a fraction.

        Args:
            rate: Fraction to apply (0.12 for 12%)

        Returns:
            The rounded share of this amount
        """
        return self.multiply(rate)

    def ratio(self, other: "Money") -> float:
        """Ratio of this amount to another amount of the same currency."""
        self._check_currency(other)
        if other.minor_units == 0:
            raise ZeroDivisionError("Cannot compute ratio against a zero amount")
        return self.minor_units / other.minor_units

    def negate(self) -> "Money":
        return self._with_minor(-self.minor_units)

    def absolute(self) -> "Money":
        return self._with_minor(abs(self.minor_units))

    def max(self, other: "Money") -> "Money":
        return self if self.greater_than_or_equal(other) else other

    def min(self, other: "Money") -> "Money":
        return self if self.less_than_or_equal(other) else other

    # Comparison

    def equals(self, other: "Money") -> bool:
        self._check_currency(other)
        return self.minor_units == other.minor_units

    def less_than(self, other: "Money") -> bool:
        self._check_currency(other)
        return self.minor_units < other.minor_units

    def less_than_or_equal(self, other: "Money") -> bool:
        self._check_currency(other)
        return self.minor_units <= other.minor_units

    def greater_than(self, other: "Money") -> bool:
        self._check_currency(other)
        return self.minor_units > other.minor_units

    def greater_than_or_equal(self, other: "Money") -> bool:
        self._check_currency(other)
        return self.minor_units >= other.minor_units

    def is_zero(self) -> bool:
        return self.minor_units == 0

    def is_positive(self) -> bool:
        return self.minor_units > 0

    def is_negative(self) -> bool:
        return self.minor_units < 0

    # Operators

    def __add__(self, other: "Money") -> "Money":
        return self.add(other)

    def __sub__(self, other: "Money") -> "Money":
        return self.subtract(other)

    def __mul__(self, factor: Number) -> "Money":
        return self.multiply(factor)

    __rmul__ = __mul__

    def __truediv__(self, divisor: Number) -> "Money":
        return self.divide(divisor)

    def __neg__(self) -> "Money":
        return self.negate()

    def __lt__(self, other: "Money") -> bool:
        return self.less_than(other)

    def __le__(self, other: "Money") -> bool:
        return self.less_than_or_equal(other)

    def __gt__(self, other: "Money") -> bool:
        return self.greater_than(other)

    def __ge__(self, other: "Money") -> bool:
        return self.greater_than_or_equal(other)

    def __str__(self) -> str:
        return self.format()
