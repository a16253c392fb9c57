"""
Tests for the Money value type.
"""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from runway.errors import CurrencyMismatchError
from runway.models.money import Money, minor_unit_exponent


class TestMoneyConstruction:
    """Test cases for building Money values."""

    def test_from_major_uses_minor_units(self):
        """Test that major amounts are converted to minor units."""
        assert Money.from_major(12.34, "PHP").minor_units == 1234
        assert Money.from_major("0.1", "USD").minor_units == 10

    def test_zero_decimal_currency(self):
        """Test currencies without a minor unit."""
        assert minor_unit_exponent("JPY") == 0
        assert Money.from_major(1000, "JPY").minor_units == 1000

    def test_currency_code_is_normalized(self):
        """Test lowercase codes are upper-cased."""
        assert Money(minor_units=100, currency_code="php").currency_code == "PHP"

    def test_invalid_currency_code(self):
        """Test that malformed currency codes are rejected."""
        with pytest.raises(ValidationError):
            Money(minor_units=100, currency_code="PESO")

    def test_zero(self):
        """Test the zero constructor."""
        zero = Money.zero("PHP")
        assert zero.is_zero()
        assert not zero.is_positive()
        assert not zero.is_negative()

    def test_immutable(self):
        """Test that Money cannot be modified in place."""
        money = Money.from_major(10, "PHP")
        with pytest.raises(ValidationError):
            money.minor_units = 5

    def test_to_major(self):
        """Test exact major-unit conversion."""
        assert Money.from_major("12.34", "PHP").to_major() == Decimal("12.34")
        assert Money.from_major(5, "PHP").to_float() == 5.0

    def test_format(self):
        """Test display formatting."""
        assert Money.from_major("1234.5", "PHP").format() == "PHP 1,234.50"


class TestMoneyArithmetic:
    """Test cases for Money arithmetic."""

    def test_add_subtract_round_trip(self):
        """Test a + b - b == a for several values."""
        values = [0, 1, 99, 12345, -500, 10**9]
        for x in values:
            for y in values:
                a = Money(minor_units=x, currency_code="PHP")
                b = Money(minor_units=y, currency_code="PHP")
                assert a.add(b).subtract(b) == a

    def test_add_is_commutative(self):
        """Test a + b == b + a."""
        values = [0, 7, 250, -42, 999999]
        for x in values:
            for y in values:
                a = Money(minor_units=x, currency_code="USD")
                b = Money(minor_units=y, currency_code="USD")
                assert a.add(b) == b.add(a)

    def test_currency_mismatch(self):
        """Test that mixing currencies raises."""
        php = Money.from_major(1, "PHP")
        usd = Money.from_major(1, "USD")
        with pytest.raises(CurrencyMismatchError, match="PHP vs USD"):
            php.add(usd)
        with pytest.raises(CurrencyMismatchError):
            php.less_than(usd)

    def test_divide_rounds_half_up(self):
        """Test division rounds to the nearest minor unit, ties away from zero."""
        assert Money.from_major(100, "PHP").divide(3).minor_units == 3333
        assert Money(minor_units=5, currency_code="PHP").divide(2).minor_units == 3
        assert Money(minor_units=-5, currency_code="PHP").divide(2).minor_units == -3

    def test_divide_by_zero(self):
        """Test that dividing by zero raises."""
        with pytest.raises(ZeroDivisionError):
            Money.from_major(1, "PHP").divide(0)

    def test_multiply_rounds(self):
        """Test multiplication rounds immediately."""
        assert Money(minor_units=100, currency_code="PHP").multiply(0.125).minor_units == 13

    def test_apply_percentage(self):
        """Test rates are fractions."""
        vat = Money.from_major(1000, "PHP").apply_percentage(0.12)
        assert vat == Money.from_major(120, "PHP")

    def test_operators(self):
        """Test Python operators delegate to the named methods."""
        a = Money.from_major(10, "PHP")
        b = Money.from_major(4, "PHP")
        assert a + b == Money.from_major(14, "PHP")
        assert a - b == Money.from_major(6, "PHP")
        assert a * 2 == Money.from_major(20, "PHP")
        assert 2 * a == Money.from_major(20, "PHP")
        assert a / 4 == Money.from_major("2.5", "PHP")
        assert -a == Money.from_major(-10, "PHP")

    def test_ratio(self):
        """Test ratio between two amounts."""
        assert Money.from_major(50, "PHP").ratio(Money.from_major(200, "PHP")) == 0.25

    def test_absolute_max_min(self):
        """Test sign and ordering helpers."""
        loss = Money.from_major(-25, "PHP")
        gain = Money.from_major(10, "PHP")
        assert loss.absolute() == Money.from_major(25, "PHP")
        assert loss.max(gain) == gain
        assert loss.min(gain) == loss

    def test_sum_of_empty(self):
        """Test summing no values gives zero in the requested currency."""
        assert Money.sum_of([], "PHP") == Money.zero("PHP")


class TestMoneyComparison:
    """Test cases for comparisons."""

    def test_comparisons(self):
        """Test ordering helpers and operators."""
        small = Money.from_major(1, "PHP")
        large = Money.from_major(2, "PHP")
        assert small.less_than(large)
        assert small.less_than_or_equal(small)
        assert large.greater_than(small)
        assert large.greater_than_or_equal(large)
        assert small < large <= large
        assert large.max(small) == large
        assert large.min(small) == small

    def test_sign_checks(self):
        """Test sign predicates."""
        assert Money.from_major(1, "PHP").is_positive()
        assert Money.from_major(-1, "PHP").is_negative()


class TestMoneySerialization:
    """Test cases for JSON round trips."""

    def test_to_json(self):
        """Test JSON shape."""
        money = Money.from_major("12.34", "PHP")
        assert money.to_json() == {"minor_units": 1234, "currency_code": "PHP"}

    def test_parse_from_json(self):
        """Test parsing from dicts and strings."""
        money = Money.from_major("99.99", "USD")
        assert Money.parse_from_json(money.to_json()) == money
        assert Money.parse_from_json(money.model_dump_json()) == money
