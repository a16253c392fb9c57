"""
Tests for month keys and periods.
"""

from datetime import date

import pytest
from pydantic import ValidationError

from runway.errors import InvalidMonthFormatError, InvalidPeriodError
from runway.models.months import (
    Period,
    default_period,
    is_valid_month,
    iso_to_month,
    month_range,
    month_to_iso,
    months_between,
    offset_month,
    parse_month,
    validate_month,
)


class TestMonthKeys:
    """Test cases for month key helpers."""

    def test_is_valid_month(self):
        """Test YYYY-MM validation."""
        assert is_valid_month("2025-01")
        assert is_valid_month("1999-12")
        assert not is_valid_month("2025-13")
        assert not is_valid_month("2025-1")
        assert not is_valid_month("2025/01")
        assert not is_valid_month(202501)

    def test_validate_month_raises(self):
        """Test that invalid keys raise InvalidMonthFormatError."""
        with pytest.raises(InvalidMonthFormatError, match="expected YYYY-MM"):
            validate_month("2025-00")

    @pytest.mark.parametrize("value", ["2025-01\n", " 2025-01", "2025-01 ", "\u0662\u0660\u0662\u0665-01"])
    def test_stray_characters_rejected(self, value):
        """Test keys with whitespace or non-ASCII digits are not month keys."""
        assert not is_valid_month(value)
        with pytest.raises(InvalidMonthFormatError):
            validate_month(value)

    def test_offset_month(self):
        """Test shifting across year boundaries."""
        assert offset_month("2025-11", 3) == "2026-02"
        assert offset_month("2025-01", -1) == "2024-12"
        assert offset_month("2025-06", 0) == "2025-06"

    def test_months_between_is_inclusive(self):
        """Test inclusive month counting."""
        assert months_between("2025-01", "2025-12") == 12
        assert months_between("2025-05", "2025-05") == 1
        assert months_between("2025-05", "2025-04") == 0

    def test_month_range(self):
        """Test enumerating a range."""
        assert month_range("2024-11", "2025-02") == ["2024-11", "2024-12", "2025-01", "2025-02"]

    def test_lexicographic_order_is_chronological(self):
        """Test that sorting keys as strings sorts them by time."""
        months = ["2025-10", "2024-12", "2025-02"]
        assert sorted(months) == ["2024-12", "2025-02", "2025-10"]

    def test_parse_month(self):
        """Test normalizing month-like values."""
        assert parse_month("2025-03") == "2025-03"
        assert parse_month(date(2025, 3, 15)) == "2025-03"
        assert parse_month("2025-03-15T10:00:00Z") == "2025-03"

    def test_parse_month_invalid(self):
        """Test that unparseable values raise."""
        with pytest.raises(InvalidMonthFormatError):
            parse_month("March")

    def test_iso_conversion(self):
        """Test ISO conversions."""
        assert month_to_iso("2025-07") == "2025-07-01"
        assert iso_to_month("2025-07-31") == "2025-07"


class TestPeriod:
    """Test cases for Period."""

    def test_length_and_months(self):
        """Test period enumeration."""
        period = Period(start_month="2025-01", end_month="2025-03")
        assert period.length == 3
        assert period.months() == ["2025-01", "2025-02", "2025-03"]

    def test_contains(self):
        """Test membership checks."""
        period = Period(start_month="2025-01", end_month="2025-03")
        assert period.contains("2025-02")
        assert not period.contains("2025-04")

    def test_start_after_end_rejected(self):
        """Test the start <= end invariant."""
        with pytest.raises(InvalidPeriodError, match="after end"):
            Period.create("2025-06", "2025-01")
        with pytest.raises(ValidationError):
            Period(start_month="2025-06", end_month="2025-01")

    def test_invalid_month_rejected(self):
        """Test malformed bounds."""
        with pytest.raises(InvalidMonthFormatError):
            Period.create("2025-6", "2025-12")
        with pytest.raises(ValidationError):
            Period(start_month="2025-6", end_month="2025-12")

    def test_trailing_newline_rejected(self):
        """Test a bound with a trailing newline is rejected."""
        with pytest.raises(ValidationError):
            Period(start_month="2025-01\n", end_month="2025-03")
        with pytest.raises(InvalidMonthFormatError):
            Period.create("2025-01", "2025-03\n")

    def test_default_period(self):
        """Test building a period from a length."""
        period = default_period(24, "2025-01")
        assert period.start_month == "2025-01"
        assert period.end_month == "2026-12"
        assert period.length == 24
