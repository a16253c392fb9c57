"""
Month keys and periods.

A month key is a ``YYYY-MM`` string. Lexicographic ordering of month keys is
chronological ordering, so plain string comparison is used throughout the
engine. A Period is an inclusive ``[start_month, end_month]`` range.
"""

import re
from datetime import date, datetime
from typing import Annotated, List, Optional, Union

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, model_validator

from ..errors import InvalidMonthFormatError, InvalidPeriodError

MONTH_PATTERN = re.compile(r"[0-9]{4}-(0[1-9]|1[0-2])")


def is_valid_month(value: object) -> bool:
    """Check whether a value is a well-formed ``YYYY-MM`` key."""
    return isinstance(value, str) and bool(MONTH_PATTERN.fullmatch(value))


def validate_month(value: str) -> str:
    """Return the month key unchanged or raise InvalidMonthFormatError."""
    if not is_valid_month(value):
        raise InvalidMonthFormatError(f"Invalid month format: {value!r} (expected YYYY-MM)")
    return value


# Month key usable as a pydantic field type
YYYYMM = Annotated[str, AfterValidator(validate_month)]


def parse_month(value: Union[str, date, datetime]) -> str:
    """
    Normalize a month-like value to a ``YYYY-MM`` key.

    Args:
        value: A ``YYYY-MM`` key, an ISO date or datetime string, or a
            ``date``/``datetime`` instance

    Returns:
        The month key

    Raises:
        InvalidMonthFormatError: If the value cannot be interpreted as a month
    """
    if isinstance(value, (date, datetime)):
        return f"{value.year:04d}-{value.month:02d}"
    if is_valid_month(value):
        return value
    if isinstance(value, str):
        return iso_to_month(value)
    raise InvalidMonthFormatError(f"Invalid month format: {value!r} (expected YYYY-MM)")


def month_year(month: str) -> int:
    return int(validate_month(month)[:4])


def _split(month: str):
    validate_month(month)
    return int(month[:4]), int(month[5:7])


def offset_month(month: str, offset: int) -> str:
    """Shift a month key by ``offset`` months (negative offsets go back)."""
    year, mon = _split(month)
    index = year * 12 + (mon - 1) + offset
    return f"{index // 12:04d}-{index % 12 + 1:02d}"


def months_between(start: str, end: str) -> int:
    """Inclusive number of months from ``start`` to ``end`` (0 if end < start)."""
    start_year, start_mon = _split(start)
    end_year, end_mon = _split(end)
    count = (end_year - start_year) * 12 + (end_mon - start_mon) + 1
    return max(count, 0)


def month_range(start: str, end: str) -> List[str]:
    """All month keys from ``start`` to ``end`` inclusive."""
    return [offset_month(start, i) for i in range(months_between(start, end))]


def current_month() -> str:
    return parse_month(date.today())


def month_to_date(month: str) -> date:
    """First day of the month."""
    year, mon = _split(month)
    return date(year, mon, 1)


def month_to_iso(month: str) -> str:
    return month_to_date(month).isoformat()


def iso_to_month(value: str) -> str:
    """Convert an ISO date or datetime string to a month key."""
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (TypeError, ValueError) as e:
        raise InvalidMonthFormatError(f"Invalid ISO date: {value!r}") from e
    return parse_month(parsed)


class Period(BaseModel):
    """Inclusive range of months."""

    model_config = ConfigDict(frozen=True)

    start_month: YYYYMM = Field(..., description="First month of the period")
    end_month: YYYYMM = Field(..., description="Last month of the period (inclusive)")

    @model_validator(mode="after")
    def validate_order(self):
        if self.start_month > self.end_month:
            raise InvalidPeriodError(
                f"Period start {self.start_month} is after end {self.end_month}"
            )
        return self

    @classmethod
    def create(cls, start_month: str, end_month: str) -> "Period":
        """
        Build a period, raising engine errors instead of ValidationError.

        Raises:
            InvalidMonthFormatError: If either bound is malformed
            InvalidPeriodError: If start is after end
        """
        start_month = parse_month(start_month)
        end_month = parse_month(end_month)
        if start_month > end_month:
            raise InvalidPeriodError(
                f"Period start {start_month} is after end {end_month}"
            )
        return cls(start_month=start_month, end_month=end_month)

    @property
    def length(self) -> int:
        return months_between(self.start_month, self.end_month)

    def months(self) -> List[str]:
        return month_range(self.start_month, self.end_month)

    def contains(self, month: str) -> bool:
        return self.start_month <= validate_month(month) <= self.end_month


def default_period(months: int = 24, start: Optional[str] = None) -> Period:
    """Period of ``months`` months beginning at ``start`` (default: this month)."""
    if months < 1:
        raise InvalidPeriodError("A period must span at least one month")
    start = parse_month(start) if start is not None else current_month()
    return Period(start_month=start, end_month=offset_month(start, months - 1))
