"""
Exceptions raised by the runway projection engine.

Every error is raised at the point of violation; the engine never coerces bad
input silently. Each subclass also derives from the closest builtin so callers
that only know about ``ValueError``/``LookupError`` still catch them.
"""


class RunwayError(Exception):
    """Base exception for runway engine errors."""


class InvalidMonthFormatError(RunwayError, ValueError):
    """Raised when a month key is not in YYYY-MM form."""


class CurrencyMismatchError(RunwayError, ValueError):
    """Raised when two monetary values with different currencies are combined."""


class EntityNotFoundError(RunwayError, LookupError):
    """Raised when an update or removal targets an id that does not exist."""


class InvalidPeriodError(RunwayError, ValueError):
    """Raised when a period starts after it ends."""


class EmptyProjectionError(RunwayError, ValueError):
    """Raised when an aggregate is requested over an empty cashflow sequence."""


class MonthNotFoundError(RunwayError, LookupError):
    """Raised when a month is not present in a cashflow sequence."""


class InvalidOverridePathError(RunwayError, ValueError):
    """Raised when a scenario override path does not resolve against the model."""
