"""
Runway planner.

Financial runway projection engine: monthly cashflow projections, runway and
burn metrics, taxes, EBITDA, net income and balance snapshots computed from a
business's revenue, expenses and funding.
"""

from .config import Settings, get_global_settings, get_settings
from .errors import (
    CurrencyMismatchError,
    EmptyProjectionError,
    EntityNotFoundError,
    InvalidMonthFormatError,
    InvalidOverridePathError,
    InvalidPeriodError,
    MonthNotFoundError,
    RunwayError,
)
from .logging_config import configure_logging
from .models import BusinessModel, Money, Period, create_business_model
from .services import ProjectionEngine, RunwayService

__all__ = [
    "Settings",
    "get_settings",
    "get_global_settings",
    "configure_logging",
    "RunwayError",
    "InvalidMonthFormatError",
    "CurrencyMismatchError",
    "EntityNotFoundError",
    "InvalidPeriodError",
    "EmptyProjectionError",
    "MonthNotFoundError",
    "InvalidOverridePathError",
    "BusinessModel",
    "Money",
    "Period",
    "create_business_model",
    "ProjectionEngine",
    "RunwayService",
]
