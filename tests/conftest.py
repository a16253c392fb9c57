"""
Pytest configuration and shared fixtures for the runway engine tests.
"""

import pytest

from runway.config import reset_global_settings
from runway.models import ExpenseBreakdown, FundingManager, Money, Period, create_business_model


@pytest.fixture(autouse=True)
def fresh_settings():
    """Make every test read settings from a clean global instance."""
    reset_global_settings()
    yield
    reset_global_settings()


@pytest.fixture
def period():
    """Calendar year 2025."""
    return Period(start_month="2025-01", end_month="2025-12")


@pytest.fixture
def php():
    """Shortcut for building PHP amounts from major units."""

    def _php(amount):
        return Money.from_major(amount, "PHP")

    return _php


@pytest.fixture
def breakdown(period):
    """Breakdown with one item of every expense variant."""
    expenses = ExpenseBreakdown(currency="PHP", period=period)
    expenses.add_recurring("Rent", 1000, id="rent")
    expenses.add_one_time("Laptop", 5000, "2025-03", id="laptop")
    expenses.add_capital("Server", 12000, "2025-02", depreciation_months=12, id="server")
    return expenses


@pytest.fixture
def funding(period):
    """Manager with equity, a grant and a zero-interest loan."""
    manager = FundingManager(currency="PHP", period=period)
    manager.add_equity("Seed round", 100000, "2025-01", id="seed")
    manager.add_grant("Startup grant", 20000, "2025-03", id="grant")
    manager.add_debt("Bank loan", 80000, "2025-02", "2025-05", id="loan")
    return manager


@pytest.fixture
def model(period):
    """Empty PHP business model over 2025 with 5,000 starting cash."""
    return create_business_model(
        name="Test Co", starting_cash=5000, currency="PHP", period=period
    )
