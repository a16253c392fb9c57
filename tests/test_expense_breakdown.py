"""
Tests for ExpenseBreakdown: CRUD, aggregates, cache freshness and period
reconciliation.
"""

import pytest

from runway.errors import (
    CurrencyMismatchError,
    EntityNotFoundError,
    InvalidMonthFormatError,
    InvalidPeriodError,
)
from runway.models import (
    CapitalExpense,
    ExpenseBreakdown,
    OneTimeExpense,
    Period,
    RecurringExpense,
    one_time_expense,
)


def assert_cache_fresh(breakdown):
    """The cached summary must equal a fold over a brand new breakdown."""
    rebuilt = ExpenseBreakdown(
        currency=breakdown.currency,
        period=breakdown.period,
        expenses=tuple(breakdown.get_all()),
    )
    assert breakdown.cache == breakdown.summarize()
    assert breakdown.cache == rebuilt.summarize()


class TestExpenseBreakdownCrud:
    """Test cases for adding, updating and removing items."""

    def test_add_and_lookup(self, breakdown):
        """Test items can be found by id."""
        assert len(breakdown) == 3
        assert breakdown.has_expense("rent")
        assert breakdown.does_exist("laptop")
        assert isinstance(breakdown.get_by_id("server"), CapitalExpense)
        assert breakdown.get_by_id("missing") is None

    def test_add_rejects_other_currency(self, breakdown):
        """Test the single-currency invariant."""
        with pytest.raises(CurrencyMismatchError):
            breakdown.add(one_time_expense("Trip", 100, "2025-05", currency="USD"))

    def test_add_rejects_duplicate_id(self, breakdown):
        """Test ids are unique."""
        with pytest.raises(ValueError, match="already exists"):
            breakdown.add_one_time("Another laptop", 100, "2025-05", id="laptop")

    def test_remove_unknown_id(self, breakdown):
        """Test removing a missing id raises EntityNotFoundError."""
        with pytest.raises(EntityNotFoundError, match="ghost"):
            breakdown.remove("ghost")

    def test_update_unknown_id(self, breakdown):
        """Test updating a missing id raises EntityNotFoundError."""
        with pytest.raises(EntityNotFoundError):
            breakdown.update(one_time_expense("Ghost", 1, "2025-01", id="ghost"))

    def test_update_replaces_whole_item(self, breakdown, php):
        """Test update swaps the item with the same id."""
        laptop = breakdown.get_by_id("laptop")
        breakdown.update(laptop.with_amount(php(6000)))
        assert breakdown.get_by_id("laptop").amount == php(6000)
        assert len(breakdown) == 3

    def test_mutators_return_self(self, breakdown):
        """Test fluent chaining."""
        assert breakdown.remove("laptop").clear() is breakdown
        assert len(breakdown) == 0


class TestExpenseBreakdownQueries:
    """Test cases for filters and folds."""

    def test_monthly_cash_out_vs_expense(self, breakdown, php):
        """Test capital items differ between cash-out and recognized expense."""
        assert breakdown.get_monthly_cash_out("2025-02") == php(13000)
        assert breakdown.get_monthly_expense("2025-02") == php(2000)
        assert breakdown.total_expenses_for_month("2025-03") == php(6000)

    def test_invalid_month(self, breakdown):
        """Test per-month queries validate the month key."""
        with pytest.raises(InvalidMonthFormatError):
            breakdown.get_monthly_cash_out("2025/02")

    def test_net_assets(self, breakdown, php):
        """Test NBV of capital items."""
        assert breakdown.get_net_assets_up_to("2025-01").is_zero()
        assert breakdown.get_net_assets_up_to("2025-07") == php(6000)

    def test_totals(self, breakdown, php):
        """Test nominal and period totals."""
        assert breakdown.total_expenses() == php(18000)
        assert breakdown.get_total_recurring() == php(1000)
        assert breakdown.get_total_one_time() == php(5000)
        assert breakdown.get_total_capital() == php(12000)
        assert breakdown.get_total_cash_out_across_period() == php(29000)
        assert breakdown.get_total_expense_across_period() == php(28000)
        assert breakdown.get_average_monthly_expense() == php(28000).divide(12)

    def test_filters(self, breakdown):
        """Test variant and attribute filters."""
        assert [e.id for e in breakdown.get_recurring()] == ["rent"]
        assert [e.id for e in breakdown.get_capital()] == ["server"]
        assert [e.id for e in breakdown.get_one_time_for_month("2025-03")] == ["laptop"]
        assert [e.id for e in breakdown.get_by_recurrence("monthly")] == ["rent"]
        assert set(breakdown.group_by_type()) == {"recurring", "one_time", "capital"}

    def test_top_expenses(self, breakdown):
        """Test ranking by amount and by a month's cash-out."""
        assert [e.id for e in breakdown.get_top_expenses(2)] == ["server", "laptop"]
        top = breakdown.get_top_expenses(1, by="cash_out", month="2025-03")
        assert [e.id for e in top] == ["laptop"]
        with pytest.raises(ValueError, match="month is required"):
            breakdown.get_top_expenses(1, by="cash_out")

    def test_sort(self, breakdown):
        """Test sorting reorders the items."""
        breakdown.sort(by="amount", descending=True)
        assert [e.id for e in breakdown.get_all()] == ["server", "laptop", "rent"]

    def test_monthly_cashflow(self, breakdown, php):
        """Test the cash-out series."""
        series = breakdown.monthly_cashflow(3)
        assert [entry.month for entry in series] == ["2025-01", "2025-02", "2025-03"]
        assert [entry.amount for entry in series] == [php(1000), php(13000), php(6000)]

    def test_expenses_for_year(self, breakdown):
        """Test items with cash-out in a given year."""
        assert {e.id for e in breakdown.get_expenses_for_year(2025)} == {"rent", "laptop", "server"}
        assert breakdown.get_expenses_for_year(2027) == []

    def test_category_and_amount_filters(self, breakdown, php):
        """Test grouping by category and filtering by amount."""
        assert [e.id for e in breakdown.get_by_category("operating")] == ["rent", "laptop"]
        assert set(breakdown.group_by_category()) == {"operating", "capital"}
        assert [e.id for e in breakdown.get_by_amount_range(php(2000), php(6000))] == ["laptop"]
        assert [e.id for e in breakdown.get_by_amount_range(php(5000))] == ["laptop", "server"]

    def test_monthly_summary(self, breakdown, php):
        """Test per-month cash-out, expense and deductible rows."""
        rows = breakdown.monthly_summary(2)
        assert rows[1] == {
            "month": "2025-02",
            "cash_out": php(13000),
            "expense": php(2000),
            "deductible": php(2000),
        }


class TestExpenseBreakdownCache:
    """Test cases for the summary cache."""

    def test_cache_is_idempotent(self, breakdown):
        """Test reading the cache twice without mutation returns the same values."""
        first = breakdown.cache
        second = breakdown.cache
        assert first is second
        assert first == breakdown.summarize()

    def test_cache_fresh_after_every_mutation(self, breakdown, php):
        """Test the cache never goes stale."""
        assert_cache_fresh(breakdown)
        breakdown.add_one_time("Desk", 700, "2025-05", id="desk")
        assert_cache_fresh(breakdown)
        breakdown.update(breakdown.get_by_id("desk").with_amount(php(900)))
        assert_cache_fresh(breakdown)
        breakdown.remove("laptop")
        assert_cache_fresh(breakdown)
        breakdown.set_period(Period(start_month="2025-03", end_month="2025-12"))
        assert_cache_fresh(breakdown)
        breakdown.merge(ExpenseBreakdown(currency="PHP", period=breakdown.period).add_one_time("Chair", 200, "2025-06"))
        assert_cache_fresh(breakdown)
        breakdown.clear()
        assert_cache_fresh(breakdown)
        assert breakdown.cache.total_expenses.is_zero()

    def test_direct_reassignment_invalidates(self, breakdown):
        """Test the cache tracks the items it was computed from."""
        assert breakdown.cache.total_expenses.minor_units > 0
        breakdown.expenses = ()
        assert breakdown.cache.total_expenses.is_zero()


class TestExpenseBreakdownPeriod:
    """Test cases for period reconciliation."""

    def test_set_period_drops_and_regenerates(self, breakdown):
        """Test one-time/capital items outside the period are dropped."""
        new_period = Period(start_month="2025-04", end_month="2025-12")
        breakdown.set_period(new_period)

        assert breakdown.period == new_period
        assert [e.id for e in breakdown.get_all()] == ["rent"]
        rent = breakdown.get_by_id("rent")
        assert rent.tick_months() == new_period.months()

    def test_reconciliation_properties(self, breakdown):
        """Test every remaining item fits the new period."""
        new_period = Period(start_month="2025-02", end_month="2025-06")
        breakdown.set_period(new_period)
        for item in breakdown.get_all():
            if isinstance(item, RecurringExpense):
                assert item.tick_months()[0] == new_period.start_month
                assert item.tick_months() == new_period.months()
            else:
                assert new_period.contains(item.purchase_month)
        assert {e.id for e in breakdown.get_all()} == {"rent", "laptop", "server"}

    def test_update_period(self, breakdown):
        """Test partial period updates."""
        breakdown.update_period(end_month="2025-02")
        assert breakdown.period == Period(start_month="2025-01", end_month="2025-02")
        assert not breakdown.has_expense("laptop")
        assert breakdown.has_expense("server")

    def test_update_period_invalid(self, breakdown):
        """Test period updates that violate start <= end."""
        with pytest.raises(InvalidPeriodError):
            breakdown.update_period(start_month="2026-01")
        with pytest.raises(InvalidMonthFormatError):
            breakdown.update_period(start_month="2025-13")
        assert len(breakdown) == 3


class TestExpenseBreakdownSerialization:
    """Test cases for JSON round trips."""

    def test_round_trip_dict(self, breakdown):
        """Test to_json/parse_from_json preserves every item."""
        restored = ExpenseBreakdown.parse_from_json(breakdown.to_json())
        assert restored.currency == breakdown.currency
        assert restored.period == breakdown.period
        assert restored.get_all() == breakdown.get_all()
        assert isinstance(restored.get_by_id("laptop"), OneTimeExpense)

    def test_round_trip_string(self, breakdown):
        """Test parsing from a JSON string."""
        restored = ExpenseBreakdown.parse_from_json(breakdown.model_dump_json())
        assert restored.get_all() == breakdown.get_all()
        assert restored.cache == breakdown.cache

    def test_clone_is_independent(self, breakdown):
        """Test clones do not share mutations."""
        copy = breakdown.clone()
        copy.remove("rent")
        assert breakdown.has_expense("rent")
        assert breakdown.validate_currency_consistency()
