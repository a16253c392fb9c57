"""
Tests for funding events and debt amortization.
"""

from datetime import date

import pytest
from pydantic import ValidationError

from runway.models import (
    DebtFunding,
    EquityFunding,
    GrantFunding,
    Money,
    debt_funding,
    equity_funding,
    grant_funding,
    parse_funding,
)


def closing_balances(debt):
    return [entry.closing_balance.to_major() for entry in debt.amortization_schedule()]


class TestEquityAndGrant:
    """Test cases for non-repayable funding."""

    def test_cash_in_month(self, php):
        """Test funding arrives in its own month."""
        event = equity_funding("Seed", 100000, "2025-01")
        assert event.cash_in_for_month("2025-01") == php(100000)
        assert event.cash_in_for_month("2025-02").is_zero()
        assert not event.is_repayable
        assert event.outstanding_balance_at("2025-06").is_zero()

    def test_amount_must_be_positive(self):
        """Test zero or negative funding is rejected."""
        with pytest.raises(ValidationError, match="must be positive"):
            grant_funding("Grant", 0, "2025-01")

    def test_immutable_helpers(self, php):
        """Test rename, reschedule and with_amount return new events."""
        event = grant_funding("Grant", 5000, "2025-01", id="g1")
        renamed = event.rename("Innovation grant")
        moved = event.reschedule("2025-04")
        bigger = event.with_amount(php(8000))
        assert event.name == "Grant" and renamed.name == "Innovation grant"
        assert moved.month == "2025-04" and moved.id == "g1"
        assert bigger.amount == php(8000)
        with pytest.raises(ValidationError):
            event.reschedule("April")


class TestDebtSchedule:
    """Test cases for debt amortization."""

    def test_zero_interest_even_repayment(self):
        """Test the balance is spread evenly until maturity."""
        debt = debt_funding("Loan", 4000, "2025-01", "2025-05")
        assert closing_balances(debt) == [4000, 3000, 2000, 1000, 0]
        assert debt.outstanding_balance_at("2025-03") == Money.from_major(2000, "PHP")
        assert debt.outstanding_balance_at("2024-12").is_zero()
        assert debt.outstanding_balance_at("2026-01").is_zero()

    def test_initial_payment_reduces_balance_immediately(self, php):
        """Test the initial payment is applied in the disbursement month."""
        debt = debt_funding("Loan", 5000, "2025-01", "2025-05", initial_payment=1000)
        assert debt.outstanding_balance_at("2025-01") == php(4000)
        assert closing_balances(debt) == [4000, 3000, 2000, 1000, 0]

    def test_grace_period(self):
        """Test no payments are made during the grace period."""
        debt = debt_funding("Loan", 3000, "2025-01", "2025-06", grace_period_months=2)
        assert closing_balances(debt) == [3000, 3000, 3000, 2000, 1000, 0]

    def test_simple_interest(self, php):
        """Test simple monthly interest on the remaining principal."""
        debt = debt_funding("Loan", 12000, "2025-01", "2025-03", interest_rate=0.12)
        schedule = debt.amortization_schedule()
        assert schedule[0].interest.is_zero()
        assert schedule[1].interest == php(120)
        assert schedule[1].payment == php(6060)
        assert schedule[2].interest == php("60.60")
        assert schedule[2].closing_balance.is_zero()
        assert debt.total_interest() == php("180.60")
        assert debt.total_repaid() == php("12180.60")

    def test_quarterly_compounding(self, php):
        """Test interest is charged every third month after the grace period."""
        debt = debt_funding(
            "Loan", 12000, "2025-01", "2025-04", interest_rate=0.12, compounding="quarterly"
        )
        schedule = debt.amortization_schedule()
        assert [e.interest for e in schedule[:3]] == [php(0), php(0), php(0)]
        assert schedule[3].interest == php(120)
        assert schedule[3].payment == php(4120)
        assert debt.total_interest() == php(120)

    def test_installment_plan_overrides_computed_payment(self):
        """Test plan months use the planned amount."""
        debt = debt_funding(
            "Loan", 3000, "2025-01", "2025-04", installment_plan=[("2025-02", 500)]
        )
        assert closing_balances(debt) == [3000, 2500, 1250, 0]
        assert debt.debt_service_for_month("2025-02") == Money.from_major(500, "PHP")

    def test_balance_never_negative(self):
        """Test overpaying installments are capped at the balance."""
        debt = debt_funding(
            "Loan", 1000, "2025-01", "2025-03", installment_plan=[("2025-02", 5000)]
        )
        assert closing_balances(debt) == [1000, 0, 0]

    def test_maturity_accepts_date(self):
        """Test maturity can be given as a date."""
        debt = debt_funding("Loan", 1000, "2025-01", date(2025, 3, 31))
        assert debt.maturity_month == "2025-03"


class TestDebtValidation:
    """Test cases for debt term validation."""

    def test_maturity_after_disbursement(self):
        """Test maturity must come after the disbursement month."""
        with pytest.raises(ValidationError, match="maturity must be after"):
            debt_funding("Loan", 1000, "2025-05", "2025-05")

    def test_grace_period_before_maturity(self):
        """Test the grace period leaves at least one repayment month."""
        with pytest.raises(ValidationError, match="Grace period"):
            debt_funding("Loan", 1000, "2025-01", "2025-03", grace_period_months=2)

    def test_installment_outside_term(self):
        """Test installments must fall within the loan term."""
        with pytest.raises(ValidationError, match="Installment month"):
            debt_funding("Loan", 1000, "2025-01", "2025-03", installment_plan=[("2025-06", 100)])

    def test_negative_rate(self):
        """Test interest rate must be >= 0."""
        with pytest.raises(ValidationError):
            debt_funding("Loan", 1000, "2025-01", "2025-03", interest_rate=-0.1)


class TestInterestHelpers:
    """Test cases for interest calculations."""

    def test_simple_interest(self, php):
        """Test simple interest over a year."""
        debt = debt_funding("Loan", 12000, "2025-01", "2026-01", interest_rate=0.12)
        assert debt.compute_simple_interest(12) == php(1440)
        assert debt.compute_compound_interest(12) == php(1440)

    def test_compound_interest(self, php):
        """Test monthly compounding over a year."""
        debt = debt_funding(
            "Loan", 12000, "2025-01", "2026-01", interest_rate=0.12, compounding="monthly"
        )
        assert debt.compute_compound_interest(12) == php("1521.90")
        assert debt.total_with_interest(12, compound=False) == php(13440)

    def test_monthly_payment(self):
        """Test the level payment formula."""
        payment = DebtFunding.monthly_payment(Money.from_major(300000, "USD"), 360, 0.06)
        assert payment == Money.from_major("1798.65", "USD")
        flat = DebtFunding.monthly_payment(Money.from_major(1200, "USD"), 12, 0.0)
        assert flat == Money.from_major(100, "USD")


class TestFundingSerialization:
    """Test cases for parsing funding events."""

    def test_round_trip_each_variant(self):
        """Test parse_funding restores the right variant."""
        events = [
            equity_funding("Seed", 100000, "2025-01"),
            grant_funding("Grant", 20000, "2025-03"),
            debt_funding(
                "Loan",
                80000,
                "2025-02",
                "2026-02",
                interest_rate=0.08,
                compounding="quarterly",
                grace_period_months=3,
                initial_payment=5000,
                installment_plan=[("2025-09", 10000)],
            ),
        ]
        for event in events:
            parsed = parse_funding(event.to_json())
            assert type(parsed) is type(event)
            assert parsed == event

    def test_variant_classes(self):
        """Test factories build the expected classes."""
        assert isinstance(equity_funding("Seed", 1, "2025-01"), EquityFunding)
        assert isinstance(grant_funding("Grant", 1, "2025-01"), GrantFunding)
        assert debt_funding("Loan", 1, "2025-01", "2025-02").is_repayable
