"""
Runway service.

Facade over a BusinessModel and the ProjectionEngine that answers the
questions a dashboard asks: how long the cash lasts, how fast it burns, when
the business breaks even, and whether the overall picture is healthy.
"""

import logging
from typing import Any, Dict, Iterable, List, Literal, Optional

from pydantic import BaseModel

from ..config import Settings, get_global_settings
from ..models.business_model import BusinessModel
from ..models.cashflow import BalanceSnapshot, Cashflow, CashflowTaxes
from ..models.funding import FundingBase
from ..models.money import Money
from ..models.months import current_month, offset_month
from .projection_engine import ProjectionEngine

logger = logging.getLogger(__name__)

HealthSeverity = Literal["healthy", "warning", "critical"]

_SEVERITY_RANK = {"healthy": 0, "warning": 1, "critical": 2}


class RunwayHealth(BaseModel):
    """Overall runway assessment with the reasons behind it."""

    status: HealthSeverity
    reasons: List[str]


class RunwayService:
    """Runway metrics for one business model."""

    def __init__(self, model: BusinessModel, settings: Optional[Settings] = None):
        self.model = model
        self.settings = settings or get_global_settings()
        self.logger = logging.getLogger(__name__)

    @property
    def period_months(self) -> int:
        return self.model.period.length

    # Projections

    def generate_monthly_cashflow(
        self,
        months: Optional[int] = None,
        start_month: Optional[str] = None,
        planned_funding: Optional[Iterable[FundingBase]] = None,
        include_taxes: bool = False,
    ) -> List[Cashflow]:
        """
        Project cashflow, optionally layering extra planned funding on top.

        Args:
            months: Months to project; defaults to the projection setting
            start_month: First month; defaults to the model period start
            planned_funding: Funding events not yet recorded in the model
            include_taxes: Attach taxes to every record

        Returns:
            Ordered cashflow records
        """
        months = months if months is not None else self.settings.default_projection_months
        try:
            cashflows = ProjectionEngine.generate_monthly_cashflow(
                self.model,
                months,
                start_month,
                include_taxes,
                self.settings.floor_income_tax,
            )
            planned = list(planned_funding or [])
            if planned:
                cashflows = ProjectionEngine.project_funding(cashflows, planned)
            return cashflows
        except Exception as e:
            self.logger.error(f"Cashflow projection for model {self.model.id} failed: {str(e)}")
            raise

    def project_cashflows(
        self, include_taxes: bool = False, planned_funding: Optional[Iterable[FundingBase]] = None
    ) -> List[Cashflow]:
        """Projection across the whole model period."""
        return self.generate_monthly_cashflow(
            self.period_months, self.model.period.start_month, planned_funding, include_taxes
        )

    def calculate_runway(self, cashflows: Optional[List[Cashflow]] = None) -> int:
        if cashflows is None:
            cashflows = self.generate_monthly_cashflow()
        return ProjectionEngine.calculate_runway(cashflows)

    def project_runway(
        self, planned_funding: Optional[Iterable[FundingBase]] = None, include_taxes: bool = False
    ) -> int:
        return ProjectionEngine.calculate_runway(self.project_cashflows(include_taxes, planned_funding))

    def get_runway_remaining_months(
        self, planned_funding: Optional[Iterable[FundingBase]] = None
    ) -> int:
        """Runway in months across the model period."""
        return self.project_runway(planned_funding)

    def simulate_scenario(self, overrides: Iterable, months: Optional[int] = None) -> List[Cashflow]:
        return ProjectionEngine.simulate_scenario(
            self.model, overrides, months, settings=self.settings
        )

    # Burn and break-even

    def get_average_net_monthly_burn(self) -> Money:
        """Mean of cash out minus cash in over the model period."""
        cashflows = self.project_cashflows()
        if not cashflows:
            return Money.zero(self.model.currency)
        burn = Money.sum_of((cf.cash_out - cf.cash_in for cf in cashflows), self.model.currency)
        return burn.divide(len(cashflows))

    def get_break_even_month(self) -> Optional[str]:
        """First month whose net cashflow is not negative."""
        for cashflow in self.project_cashflows():
            if not cashflow.net.is_negative():
                return cashflow.month
        return None

    def get_burn_efficiency(self) -> Optional[float]:
        """Cash in relative to gross burn; None when nothing is burned."""
        currency = self.model.currency
        cash_in = Money.zero(currency)
        burn = Money.zero(currency)
        for cashflow in self.project_cashflows():
            cash_in = cash_in + cashflow.cash_in
            net_burn = cashflow.cash_out - cashflow.cash_in
            if net_burn.is_positive():
                burn = burn + net_burn
        if burn.is_zero():
            return None
        return cash_in.ratio(burn)

    def get_cash_out_date(self) -> Optional[str]:
        """First month the ending cash reaches zero or below."""
        for cashflow in self.project_cashflows():
            if not cashflow.ending_cash.is_positive():
                return cashflow.month
        return None

    def get_cash_on_hand_at(self, month: str) -> Money:
        return self.get_balance_snapshot(month).cash

    def get_projected_revenue_next_month(self) -> Money:
        return self.model.revenue_for_month(offset_month(current_month(), 1))

    # Reports

    def get_monthly_net_profit(self) -> List[Dict[str, Any]]:
        """Revenue less cash-out and taxes, per month of the period."""
        rows = []
        for cashflow in self.project_cashflows(include_taxes=True):
            revenue = self.model.revenue_for_month(cashflow.month)
            expense = self.model.expenses.get_monthly_cash_out(cashflow.month)
            taxes = cashflow.taxes or CashflowTaxes.zero(self.model.currency)
            rows.append({"month": cashflow.month, "net_profit": revenue - expense - taxes.total})
        return rows

    def get_total_taxes(self) -> CashflowTaxes:
        return ProjectionEngine.get_total_taxes_across_period(self.project_cashflows(include_taxes=True))

    def get_taxes_for_month(self, month: str) -> CashflowTaxes:
        return ProjectionEngine.get_taxes_for_month(self.project_cashflows(include_taxes=True), month)

    def get_ebitda(self) -> Money:
        return ProjectionEngine.get_ebitda_across_period(self.model, self.project_cashflows())

    def get_net_income(self) -> Money:
        return ProjectionEngine.get_net_income_across_period(
            self.model, self.project_cashflows(include_taxes=True)
        )

    def get_balance_snapshot(self, month: str) -> BalanceSnapshot:
        return ProjectionEngine.generate_balance_snapshot(self.model, month, self.project_cashflows())

    def get_expense_breakdown(self) -> Dict[str, Money]:
        summary = self.model.expenses.cache
        return {
            "recurring": summary.total_recurring,
            "one_time": summary.total_one_time,
            "capital": summary.total_capital,
        }

    # Health

    def get_runway_health(self) -> RunwayHealth:
        """
        Classify the runway as healthy, warning or critical.

        Critical: three months or less of runway, no revenue while expenses
        continue, or burning cash with six months or less left. Warning: runway
        between three and six months, declining revenue, low burn efficiency,
        or no break-even while burning.
        """
        reasons: List[str] = []
        severity: HealthSeverity = "healthy"

        def escalate(level: HealthSeverity, reason: str) -> None:
            nonlocal severity
            reasons.append(reason)
            if _SEVERITY_RANK[level] > _SEVERITY_RANK[severity]:
                severity = level

        runway = self.get_runway_remaining_months()
        burn = self.get_average_net_monthly_burn()
        growth = self.model.revenues.get_last_revenue_growth_mom()
        efficiency = self.get_burn_efficiency()
        break_even = self.get_break_even_month()
        avg_revenue = self.model.revenues.get_average_monthly_revenue()
        avg_expenses = self.model.expenses.cache.average_monthly_expense

        if runway <= 3:
            escalate("critical", "Less than 3 months of runway remaining")
        if avg_revenue.is_zero() and not avg_expenses.is_zero():
            escalate("critical", "No revenue while expenses are ongoing")
        if burn.is_positive() and runway <= 6:
            escalate("critical", "Burning cash with insufficient runway buffer")

        if 3 < runway <= 6:
            escalate("warning", "Runway is below 6 months")
        if growth is not None and growth < 0:
            escalate("warning", "Revenue is declining month-over-month")
            if runway <= 6:
                escalate("warning", "Declining revenue combined with limited runway")
        if efficiency is not None and efficiency < 0.5:
            escalate("warning", "Low burn efficiency relative to revenue generation")
        if break_even is None and burn.is_positive():
            escalate("warning", "No break-even point identified while burning cash")

        if burn.is_negative():
            escalate("healthy", "Business is cash-flow positive")
            if break_even is not None:
                escalate("healthy", "Business is profitable and break-even has been achieved")

        if not reasons:
            reasons.append("Runway, burn, and revenue metrics are within safe thresholds")

        self.logger.debug(f"Runway health for model {self.model.id}: {severity}")
        return RunwayHealth(status=severity, reasons=reasons)

    def get_dashboard_snapshot(self) -> Dict[str, Any]:
        """Every headline metric in one dictionary."""
        return {
            "runway_months": self.get_runway_remaining_months(),
            "cash_on_hand": self.model.money,
            "avg_net_burn": self.get_average_net_monthly_burn(),
            "next_month_revenue": self.get_projected_revenue_next_month(),
            "break_even_month": self.get_break_even_month(),
            "revenue_growth_rate_mom": self.model.revenues.get_last_revenue_growth_mom(),
            "revenue_growth_rate_cmgr": self.model.revenues.get_revenue_growth_rate_cmgr(),
            "burn_efficiency": self.get_burn_efficiency(),
            "cash_out_date": self.get_cash_out_date(),
            "runway_health": self.get_runway_health(),
            "funding": self.model.funding.dashboard_snapshot(),
            "tax": self.get_total_taxes(),
            "ebitda": self.get_ebitda(),
            "earnings_after_tax": self.get_net_income(),
        }
