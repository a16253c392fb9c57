"""
Projection engine.

Stateless functions that turn a BusinessModel into an ordered list of monthly
Cashflow records and fold those records into runway, tax, EBITDA, net income
and balance-sheet figures.

Cashflow rules:

- cash in = revenue for the month + funding received that month
- cash out = expense cash-out for the month (capital items at full cost)
- ending cash = previous ending cash + net, starting from the model's cash

Taxes are informational. When requested they are attached to each record but
do not change cash in or cash out. Income tax is applied to
``revenue - expense - vat - percentage tax`` without a loss floor, so a loss
month yields a negative income tax unless ``floor_income_tax`` is enabled.
"""

import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Optional

from ..config import Settings, get_global_settings
from ..errors import EmptyProjectionError, MonthNotFoundError
from ..models.business_model import BusinessModel
from ..models.cashflow import BalanceSnapshot, Cashflow, CashflowTaxes
from ..models.funding import FundingBase
from ..models.money import Money
from ..models.months import offset_month, parse_month, validate_month
from ..models.scenario import apply_overrides

logger = logging.getLogger(__name__)


class ProjectionEngine:
    """Pure cashflow projection and aggregation functions."""

    @staticmethod
    def calculate_taxes(
        model: BusinessModel, month: str, floor_income_tax: Optional[bool] = None
    ) -> CashflowTaxes:
        """
        Taxes for a single month.

        Args:
            model: Business model providing revenue, expenses and tax config
            month: Month key
            floor_income_tax: Clamp negative income tax to zero; defaults to
                the ``floor_income_tax`` setting

        Returns:
            VAT, percentage tax and income tax for the month
        """
        if floor_income_tax is None:
            floor_income_tax = get_global_settings().floor_income_tax
        config = model.tax_config
        zero = Money.zero(model.currency)
        revenue = model.revenue_for_month(month)
        expense = model.expenses.get_monthly_cash_out(month)

        if config.vat_mode == "vat":
            vat = revenue.apply_percentage(config.vat_rate)
            percentage_tax = zero
        else:
            vat = zero
            percentage_tax = revenue.apply_percentage(config.percentage_tax_rate)

        taxable = revenue - expense - vat - percentage_tax
        income_tax = taxable.apply_percentage(config.income_tax_rate)
        if floor_income_tax:
            income_tax = income_tax.max(zero)
        return CashflowTaxes(vat=vat, percentage_tax=percentage_tax, income_tax=income_tax)

    @staticmethod
    def generate_monthly_cashflow(
        model: BusinessModel,
        months: int,
        start_month: Optional[str] = None,
        include_taxes: bool = False,
        floor_income_tax: Optional[bool] = None,
    ) -> List[Cashflow]:
        """
        Project month-by-month cashflow.

        Args:
            model: Business model to project
            months: Number of months to project
            start_month: First projected month; defaults to the model period start
            include_taxes: Attach a tax breakdown to every record
            floor_income_tax: Clamp negative income tax to zero; defaults to
                the ``floor_income_tax`` setting

        Returns:
            Ordered cashflow records
        """
        if months < 0:
            raise ValueError("Number of months must be >= 0")
        start = parse_month(start_month) if start_month is not None else model.period.start_month

        cashflows: List[Cashflow] = []
        previous = model.money
        for i in range(months):
            month = offset_month(start, i)
            cash_in = model.revenue_for_month(month) + model.funding.total_funding_for_month(month)
            cash_out = model.expenses.get_monthly_cash_out(month)
            taxes = (
                ProjectionEngine.calculate_taxes(model, month, floor_income_tax)
                if include_taxes
                else None
            )
            cashflow = Cashflow.create(month, cash_in, cash_out, previous, taxes)
            cashflows.append(cashflow)
            previous = cashflow.ending_cash

        logger.info(f"Projected {months} months for model {model.id} starting {start}")
        return cashflows

    @staticmethod
    def project_funding(
        cashflows: List[Cashflow], events: Iterable[FundingBase]
    ) -> List[Cashflow]:
        """
        Add funding events to an existing projection.

        The ending-cash chain is rebuilt from the first record forward so the
        result still satisfies ``ending[i] == ending[i-1] + net[i]``.
        """
        if not cashflows:
            return []
        buckets: Dict[str, Money] = defaultdict(lambda: Money.zero(cashflows[0].currency))
        for event in events:
            buckets[event.month] = buckets[event.month] + event.amount

        previous = cashflows[0].previous_ending_cash
        projected = []
        for cashflow in cashflows:
            updated = cashflow.update_cash(
                cash_in=cashflow.cash_in + buckets.get(cashflow.month, Money.zero(cashflow.currency)),
                previous_ending_cash=previous,
            )
            projected.append(updated)
            previous = updated.ending_cash
        return projected

    @staticmethod
    def calculate_runway(cashflows: List[Cashflow]) -> int:
        """Index of the first month with ending cash <= 0, or the length if never."""
        for index, cashflow in enumerate(cashflows):
            if not cashflow.ending_cash.is_positive():
                return index
        return len(cashflows)

    @staticmethod
    def simulate_scenario(
        model: BusinessModel,
        overrides: Iterable,
        months: Optional[int] = None,
        start_month: Optional[str] = None,
        include_taxes: bool = False,
        settings: Optional[Settings] = None,
        floor_income_tax: Optional[bool] = None,
    ) -> List[Cashflow]:
        """
        Project a copy of ``model`` with field overrides applied.

        Args:
            model: Baseline model; never modified
            overrides: ScenarioOverride objects or ``{"field": "a.b", "value": v}`` dicts
            months: Months to project; defaults to the scenario setting
            start_month: First projected month
            include_taxes: Attach taxes to every record
            settings: Settings for the defaults; the global settings when omitted
            floor_income_tax: Clamp negative income tax to zero; defaults to
                the ``floor_income_tax`` of ``settings``

        Returns:
            Cashflow records of the overridden copy
        """
        settings = settings or get_global_settings()
        months = months if months is not None else settings.scenario_projection_months
        if floor_income_tax is None:
            floor_income_tax = settings.floor_income_tax
        overrides = list(overrides)
        scenario = apply_overrides(model, overrides)
        logger.info(f"Simulating scenario on model {model.id} with {len(overrides)} overrides")
        return ProjectionEngine.generate_monthly_cashflow(
            scenario, months, start_month, include_taxes, floor_income_tax
        )

    @staticmethod
    def _require_cashflows(cashflows: List[Cashflow]) -> None:
        if not cashflows:
            raise EmptyProjectionError("Cashflow projection is empty")

    @staticmethod
    def get_total_taxes_across_period(cashflows: List[Cashflow]) -> CashflowTaxes:
        ProjectionEngine._require_cashflows(cashflows)
        total = CashflowTaxes.zero(cashflows[0].currency)
        for cashflow in cashflows:
            if cashflow.taxes is not None:
                total = total.add(cashflow.taxes)
        return total

    @staticmethod
    def get_taxes_for_month(cashflows: List[Cashflow], month: str) -> CashflowTaxes:
        """Taxes of ``month``; zeros when the record carries no tax breakdown."""
        ProjectionEngine._require_cashflows(cashflows)
        cashflow = ProjectionEngine._find_month(cashflows, month)
        return cashflow.taxes or CashflowTaxes.zero(cashflow.currency)

    @staticmethod
    def get_ebitda_across_period(model: BusinessModel, cashflows: List[Cashflow]) -> Money:
        ProjectionEngine._require_cashflows(cashflows)
        return Money.sum_of(
            (
                model.revenue_for_month(cf.month) - model.expenses.get_monthly_cash_out(cf.month)
                for cf in cashflows
            ),
            model.currency,
        )

    @staticmethod
    def get_net_income_across_period(model: BusinessModel, cashflows: List[Cashflow]) -> Money:
        """EBITDA less VAT, percentage tax and income tax of each record."""
        ProjectionEngine._require_cashflows(cashflows)
        total = Money.zero(model.currency)
        for cf in cashflows:
            taxes = cf.taxes or CashflowTaxes.zero(model.currency)
            revenue = model.revenue_for_month(cf.month)
            expense = model.expenses.get_monthly_cash_out(cf.month)
            total = total + (revenue - expense - taxes.total)
        return total

    @staticmethod
    def _find_month(cashflows: List[Cashflow], month: str) -> Cashflow:
        validate_month(month)
        for cashflow in cashflows:
            if cashflow.month == month:
                return cashflow
        raise MonthNotFoundError(f"No cashflow found for month {month}")

    @staticmethod
    def generate_balance_snapshot(
        model: BusinessModel, month: str, cashflows: List[Cashflow]
    ) -> BalanceSnapshot:
        """
        Balance sheet at the end of ``month``.

        Raises:
            EmptyProjectionError: If ``cashflows`` is empty
            MonthNotFoundError: If no record exists for ``month``
        """
        ProjectionEngine._require_cashflows(cashflows)
        cashflow = ProjectionEngine._find_month(cashflows, month)
        cash = cashflow.ending_cash
        assets_net = model.expenses.get_net_assets_up_to(month)
        liabilities = model.funding.get_outstanding_debt_up_to(month)
        retained = Money.sum_of((cf.net for cf in cashflows if cf.month <= month), model.currency)
        return BalanceSnapshot(
            month=month,
            cash=cash,
            assets_net=assets_net,
            liabilities=liabilities,
            equity=assets_net + cash - liabilities,
            debt_outstanding=liabilities,
            retained_earnings=retained,
        )
