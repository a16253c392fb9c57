"""Domain models for runway projections."""

from .money import Money
from .months import (
    YYYYMM,
    Period,
    current_month,
    default_period,
    is_valid_month,
    month_range,
    months_between,
    offset_month,
    parse_month,
)
from .expense import (
    CapitalExpense,
    Expense,
    OneTimeExpense,
    RecurringExpense,
    ScheduleEntry,
    capital_expense,
    one_time_expense,
    parse_expense,
    recurring_expense,
)
from .expense_breakdown import ExpenseBreakdown, ExpenseSummary
from .funding import (
    AmortizationEntry,
    ConvertibleTerms,
    DebtFunding,
    DebtTerms,
    EquityFunding,
    FundingEvent,
    GrantFunding,
    InstallmentEntry,
    debt_funding,
    equity_funding,
    grant_funding,
    parse_funding,
)
from .funding_manager import FundingAlert, FundingManager, FundingSummary
from .revenue import MonthlyVolume, RevenueItem, RevenueStream, revenue_item
from .cashflow import BalanceSnapshot, Cashflow, CashflowTaxes, TaxConfig
from .business_model import BusinessModel, create_business_model
from .scenario import (
    FieldPath,
    ScenarioOverride,
    apply_overrides,
    compare_models,
)

__all__ = [
    "Money",
    "YYYYMM",
    "Period",
    "current_month",
    "default_period",
    "is_valid_month",
    "month_range",
    "months_between",
    "offset_month",
    "parse_month",
    "CapitalExpense",
    "Expense",
    "OneTimeExpense",
    "RecurringExpense",
    "ScheduleEntry",
    "capital_expense",
    "one_time_expense",
    "parse_expense",
    "recurring_expense",
    "ExpenseBreakdown",
    "ExpenseSummary",
    "AmortizationEntry",
    "ConvertibleTerms",
    "DebtFunding",
    "DebtTerms",
    "EquityFunding",
    "FundingEvent",
    "GrantFunding",
    "InstallmentEntry",
    "debt_funding",
    "equity_funding",
    "grant_funding",
    "parse_funding",
    "FundingAlert",
    "FundingManager",
    "FundingSummary",
    "MonthlyVolume",
    "RevenueItem",
    "RevenueStream",
    "revenue_item",
    "BalanceSnapshot",
    "Cashflow",
    "CashflowTaxes",
    "TaxConfig",
    "BusinessModel",
    "create_business_model",
    "FieldPath",
    "ScenarioOverride",
    "apply_overrides",
    "compare_models",
]
