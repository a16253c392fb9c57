"""
Business model aggregate.

BusinessModel bundles everything the projection engine needs: starting cash,
revenue, expenses, funding, tax configuration and the planning period. All
parts must share a single currency.
"""

import json
from typing import Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, Field, model_validator

from ..config import Settings, get_global_settings
from ..errors import CurrencyMismatchError
from .cashflow import TaxConfig
from .expense import as_money, autogenerate_id
from .expense_breakdown import ExpenseBreakdown
from .funding_manager import FundingManager
from .money import Money, Number
from .months import Period, default_period
from .revenue import RevenueStream

BusinessType = Literal["product", "service", "subscription", "hybrid"]


class BusinessModel(BaseModel):
    """Inputs of a runway projection."""

    id: str = Field(default_factory=lambda: autogenerate_id("biz"))
    name: str = Field(default="Untitled business", min_length=1)
    type: BusinessType = Field(default="hybrid")
    money: Money = Field(..., description="Cash on hand at the start of the period")
    period: Period
    expenses: ExpenseBreakdown
    revenues: RevenueStream
    funding: FundingManager
    tax_config: TaxConfig = Field(default_factory=TaxConfig)

    @model_validator(mode="after")
    def validate_currency(self):
        currency = self.money.currency_code
        for part, part_currency in (
            ("expenses", self.expenses.currency),
            ("revenues", self.revenues.currency),
            ("funding", self.funding.currency),
        ):
            if part_currency != currency:
                raise CurrencyMismatchError(
                    f"Business model {part} use {part_currency}, starting cash uses {currency}"
                )
        return self

    @property
    def currency(self) -> str:
        return self.money.currency_code

    def revenue_for_month(self, month: str) -> Money:
        return self.revenues.get_monthly_revenue(month)

    def clone(self) -> "BusinessModel":
        """Independent deep copy."""
        return self.model_copy(deep=True)

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")

    @classmethod
    def parse_from_json(cls, data: Union[str, Dict[str, Any]]) -> "BusinessModel":
        if isinstance(data, str):
            data = json.loads(data)
        payload = dict(data)
        payload["expenses"] = ExpenseBreakdown.parse_from_json(payload["expenses"])
        payload["funding"] = FundingManager.parse_from_json(payload["funding"])
        payload["revenues"] = RevenueStream.parse_from_json(payload["revenues"])
        return cls.model_validate(payload)


def create_business_model(
    name: str = "Untitled business",
    starting_cash: Union[Money, Number] = 0,
    currency: Optional[str] = None,
    period: Optional[Period] = None,
    type: BusinessType = "hybrid",
    tax_config: Optional[TaxConfig] = None,
    settings: Optional[Settings] = None,
) -> BusinessModel:
    """
    Create an empty business model with default collections.

    Defaults come from settings: the configured currency, a period of the
    configured length starting this month, and a non-VAT regime with zero rates.
    """
    settings = settings or get_global_settings()
    currency = (currency or settings.default_currency).upper()
    period = period or default_period(settings.default_period_months)
    return BusinessModel(
        name=name,
        type=type,
        money=as_money(starting_cash, currency),
        period=period,
        expenses=ExpenseBreakdown(currency=currency, period=period),
        revenues=RevenueStream(currency=currency, period=period),
        funding=FundingManager(currency=currency, period=period),
        tax_config=tax_config or TaxConfig(),
    )
