"""
Funding events: equity, debt and grants.

Every event brings its full amount in as cash in its own month. Debt events
additionally carry repayment terms from which a monthly amortization schedule
is generated:

- The disbursement month applies the optional initial payment.
- During the grace period no interest accrues and nothing is repaid.
- After the grace period interest accrues. With ``none`` compounding it is
  simple interest on the remaining principal each month; otherwise interest
  is charged on the full balance (principal plus unpaid interest) every 1, 3
  or 12 months for monthly, quarterly or annual compounding.
- Each month's payment is the installment-plan amount when the plan names
  that month, otherwise the remaining balance spread evenly over the months
  left until maturity. Payments settle unpaid interest before principal and
  never exceed the balance.
"""

import json
from datetime import date
from typing import Annotated, Any, Dict, List, Literal, Optional, Tuple, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    field_validator,
    model_validator,
)

from ..errors import CurrencyMismatchError
from .expense import as_money, autogenerate_id
from .money import Money, Number
from .months import (
    YYYYMM,
    Period,
    is_valid_month,
    month_to_date,
    months_between,
    offset_month,
    parse_month,
    validate_month,
)

FundingType = Literal["equity", "debt", "grant"]
Compounding = Literal["none", "monthly", "quarterly", "annually"]

# Months between interest charges; None means simple monthly interest
COMPOUNDING_STEPS: Dict[str, Optional[int]] = {
    "none": None,
    "monthly": 1,
    "quarterly": 3,
    "annually": 12,
}

PERIODS_PER_YEAR: Dict[str, int] = {"monthly": 12, "quarterly": 4, "annually": 1}


class InstallmentEntry(BaseModel):
    """Scheduled repayment for a specific month."""

    model_config = ConfigDict(frozen=True)

    month: YYYYMM
    amount: Money

    @field_validator("amount")
    @classmethod
    def validate_amount(cls, v: Money) -> Money:
        if not v.is_positive():
            raise ValueError("Installment amount must be positive")
        return v


class DebtTerms(BaseModel):
    """Repayment terms of a debt event."""

    model_config = ConfigDict(frozen=True)

    interest_rate: float = Field(default=0.0, ge=0, description="Annual rate (0.1 for 10%)")
    maturity_date: date = Field(..., description="Date the loan must be repaid by")
    compounding: Compounding = Field(default="none")
    grace_period_months: int = Field(default=0, ge=0)
    initial_payment: Optional[Money] = Field(default=None)
    installment_plan: Tuple[InstallmentEntry, ...] = Field(default=())

    @field_validator("maturity_date", mode="before")
    @classmethod
    def accept_month_key(cls, v):
        if is_valid_month(v):
            return month_to_date(v)
        return v

    @property
    def maturity_month(self) -> str:
        return parse_month(self.maturity_date)


class ConvertibleTerms(BaseModel):
    """Conversion terms for convertible equity instruments."""

    model_config = ConfigDict(frozen=True)

    valuation_cap: Optional[Money] = None
    discount_rate: float = Field(default=0.0, ge=0, le=1)


class AmortizationEntry(BaseModel):
    """One month of a debt amortization schedule."""

    model_config = ConfigDict(frozen=True)

    month: YYYYMM
    opening_balance: Money
    interest: Money
    payment: Money
    principal_paid: Money
    interest_paid: Money
    closing_balance: Money


class FundingBase(BaseModel):
    """Fields and behaviour shared by all funding variants."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    amount: Money = Field(..., description="Amount received")
    month: YYYYMM = Field(..., description="Month the cash is received")

    @field_validator("amount")
    @classmethod
    def validate_amount(cls, v: Money) -> Money:
        if not v.is_positive():
            raise ValueError("Funding amount must be positive")
        return v

    @property
    def currency(self) -> str:
        return self.amount.currency_code

    @property
    def is_repayable(self) -> bool:
        return False

    def _zero(self) -> Money:
        return Money.zero(self.currency)

    def cash_in_for_month(self, month: str) -> Money:
        return self.amount if validate_month(month) == self.month else self._zero()

    def debt_service_for_month(self, month: str) -> Money:
        validate_month(month)
        return self._zero()

    def outstanding_balance_at(self, month: str) -> Money:
        validate_month(month)
        return self._zero()

    def reconcile(self, period: Period) -> Optional["FundingBase"]:
        return self if period.contains(self.month) else None

    def _replace(self, **changes) -> "FundingBase":
        return type(self).model_validate({**dict(self), **changes})

    def with_amount(self, amount: Money) -> "FundingBase":
        return self._replace(amount=amount)

    def rename(self, name: str) -> "FundingBase":
        return self._replace(name=name)

    def reschedule(self, month: str) -> "FundingBase":
        return self._replace(month=month)

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


class EquityFunding(FundingBase):
    """Equity investment; never repaid."""

    type: Literal["equity"] = "equity"
    convertible: Optional[ConvertibleTerms] = None


class GrantFunding(FundingBase):
    """Non-repayable grant."""

    type: Literal["grant"] = "grant"


class DebtFunding(FundingBase):
    """Loan with interest, grace period and repayment schedule."""

    type: Literal["debt"] = "debt"
    terms: DebtTerms

    @model_validator(mode="after")
    def validate_terms(self):
        terms = self.terms
        maturity = terms.maturity_month
        if maturity <= self.month:
            raise ValueError("Debt maturity must be after the disbursement month")
        if terms.grace_period_months > months_between(self.month, maturity) - 2:
            raise ValueError("Grace period must end before the maturity month")
        if terms.initial_payment is not None:
            if terms.initial_payment.currency_code != self.currency:
                raise CurrencyMismatchError("Initial payment currency must match amount")
            if terms.initial_payment.is_negative() or terms.initial_payment > self.amount:
                raise ValueError("Initial payment must be between zero and the principal")
        for entry in terms.installment_plan:
            if entry.amount.currency_code != self.currency:
                raise CurrencyMismatchError("Installment currency must match amount")
            if not self.month < entry.month <= maturity:
                raise ValueError(
                    f"Installment month {entry.month} must fall after {self.month} "
                    f"and no later than {maturity}"
                )
        return self

    @property
    def is_repayable(self) -> bool:
        return True

    @property
    def maturity_month(self) -> str:
        return self.terms.maturity_month

    def amortization_schedule(self) -> List[AmortizationEntry]:
        """Month-by-month schedule from disbursement to maturity."""
        terms = self.terms
        zero = self._zero()
        total_months = months_between(self.month, terms.maturity_month)
        plan = {entry.month: entry.amount for entry in terms.installment_plan}
        accrual_start = 1 + terms.grace_period_months
        step = COMPOUNDING_STEPS[terms.compounding]

        principal = self.amount
        unpaid_interest = zero
        entries = []
        for i in range(total_months):
            month = offset_month(self.month, i)
            opening = principal + unpaid_interest

            interest = zero
            if i >= accrual_start:
                accrual_index = i - accrual_start + 1
                if step is None:
                    interest = principal.multiply(terms.interest_rate / 12)
                elif accrual_index % step == 0:
                    interest = opening.multiply(terms.interest_rate * step / 12)
            unpaid_interest = unpaid_interest + interest
            balance = principal + unpaid_interest

            if month in plan:
                payment = plan[month]
            elif i == 0:
                payment = terms.initial_payment or zero
            elif i >= accrual_start:
                payment = balance.divide(total_months - i)
            else:
                payment = zero
            payment = payment.min(balance)

            interest_paid = payment.min(unpaid_interest)
            principal_paid = payment - interest_paid
            unpaid_interest = unpaid_interest - interest_paid
            principal = principal - principal_paid

            entries.append(
                AmortizationEntry(
                    month=month,
                    opening_balance=opening,
                    interest=interest,
                    payment=payment,
                    principal_paid=principal_paid,
                    interest_paid=interest_paid,
                    closing_balance=principal + unpaid_interest,
                )
            )
        return entries

    def outstanding_balance_at(self, month: str, schedule=None) -> Money:
        """Balance owed at the end of ``month`` (zero before disbursement)."""
        validate_month(month)
        if month < self.month:
            return self._zero()
        schedule = schedule if schedule is not None else self.amortization_schedule()
        balance = self.amount
        for entry in schedule:
            if entry.month > month:
                break
            balance = entry.closing_balance
        return balance

    def debt_service_for_month(self, month: str) -> Money:
        validate_month(month)
        for entry in self.amortization_schedule():
            if entry.month == month:
                return entry.payment
        return self._zero()

    def total_interest(self) -> Money:
        return Money.sum_of((e.interest for e in self.amortization_schedule()), self.currency)

    def total_repaid(self) -> Money:
        return Money.sum_of((e.payment for e in self.amortization_schedule()), self.currency)

    def compute_simple_interest(self, months: int) -> Money:
        """Simple interest on the principal over ``months``."""
        return self.amount.multiply(self.terms.interest_rate / 12 * months)

    def compute_compound_interest(self, months: int) -> Money:
        """Interest over ``months`` at the configured compounding frequency."""
        periods = PERIODS_PER_YEAR.get(self.terms.compounding)
        if periods is None:
            return self.compute_simple_interest(months)
        rate = self.terms.interest_rate
        factor = (1 + rate / periods) ** (months / 12 * periods)
        return self.amount.multiply(factor) - self.amount

    def total_with_interest(self, months: int, compound: bool = True) -> Money:
        if compound:
            return self.amount + self.compute_compound_interest(months)
        return self.amount + self.compute_simple_interest(months)

    @staticmethod
    def monthly_payment(principal: Money, months: int, annual_rate: float) -> Money:
        """
        Level payment that repays ``principal`` over ``months``.

        Args:
            principal: Amount borrowed
            months: Number of payments
            annual_rate: Annual interest rate (as decimal, e.g., 0.12 for 12%)

        Returns:
            Monthly payment amount
        """
        if months <= 0:
            raise ValueError("Number of months must be positive")
        if annual_rate <= 0:
            return principal.divide(months)
        monthly_rate = annual_rate / 12
        return principal.multiply(monthly_rate / (1 - (1 + monthly_rate) ** -months))


FundingEvent = Annotated[
    Union[EquityFunding, DebtFunding, GrantFunding],
    Field(discriminator="type"),
]

_funding_adapter = TypeAdapter(FundingEvent)


def parse_funding(data: Union[str, Dict[str, Any], FundingBase]) -> FundingBase:
    """Build the right funding variant from its JSON form."""
    if isinstance(data, FundingBase):
        return data
    if isinstance(data, str):
        data = json.loads(data)
    return _funding_adapter.validate_python(data)


def equity_funding(
    name: str,
    amount: Union[Money, Number],
    month: str,
    currency: str = "PHP",
    convertible: Optional[ConvertibleTerms] = None,
    id: Optional[str] = None,
) -> EquityFunding:
    """Create an equity funding event."""
    return EquityFunding(
        id=id or autogenerate_id("fund"),
        name=name,
        amount=as_money(amount, currency),
        month=month,
        convertible=convertible,
    )


def grant_funding(
    name: str,
    amount: Union[Money, Number],
    month: str,
    currency: str = "PHP",
    id: Optional[str] = None,
) -> GrantFunding:
    """Create a grant funding event."""
    return GrantFunding(
        id=id or autogenerate_id("fund"),
        name=name,
        amount=as_money(amount, currency),
        month=month,
    )


def debt_funding(
    name: str,
    amount: Union[Money, Number],
    month: str,
    maturity_date: Union[date, str],
    currency: str = "PHP",
    interest_rate: float = 0.0,
    compounding: Compounding = "none",
    grace_period_months: int = 0,
    initial_payment: Optional[Union[Money, Number]] = None,
    installment_plan: Optional[List[Tuple[str, Union[Money, Number]]]] = None,
    id: Optional[str] = None,
) -> DebtFunding:
    """
    Create a debt funding event.

    Args:
        name: Display name
        amount: Principal received in ``month``
        month: Disbursement month
        maturity_date: Date or month key by which the loan is repaid
        currency: Currency code used when amounts are plain numbers
        interest_rate: Annual interest rate (as decimal)
        compounding: none, monthly, quarterly or annually
        grace_period_months: Months after disbursement without interest or payments
        initial_payment: Amount repaid in the disbursement month
        installment_plan: ``(month, amount)`` pairs overriding computed payments
        id: Identifier; generated when omitted

    Returns:
        The debt event
    """
    plan = tuple(
        InstallmentEntry(month=m, amount=as_money(a, currency))
        for m, a in (installment_plan or [])
    )
    return DebtFunding(
        id=id or autogenerate_id("fund"),
        name=name,
        amount=as_money(amount, currency),
        month=month,
        terms=DebtTerms(
            interest_rate=interest_rate,
            maturity_date=maturity_date,
            compounding=compounding,
            grace_period_months=grace_period_months,
            initial_payment=(
                as_money(initial_payment, currency)
                if initial_payment is not None
                else None
            ),
            installment_plan=plan,
        ),
    )
