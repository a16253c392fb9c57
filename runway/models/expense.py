"""
Expense items and their schedules.

Three variants share a common base and are distinguished by their ``type``
tag:

- ``OneTimeExpense``: the full amount is paid and recognized in one month.
- ``RecurringExpense``: the amount fires on every recurrence tick within the
  item's own period. Ticks step 1, 3 or 12 months from the period start.
- ``CapitalExpense``: the full amount is paid in the purchase month while the
  expense is recognized straight-line over ``depreciation_months`` down to an
  optional residual value.

Items are frozen; the owning ExpenseBreakdown replaces them whole.
"""

import json
import secrets
import string
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    computed_field,
    field_validator,
    model_validator,
)

from ..errors import CurrencyMismatchError
from .money import Money, Number
from .months import YYYYMM, Period, months_between, offset_month, validate_month

Recurrence = Literal["monthly", "quarterly", "yearly"]

RECURRENCE_STEPS: Dict[str, int] = {"monthly": 1, "quarterly": 3, "yearly": 12}

_ID_ALPHABET = string.ascii_letters + string.digits


def autogenerate_id(prefix: str) -> str:
    """Random identifier such as ``exp-a81Kd0Qz``."""
    return f"{prefix}-" + "".join(secrets.choice(_ID_ALPHABET) for _ in range(8))


def as_money(amount: Union[Money, Number], currency: str) -> Money:
    """Accept either a Money value or a major-unit number."""
    if isinstance(amount, Money):
        return amount
    return Money.from_major(amount, currency)


class ScheduleEntry(BaseModel):
    """Amount attributed to a single month."""

    model_config = ConfigDict(frozen=True)

    month: YYYYMM
    amount: Money


class ExpenseBase(BaseModel):
    """Fields and behaviour shared by all expense variants."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="Unique identifier")
    name: str = Field(..., min_length=1, description="Display name")
    amount: Money = Field(..., description="Amount per occurrence or purchase cost")
    is_tax_deductible: bool = Field(default=True)
    category: str = Field(default="operating", description="Free-form grouping label")

    @field_validator("amount")
    @classmethod
    def validate_amount(cls, v: Money) -> Money:
        if v.is_negative():
            raise ValueError("Expense amount must be >= 0")
        return v

    @property
    def currency(self) -> str:
        return self.amount.currency_code

    @property
    def purchase_month(self) -> Optional[str]:
        """Month the item is bought or paid; None for recurring items."""
        return None

    def _zero(self) -> Money:
        return Money.zero(self.currency)

    def cash_out_for_month(self, month: str) -> Money:
        raise NotImplementedError

    def expense_for_month(self, month: str) -> Money:
        raise NotImplementedError

    def deductible_expense_for_month(self, month: str) -> Money:
        if not self.is_tax_deductible:
            return self._zero()
        return self.expense_for_month(month)

    def net_book_value_up_to(self, month: str) -> Money:
        validate_month(month)
        return self._zero()

    def reconcile(self, period: Period) -> Optional["ExpenseBase"]:
        """
        Fit the item to a new period.

        Returns:
            The item adjusted to the period, or None if it must be dropped
        """
        raise NotImplementedError

    def with_amount(self, amount: Money) -> "ExpenseBase":
        return self.model_validate({**self.model_dump(), "amount": amount})

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


class OneTimeExpense(ExpenseBase):
    """Expense paid and recognized in a single month."""

    type: Literal["one_time"] = "one_time"
    month: YYYYMM = Field(..., description="Month the expense occurs")

    @property
    def purchase_month(self) -> Optional[str]:
        return self.month

    def cash_out_for_month(self, month: str) -> Money:
        return self.amount if validate_month(month) == self.month else self._zero()

    def expense_for_month(self, month: str) -> Money:
        return self.cash_out_for_month(month)

    def reconcile(self, period: Period) -> Optional["OneTimeExpense"]:
        return self if period.contains(self.month) else None


class RecurringExpense(ExpenseBase):
    """Expense that repeats every recurrence tick within its period."""

    type: Literal["recurring"] = "recurring"
    recurrence: Recurrence = Field(default="monthly")
    period: Period = Field(..., description="Months over which the expense recurs")

    def tick_months(self) -> List[str]:
        """Months on which the expense fires, stepping from the period start."""
        step = RECURRENCE_STEPS[self.recurrence]
        ticks = []
        month = self.period.start_month
        while month <= self.period.end_month:
            ticks.append(month)
            month = offset_month(month, step)
        return ticks

    @computed_field
    @property
    def schedule(self) -> List[ScheduleEntry]:
        return [ScheduleEntry(month=m, amount=self.amount) for m in self.tick_months()]

    def cash_out_for_month(self, month: str) -> Money:
        validate_month(month)
        if not self.period.contains(month):
            return self._zero()
        step = RECURRENCE_STEPS[self.recurrence]
        if (months_between(self.period.start_month, month) - 1) % step == 0:
            return self.amount
        return self._zero()

    def expense_for_month(self, month: str) -> Money:
        return self.cash_out_for_month(month)

    def update_period(self, period: Period) -> "RecurringExpense":
        """Same item regenerated against another period."""
        return self.model_copy(update={"period": period})

    def reconcile(self, period: Period) -> "RecurringExpense":
        return self.update_period(period)


class CapitalExpense(ExpenseBase):
    """Asset purchase depreciated straight-line."""

    type: Literal["capital"] = "capital"
    month: YYYYMM = Field(..., description="Purchase month")
    depreciation_months: int = Field(..., gt=0, description="Useful life in months")
    residual_value: Optional[Money] = Field(default=None)

    @model_validator(mode="after")
    def validate_residual(self):
        if self.residual_value is None:
            return self
        if self.residual_value.currency_code != self.amount.currency_code:
            raise CurrencyMismatchError("Residual value currency must match amount")
        if self.residual_value.is_negative():
            raise ValueError("Residual value must be >= 0")
        if self.residual_value > self.amount:
            raise ValueError("Residual value cannot exceed the purchase cost")
        return self

    @property
    def purchase_month(self) -> Optional[str]:
        return self.month

    @property
    def residual(self) -> Money:
        return self.residual_value if self.residual_value is not None else self._zero()

    @property
    def depreciable_base(self) -> Money:
        return self.amount - self.residual

    def _depreciated_after(self, elapsed: int) -> Money:
        # Rounded cumulative share of the base after ``elapsed`` months
        return self.depreciable_base.multiply(elapsed).divide(self.depreciation_months)

    @property
    def depreciation_end_month(self) -> str:
        return offset_month(self.month, self.depreciation_months - 1)

    def cash_out_for_month(self, month: str) -> Money:
        return self.amount if validate_month(month) == self.month else self._zero()

    def expense_for_month(self, month: str) -> Money:
        validate_month(month)
        if month < self.month or month > self.depreciation_end_month:
            return self._zero()
        elapsed = months_between(self.month, month)
        return self._depreciated_after(elapsed) - self._depreciated_after(elapsed - 1)

    def accumulated_depreciation_up_to(self, month: str) -> Money:
        validate_month(month)
        if month < self.month:
            return self._zero()
        elapsed = min(months_between(self.month, month), self.depreciation_months)
        return self._depreciated_after(elapsed)

    def net_book_value_up_to(self, month: str) -> Money:
        """Cost less accumulated depreciation through ``month`` inclusive."""
        validate_month(month)
        if month < self.month:
            return self._zero()
        nbv = self.amount - self.accumulated_depreciation_up_to(month)
        return nbv.max(self.residual)

    def depreciation_schedule(self) -> List[ScheduleEntry]:
        return [
            ScheduleEntry(month=m, amount=self.expense_for_month(m))
            for m in (
                offset_month(self.month, i) for i in range(self.depreciation_months)
            )
        ]

    def reconcile(self, period: Period) -> Optional["CapitalExpense"]:
        return self if period.contains(self.month) else None


Expense = Annotated[
    Union[OneTimeExpense, RecurringExpense, CapitalExpense],
    Field(discriminator="type"),
]

_expense_adapter = TypeAdapter(Expense)


def parse_expense(data: Union[str, Dict[str, Any], ExpenseBase]) -> ExpenseBase:
    """Build the right expense variant from its JSON form."""
    if isinstance(data, ExpenseBase):
        return data
    if isinstance(data, str):
        data = json.loads(data)
    return _expense_adapter.validate_python(data)


def one_time_expense(
    name: str,
    amount: Union[Money, Number],
    month: str,
    currency: str = "PHP",
    is_tax_deductible: bool = True,
    category: str = "operating",
    id: Optional[str] = None,
) -> OneTimeExpense:
    """Create a one-time expense."""
    return OneTimeExpense(
        id=id or autogenerate_id("exp"),
        name=name,
        amount=as_money(amount, currency),
        month=month,
        is_tax_deductible=is_tax_deductible,
        category=category,
    )


def recurring_expense(
    name: str,
    amount: Union[Money, Number],
    period: Period,
    recurrence: Recurrence = "monthly",
    currency: str = "PHP",
    is_tax_deductible: bool = True,
    category: str = "operating",
    id: Optional[str] = None,
) -> RecurringExpense:
    """Create a recurring expense over ``period``."""
    return RecurringExpense(
        id=id or autogenerate_id("exp"),
        name=name,
        amount=as_money(amount, currency),
        recurrence=recurrence,
        period=period,
        is_tax_deductible=is_tax_deductible,
        category=category,
    )


def capital_expense(
    name: str,
    amount: Union[Money, Number],
    month: str,
    depreciation_months: int,
    residual_value: Optional[Union[Money, Number]] = None,
    currency: str = "PHP",
    is_tax_deductible: bool = True,
    category: str = "capital",
    id: Optional[str] = None,
) -> CapitalExpense:
    """Create a capital purchase depreciated over ``depreciation_months``."""
    return CapitalExpense(
        id=id or autogenerate_id("exp"),
        name=name,
        amount=as_money(amount, currency),
        month=month,
        depreciation_months=depreciation_months,
        residual_value=(
            as_money(residual_value, currency) if residual_value is not None else None
        ),
        is_tax_deductible=is_tax_deductible,
        category=category,
    )
