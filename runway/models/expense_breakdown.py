"""
Expense collection for a single currency and period.

ExpenseBreakdown exclusively owns its expense items. It is a single-owner
mutable container: mutating methods change the instance and return it so
calls can be chained, and callers that need to share a breakdown across
threads or views should work on ``clone()`` copies.

Derived aggregates live in an ``ExpenseSummary`` cache that follows a
"dirty on mutation, recompute on read" contract. Every mutator marks the
cache dirty, and reads also verify that the cache was computed from the
exact ``expenses`` tuple and ``period`` currently held, so a stale summary is
never returned even if a field is reassigned directly.
"""

import logging
from collections import defaultdict
from typing import Any, Callable, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, Field, PrivateAttr, model_validator

from ..config import get_global_settings
from ..errors import CurrencyMismatchError, EntityNotFoundError, InvalidPeriodError
from .expense import (
    CapitalExpense,
    Expense,
    ExpenseBase,
    OneTimeExpense,
    Recurrence,
    RecurringExpense,
    ScheduleEntry,
    capital_expense,
    one_time_expense,
    parse_expense,
    recurring_expense,
)
from .money import Money, Number
from .months import Period, default_period, offset_month, validate_month

logger = logging.getLogger(__name__)


def _default_currency() -> str:
    return get_global_settings().default_currency


def _default_period() -> Period:
    return default_period(get_global_settings().default_period_months)


class ExpenseSummary(BaseModel):
    """Cached aggregates over an ExpenseBreakdown."""

    total_expenses: Money
    average_monthly_expense: Money
    total_expense_across_period: Money
    total_cash_out_across_period: Money
    total_recurring: Money
    total_one_time: Money
    total_capital: Money
    total_tax_deductible: Money


class ExpenseBreakdown(BaseModel):
    """Owning collection of expense items."""

    currency: str = Field(default_factory=_default_currency)
    period: Period = Field(default_factory=_default_period)
    expenses: Tuple[Expense, ...] = Field(default=())

    _summary: Optional[ExpenseSummary] = PrivateAttr(default=None)
    _summary_source: Optional[tuple] = PrivateAttr(default=None)

    @model_validator(mode="after")
    def validate_items(self):
        self.currency = self.currency.upper()
        seen = set()
        for item in self.expenses:
            if item.currency != self.currency:
                raise CurrencyMismatchError(
                    f"Expense {item.id} is in {item.currency}, breakdown is in {self.currency}"
                )
            if item.id in seen:
                raise ValueError(f"Duplicate expense id: {item.id}")
            seen.add(item.id)
        return self

    # Cache

    def _mark_dirty(self) -> None:
        self._summary = None
        self._summary_source = None

    def _cache_is_current(self) -> bool:
        source = self._summary_source
        return (
            self._summary is not None
            and source is not None
            and source[0] is self.expenses
            and source[1] is self.period
        )

    @property
    def cache(self) -> ExpenseSummary:
        """Aggregates for the current items, recomputed only when dirty."""
        if not self._cache_is_current():
            logger.debug(f"Recomputing expense summary for {len(self.expenses)} items")
            self._summary = self.summarize()
            self._summary_source = (self.expenses, self.period)
        return self._summary

    def summarize(self) -> ExpenseSummary:
        """Fresh fold over all items, bypassing the cache."""
        return ExpenseSummary(
            total_expenses=self.total_expenses(),
            average_monthly_expense=self.get_average_monthly_expense(),
            total_expense_across_period=self.get_total_expense_across_period(),
            total_cash_out_across_period=self.get_total_cash_out_across_period(),
            total_recurring=self.get_total_recurring(),
            total_one_time=self.get_total_one_time(),
            total_capital=self.get_total_capital(),
            total_tax_deductible=self.total_tax_deductible(),
        )

    def _replace_items(self, items) -> "ExpenseBreakdown":
        self.expenses = tuple(items)
        self._mark_dirty()
        return self

    def _zero(self) -> Money:
        return Money.zero(self.currency)

    def _sum(self, values) -> Money:
        return Money.sum_of(values, self.currency)

    # CRUD

    def add(self, expense: ExpenseBase) -> "ExpenseBreakdown":
        """
        Add an expense item.

        Raises:
            CurrencyMismatchError: If the item's currency differs from the breakdown's
            ValueError: If an item with the same id already exists
        """
        if expense.currency != self.currency:
            raise CurrencyMismatchError(
                f"Expense currency {expense.currency} does not match {self.currency}"
            )
        if self.has_expense(expense.id):
            raise ValueError(f"Expense with id {expense.id} already exists")
        return self._replace_items(self.expenses + (expense,))

    def add_one_time(
        self,
        name: str,
        amount: Union[Money, Number],
        month: str,
        is_tax_deductible: bool = True,
        category: str = "operating",
        id: Optional[str] = None,
    ) -> "ExpenseBreakdown":
        return self.add(
            one_time_expense(
                name, amount, month, self.currency, is_tax_deductible, category, id
            )
        )

    def add_recurring(
        self,
        name: str,
        amount: Union[Money, Number],
        recurrence: Recurrence = "monthly",
        period: Optional[Period] = None,
        is_tax_deductible: bool = True,
        category: str = "operating",
        id: Optional[str] = None,
    ) -> "ExpenseBreakdown":
        return self.add(
            recurring_expense(
                name,
                amount,
                period or self.period,
                recurrence,
                self.currency,
                is_tax_deductible,
                category,
                id,
            )
        )

    def add_capital(
        self,
        name: str,
        amount: Union[Money, Number],
        month: str,
        depreciation_months: int,
        residual_value: Optional[Union[Money, Number]] = None,
        is_tax_deductible: bool = True,
        id: Optional[str] = None,
    ) -> "ExpenseBreakdown":
        return self.add(
            capital_expense(
                name,
                amount,
                month,
                depreciation_months,
                residual_value,
                self.currency,
                is_tax_deductible,
                id=id,
            )
        )

    def has_expense(self, expense_id: str) -> bool:
        return any(item.id == expense_id for item in self.expenses)

    does_exist = has_expense

    def remove(self, expense_id: str) -> "ExpenseBreakdown":
        """
        Remove an item by id.

        Raises:
            EntityNotFoundError: If no item has that id
        """
        if not self.has_expense(expense_id):
            raise EntityNotFoundError(f"Expense with id {expense_id} not found")
        return self._replace_items(i for i in self.expenses if i.id != expense_id)

    def update(self, expense: ExpenseBase) -> "ExpenseBreakdown":
        """
        Replace the item with the same id.

        Raises:
            EntityNotFoundError: If no item has that id
            CurrencyMismatchError: If the replacement is in another currency
        """
        if not self.has_expense(expense.id):
            raise EntityNotFoundError(f"Expense with id {expense.id} not found")
        if expense.currency != self.currency:
            raise CurrencyMismatchError(
                f"Expense currency {expense.currency} does not match {self.currency}"
            )
        return self._replace_items(
            expense if i.id == expense.id else i for i in self.expenses
        )

    def clear(self) -> "ExpenseBreakdown":
        return self._replace_items(())

    def get_by_id(self, expense_id: str) -> Optional[ExpenseBase]:
        return next((i for i in self.expenses if i.id == expense_id), None)

    def get_all(self) -> List[ExpenseBase]:
        return list(self.expenses)

    def __len__(self) -> int:
        return len(self.expenses)

    # Filters

    def get_by_type(self, expense_type: str) -> List[ExpenseBase]:
        return [i for i in self.expenses if i.type == expense_type]

    def get_by_category(self, category: str) -> List[ExpenseBase]:
        return [i for i in self.expenses if i.category == category]

    def get_by_recurrence(self, recurrence: Recurrence) -> List[RecurringExpense]:
        return [i for i in self.get_recurring() if i.recurrence == recurrence]

    def get_by_amount_range(
        self, minimum: Money, maximum: Optional[Money] = None
    ) -> List[ExpenseBase]:
        return [
            i
            for i in self.expenses
            if i.amount >= minimum and (maximum is None or i.amount <= maximum)
        ]

    def get_recurring(self) -> List[RecurringExpense]:
        return [i for i in self.expenses if isinstance(i, RecurringExpense)]

    def get_one_time(self) -> List[OneTimeExpense]:
        return [i for i in self.expenses if isinstance(i, OneTimeExpense)]

    def get_one_time_for_month(self, month: str) -> List[OneTimeExpense]:
        validate_month(month)
        return [i for i in self.get_one_time() if i.month == month]

    def get_capital(self) -> List[CapitalExpense]:
        return [i for i in self.expenses if isinstance(i, CapitalExpense)]

    def get_tax_deductible(self) -> List[ExpenseBase]:
        return [i for i in self.expenses if i.is_tax_deductible]

    def get_expenses_for_year(self, year: int) -> List[ExpenseBase]:
        """Items with any cash-out during ``year``."""
        months = [f"{year:04d}-{m:02d}" for m in range(1, 13)]
        return [
            i
            for i in self.expenses
            if any(not i.cash_out_for_month(m).is_zero() for m in months)
        ]

    # Per-month folds

    def get_monthly_cash_out(self, month: str) -> Money:
        """Cash paid out in ``month`` (capital items at full cost)."""
        validate_month(month)
        return self._sum(i.cash_out_for_month(month) for i in self.expenses)

    total_expenses_for_month = get_monthly_cash_out

    def get_monthly_expense(self, month: str) -> Money:
        """Expense recognized in ``month`` (capital items as depreciation)."""
        validate_month(month)
        return self._sum(i.expense_for_month(month) for i in self.expenses)

    def get_monthly_deductible_expense(self, month: str) -> Money:
        validate_month(month)
        return self._sum(i.deductible_expense_for_month(month) for i in self.expenses)

    def get_net_assets_up_to(self, month: str) -> Money:
        """Net book value of all capital items through ``month``."""
        validate_month(month)
        return self._sum(i.net_book_value_up_to(month) for i in self.get_capital())

    def monthly_cashflow(self, months: Optional[int] = None) -> List[ScheduleEntry]:
        """Cash-out per month from the period start."""
        count = months if months is not None else self.period.length
        return [
            ScheduleEntry(month=m, amount=self.get_monthly_cash_out(m))
            for m in (offset_month(self.period.start_month, i) for i in range(count))
        ]

    def monthly_summary(self, months: Optional[int] = None) -> List[Dict[str, Any]]:
        count = months if months is not None else self.period.length
        summary = []
        for i in range(count):
            month = offset_month(self.period.start_month, i)
            summary.append(
                {
                    "month": month,
                    "cash_out": self.get_monthly_cash_out(month),
                    "expense": self.get_monthly_expense(month),
                    "deductible": self.get_monthly_deductible_expense(month),
                }
            )
        return summary

    # Totals

    def total_expenses(self) -> Money:
        """Sum of nominal item amounts."""
        return self._sum(i.amount for i in self.expenses)

    def total_tax_deductible(self) -> Money:
        return self._sum(i.amount for i in self.get_tax_deductible())

    def get_total_recurring(self) -> Money:
        return self._sum(i.amount for i in self.get_recurring())

    def get_total_one_time(self) -> Money:
        return self._sum(i.amount for i in self.get_one_time())

    def get_total_capital(self) -> Money:
        return self._sum(i.amount for i in self.get_capital())

    def get_total_expense_across_period(self) -> Money:
        return self._sum(self.get_monthly_expense(m) for m in self.period.months())

    def get_total_cash_out_across_period(self) -> Money:
        return self._sum(self.get_monthly_cash_out(m) for m in self.period.months())

    def get_average_monthly_expense(self) -> Money:
        return self.get_total_expense_across_period().divide(self.period.length)

    # Ordering and grouping

    def sort(
        self, by: Literal["name", "amount", "type"] = "name", descending: bool = False
    ) -> "ExpenseBreakdown":
        keys: Dict[str, Callable[[ExpenseBase], Any]] = {
            "name": lambda i: i.name.lower(),
            "amount": lambda i: i.amount.minor_units,
            "type": lambda i: i.type,
        }
        if by not in keys:
            raise ValueError(f"Cannot sort expenses by {by!r}")
        return self._replace_items(sorted(self.expenses, key=keys[by], reverse=descending))

    def group_by_type(self) -> Dict[str, List[ExpenseBase]]:
        groups: Dict[str, List[ExpenseBase]] = defaultdict(list)
        for item in self.expenses:
            groups[item.type].append(item)
        return dict(groups)

    def group_by_category(self) -> Dict[str, List[ExpenseBase]]:
        groups: Dict[str, List[ExpenseBase]] = defaultdict(list)
        for item in self.expenses:
            groups[item.category].append(item)
        return dict(groups)

    def get_top_expenses(
        self,
        n: int = 5,
        by: Literal["amount", "cash_out"] = "amount",
        month: Optional[str] = None,
    ) -> List[ExpenseBase]:
        """
        Largest items by nominal amount or by one month's cash-out.

        Args:
            n: Number of items to return
            by: ``amount`` or ``cash_out``
            month: Month to rank by when ``by`` is ``cash_out``
        """
        if by == "amount":
            key = lambda i: i.amount.minor_units  # noqa: E731
        elif by == "cash_out":
            if month is None:
                raise ValueError("A month is required to rank by cash_out")
            validate_month(month)
            key = lambda i: i.cash_out_for_month(month).minor_units  # noqa: E731
        else:
            raise ValueError(f"Cannot rank expenses by {by!r}")
        return sorted(self.expenses, key=key, reverse=True)[:n]

    # Period reconciliation

    def set_period(self, period: Period) -> "ExpenseBreakdown":
        """
        Move the breakdown to a new period.

        This is destructive: recurring items are regenerated against the new
        period, while one-time and capital items whose purchase month falls
        outside it are dropped and cannot be recovered.
        """
        if period.start_month > period.end_month:
            raise InvalidPeriodError("Period start must not be after end")
        kept = []
        for item in self.expenses:
            reconciled = item.reconcile(period)
            if reconciled is None:
                logger.debug(f"Dropping expense {item.id} outside {period.start_month}..{period.end_month}")
                continue
            kept.append(reconciled)
        self.period = period
        return self._replace_items(kept)

    def update_period(
        self, start_month: Optional[str] = None, end_month: Optional[str] = None
    ) -> "ExpenseBreakdown":
        """Change one or both period bounds; same effects as ``set_period``."""
        return self.set_period(
            Period.create(
                start_month or self.period.start_month,
                end_month or self.period.end_month,
            )
        )

    # Maintenance

    def validate_currency_consistency(self) -> bool:
        return all(i.currency == self.currency for i in self.expenses)

    def merge(self, other: "ExpenseBreakdown") -> "ExpenseBreakdown":
        """Bring in another breakdown's items; same-id items are replaced."""
        if other.currency != self.currency:
            raise CurrencyMismatchError(
                f"Cannot merge {other.currency} expenses into {self.currency}"
            )
        incoming = {i.id: i for i in other.expenses}
        merged = [incoming.pop(i.id, i) for i in self.expenses]
        merged.extend(incoming.values())
        return self._replace_items(merged)

    def clone(self) -> "ExpenseBreakdown":
        return ExpenseBreakdown(
            currency=self.currency, period=self.period, expenses=self.expenses
        )

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")

    @classmethod
    def parse_from_json(cls, data: Union[str, Dict[str, Any]]) -> "ExpenseBreakdown":
        if isinstance(data, str):
            return cls.model_validate_json(data)
        payload = dict(data)
        payload["expenses"] = [parse_expense(e) for e in payload.get("expenses", [])]
        return cls.model_validate(payload)
