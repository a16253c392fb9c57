"""
Funding event collection for a single currency and period.

FundingManager follows the same ownership and caching rules as
ExpenseBreakdown: it is a single-owner mutable container, and its
``FundingSummary`` cache and debt amortization schedules are recomputed on
read whenever the events tuple or period has changed since they were built.
"""

import logging
import math
from collections import defaultdict
from typing import Any, Callable, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, Field, PrivateAttr, model_validator

from ..config import get_global_settings
from ..errors import CurrencyMismatchError, EntityNotFoundError
from .expense import ScheduleEntry
from .funding import (
    AmortizationEntry,
    Compounding,
    ConvertibleTerms,
    DebtFunding,
    EquityFunding,
    FundingBase,
    FundingEvent,
    FundingType,
    GrantFunding,
    debt_funding,
    equity_funding,
    grant_funding,
    parse_funding,
)
from .money import Money, Number
from .months import Period, default_period, month_year, offset_month, validate_month

logger = logging.getLogger(__name__)


def _default_currency() -> str:
    return get_global_settings().default_currency


def _default_period() -> Period:
    return default_period(get_global_settings().default_period_months)


class FundingSummary(BaseModel):
    """Cached aggregates over a FundingManager."""

    total_funding_across_period: Money
    average_monthly_funding: Money
    total_equity_across_period: Money
    total_debt_across_period: Money
    total_grant_across_period: Money
    debt_ratio: float
    non_repayable_ratio: float
    funding_event_count: int


class FundingAlert(BaseModel):
    """Warning raised by ``FundingManager.funding_alerts``."""

    level: Literal["info", "warning", "critical"]
    message: str


class FundingManager(BaseModel):
    """Owning collection of funding events."""

    currency: str = Field(default_factory=_default_currency)
    period: Period = Field(default_factory=_default_period)
    events: Tuple[FundingEvent, ...] = Field(default=())

    _summary: Optional[FundingSummary] = PrivateAttr(default=None)
    _schedules: Optional[Dict[str, List[AmortizationEntry]]] = PrivateAttr(default=None)
    _cache_source: Optional[tuple] = PrivateAttr(default=None)

    @model_validator(mode="after")
    def validate_events(self):
        self.currency = self.currency.upper()
        seen = set()
        for event in self.events:
            if event.currency != self.currency:
                raise CurrencyMismatchError(
                    f"Funding {event.id} is in {event.currency}, manager is in {self.currency}"
                )
            if event.id in seen:
                raise ValueError(f"Duplicate funding id: {event.id}")
            seen.add(event.id)
        return self

    # Cache

    def _mark_dirty(self) -> None:
        self._summary = None
        self._schedules = None
        self._cache_source = None

    def _refresh_if_stale(self) -> None:
        source = self._cache_source
        if source is not None and source[0] is self.events and source[1] is self.period:
            return
        logger.debug(f"Recomputing funding summary for {len(self.events)} events")
        self._schedules = {e.id: e.amortization_schedule() for e in self.get_debt()}
        self._summary = self.summarize()
        self._cache_source = (self.events, self.period)

    @property
    def cache(self) -> FundingSummary:
        """Aggregates for the current events, recomputed only when dirty."""
        self._refresh_if_stale()
        return self._summary

    def debt_amortization_schedules(self) -> Dict[str, List[AmortizationEntry]]:
        """Amortization schedule per debt event id."""
        self._refresh_if_stale()
        return self._schedules

    def summarize(self) -> FundingSummary:
        """Fresh fold over all events, bypassing the cache."""
        months = self.period.months()
        by_type = {
            t: self._sum(
                e.amount for e in self.get_by_type(t) if self.period.contains(e.month)
            )
            for t in ("equity", "debt", "grant")
        }
        total = self._sum(by_type.values())
        return FundingSummary(
            total_funding_across_period=total,
            average_monthly_funding=total.divide(len(months)),
            total_equity_across_period=by_type["equity"],
            total_debt_across_period=by_type["debt"],
            total_grant_across_period=by_type["grant"],
            debt_ratio=self.debt_ratio(),
            non_repayable_ratio=self.non_repayable_ratio(),
            funding_event_count=len(self.events),
        )

    def _replace_events(self, events) -> "FundingManager":
        self.events = tuple(events)
        self._mark_dirty()
        return self

    def _zero(self) -> Money:
        return Money.zero(self.currency)

    def _sum(self, values) -> Money:
        return Money.sum_of(values, self.currency)

    # CRUD

    def add(self, event: FundingBase) -> "FundingManager":
        """
        Add a funding event.

        Raises:
            CurrencyMismatchError: If the event's currency differs from the manager's
            ValueError: If an event with the same id already exists
        """
        if event.currency != self.currency:
            raise CurrencyMismatchError(
                f"Funding currency {event.currency} does not match {self.currency}"
            )
        if self.has_event(event.id):
            raise ValueError(f"Funding event with id {event.id} already exists")
        return self._replace_events(self.events + (event,))

    def add_equity(
        self,
        name: str,
        amount: Union[Money, Number],
        month: str,
        convertible: Optional[ConvertibleTerms] = None,
        id: Optional[str] = None,
    ) -> "FundingManager":
        return self.add(equity_funding(name, amount, month, self.currency, convertible, id))

    def add_grant(
        self,
        name: str,
        amount: Union[Money, Number],
        month: str,
        id: Optional[str] = None,
    ) -> "FundingManager":
        return self.add(grant_funding(name, amount, month, self.currency, id))

    def add_debt(
        self,
        name: str,
        amount: Union[Money, Number],
        month: str,
        maturity_date,
        interest_rate: float = 0.0,
        compounding: Compounding = "none",
        grace_period_months: int = 0,
        initial_payment: Optional[Union[Money, Number]] = None,
        installment_plan=None,
        id: Optional[str] = None,
    ) -> "FundingManager":
        return self.add(
            debt_funding(
                name,
                amount,
                month,
                maturity_date,
                self.currency,
                interest_rate,
                compounding,
                grace_period_months,
                initial_payment,
                installment_plan,
                id,
            )
        )

    def has_event(self, event_id: str) -> bool:
        return any(e.id == event_id for e in self.events)

    does_exist = has_event

    def remove(self, event_id: str) -> "FundingManager":
        """
        Remove an event by id.

        Raises:
            EntityNotFoundError: If no event has that id
        """
        if not self.has_event(event_id):
            raise EntityNotFoundError(f"Funding event with id {event_id} not found")
        return self._replace_events(e for e in self.events if e.id != event_id)

    def update(self, event: FundingBase) -> "FundingManager":
        """
        Replace the event with the same id.

        Raises:
            EntityNotFoundError: If no event has that id
            CurrencyMismatchError: If the replacement is in another currency
        """
        if not self.has_event(event.id):
            raise EntityNotFoundError(f"Funding event with id {event.id} not found")
        if event.currency != self.currency:
            raise CurrencyMismatchError(
                f"Funding currency {event.currency} does not match {self.currency}"
            )
        return self._replace_events(event if e.id == event.id else e for e in self.events)

    def clear(self) -> "FundingManager":
        return self._replace_events(())

    def get_by_id(self, event_id: str) -> Optional[FundingBase]:
        return next((e for e in self.events if e.id == event_id), None)

    def get_all(self) -> List[FundingBase]:
        return list(self.events)

    def __len__(self) -> int:
        return len(self.events)

    # Filters

    def get_by_type(self, funding_type: FundingType) -> List[FundingBase]:
        return [e for e in self.events if e.type == funding_type]

    def get_equity(self) -> List[EquityFunding]:
        return [e for e in self.events if isinstance(e, EquityFunding)]

    def get_debt(self) -> List[DebtFunding]:
        return [e for e in self.events if isinstance(e, DebtFunding)]

    def get_grants(self) -> List[GrantFunding]:
        return [e for e in self.events if isinstance(e, GrantFunding)]

    def get_for_month(self, month: str) -> List[FundingBase]:
        validate_month(month)
        return [e for e in self.events if e.month == month]

    def get_funding_between(self, start_month: str, end_month: str) -> List[FundingBase]:
        validate_month(start_month)
        validate_month(end_month)
        return [e for e in self.events if start_month <= e.month <= end_month]

    def get_funding_for_year(self, year: int) -> List[FundingBase]:
        return [e for e in self.events if month_year(e.month) == year]

    # Totals

    def total_funding(self) -> Money:
        return self._sum(e.amount for e in self.events)

    def total_funding_for_month(self, month: str) -> Money:
        """Cash received from funding in ``month``."""
        return self._sum(e.amount for e in self.get_for_month(month))

    get_monthly_cash_in = total_funding_for_month

    def total_debt(self) -> Money:
        return self._sum(e.amount for e in self.get_debt())

    def total_non_repayable(self) -> Money:
        return self._sum(e.amount for e in self.events if not e.is_repayable)

    def total_non_repayable_up_to(self, month: str) -> Money:
        validate_month(month)
        return self._sum(
            e.amount for e in self.events if not e.is_repayable and e.month <= month
        )

    def total_by_type_until(self, funding_type: FundingType, month: str) -> Money:
        validate_month(month)
        return self._sum(e.amount for e in self.get_by_type(funding_type) if e.month <= month)

    def cumulative_funding(self, month: str) -> Money:
        validate_month(month)
        return self._sum(e.amount for e in self.events if e.month <= month)

    def funding_breakdown(self) -> Dict[str, Money]:
        return {t: self._sum(e.amount for e in self.get_by_type(t)) for t in ("equity", "debt", "grant")}

    def debt_ratio(self) -> float:
        """Total debt over total funding (0 when there is no funding)."""
        total = self.total_funding()
        if total.is_zero():
            return 0.0
        return self.total_debt().ratio(total)

    def non_repayable_ratio(self) -> float:
        total = self.total_funding()
        if total.is_zero():
            return 0.0
        return self.total_non_repayable().ratio(total)

    def equity_percentage(self, month: Optional[str] = None) -> float:
        """Share of funding (optionally up to ``month``) that came from equity."""
        if month is None:
            total = self.total_funding()
            equity = self._sum(e.amount for e in self.get_equity())
        else:
            total = self.cumulative_funding(month)
            equity = self.total_by_type_until("equity", month)
        if total.is_zero():
            return 0.0
        return equity.ratio(total)

    def check_debt_limit(self, max_ratio: Optional[float] = None) -> bool:
        """True when the debt ratio is within ``max_ratio``."""
        limit = max_ratio if max_ratio is not None else get_global_settings().debt_ratio_limit
        return self.debt_ratio() <= limit

    # Debt

    def get_outstanding_debt_up_to(self, month: str) -> Money:
        """Balance owed across all debt events at the end of ``month``."""
        validate_month(month)
        schedules = self.debt_amortization_schedules()
        return self._sum(
            e.outstanding_balance_at(month, schedules[e.id]) for e in self.get_debt()
        )

    def get_total_outstanding_debt_across_period(self) -> Money:
        return self.get_outstanding_debt_up_to(self.period.end_month)

    def debt_service_for_month(self, month: str) -> Money:
        validate_month(month)
        return self._sum(
            entry.payment
            for schedule in self.debt_amortization_schedules().values()
            for entry in schedule
            if entry.month == month
        )

    def get_total_debt_paid_across_period(self) -> Money:
        return self._sum(
            entry.payment
            for schedule in self.debt_amortization_schedules().values()
            for entry in schedule
            if self.period.contains(entry.month)
        )

    def total_debt_interest(self, up_to: Optional[str] = None) -> Money:
        if up_to is not None:
            validate_month(up_to)
        return self._sum(
            entry.interest
            for schedule in self.debt_amortization_schedules().values()
            for entry in schedule
            if up_to is None or entry.month <= up_to
        )

    # Series

    def _months(self, months: Optional[int]) -> List[str]:
        count = months if months is not None else self.period.length
        return [offset_month(self.period.start_month, i) for i in range(count)]

    def monthly_cash_in(self, months: Optional[int] = None) -> List[ScheduleEntry]:
        return [
            ScheduleEntry(month=m, amount=self.total_funding_for_month(m))
            for m in self._months(months)
        ]

    def monthly_net_cashflow(self, months: Optional[int] = None) -> List[ScheduleEntry]:
        """Funding received less debt service, per month."""
        return [
            ScheduleEntry(
                month=m,
                amount=self.total_funding_for_month(m) - self.debt_service_for_month(m),
            )
            for m in self._months(months)
        ]

    def cumulative_monthly_cashflow(self, months: Optional[int] = None) -> List[ScheduleEntry]:
        running = self._zero()
        series = []
        for entry in self.monthly_net_cashflow(months):
            running = running + entry.amount
            series.append(ScheduleEntry(month=entry.month, amount=running))
        return series

    def monthly_cashflow_by_type(self, months: Optional[int] = None) -> Dict[str, List[ScheduleEntry]]:
        return {
            t: [
                ScheduleEntry(
                    month=m,
                    amount=self._sum(e.amount for e in self.get_by_type(t) if e.month == m),
                )
                for m in self._months(months)
            ]
            for t in ("equity", "debt", "grant")
        }

    def monthly_growth_rate(self) -> List[Optional[float]]:
        """Month-over-month change in cumulative funding across the period."""
        cumulative = [self.cumulative_funding(m) for m in self.period.months()]
        rates: List[Optional[float]] = []
        for previous, current in zip(cumulative, cumulative[1:]):
            rates.append(None if previous.is_zero() else current.ratio(previous) - 1)
        return rates

    # Runway estimates

    def estimate_runway(self, monthly_burn: Money) -> float:
        """Months the non-repayable funding covers at ``monthly_burn``."""
        if not monthly_burn.is_positive():
            return math.inf
        return self.total_non_repayable().ratio(monthly_burn)

    def estimate_net_runway(self, monthly_burn: Money) -> float:
        """Months all funding less outstanding debt covers at ``monthly_burn``."""
        if not monthly_burn.is_positive():
            return math.inf
        net = self.total_funding() - self.get_total_outstanding_debt_across_period()
        return max(net.ratio(monthly_burn), 0.0)

    # Ordering and grouping

    def sort(
        self, by: Literal["name", "amount", "month", "type"] = "month", descending: bool = False
    ) -> "FundingManager":
        keys: Dict[str, Callable[[FundingBase], Any]] = {
            "name": lambda e: e.name.lower(),
            "amount": lambda e: e.amount.minor_units,
            "month": lambda e: e.month,
            "type": lambda e: e.type,
        }
        if by not in keys:
            raise ValueError(f"Cannot sort funding by {by!r}")
        return self._replace_events(sorted(self.events, key=keys[by], reverse=descending))

    def group_by_type(self) -> Dict[str, List[FundingBase]]:
        groups: Dict[str, List[FundingBase]] = defaultdict(list)
        for event in self.events:
            groups[event.type].append(event)
        return dict(groups)

    def get_top_funding(self, n: int = 5) -> List[FundingBase]:
        return sorted(self.events, key=lambda e: e.amount.minor_units, reverse=True)[:n]

    # Alerts and reporting

    def funding_alerts(
        self, max_debt_ratio: Optional[float] = None, threshold: Optional[float] = None
    ) -> List[FundingAlert]:
        settings = get_global_settings()
        max_debt_ratio = max_debt_ratio if max_debt_ratio is not None else settings.debt_ratio_limit
        threshold = threshold if threshold is not None else settings.funding_alert_threshold
        alerts = []
        if not self.events:
            alerts.append(FundingAlert(level="warning", message="No funding events recorded"))
        ratio = self.debt_ratio()
        if ratio > max_debt_ratio:
            alerts.append(
                FundingAlert(
                    level="critical",
                    message=f"Debt ratio {ratio:.0%} exceeds limit of {max_debt_ratio:.0%}",
                )
            )
        minimum = Money.from_major(threshold, self.currency)
        for event in self.events:
            if event.amount < minimum:
                alerts.append(
                    FundingAlert(
                        level="info",
                        message=f"Funding '{event.name}' is below {minimum.format()}",
                    )
                )
        return alerts

    def compare_totals(self, other: "FundingManager") -> Dict[str, Money]:
        """Difference of this manager's totals minus another's, by type."""
        if other.currency != self.currency:
            raise CurrencyMismatchError(
                f"Cannot compare {other.currency} funding with {self.currency}"
            )
        mine = self.funding_breakdown()
        theirs = other.funding_breakdown()
        diff = {t: mine[t] - theirs[t] for t in mine}
        diff["total"] = self.total_funding() - other.total_funding()
        return diff

    def dashboard_snapshot(self) -> Dict[str, Any]:
        breakdown = self.funding_breakdown()
        return {
            "total_funding": self.total_funding(),
            "total_equity": breakdown["equity"],
            "total_debt": breakdown["debt"],
            "total_grant": breakdown["grant"],
            "debt_ratio": self.debt_ratio(),
            "non_repayable_ratio": self.non_repayable_ratio(),
            "total_non_repayable": self.total_non_repayable(),
            "outstanding_debt": self.get_total_outstanding_debt_across_period(),
            "funding_event_count": len(self.events),
        }

    # Period reconciliation

    def set_period(self, period: Period) -> "FundingManager":
        """
        Move the manager to a new period.

        Destructive: events received outside the new period are dropped.
        """
        kept = []
        for event in self.events:
            if event.reconcile(period) is None:
                logger.debug(f"Dropping funding {event.id} outside {period.start_month}..{period.end_month}")
                continue
            kept.append(event)
        self.period = period
        return self._replace_events(kept)

    def update_period(
        self, start_month: Optional[str] = None, end_month: Optional[str] = None
    ) -> "FundingManager":
        return self.set_period(
            Period.create(
                start_month or self.period.start_month,
                end_month or self.period.end_month,
            )
        )

    # Maintenance

    def validate_currency_consistency(self) -> bool:
        return all(e.currency == self.currency for e in self.events)

    def merge(self, other: "FundingManager") -> "FundingManager":
        """Bring in another manager's events; same-id events are replaced."""
        if other.currency != self.currency:
            raise CurrencyMismatchError(
                f"Cannot merge {other.currency} funding into {self.currency}"
            )
        incoming = {e.id: e for e in other.events}
        merged = [incoming.pop(e.id, e) for e in self.events]
        merged.extend(incoming.values())
        return self._replace_events(merged)

    def merge_by_name_and_type(self, other: "FundingManager") -> "FundingManager":
        """Merge, summing amounts of equity and grant events sharing name and type."""
        if other.currency != self.currency:
            raise CurrencyMismatchError(
                f"Cannot merge {other.currency} funding into {self.currency}"
            )
        merged = list(self.events)
        for incoming in other.events:
            match = next(
                (
                    i
                    for i, e in enumerate(merged)
                    if e.name == incoming.name
                    and e.type == incoming.type
                    and not e.is_repayable
                ),
                None,
            )
            if match is None:
                if any(e.id == incoming.id for e in merged):
                    raise ValueError(f"Funding event with id {incoming.id} already exists")
                merged.append(incoming)
            else:
                merged[match] = merged[match].with_amount(merged[match].amount + incoming.amount)
        return self._replace_events(merged)

    def clone(self) -> "FundingManager":
        return FundingManager(currency=self.currency, period=self.period, events=self.events)

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")

    @classmethod
    def parse_from_json(cls, data: Union[str, Dict[str, Any]]) -> "FundingManager":
        if isinstance(data, str):
            return cls.model_validate_json(data)
        payload = dict(data)
        payload["events"] = [parse_funding(e) for e in payload.get("events", [])]
        return cls.model_validate(payload)
