"""
Revenue items and revenue streams.

A revenue item sells units at a unit price (and unit cost) with a per-month
unit volume. A RevenueStream owns the items for one currency and period and
answers per-month and growth queries used by the projection engine.
"""

import json
import logging
from typing import Any, Dict, List, Literal, Optional, Tuple, Union

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..config import get_global_settings
from ..errors import CurrencyMismatchError, EntityNotFoundError
from .expense import ScheduleEntry, as_money, autogenerate_id
from .money import Money, Number
from .months import YYYYMM, Period, default_period, validate_month

logger = logging.getLogger(__name__)

RevenueKind = Literal["product", "service", "subscription"]
ResizeMode = Literal["default", "distribute"]


class MonthlyVolume(BaseModel):
    """Units sold in a month."""

    model_config = ConfigDict(frozen=True)

    month: YYYYMM
    units: float = Field(..., ge=0)


class RevenueItem(BaseModel):
    """Product, service or subscription sold at a unit price."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    kind: RevenueKind = Field(default="product")
    unit_price: Money
    unit_cost: Optional[Money] = None
    volumes: Tuple[MonthlyVolume, ...] = Field(default=())

    @model_validator(mode="after")
    def validate_item(self):
        if self.unit_price.is_negative():
            raise ValueError("Unit price must be >= 0")
        if self.unit_cost is not None:
            if self.unit_cost.currency_code != self.unit_price.currency_code:
                raise CurrencyMismatchError("Unit cost currency must match unit price")
            if self.unit_cost.is_negative():
                raise ValueError("Unit cost must be >= 0")
        months = [v.month for v in self.volumes]
        if len(months) != len(set(months)):
            raise ValueError(f"Revenue item {self.id} has duplicate volume months")
        return self

    @property
    def currency(self) -> str:
        return self.unit_price.currency_code

    def units_for_month(self, month: str) -> float:
        validate_month(month)
        for volume in self.volumes:
            if volume.month == month:
                return volume.units
        return 0.0

    def revenue_for_month(self, month: str) -> Money:
        return self.unit_price.multiply(self.units_for_month(month))

    def cost_for_month(self, month: str) -> Money:
        if self.unit_cost is None:
            return Money.zero(self.currency)
        return self.unit_cost.multiply(self.units_for_month(month))

    def profit_for_month(self, month: str) -> Money:
        return self.revenue_for_month(month) - self.cost_for_month(month)

    @property
    def gross_revenue(self) -> Money:
        return Money.sum_of((self.revenue_for_month(v.month) for v in self.volumes), self.currency)

    @property
    def gross_cost(self) -> Money:
        return Money.sum_of((self.cost_for_month(v.month) for v in self.volumes), self.currency)

    @property
    def gross_profit(self) -> Money:
        return self.gross_revenue - self.gross_cost

    def resize(self, period: Period, mode: ResizeMode = "default") -> "RevenueItem":
        """
        Fit the volume schedule to ``period``.

        Args:
            period: Target period
            mode: ``default`` keeps per-month units and pads new months with the
                last known volume; ``distribute`` spreads the total units evenly

        Returns:
            Item with a volume entry for every month of the period
        """
        months = period.months()
        if mode == "distribute":
            total = sum(v.units for v in self.volumes)
            per_month = total / len(months)
            volumes = [MonthlyVolume(month=m, units=per_month) for m in months]
        elif mode == "default":
            ordered = sorted(self.volumes, key=lambda v: v.month)
            volumes = []
            for month in months:
                earlier = [v.units for v in ordered if v.month <= month]
                volumes.append(MonthlyVolume(month=month, units=earlier[-1] if earlier else 0.0))
        else:
            raise ValueError(f"Unknown resize mode {mode!r}")
        return self.model_copy(update={"volumes": tuple(volumes)})


def revenue_item(
    name: str,
    unit_price: Union[Money, Number],
    units_per_month: float,
    period: Period,
    kind: RevenueKind = "product",
    unit_cost: Optional[Union[Money, Number]] = None,
    currency: str = "PHP",
    id: Optional[str] = None,
) -> RevenueItem:
    """Create a revenue item selling a constant volume every month of ``period``."""
    return RevenueItem(
        id=id or autogenerate_id("rev"),
        name=name,
        kind=kind,
        unit_price=as_money(unit_price, currency),
        unit_cost=as_money(unit_cost, currency) if unit_cost is not None else None,
        volumes=tuple(MonthlyVolume(month=m, units=units_per_month) for m in period.months()),
    )


def _default_currency() -> str:
    return get_global_settings().default_currency


def _default_period() -> Period:
    return default_period(get_global_settings().default_period_months)


class RevenueStream(BaseModel):
    """Owning collection of revenue items."""

    currency: str = Field(default_factory=_default_currency)
    period: Period = Field(default_factory=_default_period)
    items: Tuple[RevenueItem, ...] = Field(default=())

    @model_validator(mode="after")
    def validate_items(self):
        self.currency = self.currency.upper()
        for item in self.items:
            if item.currency != self.currency:
                raise CurrencyMismatchError(
                    f"Revenue item {item.id} is in {item.currency}, stream is in {self.currency}"
                )
        return self

    def _sum(self, values) -> Money:
        return Money.sum_of(values, self.currency)

    # CRUD

    def add(self, item: RevenueItem) -> "RevenueStream":
        if item.currency != self.currency:
            raise CurrencyMismatchError(
                f"Revenue currency {item.currency} does not match {self.currency}"
            )
        if self.get_by_id(item.id) is not None:
            raise ValueError(f"Revenue item with id {item.id} already exists")
        self.items = self.items + (item,)
        return self

    def add_item(
        self,
        name: str,
        unit_price: Union[Money, Number],
        units_per_month: float,
        kind: RevenueKind = "product",
        unit_cost: Optional[Union[Money, Number]] = None,
        id: Optional[str] = None,
    ) -> "RevenueStream":
        return self.add(
            revenue_item(
                name, unit_price, units_per_month, self.period, kind, unit_cost, self.currency, id
            )
        )

    def remove(self, item_id: str) -> "RevenueStream":
        if self.get_by_id(item_id) is None:
            raise EntityNotFoundError(f"Revenue item with id {item_id} not found")
        self.items = tuple(i for i in self.items if i.id != item_id)
        return self

    def update(self, item: RevenueItem) -> "RevenueStream":
        if self.get_by_id(item.id) is None:
            raise EntityNotFoundError(f"Revenue item with id {item.id} not found")
        if item.currency != self.currency:
            raise CurrencyMismatchError(
                f"Revenue currency {item.currency} does not match {self.currency}"
            )
        self.items = tuple(item if i.id == item.id else i for i in self.items)
        return self

    def clear(self) -> "RevenueStream":
        self.items = ()
        return self

    def get_by_id(self, item_id: str) -> Optional[RevenueItem]:
        return next((i for i in self.items if i.id == item_id), None)

    def get_all(self) -> List[RevenueItem]:
        return list(self.items)

    def get_by_kind(self, kind: RevenueKind) -> List[RevenueItem]:
        return [i for i in self.items if i.kind == kind]

    # Queries

    def get_monthly_revenue(self, month: str) -> Money:
        validate_month(month)
        return self._sum(i.revenue_for_month(month) for i in self.items)

    def get_monthly_cost(self, month: str) -> Money:
        validate_month(month)
        return self._sum(i.cost_for_month(month) for i in self.items)

    def get_monthly_gross_profit(self, month: str) -> Money:
        return self.get_monthly_revenue(month) - self.get_monthly_cost(month)

    def get_monthly_revenue_series(self) -> List[ScheduleEntry]:
        return [
            ScheduleEntry(month=m, amount=self.get_monthly_revenue(m))
            for m in self.period.months()
        ]

    def get_revenue_for_year(self, year: int) -> Money:
        return self._sum(self.get_monthly_revenue(f"{year:04d}-{m:02d}") for m in range(1, 13))

    def get_total_revenue(self) -> Money:
        return self._sum(self.get_monthly_revenue(m) for m in self.period.months())

    def get_total_cost(self) -> Money:
        return self._sum(self.get_monthly_cost(m) for m in self.period.months())

    def get_total_gross_profit(self) -> Money:
        return self.get_total_revenue() - self.get_total_cost()

    def get_average_monthly_revenue(self) -> Money:
        return self.get_total_revenue().divide(self.period.length)

    def get_average_monthly_gross_profit(self) -> Money:
        return self.get_total_gross_profit().divide(self.period.length)

    def get_last_revenue_growth_mom(self) -> Optional[float]:
        """Growth of the last period month over the month before it."""
        months = self.period.months()
        if len(months) < 2:
            return None
        previous = self.get_monthly_revenue(months[-2])
        last = self.get_monthly_revenue(months[-1])
        if previous.is_zero():
            return None
        return (last - previous).ratio(previous)

    def get_revenue_growth_rate_cmgr(self) -> Optional[float]:
        """Compound monthly growth rate from the first to the last period month."""
        series = np.array(
            [self.get_monthly_revenue(m).minor_units for m in self.period.months()],
            dtype=float,
        )
        if series.size < 2 or series[0] <= 0 or series[-1] < 0:
            return None
        return float(np.power(series[-1] / series[0], 1.0 / (series.size - 1)) - 1.0)

    def get_top_items(self, n: int = 5) -> List[RevenueItem]:
        return sorted(self.items, key=lambda i: i.gross_revenue.minor_units, reverse=True)[:n]

    # Period

    def set_period(self, period: Period, mode: ResizeMode = "default") -> "RevenueStream":
        """Move the stream to ``period``, resizing every item's volumes."""
        logger.debug(f"Resizing {len(self.items)} revenue items to {period.start_month}..{period.end_month} ({mode})")
        self.items = tuple(i.resize(period, mode) for i in self.items)
        self.period = period
        return self

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")

    @classmethod
    def parse_from_json(cls, data: Union[str, Dict[str, Any]]) -> "RevenueStream":
        if isinstance(data, str):
            data = json.loads(data)
        return cls.model_validate(data)
