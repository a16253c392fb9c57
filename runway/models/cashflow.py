"""
Cashflow records, tax configuration and balance snapshots.

A projection is an ordered list of Cashflow records where each record's
ending cash is the previous record's ending cash plus its own net.
"""

from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..errors import CurrencyMismatchError
from .money import Money
from .months import YYYYMM

VATMode = Literal["vat", "non_vat"]


class TaxConfig(BaseModel):
    """Tax regime used when projecting taxes."""

    model_config = ConfigDict(frozen=True)

    vat_mode: VATMode = Field(default="non_vat")
    vat_rate: float = Field(default=0.0, ge=0, le=1, description="VAT rate (0-1)")
    percentage_tax_rate: float = Field(
        default=0.0, ge=0, le=1, description="Percentage tax on gross revenue (0-1)"
    )
    income_tax_rate: float = Field(default=0.0, ge=0, le=1, description="Income tax rate (0-1)")

    @property
    def is_tax_enabled(self) -> bool:
        """True when any configured tax would produce a non-zero amount."""
        if self.income_tax_rate > 0:
            return True
        if self.vat_mode == "vat":
            return self.vat_rate > 0
        return self.percentage_tax_rate > 0


class CashflowTaxes(BaseModel):
    """Taxes attributed to one month."""

    model_config = ConfigDict(frozen=True)

    vat: Money
    percentage_tax: Money
    income_tax: Money

    @classmethod
    def zero(cls, currency_code: str) -> "CashflowTaxes":
        zero = Money.zero(currency_code)
        return cls(vat=zero, percentage_tax=zero, income_tax=zero)

    @property
    def total(self) -> Money:
        return self.vat + self.percentage_tax + self.income_tax

    def add(self, other: "CashflowTaxes") -> "CashflowTaxes":
        return CashflowTaxes(
            vat=self.vat + other.vat,
            percentage_tax=self.percentage_tax + other.percentage_tax,
            income_tax=self.income_tax + other.income_tax,
        )


class Cashflow(BaseModel):
    """Cash movement for one month of a projection."""

    model_config = ConfigDict(frozen=True)

    month: YYYYMM
    cash_in: Money
    cash_out: Money
    net: Money
    ending_cash: Money
    taxes: Optional[CashflowTaxes] = None

    @model_validator(mode="after")
    def validate_amounts(self):
        currency = self.cash_in.currency_code
        for value in (self.cash_out, self.net, self.ending_cash):
            if value.currency_code != currency:
                raise CurrencyMismatchError("All cashflow amounts must share one currency")
        if self.net != self.cash_in - self.cash_out:
            raise ValueError("Cashflow net must equal cash in minus cash out")
        return self

    @classmethod
    def create(
        cls,
        month: str,
        cash_in: Money,
        cash_out: Money,
        previous_ending_cash: Optional[Money] = None,
        taxes: Optional[CashflowTaxes] = None,
    ) -> "Cashflow":
        """
        Build a record, deriving net and ending cash.

        Args:
            month: Month key
            cash_in: Cash received
            cash_out: Cash paid
            previous_ending_cash: Ending cash of the prior month (zero if omitted)
            taxes: Optional informational tax breakdown

        Returns:
            The cashflow record
        """
        net = cash_in - cash_out
        previous = previous_ending_cash if previous_ending_cash is not None else Money.zero(net.currency_code)
        return cls(
            month=month,
            cash_in=cash_in,
            cash_out=cash_out,
            net=net,
            ending_cash=previous + net,
            taxes=taxes,
        )

    @property
    def currency(self) -> str:
        return self.cash_in.currency_code

    @property
    def previous_ending_cash(self) -> Money:
        return self.ending_cash - self.net

    def update_cash(
        self,
        cash_in: Optional[Money] = None,
        cash_out: Optional[Money] = None,
        previous_ending_cash: Optional[Money] = None,
        taxes: Optional[CashflowTaxes] = None,
    ) -> "Cashflow":
        """
        Recompute the record with replaced amounts.

        When ``previous_ending_cash`` is omitted the new ending cash equals the
        new net, so callers rebuilding a chain must pass it explicitly.
        """
        return Cashflow.create(
            month=self.month,
            cash_in=cash_in if cash_in is not None else self.cash_in,
            cash_out=cash_out if cash_out is not None else self.cash_out,
            previous_ending_cash=previous_ending_cash,
            taxes=taxes if taxes is not None else self.taxes,
        )

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")

    @classmethod
    def parse_from_json(cls, data: Dict[str, Any]) -> "Cashflow":
        return cls.model_validate(data)


class BalanceSnapshot(BaseModel):
    """Simplified balance sheet at the end of a month."""

    month: YYYYMM
    cash: Money
    assets_net: Money
    liabilities: Money
    equity: Money
    debt_outstanding: Money
    retained_earnings: Money
