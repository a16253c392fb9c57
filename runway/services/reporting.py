"""
Tabular exports of projections and funding.

Amounts are converted to major units (floats) so the frames can be charted or
written to CSV directly.
"""

from typing import List, Optional

import pandas as pd

from ..models.cashflow import Cashflow
from ..models.funding import AmortizationEntry
from ..models.funding_manager import FundingManager

CASHFLOW_COLUMNS = [
    "month",
    "cash_in",
    "cash_out",
    "net",
    "ending_cash",
    "vat",
    "percentage_tax",
    "income_tax",
]


def cashflows_to_dataframe(cashflows: List[Cashflow]) -> pd.DataFrame:
    """One row per month, indexed by month key."""
    rows = []
    for cf in cashflows:
        row = {
            "month": cf.month,
            "cash_in": cf.cash_in.to_float(),
            "cash_out": cf.cash_out.to_float(),
            "net": cf.net.to_float(),
            "ending_cash": cf.ending_cash.to_float(),
            "vat": None,
            "percentage_tax": None,
            "income_tax": None,
        }
        if cf.taxes is not None:
            row["vat"] = cf.taxes.vat.to_float()
            row["percentage_tax"] = cf.taxes.percentage_tax.to_float()
            row["income_tax"] = cf.taxes.income_tax.to_float()
        rows.append(row)
    return pd.DataFrame(rows, columns=CASHFLOW_COLUMNS).set_index("month")


def cashflows_to_csv(cashflows: List[Cashflow], path: Optional[str] = None) -> Optional[str]:
    """Write the projection as CSV to ``path``, or return it as a string."""
    frame = cashflows_to_dataframe(cashflows)
    if path is None:
        return frame.to_csv()
    frame.to_csv(path)
    return None


def funding_to_dataframe(manager: FundingManager) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {
                "id": e.id,
                "name": e.name,
                "type": e.type,
                "month": e.month,
                "amount": e.amount.to_float(),
            }
            for e in manager.get_all()
        ],
        columns=["id", "name", "type", "month", "amount"],
    )


def amortization_to_dataframe(schedule: List[AmortizationEntry]) -> pd.DataFrame:
    columns = [
        "opening_balance",
        "interest",
        "payment",
        "principal_paid",
        "interest_paid",
        "closing_balance",
    ]
    return pd.DataFrame(
        [
            {"month": entry.month, **{c: getattr(entry, c).to_float() for c in columns}}
            for entry in schedule
        ],
        columns=["month"] + columns,
    ).set_index("month")
