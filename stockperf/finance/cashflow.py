from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable, List, Optional

from stockperf.types import Buying, Dividend, Selling, Transaction


@dataclass(frozen=True)
class CashFlow:
    """Signed amount on a date. Negative = money paid in by the investor."""

    amount: Decimal
    date: date


def transaction_cashflow(tr: Transaction) -> CashFlow:
    """
    Investor-side cash flow of one transaction:
      buy      -> -(position_size + order_costs)
      sell     ->   position_size - order_costs - taxes
      dividend ->   position_size - order_costs - taxes
    """
    if isinstance(tr, Buying):
        return CashFlow(-(tr.position_size + tr.order_costs), tr.order_date)
    if isinstance(tr, (Selling, Dividend)):
        return CashFlow(tr.position_size - tr.order_costs - tr.taxes, tr.order_date)
    raise TypeError(f"unknown transaction kind: {type(tr).__name__}")


def build_cashflows(
    transactions: Iterable[Transaction],
    begin_period: Optional[CashFlow] = None,
    end_period: Optional[CashFlow] = None,
) -> List[CashFlow]:
    """
    [begin_period] + one flow per transaction (ascending order date) + [end_period].
    Boundary flows are optional; None entries are skipped.
    """
    out: List[CashFlow] = []
    if begin_period is not None:
        out.append(begin_period)
    out.extend(transaction_cashflow(tr) for tr in sorted(transactions, key=lambda t: t.order_date))
    if end_period is not None:
        out.append(end_period)
    return out


__all__ = ["CashFlow", "transaction_cashflow", "build_cashflows"]
