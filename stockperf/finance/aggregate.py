# stockperf/finance/aggregate.py
"""
Portfolio sums used by the performance calculation:
 - sum_inpayments(transactions)
 - sum_dividends(transactions)
 - sum_capital(transactions, as_of)

Money stays Decimal throughout. Inputs are never modified.
"""

from __future__ import annotations

import logging
import warnings
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Protocol

from stockperf.types import Buying, Dividend, Quote, Selling, Transaction

logger = logging.getLogger(__name__)


class QuoteLookup(Protocol):
    def last_before(self, stock_id: str, on: date) -> Optional[Quote]: ...


def _share_delta(tr: Transaction) -> Decimal:
    if isinstance(tr, Buying):
        return tr.shares
    if isinstance(tr, Selling):
        return -tr.shares
    if isinstance(tr, Dividend):
        return Decimal(0)
    raise TypeError(f"unknown transaction kind: {type(tr).__name__}")


class PortfolioAggregator:
    def __init__(self, quotes: QuoteLookup) -> None:
        self._quotes = quotes

    @staticmethod
    def sum_inpayments(transactions: Iterable[Transaction]) -> Decimal:
        """Buys only: position_size - order_costs."""
        total = Decimal(0)
        for tr in transactions:
            if isinstance(tr, Buying):
                total += tr.position_size - tr.order_costs
        return total

    @staticmethod
    def sum_dividends(transactions: Iterable[Transaction]) -> Decimal:
        """Dividends net of order costs and taxes."""
        total = Decimal(0)
        for tr in transactions:
            if isinstance(tr, Dividend):
                total += tr.position_size - tr.order_costs - tr.taxes
        return total

    @staticmethod
    def net_shares(transactions: Iterable[Transaction]) -> Dict[str, Decimal]:
        """Signed share count per stock id; dividends don't move it."""
        out: Dict[str, Decimal] = {}
        for tr in transactions:
            if isinstance(tr, Dividend):
                continue
            out[tr.stock.id] = out.get(tr.stock.id, Decimal(0)) + _share_delta(tr)
        return out

    def sum_capital(self, transactions: Iterable[Transaction], as_of: date) -> Decimal:
        """
        Value of the held positions at `as_of`.

        Per stock (stocks seen only through dividends are skipped):
          net shares = buys - sells (may go negative)
          price      = last quote close at/before as_of, else the price per share
                       of the stock's most recent transaction
        """
        trs = list(transactions)
        stock_ids: List[str] = []
        for tr in trs:
            if not isinstance(tr, Dividend) and tr.stock.id not in stock_ids:
                stock_ids.append(tr.stock.id)

        total = Decimal(0)
        for stock_id in stock_ids:
            latest_first = sorted(
                (tr for tr in trs if tr.stock.id == stock_id),
                key=lambda t: t.order_date,
                reverse=True,
            )

            units = Decimal(0)
            for tr in latest_first:
                units += _share_delta(tr)

            if units < 0:
                warnings.warn(f"{stock_id}: more shares sold than bought ({units}) as of {as_of}", stacklevel=2)

            quote = self._quotes.last_before(stock_id, as_of)
            if quote is None:
                price = latest_first[0].price_per_share
                logger.debug("%s: no quote at/before %s, using last price %s", stock_id, as_of, price)
            else:
                price = quote.close

            total += price * units

        return total


__all__ = ["QuoteLookup", "PortfolioAggregator"]
