# stockperf/adapters.py
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import pandas as pd

from stockperf.types import KINDS, Dividend, Quote, Selling, Stock, Transaction


# ------------------------------
# Small helpers (no policy here)
# ------------------------------
def _missing(v: Any) -> bool:
    if v is None:
        return True
    if isinstance(v, str) and not v.strip():
        return True
    return isinstance(v, float) and v != v


def _as_decimal(v: Any, default: Optional[Decimal] = None) -> Optional[Decimal]:
    """Money/share values go through str() so that 10.1 stays 10.1."""
    if _missing(v):
        return default
    if isinstance(v, Decimal):
        return v
    try:
        return Decimal(str(v).strip())
    except InvalidOperation:
        raise ValueError(f"not a number: {v!r}") from None


def _as_date(v: Any) -> date:
    if isinstance(v, datetime):
        return v.date()
    if isinstance(v, date):
        return v
    if _missing(v):
        raise ValueError("missing date")
    return date.fromisoformat(str(v).strip()[:10])


def _as_str(v: Any) -> Optional[str]:
    return None if _missing(v) else str(v).strip()


# ------------------------------
# Collaborators
# ------------------------------
def end_of_year(d: date) -> date:
    """Last day of the calendar year containing d."""
    return date(d.year, 12, 31)


class InMemoryTransactionStore:
    """Executes transaction queries against a fixed, read-only list."""

    def __init__(self, transactions: Iterable[Transaction] = ()) -> None:
        self._transactions = tuple(transactions)

    def execute(self, query) -> List[Transaction]:
        return query.apply(self._transactions)

    def tags(self) -> List[str]:
        return sorted({tr.tag for tr in self._transactions if tr.tag})

    def stocks(self) -> List[Stock]:
        seen: Dict[str, Stock] = {}
        for tr in self._transactions:
            seen.setdefault(tr.stock.id, tr.stock)
        return list(seen.values())

    def __len__(self) -> int:
        return len(self._transactions)


class QuoteBook:
    """
    Last known quote at or before a date, per stock.
    One pandas Series of Quote objects per stock, indexed by date; on duplicate
    dates the quote given last wins.
    """

    def __init__(self, quotes: Iterable[Quote] = ()) -> None:
        by_stock: Dict[str, List[Quote]] = {}
        for q in quotes:
            by_stock.setdefault(q.stock_id, []).append(q)

        self._series: Dict[str, pd.Series] = {}
        for stock_id, items in by_stock.items():
            idx = pd.DatetimeIndex([pd.Timestamp(q.date) for q in items])
            s = pd.Series(items, index=idx, dtype=object).sort_index(kind="stable")
            self._series[stock_id] = s[~s.index.duplicated(keep="last")]

    def last_before(self, stock_id: str, on: date) -> Optional[Quote]:
        s = self._series.get(stock_id)
        if s is None or s.empty:
            return None
        label = s.index.asof(pd.Timestamp(on))
        if pd.isna(label):
            return None
        return s.loc[label]

    def __len__(self) -> int:
        return sum(len(s) for s in self._series.values())


# ------------------------------
# Record loaders (YAML/JSON dicts, CSV rows)
# ------------------------------
def transaction_from_record(rec: Dict[str, Any], *, where: str = "<mem>") -> Transaction:
    """
    Record keys: kind (buy|sell|dividend), stock, date, shares, price,
    optional position_size, order_costs, taxes, tag, stock_name.
    """
    kind = (_as_str(rec.get("kind")) or "").lower()
    cls = KINDS.get(kind)
    if cls is None:
        raise ValueError(f"{where}: unknown transaction kind {rec.get('kind')!r}")

    stock_id = _as_str(rec.get("stock"))
    if not stock_id:
        raise ValueError(f"{where}: missing stock")

    try:
        kwargs: Dict[str, Any] = {
            "stock": Stock(stock_id, _as_str(rec.get("stock_name")) or ""),
            "order_date": _as_date(rec.get("date")),
            "shares": _as_decimal(rec.get("shares")),
            "price_per_share": _as_decimal(rec.get("price")),
            "order_costs": _as_decimal(rec.get("order_costs"), Decimal(0)),
            "position_size": _as_decimal(rec.get("position_size")),
            "tag": _as_str(rec.get("tag")),
        }
        if kwargs["shares"] is None or kwargs["price_per_share"] is None:
            raise ValueError("shares and price are required")
        if cls in (Selling, Dividend):
            kwargs["taxes"] = _as_decimal(rec.get("taxes"), Decimal(0))
        elif not _missing(rec.get("taxes")):
            raise ValueError("taxes are only allowed on sell/dividend")
        return cls(**kwargs)
    except ValueError as e:
        raise ValueError(f"{where}: {e}") from None


def transactions_from_records(records: Iterable[Dict[str, Any]], *, where: str = "transactions") -> List[Transaction]:
    return [transaction_from_record(r, where=f"{where}[{i}]") for i, r in enumerate(records)]


def quote_from_record(rec: Dict[str, Any], *, where: str = "<mem>") -> Quote:
    try:
        stock_id = _as_str(rec.get("stock"))
        close = _as_decimal(rec.get("close"))
        if not stock_id or close is None:
            raise ValueError("stock and close are required")
        return Quote(
            stock_id=stock_id,
            date=_as_date(rec.get("date")),
            close=close,
            open=_as_decimal(rec.get("open")),
            high=_as_decimal(rec.get("high")),
            low=_as_decimal(rec.get("low")),
        )
    except ValueError as e:
        raise ValueError(f"{where}: {e}") from None


def quotes_from_records(records: Iterable[Dict[str, Any]], *, where: str = "quotes") -> List[Quote]:
    return [quote_from_record(r, where=f"{where}[{i}]") for i, r in enumerate(records)]


def _read_csv_records(path: str | Path) -> List[Dict[str, Any]]:
    # Everything as text; numbers go through Decimal, not float.
    df = pd.read_csv(path, dtype=str, keep_default_na=False)
    df.columns = [str(c).strip().lower() for c in df.columns]
    return df.to_dict("records")


def load_transactions_csv(path: str | Path) -> List[Transaction]:
    return transactions_from_records(_read_csv_records(path), where=str(path))


def load_quotes_csv(path: str | Path) -> List[Quote]:
    return quotes_from_records(_read_csv_records(path), where=str(path))


__all__ = [
    "end_of_year",
    "InMemoryTransactionStore",
    "QuoteBook",
    "transaction_from_record",
    "transactions_from_records",
    "quote_from_record",
    "quotes_from_records",
    "load_transactions_csv",
    "load_quotes_csv",
]
