"""
Transaction queries handed to a store's execute().

TransactionAllQuery is the filterable shape: it is immutable, and register()
returns a new query with one more filter. TransactionsByStockQuery selects a
single stock and cannot be narrowed by date.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Callable, Iterable, List, Tuple

from stockperf.types import Transaction

TransactionFilter = Callable[[Transaction], bool]


@dataclass(frozen=True)
class StartDateFilter:
    start: date

    def __call__(self, tr: Transaction) -> bool:
        return tr.order_date >= self.start


@dataclass(frozen=True)
class EndDateFilter:
    end: date

    def __call__(self, tr: Transaction) -> bool:
        return tr.order_date <= self.end


@dataclass(frozen=True)
class StockFilter:
    stock_id: str

    def __call__(self, tr: Transaction) -> bool:
        return tr.stock.id == self.stock_id


@dataclass(frozen=True)
class TagFilter:
    tag: str

    def __call__(self, tr: Transaction) -> bool:
        return tr.tag == self.tag


@dataclass(frozen=True)
class TransactionAllQuery:
    filters: Tuple[TransactionFilter, ...] = ()

    def register(self, flt: TransactionFilter) -> "TransactionAllQuery":
        return TransactionAllQuery(self.filters + (flt,))

    def copy_filters_from(self, other: "TransactionAllQuery") -> "TransactionAllQuery":
        return TransactionAllQuery(self.filters + other.filters)

    def apply(self, transactions: Iterable[Transaction]) -> List[Transaction]:
        return [tr for tr in transactions if all(f(tr) for f in self.filters)]


@dataclass(frozen=True)
class TransactionsByStockQuery:
    stock_id: str

    def apply(self, transactions: Iterable[Transaction]) -> List[Transaction]:
        return [tr for tr in transactions if tr.stock.id == self.stock_id]


__all__ = [
    "TransactionFilter",
    "StartDateFilter",
    "EndDateFilter",
    "StockFilter",
    "TagFilter",
    "TransactionAllQuery",
    "TransactionsByStockQuery",
]
