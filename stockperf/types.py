from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Optional, Union


@dataclass(frozen=True)
class Stock:
    id: str
    name: str = ""


@dataclass(frozen=True)
class _TransactionBase:
    """
    Fields shared by every transaction kind.

    position_size is the gross monetary value of the order. When it is not
    given it defaults to shares * price_per_share.
    """

    stock: Stock
    order_date: date
    shares: Decimal
    price_per_share: Decimal
    order_costs: Decimal = Decimal(0)
    position_size: Optional[Decimal] = None
    tag: Optional[str] = None

    def __post_init__(self) -> None:
        if self.position_size is None:
            object.__setattr__(self, "position_size", self.shares * self.price_per_share)
        if self.order_costs < 0:
            raise ValueError(f"order_costs must be >= 0, got {self.order_costs}")


@dataclass(frozen=True)
class Buying(_TransactionBase):
    pass


@dataclass(frozen=True)
class Selling(_TransactionBase):
    taxes: Decimal = Decimal(0)

    def __post_init__(self) -> None:
        super().__post_init__()
        if self.taxes < 0:
            raise ValueError(f"taxes must be >= 0, got {self.taxes}")


@dataclass(frozen=True)
class Dividend(_TransactionBase):
    taxes: Decimal = Decimal(0)

    def __post_init__(self) -> None:
        super().__post_init__()
        if self.taxes < 0:
            raise ValueError(f"taxes must be >= 0, got {self.taxes}")


Transaction = Union[Buying, Selling, Dividend]

KINDS = {"buy": Buying, "sell": Selling, "dividend": Dividend}


@dataclass(frozen=True)
class Quote:
    """Closing price of one stock on one day (open/high/low are informative only)."""

    stock_id: str
    date: date
    close: Decimal
    open: Optional[Decimal] = None
    high: Optional[Decimal] = None
    low: Optional[Decimal] = None


@dataclass(frozen=True)
class PeriodResult:
    year: int
    performance_pct: Decimal
    begin_capital: Decimal
    end_capital: Decimal
    cashflows: int
    outcome: str = field(default="")


__all__ = [
    "Stock",
    "Buying",
    "Selling",
    "Dividend",
    "Transaction",
    "KINDS",
    "Quote",
    "PeriodResult",
]
