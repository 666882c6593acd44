# stockperf/performance.py
from __future__ import annotations

import logging
from datetime import date
from decimal import ROUND_HALF_EVEN, Decimal
from typing import Callable, Dict, Iterable, List, Optional, Protocol, Sequence

from stockperf.adapters import end_of_year
from stockperf.finance.aggregate import PortfolioAggregator
from stockperf.finance.cashflow import CashFlow, build_cashflows
from stockperf.finance.irr import AlgorithmResult, InterestRateCalculator
from stockperf.queries import EndDateFilter, StartDateFilter, TransactionAllQuery
from stockperf.types import PeriodResult, Transaction

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


class UnsupportedQueryError(TypeError):
    """The period calculation needs a date-filterable TransactionAllQuery."""


class TransactionQueryExecutor(Protocol):
    def execute(self, query) -> List[Transaction]: ...


class RateCalculator(Protocol):
    def calculate(self, cashflows: Sequence[CashFlow]) -> AlgorithmResult: ...


def rate_to_percentage(rate: float) -> Decimal:
    """0.123456 -> Decimal('12.35'). The rate keeps 15 significant digits before scaling."""
    return (Decimal(format(float(rate), ".15g")) * 100).quantize(CENT, rounding=ROUND_HALF_EVEN)


class PerformanceCalculator:
    """
    Money-weighted performance of a set of transactions.

    The period performance treats the portfolio as if it had been bought at the
    previous year end (value of all positions then, paid in) and sold at the end
    of the period (value of all positions then, paid out), with every buy, sell
    and dividend in between on its own date.
    """

    def __init__(
        self,
        transactions: TransactionQueryExecutor,
        aggregator: PortfolioAggregator,
        rate_calculator: Optional[RateCalculator] = None,
        end_of_year_fn: Callable[[date], date] = end_of_year,
    ) -> None:
        self._transactions = transactions
        self._aggregator = aggregator
        self._rates = rate_calculator or InterestRateCalculator()
        self._end_of_year = end_of_year_fn

    def performance_percentage_over_period(self, query, start: date, end: date) -> Decimal:
        """
        `query` carries the caller's base filters (tag, stock, ...); the date
        ranges are added here. Only for periods from a year start to a year end.
        """
        return self._period(query, start, end).performance_pct

    def performance_percentage_iir(
        self,
        transactions: Iterable[Transaction],
        begin_period: Optional[CashFlow],
        end_period: CashFlow,
    ) -> Decimal:
        return rate_to_percentage(self._solve(transactions, begin_period, end_period).value)

    def _solve(
        self,
        transactions: Iterable[Transaction],
        begin_period: Optional[CashFlow],
        end_period: CashFlow,
    ) -> AlgorithmResult:
        cashflows = build_cashflows(transactions, begin_period, end_period)
        result = self._rates.calculate(cashflows)
        if not result.converged:
            logger.warning("%s over %d cash flows, rate %s", result.kind.value, len(cashflows), result.value)
        return result

    def performance_by_year(self, query, years: Iterable[int]) -> Dict[int, Decimal]:
        return {y: r.performance_pct for y, r in self.yearly_results(query, years).items()}

    def yearly_results(self, query, years: Iterable[int]) -> Dict[int, PeriodResult]:
        return {y: self._period(query, date(y, 1, 1), date(y, 12, 31)) for y in years}

    def _period(self, query, start: date, end: date) -> PeriodResult:
        if not isinstance(query, TransactionAllQuery):
            raise UnsupportedQueryError(
                f"performance over a period only works with a TransactionAllQuery, got {type(query).__name__}"
            )

        end_of_last_year = self._end_of_year(date(start.year - 1, 1, 1))

        period_query = TransactionAllQuery().copy_filters_from(query).register(StartDateFilter(start)).register(EndDateFilter(end))
        until_end_query = TransactionAllQuery().copy_filters_from(query).register(EndDateFilter(end))
        last_year_query = TransactionAllQuery().copy_filters_from(query).register(EndDateFilter(end_of_last_year))

        end_capital = self._aggregator.sum_capital(self._transactions.execute(until_end_query), end)
        begin_capital = self._aggregator.sum_capital(self._transactions.execute(last_year_query), end_of_last_year)

        period_transactions = self._transactions.execute(period_query)
        result = self._solve(
            period_transactions,
            CashFlow(-begin_capital, end_of_last_year),
            CashFlow(end_capital, end),
        )
        pct = rate_to_percentage(result.value)
        logger.info("performance %s..%s: %s%% (%d transactions)", start, end, pct, len(period_transactions))

        return PeriodResult(
            year=start.year,
            performance_pct=pct,
            begin_capital=begin_capital,
            end_capital=end_capital,
            cashflows=len(period_transactions) + 2,
            outcome=result.kind.value,
        )


__all__ = ["PerformanceCalculator", "UnsupportedQueryError", "rate_to_percentage", "CENT"]
