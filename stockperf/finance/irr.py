# stockperf/finance/irr.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Callable, Sequence, Tuple

from stockperf.finance.cashflow import CashFlow

logger = logging.getLogger(__name__)

TOLERANCE = 1e-8
MAX_ITERS = 50000


class ApproximateResultKind(Enum):
    EXACT_SOLUTION = "ExactSolution"
    APPROXIMATE_SOLUTION = "ApproximateSolution"
    NO_SOLUTION_WITHIN_TOLERANCE = "NoSolutionWithinTolerance"


@dataclass(frozen=True)
class AlgorithmResult:
    """Outcome of the solver: how it ended and the best rate found (0.10 = 10%)."""

    kind: ApproximateResultKind
    value: float

    @property
    def converged(self) -> bool:
        return self.kind is not ApproximateResultKind.NO_SOLUTION_WITHIN_TOLERANCE

    def __float__(self) -> float:
        return self.value


@dataclass(frozen=True)
class SolverSettings:
    guess: float = 0.1
    bracket_step: float = 0.5
    bracket_max_iter: int = 100
    tolerance: float = TOLERANCE
    max_iters: int = MAX_ITERS
    days_per_year: float = 365.0
    rate_floor: float = -0.99999999


DEFAULT_SETTINGS = SolverSettings()


class BracketError(ValueError):
    """The two bisection endpoints do not bracket a root."""


class UnreachableStateError(RuntimeError):
    """Bisection finished without reaching one of its documented exits."""


# ---------- XNPV ----------
def xnpv(
    cashflows: Sequence[CashFlow],
    rate: float,
    settings: SolverSettings = DEFAULT_SETTINGS,
) -> Decimal:
    """
    Present value at `rate` of dated cash flows, measured from the earliest date:
        XNPV(r) = sum CF[i] / (1+r)^(days_i / 365)
    Rates at or below -100% are clamped to rate_floor; (1+r) must stay > 0.
    The result is finite for any span of dates.
    """
    if not cashflows:
        return Decimal(0)

    r = float(rate)
    if r <= -1.0:
        r = settings.rate_floor

    base = Decimal(1.0 + r)
    per_year = Decimal(settings.days_per_year)
    origin = min(cf.date for cf in cashflows)
    total = Decimal(0)
    for cf in cashflows:
        years = Decimal((cf.date - origin).days) / per_year
        total += cf.amount / base ** years
    return total


# ---------- Bracket search ----------
def find_brackets(
    func: Callable[[Sequence[CashFlow], float], Decimal],
    cashflows: Sequence[CashFlow],
    settings: SolverSettings = DEFAULT_SETTINGS,
) -> Tuple[float, float]:
    """
    Widen (guess - step, guess + step) by `step` on both sides until func changes
    sign across it. Returns (0.0, 0.0) when no sign change is found within
    bracket_max_iter widenings; callers treat that as "no bracket".
    """
    left = settings.guess - settings.bracket_step
    right = settings.guess + settings.bracket_step
    step = 0

    while func(cashflows, left) * func(cashflows, right) > 0:
        if step >= settings.bracket_max_iter:
            break
        step += 1
        left -= settings.bracket_step
        right += settings.bracket_step

    if step >= settings.bracket_max_iter:
        logger.debug("no bracket after %d widenings", step)
        return 0.0, 0.0

    logger.debug("bracket [%s, %s] after %d widenings", left, right, step)
    return left, right


# ---------- Bisection ----------
def bisection(
    func: Callable[[float], Decimal],
    brackets: Tuple[float, float],
    tolerance: float = TOLERANCE,
    max_iters: int = MAX_ITERS,
) -> AlgorithmResult:
    """
    Classic bisection on a bracketing pair.

    Exits:
      f(x3) == 0                -> ExactSolution at x3
      half-width < tolerance    -> ApproximateSolution at x3
      iteration cap reached     -> NoSolutionWithinTolerance at x3
      f(x1) == f(x2) == 0       -> NoSolutionWithinTolerance at x1 (flat)
    Raises BracketError if the endpoints stop bracketing a root.
    """
    x1, x2 = brackets
    x3 = 0.0
    f3 = Decimal(0)
    iterations = 1

    while True:
        f1 = func(x1)
        f2 = func(x2)

        if f1 == 0 and f2 == 0:
            return AlgorithmResult(ApproximateResultKind.NO_SOLUTION_WITHIN_TOLERANCE, x1)

        if f1 * f2 > 0:
            raise BracketError(f"x1={x1} x2={x2} values don't bracket a root")

        x3 = (x1 + x2) / 2.0
        f3 = func(x3)

        if f3 * f1 < 0:
            x2 = x3
        else:
            x1 = x3

        iterations += 1

        if not (abs(x1 - x2) / 2.0 > tolerance and f3 != 0 and iterations < max_iters):
            break

    if f3 == 0:
        logger.debug("exact root %s after %d iterations", x3, iterations)
        return AlgorithmResult(ApproximateResultKind.EXACT_SOLUTION, x3)

    if abs(x1 - x2) / 2.0 < tolerance:
        logger.debug("approximate root %s after %d iterations", x3, iterations)
        return AlgorithmResult(ApproximateResultKind.APPROXIMATE_SOLUTION, x3)

    if iterations >= max_iters:
        logger.warning("bisection hit the %d iteration cap at %s", max_iters, x3)
        return AlgorithmResult(ApproximateResultKind.NO_SOLUTION_WITHIN_TOLERANCE, x3)

    raise UnreachableStateError(
        f"bisection stopped at x1={x1} x2={x2} after {iterations} iterations without an outcome"
    )


# ---------- XIRR ----------
def calculate_xirr(
    cashflows: Sequence[CashFlow],
    tolerance: float = TOLERANCE,
    max_iters: int = MAX_ITERS,
    settings: SolverSettings = DEFAULT_SETTINGS,
) -> AlgorithmResult:
    """
    XIRR by bracket search + bisection. Inpayments must be negative; outpayments
    and the final value of the position positive. A collapsed bracket (including
    the (0, 0) "no bracket" marker) gives NoSolutionWithinTolerance at the low bound.
    """
    cfs = list(cashflows)

    def value_at(cfs_: Sequence[CashFlow], r: float) -> Decimal:
        return xnpv(cfs_, r, settings)

    low, high = find_brackets(value_at, cfs, settings)

    if abs(low - high) < tolerance:
        logger.warning("no rate bracket for %d cash flows; returning %s", len(cfs), low)
        return AlgorithmResult(ApproximateResultKind.NO_SOLUTION_WITHIN_TOLERANCE, low)

    return bisection(lambda r: value_at(cfs, r), (low, high), tolerance, max_iters)


def calculate(cashflows: Sequence[CashFlow]) -> AlgorithmResult:
    """Annual XIRR with the fixed tolerance 1e-8 and 50000 bisection steps."""
    return calculate_xirr(cashflows, TOLERANCE, MAX_ITERS)


def xirr(cashflows: Sequence[CashFlow]) -> float:
    """Rate only (e.g. 0.18 = 18%), whatever the outcome kind."""
    return calculate(cashflows).value


class InterestRateCalculator:
    """Injectable wrapper used by PerformanceCalculator."""

    def __init__(self, settings: SolverSettings = DEFAULT_SETTINGS) -> None:
        self.settings = settings

    def calculate(self, cashflows: Sequence[CashFlow]) -> AlgorithmResult:
        return calculate_xirr(
            cashflows,
            self.settings.tolerance,
            self.settings.max_iters,
            self.settings,
        )


__all__ = [
    "ApproximateResultKind",
    "AlgorithmResult",
    "SolverSettings",
    "DEFAULT_SETTINGS",
    "BracketError",
    "UnreachableStateError",
    "xnpv",
    "find_brackets",
    "bisection",
    "calculate_xirr",
    "calculate",
    "xirr",
    "InterestRateCalculator",
]
