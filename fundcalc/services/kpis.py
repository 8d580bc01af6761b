"""Functions to compute fund performance rates.

This module provides XNPV, an XIRR style solver and a balance weighted
simple annual rate. The IRR functions operate on sequences of
``SignedFlow`` records: contributions are negative and withdrawals
positive. To compute a money weighted return, append the terminal value
as a positive cash flow (see ``ledger.to_signed_flows``).

Year fractions use calendar days over a fixed 365-day year. That keeps
results reproducible against the calculator's published examples, so do
not switch it to 365.25.

Every solver returns ``None`` when a rate is undefined (all deposits, no
elapsed time, no root in range). ``None`` is a normal outcome, shown to
the user as "N/A". Non-finite input raises ``InvalidInputError``.
"""

from __future__ import annotations

import logging
import math
from datetime import date
from typing import Iterable, List, Sequence, Tuple

from .ledger import (
    CashMovement,
    SignedFlow,
    as_date,
    ensure_finite,
    net_invested,
    sort_chronologically,
)

logger = logging.getLogger(__name__)

DAYS_IN_YEAR = 365
MIN_RATE = -0.9999
MAX_RATE = 10.0
TOLERANCE = 1e-7
NEWTON_GUESS = 0.10
NEWTON_MAX_ITER = 50
BISECTION_MAX_ITER = 100


def _yearfrac(d0: date, d1: date) -> float:
    """Return the fraction of a year between two dates using 365 days."""
    return (d1 - d0).days / DAYS_IN_YEAR


def _discount(rate: float, years: float, extra: float = 0.0) -> float:
    """Return ``(1 + rate) ** -(years + extra)``, infinite on overflow."""
    try:
        return (1 + rate) ** (-years - extra)
    except (OverflowError, ZeroDivisionError):
        return math.inf


def _prepare(flows: Iterable[SignedFlow]) -> List[Tuple[float, float]]:
    """Return ``(years, amount)`` pairs measured from the earliest flow."""
    cfs = sorted(flows, key=lambda f: f.date)
    if not cfs:
        return []
    t0 = cfs[0].date
    return [(_yearfrac(t0, f.date), ensure_finite(f.amount, "cash flow amount")) for f in cfs]


def _npv(rate: float, points: Sequence[Tuple[float, float]]) -> float:
    total = 0.0
    for years, amount in points:
        if amount == 0:
            continue
        total += amount * _discount(rate, years)
    return total


def _npv_prime(rate: float, points: Sequence[Tuple[float, float]]) -> float:
    # d/dr (1 + r)^(-t) = -t * (1 + r)^(-t - 1)
    total = 0.0
    for years, amount in points:
        if years == 0 or amount == 0:
            continue
        total += -years * amount * _discount(rate, years, 1.0)
    return total


def xnpv(rate: float, flows: Iterable[SignedFlow]) -> float:
    """Calculate the net present value of dated cash flows at ``rate``.

    Flows are discounted back to the date of the earliest flow.
    """
    return _npv(rate, _prepare(flows))


def xnpv_derivative(rate: float, flows: Iterable[SignedFlow]) -> float:
    """Analytic derivative of ``xnpv`` with respect to the rate."""
    return _npv_prime(rate, _prepare(flows))


def _has_both_signs(flows: Sequence[SignedFlow]) -> bool:
    return any(f.amount > 0 for f in flows) and any(f.amount < 0 for f in flows)


def _newton(points: Sequence[Tuple[float, float]]) -> float | None:
    r = NEWTON_GUESS
    for _ in range(NEWTON_MAX_ITER):
        f = _npv(r, points)
        if abs(f) < TOLERANCE:
            return r
        df = _npv_prime(r, points)
        if df == 0 or not math.isfinite(df):
            logger.debug("newton: unusable derivative %r at rate %r", df, r)
            return None
        nxt = r - f / df
        if not math.isfinite(nxt) or nxt <= MIN_RATE or nxt >= MAX_RATE:
            logger.debug("newton: iterate %r left the admissible range", nxt)
            return None
        r = nxt
    return None


def _bisect(points: Sequence[Tuple[float, float]]) -> float | None:
    lo, hi = MIN_RATE, MAX_RATE
    flo, fhi = _npv(lo, points), _npv(hi, points)
    if not math.isfinite(flo) or not math.isfinite(fhi) or flo * fhi > 0:
        logger.debug("bisection: no root bracketed (f(lo)=%r, f(hi)=%r)", flo, fhi)
        return None
    for _ in range(BISECTION_MAX_ITER):
        mid = (lo + hi) / 2
        fm = _npv(mid, points)
        if not math.isfinite(fm):
            return None
        if abs(fm) < TOLERANCE:
            return mid
        if flo * fm < 0:
            hi, fhi = mid, fm
        else:
            lo, flo = mid, fm
    logger.debug("bisection: no convergence after %d iterations", BISECTION_MAX_ITER)
    return None


def solve_irr(flows: Iterable[SignedFlow]) -> float | None:
    """Compute the annualized internal rate of return of dated cash flows.

    Solves ``sum(CF_i * (1 + r) ** (-t_i / 365)) == 0`` where ``t_i`` is the
    number of calendar days between each flow and the earliest one.

    Newton's method starts at 10% and runs for at most 50 iterations. If it
    stalls or steps outside (-99.99%, 1000%) the root is searched by
    bisection over that same range for at most 100 iterations. Returns
    ``None`` for fewer than two flows, for flows that all share a sign or
    a single date, or when neither method converges. An unconverged guess
    is never returned.
    """
    cfs = list(flows)
    for f in cfs:
        ensure_finite(f.amount, "cash flow amount")
    if len(cfs) < 2 or not _has_both_signs(cfs):
        return None
    points = _prepare(cfs)
    # no elapsed time: NPV does not depend on the rate
    if all(years == 0 for years, _ in points):
        return None
    r = _newton(points)
    if r is not None:
        return r
    return _bisect(points)


def solve_simple_rate(
    ledger: Iterable[CashMovement],
    valuation_date,
    current_value: float,
) -> float | None:
    """Compute a simple annual rate using the balance × days method.

    The ledger is walked in date order keeping the invested balance
    (deposits add, withdrawals subtract). For each interval between
    consecutive distinct dates, and for the final interval up to the
    valuation date, ``balance × days`` is accumulated. Same-day entries are
    applied together before the next interval starts.

    The rate is ``profit × 365 / weighted`` where profit is the current
    value minus net invested. Returns ``None`` for an empty ledger, for a
    valuation date on or before the first entry, when ``weighted`` is not
    positive, or as soon as a negative balance would accrue over a
    positive number of days.
    """
    entries = sort_chronologically(ledger)
    for e in entries:
        ensure_finite(e.amount, "amount")
    current_value = ensure_finite(current_value, "current value")
    valuation_date = as_date(valuation_date)
    if not entries or valuation_date <= entries[0].date:
        return None

    weighted = 0.0
    balance = 0.0
    last = entries[0].date
    for e in entries:
        days = (e.date - last).days
        if days > 0:
            if balance < 0:
                logger.debug("simple rate: negative balance %r before %s", balance, e.date)
                return None
            weighted += balance * days
        balance += e.signed_amount
        last = e.date

    final_days = (valuation_date - last).days
    if final_days > 0:
        if balance < 0:
            logger.debug("simple rate: negative balance %r before valuation", balance)
            return None
        weighted += balance * final_days

    profit = current_value - net_invested(entries)
    if weighted <= 0:
        return None
    return profit * DAYS_IN_YEAR / weighted
