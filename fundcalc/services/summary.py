"""Comparison of several funds side by side.

Funds are plain ``Scenario`` values (usually imported from exported
files). The comparison never aggregates money across funds; it only lines
up each fund's own rates so they can be charted together.
"""

from __future__ import annotations

from typing import Iterable, List

from .scenario import Scenario
from .snapshots import history_metrics

RATE_TYPES = ("irr", "simple_rate")


def add_or_replace_fund(funds: Iterable[Scenario], fund: Scenario) -> List[Scenario]:
    """Add ``fund``, replacing any fund with the same name (case-insensitive)."""
    key = (fund.fund_name or "").lower()
    kept = [f for f in funds if (f.fund_name or "").lower() != key]
    return kept + [fund]


def remove_fund(funds: Iterable[Scenario], fund_name: str) -> List[Scenario]:
    return [f for f in funds if f.fund_name != fund_name]


def rate_series(funds: Iterable[Scenario], rate_type: str = "irr") -> List[dict]:
    """Return one series of ``(valuation date, rate)`` points per fund.

    Funds without history are left out. Points are ordered by valuation
    date and a rate is ``None`` where it is undefined.
    """
    if rate_type not in RATE_TYPES:
        raise ValueError(f"rate_type must be one of {RATE_TYPES}, got {rate_type!r}")
    out = []
    for fund in funds:
        if not fund.history:
            continue
        points = [
            (s.valuation_date, getattr(m, rate_type))
            for s, m in history_metrics(fund.history, fund.cashflows)
        ]
        out.append({"fund_name": fund.fund_name, "points": points})
    return out


def latest_comparison(funds: Iterable[Scenario]) -> List[dict]:
    """Return the metrics of each fund's most recent snapshot."""
    rows = []
    for fund in funds:
        pairs = history_metrics(fund.history, fund.cashflows)
        if not pairs:
            continue
        snapshot, metrics = pairs[-1]
        rows.append(
            {
                "fund_name": fund.fund_name,
                "valuation_date": snapshot.valuation_date,
                "current_value": snapshot.current_value,
                "snapshots": len(pairs),
                **metrics.as_dict(),
            }
        )
    return rows
