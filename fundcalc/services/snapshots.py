"""Snapshot metrics.

A snapshot records a calculation made at some point in time: the
valuation date and fund value used, and optionally the net invested
figure at the moment it was saved. Metrics are never stored with it.
They are derived on demand by ``reconcile``:

* net invested is sticky. A figure persisted at save time stays the
  truth for that snapshot even if the ledger is edited later. Older
  snapshots without one fall back to the live ledger.
* profit always follows whichever net invested figure was chosen.
* IRR and simple rate are live. They are recomputed from the current
  ledger every time, never read back from storage.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date, datetime, timezone
from typing import Iterable, List, Optional

from .kpis import solve_irr, solve_simple_rate
from .ledger import (
    CashMovement,
    ValuationPoint,
    as_date,
    ensure_finite,
    net_invested,
    sort_chronologically,
    to_signed_flows,
)
from .result import Err, Ok, Result

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Snapshot:
    calculation_timestamp: datetime
    valuation_date: date
    current_value: float
    net_invested: Optional[float] = None


@dataclass(frozen=True)
class DerivedMetrics:
    net_invested: float
    profit: float
    irr: Optional[float]
    simple_rate: Optional[float]
    net_invested_was_persisted: bool = False

    def as_dict(self) -> dict:
        return {
            "net_invested": self.net_invested,
            "profit": self.profit,
            "irr": self.irr,
            "simple_rate": self.simple_rate,
            "net_invested_was_persisted": self.net_invested_was_persisted,
        }


def _live_rates(sorted_ledger: List[CashMovement], valuation: ValuationPoint):
    if not sorted_ledger:
        return None, None
    irr = solve_irr(to_signed_flows(sorted_ledger, valuation.date, valuation.value))
    simple = solve_simple_rate(sorted_ledger, valuation.date, valuation.value)
    return irr, simple


def reconcile(snapshot: Snapshot, live_ledger: Iterable[CashMovement]) -> DerivedMetrics:
    """Derive the metrics of a snapshot against the current ledger."""
    current_value = ensure_finite(snapshot.current_value, "current value")
    valuation_date = as_date(snapshot.valuation_date)
    entries = sort_chronologically(live_ledger)

    if snapshot.net_invested is not None:
        invested = ensure_finite(snapshot.net_invested, "net invested")
        persisted = True
    else:
        invested = net_invested(entries)
        persisted = False

    irr, simple = _live_rates(entries, ValuationPoint(valuation_date, current_value))
    return DerivedMetrics(
        net_invested=invested,
        profit=current_value - invested,
        irr=irr,
        simple_rate=simple,
        net_invested_was_persisted=persisted,
    )


def live_metrics(
    ledger: Iterable[CashMovement],
    valuation_date=None,
    current_value: float | None = None,
) -> DerivedMetrics:
    """Metrics for the calculator's working state.

    Net invested and profit are always available. Rates need both a
    valuation date and a value; without them they are ``None``.
    """
    entries = sort_chronologically(ledger)
    invested = net_invested(entries)
    value = 0.0 if current_value is None else ensure_finite(current_value, "current value")

    irr = simple = None
    if valuation_date is not None and current_value is not None:
        irr, simple = _live_rates(entries, ValuationPoint(as_date(valuation_date), value))
    return DerivedMetrics(
        net_invested=invested,
        profit=value - invested,
        irr=irr,
        simple_rate=simple,
    )


def capture_snapshot(
    ledger: Iterable[CashMovement],
    valuation_date,
    current_value: float | None,
    now: datetime | None = None,
) -> Result[Snapshot]:
    """Validate the working state and record it as a snapshot.

    The snapshot keeps the ledger's net invested figure at save time.
    """
    entries = sort_chronologically(ledger)
    if not entries:
        return Err("Add at least one cash flow before saving.")
    if valuation_date is None or valuation_date == "":
        return Err("Set a valuation date before saving a snapshot.")
    if current_value is None or ensure_finite(current_value, "current value") <= 0:
        return Err("Enter a current fund value greater than 0 before saving a snapshot.")

    snapshot = Snapshot(
        calculation_timestamp=now or datetime.now(timezone.utc),
        valuation_date=as_date(valuation_date),
        current_value=float(current_value),
        net_invested=net_invested(entries),
    )
    logger.info(
        "Saved snapshot for %s (value=%.2f, net invested=%.2f)",
        snapshot.valuation_date, snapshot.current_value, snapshot.net_invested,
    )
    return Ok(snapshot)


def edit_snapshot(snapshot: Snapshot, valuation_date=None, current_value: float | None = None) -> Snapshot:
    """Return an edited copy of ``snapshot``.

    Only the valuation date and value can change. Any persisted net
    invested figure is dropped so the next reconcile recomputes it.
    """
    changes = {"net_invested": None}
    if valuation_date is not None:
        changes["valuation_date"] = as_date(valuation_date)
    if current_value is not None:
        changes["current_value"] = ensure_finite(current_value, "current value")
    return replace(snapshot, **changes)


def history_metrics(history: Iterable[Snapshot], live_ledger: Iterable[CashMovement]):
    """Reconcile every snapshot, ordered by valuation date.

    Returns a list of ``(snapshot, metrics)`` pairs.
    """
    entries = sort_chronologically(live_ledger)
    ordered = sorted(history, key=lambda s: as_date(s.valuation_date))
    return [(s, reconcile(s, entries)) for s in ordered]
