from __future__ import annotations

import math
from datetime import date, datetime, timezone

import pytest

from fundcalc.services.kpis import solve_irr, solve_simple_rate
from fundcalc.services.ledger import CashMovement, Direction, InvalidInputError, to_signed_flows
from fundcalc.services.result import Err, Ok
from fundcalc.services.snapshots import (
    DerivedMetrics,
    Snapshot,
    capture_snapshot,
    edit_snapshot,
    history_metrics,
    live_metrics,
    reconcile,
)

TS = datetime(2025, 1, 1, 10, 0, tzinfo=timezone.utc)


def dep(d: str, amount: float) -> CashMovement:
    return CashMovement(date.fromisoformat(d), amount, Direction.DEPOSIT)


@pytest.fixture
def ledger():
    # nets to 1500
    return [dep("2024-04-01", 500), dep("2024-01-01", 1000)]


def test_reconcile_prefers_persisted_net_invested(ledger):
    snap = Snapshot(TS, date(2025, 1, 1), 1600, net_invested=800)
    m = reconcile(snap, ledger)
    assert m.net_invested == 800
    assert m.net_invested_was_persisted is True
    assert m.profit == 800


def test_reconcile_recomputes_net_invested_when_absent(ledger):
    snap = Snapshot(TS, date(2025, 1, 1), 1600)
    m = reconcile(snap, ledger)
    assert m.net_invested == 1500
    assert m.net_invested_was_persisted is False
    assert m.profit == 100


def test_reconcile_always_recomputes_rates_live(ledger):
    snap = Snapshot(TS, date(2025, 1, 1), 1600, net_invested=800)
    m = reconcile(snap, ledger)

    assert m.irr == solve_irr(to_signed_flows(sorted(ledger, key=lambda e: e.date), date(2025, 1, 1), 1600))
    assert m.simple_rate == solve_simple_rate(ledger, date(2025, 1, 1), 1600)
    # rates reflect the live ledger (profit 100 on 1500), not the persisted figure
    assert 0 < m.irr < 0.1


def test_net_invested_is_sticky_but_rates_follow_ledger_edits(ledger):
    snap = Snapshot(TS, date(2025, 1, 1), 1600, net_invested=1500)
    before = reconcile(snap, ledger)
    after = reconcile(snap, ledger + [dep("2024-06-01", 100)])

    assert after.net_invested == before.net_invested == 1500
    assert after.profit == before.profit
    assert after.irr < before.irr


def test_reconcile_empty_ledger_forces_undefined_rates():
    m = reconcile(Snapshot(TS, date(2025, 1, 1), 1600, net_invested=800), [])
    assert m == DerivedMetrics(800, 800, None, None, True)

    m = reconcile(Snapshot(TS, date(2025, 1, 1), 1600), [])
    assert m.net_invested == 0
    assert m.profit == 1600
    assert m.irr is None and m.simple_rate is None


def test_reconcile_rejects_non_finite_value(ledger):
    with pytest.raises(InvalidInputError):
        reconcile(Snapshot(TS, date(2025, 1, 1), math.nan), ledger)


def test_live_metrics_without_valuation(ledger):
    m = live_metrics(ledger)
    assert m.net_invested == 1500
    assert m.profit == -1500
    assert m.irr is None and m.simple_rate is None


def test_live_metrics_with_valuation(ledger):
    m = live_metrics(ledger, "2025-01-01", 1650)
    assert m.profit == 150
    assert m.irr is not None and m.simple_rate is not None
    assert m.net_invested_was_persisted is False


@pytest.mark.parametrize(
    "entries, valuation_date, value, reason",
    [
        ([], date(2025, 1, 1), 100, "Add at least one cash flow before saving."),
        ([dep("2024-01-01", 10)], None, 100, "Set a valuation date before saving a snapshot."),
        ([dep("2024-01-01", 10)], date(2025, 1, 1), None,
         "Enter a current fund value greater than 0 before saving a snapshot."),
        ([dep("2024-01-01", 10)], date(2025, 1, 1), 0,
         "Enter a current fund value greater than 0 before saving a snapshot."),
    ],
)
def test_capture_snapshot_validation(entries, valuation_date, value, reason):
    res = capture_snapshot(entries, valuation_date, value)
    assert res == Err(reason)
    assert not res.ok


def test_capture_snapshot_persists_net_invested(ledger):
    res = capture_snapshot(ledger, "2025-01-01", 1600, now=TS)
    assert isinstance(res, Ok)
    assert res.value == Snapshot(TS, date(2025, 1, 1), 1600.0, net_invested=1500)


def test_edit_snapshot_clears_persisted_net_invested():
    snap = Snapshot(TS, date(2025, 1, 1), 1600, net_invested=800)
    edited = edit_snapshot(snap, current_value=1700)

    assert edited.current_value == 1700
    assert edited.valuation_date == date(2025, 1, 1)
    assert edited.net_invested is None
    assert edited.calculation_timestamp == TS
    assert snap.net_invested == 800


def test_history_metrics_ordered_by_valuation_date(ledger):
    late = Snapshot(TS, date(2025, 6, 1), 1700)
    early = Snapshot(TS, date(2024, 12, 1), 1550, net_invested=1400)
    pairs = history_metrics([late, early], ledger)

    assert [s for s, _ in pairs] == [early, late]
    assert pairs[0][1].net_invested == 1400
    assert pairs[1][1].net_invested == 1500
