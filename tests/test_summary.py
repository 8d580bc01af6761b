from __future__ import annotations

from datetime import date, datetime, timezone

import pytest

from fundcalc.services.ledger import CashMovement, Direction
from fundcalc.services.scenario import Scenario
from fundcalc.services.snapshots import Snapshot
from fundcalc.services.summary import add_or_replace_fund, latest_comparison, rate_series, remove_fund

TS = datetime(2025, 1, 1, tzinfo=timezone.utc)


def fund(name, history=(), value=1100):
    return Scenario(
        cashflows=[CashMovement(date(2024, 1, 1), 1000, Direction.DEPOSIT)],
        valuation_date=date(2025, 1, 1),
        current_value=value,
        history=list(history),
        fund_name=name,
    )


def test_add_or_replace_is_case_insensitive():
    a, b = fund("Alpha"), fund("Beta")
    replacement = fund("ALPHA", value=1200)

    out = add_or_replace_fund([a, b], replacement)

    assert out == [b, replacement]


def test_remove_fund_by_exact_name():
    a, b = fund("Alpha"), fund("Beta")
    assert remove_fund([a, b], "Alpha") == [b]
    assert remove_fund([a, b], "alpha") == [a, b]


def test_rate_series_sorted_and_skips_funds_without_history():
    snaps = [Snapshot(TS, date(2025, 1, 1), 1100), Snapshot(TS, date(2024, 7, 1), 1000)]
    series = rate_series([fund("Alpha", snaps), fund("Empty")], "simple_rate")

    assert [s["fund_name"] for s in series] == ["Alpha"]
    points = series[0]["points"]
    assert [d for d, _ in points] == [date(2024, 7, 1), date(2025, 1, 1)]
    # no profit at the first valuation
    assert points[0][1] == pytest.approx(0.0)
    assert points[1][1] == pytest.approx(100 * 365 / (1000 * 366))


def test_rate_series_undefined_rate_is_none():
    # valuation on the deposit date: no elapsed time
    series = rate_series([fund("Alpha", [Snapshot(TS, date(2024, 1, 1), 1000)])], "irr")
    assert series[0]["points"] == [(date(2024, 1, 1), None)]


def test_rate_series_rejects_unknown_rate_type():
    with pytest.raises(ValueError):
        rate_series([], "twr")


def test_latest_comparison_uses_latest_snapshot():
    snaps = [
        Snapshot(TS, date(2025, 1, 1), 1100, net_invested=900),
        Snapshot(TS, date(2024, 7, 1), 1000),
    ]
    rows = latest_comparison([fund("Alpha", snaps), fund("Empty")])

    assert len(rows) == 1
    row = rows[0]
    assert row["fund_name"] == "Alpha"
    assert row["valuation_date"] == date(2025, 1, 1)
    assert row["snapshots"] == 2
    assert row["net_invested"] == 900
    assert row["net_invested_was_persisted"] is True
    assert row["profit"] == 200
    assert row["irr"] == pytest.approx(0.1, abs=0.005)
