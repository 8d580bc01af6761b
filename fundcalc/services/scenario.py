"""Scenario files: export and import of a fund's calculator state.

The file format (version 1) is a JSON object::

    {
      "version": 1,
      "fundName": "Pension",
      "cashFlows": [{"date": "2024-01-01", "amount": 1000, "direction": "deposit"}],
      "valuationDate": "2025-01-01",
      "currentValue": 1100,
      "history": [
        {"calculationTimestamp": "2025-01-01T10:00:00+00:00",
         "valuationDate": "2025-01-01", "currentValue": 1100, "netInvested": 1000}
      ]
    }

``netInvested`` is optional in history entries. Older files may carry
``irr``, ``simpleRate`` and ``profit`` there as well, and name the
timestamp ``calculationDateTime``. Those rate fields are ignored on import
and never written on export because they are always recomputed.

Parsing returns ``Ok``/``Err`` values rather than raising, so that an
import of many files can report every bad file.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import List, Optional

from .bootstrap import parse_date_iso, parse_timestamp
from .ledger import CashMovement, Direction
from .result import Err, Ok, Result
from .snapshots import Snapshot

FORMAT_VERSION = 1


@dataclass(frozen=True)
class Scenario:
    cashflows: List[CashMovement] = field(default_factory=list)
    valuation_date: Optional[date] = None
    current_value: Optional[float] = None
    history: List[Snapshot] = field(default_factory=list)
    fund_name: Optional[str] = None


def _is_number(v) -> bool:
    return isinstance(v, (int, float)) and not isinstance(v, bool) and math.isfinite(v)


def _snapshot_to_json(s: Snapshot) -> dict:
    out = {
        "calculationTimestamp": s.calculation_timestamp.isoformat(),
        "valuationDate": s.valuation_date.isoformat(),
        "currentValue": s.current_value,
    }
    if s.net_invested is not None:
        out["netInvested"] = s.net_invested
    return out


def build_export(scenario: Scenario) -> dict:
    """Build a JSON-friendly export object from a scenario."""
    return {
        "version": FORMAT_VERSION,
        "fundName": scenario.fund_name,
        "cashFlows": [m.to_dict() for m in scenario.cashflows],
        "valuationDate": scenario.valuation_date.isoformat() if scenario.valuation_date else None,
        "currentValue": scenario.current_value,
        "history": [_snapshot_to_json(s) for s in scenario.history],
    }


def _parse_cashflows(raw) -> Result[List[CashMovement]]:
    if not isinstance(raw, list):
        return Err("Invalid or missing cashFlows array in imported data.")
    out = []
    for i, cf in enumerate(raw):
        if not isinstance(cf, dict):
            return Err(f"Cash flow at index {i} is not an object.")
        d = parse_date_iso(cf.get("date")) if isinstance(cf.get("date"), str) else None
        if d is None:
            return Err(f"Cash flow at index {i} has invalid or missing date.")
        if not _is_number(cf.get("amount")):
            return Err(f"Cash flow at index {i} has invalid or missing amount.")
        if cf.get("direction") not in ("deposit", "withdrawal"):
            return Err(f"Cash flow at index {i} has invalid direction.")
        out.append(CashMovement(date=d, amount=float(cf["amount"]), direction=Direction(cf["direction"])))
    return Ok(out)


def _parse_history(raw) -> Result[List[Snapshot]]:
    if not isinstance(raw, list):
        return Err("Invalid or missing history array in imported data.")
    out = []
    for i, item in enumerate(raw):
        if not isinstance(item, dict):
            return Err(f"History entry at index {i} is not an object.")
        vd = item.get("valuationDate")
        vd = parse_date_iso(vd) if isinstance(vd, str) else None
        if vd is None:
            return Err(f"History entry at index {i} has invalid or missing valuationDate.")
        if not _is_number(item.get("currentValue")):
            return Err(f"History entry at index {i} has invalid or missing currentValue.")
        ts = parse_timestamp(item.get("calculationTimestamp", item.get("calculationDateTime")))
        ni = item.get("netInvested")
        out.append(
            Snapshot(
                calculation_timestamp=ts or datetime.now(timezone.utc),
                valuation_date=vd,
                current_value=float(item["currentValue"]),
                net_invested=float(ni) if _is_number(ni) else None,
            )
        )
    return Ok(out)


def parse_scenario(raw) -> Result[Scenario]:
    """Validate an imported JSON payload and turn it into a ``Scenario``."""
    if not isinstance(raw, dict):
        return Err("Imported data must be an object.")
    if raw.get("version") != FORMAT_VERSION:
        return Err("Unsupported scenario version. Expected version 1.")

    cashflows = _parse_cashflows(raw.get("cashFlows"))
    if not cashflows.ok:
        return cashflows

    valuation_date = raw.get("valuationDate")
    if valuation_date is not None:
        if not isinstance(valuation_date, str):
            return Err("valuationDate must be a string or null.")
        valuation_date = parse_date_iso(valuation_date)
        if valuation_date is None:
            return Err("valuationDate must be an ISO date (YYYY-MM-DD).")

    current_value = raw.get("currentValue")
    if current_value is not None and not _is_number(current_value):
        return Err("currentValue must be a number or null.")

    history = _parse_history(raw.get("history"))
    if not history.ok:
        return history

    fund_name = raw.get("fundName")
    if fund_name is not None and not isinstance(fund_name, str):
        return Err("fundName must be a string or null.")

    return Ok(
        Scenario(
            cashflows=cashflows.value,
            valuation_date=valuation_date,
            current_value=None if current_value is None else float(current_value),
            history=history.value,
            fund_name=fund_name.strip() if fund_name else None,
        )
    )


def parse_summary_fund(raw) -> Result[Scenario]:
    """Validate a scenario for the fund comparison.

    On top of ``parse_scenario`` this requires a fund name and at least one
    history snapshot.
    """
    if isinstance(raw, dict):
        name = raw.get("fundName")
        if not isinstance(name, str) or not name.strip():
            return Err("Fund name is required and cannot be empty.")
    parsed = parse_scenario(raw)
    if not parsed.ok:
        return parsed
    if not parsed.value.history:
        return Err("History array cannot be empty. At least one snapshot is required.")
    return parsed
