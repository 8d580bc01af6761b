"""Bootstrap helpers shared by ingestion and the API.

  * ``get_or_create_fund``: get or create a fund record by name.
  * ``replace_fund_contents``: overwrite a fund's ledger, working
    valuation and history with an imported scenario.
  * ``parse_date_iso`` and ``parse_timestamp``: lenient date parsing for
    imported documents.

These utilities live in a separate module to avoid circular imports between
the ingestion service and the Flask app.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from sqlalchemy.orm import Session
from ..models import Fund, CashMovementRecord, SnapshotRecord
from .ledger import InvalidInputError, as_date


def get_or_create_fund(session: Session, name: str) -> Fund:
    """Return an existing fund by name or create it."""
    fund = session.query(Fund).filter(Fund.name == name).first()
    if not fund:
        fund = Fund(name=name)
        session.add(fund)
        session.commit()
    return fund


def replace_fund_contents(session: Session, fund: Fund, scenario) -> Fund:
    """Replace the ledger, valuation and history of ``fund`` with ``scenario``."""
    fund.cashflows.clear()
    fund.snapshots.clear()
    for m in scenario.cashflows:
        fund.cashflows.append(CashMovementRecord(date=m.date, amount=m.amount, direction=m.direction))
    for s in scenario.history:
        fund.snapshots.append(SnapshotRecord.from_snapshot(fund.id, s))
    fund.valuation_date = scenario.valuation_date
    fund.current_value = scenario.current_value
    session.commit()
    return fund


def parse_date_iso(s: str) -> date | None:
    """Parse an ISO date string of the form YYYY-MM-DD."""
    if not isinstance(s, str):
        return None
    try:
        return as_date(s)
    except InvalidInputError:
        return None


def parse_timestamp(s: str) -> datetime | None:
    """Parse an ISO-8601 datetime such as ``2025-11-16T10:15:30Z``.

    Naive values are taken to be UTC.
    """
    if not isinstance(s, str):
        return None
    try:
        ts = datetime.fromisoformat(s.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts
