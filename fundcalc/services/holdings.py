"""Fund queries.

This module loads ledgers, snapshot histories and whole scenarios from
the database and converts the rows into the engine's plain value types.
These functions operate purely on the database session.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session
from ..models import Fund, CashMovementRecord, SnapshotRecord
from .scenario import Scenario


def ledger_for_fund(session: Session, fund_id: int):
    """Return the fund's cash movements in insertion order."""
    q = select(CashMovementRecord).where(CashMovementRecord.fund_id == fund_id).order_by(CashMovementRecord.id)
    return [r.to_movement() for r in session.scalars(q)]


def snapshots_for_fund(session: Session, fund_id: int):
    """Return ``(record id, Snapshot)`` pairs in insertion order."""
    q = select(SnapshotRecord).where(SnapshotRecord.fund_id == fund_id).order_by(SnapshotRecord.id)
    return [(r.id, r.to_snapshot()) for r in session.scalars(q)]


def fund_names(session: Session) -> dict:
    """Return a mapping of fund id to fund name."""
    return {fid: name for fid, name in session.execute(select(Fund.id, Fund.name))}


def fund_scenario(session: Session, fund: Fund) -> Scenario:
    return Scenario(
        cashflows=ledger_for_fund(session, fund.id),
        valuation_date=fund.valuation_date,
        current_value=fund.current_value,
        history=[s for _, s in snapshots_for_fund(session, fund.id)],
        fund_name=fund.name,
    )


def all_scenarios(session: Session):
    """Return a ``Scenario`` for every fund, ordered by name."""
    funds = session.scalars(select(Fund).order_by(Fund.name)).all()
    return [fund_scenario(session, f) for f in funds]
