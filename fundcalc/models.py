"""Database models for the fund calculator.

We use SQLAlchemy's declarative system to define our tables. A ``Fund``
owns a ledger of cash movements, an optional working valuation (the date
and value currently typed into the calculator) and a history of saved
snapshots.

Cash movement amounts are stored as positive magnitudes with an explicit
direction. Snapshots store only what was observed (valuation date, value)
plus the net invested figure captured at save time. IRR, simple rate and
profit are never persisted; they are recomputed on every read.
"""

from __future__ import annotations

import datetime as dt
from sqlalchemy import (
    ForeignKey,
    Integer,
    String,
    Float,
    Enum as SA_Enum,
    Date as SA_Date,
    DateTime as SA_DateTime,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.types import TypeDecorator

from .services.ledger import CashMovement, Direction
from .services.snapshots import Snapshot


class UTCDateTime(TypeDecorator):
    """Timezone-aware datetime column stored as UTC.

    SQLite keeps no offset, so values are normalised to UTC on the way in
    and read back with ``timezone.utc`` attached.
    """

    impl = SA_DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None and value.tzinfo is not None:
            value = value.astimezone(dt.timezone.utc)
        return value

    def process_result_value(self, value, dialect):
        if value is not None and value.tzinfo is None:
            value = value.replace(tzinfo=dt.timezone.utc)
        return value


class Base(DeclarativeBase):
    """Base class for SQLAlchemy declarative models."""

    pass


class Fund(Base):
    __tablename__ = "funds"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String, unique=True)
    # working valuation, not yet saved as a snapshot
    valuation_date: Mapped[dt.date | None] = mapped_column(SA_Date, nullable=True)
    current_value: Mapped[float | None] = mapped_column(Float, nullable=True)

    cashflows: Mapped[list["CashMovementRecord"]] = relationship(
        back_populates="fund", cascade="all, delete-orphan", order_by="CashMovementRecord.id"
    )
    snapshots: Mapped[list["SnapshotRecord"]] = relationship(
        back_populates="fund", cascade="all, delete-orphan", order_by="SnapshotRecord.id"
    )


class CashMovementRecord(Base):
    """A deposit into or withdrawal from a fund."""

    __tablename__ = "cash_movements"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    fund_id: Mapped[int] = mapped_column(ForeignKey("funds.id"))
    date: Mapped[dt.date] = mapped_column(SA_Date)
    amount: Mapped[float] = mapped_column(Float)
    direction: Mapped[Direction] = mapped_column(SA_Enum(Direction, values_callable=lambda e: [m.value for m in e]))

    fund: Mapped["Fund"] = relationship(back_populates="cashflows")

    def to_movement(self) -> CashMovement:
        return CashMovement(date=self.date, amount=self.amount, direction=self.direction)

    def to_dict(self) -> dict:
        return {"id": self.id, **self.to_movement().to_dict()}


class SnapshotRecord(Base):
    """A saved calculation. ``net_invested`` is null for edited or legacy rows."""

    __tablename__ = "snapshots"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    fund_id: Mapped[int] = mapped_column(ForeignKey("funds.id"))
    calculation_timestamp: Mapped[dt.datetime] = mapped_column(UTCDateTime())
    valuation_date: Mapped[dt.date] = mapped_column(SA_Date)
    current_value: Mapped[float] = mapped_column(Float)
    net_invested: Mapped[float | None] = mapped_column(Float, nullable=True)

    fund: Mapped["Fund"] = relationship(back_populates="snapshots")

    def to_snapshot(self) -> Snapshot:
        return Snapshot(
            calculation_timestamp=self.calculation_timestamp,
            valuation_date=self.valuation_date,
            current_value=self.current_value,
            net_invested=self.net_invested,
        )

    @classmethod
    def from_snapshot(cls, fund_id: int, snapshot: Snapshot) -> "SnapshotRecord":
        return cls(
            fund_id=fund_id,
            calculation_timestamp=snapshot.calculation_timestamp,
            valuation_date=snapshot.valuation_date,
            current_value=snapshot.current_value,
            net_invested=snapshot.net_invested,
        )
