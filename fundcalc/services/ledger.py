"""Cash-flow ledger utilities.

A ledger is an ordered-irrelevant collection of ``CashMovement`` records:
money the investor put into the fund (deposits) or took out of it
(withdrawals). Amounts are stored as positive magnitudes and the
direction carries the sign.

Two sign conventions are in play. For balances, a deposit adds to the
invested capital. For IRR, the investor's point of view is used instead:
deposits are negative cash flows, withdrawals and the terminal valuation
are positive. ``to_signed_flows`` performs that conversion.

None of the functions below mutate their input.
"""

from __future__ import annotations

import enum
import math
from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable, List


class InvalidInputError(ValueError):
    """Raised when an amount or value is not a finite number."""


class Direction(str, enum.Enum):
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"


def ensure_finite(value, what: str = "value") -> float:
    """Return ``value`` as a float, rejecting NaN, infinities and non-numbers."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidInputError(f"{what} must be a number, got {value!r}")
    value = float(value)
    if not math.isfinite(value):
        raise InvalidInputError(f"{what} must be finite, got {value!r}")
    return value


def as_date(value) -> date:
    """Coerce an ISO ``YYYY-MM-DD`` string, ``datetime`` or ``date`` to a date.

    Strings may carry a ``T``-separated time part, which is dropped.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        s = value.strip()
        try:
            if len(s) > 10:
                if s[10] not in "Tt":
                    raise ValueError(s)
                return datetime.fromisoformat(s.replace("Z", "+00:00")).date()
            return date.fromisoformat(s)
        except ValueError:
            raise InvalidInputError(f"invalid calendar date: {value!r}") from None
    raise InvalidInputError(f"invalid calendar date: {value!r}")


@dataclass(frozen=True)
class CashMovement:
    """A single deposit into or withdrawal from the fund."""

    date: date
    amount: float
    direction: Direction

    @property
    def signed_amount(self) -> float:
        # balance view: deposits increase invested capital
        return self.amount if self.direction is Direction.DEPOSIT else -self.amount

    @classmethod
    def from_dict(cls, d: dict) -> "CashMovement":
        """Build a movement from ``{"date", "amount", "direction"}``.

        Raises ``InvalidInputError`` for a missing key, a bad date, a
        negative or non-finite amount or an unknown direction.
        """
        try:
            raw_date, raw_amount, raw_direction = d["date"], d["amount"], d["direction"]
        except (KeyError, TypeError):
            raise InvalidInputError("cash flow needs date, amount and direction") from None
        amount = ensure_finite(raw_amount, "amount")
        if amount < 0:
            raise InvalidInputError(f"amount must not be negative, got {amount!r}")
        try:
            direction = Direction(raw_direction)
        except ValueError:
            raise InvalidInputError(f"invalid direction: {raw_direction!r}") from None
        return cls(date=as_date(raw_date), amount=amount, direction=direction)

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "amount": self.amount,
            "direction": self.direction.value,
        }


@dataclass(frozen=True)
class SignedFlow:
    """A dated cash flow from the investor's point of view."""

    date: date
    amount: float


@dataclass(frozen=True)
class ValuationPoint:
    date: date
    value: float


def sort_chronologically(entries: Iterable[CashMovement]) -> List[CashMovement]:
    """Return a new list sorted by date.

    ``sorted`` is stable, so same-day entries keep their relative order,
    which the simple-rate walk relies on.
    """
    return sorted(entries, key=lambda e: e.date)


def net_invested(entries: Iterable[CashMovement]) -> float:
    """Return total deposits minus total withdrawals (0.0 for no entries)."""
    total = 0.0
    for e in entries:
        ensure_finite(e.amount, "amount")
        total += e.signed_amount
    return total


def to_signed_flows(
    entries: Iterable[CashMovement],
    valuation_date: date,
    current_value: float,
) -> List[SignedFlow]:
    """Map a ledger plus a valuation to IRR flows.

    Deposits become negative flows, withdrawals positive, and the
    valuation is appended as a final positive flow.
    """
    flows = [SignedFlow(e.date, -e.signed_amount) for e in entries]
    flows.append(SignedFlow(as_date(valuation_date), ensure_finite(current_value, "current value")))
    return flows
