"""Tagged result type for validation outcomes.

Validation failures (a snapshot that cannot be saved, an import file with
the wrong shape) are expected, user-facing states. They are returned as
``Err`` values instead of raised so callers can branch on ``result.ok``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    reason: str

    @property
    def ok(self) -> bool:
        return False


Result = Union[Ok[T], Err]
