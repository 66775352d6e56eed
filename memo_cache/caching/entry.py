"""
Stored slot types for the expiring store.

Every stored value is wrapped so a cached "no result" can be told apart
from a missing entry.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class Present(Generic[T]):
    """A producer result that was cached."""

    value: T


@dataclass(frozen=True)
class Absent:
    """A cached "producer returned no result"."""

    def __repr__(self) -> str:
        return "ABSENT"


ABSENT = Absent()

Slot = Union[Present[Any], Absent]


def wrap(value: Optional[T], cache_absence: bool) -> Optional[Slot]:
    """Build the slot to store for a producer result, or None to skip storing."""
    if value is None:
        return ABSENT if cache_absence else None
    return Present(value)


def unwrap(slot: Slot) -> Any:
    """Return the caller-facing value for a stored slot."""
    if isinstance(slot, Absent):
        return None
    return slot.value
