"""Clock capability.

Expiry decisions read the current instant through a Clock so they can be
tested against a fixed time.
"""

from __future__ import annotations

__all__ = [
    "Clock",
    "SystemClock",
]

from datetime import datetime, timezone
from typing import Protocol, runtime_checkable


@runtime_checkable
class Clock(Protocol):
    """Source of the current instant."""

    def now(self) -> datetime:
        """Return the current time as an aware UTC datetime."""
        ...


class SystemClock:
    """Clock backed by the system time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)
