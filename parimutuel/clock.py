"""
clock.py - Time sources for deadline checks

Classes:
- SystemClock: Wall-clock UTC time
- ManualClock: Logical time that only moves when told to

Both satisfy the Clock protocol defined in core.py. Simulations and tests
use ManualClock so that deadline boundaries can be hit exactly.
"""

from datetime import datetime, timezone
from threading import Lock
from typing import Optional

from .core import Duration, to_timedelta


class SystemClock:
    """Clock backed by the system's UTC wall clock."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def __repr__(self):
        return "SystemClock()"


class ManualClock:
    """
    Logical clock advanced explicitly by the caller.

    Time can only move forward, never backward.
    """

    def __init__(self, initial_time: Optional[datetime] = None):
        """
        Args:
            initial_time: Starting time (default: 1970-01-01 UTC)
        """
        self._current_time: datetime = (
            initial_time if initial_time is not None else datetime(1970, 1, 1, tzinfo=timezone.utc)
        )
        self._lock = Lock()

    def now(self) -> datetime:
        with self._lock:
            return self._current_time

    def advance_time(self, new_time: datetime) -> None:
        """
        Move the clock to new_time.

        Raises:
            ValueError: If new_time is before the current time
        """
        with self._lock:
            if new_time < self._current_time:
                raise ValueError(
                    f"Cannot move time backwards: {new_time} < {self._current_time}"
                )
            self._current_time = new_time

    def advance(self, duration: Duration) -> datetime:
        """Move the clock forward by a positive duration and return the new time."""
        delta = to_timedelta(duration)
        with self._lock:
            self._current_time = self._current_time + delta
            return self._current_time

    def __repr__(self):
        return f"ManualClock({self._current_time.isoformat()})"
