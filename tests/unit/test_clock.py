"""
test_clock.py - Unit tests for clock.py
"""

import pytest
from datetime import datetime, timedelta, timezone

from parimutuel import ManualClock, SystemClock, Clock, InvalidArgument


class TestManualClock:

    def test_default_start(self):
        assert ManualClock().now() == datetime(1970, 1, 1, tzinfo=timezone.utc)

    def test_default_start_comparable_with_system_clock(self):
        """Times from both clocks can be compared without a TypeError."""
        assert ManualClock().now() < SystemClock().now()

    def test_advance_time(self):
        clock = ManualClock(datetime(2025, 1, 1))
        clock.advance_time(datetime(2025, 1, 15, 12, 0, 0))
        assert clock.now() == datetime(2025, 1, 15, 12, 0, 0)

    def test_advance_time_to_same_instant_allowed(self):
        start = datetime(2025, 1, 1)
        clock = ManualClock(start)
        clock.advance_time(start)
        assert clock.now() == start

    def test_cannot_move_backwards(self):
        clock = ManualClock(datetime(2025, 1, 15))
        with pytest.raises(ValueError, match="backwards"):
            clock.advance_time(datetime(2025, 1, 1))
        assert clock.now() == datetime(2025, 1, 15)

    def test_advance_by_seconds(self):
        clock = ManualClock(datetime(2025, 1, 1))
        assert clock.advance(3600) == datetime(2025, 1, 1, 1, 0, 0)

    def test_advance_by_timedelta(self):
        clock = ManualClock(datetime(2025, 1, 1))
        clock.advance(timedelta(days=1))
        assert clock.now() == datetime(2025, 1, 2)

    def test_advance_requires_positive_duration(self):
        clock = ManualClock(datetime(2025, 1, 1))
        with pytest.raises(InvalidArgument):
            clock.advance(0)

    def test_satisfies_protocol(self):
        assert isinstance(ManualClock(), Clock)


class TestSystemClock:

    def test_returns_aware_utc(self):
        now = SystemClock().now()
        assert now.tzinfo is timezone.utc

    def test_monotone_enough(self):
        clock = SystemClock()
        assert clock.now() <= clock.now()

    def test_satisfies_protocol(self):
        assert isinstance(SystemClock(), Clock)
