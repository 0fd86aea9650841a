"""
conftest.py - Shared pytest fixtures for settlement tests

Provides common fixtures used across unit, functional and conformance tests:
- A manual clock pinned to a known start time
- An event log and a quiet market ledger wired to both
- Ready-made binary and three-way markets
- A funded escrow book
"""

import pytest
from datetime import datetime, timedelta

from parimutuel import (
    MarketLedger, ManualClock, EventLog, EscrowBook,
)


START = datetime(2025, 1, 1, 9, 0, 0)
ONE_HOUR = timedelta(hours=1)


# =============================================================================
# BASIC FIXTURES
# =============================================================================

@pytest.fixture
def clock():
    """Manual clock starting at START."""
    return ManualClock(START)


@pytest.fixture
def event_log():
    """Empty event log."""
    return EventLog()


@pytest.fixture
def markets(clock, event_log):
    """Quiet ledger on the manual clock, recording into event_log."""
    return MarketLedger("test", clock=clock, sink=event_log, verbose=False)


@pytest.fixture
def escrow_book():
    """Escrow book with alice, bob and carol funded."""
    book = EscrowBook()
    for account in ("alice", "bob", "carol"):
        book.deposit(account, 10_000)
    return book


# =============================================================================
# MARKET FIXTURES
# =============================================================================

@pytest.fixture
def binary_market(markets):
    """Two-option market open for one hour. Returns its id."""
    return markets.create_market("Will it rain?", ["yes", "no"], ONE_HOUR, "carol")


@pytest.fixture
def three_way_market(markets):
    """Three-option market open for one hour. Returns its id."""
    return markets.create_market(
        "Who wins the final?", ["home", "draw", "away"], ONE_HOUR, "carol"
    )
