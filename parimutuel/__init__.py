"""
parimutuel - Market Settlement Engine

Open wagering markets with mutually exclusive outcomes, accept stakes until
a deadline, resolve once, and pay each winning stake its proportional share
of the pool exactly once.

Usage:
    from datetime import datetime
    from parimutuel import MarketLedger, ManualClock, EventLog

    clock = ManualClock(datetime(2025, 1, 1))
    log = EventLog()
    markets = MarketLedger("main", clock=clock, sink=log)

    mid = markets.create_market("Rain tomorrow?", ["yes", "no"], 3600, "carol")
    markets.place_bet(mid, 0, 100, "alice")
    markets.place_bet(mid, 1, 300, "bob")

    clock.advance(3600)
    markets.resolve_market(mid, 1, "oracle-desk")
    markets.claim_winnings(mid, "bob")    # 400
"""

# Core types
from .core import (
    Market,
    MarketEvent,
    MarketStatus,
    EventKind,
    Clock,
    EventSink,
    ValueTransfer,
    MarketError,
    InvalidArgument,
    NotFound,
    MarketClosed,
    InvalidOption,
    BetTooSmall,
    TooEarly,
    AlreadyResolved,
    NotResolved,
    NoWinningStake,
    DivisionByZero,
    InsufficientEscrow,
    MIN_BET,
    MIN_OPTIONS,
    DEFAULT_LEDGER_NAME,
)

# Pool accountant
from .accountant import (
    Distribution,
    compute_payout,
    validate_option_index,
    verify_pool,
    compute_distribution,
    max_rounding_loss,
)

# Collaborators
from .clock import SystemClock, ManualClock
from .events import EventLog, NullSink
from .escrow import EscrowBook, Transfer, ESCROW_ACCOUNT, EXTERNAL_ACCOUNT

# Ledger
from .market_ledger import MarketLedger

__all__ = [
    # Core
    'Market', 'MarketEvent', 'MarketStatus', 'EventKind',
    'Clock', 'EventSink', 'ValueTransfer',
    'MarketError', 'InvalidArgument', 'NotFound', 'MarketClosed', 'InvalidOption',
    'BetTooSmall', 'TooEarly', 'AlreadyResolved', 'NotResolved', 'NoWinningStake',
    'DivisionByZero', 'InsufficientEscrow',
    'MIN_BET', 'MIN_OPTIONS', 'DEFAULT_LEDGER_NAME',
    # Accountant
    'Distribution', 'compute_payout', 'validate_option_index', 'verify_pool',
    'compute_distribution', 'max_rounding_loss',
    # Collaborators
    'SystemClock', 'ManualClock', 'EventLog', 'NullSink',
    'EscrowBook', 'Transfer', 'ESCROW_ACCOUNT', 'EXTERNAL_ACCOUNT',
    # Ledger
    'MarketLedger',
]

__version__ = '1.0.0'
