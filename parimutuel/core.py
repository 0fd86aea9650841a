"""
Core types for the parimutuel settlement engine.

This module provides the foundational data structures and protocols:
1. Constants: minimum stake and default naming
2. Protocols: Clock, EventSink and ValueTransfer collaborators
3. Enums: MarketStatus and EventKind
4. Exceptions: MarketError and the operation-specific error types
5. Immutable snapshots: Market and MarketEvent

Nothing in this module mutates ledger state. The MarketLedger is the only
component that owns mutable market records; everything it hands out is one
of the frozen types defined here.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import (
    Dict, Optional, Protocol, Tuple, Union, runtime_checkable, Any
)


# ============================================================================
# CONSTANTS
# ============================================================================

# Smallest stake a single place_bet call accepts, in the smallest value unit.
MIN_BET = 1

# Minimum number of outcomes a market must offer.
MIN_OPTIONS = 2

DEFAULT_LEDGER_NAME = "markets"


# ============================================================================
# TYPE ALIASES
# ============================================================================

# Amounts are integers in the smallest indivisible unit of value.
Amount = int

MarketId = int

# Mapping from option index to stake amount for one bettor in one market.
StakeMap = Dict[int, Amount]

# Either a timedelta or a number of seconds.
Duration = Union[timedelta, int, float]


# ============================================================================
# ENUMS
# ============================================================================

class MarketStatus(Enum):
    """
    Stored lifecycle state of a market.

    OPEN: Accepting stakes until the deadline, awaiting resolution afterwards.
    RESOLVED: Winning option declared; claims are possible.

    There is no "closed" status. Closure is derived from the clock
    on every read (see MarketLedger.is_closed).
    """
    OPEN = "open"
    RESOLVED = "resolved"


class EventKind(Enum):
    """Notification types emitted by the ledger after each committed mutation."""
    MARKET_CREATED = "market_created"
    BET_PLACED = "bet_placed"
    MARKET_RESOLVED = "market_resolved"
    WINNINGS_CLAIMED = "winnings_claimed"


# ============================================================================
# EXCEPTIONS
# ============================================================================

class MarketError(Exception):
    """Base exception for all settlement errors."""
    pass


class InvalidArgument(MarketError, ValueError):
    """Raised when creation parameters or amounts are malformed."""
    pass


class NotFound(MarketError, KeyError):
    """Raised when a market id does not exist."""

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the plain message.
        return str(self.args[0]) if self.args else ""


class MarketClosed(MarketError):
    """Raised when a stake arrives at or after the deadline, or after resolution."""
    pass


class InvalidOption(MarketError):
    """Raised when an option index is outside the market's option range."""
    pass


class BetTooSmall(MarketError):
    """Raised when a stake is below the ledger's minimum bet."""
    pass


class TooEarly(MarketError):
    """Raised when resolution is attempted before the deadline."""
    pass


class AlreadyResolved(MarketError):
    """Raised on every resolution attempt after the first successful one."""
    pass


class NotResolved(MarketError):
    """Raised when a claim is attempted on a market that is still open."""
    pass


class NoWinningStake(MarketError):
    """Raised when the claimant holds no unclaimed stake on the winning option."""
    pass


class DivisionByZero(MarketError, ZeroDivisionError):
    """Raised by the accountant when the winning pool is empty."""
    pass


class InsufficientEscrow(MarketError):
    """Raised when the escrow book cannot cover a disbursement."""
    pass


# ============================================================================
# PROTOCOLS
# ============================================================================

@runtime_checkable
class Clock(Protocol):
    """
    Source of "now" for deadline comparisons.

    The ledger never reads the wall clock directly; every deadline check
    goes through the clock it was constructed with.
    """

    def now(self) -> datetime:
        """Return the current time."""
        ...


@runtime_checkable
class EventSink(Protocol):
    """Receiver of committed-mutation notifications."""

    def emit(self, event: 'MarketEvent') -> None:
        """Accept one notification. Must not call back into the ledger."""
        ...


@runtime_checkable
class ValueTransfer(Protocol):
    """
    Collaborator that moves value to claimants.

    Stakes are assumed to have been escrowed by the caller before
    place_bet is invoked. disburse() is only ever called after the
    claimant's stake has been zeroed and the market lock released, so a
    misbehaving transfer target cannot observe the stake a second time.
    """

    def disburse(self, claimant: str, amount: Amount, reference: str) -> None:
        """Pay amount to claimant."""
        ...


# ============================================================================
# SNAPSHOTS
# ============================================================================

@dataclass(frozen=True, slots=True)
class Market:
    """
    Immutable, consistent view of one market.

    Snapshots are taken under the market's lock, so total_pool always
    equals sum(pool_by_option) on any instance handed to a caller.

    Attributes:
        market_id: Sequential identifier assigned at creation.
        question: Descriptive text.
        options: Outcome labels, referenced by index.
        deadline: First instant at which stakes are rejected.
        creator: Identity that created the market (informational).
        created_at: Clock time at creation.
        status: Stored lifecycle state.
        total_pool: Sum of every accepted stake.
        pool_by_option: Sum of accepted stakes per option index.
        winning_option: Index of the declared outcome, None while open.
        resolved_by: Resolver identity recorded at resolution.
        resolved_at: Clock time at resolution.
    """
    market_id: MarketId
    question: str
    options: Tuple[str, ...]
    deadline: datetime
    creator: str
    created_at: datetime
    status: MarketStatus = MarketStatus.OPEN
    total_pool: Amount = 0
    pool_by_option: Tuple[Amount, ...] = ()
    winning_option: Optional[int] = None
    resolved_by: Optional[str] = None
    resolved_at: Optional[datetime] = None

    @property
    def is_resolved(self) -> bool:
        return self.status is MarketStatus.RESOLVED

    @property
    def winning_pool(self) -> Amount:
        """Pool of the winning option (0 while unresolved)."""
        if self.winning_option is None:
            return 0
        return self.pool_by_option[self.winning_option]

    def is_closed_at(self, now: datetime) -> bool:
        """Return True if stakes are rejected at the given time."""
        return self.is_resolved or now >= self.deadline

    def __repr__(self) -> str:
        outcome = (
            f", winner={self.options[self.winning_option]!r}"
            if self.winning_option is not None else ""
        )
        return (
            f"Market(#{self.market_id} {self.question!r}, "
            f"{self.status.value}, pool={self.total_pool}{outcome})"
        )


@dataclass(frozen=True, slots=True)
class MarketEvent:
    """
    Notification describing one committed mutation.

    Attributes:
        kind: Which operation committed.
        market_id: Market the operation touched.
        sequence: Ledger-wide monotonic number, assigned while the market
                  lock was held. Sorting by sequence reproduces the
                  per-market commit order.
        timestamp: Clock time of the commit.
        actor: Creator, bettor, resolver or claimant identity.
        option_index: Option staked on or declared winner, when relevant.
        amount: Stake placed or payout computed, when relevant.
        data: Extra payload (question, options, deadline for creations).
    """
    kind: EventKind
    market_id: MarketId
    sequence: int
    timestamp: datetime
    actor: str
    option_index: Optional[int] = None
    amount: Optional[Amount] = None
    data: Tuple[Tuple[str, Any], ...] = field(default_factory=tuple)

    @property
    def data_dict(self) -> Dict[str, Any]:
        """Get data as a dictionary for convenience."""
        return dict(self.data)

    def __repr__(self) -> str:
        parts = [f"#{self.sequence} {self.kind.value} market={self.market_id} actor={self.actor}"]
        if self.option_index is not None:
            parts.append(f"option={self.option_index}")
        if self.amount is not None:
            parts.append(f"amount={self.amount}")
        return f"MarketEvent({', '.join(parts)})"


# ============================================================================
# HELPERS
# ============================================================================

def to_timedelta(duration: Duration) -> timedelta:
    """
    Normalize a duration to a timedelta.

    Raises:
        InvalidArgument: If duration is not a timedelta or a real number,
                         is not finite, exceeds timedelta's range, or is
                         not strictly positive.
    """
    if isinstance(duration, bool):
        raise InvalidArgument(f"duration must be a timedelta or seconds, got {duration!r}")
    if isinstance(duration, timedelta):
        delta = duration
    elif isinstance(duration, (int, float)):
        try:
            delta = timedelta(seconds=duration)
        except (ValueError, OverflowError) as e:
            raise InvalidArgument(f"duration out of range: {duration!r} ({e})") from e
    else:
        raise InvalidArgument(f"duration must be a timedelta or seconds, got {type(duration).__name__}")
    if delta <= timedelta(0):
        raise InvalidArgument(f"duration must be positive, got {duration!r}")
    return delta
