"""
events.py - Notification sinks

The ledger emits one MarketEvent per committed mutation. Sinks receive
them for observability and downstream indexing.

Core concepts:
1. MarketEvent (core.py): Immutable record of what happened
2. EventLog: Ordered, queryable, in-memory record of every event
3. NullSink: Discards everything

The event log doubles as an audit trail: MarketLedger.replay() rebuilds
ledger state from it.
"""

from __future__ import annotations
from threading import Lock
from typing import Iterable, List, Optional

from .core import EventKind, MarketEvent, MarketId


class NullSink:
    """Sink that drops every notification."""

    def emit(self, event: MarketEvent) -> None:
        pass


class EventLog:
    """
    Thread-safe in-memory event recorder.

    Events may arrive slightly out of sequence when several markets are
    mutated concurrently (emission happens after the market lock is
    released). events() always returns them sorted by sequence.
    """

    def __init__(self):
        self._events: List[MarketEvent] = []
        self._lock = Lock()

    def emit(self, event: MarketEvent) -> None:
        with self._lock:
            self._events.append(event)

    def events(
        self,
        market_id: Optional[MarketId] = None,
        kind: Optional[EventKind] = None,
    ) -> List[MarketEvent]:
        """
        Return recorded events in sequence order.

        Args:
            market_id: Only events for this market
            kind: Only events of this kind
        """
        with self._lock:
            snapshot = list(self._events)
        selected = [
            e for e in snapshot
            if (market_id is None or e.market_id == market_id)
            and (kind is None or e.kind is kind)
        ]
        return sorted(selected, key=lambda e: e.sequence)

    def extend(self, events: Iterable[MarketEvent]) -> None:
        """Append previously recorded events (e.g. loaded from an archive)."""
        with self._lock:
            self._events.extend(events)

    def clear(self) -> None:
        with self._lock:
            self._events.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)

    def __iter__(self):
        return iter(self.events())

    def __repr__(self):
        return f"EventLog({len(self)} events)"
