"""
market_ledger.py - Stateful Parimutuel Market Ledger

The MarketLedger is the central state manager of the settlement engine.
It is the only component that mutates market or stake state.

Key responsibilities:
    - Creates markets and allocates sequential ids atomically
    - Records stakes and keeps per-option and total pools consistent
    - Performs the one-way Open -> Resolved transition exactly once
    - Pays each winning stake exactly once, zeroing it as it is paid
    - Emits one notification per committed mutation
    - Serves consistent snapshots to readers

Concurrency model:
    Every market carries its own lock. All mutations and reads of one
    market happen under that lock, so per-market state is linearizable;
    different markets never contend. A registry lock guards the market
    table and id counter. Notifications and value transfers run after the
    market lock is released.

    Lock order is market -> sequence and registry -> sequence; no code
    path takes a market lock while holding the registry lock.
"""

from __future__ import annotations
from collections import defaultdict
from datetime import datetime
from threading import Lock
from typing import Any, Dict, Iterable, List, Optional, Sequence

from .accountant import compute_payout, validate_option_index, verify_pool
from .clock import ManualClock, SystemClock
from .core import (
    # Types
    Amount, Clock, Duration, EventKind, EventSink, Market, MarketEvent,
    MarketId, MarketStatus, StakeMap, ValueTransfer,
    # Constants
    DEFAULT_LEDGER_NAME, MIN_BET, MIN_OPTIONS,
    # Exceptions
    AlreadyResolved, BetTooSmall, InvalidArgument, InvalidOption,
    MarketClosed, MarketError, NoWinningStake, NotFound, NotResolved,
    TooEarly,
    # Helpers
    to_timedelta,
)
from .events import NullSink


class _MarketRecord:
    """Mutable per-market state. Only touched while holding self.lock."""

    __slots__ = (
        "lock", "market_id", "question", "options", "deadline", "creator",
        "created_at", "status", "total_pool", "pool_by_option",
        "winning_option", "resolved_by", "resolved_at",
        "stakes", "claimed", "payouts",
    )

    def __init__(
        self,
        market_id: MarketId,
        question: str,
        options: Sequence[str],
        deadline: datetime,
        creator: str,
        created_at: datetime,
    ):
        self.lock = Lock()
        self.market_id = market_id
        self.question = question
        self.options = tuple(options)
        self.deadline = deadline
        self.creator = creator
        self.created_at = created_at
        self.status = MarketStatus.OPEN
        self.total_pool: Amount = 0
        self.pool_by_option: List[Amount] = [0] * len(self.options)
        self.winning_option: Optional[int] = None
        self.resolved_by: Optional[str] = None
        self.resolved_at: Optional[datetime] = None
        # bettor -> {option_index -> outstanding stake}
        self.stakes: Dict[str, StakeMap] = {}
        # claimant -> stake that was zeroed by their claim
        self.claimed: Dict[str, Amount] = {}
        # claimant -> payout computed by their claim
        self.payouts: Dict[str, Amount] = {}

    def snapshot(self) -> Market:
        return Market(
            market_id=self.market_id,
            question=self.question,
            options=self.options,
            deadline=self.deadline,
            creator=self.creator,
            created_at=self.created_at,
            status=self.status,
            total_pool=self.total_pool,
            pool_by_option=tuple(self.pool_by_option),
            winning_option=self.winning_option,
            resolved_by=self.resolved_by,
            resolved_at=self.resolved_at,
        )


class MarketLedger:
    """
    Parimutuel market ledger with per-market serialization.

    Example:
        clock = ManualClock(datetime(2025, 1, 1))
        markets = MarketLedger("main", clock=clock)

        mid = markets.create_market("Rain tomorrow?", ["yes", "no"], 3600, "carol")
        markets.place_bet(mid, 0, 100, "alice")
        markets.place_bet(mid, 1, 300, "bob")

        clock.advance(3600)
        markets.resolve_market(mid, 1, "oracle-desk")
        payout = markets.claim_winnings(mid, "bob")   # 400
    """

    def __init__(
        self,
        name: str = DEFAULT_LEDGER_NAME,
        clock: Optional[Clock] = None,
        sink: Optional[EventSink] = None,
        transfer: Optional[ValueTransfer] = None,
        min_bet: Amount = MIN_BET,
        verbose: bool = True,
    ):
        """
        Create a market ledger.

        Args:
            name: Ledger identifier
            clock: Time source for deadlines (default: SystemClock)
            sink: Receiver of notifications (default: NullSink)
            transfer: Optional collaborator paying claimants after each claim
            min_bet: Smallest accepted stake (default: MIN_BET)
            verbose: Print one line per operation outcome (default: True)
        """
        if isinstance(min_bet, bool) or not isinstance(min_bet, int) or min_bet < 1:
            raise InvalidArgument(f"min_bet must be a positive integer, got {min_bet!r}")
        self.name = name
        self.clock: Clock = clock if clock is not None else SystemClock()
        self.sink: EventSink = sink if sink is not None else NullSink()
        self.transfer = transfer
        self.min_bet = min_bet
        self.verbose = verbose

        self._markets: Dict[MarketId, _MarketRecord] = {}
        self._by_creator: Dict[str, List[MarketId]] = defaultdict(list)
        self._next_market_id: MarketId = 1
        self._registry_lock = Lock()

        self._next_sequence: int = 0
        self._sequence_lock = Lock()

    # ========================================================================
    # READ OPERATIONS
    # ========================================================================

    @property
    def current_time(self) -> datetime:
        """Current time according to the ledger's clock."""
        return self.clock.now()

    def get_market(self, market_id: MarketId) -> Market:
        """
        Return a consistent snapshot of a market.

        Raises:
            NotFound: If the market does not exist
        """
        record = self._get_record(market_id)
        with record.lock:
            return record.snapshot()

    def get_stake(self, market_id: MarketId, bettor: str, option_index: int) -> Amount:
        """
        Return bettor's outstanding stake on one option.

        Unknown bettors and out-of-range options read as 0.

        Raises:
            NotFound: If the market does not exist
        """
        record = self._get_record(market_id)
        with record.lock:
            return record.stakes.get(bettor, {}).get(option_index, 0)

    def get_stakes(self, market_id: MarketId, bettor: str) -> StakeMap:
        """Return bettor's non-zero outstanding stakes keyed by option index."""
        record = self._get_record(market_id)
        with record.lock:
            return {o: a for o, a in record.stakes.get(bettor, {}).items() if a > 0}

    def get_option_pool(self, market_id: MarketId, option_index: int) -> Amount:
        """
        Return the sum of stakes placed on one option.

        Out-of-range options read as 0.

        Raises:
            NotFound: If the market does not exist
        """
        record = self._get_record(market_id)
        with record.lock:
            if not validate_option_index(option_index, len(record.options)):
                return 0
            return record.pool_by_option[option_index]

    def get_markets_by_creator(self, creator: str) -> List[MarketId]:
        """Return ids of the markets created by creator, oldest first."""
        with self._registry_lock:
            return list(self._by_creator.get(creator, ()))

    def list_markets(self) -> List[Market]:
        """Return snapshots of every market, ordered by id."""
        with self._registry_lock:
            records = [self._markets[mid] for mid in sorted(self._markets)]
        snapshots = []
        for record in records:
            with record.lock:
                snapshots.append(record.snapshot())
        return snapshots

    def is_closed(self, market_id: MarketId) -> bool:
        """Return True if the market currently rejects stakes (derived, never cached)."""
        record = self._get_record(market_id)
        with record.lock:
            return record.status is MarketStatus.RESOLVED or self.clock.now() >= record.deadline

    def get_claimable(self, market_id: MarketId, bettor: str) -> Amount:
        """
        Return what claim_winnings would pay bettor right now.

        Returns 0 while the market is unresolved or when bettor holds no
        outstanding winning stake. Does not mutate anything.
        """
        record = self._get_record(market_id)
        with record.lock:
            if record.status is not MarketStatus.RESOLVED:
                return 0
            stake = record.stakes.get(bettor, {}).get(record.winning_option, 0)
            if stake == 0:
                return 0
            return compute_payout(
                stake, record.pool_by_option[record.winning_option], record.total_pool
            )

    def get_claimed_total(self, market_id: MarketId) -> Amount:
        """Return the sum of payouts computed by successful claims so far."""
        record = self._get_record(market_id)
        with record.lock:
            return sum(record.payouts.values())

    def verify_pools(self) -> Dict[str, Any]:
        """
        Verify the accounting invariants of every market.

        Checks, per market:
        - total_pool == sum(pool_by_option)
        - pool_by_option[o] == outstanding stakes on o, plus stakes already
          zeroed by claims when o is the winning option
        - payouts so far never exceed total_pool

        Returns:
            Dict with keys:
            - 'valid': bool - True if every invariant holds
            - 'markets': int - Number of markets checked
            - 'discrepancies': List[Dict] - One entry per violation, each
              with market_id, check, expected and actual

        Example:
            result = markets.verify_pools()
            assert result['valid'], result['discrepancies']
        """
        with self._registry_lock:
            records = [self._markets[mid] for mid in sorted(self._markets)]

        discrepancies = []
        for record in records:
            with record.lock:
                mid = record.market_id
                if not verify_pool(record.pool_by_option, record.total_pool):
                    discrepancies.append({
                        'market_id': mid,
                        'check': 'total_pool',
                        'expected': record.total_pool,
                        'actual': sum(record.pool_by_option),
                    })
                for option, pool in enumerate(record.pool_by_option):
                    staked = sum(s.get(option, 0) for s in record.stakes.values())
                    if option == record.winning_option:
                        staked += sum(record.claimed.values())
                    if staked != pool:
                        discrepancies.append({
                            'market_id': mid,
                            'check': f'pool_by_option[{option}]',
                            'expected': pool,
                            'actual': staked,
                        })
                paid = sum(record.payouts.values())
                if paid > record.total_pool:
                    discrepancies.append({
                        'market_id': mid,
                        'check': 'payouts',
                        'expected': record.total_pool,
                        'actual': paid,
                    })

        return {
            'valid': len(discrepancies) == 0,
            'markets': len(records),
            'discrepancies': discrepancies,
        }

    def __len__(self) -> int:
        with self._registry_lock:
            return len(self._markets)

    # ========================================================================
    # MUTATING OPERATIONS
    # ========================================================================

    def create_market(
        self,
        question: str,
        options: Sequence[str],
        duration: Duration,
        creator: str,
    ) -> MarketId:
        """
        Open a new market.

        Args:
            question: Non-empty descriptive text
            options: At least two distinct, non-empty outcome labels
            duration: Betting window (timedelta or seconds), strictly positive
            creator: Identity of the creating account

        Returns:
            The new market's id

        Raises:
            InvalidArgument: On any malformed parameter
        """
        if not isinstance(question, str) or not question.strip():
            raise self._rejected(InvalidArgument("question cannot be empty"))
        if isinstance(options, str):
            raise self._rejected(InvalidArgument("options must be a sequence of labels, not a string"))
        options = tuple(options)
        if len(options) < MIN_OPTIONS:
            raise self._rejected(InvalidArgument(
                f"market needs at least {MIN_OPTIONS} options, got {len(options)}"
            ))
        for label in options:
            if not isinstance(label, str) or not label.strip():
                raise self._rejected(InvalidArgument("option labels cannot be empty"))
        if len(set(options)) != len(options):
            raise self._rejected(InvalidArgument(f"option labels must be distinct: {options}"))
        if not creator:
            raise self._rejected(InvalidArgument("creator cannot be empty"))
        try:
            window = to_timedelta(duration)
        except InvalidArgument as e:
            self._rejected(e)
            raise

        now = self.clock.now()
        try:
            deadline = now + window
        except OverflowError as e:
            raise self._rejected(InvalidArgument(
                f"deadline out of range: {now.isoformat()} + {window}"
            )) from e

        with self._registry_lock:
            market_id = self._next_market_id
            self._next_market_id += 1
            record = _MarketRecord(market_id, question, options, deadline, creator, now)
            self._markets[market_id] = record
            self._by_creator[creator].append(market_id)
            event = MarketEvent(
                kind=EventKind.MARKET_CREATED,
                market_id=market_id,
                sequence=self._allocate_sequence(),
                timestamp=now,
                actor=creator,
                data=(
                    ("question", question),
                    ("options", options),
                    ("deadline", record.deadline),
                ),
            )

        if self.verbose:
            print(f"📝 Created: market #{market_id} {question!r} {list(options)} "
                  f"deadline={record.deadline.isoformat()}")
        self.sink.emit(event)
        return market_id

    def place_bet(
        self,
        market_id: MarketId,
        option_index: int,
        amount: Amount,
        bettor: str,
    ) -> None:
        """
        Add amount to bettor's stake on one option of an open market.

        The stake, the option pool and the total pool change together.
        The caller must have escrowed amount with the value-transfer
        collaborator beforehand.

        Raises:
            NotFound: Unknown market
            BetTooSmall: amount below min_bet
            MarketClosed: Deadline reached or market resolved
            InvalidOption: option_index out of range
            InvalidArgument: Non-integer amount or empty bettor
        """
        if isinstance(amount, bool) or not isinstance(amount, int):
            raise self._rejected(InvalidArgument(f"amount must be an integer, got {amount!r}"))
        if not bettor:
            raise self._rejected(InvalidArgument("bettor cannot be empty"))
        record = self._get_record(market_id)
        if amount < self.min_bet:
            raise self._rejected(BetTooSmall(
                f"market #{market_id}: stake {amount} below minimum {self.min_bet}"
            ))

        with record.lock:
            now = self.clock.now()
            if record.status is MarketStatus.RESOLVED:
                raise self._rejected(MarketClosed(f"market #{market_id} is resolved"))
            if now >= record.deadline:
                raise self._rejected(MarketClosed(
                    f"market #{market_id} closed at {record.deadline.isoformat()}"
                ))
            if not validate_option_index(option_index, len(record.options)):
                raise self._rejected(InvalidOption(
                    f"market #{market_id}: option {option_index} not in 0..{len(record.options) - 1}"
                ))

            stakes = record.stakes.setdefault(bettor, {})
            stakes[option_index] = stakes.get(option_index, 0) + amount
            record.pool_by_option[option_index] += amount
            record.total_pool += amount

            event = MarketEvent(
                kind=EventKind.BET_PLACED,
                market_id=market_id,
                sequence=self._allocate_sequence(),
                timestamp=now,
                actor=bettor,
                option_index=option_index,
                amount=amount,
            )
            total_pool = record.total_pool

        if self.verbose:
            print(f"✓ BET: {bettor} staked {amount} on #{market_id}[{option_index}] "
                  f"(pool={total_pool})")
        self.sink.emit(event)

    def resolve_market(
        self,
        market_id: MarketId,
        winning_option: int,
        resolver: str,
    ) -> None:
        """
        Declare the winning option. Succeeds at most once per market.

        resolver must already be authorized by the caller; the ledger only
        records the identity.

        Raises:
            NotFound: Unknown market
            TooEarly: Deadline not yet reached
            AlreadyResolved: A previous resolution succeeded
            InvalidOption: winning_option out of range
            InvalidArgument: Empty resolver
        """
        if not resolver:
            raise self._rejected(InvalidArgument("resolver cannot be empty"))
        record = self._get_record(market_id)

        with record.lock:
            now = self.clock.now()
            if now < record.deadline:
                raise self._rejected(TooEarly(
                    f"market #{market_id} cannot be resolved before {record.deadline.isoformat()}"
                ))
            if record.status is MarketStatus.RESOLVED:
                raise self._rejected(AlreadyResolved(
                    f"market #{market_id} already resolved to option {record.winning_option}"
                ))
            if not validate_option_index(winning_option, len(record.options)):
                raise self._rejected(InvalidOption(
                    f"market #{market_id}: option {winning_option} not in 0..{len(record.options) - 1}"
                ))

            record.winning_option = winning_option
            record.status = MarketStatus.RESOLVED
            record.resolved_by = resolver
            record.resolved_at = now

            event = MarketEvent(
                kind=EventKind.MARKET_RESOLVED,
                market_id=market_id,
                sequence=self._allocate_sequence(),
                timestamp=now,
                actor=resolver,
                option_index=winning_option,
            )
            label = record.options[winning_option]

        if self.verbose:
            print(f"✓ RESOLVED: #{market_id} -> [{winning_option}] {label!r} by {resolver}")
        self.sink.emit(event)

    def claim_winnings(self, market_id: MarketId, claimant: str) -> Amount:
        """
        Pay claimant's share of the pool and zero their winning stake.

        Reading the stake, computing the payout and zeroing the stake happen
        as one step under the market lock; a concurrent second claim sees
        zero and fails. The value-transfer collaborator, if attached, is
        called only after that step has committed.

        Returns:
            The payout amount

        Raises:
            NotFound: Unknown market
            NotResolved: Market still open
            NoWinningStake: No outstanding stake on the winning option
            DivisionByZero: Propagated from the accountant (unreachable
                            while stakes and pools agree)
        """
        record = self._get_record(market_id)

        with record.lock:
            if record.status is not MarketStatus.RESOLVED:
                raise self._rejected(NotResolved(f"market #{market_id} is not resolved"))
            winning_option = record.winning_option
            stakes = record.stakes.get(claimant, {})
            stake = stakes.get(winning_option, 0)
            if stake == 0:
                raise self._rejected(NoWinningStake(
                    f"{claimant} has no claimable stake on market #{market_id}"
                ))

            payout = compute_payout(
                stake, record.pool_by_option[winning_option], record.total_pool
            )
            stakes[winning_option] = 0
            record.claimed[claimant] = record.claimed.get(claimant, 0) + stake
            record.payouts[claimant] = record.payouts.get(claimant, 0) + payout

            event = MarketEvent(
                kind=EventKind.WINNINGS_CLAIMED,
                market_id=market_id,
                sequence=self._allocate_sequence(),
                timestamp=self.clock.now(),
                actor=claimant,
                option_index=winning_option,
                amount=payout,
                data=(("stake", stake),),
            )

        if self.verbose:
            print(f"✓ CLAIMED: {claimant} receives {payout} from #{market_id} (stake={stake})")
        self.sink.emit(event)
        if self.transfer is not None:
            self.transfer.disburse(claimant, payout, f"claim:{market_id}:{claimant}")
        return payout

    # ========================================================================
    # REPLAY
    # ========================================================================

    @classmethod
    def replay(
        cls,
        events: Iterable[MarketEvent],
        name: Optional[str] = None,
        sink: Optional[EventSink] = None,
        min_bet: Amount = MIN_BET,
        verbose: bool = False,
    ) -> 'MarketLedger':
        """
        Rebuild a ledger by re-applying a recorded notification stream.

        Events are applied in sequence order on a ManualClock that follows
        the recorded timestamps, so every deadline check sees the same time
        it saw originally. No value transfers are made.

        Args:
            events: Notifications from an EventLog (any order)
            name: Name of the rebuilt ledger (default: "markets_replayed")
            sink: Receiver of the re-emitted notifications
            min_bet: Minimum stake of the original ledger
            verbose: Print one line per replayed operation

        Returns:
            New MarketLedger with identical markets, pools and stakes

        Raises:
            MarketError: If an event cannot be re-applied or diverges
                         from the recorded outcome
        """
        ordered = sorted(events, key=lambda e: e.sequence)
        clock = ManualClock(ordered[0].timestamp if ordered else None)
        ledger = cls(
            name=name or f"{DEFAULT_LEDGER_NAME}_replayed",
            clock=clock,
            sink=sink,
            min_bet=min_bet,
            verbose=verbose,
        )

        for event in ordered:
            if event.timestamp > clock.now():
                clock.advance_time(event.timestamp)

            if event.kind is EventKind.MARKET_CREATED:
                data = event.data_dict
                market_id = ledger.create_market(
                    data["question"],
                    data["options"],
                    data["deadline"] - event.timestamp,
                    event.actor,
                )
                if market_id != event.market_id:
                    raise MarketError(
                        f"Replay diverged at #{event.sequence}: created market "
                        f"{market_id}, recorded {event.market_id}"
                    )
            elif event.kind is EventKind.BET_PLACED:
                ledger.place_bet(event.market_id, event.option_index, event.amount, event.actor)
            elif event.kind is EventKind.MARKET_RESOLVED:
                ledger.resolve_market(event.market_id, event.option_index, event.actor)
            elif event.kind is EventKind.WINNINGS_CLAIMED:
                payout = ledger.claim_winnings(event.market_id, event.actor)
                if payout != event.amount:
                    raise MarketError(
                        f"Replay diverged at #{event.sequence}: paid {payout}, "
                        f"recorded {event.amount}"
                    )

        return ledger

    # ========================================================================
    # INTERNALS
    # ========================================================================

    def _get_record(self, market_id: MarketId) -> _MarketRecord:
        with self._registry_lock:
            record = self._markets.get(market_id)
        if record is None:
            raise self._rejected(NotFound(f"market {market_id!r} not found"))
        return record

    def _allocate_sequence(self) -> int:
        with self._sequence_lock:
            sequence = self._next_sequence
            self._next_sequence += 1
            return sequence

    def _rejected(self, error: MarketError) -> MarketError:
        """Report a rejection when verbose and hand the error back for raising."""
        if self.verbose:
            print(f"✗ REJECTED: {type(error).__name__}: {error}")
        return error

    def __repr__(self) -> str:
        return f"MarketLedger({self.name!r}, markets={len(self)})"
