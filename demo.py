#!/usr/bin/env python3
"""
demo.py - Interactive Tutorial: Learn Parimutuel Settlement Step by Step

This is a pedagogical walk through one market's life, from creation to the
last claim. Each step builds on the previous one. Press Enter to advance.

WHAT YOU'LL LEARN:
  1-3:   Foundation  - Ledger, clock, escrow book, opening a market
  4-6:   Betting     - Stakes, pools, rejections, the deadline
  7-9:   Settlement  - Resolution, proportional payouts, exactly-once claims
  10-11: Audit       - Invariant checks and replay from the event log

Run:
    python demo.py           # Interactive mode (press Enter for each step)
    python demo.py --quick   # Run all steps without pausing
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, Tuple
import sys

from parimutuel import (
    # Core classes
    MarketLedger, ManualClock, EventLog, EscrowBook, EventKind,
    # Accounting
    compute_distribution, max_rounding_loss,
    # Exceptions
    MarketError, NoWinningStake, AlreadyResolved,
)


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass
class DemoConfig:
    """Configuration for the tutorial. Modify these to experiment."""
    # Timing
    start_time: datetime = datetime(2025, 1, 1, 9, 0, 0)
    betting_window: timedelta = timedelta(hours=6)

    # Market
    question: str = "Who wins the final?"
    options: Tuple[str, ...] = ("home", "draw", "away")
    winning_option: int = 0

    # Initial funding per bettor
    initial_funds: int = 1_000

    # (bettor, option, amount)
    bets: Tuple[Tuple[str, int, int], ...] = (
        ("alice", 0, 100),
        ("bob", 0, 250),
        ("carol", 1, 80),
        ("dave", 2, 333),
        ("dave", 0, 17),
    )

    balances_before: Dict[str, int] = field(default_factory=dict)


CONFIG = DemoConfig()

QUICK_MODE = "--quick" in sys.argv


def wait_for_enter():
    """Pause for user input unless in quick mode."""
    if not QUICK_MODE:
        input("\n[Press Enter to continue...]")


def step_header(number: int, title: str, objective: str):
    """Print a step header with learning objective."""
    print(f"\n{'='*70}")
    print(f"STEP {number}: {title}")
    print(f"{'='*70}")
    print(f"\nObjective: {objective}\n")


def section_header(text: str):
    """Print a section header within a step."""
    print(f"\n--- {text} ---\n")


# ============================================================================
# PHASE 1: FOUNDATION (Steps 1-3)
# ============================================================================

def step_01_empty_ledger():
    """Create the ledger and its collaborators."""
    step_header(1, "The Empty Ledger",
        "A market ledger needs a clock, a notification sink and a place for value.")

    print("""
    The MarketLedger only records stakes and pools. Three collaborators
    surround it:

    CLOCK   - decides when betting closes (ManualClock lets us control time)
    SINK    - receives one notification per committed change (EventLog)
    ESCROW  - holds the bettors' value between bet and claim (EscrowBook)
    """)

    wait_for_enter()

    clock = ManualClock(CONFIG.start_time)
    log = EventLog()
    book = EscrowBook()
    print(">>> markets = MarketLedger('tutorial', clock=clock, sink=log, transfer=book)")
    markets = MarketLedger("tutorial", clock=clock, sink=log, transfer=book, verbose=True)

    section_header("Initial State")
    print(f"Ledger:        {markets!r}")
    print(f"Current time:  {markets.current_time}")
    print(f"Events:        {len(log)}")

    return markets, clock, log, book


def step_02_fund_bettors(book: EscrowBook):
    """Give every bettor some value to stake."""
    step_header(2, "Funding Bettors",
        "Value enters the escrow book through deposits.")

    bettors = sorted({bettor for bettor, _, _ in CONFIG.bets})
    for bettor in bettors:
        print(f">>> book.deposit({bettor!r}, {CONFIG.initial_funds})")
        book.deposit(bettor, CONFIG.initial_funds)
        CONFIG.balances_before[bettor] = CONFIG.initial_funds

    section_header("Key Insight")
    print(f"""
    Deposits debit the external account, so the book always sums to zero.
    Total held by bettors: {book.total_supply()}
    Book balanced:         {book.is_balanced()}
    """)


def step_03_create_market(markets: MarketLedger, log: EventLog):
    """Open a market."""
    step_header(3, "Opening a Market",
        "A market is a question, at least two options and a deadline.")

    print(f">>> mid = markets.create_market({CONFIG.question!r}, {list(CONFIG.options)}, "
          f"{CONFIG.betting_window!r}, 'league')")
    mid = markets.create_market(CONFIG.question, CONFIG.options, CONFIG.betting_window, "league")

    section_header("Market Snapshot")
    market = markets.get_market(mid)
    print(f"Id:        {market.market_id}")
    print(f"Options:   {market.options}")
    print(f"Deadline:  {market.deadline}")
    print(f"Status:    {market.status.value}")
    print(f"Event:     {log.events()[-1]!r}")

    return mid


# ============================================================================
# PHASE 2: BETTING (Steps 4-6)
# ============================================================================

def step_04_place_bets(markets: MarketLedger, book: EscrowBook, mid: int):
    """Escrow and record each stake."""
    step_header(4, "Placing Bets",
        "Every bet moves value into escrow, then grows one option pool.")

    for bettor, option, amount in CONFIG.bets:
        book.escrow(bettor, amount, f"bet:{mid}:{bettor}")
        markets.place_bet(mid, option, amount, bettor)

    section_header("Pools")
    market = markets.get_market(mid)
    for index, label in enumerate(market.options):
        print(f"  [{index}] {label:<6} {market.pool_by_option[index]:>6}")
    print(f"  total      {market.total_pool:>6}   (escrowed: {book.escrowed})")


def step_05_rejections(markets: MarketLedger, mid: int):
    """See what the ledger refuses."""
    step_header(5, "Rejected Operations",
        "Invalid operations fail cleanly and leave no trace.")

    attempts = [
        ("stake of zero", lambda: markets.place_bet(mid, 0, 0, "alice")),
        ("option out of range", lambda: markets.place_bet(mid, 7, 10, "alice")),
        ("resolve before the deadline", lambda: markets.resolve_market(mid, 0, "league")),
        ("claim before resolution", lambda: markets.claim_winnings(mid, "alice")),
    ]
    for description, attempt in attempts:
        print(f">>> {description}")
        try:
            attempt()
        except MarketError:
            pass

    section_header("State Unchanged")
    print(f"Total pool still {markets.get_market(mid).total_pool}")


def step_06_deadline(markets: MarketLedger, clock: ManualClock, mid: int):
    """Let the betting window close."""
    step_header(6, "The Deadline",
        "At the deadline instant betting closes; closure is computed, never stored.")

    print(f">>> clock.advance_time({markets.get_market(mid).deadline})")
    clock.advance_time(markets.get_market(mid).deadline)
    print(f"is_closed:  {markets.is_closed(mid)}")
    print(f"status:     {markets.get_market(mid).status.value}")

    try:
        markets.place_bet(mid, 1, 10, "carol")
    except MarketError:
        pass


# ============================================================================
# PHASE 3: SETTLEMENT (Steps 7-9)
# ============================================================================

def step_07_resolve(markets: MarketLedger, mid: int):
    """Declare the outcome exactly once."""
    step_header(7, "Resolution",
        "The first resolution wins; every later one is refused.")

    markets.resolve_market(mid, CONFIG.winning_option, "league")
    try:
        markets.resolve_market(mid, 1, "league")
    except AlreadyResolved:
        pass

    market = markets.get_market(mid)
    print(f"\nWinner: [{market.winning_option}] {market.options[market.winning_option]}")


def step_08_preview(markets: MarketLedger, mid: int):
    """Preview payouts before anyone claims."""
    step_header(8, "Proportional Payouts",
        "payout = floor(stake * total_pool / winning_pool)")

    market = markets.get_market(mid)
    winners = {
        bettor: markets.get_stake(mid, bettor, market.winning_option)
        for bettor in CONFIG.balances_before
    }
    distribution = compute_distribution(winners, market.total_pool)
    for bettor, payout in distribution.payouts.items():
        print(f"  {bettor:<6} stake {winners[bettor]:>4} -> {payout:>4}")
    print(f"\nDistributed {distribution.distributed} of {market.total_pool}, "
          f"remainder {distribution.remainder} "
          f"(at most {max_rounding_loss(len(distribution.payouts))})")

    return distribution


def step_09_claims(markets: MarketLedger, book: EscrowBook, mid: int, distribution):
    """Claim every winning stake, twice."""
    step_header(9, "Claims",
        "Each winning stake pays once; the second attempt finds it zeroed.")

    for bettor in distribution.payouts:
        markets.claim_winnings(mid, bettor)
        try:
            markets.claim_winnings(mid, bettor)
        except NoWinningStake:
            pass

    section_header("Balances")
    for bettor, before in CONFIG.balances_before.items():
        print(f"  {bettor:<6} {before:>5} -> {book.balance(bettor):>5}")
    print(f"  escrow remainder: {book.escrowed}")


# ============================================================================
# PHASE 4: AUDIT (Steps 10-11)
# ============================================================================

def step_10_verify(markets: MarketLedger, book: EscrowBook):
    """Check every invariant."""
    step_header(10, "Verification",
        "Pools, stakes and payouts must agree; the book must balance.")

    result = markets.verify_pools()
    print(f"Pools valid:     {result['valid']} ({result['markets']} market(s))")
    print(f"Book balanced:   {book.is_balanced()}")
    print(f"Supply conserved: {book.total_supply()} == {sum(CONFIG.balances_before.values())}")


def step_11_replay(markets: MarketLedger, log: EventLog):
    """Rebuild the ledger from its notifications."""
    step_header(11, "Replay",
        "The event log is a complete audit trail.")

    counts = {kind.value: len(log.events(kind=kind)) for kind in EventKind}
    print(f"Events by kind: {counts}")

    rebuilt = MarketLedger.replay(log.events())
    same = rebuilt.list_markets() == markets.list_markets()
    print("\n>>> MarketLedger.replay(log.events())")
    print(f"Rebuilt: {rebuilt!r}, identical markets: {same}")


def main():
    """Run the complete tutorial."""
    print("=" * 70)
    print("       PARIMUTUEL SETTLEMENT - INTERACTIVE TUTORIAL")
    print("=" * 70)

    if QUICK_MODE:
        print("Running in QUICK mode (no pauses)")
    else:
        print("Running in INTERACTIVE mode (press Enter to advance)")

    wait_for_enter()

    # Phase 1: Foundation
    markets, clock, log, book = step_01_empty_ledger()
    wait_for_enter()

    step_02_fund_bettors(book)
    wait_for_enter()

    mid = step_03_create_market(markets, log)
    wait_for_enter()

    # Phase 2: Betting
    step_04_place_bets(markets, book, mid)
    wait_for_enter()

    step_05_rejections(markets, mid)
    wait_for_enter()

    step_06_deadline(markets, clock, mid)
    wait_for_enter()

    # Phase 3: Settlement
    step_07_resolve(markets, mid)
    wait_for_enter()

    distribution = step_08_preview(markets, mid)
    wait_for_enter()

    step_09_claims(markets, book, mid, distribution)
    wait_for_enter()

    # Phase 4: Audit
    step_10_verify(markets, book)
    wait_for_enter()

    step_11_replay(markets, log)

    print(f"\n{'='*70}")
    print("TUTORIAL COMPLETE")
    print(f"{'='*70}")


if __name__ == "__main__":
    main()
