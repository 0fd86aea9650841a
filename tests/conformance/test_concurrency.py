"""
Concurrency Conformance Tests

INVARIANT: Concurrent callers observe a linearizable ledger.

    ∀ market m, N concurrent resolve(m, ·):
        exactly 1 succeeds, N-1 raise AlreadyResolved

    ∀ market m, bettor b, N concurrent claim(m, b):
        exactly 1 pays, N-1 raise NoWinningStake

    ∀ market m, concurrent bets B:
        total_pool(m) = Σ_B amount, pools stay consistent

    ∀ concurrent create_market:
        ids are unique and contiguous
"""

import threading
from collections import Counter
from datetime import datetime

import pytest

from parimutuel import (
    MarketLedger, ManualClock, EventLog, EscrowBook, EventKind,
    AlreadyResolved, NoWinningStake, MarketError,
)
from tests.helpers import assert_pools_consistent


START = datetime(2025, 1, 1)
THREADS = 16


def run_concurrently(target, args_list):
    """Start one thread per args tuple behind a barrier; collect results or errors."""
    barrier = threading.Barrier(len(args_list))
    outcomes = [None] * len(args_list)

    def worker(index, args):
        barrier.wait()
        try:
            outcomes[index] = ("ok", target(*args))
        except MarketError as e:
            outcomes[index] = ("error", e)

    threads = [
        threading.Thread(target=worker, args=(i, args))
        for i, args in enumerate(args_list)
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    return outcomes


@pytest.fixture
def shared():
    clock = ManualClock(START)
    log = EventLog()
    markets = MarketLedger("test", clock=clock, sink=log, verbose=False)
    return markets, clock, log


class TestConcurrentResolution:

    def test_exactly_one_resolution_wins(self, shared):
        markets, clock, log = shared
        mid = markets.create_market("Q", ["a", "b", "c", "d"], 60, "maker")
        clock.advance(60)

        outcomes = run_concurrently(
            markets.resolve_market,
            [(mid, i % 4, f"resolver-{i}") for i in range(THREADS)],
        )

        winners = [i for i, (status, _) in enumerate(outcomes) if status == "ok"]
        assert len(winners) == 1
        assert all(
            isinstance(err, AlreadyResolved)
            for status, err in outcomes if status == "error"
        )
        market = markets.get_market(mid)
        assert market.resolved_by == f"resolver-{winners[0]}"
        assert market.winning_option == winners[0] % 4
        assert len(log.events(kind=EventKind.MARKET_RESOLVED)) == 1


class TestConcurrentClaims:

    def test_double_claim_pays_once(self, shared):
        markets, clock, log = shared
        book = EscrowBook()
        book.deposit("alice", 500)
        book.deposit("bob", 500)
        markets.transfer = book
        mid = markets.create_market("Q", ["a", "b"], 60, "maker")
        for bettor, option, amount in (("alice", 0, 100), ("bob", 1, 300)):
            book.escrow(bettor, amount, f"bet:{mid}:{bettor}")
            markets.place_bet(mid, option, amount, bettor)
        clock.advance(60)
        markets.resolve_market(mid, 0, "resolver")

        outcomes = run_concurrently(markets.claim_winnings, [(mid, "alice")] * THREADS)

        paid = [value for status, value in outcomes if status == "ok"]
        assert paid == [400]
        assert all(
            isinstance(err, NoWinningStake)
            for status, err in outcomes if status == "error"
        )
        assert book.balance("alice") == 500 - 100 + 400
        assert book.escrowed == 0
        assert len(log.events(kind=EventKind.WINNINGS_CLAIMED)) == 1

    def test_distinct_claimants_in_parallel(self, shared):
        markets, clock, _ = shared
        mid = markets.create_market("Q", ["win", "lose"], 60, "maker")
        bettors = [f"b{i}" for i in range(THREADS)]
        for i, bettor in enumerate(bettors):
            markets.place_bet(mid, 0, i + 1, bettor)
        markets.place_bet(mid, 1, 1_000, "loser")
        clock.advance(60)
        markets.resolve_market(mid, 0, "resolver")
        expected = {b: markets.get_claimable(mid, b) for b in bettors}

        outcomes = run_concurrently(markets.claim_winnings, [(mid, b) for b in bettors])

        assert {b: value for b, (_, value) in zip(bettors, outcomes)} == expected
        assert markets.get_claimed_total(mid) <= markets.get_market(mid).total_pool
        assert_pools_consistent(markets)


class TestConcurrentBets:

    def test_no_lost_updates(self, shared):
        markets, _, log = shared
        mid = markets.create_market("Q", ["a", "b", "c"], 3600, "maker")
        per_thread = 50

        def bettor_loop(name, option):
            for _ in range(per_thread):
                markets.place_bet(mid, option, 3, name)

        outcomes = run_concurrently(
            bettor_loop, [(f"b{i % 4}", i % 3) for i in range(THREADS)]
        )

        assert all(status == "ok" for status, _ in outcomes)
        market = markets.get_market(mid)
        assert market.total_pool == THREADS * per_thread * 3
        assert sum(market.pool_by_option) == market.total_pool
        assert len(log.events(kind=EventKind.BET_PLACED)) == THREADS * per_thread
        assert_pools_consistent(markets)

    def test_bets_on_many_markets(self, shared):
        markets, _, _ = shared
        ids = [markets.create_market(f"Q{i}", ["a", "b"], 3600, "maker") for i in range(4)]

        def bettor_loop(index):
            for round_ in range(25):
                markets.place_bet(ids[(index + round_) % 4], round_ % 2, 1, f"b{index}")

        run_concurrently(bettor_loop, [(i,) for i in range(THREADS)])

        assert sum(m.total_pool for m in markets.list_markets()) == THREADS * 25
        assert_pools_consistent(markets)


class TestConcurrentCreation:

    def test_ids_unique_and_contiguous(self, shared):
        markets, _, log = shared

        outcomes = run_concurrently(
            markets.create_market,
            [(f"Q{i}", ["a", "b"], 60, f"maker{i % 3}") for i in range(THREADS)],
        )

        ids = sorted(value for _, value in outcomes)
        assert ids == list(range(1, THREADS + 1))
        created = log.events(kind=EventKind.MARKET_CREATED)
        assert sorted(e.market_id for e in created) == ids
        by_creator = Counter(f"maker{i % 3}" for i in range(THREADS))
        for creator, count in by_creator.items():
            assert len(markets.get_markets_by_creator(creator)) == count

    def test_sequence_numbers_unique(self, shared):
        markets, _, log = shared
        mid = markets.create_market("Q", ["a", "b"], 3600, "maker")

        run_concurrently(
            lambda i: markets.place_bet(mid, i % 2, 1, f"b{i}"),
            [(i,) for i in range(THREADS)],
        )

        sequences = [e.sequence for e in log.events()]
        assert len(sequences) == len(set(sequences)) == THREADS + 1
