"""
helpers.py - Invariant checks shared by the settlement tests
"""

from typing import Dict, Iterable

from parimutuel import MarketLedger, ManualClock


def assert_pools_consistent(markets: MarketLedger) -> None:
    """Assert every accounting invariant holds for every market."""
    result = markets.verify_pools()
    assert result['valid'], f"Pool invariant violated: {result['discrepancies']}"
    for market in markets.list_markets():
        assert market.total_pool == sum(market.pool_by_option)


def stake_sums(markets: MarketLedger, market_id: int, bettors: Iterable[str]) -> Dict[int, int]:
    """Sum outstanding stakes per option over the given bettors."""
    bettors = list(bettors)
    market = markets.get_market(market_id)
    return {
        option: sum(markets.get_stake(market_id, b, option) for b in bettors)
        for option in range(len(market.options))
    }


def close_market(clock: ManualClock, markets: MarketLedger, market_id: int) -> None:
    """Move the clock exactly to the market's deadline."""
    clock.advance_time(markets.get_market(market_id).deadline)
