"""
accountant.py - Pool Accountant

Pure integer arithmetic for parimutuel settlement:
1. compute_payout() - one claimant's share of the total pool
2. validate_option_index() - bounds check for option references
3. verify_pool() - pool arithmetic validation
4. compute_distribution() - every winning claimant's payout plus remainder
5. max_rounding_loss() - upper bound on the unclaimed remainder

Rounding policy:
    Payouts are floored. The remainder left by flooring is never handed to
    any claimant; it stays in the pool, unclaimed. For n winning claimants
    the remainder is strictly less than n, i.e. at most n - 1 units.

Example:
    Three bettors stake 10, 20 and 30 on the winning option (pool 60)
    out of a total pool of 100:

        compute_payout(10, 60, 100) == 16
        compute_payout(20, 60, 100) == 33
        compute_payout(30, 60, 100) == 50

    16 + 33 + 50 = 99, leaving 1 unit unclaimed.

Every function here is stateless and safe to call concurrently.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Sequence

from .core import Amount, DivisionByZero, InvalidArgument


def _require_amount(name: str, value: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidArgument(f"{name} must be an integer, got {type(value).__name__}")
    if value < 0:
        raise InvalidArgument(f"{name} must be non-negative, got {value}")


def compute_payout(user_stake: Amount, winning_pool: Amount, total_pool: Amount) -> Amount:
    """
    Compute a claimant's proportional share of the total pool.

    Args:
        user_stake: The claimant's stake on the winning option
        winning_pool: Sum of all stakes on the winning option
        total_pool: Sum of all stakes on the market

    Returns:
        floor(user_stake * total_pool / winning_pool)

    Raises:
        DivisionByZero: If winning_pool is zero
        InvalidArgument: If any input is negative or not an integer
    """
    _require_amount("user_stake", user_stake)
    _require_amount("winning_pool", winning_pool)
    _require_amount("total_pool", total_pool)
    if winning_pool == 0:
        raise DivisionByZero("winning pool is empty: nobody staked on the winning option")
    return (user_stake * total_pool) // winning_pool


def validate_option_index(index: int, option_count: int) -> bool:
    """Return True if index addresses one of option_count options."""
    if isinstance(index, bool) or not isinstance(index, int):
        return False
    return 0 <= index < option_count


def verify_pool(pool_by_option: Sequence[Amount], total_pool: Amount) -> bool:
    """Return True if the per-option pools are non-negative and sum to total_pool."""
    if any(p < 0 for p in pool_by_option):
        return False
    return sum(pool_by_option) == total_pool


def max_rounding_loss(claimant_count: int) -> Amount:
    """Upper bound on the unclaimed remainder for claimant_count winners."""
    return max(claimant_count - 1, 0)


@dataclass(frozen=True, slots=True)
class Distribution:
    """
    Result of settling every winning stake at once.

    Attributes:
        payouts: Read-only view of claimant -> payout
        distributed: Sum of payouts
        remainder: total_pool - distributed (the flooring loss)
    """
    payouts: Mapping[str, Amount] = field(default_factory=dict)
    distributed: Amount = 0
    remainder: Amount = 0

    def __post_init__(self):
        object.__setattr__(self, 'payouts', MappingProxyType(dict(self.payouts)))


def compute_distribution(winning_stakes: Mapping[str, Amount], total_pool: Amount) -> Distribution:
    """
    Compute the payout of every winning claimant.

    The winning pool is the sum of winning_stakes. Claimants with a zero
    stake are skipped; they have nothing to claim.

    Args:
        winning_stakes: Claimant -> stake on the winning option
        total_pool: Sum of all stakes on the market

    Returns:
        Distribution with per-claimant payouts and the unclaimed remainder

    Raises:
        DivisionByZero: If every winning stake is zero and total_pool is not
    """
    winning_pool = sum(winning_stakes.values())
    if winning_pool == 0:
        if total_pool == 0:
            return Distribution()
        raise DivisionByZero("winning pool is empty: nobody staked on the winning option")

    payouts = {
        claimant: compute_payout(stake, winning_pool, total_pool)
        for claimant, stake in sorted(winning_stakes.items())
        if stake > 0
    }
    distributed = sum(payouts.values())
    return Distribution(
        payouts=payouts,
        distributed=distributed,
        remainder=total_pool - distributed,
    )
