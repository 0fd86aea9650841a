"""
escrow.py - In-memory value-transfer collaborator

EscrowBook is a minimal double-entry book that implements the
ValueTransfer protocol:

    Before a bet (caller's responsibility):
        escrow(bettor, amount, ref)      bettor   -> ESCROW_ACCOUNT
    After a successful claim (ledger's responsibility):
        disburse(claimant, payout, ref)  ESCROW_ACCOUNT -> claimant

External value enters and leaves only through deposit(), which debits
EXTERNAL_ACCOUNT. Every transfer debits one account and credits another,
so the sum over all accounts (EXTERNAL_ACCOUNT included) is always zero.
Flooring remainders simply stay in ESCROW_ACCOUNT.
"""

from __future__ import annotations
from collections import defaultdict
from dataclasses import dataclass
from threading import Lock
from typing import Dict, List

from .core import Amount, InsufficientEscrow, InvalidArgument


# Reserved accounts. EXTERNAL_ACCOUNT is exempt from balance checks.
EXTERNAL_ACCOUNT = "external"
ESCROW_ACCOUNT = "escrow"


@dataclass(frozen=True, slots=True)
class Transfer:
    """One recorded movement of value."""
    amount: Amount
    source: str
    dest: str
    reference: str

    def __repr__(self) -> str:
        return f"Transfer({self.amount}: {self.source}→{self.dest}, {self.reference})"


class EscrowBook:
    """Thread-safe account book holding stakes between bet and claim."""

    def __init__(self):
        self._balances: Dict[str, Amount] = defaultdict(int)
        self._transfers: List[Transfer] = []
        self._lock = Lock()

    # ========================================================================
    # MUTATIONS
    # ========================================================================

    def deposit(self, account: str, amount: Amount, reference: str = "deposit") -> None:
        """Credit an account with value from outside the book."""
        self._transfer(EXTERNAL_ACCOUNT, account, amount, reference)

    def escrow(self, bettor: str, amount: Amount, reference: str) -> None:
        """
        Lock a bettor's stake in escrow.

        Raises:
            InsufficientEscrow: If the bettor's balance cannot cover amount
        """
        self._transfer(bettor, ESCROW_ACCOUNT, amount, reference)

    def disburse(self, claimant: str, amount: Amount, reference: str) -> None:
        """
        Release a payout from escrow to a claimant.

        Raises:
            InsufficientEscrow: If escrow holds less than amount
        """
        self._transfer(ESCROW_ACCOUNT, claimant, amount, reference)

    def _transfer(self, source: str, dest: str, amount: Amount, reference: str) -> None:
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise InvalidArgument(f"transfer amount must be a positive integer, got {amount!r}")
        if source == dest:
            raise InvalidArgument("source and dest must be different")
        with self._lock:
            if source != EXTERNAL_ACCOUNT and self._balances[source] < amount:
                raise InsufficientEscrow(
                    f"{source} holds {self._balances[source]}, cannot transfer {amount} ({reference})"
                )
            self._balances[source] -= amount
            self._balances[dest] += amount
            self._transfers.append(Transfer(amount, source, dest, reference))

    # ========================================================================
    # QUERIES
    # ========================================================================

    def balance(self, account: str) -> Amount:
        with self._lock:
            return self._balances.get(account, 0)

    @property
    def escrowed(self) -> Amount:
        """Value currently held in escrow."""
        return self.balance(ESCROW_ACCOUNT)

    @property
    def transfers(self) -> List[Transfer]:
        with self._lock:
            return list(self._transfers)

    def total_supply(self) -> Amount:
        """Value held inside the book: every balance except EXTERNAL_ACCOUNT."""
        with self._lock:
            return sum(v for k, v in sorted(self._balances.items()) if k != EXTERNAL_ACCOUNT)

    def is_balanced(self) -> bool:
        """Double-entry check: every account, EXTERNAL_ACCOUNT included, sums to zero."""
        with self._lock:
            return sum(self._balances.values()) == 0

    def __repr__(self):
        return f"EscrowBook(escrowed={self.escrowed}, transfers={len(self.transfers)})"
