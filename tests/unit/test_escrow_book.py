"""
test_escrow_book.py - Unit tests for escrow.py

Tests:
- deposit / escrow / disburse movements
- Insufficient balance rejection leaves balances unchanged
- Double-entry balance holds after every movement
- Protocol conformance
"""

import pytest

from parimutuel import (
    EscrowBook, ValueTransfer, ESCROW_ACCOUNT, EXTERNAL_ACCOUNT,
    InsufficientEscrow, InvalidArgument,
)


class TestEscrowMovements:

    def test_deposit_credits_account(self):
        book = EscrowBook()
        book.deposit("alice", 500)

        assert book.balance("alice") == 500
        assert book.balance(EXTERNAL_ACCOUNT) == -500
        assert book.total_supply() == 500
        assert book.is_balanced()

    def test_escrow_then_disburse(self, escrow_book):
        escrow_book.escrow("alice", 100, "bet:1:alice")
        escrow_book.escrow("bob", 300, "bet:1:bob")
        assert escrow_book.escrowed == 400

        escrow_book.disburse("bob", 400, "claim:1:bob")

        assert escrow_book.escrowed == 0
        assert escrow_book.balance("alice") == 9_900
        assert escrow_book.balance("bob") == 10_100
        assert escrow_book.is_balanced()

    def test_transfers_are_recorded(self, escrow_book):
        escrow_book.escrow("alice", 100, "bet:1:alice")
        last = escrow_book.transfers[-1]

        assert last.amount == 100
        assert last.source == "alice"
        assert last.dest == ESCROW_ACCOUNT
        assert last.reference == "bet:1:alice"

    def test_supply_conserved(self, escrow_book):
        before = escrow_book.total_supply()
        escrow_book.escrow("alice", 250, "bet")
        escrow_book.disburse("carol", 200, "claim")
        assert escrow_book.total_supply() == before


class TestEscrowRejections:

    def test_escrow_more_than_balance(self, escrow_book):
        with pytest.raises(InsufficientEscrow):
            escrow_book.escrow("alice", 10_001, "bet")
        assert escrow_book.balance("alice") == 10_000
        assert escrow_book.escrowed == 0

    def test_disburse_more_than_escrowed(self, escrow_book):
        escrow_book.escrow("alice", 100, "bet")
        with pytest.raises(InsufficientEscrow):
            escrow_book.disburse("alice", 101, "claim")
        assert escrow_book.escrowed == 100

    @pytest.mark.parametrize("amount", [0, -5, 1.5, True])
    def test_bad_amounts(self, escrow_book, amount):
        with pytest.raises(InvalidArgument):
            escrow_book.escrow("alice", amount, "bet")

    def test_self_transfer(self):
        book = EscrowBook()
        with pytest.raises(InvalidArgument):
            book.disburse(ESCROW_ACCOUNT, 1, "loop")


def test_satisfies_value_transfer_protocol():
    assert isinstance(EscrowBook(), ValueTransfer)
