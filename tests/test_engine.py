"""
Tests for ledger_service.engine.Ledger.

Tests cover:
- deposit / withdraw / transfer success paths and the transactions they append
- exact decimal arithmetic
- error kinds, messages and validation precedence
- total balance reconciliation
"""
from decimal import Decimal

import pytest

from ledger_service.engine import MISSING, parse_amount
from ledger_service.errors import ErrorKind
from ledger_service.models import TransactionType


class TestParseAmount:
    @pytest.mark.parametrize("raw,expected", [
        (100, Decimal("100")),
        (100.5, Decimal("100.5")),
        (0.1, Decimal("0.1")),
        (Decimal("2.50"), Decimal("2.50")),
    ])
    def test_valid(self, raw, expected):
        assert parse_amount(raw) == expected

    @pytest.mark.parametrize("raw", [
        0, -10, 0.0, "100", "invalid", None, True, float("nan"), float("inf"), [1],
        0.001, 1e-300, 10 ** 16, Decimal("1E+40"),
    ])
    def test_invalid(self, raw):
        assert parse_amount(raw) is None


class TestDeposit:
    def test_creates_account_on_first_deposit(self, ledger, store):
        result = ledger.deposit("c1", 100.5)

        assert result.ok
        assert result.value.customer_id == "c1"
        assert result.value.balance == Decimal("100.5")
        assert store.accounts.get("c1") is not None

    def test_adds_to_existing_account(self, ledger):
        ledger.deposit("c1", 100.5)
        result = ledger.deposit("c1", 50.25)

        assert result.value.balance == Decimal("150.75")

    def test_appends_deposit_transaction(self, ledger, store):
        ledger.deposit("c1", 40)
        ledger.deposit("c1", 2)

        txs = store.transactions.for_customer("c1")
        assert [tx.type for tx in txs] == [TransactionType.DEPOSIT, TransactionType.DEPOSIT]
        assert [tx.balance_after for tx in txs] == [Decimal("40"), Decimal("42")]
        assert txs[0].description == "Deposit"

    def test_returned_account_is_a_snapshot(self, ledger):
        first = ledger.deposit("c1", 10).value
        ledger.deposit("c1", 10)

        assert first.balance == Decimal("10")

    @pytest.mark.parametrize("customer_id,amount", [(None, 10), ("", 10), ("c1", MISSING)])
    def test_missing_fields(self, ledger, customer_id, amount):
        result = ledger.deposit(customer_id, amount)

        assert not result.ok
        assert result.error.kind is ErrorKind.MISSING_FIELD
        assert result.error.message == "Missing required fields: customerId and amount are required"

    @pytest.mark.parametrize("amount", [0, -10, "invalid", None])
    def test_invalid_amount(self, ledger, store, amount):
        result = ledger.deposit("c1", amount)

        assert result.error.kind is ErrorKind.INVALID_AMOUNT
        assert result.error.message == "Amount must be a positive number"
        assert store.accounts.get("c1") is None
        assert len(store.transactions) == 0


class TestWithdraw:
    def test_withdraws(self, ledger, store):
        ledger.deposit("c1", 200)
        result = ledger.withdraw("c1", 50)

        assert result.ok
        assert result.value.balance == Decimal("150")
        tx = store.transactions.for_customer("c1")[-1]
        assert tx.type is TransactionType.WITHDRAWAL
        assert tx.amount == Decimal("50")
        assert tx.balance_after == Decimal("150")

    def test_exact_balance_leaves_zero(self, ledger):
        ledger.deposit("c1", 200)
        assert ledger.withdraw("c1", 200).value.balance == Decimal("0")

    def test_cent_round_trip_is_exact(self, ledger):
        ledger.deposit("c1", 0.01)
        ledger.withdraw("c1", 0.01)

        assert ledger.get_balance("c1").value == Decimal("0")

    def test_insufficient_funds_leaves_balance(self, ledger, store):
        ledger.deposit("A", 100)
        result = ledger.withdraw("A", 250)

        assert result.error.kind is ErrorKind.INSUFFICIENT_FUNDS
        assert result.error.message == "Insufficient funds"
        assert ledger.get_balance("A").value == Decimal("100")
        assert len(store.transactions) == 1

    def test_one_cent_over_is_rejected(self, ledger):
        ledger.deposit("c1", 200)
        assert ledger.withdraw("c1", 200.01).error.kind is ErrorKind.INSUFFICIENT_FUNDS

    def test_unknown_account(self, ledger):
        result = ledger.withdraw("nobody", 50)

        assert result.error.kind is ErrorKind.ACCOUNT_NOT_FOUND
        assert result.error.message == "Account not found for this customer"

    def test_amount_checked_before_existence(self, ledger):
        assert ledger.withdraw("nobody", -1).error.kind is ErrorKind.INVALID_AMOUNT

    def test_missing_field_checked_before_amount(self, ledger):
        assert ledger.withdraw(None, -1).error.kind is ErrorKind.MISSING_FIELD

    def test_sequential_operations(self, ledger):
        ledger.deposit("A", 1000)
        ledger.withdraw("A", 250)
        ledger.deposit("A", 100)

        assert ledger.get_balance("A").value == Decimal("850")


class TestTransfer:
    def test_moves_funds_and_creates_recipient(self, ledger, store):
        ledger.deposit("A", 500)
        result = ledger.transfer("A", "B", 200)

        assert result.ok
        assert result.value.from_account.balance == Decimal("300")
        assert result.value.to_account.balance == Decimal("200")
        assert result.value.to_account.customer_id == "B"
        assert store.accounts.get("B") is not None

    def test_appends_two_transactions(self, ledger, store):
        ledger.deposit("A", 500)
        ledger.transfer("A", "B", 150)

        out_tx, in_tx = store.transactions.all()[-2:]
        assert (out_tx.customer_id, out_tx.type) == ("A", TransactionType.TRANSFER_OUT)
        assert (in_tx.customer_id, in_tx.type) == ("B", TransactionType.TRANSFER_IN)
        assert out_tx.amount == in_tx.amount == Decimal("150")
        assert out_tx.balance_after == Decimal("350")
        assert in_tx.balance_after == Decimal("150")
        assert out_tx.description == "Transfer to customer B"
        assert in_tx.description == "Transfer from customer A"

    def test_to_existing_recipient(self, ledger):
        ledger.deposit("A", 500)
        ledger.deposit("B", 5)
        result = ledger.transfer("A", "B", 200)

        assert result.value.to_account.balance == Decimal("205")

    def test_insufficient_funds_changes_nothing(self, ledger, store):
        ledger.deposit("A", 500)
        result = ledger.transfer("A", "B", 600)

        assert result.error.kind is ErrorKind.INSUFFICIENT_FUNDS
        assert ledger.get_balance("A").value == Decimal("500")
        assert store.accounts.get("B") is None
        assert len(store.transactions) == 1

    def test_same_account(self, ledger):
        ledger.deposit("A", 500)
        result = ledger.transfer("A", "A", 100)

        assert result.error.kind is ErrorKind.SAME_ACCOUNT
        assert result.error.message == "Cannot transfer to the same account"

    def test_sender_not_found(self, ledger):
        result = ledger.transfer("nobody", "B", 100)

        assert result.error.kind is ErrorKind.ACCOUNT_NOT_FOUND
        assert result.error.message == "Sender account not found"

    def test_same_account_checked_before_existence(self, ledger):
        assert ledger.transfer("nobody", "nobody", 100).error.kind is ErrorKind.SAME_ACCOUNT

    def test_amount_checked_before_same_account(self, ledger):
        assert ledger.transfer("A", "A", -50).error.kind is ErrorKind.INVALID_AMOUNT

    def test_missing_fields(self, ledger):
        result = ledger.transfer("A", None, 100)

        assert result.error.kind is ErrorKind.MISSING_FIELD
        assert result.error.message == (
            "Missing required fields: fromCustomerId, toCustomerId and amount are required"
        )


class TestBalances:
    def test_get_balance_missing_field(self, ledger):
        result = ledger.get_balance("")

        assert result.error.kind is ErrorKind.MISSING_FIELD
        assert result.error.message == "Missing required field: customerId is required"

    def test_get_balance_unknown(self, ledger):
        assert ledger.get_balance("nobody").error.kind is ErrorKind.ACCOUNT_NOT_FOUND

    def test_total_balance_empty(self, ledger):
        assert ledger.get_total_balance() == Decimal("0")

    def test_total_balance_matches_accounts(self, ledger, store):
        ledger.deposit("a", 100.25)
        ledger.deposit("b", 325.25)
        ledger.transfer("a", "c", 50)
        ledger.withdraw("b", 0.5)

        assert ledger.get_total_balance() == Decimal("425.00")
        assert ledger.get_total_balance() == sum(acc.balance for acc in store.accounts.accounts())

    def test_balance_after_replays_history(self, ledger, store):
        ledger.deposit("a", 10)
        ledger.transfer("a", "b", 4)
        ledger.deposit("b", 1)
        ledger.transfer("b", "a", 5)
        ledger.withdraw("a", 11)

        for customer in ("a", "b"):
            running = Decimal("0")
            for tx in store.transactions.for_customer(customer):
                if tx.type in (TransactionType.DEPOSIT, TransactionType.TRANSFER_IN):
                    running += tx.amount
                else:
                    running -= tx.amount
                assert tx.balance_after == running
            assert ledger.get_balance(customer).value == running


class TestAmountBounds:
    def test_largest_amount_keeps_cents_exact(self, ledger):
        ledger.deposit("a", 10 ** 15)
        ledger.deposit("a", 0.01)
        ledger.withdraw("a", 10 ** 15)

        assert ledger.get_balance("a").value == Decimal("0.01")

    def test_many_large_deposits_stay_exact(self, ledger, store):
        for _ in range(100):
            ledger.deposit("a", 10 ** 15)
        ledger.deposit("a", 0.01)

        expected = Decimal(10 ** 17) + Decimal("0.01")
        assert ledger.get_balance("a").value == expected
        assert store.transactions.all()[-1].balance_after == expected
        assert ledger.get_total_balance() == expected

    @pytest.mark.parametrize("amount", [10 ** 15 + 1, 10 ** 27, 0.001])
    def test_out_of_range_amounts_are_rejected(self, ledger, store, amount):
        result = ledger.deposit("a", amount)

        assert result.error.kind is ErrorKind.INVALID_AMOUNT
        assert result.error.message == "Amount must be a positive number"
        assert len(store.accounts) == 0


class TestLockFootprint:
    def test_rejected_withdrawals_allocate_no_locks(self, ledger, store):
        for i in range(1000):
            assert ledger.withdraw(f"ghost{i}", 1).error.kind is ErrorKind.ACCOUNT_NOT_FOUND

        assert len(store.accounts) == 0
        assert store.accounts._customer_locks == {}

    def test_rejected_transfers_allocate_no_locks(self, ledger, store):
        ledger.deposit("payer", 5)
        for i in range(100):
            ledger.transfer(f"ghost{i}", "payer", 1)
            ledger.transfer("payer", f"payee{i}", 50)

        assert len(store.accounts) == 1
        assert list(store.accounts._customer_locks) == ["payer"]

    def test_successful_transfer_gives_recipient_a_lock(self, ledger, store):
        ledger.deposit("payer", 5)
        ledger.transfer("payer", "payee", 2)

        assert store.accounts.lock_for("payee") is not None
        assert ledger.withdraw("payee", 2).ok
