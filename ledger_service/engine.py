"""
Ledger engine: balance mutations coupled with the transaction log they produce.

Every operation validates in a fixed order (missing fields, amount, account
existence, business rules) and returns a Result instead of raising. Request
level failures never touch the store.

Locking: each operation holds the per-customer lock of every existing account
it touches for its whole validate/mutate/append sequence. Transfers take the
locks in customer id order. Locks exist only for existing accounts, so rejected
requests for unknown customers allocate nothing. The balance writes and log
appends of one operation are applied together under the store lock, which is
also what get_total_balance() sums under.
"""
import logging
import math
from contextlib import ExitStack
from decimal import Decimal, InvalidOperation
from typing import Any, List, NamedTuple, Optional

from .db import Store
from .errors import (
    ACCOUNT_NOT_FOUND,
    INSUFFICIENT_FUNDS,
    INVALID_AMOUNT,
    SAME_ACCOUNT,
    SENDER_NOT_FOUND,
    ErrorKind,
    Result,
    fail,
    success,
)
from .models import CENT, MAX_AMOUNT, Account, Transaction, TransactionType

logger = logging.getLogger(__name__)


class _Missing:
    def __repr__(self) -> str:
        return "MISSING"


# Field absent from the request. An explicit null is a value, not a missing field.
MISSING: Any = _Missing()

MISSING_ACCOUNT_FIELDS = "Missing required fields: customerId and amount are required"
MISSING_CUSTOMER_ID = "Missing required field: customerId is required"
MISSING_TRANSFER_FIELDS = (
    "Missing required fields: fromCustomerId, toCustomerId and amount are required"
)


class TransferOutcome(NamedTuple):
    from_account: Account
    to_account: Account
    transactions: List[Transaction]


def parse_amount(value: Any) -> Optional[Decimal]:
    """Positive Decimal in whole cents up to MAX_AMOUNT, or None if ``value`` is not one."""
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        return None
    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        # shortest repr, so 0.1 stays 0.1 and not its binary expansion
        value = str(value)
    try:
        amount = Decimal(value)
    except InvalidOperation:
        return None
    if not amount.is_finite() or amount <= 0 or amount > MAX_AMOUNT:
        return None
    cents = amount.quantize(CENT)
    if cents != amount:
        return None
    return cents


def customer_key(value: Any) -> Optional[str]:
    if not value:
        return None
    return str(value)


def _reject(op: str, kind: ErrorKind, message: str) -> Result:
    logger.debug("%s rejected: %s (%s)", op, message, kind.value)
    return fail(kind, message)


class Ledger:
    def __init__(self, store: Store):
        self.store = store

    def deposit(self, customer_id: Any, amount: Any = MISSING) -> Result[Account]:
        customer_id = customer_key(customer_id)
        if customer_id is None or amount is MISSING:
            return _reject("deposit", ErrorKind.MISSING_FIELD, MISSING_ACCOUNT_FIELDS)
        value = parse_amount(amount)
        if value is None:
            return _reject("deposit", ErrorKind.INVALID_AMOUNT, INVALID_AMOUNT)

        accounts = self.store.accounts
        acc = accounts.get_or_create(customer_id)
        with accounts.lock_for(customer_id):
            with self.store.lock:
                accounts.credit(acc, value)
                tx = self.store.transactions.append(
                    customer_id, TransactionType.DEPOSIT, value, acc.balance, "Deposit"
                )
                result = acc.model_copy()
        self._completed(tx)
        return success(result)

    def withdraw(self, customer_id: Any, amount: Any = MISSING) -> Result[Account]:
        customer_id = customer_key(customer_id)
        if customer_id is None or amount is MISSING:
            return _reject("withdraw", ErrorKind.MISSING_FIELD, MISSING_ACCOUNT_FIELDS)
        value = parse_amount(amount)
        if value is None:
            return _reject("withdraw", ErrorKind.INVALID_AMOUNT, INVALID_AMOUNT)

        accounts = self.store.accounts
        lock = accounts.lock_for(customer_id)
        if lock is None:
            return _reject("withdraw", ErrorKind.ACCOUNT_NOT_FOUND, ACCOUNT_NOT_FOUND)
        with lock:
            acc = accounts.get(customer_id)
            if acc is None:
                return _reject("withdraw", ErrorKind.ACCOUNT_NOT_FOUND, ACCOUNT_NOT_FOUND)
            if acc.balance < value:
                return _reject("withdraw", ErrorKind.INSUFFICIENT_FUNDS, INSUFFICIENT_FUNDS)
            with self.store.lock:
                accounts.debit(acc, value)
                tx = self.store.transactions.append(
                    customer_id, TransactionType.WITHDRAWAL, value, acc.balance, "Withdrawal"
                )
                result = acc.model_copy()
        self._completed(tx)
        return success(result)

    def transfer(
        self, from_customer_id: Any, to_customer_id: Any, amount: Any = MISSING
    ) -> Result[TransferOutcome]:
        from_id = customer_key(from_customer_id)
        to_id = customer_key(to_customer_id)
        if from_id is None or to_id is None or amount is MISSING:
            return _reject("transfer", ErrorKind.MISSING_FIELD, MISSING_TRANSFER_FIELDS)
        value = parse_amount(amount)
        if value is None:
            return _reject("transfer", ErrorKind.INVALID_AMOUNT, INVALID_AMOUNT)
        if from_id == to_id:
            return _reject("transfer", ErrorKind.SAME_ACCOUNT, SAME_ACCOUNT)

        accounts = self.store.accounts
        if accounts.lock_for(from_id) is None:
            return _reject("transfer", ErrorKind.ACCOUNT_NOT_FOUND, SENDER_NOT_FOUND)
        with ExitStack() as held:
            # A recipient without an account has no lock yet. It is created under
            # the store lock below, and credits never read-validate its balance.
            for customer in sorted((from_id, to_id)):
                lock = accounts.lock_for(customer)
                if lock is not None:
                    held.enter_context(lock)
            sender = accounts.get(from_id)
            if sender is None:
                return _reject("transfer", ErrorKind.ACCOUNT_NOT_FOUND, SENDER_NOT_FOUND)
            if sender.balance < value:
                return _reject("transfer", ErrorKind.INSUFFICIENT_FUNDS, INSUFFICIENT_FUNDS)
            with self.store.lock:
                recipient = accounts.get_or_create(to_id)
                accounts.debit(sender, value)
                accounts.credit(recipient, value)
                out_tx = self.store.transactions.append(
                    from_id,
                    TransactionType.TRANSFER_OUT,
                    value,
                    sender.balance,
                    f"Transfer to customer {to_id}",
                )
                in_tx = self.store.transactions.append(
                    to_id,
                    TransactionType.TRANSFER_IN,
                    value,
                    recipient.balance,
                    f"Transfer from customer {from_id}",
                )
                outcome = TransferOutcome(sender.model_copy(), recipient.model_copy(), [out_tx, in_tx])
        self._completed(out_tx)
        self._completed(in_tx)
        return success(outcome)

    def get_balance(self, customer_id: Any) -> Result[Decimal]:
        customer_id = customer_key(customer_id)
        if customer_id is None:
            return _reject("balance", ErrorKind.MISSING_FIELD, MISSING_CUSTOMER_ID)
        acc = self.store.accounts.get(customer_id)
        if acc is None:
            return _reject("balance", ErrorKind.ACCOUNT_NOT_FOUND, ACCOUNT_NOT_FOUND)
        return success(acc.balance)

    def get_total_balance(self) -> Decimal:
        return self.store.accounts.total()

    def _completed(self, tx: Transaction) -> None:
        logger.info(
            "transaction.completed id=%s customer=%s type=%s amount=%s balance_after=%s",
            tx.id, tx.customer_id, tx.type.value, tx.amount, tx.balance_after,
        )
