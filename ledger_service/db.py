import threading
from datetime import timedelta
from decimal import Decimal, DecimalException
from typing import Dict, List, Optional

from .errors import LedgerInvariantError
from .models import MONEY_CONTEXT, Account, Customer, Transaction, TransactionType, utcnow


class AccountStore:
    def __init__(self, lock: Optional[threading.RLock] = None):
        self.lock = lock or threading.RLock()
        self._accounts: Dict[str, Account] = {}
        self._customer_locks: Dict[str, threading.Lock] = {}

    def lock_for(self, customer_id: str) -> Optional[threading.Lock]:
        """Per-customer lock, or None when the customer has no account."""
        with self.lock:
            return self._customer_locks.get(customer_id)

    def get(self, customer_id: str) -> Optional[Account]:
        with self.lock:
            return self._accounts.get(customer_id)

    def get_or_create(self, customer_id: str) -> Account:
        with self.lock:
            acc = self._accounts.get(customer_id)
            if acc is None:
                acc = Account(customer_id=customer_id)
                self._accounts[customer_id] = acc
                self._customer_locks[customer_id] = threading.Lock()
            return acc

    def credit(self, account: Account, amount: Decimal) -> None:
        account.balance = self._exact(MONEY_CONTEXT.add, account, amount)
        account.updated_at = utcnow()

    def debit(self, account: Account, amount: Decimal) -> None:
        if account.balance < amount:
            raise LedgerInvariantError(
                f"debit of {amount} would leave account {account.id} negative"
            )
        account.balance = self._exact(MONEY_CONTEXT.subtract, account, amount)
        account.updated_at = utcnow()

    @staticmethod
    def _exact(op, account: Account, amount: Decimal) -> Decimal:
        try:
            return op(account.balance, amount)
        except DecimalException as exc:
            raise LedgerInvariantError(
                f"balance of account {account.id} cannot be represented exactly"
            ) from exc

    def accounts(self) -> List[Account]:
        with self.lock:
            return [acc.model_copy() for acc in self._accounts.values()]

    def total(self) -> Decimal:
        with self.lock:
            total = Decimal("0")
            for acc in self._accounts.values():
                total = MONEY_CONTEXT.add(total, acc.balance)
            return total

    def __len__(self) -> int:
        return len(self._accounts)

    def clear(self) -> None:
        with self.lock:
            self._accounts.clear()
            self._customer_locks.clear()


class TransactionLog:
    """Append-only, ordered record of balance-affecting events."""

    def __init__(self, lock: Optional[threading.RLock] = None):
        self.lock = lock or threading.RLock()
        self._entries: List[Transaction] = []
        self._by_id: Dict[str, Transaction] = {}

    def append(
        self,
        customer_id: str,
        type: TransactionType,
        amount: Decimal,
        balance_after: Decimal,
        description: Optional[str] = None,
    ) -> Transaction:
        with self.lock:
            created_at = utcnow()
            # creation timestamps strictly increase in log order
            if self._entries and created_at <= self._entries[-1].created_at:
                created_at = self._entries[-1].created_at + timedelta(microseconds=1)
            tx = Transaction(
                customer_id=customer_id,
                type=type,
                amount=amount,
                description=description,
                balance_after=balance_after,
                created_at=created_at,
            )
            self._entries.append(tx)
            self._by_id[tx.id] = tx
            return tx.model_copy()

    def get(self, transaction_id: str) -> Optional[Transaction]:
        with self.lock:
            tx = self._by_id.get(transaction_id)
            return tx.model_copy() if tx else None

    def all(self) -> List[Transaction]:
        with self.lock:
            return [tx.model_copy() for tx in self._entries]

    def for_customer(self, customer_id: str) -> List[Transaction]:
        with self.lock:
            return [tx.model_copy() for tx in self._entries if tx.customer_id == customer_id]

    def __len__(self) -> int:
        return len(self._entries)

    def clear(self) -> None:
        with self.lock:
            self._entries.clear()
            self._by_id.clear()


class CustomerRegistry:
    def __init__(self, lock: Optional[threading.RLock] = None):
        self.lock = lock or threading.RLock()
        self._customers: Dict[str, Customer] = {}

    def add(self, first_name: str, last_name: str, amount: Decimal) -> Customer:
        with self.lock:
            customer = Customer(first_name=first_name, last_name=last_name, amount=amount)
            self._customers[customer.id] = customer
            return customer.model_copy()

    def get(self, customer_id: str) -> Optional[Customer]:
        with self.lock:
            return self._customers.get(customer_id)

    def __len__(self) -> int:
        return len(self._customers)

    def clear(self) -> None:
        with self.lock:
            self._customers.clear()


class Store:
    """All ledger state. One instance per running service; shares a single commit lock."""

    def __init__(self):
        self.lock = threading.RLock()
        self.accounts = AccountStore(self.lock)
        self.transactions = TransactionLog(self.lock)
        self.customers = CustomerRegistry(self.lock)

    def clear(self) -> None:
        with self.lock:
            self.accounts.clear()
            self.transactions.clear()
            self.customers.clear()
