from .db import AccountStore, CustomerRegistry, Store, TransactionLog
from .engine import Ledger, TransferOutcome
from .errors import ErrorKind, Failure, LedgerInvariantError, Result
from .models import Account, Customer, Transaction, TransactionType
from .query import Page, list_all_transactions, list_customer_transactions, paginate

__all__ = [
    "Account",
    "AccountStore",
    "Customer",
    "CustomerRegistry",
    "ErrorKind",
    "Failure",
    "Ledger",
    "LedgerInvariantError",
    "Page",
    "Result",
    "Store",
    "Transaction",
    "TransactionLog",
    "TransactionType",
    "TransferOutcome",
    "list_all_transactions",
    "list_customer_transactions",
    "paginate",
]
