from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class ErrorKind(str, Enum):
    MISSING_FIELD = "missing_field"
    INVALID_AMOUNT = "invalid_amount"
    ACCOUNT_NOT_FOUND = "account_not_found"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    SAME_ACCOUNT = "same_account"
    INVALID_QUERY = "invalid_query"


STATUS_CODES = {
    ErrorKind.MISSING_FIELD: 400,
    ErrorKind.INVALID_AMOUNT: 400,
    ErrorKind.ACCOUNT_NOT_FOUND: 404,
    ErrorKind.INSUFFICIENT_FUNDS: 400,
    ErrorKind.SAME_ACCOUNT: 400,
    ErrorKind.INVALID_QUERY: 400,
}

INSUFFICIENT_FUNDS = "Insufficient funds"
INVALID_AMOUNT = "Amount must be a positive number"
ACCOUNT_NOT_FOUND = "Account not found for this customer"
SENDER_NOT_FOUND = "Sender account not found"
SAME_ACCOUNT = "Cannot transfer to the same account"


class LedgerInvariantError(RuntimeError):
    """A store invariant was about to be broken. Internal fault, not a request error."""


@dataclass(frozen=True)
class Failure:
    kind: ErrorKind
    message: str

    @property
    def status_code(self) -> int:
        return STATUS_CODES[self.kind]


@dataclass(frozen=True)
class Result(Generic[T]):
    """Outcome of a ledger or query operation.

    Exactly one of ``value`` / ``error`` is meaningful; check ``ok`` first.
    """

    value: Optional[T] = None
    error: Optional[Failure] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def success(value: T) -> Result[T]:
    return Result(value=value)


def fail(kind: ErrorKind, message: str) -> Result:
    return Result(error=Failure(kind, message))
