import os
import uuid
from datetime import datetime, timezone
from decimal import Context, Decimal, Inexact, InvalidOperation, Overflow
from enum import Enum
from typing import Optional

from sqlmodel import Field, SQLModel

# Amounts are whole cents no larger than MAX_AMOUNT. Balance arithmetic runs in
# MONEY_CONTEXT, which raises instead of rounding.
CENT = Decimal("0.01")
MAX_AMOUNT = Decimal(os.getenv("LEDGER_MAX_AMOUNT", "1000000000000000"))
MONEY_CONTEXT = Context(prec=50, traps=[Inexact, InvalidOperation, Overflow])


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


class TransactionType(str, Enum):
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    TRANSFER_IN = "transfer_in"
    TRANSFER_OUT = "transfer_out"


class Account(SQLModel):
    id: str = Field(default_factory=new_id)
    customer_id: str
    balance: Decimal = Decimal("0")
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Transaction(SQLModel):
    # Never mutated after TransactionLog.append
    id: str = Field(default_factory=new_id)
    customer_id: str
    type: TransactionType
    amount: Decimal
    description: Optional[str] = None
    balance_after: Decimal
    created_at: datetime = Field(default_factory=utcnow)


class Customer(SQLModel):
    id: str = Field(default_factory=new_id)
    first_name: str
    last_name: str
    amount: Decimal
    created_at: datetime = Field(default_factory=utcnow)


def account_out(acc: Account) -> dict:
    return {
        "id": acc.id,
        "customerId": acc.customer_id,
        "balance": float(acc.balance),
        "createdAt": acc.created_at.isoformat(),
        "updatedAt": acc.updated_at.isoformat(),
    }


def transaction_out(tx: Transaction) -> dict:
    return {
        "id": tx.id,
        "customerId": tx.customer_id,
        "type": tx.type.value,
        "amount": float(tx.amount),
        "description": tx.description,
        "balanceAfter": float(tx.balance_after),
        "createdAt": tx.created_at.isoformat(),
    }


def customer_out(c: Customer) -> dict:
    return {
        "id": c.id,
        "firstName": c.first_name,
        "lastName": c.last_name,
        "amount": float(c.amount),
        "createdAt": c.created_at.isoformat(),
    }
