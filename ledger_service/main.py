import logging
import os
from typing import Any, Optional

from fastapi import APIRouter, Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .customers import create_customer
from .db import Store
from .engine import MISSING, Ledger
from .errors import Failure, Result
from .logging_config import setup_logging
from .models import account_out, customer_out, transaction_out
from .query import Page, list_all_transactions, list_customer_transactions

logger = logging.getLogger(__name__)

CORS_ORIGINS = os.getenv(
    "CORS_ORIGINS", "http://localhost:3000,http://localhost,http://localhost:80"
).split(",")

router = APIRouter()


class AccountIn(BaseModel):
    customerId: Any = None
    amount: Any = None


class BalanceIn(BaseModel):
    customerId: Any = None


class TransferIn(BaseModel):
    fromCustomerId: Any = None
    toCustomerId: Any = None
    amount: Any = None


class CustomerIn(BaseModel):
    firstName: Any = None
    lastName: Any = None
    amount: Any = None


def get_store(request: Request) -> Store:
    return request.app.state.store


def get_ledger(request: Request) -> Ledger:
    return request.app.state.ledger


def sent(body: BaseModel, name: str) -> Any:
    """Field value as sent, or MISSING when the client left it out. null stays None."""
    if name not in body.model_fields_set:
        return MISSING
    return getattr(body, name)


def error_response(failure: Failure) -> JSONResponse:
    return JSONResponse(status_code=failure.status_code, content={"success": False, "error": failure.message})


def page_response(result: Result[Page]):
    if not result.ok:
        return error_response(result.error)
    page = result.value
    body = {
        "success": True,
        "transactions": [transaction_out(tx) for tx in page.items],
        "hasMore": page.has_more,
    }
    if page.next_cursor:
        body["nextCursor"] = page.next_cursor
    return body


@router.get("/health")
def health():
    return {"status": "ok"}


@router.post("/api/accounts/deposit")
def deposit(body: Optional[AccountIn] = None, ledger: Ledger = Depends(get_ledger)):
    body = body or AccountIn()
    result = ledger.deposit(body.customerId, sent(body, "amount"))
    if not result.ok:
        return error_response(result.error)
    return {"success": True, "account": account_out(result.value)}


@router.post("/api/accounts/withdraw")
def withdraw(body: Optional[AccountIn] = None, ledger: Ledger = Depends(get_ledger)):
    body = body or AccountIn()
    result = ledger.withdraw(body.customerId, sent(body, "amount"))
    if not result.ok:
        return error_response(result.error)
    return {"success": True, "account": account_out(result.value)}


@router.post("/api/accounts/balance")
def balance(body: Optional[BalanceIn] = None, ledger: Ledger = Depends(get_ledger)):
    body = body or BalanceIn()
    result = ledger.get_balance(body.customerId)
    if not result.ok:
        return error_response(result.error)
    return {"success": True, "balance": float(result.value)}


@router.post("/api/accounts/transfer")
def transfer(body: Optional[TransferIn] = None, ledger: Ledger = Depends(get_ledger)):
    body = body or TransferIn()
    result = ledger.transfer(body.fromCustomerId, body.toCustomerId, sent(body, "amount"))
    if not result.ok:
        return error_response(result.error)
    outcome = result.value
    return {
        "success": True,
        "fromAccount": account_out(outcome.from_account),
        "toAccount": account_out(outcome.to_account),
    }


@router.get("/api/transactions")
def transactions(
    customerId: Optional[str] = Query(None),
    cursor: Optional[str] = Query(None),
    limit: Optional[str] = Query(None),
    sortBy: Optional[str] = Query(None),
    sortOrder: Optional[str] = Query(None),
    store: Store = Depends(get_store),
):
    return page_response(
        list_customer_transactions(store.transactions, customerId, cursor, limit, sortBy, sortOrder)
    )


@router.get("/api/manager/all-transactions")
def all_transactions(
    cursor: Optional[str] = Query(None),
    limit: Optional[str] = Query(None),
    sortBy: Optional[str] = Query(None),
    sortOrder: Optional[str] = Query(None),
    store: Store = Depends(get_store),
):
    return page_response(list_all_transactions(store.transactions, cursor, limit, sortBy, sortOrder))


@router.get("/api/manager/total-balance")
def total_balance(ledger: Ledger = Depends(get_ledger)):
    return {"success": True, "totalBalance": float(ledger.get_total_balance())}


@router.post("/api/customers/create", status_code=201)
def customers_create(body: Optional[CustomerIn] = None, store: Store = Depends(get_store)):
    body = body or CustomerIn()
    result = create_customer(store.customers, body.firstName, body.lastName, sent(body, "amount"))
    if not result.ok:
        return error_response(result.error)
    return {"success": True, "customer": customer_out(result.value)}


async def invalid_body(request: Request, exc: RequestValidationError):
    logger.debug("invalid request body on %s: %s", request.url.path, exc.errors())
    return JSONResponse(status_code=400, content={"success": False, "error": "Invalid request body"})


async def internal_error(request: Request, exc: Exception):
    logger.exception("unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"success": False, "error": "Internal server error"})


def create_app(store: Optional[Store] = None) -> FastAPI:
    setup_logging()
    app = FastAPI(title="ledger-service")
    app.state.store = store or Store()
    app.state.ledger = Ledger(app.state.store)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(RequestValidationError, invalid_body)
    app.add_exception_handler(Exception, internal_error)
    app.include_router(router)
    return app


app = create_app()
