import os
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

from .db import TransactionLog
from .errors import ErrorKind, Result, fail, success
from .models import Transaction

DEFAULT_LIMIT = int(os.getenv("TRANSACTIONS_DEFAULT_LIMIT", "10"))
MIN_LIMIT, MAX_LIMIT = 1, 100

SORT_KEYS: Dict[str, Callable[[Transaction], Any]] = {
    "date": lambda tx: tx.created_at,
    "amount": lambda tx: tx.amount,
    "customerId": lambda tx: tx.customer_id,
    "type": lambda tx: tx.type.value,
}
SORT_ORDERS = ("asc", "desc")

CUSTOMER_SORT_BY = ("date", "amount")
ALL_SORT_BY = ("date", "amount", "customerId", "type")

CUSTOMER_ID_REQUIRED = "Customer ID is required"
LIMIT_OUT_OF_RANGE = f"Limit must be between {MIN_LIMIT} and {MAX_LIMIT}"
CUSTOMER_SORT_BY_INVALID = 'sortBy must be either "date" or "amount"'
ALL_SORT_BY_INVALID = "sortBy must be one of: date, amount, customerId, type"
SORT_ORDER_INVALID = 'sortOrder must be either "asc" or "desc"'


@dataclass
class Page:
    items: List[Transaction] = field(default_factory=list)
    has_more: bool = False
    next_cursor: Optional[str] = None


def parse_limit(raw: Any) -> Optional[int]:
    if raw is None or raw == "":
        return DEFAULT_LIMIT
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        value = raw
    else:
        try:
            value = int(str(raw).strip())
        except ValueError:
            return None
    if value < MIN_LIMIT or value > MAX_LIMIT:
        return None
    return value


def paginate(
    transactions: Sequence[Transaction],
    sort_by: str = "date",
    sort_order: str = "desc",
    cursor: Optional[str] = None,
    limit: int = DEFAULT_LIMIT,
) -> Page:
    """Sort, then slice the page that follows ``cursor``.

    ``sorted`` is stable for reverse=True as well, so equal keys keep log order
    in both directions. An unknown cursor restarts from the first item.
    """
    ordered = sorted(transactions, key=SORT_KEYS[sort_by], reverse=sort_order == "desc")

    start = 0
    if cursor:
        for index, tx in enumerate(ordered):
            if tx.id == cursor:
                start = index + 1
                break

    end = start + limit
    items = ordered[start:end]
    has_more = end < len(ordered)
    next_cursor = items[-1].id if has_more and items else None
    return Page(items=items, has_more=has_more, next_cursor=next_cursor)


def _validate(limit: Any, sort_by: Any, sort_order: Any, allowed: Sequence[str], sort_by_message: str):
    page_size = parse_limit(limit)
    if page_size is None:
        return fail(ErrorKind.INVALID_QUERY, LIMIT_OUT_OF_RANGE), None, None
    # empty sortBy/sortOrder take the defaults, same as absent ones
    sort_by = sort_by or "date"
    if sort_by not in allowed:
        return fail(ErrorKind.INVALID_QUERY, sort_by_message), None, None
    sort_order = sort_order or "desc"
    if sort_order not in SORT_ORDERS:
        return fail(ErrorKind.INVALID_QUERY, SORT_ORDER_INVALID), None, None
    return None, page_size, (sort_by, sort_order)


def list_customer_transactions(
    log: TransactionLog,
    customer_id: Any,
    cursor: Optional[str] = None,
    limit: Any = None,
    sort_by: Any = None,
    sort_order: Any = None,
) -> Result[Page]:
    if not customer_id:
        return fail(ErrorKind.MISSING_FIELD, CUSTOMER_ID_REQUIRED)
    error, page_size, ordering = _validate(limit, sort_by, sort_order, CUSTOMER_SORT_BY, CUSTOMER_SORT_BY_INVALID)
    if error:
        return error
    # one snapshot per call; later appends do not shift this page
    snapshot = log.for_customer(str(customer_id))
    return success(paginate(snapshot, ordering[0], ordering[1], cursor, page_size))


def list_all_transactions(
    log: TransactionLog,
    cursor: Optional[str] = None,
    limit: Any = None,
    sort_by: Any = None,
    sort_order: Any = None,
) -> Result[Page]:
    error, page_size, ordering = _validate(limit, sort_by, sort_order, ALL_SORT_BY, ALL_SORT_BY_INVALID)
    if error:
        return error
    snapshot = log.all()
    return success(paginate(snapshot, ordering[0], ordering[1], cursor, page_size))
