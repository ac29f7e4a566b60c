from typing import Any

from .db import CustomerRegistry
from .engine import MISSING, parse_amount
from .errors import ErrorKind, Result, fail, success
from .models import Customer

MISSING_CUSTOMER_FIELDS = "Missing required fields: firstName, lastName, and amount are required"
INVALID_OPENING_AMOUNT = "Amount must be greater than or equal to 1 and must be a number"


def create_customer(
    registry: CustomerRegistry, first_name: Any, last_name: Any, amount: Any = MISSING
) -> Result[Customer]:
    # amount is the declared opening amount; no account is opened here
    if not first_name or not last_name or amount is MISSING:
        return fail(ErrorKind.MISSING_FIELD, MISSING_CUSTOMER_FIELDS)
    value = parse_amount(amount)
    if value is None:
        return fail(ErrorKind.INVALID_AMOUNT, INVALID_OPENING_AMOUNT)
    return success(registry.add(str(first_name), str(last_name), value))
