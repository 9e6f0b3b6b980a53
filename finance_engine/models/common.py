"""
Shared field types for the finance models.

DESIGN DECISION: Money is Decimal quantized to cents at the model boundary.
Every value that enters a model is already round2'd, so the engine never
sees a float or a sub-cent residue it didn't produce itself.
"""

from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Annotated
from uuid import uuid4

from pydantic import AfterValidator, BeforeValidator

from finance_engine.utils.decimal_utils import coerce_decimal, round2


def _to_decimal(value):
    try:
        amount = coerce_decimal(value)
    except InvalidOperation:
        raise ValueError(f"Not a valid amount: {value!r}")
    if not amount.is_finite():
        raise ValueError(f"Not a valid amount: {value!r}")
    return amount


def _upper_code(value: str) -> str:
    return value.strip().upper()


def _date_part(value):
    """Accept ISO datetime strings where a calendar date is expected."""
    if isinstance(value, str) and len(value) > 10 and value[10] in ("T", " "):
        return value[:10]
    return value


Money = Annotated[Decimal, BeforeValidator(_to_decimal), AfterValidator(round2)]
CurrencyCode = Annotated[str, AfterValidator(_upper_code)]
CalendarDate = Annotated[date, BeforeValidator(_date_part)]


def new_id() -> str:
    """Generate a new record identifier."""
    return str(uuid4())
