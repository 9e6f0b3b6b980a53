"""Small shared helpers for money and calendar arithmetic."""

from finance_engine.utils.dates import add_days, add_months, next_day_of_month
from finance_engine.utils.decimal_utils import CENT, coerce_decimal, round2

__all__ = [
    "CENT",
    "add_days",
    "add_months",
    "coerce_decimal",
    "next_day_of_month",
    "round2",
]
