"""Cash-flow forecast models (read-side, plain serializable data)."""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from finance_engine.models.common import CalendarDate


class ForecastHighlight(str, Enum):
    """
    Day classification in a projection.

    DUE: projected balance goes negative.
    WARNING: the day's outflow overwhelms its inflow.
    """
    OK = "ok"
    WARNING = "warning"
    DUE = "due"


class CashflowForecastEntry(BaseModel):
    date: CalendarDate
    inflow: Decimal
    outflow: Decimal
    net: Decimal
    balance_projection: Decimal
    highlight: ForecastHighlight = ForecastHighlight.OK
    notes: Optional[str] = None


class CashflowForecast(BaseModel):
    currency: str = Field(..., description="Base currency all figures are expressed in")
    as_of: date
    horizon_days: int = Field(..., ge=0)
    starting_balance: Decimal
    entries: list[CashflowForecastEntry] = Field(default_factory=list)
