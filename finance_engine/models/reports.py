"""Report models for dashboard analytics."""

from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


class CategorySpending(BaseModel):
    category: str
    currency: str
    amount: Decimal


class IncomeExpenseTrendPoint(BaseModel):
    period: str = Field(..., description="Calendar month, YYYY-MM")
    income: Decimal
    expense: Decimal
    currency: str


class CreditCardUtilizationPoint(BaseModel):
    account_id: str
    account_name: str
    utilization_percent: Decimal
    statement_end_date: date


class BudgetVsActualPoint(BaseModel):
    budget_id: str
    label: str
    category: str
    limit: Decimal
    actual: Decimal
    currency: str


class ContactBalance(BaseModel):
    """Per-currency position with one contact. Positive balance: they owe you."""
    currency: str
    owed_to_you: Decimal = Decimal("0")
    you_owe: Decimal = Decimal("0")
    balance: Decimal = Decimal("0")


class ContactSummary(BaseModel):
    contact_id: str
    name: Optional[str] = None
    totals: list[ContactBalance] = Field(default_factory=list)


class ReportBundle(BaseModel):
    timeframe_start: date
    timeframe_end: date
    spending_by_category: list[CategorySpending] = Field(default_factory=list)
    income_vs_expense: list[IncomeExpenseTrendPoint] = Field(default_factory=list)
    credit_card_utilization: list[CreditCardUtilizationPoint] = Field(default_factory=list)
    budget_vs_actual: list[BudgetVsActualPoint] = Field(default_factory=list)
    contact_summaries: list[ContactSummary] = Field(default_factory=list)
