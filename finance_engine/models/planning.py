"""
Planning Models: budgets, savings goals and recurring items.

These records are inputs to the read-side aggregators. The only derived
value stored on them is SavingsGoal.current_amount, which is always
recomputed in full from the contributions.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from finance_engine.config import get_settings
from finance_engine.models.common import CalendarDate, CurrencyCode, Money, new_id


def _base_currency() -> str:
    return get_settings().currency.base_currency


# =============================================================================
# BUDGETS
# =============================================================================

class BudgetPeriod(str, Enum):
    MONTHLY = "monthly"
    WEEKLY = "weekly"
    CUSTOM = "custom"


class BudgetCategoryAllocation(BaseModel):
    """Spending limit for one category within a budget."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=new_id)
    category: str = Field(..., min_length=1, max_length=100)
    limit: Money = Field(..., ge=0)
    carry_forward: bool = Field(
        default=False,
        description="Roll unspent amount of the previous period into this one"
    )
    currency: Optional[CurrencyCode] = Field(
        default=None,
        description="Allocation currency; defaults to the budget currency"
    )


class Budget(BaseModel):
    """
    A set of category limits over a repeating period.

    end_date is only meaningful for custom budgets; weekly and monthly
    budgets derive their window from start_date.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=new_id)
    label: str = Field(default="Budget", max_length=200)
    period: BudgetPeriod = BudgetPeriod.MONTHLY
    start_date: CalendarDate
    end_date: Optional[CalendarDate] = None
    carry_forward: bool = False
    currency: CurrencyCode = Field(default_factory=_base_currency, min_length=3, max_length=3)
    categories: list[BudgetCategoryAllocation] = Field(default_factory=list)

    @model_validator(mode='after')
    def validate_dates(self) -> 'Budget':
        if self.end_date and self.end_date < self.start_date:
            raise ValueError("Budget end date cannot be before start date")
        return self


class BudgetProgress(BaseModel):
    """Spent vs limit for one (budget, category) in one period. Derived, never stored."""

    budget_id: str
    category: str
    currency: str
    period_start: date
    period_end: date
    base_limit: Decimal = Field(..., description="Configured limit for the category")
    carried_forward: Decimal = Field(
        default=Decimal("0"),
        description="Unspent amount rolled in from earlier periods"
    )
    limit: Decimal = Field(..., description="Effective limit (base + carried forward)")
    spent: Decimal
    remaining: Decimal
    percent: Decimal = Field(..., ge=0)


# =============================================================================
# SAVINGS
# =============================================================================

class SavingsContribution(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=new_id)
    date: CalendarDate
    amount: Money = Field(..., gt=0)
    currency: CurrencyCode = Field(..., min_length=3, max_length=3)
    account_id: Optional[str] = None


class SavingsGoal(BaseModel):
    """
    A savings target.

    current_amount is derived from contributions and recomputed after
    every add or delete. Do not edit it directly.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=new_id)
    label: str = Field(default="Savings Goal", max_length=200)
    target_amount: Money = Field(..., gt=0)
    currency: CurrencyCode = Field(..., min_length=3, max_length=3)
    current_amount: Money = Decimal("0")
    target_date: Optional[CalendarDate] = None
    priority: int = 0
    description: Optional[str] = Field(default=None, max_length=500)
    contributions: list[SavingsContribution] = Field(default_factory=list)


class SavingsProgress(BaseModel):
    goal_id: str
    currency: str
    current_amount: Decimal
    target_amount: Decimal
    remaining: Decimal
    percent: Decimal


# =============================================================================
# RECURRING ITEMS
# =============================================================================

class RecurrenceCadence(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"
    CUSTOM = "custom"  # every `interval` days


class RecurrenceRule(BaseModel):
    cadence: RecurrenceCadence
    interval: int = Field(default=1, ge=1)
    day_of_month: Optional[int] = Field(default=None, ge=1, le=31)


class RecurringItemType(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"
    TRANSFER = "transfer"
    PAYMENT = "payment"


class RecurringItem(BaseModel):
    """
    A repeating income or outflow.

    next_run_date is a cursor: it moves forward by one recurrence step
    every time the item runs.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=new_id)
    label: str = Field(default="Recurring item", max_length=200)
    type: RecurringItemType
    amount: Money = Field(..., gt=0)
    currency: CurrencyCode = Field(..., min_length=3, max_length=3)
    next_run_date: CalendarDate
    recurrence: RecurrenceRule
    account_id: Optional[str] = None
    to_account_id: Optional[str] = None
    category: Optional[str] = None
    contact_id: Optional[str] = None
    auto_create_transaction: bool = False

    @model_validator(mode="after")
    def pin_anchor_day(self) -> "RecurringItem":
        """Month-based items remember the day they started on.

        Without it, an item on the 31st would move to the 29th after
        February and stay there.
        """
        month_based = (
            RecurrenceCadence.MONTHLY,
            RecurrenceCadence.QUARTERLY,
            RecurrenceCadence.YEARLY,
        )
        if self.recurrence.cadence in month_based and self.recurrence.day_of_month is None:
            self.recurrence = self.recurrence.model_copy(
                update={"day_of_month": self.next_run_date.day}
            )
        return self
