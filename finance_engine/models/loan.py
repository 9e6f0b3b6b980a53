"""
Loan Models

DESIGN DECISION: The amortization schedule is computed once, when the loan
is created, and is immutable afterwards. Editing a loan means regenerating
the whole schedule. Loan status and outstanding balance are derived from
the schedule and the recorded payments; they are never authoritative.
"""

from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from finance_engine.models.common import CalendarDate, CurrencyCode, Money, new_id


class LoanHorizon(str, Enum):
    """
    Loan classification.

    Short-term loans are a single lump sum (implicit one-period term).
    Long-term loans are amortized over term_months.
    """
    SHORT_TERM = "short-term"
    LONG_TERM = "long-term"


class LoanDirection(str, Enum):
    BORROWED = "borrowed"
    LENT = "lent"


class LoanStatus(str, Enum):
    ACTIVE = "active"
    PAID = "paid"
    OVERDUE = "overdue"


class AmortizationEntry(BaseModel):
    """
    One installment of an amortization schedule.

    Accepts the legacy camelCase ``dueDate`` key so persisted
    schedules can be read back without a migration.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    period: int = Field(..., ge=1)
    due_date: CalendarDate = Field(
        ...,
        validation_alias=AliasChoices("due_date", "dueDate"),
    )
    interest: Money
    principal: Money
    balance: Money = Field(
        ...,
        description="Remaining principal after this installment"
    )

    @property
    def payment(self) -> Decimal:
        """Total installment due (principal + interest)."""
        return self.principal + self.interest


class LoanPayment(BaseModel):
    """A repayment recorded against a loan."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=new_id)
    date: CalendarDate
    amount: Money = Field(..., gt=0)
    currency: CurrencyCode = Field(..., min_length=3, max_length=3)
    note: Optional[str] = Field(default=None, max_length=500)


class LoanTerms(BaseModel):
    """
    Parameters for creating a loan.

    Only shape is checked here; business rules (positive principal,
    term of at least one month) are enforced by the loan calculator so
    they surface as engine ValidationErrors.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    label: str = Field(default="Loan", max_length=200)
    contact_id: str = Field(..., min_length=1)
    direction: LoanDirection = LoanDirection.BORROWED
    horizon: LoanHorizon = LoanHorizon.LONG_TERM
    principal: Money
    currency: CurrencyCode = Field(..., min_length=3, max_length=3)
    interest_rate: Decimal = Field(
        default=Decimal("0"),
        description="Annual interest rate in percent; 0 means interest-free"
    )
    term_months: int = 1
    start_date: CalendarDate


class Loan(BaseModel):
    """A loan with its immutable schedule and recorded payments."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=new_id)
    label: str = Field(default="Loan", max_length=200)
    contact_id: str
    direction: LoanDirection
    horizon: LoanHorizon
    principal: Money
    currency: CurrencyCode = Field(..., min_length=3, max_length=3)
    interest_rate: Decimal = Decimal("0")
    term_months: int = Field(..., ge=1)
    start_date: CalendarDate
    status: LoanStatus = LoanStatus.ACTIVE
    payments: list[LoanPayment] = Field(default_factory=list)
    schedule: list[AmortizationEntry] = Field(default_factory=list)
