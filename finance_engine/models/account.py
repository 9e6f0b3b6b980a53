"""
Account and Transaction Models

These are the only records whose state the ledger mutates.

DESIGN DECISION: Account.balance is owned by the AccountLedger.
Nothing else in the system assigns to it; callers change balances
only by applying or reversing transactions.
"""

from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from finance_engine.config import get_settings
from finance_engine.models.common import CalendarDate, CurrencyCode, Money, new_id
from finance_engine.utils.decimal_utils import round2


class AccountType(str, Enum):
    """Supported account types."""
    CASH = "cash"
    BANK = "bank"
    MOBILE_WALLET = "mobile-wallet"
    CREDIT_CARD = "credit-card"


class AccountStatus(str, Enum):
    ACTIVE = "active"
    CLOSED = "closed"


class TransactionType(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"
    TRANSFER = "transfer"


class TransactionStatus(str, Enum):
    """
    Transaction lifecycle status.

    A status change never edits a balance in place: callers model it
    as reverse(old) then apply(new).
    """
    PENDING = "pending"
    POSTED = "posted"


class TransactionSource(str, Enum):
    """Where a transaction came from."""
    MANUAL = "manual"
    SMS = "sms"
    CSV = "csv"
    RECURRING = "recurring"
    IMPORT = "import"
    BILL_SPLIT = "bill_split"


class CreditCardDetails(BaseModel):
    """
    Credit-card sub-accounting.

    pending_balance and available_credit are moved by expense legs only.
    """

    statement_start_day: int = Field(default=1, ge=1, le=31)
    statement_end_day: int = Field(default=30, ge=1, le=31)
    due_day: int = Field(default=15, ge=1, le=31)
    credit_limit: Money = Field(
        default_factory=lambda: get_settings().engine.default_credit_limit,
        ge=0,
        description="Card credit limit in the account currency"
    )
    apr: Decimal = Field(
        default=Decimal("24"),
        ge=0,
        description="Annual percentage rate"
    )
    pending_balance: Money = Field(default=Decimal("0"))
    available_credit: Optional[Money] = Field(
        default=None,
        description="Defaults to the credit limit when not provided"
    )

    @model_validator(mode='after')
    def default_available_credit(self) -> 'CreditCardDetails':
        if self.available_credit is None:
            self.available_credit = self.credit_limit
        return self


class Account(BaseModel):
    """A balance-carrying account."""

    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=new_id)
    name: str = Field(
        default="Account",
        min_length=1,
        max_length=200
    )
    type: AccountType = AccountType.BANK
    currency: CurrencyCode = Field(..., min_length=3, max_length=3)
    balance: Money = Field(
        default=Decimal("0"),
        description="Current balance in the account currency"
    )
    status: AccountStatus = AccountStatus.ACTIVE
    institution: Optional[str] = None
    credit_card: Optional[CreditCardDetails] = None

    @model_validator(mode='after')
    def credit_card_defaults(self) -> 'Account':
        """Credit-card accounts always carry card details."""
        if self.type == AccountType.CREDIT_CARD and self.credit_card is None:
            self.credit_card = CreditCardDetails()
        return self

    @property
    def is_credit_card(self) -> bool:
        return self.type == AccountType.CREDIT_CARD


class Transaction(BaseModel):
    """
    A single money movement.

    income/expense reference one account; transfers reference a source
    and a destination account and may carry an explicit counter leg
    (counter_amount in counter_currency) for cross-currency transfers.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=new_id)
    type: TransactionType
    amount: Money = Field(
        ...,
        description="Positive magnitude; direction comes from the type"
    )
    currency: CurrencyCode = Field(..., min_length=3, max_length=3)
    status: TransactionStatus = TransactionStatus.POSTED
    date: CalendarDate

    account_id: Optional[str] = None
    from_account_id: Optional[str] = None
    to_account_id: Optional[str] = None

    counter_amount: Optional[Money] = None
    counter_currency: Optional[CurrencyCode] = None

    # Exact amount in the account's currency, computed upstream (e.g. by the UI).
    # When present the ledger uses it verbatim instead of a live-rate conversion.
    account_amount: Optional[Money] = None

    description: Optional[str] = Field(default=None, max_length=500)
    category: Optional[str] = Field(default=None, max_length=100)
    contact_id: Optional[str] = None
    source: TransactionSource = TransactionSource.MANUAL
    metadata: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode='after')
    def lift_legacy_account_amount(self) -> 'Transaction':
        """Older records carry the override inside metadata["accountAmount"]."""
        if self.account_amount is None:
            legacy = self.metadata.get("accountAmount")
            if isinstance(legacy, (int, float, Decimal)) and not isinstance(legacy, bool):
                self.account_amount = round2(Decimal(str(legacy)))
        return self

    def touched_account_ids(self) -> list[str]:
        """Ids of every account this transaction moves money in."""
        if self.type == TransactionType.TRANSFER:
            return [aid for aid in (self.from_account_id, self.to_account_id) if aid]
        return [self.account_id] if self.account_id else []
