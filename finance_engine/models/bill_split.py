"""
Bill Split Models

A bill split divides one shared expense among contacts.
"share" is what a participant owes; "paid" is what they've settled.
The split's status is derived from the participants and is never set directly.
"""

from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from finance_engine.models.common import CalendarDate, CurrencyCode, Money, new_id


class BillSplitStatus(str, Enum):
    """
    Settlement status.

    Moves open -> partial -> settled as payments come in.
    """
    OPEN = "open"
    PARTIAL = "partial"
    SETTLED = "settled"


class BillSplitParticipant(BaseModel):
    """One contact's part of a split."""

    contact_id: str = Field(..., min_length=1)
    share: Money = Field(..., ge=0)
    paid: Money = Field(default=Decimal("0"), ge=0)

    @property
    def outstanding(self) -> Decimal:
        """What this participant still owes (negative when overpaid)."""
        return self.share - self.paid


class BillSplit(BaseModel):
    """A shared expense and its settlement state."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=new_id)
    description: str = Field(default="Bill Split", max_length=200)
    date: CalendarDate
    currency: CurrencyCode = Field(..., min_length=3, max_length=3)
    total_amount: Money = Field(..., gt=0)
    payer_contact_id: str
    participants: list[BillSplitParticipant] = Field(default_factory=list)
    status: BillSplitStatus = BillSplitStatus.OPEN

    def participant(self, contact_id: str) -> BillSplitParticipant:
        for p in self.participants:
            if p.contact_id == contact_id:
                return p
        raise KeyError(contact_id)
