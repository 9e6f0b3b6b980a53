"""
Bill Split Settlement

Divides a shared expense among contacts and tracks who has settled.

The payer fronted the whole bill, so at creation their paid amount is the
full total and everybody else starts at zero. Status only looks at the
other participants (the debtors): the split is settled once none of them
owes anything.
"""

from datetime import date
from decimal import Decimal
from typing import Optional

import structlog

from finance_engine.config import get_settings
from finance_engine.errors import ReferenceError, ValidationError
from finance_engine.models.bill_split import (
    BillSplit,
    BillSplitParticipant,
    BillSplitStatus,
)
from finance_engine.models.common import new_id
from finance_engine.utils.decimal_utils import CENT, coerce_decimal, round2
from finance_engine.validation import InputValidator, require_valid

logger = structlog.get_logger()

_ZERO = Decimal("0")


def _take_back(amounts: list[Decimal], excess: Decimal) -> list[Decimal]:
    """Remove excess one cent at a time, last participant first, skipping
    shares that are already zero."""
    amounts = list(amounts)
    cents = int(excess / CENT)
    index = len(amounts) - 1
    while cents > 0:
        if amounts[index] > 0:
            amounts[index] -= CENT
            cents -= 1
        index = index - 1 if index > 0 else len(amounts) - 1
    return amounts


class BillSplitSettlement:
    """Creation, payment recording and status derivation for bill splits."""

    def __init__(self, validator: Optional[InputValidator] = None):
        self._validator = validator or InputValidator()

    @property
    def settlement_tolerance(self) -> Decimal:
        return self._validator.settlement_tolerance

    @staticmethod
    def allocate(total_amount, count: int, shares: Optional[list] = None) -> list[Decimal]:
        """
        Per-participant shares that add up to total exactly.

        Equal split gives round2(total / n) to everyone and whatever rounding
        leaves over goes to the last participant. Custom shares are taken as
        given, with any sub-tolerance residual also landing on the last one.
        When that would push the last share below zero (many participants,
        tiny total), the excess is taken back a cent at a time from the end.
        """
        total = round2(total_amount)
        if count <= 0:
            return []
        if shares is None:
            amounts = [round2(total / count)] * count
        else:
            amounts = [round2(share) for share in shares]
        residual = round2(total - sum(amounts, _ZERO))
        if residual == 0:
            return amounts
        if amounts[-1] + residual >= 0:
            amounts[-1] = round2(amounts[-1] + residual)
        else:
            amounts = _take_back(amounts, -residual)
        return amounts

    def create(
        self,
        total_amount,
        currency: str,
        payer_contact_id: str,
        participant_ids: list[str],
        shares: Optional[list] = None,
        description: str = "Bill Split",
        split_date: Optional[date] = None,
        split_id: Optional[str] = None,
    ) -> BillSplit:
        """
        Create a split.

        Raises:
            ValidationError: Non-positive total, no participants, duplicates,
                payer not among participants, or custom shares that don't add up.
        """
        require_valid(self._validator.validate_bill_split(
            total_amount, payer_contact_id, participant_ids, shares,
        ))

        total = round2(total_amount)
        amounts = self.allocate(total, len(participant_ids), shares)
        participants = [
            BillSplitParticipant(
                contact_id=contact_id,
                share=share,
                paid=total if contact_id == payer_contact_id else _ZERO,
            )
            for contact_id, share in zip(participant_ids, amounts)
        ]

        split = BillSplit(
            id=split_id or new_id(),
            description=description,
            date=split_date or date.today(),
            currency=currency,
            total_amount=total,
            payer_contact_id=payer_contact_id,
            participants=participants,
            status=self.derive_status(participants, payer_contact_id, self.settlement_tolerance),
        )
        logger.info(
            "bill_split_created",
            split_id=split.id,
            total=str(total),
            participants=len(participants),
            status=split.status.value,
        )
        return split

    @staticmethod
    def derive_status(
        participants: list[BillSplitParticipant],
        payer_contact_id: Optional[str] = None,
        tolerance=None,
    ) -> BillSplitStatus:
        """
        Pure function of the participants' current share/paid values.

        settled: no debtor owes anything, or only less than the settlement
            tolerance (the same one custom shares are checked against).
        open: no debtor has paid anything.
        partial: otherwise.
        """
        debtors = [
            p for p in participants
            if p.contact_id != payer_contact_id and p.share > 0
        ]
        if tolerance is None:
            tolerance = get_settings().engine.settlement_tolerance
        tolerance = coerce_decimal(tolerance)

        def settled(p: BillSplitParticipant) -> bool:
            owed = round2(p.share - p.paid)
            return owed <= 0 or owed < tolerance

        if all(settled(p) for p in debtors):
            return BillSplitStatus.SETTLED
        if all(p.paid == 0 for p in debtors):
            return BillSplitStatus.OPEN
        return BillSplitStatus.PARTIAL

    def recompute(self, split: BillSplit) -> BillSplit:
        """Return a copy of split with its status re-derived."""
        return split.model_copy(update={
            "status": self.derive_status(
                split.participants, split.payer_contact_id, self.settlement_tolerance,
            ),
        })

    def record_payment(self, split: BillSplit, contact_id: str, paid_amount) -> BillSplit:
        """
        Set one participant's paid amount (absolute, not incremental).

        Overpayment is accepted; the participant simply owes nothing.
        The input split is not modified.

        Raises:
            ValidationError: Negative paid amount.
            ReferenceError: contact_id is not a participant.
        """
        paid = round2(paid_amount)
        if paid < 0:
            raise ValidationError.for_field("paid", "Paid amount cannot be negative")
        try:
            split.participant(contact_id)
        except KeyError:
            raise ReferenceError("participant", contact_id)

        participants = [
            p.model_copy(update={"paid": paid}) if p.contact_id == contact_id else p.model_copy()
            for p in split.participants
        ]
        updated = self.recompute(split.model_copy(update={"participants": participants}))
        logger.info(
            "bill_split_payment_recorded",
            split_id=split.id,
            contact_id=contact_id,
            paid=str(paid),
            status=updated.status.value,
        )
        return updated

    @staticmethod
    def outstanding_for(split: BillSplit, contact_id: str) -> Decimal:
        """What contact_id still owes on this split (never negative)."""
        try:
            participant = split.participant(contact_id)
        except KeyError:
            raise ReferenceError("participant", contact_id)
        if contact_id == split.payer_contact_id:
            return _ZERO
        return max(round2(participant.share - participant.paid), _ZERO)
