"""
Loan Calculator

Builds loans from creation terms and derives their outstanding balance
and status. Status is never set by hand: recompute() is called after
every payment and is the single place the derived fields are written.
"""

from datetime import date
from decimal import Decimal
from typing import Optional

import structlog

from finance_engine.models.common import new_id
from finance_engine.models.loan import (
    Loan,
    LoanHorizon,
    LoanPayment,
    LoanStatus,
    LoanTerms,
)
from finance_engine.services.amortization import AmortizationEngine
from finance_engine.services.currency import CurrencyConverter
from finance_engine.utils.decimal_utils import round2
from finance_engine.validation import InputValidator, require_valid

logger = structlog.get_logger()

_ZERO = Decimal("0")


class LoanCalculator:
    """Loan construction and derived state."""

    def __init__(
        self,
        converter: Optional[CurrencyConverter] = None,
        validator: Optional[InputValidator] = None,
    ):
        self._converter = converter or CurrencyConverter()
        self._validator = validator or InputValidator()

    def build_loan(self, terms: LoanTerms, loan_id: Optional[str] = None) -> Loan:
        """
        Create a loan with its schedule.

        Short-term loans are a single lump sum due on the start date.

        Raises:
            ValidationError: Non-positive principal, negative rate or bad term.
        """
        require_valid(self._validator.validate_loan_terms(terms))

        term = 1 if terms.horizon == LoanHorizon.SHORT_TERM else terms.term_months
        schedule = AmortizationEngine.build(
            terms.principal,
            terms.interest_rate,
            term,
            terms.start_date,
        )

        loan = Loan(
            id=loan_id or new_id(),
            label=terms.label,
            contact_id=terms.contact_id,
            direction=terms.direction,
            horizon=terms.horizon,
            principal=terms.principal,
            currency=terms.currency,
            interest_rate=terms.interest_rate,
            term_months=term,
            start_date=terms.start_date,
            schedule=schedule,
        )
        logger.info(
            "loan_built",
            loan_id=loan.id,
            principal=str(loan.principal),
            periods=len(schedule),
        )
        return loan

    def total_due(self, loan: Loan) -> Decimal:
        """Principal plus all scheduled interest."""
        if not loan.schedule:
            return loan.principal
        return round2(sum((entry.payment for entry in loan.schedule), _ZERO))

    def total_paid(self, loan: Loan) -> Decimal:
        """All recorded payments, in the loan currency."""
        return round2(sum(
            (self._converter.convert(p.amount, p.currency, loan.currency) for p in loan.payments),
            _ZERO,
        ))

    def outstanding(self, loan: Loan) -> Decimal:
        return max(round2(self.total_due(loan) - self.total_paid(loan)), _ZERO)

    def derive_status(self, loan: Loan, as_of: Optional[date] = None) -> LoanStatus:
        """
        paid: nothing outstanding.
        overdue: the first installment not covered by payments so far is past due.
        active: otherwise.
        """
        as_of = as_of or date.today()
        if self.outstanding(loan) == 0:
            return LoanStatus.PAID

        paid = self.total_paid(loan)
        covered = _ZERO
        for entry in loan.schedule:
            covered = round2(covered + entry.payment)
            if covered > paid:
                return LoanStatus.OVERDUE if entry.due_date < as_of else LoanStatus.ACTIVE
        return LoanStatus.ACTIVE

    def recompute(self, loan: Loan, as_of: Optional[date] = None) -> Loan:
        """Return a copy of loan with its status re-derived."""
        return loan.model_copy(update={"status": self.derive_status(loan, as_of)})

    def record_payment(
        self,
        loan: Loan,
        payment: LoanPayment,
        as_of: Optional[date] = None,
    ) -> Loan:
        """Append a payment and re-derive status. The input loan is not modified."""
        updated = loan.model_copy(update={"payments": [*loan.payments, payment]})
        updated = self.recompute(updated, as_of)
        logger.info(
            "loan_payment_recorded",
            loan_id=loan.id,
            amount=str(payment.amount),
            outstanding=str(self.outstanding(updated)),
            status=updated.status.value,
        )
        return updated
