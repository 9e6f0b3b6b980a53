"""
Amortization Engine

Builds a fixed repayment schedule for a loan. Runs once, when a loan is
created; the resulting schedule is stored with the loan and never patched.

Each installment splits into interest on the remaining balance and a
principal portion. Rounding to cents at every step leaves a small residual
at the end of the term, which is folded into the last installment so the
principal portions always add up to the original principal exactly.
"""

from datetime import date
from decimal import Decimal

import structlog

from finance_engine.errors import ConsistencyViolation
from finance_engine.models.loan import AmortizationEntry
from finance_engine.utils.dates import add_months
from finance_engine.utils.decimal_utils import coerce_decimal, round2

logger = structlog.get_logger()

_ZERO = Decimal("0")
_MONTHS_PER_YEAR = Decimal("12")
_HUNDRED = Decimal("100")


class AmortizationEngine:
    """Pure schedule builder."""

    @staticmethod
    def monthly_rate(annual_rate_pct) -> Decimal:
        """Annual percentage -> monthly fraction. Non-positive rates are interest-free."""
        rate = coerce_decimal(annual_rate_pct)
        if rate <= 0:
            return _ZERO
        return rate / _HUNDRED / _MONTHS_PER_YEAR

    @classmethod
    def monthly_payment(cls, principal, annual_rate_pct, term_months: int) -> Decimal:
        """
        Level installment for an annuity loan.

        Interest-free loans repay principal / term each month.
        """
        principal = coerce_decimal(principal)
        if principal <= 0 or term_months <= 0:
            return _ZERO
        i = cls.monthly_rate(annual_rate_pct)
        if i == 0:
            return round2(principal / term_months)
        growth = (1 + i) ** term_months
        return round2(principal * i * growth / (growth - 1))

    @classmethod
    def build(
        cls,
        principal,
        annual_rate_pct,
        term_months: int,
        start_date: date,
    ) -> list[AmortizationEntry]:
        """
        Build the repayment schedule.

        Args:
            principal: Amount borrowed or lent.
            annual_rate_pct: Annual interest rate in percent (0 = interest-free).
            term_months: Number of monthly installments.
            start_date: Due date of the first installment. Later installments
                fall on the same day of following months, clamped to month end.

        Returns:
            One entry per period; empty when principal or term is not positive.

        Raises:
            ConsistencyViolation: If the schedule cannot be made to repay the
                principal exactly.
        """
        principal = round2(principal)
        if principal <= 0 or term_months <= 0:
            return []

        i = cls.monthly_rate(annual_rate_pct)
        payment = cls.monthly_payment(principal, annual_rate_pct, term_months)
        straight_line = round2(principal / term_months)

        rows = []
        balance = principal
        for period in range(1, term_months + 1):
            interest = round2(balance * i) if i > 0 else _ZERO
            if i > 0:
                portion = round2(payment - interest)
            else:
                portion = straight_line
            if portion > balance:
                portion = balance
            balance = round2(balance - portion)
            rows.append({
                "period": period,
                "due_date": add_months(start_date, period - 1, day=start_date.day),
                "interest": interest,
                "principal": portion,
                "balance": balance,
            })

        # Fold the rounding residual into the final installment.
        last = rows[-1]
        last["principal"] = round2(last["principal"] + last["balance"])
        last["balance"] = _ZERO

        schedule = [AmortizationEntry(**row) for row in rows]
        cls._check(schedule, principal)
        return schedule

    @staticmethod
    def _check(schedule: list[AmortizationEntry], principal: Decimal) -> None:
        repaid = sum((entry.principal for entry in schedule), _ZERO)
        if repaid != principal:
            logger.error(
                "amortization_residual_mismatch",
                principal=str(principal),
                repaid=str(repaid),
            )
            raise ConsistencyViolation(
                f"Schedule repays {repaid}, expected {principal}"
            )
        for entry in schedule:
            if entry.balance < 0 or entry.principal < 0:
                logger.error("amortization_negative_balance", period=entry.period)
                raise ConsistencyViolation(
                    f"Schedule period {entry.period} has a negative amount"
                )
