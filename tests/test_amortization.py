"""Tests for the amortization engine and loan calculator."""

import pytest
from datetime import date
from decimal import Decimal

from finance_engine.config import DEFAULT_EXCHANGE_RATES
from finance_engine.errors import ValidationError
from finance_engine.models import (
    LoanDirection,
    LoanHorizon,
    LoanPayment,
    LoanStatus,
    LoanTerms,
)
from finance_engine.services.amortization import AmortizationEngine
from finance_engine.services.currency import CurrencyConverter
from finance_engine.services.loans import LoanCalculator


def make_calculator() -> LoanCalculator:
    return LoanCalculator(CurrencyConverter(DEFAULT_EXCHANGE_RATES, "MVR"))


def make_terms(**overrides) -> LoanTerms:
    data = {
        "contact_id": "bank",
        "principal": Decimal("1200"),
        "currency": "MVR",
        "interest_rate": Decimal("12"),
        "term_months": 12,
        "start_date": date(2024, 1, 15),
    }
    data.update(overrides)
    return LoanTerms(**data)


class TestAmortizationEngine:

    def test_reference_example(self):
        """1200 at 12% over 12 months: level payment of 106.62."""
        assert AmortizationEngine.monthly_payment(Decimal("1200"), Decimal("12"), 12) == Decimal("106.62")

        schedule = AmortizationEngine.build(Decimal("1200"), Decimal("12"), 12, date(2024, 1, 15))
        first = schedule[0]
        assert first.period == 1
        assert first.interest == Decimal("12.00")
        assert first.principal == Decimal("94.62")
        assert first.balance == Decimal("1105.38")

    @pytest.mark.parametrize("principal,rate,term", [
        (Decimal("1200"), Decimal("12"), 12),
        (Decimal("1000"), Decimal("0"), 3),
        (Decimal("100"), Decimal("0"), 7),
        (Decimal("50000"), Decimal("7.5"), 60),
        (Decimal("0.05"), Decimal("10"), 12),
        (Decimal("999.99"), Decimal("35"), 1),
        (Decimal("250000"), Decimal("4.25"), 360),
    ])
    def test_schedule_repays_principal_exactly(self, principal, rate, term):
        schedule = AmortizationEngine.build(principal, rate, term, date(2024, 1, 31))

        assert len(schedule) == term
        assert sum(entry.principal for entry in schedule) == principal
        assert schedule[-1].balance == Decimal("0")
        assert all(entry.balance >= 0 for entry in schedule)
        assert [entry.period for entry in schedule] == list(range(1, term + 1))

    def test_interest_free_is_straight_line(self):
        schedule = AmortizationEngine.build(Decimal("100"), Decimal("0"), 3, date(2024, 1, 1))
        assert [e.principal for e in schedule] == [Decimal("33.33"), Decimal("33.33"), Decimal("33.34")]
        assert all(e.interest == Decimal("0") for e in schedule)

    def test_negative_rate_is_interest_free(self):
        schedule = AmortizationEngine.build(Decimal("100"), Decimal("-5"), 2, date(2024, 1, 1))
        assert all(e.interest == Decimal("0") for e in schedule)

    @pytest.mark.parametrize("principal,term", [
        (Decimal("0"), 12),
        (Decimal("-10"), 12),
        (Decimal("100"), 0),
    ])
    def test_degenerate_inputs_give_empty_schedule(self, principal, term):
        assert AmortizationEngine.build(principal, Decimal("5"), term, date(2024, 1, 1)) == []

    def test_due_dates_clamp_to_month_end(self):
        """A loan starting on the 31st is due on the last day of short months."""
        schedule = AmortizationEngine.build(Decimal("400"), Decimal("0"), 4, date(2024, 1, 31))
        assert [e.due_date for e in schedule] == [
            date(2024, 1, 31),
            date(2024, 2, 29),
            date(2024, 3, 31),
            date(2024, 4, 30),
        ]


class TestLoanCalculator:

    def test_build_long_term_loan(self):
        loan = make_calculator().build_loan(make_terms())
        assert loan.term_months == 12
        assert len(loan.schedule) == 12
        assert loan.status == LoanStatus.ACTIVE

    def test_short_term_loan_is_single_lump_sum(self):
        loan = make_calculator().build_loan(make_terms(
            horizon=LoanHorizon.SHORT_TERM,
            interest_rate=Decimal("0"),
            term_months=24,
        ))
        assert loan.term_months == 1
        assert len(loan.schedule) == 1
        assert loan.schedule[0].principal == Decimal("1200.00")
        assert loan.schedule[0].due_date == date(2024, 1, 15)

    @pytest.mark.parametrize("overrides,field", [
        ({"principal": Decimal("0")}, "principal"),
        ({"interest_rate": Decimal("-1")}, "interest_rate"),
        ({"term_months": 0}, "term_months"),
    ])
    def test_invalid_terms_rejected(self, overrides, field):
        with pytest.raises(ValidationError) as exc_info:
            make_calculator().build_loan(make_terms(**overrides))
        assert field in [issue.field for issue in exc_info.value.issues]

    def test_outstanding_includes_interest(self):
        calculator = make_calculator()
        loan = calculator.build_loan(make_terms())
        assert calculator.outstanding(loan) == calculator.total_due(loan)
        assert calculator.total_due(loan) > Decimal("1200")

    def test_payments_in_other_currency_are_converted(self):
        calculator = make_calculator()
        loan = calculator.build_loan(make_terms(
            interest_rate=Decimal("0"),
            horizon=LoanHorizon.SHORT_TERM,
        ))
        loan = calculator.record_payment(
            loan,
            LoanPayment(date=date(2024, 1, 10), amount=Decimal("10"), currency="USD"),
            as_of=date(2024, 1, 10),
        )
        assert calculator.outstanding(loan) == Decimal("1045.80")

    def test_paid_when_nothing_outstanding(self):
        calculator = make_calculator()
        loan = calculator.build_loan(make_terms(horizon=LoanHorizon.SHORT_TERM, interest_rate=Decimal("0")))
        loan = calculator.record_payment(
            loan,
            LoanPayment(date=date(2024, 1, 10), amount=Decimal("1500"), currency="MVR"),
        )
        assert calculator.outstanding(loan) == Decimal("0")
        assert loan.status == LoanStatus.PAID

    def test_overdue_when_uncovered_installment_is_past_due(self):
        calculator = make_calculator()
        loan = calculator.build_loan(make_terms())
        assert calculator.derive_status(loan, as_of=date(2024, 1, 15)) == LoanStatus.ACTIVE
        assert calculator.derive_status(loan, as_of=date(2024, 1, 16)) == LoanStatus.OVERDUE

    def test_covered_installments_are_not_overdue(self):
        calculator = make_calculator()
        loan = calculator.build_loan(make_terms())
        loan = calculator.record_payment(
            loan,
            LoanPayment(date=date(2024, 1, 15), amount=Decimal("106.62"), currency="MVR"),
            as_of=date(2024, 2, 1),
        )
        assert loan.status == LoanStatus.ACTIVE
        assert calculator.derive_status(loan, as_of=date(2024, 2, 16)) == LoanStatus.OVERDUE

    def test_record_payment_does_not_modify_input(self):
        calculator = make_calculator()
        loan = calculator.build_loan(make_terms(direction=LoanDirection.LENT))
        calculator.record_payment(
            loan,
            LoanPayment(date=date(2024, 1, 15), amount=Decimal("10"), currency="MVR"),
        )
        assert loan.payments == []
