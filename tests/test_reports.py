"""Tests for dashboard reports."""

from datetime import date
from decimal import Decimal

from finance_engine.config import DEFAULT_EXCHANGE_RATES
from finance_engine.models import (
    Account,
    AccountType,
    BillSplit,
    BillSplitParticipant,
    Budget,
    BudgetCategoryAllocation,
    Contact,
    CreditCardDetails,
    Transaction,
    TransactionType,
)
from finance_engine.services.currency import CurrencyConverter
from finance_engine.services.reports import ReportBuilder

TODAY = date(2024, 3, 15)


def make_builder() -> ReportBuilder:
    return ReportBuilder(CurrencyConverter(DEFAULT_EXCHANGE_RATES, "MVR"), self_contact_id="self")


def tx(type, amount, on, currency="MVR", **overrides) -> Transaction:
    data = {
        "type": type,
        "amount": Decimal(amount),
        "currency": currency,
        "date": on,
        "account_id": "acc",
    }
    data.update(overrides)
    return Transaction(**data)


class TestSpendingReports:

    def test_spending_by_category_merges_case(self):
        rows = make_builder().spending_by_category([
            tx(TransactionType.EXPENSE, "100", TODAY, category="Food"),
            tx(TransactionType.EXPENSE, "50", TODAY, category="food "),
            tx(TransactionType.EXPENSE, "10", TODAY, currency="USD", category="Rent"),
            tx(TransactionType.EXPENSE, "99", TODAY),
            tx(TransactionType.INCOME, "500", TODAY, category="Food"),
        ])
        assert [(r.category, r.amount) for r in rows] == [
            ("rent", Decimal("154.20")),
            ("food", Decimal("150.00")),
        ]

    def test_income_vs_expense_by_month(self):
        points = make_builder().income_vs_expense([
            tx(TransactionType.INCOME, "1000", date(2024, 2, 1)),
            tx(TransactionType.EXPENSE, "300", date(2024, 2, 20)),
            tx(TransactionType.EXPENSE, "1", date(2024, 1, 5), currency="USD"),
        ])
        assert [p.period for p in points] == ["2024-01", "2024-02"]
        assert points[0].income == Decimal("0")
        assert points[0].expense == Decimal("15.42")
        assert points[1].income == Decimal("1000.00")
        assert points[1].expense == Decimal("300.00")

    def test_credit_card_utilization(self):
        card = Account(
            name="Visa",
            type=AccountType.CREDIT_CARD,
            currency="MVR",
            credit_card=CreditCardDetails(
                credit_limit=Decimal("1000"),
                available_credit=Decimal("750"),
                statement_end_day=10,
            ),
        )
        [point] = ReportBuilder.credit_card_utilization([card, Account(currency="MVR")], TODAY)
        assert point.utilization_percent == Decimal("25.00")
        assert point.statement_end_date == date(2024, 4, 10)

    def test_zero_limit_card_utilization(self):
        card = Account(
            type=AccountType.CREDIT_CARD,
            currency="MVR",
            credit_card=CreditCardDetails(credit_limit=Decimal("0")),
        )
        [point] = ReportBuilder.credit_card_utilization([card], TODAY)
        assert point.utilization_percent == Decimal("0")

    def test_budget_vs_actual(self):
        budget = Budget(
            label="Groceries",
            start_date=date(2024, 3, 1),
            currency="MVR",
            categories=[BudgetCategoryAllocation(category="Food", limit=Decimal("500"))],
        )
        [point] = make_builder().budget_vs_actual(
            [budget], [tx(TransactionType.EXPENSE, "120", date(2024, 3, 2), category="Food")], TODAY,
        )
        assert point.label == "Groceries"
        assert point.limit == Decimal("500.00")
        assert point.actual == Decimal("120.00")


class TestContactSummaries:

    def test_expense_is_owed_to_you_income_is_owed_by_you(self):
        [summary] = make_builder().contact_summaries(
            [Contact(id="ali", name="Ali")],
            [
                tx(TransactionType.EXPENSE, "100", TODAY, contact_id="ali"),
                tx(TransactionType.INCOME, "30", TODAY, contact_id="ali"),
                tx(TransactionType.EXPENSE, "5", TODAY, currency="USD", contact_id="ali"),
            ],
        )
        assert summary.name == "Ali"
        by_currency = {t.currency: t for t in summary.totals}
        assert by_currency["MVR"].owed_to_you == Decimal("100.00")
        assert by_currency["MVR"].you_owe == Decimal("30.00")
        assert by_currency["MVR"].balance == Decimal("70.00")
        assert by_currency["USD"].balance == Decimal("5.00")

    def test_open_bill_split_shares(self):
        you_paid = BillSplit(
            date=TODAY,
            currency="MVR",
            total_amount=Decimal("90"),
            payer_contact_id="self",
            participants=[
                BillSplitParticipant(contact_id="self", share=Decimal("30"), paid=Decimal("90")),
                BillSplitParticipant(contact_id="ali", share=Decimal("30"), paid=Decimal("10")),
                BillSplitParticipant(contact_id="sara", share=Decimal("30"), paid=Decimal("30")),
            ],
        )
        they_paid = BillSplit(
            date=TODAY,
            currency="MVR",
            total_amount=Decimal("50"),
            payer_contact_id="sara",
            participants=[
                BillSplitParticipant(contact_id="sara", share=Decimal("25"), paid=Decimal("50")),
                BillSplitParticipant(contact_id="self", share=Decimal("25")),
            ],
        )
        summaries = make_builder().contact_summaries(
            [Contact(id="ali", name="Ali"), Contact(id="sara", name="Sara")],
            [],
            [you_paid, they_paid],
        )
        by_contact = {s.contact_id: s for s in summaries}
        assert by_contact["ali"].totals[0].owed_to_you == Decimal("20.00")
        assert by_contact["sara"].totals[0].you_owe == Decimal("25.00")
        assert by_contact["sara"].totals[0].balance == Decimal("-25.00")

    def test_unknown_contacts_still_reported(self):
        summaries = make_builder().contact_summaries(
            [], [tx(TransactionType.EXPENSE, "10", TODAY, contact_id="mystery")],
        )
        assert summaries[0].contact_id == "mystery"
        assert summaries[0].name is None


class TestReportBundle:

    def test_lookback_window(self):
        bundle = make_builder().build(
            accounts=[],
            transactions=[
                tx(TransactionType.EXPENSE, "10", date(2024, 3, 1), category="Food"),
                tx(TransactionType.EXPENSE, "999", date(2023, 1, 1), category="Food"),
                tx(TransactionType.EXPENSE, "999", date(2024, 3, 20), category="Food"),
            ],
            today=TODAY,
            lookback_days=30,
        )
        assert bundle.timeframe_start == date(2024, 2, 14)
        assert bundle.timeframe_end == TODAY
        assert bundle.spending_by_category[0].amount == Decimal("10.00")
