"""Tests for budget progress and savings goals."""

import pytest
from datetime import date
from decimal import Decimal

from finance_engine.config import DEFAULT_EXCHANGE_RATES
from finance_engine.errors import ReferenceError, ValidationError
from finance_engine.models import (
    Budget,
    BudgetCategoryAllocation,
    BudgetPeriod,
    SavingsContribution,
    SavingsGoal,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from finance_engine.services.budget import BudgetProgressAggregator, period_end
from finance_engine.services.currency import CurrencyConverter
from finance_engine.services.savings import SavingsProgressCalculator


def make_converter() -> CurrencyConverter:
    return CurrencyConverter(DEFAULT_EXCHANGE_RATES, "MVR")


def spend(amount, on: date, category: str = "Food", currency: str = "MVR", **overrides) -> Transaction:
    data = {
        "type": TransactionType.EXPENSE,
        "amount": Decimal(amount),
        "currency": currency,
        "date": on,
        "account_id": "acc",
        "category": category,
    }
    data.update(overrides)
    return Transaction(**data)


def food_budget(**overrides) -> Budget:
    data = {
        "period": BudgetPeriod.MONTHLY,
        "start_date": date(2024, 1, 1),
        "currency": "MVR",
        "categories": [BudgetCategoryAllocation(category="Food", limit=Decimal("100"))],
    }
    data.update(overrides)
    return Budget(**data)


class TestPeriodWindows:

    def test_weekly_window(self):
        assert period_end(BudgetPeriod.WEEKLY, date(2024, 1, 1)) == date(2024, 1, 7)

    def test_monthly_window(self):
        assert period_end(BudgetPeriod.MONTHLY, date(2024, 1, 15)) == date(2024, 2, 14)

    def test_custom_window_uses_end_date(self):
        assert period_end(BudgetPeriod.CUSTOM, date(2024, 1, 1), date(2024, 1, 10)) == date(2024, 1, 10)

    def test_custom_window_defaults_to_thirty_days(self):
        assert period_end(BudgetPeriod.CUSTOM, date(2024, 1, 1)) == date(2024, 1, 30)

    def test_weekly_period_index(self):
        budget = food_budget(period=BudgetPeriod.WEEKLY)
        assert BudgetProgressAggregator.period_index(budget, date(2024, 1, 10)) == 1
        assert BudgetProgressAggregator.window(budget, 1) == (date(2024, 1, 8), date(2024, 1, 14))

    def test_monthly_period_index_respects_start_day(self):
        budget = food_budget(start_date=date(2024, 1, 15))
        assert BudgetProgressAggregator.period_index(budget, date(2024, 2, 14)) == 0
        assert BudgetProgressAggregator.period_index(budget, date(2024, 2, 15)) == 1

    def test_dates_before_budget_map_to_first_period(self):
        budget = food_budget()
        assert BudgetProgressAggregator.period_index(budget, date(2023, 6, 1)) == 0


class TestBudgetProgress:

    def test_spent_only_counts_matching_expenses_in_window(self):
        aggregator = BudgetProgressAggregator(make_converter())
        transactions = [
            spend("40", date(2024, 1, 5)),
            spend("10", date(2024, 1, 6), category="  food "),
            spend("99", date(2024, 1, 6), category="Transport"),
            spend("77", date(2024, 2, 1)),
            spend("5", date(2024, 1, 7), type=TransactionType.INCOME),
        ]
        [progress] = aggregator.progress(food_budget(), transactions, as_of=date(2024, 1, 20))
        assert progress.spent == Decimal("50.00")
        assert progress.remaining == Decimal("50.00")
        assert progress.percent == Decimal("50.00")

    def test_pending_expenses_count(self):
        aggregator = BudgetProgressAggregator(make_converter())
        transactions = [spend("25", date(2024, 1, 5), status=TransactionStatus.PENDING)]
        [progress] = aggregator.progress(food_budget(), transactions, as_of=date(2024, 1, 20))
        assert progress.spent == Decimal("25.00")

    def test_foreign_expenses_are_converted(self):
        aggregator = BudgetProgressAggregator(make_converter())
        transactions = [spend("1", date(2024, 1, 5), currency="USD")]
        [progress] = aggregator.progress(food_budget(), transactions, as_of=date(2024, 1, 20))
        assert progress.spent == Decimal("15.42")

    def test_over_budget(self):
        aggregator = BudgetProgressAggregator(make_converter())
        [progress] = aggregator.progress(
            food_budget(), [spend("150", date(2024, 1, 5))], as_of=date(2024, 1, 20),
        )
        assert progress.remaining == Decimal("-50.00")
        assert progress.percent == Decimal("150.00")

    def test_zero_limit_gives_zero_percent(self):
        aggregator = BudgetProgressAggregator(make_converter())
        budget = food_budget(categories=[BudgetCategoryAllocation(category="Food", limit=Decimal("0"))])
        [progress] = aggregator.progress(budget, [spend("20", date(2024, 1, 5))], as_of=date(2024, 1, 20))
        assert progress.percent == Decimal("0")

    def test_carry_forward_rolls_unspent_amount(self):
        aggregator = BudgetProgressAggregator(make_converter())
        transactions = [spend("60", date(2024, 1, 10)), spend("20", date(2024, 2, 10))]
        [progress] = aggregator.progress(
            food_budget(carry_forward=True), transactions, as_of=date(2024, 2, 20),
        )
        assert progress.carried_forward == Decimal("40.00")
        assert progress.limit == Decimal("140.00")
        assert progress.remaining == Decimal("120.00")

    def test_carry_forward_never_goes_negative(self):
        aggregator = BudgetProgressAggregator(make_converter())
        transactions = [spend("60", date(2024, 1, 10)), spend("150", date(2024, 2, 10))]
        budget = food_budget(categories=[
            BudgetCategoryAllocation(category="Food", limit=Decimal("100"), carry_forward=True),
        ])
        [progress] = aggregator.progress(budget, transactions, as_of=date(2024, 3, 5))
        assert progress.carried_forward == Decimal("0")
        assert progress.limit == Decimal("100.00")

    def test_without_carry_forward_limit_is_fixed(self):
        aggregator = BudgetProgressAggregator(make_converter())
        [progress] = aggregator.progress(food_budget(), [], as_of=date(2024, 5, 1))
        assert progress.limit == Decimal("100.00")
        assert progress.period_start == date(2024, 5, 1)

    def test_duplicate_categories_rejected(self):
        aggregator = BudgetProgressAggregator(make_converter())
        budget = food_budget(categories=[
            BudgetCategoryAllocation(category="Food", limit=Decimal("100")),
            BudgetCategoryAllocation(category="food", limit=Decimal("50")),
        ])
        with pytest.raises(ValidationError):
            aggregator.progress(budget, [], as_of=date(2024, 1, 2))

    def test_progress_for_all(self):
        aggregator = BudgetProgressAggregator(make_converter())
        budgets = [
            food_budget(),
            food_budget(categories=[
                BudgetCategoryAllocation(category="Rent", limit=Decimal("1000")),
                BudgetCategoryAllocation(category="Fun", limit=Decimal("50")),
            ]),
        ]
        results = aggregator.progress_for_all(budgets, [], as_of=date(2024, 1, 2))
        assert [p.category for p in results] == ["Food", "Rent", "Fun"]


class TestSavingsProgress:

    def make_goal(self, currency: str = "MVR") -> SavingsGoal:
        return SavingsGoal(
            target_amount=Decimal("1000"),
            currency=currency,
            contributions=[
                SavingsContribution(id="c1", date=date(2024, 1, 1), amount=Decimal("10"), currency="USD"),
                SavingsContribution(id="c2", date=date(2024, 1, 2), amount=Decimal("100"), currency="MVR"),
            ],
        )

    def test_current_amount_sums_through_base(self):
        calculator = SavingsProgressCalculator(make_converter())
        assert calculator.current_amount(self.make_goal()) == Decimal("254.20")
        assert calculator.current_amount(self.make_goal("USD")) == Decimal("16.49")

    def test_add_contribution_recomputes(self):
        calculator = SavingsProgressCalculator(make_converter())
        goal = calculator.add_contribution(
            self.make_goal(),
            SavingsContribution(date=date(2024, 1, 3), amount=Decimal("45.80"), currency="MVR"),
        )
        assert goal.current_amount == Decimal("300.00")
        assert len(goal.contributions) == 3

    def test_remove_contribution_recomputes(self):
        calculator = SavingsProgressCalculator(make_converter())
        goal = calculator.remove_contribution(calculator.recompute(self.make_goal()), "c1")
        assert goal.current_amount == Decimal("100.00")

    def test_remove_unknown_contribution(self):
        calculator = SavingsProgressCalculator(make_converter())
        with pytest.raises(ReferenceError):
            calculator.remove_contribution(self.make_goal(), "nope")

    def test_stale_stored_amount_is_ignored(self):
        calculator = SavingsProgressCalculator(make_converter())
        goal = self.make_goal().model_copy(update={"current_amount": Decimal("9999")})
        progress = calculator.progress(goal)
        assert progress.current_amount == Decimal("254.20")
        assert progress.remaining == Decimal("745.80")
        assert progress.percent == Decimal("25.42")
