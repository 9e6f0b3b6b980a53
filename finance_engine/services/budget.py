"""
Budget Progress Aggregation

Read-side query: for every category allocation of a budget, how much has
been spent in the current period against the (possibly carried-forward)
limit. Nothing here mutates its inputs.

Period windows:
- weekly: start .. start + 6 days, repeating every 7 days
- monthly: start .. start + 1 month - 1 day, repeating monthly
- custom: start .. explicit end (or start + 29 days), a single period
"""

from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

import structlog

from finance_engine.models.account import Transaction, TransactionType
from finance_engine.models.planning import (
    Budget,
    BudgetCategoryAllocation,
    BudgetPeriod,
    BudgetProgress,
)
from finance_engine.services.currency import CurrencyConverter
from finance_engine.utils.dates import add_days, add_months
from finance_engine.utils.decimal_utils import round2
from finance_engine.validation import InputValidator, require_valid

logger = structlog.get_logger()

_ZERO = Decimal("0")
_HUNDRED = Decimal("100")
_CUSTOM_PERIOD_DAYS = 30


def period_end(period: BudgetPeriod, start: date, end: Optional[date] = None) -> date:
    """Last day (inclusive) of the period starting at ``start``."""
    if period == BudgetPeriod.WEEKLY:
        return add_days(start, 6)
    if period == BudgetPeriod.MONTHLY:
        return add_days(add_months(start, 1), -1)
    return end or add_days(start, _CUSTOM_PERIOD_DAYS - 1)


class BudgetProgressAggregator:
    """Computes BudgetProgress for budgets over a set of transactions."""

    def __init__(
        self,
        converter: Optional[CurrencyConverter] = None,
        validator: Optional[InputValidator] = None,
    ):
        self._converter = converter or CurrencyConverter()
        self._validator = validator or InputValidator()

    # ------------------------------------------------------------------
    # Period windows
    # ------------------------------------------------------------------

    @staticmethod
    def window(budget: Budget, index: int) -> tuple[date, date]:
        """The index-th period window of a budget (0 = first)."""
        if budget.period == BudgetPeriod.WEEKLY:
            start = add_days(budget.start_date, 7 * index)
        elif budget.period == BudgetPeriod.MONTHLY:
            start = add_months(budget.start_date, index, day=budget.start_date.day)
        else:
            start = budget.start_date
        return start, period_end(budget.period, start, budget.end_date)

    @classmethod
    def period_index(cls, budget: Budget, as_of: date) -> int:
        """Index of the period containing as_of. Dates before the budget map to 0."""
        if budget.period == BudgetPeriod.CUSTOM or as_of <= budget.start_date:
            return 0
        if budget.period == BudgetPeriod.WEEKLY:
            return (as_of - budget.start_date).days // 7

        start = budget.start_date
        index = (as_of.year - start.year) * 12 + (as_of.month - start.month)
        while index > 0 and cls.window(budget, index)[0] > as_of:
            index -= 1
        return index

    # ------------------------------------------------------------------
    # Aggregation
    # ------------------------------------------------------------------

    def spent(
        self,
        transactions: Iterable[Transaction],
        category: str,
        currency: str,
        start: date,
        end: date,
    ) -> Decimal:
        """Expenses in [start, end] whose category matches, in ``currency``."""
        needle = category.strip().lower()
        total = _ZERO
        for tx in transactions:
            if tx.type != TransactionType.EXPENSE:
                continue
            if not tx.category or tx.category.strip().lower() != needle:
                continue
            if not (start <= tx.date <= end):
                continue
            total += self._converter.convert(tx.amount, tx.currency, currency)
        return round2(total)

    def allocation_progress(
        self,
        budget: Budget,
        allocation: BudgetCategoryAllocation,
        transactions: list[Transaction],
        as_of: Optional[date] = None,
    ) -> BudgetProgress:
        as_of = as_of or date.today()
        currency = allocation.currency or budget.currency
        index = self.period_index(budget, as_of)
        carry = budget.carry_forward or allocation.carry_forward

        # Effective limits build up from the first period when carrying forward.
        carried = _ZERO
        if carry:
            for previous in range(index):
                start, end = self.window(budget, previous)
                spent = self.spent(transactions, allocation.category, currency, start, end)
                carried = max(round2(allocation.limit + carried - spent), _ZERO)

        start, end = self.window(budget, index)
        spent = self.spent(transactions, allocation.category, currency, start, end)
        limit = round2(allocation.limit + carried)
        percent = round2(spent / limit * _HUNDRED) if limit > 0 else _ZERO

        return BudgetProgress(
            budget_id=budget.id,
            category=allocation.category,
            currency=currency,
            period_start=start,
            period_end=end,
            base_limit=allocation.limit,
            carried_forward=carried,
            limit=limit,
            spent=spent,
            remaining=round2(limit - spent),
            percent=max(percent, _ZERO),
        )

    def progress(
        self,
        budget: Budget,
        transactions: list[Transaction],
        as_of: Optional[date] = None,
    ) -> list[BudgetProgress]:
        """
        Progress for every allocation of one budget.

        Raises:
            ValidationError: The budget lists a category more than once.
        """
        require_valid(self._validator.validate_budget(budget))
        results = [
            self.allocation_progress(budget, allocation, transactions, as_of)
            for allocation in budget.categories
        ]
        logger.debug("budget_progress_computed", budget_id=budget.id, categories=len(results))
        return results

    def progress_for_all(
        self,
        budgets: list[Budget],
        transactions: list[Transaction],
        as_of: Optional[date] = None,
    ) -> list[BudgetProgress]:
        results = []
        for budget in budgets:
            results.extend(self.progress(budget, transactions, as_of))
        return results
