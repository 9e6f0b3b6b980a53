"""
Savings Progress

SavingsGoal.current_amount is derived. recompute() rebuilds it from the
full contribution list (summed in base currency, then converted to the
goal currency) and is called after every add or remove, so the stored
value can never drift from the contributions.
"""

from decimal import Decimal
from typing import Optional

import structlog

from finance_engine.errors import ReferenceError
from finance_engine.models.planning import (
    SavingsContribution,
    SavingsGoal,
    SavingsProgress,
)
from finance_engine.services.currency import CurrencyConverter
from finance_engine.utils.decimal_utils import round2

logger = structlog.get_logger()

_ZERO = Decimal("0")
_HUNDRED = Decimal("100")


class SavingsProgressCalculator:

    def __init__(self, converter: Optional[CurrencyConverter] = None):
        self._converter = converter or CurrencyConverter()

    def current_amount(self, goal: SavingsGoal) -> Decimal:
        base_total = round2(sum(
            (self._converter.to_base(c.amount, c.currency) for c in goal.contributions),
            _ZERO,
        ))
        return self._converter.from_base(base_total, goal.currency)

    def recompute(self, goal: SavingsGoal) -> SavingsGoal:
        """Return a copy of goal with current_amount rebuilt from contributions."""
        return goal.model_copy(update={"current_amount": self.current_amount(goal)})

    def add_contribution(self, goal: SavingsGoal, contribution: SavingsContribution) -> SavingsGoal:
        updated = self.recompute(
            goal.model_copy(update={"contributions": [*goal.contributions, contribution]})
        )
        logger.info(
            "savings_contribution_added",
            goal_id=goal.id,
            contribution_id=contribution.id,
            current_amount=str(updated.current_amount),
        )
        return updated

    def remove_contribution(self, goal: SavingsGoal, contribution_id: str) -> SavingsGoal:
        """
        Raises:
            ReferenceError: No contribution with that id on this goal.
        """
        remaining = [c for c in goal.contributions if c.id != contribution_id]
        if len(remaining) == len(goal.contributions):
            raise ReferenceError("contribution", contribution_id)
        updated = self.recompute(goal.model_copy(update={"contributions": remaining}))
        logger.info(
            "savings_contribution_removed",
            goal_id=goal.id,
            contribution_id=contribution_id,
            current_amount=str(updated.current_amount),
        )
        return updated

    def progress(self, goal: SavingsGoal) -> SavingsProgress:
        current = self.current_amount(goal)
        target = goal.target_amount
        percent = round2(current / target * _HUNDRED) if target > 0 else _ZERO
        return SavingsProgress(
            goal_id=goal.id,
            currency=goal.currency,
            current_amount=current,
            target_amount=target,
            remaining=max(round2(target - current), _ZERO),
            percent=percent,
        )
