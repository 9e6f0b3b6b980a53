"""
Cash-flow Forecast

Day-by-day projection of the combined balance of all active accounts,
expressed in the base currency.

For each day in [today, today + horizon):
- inflow: recurring income occurrences + income transactions dated that day
- outflow: recurring non-income occurrences + loan installments due +
  credit-card due amounts + expense transactions dated that day
- balance_projection: previous day's projection (or the starting balance) + net

Read-only and idempotent: ``today`` is an explicit argument, so the same
inputs always give the same projection.
"""

from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Optional

import structlog

from finance_engine.config import get_settings
from finance_engine.errors import ValidationError
from finance_engine.models.account import (
    Account,
    AccountStatus,
    Transaction,
    TransactionType,
)
from finance_engine.models.forecast import (
    CashflowForecast,
    CashflowForecastEntry,
    ForecastHighlight,
)
from finance_engine.models.loan import Loan
from finance_engine.models.planning import RecurringItem, RecurringItemType
from finance_engine.services.currency import CurrencyConverter
from finance_engine.services.recurrence import expand
from finance_engine.utils.dates import add_days, next_day_of_month
from finance_engine.utils.decimal_utils import round2

logger = structlog.get_logger()

_ZERO = Decimal("0")


def _plural(count: int, word: str) -> str:
    return f"{count} {word}{'s' if count > 1 else ''}"


class CashflowForecastEngine:

    def __init__(self, converter: Optional[CurrencyConverter] = None):
        self._converter = converter or CurrencyConverter()

    def highlight(self, inflow: Decimal, outflow: Decimal, net: Decimal, balance: Decimal) -> ForecastHighlight:
        if balance < 0:
            return ForecastHighlight.DUE
        if outflow > inflow and abs(net) > inflow:
            return ForecastHighlight.WARNING
        return ForecastHighlight.OK

    def project(
        self,
        accounts: list[Account],
        recurring_items: Optional[list[RecurringItem]] = None,
        loans: Optional[list[Loan]] = None,
        transactions: Optional[list[Transaction]] = None,
        horizon_days: Optional[int] = None,
        today: Optional[date] = None,
    ) -> CashflowForecast:
        """
        Project balances forward.

        Args:
            accounts: All accounts; only active ones count.
            recurring_items: Items expanded from their next_run_date cursor.
            loans: Loans whose installments are outflows. Callers pass only
                the loans the user is repaying.
            transactions: Already-recorded transactions (pending or posted)
                dated inside the horizon.
            horizon_days: Number of days to project, starting today.
            today: First projected day. Defaults to the current date.

        Raises:
            ValidationError: Negative or oversized horizon.
        """
        settings = get_settings().engine
        if horizon_days is None:
            horizon_days = settings.default_forecast_horizon_days
        if horizon_days < 0 or horizon_days > settings.max_forecast_horizon_days:
            raise ValidationError.for_field(
                "horizon_days",
                f"Horizon must be between 0 and {settings.max_forecast_horizon_days} days",
            )
        today = today or date.today()
        last_day = add_days(today, horizon_days - 1)

        active = [a for a in accounts if a.status == AccountStatus.ACTIVE]
        starting_balance = round2(sum(
            (self._converter.to_base(a.balance, a.currency) for a in active),
            _ZERO,
        ))

        inflow = defaultdict(lambda: _ZERO)
        outflow = defaultdict(lambda: _ZERO)
        loans_due = defaultdict(int)
        cards_due = defaultdict(int)

        if horizon_days > 0:
            for item in recurring_items or []:
                amount = self._converter.to_base(item.amount, item.currency)
                bucket = inflow if item.type == RecurringItemType.INCOME else outflow
                for day in expand(item.next_run_date, item.recurrence, today, last_day):
                    bucket[day] += amount

            for loan in loans or []:
                for entry in loan.schedule:
                    if today <= entry.due_date <= last_day:
                        outflow[entry.due_date] += self._converter.to_base(entry.payment, loan.currency)
                        loans_due[entry.due_date] += 1

            for account in active:
                if not account.is_credit_card or account.credit_card is None:
                    continue
                due_date = next_day_of_month(account.credit_card.due_day, today)
                if due_date <= last_day:
                    outflow[due_date] += self._converter.to_base(max(account.balance, _ZERO), account.currency)
                    cards_due[due_date] += 1

            for tx in transactions or []:
                if not (today <= tx.date <= last_day):
                    continue
                if tx.type == TransactionType.INCOME:
                    inflow[tx.date] += self._converter.to_base(tx.amount, tx.currency)
                elif tx.type == TransactionType.EXPENSE:
                    outflow[tx.date] += self._converter.to_base(tx.amount, tx.currency)

        entries = []
        balance = starting_balance
        for offset in range(horizon_days):
            day = add_days(today, offset)
            day_in = round2(inflow[day])
            day_out = round2(outflow[day])
            net = round2(day_in - day_out)
            balance = round2(balance + net)

            notes = []
            if loans_due[day]:
                notes.append(_plural(loans_due[day], "loan payment"))
            if cards_due[day]:
                notes.append(f"{cards_due[day]} card due")

            entries.append(CashflowForecastEntry(
                date=day,
                inflow=day_in,
                outflow=day_out,
                net=net,
                balance_projection=balance,
                highlight=self.highlight(day_in, day_out, net, balance),
                notes=", ".join(notes) or None,
            ))

        logger.debug(
            "cashflow_projected",
            horizon_days=horizon_days,
            starting_balance=str(starting_balance),
            ending_balance=str(balance),
        )
        return CashflowForecast(
            currency=self._converter.base_currency,
            as_of=today,
            horizon_days=horizon_days,
            starting_balance=starting_balance,
            entries=entries,
        )
