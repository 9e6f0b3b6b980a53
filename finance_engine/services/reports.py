"""
Dashboard Reports

Read-side aggregates over a trailing window of transactions. Totals are
expressed in the base currency unless a record carries its own currency
(budget allocations, contact balances).
"""

from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Optional

import structlog

from finance_engine.config import get_settings
from finance_engine.models.account import Account, Transaction, TransactionType
from finance_engine.models.bill_split import BillSplit
from finance_engine.models.contact import Contact
from finance_engine.models.planning import Budget
from finance_engine.models.reports import (
    BudgetVsActualPoint,
    CategorySpending,
    ContactBalance,
    ContactSummary,
    CreditCardUtilizationPoint,
    IncomeExpenseTrendPoint,
    ReportBundle,
)
from finance_engine.services.budget import BudgetProgressAggregator
from finance_engine.services.currency import CurrencyConverter
from finance_engine.utils.dates import add_days, next_day_of_month
from finance_engine.utils.decimal_utils import round2

logger = structlog.get_logger()

_ZERO = Decimal("0")
_HUNDRED = Decimal("100")
DEFAULT_LOOKBACK_DAYS = 90


class ReportBuilder:

    def __init__(
        self,
        converter: Optional[CurrencyConverter] = None,
        budget_aggregator: Optional[BudgetProgressAggregator] = None,
        self_contact_id: Optional[str] = None,
    ):
        self._converter = converter or CurrencyConverter()
        self._budgets = budget_aggregator or BudgetProgressAggregator(self._converter)
        self._self_id = self_contact_id or get_settings().engine.self_contact_id

    def spending_by_category(self, transactions: list[Transaction]) -> list[CategorySpending]:
        """Expenses grouped by lower-cased category, largest first."""
        totals = defaultdict(lambda: _ZERO)
        for tx in transactions:
            if tx.type != TransactionType.EXPENSE or not tx.category:
                continue
            totals[tx.category.strip().lower()] += self._converter.to_base(tx.amount, tx.currency)

        rows = [
            CategorySpending(
                category=category,
                currency=self._converter.base_currency,
                amount=round2(amount),
            )
            for category, amount in totals.items()
        ]
        return sorted(rows, key=lambda row: (-row.amount, row.category))

    def income_vs_expense(self, transactions: list[Transaction]) -> list[IncomeExpenseTrendPoint]:
        """Monthly income and expense totals, oldest month first."""
        income = defaultdict(lambda: _ZERO)
        expense = defaultdict(lambda: _ZERO)
        for tx in transactions:
            period = tx.date.strftime("%Y-%m")
            if tx.type == TransactionType.INCOME:
                income[period] += self._converter.to_base(tx.amount, tx.currency)
            elif tx.type == TransactionType.EXPENSE:
                expense[period] += self._converter.to_base(tx.amount, tx.currency)

        return [
            IncomeExpenseTrendPoint(
                period=period,
                income=round2(income[period]),
                expense=round2(expense[period]),
                currency=self._converter.base_currency,
            )
            for period in sorted(set(income) | set(expense))
        ]

    @staticmethod
    def credit_card_utilization(
        accounts: list[Account],
        today: Optional[date] = None,
    ) -> list[CreditCardUtilizationPoint]:
        today = today or date.today()
        points = []
        for account in accounts:
            if not account.is_credit_card or account.credit_card is None:
                continue
            card = account.credit_card
            limit = card.credit_limit
            available = card.available_credit if card.available_credit is not None else limit
            utilization = round2((limit - available) / limit * _HUNDRED) if limit > 0 else _ZERO
            points.append(CreditCardUtilizationPoint(
                account_id=account.id,
                account_name=account.name,
                utilization_percent=utilization,
                statement_end_date=next_day_of_month(card.statement_end_day, today),
            ))
        return points

    def budget_vs_actual(
        self,
        budgets: list[Budget],
        transactions: list[Transaction],
        as_of: Optional[date] = None,
    ) -> list[BudgetVsActualPoint]:
        labels = {budget.id: budget.label for budget in budgets}
        return [
            BudgetVsActualPoint(
                budget_id=progress.budget_id,
                label=labels.get(progress.budget_id, "Budget"),
                category=progress.category,
                limit=progress.limit,
                actual=progress.spent,
                currency=progress.currency,
            )
            for progress in self._budgets.progress_for_all(budgets, transactions, as_of)
        ]

    def contact_summaries(
        self,
        contacts: list[Contact],
        transactions: list[Transaction],
        bill_splits: Optional[list[BillSplit]] = None,
    ) -> list[ContactSummary]:
        """
        Per-contact, per-currency position.

        An expense tagged with a contact counts as money they owe you, an
        income as money you owe them. Unsettled bill-split shares add to
        whichever side the split puts them on.
        """
        owed = defaultdict(lambda: defaultdict(lambda: _ZERO))
        owe = defaultdict(lambda: defaultdict(lambda: _ZERO))

        for tx in transactions:
            if not tx.contact_id or tx.contact_id == self._self_id:
                continue
            if tx.type == TransactionType.EXPENSE:
                owed[tx.contact_id][tx.currency] += tx.amount
            elif tx.type == TransactionType.INCOME:
                owe[tx.contact_id][tx.currency] += tx.amount

        for split in bill_splits or []:
            if split.payer_contact_id == self._self_id:
                for participant in split.participants:
                    if participant.contact_id == self._self_id:
                        continue
                    outstanding = round2(participant.share - participant.paid)
                    if outstanding > 0:
                        owed[participant.contact_id][split.currency] += outstanding
            else:
                for participant in split.participants:
                    if participant.contact_id != self._self_id:
                        continue
                    outstanding = round2(participant.share - participant.paid)
                    if outstanding > 0:
                        owe[split.payer_contact_id][split.currency] += outstanding

        names = {contact.id: contact.name for contact in contacts}
        contact_ids = list(names)
        contact_ids.extend(cid for cid in {*owed, *owe} if cid not in names)

        summaries = []
        for contact_id in contact_ids:
            currencies = sorted({*owed[contact_id], *owe[contact_id]})
            totals = []
            for currency in currencies:
                owed_to_you = round2(owed[contact_id][currency])
                you_owe = round2(owe[contact_id][currency])
                totals.append(ContactBalance(
                    currency=currency,
                    owed_to_you=owed_to_you,
                    you_owe=you_owe,
                    balance=round2(owed_to_you - you_owe),
                ))
            summaries.append(ContactSummary(
                contact_id=contact_id,
                name=names.get(contact_id),
                totals=totals,
            ))
        return summaries

    def build(
        self,
        accounts: list[Account],
        transactions: list[Transaction],
        budgets: Optional[list[Budget]] = None,
        contacts: Optional[list[Contact]] = None,
        bill_splits: Optional[list[BillSplit]] = None,
        today: Optional[date] = None,
        lookback_days: int = DEFAULT_LOOKBACK_DAYS,
    ) -> ReportBundle:
        """All dashboard reports for the trailing ``lookback_days`` window."""
        today = today or date.today()
        start = add_days(today, -lookback_days)
        recent = [tx for tx in transactions if start <= tx.date <= today]

        bundle = ReportBundle(
            timeframe_start=start,
            timeframe_end=today,
            spending_by_category=self.spending_by_category(recent),
            income_vs_expense=self.income_vs_expense(recent),
            credit_card_utilization=self.credit_card_utilization(accounts, today),
            budget_vs_actual=self.budget_vs_actual(budgets or [], transactions, today),
            contact_summaries=self.contact_summaries(contacts or [], transactions, bill_splits),
        )
        logger.debug(
            "reports_built",
            transactions=len(recent),
            categories=len(bundle.spending_by_category),
        )
        return bundle
