"""
Main Orchestrator for the Finance Engine

This module ties the engine components to storage and defines the
end-to-end flows callers use:
1. Transactions (create, edit, status change, delete)
2. Loans (create, record payment, refresh status)
3. Bill splits (create, record payment)
4. Savings contributions
5. Recurring items (run)
6. Dashboard queries (budget progress, forecast, reports)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Balances move only through the ledger, inside one atomic unit per operation
- Transient storage failures retry the whole operation, never half of it
- Every mutation is audited

The engine components stay pure; all loading and saving happens here.
"""

from contextlib import asynccontextmanager
from datetime import date
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from finance_engine.audit import AuditLogger, create_correlation_id
from finance_engine.config import get_settings
from finance_engine.errors import ConsistencyViolation, ReferenceError, ValidationError
from finance_engine.models.account import (
    Account,
    Transaction,
    TransactionSource,
    TransactionStatus,
    TransactionType,
)
from finance_engine.models.bill_split import BillSplit
from finance_engine.models.forecast import CashflowForecast
from finance_engine.models.loan import (
    Loan,
    LoanDirection,
    LoanHorizon,
    LoanPayment,
    LoanStatus,
    LoanTerms,
)
from finance_engine.models.planning import (
    BudgetProgress,
    RecurringItem,
    RecurringItemType,
    SavingsContribution,
    SavingsGoal,
)
from finance_engine.models.reports import ReportBundle
from finance_engine.services import (
    AccountLedger,
    BillSplitSettlement,
    BudgetProgressAggregator,
    CashflowForecastEngine,
    CurrencyConverter,
    LoanCalculator,
    ReportBuilder,
    SavingsProgressCalculator,
    StorageError,
    TransientStorageError,
    UnitOfWork,
    advance,
)
from finance_engine.validation import InputValidator, require_valid

logger = structlog.get_logger()


def _log_retry(retry_state) -> None:
    logger.warning(
        "storage_retry",
        operation=retry_state.fn.__qualname__ if retry_state.fn else None,
        attempt=retry_state.attempt_number,
        error=str(retry_state.outcome.exception()),
    )


# Whole-operation retry on transient storage failures. The atomic unit has
# already rolled back by the time tenacity sees the exception.
storage_retry = retry(
    retry=retry_if_exception_type(TransientStorageError),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.05, min=0.05, max=1),
    before_sleep=_log_retry,
    reraise=True,
)


class _Flow:
    """Shared plumbing: audit on failure, reference checks."""

    def __init__(self, uow: UnitOfWork, audit_logger: Optional[AuditLogger] = None):
        self._uow = uow
        self._audit_logger = audit_logger or AuditLogger()
        self._self_contact_id = get_settings().engine.self_contact_id

    @asynccontextmanager
    async def _audited(self, entity_type: str, correlation_id: UUID):
        """Record failures in the audit trail, then let them propagate."""
        try:
            yield
        except ValidationError as e:
            await self._audit_logger.log_validation_failed(
                entity_type=entity_type,
                issues=[issue.model_dump() for issue in e.issues] or [{"message": str(e)}],
                correlation_id=correlation_id,
            )
            raise
        except ConsistencyViolation as e:
            await self._audit_logger.log_consistency_violation(
                entity_type=entity_type,
                error_message=str(e),
                correlation_id=correlation_id,
            )
            raise
        except TransientStorageError as e:
            await self._audit_logger.log_storage_retry(
                operation=entity_type,
                error_message=str(e),
                correlation_id=correlation_id,
            )
            raise
        except StorageError as e:
            await self._audit_logger.log_error(
                error_type=type(e).__name__,
                error_message=str(e),
                details={"entity_type": entity_type},
                correlation_id=correlation_id,
            )
            raise

    async def _require_contact(self, uow: UnitOfWork, contact_id: str) -> None:
        if contact_id == self._self_contact_id:
            return
        if await uow.contacts.find_by_id(contact_id) is None:
            raise ReferenceError("contact", contact_id)


async def _load_accounts(uow: UnitOfWork, tx: Transaction) -> dict[str, Account]:
    """Accounts touched by tx. Unknown ids are left out for the ledger to report."""
    accounts = {}
    for account_id in tx.touched_account_ids():
        account = await uow.accounts.find_by_id(account_id)
        if account is not None:
            accounts[account_id] = account
    return accounts


async def _save_accounts(uow: UnitOfWork, accounts: dict[str, Account]) -> None:
    for account in accounts.values():
        await uow.accounts.update(account)


# =============================================================================
# TRANSACTIONS
# =============================================================================

_OVERRIDE_INPUTS = {"amount", "currency", "account_id", "metadata"}


class TransactionFlow(_Flow):
    """
    Keeps account balances in step with the transaction list.

    create -> apply, edit/status change -> reverse(old) + apply(new),
    delete -> reverse. Balance writes and the transaction write share
    one atomic unit.
    """

    def __init__(
        self,
        uow: UnitOfWork,
        ledger: Optional[AccountLedger] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        super().__init__(uow, audit_logger)
        self._ledger = ledger or AccountLedger()

    async def record(self, uow: UnitOfWork, tx: Transaction) -> dict[str, Decimal]:
        """Apply and store a new transaction. Caller holds the atomic unit."""
        accounts = await _load_accounts(uow, tx)
        balances = self._ledger.apply(tx, accounts)
        await _save_accounts(uow, accounts)
        await uow.transactions.create(tx)
        return balances

    async def _require_transaction(self, uow: UnitOfWork, transaction_id: str) -> Transaction:
        tx = await uow.transactions.find_by_id(transaction_id)
        if tx is None:
            raise ReferenceError("transaction", transaction_id)
        return tx

    @storage_retry
    async def create(
        self,
        tx: Transaction,
        correlation_id: Optional[UUID] = None,
    ) -> Transaction:
        correlation_id = correlation_id or create_correlation_id()
        async with self._audited("transaction", correlation_id):
            async with self._uow.atomic() as uow:
                balances = await self.record(uow, tx)

        await self._audit_logger.log_transaction_applied(
            transaction_id=tx.id,
            balances=balances,
            correlation_id=correlation_id,
        )
        return tx

    async def _replace(
        self,
        transaction_id: str,
        build_new,
        correlation_id: UUID,
    ) -> Transaction:
        async with self._audited("transaction", correlation_id):
            async with self._uow.atomic() as uow:
                old = await self._require_transaction(uow, transaction_id)
                new = build_new(old)
                accounts = await _load_accounts(uow, old)
                accounts.update(await _load_accounts(uow, new))
                balances = self._ledger.replace(old, new, accounts)
                await _save_accounts(uow, accounts)
                await uow.transactions.update(new)

        await self._audit_logger.log_transaction_replaced(
            transaction_id=transaction_id,
            old_status=old.status.value,
            new_status=new.status.value,
            balances=balances,
            correlation_id=correlation_id,
        )
        return new

    @storage_retry
    async def update_status(
        self,
        transaction_id: str,
        status: TransactionStatus,
        correlation_id: Optional[UUID] = None,
    ) -> Transaction:
        """Change pending <-> posted. Modeled as reverse + apply."""
        return await self._replace(
            transaction_id,
            lambda old: old.model_copy(update={"status": status}),
            correlation_id or create_correlation_id(),
        )

    @storage_retry
    async def edit(
        self,
        transaction_id: str,
        changes: dict[str, Any],
        correlation_id: Optional[UUID] = None,
    ) -> Transaction:
        """Apply field changes to a transaction and rebalance its accounts.

        A stored account_amount override is dropped when the amount, currency,
        account or metadata changes, unless changes sets a new one.
        """
        def build_new(old: Transaction) -> Transaction:
            data = old.model_dump()
            if "account_amount" not in changes and _OVERRIDE_INPUTS & changes.keys():
                data["account_amount"] = None
                if "metadata" not in changes:
                    data["metadata"] = {
                        key: value for key, value in data["metadata"].items()
                        if key != "accountAmount"
                    }
            data.update(changes)
            data["id"] = old.id
            return Transaction.model_validate(data)

        return await self._replace(
            transaction_id,
            build_new,
            correlation_id or create_correlation_id(),
        )

    @storage_retry
    async def delete(
        self,
        transaction_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> Transaction:
        correlation_id = correlation_id or create_correlation_id()
        async with self._audited("transaction", correlation_id):
            async with self._uow.atomic() as uow:
                tx = await self._require_transaction(uow, transaction_id)
                accounts = await _load_accounts(uow, tx)
                balances = self._ledger.reverse(tx, accounts)
                await _save_accounts(uow, accounts)
                await uow.transactions.delete(transaction_id)

        await self._audit_logger.log_transaction_reversed(
            transaction_id=transaction_id,
            balances=balances,
            correlation_id=correlation_id,
        )
        return tx


# =============================================================================
# LOANS
# =============================================================================

class LoanFlow(_Flow):

    def __init__(
        self,
        uow: UnitOfWork,
        calculator: Optional[LoanCalculator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        super().__init__(uow, audit_logger)
        self._calculator = calculator or LoanCalculator()

    @storage_retry
    async def create(
        self,
        terms: LoanTerms,
        correlation_id: Optional[UUID] = None,
    ) -> Loan:
        correlation_id = correlation_id or create_correlation_id()
        async with self._audited("loan", correlation_id):
            async with self._uow.atomic() as uow:
                await self._require_contact(uow, terms.contact_id)
                loan = self._calculator.build_loan(terms)
                await uow.loans.create(loan)

        await self._audit_logger.log_loan_created(
            loan_id=loan.id,
            principal=loan.principal,
            currency=loan.currency,
            periods=len(loan.schedule),
            correlation_id=correlation_id,
        )
        return loan

    @storage_retry
    async def record_payment(
        self,
        loan_id: str,
        payment: LoanPayment,
        as_of: Optional[date] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Loan:
        correlation_id = correlation_id or create_correlation_id()
        async with self._audited("loan", correlation_id):
            async with self._uow.atomic() as uow:
                loan = await uow.loans.find_by_id(loan_id)
                if loan is None:
                    raise ReferenceError("loan", loan_id)
                loan = self._calculator.record_payment(loan, payment, as_of)
                await uow.loans.update(loan)

        await self._audit_logger.log_loan_payment(
            loan_id=loan.id,
            amount=payment.amount,
            status=loan.status.value,
            correlation_id=correlation_id,
        )
        return loan

    @storage_retry
    async def refresh_statuses(self, as_of: Optional[date] = None) -> list[Loan]:
        """Re-derive every loan's status; overdue depends on the date."""
        async with self._uow.atomic() as uow:
            loans = []
            for loan in await uow.loans.find_all():
                refreshed = self._calculator.recompute(loan, as_of)
                if refreshed.status != loan.status:
                    await uow.loans.update(refreshed)
                loans.append(refreshed)
        return loans


# =============================================================================
# BILL SPLITS
# =============================================================================

class BillSplitFlow(_Flow):
    """
    Bill split creation and settlement.

    When someone else paid and the current user is a participant, the
    user's share is also recorded as a short-term borrowed loan from the
    payer, so it shows up alongside other debts.
    """

    def __init__(
        self,
        uow: UnitOfWork,
        settlement: Optional[BillSplitSettlement] = None,
        loan_calculator: Optional[LoanCalculator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        super().__init__(uow, audit_logger)
        self._settlement = settlement or BillSplitSettlement()
        self._loans = loan_calculator or LoanCalculator()

    def _settlement_loan(self, split: BillSplit) -> Optional[Loan]:
        if split.payer_contact_id == self._self_contact_id:
            return None
        try:
            owed = self._settlement.outstanding_for(split, self._self_contact_id)
        except ReferenceError:
            return None
        if owed <= 0:
            return None
        return self._loans.build_loan(LoanTerms(
            label=f"Bill split: {split.description}",
            contact_id=split.payer_contact_id,
            direction=LoanDirection.BORROWED,
            horizon=LoanHorizon.SHORT_TERM,
            principal=owed,
            currency=split.currency,
            start_date=split.date,
        ))

    @storage_retry
    async def create(
        self,
        total_amount,
        currency: str,
        payer_contact_id: str,
        participant_ids: list[str],
        shares: Optional[list] = None,
        description: str = "Bill Split",
        split_date: Optional[date] = None,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[BillSplit, Optional[Loan]]:
        """
        Returns:
            (split, settlement_loan); the loan is None when the current
            user paid or owes nothing.
        """
        correlation_id = correlation_id or create_correlation_id()
        async with self._audited("bill_split", correlation_id):
            async with self._uow.atomic() as uow:
                split = self._settlement.create(
                    total_amount,
                    currency,
                    payer_contact_id,
                    participant_ids,
                    shares=shares,
                    description=description,
                    split_date=split_date,
                )
                for contact_id in participant_ids:
                    await self._require_contact(uow, contact_id)
                await uow.bill_splits.create(split)

                loan = self._settlement_loan(split)
                if loan is not None:
                    await uow.loans.create(loan)

        await self._audit_logger.log_bill_split_created(
            split_id=split.id,
            total=split.total_amount,
            participants=len(split.participants),
            correlation_id=correlation_id,
        )
        if loan is not None:
            await self._audit_logger.log_loan_created(
                loan_id=loan.id,
                principal=loan.principal,
                currency=loan.currency,
                periods=len(loan.schedule),
                correlation_id=correlation_id,
            )
        return split, loan

    @storage_retry
    async def record_payment(
        self,
        split_id: str,
        contact_id: str,
        paid_amount,
        correlation_id: Optional[UUID] = None,
    ) -> BillSplit:
        """Set a participant's paid amount. Serialized per store by the atomic unit."""
        correlation_id = correlation_id or create_correlation_id()
        async with self._audited("bill_split", correlation_id):
            async with self._uow.atomic() as uow:
                split = await uow.bill_splits.find_by_id(split_id)
                if split is None:
                    raise ReferenceError("bill_split", split_id)
                split = self._settlement.record_payment(split, contact_id, paid_amount)
                await uow.bill_splits.update(split)

        paid = split.participant(contact_id).paid
        await self._audit_logger.log_bill_split_payment(
            split_id=split.id,
            contact_id=contact_id,
            paid=paid,
            status=split.status.value,
            correlation_id=correlation_id,
        )
        return split


# =============================================================================
# SAVINGS
# =============================================================================

class SavingsFlow(_Flow):

    def __init__(
        self,
        uow: UnitOfWork,
        calculator: Optional[SavingsProgressCalculator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        super().__init__(uow, audit_logger)
        self._calculator = calculator or SavingsProgressCalculator()

    async def _require_goal(self, uow: UnitOfWork, goal_id: str) -> SavingsGoal:
        goal = await uow.savings_goals.find_by_id(goal_id)
        if goal is None:
            raise ReferenceError("goal", goal_id)
        return goal

    @storage_retry
    async def add_contribution(
        self,
        goal_id: str,
        contribution: SavingsContribution,
        correlation_id: Optional[UUID] = None,
    ) -> SavingsGoal:
        correlation_id = correlation_id or create_correlation_id()
        async with self._audited("savings_goal", correlation_id):
            async with self._uow.atomic() as uow:
                goal = await self._require_goal(uow, goal_id)
                goal = self._calculator.add_contribution(goal, contribution)
                await uow.savings_goals.update(goal)

        await self._audit_logger.log_savings_contribution(
            goal_id=goal.id,
            contribution_id=contribution.id,
            current_amount=goal.current_amount,
            added=True,
            correlation_id=correlation_id,
        )
        return goal

    @storage_retry
    async def remove_contribution(
        self,
        goal_id: str,
        contribution_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> SavingsGoal:
        correlation_id = correlation_id or create_correlation_id()
        async with self._audited("savings_goal", correlation_id):
            async with self._uow.atomic() as uow:
                goal = await self._require_goal(uow, goal_id)
                goal = self._calculator.remove_contribution(goal, contribution_id)
                await uow.savings_goals.update(goal)

        await self._audit_logger.log_savings_contribution(
            goal_id=goal.id,
            contribution_id=contribution_id,
            current_amount=goal.current_amount,
            added=False,
            correlation_id=correlation_id,
        )
        return goal


# =============================================================================
# RECURRING ITEMS
# =============================================================================

_RECURRING_TYPES = {
    RecurringItemType.INCOME: TransactionType.INCOME,
    RecurringItemType.EXPENSE: TransactionType.EXPENSE,
    RecurringItemType.TRANSFER: TransactionType.TRANSFER,
    RecurringItemType.PAYMENT: TransactionType.TRANSFER,
}


def transaction_for_item(item: RecurringItem, run_date: date) -> Transaction:
    """
    The pending transaction a recurring item creates when it runs.

    A payment without a destination account is booked as an expense.
    """
    tx_type = _RECURRING_TYPES[item.type]
    if item.type == RecurringItemType.PAYMENT and not item.to_account_id:
        tx_type = TransactionType.EXPENSE

    fields = {}
    if tx_type == TransactionType.TRANSFER:
        fields["from_account_id"] = item.account_id
        fields["to_account_id"] = item.to_account_id
    else:
        fields["account_id"] = item.account_id

    return Transaction(
        type=tx_type,
        amount=item.amount,
        currency=item.currency,
        status=TransactionStatus.PENDING,
        date=run_date,
        description=item.label,
        category=item.category,
        contact_id=item.contact_id,
        source=TransactionSource.RECURRING,
        metadata={"recurring_item_id": item.id},
        **fields,
    )


class RecurringFlow(_Flow):

    def __init__(
        self,
        uow: UnitOfWork,
        transactions: Optional[TransactionFlow] = None,
        validator: Optional[InputValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        super().__init__(uow, audit_logger)
        self._transactions = transactions or TransactionFlow(uow, audit_logger=self._audit_logger)
        self._validator = validator or InputValidator()

    @storage_retry
    async def run_item(
        self,
        item_id: str,
        run_date: Optional[date] = None,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[RecurringItem, Optional[Transaction]]:
        """
        Run one occurrence of a recurring item.

        The cursor always advances by one step. A pending transaction is
        created only when the item has auto_create_transaction set.

        Returns:
            (updated_item, created_transaction_or_None)
        """
        correlation_id = correlation_id or create_correlation_id()
        tx = None
        balances = {}
        async with self._audited("recurring_item", correlation_id):
            async with self._uow.atomic() as uow:
                item = await uow.recurring_items.find_by_id(item_id)
                if item is None:
                    raise ReferenceError("recurring_item", item_id)
                require_valid(self._validator.validate_recurring_item(item))

                if item.auto_create_transaction:
                    tx = transaction_for_item(item, run_date or item.next_run_date)
                    balances = await self._transactions.record(uow, tx)

                item = item.model_copy(update={
                    "next_run_date": advance(item.next_run_date, item.recurrence),
                })
                await uow.recurring_items.update(item)

        if tx is not None:
            await self._audit_logger.log_transaction_applied(
                transaction_id=tx.id,
                balances=balances,
                correlation_id=correlation_id,
            )
        await self._audit_logger.log_recurring_item_run(
            item_id=item.id,
            next_run_date=item.next_run_date.isoformat(),
            transaction_id=tx.id if tx else None,
            correlation_id=correlation_id,
        )
        return item, tx


# =============================================================================
# DASHBOARD (read side)
# =============================================================================

class DashboardFlow:
    """Read-only queries. Nothing here writes to storage."""

    def __init__(
        self,
        uow: UnitOfWork,
        converter: Optional[CurrencyConverter] = None,
    ):
        self._uow = uow
        converter = converter or CurrencyConverter()
        self._budgets = BudgetProgressAggregator(converter)
        self._forecast = CashflowForecastEngine(converter)
        self._reports = ReportBuilder(converter, self._budgets)

    async def budget_progress(self, as_of: Optional[date] = None) -> list[BudgetProgress]:
        budgets = await self._uow.budgets.find_all()
        transactions = await self._uow.transactions.find_all()
        return self._budgets.progress_for_all(budgets, transactions, as_of)

    async def forecast(
        self,
        horizon_days: Optional[int] = None,
        today: Optional[date] = None,
    ) -> CashflowForecast:
        """Projection over the user's accounts, recurring items and debts they repay."""
        loans = [
            loan for loan in await self._uow.loans.find_all()
            if loan.direction == LoanDirection.BORROWED and loan.status != LoanStatus.PAID
        ]
        return self._forecast.project(
            accounts=await self._uow.accounts.find_all(),
            recurring_items=await self._uow.recurring_items.find_all(),
            loans=loans,
            transactions=await self._uow.transactions.find_all(),
            horizon_days=horizon_days,
            today=today,
        )

    async def reports(self, today: Optional[date] = None) -> ReportBundle:
        return self._reports.build(
            accounts=await self._uow.accounts.find_all(),
            transactions=await self._uow.transactions.find_all(),
            budgets=await self._uow.budgets.find_all(),
            contacts=await self._uow.contacts.find_all(),
            bill_splits=await self._uow.bill_splits.find_all(),
            today=today,
        )
