"""
Account Ledger

The only component allowed to change Account.balance.

Applying and reversing a transaction share one code path with a signed
multiplier (+1 apply, -1 reverse), so reverse is exactly the inverse of
apply for every leg. Edits and status changes are reverse(old) followed
by apply(new); a status change on its own moves no money.

DESIGN DECISION: Every reference and every delta is resolved before the
first balance is touched. A transaction that fails validation or points
at an unknown account leaves all accounts exactly as they were.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

import structlog

from finance_engine.errors import ReferenceError
from finance_engine.models.account import Account, Transaction, TransactionType
from finance_engine.services.currency import CurrencyConverter
from finance_engine.utils.decimal_utils import round2
from finance_engine.validation import InputValidator, require_valid

logger = structlog.get_logger()

APPLY = 1
REVERSE = -1


@dataclass(frozen=True)
class _Leg:
    """One resolved balance movement."""
    account: Account
    delta: Decimal
    card_amount: Optional[Decimal] = None  # credit-card expense legs only


class AccountLedger:
    """
    Applies transaction effects to account balances.

    Accounts are passed in as a mapping of id -> Account and are mutated in
    place. The caller owns persistence and must wrap each call in its
    atomic unit.
    """

    def __init__(
        self,
        converter: Optional[CurrencyConverter] = None,
        validator: Optional[InputValidator] = None,
    ):
        self._converter = converter or CurrencyConverter()
        self._validator = validator or InputValidator()

    def apply(self, tx: Transaction, accounts: dict[str, Account]) -> dict[str, Decimal]:
        """
        Apply a transaction's effect.

        Returns:
            New balances of the touched accounts, keyed by account id.

        Raises:
            ValidationError: Missing account reference or non-positive amount.
            ReferenceError: A referenced account does not exist.
        """
        return self._commit(tx, self._resolve(tx, accounts, APPLY), "transaction_applied")

    def reverse(self, tx: Transaction, accounts: dict[str, Account]) -> dict[str, Decimal]:
        """Undo a previously applied transaction. Exact inverse of apply."""
        return self._commit(tx, self._resolve(tx, accounts, REVERSE), "transaction_reversed")

    def replace(
        self,
        old_tx: Transaction,
        new_tx: Transaction,
        accounts: dict[str, Account],
    ) -> dict[str, Decimal]:
        """
        Swap one version of a transaction for another (edit or status change).

        Both versions are resolved before anything moves, so a bad new
        version leaves the old effect in place.
        """
        reverse_legs = self._resolve(old_tx, accounts, REVERSE)
        apply_legs = self._resolve(new_tx, accounts, APPLY)

        balances = self._commit(old_tx, reverse_legs, "transaction_reversed")
        balances.update(self._commit(new_tx, apply_legs, "transaction_applied"))
        return balances

    def account_amount(self, tx: Transaction, account: Account) -> Decimal:
        """
        Amount of tx expressed in the account's currency.

        An explicit account_amount override wins over conversion.
        """
        if tx.account_amount is not None:
            return tx.account_amount
        return self._converter.convert(tx.amount, tx.currency, account.currency)

    def _resolve(self, tx: Transaction, accounts: dict[str, Account], multiplier: int) -> list[_Leg]:
        require_valid(self._validator.validate_transaction(tx))

        if tx.type == TransactionType.TRANSFER:
            source = self._require_account(tx.from_account_id, accounts)
            destination = self._require_account(tx.to_account_id, accounts)

            debit = self.account_amount(tx, source)
            if tx.counter_amount is not None:
                credit = self._converter.convert(
                    tx.counter_amount,
                    tx.counter_currency or destination.currency,
                    destination.currency,
                )
            else:
                credit = self._converter.convert(tx.amount, tx.currency, destination.currency)

            return [
                _Leg(source, round2(-multiplier * debit)),
                _Leg(destination, round2(multiplier * credit)),
            ]

        account = self._require_account(tx.account_id, accounts)
        amount = self.account_amount(tx, account)
        direction = 1 if tx.type == TransactionType.INCOME else -1
        card_amount = None
        if tx.type == TransactionType.EXPENSE and account.is_credit_card:
            card_amount = round2(multiplier * amount)
        return [_Leg(account, round2(multiplier * direction * amount), card_amount)]

    @staticmethod
    def _require_account(account_id: str, accounts: dict[str, Account]) -> Account:
        account = accounts.get(account_id)
        if account is None:
            raise ReferenceError("account", account_id)
        return account

    @staticmethod
    def _commit(tx: Transaction, legs: list[_Leg], event: str) -> dict[str, Decimal]:
        balances = {}
        for leg in legs:
            account = leg.account
            account.balance = round2(account.balance + leg.delta)
            if leg.card_amount is not None and account.credit_card is not None:
                card = account.credit_card
                available = card.available_credit if card.available_credit is not None else card.credit_limit
                card.pending_balance = round2(card.pending_balance + leg.card_amount)
                card.available_credit = round2(available - leg.card_amount)
            balances[account.id] = account.balance

        logger.info(
            event,
            transaction_id=tx.id,
            type=tx.type.value,
            status=tx.status.value,
            balances={k: str(v) for k, v in balances.items()},
        )
        return balances
