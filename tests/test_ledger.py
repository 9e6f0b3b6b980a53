"""Tests for the account ledger."""

import pytest
from datetime import date
from decimal import Decimal

from finance_engine.config import DEFAULT_EXCHANGE_RATES
from finance_engine.errors import ReferenceError, ValidationError
from finance_engine.models import (
    Account,
    AccountType,
    CreditCardDetails,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from finance_engine.services.currency import CurrencyConverter
from finance_engine.services.ledger import AccountLedger


def make_ledger() -> AccountLedger:
    return AccountLedger(CurrencyConverter(DEFAULT_EXCHANGE_RATES, "MVR"))


def make_accounts() -> dict[str, Account]:
    accounts = [
        Account(id="usd", name="USD Checking", currency="USD", balance=Decimal("200.00")),
        Account(id="mvr", name="MVR Wallet", type=AccountType.MOBILE_WALLET, currency="MVR", balance=Decimal("1000.00")),
        Account(
            id="card",
            name="Visa",
            type=AccountType.CREDIT_CARD,
            currency="MVR",
            credit_card=CreditCardDetails(credit_limit=Decimal("5000")),
        ),
    ]
    return {account.id: account for account in accounts}


def snapshot(accounts: dict[str, Account]) -> dict:
    return {key: account.model_dump() for key, account in accounts.items()}


def expense(**overrides) -> Transaction:
    data = {
        "type": TransactionType.EXPENSE,
        "amount": Decimal("50.00"),
        "currency": "USD",
        "date": date(2024, 1, 1),
        "account_id": "usd",
    }
    data.update(overrides)
    return Transaction(**data)


class TestApplyReverse:

    def test_reference_example(self):
        """200.00 USD, expense 50.00 USD -> 150.00; delete -> 200.00."""
        ledger = make_ledger()
        accounts = make_accounts()
        tx = expense()

        ledger.apply(tx, accounts)
        assert accounts["usd"].balance == Decimal("150.00")

        ledger.reverse(tx, accounts)
        assert accounts["usd"].balance == Decimal("200.00")

    def test_income_increases_balance(self):
        ledger = make_ledger()
        accounts = make_accounts()
        balances = ledger.apply(expense(type=TransactionType.INCOME, amount=Decimal("25")), accounts)
        assert balances == {"usd": Decimal("225.00")}

    def test_foreign_currency_expense_is_converted(self):
        ledger = make_ledger()
        accounts = make_accounts()
        ledger.apply(expense(account_id="mvr", amount=Decimal("10"), currency="USD"), accounts)
        assert accounts["mvr"].balance == Decimal("845.80")

    def test_account_amount_override_is_used_verbatim(self):
        ledger = make_ledger()
        accounts = make_accounts()
        ledger.apply(
            expense(account_id="mvr", amount=Decimal("10"), currency="USD", account_amount=Decimal("160")),
            accounts,
        )
        assert accounts["mvr"].balance == Decimal("840.00")

    def test_pending_and_posted_move_balances_alike(self):
        ledger = make_ledger()
        accounts = make_accounts()
        ledger.apply(expense(status=TransactionStatus.PENDING), accounts)
        assert accounts["usd"].balance == Decimal("150.00")

    @pytest.mark.parametrize("tx", [
        expense(),
        expense(type=TransactionType.INCOME, amount=Decimal("0.01")),
        expense(account_id="mvr", currency="EUR", amount=Decimal("33.33")),
        expense(account_id="card", currency="GBP", amount=Decimal("12.99")),
        Transaction(
            type=TransactionType.TRANSFER,
            amount=Decimal("100"),
            currency="USD",
            date=date(2024, 1, 1),
            from_account_id="usd",
            to_account_id="mvr",
        ),
        Transaction(
            type=TransactionType.TRANSFER,
            amount=Decimal("100"),
            currency="MVR",
            date=date(2024, 1, 1),
            from_account_id="mvr",
            to_account_id="usd",
            counter_amount=Decimal("6.40"),
            counter_currency="USD",
        ),
    ])
    def test_apply_then_reverse_is_identity(self, tx):
        ledger = make_ledger()
        accounts = make_accounts()
        before = snapshot(accounts)

        ledger.apply(tx, accounts)
        assert snapshot(accounts) != before
        ledger.reverse(tx, accounts)
        assert snapshot(accounts) == before


class TestTransfers:

    def test_cross_currency_transfer_converts_credit_leg(self):
        ledger = make_ledger()
        accounts = make_accounts()
        tx = Transaction(
            type=TransactionType.TRANSFER,
            amount=Decimal("10"),
            currency="USD",
            date=date(2024, 1, 1),
            from_account_id="usd",
            to_account_id="mvr",
        )
        balances = ledger.apply(tx, accounts)
        assert balances == {"usd": Decimal("190.00"), "mvr": Decimal("1154.20")}

    def test_counter_amount_sets_credit_leg(self):
        ledger = make_ledger()
        accounts = make_accounts()
        tx = Transaction(
            type=TransactionType.TRANSFER,
            amount=Decimal("10"),
            currency="USD",
            date=date(2024, 1, 1),
            from_account_id="usd",
            to_account_id="mvr",
            counter_amount=Decimal("150"),
        )
        ledger.apply(tx, accounts)
        assert accounts["usd"].balance == Decimal("190.00")
        assert accounts["mvr"].balance == Decimal("1150.00")

    def test_transfer_to_same_account_rejected(self):
        ledger = make_ledger()
        accounts = make_accounts()
        tx = Transaction(
            type=TransactionType.TRANSFER,
            amount=Decimal("10"),
            currency="USD",
            date=date(2024, 1, 1),
            from_account_id="usd",
            to_account_id="usd",
        )
        with pytest.raises(ValidationError):
            ledger.apply(tx, accounts)


class TestCreditCards:

    def test_expense_moves_card_sub_balances(self):
        ledger = make_ledger()
        accounts = make_accounts()
        ledger.apply(expense(account_id="card", currency="MVR", amount=Decimal("300")), accounts)

        card = accounts["card"].credit_card
        assert accounts["card"].balance == Decimal("-300.00")
        assert card.pending_balance == Decimal("300.00")
        assert card.available_credit == Decimal("4700.00")

    def test_income_leaves_card_sub_balances_alone(self):
        ledger = make_ledger()
        accounts = make_accounts()
        ledger.apply(
            expense(type=TransactionType.INCOME, account_id="card", currency="MVR", amount=Decimal("300")),
            accounts,
        )
        card = accounts["card"].credit_card
        assert card.pending_balance == Decimal("0")
        assert card.available_credit == Decimal("5000.00")


class TestFailuresLeaveStateUntouched:

    def test_missing_account_reference(self):
        ledger = make_ledger()
        accounts = make_accounts()
        before = snapshot(accounts)
        with pytest.raises(ValidationError):
            ledger.apply(expense(account_id=None), accounts)
        assert snapshot(accounts) == before

    def test_unknown_destination_account(self):
        """The source leg must not move when the destination is unknown."""
        ledger = make_ledger()
        accounts = make_accounts()
        before = snapshot(accounts)
        tx = Transaction(
            type=TransactionType.TRANSFER,
            amount=Decimal("10"),
            currency="USD",
            date=date(2024, 1, 1),
            from_account_id="usd",
            to_account_id="nope",
        )
        with pytest.raises(ReferenceError) as exc_info:
            ledger.apply(tx, accounts)
        assert exc_info.value.entity_id == "nope"
        assert snapshot(accounts) == before

    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-5")])
    def test_non_positive_amount(self, amount):
        ledger = make_ledger()
        accounts = make_accounts()
        with pytest.raises(ValidationError):
            ledger.apply(expense(amount=amount), accounts)
        assert accounts["usd"].balance == Decimal("200.00")


class TestReplace:

    def test_edit_amount(self):
        ledger = make_ledger()
        accounts = make_accounts()
        old = expense()
        ledger.apply(old, accounts)

        new = old.model_copy(update={"amount": Decimal("80.00")})
        ledger.replace(old, new, accounts)
        assert accounts["usd"].balance == Decimal("120.00")

    def test_move_to_another_account(self):
        ledger = make_ledger()
        accounts = make_accounts()
        old = expense(account_id="mvr", currency="MVR", amount=Decimal("100"))
        ledger.apply(old, accounts)

        new = old.model_copy(update={"account_id": "card"})
        ledger.replace(old, new, accounts)
        assert accounts["mvr"].balance == Decimal("1000.00")
        assert accounts["card"].balance == Decimal("-100.00")

    def test_status_change_keeps_balance(self):
        ledger = make_ledger()
        accounts = make_accounts()
        old = expense(status=TransactionStatus.PENDING)
        ledger.apply(old, accounts)

        ledger.replace(old, old.model_copy(update={"status": TransactionStatus.POSTED}), accounts)
        assert accounts["usd"].balance == Decimal("150.00")

    def test_invalid_new_version_keeps_old_effect(self):
        ledger = make_ledger()
        accounts = make_accounts()
        old = expense()
        ledger.apply(old, accounts)

        with pytest.raises(ReferenceError):
            ledger.replace(old, old.model_copy(update={"account_id": "ghost"}), accounts)
        assert accounts["usd"].balance == Decimal("150.00")
