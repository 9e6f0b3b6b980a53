"""
Input Validation

DESIGN DECISION: Every engine input is validated in two stages:

STAGE 1 - SHAPE (pydantic):
- Types, required fields, formats, per-field bounds
- Handled by the models themselves when the input is constructed

STAGE 2 - BUSINESS RULES (this module):
- Rules that span fields or need engine context
- Positive amounts, transfer endpoints, payer among participants,
  custom shares adding up to the total

Stage 2 collects every issue instead of stopping at the first one, so
callers can show the user the whole list at once.

IMPORTANT: Validation NEVER silently fixes issues. A failed check raises
ValidationError before the engine touches any state.
"""

from decimal import Decimal
from typing import Optional

from finance_engine.config import get_settings
from finance_engine.errors import ValidationError
from finance_engine.models.account import Transaction, TransactionType
from finance_engine.models.loan import LoanHorizon, LoanTerms
from finance_engine.models.planning import Budget, RecurringItem, RecurringItemType
from finance_engine.models.validation import ValidationIssue, ValidationResult
from finance_engine.utils.decimal_utils import coerce_decimal, round2


def _error(field: str, issue_type: str, message: str, suggested_fix: Optional[str] = None) -> ValidationIssue:
    return ValidationIssue(
        field=field,
        issue_type=issue_type,
        message=message,
        suggested_fix=suggested_fix,
    )


def require_valid(result: ValidationResult) -> None:
    """Raise ValidationError if the result carries any error-level issue."""
    if result.has_errors:
        raise ValidationError.from_issues(result.errors)


class InputValidator:
    """
    Business-rule checks for engine inputs.

    All methods are pure and return a ValidationResult; pair them with
    require_valid() to turn errors into an exception.
    """

    def __init__(self, settlement_tolerance: Optional[Decimal] = None):
        if settlement_tolerance is None:
            settlement_tolerance = get_settings().engine.settlement_tolerance
        self._tolerance = coerce_decimal(settlement_tolerance)

    @property
    def settlement_tolerance(self) -> Decimal:
        return self._tolerance

    def validate_transaction(self, tx: Transaction) -> ValidationResult:
        """
        Checks:
        - Positive amount (and positive overrides when present)
        - income/expense reference an account
        - transfers reference two distinct accounts
        """
        issues = []

        if tx.amount <= 0:
            issues.append(_error(
                "amount", "invalid_value",
                "Transaction amount must be greater than zero",
            ))

        if tx.account_amount is not None and tx.account_amount <= 0:
            issues.append(_error(
                "account_amount", "invalid_value",
                "Account amount override must be greater than zero",
            ))

        if tx.type == TransactionType.TRANSFER:
            if not tx.from_account_id or not tx.to_account_id:
                issues.append(_error(
                    "from_account_id" if not tx.from_account_id else "to_account_id",
                    "missing",
                    "Transfers require from_account_id and to_account_id",
                ))
            elif tx.from_account_id == tx.to_account_id:
                issues.append(_error(
                    "to_account_id", "invalid_value",
                    "Transfer source and destination must differ",
                ))
            if tx.counter_amount is not None and tx.counter_amount <= 0:
                issues.append(_error(
                    "counter_amount", "invalid_value",
                    "Counter amount must be greater than zero",
                ))
        elif not tx.account_id:
            issues.append(_error(
                "account_id", "missing",
                "Account is required for income and expense transactions",
            ))

        return ValidationResult(entity_type="transaction", issues=issues)

    def validate_loan_terms(self, terms: LoanTerms) -> ValidationResult:
        issues = []

        if terms.principal <= 0:
            issues.append(_error(
                "principal", "invalid_value",
                "Loan principal must be greater than zero",
            ))
        if terms.interest_rate < 0:
            issues.append(_error(
                "interest_rate", "invalid_value",
                "Interest rate cannot be negative",
                suggested_fix="Use 0 for an interest-free loan",
            ))
        if terms.horizon == LoanHorizon.LONG_TERM and terms.term_months < 1:
            issues.append(_error(
                "term_months", "invalid_value",
                "Long-term loans need a term of at least one month",
            ))

        return ValidationResult(entity_type="loan", issues=issues)

    def validate_bill_split(
        self,
        total_amount,
        payer_contact_id: str,
        participant_ids: list[str],
        shares: Optional[list] = None,
    ) -> ValidationResult:
        """
        Checks:
        - total > 0
        - at least one participant, no duplicates
        - payer is a participant
        - custom shares: one per participant, none negative, sum within tolerance
        """
        issues = []
        total = round2(total_amount)

        if total <= 0:
            issues.append(_error(
                "total_amount", "invalid_value",
                "Bill split total must be greater than zero",
            ))

        if not participant_ids:
            issues.append(_error(
                "participants", "missing",
                "A bill split needs at least one participant",
            ))
        elif len(set(participant_ids)) != len(participant_ids):
            issues.append(_error(
                "participants", "duplicate",
                "Each contact can only appear once in a bill split",
            ))

        if participant_ids and payer_contact_id not in participant_ids:
            issues.append(_error(
                "payer_contact_id", "invalid_value",
                "Payer must be one of the participants",
                suggested_fix="Add the payer to the participant list",
            ))

        if shares is not None and participant_ids:
            if len(shares) != len(participant_ids):
                issues.append(_error(
                    "shares", "invalid_value",
                    f"Expected {len(participant_ids)} shares, got {len(shares)}",
                ))
            else:
                amounts = [round2(share) for share in shares]
                if any(amount < 0 for amount in amounts):
                    issues.append(_error(
                        "shares", "invalid_value",
                        "Shares cannot be negative",
                    ))
                diff = abs(sum(amounts, Decimal("0")) - total)
                if total > 0 and diff > self._tolerance:
                    issues.append(_error(
                        "shares", "inconsistent",
                        f"Shares add up to {sum(amounts, Decimal('0'))}, expected {total}",
                    ))

        return ValidationResult(entity_type="bill_split", issues=issues)

    def validate_recurring_item(self, item: RecurringItem) -> ValidationResult:
        """An item that creates transactions must say where the money moves."""
        issues = []

        if item.auto_create_transaction and not item.account_id:
            issues.append(_error(
                "account_id", "missing",
                "Recurring items that create transactions need an account",
            ))
        if item.type == RecurringItemType.TRANSFER and item.auto_create_transaction and not item.to_account_id:
            issues.append(_error(
                "to_account_id", "missing",
                "Recurring transfers need a destination account",
            ))

        return ValidationResult(entity_type="recurring_item", issues=issues)

    def validate_budget(self, budget: Budget) -> ValidationResult:
        issues = []
        seen = set()
        for allocation in budget.categories:
            key = allocation.category.lower()
            if key in seen:
                issues.append(_error(
                    "categories", "duplicate",
                    f"Category '{allocation.category}' appears more than once",
                ))
            seen.add(key)
        return ValidationResult(entity_type="budget", issues=issues)
