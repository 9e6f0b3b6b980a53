"""
Audit Models for the Finance Engine

Every mutation of shared state (account balances, bill-split payments,
loan payments, savings contributions) produces an audit event. This provides:
1. Traceability of every balance movement
2. Debugging information when invariants break
3. The ability to reconstruct how a balance was reached

DESIGN DECISION: Events are immutable once written. Corrections show up as
new events (a reverse followed by an apply), never as edits to old ones.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Ledger
    TRANSACTION_APPLIED = "transaction_applied"
    TRANSACTION_REVERSED = "transaction_reversed"
    TRANSACTION_REPLACED = "transaction_replaced"

    # Loans
    LOAN_CREATED = "loan_created"
    LOAN_PAYMENT_RECORDED = "loan_payment_recorded"

    # Bill splits
    BILL_SPLIT_CREATED = "bill_split_created"
    BILL_SPLIT_PAYMENT_RECORDED = "bill_split_payment_recorded"

    # Savings
    SAVINGS_CONTRIBUTION_ADDED = "savings_contribution_added"
    SAVINGS_CONTRIBUTION_REMOVED = "savings_contribution_removed"

    # Recurring items
    RECURRING_ITEM_RUN = "recurring_item_run"

    # Failures
    VALIDATION_FAILED = "validation_failed"
    CONSISTENCY_VIOLATION = "consistency_violation"
    STORAGE_RETRY = "storage_retry"
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """How loudly an event is logged. ERROR and CRITICAL go to the error stream."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """One entry in the audit trail."""

    event_id: UUID = Field(
        default_factory=uuid4,
        description="Event identifier"
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="Creation time, timezone-aware UTC"
    )

    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'transaction', 'loan', 'bill_split')"
    )
    entity_id: Optional[str] = None

    # Correlation - for tracking related events (e.g. reverse + apply of one edit)
    correlation_id: Optional[UUID] = None

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)

    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """Flat, JSON-friendly keyword arguments for the structlog call."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }


def _balances(balances: dict[str, Decimal]) -> dict[str, str]:
    return {account_id: str(amount) for account_id, amount in balances.items()}


class AuditEventBuilder:
    """
    One constructor per domain event, so descriptions and details stay uniform.

    Usage:
        event = AuditEventBuilder.transaction_applied(tx_id, balances, correlation_id)
    """

    @staticmethod
    def transaction_applied(
        transaction_id: str,
        balances: dict[str, Decimal],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_APPLIED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Transaction applied to {len(balances)} account(s)",
            details={"balances": _balances(balances)},
        )

    @staticmethod
    def transaction_reversed(
        transaction_id: str,
        balances: dict[str, Decimal],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_REVERSED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Transaction reversed on {len(balances)} account(s)",
            details={"balances": _balances(balances)},
        )

    @staticmethod
    def transaction_replaced(
        transaction_id: str,
        old_status: str,
        new_status: str,
        balances: dict[str, Decimal],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_REPLACED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Transaction re-applied ({old_status} -> {new_status})",
            details={
                "old_status": old_status,
                "new_status": new_status,
                "balances": _balances(balances),
            },
        )

    @staticmethod
    def loan_created(
        loan_id: str,
        principal: Decimal,
        currency: str,
        periods: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LOAN_CREATED,
            entity_type="loan",
            entity_id=loan_id,
            correlation_id=correlation_id,
            description=f"Loan created: {currency} {principal} over {periods} period(s)",
            details={
                "principal": str(principal),
                "currency": currency,
                "periods": periods,
            },
        )

    @staticmethod
    def loan_payment_recorded(
        loan_id: str,
        amount: Decimal,
        status: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LOAN_PAYMENT_RECORDED,
            entity_type="loan",
            entity_id=loan_id,
            correlation_id=correlation_id,
            description=f"Loan payment recorded, status now {status}",
            details={"amount": str(amount), "status": status},
        )

    @staticmethod
    def bill_split_created(
        split_id: str,
        total: Decimal,
        participants: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BILL_SPLIT_CREATED,
            entity_type="bill_split",
            entity_id=split_id,
            correlation_id=correlation_id,
            description=f"Bill split of {total} among {participants} participant(s)",
            details={"total": str(total), "participants": participants},
        )

    @staticmethod
    def bill_split_payment_recorded(
        split_id: str,
        contact_id: str,
        paid: Decimal,
        status: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BILL_SPLIT_PAYMENT_RECORDED,
            entity_type="bill_split",
            entity_id=split_id,
            correlation_id=correlation_id,
            description=f"Payment recorded for {contact_id}, split now {status}",
            details={"contact_id": contact_id, "paid": str(paid), "status": status},
        )

    @staticmethod
    def savings_contribution_changed(
        goal_id: str,
        contribution_id: str,
        current_amount: Decimal,
        added: bool,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=(
                AuditEventType.SAVINGS_CONTRIBUTION_ADDED
                if added
                else AuditEventType.SAVINGS_CONTRIBUTION_REMOVED
            ),
            entity_type="savings_goal",
            entity_id=goal_id,
            correlation_id=correlation_id,
            description=f"Contribution {'added' if added else 'removed'}, goal at {current_amount}",
            details={
                "contribution_id": contribution_id,
                "current_amount": str(current_amount),
            },
        )

    @staticmethod
    def recurring_item_run(
        item_id: str,
        next_run_date: str,
        transaction_id: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECURRING_ITEM_RUN,
            entity_type="recurring_item",
            entity_id=item_id,
            correlation_id=correlation_id,
            description=f"Recurring item ran, next run {next_run_date}",
            details={"next_run_date": next_run_date, "transaction_id": transaction_id},
        )

    @staticmethod
    def validation_failed(
        entity_type: str,
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type=entity_type,
            correlation_id=correlation_id,
            description=f"Validation failed with {len(issues)} issue(s)",
            details={"issues": issues},
        )

    @staticmethod
    def consistency_violation(
        entity_type: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CONSISTENCY_VIOLATION,
            severity=AuditSeverity.CRITICAL,
            entity_type=entity_type,
            correlation_id=correlation_id,
            description=f"Consistency violation in {entity_type}",
            error_message=error_message,
        )

    @staticmethod
    def storage_retry(
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_RETRY,
            severity=AuditSeverity.WARNING,
            description=f"Transient storage failure during {operation}",
            error_message=error_message,
            details={"operation": operation},
            correlation_id=correlation_id,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
