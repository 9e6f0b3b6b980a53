"""
Audit Logger

DESIGN DECISION: Every mutation of shared state is logged.
This provides:
1. A trace of every balance movement
2. Debugging capability when an invariant breaks
3. A history the user can inspect

The audit logger:
- Is async so flows can await it next to storage calls
- Gracefully handles failures (a broken audit store never fails the operation)
- Tags events of one user action with a shared correlation id
"""

import logging
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

import structlog

from finance_engine.config import get_settings
from finance_engine.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from finance_engine.services.storage import AuditStorageInterface


def configure_logging() -> None:
    """Configure structlog (and the stdlib root logger it writes through)."""
    settings = get_settings().logging
    logging.basicConfig(format="%(message)s", level=getattr(logging, settings.level))

    renderer = (
        structlog.processors.JSONRenderer()
        if settings.json_output
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging()


class AuditLogger:
    """
    Writes engine audit events.

    Every event goes to the structlog stream; when an audit store is
    configured it is appended there too, so users can see the history of
    their balances, loans and splits.
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        self._storage = storage
        self._logger = structlog.get_logger()

    async def log(self, event: AuditEvent) -> bool:
        """
        Emit one event.

        Returns False only when the audit store rejected the write; the
        failure is logged and never raised to the calling flow.
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_transaction_applied(
        self,
        transaction_id: str,
        balances: dict[str, Decimal],
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.transaction_applied(
            transaction_id=transaction_id,
            balances=balances,
            correlation_id=correlation_id,
        ))

    async def log_transaction_reversed(
        self,
        transaction_id: str,
        balances: dict[str, Decimal],
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.transaction_reversed(
            transaction_id=transaction_id,
            balances=balances,
            correlation_id=correlation_id,
        ))

    async def log_transaction_replaced(
        self,
        transaction_id: str,
        old_status: str,
        new_status: str,
        balances: dict[str, Decimal],
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.transaction_replaced(
            transaction_id=transaction_id,
            old_status=old_status,
            new_status=new_status,
            balances=balances,
            correlation_id=correlation_id,
        ))

    async def log_loan_created(
        self,
        loan_id: str,
        principal: Decimal,
        currency: str,
        periods: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.loan_created(
            loan_id=loan_id,
            principal=principal,
            currency=currency,
            periods=periods,
            correlation_id=correlation_id,
        ))

    async def log_loan_payment(
        self,
        loan_id: str,
        amount: Decimal,
        status: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.loan_payment_recorded(
            loan_id=loan_id,
            amount=amount,
            status=status,
            correlation_id=correlation_id,
        ))

    async def log_bill_split_created(
        self,
        split_id: str,
        total: Decimal,
        participants: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.bill_split_created(
            split_id=split_id,
            total=total,
            participants=participants,
            correlation_id=correlation_id,
        ))

    async def log_bill_split_payment(
        self,
        split_id: str,
        contact_id: str,
        paid: Decimal,
        status: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.bill_split_payment_recorded(
            split_id=split_id,
            contact_id=contact_id,
            paid=paid,
            status=status,
            correlation_id=correlation_id,
        ))

    async def log_savings_contribution(
        self,
        goal_id: str,
        contribution_id: str,
        current_amount: Decimal,
        added: bool,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.savings_contribution_changed(
            goal_id=goal_id,
            contribution_id=contribution_id,
            current_amount=current_amount,
            added=added,
            correlation_id=correlation_id,
        ))

    async def log_recurring_item_run(
        self,
        item_id: str,
        next_run_date: str,
        transaction_id: Optional[str],
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.recurring_item_run(
            item_id=item_id,
            next_run_date=next_run_date,
            transaction_id=transaction_id,
            correlation_id=correlation_id,
        ))

    async def log_validation_failed(
        self,
        entity_type: str,
        issues: list[dict],
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.validation_failed(
            entity_type=entity_type,
            issues=issues,
            correlation_id=correlation_id,
        ))

    async def log_consistency_violation(
        self,
        entity_type: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.consistency_violation(
            entity_type=entity_type,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_storage_retry(
        self,
        operation: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.storage_retry(
            operation=operation,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """Correlation id tying together the audit events of one user action."""
    return uuid4()
