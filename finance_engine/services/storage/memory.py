"""
In-Memory Storage

Process-local backend used by tests and single-user setups.

Stored entities are deep copies: callers that mutate a returned entity
change nothing until they call update(). The unit of work serializes
atomic sections with an asyncio.Lock and restores a snapshot of every
repository when a section raises.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional
from uuid import UUID

import structlog

from finance_engine.models.account import Account, Transaction
from finance_engine.models.audit import AuditEvent
from finance_engine.models.bill_split import BillSplit
from finance_engine.models.contact import Contact
from finance_engine.models.loan import Loan
from finance_engine.models.planning import Budget, RecurringItem, SavingsGoal
from finance_engine.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    NotFoundError,
    Repository,
    T,
    TransientStorageError,
    UnitOfWork,
)

logger = structlog.get_logger()


class InMemoryRepository(Repository[T]):
    """Dict-backed repository keyed by entity id."""

    def __init__(self, entity_type: str):
        self.entity_type = entity_type
        self._items: dict[str, T] = {}
        self._pending_failures = 0

    def fail_next_writes(self, count: int) -> None:
        """Make the next ``count`` writes raise TransientStorageError."""
        self._pending_failures = count

    def _maybe_fail(self, operation: str) -> None:
        if self._pending_failures > 0:
            self._pending_failures -= 1
            raise TransientStorageError(f"{self.entity_type} {operation} failed, try again")

    async def find_all(self) -> list[T]:
        return [item.model_copy(deep=True) for item in self._items.values()]

    async def find_by_id(self, entity_id: str) -> Optional[T]:
        item = self._items.get(entity_id)
        return item.model_copy(deep=True) if item is not None else None

    async def create(self, entity: T) -> T:
        self._maybe_fail("create")
        if entity.id in self._items:
            raise DuplicateError(f"{self.entity_type} already exists: {entity.id}")
        self._items[entity.id] = entity.model_copy(deep=True)
        return entity

    async def update(self, entity: T) -> T:
        self._maybe_fail("update")
        if entity.id not in self._items:
            raise NotFoundError(f"{self.entity_type} not found: {entity.id}")
        self._items[entity.id] = entity.model_copy(deep=True)
        return entity

    async def delete(self, entity_id: str) -> bool:
        self._maybe_fail("delete")
        return self._items.pop(entity_id, None) is not None

    def snapshot(self) -> dict[str, T]:
        return {key: item.model_copy(deep=True) for key, item in self._items.items()}

    def restore(self, snapshot: dict[str, T]) -> None:
        self._items = snapshot


class InMemoryUnitOfWork(UnitOfWork):
    """All repositories for one in-memory store."""

    def __init__(self):
        self.accounts = InMemoryRepository[Account]("account")
        self.transactions = InMemoryRepository[Transaction]("transaction")
        self.loans = InMemoryRepository[Loan]("loan")
        self.bill_splits = InMemoryRepository[BillSplit]("bill_split")
        self.budgets = InMemoryRepository[Budget]("budget")
        self.savings_goals = InMemoryRepository[SavingsGoal]("savings_goal")
        self.recurring_items = InMemoryRepository[RecurringItem]("recurring_item")
        self.contacts = InMemoryRepository[Contact]("contact")
        self._lock = asyncio.Lock()

    def _repositories(self) -> list[InMemoryRepository]:
        return [
            self.accounts,
            self.transactions,
            self.loans,
            self.bill_splits,
            self.budgets,
            self.savings_goals,
            self.recurring_items,
            self.contacts,
        ]

    @asynccontextmanager
    async def atomic(self) -> AsyncIterator["InMemoryUnitOfWork"]:
        async with self._lock:
            snapshots = [(repo, repo.snapshot()) for repo in self._repositories()]
            try:
                yield self
            except BaseException:
                for repo, snapshot in snapshots:
                    repo.restore(snapshot)
                logger.warning("atomic_section_rolled_back")
                raise


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event.model_copy(deep=True))
        return True

    async def get_events_by_correlation_id(self, correlation_id: UUID) -> list[AuditEvent]:
        return [e for e in self._events if e.correlation_id == correlation_id]

    async def get_events_by_entity(self, entity_type: str, entity_id: str) -> list[AuditEvent]:
        return [
            e for e in self._events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        return list(reversed(self._events))[:limit]
