"""
Abstract Storage Interface

DESIGN DECISION: The engine never owns storage. Callers reach persisted
records through one small repository capability per entity type, plus a
unit of work that groups several writes into one atomic step. This allows:
1. An in-memory backend for tests
2. Swapping in a real database without touching engine logic
3. Serializing concurrent mutations of the same balances

Only lookups the engine actually needs are exposed; there is no query language.
"""

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from typing import Generic, Optional, TypeVar
from uuid import UUID

from pydantic import BaseModel

from finance_engine.models.account import Account, Transaction
from finance_engine.models.audit import AuditEvent
from finance_engine.models.bill_split import BillSplit
from finance_engine.models.contact import Contact
from finance_engine.models.loan import Loan
from finance_engine.models.planning import Budget, RecurringItem, SavingsGoal

T = TypeVar("T", bound=BaseModel)


class Repository(ABC, Generic[T]):
    """
    CRUD capability for one entity type.

    Entities are identified by their ``id`` attribute.
    """

    @abstractmethod
    async def find_all(self) -> list[T]:
        """Return every stored entity."""
        pass

    @abstractmethod
    async def find_by_id(self, entity_id: str) -> Optional[T]:
        """
        Retrieve one entity.

        Returns:
            The entity if found, None otherwise
        """
        pass

    @abstractmethod
    async def create(self, entity: T) -> T:
        """
        Store a new entity.

        Raises:
            DuplicateError: If an entity with the same id exists
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def update(self, entity: T) -> T:
        """
        Replace an existing entity.

        Raises:
            NotFoundError: If the entity doesn't exist
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def delete(self, entity_id: str) -> bool:
        """
        Delete an entity by id.

        Returns:
            True if something was deleted
        """
        pass


class UnitOfWork(ABC):
    """
    All repositories of one store, plus an atomic boundary.

    Every mutation of shared state (balances, bill-split payments) must
    happen inside ``async with uow.atomic():`` so that concurrent
    operations on the same records cannot interleave.
    """

    accounts: Repository[Account]
    transactions: Repository[Transaction]
    loans: Repository[Loan]
    bill_splits: Repository[BillSplit]
    budgets: Repository[Budget]
    savings_goals: Repository[SavingsGoal]
    recurring_items: Repository[RecurringItem]
    contacts: Repository[Contact]

    @abstractmethod
    def atomic(self) -> AbstractAsyncContextManager["UnitOfWork"]:
        """
        Atomic section.

        Either every write inside the block is kept, or (when the block
        raises) none of them are.
        """
        pass


class AuditStorageInterface(ABC):
    """
    Append-only store for audit events.

    Events are written once and never updated or deleted.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Persist one event.

        Returns:
            True once the event is stored
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Events of one user action, in chronological order."""
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """Events about one entity, in chronological order."""
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Most recent events, newest first."""
        pass


class StorageError(Exception):
    """A persistence call failed."""
    pass


class NotFoundError(StorageError):
    """No stored entity has the requested id."""
    pass


class DuplicateError(StorageError):
    """An entity with the same id is already stored."""
    pass


class TransientStorageError(StorageError):
    """A storage call failed in a way that may succeed if retried."""
    pass
