"""
Storage Services Package

Provides abstract interfaces and an in-memory implementation for data
storage, plus the conversions used at the persistence boundary.
"""

from finance_engine.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    NotFoundError,
    Repository,
    StorageError,
    TransientStorageError,
    UnitOfWork,
)
from finance_engine.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryRepository,
    InMemoryUnitOfWork,
)
from finance_engine.services.storage.serialization import (
    loan_from_record,
    loan_to_record,
    normalize_schedule,
    parse_metadata,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "Repository",
    "UnitOfWork",
    # Exceptions
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    "TransientStorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryRepository",
    "InMemoryUnitOfWork",
    # Serialization
    "loan_from_record",
    "loan_to_record",
    "normalize_schedule",
    "parse_metadata",
]
