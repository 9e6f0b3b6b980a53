"""Services package."""

from finance_engine.services.amortization import AmortizationEngine
from finance_engine.services.bill_split import BillSplitSettlement
from finance_engine.services.budget import BudgetProgressAggregator, period_end
from finance_engine.services.currency import CurrencyConverter
from finance_engine.services.forecast import CashflowForecastEngine
from finance_engine.services.ledger import AccountLedger
from finance_engine.services.loans import LoanCalculator
from finance_engine.services.recurrence import advance, expand
from finance_engine.services.reports import ReportBuilder
from finance_engine.services.savings import SavingsProgressCalculator
from finance_engine.services.storage import (
    AuditStorageInterface,
    DuplicateError,
    InMemoryAuditStorage,
    InMemoryRepository,
    InMemoryUnitOfWork,
    NotFoundError,
    Repository,
    StorageError,
    TransientStorageError,
    UnitOfWork,
    normalize_schedule,
)

__all__ = [
    # Engine components
    "AccountLedger",
    "AmortizationEngine",
    "BillSplitSettlement",
    "BudgetProgressAggregator",
    "CashflowForecastEngine",
    "CurrencyConverter",
    "LoanCalculator",
    "ReportBuilder",
    "SavingsProgressCalculator",
    "advance",
    "expand",
    "period_end",
    # Storage
    "AuditStorageInterface",
    "DuplicateError",
    "InMemoryAuditStorage",
    "InMemoryRepository",
    "InMemoryUnitOfWork",
    "NotFoundError",
    "Repository",
    "StorageError",
    "TransientStorageError",
    "UnitOfWork",
    "normalize_schedule",
]
