"""
Data Models Package

This package contains all Pydantic models used by the finance engine.
All data flowing through the engine must conform to these schemas.
"""

from finance_engine.models.account import (
    Account,
    AccountStatus,
    AccountType,
    CreditCardDetails,
    Transaction,
    TransactionSource,
    TransactionStatus,
    TransactionType,
)
from finance_engine.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from finance_engine.models.bill_split import (
    BillSplit,
    BillSplitParticipant,
    BillSplitStatus,
)
from finance_engine.models.common import CalendarDate, CurrencyCode, Money, new_id
from finance_engine.models.contact import Contact
from finance_engine.models.forecast import (
    CashflowForecast,
    CashflowForecastEntry,
    ForecastHighlight,
)
from finance_engine.models.loan import (
    AmortizationEntry,
    Loan,
    LoanDirection,
    LoanHorizon,
    LoanPayment,
    LoanStatus,
    LoanTerms,
)
from finance_engine.models.planning import (
    Budget,
    BudgetCategoryAllocation,
    BudgetPeriod,
    BudgetProgress,
    RecurrenceCadence,
    RecurrenceRule,
    RecurringItem,
    RecurringItemType,
    SavingsContribution,
    SavingsGoal,
    SavingsProgress,
)
from finance_engine.models.reports import (
    BudgetVsActualPoint,
    CategorySpending,
    ContactBalance,
    ContactSummary,
    CreditCardUtilizationPoint,
    IncomeExpenseTrendPoint,
    ReportBundle,
)
from finance_engine.models.validation import IssueSeverity, ValidationIssue, ValidationResult

__all__ = [
    "IssueSeverity",
    # Ledger models
    "Account",
    "AccountStatus",
    "AccountType",
    "CreditCardDetails",
    "Transaction",
    "TransactionSource",
    "TransactionStatus",
    "TransactionType",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
    # Bill splits
    "BillSplit",
    "BillSplitParticipant",
    "BillSplitStatus",
    # Shared types
    "CalendarDate",
    "CurrencyCode",
    "Money",
    "new_id",
    "Contact",
    # Forecast
    "CashflowForecast",
    "CashflowForecastEntry",
    "ForecastHighlight",
    # Loans
    "AmortizationEntry",
    "Loan",
    "LoanDirection",
    "LoanHorizon",
    "LoanPayment",
    "LoanStatus",
    "LoanTerms",
    # Planning
    "Budget",
    "BudgetCategoryAllocation",
    "BudgetPeriod",
    "BudgetProgress",
    "RecurrenceCadence",
    "RecurrenceRule",
    "RecurringItem",
    "RecurringItemType",
    "SavingsContribution",
    "SavingsGoal",
    "SavingsProgress",
    # Reports
    "BudgetVsActualPoint",
    "CategorySpending",
    "ContactBalance",
    "ContactSummary",
    "CreditCardUtilizationPoint",
    "IncomeExpenseTrendPoint",
    "ReportBundle",
    # Validation
    "ValidationIssue",
    "ValidationResult",
]
