"""Validation result models shared by the engine and its callers."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class IssueSeverity(str, Enum):
    """Only ERROR blocks an operation."""
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class ValidationIssue(BaseModel):
    """One rule an engine input broke."""

    field: str = Field(
        ...,
        description="Input field the rule applies to (e.g., 'amount', 'shares')"
    )
    issue_type: str = Field(
        ...,
        description="Rule category: 'missing', 'invalid_value', 'duplicate' or 'inconsistent'"
    )
    message: str = Field(..., description="Shown to the user as-is")
    severity: IssueSeverity = IssueSeverity.ERROR
    suggested_fix: Optional[str] = None


class ValidationResult(BaseModel):
    """Every issue found while checking one engine input."""

    entity_type: str = Field(
        ...,
        description="Kind of input validated (e.g., 'transaction', 'bill_split')"
    )
    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def errors(self) -> list[ValidationIssue]:
        return [issue for issue in self.issues if issue.severity == IssueSeverity.ERROR]

    @property
    def is_valid(self) -> bool:
        return not self.has_errors

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    @property
    def error_count(self) -> int:
        return len(self.errors)
