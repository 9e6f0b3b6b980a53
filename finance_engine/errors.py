"""
Engine Error Taxonomy

DESIGN DECISION: Three error families, all raised before any state is touched:

- ValidationError: the caller sent something malformed (missing field,
  non-positive amount, payer not among participants, shares that don't add up).
  Surfaced verbatim to the user.
- ReferenceError: a referenced record (account, contact, loan, goal) does not exist.
- ConsistencyViolation: the engine produced something that breaks its own
  invariants. This is a bug, not user error, and is never silently clamped.

No component retries internally. Everything propagates to the caller.
"""

from typing import Optional

from finance_engine.models.validation import ValidationIssue


class EngineError(Exception):
    """Base exception for the finance engine."""
    pass


class ValidationError(EngineError, ValueError):
    """Input failed validation. Carries the individual issues found."""

    def __init__(self, message: str, issues: Optional[list[ValidationIssue]] = None):
        super().__init__(message)
        self.issues = issues or []

    @classmethod
    def from_issues(cls, issues: list[ValidationIssue]) -> 'ValidationError':
        message = "; ".join(issue.message for issue in issues) or "Validation failed"
        return cls(message, issues)

    @classmethod
    def for_field(cls, field: str, message: str, issue_type: str = "invalid_value") -> 'ValidationError':
        return cls(message, [
            ValidationIssue(
                field=field,
                issue_type=issue_type,
                message=message,
            )
        ])


class ReferenceError(EngineError, LookupError):
    """A referenced entity could not be found."""

    def __init__(self, entity_type: str, entity_id: str):
        super().__init__(f"{entity_type.capitalize()} not found: {entity_id}")
        self.entity_type = entity_type
        self.entity_id = entity_id


class ConsistencyViolation(EngineError, AssertionError):
    """An engine invariant was broken. Indicates a programming error."""
    pass
