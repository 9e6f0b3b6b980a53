"""Validation package."""

from finance_engine.validation.validator import InputValidator, require_valid

__all__ = ["InputValidator", "require_valid"]
