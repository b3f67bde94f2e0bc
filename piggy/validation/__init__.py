"""Input validation package."""

from piggy.validation.validator import (
    ExpenseValidator,
    ValidationError,
    ValidationIssue,
)

__all__ = ["ExpenseValidator", "ValidationError", "ValidationIssue"]
