"""
Expense Input Validation

DESIGN DECISION: Validation runs before any store is touched.
A draft that fails here never reaches Remote or Local, and the caller
gets every problem at once rather than the first one.

Checks are deliberately shallow. Amounts must parse as numbers but carry
no sign or range rule; the ledger stores what the user typed.
"""

from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel

from piggy.models.expense import (
    ExpenseCategory,
    ExpenseDraft,
    ExpensePatch,
    PaymentMethod,
    TITLE_MAX_LENGTH,
    parse_amount,
)


class ValidationIssue(BaseModel):
    """A single problem with user input."""

    field: str
    message: str


class ValidationError(Exception):
    """User input was rejected before any I/O."""

    def __init__(self, issues: list[ValidationIssue]):
        self.issues = issues
        summary = "; ".join(f"{issue.field}: {issue.message}" for issue in issues)
        super().__init__(f"Invalid expense: {summary}")

    @property
    def fields(self) -> list[str]:
        return [issue.field for issue in self.issues]


class ExpenseValidator:
    """
    Turns raw drafts and patches into clean field values.

    Returned dicts use Expense field names and typed values, ready to be
    merged into an Expense.
    """

    def _check_title(self, value: Any, issues: list[ValidationIssue]) -> Optional[str]:
        if value is None or not str(value).strip():
            issues.append(ValidationIssue(field="title", message="Title is required"))
            return None
        title = str(value).strip()
        if len(title) > TITLE_MAX_LENGTH:
            issues.append(ValidationIssue(
                field="title",
                message=f"Title must be at most {TITLE_MAX_LENGTH} characters",
            ))
            return None
        return title

    def _check_amount(self, value: Any, issues: list[ValidationIssue]) -> Optional[Decimal]:
        if value is None or (isinstance(value, str) and not value.strip()):
            issues.append(ValidationIssue(field="amount", message="Amount is required"))
            return None
        try:
            return parse_amount(value)
        except ValueError as e:
            issues.append(ValidationIssue(field="amount", message=str(e)))
            return None

    def _check_payment_method(
        self,
        value: Any,
        issues: list[ValidationIssue],
    ) -> Optional[PaymentMethod]:
        try:
            return PaymentMethod(value)
        except ValueError:
            allowed = ", ".join(m.value for m in PaymentMethod)
            issues.append(ValidationIssue(
                field="payment_method",
                message=f"Unknown payment method {value!r}. Allowed: {allowed}",
            ))
            return None

    def _check_category(
        self,
        value: Any,
        issues: list[ValidationIssue],
    ) -> Optional[ExpenseCategory]:
        if value is None or (isinstance(value, str) and not value.strip()):
            issues.append(ValidationIssue(field="category", message="Category is required"))
            return None
        try:
            return ExpenseCategory(value)
        except ValueError:
            allowed = ", ".join(c.value for c in ExpenseCategory)
            issues.append(ValidationIssue(
                field="category",
                message=f"Unknown category {value!r}. Allowed: {allowed}",
            ))
            return None

    def validate_draft(self, draft: ExpenseDraft) -> dict[str, Any]:
        """
        Validate input from the "add expense" flow.

        Raises:
            ValidationError: listing every missing or malformed field
        """
        issues: list[ValidationIssue] = []
        clean = {
            "title": self._check_title(draft.title, issues),
            "amount": self._check_amount(draft.amount, issues),
            "payment_method": self._check_payment_method(
                draft.payment_method or PaymentMethod.CASH.value, issues
            ),
            "category": self._check_category(draft.category, issues),
        }
        if issues:
            raise ValidationError(issues)
        return clean

    def validate_patch(self, patch: ExpensePatch) -> dict[str, Any]:
        """
        Validate the fields an edit supplies. Omitted fields are not checked.

        Raises:
            ValidationError: if any supplied field is malformed
        """
        issues: list[ValidationIssue] = []
        changes = patch.changes()
        clean: dict[str, Any] = {}
        if "title" in changes:
            clean["title"] = self._check_title(changes["title"], issues)
        if "amount" in changes:
            clean["amount"] = self._check_amount(changes["amount"], issues)
        if "payment_method" in changes:
            clean["payment_method"] = self._check_payment_method(changes["payment_method"], issues)
        if "category" in changes:
            clean["category"] = self._check_category(changes["category"], issues)
        if issues:
            raise ValidationError(issues)
        return clean
