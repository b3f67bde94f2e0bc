"""Tests for expense input validation."""

import pytest
from decimal import Decimal

from piggy.models.expense import ExpenseCategory, ExpenseDraft, ExpensePatch, PaymentMethod
from piggy.validation import ExpenseValidator, ValidationError


class TestDraftValidation:
    """Tests for ExpenseValidator.validate_draft."""

    def setup_method(self):
        self.validator = ExpenseValidator()

    def test_valid_draft(self):
        clean = self.validator.validate_draft(ExpenseDraft(
            title="Coffee",
            amount="4.5",
            payment_method="Cash",
            category="Food",
        ))
        assert clean == {
            "title": "Coffee",
            "amount": Decimal("4.5"),
            "payment_method": PaymentMethod.CASH,
            "category": ExpenseCategory.FOOD,
        }

    def test_payment_method_defaults_to_cash(self):
        clean = self.validator.validate_draft(
            ExpenseDraft(title="Coffee", amount=3, category="Food")
        )
        assert clean["payment_method"] == PaymentMethod.CASH

    def test_missing_title_and_amount_reported_together(self):
        """Every problem is reported at once."""
        with pytest.raises(ValidationError) as exc_info:
            self.validator.validate_draft(ExpenseDraft(category="Food"))
        assert exc_info.value.fields == ["title", "amount"]

    def test_blank_title_rejected(self):
        with pytest.raises(ValidationError, match="Title is required"):
            self.validator.validate_draft(ExpenseDraft(title="   ", amount=1, category="Food"))

    def test_overlong_title_rejected(self):
        """Titles the stored model cannot hold are refused up front."""
        with pytest.raises(ValidationError, match="at most 200 characters") as exc_info:
            self.validator.validate_draft(
                ExpenseDraft(title="x" * 201, amount=1, category="Food")
            )
        assert exc_info.value.fields == ["title"]

    def test_title_at_limit_accepted(self):
        clean = self.validator.validate_draft(
            ExpenseDraft(title="x" * 200, amount=1, category="Food")
        )
        assert len(clean["title"]) == 200

    def test_blank_amount_rejected(self):
        with pytest.raises(ValidationError, match="Amount is required"):
            self.validator.validate_draft(ExpenseDraft(title="T", amount="", category="Food"))

    def test_non_numeric_amount_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            self.validator.validate_draft(ExpenseDraft(title="T", amount="ten", category="Food"))
        assert exc_info.value.fields == ["amount"]

    def test_negative_amount_accepted(self):
        clean = self.validator.validate_draft(
            ExpenseDraft(title="Refund", amount="-3", category="Other")
        )
        assert clean["amount"] == Decimal("-3")

    def test_category_required_for_new_expenses(self):
        with pytest.raises(ValidationError) as exc_info:
            self.validator.validate_draft(ExpenseDraft(title="T", amount=1))
        assert exc_info.value.fields == ["category"]

    def test_unknown_category_rejected(self):
        with pytest.raises(ValidationError, match="Unknown category"):
            self.validator.validate_draft(ExpenseDraft(title="T", amount=1, category="Pets"))

    def test_unknown_payment_method_rejected(self):
        with pytest.raises(ValidationError, match="Unknown payment method"):
            self.validator.validate_draft(
                ExpenseDraft(title="T", amount=1, category="Food", payment_method="Cheque")
            )


class TestPatchValidation:
    """Tests for ExpenseValidator.validate_patch."""

    def setup_method(self):
        self.validator = ExpenseValidator()

    def test_only_supplied_fields_returned(self):
        assert self.validator.validate_patch(ExpensePatch(amount="6")) == {"amount": Decimal("6")}

    def test_empty_patch_is_valid(self):
        assert self.validator.validate_patch(ExpensePatch()) == {}

    def test_blank_title_rejected(self):
        with pytest.raises(ValidationError):
            self.validator.validate_patch(ExpensePatch(title=""))

    def test_payment_method_alias(self):
        clean = self.validator.validate_patch(ExpensePatch(payment_method="DebitCard"))
        assert clean["payment_method"] == PaymentMethod.DEBIT_CARD

    def test_overlong_title_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            self.validator.validate_patch(ExpensePatch(title="y" * 201))
        assert exc_info.value.fields == ["title"]
