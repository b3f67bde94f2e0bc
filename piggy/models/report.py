"""
Report Models

Plain data returned by the Aggregator to reporting screens.
No UI concerns live here: amounts are Decimals, labels are strings.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field

from piggy.models.expense import Expense, ExpenseCategory, PaymentMethod


class ReportWindow(str, Enum):
    """Time range a report covers, always ending at `now`."""
    WEEKLY = "weekly"    # [now - 7 days, now]
    MONTHLY = "monthly"  # [first day of now's month, now]
    YEARLY = "yearly"    # [January 1 of now's year, now]


class CategoryTotal(BaseModel):
    """Sum of amounts for one category."""

    category: ExpenseCategory
    amount: Decimal
    count: int = Field(ge=0)


class AggregateReport(BaseModel):
    """
    Totals for one window.

    INVARIANT: total == sum(by_payment_method) == sum(by_category).
    """

    window: ReportWindow
    start: datetime
    end: datetime

    # Every payment method is present, zero when unused
    by_payment_method: dict[PaymentMethod, Decimal]
    # Largest first; equal amounts keep first-encountered order
    by_category: list[CategoryTotal] = Field(default_factory=list)
    total: Decimal = Decimal("0")

    expense_count: int = Field(default=0, ge=0)
    undated_count: int = Field(
        default=0,
        ge=0,
        description="Records with no time field, excluded from every window"
    )

    def category_amount(self, category: ExpenseCategory) -> Decimal:
        for entry in self.by_category:
            if entry.category == category:
                return entry.amount
        return Decimal("0")

    def describe(self) -> str:
        """Human-readable label for the window, e.g. 'This week (12 Oct - 18 Oct 2026)'."""
        start, end = self.start, self.end
        if self.window == ReportWindow.WEEKLY:
            if start.year == end.year:
                span = f"{start.strftime('%d %b')} - {end.strftime('%d %b %Y')}"
            else:
                span = f"{start.strftime('%d %b %Y')} - {end.strftime('%d %b %Y')}"
            return f"This week ({span})"
        if self.window == ReportWindow.MONTHLY:
            return f"This month ({end.strftime('%B %Y')})"
        return f"This year ({end.year})"


class PaymentMethodSection(BaseModel):
    """One payment method's expenses, newest first, with their total."""

    payment_method: PaymentMethod
    expenses: list[Expense] = Field(default_factory=list)
    total: Decimal = Decimal("0")

    @property
    def count(self) -> int:
        return len(self.expenses)
