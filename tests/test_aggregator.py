"""
Tests for report aggregation

Reports are computed from plain lists of Expense, so no store is needed
except for the report() convenience wrapper.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from conftest import NOW, login_as
from piggy.models.expense import Expense, ExpenseCategory, ExpenseDraft, PaymentMethod
from piggy.models.report import ReportWindow
from piggy.reports import Aggregator, window_bounds


def expense(
    expense_id: str,
    amount: str,
    created_at=NOW,
    payment_method: PaymentMethod = PaymentMethod.CASH,
    category: ExpenseCategory = ExpenseCategory.FOOD,
) -> Expense:
    return Expense(
        id=expense_id,
        title=f"Expense {expense_id}",
        amount=amount,
        payment_method=payment_method,
        category=category,
        user_id="alice",
        created_at=created_at,
    )


class TestWindowBounds:
    """Tests for window_bounds."""

    def test_weekly_is_seven_days_back(self):
        start, end = window_bounds(ReportWindow.WEEKLY, NOW)
        assert start == NOW - timedelta(days=7)
        assert end == NOW

    def test_monthly_starts_on_the_first(self):
        start, _ = window_bounds(ReportWindow.MONTHLY, NOW)
        assert start == datetime(2026, 10, 1, tzinfo=timezone.utc)

    def test_yearly_starts_on_january_first(self):
        start, _ = window_bounds(ReportWindow.YEARLY, NOW)
        assert start == datetime(2026, 1, 1, tzinfo=timezone.utc)

    def test_calendar_boundaries_use_nows_timezone(self):
        plus_two = timezone(timedelta(hours=2))
        now = datetime(2026, 10, 1, 1, 0, tzinfo=plus_two)
        start, _ = window_bounds(ReportWindow.MONTHLY, now)
        assert start == datetime(2026, 10, 1, tzinfo=plus_two)
        assert start == datetime(2026, 9, 30, 22, 0, tzinfo=timezone.utc)

    def test_naive_now_is_utc(self):
        start, end = window_bounds(ReportWindow.YEARLY, datetime(2026, 10, 18, 12, 0))
        assert end.tzinfo == timezone.utc
        assert start == datetime(2026, 1, 1, tzinfo=timezone.utc)


class TestAggregate:
    """Tests for Aggregator.aggregate."""

    def setup_method(self):
        self.aggregator = Aggregator(clock=lambda: NOW)

    def test_weekly_boundary_is_inclusive(self):
        """A record exactly seven days old is in; one second older is out."""
        snapshot = [
            expense("edge", "10", created_at=NOW - timedelta(days=7)),
            expense("old", "99", created_at=NOW - timedelta(days=7, seconds=1)),
            expense("now", "1", created_at=NOW),
        ]
        report = self.aggregator.aggregate(snapshot, ReportWindow.WEEKLY)
        assert report.total == Decimal("11")
        assert report.expense_count == 2

    def test_future_records_are_excluded(self):
        snapshot = [expense("later", "5", created_at=NOW + timedelta(seconds=1))]
        report = self.aggregator.aggregate(snapshot, ReportWindow.YEARLY)
        assert report.total == 0

    def test_monthly_window(self):
        snapshot = [
            expense("this-month", "8", created_at=datetime(2026, 10, 1, tzinfo=timezone.utc)),
            expense("last-month", "50", created_at=datetime(2026, 9, 30, 23, 59, tzinfo=timezone.utc)),
        ]
        report = self.aggregator.aggregate(snapshot, ReportWindow.MONTHLY)
        assert report.total == Decimal("8")

    def test_yearly_window(self):
        snapshot = [
            expense("jan", "3", created_at=datetime(2026, 1, 1, tzinfo=timezone.utc)),
            expense("dec", "4", created_at=datetime(2025, 12, 31, 23, 0, tzinfo=timezone.utc)),
        ]
        report = self.aggregator.aggregate(snapshot, ReportWindow.YEARLY)
        assert report.total == Decimal("3")

    def test_every_payment_method_present(self):
        report = self.aggregator.aggregate([], ReportWindow.WEEKLY)
        assert set(report.by_payment_method) == set(PaymentMethod)
        assert all(amount == 0 for amount in report.by_payment_method.values())
        assert report.by_category == []
        assert report.total == 0

    def test_totals_agree_exactly(self):
        """Payment-method, category and overall totals match with no drift."""
        snapshot = [
            expense("1", "0.1", payment_method=PaymentMethod.CASH, category=ExpenseCategory.FOOD),
            expense("2", "0.2", payment_method=PaymentMethod.CREDIT_CARD, category=ExpenseCategory.BILLS),
            expense("3", "0.7", payment_method=PaymentMethod.DEBIT_CARD, category=ExpenseCategory.FOOD),
            expense("4", "-0.3", payment_method=PaymentMethod.CASH, category=ExpenseCategory.HEALTH),
        ]
        report = self.aggregator.aggregate(snapshot, ReportWindow.WEEKLY)
        assert report.total == Decimal("0.7")
        assert sum(report.by_payment_method.values()) == report.total
        assert sum(c.amount for c in report.by_category) == report.total
        assert report.by_payment_method[PaymentMethod.CASH] == Decimal("-0.2")

    def test_categories_largest_first(self):
        snapshot = [
            expense("1", "5", category=ExpenseCategory.FOOD),
            expense("2", "30", category=ExpenseCategory.TRAVEL),
            expense("3", "7", category=ExpenseCategory.FOOD),
        ]
        report = self.aggregator.aggregate(snapshot, ReportWindow.WEEKLY)
        assert [(c.category, c.amount, c.count) for c in report.by_category] == [
            (ExpenseCategory.TRAVEL, Decimal("30"), 1),
            (ExpenseCategory.FOOD, Decimal("12"), 2),
        ]
        assert report.category_amount(ExpenseCategory.FOOD) == Decimal("12")
        assert report.category_amount(ExpenseCategory.BILLS) == 0

    def test_ties_keep_first_encountered_order(self):
        snapshot = [
            expense("1", "10", category=ExpenseCategory.SHOPPING),
            expense("2", "10", category=ExpenseCategory.BILLS),
            expense("3", "10", category=ExpenseCategory.HEALTH),
        ]
        report = self.aggregator.aggregate(snapshot, ReportWindow.WEEKLY)
        assert [c.category for c in report.by_category] == [
            ExpenseCategory.SHOPPING,
            ExpenseCategory.BILLS,
            ExpenseCategory.HEALTH,
        ]

    def test_undated_records_are_counted_not_summed(self):
        snapshot = [
            expense("dated", "4"),
            Expense.model_validate({"id": "legacy", "title": "Old", "amount": 100}),
        ]
        report = self.aggregator.aggregate(snapshot, ReportWindow.YEARLY)
        assert report.total == Decimal("4")
        assert report.undated_count == 1
        assert report.expense_count == 1

    def test_explicit_now_overrides_clock(self):
        snapshot = [expense("1", "2", created_at=NOW - timedelta(days=30))]
        later = self.aggregator.aggregate(snapshot, ReportWindow.WEEKLY)
        earlier = self.aggregator.aggregate(
            snapshot, ReportWindow.WEEKLY, now=NOW - timedelta(days=29)
        )
        assert later.total == 0
        assert earlier.total == Decimal("2")


class TestDescribe:
    """Tests for AggregateReport.describe."""

    def setup_method(self):
        self.aggregator = Aggregator(clock=lambda: NOW)

    @pytest.mark.parametrize("window, label", [
        (ReportWindow.WEEKLY, "This week (11 Oct - 18 Oct 2026)"),
        (ReportWindow.MONTHLY, "This month (October 2026)"),
        (ReportWindow.YEARLY, "This year (2026)"),
    ])
    def test_labels(self, window, label):
        assert self.aggregator.aggregate([], window).describe() == label

    def test_week_spanning_new_year(self):
        now = datetime(2027, 1, 3, 9, 0, tzinfo=timezone.utc)
        report = self.aggregator.aggregate([], ReportWindow.WEEKLY, now=now)
        assert report.describe() == "This week (27 Dec 2026 - 03 Jan 2027)"


class TestSections:
    """Tests for Aggregator.sections."""

    def test_grouped_by_payment_method_newest_first(self):
        snapshot = [
            expense("cash-old", "1", created_at=NOW - timedelta(days=40)),
            expense("card", "20", payment_method=PaymentMethod.CREDIT_CARD),
            expense("cash-new", "2", created_at=NOW),
        ]
        sections = Aggregator().sections(snapshot)

        assert [s.payment_method for s in sections] == [
            PaymentMethod.CASH,
            PaymentMethod.CREDIT_CARD,
            PaymentMethod.DEBIT_CARD,
        ]
        cash, credit, debit = sections
        assert [e.id for e in cash.expenses] == ["cash-new", "cash-old"]
        assert cash.total == Decimal("3")
        assert credit.count == 1
        assert debit.count == 0
        assert debit.total == 0


class TestReportFromStore:
    """Tests for Aggregator.report against a live ledger."""

    def test_report_uses_active_users_snapshot(self, ledger, session):
        aggregator = Aggregator(clock=lambda: NOW)

        async def scenario():
            login_as(session, "alice")
            await ledger.create(ExpenseDraft(title="Coffee", amount="4.5", category="Food"))
            login_as(session, "bob")
            await ledger.create(ExpenseDraft(
                title="Flight", amount="300", payment_method="Credit Card", category="Travel",
            ))
            bob = await aggregator.report(ledger, ReportWindow.WEEKLY)
            login_as(session, "alice")
            alice = await aggregator.report(ledger, ReportWindow.WEEKLY)
            return alice, bob

        alice, bob = asyncio.run(scenario())
        assert alice.total == Decimal("4.5")
        assert alice.by_payment_method[PaymentMethod.CASH] == Decimal("4.5")
        assert bob.total == Decimal("300")
        assert bob.by_payment_method[PaymentMethod.CREDIT_CARD] == Decimal("300")
        assert bob.by_category[0].category == ExpenseCategory.TRAVEL
