"""
Report Aggregator

DESIGN DECISION: Aggregation is a pure function of a snapshot.
It never touches a store, so every report can be recomputed from the
same working set the user is looking at.

Windows are closed at both ends and always finish at `now`:
- WEEKLY:  [now - 7 days, now]
- MONTHLY: [first day of now's month, 00:00, now]
- YEARLY:  [January 1 of now's year, 00:00, now]

Calendar boundaries are taken in now's own timezone. Undated records
fall outside every window and are only counted.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Callable, Iterable, Optional

from piggy.ledger.store import LedgerStore
from piggy.ledger.working_set import newest_first
from piggy.models.expense import Expense, ExpenseCategory, PaymentMethod, utc_now
from piggy.models.report import (
    AggregateReport,
    CategoryTotal,
    PaymentMethodSection,
    ReportWindow,
)


def window_bounds(window: ReportWindow, now: datetime) -> tuple[datetime, datetime]:
    """Start and end (both inclusive) of a report window ending at `now`."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    midnight = {"hour": 0, "minute": 0, "second": 0, "microsecond": 0}
    if window == ReportWindow.WEEKLY:
        start = now - timedelta(days=7)
    elif window == ReportWindow.MONTHLY:
        start = now.replace(day=1, **midnight)
    elif window == ReportWindow.YEARLY:
        start = now.replace(month=1, day=1, **midnight)
    else:
        raise ValueError(f"Unknown report window: {window!r}")
    return start, now


class Aggregator:
    """
    Computes payment-method and category totals over a window.

    GUARANTEES:
    - total == sum(by_payment_method) == sum(by_category), exactly
      (amounts are Decimals, so no float drift between groupings)
    - by_category is largest first; ties keep first-encountered order
    """

    def __init__(self, clock: Callable[[], datetime] = utc_now):
        self._clock = clock

    def aggregate(
        self,
        snapshot: Iterable[Expense],
        window: ReportWindow,
        now: Optional[datetime] = None,
    ) -> AggregateReport:
        start, end = window_bounds(window, now or self._clock())

        by_method = {method: Decimal("0") for method in PaymentMethod}
        # dicts keep insertion order: first-encountered category first
        by_category: dict[ExpenseCategory, CategoryTotal] = {}
        total = Decimal("0")
        included = 0
        undated = 0

        for expense in snapshot:
            if expense.created_at is None:
                undated += 1
                continue
            if not (start <= expense.created_at <= end):
                continue

            included += 1
            total += expense.amount
            by_method[expense.payment_method] += expense.amount

            category = expense.category or ExpenseCategory.OTHER
            entry = by_category.get(category)
            if entry is None:
                by_category[category] = CategoryTotal(
                    category=category,
                    amount=expense.amount,
                    count=1,
                )
            else:
                entry.amount += expense.amount
                entry.count += 1

        ranked = sorted(by_category.values(), key=lambda c: c.amount, reverse=True)

        return AggregateReport(
            window=window,
            start=start,
            end=end,
            by_payment_method=by_method,
            by_category=ranked,
            total=total,
            expense_count=included,
            undated_count=undated,
        )

    async def report(
        self,
        store: LedgerStore,
        window: ReportWindow,
        now: Optional[datetime] = None,
    ) -> AggregateReport:
        """Aggregate the active user's current snapshot."""
        return self.aggregate(await store.snapshot(), window, now)

    def sections(self, snapshot: Iterable[Expense]) -> list[PaymentMethodSection]:
        """
        Group a snapshot by payment method for the home view.

        Sections come in Cash, Credit Card, Debit Card order; each lists
        its expenses newest first. Not windowed.
        """
        ordered = newest_first(snapshot)
        sections = []
        for method in PaymentMethod:
            expenses = [e for e in ordered if e.payment_method == method]
            sections.append(PaymentMethodSection(
                payment_method=method,
                expenses=expenses,
                total=sum((e.amount for e in expenses), Decimal("0")),
            ))
        return sections
