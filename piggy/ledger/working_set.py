"""
Working Set Helpers

Scoping and ordering shared by the ledger store and the sync subscriber.
Both must agree exactly on what "the active user's ledger, newest first"
means, so the rules live in one place.
"""

from typing import Iterable

from piggy.models.expense import Expense


def scope_to_user(
    expenses: Iterable[Expense],
    scope_id: str,
    anonymous_user_id: str,
) -> list[Expense]:
    """
    Keep only the records owned by `scope_id`.

    Records with no owner belong to the anonymous bucket.
    """
    return [e for e in expenses if (e.user_id or anonymous_user_id) == scope_id]


def newest_first(expenses: Iterable[Expense]) -> list[Expense]:
    """
    Order by the canonical time field, newest first.

    Undated records go last in their incoming order; equal timestamps
    also keep their incoming order.
    """
    expenses = list(expenses)
    dated = [e for e in expenses if e.created_at is not None]
    undated = [e for e in expenses if e.created_at is None]
    dated.sort(key=lambda e: e.created_at, reverse=True)
    return dated + undated


def scoped_view(
    expenses: Iterable[Expense],
    scope_id: str,
    anonymous_user_id: str,
) -> list[Expense]:
    return newest_first(scope_to_user(expenses, scope_id, anonymous_user_id))
