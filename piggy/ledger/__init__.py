"""Ledger package: dual-store writes and live synchronization."""

from piggy.ledger.store import LedgerStore
from piggy.ledger.sync import SubscriptionError, SyncState, SyncSubscriber
from piggy.ledger.working_set import newest_first, scope_to_user, scoped_view

__all__ = [
    "LedgerStore",
    "SubscriptionError",
    "SyncState",
    "SyncSubscriber",
    "newest_first",
    "scope_to_user",
    "scoped_view",
]
