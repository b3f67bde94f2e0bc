"""
Sync Subscriber

Keeps the ledger's working set in step with the remote collection.

State machine:

    IDLE -> SUBSCRIBING -> LIVE --(error)--> ERROR -> DEGRADED
      any state --stop()--> STOPPED (terminal)

- Every remote snapshot is filtered to the active user, sorted newest
  first and swapped into the ledger as a whole.
- When the subscription fails, the subscriber reads Local once, publishes
  that as the working set and stays DEGRADED. It does not retry.
- stop() cancels the subscription task. Nothing is published after stop()
  returns, and a stopped subscriber cannot be started again: callers
  create a new one to re-subscribe.

The subscription runs as an asyncio task consuming the remote store's
async iterator. The user is resolved once when the subscription opens.
"""

import asyncio
from contextlib import aclosing
from enum import Enum
from typing import Optional

import structlog

from piggy.audit import AuditLogger
from piggy.identity import IdentityResolver
from piggy.ledger.store import LedgerStore
from piggy.ledger.working_set import scoped_view
from piggy.models.expense import ExpenseOrigin, parse_expense_records
from piggy.services.storage.interface import (
    LocalExpenseStoreInterface,
    LocalPersistenceError,
    RemoteExpenseStoreInterface,
    StorageError,
)


class SyncState(str, Enum):
    """Lifecycle of one subscription."""
    IDLE = "idle"
    SUBSCRIBING = "subscribing"
    LIVE = "live"
    ERROR = "error"
    DEGRADED = "degraded"
    STOPPED = "stopped"


class SubscriptionError(Exception):
    """The subscriber was used out of order (started twice, restarted after stop)."""
    pass


class SyncSubscriber:
    """Feeds the ledger's working set from Remote, or from Local once Remote fails."""

    def __init__(
        self,
        store: LedgerStore,
        remote: RemoteExpenseStoreInterface,
        local: LocalExpenseStoreInterface,
        identity: IdentityResolver,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._remote = remote
        self._local = local
        self._identity = identity
        self._audit_logger = audit_logger
        self._logger = structlog.get_logger(__name__)

        self._state = SyncState.IDLE
        self._task: Optional[asyncio.Task] = None
        self._user_id: Optional[str] = None
        self._snapshots_applied = 0
        self._published = asyncio.Event()
        self._last_error: Optional[str] = None

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def snapshots_applied(self) -> int:
        return self._snapshots_applied

    @property
    def last_error(self) -> Optional[str]:
        return self._last_error

    @property
    def is_stopped(self) -> bool:
        return self._state == SyncState.STOPPED

    async def start(self) -> None:
        """
        Open the live subscription.

        Returns once the subscription task is scheduled; use
        wait_for_snapshot() to wait for the first published working set.

        Raises:
            SubscriptionError: if this subscriber was already started or stopped
        """
        if self._state == SyncState.STOPPED:
            raise SubscriptionError("Subscriber was stopped; create a new one to re-subscribe")
        if self._state != SyncState.IDLE:
            raise SubscriptionError(f"Subscriber already started (state: {self._state.value})")

        self._state = SyncState.SUBSCRIBING
        self._user_id = await self._identity.scope_id()
        if self._state == SyncState.STOPPED:
            return  # stopped while resolving the user

        if self._audit_logger:
            await self._audit_logger.log_sync_started(self._user_id, self._store.collection)
        self._task = asyncio.create_task(self._run(self._user_id))

    async def wait_for_snapshot(self, timeout: Optional[float] = None) -> bool:
        """
        Wait until at least one working set has been published.

        Returns:
            False if the timeout expired first
        """
        try:
            await asyncio.wait_for(self._published.wait(), timeout)
        except asyncio.TimeoutError:
            return False
        return True

    def _publish(self, expenses: list) -> bool:
        """Swap the working set unless the subscriber has been stopped."""
        if self._state == SyncState.STOPPED:
            return False
        self._store.replace_working_set(expenses)
        self._published.set()
        return True

    async def _run(self, user_id: str) -> None:
        anonymous = self._identity.anonymous_user_id
        try:
            async with aclosing(self._remote.subscribe(self._store.collection)) as stream:
                async for records in stream:
                    expenses, problems = parse_expense_records(records, ExpenseOrigin.REMOTE)
                    for problem in problems:
                        self._logger.warning("remote_record_skipped", problem=problem)

                    visible = scoped_view(expenses, user_id, anonymous)
                    if not self._publish(visible):
                        return
                    self._state = SyncState.LIVE
                    self._snapshots_applied += 1
                    if self._audit_logger:
                        await self._audit_logger.log_sync_snapshot(
                            user_id, len(records), len(visible)
                        )
        except StorageError as e:
            if self._state == SyncState.STOPPED:
                return
            self._state = SyncState.ERROR
            self._last_error = str(e)
            self._logger.warning("subscription_failed", error=str(e))
            await self._degrade(user_id, str(e))
        except Exception as e:
            # Nothing awaits this task until stop(); an unexpected failure
            # must still leave the subscriber degraded, not stuck
            if self._state == SyncState.STOPPED:
                return
            self._state = SyncState.ERROR
            self._last_error = f"{type(e).__name__}: {e}"
            self._logger.error("subscription_crashed", error=self._last_error, exc_info=True)
            await self._degrade(user_id, self._last_error)

    async def _degrade(self, user_id: str, error_message: str) -> None:
        """Serve the local copy after the live subscription broke."""
        try:
            expenses = await self._local.list()
        except LocalPersistenceError as e:
            # No store left to read; keep whatever the working set holds
            self._last_error = f"{error_message}; local fallback failed: {e}"
            self._logger.error("local_fallback_failed", error=str(e))
            if self._state != SyncState.STOPPED:
                self._state = SyncState.DEGRADED
                self._published.set()
            return

        visible = scoped_view(expenses, user_id, self._identity.anonymous_user_id)
        if not self._publish(visible):
            return
        self._state = SyncState.DEGRADED
        if self._audit_logger:
            await self._audit_logger.log_sync_degraded(user_id, error_message, len(visible))

    async def stop(self) -> None:
        """Cancel the subscription. Safe to call more than once."""
        if self._state == SyncState.STOPPED:
            return
        self._state = SyncState.STOPPED

        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        if self._audit_logger:
            await self._audit_logger.log_sync_stopped(self._user_id, self._snapshots_applied)
