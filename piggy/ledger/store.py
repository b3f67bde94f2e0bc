"""
Ledger Store

Orchestrates expense writes across the remote and local stores and owns
the in-memory working set that screens read from.

Write discipline: best effort remote, guaranteed local.
- create/update try Remote first. On success the record is mirrored to
  Local as a backup. If Remote is unreachable the record is written to
  Local only and the caller is not told; the fallback is audited.
- delete tries Remote, then always removes from Local. A record whose
  remote delete failed can reappear on the next full remote sync.
- Only Local failures reach the caller, because nothing sits below Local.

The two stores are written one after the other with no transaction, so
there is a short window in which they disagree. The working set is
replaced wholesale by the sync subscriber; whichever write or snapshot
lands last defines what the user sees.
"""

from datetime import datetime
from typing import Callable, Iterable, Optional
from uuid import uuid4

import structlog

from piggy.audit import AuditLogger
from piggy.identity import IdentityResolver
from piggy.ledger.working_set import scoped_view
from piggy.models.expense import (
    Expense,
    ExpenseDraft,
    ExpenseOrigin,
    ExpensePatch,
    utc_now,
)
from piggy.services.storage.interface import (
    LocalExpenseStoreInterface,
    LocalPersistenceError,
    NotFoundError,
    RemoteExpenseStoreInterface,
    RemoteUnavailableError,
)
from piggy.validation import ExpenseValidator, ValidationError


class LedgerStore:
    """
    The single read/write surface for expenses.

    Adapters are injected; the store keeps no global state.
    """

    def __init__(
        self,
        remote: RemoteExpenseStoreInterface,
        local: LocalExpenseStoreInterface,
        identity: IdentityResolver,
        collection: str = "expenses",
        validator: Optional[ExpenseValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._remote = remote
        self._local = local
        self._identity = identity
        self._collection = collection
        self._validator = validator or ExpenseValidator()
        self._audit_logger = audit_logger
        self._clock = clock
        self._logger = structlog.get_logger(__name__)

        self._working_set: list[Expense] = []
        self._generation = 0

    @property
    def collection(self) -> str:
        return self._collection

    @property
    def generation(self) -> int:
        """Bumped on every change to the working set."""
        return self._generation

    # -------------------------------------------------------------------------
    # Working set
    # -------------------------------------------------------------------------

    def replace_working_set(self, expenses: Iterable[Expense]) -> None:
        """Swap in a whole new working set. Never patches the old one."""
        self._working_set = list(expenses)
        self._generation += 1

    def _put(self, expense: Expense) -> None:
        others = [e for e in self._working_set if e.id != expense.id]
        self.replace_working_set([expense] + others)

    def _drop(self, expense_id: str) -> None:
        self.replace_working_set(e for e in self._working_set if e.id != expense_id)

    async def snapshot(self) -> list[Expense]:
        """The active user's expenses, newest first."""
        scope = await self._identity.scope_id()
        return scoped_view(self._working_set, scope, self._identity.anonymous_user_id)

    async def get(self, expense_id: str) -> Expense:
        """
        Look up one expense in the active user's snapshot.

        Raises:
            NotFoundError: if the id is not visible to the active user
        """
        scope = await self._identity.scope_id()
        return self._find(expense_id, scope)

    def _find(self, expense_id: str, scope: str) -> Expense:
        for expense in scoped_view(self._working_set, scope, self._identity.anonymous_user_id):
            if expense.id == expense_id:
                return expense
        raise NotFoundError(f"Expense not found: {expense_id}")

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    async def _mirror(self, expense: Expense) -> None:
        """Back up a remotely stored record. Remote already holds it, so failures are logged only."""
        try:
            await self._local.upsert(expense)
        except LocalPersistenceError as e:
            self._logger.warning("local_mirror_failed", expense_id=expense.id, error=str(e))
            if self._audit_logger:
                await self._audit_logger.log_local_mirror_failed(
                    expense.id, expense.user_id or "", str(e)
                )

    async def _reject(self, error: ValidationError) -> None:
        if self._audit_logger:
            await self._audit_logger.log_validation_failed(
                [issue.model_dump() for issue in error.issues],
                user_id=None,
            )

    async def create(self, draft: ExpenseDraft) -> Expense:
        """
        Add a new expense for the active user.

        Raises:
            ValidationError: title, amount or category missing/malformed
            LocalPersistenceError: Remote was unreachable and Local failed too
        """
        try:
            fields = self._validator.validate_draft(draft)
        except ValidationError as e:
            await self._reject(e)
            raise

        user_id = await self._identity.scope_id()
        pending = dict(fields, user_id=user_id, created_at=self._clock())

        try:
            body = Expense(id="pending", **pending).to_record(include_id=False)
            remote_id = await self._remote.write(self._collection, body)
        except RemoteUnavailableError as e:
            expense = Expense(id=f"local-{uuid4().hex}", origin=ExpenseOrigin.LOCAL, **pending)
            await self._local.upsert(expense)
            self._logger.warning("remote_create_failed", expense_id=expense.id, error=str(e))
            if self._audit_logger:
                await self._audit_logger.log_remote_write_failed(
                    expense.id, user_id, "create", str(e)
                )
        else:
            expense = Expense(id=remote_id, origin=ExpenseOrigin.REMOTE, **pending)
            await self._mirror(expense)

        self._put(expense)
        if self._audit_logger:
            await self._audit_logger.log_expense_created(expense.id, user_id, expense.origin.value)
        return expense

    async def update(self, expense_id: str, patch: ExpensePatch) -> Expense:
        """
        Replace an expense with its edited version.

        Locally originated records were never stored remotely and are
        updated in Local only. Their origin tag is kept either way.

        Raises:
            ValidationError: a supplied field is malformed
            NotFoundError: the id is not in the active user's snapshot,
                or Remote no longer has the document
            LocalPersistenceError: the local write failed with no remote copy
        """
        try:
            changes = self._validator.validate_patch(patch)
        except ValidationError as e:
            await self._reject(e)
            raise

        scope = await self._identity.scope_id()
        current = self._find(expense_id, scope)
        updated = current.model_copy(update=changes)

        if current.is_local_only:
            await self._local.upsert(updated)
        else:
            try:
                await self._remote.update(
                    self._collection,
                    expense_id,
                    updated.to_record(include_id=False),
                )
            except RemoteUnavailableError as e:
                await self._local.upsert(updated)
                self._logger.warning("remote_update_failed", expense_id=expense_id, error=str(e))
                if self._audit_logger:
                    await self._audit_logger.log_remote_write_failed(
                        expense_id, scope, "update", str(e)
                    )
            else:
                await self._mirror(updated)

        self._put(updated)
        if self._audit_logger:
            await self._audit_logger.log_expense_updated(expense_id, scope, sorted(changes))
        return updated

    async def delete(self, expense_id: str) -> None:
        """
        Remove an expense from both stores and the working set.

        Raises:
            NotFoundError: the id is not in the active user's snapshot
            LocalPersistenceError: the local delete failed
        """
        scope = await self._identity.scope_id()
        current = self._find(expense_id, scope)

        remote_deleted = True
        if not current.is_local_only:
            try:
                await self._remote.delete(self._collection, expense_id)
            except RemoteUnavailableError as e:
                remote_deleted = False
                self._logger.warning("remote_delete_failed", expense_id=expense_id, error=str(e))
                if self._audit_logger:
                    await self._audit_logger.log_remote_delete_failed(expense_id, scope, str(e))

        self._drop(expense_id)
        await self._local.delete(expense_id)

        if self._audit_logger:
            await self._audit_logger.log_expense_deleted(expense_id, scope, remote_deleted)
