"""
Local Expense Store

The on-device copy of the ledger, kept as one JSON list under a single
session-store key (the same `expenses` key older app revisions used).

Every remote write is mirrored here, and writes that could not reach the
remote land only here. Records already in the list from older revisions
have no `origin` and were never synced, so they read back as local.
"""

import json
from typing import Optional

import structlog

from piggy.models.expense import Expense, ExpenseOrigin, parse_expense_records
from piggy.services.storage.interface import (
    LocalExpenseStoreInterface,
    LocalPersistenceError,
    SessionStoreInterface,
)


class LocalExpenseStore(LocalExpenseStoreInterface):
    """Expense list persisted through a session store."""

    def __init__(
        self,
        session_store: SessionStoreInterface,
        key: str = "expenses",
    ):
        self._session = session_store
        self._key = key
        self._logger = structlog.get_logger(__name__)

    async def _load_raw(self) -> list[dict]:
        text = await self._session.get(self._key)
        if not text:
            return []
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise LocalPersistenceError(f"Local expense list is corrupted: {e}")
        if not isinstance(data, list):
            raise LocalPersistenceError("Local expense list is not a JSON array")
        return data

    async def _save_raw(self, records: list[dict]) -> None:
        await self._session.set(self._key, json.dumps(records, ensure_ascii=False))

    async def list(self) -> list[Expense]:
        records = await self._load_raw()
        expenses, problems = parse_expense_records(records, ExpenseOrigin.LOCAL)
        for problem in problems:
            self._logger.warning("local_record_skipped", key=self._key, problem=problem)
        return expenses

    async def get(self, expense_id: str) -> Optional[Expense]:
        for expense in await self.list():
            if expense.id == expense_id:
                return expense
        return None

    async def upsert(self, expense: Expense) -> None:
        records = await self._load_raw()
        record = expense.to_record()

        for idx, existing in enumerate(records):
            if isinstance(existing, dict) and str(existing.get("id")) == expense.id:
                records[idx] = record
                break
        else:
            records.append(record)

        await self._save_raw(records)

    async def delete(self, expense_id: str) -> bool:
        records = await self._load_raw()
        kept = [
            r for r in records
            if not (isinstance(r, dict) and str(r.get("id")) == expense_id)
        ]
        if len(kept) == len(records):
            return False
        await self._save_raw(kept)
        return True
