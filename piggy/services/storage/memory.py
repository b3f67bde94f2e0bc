"""
In-Process Remote Stores

InMemoryRemoteStore behaves like the remote document store without a
network: it assigns ids, keeps documents per collection and pushes the
full collection to every live subscriber after each change. Availability
can be switched off and live subscriptions broken on demand, which is how
tests exercise the fallback paths.

OfflineRemoteStore is used when no remote backend is configured. Every
call fails with RemoteUnavailableError, so the ledger runs local-only.
"""

import asyncio
from typing import AsyncIterator, List, Optional
from uuid import uuid4

from piggy.services.storage.interface import (
    NotFoundError,
    RemoteExpenseStoreInterface,
    RemoteUnavailableError,
)


class InMemoryRemoteStore(RemoteExpenseStoreInterface):
    """Remote document store held in process memory."""

    def __init__(self):
        self._collections: dict[str, dict[str, dict]] = {}
        self._subscribers: dict[str, list[asyncio.Queue]] = {}
        self.available = True

    def _check_available(self, operation: str) -> None:
        if not self.available:
            raise RemoteUnavailableError(f"Remote store unavailable during {operation}")

    def _documents(self, collection: str) -> list[dict]:
        return [dict(doc) for doc in self._collections.get(collection, {}).values()]

    def _publish(self, collection: str) -> None:
        for queue in self._subscribers.get(collection, []):
            queue.put_nowait(self._documents(collection))

    async def write(self, collection: str, record: dict) -> str:
        self._check_available("write")
        record_id = uuid4().hex
        self._collections.setdefault(collection, {})[record_id] = {**record, "id": record_id}
        self._publish(collection)
        return record_id

    async def update(self, collection: str, record_id: str, record: dict) -> None:
        self._check_available("update")
        documents = self._collections.get(collection, {})
        if record_id not in documents:
            raise NotFoundError(f"Document not found: {collection}/{record_id}")
        documents[record_id] = {**record, "id": record_id}
        self._publish(collection)

    async def delete(self, collection: str, record_id: str) -> None:
        self._check_available("delete")
        if self._collections.get(collection, {}).pop(record_id, None) is not None:
            self._publish(collection)

    async def list(self, collection: str) -> list[dict]:
        self._check_available("list")
        return self._documents(collection)

    async def subscribe(self, collection: str) -> AsyncIterator[List[dict]]:
        self._check_available("subscribe")
        queue: asyncio.Queue = asyncio.Queue()
        self._subscribers.setdefault(collection, []).append(queue)
        try:
            yield self._documents(collection)
            while True:
                item = await queue.get()
                if isinstance(item, Exception):
                    raise item
                yield item
        finally:
            self._subscribers[collection].remove(queue)

    # -------------------------------------------------------------------------
    # Simulation hooks
    # -------------------------------------------------------------------------

    def put(self, collection: str, record: dict) -> None:
        """Insert or replace a document as another device would, keeping its id."""
        self._collections.setdefault(collection, {})[str(record["id"])] = dict(record)
        self._publish(collection)

    def get_document(self, collection: str, record_id: str) -> Optional[dict]:
        document = self._collections.get(collection, {}).get(record_id)
        return dict(document) if document is not None else None

    def break_subscriptions(self, message: str = "Connection lost") -> None:
        """Fail every live subscription on every collection."""
        for queues in self._subscribers.values():
            for queue in queues:
                queue.put_nowait(RemoteUnavailableError(message))

    def subscriber_count(self, collection: str) -> int:
        return len(self._subscribers.get(collection, []))


class OfflineRemoteStore(RemoteExpenseStoreInterface):
    """Stand-in remote for when no backend is configured."""

    def __init__(self, reason: str = "Remote store is not configured"):
        self._reason = reason

    async def write(self, collection: str, record: dict) -> str:
        raise RemoteUnavailableError(self._reason)

    async def update(self, collection: str, record_id: str, record: dict) -> None:
        raise RemoteUnavailableError(self._reason)

    async def delete(self, collection: str, record_id: str) -> None:
        raise RemoteUnavailableError(self._reason)

    async def list(self, collection: str) -> list[dict]:
        raise RemoteUnavailableError(self._reason)

    async def subscribe(self, collection: str) -> AsyncIterator[List[dict]]:
        raise RemoteUnavailableError(self._reason)
        yield []  # unreachable; makes this an async generator
