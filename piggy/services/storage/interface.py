"""
Abstract Storage Interfaces

DESIGN DECISION: The ledger talks to three abstract stores:
1. A session store: small string key/value pairs on the device
2. A remote document store: authoritative, supports live subscription
3. A local expense store: the on-device fallback copy of the ledger

Concrete adapters are passed into the ledger explicitly. Nothing here is a
module-level singleton, so tests can swap any store for an in-memory one.

Remote and Local share the same logical record shape (see
Expense.to_record); only Remote can be subscribed to.
"""

from abc import ABC, abstractmethod
from typing import AsyncIterator, List, Optional

from piggy.models.expense import Expense


class SessionStoreInterface(ABC):
    """
    Device-local string key/value store.

    Holds the logged-in user record, the registered accounts and the
    locally cached expense list, each as a JSON string.
    """

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """
        Read a value.

        Returns:
            The stored string, or None if the key is absent

        Raises:
            LocalPersistenceError: If the backing storage cannot be read
        """
        pass

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        """
        Write a value, replacing any previous one.

        Raises:
            LocalPersistenceError: If the value cannot be persisted
        """
        pass

    @abstractmethod
    async def remove(self, key: str) -> None:
        """Remove a key. Removing an absent key is not an error."""
        pass


class RemoteExpenseStoreInterface(ABC):
    """
    Authoritative remote document store.

    Records are plain JSON-compatible dicts. Every method raises
    RemoteUnavailableError when the backend cannot be reached.
    """

    @abstractmethod
    async def write(self, collection: str, record: dict) -> str:
        """
        Add a new document.

        Args:
            collection: Collection name (e.g. 'expenses')
            record: Document body without an id

        Returns:
            The id the store assigned
        """
        pass

    @abstractmethod
    async def update(self, collection: str, record_id: str, record: dict) -> None:
        """
        Replace a document in full.

        Raises:
            NotFoundError: If no document has this id
        """
        pass

    @abstractmethod
    async def delete(self, collection: str, record_id: str) -> None:
        """Delete a document. Deleting an absent id is not an error."""
        pass

    @abstractmethod
    async def list(self, collection: str) -> list[dict]:
        """Read every document in the collection once."""
        pass

    # typing.List: inside this class body `list` is the method above
    @abstractmethod
    def subscribe(self, collection: str) -> AsyncIterator[List[dict]]:
        """
        Open a live subscription to the whole collection.

        Yields the full collection as a list of records: once when the
        subscription opens and again after every change. No server-side
        filtering is applied. The iterator raises RemoteUnavailableError
        when the subscription breaks; closing the iterator (or cancelling
        the task consuming it) unsubscribes.
        """
        pass


class LocalExpenseStoreInterface(ABC):
    """
    On-device copy of the ledger.

    The durability floor: when this store fails there is no further
    fallback, so its errors reach the caller as LocalPersistenceError.
    """

    @abstractmethod
    async def list(self) -> list[Expense]:
        """Every cached expense, for every user, in stored order."""
        pass

    @abstractmethod
    async def get(self, expense_id: str) -> Optional[Expense]:
        """The cached expense with this id, or None."""
        pass

    @abstractmethod
    async def upsert(self, expense: Expense) -> None:
        """Insert the expense, or replace the cached one with the same id."""
        pass

    @abstractmethod
    async def delete(self, expense_id: str) -> bool:
        """
        Remove the expense.

        Returns:
            True if something was removed
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage or in the current snapshot."""
    pass


class RemoteUnavailableError(StorageError):
    """The remote store could not complete the call (network, auth, quota)."""
    pass


class RemoteConfigurationError(RemoteUnavailableError):
    """
    The remote store is misconfigured (missing credentials, unknown spreadsheet).

    Still a RemoteUnavailableError, so the ledger falls back to Local,
    but retrying cannot help and adapters fail fast on it.
    """
    pass


class LocalPersistenceError(StorageError):
    """The local store could not be read or written (disk, quota, corruption)."""
    pass
