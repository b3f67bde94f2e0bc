"""
Storage Services Package

Provides abstract interfaces and concrete implementations for the session
store, the remote document store and the local expense store.
"""

from piggy.services.storage.interface import (
    LocalExpenseStoreInterface,
    LocalPersistenceError,
    NotFoundError,
    RemoteConfigurationError,
    RemoteExpenseStoreInterface,
    RemoteUnavailableError,
    SessionStoreInterface,
    StorageError,
)
from piggy.services.storage.session import (
    InMemorySessionStore,
    JsonFileSessionStore,
)
from piggy.services.storage.local import LocalExpenseStore
from piggy.services.storage.memory import (
    InMemoryRemoteStore,
    OfflineRemoteStore,
)
from piggy.services.storage.google_sheets import (
    GoogleSheetsClient,
    GoogleSheetsExpenseStore,
)

__all__ = [
    # Interfaces
    "LocalExpenseStoreInterface",
    "RemoteConfigurationError",
    "RemoteExpenseStoreInterface",
    "SessionStoreInterface",
    # Exceptions
    "LocalPersistenceError",
    "NotFoundError",
    "RemoteUnavailableError",
    "StorageError",
    # Session stores
    "InMemorySessionStore",
    "JsonFileSessionStore",
    # Local expense store
    "LocalExpenseStore",
    # Remote stores
    "GoogleSheetsClient",
    "GoogleSheetsExpenseStore",
    "InMemoryRemoteStore",
    "OfflineRemoteStore",
]
