"""Services package."""

from piggy.services.storage import (
    GoogleSheetsClient,
    GoogleSheetsExpenseStore,
    InMemoryRemoteStore,
    InMemorySessionStore,
    JsonFileSessionStore,
    LocalExpenseStore,
    LocalExpenseStoreInterface,
    LocalPersistenceError,
    NotFoundError,
    OfflineRemoteStore,
    RemoteConfigurationError,
    RemoteExpenseStoreInterface,
    RemoteUnavailableError,
    SessionStoreInterface,
    StorageError,
)

__all__ = [
    "GoogleSheetsClient",
    "GoogleSheetsExpenseStore",
    "InMemoryRemoteStore",
    "InMemorySessionStore",
    "JsonFileSessionStore",
    "LocalExpenseStore",
    "LocalExpenseStoreInterface",
    "LocalPersistenceError",
    "NotFoundError",
    "OfflineRemoteStore",
    "RemoteConfigurationError",
    "RemoteExpenseStoreInterface",
    "RemoteUnavailableError",
    "SessionStoreInterface",
    "StorageError",
]
