"""
Session Store Implementations

Small key/value stores for device-local state: the logged-in user, the
registered accounts, and the cached expense list.

The file-backed store keeps every key in one JSON object and rewrites the
whole file on each change. That is fine for a single user's ledger; it is
not meant for concurrent writers from several processes. File I/O runs in
a worker thread so the event loop is never blocked on the disk.
"""

import asyncio
import json
import os
import tempfile
import threading
from pathlib import Path
from typing import Optional, Union

from piggy.services.storage.interface import (
    LocalPersistenceError,
    SessionStoreInterface,
)


class InMemorySessionStore(SessionStoreInterface):
    """Session store held in a dict. Used in tests and ephemeral sessions."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._values: dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> Optional[str]:
        return self._values.get(key)

    async def set(self, key: str, value: str) -> None:
        self._values[key] = value

    async def remove(self, key: str) -> None:
        self._values.pop(key, None)


class JsonFileSessionStore(SessionStoreInterface):
    """
    Session store persisted to a single JSON file.

    Writes go to a temporary file in the same directory which then
    replaces the original, so a crash never leaves a half-written file.
    """

    def __init__(self, path: Union[str, Path]):
        self._path = Path(path)
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def _read_all(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            text = self._path.read_text(encoding="utf-8")
        except OSError as e:
            raise LocalPersistenceError(f"Failed to read session file {self._path}: {e}")
        if not text.strip():
            return {}
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise LocalPersistenceError(f"Session file {self._path} is corrupted: {e}")
        if not isinstance(data, dict):
            raise LocalPersistenceError(
                f"Session file {self._path} does not hold a JSON object"
            )
        return data

    def _write_all(self, data: dict[str, str]) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self._path.parent,
                prefix=f".{self._path.name}.",
                suffix=".tmp",
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    json.dump(data, handle, ensure_ascii=False, indent=2)
                os.replace(tmp_name, self._path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise LocalPersistenceError(f"Failed to write session file {self._path}: {e}")

    async def get(self, key: str) -> Optional[str]:
        value = (await asyncio.to_thread(self._read_all)).get(key)
        return value if value is None else str(value)

    async def set(self, key: str, value: str) -> None:
        await asyncio.to_thread(self._update, key, value)

    async def remove(self, key: str) -> None:
        await asyncio.to_thread(self._update, key, None)

    def _update(self, key: str, value: Optional[str]) -> None:
        """Read-modify-write of one key; None removes it."""
        with self._lock:
            data = self._read_all()
            if value is None:
                if key not in data:
                    return
                del data[key]
            else:
                data[key] = value
            self._write_all(data)
