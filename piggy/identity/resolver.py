"""
Identity Resolver

Answers one question for the ledger: who is the active user?

The answer comes from the session record written at log-in. There is no
persistence here and no credential handling; a missing or unreadable
session means the anonymous scope, never "all users".
"""

import json
from typing import Optional

import structlog

from piggy.models.expense import User
from piggy.services.storage.interface import SessionStoreInterface


class IdentityResolver:
    """Reads the active user from the session store."""

    def __init__(
        self,
        session_store: SessionStoreInterface,
        current_user_key: str = "currentUser",
        anonymous_user_id: str = "anonymous",
    ):
        self._session = session_store
        self._key = current_user_key
        self._anonymous_user_id = anonymous_user_id
        self._logger = structlog.get_logger(__name__)

    @property
    def anonymous_user_id(self) -> str:
        return self._anonymous_user_id

    async def _session_record(self) -> Optional[dict]:
        raw = await self._session.get(self._key)
        if not raw:
            return None
        try:
            record = json.loads(raw)
        except json.JSONDecodeError:
            self._logger.warning("session_record_unreadable", key=self._key)
            return None
        if not isinstance(record, dict) or not record.get("id"):
            self._logger.warning("session_record_without_id", key=self._key)
            return None
        return record

    async def current_user_id(self) -> Optional[str]:
        """The logged-in user's id, or None when nobody is logged in."""
        record = await self._session_record()
        return str(record["id"]) if record else None

    async def current_user(self) -> Optional[User]:
        """The full session user record, or None."""
        record = await self._session_record()
        if record is None:
            return None
        try:
            return User.model_validate(record)
        except ValueError:
            self._logger.warning("session_user_invalid", key=self._key)
            return None

    async def scope_id(self) -> str:
        """The owner tag to scope queries by: the user id, or the anonymous tag."""
        return await self.current_user_id() or self._anonymous_user_id

    def owner_tag(self, user_id: Optional[str]) -> str:
        """Map a stored owner reference (possibly missing) onto a scope tag."""
        return user_id or self._anonymous_user_id
