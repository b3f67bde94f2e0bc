"""
Account Service

Sign up, log in and log out against the accounts list kept in the session
store. A successful sign up or log in writes the user record under the
current-user key, which is what IdentityResolver reads.

WARNING: Passwords are stored as given and checked by plain equality.
That is the existing on-device account format; changing it would lock
out every stored account, so it is kept as-is and only flagged here.
"""

import json
from datetime import datetime
from typing import Callable, Optional
from uuid import uuid4

from piggy.audit import AuditLogger
from piggy.models.expense import User, utc_now
from piggy.services.storage.interface import (
    LocalPersistenceError,
    SessionStoreInterface,
)
from piggy.validation import ValidationError, ValidationIssue


class AccountError(Exception):
    """Base exception for account operations."""
    pass


class DuplicateAccountError(AccountError):
    """An account with this email already exists."""
    pass


class InvalidCredentialsError(AccountError):
    """Email and password do not match any account."""
    pass


class AccountService:
    """Registers accounts and manages the logged-in session."""

    def __init__(
        self,
        session_store: SessionStoreInterface,
        users_key: str = "users",
        current_user_key: str = "currentUser",
        min_password_length: int = 6,
        audit_logger: Optional[AuditLogger] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._session = session_store
        self._users_key = users_key
        self._current_user_key = current_user_key
        self._min_password_length = min_password_length
        self._audit_logger = audit_logger
        self._clock = clock

    async def _load_users(self) -> list[User]:
        raw = await self._session.get(self._users_key)
        if not raw:
            return []
        try:
            records = json.loads(raw)
        except json.JSONDecodeError as e:
            raise LocalPersistenceError(f"Accounts list is corrupted: {e}")
        if not isinstance(records, list):
            raise LocalPersistenceError("Accounts list is not a JSON array")
        try:
            return [User.model_validate(record) for record in records]
        except ValueError as e:
            raise LocalPersistenceError(f"Accounts list holds an unreadable account: {e}")

    async def _save_users(self, users: list[User]) -> None:
        await self._session.set(
            self._users_key,
            json.dumps([user.to_record() for user in users], ensure_ascii=False),
        )

    async def _start_session(self, user: User) -> None:
        await self._session.set(self._current_user_key, json.dumps(user.to_record()))

    async def find_by_email(self, email: str) -> Optional[User]:
        wanted = email.strip().casefold()
        for user in await self._load_users():
            if user.email == wanted:
                return user
        return None

    async def sign_up(
        self,
        name: str,
        email: str,
        password: str,
        confirm_password: Optional[str] = None,
    ) -> User:
        """
        Register a new account and log it in.

        Raises:
            ValidationError: missing fields, short or mismatched password
            DuplicateAccountError: email already registered (case-insensitive)
        """
        issues: list[ValidationIssue] = []
        if not name or not name.strip():
            issues.append(ValidationIssue(field="name", message="Name is required"))
        if not email or not email.strip():
            issues.append(ValidationIssue(field="email", message="Email is required"))
        if not password:
            issues.append(ValidationIssue(field="password", message="Password is required"))
        elif len(password) < self._min_password_length:
            issues.append(ValidationIssue(
                field="password",
                message=f"Password should be at least {self._min_password_length} characters",
            ))
        if confirm_password is not None and password != confirm_password:
            issues.append(ValidationIssue(field="confirm_password", message="Passwords don't match"))
        if issues:
            raise ValidationError(issues)

        users = await self._load_users()
        folded = email.strip().casefold()
        if any(user.email == folded for user in users):
            raise DuplicateAccountError(f"This email is already registered: {folded}")

        user = User(
            id=uuid4().hex,
            name=name.strip(),
            email=folded,
            password=password,
            created_at=self._clock(),
        )
        users.append(user)
        await self._save_users(users)
        await self._start_session(user)

        if self._audit_logger:
            await self._audit_logger.log_user_signed_up(user.id, user.email)
        return user

    async def log_in(self, email: str, password: str) -> User:
        """
        Log in with email (case-insensitive) and password.

        Raises:
            InvalidCredentialsError: no account matches
        """
        user = await self.find_by_email(email or "")
        # Plain-text comparison: see module docstring
        if user is None or user.password != password:
            if self._audit_logger:
                await self._audit_logger.log_user_login_failed((email or "").strip().casefold())
            raise InvalidCredentialsError("Invalid email or password")

        await self._start_session(user)
        if self._audit_logger:
            await self._audit_logger.log_user_logged_in(user.id)
        return user

    async def log_out(self) -> None:
        """End the session. The cached expense list is left in place."""
        user = await self.current_user()
        await self._session.remove(self._current_user_key)
        if self._audit_logger:
            await self._audit_logger.log_user_logged_out(user.id if user else None)

    async def current_user(self) -> Optional[User]:
        raw = await self._session.get(self._current_user_key)
        if not raw:
            return None
        try:
            return User.model_validate(json.loads(raw))
        except ValueError:
            return None
