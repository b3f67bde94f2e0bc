"""
Shared fixtures.

No test touches the network: the remote store is the in-memory one and
the session store is in memory unless a test asks for a file.
"""

import json
from datetime import datetime, timedelta, timezone

import pytest

from piggy.audit import AuditLogger
from piggy.identity import IdentityResolver
from piggy.ledger import LedgerStore
from piggy.services.storage import (
    InMemoryRemoteStore,
    InMemorySessionStore,
    LocalExpenseStore,
)


NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)


class SteppingClock:
    """Returns a later time on every call, so creation order is unambiguous."""

    def __init__(self, start: datetime = NOW - timedelta(hours=1), step: timedelta = timedelta(minutes=1)):
        self.current = start
        self.step = step

    def __call__(self) -> datetime:
        value = self.current
        self.current = self.current + self.step
        return value


def login_as(session: InMemorySessionStore, user_id: str) -> None:
    """Write a session record the way the account flow does."""
    session._values["currentUser"] = json.dumps({
        "id": user_id,
        "name": user_id.title(),
        "email": f"{user_id}@example.com",
        "password": "secret1",
        "createdAt": NOW.isoformat(),
    })


def logout(session: InMemorySessionStore) -> None:
    session._values.pop("currentUser", None)


@pytest.fixture
def session() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture
def remote() -> InMemoryRemoteStore:
    return InMemoryRemoteStore()


@pytest.fixture
def local(session) -> LocalExpenseStore:
    return LocalExpenseStore(session)


@pytest.fixture
def identity(session) -> IdentityResolver:
    return IdentityResolver(session)


@pytest.fixture
def audit_logger() -> AuditLogger:
    return AuditLogger()


@pytest.fixture
def clock() -> SteppingClock:
    return SteppingClock()


@pytest.fixture
def ledger(remote, local, identity, audit_logger, clock) -> LedgerStore:
    return LedgerStore(
        remote=remote,
        local=local,
        identity=identity,
        audit_logger=audit_logger,
        clock=clock,
    )
