"""Tests for the live sync subscriber."""

import asyncio

import pytest
from decimal import Decimal

from conftest import NOW, login_as
from piggy.ledger import SubscriptionError, SyncState, SyncSubscriber
from piggy.models.audit import AuditEventType
from piggy.models.expense import Expense, ExpenseDraft, ExpenseOrigin
from piggy.services.storage import InMemoryRemoteStore, OfflineRemoteStore


async def settle(rounds: int = 10) -> None:
    """Let the subscription task drain whatever the remote pushed."""
    for _ in range(rounds):
        await asyncio.sleep(0)


def remote_doc(doc_id: str, user_id: str, title: str = "Lunch", amount: float = 12.0) -> dict:
    return {
        "id": doc_id,
        "title": title,
        "amount": amount,
        "paymentMethod": "Cash",
        "category": "Food",
        "userId": user_id,
        "createdAt": NOW.isoformat(),
    }


def make_subscriber(ledger, remote, local, identity, audit_logger=None) -> SyncSubscriber:
    return SyncSubscriber(ledger, remote, local, identity, audit_logger=audit_logger)


class TestLiveSnapshots:
    """Snapshots from Remote replace the working set."""

    def test_initial_snapshot_is_published(self, ledger, remote, local, identity, session):
        login_as(session, "alice")
        remote.put("expenses", remote_doc("r1", "alice"))

        async def scenario():
            subscriber = make_subscriber(ledger, remote, local, identity)
            await subscriber.start()
            assert await subscriber.wait_for_snapshot(timeout=1)
            snapshot = await ledger.snapshot()
            state = subscriber.state
            await subscriber.stop()
            return state, snapshot

        state, snapshot = asyncio.run(scenario())
        assert state == SyncState.LIVE
        assert [e.id for e in snapshot] == ["r1"]
        assert snapshot[0].origin == ExpenseOrigin.REMOTE

    def test_snapshot_filtered_to_active_user(self, ledger, remote, local, identity, session):
        """Other users' documents never enter the working set."""
        login_as(session, "alice")
        remote.put("expenses", remote_doc("a1", "alice"))
        remote.put("expenses", remote_doc("b1", "bob"))
        remote.put("expenses", remote_doc("n1", ""))

        async def scenario():
            subscriber = make_subscriber(ledger, remote, local, identity)
            await subscriber.start()
            await subscriber.wait_for_snapshot(timeout=1)
            working_set = list(ledger._working_set)
            await subscriber.stop()
            return working_set

        working_set = asyncio.run(scenario())
        assert [e.id for e in working_set] == ["a1"]

    def test_changes_from_another_device_arrive(self, ledger, remote, local, identity, session):
        login_as(session, "alice")

        async def scenario():
            subscriber = make_subscriber(ledger, remote, local, identity)
            await subscriber.start()
            await subscriber.wait_for_snapshot(timeout=1)
            first = await ledger.snapshot()

            remote.put("expenses", remote_doc("r1", "alice", amount=3))
            await settle()
            second = await ledger.snapshot()

            remote.put("expenses", remote_doc("r1", "alice", amount=5))
            await settle()
            third = await ledger.snapshot()

            applied = subscriber.snapshots_applied
            await subscriber.stop()
            return first, second, third, applied

        first, second, third, applied = asyncio.run(scenario())
        assert first == []
        assert [e.amount for e in second] == [Decimal("3")]
        assert [e.amount for e in third] == [Decimal("5")]
        assert applied == 3

    def test_own_write_is_not_duplicated(self, ledger, remote, local, identity, session):
        """A create echoed back by the subscription still appears once."""
        login_as(session, "alice")

        async def scenario():
            subscriber = make_subscriber(ledger, remote, local, identity)
            await subscriber.start()
            await subscriber.wait_for_snapshot(timeout=1)
            created = await ledger.create(
                ExpenseDraft(title="Coffee", amount="4.5", category="Food")
            )
            await settle()
            snapshot = await ledger.snapshot()
            await subscriber.stop()
            return created, snapshot

        created, snapshot = asyncio.run(scenario())
        assert [e.id for e in snapshot] == [created.id]

    def test_unreadable_documents_are_skipped(self, ledger, remote, local, identity, session):
        login_as(session, "alice")
        remote.put("expenses", remote_doc("good", "alice"))
        remote.put("expenses", {"id": "bad", "title": "Broken", "amount": "n/a", "userId": "alice"})

        async def scenario():
            subscriber = make_subscriber(ledger, remote, local, identity)
            await subscriber.start()
            await subscriber.wait_for_snapshot(timeout=1)
            snapshot = await ledger.snapshot()
            await subscriber.stop()
            return snapshot

        assert [e.id for e in asyncio.run(scenario())] == ["good"]

    @pytest.mark.parametrize("created_at", [float("inf"), 10 ** 30, "2026-13-45T99:00:00"])
    def test_unreadable_time_keeps_subscription_live(
        self, ledger, remote, local, identity, session, created_at
    ):
        """A document with a broken time is shown as undated, not fatal."""
        login_as(session, "alice")
        remote.put("expenses", {**remote_doc("r1", "alice"), "createdAt": created_at})

        async def scenario():
            subscriber = make_subscriber(ledger, remote, local, identity)
            await subscriber.start()
            published = await subscriber.wait_for_snapshot(timeout=1)
            snapshot = await ledger.snapshot()
            state = subscriber.state
            await subscriber.stop()
            return published, state, snapshot

        published, state, snapshot = asyncio.run(scenario())
        assert published
        assert state == SyncState.LIVE
        assert [e.id for e in snapshot] == ["r1"]
        assert snapshot[0].is_undated


class TestDegradedMode:
    """When the subscription fails, Local becomes the source."""

    def test_broken_subscription_falls_back_to_local(
        self, ledger, remote, local, identity, session, audit_logger
    ):
        login_as(session, "alice")
        remote.put("expenses", remote_doc("r1", "alice"))

        async def scenario():
            await local.upsert(Expense(
                id="local-1",
                title="Taxi",
                amount="20",
                user_id="alice",
                created_at=NOW,
                origin=ExpenseOrigin.LOCAL,
            ))
            subscriber = make_subscriber(ledger, remote, local, identity, audit_logger)
            await subscriber.start()
            await subscriber.wait_for_snapshot(timeout=1)

            remote.break_subscriptions("Connection lost")
            await settle()
            snapshot = await ledger.snapshot()
            result = (subscriber.state, subscriber.last_error, remote.subscriber_count("expenses"))
            await subscriber.stop()
            return result, snapshot

        (state, last_error, subscribers), snapshot = asyncio.run(scenario())
        assert state == SyncState.DEGRADED
        assert last_error == "Connection lost"
        assert subscribers == 0
        assert [e.id for e in snapshot] == ["local-1"]

        types = [event.event_type for event in audit_logger.history]
        assert AuditEventType.SYNC_DEGRADED in types

    def test_offline_create_survives_degraded_transition(
        self, ledger, remote, local, identity, session
    ):
        """A record written while Remote was down is served from Local."""
        login_as(session, "alice")
        remote.available = False

        async def scenario():
            created = await ledger.create(
                ExpenseDraft(title="Coffee", amount="4.5", category="Food")
            )
            ledger.replace_working_set([])
            subscriber = make_subscriber(ledger, remote, local, identity)
            await subscriber.start()
            await subscriber.wait_for_snapshot(timeout=1)
            snapshot = await ledger.snapshot()
            state = subscriber.state
            await subscriber.stop()
            return created, snapshot, state

        created, snapshot, state = asyncio.run(scenario())
        assert state == SyncState.DEGRADED
        assert [e.id for e in snapshot] == [created.id]
        assert snapshot[0].origin == ExpenseOrigin.LOCAL

    def test_unconfigured_remote_starts_degraded(self, ledger, local, identity, session):
        """Local-only users see their cached expenses without a live feed."""
        login_as(session, "alice")
        offline = OfflineRemoteStore()

        async def scenario():
            await local.upsert(Expense(
                id="local-1", title="Taxi", amount="20", user_id="alice", created_at=NOW,
            ))
            subscriber = make_subscriber(ledger, offline, local, identity)
            await subscriber.start()
            assert await subscriber.wait_for_snapshot(timeout=1)
            snapshot = await ledger.snapshot()
            state = subscriber.state
            await subscriber.stop()
            return state, snapshot

        state, snapshot = asyncio.run(scenario())
        assert state == SyncState.DEGRADED
        assert [e.id for e in snapshot] == ["local-1"]

    def test_degraded_view_is_scoped(self, ledger, remote, local, identity, session):
        login_as(session, "alice")

        async def scenario():
            await local.upsert(Expense(id="a", title="Mine", amount=1, user_id="alice", created_at=NOW))
            await local.upsert(Expense(id="b", title="Theirs", amount=1, user_id="bob", created_at=NOW))
            subscriber = make_subscriber(ledger, OfflineRemoteStore(), local, identity)
            await subscriber.start()
            await subscriber.wait_for_snapshot(timeout=1)
            working_set = list(ledger._working_set)
            await subscriber.stop()
            return working_set

        assert [e.id for e in asyncio.run(scenario())] == ["a"]

    def test_unexpected_failure_degrades(self, ledger, local, identity, session):
        """Any error from the feed, not only storage errors, falls back to Local."""
        login_as(session, "alice")

        class CrashingRemote(InMemoryRemoteStore):
            async def subscribe(self, collection):
                yield []
                raise RuntimeError("decoder blew up")

        async def scenario():
            await local.upsert(Expense(
                id="local-1", title="Taxi", amount="20", user_id="alice", created_at=NOW,
            ))
            subscriber = make_subscriber(ledger, CrashingRemote(), local, identity)
            await subscriber.start()
            await subscriber.wait_for_snapshot(timeout=1)
            await settle()
            snapshot = await ledger.snapshot()
            result = (subscriber.state, subscriber.last_error)
            await subscriber.stop()
            return result, snapshot

        (state, last_error), snapshot = asyncio.run(scenario())
        assert state == SyncState.DEGRADED
        assert "RuntimeError" in last_error
        assert [e.id for e in snapshot] == ["local-1"]


class TestStop:
    """Tests for unsubscribing."""

    def test_nothing_published_after_stop(self, ledger, remote, local, identity, session):
        login_as(session, "alice")

        async def scenario():
            subscriber = make_subscriber(ledger, remote, local, identity)
            await subscriber.start()
            await subscriber.wait_for_snapshot(timeout=1)
            await subscriber.stop()
            generation = ledger.generation

            remote.put("expenses", remote_doc("late", "alice"))
            await settle()
            return subscriber, generation, await ledger.snapshot()

        subscriber, generation, snapshot = asyncio.run(scenario())
        assert subscriber.state == SyncState.STOPPED
        assert ledger.generation == generation
        assert snapshot == []

    def test_stop_releases_the_remote_subscription(self, ledger, remote, local, identity):
        async def scenario():
            subscriber = make_subscriber(ledger, remote, local, identity)
            await subscriber.start()
            await subscriber.wait_for_snapshot(timeout=1)
            during = remote.subscriber_count("expenses")
            await subscriber.stop()
            return during, remote.subscriber_count("expenses")

        assert asyncio.run(scenario()) == (1, 0)

    def test_stop_is_idempotent(self, ledger, remote, local, identity, audit_logger):
        async def scenario():
            subscriber = make_subscriber(ledger, remote, local, identity, audit_logger)
            await subscriber.start()
            await subscriber.stop()
            await subscriber.stop()

        asyncio.run(scenario())
        stops = [e for e in audit_logger.history if e.event_type == AuditEventType.SYNC_STOPPED]
        assert len(stops) == 1

    def test_stopped_subscriber_cannot_restart(self, ledger, remote, local, identity):
        async def scenario():
            subscriber = make_subscriber(ledger, remote, local, identity)
            await subscriber.start()
            await subscriber.stop()
            await subscriber.start()

        with pytest.raises(SubscriptionError):
            asyncio.run(scenario())

    def test_double_start_rejected(self, ledger, remote, local, identity):
        async def scenario():
            subscriber = make_subscriber(ledger, remote, local, identity)
            await subscriber.start()
            try:
                await subscriber.start()
            finally:
                await subscriber.stop()

        with pytest.raises(SubscriptionError):
            asyncio.run(scenario())

    def test_stop_before_start(self, ledger, remote, local, identity):
        async def scenario():
            subscriber = make_subscriber(ledger, remote, local, identity)
            await subscriber.stop()
            return subscriber.state

        assert asyncio.run(scenario()) == SyncState.STOPPED

    def test_wait_times_out_without_snapshot(self, ledger, remote, local, identity):
        async def scenario():
            subscriber = make_subscriber(ledger, remote, local, identity)
            return await subscriber.wait_for_snapshot(timeout=0.01)

        assert asyncio.run(scenario()) is False
