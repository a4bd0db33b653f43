"""Tests for the task store: subscription lifecycle, mutations and error paths."""

import asyncio
import time

import pytest

from tasktrack.backend.base import Backend, Document, Identity, Subscription
from tasktrack.errors import BackendError, PermissionDeniedError, ValidationError
from tasktrack.state import AppState
from tasktrack.store import TaskStore


class StubBackend(Backend):
    """Scriptable backend: records calls, pushes what the test hands it."""

    def __init__(self, identity=None, delay=0.0, fail_with=None):
        self._identity = identity
        self.delay = delay
        self.fail_with = fail_with
        self.calls = []
        self.subscriptions = []

    @property
    def current_identity(self):
        return self._identity

    def subscribe(self, collection, owner_id, on_next, on_error=None):
        subscription = Subscription(collection, owner_id, on_next, on_error)
        self.subscriptions.append(subscription)
        return subscription

    async def _respond(self, name, *args):
        self.calls.append((name,) + args)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_with is not None:
            raise self.fail_with
        return "new-id"

    async def create(self, collection, fields):
        return await self._respond("create", collection, fields)

    async def set(self, collection, doc_id, fields):
        await self._respond("set", collection, doc_id, fields)

    async def update(self, collection, doc_id, fields):
        await self._respond("update", collection, doc_id, fields)

    async def delete(self, collection, doc_id):
        await self._respond("delete", collection, doc_id)

    async def get_once(self, collection, doc_id):
        await self._respond("get_once", collection, doc_id)
        return None

    async def sign_up(self, email, password):
        raise NotImplementedError

    async def sign_in(self, email, password):
        raise NotImplementedError

    async def sign_out(self):
        self._identity = None

    def on_auth_state_change(self, callback):
        callback(self._identity)
        return lambda: None


ADA = Identity(uid="ada", email="ada@example.com")
BOB = Identity(uid="bob", email="bob@example.com")


@pytest.fixture
def stub():
    return StubBackend(identity=ADA)


@pytest.fixture
def stub_store(stub):
    errors = []
    store = TaskStore(stub, AppState(), on_error=errors.append)
    store.errors = errors
    store.attach(ADA)
    return store


class TestSubscriptionLifecycle:

    def test_no_snapshot_before_first_push(self, stub_store):
        assert stub_store.state.snapshot is None
        assert stub_store.state.tasks == ()

    def test_push_replaces_snapshot_sorted(self, stub, stub_store):
        subscription = stub.subscriptions[-1]
        subscription.push([
            Document("old", {"owner_id": "ada", "text": "Old", "category": "work",
                             "created_at": "2024-01-01T00:00:00+00:00"}),
            Document("pending", {"owner_id": "ada", "text": "Pending", "category": "work",
                                 "created_at": None}),
            Document("new", {"owner_id": "ada", "text": "New", "category": "work",
                             "created_at": "2024-02-01T00:00:00+00:00"}),
        ])
        assert [t.id for t in stub_store.state.tasks] == ["new", "old", "pending"]

        subscription.push([Document("only", {"owner_id": "ada", "text": "Only", "category": "home"})])
        assert [t.id for t in stub_store.state.tasks] == ["only"]

    def test_listeners_see_latest_snapshot(self, stub, stub_store):
        seen = []
        stub_store.state.subscribe(seen.append)
        subscription = stub.subscriptions[-1]
        subscription.push([Document("a", {"owner_id": "ada", "text": "A", "category": "work"})])
        subscription.push([])

        assert [len(snapshot) for snapshot in seen] == [1, 0]
        assert stub_store.state.tasks == ()

    def test_switching_users_cancels_previous_subscription(self, stub, stub_store):
        first = stub.subscriptions[-1]
        stub._identity = BOB
        stub_store.attach(BOB)

        assert not first.active
        assert stub.subscriptions[-1].owner_id == "bob"
        assert stub_store.state.current_user == BOB

    def test_detach_clears_snapshot(self, stub, stub_store):
        stub.subscriptions[-1].push([Document("a", {"owner_id": "ada", "text": "A", "category": "work"})])
        stub_store.detach()

        assert not stub_store.subscribed
        assert stub_store.state.snapshot == ()


class TestSubscriptionErrors:

    def test_permission_error_during_sign_out_suppressed(self, stub, stub_store):
        stub._identity = None
        stub.subscriptions[-1].fail(PermissionDeniedError("Missing or insufficient permissions."))
        assert stub_store.errors == []

    def test_permission_error_while_signed_in_surfaced(self, stub, stub_store):
        stub.subscriptions[-1].fail(PermissionDeniedError("Missing or insufficient permissions."))
        assert len(stub_store.errors) == 1
        assert stub_store.errors[0].message == "Missing or insufficient permissions."

    def test_other_errors_surfaced(self, stub, stub_store):
        stub.subscriptions[-1].fail(RuntimeError("network down"))
        assert isinstance(stub_store.errors[0], BackendError)
        assert stub_store.errors[0].message == "network down"


class TestMutationsAgainstStub:

    async def test_empty_text_never_reaches_backend(self, stub, stub_store):
        with pytest.raises(ValidationError):
            await stub_store.create("   ", "work")
        assert stub.calls == []
        assert stub_store.state.snapshot is None

    async def test_unknown_category_rejected_locally(self, stub, stub_store):
        with pytest.raises(ValidationError):
            await stub_store.create("Buy milk", "urgent")
        assert stub.calls == []

    async def test_create_payload(self, stub, stub_store):
        task_id = await stub_store.create("  Buy milk ", "shopping")

        assert task_id == "new-id"
        name, collection, fields = stub.calls[0]
        assert (name, collection) == ("create", "tasks")
        assert fields["text"] == "Buy milk"
        assert fields["owner_id"] == "ada"
        assert fields["completed"] is False
        assert fields["completed_at"] is None

    async def test_toggle_payload(self, stub, stub_store):
        await stub_store.toggle_complete("t1", False)
        assert stub.calls[0] == ("update", "tasks", "t1", {"completed": False, "completed_at": None})

    async def test_rename_only_sends_text(self, stub, stub_store):
        await stub_store.rename("t1", "  New text ")
        assert stub.calls[0] == ("update", "tasks", "t1", {"text": "New text"})

    async def test_blank_rename_rejected(self, stub, stub_store):
        with pytest.raises(ValidationError):
            await stub_store.rename("t1", "  ")
        assert stub.calls == []

    async def test_backend_error_propagates(self, stub, stub_store):
        stub.fail_with = BackendError("quota exceeded")
        with pytest.raises(BackendError) as exc:
            await stub_store.delete("t1")
        assert exc.value.message == "quota exceeded"

    async def test_timeout_becomes_backend_error(self, stub, stub_store):
        stub.delay = 1.0
        stub_store.timeout = 0.01
        with pytest.raises(BackendError) as exc:
            await stub_store.toggle_complete("t1", True)
        assert exc.value.code == "deadline-exceeded"

    async def test_requires_signed_in_user(self, stub):
        store = TaskStore(stub, AppState())
        with pytest.raises(ValidationError):
            await store.create("Buy milk", "shopping")


class TestStoreWithLocalBackend:
    """Round trips through the SQLite backend: the push, not the call, updates the snapshot."""

    async def test_create_then_push(self, signed_in_app, clock):
        store = signed_in_app.store
        await store.create("Write report", "work")

        (task,) = store.state.tasks
        assert task.text == "Write report"
        assert task.category == "work"
        assert task.created_at == clock.now
        assert task.owner_id == signed_in_app.state.current_user.uid

    async def test_toggle_round_trip_clears_completed_at(self, signed_in_app, clock):
        store = signed_in_app.store
        task_id = await store.create("Write report", "work")
        clock.advance(days=1)

        await store.toggle_complete(task_id, True)
        task = store.get(task_id)
        assert task.completed is True
        assert task.completed_at == clock.now
        assert task.completed_at >= task.created_at

        await store.toggle_complete(task_id, False)
        task = store.get(task_id)
        assert task.completed is False
        assert task.completed_at is None

    async def test_rename_keeps_other_fields(self, signed_in_app):
        store = signed_in_app.store
        task_id = await store.create("Write report", "education")
        await store.toggle_complete(task_id, True)
        before = store.get(task_id)

        await store.rename(task_id, "Write final report")

        after = store.get(task_id)
        assert after.text == "Write final report"
        assert (after.category, after.completed, after.created_at, after.completed_at) == \
            (before.category, before.completed, before.created_at, before.completed_at)

    async def test_delete(self, signed_in_app):
        store = signed_in_app.store
        task_id = await store.create("Write report", "work")
        await store.delete(task_id)
        assert store.state.tasks == ()

    async def test_newest_first(self, signed_in_app, clock):
        store = signed_in_app.store
        for text in ("first", "second", "third"):
            await store.create(text, "work")
            clock.advance(minutes=5)

        assert [t.text for t in store.state.tasks] == ["third", "second", "first"]

    async def test_filtered_view(self, signed_in_app):
        store = signed_in_app.store
        done_id = await store.create("Done", "work")
        await store.create("Open", "health")
        await store.toggle_complete(done_id, True)

        assert [t.text for t in store.filtered("completed")] == ["Done"]
        assert [t.text for t in store.filtered("health")] == ["Open"]

    async def test_get_by_prefix(self, signed_in_app):
        store = signed_in_app.store
        task_id = await store.create("Write report", "work")
        assert store.get(task_id[:8]).id == task_id
        assert store.get("zzzz-not-there") is None

    async def test_missing_task_update_fails(self, signed_in_app):
        with pytest.raises(BackendError):
            await signed_in_app.store.toggle_complete("missing", True)

    async def test_timeout_applies_to_blocking_sqlite_work(self, signed_in_app, monkeypatch):
        backend = signed_in_app.backend
        slow_query = backend.query_owned

        def query_owned(collection, owner_id):
            time.sleep(0.2)
            return slow_query(collection, owner_id)

        monkeypatch.setattr(backend, "query_owned", query_owned)
        store = signed_in_app.store
        store.timeout = 0.01

        with pytest.raises(BackendError) as exc:
            await store.create("Write report", "work")
        assert exc.value.code == "deadline-exceeded"

        # let the worker thread finish before the loop closes
        await asyncio.sleep(0.3)
