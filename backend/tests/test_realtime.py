"""Tests for the activity stream: snapshot folding, subscriptions and publishing."""

from types import SimpleNamespace

import pytest

from backend.src.core.realtime import ProductLogStream, SnapshotReconciler, StreamSubscription
from backend.src.models.product_event import ProductAction, ProductEvent


class FakeRegistration:
    def __init__(self):
        self.closed = 0

    def close(self):
        self.closed += 1


class FakeReference:
    """Stand-in for ``firebase_admin.db.Reference``."""

    def __init__(self, fail_push=False, fail_listen=False):
        self.pushed = []
        self.listener = None
        self.registration = FakeRegistration()
        self.fail_push = fail_push
        self.fail_listen = fail_listen

    def push(self, value):
        if self.fail_push:
            raise RuntimeError("permission denied")
        self.pushed.append(value)
        return SimpleNamespace(key=f"-N{len(self.pushed)}")

    def listen(self, callback):
        if self.fail_listen:
            raise RuntimeError("listener refused")
        self.listener = callback
        return self.registration


def stream_with(monkeypatch, reference):
    stream = ProductLogStream("product_logs")
    monkeypatch.setattr(stream, "_reference", lambda path=None: reference)
    return stream


def db_event(event_type, path, data):
    return SimpleNamespace(event_type=event_type, path=path, data=data)


class TestSnapshotReconciler:
    """Folding listener events into the full collection."""

    def test_initial_root_put(self):
        reconciler = SnapshotReconciler()

        snapshot = reconciler.apply("put", "/", {"a": {"action": "CREATE_PRODUCT"}})

        assert snapshot == {"a": {"action": "CREATE_PRODUCT"}}

    def test_empty_collection(self):
        assert SnapshotReconciler().apply("put", "/", None) == {}

    def test_child_put_adds_entry(self):
        reconciler = SnapshotReconciler()
        reconciler.apply("put", "/", {"a": {"productId": 1}})

        snapshot = reconciler.apply("put", "/b", {"productId": 2})

        assert snapshot == {"a": {"productId": 1}, "b": {"productId": 2}}

    def test_child_null_removes_entry(self):
        reconciler = SnapshotReconciler()
        reconciler.apply("put", "/", {"a": {"productId": 1}, "b": {"productId": 2}})

        snapshot = reconciler.apply("put", "/a", None)

        assert snapshot == {"b": {"productId": 2}}

    def test_nested_put_and_empty_parent_pruning(self):
        reconciler = SnapshotReconciler()
        reconciler.apply("put", "/", {"a": {"productId": 1}})

        assert reconciler.apply("put", "/a/productName", "Widget") == {
            "a": {"productId": 1, "productName": "Widget"}
        }
        reconciler.apply("put", "/a/productName", None)
        assert reconciler.apply("put", "/a/productId", None) == {}

    def test_patch_merges_children(self):
        reconciler = SnapshotReconciler()
        reconciler.apply("put", "/", {"a": {"productId": 1}})

        snapshot = reconciler.apply("patch", "/", {"b": {"productId": 2}, "a": None})

        assert snapshot == {"b": {"productId": 2}}

    def test_returned_snapshot_is_a_copy(self):
        reconciler = SnapshotReconciler()
        snapshot = reconciler.apply("put", "/", {"a": {"productId": 1}})
        snapshot["a"]["productId"] = 99

        assert reconciler.apply("put", "/b", {"productId": 2})["a"]["productId"] == 1

    def test_unknown_event_type(self):
        with pytest.raises(ValueError):
            SnapshotReconciler().apply("cancel", "/", None)


class TestStreamSubscription:
    """Subscription handle ownership."""

    def test_cancel_closes_listener_once(self):
        registration = FakeRegistration()
        subscription = StreamSubscription("product_logs")
        subscription._attach(registration)

        subscription.cancel()
        subscription.cancel()

        assert registration.closed == 1
        assert not subscription.active

    def test_attach_after_cancel_closes_immediately(self):
        registration = FakeRegistration()
        subscription = StreamSubscription("product_logs")
        subscription.cancel()

        subscription._attach(registration)

        assert registration.closed == 1


class TestSubscribe:
    """Listening to the stream."""

    def test_snapshots_are_delivered_until_cancelled(self, monkeypatch):
        reference = FakeReference()
        stream = stream_with(monkeypatch, reference)
        snapshots, errors = [], []

        subscription = stream.subscribe(snapshots.append, errors.append)
        reference.listener(db_event("put", "/", {"a": {"productId": 1}}))
        reference.listener(db_event("put", "/b", {"productId": 2}))
        subscription.cancel()
        reference.listener(db_event("put", "/c", {"productId": 3}))

        assert snapshots == [
            {"a": {"productId": 1}},
            {"a": {"productId": 1}, "b": {"productId": 2}},
        ]
        assert errors == []
        assert reference.registration.closed == 1

    def test_listen_failure_reports_error(self, monkeypatch):
        stream = stream_with(monkeypatch, FakeReference(fail_listen=True))
        snapshots, errors = [], []

        subscription = stream.subscribe(snapshots.append, errors.append)

        assert len(errors) == 1
        assert not subscription.active
        assert snapshots == []

    def test_unappliable_event_reports_error(self, monkeypatch):
        reference = FakeReference()
        stream = stream_with(monkeypatch, reference)
        errors = []

        stream.subscribe(lambda snapshot: None, errors.append)
        reference.listener(db_event("patch", "/", "not a mapping"))

        assert len(errors) == 1


class TestPublish:
    """Appending events."""

    @pytest.mark.asyncio
    async def test_publish_pushes_camel_case_record(self, monkeypatch):
        reference = FakeReference()
        stream = stream_with(monkeypatch, reference)
        event = ProductEvent.now(ProductAction.DELETE_PRODUCT, 4, "Widget")

        assert await stream.publish(event) is True

        record = reference.pushed[0]
        assert record["action"] == "DELETE_PRODUCT"
        assert record["productId"] == 4
        assert record["productName"] == "Widget"
        assert "userId" not in record
        assert "timestamp" in record

    @pytest.mark.asyncio
    async def test_publish_failure_is_reported_not_raised(self, monkeypatch):
        stream = stream_with(monkeypatch, FakeReference(fail_push=True))
        event = ProductEvent.now(ProductAction.CREATE_PRODUCT, 1, "Widget")

        assert await stream.publish(event) is False
