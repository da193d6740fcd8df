from __future__ import annotations

import pytest

from fruitfusion.outbox import Outbox, PendingOperation


def test_enqueue_persists_in_order(cache, outbox):
    outbox.enqueue("set", "orders/offline-1", {"status": "Order Taken"})
    outbox.enqueue("update", "orders/o1", {"status": "Delivered"})
    outbox.enqueue("remove", "products/p1")

    reloaded = Outbox(cache)
    assert [(op.kind, op.path) for op in reloaded.pending()] == [
        ("set", "orders/offline-1"),
        ("update", "orders/o1"),
        ("remove", "products/p1"),
    ]
    assert len(reloaded) == 3


def test_unknown_kind_is_rejected(outbox):
    with pytest.raises(ValueError):
        outbox.enqueue("merge", "orders/o1", {})


def test_replay_applies_everything_and_clears(outbox, store):
    store.data = {"orders": {"o1": {"status": "Processing"}}, "products": {"p1": {"name": "A"}}}
    outbox.enqueue("set", "orders/o2", {"status": "Order Taken"})
    outbox.enqueue("update", "orders/o1", {"status": "Delivered"})
    outbox.enqueue("remove", "products/p1")

    assert outbox.replay(store) == 3
    assert len(outbox) == 0
    assert store.data["orders"] == {"o1": {"status": "Delivered"}, "o2": {"status": "Order Taken"}}
    assert store.data["products"] == {}


def test_replay_stops_at_first_failure_and_keeps_the_rest(outbox, store):
    outbox.enqueue("set", "orders/o2", {"status": "Order Taken"})
    outbox.enqueue("update", "orders/o2", {"status": "Processing"})

    real_update = store.update

    def failing_update(path, partial):
        store.online = False
        return real_update(path, partial)

    store.update = failing_update
    assert outbox.replay(store) == 1
    remaining = outbox.pending()
    assert [(op.kind, op.path) for op in remaining] == [("update", "orders/o2")]


def test_replay_with_nothing_pending(outbox, store):
    assert outbox.replay(store) == 0
    assert store.calls == []


def test_malformed_entries_are_skipped(cache, outbox):
    cache.set_json("pendingOperations", [{"kind": "set"}, "junk", {"kind": "remove", "path": "orders/o1"}])
    assert [op.path for op in outbox.pending()] == ["orders/o1"]


def test_pending_operation_round_trips_through_dict():
    op = PendingOperation(kind="update", path="orders/o1", value={"status": "Delivered"})
    assert PendingOperation.from_dict(op.as_dict()) == op


def test_writes_queued_during_replay_are_kept(outbox, store):
    outbox.enqueue("set", "orders/a", {"status": "Order Taken"})

    real_set = store.set

    def set_then_queue_another(path, value):
        result = real_set(path, value)
        if path == "orders/a":
            outbox.enqueue("set", "orders/b", {"status": "Order Taken"})
        return result

    store.set = set_then_queue_another
    assert outbox.replay(store) == 1
    assert [op.path for op in outbox.pending()] == ["orders/b"]
    assert "a" in store.data["orders"]
