from __future__ import annotations

from taskchain.core.types import Task, TaskCompleted, TaskCreated
from taskchain.sync.lifecycle import OperationKind, PendingOperation
from taskchain.sync.store import ViewStateStore


def test_starts_empty_and_idle() -> None:
    store = ViewStateStore()
    view = store.view()
    assert view.tasks == ()
    assert view.events == ()
    assert view.busy is False
    assert view.last_error is None
    assert view.pending is None


def test_publish_swaps_the_whole_snapshot() -> None:
    store = ViewStateStore()
    t = store.begin_pass()
    before = store.snapshot
    assert store.publish(t, [Task(1, "a")], [], block_number=5)
    after = store.snapshot
    assert before.tasks == ()
    assert after.tasks == (Task(1, "a"),)
    assert after.block_number == 5


def test_older_pass_cannot_overwrite_newer() -> None:
    store = ViewStateStore()
    slow = store.begin_pass()
    fast = store.begin_pass()
    assert store.publish(fast, [Task(1, "new")], [])
    assert not store.publish(slow, [Task(1, "old")], [])
    assert store.snapshot.tasks == (Task(1, "new"),)


def test_activity_counts_nested_work() -> None:
    store = ViewStateStore()
    with store.activity():
        with store.activity():
            assert store.busy
        assert store.busy
    assert not store.busy


def test_errors_and_pending_show_in_the_view() -> None:
    store = ViewStateStore()
    store.fail("Failed to load tasks: boom")
    store.pending = PendingOperation(kind=OperationKind.CREATE)
    view = store.view()
    assert view.last_error == "Failed to load tasks: boom"
    assert view.pending is not None and view.pending.kind == OperationKind.CREATE

    store.clear_error()
    assert store.view().last_error is None


def test_recent_events_and_created_by() -> None:
    store = ViewStateStore()
    events = [
        TaskCompleted(task_id=1, block_number=3, transaction_hash="0x3"),
        TaskCreated(task_id=2, description="b", block_number=2, transaction_hash="0x2"),
        TaskCreated(task_id=1, description="a", block_number=1, transaction_hash="0x1"),
    ]
    store.publish(store.begin_pass(), [], events)
    snap = store.snapshot
    assert [e.block_number for e in snap.recent_events(2)] == [3, 2]
    assert snap.recent_events(0) == ()
    assert snap.created_by("0x2") == 2
    assert snap.created_by("0x3") is None
