from __future__ import annotations

import pytest

from taskchain.core.exceptions import LedgerUnavailable
from taskchain.core.types import EventKind, Task
from taskchain.ledger.memory import InMemoryLedger
from taskchain.runtime import Runtime


@pytest.mark.anyio
async def test_load_publishes_tasks_and_feed(runtime: Runtime, ledger: InMemoryLedger) -> None:
    ledger.put_task(Task(1, "a"))
    ledger.put_task(Task(2, "b"))
    ledger.emit(EventKind.CREATED, 1, "a", block=10)
    ledger.emit(EventKind.CREATED, 2, "b", block=12)

    snap = await runtime.reload()

    assert [t.id for t in snap.tasks] == [1, 2]
    assert [(e.task_id, e.block_number) for e in snap.events] == [(2, 12), (1, 10)]
    assert snap.block_number == 12
    assert not runtime.store.busy


@pytest.mark.anyio
async def test_scan_always_starts_at_from_block(runtime: Runtime, ledger: InMemoryLedger) -> None:
    await runtime.reload()
    await runtime.reload()
    starts = [args[2] for args in ledger.calls_to("fetch_events")]
    assert starts == [runtime.config.contract.from_block] * 2


@pytest.mark.anyio
async def test_reload_is_idempotent(runtime: Runtime, ledger: InMemoryLedger) -> None:
    ledger.put_task(Task(1, "a", completed=True))
    ledger.emit(EventKind.CREATED, 1, "a")
    ledger.emit(EventKind.COMPLETED, 1)

    first = await runtime.reload()
    second = await runtime.reload()
    assert first.tasks == second.tasks
    assert first.events == second.events


@pytest.mark.anyio
async def test_failed_load_keeps_previous_snapshot(runtime: Runtime, ledger: InMemoryLedger) -> None:
    ledger.put_task(Task(1, "a"))
    ledger.emit(EventKind.CREATED, 1, "a")
    good = await runtime.reload()

    ledger.unavailable = True
    with pytest.raises(LedgerUnavailable):
        await runtime.reload()

    assert runtime.store.snapshot is good
    assert runtime.store.last_error is not None
    assert runtime.store.last_error.startswith("Failed to load tasks:")
    assert not runtime.store.busy


@pytest.mark.anyio
async def test_ids_seen_only_in_updates_are_not_materialized(runtime: Runtime, ledger: InMemoryLedger) -> None:
    ledger.put_task(Task(5, "ghost"))
    ledger.emit(EventKind.UPDATED, 5, "ghost")
    snap = await runtime.reload()
    assert snap.tasks == ()
    assert len(snap.events) == 1
    assert ledger.calls_to("read_task") == []
