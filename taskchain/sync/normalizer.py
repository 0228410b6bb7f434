"""taskchain.sync.normalizer

Raw log records in, typed ledger events out, newest first.

No deduplication: a task that was created, updated and completed yields three
feed entries. The feed is history, not state.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from taskchain.core.exceptions import EventDecodeError
from taskchain.core.types import EventKind, LedgerEvent, RawLog, TaskCompleted, TaskCreated, TaskUpdated


def _task_id(raw: RawLog) -> int:
    v: Any = raw.args.get("id")
    if v is None:
        raise EventDecodeError(f"{raw.event_name} at block {raw.block_number} has no id")
    try:
        return int(v)
    except (TypeError, ValueError) as e:
        raise EventDecodeError(f"{raw.event_name} at block {raw.block_number}: bad id {v!r}") from e


def _description(raw: RawLog) -> str:
    v = raw.args.get("description")
    if v is None:
        raise EventDecodeError(f"{raw.event_name} at block {raw.block_number} has no description")
    return str(v)


def to_event(raw: RawLog) -> LedgerEvent:
    """Map one raw record to its event variant by name.

    Raises:
        EventDecodeError: unknown event name or missing arguments.
    """

    try:
        kind = EventKind(raw.event_name)
    except ValueError as e:
        raise EventDecodeError(f"unrecognized event {raw.event_name!r} in {raw.transaction_hash}") from e

    common = {
        "task_id": _task_id(raw),
        "block_number": int(raw.block_number),
        "transaction_hash": raw.transaction_hash,
        "log_index": int(raw.log_index),
    }
    if kind == EventKind.CREATED:
        return TaskCreated(description=_description(raw), **common)
    if kind == EventKind.UPDATED:
        return TaskUpdated(description=_description(raw), **common)
    return TaskCompleted(**common)


def normalize(raw_logs: Iterable[RawLog]) -> list[LedgerEvent]:
    """Typed events sorted by block height, descending.

    ``sorted`` is stable, so records at the same height keep retrieval order.
    """

    events = [to_event(r) for r in raw_logs]
    return sorted(events, key=lambda e: e.block_number, reverse=True)
