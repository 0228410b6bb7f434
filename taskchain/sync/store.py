"""taskchain.sync.store

The last reconciled snapshot, plus what the presentation layer needs to
render around it (busy, last error, the write in flight).

Snapshots are swapped, never edited. A reader holding a reference keeps a
complete, consistent view for as long as it wants.
"""

from __future__ import annotations

import itertools
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass

from taskchain.core.types import LedgerEvent, Snapshot, Task
from taskchain.sync.lifecycle import PendingOperation

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class StoreView:
    tasks: tuple[Task, ...]
    events: tuple[LedgerEvent, ...]
    busy: bool
    last_error: str | None
    pending: PendingOperation | None
    block_number: int | None = None


class ViewStateStore:
    def __init__(self) -> None:
        self._snapshot = Snapshot()
        self._tickets = itertools.count(1)
        self._active = 0
        self.last_error: str | None = None
        self.pending: PendingOperation | None = None

    @property
    def snapshot(self) -> Snapshot:
        return self._snapshot

    @property
    def busy(self) -> bool:
        return self._active > 0

    @contextmanager
    def activity(self) -> Iterator[None]:
        """Mark the store busy for the duration of a read pass or write."""

        self._active += 1
        try:
            yield
        finally:
            self._active -= 1

    def begin_pass(self) -> int:
        """Ticket for a read pass. Later passes get larger tickets."""

        return next(self._tickets)

    def publish(self, ticket: int, tasks: list[Task], events: list[LedgerEvent], *, block_number: int | None = None) -> bool:
        """Swap in a new snapshot. Returns False if a newer pass already published."""

        if ticket < self._snapshot.generation:
            logger.info("snapshot_discarded ticket=%d current=%d", ticket, self._snapshot.generation)
            return False
        self._snapshot = Snapshot(
            tasks=tuple(tasks),
            events=tuple(events),
            block_number=block_number,
            generation=ticket,
        )
        return True

    def fail(self, message: str) -> None:
        self.last_error = str(message)

    def clear_error(self) -> None:
        self.last_error = None

    def view(self) -> StoreView:
        snap = self._snapshot
        return StoreView(
            tasks=snap.tasks,
            events=snap.events,
            busy=self.busy,
            last_error=self.last_error,
            pending=self.pending,
            block_number=snap.block_number,
        )
