"""taskchain.core.types

Lightweight dataclasses for the reconciled view.

Pydantic models own IO boundaries; dataclasses keep runtime lean.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any, ClassVar


@dataclass(frozen=True, slots=True)
class Task:
    id: int
    description: str
    completed: bool = False


class EventKind(StrEnum):
    """Contract event names. Values match the on-chain declarations."""

    CREATED = "TaskCreated"
    UPDATED = "TaskUpdated"
    COMPLETED = "TaskCompleted"


@dataclass(frozen=True, slots=True)
class RawLog:
    """A decoded log record as returned by the ledger, before normalization."""

    event_name: str
    args: dict[str, Any]
    block_number: int
    transaction_hash: str
    log_index: int = 0


# ---------------------------------------------------------------------------
# Ledger events: one class per event kind, closed union below.
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class TaskCreated:
    kind: ClassVar[EventKind] = EventKind.CREATED

    task_id: int
    description: str
    block_number: int
    transaction_hash: str
    log_index: int = 0

    @property
    def key(self) -> str:
        return f"{self.transaction_hash}-{self.log_index}"


@dataclass(frozen=True, slots=True)
class TaskUpdated:
    kind: ClassVar[EventKind] = EventKind.UPDATED

    task_id: int
    description: str
    block_number: int
    transaction_hash: str
    log_index: int = 0

    @property
    def key(self) -> str:
        return f"{self.transaction_hash}-{self.log_index}"


@dataclass(frozen=True, slots=True)
class TaskCompleted:
    kind: ClassVar[EventKind] = EventKind.COMPLETED

    task_id: int
    block_number: int
    transaction_hash: str
    log_index: int = 0

    @property
    def key(self) -> str:
        return f"{self.transaction_hash}-{self.log_index}"


LedgerEvent = TaskCreated | TaskUpdated | TaskCompleted


def event_description(event: LedgerEvent) -> str | None:
    """Description carried by the event, or None for completions."""

    if isinstance(event, (TaskCreated, TaskUpdated)):
        return event.description
    return None


# ---------------------------------------------------------------------------
# Write path
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class PreparedCall:
    """A simulated contract call, ready to be signed and sent."""

    to: str
    data: str
    sender: str
    function: str
    args: tuple[Any, ...] = ()
    gas: int | None = None
    value: int = 0


@dataclass(frozen=True, slots=True)
class Receipt:
    transaction_hash: str
    block_number: int
    status: int
    gas_used: int | None = None


# ---------------------------------------------------------------------------
# Read path output
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Snapshot:
    """One complete reconciled view. Replaced wholesale, never patched."""

    tasks: tuple[Task, ...] = ()
    events: tuple[LedgerEvent, ...] = ()
    block_number: int | None = None
    generation: int = 0

    def task(self, task_id: int) -> Task | None:
        for t in self.tasks:
            if t.id == task_id:
                return t
        return None

    def created_by(self, tx_hash: str) -> int | None:
        """Id of the task a transaction created, if this snapshot has seen it."""

        for ev in self.events:
            if isinstance(ev, TaskCreated) and ev.transaction_hash == tx_hash:
                return ev.task_id
        return None

    def recent_events(self, limit: int = 20) -> tuple[LedgerEvent, ...]:
        return self.events[: max(0, int(limit))]

