from __future__ import annotations

from pydantic import BaseModel, Field

from taskchain.core.config import NetworkConfig
from taskchain.core.types import LedgerEvent, Task, event_description
from taskchain.sync.lifecycle import MutationResult, PendingOperation


class TaskResponse(BaseModel):
    id: int
    description: str
    completed: bool

    @classmethod
    def from_task(cls, t: Task) -> TaskResponse:
        return cls(id=t.id, description=t.description, completed=t.completed)


class EventResponse(BaseModel):
    key: str
    type: str
    task_id: int
    description: str | None = None
    block_number: int
    transaction_hash: str
    explorer_url: str | None = None

    @classmethod
    def from_event(cls, ev: LedgerEvent, network: NetworkConfig | None = None) -> EventResponse:
        return cls(
            key=ev.key,
            type=str(ev.kind),
            task_id=ev.task_id,
            description=event_description(ev),
            block_number=ev.block_number,
            transaction_hash=ev.transaction_hash,
            explorer_url=network.tx_url(ev.transaction_hash) if network is not None else None,
        )


class PendingResponse(BaseModel):
    kind: str
    phase: str
    target_id: int | None = None
    tx_hash: str | None = None

    @classmethod
    def from_operation(cls, op: PendingOperation) -> PendingResponse:
        return cls(kind=str(op.kind), phase=str(op.phase), target_id=op.target_id, tx_hash=op.tx_hash)


class StateResponse(BaseModel):
    tasks: list[TaskResponse]
    events: list[EventResponse]
    busy: bool
    last_error: str | None = None
    pending: PendingResponse | None = None
    block_number: int | None = None


class TaskDescriptionRequest(BaseModel):
    description: str = Field(..., max_length=4096)


class MutationResponse(BaseModel):
    status: str
    kind: str
    phase: str
    target_id: int | None = None
    tx_hash: str | None = None
    stage: str | None = None
    safe_to_retry: bool
    refreshed: bool
    task: TaskResponse | None = None

    @classmethod
    def from_result(cls, r: MutationResult, task: Task | None = None) -> MutationResponse:
        return cls(
            status=r.status,
            kind=str(r.kind),
            phase=str(r.phase),
            target_id=r.target_id,
            tx_hash=r.tx_hash,
            stage=str(r.stage) if r.stage is not None else None,
            safe_to_retry=r.safe_to_retry,
            refreshed=r.refreshed,
            task=TaskResponse.from_task(task) if task is not None else None,
        )
