"""taskchain.sync.lifecycle

Write lifecycle state machine.

IDLE → SIMULATING → SUBMITTED → CONFIRMING → SUCCEEDED
any non-terminal phase → FAILED

Where a write failed decides whether retrying it is safe: before SUBMITTED
nothing was broadcast; from SUBMITTED on, a transaction may be in flight or
already mined.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Final

from taskchain.core.exceptions import SignerRejected, TaskchainError


class OperationKind(StrEnum):
    CREATE = "create"
    UPDATE = "update"
    COMPLETE = "complete"

    @property
    def function(self) -> str:
        return {
            OperationKind.CREATE: "createTask",
            OperationKind.UPDATE: "updateTask",
            OperationKind.COMPLETE: "completeTask",
        }[self]


class OperationPhase(StrEnum):
    IDLE = "idle"
    SIMULATING = "simulating"
    SUBMITTED = "submitted"
    CONFIRMING = "confirming"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


TERMINAL: Final[frozenset[OperationPhase]] = frozenset({OperationPhase.SUCCEEDED, OperationPhase.FAILED})

ALLOWED_TRANSITIONS: Final[dict[OperationPhase, set[OperationPhase]]] = {
    OperationPhase.IDLE: {OperationPhase.SIMULATING, OperationPhase.FAILED},
    OperationPhase.SIMULATING: {OperationPhase.SUBMITTED, OperationPhase.FAILED},
    OperationPhase.SUBMITTED: {OperationPhase.CONFIRMING, OperationPhase.FAILED},
    OperationPhase.CONFIRMING: {OperationPhase.SUCCEEDED, OperationPhase.FAILED},
    OperationPhase.SUCCEEDED: set(),
    OperationPhase.FAILED: set(),
}


@dataclass
class PendingOperation:
    """One write intent, owned by the coordinator until it reaches a terminal phase."""

    kind: OperationKind
    payload: dict[str, Any] = field(default_factory=dict)
    target_id: int | None = None
    phase: OperationPhase = OperationPhase.IDLE
    failed_in: OperationPhase | None = None
    tx_hash: str | None = None
    error: TaskchainError | None = None

    def advance(self, new_phase: OperationPhase) -> None:
        allowed = ALLOWED_TRANSITIONS.get(self.phase, set())
        if new_phase not in allowed:
            raise ValueError(f"Invalid transition {self.phase} -> {new_phase}")
        if new_phase == OperationPhase.FAILED:
            self.failed_in = self.phase
        self.phase = new_phase

    def fail(self, error: TaskchainError) -> None:
        self.error = error
        self.advance(OperationPhase.FAILED)

    @property
    def done(self) -> bool:
        return self.phase in TERMINAL

    @property
    def safe_to_retry(self) -> bool:
        """True when nothing can have reached the chain."""

        if self.phase != OperationPhase.FAILED:
            return False
        if self.failed_in in {OperationPhase.IDLE, OperationPhase.SIMULATING}:
            return True
        return isinstance(self.error, SignerRejected)


@dataclass(frozen=True, slots=True)
class MutationResult:
    status: str  # succeeded|failed|rejected
    kind: OperationKind
    phase: OperationPhase
    target_id: int | None = None
    tx_hash: str | None = None
    error: TaskchainError | None = None
    stage: OperationPhase | None = None  # phase the write failed in
    safe_to_retry: bool = False
    refreshed: bool = False

    @property
    def ok(self) -> bool:
        return self.status == "succeeded"

    @property
    def message(self) -> str | None:
        return str(self.error) if self.error is not None else None
