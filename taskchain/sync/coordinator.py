"""taskchain.sync.coordinator

Drives one write through simulate → submit → confirm → reload.

Responsibilities:
- reject intents that cannot succeed before touching the ledger
- never submit after a failed simulation
- never retry a submit
- finish only after a read pass has observed the write (read-after-write)
- leave the previous snapshot intact on failure

One write at a time. A second intent while one is active is rejected, not
queued.
"""

from __future__ import annotations

import logging
from typing import Any

from taskchain.core.exceptions import (
    InvalidInput,
    LedgerError,
    SignerRejected,
    TaskchainError,
    WriteInProgress,
)
from taskchain.ledger.abi import MAX_UINT256
from taskchain.ledger.gateway import LedgerGateway, Session
from taskchain.sync.lifecycle import MutationResult, OperationKind, OperationPhase, PendingOperation
from taskchain.sync.reader import TaskReader
from taskchain.sync.store import ViewStateStore

logger = logging.getLogger(__name__)


class MutationCoordinator:
    def __init__(
        self,
        *,
        ledger: LedgerGateway,
        reader: TaskReader,
        store: ViewStateStore,
        contract: str,
        confirmation_timeout_s: float = 120.0,
        poll_interval_s: float = 2.0,
    ) -> None:
        self.ledger = ledger
        self.reader = reader
        self.store = store
        self.contract = contract
        self.confirmation_timeout_s = float(confirmation_timeout_s)
        self.poll_interval_s = float(poll_interval_s)
        self._active: PendingOperation | None = None

    @property
    def active(self) -> PendingOperation | None:
        return self._active

    async def create(self, session: Session | None, description: str) -> MutationResult:
        op = PendingOperation(kind=OperationKind.CREATE, payload={"description": description})
        return await self._run(session, op)

    async def update(self, session: Session | None, task_id: int, description: str) -> MutationResult:
        op = PendingOperation(kind=OperationKind.UPDATE, target_id=int(task_id), payload={"description": description})
        return await self._run(session, op)

    async def complete(self, session: Session | None, task_id: int) -> MutationResult:
        op = PendingOperation(kind=OperationKind.COMPLETE, target_id=int(task_id))
        return await self._run(session, op)

    # -----------------
    # Internals
    # -----------------

    def _guard(self, session: Session | None, op: PendingOperation) -> TaskchainError | None:
        if self._active is not None:
            return WriteInProgress(f"a {self._active.kind} is still {self._active.phase}")
        if session is None or not session.account:
            return SignerRejected("no connected signer")
        if op.kind in {OperationKind.CREATE, OperationKind.UPDATE}:
            description = str(op.payload.get("description") or "").strip()
            if not description:
                return InvalidInput("description must not be empty")
            op.payload["description"] = description
        if op.kind in {OperationKind.UPDATE, OperationKind.COMPLETE}:
            if op.target_id is None or not 0 <= op.target_id <= MAX_UINT256:
                return InvalidInput(f"task id must be an unsigned 256-bit integer, got {op.target_id}")
        return None

    @staticmethod
    def _args(op: PendingOperation) -> tuple[Any, ...]:
        if op.kind == OperationKind.CREATE:
            return (op.payload["description"],)
        if op.kind == OperationKind.UPDATE:
            return (op.target_id, op.payload["description"])
        return (op.target_id,)

    def _result(self, op: PendingOperation, status: str, *, refreshed: bool = False) -> MutationResult:
        return MutationResult(
            status=status,
            kind=op.kind,
            phase=op.phase,
            target_id=op.target_id,
            tx_hash=op.tx_hash,
            error=op.error,
            stage=op.failed_in,
            safe_to_retry=op.safe_to_retry,
            refreshed=refreshed,
        )

    async def _run(self, session: Session | None, op: PendingOperation) -> MutationResult:
        rejection = self._guard(session, op)
        if rejection is not None:
            op.fail(rejection)
            logger.info("write_rejected kind=%s reason=%s", op.kind, rejection)
            return self._result(op, "rejected")
        assert session is not None

        self._active = op
        self.store.pending = op
        self.store.clear_error()
        try:
            with self.store.activity():
                return await self._drive(session, op)
        finally:
            self._active = None
            self.store.pending = None

    async def _drive(self, session: Session, op: PendingOperation) -> MutationResult:
        function = op.kind.function
        try:
            op.advance(OperationPhase.SIMULATING)
            call = await self.ledger.simulate(self.contract, function, self._args(op), session.account)

            op.advance(OperationPhase.SUBMITTED)
            op.tx_hash = await self.ledger.submit(session, call)
            logger.info("write_submitted kind=%s tx=%s", op.kind, op.tx_hash)

            op.advance(OperationPhase.CONFIRMING)
            receipt = await self.ledger.await_confirmation(
                op.tx_hash,
                timeout_s=self.confirmation_timeout_s,
                poll_interval_s=self.poll_interval_s,
            )
        except TaskchainError as e:
            op.fail(e)
            logger.warning("write_failed kind=%s stage=%s error=%s", op.kind, op.failed_in, e)
            self.store.fail(f"Failed to {op.kind} task: {e}")
            return self._result(op, "failed")

        logger.info("write_confirmed kind=%s tx=%s block=%d", op.kind, op.tx_hash, receipt.block_number)

        refreshed = True
        try:
            await self.reader.load()
        except LedgerError:
            # Confirmed on-chain; only the view is stale. The reader already set last_error.
            refreshed = False

        op.advance(OperationPhase.SUCCEEDED)
        return self._result(op, "succeeded", refreshed=refreshed)
