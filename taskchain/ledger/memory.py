"""taskchain.ledger.memory

In-process ledger: the task contract, a log, and a block counter.

Used by the test suite and by ``taskchain --dev``. Every gateway call is
recorded in :attr:`InMemoryLedger.calls` so tests can assert on what was (and
was not) sent. Failure switches are plain attributes.
"""

from __future__ import annotations

import asyncio
import itertools
import time
from collections.abc import Sequence
from typing import Any

from eth_utils import encode_hex, keccak

from taskchain.core.exceptions import (
    ConfirmationTimeout,
    LedgerUnavailable,
    SignerRejected,
    SimulationReverted,
    TaskNotFound,
    TransactionReverted,
)
from taskchain.core.types import EventKind, PreparedCall, RawLog, Receipt, Task
from taskchain.ledger import abi
from taskchain.ledger.gateway import ALL_EVENTS, Session

DEV_ACCOUNT = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
DEV_CONTRACT = "0x5FbDB2315678afecb367f032d93F642f64180aa3"


class InMemoryLedger:
    def __init__(self, *, chain_id: int = 31337, auto_mine: bool = True) -> None:
        self.chain = int(chain_id)
        self.auto_mine = auto_mine
        self.height = 0
        self.tasks: dict[int, Task] = {}
        self.logs: list[RawLog] = []
        self.balances: dict[str, int] = {}
        self.calls: list[tuple[str, tuple[Any, ...]]] = []

        # failure switches
        self.unavailable = False
        self.failing_reads: set[int] = set()
        self.revert_on_mine = False

        self._next_id = 1
        self._nonce = itertools.count()
        self._mempool: dict[str, PreparedCall] = {}
        self._receipts: dict[str, Receipt] = {}

    # -----------------
    # Test helpers
    # -----------------

    def calls_to(self, op: str) -> list[tuple[Any, ...]]:
        return [args for name, args in self.calls if name == op]

    def emit(
        self,
        kind: EventKind,
        task_id: int,
        description: str | None = None,
        *,
        block: int | None = None,
        tx_hash: str | None = None,
        log_index: int = 0,
    ) -> RawLog:
        """Append a log record without touching contract state."""

        if block is None:
            self.height += 1
            block = self.height
        self.height = max(self.height, int(block))
        args: dict[str, Any] = {"id": int(task_id)}
        if kind != EventKind.COMPLETED:
            args["description"] = str(description or "")
        log = RawLog(
            event_name=kind.value,
            args=args,
            block_number=int(block),
            transaction_hash=tx_hash or self._tx_hash(f"emit:{kind}:{task_id}:{block}:{log_index}"),
            log_index=log_index,
        )
        self.logs.append(log)
        return log

    def put_task(self, task: Task) -> None:
        """Set contract state directly (what a point-read returns)."""

        self.tasks[task.id] = task
        self._next_id = max(self._next_id, task.id + 1)

    def mine(self) -> list[Receipt]:
        """Mine every pending transaction, one block each."""

        out: list[Receipt] = []
        for tx_hash, call in list(self._mempool.items()):
            del self._mempool[tx_hash]
            self.height += 1
            ok = not self.revert_on_mine and self._revert_reason(call.function, call.args) is None
            if ok:
                self._apply(call, tx_hash)
            receipt = Receipt(transaction_hash=tx_hash, block_number=self.height, status=1 if ok else 0, gas_used=50_000)
            self._receipts[tx_hash] = receipt
            out.append(receipt)
        return out

    def broadcast(self, call: PreparedCall) -> str:
        tx_hash = self._tx_hash(f"tx:{next(self._nonce)}:{call.sender}:{call.data}")
        self._mempool[tx_hash] = call
        if self.auto_mine:
            self.mine()
        return tx_hash

    @staticmethod
    def _tx_hash(seed: str) -> str:
        return encode_hex(keccak(text=seed))

    # -----------------
    # Contract
    # -----------------

    def _revert_reason(self, function: str, args: Sequence[Any]) -> str | None:
        if function == "createTask":
            return None
        task = self.tasks.get(int(args[0]))
        if task is None:
            return "task does not exist"
        if task.completed:
            return "already completed"
        return None

    def _apply(self, call: PreparedCall, tx_hash: str) -> None:
        if call.function == "createTask":
            task_id = self._next_id
            self._next_id += 1
            description = str(call.args[0])
            self.tasks[task_id] = Task(id=task_id, description=description, completed=False)
            self.emit(EventKind.CREATED, task_id, description, block=self.height, tx_hash=tx_hash)
        elif call.function == "updateTask":
            task_id, description = int(call.args[0]), str(call.args[1])
            self.tasks[task_id] = Task(id=task_id, description=description, completed=False)
            self.emit(EventKind.UPDATED, task_id, description, block=self.height, tx_hash=tx_hash)
        elif call.function == "completeTask":
            task_id = int(call.args[0])
            prev = self.tasks[task_id]
            self.tasks[task_id] = Task(id=task_id, description=prev.description, completed=True)
            self.emit(EventKind.COMPLETED, task_id, block=self.height, tx_hash=tx_hash)

    # -----------------
    # Gateway
    # -----------------

    async def block_number(self) -> int:
        self.calls.append(("block_number", ()))
        return self.height

    async def chain_id(self) -> int:
        return self.chain

    async def get_balance(self, address: str) -> int:
        return int(self.balances.get(address.lower(), 0))

    async def fetch_events(
        self,
        contract: str,
        events: Sequence[EventKind] = ALL_EVENTS,
        from_block: int = 0,
        to_block: int | None = None,
    ) -> list[RawLog]:
        self.calls.append(("fetch_events", (contract, tuple(events), from_block, to_block)))
        await asyncio.sleep(0)
        if self.unavailable:
            raise LedgerUnavailable("eth_getLogs: ledger unavailable")
        head = self.height if to_block is None else int(to_block)
        names = {k.value for k in events}
        known = {k.value for k in EventKind}
        # unknown names pass through, like a foreign topic on a real node
        return [
            log
            for log in self.logs
            if int(from_block) <= log.block_number <= head and (log.event_name in names or log.event_name not in known)
        ]

    async def read_task(self, contract: str, task_id: int) -> Task:
        self.calls.append(("read_task", (contract, task_id)))
        await asyncio.sleep(0)
        if task_id in self.failing_reads:
            raise LedgerUnavailable(f"eth_call getTask({task_id}): ledger unavailable")
        task = self.tasks.get(int(task_id))
        if task is None:
            raise TaskNotFound(task_id)
        return task

    async def simulate(self, contract: str, function: str, args: Sequence[Any], caller: str) -> PreparedCall:
        self.calls.append(("simulate", (contract, function, tuple(args), caller)))
        await asyncio.sleep(0)
        if function not in abi.WRITE_FUNCTIONS:
            raise ValueError(f"not a write function: {function}")
        data = abi.encode_call(function, tuple(args))
        reason = self._revert_reason(function, args)
        if reason is not None:
            raise SimulationReverted(reason)
        return PreparedCall(
            to=contract,
            data=data,
            sender=caller,
            function=function,
            args=tuple(args),
            gas=50_000,
        )

    async def submit(self, session: Session, call: PreparedCall) -> str:
        self.calls.append(("submit", (session.account, call.function, call.args)))
        return await session.signer.send(call)

    async def await_confirmation(self, tx_hash: str, *, timeout_s: float, poll_interval_s: float = 1.0) -> Receipt:
        self.calls.append(("await_confirmation", (tx_hash,)))
        deadline = time.monotonic() + float(timeout_s)
        while True:
            receipt = self._receipts.get(tx_hash)
            if receipt is not None:
                if receipt.status != 1:
                    raise TransactionReverted(tx_hash)
                return receipt
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise ConfirmationTimeout(tx_hash, timeout_s)
            await asyncio.sleep(min(float(poll_interval_s), remaining))


class InMemorySigner:
    """Signer for :class:`InMemoryLedger`. Set ``reject`` to decline every send."""

    def __init__(self, ledger: InMemoryLedger, *, account: str = DEV_ACCOUNT, reject: bool = False) -> None:
        self._ledger = ledger
        self.account = account
        self.reject = reject

    async def accounts(self) -> list[str]:
        return [self.account]

    async def request_accounts(self) -> list[str]:
        return [self.account]

    async def send(self, call: PreparedCall) -> str:
        if self.reject:
            raise SignerRejected("transaction rejected by signer")
        return self._ledger.broadcast(call)
