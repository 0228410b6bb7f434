"""taskchain.ledger.gateway

The boundary between the reconciliation core and a ledger.

Two implementations ship:
- :class:`~taskchain.ledger.rpc.JsonRpcLedger` talks to a node.
- :class:`~taskchain.ledger.memory.InMemoryLedger` runs the contract in-process.

Callers depend on the protocol only.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from taskchain.core.types import EventKind, PreparedCall, RawLog, Receipt, Task

ALL_EVENTS: tuple[EventKind, ...] = (EventKind.CREATED, EventKind.UPDATED, EventKind.COMPLETED)


@runtime_checkable
class Signer(Protocol):
    async def accounts(self) -> list[str]: ...

    async def request_accounts(self) -> list[str]: ...

    async def send(self, call: PreparedCall) -> str: ...


@dataclass(frozen=True, slots=True)
class Session:
    """Connected account and the signer acting for it.

    Owned by the application scope and passed explicitly to every write.
    """

    account: str
    signer: Signer


class LedgerGateway(Protocol):
    async def fetch_events(
        self,
        contract: str,
        events: Sequence[EventKind] = ALL_EVENTS,
        from_block: int = 0,
        to_block: int | None = None,
    ) -> list[RawLog]:
        """All matching logs in ``[from_block, to_block]`` (inclusive), in arrival order.

        ``to_block=None`` means the current head. Fails whole or not at all.
        """
        ...

    async def read_task(self, contract: str, task_id: int) -> Task: ...

    async def simulate(self, contract: str, function: str, args: Sequence[Any], caller: str) -> PreparedCall: ...

    async def submit(self, session: Session, call: PreparedCall) -> str: ...

    async def await_confirmation(
        self,
        tx_hash: str,
        *,
        timeout_s: float,
        poll_interval_s: float = 1.0,
    ) -> Receipt: ...

    async def block_number(self) -> int: ...

    async def chain_id(self) -> int: ...

    async def get_balance(self, address: str) -> int: ...
