"""taskchain.ledger.rpc

Ledger gateway over a node's JSON-RPC surface (eth_getLogs, eth_call, ...).

Error translation happens here, once:
- transport failures stay :class:`LedgerUnavailable`
- reverts (and empty returns) on reads become :class:`TaskNotFound`
- undecodable read results become :class:`LedgerUnavailable`
- arguments the ABI cannot hold become :class:`InvalidInput`
- reverts on simulation become :class:`SimulationReverted`
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Sequence
from typing import Any

from eth_abi.exceptions import DecodingError
from eth_utils import to_checksum_address

from taskchain.core.client import RpcClient
from taskchain.core.exceptions import (
    ConfirmationTimeout,
    LedgerUnavailable,
    RpcError,
    SimulationReverted,
    TaskNotFound,
    TransactionReverted,
)
from taskchain.core.types import EventKind, PreparedCall, RawLog, Receipt, Task
from taskchain.ledger import abi
from taskchain.ledger.gateway import ALL_EVENTS, Session

logger = logging.getLogger(__name__)


def block_ranges(from_block: int, to_block: int, max_range: int) -> list[tuple[int, int]]:
    """Split ``[from_block, to_block]`` into consecutive inclusive chunks.

    ``max_range <= 0`` means one chunk.
    """

    if to_block < from_block:
        return []
    if max_range <= 0:
        return [(from_block, to_block)]
    out: list[tuple[int, int]] = []
    start = from_block
    while start <= to_block:
        end = min(start + max_range - 1, to_block)
        out.append((start, end))
        start = end + 1
    return out


class JsonRpcLedger:
    def __init__(self, rpc: RpcClient, *, max_block_range: int = 0) -> None:
        self._rpc = rpc
        self._max_block_range = int(max_block_range)

    @property
    def rpc(self) -> RpcClient:
        return self._rpc

    async def _call(self, method: str, params: list[Any]) -> Any:
        """Read-only call. Any failure here means the ledger is unavailable to us."""

        try:
            return await self._rpc.call(method, params)
        except RpcError as e:
            raise LedgerUnavailable(f"{method}: {e.message}") from e

    async def block_number(self) -> int:
        return int(await self._call("eth_blockNumber", []), 16)

    async def chain_id(self) -> int:
        return int(await self._call("eth_chainId", []), 16)

    async def get_balance(self, address: str) -> int:
        return int(await self._call("eth_getBalance", [to_checksum_address(address), "latest"]), 16)

    async def fetch_events(
        self,
        contract: str,
        events: Sequence[EventKind] = ALL_EVENTS,
        from_block: int = 0,
        to_block: int | None = None,
    ) -> list[RawLog]:
        head = to_block if to_block is not None else await self.block_number()
        topics = [abi.event_topic(k) for k in events]
        address = to_checksum_address(contract)

        out: list[RawLog] = []
        for start, end in block_ranges(int(from_block), int(head), self._max_block_range):
            logs = await self._call(
                "eth_getLogs",
                [{"address": address, "topics": [topics], "fromBlock": hex(start), "toBlock": hex(end)}],
            )
            if not isinstance(logs, list):
                raise LedgerUnavailable(f"eth_getLogs [{start}, {end}]: expected a list")
            for log in logs:
                if not isinstance(log, dict) or log.get("removed"):
                    continue
                out.append(abi.decode_log(log))

        logger.debug("events_fetched count=%d from=%d to=%d", len(out), from_block, head)
        return out

    async def read_task(self, contract: str, task_id: int) -> Task:
        data = abi.encode_call("getTask", (int(task_id),))
        try:
            result = await self._rpc.call("eth_call", [{"to": to_checksum_address(contract), "data": data}, "latest"])
        except RpcError as e:
            if e.is_revert:
                raise TaskNotFound(task_id) from e
            raise LedgerUnavailable(f"eth_call getTask({task_id}): {e.message}") from e

        if not result or result == "0x":
            raise TaskNotFound(task_id)
        try:
            task = abi.decode_task(str(result))
        except (DecodingError, ValueError) as e:
            raise LedgerUnavailable(f"eth_call getTask({task_id}): undecodable return data") from e
        if task.id != int(task_id):
            raise TaskNotFound(task_id)
        return task

    async def simulate(self, contract: str, function: str, args: Sequence[Any], caller: str) -> PreparedCall:
        if function not in abi.WRITE_FUNCTIONS:
            raise ValueError(f"not a write function: {function}")

        to = to_checksum_address(contract)
        sender = to_checksum_address(caller)
        data = abi.encode_call(function, tuple(args))
        tx = {"from": sender, "to": to, "data": data}
        try:
            await self._rpc.call("eth_call", [tx, "latest"])
            gas = int(await self._rpc.call("eth_estimateGas", [tx]), 16)
        except RpcError as e:
            if e.is_revert:
                raise SimulationReverted(abi.revert_reason(e.message, e.data)) from e
            raise LedgerUnavailable(f"simulate {function}: {e.message}") from e

        return PreparedCall(to=to, data=data, sender=sender, function=function, args=tuple(args), gas=gas)

    async def submit(self, session: Session, call: PreparedCall) -> str:
        return await session.signer.send(call)

    async def await_confirmation(self, tx_hash: str, *, timeout_s: float, poll_interval_s: float = 1.0) -> Receipt:
        """Poll for the receipt until ``timeout_s``.

        A failed poll counts as "not mined yet"; only the deadline ends the wait.
        """

        deadline = time.monotonic() + float(timeout_s)
        while True:
            try:
                raw = await self._call("eth_getTransactionReceipt", [tx_hash])
            except LedgerUnavailable as e:
                logger.warning("receipt_poll_failed tx=%s error=%s", tx_hash, e)
                raw = None
            if raw:
                receipt = Receipt(
                    transaction_hash=str(raw.get("transactionHash") or tx_hash),
                    block_number=int(str(raw.get("blockNumber") or "0x0"), 16),
                    status=int(str(raw.get("status") or "0x0"), 16),
                    gas_used=int(str(raw["gasUsed"]), 16) if raw.get("gasUsed") else None,
                )
                if receipt.status != 1:
                    raise TransactionReverted(tx_hash)
                return receipt

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise ConfirmationTimeout(tx_hash, timeout_s)
            await asyncio.sleep(min(float(poll_interval_s), remaining))
