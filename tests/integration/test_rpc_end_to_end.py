from __future__ import annotations

from typing import Any

import pytest
from eth_abi import decode, encode
from eth_utils import decode_hex, encode_hex

from taskchain.core.config import Config
from taskchain.core.exceptions import EventDecodeError, InvalidInput
from taskchain.core.types import EventKind, Task, TaskCreated, TaskUpdated
from taskchain.ledger import abi
from taskchain.ledger.gateway import Session
from taskchain.ledger.rpc import JsonRpcLedger
from taskchain.ledger.signer import NodeAccountSigner
from taskchain.runtime import _assemble
from tests.unit._rpc_fakes import FakeNode, NodeError

ACCOUNT = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"


class ContractNode(FakeNode):
    """A node with one task contract and a node-managed account. Every send is mined at once."""

    def __init__(self) -> None:
        super().__init__()
        self.height = 0
        self.tasks: dict[int, Task] = {}
        self.logs: list[dict[str, Any]] = []
        self.receipts: dict[str, dict[str, Any]] = {}
        # getTask return data to serve verbatim, by id
        self.raw_reads: dict[int, str] = {}
        self.handlers.update(
            {
                "eth_blockNumber": lambda p: hex(self.height),
                "eth_chainId": lambda p: hex(4202),
                "eth_accounts": lambda p: [ACCOUNT],
                "eth_getLogs": self._get_logs,
                "eth_call": self._call,
                "eth_estimateGas": lambda p: hex(60_000),
                "eth_sendTransaction": self._send,
                "eth_getTransactionReceipt": lambda p: self.receipts.get(p[0]),
            }
        )

    def log(self, kind: EventKind, values: list[Any], tx_hash: str | None = None) -> None:
        self.height += 1
        types = [t for _, t in abi.EVENT_INPUTS[kind]]
        self.logs.append(
            {
                "topics": [abi.event_topic(kind)],
                "data": encode_hex(encode(types, values)),
                "blockNumber": hex(self.height),
                "transactionHash": tx_hash or "0x" + f"{self.height:064x}",
                "logIndex": "0x0",
            }
        )

    def _get_logs(self, params: list[Any]) -> list[dict[str, Any]]:
        (flt,) = params
        lo, hi = int(flt["fromBlock"], 16), int(flt["toBlock"], 16)
        wanted = set(flt["topics"][0])
        return [log for log in self.logs if lo <= int(log["blockNumber"], 16) <= hi and log["topics"][0] in wanted]

    def _decode(self, data: str) -> tuple[str, tuple[Any, ...]]:
        for name in abi.FUNCTION_INPUTS:
            if data.startswith(abi.function_selector(name)):
                return name, decode(list(abi.FUNCTION_INPUTS[name]), decode_hex("0x" + data[10:]))
        raise AssertionError(f"unknown selector in {data[:10]}")

    def _check(self, name: str, args: tuple[Any, ...]) -> None:
        if name in {"updateTask", "completeTask", "getTask"}:
            task = self.tasks.get(int(args[0]))
            if task is None:
                raise NodeError(3, "execution reverted: task does not exist")
            if name == "completeTask" and task.completed:
                data = abi.ERROR_SELECTOR + encode(["string"], ["already completed"]).hex()
                raise NodeError(3, "execution reverted", data)

    def _call(self, params: list[Any]) -> str:
        name, args = self._decode(params[0]["data"])
        self._check(name, args)
        if name == "getTask":
            if int(args[0]) in self.raw_reads:
                return self.raw_reads[int(args[0])]
            t = self.tasks[int(args[0])]
            return encode_hex(encode([abi.GET_TASK_OUTPUT], [(t.id, t.description, t.completed)]))
        return "0x"

    def _send(self, params: list[Any]) -> str:
        (tx,) = params
        name, args = self._decode(tx["data"])
        self._check(name, args)
        tx_hash = "0x" + f"{len(self.receipts) + 1:064x}"
        if name == "createTask":
            task_id = len(self.tasks) + 1
            self.tasks[task_id] = Task(task_id, str(args[0]))
            self.log(EventKind.CREATED, [task_id, args[0]], tx_hash)
        elif name == "updateTask":
            self.tasks[int(args[0])] = Task(int(args[0]), str(args[1]))
            self.log(EventKind.UPDATED, [args[0], args[1]], tx_hash)
        else:
            prev = self.tasks[int(args[0])]
            self.tasks[prev.id] = Task(prev.id, prev.description, True)
            self.log(EventKind.COMPLETED, [args[0]], tx_hash)
        self.receipts[tx_hash] = {"transactionHash": tx_hash, "blockNumber": hex(self.height), "status": "0x1"}
        return tx_hash


@pytest.fixture()
def node() -> ContractNode:
    return ContractNode()


@pytest.fixture()
def rpc_runtime(test_config: Config, node: ContractNode):
    rpc = node.client()
    signer = NodeAccountSigner(rpc=rpc)
    rt = _assemble(test_config, JsonRpcLedger(rpc, max_block_range=2), signer, rpc)
    rt.session = Session(account=ACCOUNT, signer=signer)
    return rt


@pytest.mark.anyio
async def test_read_scenario_over_json_rpc(rpc_runtime, node: ContractNode) -> None:
    node.log(EventKind.CREATED, [1, "a"])
    node.log(EventKind.UPDATED, [1, "b"])
    node.tasks[1] = Task(1, "b")

    snap = await rpc_runtime.reload()

    assert snap.tasks == (Task(1, "b"),)
    assert [(type(e), e.block_number) for e in snap.events] == [(TaskUpdated, 2), (TaskCreated, 1)]
    await rpc_runtime.aclose()


@pytest.mark.anyio
async def test_write_scenarios_over_json_rpc(rpc_runtime, node: ContractNode) -> None:
    created = await rpc_runtime.create("buy milk")
    assert created.ok and created.refreshed
    assert rpc_runtime.store.snapshot.created_by(created.tx_hash) == 1

    assert (await rpc_runtime.complete(1)).ok
    sends = node.methods().count("eth_sendTransaction")

    again = await rpc_runtime.complete(1)
    assert again.status == "failed"
    assert again.error.reason == "already completed"
    assert node.methods().count("eth_sendTransaction") == sends
    assert rpc_runtime.store.snapshot.tasks == (Task(1, "buy milk", True),)
    await rpc_runtime.aclose()


@pytest.mark.anyio
async def test_undecodable_point_read_drops_only_that_task(rpc_runtime, node: ContractNode) -> None:
    for task_id, description in ((1, "a"), (2, "b")):
        node.log(EventKind.CREATED, [task_id, description])
        node.tasks[task_id] = Task(task_id, description)
    node.raw_reads[2] = "0x" + "00" * 16

    snap = await rpc_runtime.reload()

    assert snap.tasks == (Task(1, "a"),)
    assert rpc_runtime.store.last_error is None
    await rpc_runtime.aclose()


@pytest.mark.anyio
async def test_undecodable_log_fails_the_load_and_keeps_the_snapshot(rpc_runtime, node: ContractNode) -> None:
    node.log(EventKind.CREATED, [1, "a"])
    node.tasks[1] = Task(1, "a")
    before = await rpc_runtime.reload()

    node.log(EventKind.CREATED, [2, "b"])
    node.logs[-1]["data"] = "0x1234"

    with pytest.raises(EventDecodeError):
        await rpc_runtime.reload()

    assert rpc_runtime.store.snapshot is before
    assert rpc_runtime.store.last_error.startswith("Failed to load tasks:")
    await rpc_runtime.aclose()


@pytest.mark.anyio
async def test_ids_outside_uint256_fail_before_the_node_sees_them(rpc_runtime, node: ContractNode) -> None:
    negative = await rpc_runtime.complete(-1)
    too_big = await rpc_runtime.update(2**256, "x")

    for result in (negative, too_big):
        assert result.status == "rejected"
        assert isinstance(result.error, InvalidInput)
    assert node.methods() == []

    with pytest.raises(InvalidInput):
        await rpc_runtime.ledger.simulate(rpc_runtime.config.contract.address, "completeTask", (-1,), ACCOUNT)
    assert node.methods() == []
    await rpc_runtime.aclose()


@pytest.mark.anyio
async def test_confirmed_write_survives_an_undecodable_refresh(test_config: Config, node: ContractNode) -> None:
    strict = test_config.model_copy(
        update={"reconcile": test_config.reconcile.model_copy(update={"partial_results_allowed": False})}
    )
    rpc = node.client()
    signer = NodeAccountSigner(rpc=rpc)
    rt = _assemble(strict, JsonRpcLedger(rpc), signer, rpc)
    rt.session = Session(account=ACCOUNT, signer=signer)
    node.raw_reads[1] = "0xdeadbeef"

    result = await rt.create("buy milk")

    assert result.ok
    assert not result.refreshed
    assert node.tasks[1] == Task(1, "buy milk")
    assert rt.store.last_error.startswith("Failed to load tasks:")
    await rt.aclose()
