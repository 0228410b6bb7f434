from __future__ import annotations

import httpx
import pytest

from taskchain.core.client import RpcClient
from taskchain.core.exceptions import LedgerUnavailable, RpcError
from tests.unit._rpc_fakes import FakeNode, NodeError


@pytest.mark.anyio
async def test_call_returns_result_and_numbers_requests() -> None:
    node = FakeNode({"eth_chainId": lambda p: "0x106a"})
    rpc = node.client()
    assert await rpc.call("eth_chainId") == "0x106a"
    assert await rpc.call("eth_chainId", []) == "0x106a"
    assert [r["id"] for r in node.requests] == [1, 2]
    assert node.requests[0]["jsonrpc"] == "2.0"
    await rpc.aclose()


@pytest.mark.anyio
async def test_error_object_becomes_rpc_error() -> None:
    def boom(params):
        raise NodeError(3, "execution reverted: nope", "0x08c379a0")

    rpc = FakeNode({"eth_call": boom}).client()
    with pytest.raises(RpcError) as e:
        await rpc.call("eth_call", [{}, "latest"])
    assert e.value.code == 3
    assert e.value.is_revert
    assert e.value.data == "0x08c379a0"
    await rpc.aclose()


@pytest.mark.anyio
async def test_transport_failures_are_ledger_unavailable() -> None:
    def down(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    rpc = RpcClient("http://node.test", transport=httpx.MockTransport(down))
    with pytest.raises(LedgerUnavailable):
        await rpc.call("eth_blockNumber")
    await rpc.aclose()


@pytest.mark.anyio
async def test_http_error_status_is_ledger_unavailable() -> None:
    calls = []

    def unavailable(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(503, text="overloaded")

    rpc = RpcClient("http://node.test", transport=httpx.MockTransport(unavailable))
    with pytest.raises(LedgerUnavailable):
        await rpc.call("eth_blockNumber")
    # never retried
    assert len(calls) == 1
    await rpc.aclose()


@pytest.mark.anyio
async def test_malformed_bodies_are_rejected() -> None:
    def not_json(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>")

    rpc = RpcClient("http://node.test", transport=httpx.MockTransport(not_json))
    with pytest.raises(LedgerUnavailable):
        await rpc.call("eth_blockNumber")
    await rpc.aclose()

    def empty(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1})

    rpc = RpcClient("http://node.test", transport=httpx.MockTransport(empty))
    with pytest.raises(LedgerUnavailable):
        await rpc.call("eth_blockNumber")
    await rpc.aclose()


@pytest.mark.anyio
async def test_response_size_cap() -> None:
    node = FakeNode({"eth_getLogs": lambda p: ["x" * 200]})
    rpc = node.client(max_bytes=64)
    with pytest.raises(LedgerUnavailable, match="response_too_large"):
        await rpc.call("eth_getLogs", [{}])
    await rpc.aclose()
