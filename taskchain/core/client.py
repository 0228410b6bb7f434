"""taskchain.core.client

Shared JSON-RPC client with:
- per-call timeout
- rate limiting (token bucket, optional)
- response size cap

No retries. A read can be re-issued by the caller; a send must never be
repeated behind the caller's back.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import time
from dataclasses import dataclass
from typing import Any

import httpx

from taskchain.core.exceptions import LedgerUnavailable, RpcError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ClientConfig:
    timeout_s: float = 20.0
    rate_limit_rps: float = 0.0  # 0 = unlimited
    max_bytes: int = 8 * 1024 * 1024


class _TokenBucket:
    def __init__(self, rate_per_sec: float) -> None:
        self.rate = max(rate_per_sec, 0.001)
        self.capacity = 1.0
        self.tokens = 1.0
        self.updated_at = time.monotonic()
        self._lock = asyncio.Lock()

    async def acquire(self) -> None:
        async with self._lock:
            now = time.monotonic()
            elapsed = now - self.updated_at
            self.updated_at = now
            self.tokens = min(self.capacity, self.tokens + elapsed * self.rate)
            if self.tokens >= 1.0:
                self.tokens -= 1.0
                return
            # wait for enough tokens
            needed = 1.0 - self.tokens
            wait_s = needed / self.rate
        await asyncio.sleep(wait_s)
        await self.acquire()


class RpcClient:
    """Async JSON-RPC 2.0 client over HTTP."""

    def __init__(
        self,
        url: str,
        config: ClientConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.url = str(url)
        self.config = config or ClientConfig()
        self._bucket = _TokenBucket(self.config.rate_limit_rps) if self.config.rate_limit_rps > 0 else None
        self._ids = itertools.count(1)
        self._client = httpx.AsyncClient(timeout=self.config.timeout_s, transport=transport)

    async def aclose(self) -> None:
        await self._client.aclose()

    def _enforce_max_bytes(self, resp: httpx.Response) -> None:
        size = len(resp.content)
        if size > int(self.config.max_bytes):
            raise LedgerUnavailable(f"response_too_large:{size}")

    async def call(self, method: str, params: list[Any] | None = None) -> Any:
        """Issue one call and return its ``result``.

        Raises:
            LedgerUnavailable: transport failure, non-2xx status, or a malformed body.
            RpcError: the node returned a JSON-RPC error object.
        """

        if self._bucket is not None:
            await self._bucket.acquire()

        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": str(method), "params": list(params or [])}
        try:
            resp = await self._client.post(self.url, json=payload)
            resp.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("rpc_transport_failed method=%s error=%s", method, type(e).__name__)
            raise LedgerUnavailable(f"{method}: {type(e).__name__}: {e}") from e

        self._enforce_max_bytes(resp)
        try:
            out = resp.json()
        except ValueError as e:
            raise LedgerUnavailable(f"{method}: response is not JSON") from e
        if not isinstance(out, dict):
            raise LedgerUnavailable(f"{method}: response_schema_mismatch")

        err = out.get("error")
        if err is not None:
            if not isinstance(err, dict):
                raise RpcError(-32603, str(err))
            raise RpcError(int(err.get("code", -32603)), str(err.get("message", "")), err.get("data"))
        if "result" not in out:
            raise LedgerUnavailable(f"{method}: response has neither result nor error")
        return out["result"]
