from __future__ import annotations

import pytest

from api.main import create_app
from taskchain.core.config import Config
from taskchain.runtime import Runtime
from tests.unit._api_test_client import AUTH, make_app, make_client


def test_refuses_to_start_without_a_token(test_config: Config, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("TASKCHAIN_INSECURE_OK", raising=False)
    with pytest.raises(RuntimeError, match="auth_token"):
        create_app(test_config)


def test_insecure_override(test_config: Config, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TASKCHAIN_INSECURE_OK", "1")
    assert create_app(test_config) is not None


@pytest.mark.anyio
async def test_bad_tokens_are_rejected(runtime: Runtime) -> None:
    async with make_client(make_app(runtime)) as ac:
        wrong = await ac.post("/api/v1/reload", headers={"Authorization": "Bearer nope"})
        basic = await ac.post("/api/v1/reload", headers={"Authorization": "Basic abc"})
        ok = await ac.post("/api/v1/reload", headers=AUTH)

    assert wrong.json()["error"]["code"] == "auth.invalid_token"
    assert basic.json()["error"]["code"] == "auth.invalid_header"
    assert ok.status_code == 200


@pytest.mark.anyio
async def test_reads_are_open(runtime: Runtime) -> None:
    async with make_client(make_app(runtime)) as ac:
        r = await ac.get("/api/v1/state")
    assert r.status_code == 200
