from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

from fastapi import Request

from taskchain.core.config import Config
from taskchain.runtime import Runtime, build_dev_runtime, build_runtime


@lru_cache
def _repo_root() -> Path:
    # Assume running from repo root (uvicorn started there). Fallback to parent of this file.
    here = Path(__file__).resolve()
    for p in [Path.cwd(), here.parent.parent]:
        if (p / "config" / "default.yaml").exists():
            return p
    return Path.cwd()


@lru_cache
def _load_config() -> Config:
    return Config.load(_repo_root())


def dev_mode() -> bool:
    return os.environ.get("TASKCHAIN_DEV", "").lower() in ("1", "true", "yes")


def get_config(request: Request) -> Config:
    cfg = getattr(request.app.state, "config", None)
    return cfg or _load_config()


def get_runtime(request: Request) -> Runtime:
    runtime = getattr(request.app.state, "runtime", None)
    if runtime is None:
        config = get_config(request)
        runtime = build_dev_runtime(config) if dev_mode() else build_runtime(config)
        request.app.state.runtime = runtime
    return runtime
