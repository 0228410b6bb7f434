from __future__ import annotations

import logging
import os
import time
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.deps import dev_mode
from api.errors import TaskchainAPIError, taskchain_error_handler
from api.routes import get_api_router
from taskchain import __version__
from taskchain.core.config import Config
from taskchain.core.exceptions import ConfigError, LedgerError

logger = logging.getLogger(__name__)


def create_app(config: Config | None = None) -> FastAPI:
    start = time.monotonic()

    if config is None:
        config = Config.load(Path.cwd())

    # Refuse to start with an empty auth_token unless explicitly overridden
    auth_token = str(config.api.auth_token or "")
    insecure_ok = os.environ.get("TASKCHAIN_INSECURE_OK", "").lower() in ("1", "true", "yes")

    if not auth_token and not insecure_ok:
        msg = (
            "SECURITY ERROR: API auth_token is empty\n"
            "\n"
            "Set TASKCHAIN_API__AUTH_TOKEN environment variable or add to config:\n"
            "  api:\n"
            "    auth_token: your-secret-token\n"
            "\n"
            "To run without auth (dev/test only), set TASKCHAIN_INSECURE_OK=1"
        )
        raise RuntimeError(msg)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        from taskchain.runtime import build_dev_runtime, build_runtime

        app.state.started_at = start
        app.state.config = getattr(app.state, "config", None) or config

        created = False
        if getattr(app.state, "runtime", None) is None:
            cfg = app.state.config
            app.state.runtime = build_dev_runtime(cfg) if dev_mode() else build_runtime(cfg)
            created = True

        runtime = app.state.runtime
        try:
            await runtime.connect()
        except LedgerError as e:
            logger.warning("signer_connect_failed error=%s", e)
        try:
            await runtime.reload()
        except LedgerError as e:
            # Serve the empty view; last_error is already set on the store.
            logger.warning("initial_load_failed error=%s", e)

        yield

        if created:
            await runtime.aclose()

    openapi_tags = [
        {"name": "health", "description": "Liveness and version metadata."},
        {"name": "state", "description": "The reconciled snapshot and write status."},
        {"name": "tasks", "description": "Tasks reconstructed from the ledger, and writes against it."},
        {"name": "events", "description": "Recent contract events, newest first."},
    ]

    app = FastAPI(
        title="taskchain API",
        description="Task list reconciled from an on-chain event log",
        version=__version__,
        openapi_tags=openapi_tags,
        lifespan=lifespan,
    )
    app.state.config = config

    app.add_exception_handler(TaskchainAPIError, taskchain_error_handler)

    # CORS: only enable if origins explicitly configured
    cors_origins = list(config.api.cors_origins or [])
    if cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.include_router(get_api_router(), prefix="/api/v1")
    return app


# Module-level app for uvicorn (e.g. `uvicorn api.main:app`).
# Guarded so test imports don't crash without a config or auth_token.
try:
    app = create_app()
except (RuntimeError, ConfigError):
    app = None
