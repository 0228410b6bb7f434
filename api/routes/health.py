from __future__ import annotations

import time

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel

from api.deps import get_runtime
from taskchain import __version__
from taskchain.runtime import Runtime

router = APIRouter()


class HealthResponse(BaseModel):
    version: str
    uptime_seconds: float
    network: str
    chain_id: int
    contract: str
    signer_connected: bool
    block_number: int | None = None


@router.get("/health", response_model=HealthResponse)
def health(request: Request, runtime: Runtime = Depends(get_runtime)) -> HealthResponse:
    started_at = float(getattr(request.app.state, "started_at", time.monotonic()))
    uptime = time.monotonic() - started_at

    return HealthResponse(
        version=__version__,
        uptime_seconds=uptime,
        network=runtime.config.network.name,
        chain_id=runtime.config.network.chain_id,
        contract=runtime.config.contract.address,
        signer_connected=runtime.session is not None,
        block_number=runtime.store.snapshot.block_number,
    )
