from __future__ import annotations

from fastapi import APIRouter, Depends

from api.auth import AuthDep
from api.deps import get_runtime
from api.errors import from_core_error
from api.schemas.tasks import EventResponse, PendingResponse, StateResponse, TaskResponse
from taskchain.core.exceptions import LedgerError
from taskchain.runtime import Runtime

router = APIRouter()


def _state(runtime: Runtime) -> StateResponse:
    view = runtime.store.view()
    network = runtime.config.network
    limit = runtime.config.reconcile.event_feed_limit
    return StateResponse(
        tasks=[TaskResponse.from_task(t) for t in view.tasks],
        events=[EventResponse.from_event(e, network) for e in view.events[:limit]],
        busy=view.busy,
        last_error=view.last_error,
        pending=PendingResponse.from_operation(view.pending) if view.pending is not None else None,
        block_number=view.block_number,
    )


@router.get("/state", response_model=StateResponse)
def state(runtime: Runtime = Depends(get_runtime)) -> StateResponse:
    """Last reconciled snapshot. Does not touch the ledger."""

    return _state(runtime)


@router.post("/reload", response_model=StateResponse, dependencies=[AuthDep])
async def reload(runtime: Runtime = Depends(get_runtime)) -> StateResponse:
    try:
        await runtime.reload()
    except LedgerError as e:
        raise from_core_error(e) from e
    return _state(runtime)
