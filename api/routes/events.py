from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from api.deps import get_runtime
from api.schemas.tasks import EventResponse
from taskchain.runtime import Runtime

router = APIRouter(prefix="/events")


@router.get("", response_model=list[EventResponse])
def list_events(
    limit: int | None = Query(default=None, ge=1, le=1000),
    runtime: Runtime = Depends(get_runtime),
) -> list[EventResponse]:
    n = limit or runtime.config.reconcile.event_feed_limit
    network = runtime.config.network
    return [EventResponse.from_event(e, network) for e in runtime.store.snapshot.recent_events(n)]
