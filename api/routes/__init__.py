from __future__ import annotations

from fastapi import APIRouter

from api.routes import events, health, state, tasks


def get_api_router() -> APIRouter:
    router = APIRouter()

    router.include_router(health.router, tags=["health"])
    router.include_router(state.router, tags=["state"])
    router.include_router(tasks.router, tags=["tasks"])
    router.include_router(events.router, tags=["events"])

    return router
