from __future__ import annotations

from fastapi import APIRouter, Depends, Path

from api.auth import AuthDep
from api.deps import get_runtime
from api.errors import TaskchainAPIError, from_core_error
from api.schemas.tasks import MutationResponse, TaskDescriptionRequest, TaskResponse
from taskchain.core.exceptions import LedgerError
from taskchain.runtime import Runtime
from taskchain.sync.lifecycle import MutationResult

router = APIRouter(prefix="/tasks")


async def _ensure_session(runtime: Runtime) -> None:
    if runtime.session is None:
        await runtime.connect(request=True)


def _respond(runtime: Runtime, result: MutationResult) -> MutationResponse:
    if not result.ok:
        assert result.error is not None
        raise from_core_error(
            result.error,
            stage=str(result.stage) if result.stage is not None else None,
            safe_to_retry=result.safe_to_retry,
            tx_hash=result.tx_hash,
        )

    snapshot = runtime.store.snapshot
    task_id = result.target_id
    if task_id is None and result.tx_hash:
        task_id = snapshot.created_by(result.tx_hash)
    task = snapshot.task(task_id) if task_id is not None else None
    return MutationResponse.from_result(result, task)


@router.get("", response_model=list[TaskResponse])
async def list_tasks(refresh: bool = False, runtime: Runtime = Depends(get_runtime)) -> list[TaskResponse]:
    if refresh:
        try:
            await runtime.reload()
        except LedgerError as e:
            raise from_core_error(e) from e
    return [TaskResponse.from_task(t) for t in runtime.store.snapshot.tasks]


@router.get("/{task_id}", response_model=TaskResponse)
def get_task(
    task_id: int = Path(..., ge=0, description="Task id"),
    runtime: Runtime = Depends(get_runtime),
) -> TaskResponse:
    task = runtime.store.snapshot.task(task_id)
    if task is None:
        raise TaskchainAPIError(code="tasks.not_found", message=f"task {task_id} not found", status=404)
    return TaskResponse.from_task(task)


@router.post("", response_model=MutationResponse, dependencies=[AuthDep])
async def create_task(body: TaskDescriptionRequest, runtime: Runtime = Depends(get_runtime)) -> MutationResponse:
    await _ensure_session(runtime)
    return _respond(runtime, await runtime.create(body.description))


@router.put("/{task_id}", response_model=MutationResponse, dependencies=[AuthDep])
async def update_task(
    body: TaskDescriptionRequest,
    task_id: int = Path(..., ge=0, description="Task id"),
    runtime: Runtime = Depends(get_runtime),
) -> MutationResponse:
    await _ensure_session(runtime)
    return _respond(runtime, await runtime.update(task_id, body.description))


@router.post("/{task_id}/complete", response_model=MutationResponse, dependencies=[AuthDep])
async def complete_task(
    task_id: int = Path(..., ge=0, description="Task id"),
    runtime: Runtime = Depends(get_runtime),
) -> MutationResponse:
    await _ensure_session(runtime)
    return _respond(runtime, await runtime.complete(task_id))
