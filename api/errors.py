from __future__ import annotations

from fastapi import Request
from fastapi.responses import JSONResponse

from taskchain.core.exceptions import (
    ConfirmationTimeout,
    InvalidInput,
    LedgerUnavailable,
    SignerRejected,
    SimulationReverted,
    TaskchainError,
    TaskNotFound,
    TransactionReverted,
    WriteInProgress,
)


class TaskchainAPIError(Exception):
    def __init__(self, code: str, message: str, status: int = 400, **extra: object) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.status = status
        self.extra = extra


# (code, http status) per core error; first match wins
_ERROR_MAP: list[tuple[type[TaskchainError], str, int]] = [
    (InvalidInput, "write.invalid_input", 400),
    (TaskNotFound, "tasks.not_found", 404),
    (WriteInProgress, "write.in_progress", 409),
    (SignerRejected, "write.signer_rejected", 403),
    (SimulationReverted, "write.simulation_reverted", 422),
    (TransactionReverted, "write.transaction_reverted", 422),
    (ConfirmationTimeout, "write.confirmation_timeout", 504),
    (LedgerUnavailable, "ledger.unavailable", 502),
]


def from_core_error(exc: TaskchainError, **extra: object) -> TaskchainAPIError:
    for cls, code, status in _ERROR_MAP:
        if isinstance(exc, cls):
            return TaskchainAPIError(code=code, message=str(exc), status=status, **extra)
    return TaskchainAPIError(code="ledger.error", message=str(exc), status=502, **extra)


async def taskchain_error_handler(request: Request, exc: TaskchainAPIError) -> JSONResponse:
    body = {"error": {"code": exc.code, "message": exc.message, **exc.extra}}
    return JSONResponse(status_code=exc.status, content=body)
