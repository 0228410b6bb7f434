from api.schemas.common import ErrorResponse
from api.schemas.tasks import (
    EventResponse,
    MutationResponse,
    PendingResponse,
    StateResponse,
    TaskDescriptionRequest,
    TaskResponse,
)

__all__ = [
    "ErrorResponse",
    "EventResponse",
    "MutationResponse",
    "PendingResponse",
    "StateResponse",
    "TaskDescriptionRequest",
    "TaskResponse",
]
