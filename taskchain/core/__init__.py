"""taskchain.core

Core primitives: config, errors, value types, transport.

Nothing in here knows about the reconciliation pipeline.
"""

from .config import Config
from .exceptions import TaskchainError
from .types import EventKind, LedgerEvent, Snapshot, Task

__all__ = [
    "Config",
    "EventKind",
    "LedgerEvent",
    "Snapshot",
    "Task",
    "TaskchainError",
]
