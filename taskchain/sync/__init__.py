"""taskchain.sync

Reconciliation core: the read path (normalize, reconstruct, publish) and the
write path (simulate, submit, confirm, reload).
"""

from __future__ import annotations

from taskchain.sync.coordinator import MutationCoordinator
from taskchain.sync.lifecycle import MutationResult, OperationKind, OperationPhase, PendingOperation
from taskchain.sync.normalizer import normalize
from taskchain.sync.reader import TaskReader
from taskchain.sync.reconstructor import EntityReconstructor
from taskchain.sync.store import StoreView, ViewStateStore

__all__ = [
    "EntityReconstructor",
    "MutationCoordinator",
    "MutationResult",
    "OperationKind",
    "OperationPhase",
    "PendingOperation",
    "StoreView",
    "TaskReader",
    "ViewStateStore",
    "normalize",
]
