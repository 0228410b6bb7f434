"""taskchain.sync.reconstructor

Current task set from the event feed plus authoritative point-reads.

Events only answer "which ids exist". Values come from ``getTask`` because
the contract's own view is the one that is guaranteed consistent; folding
event payloads could drift from it.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable

from taskchain.core.exceptions import LedgerError, LedgerUnavailable
from taskchain.core.types import LedgerEvent, Task, TaskCreated
from taskchain.ledger.gateway import LedgerGateway

logger = logging.getLogger(__name__)


def created_ids(events: Iterable[LedgerEvent]) -> list[int]:
    """Distinct ids with a creation event, first-seen order.

    Ids seen only in updates or completions are not materialized.
    """

    seen: dict[int, None] = {}
    for ev in events:
        if isinstance(ev, TaskCreated):
            seen.setdefault(ev.task_id, None)
    return list(seen)


class EntityReconstructor:
    """Fan out one point-read per created id, fan in, sort by id.

    With ``partial_results_allowed`` (the default) a failed read drops that
    task and the pass still succeeds. Without it, the first failure is raised
    after every read has settled.
    """

    def __init__(
        self,
        ledger: LedgerGateway,
        contract: str,
        *,
        partial_results_allowed: bool = True,
        read_timeout_s: float = 15.0,
    ) -> None:
        self.ledger = ledger
        self.contract = contract
        self.partial_results_allowed = partial_results_allowed
        self.read_timeout_s = float(read_timeout_s)

    async def _read(self, task_id: int) -> Task:
        try:
            return await asyncio.wait_for(self.ledger.read_task(self.contract, task_id), timeout=self.read_timeout_s)
        except TimeoutError as e:
            raise LedgerUnavailable(f"getTask({task_id}) timed out after {self.read_timeout_s:g}s") from e

    async def reconstruct(self, events: Iterable[LedgerEvent]) -> list[Task]:
        ids = created_ids(events)
        results = await asyncio.gather(*(self._read(i) for i in ids), return_exceptions=True)

        tasks: list[Task] = []
        for task_id, res in zip(ids, results, strict=True):
            if isinstance(res, Task):
                tasks.append(res)
                continue
            if not isinstance(res, LedgerError):
                raise res
            if not self.partial_results_allowed:
                raise res
            logger.warning("task_read_dropped id=%d error=%s", task_id, res)

        return sorted(tasks, key=lambda t: t.id)
