"""taskchain.sync.reader

One read pass: fetch logs → normalize → reconstruct → publish.

The range always starts at the configured ``from_block`` (the contract's
deployment block or 0), so every id ever created stays discoverable.
"""

from __future__ import annotations

import logging

from taskchain.core.exceptions import LedgerError
from taskchain.core.types import Snapshot
from taskchain.ledger.gateway import ALL_EVENTS, LedgerGateway
from taskchain.sync.normalizer import normalize
from taskchain.sync.reconstructor import EntityReconstructor
from taskchain.sync.store import ViewStateStore

logger = logging.getLogger(__name__)


class TaskReader:
    def __init__(
        self,
        *,
        ledger: LedgerGateway,
        store: ViewStateStore,
        reconstructor: EntityReconstructor,
        contract: str,
        from_block: int = 0,
    ) -> None:
        self.ledger = ledger
        self.store = store
        self.reconstructor = reconstructor
        self.contract = contract
        self.from_block = int(from_block)

    async def load(self) -> Snapshot:
        """Run a full pass and publish it.

        On failure the previous snapshot stays in place, ``last_error`` is set,
        and the error propagates.
        """

        ticket = self.store.begin_pass()
        with self.store.activity():
            try:
                head = await self.ledger.block_number()
                raw = await self.ledger.fetch_events(self.contract, ALL_EVENTS, self.from_block, head)
                events = normalize(raw)
                tasks = await self.reconstructor.reconstruct(events)
            except LedgerError as e:
                logger.warning("load_failed error=%s", e)
                self.store.fail(f"Failed to load tasks: {e}")
                raise

        if self.store.publish(ticket, tasks, events, block_number=head):
            logger.info("snapshot_published tasks=%d events=%d block=%d", len(tasks), len(events), head)
        return self.store.snapshot
