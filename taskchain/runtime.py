"""taskchain.runtime

Wiring. One :class:`Runtime` per application scope (CLI invocation, API
process). It owns the transport, the store and the session; every write goes
through it with the session passed explicitly.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from taskchain.core.client import ClientConfig, RpcClient
from taskchain.core.config import Config
from taskchain.core.exceptions import ConfigError, SignerRejected
from taskchain.core.types import Snapshot
from taskchain.ledger.gateway import LedgerGateway, Session, Signer
from taskchain.ledger.memory import InMemoryLedger, InMemorySigner
from taskchain.ledger.rpc import JsonRpcLedger
from taskchain.ledger.signer import LocalAccountSigner, NodeAccountSigner
from taskchain.sync.coordinator import MutationCoordinator
from taskchain.sync.lifecycle import MutationResult
from taskchain.sync.reader import TaskReader
from taskchain.sync.reconstructor import EntityReconstructor
from taskchain.sync.store import ViewStateStore

logger = logging.getLogger(__name__)


@dataclass
class Runtime:
    config: Config
    ledger: LedgerGateway
    store: ViewStateStore
    reader: TaskReader
    coordinator: MutationCoordinator
    signer: Signer | None = None
    session: Session | None = None
    rpc: RpcClient | None = None

    async def connect(self, *, request: bool = False) -> Session | None:
        """Resolve the connected account. ``request`` asks the signer for access if none is exposed."""

        if self.signer is None:
            self.session = None
            return None

        accounts = await self.signer.accounts()
        if not accounts and request:
            accounts = await self.signer.request_accounts()
        if not accounts:
            self.session = None
            return None

        preferred = self.config.signer.account.lower()
        account = next((a for a in accounts if a.lower() == preferred), accounts[0])
        self.session = Session(account=account, signer=self.signer)
        logger.info("session_connected account=%s", account)
        return self.session

    async def verify_network(self) -> int:
        chain_id = await self.ledger.chain_id()
        if chain_id != self.config.network.chain_id:
            raise ConfigError(
                f"connected to chain {chain_id}, expected {self.config.network.chain_id} ({self.config.network.name})"
            )
        return chain_id

    async def reload(self) -> Snapshot:
        return await self.reader.load()

    async def create(self, description: str) -> MutationResult:
        return await self.coordinator.create(self.session, description)

    async def update(self, task_id: int, description: str) -> MutationResult:
        return await self.coordinator.update(self.session, task_id, description)

    async def complete(self, task_id: int) -> MutationResult:
        return await self.coordinator.complete(self.session, task_id)

    async def aclose(self) -> None:
        if self.rpc is not None:
            await self.rpc.aclose()


def _assemble(config: Config, ledger: LedgerGateway, signer: Signer | None, rpc: RpcClient | None) -> Runtime:
    contract = config.contract.address
    store = ViewStateStore()
    reconstructor = EntityReconstructor(
        ledger,
        contract,
        partial_results_allowed=config.reconcile.partial_results_allowed,
        read_timeout_s=config.timeouts.read_timeout_s,
    )
    reader = TaskReader(
        ledger=ledger,
        store=store,
        reconstructor=reconstructor,
        contract=contract,
        from_block=config.contract.from_block,
    )
    coordinator = MutationCoordinator(
        ledger=ledger,
        reader=reader,
        store=store,
        contract=contract,
        confirmation_timeout_s=config.timeouts.confirmation_timeout_s,
        poll_interval_s=config.timeouts.poll_interval_s,
    )
    return Runtime(
        config=config,
        ledger=ledger,
        store=store,
        reader=reader,
        coordinator=coordinator,
        signer=signer,
        rpc=rpc,
    )


def build_runtime(config: Config) -> Runtime:
    """Runtime against the configured node."""

    rpc = RpcClient(config.network.rpc_url, ClientConfig(timeout_s=config.timeouts.rpc_timeout_s))
    ledger = JsonRpcLedger(rpc, max_block_range=config.contract.max_block_range)

    signer: Signer | None = None
    mode = config.signer.mode
    if mode == "local":
        if config.signer.private_key:
            signer = LocalAccountSigner(rpc=rpc, private_key=config.signer.private_key, chain_id=config.network.chain_id)
        else:
            logger.warning("signer_key_missing mode=local writes_disabled=true")
    elif mode == "node":
        signer = NodeAccountSigner(rpc=rpc)

    return _assemble(config, ledger, signer, rpc)


def build_dev_runtime(config: Config, ledger: InMemoryLedger | None = None) -> Runtime:
    """Runtime against an in-process ledger. Network settings are ignored."""

    mem = ledger or InMemoryLedger(chain_id=config.network.chain_id)
    return _assemble(config, mem, InMemorySigner(mem), None)


async def require_session(runtime: Runtime) -> Session:
    session = runtime.session or await runtime.connect(request=True)
    if session is None:
        raise SignerRejected("no connected signer")
    return session
