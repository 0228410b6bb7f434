"""taskchain.ledger

Everything that talks to (or stands in for) the chain.
"""

from __future__ import annotations

from taskchain.ledger.gateway import ALL_EVENTS, LedgerGateway, Session, Signer
from taskchain.ledger.memory import InMemoryLedger, InMemorySigner
from taskchain.ledger.rpc import JsonRpcLedger
from taskchain.ledger.signer import LocalAccountSigner, NodeAccountSigner

__all__ = [
    "ALL_EVENTS",
    "InMemoryLedger",
    "InMemorySigner",
    "JsonRpcLedger",
    "LedgerGateway",
    "LocalAccountSigner",
    "NodeAccountSigner",
    "Session",
    "Signer",
]
