"""taskchain.core.exceptions

Errors are part of the interface.

Read-side errors say what the ledger could not tell us. Write-side errors say
how far a transaction got, because that decides whether a retry is safe.
"""

from __future__ import annotations


class TaskchainError(Exception):
    """Base exception for taskchain."""


class ConfigError(TaskchainError):
    """Configuration is missing, invalid, or inconsistent."""


# -----------------
# Read side
# -----------------


class LedgerError(TaskchainError):
    """The ledger could not answer a query."""


class LedgerUnavailable(LedgerError):
    """Transport or provider failure. Nothing can be concluded about ledger state."""


class RpcError(LedgerError):
    """The node answered with a JSON-RPC error object."""

    def __init__(self, code: int, message: str, data: object = None) -> None:
        super().__init__(f"rpc error {code}: {message}")
        self.code = int(code)
        self.message = str(message)
        self.data = data

    @property
    def is_revert(self) -> bool:
        return self.code == 3 or "revert" in self.message.lower()


class TaskNotFound(LedgerError):
    """Point-read for an id that does not resolve."""

    def __init__(self, task_id: int) -> None:
        super().__init__(f"task {task_id} not found")
        self.task_id = int(task_id)


class EventDecodeError(LedgerError):
    """A log record does not match any known event kind."""


# -----------------
# Write side
# -----------------


class WriteError(TaskchainError):
    """A write intent did not reach a successful confirmation."""


class InvalidInput(WriteError):
    """The intent was rejected before touching the ledger."""


class WriteInProgress(WriteError):
    """Another write is still active. One at a time."""


class SimulationReverted(WriteError):
    """The dry-run reverted. Nothing was submitted."""

    def __init__(self, reason: str) -> None:
        super().__init__(f"simulation reverted: {reason}")
        self.reason = str(reason)


class SignerRejected(WriteError):
    """The signer declined to sign or send."""


class TransactionReverted(WriteError):
    """Mined, but the transaction failed. Fees were spent."""

    def __init__(self, tx_hash: str) -> None:
        super().__init__(f"transaction {tx_hash} reverted")
        self.tx_hash = str(tx_hash)


class ConfirmationTimeout(WriteError):
    """No receipt within the bound. The transaction may still be mined."""

    def __init__(self, tx_hash: str, timeout_s: float) -> None:
        super().__init__(f"transaction {tx_hash} not confirmed within {timeout_s:g}s")
        self.tx_hash = str(tx_hash)
        self.timeout_s = float(timeout_s)
