"""taskchain.ledger.signer

Signers turn a prepared call into a broadcast transaction.

- :class:`LocalAccountSigner` signs with a private key held in-process (eth-account)
  and broadcasts the raw transaction.
- :class:`NodeAccountSigner` asks the node to sign with an account it manages
  (dev nodes, wallet-backed providers). EIP-1193 code 4001 is a user rejection.

Neither retries a send.
"""

from __future__ import annotations

import logging

from eth_account import Account
from eth_utils import encode_hex, to_checksum_address

from taskchain.core.client import RpcClient
from taskchain.core.exceptions import RpcError, SignerRejected
from taskchain.core.types import PreparedCall

logger = logging.getLogger(__name__)

USER_REJECTED = 4001
METHOD_NOT_FOUND = -32601


def short_address(address: str) -> str:
    """``0x1234...abcd``"""

    a = str(address)
    if len(a) <= 10:
        return a
    return f"{a[:6]}...{a[-4:]}"


class LocalAccountSigner:
    def __init__(self, *, rpc: RpcClient, private_key: str, chain_id: int) -> None:
        if not private_key:
            raise ValueError("private_key is required for a local signer")
        self._rpc = rpc
        self._key = str(private_key)
        self._chain_id = int(chain_id)
        self.address = str(Account.from_key(self._key).address)

    async def accounts(self) -> list[str]:
        return [self.address]

    async def request_accounts(self) -> list[str]:
        return [self.address]

    async def send(self, call: PreparedCall) -> str:
        if call.sender.lower() != self.address.lower():
            raise SignerRejected(f"signer holds {short_address(self.address)}, call is from {short_address(call.sender)}")

        nonce = int(await self._rpc.call("eth_getTransactionCount", [self.address, "pending"]), 16)
        gas_price = int(await self._rpc.call("eth_gasPrice", []), 16)
        gas = call.gas
        if gas is None:
            gas = int(
                await self._rpc.call("eth_estimateGas", [{"from": self.address, "to": call.to, "data": call.data}]),
                16,
            )

        tx = {
            "to": to_checksum_address(call.to),
            "data": call.data,
            "value": int(call.value),
            "gas": int(gas),
            "gasPrice": gas_price,
            "nonce": nonce,
            "chainId": self._chain_id,
        }
        try:
            signed = Account.sign_transaction(tx, self._key)
        except (TypeError, ValueError) as e:
            raise SignerRejected(f"signing failed: {e}") from e

        raw = encode_hex(bytes(signed.raw_transaction))
        tx_hash = await self._rpc.call("eth_sendRawTransaction", [raw])
        logger.info("tx_broadcast function=%s nonce=%d hash=%s", call.function, nonce, tx_hash)
        return str(tx_hash)


class NodeAccountSigner:
    def __init__(self, *, rpc: RpcClient) -> None:
        self._rpc = rpc

    async def accounts(self) -> list[str]:
        out = await self._rpc.call("eth_accounts", [])
        return [str(a) for a in (out or [])]

    async def request_accounts(self) -> list[str]:
        try:
            out = await self._rpc.call("eth_requestAccounts", [])
        except RpcError as e:
            if e.code == USER_REJECTED:
                raise SignerRejected("account access rejected") from e
            if e.code == METHOD_NOT_FOUND:
                return await self.accounts()
            raise
        return [str(a) for a in (out or [])]

    async def send(self, call: PreparedCall) -> str:
        tx: dict[str, str] = {"from": call.sender, "to": call.to, "data": call.data, "value": hex(int(call.value))}
        if call.gas is not None:
            tx["gas"] = hex(int(call.gas))
        try:
            tx_hash = await self._rpc.call("eth_sendTransaction", [tx])
        except RpcError as e:
            if e.code == USER_REJECTED:
                raise SignerRejected("transaction rejected by signer") from e
            raise
        logger.info("tx_broadcast function=%s hash=%s", call.function, tx_hash)
        return str(tx_hash)
