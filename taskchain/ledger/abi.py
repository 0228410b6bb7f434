"""taskchain.ledger.abi

Contract codec for the task list contract.

    event TaskCreated(uint256 id, string description)
    event TaskUpdated(uint256 id, string description)
    event TaskCompleted(uint256 id)
    function createTask(string description)
    function updateTask(uint256 id, string description)
    function completeTask(uint256 id)
    function getTask(uint256 id) view returns ((uint256 id, string description, bool completed))

No event argument is indexed, so everything but the signature topic lives in
the log's ``data``.
"""

from __future__ import annotations

from typing import Any, Final

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError, EncodingError
from eth_utils import (
    decode_hex,
    encode_hex,
    event_signature_to_log_topic,
    function_signature_to_4byte_selector,
)

from taskchain.core.exceptions import EventDecodeError, InvalidInput
from taskchain.core.types import EventKind, RawLog, Task

EVENT_INPUTS: Final[dict[EventKind, tuple[tuple[str, str], ...]]] = {
    EventKind.CREATED: (("id", "uint256"), ("description", "string")),
    EventKind.UPDATED: (("id", "uint256"), ("description", "string")),
    EventKind.COMPLETED: (("id", "uint256"),),
}

FUNCTION_INPUTS: Final[dict[str, tuple[str, ...]]] = {
    "createTask": ("string",),
    "updateTask": ("uint256", "string"),
    "completeTask": ("uint256",),
    "getTask": ("uint256",),
}

WRITE_FUNCTIONS: Final[frozenset[str]] = frozenset({"createTask", "updateTask", "completeTask"})

MAX_UINT256: Final[int] = 2**256 - 1

GET_TASK_OUTPUT: Final[str] = "(uint256,string,bool)"

ERROR_SELECTOR: Final[str] = "0x08c379a0"  # Error(string)
PANIC_SELECTOR: Final[str] = "0x4e487b71"  # Panic(uint256)


def event_signature(kind: EventKind) -> str:
    types = ",".join(t for _, t in EVENT_INPUTS[kind])
    return f"{kind.value}({types})"


def event_topic(kind: EventKind) -> str:
    return encode_hex(event_signature_to_log_topic(event_signature(kind)))


TOPIC_TO_EVENT: Final[dict[str, EventKind]] = {event_topic(k): k for k in EventKind}


def function_signature(name: str) -> str:
    if name not in FUNCTION_INPUTS:
        raise ValueError(f"unknown contract function: {name}")
    return f"{name}({','.join(FUNCTION_INPUTS[name])})"


def function_selector(name: str) -> str:
    return encode_hex(function_signature_to_4byte_selector(function_signature(name)))


def encode_call(name: str, args: tuple[Any, ...] | list[Any]) -> str:
    """ABI-encode call data (selector + arguments).

    Arguments the ABI cannot hold (a negative id, an id past uint256) raise
    :class:`InvalidInput`.
    """

    types = FUNCTION_INPUTS.get(name)
    if types is None:
        raise ValueError(f"unknown contract function: {name}")
    if len(args) != len(types):
        raise ValueError(f"{name} expects {len(types)} argument(s), got {len(args)}")
    try:
        body = encode(list(types), list(args))
    except EncodingError as e:
        raise InvalidInput(f"{name}: {e}") from e
    return function_selector(name) + body.hex()


def _hex_int(v: Any) -> int:
    if isinstance(v, int):
        return v
    return int(str(v), 16)


def decode_log(log: dict[str, Any]) -> RawLog:
    """Decode one ``eth_getLogs`` entry.

    A topic that is not one of ours is passed through as the event name with
    empty args; the normalizer decides what to do with it.
    """

    topics = log.get("topics") or []
    if not topics:
        raise EventDecodeError("log has no topics")

    topic0 = str(topics[0]).lower()
    kind = TOPIC_TO_EVENT.get(topic0)
    block_number = _hex_int(log.get("blockNumber") or 0)
    tx_hash = str(log.get("transactionHash") or "")
    log_index = _hex_int(log.get("logIndex") or 0)

    if kind is None:
        return RawLog(event_name=topic0, args={}, block_number=block_number, transaction_hash=tx_hash, log_index=log_index)

    names = [n for n, _ in EVENT_INPUTS[kind]]
    types = [t for _, t in EVENT_INPUTS[kind]]
    try:
        values = decode(types, decode_hex(str(log.get("data") or "0x")))
    except (DecodingError, ValueError) as e:
        raise EventDecodeError(f"{kind.value} at block {block_number}: {e}") from e

    return RawLog(
        event_name=kind.value,
        args=dict(zip(names, values, strict=True)),
        block_number=block_number,
        transaction_hash=tx_hash,
        log_index=log_index,
    )


def decode_task(data: str) -> Task:
    raw = decode_hex(data)
    if not raw:
        raise ValueError("empty return data")
    ((task_id, description, completed),) = decode([GET_TASK_OUTPUT], raw)
    return Task(id=int(task_id), description=str(description), completed=bool(completed))


def decode_revert(data: Any) -> str | None:
    """Extract a human-readable revert reason from revert data, if any."""

    if isinstance(data, dict):
        data = data.get("data")
    if not isinstance(data, str) or not data.startswith("0x") or len(data) < 10:
        return None

    selector, body = data[:10].lower(), decode_hex("0x" + data[10:])
    try:
        if selector == ERROR_SELECTOR:
            (reason,) = decode(["string"], body)
            return str(reason)
        if selector == PANIC_SELECTOR:
            (code,) = decode(["uint256"], body)
            return f"panic 0x{int(code):02x}"
    except (DecodingError, ValueError):
        return None
    return None


def revert_reason(message: str, data: Any = None) -> str:
    decoded = decode_revert(data)
    if decoded:
        return decoded
    msg = str(message).strip()
    for prefix in ("execution reverted:", "execution reverted"):
        if msg.lower().startswith(prefix):
            msg = msg[len(prefix) :].strip()
            break
    return msg or "execution reverted"
