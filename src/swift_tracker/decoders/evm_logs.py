"""Receipt log decoding for the SWIFT contract, its settlement events and ERC-20 transfers.

Logs are matched by ``topics[0]`` against the canonical event signatures and
decoded with ``eth_abi``. A log that matches a signature but does not decode
(e.g. an ERC-721 ``Transfer`` with the token id in ``topics[3]``) is skipped.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Any, Iterable, Mapping, Sequence

from eth_abi import decode
from eth_abi.exceptions import DecodingError
from eth_utils import to_bytes, to_hex

from ..abi import (
    event_topic,
    find_abi_entries,
    find_abi_entry,
    load_erc20_abi,
    load_swift_abi,
    load_swift_settlement_events_abi,
)
from ..domain.evm import FulfillEvent, OrderCreatedEvent, OrderUnlockedEvent, TokenTransfer
from ..errors import DecodeFailure
from ..logger import get_logger

logger = get_logger(__name__)

Log = Mapping[str, Any]

FULFILL_EVENT_NAMES = ("OrderFulfilled", "SwiftFulfill")
UNLOCK_EVENT_NAMES = ("OrderUnlocked", "AssetRedeemed", "SwiftUnlock")


def as_bytes(value: Any) -> bytes:
    """HexBytes / bytes / ``0x`` strings to ``bytes``."""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, str):
        try:
            return to_bytes(hexstr=value)
        except ValueError as exc:
            raise DecodeFailure(f"Invalid hex value {value!r}: {exc}") from exc
    raise DecodeFailure(f"Cannot interpret {type(value).__name__} as bytes")


def normalize_address(value: Any) -> str:
    """Lowercase ``0x`` address from a string, 20 raw bytes or a 32-byte topic."""
    if isinstance(value, str) and len(value) == 42:
        return value.lower()
    raw = as_bytes(value)
    if len(raw) not in (20, 32):
        raise DecodeFailure(f"Cannot interpret {len(raw)} bytes as an address")
    return to_hex(raw[-20:]).lower()


@lru_cache(maxsize=None)
def transfer_event() -> dict:
    return find_abi_entry(load_erc20_abi(), "event", "Transfer")


@lru_cache(maxsize=None)
def order_created_event() -> dict:
    return find_abi_entry(load_swift_abi(), "event", "OrderCreated")


@lru_cache(maxsize=None)
def order_unlocked_event() -> dict:
    return find_abi_entry(load_swift_abi(), "event", "OrderUnlocked")


def _settlement_events(names: Sequence[str]) -> dict[bytes, dict]:
    entries = find_abi_entries(load_swift_settlement_events_abi(), "event")
    return {event_topic(entry): entry for entry in entries if entry["name"] in names}


@lru_cache(maxsize=None)
def fulfill_events_by_topic() -> dict[bytes, dict]:
    return _settlement_events(FULFILL_EVENT_NAMES)


@lru_cache(maxsize=None)
def unlock_events_by_topic() -> dict[bytes, dict]:
    return _settlement_events(UNLOCK_EVENT_NAMES)


def log_topics(log: Log) -> list[bytes]:
    return [as_bytes(topic) for topic in log.get("topics") or []]


def log_index(log: Log) -> int:
    index = log.get("logIndex", 0)
    if isinstance(index, str):
        return int(index, 16) if index.startswith("0x") else int(index)
    return int(index)


def _convert(abi_type: str, value: Any) -> Any:
    if abi_type == "address":
        return normalize_address(value)
    if abi_type.startswith("bytes") and isinstance(value, (bytes, bytearray)):
        return to_hex(value)
    return value


def decode_event_log(entry: dict, log: Log) -> dict[str, Any]:
    """Decode a log against an event ABI entry into ``{arg_name: value}``.

    Raises:
        DecodeFailure: If the topic layout or data does not fit the event.
    """
    topics = log_topics(log)
    indexed = [p for p in entry["inputs"] if p.get("indexed")]
    non_indexed = [p for p in entry["inputs"] if not p.get("indexed")]

    if not topics or topics[0] != event_topic(entry):
        raise DecodeFailure(f"Log is not a {entry['name']} event")
    if len(topics) != len(indexed) + 1:
        raise DecodeFailure(
            f"{entry['name']} expects {len(indexed)} indexed topics, got {len(topics) - 1}"
        )

    args: dict[str, Any] = {}
    try:
        for param, topic in zip(indexed, topics[1:]):
            (value,) = decode([param["type"]], topic)
            args[param["name"]] = _convert(param["type"], value)

        data = as_bytes(log.get("data") or b"")
        values = decode([p["type"] for p in non_indexed], data) if non_indexed else ()
    except (DecodingError, ValueError, TypeError) as exc:
        raise DecodeFailure(f"Failed to decode {entry['name']} log: {exc}") from exc

    for param, value in zip(non_indexed, values):
        args[param["name"]] = _convert(param["type"], value)
    return args


def _matching(logs: Iterable[Log], entry: dict) -> Iterable[tuple[Log, dict[str, Any]]]:
    topic = event_topic(entry)
    for log in logs:
        try:
            topics = log_topics(log)
            if not topics or topics[0] != topic:
                continue
            args = decode_event_log(entry, log)
        except DecodeFailure as exc:
            logger.debug("Skipping log %s: %s", log.get("logIndex"), exc)
            continue
        yield log, args


def decode_transfers(logs: Iterable[Log]) -> list[TokenTransfer]:
    """All ERC-20 ``Transfer`` logs in log order, without token metadata."""
    transfers = []
    for log, args in _matching(logs, transfer_event()):
        transfers.append(
            TokenTransfer(
                token_address=normalize_address(log["address"]),
                sender=args["from"],
                recipient=args["to"],
                amount=args["value"],
                log_index=log_index(log),
            )
        )
    return transfers


def find_order_created(logs: Iterable[Log]) -> OrderCreatedEvent | None:
    """First ``OrderCreated`` log; later ones are ignored."""
    for log, args in _matching(logs, order_created_event()):
        return OrderCreatedEvent(
            order_hash=args["key"],
            contract_address=normalize_address(log["address"]),
            log_index=log_index(log),
        )
    return None


def decode_order_unlocked(logs: Iterable[Log]) -> list[OrderUnlockedEvent]:
    """Batch unlock settlement emits one ``OrderUnlocked(bytes32)`` per order."""
    return [
        OrderUnlockedEvent(
            order_hash=args["orderHash"],
            contract_address=normalize_address(log["address"]),
            log_index=log_index(log),
        )
        for log, args in _matching(logs, order_unlocked_event())
    ]


def _decode_settlement(logs: Sequence[Log], by_topic: dict[bytes, dict]) -> list[FulfillEvent]:
    events = []
    for log in logs:
        try:
            topics = log_topics(log)
            entry = by_topic.get(topics[0]) if topics else None
            if entry is None:
                continue
            args = decode_event_log(entry, log)
        except DecodeFailure as exc:
            logger.debug("Skipping log %s: %s", log.get("logIndex"), exc)
            continue
        party_param = entry["inputs"][1]["name"]
        events.append(
            FulfillEvent(
                event=entry["name"],
                order_hash=args["orderHash"],
                contract_address=normalize_address(log["address"]),
                log_index=log_index(log),
                party=args.get(party_param),
                amount=args.get("amount"),
            )
        )
    return events


def decode_fulfill_events(logs: Sequence[Log]) -> list[FulfillEvent]:
    return _decode_settlement(logs, fulfill_events_by_topic())


def decode_unlock_events(logs: Sequence[Log]) -> list[FulfillEvent]:
    """Indexed unlock / redeem events (``OrderUnlocked`` with recipient, ``AssetRedeemed``, ``SwiftUnlock``)."""
    return _decode_settlement(logs, unlock_events_by_topic())
