from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path

from eth_utils import keccak

ABIS_DIR = Path(__file__).parent / "abis"

SWIFT_ABI_PATH = ABIS_DIR / "Swift.json"
SWIFT_SETTLEMENT_EVENTS_ABI_PATH = ABIS_DIR / "SwiftSettlementEvents.json"
ERC20_ABI_PATH = ABIS_DIR / "ERC20.json"


def load_abi(path: str | Path) -> list[dict]:
    """Load an ABI from a JSON file and return its "abi" field.

    Args:
        path: Path to the JSON file containing an "abi" field.

    Returns:
        ABI as a list of dictionaries.

    Raises:
        FileNotFoundError: If the file does not exist.
        json.JSONDecodeError: If the file is not valid JSON.
        KeyError: If the JSON does not contain an "abi" field.
    """
    p = Path(path)
    with p.open() as f:
        data = json.load(f)
    return data["abi"]


@lru_cache(maxsize=None)
def load_swift_abi() -> list[dict]:
    """Load the SWIFT escrow ABI (order entry points, OrderCreated, OrderUnlocked)."""
    return load_abi(SWIFT_ABI_PATH)


@lru_cache(maxsize=None)
def load_swift_settlement_events_abi() -> list[dict]:
    """Load the indexed fulfill/unlock event variants emitted around settlement."""
    return load_abi(SWIFT_SETTLEMENT_EVENTS_ABI_PATH)


@lru_cache(maxsize=None)
def load_erc20_abi() -> list[dict]:
    return load_abi(ERC20_ABI_PATH)


def canonical_type(param: dict) -> str:
    """Collapse an ABI parameter into its canonical type string.

    Tuples are expanded recursively, keeping any array suffix:
    ``tuple[]`` with components ``(uint8, bytes32)`` becomes ``(uint8,bytes32)[]``.
    """
    abi_type = param["type"]
    if not abi_type.startswith("tuple"):
        return abi_type
    suffix = abi_type[len("tuple") :]
    inner = ",".join(canonical_type(c) for c in param.get("components", []))
    return f"({inner}){suffix}"


def canonical_signature(entry: dict) -> str:
    """``name(type1,type2,...)`` as used for selectors and topics."""
    types = ",".join(canonical_type(p) for p in entry.get("inputs", []))
    return f"{entry['name']}({types})"


def function_selector(entry: dict) -> bytes:
    return keccak(text=canonical_signature(entry))[:4]


def event_topic(entry: dict) -> bytes:
    return keccak(text=canonical_signature(entry))


def find_abi_entries(abi: list[dict], kind: str, name: str | None = None) -> list[dict]:
    """Return ABI entries of ``kind`` ("function" / "event"), optionally filtered by name."""
    return [
        entry
        for entry in abi
        if entry.get("type") == kind and (name is None or entry.get("name") == name)
    ]


def find_abi_entry(abi: list[dict], kind: str, name: str) -> dict:
    """Return the single ABI entry named ``name``.

    Raises:
        KeyError: If no entry or more than one entry matches.
    """
    matches = find_abi_entries(abi, kind, name)
    if len(matches) != 1:
        raise KeyError(f"Expected one {kind} named {name!r}, found {len(matches)}")
    return matches[0]
