"""JSON rendering of analysis results.

Integer magnitudes (amounts, fees, gas) are emitted as decimal strings so
64/256-bit values survive JSON consumers that parse numbers as doubles.
Counters and positions listed in ``PLAIN_INT_FIELDS`` stay numeric.
"""

from __future__ import annotations

import dataclasses
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel
from pydantic.alias_generators import to_camel, to_snake

from ..units import format_decimal

PLAIN_INT_FIELDS = frozenset(
    {
        "slot",
        "block_number",
        "block_time",
        "block_timestamp",
        "log_index",
        "index",
        "instruction_index",
        "account_index",
        "count",
        "transaction_count",
        "successful_count",
        "total_transfers",
        "total_locked_assets",
        "total_unlocked_orders",
        "total_unlocked_assets",
        "decimals",
        "token_decimals",
        "native_decimals",
        "dest_chain_id",
        "chain_id",
        "referrer_bps",
        "auction_mode",
        "compute_units_consumed",
        "order_count",
    }
)


def _dataclass_items(obj: Any) -> list[tuple[str, Any]]:
    items = [(f.name, getattr(obj, f.name)) for f in dataclasses.fields(obj)]
    for name in getattr(obj, "SERIALIZED_PROPERTIES", ()):
        items.append((name, getattr(obj, name)))
    return items


def to_json_compatible(value: Any, field_name: str | None = None) -> Any:
    """Recursively convert analysis output into JSON-ready primitives.

    Dataclass fields become camelCase keys; mapping keys are kept as they are.
    """
    if isinstance(value, Enum):
        return value.value
    if value is None or isinstance(value, (bool, str, float)):
        return value
    if isinstance(value, int):
        if field_name is not None and to_snake(field_name) in PLAIN_INT_FIELDS:
            return value
        return str(value)
    if isinstance(value, Decimal):
        return format_decimal(value)
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    if isinstance(value, BaseModel):
        return to_json_compatible(value.model_dump(by_alias=True))
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {
            to_camel(name): to_json_compatible(item, name)
            for name, item in _dataclass_items(value)
        }
    if isinstance(value, dict):
        return {str(key): to_json_compatible(item, str(key)) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_json_compatible(item, field_name) for item in value]
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _timestamp() -> str:
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def build_envelope(
    success: bool, data: Any = None, error: str | None = None
) -> dict[str, Any]:
    """``{success, data|error, timestamp}`` response envelope."""
    envelope: dict[str, Any] = {"success": success}
    if success:
        envelope["data"] = to_json_compatible(data)
    else:
        envelope["error"] = error
    envelope["timestamp"] = _timestamp()
    return envelope
