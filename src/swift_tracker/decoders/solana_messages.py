"""Helpers for Solana ``getTransaction`` payloads.

Covers the parts of the wire format shared by the Solana analyses: account
key resolution across message versions, top-level instruction normalization
for the ``jsonParsed`` encoding, and System program transfer decoding for the
raw ``json`` encoding.
"""

from __future__ import annotations

import struct
from typing import Any, Iterator, Sequence

import base58

from ..constants import SOLANA_KNOWN_TOKENS, SOLANA_SYSTEM_PROGRAM_ID
from ..domain.solana import (
    AccountKeySource,
    InstructionKind,
    InstructionRecord,
    TokenTransferInstruction,
)
from ..errors import DecodeFailure
from ..logger import get_logger

logger = get_logger(__name__)

SPL_TOKEN_PROGRAMS = ("spl-token", "spl-token-2022")
TOKEN_TRANSFER_TYPES = ("transfer", "transferChecked")

SYSTEM_TRANSFER_DISCRIMINATOR = 2
_SYSTEM_TRANSFER_LAYOUT = struct.Struct("<IQ")


def _key_to_str(key: Any) -> str | None:
    # jsonParsed: {"pubkey": ..., "signer": ..., "writable": ..., "source": ...}
    if isinstance(key, dict):
        return key.get("pubkey")
    if isinstance(key, str):
        return key
    return None


def resolve_account_keys(tx: dict[str, Any]) -> tuple[list[str | None], AccountKeySource]:
    """Return the ordered account keys of a transaction.

    Legacy messages carry the full list. Versioned messages carry static keys
    plus address table lookups; the node resolves those into
    ``meta.loadedAddresses`` (``json``) or inlines them into the key list
    (``jsonParsed``). Without resolution only the static keys are returned and
    indices past them are unknown accounts.
    """
    message = (tx.get("transaction") or {}).get("message") or {}
    meta = tx.get("meta") or {}
    raw_keys = message.get("accountKeys") or []
    keys = [_key_to_str(key) for key in raw_keys]

    version = tx.get("version", "legacy")
    if version in (None, "legacy"):
        return keys, AccountKeySource.LEGACY

    # jsonParsed already lists lookup-table keys after the static ones
    if any(isinstance(key, dict) and key.get("source") == "lookupTable" for key in raw_keys):
        return keys, AccountKeySource.LOOKUP_RESOLVED

    lookups = message.get("addressTableLookups") or []
    loaded = meta.get("loadedAddresses")
    if loaded:
        keys.extend(loaded.get("writable") or [])
        keys.extend(loaded.get("readonly") or [])
        return keys, AccountKeySource.LOOKUP_RESOLVED
    if not lookups:
        return keys, AccountKeySource.LOOKUP_RESOLVED

    logger.warning(
        "Address lookup tables not resolved, using %d static account keys only",
        len(keys),
    )
    return keys, AccountKeySource.STATIC_ONLY


def key_at(keys: Sequence[str | None], index: int) -> str | None:
    if 0 <= index < len(keys):
        return keys[index]
    return None


def mint_by_token_account(
    meta: dict[str, Any], keys: Sequence[str | None]
) -> dict[str, str]:
    """Map token account addresses to their mint using the balance snapshots."""
    mints: dict[str, str] = {}
    for balance in (meta.get("preTokenBalances") or []) + (meta.get("postTokenBalances") or []):
        address = key_at(keys, int(balance.get("accountIndex", -1)))
        if address and balance.get("mint"):
            mints[address] = balance["mint"]
    return mints


def _decode_token_transfer(
    index: int,
    instruction: dict[str, Any],
    mints: dict[str, str],
    token_symbols: dict[str, str],
) -> InstructionRecord:
    parsed = instruction["parsed"]
    info = parsed["info"]
    source = info.get("source")
    destination = info.get("destination")
    if not source or not destination:
        raise DecodeFailure(f"Token transfer at {index} is missing source or destination")

    if parsed["type"] == "transferChecked":
        amount = int(info["tokenAmount"]["amount"])
    else:
        amount = int(info["amount"])

    mint = info.get("mint") or mints.get(source) or mints.get(destination)
    return InstructionRecord(
        index=index,
        kind=InstructionKind.TOKEN_TRANSFER,
        program_id=instruction.get("programId"),
        program=instruction.get("program"),
        transfer=TokenTransferInstruction(
            source=source,
            destination=destination,
            authority=info.get("authority") or info.get("multisigAuthority"),
            amount=amount,
            mint=mint,
            token_symbol=token_symbols.get(mint) if mint else None,
        ),
    )


def normalize_instruction(
    index: int,
    instruction: dict[str, Any],
    mints: dict[str, str] | None = None,
    token_symbols: dict[str, str] | None = None,
) -> InstructionRecord:
    """Turn one ``jsonParsed`` instruction into a typed record.

    Anything that is not a recognized SPL token transfer, including a transfer
    whose payload is malformed, becomes ``UNKNOWN`` with the raw payload kept.
    """
    symbols = SOLANA_KNOWN_TOKENS if token_symbols is None else token_symbols
    program = instruction.get("program")
    parsed = instruction.get("parsed")

    if (
        program in SPL_TOKEN_PROGRAMS
        and isinstance(parsed, dict)
        and parsed.get("type") in TOKEN_TRANSFER_TYPES
    ):
        try:
            return _decode_token_transfer(index, instruction, mints or {}, symbols)
        except (DecodeFailure, KeyError, TypeError, ValueError) as exc:
            logger.warning("Failed to parse instruction %d: %s", index, exc)
            return InstructionRecord(
                index=index,
                kind=InstructionKind.UNKNOWN,
                program_id=instruction.get("programId"),
                program=program,
                raw=instruction,
                error=str(exc),
            )

    return InstructionRecord(
        index=index,
        kind=InstructionKind.UNKNOWN,
        program_id=instruction.get("programId"),
        program=program,
        raw=parsed if isinstance(parsed, dict) else instruction,
    )


def normalize_instructions(tx: dict[str, Any], keys: Sequence[str | None]) -> list[InstructionRecord]:
    message = (tx.get("transaction") or {}).get("message") or {}
    mints = mint_by_token_account(tx.get("meta") or {}, keys)
    return [
        normalize_instruction(index, instruction, mints)
        for index, instruction in enumerate(message.get("instructions") or [])
    ]


def iter_raw_instructions(tx: dict[str, Any]) -> Iterator[tuple[dict[str, Any], bool]]:
    """Top-level instructions followed by every inner (CPI) instruction.

    Yields ``(instruction, is_inner)``.
    """
    message = (tx.get("transaction") or {}).get("message") or {}
    meta = tx.get("meta") or {}
    for instruction in message.get("instructions") or []:
        yield instruction, False
    for group in meta.get("innerInstructions") or []:
        for instruction in group.get("instructions") or []:
            yield instruction, True


def decode_system_transfer(data: str) -> int | None:
    """Lamports moved by a System ``Transfer`` instruction, ``None`` for other instructions.

    Raises:
        DecodeFailure: If ``data`` is not valid base58.
    """
    try:
        raw = base58.b58decode(data)
    except ValueError as exc:
        raise DecodeFailure(f"Invalid base58 instruction data: {exc}") from exc

    if len(raw) != _SYSTEM_TRANSFER_LAYOUT.size:
        return None
    discriminator, lamports = _SYSTEM_TRANSFER_LAYOUT.unpack(raw)
    if discriminator != SYSTEM_TRANSFER_DISCRIMINATOR:
        return None
    return lamports


def is_system_program(instruction: dict[str, Any], keys: Sequence[str | None]) -> bool:
    program_index = instruction.get("programIdIndex")
    if not isinstance(program_index, int):
        return False
    return key_at(keys, program_index) == SOLANA_SYSTEM_PROGRAM_ID
