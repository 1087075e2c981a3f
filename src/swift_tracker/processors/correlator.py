"""Resolve canonical views from decoded events.

Turns decoder output into the locked asset of a source transaction, the
solver transfers of a fulfill, the assets released by an unlock, and the
per-order share of a batch unlock's gas.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import Sequence

from ..constants import LEGACY_LOCK_INSTRUCTION_INDEX, NATIVE_EVM_DECIMALS, SOL_DECIMALS
from ..domain.evm import (
    LockKind,
    LockSource,
    OrderCreatedEvent,
    SwiftCall,
    TokenTransfer,
)
from ..domain.order import SwiftOrder
from ..domain.solana import InstructionKind, InstructionRecord
from ..logger import get_logger
from ..units import format_units, parse_units
from .balance_delta import AssetLock
from .strategies import first_non_empty

logger = get_logger(__name__)

CREATE_ORDER_WITH_ETH = "createOrderWithEth"
CREATE_ORDER_WITH_TOKEN = "createOrderWithToken"


# --- Solana source lock ---------------------------------------------------


@dataclass(frozen=True)
class SolanaLockResolution:
    detection: str
    lock_instruction: InstructionRecord | None
    locked_amount: str | None
    locked_token: str | None


def positional_lock_instruction(
    instructions: Sequence[InstructionRecord],
) -> InstructionRecord | None:
    """Instruction at the legacy lock position, whatever its kind."""
    for instruction in instructions:
        if instruction.index == LEGACY_LOCK_INSTRUCTION_INDEX:
            return instruction
    return None


def resolve_solana_lock(
    asset_locks: Sequence[AssetLock],
    instructions: Sequence[InstructionRecord],
) -> SolanaLockResolution:
    """Pick the locked amount/token: balance-delta locks first, positional transfer second."""
    lock_instruction = positional_lock_instruction(instructions)

    def from_balance_delta(_: None) -> list[tuple[str, str | None]]:
        if not asset_locks:
            return []
        primary = asset_locks[0]
        return [(format_units(primary.amount, _lock_decimals(primary)), primary.display_token)]

    def from_position(_: None) -> list[tuple[str, str | None]]:
        if lock_instruction is None or lock_instruction.kind is not InstructionKind.TOKEN_TRANSFER:
            return []
        transfer = lock_instruction.transfer
        if transfer is None:
            return []
        return [(str(transfer.amount), transfer.token_symbol or transfer.mint)]

    detection, candidates = first_non_empty(
        [("balance_delta", from_balance_delta), ("positional", from_position)], None
    )
    if detection == "positional":
        logger.info("No balance-delta locks; using positional lock instruction %d", LEGACY_LOCK_INSTRUCTION_INDEX)

    locked_amount, locked_token = candidates[0] if candidates else (None, None)
    return SolanaLockResolution(
        detection=detection or "none",
        lock_instruction=lock_instruction,
        locked_amount=locked_amount,
        locked_token=locked_token,
    )


def _lock_decimals(lock: AssetLock) -> int:
    if lock.token_decimals is not None:
        return lock.token_decimals
    return SOL_DECIMALS


# --- EVM source lock ------------------------------------------------------


@dataclass(frozen=True)
class EvmLockEvidence:
    """Everything a source transaction says about its lock."""

    contract_address: str
    direct_call: SwiftCall | None
    transfers: Sequence[TokenTransfer]
    order_created: OrderCreatedEvent | None
    tx_value: int
    wrapped_native: str | None = None


def direct_call_lock(evidence: EvmLockEvidence) -> list[SwiftCall]:
    return [evidence.direct_call] if evidence.direct_call is not None else []


def transfer_to_contract_lock(evidence: EvmLockEvidence) -> list[SwiftCall]:
    """First transfer into the contract; wrapped native counts as a native lock."""
    contract = evidence.contract_address.lower()
    wrapped = (evidence.wrapped_native or "").lower()
    for transfer in evidence.transfers:
        if transfer.recipient != contract:
            continue
        if wrapped and transfer.token_address == wrapped:
            return [
                SwiftCall(
                    method=CREATE_ORDER_WITH_ETH,
                    kind=LockKind.NATIVE,
                    amount=transfer.amount,
                    source=LockSource.TRANSFER_TO_CONTRACT,
                )
            ]
        return [
            SwiftCall(
                method=CREATE_ORDER_WITH_TOKEN,
                kind=LockKind.TOKEN,
                amount=transfer.amount,
                source=LockSource.TRANSFER_TO_CONTRACT,
                token_in=transfer.token_address,
            )
        ]
    return []


def order_created_with_value_lock(evidence: EvmLockEvidence) -> list[SwiftCall]:
    if evidence.order_created is None or evidence.tx_value <= 0:
        return []
    logger.info(
        "Lock inferred from OrderCreated plus transaction value (lowest confidence): %d",
        evidence.tx_value,
    )
    return [
        SwiftCall(
            method=CREATE_ORDER_WITH_ETH,
            kind=LockKind.NATIVE,
            amount=evidence.tx_value,
            source=LockSource.ORDER_CREATED_WITH_VALUE,
        )
    ]


def order_created_zero_value_lock(evidence: EvmLockEvidence) -> list[SwiftCall]:
    if evidence.order_created is None:
        return []
    logger.warning(
        "OrderCreated event found but no token transfer or native value detected; "
        "recording a zero native lock"
    )
    return [
        SwiftCall(
            method=CREATE_ORDER_WITH_ETH,
            kind=LockKind.NATIVE,
            amount=0,
            source=LockSource.ORDER_CREATED_ZERO_VALUE,
        )
    ]


EVM_LOCK_DETECTORS = (
    (LockSource.DIRECT_CALL.value, direct_call_lock),
    (LockSource.TRANSFER_TO_CONTRACT.value, transfer_to_contract_lock),
    (LockSource.ORDER_CREATED_WITH_VALUE.value, order_created_with_value_lock),
    (LockSource.ORDER_CREATED_ZERO_VALUE.value, order_created_zero_value_lock),
)


def resolve_evm_lock(evidence: EvmLockEvidence) -> SwiftCall | None:
    _, candidates = first_non_empty(EVM_LOCK_DETECTORS, evidence)
    return candidates[0] if candidates else None


def fill_native_amount_from_order(
    call: SwiftCall, order: SwiftOrder | None
) -> tuple[SwiftCall, str | None]:
    """Use the order's ``fromAmount`` when a native lock could not be measured on chain.

    Returns the (possibly updated) call and a warning when the amount is still
    unknown.
    """
    if call.kind is not LockKind.NATIVE or call.amount > 0:
        return call, None

    if order is not None and order.from_amount:
        try:
            amount = parse_units(order.from_amount, NATIVE_EVM_DECIMALS)
        except ValueError as exc:
            logger.warning("Failed to parse order fromAmount %r: %s", order.from_amount, exc)
        else:
            if amount > 0:
                logger.info("Native lock amount taken from order metadata: %s", order.from_amount)
                return dataclasses.replace(call, amount=amount), None

    message = (
        "Native lock detected but the amount could not be determined "
        "from on-chain data or order metadata"
    )
    logger.warning(message)
    return call, message


# --- EVM fulfill / unlock transfers ---------------------------------------


def select_solver_transfers(
    transfers: Sequence[TokenTransfer], solver: str, contract_address: str
) -> list[TokenTransfer]:
    """Transfers sent by the solver or relayed by the contract, in log order."""
    senders = {solver.lower(), contract_address.lower()}
    return [transfer for transfer in transfers if transfer.sender in senders]


def select_unlocked_transfers(
    transfers: Sequence[TokenTransfer], contract_address: str
) -> list[TokenTransfer]:
    """Transfers leaving the contract, in log order."""
    contract = contract_address.lower()
    return [transfer for transfer in transfers if transfer.sender == contract]


def select_sender_transfers(
    transfers: Sequence[TokenTransfer], sender: str
) -> list[TokenTransfer]:
    sender = sender.lower()
    return [transfer for transfer in transfers if transfer.sender == sender]


# --- batch unlock gas -----------------------------------------------------


@dataclass(frozen=True)
class GasSplit:
    per_order: int
    remainder: int
    order_count: int


def split_gas_cost(gas_cost: int, unlock_count: int) -> GasSplit:
    """Split a batch unlock's gas evenly with truncating division.

    ``per_order * order_count + remainder == gas_cost``. With no unlock events
    the whole cost is attributed to a single order.
    """
    if unlock_count < 0:
        raise ValueError(f"unlock_count must be non-negative, got {unlock_count}")
    order_count = unlock_count or 1
    per_order, remainder = divmod(gas_cost, order_count)
    return GasSplit(per_order=per_order, remainder=remainder, order_count=order_count)
