"""Decoded EVM transaction views."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import ClassVar


class LockKind(str, Enum):
    NATIVE = "NATIVE"
    TOKEN = "TOKEN"


class LockSource(str, Enum):
    """Which detection tier produced the lock, most confident first."""

    DIRECT_CALL = "direct_call"
    TRANSFER_TO_CONTRACT = "transfer_to_contract"
    ORDER_CREATED_WITH_VALUE = "order_created_with_value"
    ORDER_CREATED_ZERO_VALUE = "order_created_zero_value"


@dataclass(frozen=True)
class OrderParams:
    trader: str
    token_out: str
    min_amount_out: int
    gas_drop: int
    cancel_fee: int
    refund_fee: int
    deadline: int
    dest_addr: str
    dest_chain_id: int
    referrer_addr: str
    referrer_bps: int
    auction_mode: int
    random: str


@dataclass(frozen=True)
class SwiftCall:
    """A lock recovered from the source transaction."""

    method: str
    kind: LockKind
    amount: int
    source: LockSource
    token_in: str | None = None
    token_symbol: str | None = None
    params: OrderParams | None = None
    submission_fee: int | None = None


@dataclass(frozen=True)
class OrderCreatedEvent:
    order_hash: str
    contract_address: str
    log_index: int


@dataclass(frozen=True)
class EvmSourceParsed:
    tx_hash: str
    chain_id: int
    block_number: int
    block_timestamp: int | None
    sender: str
    to: str | None
    value: int
    gas_used: int
    gas_price: int
    swift_call: SwiftCall | None
    order_created: OrderCreatedEvent | None
    locked_amount: int | None = None
    locked_token: str | None = None
    locked_token_symbol: str | None = None
    warnings: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class TokenTransfer:
    """ERC-20 ``Transfer`` log. Metadata fields stay ``None`` when the lookup fails."""

    token_address: str
    sender: str
    recipient: str
    amount: int
    log_index: int
    symbol: str | None = None
    decimals: int | None = None
    formatted_amount: Decimal | None = None


@dataclass(frozen=True)
class FulfillEvent:
    event: str
    order_hash: str
    contract_address: str
    log_index: int
    party: str | None = None
    amount: int | None = None


@dataclass(frozen=True)
class NativeTransfer:
    recipient: str | None
    amount: int
    formatted_amount: Decimal
    symbol: str


@dataclass(frozen=True)
class EvmFulfillParsed:
    tx_hash: str
    chain_id: int
    block_number: int
    block_timestamp: int | None
    solver: str
    success: bool
    gas_used: int
    gas_price: int
    gas_cost: int
    native_symbol: str
    token_transfers: list[TokenTransfer]
    fulfill_events: list[FulfillEvent]
    native_transfer: NativeTransfer | None = None

    SERIALIZED_PROPERTIES: ClassVar[tuple[str, ...]] = ("total_transfers",)

    @property
    def total_transfers(self) -> int:
        return len(self.token_transfers) + (1 if self.native_transfer else 0)


@dataclass(frozen=True)
class OrderUnlockedEvent:
    order_hash: str
    contract_address: str
    log_index: int


@dataclass(frozen=True)
class EvmUnlockParsed:
    tx_hash: str
    chain_id: int
    block_number: int
    block_timestamp: int | None
    initiator: str
    success: bool
    gas_used: int
    gas_price: int
    gas_cost: int
    gas_cost_per_order: int
    gas_cost_remainder: int
    native_symbol: str
    unlocked_orders: list[OrderUnlockedEvent]
    unlock_events: list[FulfillEvent]
    unlocked_assets: list[TokenTransfer]

    SERIALIZED_PROPERTIES: ClassVar[tuple[str, ...]] = (
        "total_unlocked_orders",
        "total_unlocked_assets",
    )

    @property
    def total_unlocked_orders(self) -> int:
        return len(self.unlocked_orders)

    @property
    def total_unlocked_assets(self) -> int:
        return len(self.unlocked_assets)


@dataclass(frozen=True)
class EvmTransactionOverview:
    tx_hash: str
    chain_id: int
    block_number: int
    block_timestamp: int | None
    status: str
    sender: str
    to: str | None
    value: int
    gas_used: int
    gas_price: int
    gas_limit: int
    fee: int
    native_symbol: str
    token_transfers: list[TokenTransfer]
