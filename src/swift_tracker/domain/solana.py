"""Decoded Solana transaction views."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, ClassVar

from ..processors.balance_delta import AssetLock, BalanceChange


class InstructionKind(str, Enum):
    TOKEN_TRANSFER = "TOKEN_TRANSFER"
    UNKNOWN = "UNKNOWN"


class AccountKeySource(str, Enum):
    """How the account key list of a message was obtained."""

    LEGACY = "legacy"
    LOOKUP_RESOLVED = "lookup_resolved"
    STATIC_ONLY = "static_only"


@dataclass(frozen=True)
class TokenTransferInstruction:
    source: str
    destination: str
    authority: str | None
    amount: int
    mint: str | None = None
    token_symbol: str | None = None


@dataclass(frozen=True)
class InstructionRecord:
    """One top-level instruction. Unrecognized or malformed ones keep their raw payload."""

    index: int
    kind: InstructionKind
    program_id: str | None = None
    program: str | None = None
    transfer: TokenTransferInstruction | None = None
    raw: dict[str, Any] | None = None
    error: str | None = None


@dataclass(frozen=True)
class SolanaSourceParsed:
    signature: str
    slot: int
    block_time: int | None
    fee: int
    success: bool
    fee_payer: str | None
    account_key_source: AccountKeySource
    instructions: list[InstructionRecord]
    balance_changes: list[BalanceChange]
    asset_locks: list[AssetLock]
    lock_detection: str
    lock_instruction: InstructionRecord | None = None
    locked_amount: str | None = None
    locked_token: str | None = None

    SERIALIZED_PROPERTIES: ClassVar[tuple[str, ...]] = ("total_locked_assets",)

    @property
    def total_locked_assets(self) -> int:
        return len(self.asset_locks)

    @property
    def primary_lock(self) -> AssetLock | None:
        return self.asset_locks[0] if self.asset_locks else None


@dataclass(frozen=True)
class SolTransfer:
    sender: str
    recipient: str
    amount: int
    formatted_amount: Decimal
    instruction_index: int
    inner: bool = False


@dataclass(frozen=True)
class SplTokenTransfer:
    """Solver-owned token outflow inferred from balance snapshots; ``amount`` is unsigned."""

    sender: str
    recipient: str
    authority: str | None
    amount: int
    formatted_amount: Decimal
    token_mint: str | None
    token_symbol: str | None
    token_decimals: int
    instruction_index: int
    drained: bool = False


@dataclass(frozen=True)
class SolanaFulfillParsed:
    signature: str
    slot: int
    block_time: int | None
    fee: int
    success: bool
    solver: str | None
    account_key_source: AccountKeySource
    sol_transfers: list[SolTransfer] = field(default_factory=list)
    spl_transfers: list[SplTokenTransfer] = field(default_factory=list)

    SERIALIZED_PROPERTIES: ClassVar[tuple[str, ...]] = ("total_transfers",)

    @property
    def total_transfers(self) -> int:
        return len(self.sol_transfers) + len(self.spl_transfers)


@dataclass(frozen=True)
class SolanaTransactionOverview:
    signature: str
    slot: int
    block_time: int | None
    success: bool
    error: Any
    fee: int
    compute_units_consumed: int | None
    signer: str | None
    balance_changes: list[BalanceChange]
