"""Solana balance-delta analysis.

No Solana instruction reliably says "this is the user's deposit", so locks are
inferred from pre/post balance snapshots. The thresholds below are empirical
and must not drift: SOL deposits need more than 0.01 SOL, SPL outflows must
be above 0.001 and below the pool threshold (1,000,000 by default).
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from functools import partial
from typing import Any, Sequence

from ..constants import (
    DEFAULT_SPL_POOL_THRESHOLD,
    SOL_DECIMALS,
    SOL_LOCK_MIN_AMOUNT,
    SOLANA_KNOWN_TOKENS,
    SPL_LOCK_DUST_AMOUNT,
)
from ..logger import get_logger
from ..units import to_decimal
from .strategies import first_non_empty

logger = get_logger(__name__)

FEE_PAYER_INDEX = 0


class AssetKind(str, Enum):
    SOL = "SOL"
    SPL_TOKEN = "SPL_TOKEN"


@dataclass(frozen=True)
class BalanceChange:
    """Nonzero balance delta of one (account, asset) pair within a transaction."""

    account_index: int
    account_address: str
    kind: AssetKind
    raw_change: int
    formatted_change: Decimal
    pre_amount: int | None = None
    post_amount: int | None = None
    owner: str | None = None
    token_mint: str | None = None
    token_symbol: str | None = None
    token_decimals: int | None = None

    @property
    def is_fee_payer(self) -> bool:
        return self.account_index == FEE_PAYER_INDEX


@dataclass(frozen=True)
class AssetLock:
    """An inferred asset lock; ``amount`` is always an unsigned magnitude."""

    kind: AssetKind
    amount: int
    formatted_amount: Decimal
    from_account: str
    account_index: int
    detector: str
    authority: str | None = None
    token_mint: str | None = None
    token_symbol: str | None = None
    token_decimals: int | None = None

    @property
    def display_token(self) -> str | None:
        if self.kind is AssetKind.SOL:
            return "SOL"
        return self.token_symbol or self.token_mint


def account_label(account_keys: Sequence[str | None], index: int) -> str:
    """Resolved address for ``index`` or a positional placeholder."""
    if 0 <= index < len(account_keys) and account_keys[index]:
        return str(account_keys[index])
    return f"Account_{index}"


def _token_amount(balance: dict[str, Any] | None) -> int:
    if not balance:
        return 0
    ui_amount = balance.get("uiTokenAmount") or {}
    return int(ui_amount.get("amount") or 0)


def _token_decimals(balance: dict[str, Any]) -> int:
    ui_amount = balance.get("uiTokenAmount") or {}
    return int(ui_amount.get("decimals") or 0)


def sol_balance_changes(
    meta: dict[str, Any], account_keys: Sequence[str | None]
) -> list[BalanceChange]:
    """Native (lamport) deltas for every account index with post != pre."""
    pre_balances = meta.get("preBalances") or []
    post_balances = meta.get("postBalances") or []

    changes: list[BalanceChange] = []
    for index, (pre, post) in enumerate(zip(pre_balances, post_balances)):
        delta = int(post) - int(pre)
        if delta == 0:
            continue
        changes.append(
            BalanceChange(
                account_index=index,
                account_address=account_label(account_keys, index),
                kind=AssetKind.SOL,
                raw_change=delta,
                formatted_change=to_decimal(delta, SOL_DECIMALS),
                pre_amount=int(pre),
                post_amount=int(post),
            )
        )
    return changes


def token_balance_changes(
    meta: dict[str, Any],
    account_keys: Sequence[str | None],
    token_symbols: dict[str, str] | None = None,
) -> list[BalanceChange]:
    """SPL deltas, one per post token balance matched to its pre balance by (accountIndex, mint).

    A token account with no pre balance counts as starting from zero.
    """
    symbols = SOLANA_KNOWN_TOKENS if token_symbols is None else token_symbols
    pre_by_key = {
        (balance.get("accountIndex"), balance.get("mint")): balance
        for balance in meta.get("preTokenBalances") or []
    }

    changes: list[BalanceChange] = []
    for post in meta.get("postTokenBalances") or []:
        index = int(post.get("accountIndex", -1))
        mint = post.get("mint")
        pre = pre_by_key.get((post.get("accountIndex"), mint))
        pre_amount = _token_amount(pre)
        post_amount = _token_amount(post)
        delta = post_amount - pre_amount
        if delta == 0:
            continue
        decimals = _token_decimals(post)
        changes.append(
            BalanceChange(
                account_index=index,
                account_address=account_label(account_keys, index),
                kind=AssetKind.SPL_TOKEN,
                raw_change=delta,
                formatted_change=to_decimal(delta, decimals),
                pre_amount=pre_amount if pre is not None else None,
                post_amount=post_amount,
                owner=post.get("owner"),
                token_mint=mint,
                token_symbol=symbols.get(mint) if mint else None,
                token_decimals=decimals,
            )
        )
    return changes


def compute_balance_changes(
    meta: dict[str, Any],
    account_keys: Sequence[str | None],
    token_symbols: dict[str, str] | None = None,
) -> list[BalanceChange]:
    """All SOL deltas followed by all SPL token deltas of a transaction."""
    changes = sol_balance_changes(meta, account_keys)
    changes.extend(token_balance_changes(meta, account_keys, token_symbols))
    for change in changes:
        logger.debug(
            "Balance change: account %d (%s) %s %s",
            change.account_index,
            change.account_address[:8],
            change.formatted_change,
            "SOL" if change.kind is AssetKind.SOL else change.token_symbol or change.token_mint,
        )
    return changes


def _sol_lock(change: BalanceChange, detector: str) -> AssetLock:
    return AssetLock(
        kind=AssetKind.SOL,
        amount=abs(change.raw_change),
        formatted_amount=abs(change.formatted_change),
        from_account=change.account_address,
        account_index=change.account_index,
        detector=detector,
        authority=change.account_address,
    )


def _spl_lock(change: BalanceChange, detector: str) -> AssetLock:
    return AssetLock(
        kind=AssetKind.SPL_TOKEN,
        amount=abs(change.raw_change),
        formatted_amount=abs(change.formatted_change),
        from_account=change.account_address,
        account_index=change.account_index,
        detector=detector,
        authority=change.owner,
        token_mint=change.token_mint,
        token_symbol=change.token_symbol,
        token_decimals=change.token_decimals,
    )


def spl_outflow_locks(
    changes: Sequence[BalanceChange],
    pool_threshold: Decimal = DEFAULT_SPL_POOL_THRESHOLD,
) -> list[AssetLock]:
    """Token outflows above dust and below the pool-operation bound."""
    locks = []
    for change in changes:
        if change.kind is not AssetKind.SPL_TOKEN or change.raw_change >= 0:
            continue
        magnitude = abs(change.formatted_change)
        if SPL_LOCK_DUST_AMOUNT < magnitude < pool_threshold:
            locks.append(_spl_lock(change, "spl_outflow"))
    return locks


def sol_deposit_locks(changes: Sequence[BalanceChange]) -> list[AssetLock]:
    """SOL credited to a non-fee-payer account by more than 0.01 SOL."""
    return [
        _sol_lock(change, "sol_deposit")
        for change in changes
        if change.kind is AssetKind.SOL
        and change.raw_change > 0
        and not change.is_fee_payer
        and change.formatted_change > SOL_LOCK_MIN_AMOUNT
    ]


def permissive_locks(changes: Sequence[BalanceChange]) -> list[AssetLock]:
    """Any negative delta (fee payer excluded for SOL), no thresholds."""
    locks = []
    for change in changes:
        if change.raw_change >= 0:
            continue
        if change.kind is AssetKind.SOL:
            if not change.is_fee_payer:
                locks.append(_sol_lock(change, "permissive"))
        else:
            locks.append(_spl_lock(change, "permissive"))
    return locks


def detect_asset_locks(
    balance_changes: Sequence[BalanceChange],
    *,
    pool_threshold: Decimal = DEFAULT_SPL_POOL_THRESHOLD,
) -> list[AssetLock]:
    """Infer the user's locked assets from balance changes.

    Token outflows take priority: when any qualify, SOL credits are treated as
    intermediate swap legs and ignored. Without token outflows, qualifying SOL
    credits are used; failing both, every negative delta is accepted.

    Returns:
        Locks sorted by decimal-adjusted magnitude, largest first. Index 0 is
        the primary lock.
    """
    detectors = [
        ("spl_outflow", partial(spl_outflow_locks, pool_threshold=pool_threshold)),
        ("sol_deposit", sol_deposit_locks),
        ("permissive", permissive_locks),
    ]
    detector, locks = first_non_empty(detectors, balance_changes)
    if detector == "permissive":
        logger.warning(
            "No threshold-qualified locks detected; using permissive fallback (%d candidates)",
            len(locks),
        )
    elif detector is None:
        logger.info("No asset locks detected from %d balance changes", len(balance_changes))

    return sorted(locks, key=lambda lock: lock.formatted_amount, reverse=True)
