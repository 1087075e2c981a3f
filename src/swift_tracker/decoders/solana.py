"""Solana transaction decoder."""

from __future__ import annotations

from typing import Any, Sequence

from ..chains import ChainFamily, ChainInfo
from ..clients.solana_rpc import Encoding, SolanaRpcClient
from ..constants import SOLANA_KNOWN_TOKENS
from ..domain.order import SwiftOrder
from ..domain.solana import (
    SolanaFulfillParsed,
    SolanaSourceParsed,
    SolanaTransactionOverview,
    SolTransfer,
    SplTokenTransfer,
)
from ..errors import DecodeFailure, NotFoundError, UnsupportedOperationError
from ..logger import get_logger
from ..processors.balance_delta import (
    account_label,
    compute_balance_changes,
    detect_asset_locks,
)
from ..processors.correlator import resolve_solana_lock
from ..processors.cost_aggregator import CostRecord
from ..settings import TrackerSettings
from ..units import lamports_to_sol, to_decimal
from .base import ChainDecoder
from .solana_messages import (
    decode_system_transfer,
    is_system_program,
    iter_raw_instructions,
    key_at,
    normalize_instructions,
    resolve_account_keys,
)

logger = get_logger(__name__)

RECIPIENTS_PLACEHOLDER = "Recipients"


def _token_amount(balance: dict[str, Any]) -> int:
    return int((balance.get("uiTokenAmount") or {}).get("amount") or 0)


def _token_decimals(balance: dict[str, Any]) -> int:
    return int((balance.get("uiTokenAmount") or {}).get("decimals") or 0)


def solver_token_outflows(
    meta: dict[str, Any],
    keys: Sequence[str | None],
    solver: str | None,
    token_symbols: dict[str, str] | None = None,
) -> list[SplTokenTransfer]:
    """Token outflows from accounts owned by ``solver``, inferred from balance snapshots.

    An outflow is a post balance strictly below its matching pre balance. A
    token account with a nonzero pre balance and no post balance was drained
    and counts as an outflow of everything it held.
    """
    if not solver:
        return []
    symbols = SOLANA_KNOWN_TOKENS if token_symbols is None else token_symbols
    pre_balances = meta.get("preTokenBalances") or []
    post_balances = meta.get("postTokenBalances") or []
    pre_by_key = {(b.get("accountIndex"), b.get("mint")): b for b in pre_balances}
    post_keys = {(b.get("accountIndex"), b.get("mint")) for b in post_balances}

    def outflow(balance: dict[str, Any], amount: int, drained: bool) -> SplTokenTransfer:
        index = int(balance.get("accountIndex", -1))
        mint = balance.get("mint")
        decimals = _token_decimals(balance)
        return SplTokenTransfer(
            sender=account_label(keys, index),
            recipient=RECIPIENTS_PLACEHOLDER,
            authority=balance.get("owner"),
            amount=amount,
            formatted_amount=to_decimal(amount, decimals),
            token_mint=mint,
            token_symbol=symbols.get(mint) if mint else None,
            token_decimals=decimals,
            instruction_index=index,
            drained=drained,
        )

    transfers = []
    for post in post_balances:
        pre = pre_by_key.get((post.get("accountIndex"), post.get("mint")))
        if pre is None or post.get("owner") != solver:
            continue
        delta = _token_amount(post) - _token_amount(pre)
        if delta < 0:
            transfers.append(outflow(post, -delta, drained=False))

    for pre in pre_balances:
        if (pre.get("accountIndex"), pre.get("mint")) in post_keys:
            continue
        if pre.get("owner") != solver:
            continue
        amount = _token_amount(pre)
        if amount > 0:
            transfers.append(outflow(pre, amount, drained=True))

    return transfers


def native_transfers(tx: dict[str, Any], keys: Sequence[str | None]) -> list[SolTransfer]:
    """System program transfers at top level and in inner instruction groups.

    Positions count over the merged list (top level first), which is what
    ``instruction_index`` reports.
    """
    transfers = []
    for position, (instruction, inner) in enumerate(iter_raw_instructions(tx)):
        if not is_system_program(instruction, keys):
            continue
        try:
            lamports = decode_system_transfer(instruction.get("data") or "")
        except DecodeFailure as exc:
            logger.debug("Skipping system instruction %d: %s", position, exc)
            continue
        if lamports is None:
            continue

        accounts = instruction.get("accounts") or []
        if len(accounts) < 2:
            logger.debug("System transfer %d has %d accounts, skipping", position, len(accounts))
            continue

        transfer = SolTransfer(
            sender=account_label(keys, accounts[0]),
            recipient=account_label(keys, accounts[1]),
            amount=lamports,
            formatted_amount=lamports_to_sol(lamports),
            instruction_index=position,
            inner=inner,
        )
        logger.debug(
            "Detected SOL transfer: %s SOL from %s to %s",
            transfer.formatted_amount,
            transfer.sender[:8],
            transfer.recipient[:8],
        )
        transfers.append(transfer)
    return transfers


class SolanaDecoder(ChainDecoder):
    """Decodes SWIFT transactions on Solana.

    Source analysis uses the ``jsonParsed`` encoding so SPL token instructions
    come back typed; fulfill and cost analysis use raw ``json`` so System
    program transfers can be decoded from instruction data.
    """

    family = ChainFamily.SOLANA

    def __init__(
        self,
        settings: TrackerSettings,
        chain: ChainInfo,
        rpc: SolanaRpcClient | None = None,
    ):
        super().__init__(settings, chain)
        self.rpc = rpc or SolanaRpcClient(
            settings.solana_rpc_required,
            commitment=settings.solana_commitment.value,
            request_timeout=settings.request_timeout,
            max_retry_seconds=settings.rpc_max_retry_seconds,
        )

    async def _fetch(self, signature: str, encoding: Encoding) -> dict[str, Any]:
        tx = await self.rpc.get_transaction_async(signature, encoding)
        if not tx:
            raise NotFoundError(f"Transaction not found: {signature}", reference=signature)
        logger.debug("Transaction %s found in slot %s", signature, tx.get("slot"))
        return tx

    async def parse_source(
        self, signature: str, order: SwiftOrder | None = None
    ) -> SolanaSourceParsed:
        tx = await self._fetch(signature, "jsonParsed")
        meta = tx.get("meta") or {}
        keys, key_source = resolve_account_keys(tx)

        instructions = normalize_instructions(tx, keys)
        balance_changes = compute_balance_changes(meta, keys)
        asset_locks = detect_asset_locks(
            balance_changes, pool_threshold=self.settings.spl_pool_threshold
        )
        resolution = resolve_solana_lock(asset_locks, instructions)

        logger.info(
            "Solana source %s: %d instructions, %d balance changes, %d locks (%s)",
            signature,
            len(instructions),
            len(balance_changes),
            len(asset_locks),
            resolution.detection,
        )
        return SolanaSourceParsed(
            signature=signature,
            slot=int(tx.get("slot") or 0),
            block_time=tx.get("blockTime"),
            fee=int(meta.get("fee") or 0),
            success=meta.get("err") is None,
            fee_payer=key_at(keys, 0),
            account_key_source=key_source,
            instructions=instructions,
            balance_changes=balance_changes,
            asset_locks=asset_locks,
            lock_detection=resolution.detection,
            lock_instruction=resolution.lock_instruction,
            locked_amount=resolution.locked_amount,
            locked_token=resolution.locked_token,
        )

    async def parse_fulfill(
        self, signature: str, order: SwiftOrder | None = None
    ) -> SolanaFulfillParsed:
        tx = await self._fetch(signature, "json")
        meta = tx.get("meta") or {}
        keys, key_source = resolve_account_keys(tx)
        solver = key_at(keys, 0)

        sol_transfers = native_transfers(tx, keys)
        spl_transfers = solver_token_outflows(meta, keys, solver)

        logger.info(
            "Solana fulfill %s: %d SOL transfers, %d token outflows",
            signature,
            len(sol_transfers),
            len(spl_transfers),
        )
        return SolanaFulfillParsed(
            signature=signature,
            slot=int(tx.get("slot") or 0),
            block_time=tx.get("blockTime"),
            fee=int(meta.get("fee") or 0),
            success=meta.get("err") is None,
            solver=solver,
            account_key_source=key_source,
            sol_transfers=sol_transfers,
            spl_transfers=spl_transfers,
        )

    async def parse_unlock(self, ref: str, order: SwiftOrder | None = None) -> Any:
        raise UnsupportedOperationError(
            "Unlock analysis is only available for EVM source chains"
        )

    async def parse_transaction_cost(self, signature: str, goals: Sequence[str]) -> CostRecord:
        """Fee and signer balance change of an auxiliary settlement transaction.

        The signer's observed delta includes the fee; the fee is added back so
        ``balance_change`` reflects only what the instructions moved (e.g. rent
        returned on account close).
        """
        tx = await self._fetch(signature, "json")
        meta = tx.get("meta") or {}
        keys, _ = resolve_account_keys(tx)
        fee = int(meta.get("fee") or 0)

        pre = meta.get("preBalances") or []
        post = meta.get("postBalances") or []
        if pre and post:
            raw_change = int(post[0]) - int(pre[0])
            balance_change = raw_change + fee
        else:
            raw_change = balance_change = 0

        return CostRecord(
            signature=signature,
            transaction_type=",".join(goals),
            fee=fee,
            balance_change=balance_change,
            raw_balance_change=raw_change,
            success=meta.get("err") is None,
            slot=int(tx.get("slot") or 0),
            block_time=tx.get("blockTime"),
            signer=key_at(keys, 0),
        )

    async def inspect(self, signature: str) -> SolanaTransactionOverview:
        tx = await self._fetch(signature, "json")
        meta = tx.get("meta") or {}
        keys, _ = resolve_account_keys(tx)
        return SolanaTransactionOverview(
            signature=signature,
            slot=int(tx.get("slot") or 0),
            block_time=tx.get("blockTime"),
            success=meta.get("err") is None,
            error=meta.get("err"),
            fee=int(meta.get("fee") or 0),
            compute_units_consumed=meta.get("computeUnitsConsumed"),
            signer=key_at(keys, 0),
            balance_changes=compute_balance_changes(meta, keys),
        )

    async def close(self) -> None:
        self.rpc.close()
