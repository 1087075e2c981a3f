"""Order investigation stages.

Each stage reads the order from the context, stores its decoded output on
``ctx.onchain`` and flips the matching ``ExtractionStatus`` flag. Failures are
recorded on ``ctx.errors`` and never stop the stages that follow.
"""

from __future__ import annotations

import asyncio
from typing import cast

from ..chains import ChainFamily, resolve_chain
from ..decoders.solana import SolanaDecoder
from ..errors import NotFoundError
from ..processors.cost_aggregator import CostRecord, aggregate, failed_cost_record
from .context import PipelineContext


async def analyze_source(ctx: PipelineContext) -> None:
    order = ctx.order_required
    log = ctx.state.logger

    try:
        chain = resolve_chain(order.source_chain)
        ctx.source_chain = chain
        decoder = ctx.clients.get(chain)
        log.info("Analyzing source transaction %s on %s", order.source_tx_hash, chain.name)
        ctx.onchain.source_transaction = await decoder.parse_source(order.source_tx_hash, order)
        ctx.status.source_analyzed = True
    except Exception as exc:
        ctx.record_error("Source transaction", exc)


async def analyze_fulfill(ctx: PipelineContext) -> None:
    """Decode the fulfill transaction on the destination chain, if the order has one."""
    order = ctx.order_required
    log = ctx.state.logger

    fulfill_hash = order.fulfill_hash
    if not fulfill_hash:
        log.info("Order %s has no fulfill transaction yet; skipping", order.order_id)
        return

    try:
        chain = resolve_chain(order.dest_chain)
        ctx.dest_chain = chain
        decoder = ctx.clients.get(chain)
        log.info("Analyzing fulfill transaction %s on %s", fulfill_hash, chain.name)
        ctx.onchain.fulfill_transaction = await decoder.parse_fulfill(fulfill_hash, order)
        ctx.status.fulfill_analyzed = True
    except Exception as exc:
        ctx.record_error("Fulfill transaction", exc)


async def analyze_additional_costs(ctx: PipelineContext) -> None:
    """Fold the fees of the auxiliary Solana settlement transactions into a summary.

    Only Solana destinations have these. A transaction whose cost cannot be
    fetched contributes a zero-valued record marked unsuccessful.
    """
    order = ctx.order_required
    log = ctx.state.logger
    goals = ctx.state.settings.additional_cost_goals

    try:
        chain = ctx.dest_chain or resolve_chain(order.dest_chain)
    except Exception as exc:
        log.debug("Skipping cost analysis, destination chain unresolved: %s", exc)
        return
    if chain.family is not ChainFamily.SOLANA:
        return

    try:
        targets = order.txs_with_any_goal(goals)
        if not targets:
            log.info("No transactions with goals %s; skipping cost analysis", ", ".join(goals))
            return

        log.info("Analyzing %d additional Solana transactions", len(targets))
        decoder = cast(SolanaDecoder, ctx.clients.get(chain))
        results = await asyncio.gather(
            *(decoder.parse_transaction_cost(tx.tx_hash, tx.goals) for tx in targets),
            return_exceptions=True,
        )

        records: list[CostRecord] = []
        for tx, result in zip(targets, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                log.warning("Failed to parse transaction cost %s: %s", tx.tx_hash, result)
                records.append(failed_cost_record(tx.tx_hash, tx.goals))
            else:
                records.append(result)

        ctx.onchain.additional_costs = aggregate(records)
        ctx.status.additional_costs_analyzed = True
    except Exception as exc:
        ctx.record_error("Additional cost", exc)


async def analyze_unlock(ctx: PipelineContext) -> None:
    """Decode the unlock (redeem) transaction; EVM source chains only."""
    order = ctx.order_required
    log = ctx.state.logger

    try:
        chain = ctx.source_chain or resolve_chain(order.source_chain)
    except Exception as exc:
        log.debug("Skipping unlock analysis, source chain unresolved: %s", exc)
        return
    if chain.family is not ChainFamily.EVM:
        return

    try:
        unlock_hash = order.unlock_hash
        if not unlock_hash:
            raise NotFoundError("No unlock/redeem transaction hash available")
        decoder = ctx.clients.get(chain)
        log.info("Analyzing unlock transaction %s on %s", unlock_hash, chain.name)
        ctx.onchain.unlock_transaction = await decoder.parse_unlock(unlock_hash, order)
        ctx.status.unlock_analyzed = True
    except Exception as exc:
        ctx.record_error("Unlock transaction", exc)
