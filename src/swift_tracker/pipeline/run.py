"""High-level pipeline orchestration."""

from __future__ import annotations

import asyncio
from typing import Any

from ..chains import chain_by_name
from ..clients.swift_api import SwiftApiClient, is_valid_order_id, normalize_order_id
from ..domain.order import build_order_info
from ..errors import InvalidOrderIdError
from ..state import AppState
from .clients import ChainClientCache
from .context import OrderAnalysis, PipelineContext
from .stages import (
    analyze_additional_costs,
    analyze_fulfill,
    analyze_source,
    analyze_unlock,
)


async def investigate_order(
    state: AppState,
    order_id: str,
    *,
    api: SwiftApiClient | None = None,
    clients: ChainClientCache | None = None,
) -> OrderAnalysis:
    """Run the complete order investigation.

    This is a thin orchestrator that sequences the pipeline steps:
    1. Order id normalization and validation
    2. Order fetch from the explorer API
    3. Source transaction analysis
    4. Fulfill transaction analysis (plus additional costs on Solana destinations)
    5. Unlock transaction analysis (EVM source chains only)

    Stage failures are collected in ``OrderAnalysis.errors``; only an invalid
    id, an order API failure or the global timeout raise.

    Args:
        state: Application state containing settings and logger
        order_id: SWIFT order id, with or without the ``SWIFT_`` prefix
        api: Order API client; one is created from settings when omitted
        clients: Decoder cache; one is created from settings when omitted

    Raises:
        InvalidOrderIdError: If the id does not match the SWIFT id format
        OrderApiError: If the order cannot be fetched
        NotFoundError: If the order does not exist
        asyncio.TimeoutError: If ``global_timeout_seconds`` elapses
    """
    s = state.settings
    log = state.logger

    normalized = normalize_order_id(order_id)
    if not is_valid_order_id(normalized):
        raise InvalidOrderIdError(f"Invalid order ID format: {normalized}")

    log.info("Starting investigation of order %s", normalized)

    owns_api = api is None
    api = api or SwiftApiClient(
        s.order_api_url,
        request_timeout=s.request_timeout,
        max_retry_seconds=s.rpc_max_retry_seconds,
    )
    ctx = PipelineContext(
        state=state,
        order_id=normalized,
        clients=clients or ChainClientCache(s),
    )

    async def _run_pipeline() -> None:
        ctx.order = await api.fetch_order_async(normalized)
        ctx.order_info = build_order_info(ctx.order)

        await analyze_source(ctx)
        await analyze_fulfill(ctx)
        await analyze_additional_costs(ctx)
        await analyze_unlock(ctx)

    timeout_s = s.global_timeout_seconds
    try:
        if timeout_s is None or timeout_s <= 0:
            await _run_pipeline()
        else:
            async with asyncio.timeout(timeout_s):
                await _run_pipeline()
    except asyncio.TimeoutError as exc:
        log.error("Investigation of %s timed out after %ss", normalized, timeout_s)
        raise asyncio.TimeoutError(
            f"Investigation exceeded global timeout {timeout_s}s (order={normalized})\n"
            " N.B. This can be changed via `global_timeout_seconds`."
        ) from exc
    finally:
        await ctx.clients.close()
        if owns_api:
            api.close()

    log.info(
        "Investigation of %s completed with %d stage error(s)",
        normalized,
        len(ctx.errors),
    )
    return ctx.to_analysis()


async def inspect_transaction(state: AppState, chain_name: str, ref: str) -> Any:
    """Generic overview of a single transaction on a named chain.

    Raises:
        UnsupportedChainError: If ``chain_name`` does not resolve.
        NotFoundError: If the transaction does not exist.
    """
    chain = chain_by_name(chain_name)
    clients = ChainClientCache(state.settings)
    try:
        decoder = clients.get(chain)
        state.logger.info("Inspecting %s on %s", ref, chain.name)
        return await decoder.inspect(ref)
    finally:
        await clients.close()
