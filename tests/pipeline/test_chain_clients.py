from unittest.mock import AsyncMock, MagicMock

import pytest

from swift_tracker.chains import UNKNOWN_CHAIN, resolve_chain
from swift_tracker.decoders.evm import EvmDecoder
from swift_tracker.decoders.solana import SolanaDecoder
from swift_tracker.errors import UnsupportedChainError
from swift_tracker.pipeline.clients import ChainClientCache


def test_decoders_are_created_once_per_chain(settings):
    cache = ChainClientCache(settings)

    solana = cache.get(resolve_chain("1"))
    ethereum = cache.get(resolve_chain("2"))

    assert isinstance(solana, SolanaDecoder)
    assert isinstance(ethereum, EvmDecoder)
    assert cache.get(resolve_chain("1")) is solana
    assert cache.get(resolve_chain("2")) is ethereum
    assert len(cache) == 2
    assert resolve_chain("23") not in cache


def test_evm_chain_without_id_is_unsupported(settings):
    with pytest.raises(UnsupportedChainError, match="Unsupported chain: Unknown"):
        ChainClientCache(settings).get(UNKNOWN_CHAIN)


@pytest.mark.asyncio
async def test_close_tolerates_failing_decoders(settings):
    good, bad = MagicMock(), MagicMock()
    good.close = AsyncMock()
    bad.close = AsyncMock(side_effect=RuntimeError("already closed"))
    cache = ChainClientCache(settings, decoders={"solana": good, "evm:1": bad})

    await cache.close()

    good.close.assert_awaited_once()
    bad.close.assert_awaited_once()
    assert len(cache) == 0
