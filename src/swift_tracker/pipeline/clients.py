"""Lazily constructed per-chain decoders."""

from __future__ import annotations

import asyncio

from ..chains import ChainFamily, ChainInfo
from ..decoders import get_decoder_class
from ..decoders.base import ChainDecoder
from ..errors import UnsupportedChainError
from ..logger import get_logger
from ..settings import TrackerSettings

logger = get_logger(__name__)


class ChainClientCache:
    """One decoder per distinct chain, created on first use and reused.

    Entries are never evicted; the set of chains is bounded by the chain
    mapping.
    """

    def __init__(
        self,
        settings: TrackerSettings,
        decoders: dict[str, ChainDecoder] | None = None,
    ):
        self.settings = settings
        self._decoders: dict[str, ChainDecoder] = dict(decoders or {})

    def get(self, chain: ChainInfo) -> ChainDecoder:
        """Return the decoder for ``chain``, constructing it if needed.

        Raises:
            UnsupportedChainError: If an EVM chain has no chain id.
        """
        key = chain.cache_key
        decoder = self._decoders.get(key)
        if decoder is not None:
            return decoder

        if chain.family is ChainFamily.EVM and chain.chain_id is None:
            raise UnsupportedChainError(f"Unsupported chain: {chain.name}")

        decoder_cls = get_decoder_class(chain.family)
        decoder = decoder_cls(self.settings, chain)
        logger.debug("Created %s for %s", decoder_cls.__name__, key)
        self._decoders[key] = decoder
        return decoder

    def __contains__(self, chain: ChainInfo) -> bool:
        return chain.cache_key in self._decoders

    def __len__(self) -> int:
        return len(self._decoders)

    async def close(self) -> None:
        results = await asyncio.gather(
            *(decoder.close() for decoder in self._decoders.values()),
            return_exceptions=True,
        )
        for key, result in zip(self._decoders, results):
            if isinstance(result, Exception):
                logger.warning("Failed to close decoder %s: %s", key, result)
        self._decoders.clear()
