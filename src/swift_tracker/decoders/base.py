from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from ..chains import ChainFamily, ChainInfo
from ..domain.order import SwiftOrder
from ..settings import TrackerSettings


class ChainDecoder(ABC):
    """Capability interface shared by the per-family transaction decoders.

    Implementations fetch a transaction by reference (signature or hash) and
    return typed, immutable views. A missing transaction raises
    ``NotFoundError``; everything below that degrades per item.
    """

    family: ChainFamily

    def __init__(self, settings: TrackerSettings, chain: ChainInfo):
        """Initialize the decoder for one chain.

        Args:
            settings: Tracker configuration (RPC endpoints, thresholds)
            chain: Resolved chain the transactions live on
        """
        self.settings = settings
        self.chain = chain

    @abstractmethod
    async def parse_source(self, ref: str, order: SwiftOrder | None = None) -> Any:
        """Decode the transaction that locked the user's asset."""
        ...

    @abstractmethod
    async def parse_fulfill(self, ref: str, order: SwiftOrder | None = None) -> Any:
        """Decode the transaction in which the solver delivered the output asset."""
        ...

    @abstractmethod
    async def parse_unlock(self, ref: str, order: SwiftOrder | None = None) -> Any:
        """Decode the transaction that released escrowed funds to the solver."""
        ...

    @abstractmethod
    async def inspect(self, ref: str) -> Any:
        """Protocol-agnostic overview of any transaction (fees, status, transfers)."""
        ...

    async def close(self) -> None:
        """Release network resources held by the decoder."""
        return None
