from __future__ import annotations

from ..chains import ChainFamily
from .base import ChainDecoder
from .evm import EvmDecoder
from .solana import SolanaDecoder

DECODER_REGISTRY: dict[str, type[ChainDecoder]] = {
    ChainFamily.SOLANA.value: SolanaDecoder,
    ChainFamily.EVM.value: EvmDecoder,
}


def get_decoder_class(family: ChainFamily | str) -> type[ChainDecoder]:
    """Get decoder class by chain family.

    Args:
        family: Chain family (``solana`` or ``evm``, case-insensitive)

    Returns:
        Decoder class

    Raises:
        ValueError: If the family is not recognized
    """
    key = family.value if isinstance(family, ChainFamily) else family.lower()
    if key not in DECODER_REGISTRY:
        raise ValueError(
            f"Unknown chain family '{family}'. "
            f"Available: {', '.join(DECODER_REGISTRY.keys())}"
        )
    return DECODER_REGISTRY[key]


__all__ = [
    "DECODER_REGISTRY",
    "ChainDecoder",
    "EvmDecoder",
    "SolanaDecoder",
    "get_decoder_class",
]
