"""SWIFT chain code mapping.

SWIFT orders identify chains by protocol-specific codes that differ from
EVM chain ids. The decoders consume this table through ``resolve_chain``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .constants import EVM_CHAIN_CONFIGS, EvmChainConfig
from .errors import UnsupportedChainError


class ChainFamily(str, Enum):
    SOLANA = "solana"
    EVM = "evm"


@dataclass(frozen=True)
class ChainInfo:
    family: ChainFamily
    name: str
    chain_id: int | None = None

    @property
    def cache_key(self) -> str:
        """Identifier used for client handle caching."""
        if self.family is ChainFamily.SOLANA:
            return ChainFamily.SOLANA.value
        return f"{self.family.value}:{self.chain_id}"

    def to_dict(self) -> dict:
        data: dict = {"type": self.family.value, "name": self.name}
        if self.chain_id is not None:
            data["chainId"] = self.chain_id
        return data


SWIFT_CHAIN_MAPPING: dict[str, ChainInfo] = {
    "1": ChainInfo(ChainFamily.SOLANA, "Solana"),
    "2": ChainInfo(ChainFamily.EVM, "Ethereum", 1),
    "4": ChainInfo(ChainFamily.EVM, "BSC", 56),
    "5": ChainInfo(ChainFamily.EVM, "Polygon", 137),
    "6": ChainInfo(ChainFamily.EVM, "Avalanche", 43114),
    "23": ChainInfo(ChainFamily.EVM, "Arbitrum", 42161),
    "30": ChainInfo(ChainFamily.EVM, "Base", 8453),
}

UNKNOWN_CHAIN = ChainInfo(ChainFamily.EVM, "Unknown")


def resolve_chain(code: str | int) -> ChainInfo:
    """Look up a SWIFT chain code.

    Raises:
        UnsupportedChainError: If the code is not mapped.
    """
    info = SWIFT_CHAIN_MAPPING.get(str(code))
    if info is None:
        raise UnsupportedChainError(f"Unsupported chain: {code}")
    return info


def evm_chain_config(chain_id: int) -> EvmChainConfig:
    """Return the static config for an EVM chain id.

    Raises:
        UnsupportedChainError: If the chain id has no config.
    """
    config = EVM_CHAIN_CONFIGS.get(chain_id)
    if config is None:
        raise UnsupportedChainError(f"Unsupported chain ID: {chain_id}")
    return config


def chain_by_name(name: str) -> ChainInfo:
    """Resolve a chain by display name (case-insensitive) or family name.

    ``solana`` and ``ethereum``/``base``/... are accepted, as are numeric EVM
    chain ids.
    """
    key = name.strip().lower()
    if key == ChainFamily.SOLANA.value:
        return SWIFT_CHAIN_MAPPING["1"]
    for info in SWIFT_CHAIN_MAPPING.values():
        if info.name.lower() == key:
            return info
    if key.isdigit() and int(key) in EVM_CHAIN_CONFIGS:
        chain_id = int(key)
        return ChainInfo(ChainFamily.EVM, EVM_CHAIN_CONFIGS[chain_id]["name"], chain_id)
    raise UnsupportedChainError(f"Chain not supported: {name}")
