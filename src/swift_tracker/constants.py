from __future__ import annotations

from decimal import Decimal
from typing import TypedDict

# SWIFT escrow contract, deployed at the same address on every EVM chain
SWIFT_CONTRACT_ADDRESS = "0xc38e4e6a15593f908255214653d3d947ca1c2338"

DEFAULT_ORDER_API_URL = "https://explorer-api.mayan.finance/v3"
DEFAULT_SOLANA_RPC_URL = "https://api.mainnet-beta.solana.com"

SOLANA_SYSTEM_PROGRAM_ID = "11111111111111111111111111111111"
LAMPORTS_PER_SOL = 1_000_000_000
SOL_DECIMALS = 9
NATIVE_EVM_DECIMALS = 18

# Lock detection cutoffs (empirical, kept for behavioural compatibility)
SOL_LOCK_MIN_AMOUNT = Decimal("0.01")
SPL_LOCK_DUST_AMOUNT = Decimal("0.001")
DEFAULT_SPL_POOL_THRESHOLD = Decimal("1000000")

LEGACY_LOCK_INSTRUCTION_INDEX = 3

DEFAULT_ADDITIONAL_COST_GOALS = ["CLOSE", "SETTLE", "REGISTER_ORDER"]

SWIFT_ORDER_ID_PREFIX = "SWIFT_"


class EvmChainConfig(TypedDict):
    chain_id: int
    name: str
    rpc_url: str
    native_symbol: str
    native_decimals: int


EVM_CHAIN_CONFIGS: dict[int, EvmChainConfig] = {
    1: {
        "chain_id": 1,
        "name": "Ethereum",
        "rpc_url": "https://eth.llamarpc.com",
        "native_symbol": "ETH",
        "native_decimals": NATIVE_EVM_DECIMALS,
    },
    137: {
        "chain_id": 137,
        "name": "Polygon",
        "rpc_url": "https://rpc-center.mayan.finance/polygon",
        "native_symbol": "POL",
        "native_decimals": NATIVE_EVM_DECIMALS,
    },
    42161: {
        "chain_id": 42161,
        "name": "Arbitrum",
        "rpc_url": "https://arb1.arbitrum.io/rpc",
        "native_symbol": "ETH",
        "native_decimals": NATIVE_EVM_DECIMALS,
    },
    8453: {
        "chain_id": 8453,
        "name": "Base",
        "rpc_url": "https://base.llamarpc.com",
        "native_symbol": "ETH",
        "native_decimals": NATIVE_EVM_DECIMALS,
    },
    56: {
        "chain_id": 56,
        "name": "BSC",
        "rpc_url": "https://bsc.llamarpc.com",
        "native_symbol": "BNB",
        "native_decimals": NATIVE_EVM_DECIMALS,
    },
    43114: {
        "chain_id": 43114,
        "name": "Avalanche",
        "rpc_url": "https://avalanche.llamarpc.com",
        "native_symbol": "AVAX",
        "native_decimals": NATIVE_EVM_DECIMALS,
    },
}

# Wrapped native token per chain; transfers of these into the escrow count as native locks
WRAPPED_NATIVE_TOKENS: dict[int, str] = {
    1: "0xc02aaa39b223fe8d0a0e5c4f27ead9083c756cc2",  # WETH
    42161: "0x82af49447d8a07e3bd95bd0d56f35241523fbab1",  # WETH
    8453: "0x4200000000000000000000000000000000000006",  # WETH
    137: "0x0d500b1d8e8ef31e21c99d1db9a6444d3adf1270",  # WMATIC
    43114: "0xb31f66aa3c1e785363f0875a1b74e27b85fd66c7",  # WAVAX
    56: "0xbb4cdb9cbd36b01bd1cbaebf2de08d9173bc095c",  # WBNB
}

SOLANA_KNOWN_TOKENS: dict[str, str] = {
    "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v": "USDC",
    "So11111111111111111111111111111111111111112": "SOL",
    "7vfCXTUXx5WJV5JADk17DUJ4ksgau7utNKj4b963voxs": "WETH",
}
