from __future__ import annotations

import logging
from typing import Any

import base58
import pytest
from eth_abi import encode
from eth_utils import keccak

from swift_tracker.constants import SOLANA_SYSTEM_PROGRAM_ID
from swift_tracker.settings import TrackerSettings
from swift_tracker.state import AppState


class EvmLogs:
    """Builds receipt logs the way web3 returns them (bytes topics and data)."""

    @staticmethod
    def topic(signature: str) -> bytes:
        return keccak(text=signature)

    @staticmethod
    def address_topic(address: str) -> bytes:
        return b"\x00" * 12 + bytes.fromhex(address[2:])

    def transfer(self, token: str, sender: str, recipient: str, amount: int, index: int) -> dict[str, Any]:
        return {
            "address": token,
            "topics": [
                self.topic("Transfer(address,address,uint256)"),
                self.address_topic(sender),
                self.address_topic(recipient),
            ],
            "data": encode(["uint256"], [amount]),
            "logIndex": index,
        }

    def order_created(self, contract: str, key: bytes, index: int) -> dict[str, Any]:
        return {
            "address": contract,
            "topics": [self.topic("OrderCreated(bytes32)")],
            "data": encode(["bytes32"], [key]),
            "logIndex": index,
        }

    def order_unlocked(self, contract: str, order_hash: bytes, index: int) -> dict[str, Any]:
        return {
            "address": contract,
            "topics": [self.topic("OrderUnlocked(bytes32)")],
            "data": encode(["bytes32"], [order_hash]),
            "logIndex": index,
        }

    def settlement(
        self, name: str, contract: str, order_hash: bytes, party: str, amount: int, index: int
    ) -> dict[str, Any]:
        return {
            "address": contract,
            "topics": [
                self.topic(f"{name}(bytes32,address,uint256)"),
                order_hash,
                self.address_topic(party),
            ],
            "data": encode(["uint256"], [amount]),
            "logIndex": index,
        }


class SolanaTxs:
    """Builds ``getTransaction`` payloads in the ``json`` and ``jsonParsed`` encodings."""

    @staticmethod
    def system_transfer_data(lamports: int) -> str:
        return base58.b58encode((2).to_bytes(4, "little") + lamports.to_bytes(8, "little")).decode()

    def system_transfer(self, keys: list[str], sender: int, recipient: int, lamports: int) -> dict[str, Any]:
        return {
            "programIdIndex": keys.index(SOLANA_SYSTEM_PROGRAM_ID),
            "accounts": [sender, recipient],
            "data": self.system_transfer_data(lamports),
        }

    @staticmethod
    def token_balance(index: int, mint: str, owner: str, amount: int, decimals: int = 6) -> dict[str, Any]:
        return {
            "accountIndex": index,
            "mint": mint,
            "owner": owner,
            "uiTokenAmount": {"amount": str(amount), "decimals": decimals},
        }

    @staticmethod
    def build(
        keys: list[Any],
        instructions: list[dict[str, Any]],
        *,
        version: Any = "legacy",
        fee: int = 5_000,
        pre_balances: list[int] | None = None,
        post_balances: list[int] | None = None,
        pre_token_balances: list[dict[str, Any]] | None = None,
        post_token_balances: list[dict[str, Any]] | None = None,
        inner_instructions: list[dict[str, Any]] | None = None,
        loaded_addresses: dict[str, list[str]] | None = None,
        address_table_lookups: list[dict[str, Any]] | None = None,
        err: Any = None,
        slot: int = 250_000_000,
    ) -> dict[str, Any]:
        message: dict[str, Any] = {"accountKeys": keys, "instructions": instructions}
        if address_table_lookups is not None:
            message["addressTableLookups"] = address_table_lookups
        meta: dict[str, Any] = {
            "err": err,
            "fee": fee,
            "preBalances": pre_balances or [],
            "postBalances": post_balances or [],
            "preTokenBalances": pre_token_balances or [],
            "postTokenBalances": post_token_balances or [],
            "innerInstructions": inner_instructions or [],
            "computeUnitsConsumed": 42_000,
        }
        if loaded_addresses is not None:
            meta["loadedAddresses"] = loaded_addresses
        return {
            "slot": slot,
            "blockTime": 1_700_000_000,
            "version": version,
            "transaction": {"message": message, "signatures": ["sig"]},
            "meta": meta,
        }


@pytest.fixture
def evm_logs() -> EvmLogs:
    return EvmLogs()


@pytest.fixture
def solana_txs() -> SolanaTxs:
    return SolanaTxs()


@pytest.fixture
def settings(monkeypatch, tmp_path) -> TrackerSettings:
    """Settings isolated from the developer's env and config files."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("SWIFT_TRACKER_CONFIG", str(tmp_path / "missing.toml"))
    return TrackerSettings(
        solana_rpc="https://solana.example",
        rpc_max_retry_seconds=0,
        global_timeout_seconds=None,
    )


@pytest.fixture
def app_state(settings) -> AppState:
    return AppState(settings=settings, logger=logging.getLogger("test"))
