"""EVM transaction decoder for the SWIFT escrow contract."""

from __future__ import annotations

import asyncio
import dataclasses
from typing import Any, Awaitable, Callable, Sequence, TypeVar

import backoff
from eth_typing import URI, HexStr
from web3 import AsyncWeb3
from web3.exceptions import ProviderConnectionError, TransactionNotFound

from ..abi import load_erc20_abi
from ..chains import ChainFamily, ChainInfo, evm_chain_config
from ..constants import SWIFT_CONTRACT_ADDRESS, WRAPPED_NATIVE_TOKENS
from ..domain.evm import (
    EvmFulfillParsed,
    EvmSourceParsed,
    EvmTransactionOverview,
    EvmUnlockParsed,
    LockKind,
    LockSource,
    NativeTransfer,
    TokenTransfer,
)
from ..domain.order import SwiftOrder
from ..errors import DecodeFailure, MetadataLookupError, NotFoundError, UnsupportedChainError
from ..logger import get_logger
from ..processors.correlator import (
    EvmLockEvidence,
    fill_native_amount_from_order,
    resolve_evm_lock,
    select_sender_transfers,
    select_solver_transfers,
    select_unlocked_transfers,
    split_gas_cost,
)
from ..settings import TrackerSettings
from ..units import to_decimal
from .base import ChainDecoder
from .evm_calldata import decode_create_order
from .evm_logs import (
    decode_fulfill_events,
    decode_order_unlocked,
    decode_transfers,
    decode_unlock_events,
    find_order_created,
    normalize_address,
)

logger = get_logger(__name__)

T = TypeVar("T")

TokenMetadata = tuple[str | None, int | None]


@dataclasses.dataclass(frozen=True)
class FetchedTransaction:
    tx: Any
    receipt: Any
    block_timestamp: int | None

    @property
    def sender(self) -> str:
        return normalize_address(self.tx["from"])

    @property
    def to(self) -> str | None:
        to = self.tx.get("to")
        return normalize_address(to) if to else None

    @property
    def value(self) -> int:
        return int(self.tx.get("value") or 0)

    @property
    def logs(self) -> list[Any]:
        return list(self.receipt.get("logs") or [])

    @property
    def gas_used(self) -> int:
        return int(self.receipt.get("gasUsed") or 0)

    @property
    def gas_price(self) -> int:
        # effectiveGasPrice reflects EIP-1559 pricing; legacy receipts lack it
        price = self.receipt.get("effectiveGasPrice") or self.tx.get("gasPrice")
        return int(price or 0)

    @property
    def gas_cost(self) -> int:
        return self.gas_used * self.gas_price

    @property
    def success(self) -> bool:
        return self.receipt.get("status") == 1

    @property
    def block_number(self) -> int:
        return int(self.receipt.get("blockNumber") or self.tx.get("blockNumber") or 0)


class EvmDecoder(ChainDecoder):
    """Decodes SWIFT source, fulfill and unlock transactions on one EVM chain.

    Token metadata (symbol, decimals) is looked up through ERC-20 calls,
    throttled by a semaphore and cached per token for the decoder's lifetime.
    """

    family = ChainFamily.EVM

    def __init__(
        self,
        settings: TrackerSettings,
        chain: ChainInfo,
        w3: AsyncWeb3 | None = None,
    ):
        super().__init__(settings, chain)
        if chain.chain_id is None:
            raise UnsupportedChainError(f"EVM chain {chain.name} has no chain id")
        self.chain_id = chain.chain_id
        self.config = evm_chain_config(chain.chain_id)
        self.contract_address = SWIFT_CONTRACT_ADDRESS.lower()
        self.wrapped_native = WRAPPED_NATIVE_TOKENS.get(chain.chain_id)

        if w3 is None:
            rpc_url = settings.evm_rpc_for(chain.chain_id)
            w3 = AsyncWeb3(
                AsyncWeb3.AsyncHTTPProvider(
                    URI(rpc_url), request_kwargs={"timeout": settings.request_timeout}
                )
            )
        self.w3 = w3

        self._rpc_sem = asyncio.Semaphore(settings.max_concurrent_metadata_calls)
        self._metadata_cache: dict[str, TokenMetadata] = {}

    @property
    def native_symbol(self) -> str:
        return self.config["native_symbol"]

    @property
    def native_decimals(self) -> int:
        return self.config["native_decimals"]

    async def _rpc(self, fn: Callable[..., Awaitable[T]], *args: Any) -> T:
        """Backoff a single RPC on connection errors."""

        @backoff.on_exception(
            backoff.expo,
            (ProviderConnectionError, asyncio.TimeoutError),
            max_time=self.settings.rpc_max_retry_seconds,
            jitter=backoff.full_jitter,
        )
        async def call() -> T:
            return await fn(*args)

        return await call()

    async def _fetch(self, tx_hash: str) -> FetchedTransaction:
        """Transaction and receipt concurrently, then the block for its timestamp.

        Raises:
            NotFoundError: If either the transaction or its receipt is unavailable.
        """
        try:
            tx, receipt = await asyncio.gather(
                self._rpc(self.w3.eth.get_transaction, HexStr(tx_hash)),
                self._rpc(self.w3.eth.get_transaction_receipt, HexStr(tx_hash)),
            )
        except TransactionNotFound as exc:
            raise NotFoundError(f"Transaction not found: {tx_hash}", reference=tx_hash) from exc
        if tx is None or receipt is None:
            raise NotFoundError(f"Transaction not found: {tx_hash}", reference=tx_hash)

        block_number = receipt.get("blockNumber") or tx.get("blockNumber")
        block_timestamp = None
        if block_number is not None:
            block = await self._rpc(self.w3.eth.get_block, block_number)
            block_timestamp = int(block["timestamp"]) if block else None

        logger.debug("Transaction %s found in block %s", tx_hash, block_number)
        return FetchedTransaction(tx=tx, receipt=receipt, block_timestamp=block_timestamp)

    async def _call_metadata(self, function: Any, token_address: str, field: str) -> Any:
        try:
            return await self._rpc(function.call)
        except Exception as exc:
            raise MetadataLookupError(
                f"Failed to get token {field} for {token_address}: {exc}"
            ) from exc

    async def token_metadata(self, token_address: str) -> TokenMetadata:
        """ERC-20 ``(symbol, decimals)``; a failed call leaves its field ``None``."""
        key = token_address.lower()
        if key in self._metadata_cache:
            return self._metadata_cache[key]

        contract = self.w3.eth.contract(
            address=AsyncWeb3.to_checksum_address(key), abi=load_erc20_abi()
        )
        async with self._rpc_sem:
            results = await asyncio.gather(
                self._call_metadata(contract.functions.symbol(), key, "symbol"),
                self._call_metadata(contract.functions.decimals(), key, "decimals"),
                return_exceptions=True,
            )

        values: list[Any] = []
        for result in results:
            if isinstance(result, MetadataLookupError):
                logger.warning("%s", result)
                values.append(None)
            elif isinstance(result, BaseException):
                raise result
            else:
                values.append(result)

        symbol, decimals = values
        metadata = (symbol, int(decimals) if decimals is not None else None)
        self._metadata_cache[key] = metadata
        return metadata

    async def with_metadata(self, transfers: Sequence[TokenTransfer]) -> list[TokenTransfer]:
        """Attach symbol/decimals to each transfer.

        Lookups run concurrently; the returned list keeps the input (log) order.
        """
        metadata = await asyncio.gather(
            *(self.token_metadata(transfer.token_address) for transfer in transfers)
        )
        enriched = []
        for transfer, (symbol, decimals) in zip(transfers, metadata):
            enriched.append(
                dataclasses.replace(
                    transfer,
                    symbol=symbol,
                    decimals=decimals,
                    formatted_amount=(
                        to_decimal(transfer.amount, decimals) if decimals is not None else None
                    ),
                )
            )
        return enriched

    async def parse_source(
        self, tx_hash: str, order: SwiftOrder | None = None
    ) -> EvmSourceParsed:
        fetched = await self._fetch(tx_hash)
        logs = fetched.logs
        warnings: list[str] = []

        direct_call = None
        if fetched.to == self.contract_address:
            try:
                direct_call = decode_create_order(fetched.tx.get("input"), fetched.value)
            except DecodeFailure as exc:
                logger.warning("Failed to parse direct SWIFT call: %s", exc)
                warnings.append(str(exc))
            if direct_call is None:
                logger.info("Direct call to SWIFT not decodable, falling back to receipt logs")

        order_created = find_order_created(logs)
        evidence = EvmLockEvidence(
            contract_address=self.contract_address,
            direct_call=direct_call,
            transfers=decode_transfers(logs),
            order_created=order_created,
            tx_value=fetched.value,
            wrapped_native=self.wrapped_native,
        )

        call = resolve_evm_lock(evidence)
        locked_token = None
        if call is not None:
            if call.source is LockSource.ORDER_CREATED_ZERO_VALUE:
                warnings.append(
                    "OrderCreated event found but no token transfers or native value detected"
                )
            call, warning = fill_native_amount_from_order(call, order)
            if warning:
                warnings.append(warning)

            if call.kind is LockKind.NATIVE:
                call = dataclasses.replace(call, token_symbol=self.native_symbol)
                locked_token = self.native_symbol
            elif call.token_in:
                symbol, _ = await self.token_metadata(call.token_in)
                call = dataclasses.replace(call, token_symbol=symbol)
                locked_token = call.token_in
        else:
            logger.info("No SWIFT lock operation found in %s", tx_hash)

        return EvmSourceParsed(
            tx_hash=tx_hash,
            chain_id=self.chain_id,
            block_number=fetched.block_number,
            block_timestamp=fetched.block_timestamp,
            sender=fetched.sender,
            to=fetched.to,
            value=fetched.value,
            gas_used=fetched.gas_used,
            gas_price=fetched.gas_price,
            swift_call=call,
            order_created=order_created,
            locked_amount=call.amount if call is not None else None,
            locked_token=locked_token,
            locked_token_symbol=call.token_symbol if call is not None else None,
            warnings=warnings,
        )

    async def parse_fulfill(
        self, tx_hash: str, order: SwiftOrder | None = None
    ) -> EvmFulfillParsed:
        fetched = await self._fetch(tx_hash)
        logs = fetched.logs
        solver = fetched.sender

        transfers = select_solver_transfers(
            decode_transfers(logs), solver, self.contract_address
        )
        token_transfers = await self.with_metadata(transfers)

        native_transfer = None
        if fetched.value > 0:
            native_transfer = NativeTransfer(
                recipient=fetched.to,
                amount=fetched.value,
                formatted_amount=to_decimal(fetched.value, self.native_decimals),
                symbol=self.native_symbol,
            )

        logger.info(
            "EVM fulfill %s: %d token transfers from solver %s",
            tx_hash,
            len(token_transfers),
            solver,
        )
        return EvmFulfillParsed(
            tx_hash=tx_hash,
            chain_id=self.chain_id,
            block_number=fetched.block_number,
            block_timestamp=fetched.block_timestamp,
            solver=solver,
            success=fetched.success,
            gas_used=fetched.gas_used,
            gas_price=fetched.gas_price,
            gas_cost=fetched.gas_cost,
            native_symbol=self.native_symbol,
            token_transfers=token_transfers,
            fulfill_events=decode_fulfill_events(logs),
            native_transfer=native_transfer,
        )

    async def parse_unlock(
        self, tx_hash: str, order: SwiftOrder | None = None
    ) -> EvmUnlockParsed:
        fetched = await self._fetch(tx_hash)
        logs = fetched.logs

        unlocked = await self.with_metadata(
            select_unlocked_transfers(decode_transfers(logs), self.contract_address)
        )
        unlocked_orders = decode_order_unlocked(logs)
        split = split_gas_cost(fetched.gas_cost, len(unlocked_orders))

        logger.info(
            "EVM unlock %s: %d orders unlocked, gas per order %d",
            tx_hash,
            len(unlocked_orders),
            split.per_order,
        )
        return EvmUnlockParsed(
            tx_hash=tx_hash,
            chain_id=self.chain_id,
            block_number=fetched.block_number,
            block_timestamp=fetched.block_timestamp,
            initiator=fetched.sender,
            success=fetched.success,
            gas_used=fetched.gas_used,
            gas_price=fetched.gas_price,
            gas_cost=fetched.gas_cost,
            gas_cost_per_order=split.per_order,
            gas_cost_remainder=split.remainder,
            native_symbol=self.native_symbol,
            unlocked_orders=unlocked_orders,
            unlock_events=decode_unlock_events(logs),
            unlocked_assets=unlocked,
        )

    async def inspect(self, tx_hash: str) -> EvmTransactionOverview:
        fetched = await self._fetch(tx_hash)
        transfers = await self.with_metadata(
            select_sender_transfers(decode_transfers(fetched.logs), fetched.sender)
        )
        return EvmTransactionOverview(
            tx_hash=tx_hash,
            chain_id=self.chain_id,
            block_number=fetched.block_number,
            block_timestamp=fetched.block_timestamp,
            status="Success" if fetched.success else "Failed",
            sender=fetched.sender,
            to=fetched.to,
            value=fetched.value,
            gas_used=fetched.gas_used,
            gas_price=fetched.gas_price,
            gas_limit=int(fetched.tx.get("gas") or 0),
            fee=fetched.gas_cost,
            native_symbol=self.native_symbol,
            token_transfers=transfers,
        )

    async def close(self) -> None:
        try:
            await self.w3.provider.disconnect()  # type: ignore[union-attr]
        except AttributeError as e:
            logger.debug("Provider disconnect expected (no disconnect method): %s", e)
