from __future__ import annotations

import asyncio
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
from eth_abi import encode
from eth_utils import keccak
from web3.exceptions import TransactionNotFound

from swift_tracker.chains import UNKNOWN_CHAIN, resolve_chain
from swift_tracker.decoders.evm import EvmDecoder
from swift_tracker.domain.evm import LockKind, LockSource, TokenTransfer
from swift_tracker.domain.order import SwiftOrder
from swift_tracker.errors import NotFoundError, UnsupportedChainError

CONTRACT = "0xc38e4e6a15593f908255214653d3d947ca1c2338"
WETH = "0xc02aaa39b223fe8d0a0e5c4f27ead9083c756cc2"
USDC = "0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48"
USER = "0x1111111111111111111111111111111111111111"
SOLVER = "0x2222222222222222222222222222222222222222"
ROUTER = "0x3333333333333333333333333333333333333333"
ORDER_HASH = bytes.fromhex("ab" * 32)
PARAMS_TYPE = "(bytes32,bytes32,uint64,uint64,uint64,uint64,uint64,bytes32,uint16,bytes32,uint8,uint8,bytes32)"
PARAMS = (b"\x01" * 32, b"\x02" * 32, 1, 0, 0, 0, 1_700_003_600, b"\x03" * 32, 1, b"\x00" * 32, 0, 2, b"\x04" * 32)


def _tx(**overrides):
    tx = {
        "from": USER,
        "to": CONTRACT,
        "value": 0,
        "input": "0x",
        "gas": 300_000,
        "gasPrice": 10,
        "blockNumber": 19_000_000,
    }
    tx.update(overrides)
    return tx


def _receipt(logs, **overrides):
    receipt = {
        "status": 1,
        "gasUsed": 100_000,
        "effectiveGasPrice": 20,
        "blockNumber": 19_000_000,
        "logs": logs,
    }
    receipt.update(overrides)
    return receipt


def _w3(tx, receipt):
    w3 = MagicMock()
    w3.eth.get_transaction = AsyncMock(return_value=tx)
    w3.eth.get_transaction_receipt = AsyncMock(return_value=receipt)
    w3.eth.get_block = AsyncMock(return_value={"timestamp": 1_700_000_000})
    return w3


def _decoder(settings, tx, receipt, metadata=None) -> EvmDecoder:
    decoder = EvmDecoder(settings, resolve_chain("2"), w3=_w3(tx, receipt))
    known = {USDC: ("USDC", 6), WETH: ("WETH", 18)}
    if metadata is not None:
        known.update(metadata)

    async def token_metadata(address):
        return known.get(address, (None, None))

    decoder.token_metadata = token_metadata
    return decoder


def _order(**overrides) -> SwiftOrder:
    payload = {
        "id": "1",
        "orderId": "SWIFT_0x" + "ab" * 32,
        "sourceChain": "2",
        "destChain": "1",
        "sourceTxHash": "0x" + "cd" * 32,
    }
    payload.update(overrides)
    return SwiftOrder.model_validate(payload)


def test_evm_decoder_requires_chain_id(settings):
    with pytest.raises(UnsupportedChainError):
        EvmDecoder(settings, UNKNOWN_CHAIN, w3=MagicMock())


@pytest.mark.asyncio
async def test_direct_call_is_decoded_from_calldata(settings, evm_logs):
    selector = keccak(text=f"createOrderWithToken(address,uint256,{PARAMS_TYPE})")[:4]
    calldata = "0x" + (selector + encode(["address", "uint256", PARAMS_TYPE], [USDC, 2_000_000, PARAMS])).hex()
    logs = [
        evm_logs.transfer(USDC, USER, CONTRACT, 2_000_000, 0),
        evm_logs.order_created(CONTRACT, ORDER_HASH, 1),
    ]
    decoder = _decoder(settings, _tx(input=calldata), _receipt(logs))

    parsed = await decoder.parse_source("0xsource")

    assert parsed.swift_call.source is LockSource.DIRECT_CALL
    assert parsed.swift_call.method == "createOrderWithToken"
    assert parsed.locked_amount == 2_000_000
    assert parsed.locked_token == USDC
    assert parsed.locked_token_symbol == "USDC"
    assert parsed.order_created.order_hash == "0x" + "ab" * 32
    assert parsed.gas_price == 20
    assert parsed.block_timestamp == 1_700_000_000
    assert parsed.warnings == []


@pytest.mark.asyncio
async def test_router_native_lock_via_wrapped_transfer(settings, evm_logs):
    logs = [
        evm_logs.transfer(WETH, ROUTER, CONTRACT, 10**17, 0),
        evm_logs.order_created(CONTRACT, ORDER_HASH, 1),
    ]
    decoder = _decoder(settings, _tx(to=ROUTER, value=10**17), _receipt(logs))

    parsed = await decoder.parse_source("0xsource")

    assert parsed.swift_call.kind is LockKind.NATIVE
    assert parsed.swift_call.source is LockSource.TRANSFER_TO_CONTRACT
    assert parsed.locked_amount == 10**17
    assert parsed.locked_token == "ETH"
    assert parsed.locked_token_symbol == "ETH"


@pytest.mark.asyncio
async def test_undecodable_direct_call_falls_back_to_logs(settings, evm_logs):
    selector = keccak(text=f"createOrderWithToken(address,uint256,{PARAMS_TYPE})")[:4]
    logs = [
        evm_logs.transfer(USDC, USER, CONTRACT, 5_000_000, 0),
        evm_logs.order_created(CONTRACT, ORDER_HASH, 1),
    ]
    decoder = _decoder(settings, _tx(input="0x" + (selector + b"\x00" * 8).hex()), _receipt(logs))

    parsed = await decoder.parse_source("0xsource")

    assert parsed.swift_call.source is LockSource.TRANSFER_TO_CONTRACT
    assert parsed.swift_call.kind is LockKind.TOKEN
    assert parsed.locked_amount == 5_000_000
    assert len(parsed.warnings) == 1
    assert "createOrderWithToken" in parsed.warnings[0]


@pytest.mark.asyncio
async def test_zero_value_order_created_uses_order_amount(settings, evm_logs):
    logs = [evm_logs.order_created(CONTRACT, ORDER_HASH, 0)]
    decoder = _decoder(settings, _tx(to=ROUTER), _receipt(logs))

    parsed = await decoder.parse_source("0xsource", _order(fromAmount="0.5"))

    assert parsed.swift_call.source is LockSource.ORDER_CREATED_ZERO_VALUE
    assert parsed.locked_amount == 5 * 10**17
    assert parsed.warnings == [
        "OrderCreated event found but no token transfers or native value detected"
    ]


@pytest.mark.asyncio
async def test_source_without_swift_activity(settings, evm_logs):
    logs = [evm_logs.transfer(USDC, USER, SOLVER, 1, 0)]
    decoder = _decoder(settings, _tx(to=ROUTER), _receipt(logs))

    parsed = await decoder.parse_source("0xsource")

    assert parsed.swift_call is None
    assert parsed.locked_amount is None
    assert parsed.order_created is None


@pytest.mark.asyncio
async def test_fulfill_keeps_solver_transfers_and_events(settings, evm_logs):
    logs = [
        evm_logs.transfer(USDC, SOLVER, USER, 990_000, 0),
        evm_logs.transfer(USDC, USER, ROUTER, 5, 1),
        evm_logs.settlement("OrderFulfilled", CONTRACT, ORDER_HASH, SOLVER, 990_000, 2),
    ]
    decoder = _decoder(settings, _tx(**{"from": SOLVER, "value": 10**15}), _receipt(logs))

    parsed = await decoder.parse_fulfill("0xfulfill")

    assert parsed.solver == SOLVER
    assert [t.log_index for t in parsed.token_transfers] == [0]
    assert parsed.token_transfers[0].formatted_amount == Decimal("0.99")
    assert parsed.fulfill_events[0].event == "OrderFulfilled"
    assert parsed.native_transfer.amount == 10**15
    assert parsed.native_transfer.symbol == "ETH"
    assert parsed.gas_cost == 100_000 * 20
    assert parsed.total_transfers == 2


@pytest.mark.asyncio
async def test_unlock_splits_gas_across_orders(settings, evm_logs):
    logs = [
        evm_logs.order_unlocked(CONTRACT, bytes([1]) * 32, 0),
        evm_logs.order_unlocked(CONTRACT, bytes([2]) * 32, 1),
        evm_logs.transfer(USDC, CONTRACT, SOLVER, 3_000_000, 2),
        evm_logs.settlement("AssetRedeemed", CONTRACT, ORDER_HASH, SOLVER, 3_000_000, 3),
    ]
    receipt = _receipt(logs, gasUsed=100_001, effectiveGasPrice=1)
    decoder = _decoder(settings, _tx(**{"from": SOLVER}), receipt)

    parsed = await decoder.parse_unlock("0xunlock")

    assert parsed.initiator == SOLVER
    assert parsed.total_unlocked_orders == 2
    assert (parsed.gas_cost_per_order, parsed.gas_cost_remainder) == (50_000, 1)
    assert parsed.unlocked_assets[0].symbol == "USDC"
    assert parsed.unlock_events[0].event == "AssetRedeemed"


@pytest.mark.asyncio
async def test_inspect_reports_failed_status(settings, evm_logs):
    logs = [evm_logs.transfer(USDC, USER, SOLVER, 1_000_000, 0)]
    decoder = _decoder(settings, _tx(to=ROUTER), _receipt(logs, status=0, effectiveGasPrice=None))

    overview = await decoder.inspect("0xinspect")

    assert overview.status == "Failed"
    assert overview.gas_price == 10
    assert overview.fee == 100_000 * 10
    assert overview.gas_limit == 300_000
    assert overview.token_transfers[0].symbol == "USDC"


@pytest.mark.asyncio
async def test_missing_transaction_raises_not_found(settings):
    decoder = _decoder(settings, None, None)
    decoder.w3.eth.get_transaction = AsyncMock(side_effect=TransactionNotFound("missing"))

    with pytest.raises(NotFoundError) as exc_info:
        await decoder.parse_source("0xmissing")
    assert exc_info.value.reference == "0xmissing"


@pytest.mark.asyncio
async def test_with_metadata_preserves_input_order(settings):
    decoder = _decoder(settings, None, None)
    delays = {USDC: 0.05, WETH: 0.0}

    async def slow_metadata(address):
        await asyncio.sleep(delays[address])
        return ("USDC", 6) if address == USDC else ("WETH", 18)

    decoder.token_metadata = slow_metadata
    transfers = [
        TokenTransfer(token_address=USDC, sender=USER, recipient=SOLVER, amount=1, log_index=0),
        TokenTransfer(token_address=WETH, sender=USER, recipient=SOLVER, amount=2, log_index=1),
    ]

    enriched = await decoder.with_metadata(transfers)

    assert [t.symbol for t in enriched] == ["USDC", "WETH"]
    assert [t.log_index for t in enriched] == [0, 1]


@pytest.mark.asyncio
async def test_token_metadata_failure_leaves_field_unset_and_caches(settings):
    decoder = EvmDecoder(settings, resolve_chain("2"), w3=MagicMock())
    contract = MagicMock()
    contract.functions.symbol.return_value.call = AsyncMock(return_value="USDC")
    contract.functions.decimals.return_value.call = AsyncMock(side_effect=RuntimeError("reverted"))
    decoder.w3.eth.contract.return_value = contract

    first = await decoder.token_metadata(USDC)
    second = await decoder.token_metadata(USDC.upper().replace("0X", "0x"))

    assert first == ("USDC", None)
    assert second == first
    decoder.w3.eth.contract.assert_called_once()
