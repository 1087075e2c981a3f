from __future__ import annotations

import pytest
from eth_abi import encode
from eth_utils import keccak

from swift_tracker.decoders.evm_calldata import decode_create_order
from swift_tracker.domain.evm import LockKind, LockSource
from swift_tracker.errors import DecodeFailure

USDC = "0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48"
PARAMS_TYPE = "(bytes32,bytes32,uint64,uint64,uint64,uint64,uint64,bytes32,uint16,bytes32,uint8,uint8,bytes32)"

PARAMS = (
    b"\x01" * 32,  # trader
    b"\x02" * 32,  # tokenOut
    990_000,
    0,
    1_000,
    2_000,
    1_700_003_600,
    b"\x03" * 32,  # destAddr
    1,
    b"\x00" * 32,
    0,
    2,
    b"\x04" * 32,
)


def _selector(signature: str) -> bytes:
    return keccak(text=signature)[:4]


def _calldata(signature: str, types: list[str], args: list) -> str:
    return "0x" + (_selector(signature) + encode(types, args)).hex()


def test_create_order_with_token():
    data = _calldata(
        f"createOrderWithToken(address,uint256,{PARAMS_TYPE})",
        ["address", "uint256", PARAMS_TYPE],
        [USDC, 1_000_000, PARAMS],
    )
    call = decode_create_order(data, 0)

    assert call.method == "createOrderWithToken"
    assert call.kind is LockKind.TOKEN
    assert call.source is LockSource.DIRECT_CALL
    assert call.amount == 1_000_000
    assert call.token_in == USDC
    assert call.params.min_amount_out == 990_000
    assert call.params.dest_chain_id == 1
    assert call.params.auction_mode == 2
    assert call.params.trader == "0x" + "01" * 32


def test_create_order_with_eth_uses_tx_value():
    data = _calldata(f"createOrderWithEth({PARAMS_TYPE})", [PARAMS_TYPE], [PARAMS])
    call = decode_create_order(data, 5 * 10**17)

    assert call.kind is LockKind.NATIVE
    assert call.amount == 5 * 10**17
    assert call.token_in is None
    assert call.params.deadline == 1_700_003_600


def test_create_order_with_sig_reads_submission_fee():
    permit_type = "(uint256,uint256,uint8,bytes32,bytes32)"
    data = _calldata(
        f"createOrderWithSig(address,uint256,{PARAMS_TYPE},uint256,bytes,{permit_type})",
        ["address", "uint256", PARAMS_TYPE, "uint256", "bytes", permit_type],
        [USDC, 3_000_000, PARAMS, 12_345, b"\xaa" * 65, (3_000_000, 1_700_003_600, 27, b"\x05" * 32, b"\x06" * 32)],
    )
    call = decode_create_order(data, 0)

    assert call.method == "createOrderWithSig"
    assert call.amount == 3_000_000
    assert call.submission_fee == 12_345


def test_other_selectors_are_not_order_creation():
    data = _calldata("transfer(address,uint256)", ["address", "uint256"], [USDC, 1])
    assert decode_create_order(data, 0) is None
    assert decode_create_order("0x", 0) is None
    assert decode_create_order(None, 0) is None


def test_truncated_arguments_raise_decode_failure():
    selector = _selector(f"createOrderWithToken(address,uint256,{PARAMS_TYPE})")
    data = "0x" + (selector + b"\x00" * 40).hex()

    with pytest.raises(DecodeFailure):
        decode_create_order(data, 0)
