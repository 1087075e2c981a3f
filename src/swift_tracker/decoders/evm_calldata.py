"""Direct decoding of SWIFT order-creation calldata."""

from __future__ import annotations

from functools import lru_cache
from typing import Any

from eth_abi import decode
from eth_abi.exceptions import DecodingError
from eth_utils import to_hex

from ..abi import canonical_type, find_abi_entries, function_selector, load_swift_abi
from ..domain.evm import LockKind, LockSource, OrderParams, SwiftCall
from ..errors import DecodeFailure
from .evm_logs import as_bytes, normalize_address

CREATE_ORDER_WITH_ETH = "createOrderWithEth"
CREATE_ORDER_FUNCTIONS = ("createOrderWithToken", CREATE_ORDER_WITH_ETH, "createOrderWithSig")


@lru_cache(maxsize=None)
def create_order_functions() -> dict[bytes, dict]:
    """Order-creation entry points keyed by 4-byte selector."""
    return {
        function_selector(entry): entry
        for entry in find_abi_entries(load_swift_abi(), "function")
        if entry["name"] in CREATE_ORDER_FUNCTIONS
    }


def _hex(value: Any) -> str:
    return to_hex(value) if isinstance(value, (bytes, bytearray)) else str(value)


def order_params_from_tuple(values: tuple) -> OrderParams:
    (
        trader,
        token_out,
        min_amount_out,
        gas_drop,
        cancel_fee,
        refund_fee,
        deadline,
        dest_addr,
        dest_chain_id,
        referrer_addr,
        referrer_bps,
        auction_mode,
        random,
    ) = values
    return OrderParams(
        trader=_hex(trader),
        token_out=_hex(token_out),
        min_amount_out=min_amount_out,
        gas_drop=gas_drop,
        cancel_fee=cancel_fee,
        refund_fee=refund_fee,
        deadline=deadline,
        dest_addr=_hex(dest_addr),
        dest_chain_id=dest_chain_id,
        referrer_addr=_hex(referrer_addr),
        referrer_bps=referrer_bps,
        auction_mode=auction_mode,
        random=_hex(random),
    )


def decode_create_order(input_data: Any, value: int) -> SwiftCall | None:
    """Decode calldata sent straight to the SWIFT contract.

    Returns ``None`` when the selector is not an order-creation entry point.

    Raises:
        DecodeFailure: If the selector matches but the arguments do not decode.
    """
    data = as_bytes(input_data or b"")
    if len(data) < 4:
        return None
    entry = create_order_functions().get(data[:4])
    if entry is None:
        return None

    types = [canonical_type(param) for param in entry["inputs"]]
    try:
        decoded = decode(types, data[4:])
    except (DecodingError, ValueError, TypeError) as exc:
        raise DecodeFailure(f"Failed to decode {entry['name']} calldata: {exc}") from exc

    args = {param["name"]: arg for param, arg in zip(entry["inputs"], decoded)}
    params = order_params_from_tuple(args["params"])

    if entry["name"] == CREATE_ORDER_WITH_ETH:
        return SwiftCall(
            method=entry["name"],
            kind=LockKind.NATIVE,
            amount=value,
            source=LockSource.DIRECT_CALL,
            params=params,
        )
    return SwiftCall(
        method=entry["name"],
        kind=LockKind.TOKEN,
        amount=args["amountIn"],
        source=LockSource.DIRECT_CALL,
        token_in=normalize_address(args["tokenIn"]),
        params=params,
        submission_fee=args.get("submissionFee"),
    )
