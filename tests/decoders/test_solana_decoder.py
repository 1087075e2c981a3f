from __future__ import annotations

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from swift_tracker.chains import resolve_chain
from swift_tracker.constants import SOLANA_SYSTEM_PROGRAM_ID
from swift_tracker.decoders.solana import SolanaDecoder, solver_token_outflows
from swift_tracker.domain.solana import InstructionKind
from swift_tracker.errors import NotFoundError, UnsupportedOperationError

USDC = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
TOKEN_PROGRAM = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"
SOLVER = "So1ver1111111111111111111111111111111111111"


def _decoder(settings, tx) -> SolanaDecoder:
    rpc = MagicMock()
    rpc.get_transaction_async = AsyncMock(return_value=tx)
    return SolanaDecoder(settings, resolve_chain("1"), rpc=rpc)


@pytest.mark.asyncio
async def test_parse_fulfill_collects_top_level_and_inner_sol_transfers(settings, solana_txs):
    keys = [SOLVER, "Recipient", SOLANA_SYSTEM_PROGRAM_ID]
    tx = solana_txs.build(
        keys,
        [solana_txs.system_transfer(keys, 0, 1, 1_000_000_000)],
        inner_instructions=[
            {"index": 0, "instructions": [solana_txs.system_transfer(keys, 0, 1, 2_000_000)]}
        ],
    )
    decoder = _decoder(settings, tx)

    parsed = await decoder.parse_fulfill("fulfillSig")

    assert parsed.solver == SOLVER
    assert [t.amount for t in parsed.sol_transfers] == [1_000_000_000, 2_000_000]
    assert [t.inner for t in parsed.sol_transfers] == [False, True]
    assert parsed.sol_transfers[0].formatted_amount == Decimal(1)
    assert parsed.sol_transfers[1].recipient == "Recipient"
    assert parsed.total_transfers == 2
    decoder.rpc.get_transaction_async.assert_awaited_once_with("fulfillSig", "json")


@pytest.mark.asyncio
async def test_parse_fulfill_infers_solver_token_outflows(settings, solana_txs):
    keys = [SOLVER, "SolverUsdc", "SolverDrained", "OtherUsdc", TOKEN_PROGRAM]
    tx = solana_txs.build(
        keys,
        [],
        pre_token_balances=[
            solana_txs.token_balance(1, USDC, SOLVER, 10_000_000),
            solana_txs.token_balance(2, USDC, SOLVER, 2_000_000),
            solana_txs.token_balance(3, USDC, "SomeoneElse", 9_000_000),
        ],
        post_token_balances=[
            solana_txs.token_balance(1, USDC, SOLVER, 4_000_000),
            solana_txs.token_balance(3, USDC, "SomeoneElse", 1_000_000),
        ],
    )
    decoder = _decoder(settings, tx)

    parsed = await decoder.parse_fulfill("fulfillSig")

    outflows = parsed.spl_transfers
    assert [(t.sender, t.amount, t.drained) for t in outflows] == [
        ("SolverUsdc", 6_000_000, False),
        ("SolverDrained", 2_000_000, True),
    ]
    assert all(t.recipient == "Recipients" for t in outflows)
    assert outflows[0].token_symbol == "USDC"
    assert outflows[0].formatted_amount == Decimal(6)


def test_solver_token_outflows_requires_solver():
    assert solver_token_outflows({"preTokenBalances": [], "postTokenBalances": []}, [], None) == []


@pytest.mark.asyncio
async def test_parse_source_uses_balance_delta_lock(settings, solana_txs):
    keys = [
        {"pubkey": "User", "signer": True, "writable": True, "source": "transaction"},
        {"pubkey": "UserUsdc", "signer": False, "writable": True, "source": "transaction"},
        {"pubkey": "EscrowUsdc", "signer": False, "writable": True, "source": "transaction"},
    ]
    transfer = {
        "program": "spl-token",
        "programId": TOKEN_PROGRAM,
        "parsed": {
            "type": "transfer",
            "info": {
                "source": "UserUsdc",
                "destination": "EscrowUsdc",
                "authority": "User",
                "amount": "25000000",
            },
        },
    }
    tx = solana_txs.build(
        keys,
        [transfer],
        pre_balances=[1_000_000_000, 2_039_280, 2_039_280],
        post_balances=[999_995_000, 2_039_280, 2_039_280],
        pre_token_balances=[
            solana_txs.token_balance(1, USDC, "User", 30_000_000),
            solana_txs.token_balance(2, USDC, "Escrow", 0),
        ],
        post_token_balances=[
            solana_txs.token_balance(1, USDC, "User", 5_000_000),
            solana_txs.token_balance(2, USDC, "Escrow", 25_000_000),
        ],
    )
    decoder = _decoder(settings, tx)

    parsed = await decoder.parse_source("sourceSig")

    assert parsed.lock_detection == "balance_delta"
    assert parsed.locked_amount == "25"
    assert parsed.locked_token == "USDC"
    assert parsed.total_locked_assets == 1
    assert parsed.primary_lock.from_account == "UserUsdc"
    assert parsed.instructions[0].kind is InstructionKind.TOKEN_TRANSFER
    assert parsed.instructions[0].transfer.mint == USDC
    assert parsed.fee_payer == "User"
    decoder.rpc.get_transaction_async.assert_awaited_once_with("sourceSig", "jsonParsed")


@pytest.mark.asyncio
async def test_parse_source_falls_back_to_positional_instruction(settings, solana_txs):
    keys = ["User", "Src", "Dst"]
    filler = {"programId": "ComputeBudget111111111111111111111111111111", "data": "x"}
    transfer = {
        "program": "spl-token",
        "programId": TOKEN_PROGRAM,
        "parsed": {
            "type": "transfer",
            "info": {"source": "Src", "destination": "Dst", "authority": "User", "amount": "777"},
        },
    }
    tx = solana_txs.build(keys, [filler, filler, filler, transfer])
    decoder = _decoder(settings, tx)

    parsed = await decoder.parse_source("sourceSig")

    assert parsed.asset_locks == []
    assert parsed.lock_detection == "positional"
    assert parsed.locked_amount == "777"
    assert parsed.lock_instruction.index == 3


@pytest.mark.asyncio
async def test_missing_transaction_raises_not_found(settings):
    decoder = _decoder(settings, None)
    with pytest.raises(NotFoundError):
        await decoder.parse_fulfill("missing")


@pytest.mark.asyncio
async def test_parse_unlock_is_unsupported(settings):
    decoder = _decoder(settings, {})
    with pytest.raises(UnsupportedOperationError):
        await decoder.parse_unlock("sig")


@pytest.mark.asyncio
async def test_transaction_cost_adds_fee_back(settings, solana_txs):
    tx = solana_txs.build(
        ["Signer", "Closed"],
        [],
        fee=5_000,
        pre_balances=[1_000_000_000, 2_039_280],
        post_balances=[1_000_000_000 - 5_000 + 2_039_280, 0],
    )
    decoder = _decoder(settings, tx)

    record = await decoder.parse_transaction_cost("closeSig", ["CLOSE"])

    assert record.raw_balance_change == 2_034_280
    assert record.balance_change == 2_039_280
    assert record.net_cost == 5_000 - 2_039_280
    assert record.transaction_type == "CLOSE"
    assert record.signer == "Signer"
    assert record.success is True


@pytest.mark.asyncio
async def test_inspect_reports_balance_changes(settings, solana_txs):
    tx = solana_txs.build(
        ["Signer", "Dest"],
        [],
        pre_balances=[100_000, 0],
        post_balances=[45_000, 50_000],
        err={"InstructionError": [0, "Custom"]},
    )
    decoder = _decoder(settings, tx)

    overview = await decoder.inspect("sig")

    assert overview.success is False
    assert overview.compute_units_consumed == 42_000
    assert [c.raw_change for c in overview.balance_changes] == [-55_000, 50_000]
