from __future__ import annotations

import pytest

from swift_tracker.processors.cost_aggregator import (
    CostRecord,
    CostSummary,
    aggregate,
    failed_cost_record,
)


def _record(signature: str, kind: str, fee: int, balance_change: int, success: bool = True) -> CostRecord:
    return CostRecord(
        signature=signature,
        transaction_type=kind,
        fee=fee,
        balance_change=balance_change,
        raw_balance_change=balance_change - fee,
        success=success,
        slot=100,
    )


@pytest.fixture
def records() -> list[CostRecord]:
    return [
        _record("sig1", "CLOSE", 5_000, 2_039_280),
        _record("sig2", "SETTLE", 10_000, 0),
        _record("sig3", "CLOSE", 5_000, 1_000),
        failed_cost_record("sig4", ["REGISTER_ORDER"]),
    ]


def test_net_cost_is_fee_minus_balance_change():
    record = _record("sig", "CLOSE", 5_000, 2_039_280)
    assert record.net_cost == 5_000 - 2_039_280
    assert record.net_cost_formatted == "-0.00203428"


def test_aggregate_totals(records):
    summary = aggregate(records)

    assert summary.transaction_count == 4
    assert summary.successful_count == 3
    assert summary.total_fee == 20_000
    assert summary.total_balance_change == 2_040_280
    assert summary.net_total_cost == 20_000 - 2_040_280
    assert summary.native_unit == "SOL"
    assert summary.total_fee_formatted == "0.00002"


def test_aggregate_breakdown_by_type(records):
    by_type = aggregate(records).costs_by_type

    assert set(by_type) == {"CLOSE", "SETTLE", "REGISTER_ORDER"}
    assert by_type["CLOSE"].count == 2
    assert by_type["CLOSE"].total_fee == 10_000
    assert by_type["REGISTER_ORDER"].count == 1
    assert by_type["REGISTER_ORDER"].total_fee == 0


def test_failed_record_contributes_zeros():
    record = failed_cost_record("sigX", ["CLOSE", "SETTLE"])

    assert record.success is False
    assert record.transaction_type == "CLOSE,SETTLE"
    assert (record.fee, record.balance_change, record.net_cost) == (0, 0, 0)

    summary = aggregate([record])
    assert summary.transaction_count == 1
    assert summary.successful_count == 0


def test_aggregation_is_associative_under_concatenation(records):
    for split in range(len(records) + 1):
        left, right = records[:split], records[split:]
        combined = aggregate(left) + aggregate(right)
        assert combined == aggregate(records)


def test_empty_aggregate_is_identity(records):
    summary = aggregate(records)
    assert aggregate([]) == CostSummary()
    assert CostSummary() + summary == summary
    assert summary + CostSummary() == summary


def test_aggregate_does_not_mutate_input(records):
    before = [(r.fee, r.balance_change, r.net_cost) for r in records]
    aggregate(records)
    assert [(r.fee, r.balance_change, r.net_cost) for r in records] == before


def test_mixed_native_units_are_rejected():
    sol = _record("sig1", "CLOSE", 5_000, 0)
    eth = CostRecord(
        signature="0xabc",
        transaction_type="UNLOCK",
        fee=21_000,
        balance_change=0,
        raw_balance_change=-21_000,
        success=True,
        native_unit="ETH",
        native_decimals=18,
    )

    with pytest.raises(ValueError, match="different native units"):
        aggregate([sol, eth])
