from __future__ import annotations

from dataclasses import dataclass, field
from typing import ClassVar, Sequence

from ..constants import SOL_DECIMALS
from ..units import format_units


@dataclass
class CostRecord:
    """Cost of one analyzed transaction in native base units.

    ``balance_change`` is the signer's native delta with the fee added back
    (fee-exclusive); ``raw_balance_change`` is the delta as observed.
    """

    signature: str
    transaction_type: str
    fee: int
    balance_change: int
    raw_balance_change: int
    success: bool
    slot: int = 0
    block_time: int | None = None
    signer: str | None = None
    native_unit: str = "SOL"
    native_decimals: int = SOL_DECIMALS
    net_cost: int = field(init=False)

    SERIALIZED_PROPERTIES: ClassVar[tuple[str, ...]] = (
        "fee_formatted",
        "balance_change_formatted",
        "net_cost_formatted",
    )

    def __post_init__(self) -> None:
        self.net_cost = self.fee - self.balance_change

    @property
    def fee_formatted(self) -> str:
        return format_units(self.fee, self.native_decimals)

    @property
    def balance_change_formatted(self) -> str:
        return format_units(self.balance_change, self.native_decimals)

    @property
    def net_cost_formatted(self) -> str:
        return format_units(self.net_cost, self.native_decimals)


def failed_cost_record(
    signature: str,
    goals: Sequence[str],
    *,
    native_unit: str = "SOL",
    native_decimals: int = SOL_DECIMALS,
) -> CostRecord:
    """Zero-valued record standing in for a transaction whose cost could not be fetched."""
    return CostRecord(
        signature=signature,
        transaction_type=",".join(goals),
        fee=0,
        balance_change=0,
        raw_balance_change=0,
        success=False,
        native_unit=native_unit,
        native_decimals=native_decimals,
    )


@dataclass(frozen=True)
class CostTypeSummary:
    count: int = 0
    total_fee: int = 0
    total_balance_change: int = 0
    net_total_cost: int = 0

    def __add__(self, other: CostTypeSummary) -> CostTypeSummary:
        return CostTypeSummary(
            count=self.count + other.count,
            total_fee=self.total_fee + other.total_fee,
            total_balance_change=self.total_balance_change + other.total_balance_change,
            net_total_cost=self.net_total_cost + other.net_total_cost,
        )


def _merge_units(
    left: tuple[str | None, int | None], right: tuple[str | None, int | None]
) -> tuple[str | None, int | None]:
    if left[0] is None:
        return right
    if right[0] is None or right == left:
        return left
    raise ValueError(
        f"Cannot aggregate costs in different native units: {left[0]} and {right[0]}"
    )


@dataclass(frozen=True)
class CostSummary:
    """Totals and per-type breakdown over a list of cost records."""

    native_unit: str | None = None
    native_decimals: int | None = None
    transaction_count: int = 0
    successful_count: int = 0
    total_fee: int = 0
    total_balance_change: int = 0
    net_total_cost: int = 0
    costs_by_type: dict[str, CostTypeSummary] = field(default_factory=dict)
    transactions: tuple[CostRecord, ...] = ()

    SERIALIZED_PROPERTIES: ClassVar[tuple[str, ...]] = (
        "total_fee_formatted",
        "total_balance_change_formatted",
        "net_total_cost_formatted",
    )

    def __add__(self, other: CostSummary) -> CostSummary:
        native_unit, native_decimals = _merge_units(
            (self.native_unit, self.native_decimals),
            (other.native_unit, other.native_decimals),
        )
        by_type = dict(self.costs_by_type)
        for label, summary in other.costs_by_type.items():
            by_type[label] = by_type.get(label, CostTypeSummary()) + summary

        return CostSummary(
            native_unit=native_unit,
            native_decimals=native_decimals,
            transaction_count=self.transaction_count + other.transaction_count,
            successful_count=self.successful_count + other.successful_count,
            total_fee=self.total_fee + other.total_fee,
            total_balance_change=self.total_balance_change + other.total_balance_change,
            net_total_cost=self.net_total_cost + other.net_total_cost,
            costs_by_type=by_type,
            transactions=self.transactions + other.transactions,
        )

    def _format(self, value: int) -> str:
        return format_units(value, self.native_decimals or 0)

    @property
    def total_fee_formatted(self) -> str:
        return self._format(self.total_fee)

    @property
    def total_balance_change_formatted(self) -> str:
        return self._format(self.total_balance_change)

    @property
    def net_total_cost_formatted(self) -> str:
        return self._format(self.net_total_cost)


def _summarize(record: CostRecord) -> CostSummary:
    return CostSummary(
        native_unit=record.native_unit,
        native_decimals=record.native_decimals,
        transaction_count=1,
        successful_count=1 if record.success else 0,
        total_fee=record.fee,
        total_balance_change=record.balance_change,
        net_total_cost=record.net_cost,
        costs_by_type={
            record.transaction_type: CostTypeSummary(
                count=1,
                total_fee=record.fee,
                total_balance_change=record.balance_change,
                net_total_cost=record.net_cost,
            )
        },
        transactions=(record,),
    )


def aggregate(records: Sequence[CostRecord]) -> CostSummary:
    """Fold cost records into totals and a per-type breakdown.

    Failed records are counted with their zero values, never skipped.

    Raises:
        ValueError: If the records are denominated in different native units.
    """
    summary = CostSummary()
    for record in records:
        summary = summary + _summarize(record)
    return summary
