from __future__ import annotations

from .balance_delta import AssetKind, AssetLock, BalanceChange, detect_asset_locks
from .cost_aggregator import CostRecord, CostSummary, aggregate, failed_cost_record

__all__ = [
    "AssetKind",
    "AssetLock",
    "BalanceChange",
    "detect_asset_locks",
    "CostRecord",
    "CostSummary",
    "aggregate",
    "failed_cost_record",
]
