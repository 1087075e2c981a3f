from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from ..chains import ChainInfo
from ..domain.order import SwiftOrder
from ..processors.cost_aggregator import CostSummary
from ..state import AppState
from .clients import ChainClientCache


@dataclass
class ExtractionStatus:
    source_analyzed: bool = False
    fulfill_analyzed: bool = False
    unlock_analyzed: bool = False
    additional_costs_analyzed: bool = False


@dataclass
class OnchainData:
    source_transaction: Any = None
    fulfill_transaction: Any = None
    unlock_transaction: Any = None
    additional_costs: CostSummary | None = None


@dataclass
class OrderAnalysis:
    """Result of one order investigation; stage failures are listed in ``errors``."""

    order_info: dict[str, Any]
    onchain_data: OnchainData
    extraction_status: ExtractionStatus
    errors: list[str] = field(default_factory=list)
    success: bool = True


@dataclass
class PipelineContext:
    state: AppState
    order_id: str
    clients: ChainClientCache
    order: SwiftOrder | None = None
    order_info: dict[str, Any] | None = None
    source_chain: ChainInfo | None = None
    dest_chain: ChainInfo | None = None
    onchain: OnchainData = field(default_factory=OnchainData)
    status: ExtractionStatus = field(default_factory=ExtractionStatus)
    errors: list[str] = field(default_factory=list)

    def record_error(self, stage: str, exc: BaseException) -> None:
        """Log and keep a stage failure without aborting the remaining stages."""
        message = f"{stage} analysis failed: {exc}"
        self.state.logger.error("%s", message)
        self.errors.append(message)

    @property
    def order_required(self) -> SwiftOrder:
        if self.order is None:
            raise RuntimeError(
                "Order has not been set. Ensure the order is fetched before running analysis stages."
            )
        return self.order

    @property
    def order_info_required(self) -> dict[str, Any]:
        if self.order_info is None:
            raise RuntimeError(
                "Order info has not been set. Ensure build_order_info() is called before accessing this property."
            )
        return self.order_info

    def to_analysis(self) -> OrderAnalysis:
        return OrderAnalysis(
            order_info=self.order_info_required,
            onchain_data=self.onchain,
            extraction_status=self.status,
            errors=list(self.errors),
        )
