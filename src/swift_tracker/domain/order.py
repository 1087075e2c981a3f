"""Order record returned by the SWIFT explorer API."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from ..chains import UNKNOWN_CHAIN, SWIFT_CHAIN_MAPPING


class OrderTransaction(BaseModel):
    """One entry of the order's ``txs`` list."""

    tx_hash: str
    goals: list[str] = Field(default_factory=list)
    scanner_url: str | None = None

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="ignore"
    )

    @property
    def transaction_type(self) -> str:
        """Goals joined with a comma, e.g. ``CLOSE,SETTLE``."""
        return ",".join(self.goals)


class SwiftOrder(BaseModel):
    """Subset of the explorer order record the analysis relies on.

    Unknown keys are kept (``extra="allow"``) so the full record can be echoed.
    """

    id: str
    order_id: str
    status: str | None = None
    service: str | None = None
    trader: str | None = None

    source_chain: str
    dest_chain: str
    swap_chain: str | None = None

    source_tx_hash: str
    fulfill_tx_hash: str | None = None
    redeem_tx_hash: str | None = None
    unlock_tx_hash: str | None = None

    from_token_address: str | None = None
    from_token_symbol: str | None = None
    from_amount: str | None = None
    to_token_address: str | None = None
    to_token_symbol: str | None = None
    to_amount: str | None = None
    estimate_market_to_amount: str | None = None

    initiated_at: str | None = None
    completed_at: str | None = None

    driver_address: str | None = None
    auction_address: str | None = None
    state_addr: str | None = None

    txs: list[OrderTransaction] = Field(default_factory=list)

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
        coerce_numbers_to_str=True,
    )

    @field_validator("txs", mode="before")
    @classmethod
    def null_txs(cls, v: Any) -> Any:
        return [] if v is None else v

    def first_tx_with_goal(self, goal: str) -> OrderTransaction | None:
        """First ``txs`` entry whose goals include ``goal``."""
        for tx in self.txs:
            if goal in tx.goals:
                return tx
        return None

    def txs_with_any_goal(self, goals: list[str]) -> list[OrderTransaction]:
        wanted = set(goals)
        return [tx for tx in self.txs if wanted.intersection(tx.goals)]

    @property
    def fulfill_hash(self) -> str | None:
        """Fulfill transaction: FULFILL-tagged entry first, then ``fulfillTxHash``."""
        tagged = self.first_tx_with_goal("FULFILL")
        if tagged is not None and tagged.tx_hash:
            return tagged.tx_hash
        return self.fulfill_tx_hash or None

    @property
    def unlock_hash(self) -> str | None:
        """Unlock transaction: UNLOCK-tagged entry first, then ``redeemTxHash``."""
        tagged = self.first_tx_with_goal("UNLOCK")
        if tagged is not None and tagged.tx_hash:
            return tagged.tx_hash
        return self.redeem_tx_hash or None


def build_order_info(order: SwiftOrder) -> dict[str, Any]:
    """Structured view of the order used in the analysis output."""
    source_info = SWIFT_CHAIN_MAPPING.get(order.source_chain, UNKNOWN_CHAIN)
    dest_info = SWIFT_CHAIN_MAPPING.get(order.dest_chain, UNKNOWN_CHAIN)

    return {
        "orderId": order.order_id,
        "status": order.status,
        "service": order.service,
        "sourceChain": {"id": order.source_chain, "info": source_info.to_dict()},
        "destChain": {"id": order.dest_chain, "info": dest_info.to_dict()},
        "swapChain": order.swap_chain,
        "tokens": {
            "from": {"amount": order.from_amount, "symbol": order.from_token_symbol},
            "to": {"amount": order.to_amount, "symbol": order.to_token_symbol},
            "expected": order.estimate_market_to_amount,
        },
        "transactions": {
            "sourceTxHash": order.source_tx_hash,
            "redeemTxHash": order.redeem_tx_hash or None,
            "fulfillTxHash": order.fulfill_tx_hash or None,
            "allTransactions": [
                {"goals": list(tx.goals), "txHash": tx.tx_hash} for tx in order.txs
            ],
        },
        "timing": {
            "initiatedAt": order.initiated_at,
            "completedAt": order.completed_at,
        },
        "contracts": {
            "driverAddress": order.driver_address,
            "auctionAddress": order.auction_address,
            "stateAddr": order.state_addr,
        },
    }
