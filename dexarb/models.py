"""Shared data models for DEX arbitrage operations.

Amounts are integers in each asset's smallest unit and percentages are integer
basis points. Floats only carry scores, oracle prices and durations.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional


@dataclass(frozen=True)
class Asset:
    """ERC-20 (or native) asset on a specific chain."""

    address: str
    symbol: str
    decimals: int
    chain_id: int

    @property
    def key(self) -> str:
        """Case-insensitive identity used for set membership and lookups."""
        return self.address.lower()

    def same_as(self, other: "Asset") -> bool:
        return self.key == other.key and self.chain_id == other.chain_id


@dataclass(frozen=True)
class LiquidityPool:
    """Snapshot of a venue's reserve for one asset pair.

    ``reserve_a``/``reserve_b`` are zero for venues that do not expose
    reserves (concentrated liquidity); ``liquidity`` then carries the venue's
    own depth proxy.
    """

    pool_id: str
    venue: str
    asset_a: Asset
    asset_b: Asset
    reserve_a: int = 0
    reserve_b: int = 0
    fee_bps: int = 30
    liquidity: int = 0
    chain_id: int = 1

    def depth_of(self, asset: Asset) -> int:
        """Return the pool depth denominated in *asset* raw units."""

        if asset.key == self.asset_a.key and self.reserve_a:
            return self.reserve_a
        if asset.key == self.asset_b.key and self.reserve_b:
            return self.reserve_b
        return self.liquidity

    def reserves_for(self, asset_in: Asset) -> tuple[int, int]:
        """Return ``(reserve_in, reserve_out)`` when trading *asset_in*."""

        if asset_in.key == self.asset_a.key:
            return self.reserve_a, self.reserve_b
        return self.reserve_b, self.reserve_a


@dataclass(frozen=True)
class TradeLeg:
    """One swap within a round trip."""

    venue: str
    asset_in: Asset
    asset_out: Asset
    amount_in: int
    min_amount_out: int
    pool: LiquidityPool

    @property
    def route(self) -> list[str]:
        return [self.asset_in.address, self.asset_out.address]


@dataclass(frozen=True)
class ConfidenceAnnotation:
    """Scores returned by a confidence oracle, each in ``[0, 1]``."""

    confidence: float
    risk_score: float
    execution_probability: float


@dataclass(frozen=True)
class PriceData:
    """Best-effort spot price for an asset from a price oracle."""

    asset: str
    price: float
    change_24h: float = 0.0
    volume_24h: float = 0.0
    timestamp: float = 0.0
    source: str = ""


@dataclass(frozen=True)
class Opportunity:
    """A detected round trip across two venues.

    The leg sequence must start and end in the same asset; construction fails
    otherwise because profit cannot be measured in a single unit.
    """

    opportunity_id: str
    asset_a: Asset
    asset_b: Asset
    buy_pool: LiquidityPool
    sell_pool: LiquidityPool
    profit_bps: int
    profit_amount: int
    input_amount: int
    legs: tuple[TradeLeg, ...]
    gas_estimate: int
    detected_at: float = field(default_factory=time.time)
    confidence: float = 0.5
    annotation: Optional[ConfidenceAnnotation] = None
    profit_usd: Optional[float] = None

    def __post_init__(self) -> None:
        legs = tuple(self.legs)
        object.__setattr__(self, "legs", legs)
        if not legs:
            raise ValueError("opportunity requires at least one leg")
        for prev, nxt in zip(legs, legs[1:]):
            if prev.asset_out.key != nxt.asset_in.key:
                raise ValueError(
                    f"leg chain broken: {prev.asset_out.symbol} -> {nxt.asset_in.symbol}"
                )
        if legs[-1].asset_out.key != legs[0].asset_in.key:
            raise ValueError("final leg must return to the origin asset")

    @property
    def origin(self) -> Asset:
        return self.legs[0].asset_in

    @property
    def pair(self) -> str:
        return f"{self.asset_a.symbol}/{self.asset_b.symbol}"

    @property
    def venues(self) -> tuple[str, str]:
        return self.buy_pool.venue, self.sell_pool.venue

    @property
    def is_cross_venue(self) -> bool:
        return self.buy_pool.venue != self.sell_pool.venue

    def age(self, now: float | None = None) -> float:
        """Seconds elapsed since detection."""
        return max((time.time() if now is None else now) - self.detected_at, 0.0)

    def with_annotation(self, annotation: ConfidenceAnnotation | None) -> "Opportunity":
        return replace(self, annotation=annotation)

    def revalidated(
        self,
        legs: tuple[TradeLeg, ...],
        profit_bps: int,
        profit_amount: int,
        detected_at: float,
    ) -> "Opportunity":
        """Return a copy carrying freshly quoted legs and profit."""

        return replace(
            self,
            legs=legs,
            input_amount=legs[0].amount_in,
            profit_bps=profit_bps,
            profit_amount=profit_amount,
            detected_at=detected_at,
        )


class RiskLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


@dataclass(frozen=True)
class RiskAssessment:
    """Outcome of a risk gate evaluation."""

    score: int
    level: RiskLevel
    should_execute: bool
    reasons: tuple[str, ...]
    adjusted_position_size: Optional[int] = None
    adjusted_slippage_bps: Optional[int] = None


class ExecutionState(str, Enum):
    DETECTED = "DETECTED"
    VALIDATED = "VALIDATED"
    REJECTED = "REJECTED"
    APPROVED = "APPROVED"
    EXECUTING = "EXECUTING"
    SETTLED = "SETTLED"
    FAILED = "FAILED"


@dataclass(frozen=True)
class TxReceipt:
    """Terminal confirmation of a submitted transaction."""

    tx_id: str
    success: bool
    gas_used: int = 0
    block_number: int | None = None


@dataclass(frozen=True)
class ExecutionResult:
    """Structured outcome of one execution attempt.

    ``transaction_hashes`` may be a strict prefix of the leg sequence when a
    later leg failed.
    """

    success: bool
    transaction_hashes: tuple[str, ...] = ()
    realized_profit: int = 0
    gas_used: int = 0
    execution_time: float = 0.0
    error: str | None = None
    error_kind: str | None = None
    opportunity_id: str | None = None
    state: ExecutionState | None = None
