"""Cross-venue DEX arbitrage: detection, risk gating and sequenced execution."""

from __future__ import annotations

from .errors import ArbitrageError
from .models import (
    Asset,
    ConfidenceAnnotation,
    ExecutionResult,
    LiquidityPool,
    Opportunity,
    RiskAssessment,
    RiskLevel,
    TradeLeg,
)

__all__ = [
    "ArbitrageError",
    "Asset",
    "ConfidenceAnnotation",
    "ExecutionResult",
    "LiquidityPool",
    "Opportunity",
    "RiskAssessment",
    "RiskLevel",
    "TradeLeg",
]
