"""Detection, admission and execution stages of the arbitrage engine."""

from __future__ import annotations

from .executor import ExecutionOrchestrator
from .ledger import LedgerSnapshot, PositionLedger
from .risk import RiskGate, risk_level
from .scanner import OpportunityScanner

__all__ = [
    "OpportunityScanner",
    "RiskGate",
    "risk_level",
    "PositionLedger",
    "LedgerSnapshot",
    "ExecutionOrchestrator",
]
