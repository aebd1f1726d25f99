"""Error taxonomy for the detection, admission and execution pipeline.

Every error raised inside a single opportunity's pipeline is converted into an
:class:`~dexarb.models.ExecutionResult` at the pipeline boundary; ``kind`` is
what ends up in ``ExecutionResult.error_kind``.
"""

from __future__ import annotations

from typing import Iterable


class ArbitrageError(Exception):
    """Base class for pipeline errors."""

    @property
    def kind(self) -> str:
        return type(self).__name__


class DataUnavailable(ArbitrageError):
    """A pool or quote could not be obtained; the combination is skipped."""


class StaleOpportunity(ArbitrageError):
    """The opportunity aged out or its profit degraded beyond tolerance."""

    def __init__(self, message: str, current_bps: int | None = None) -> None:
        super().__init__(message)
        self.current_bps = current_bps


class InsufficientFunds(ArbitrageError):
    """Wallet balance does not cover the first leg."""


class ApprovalRequired(ArbitrageError):
    """Router allowance is short; resolved by a blocking approval transaction."""


class LegExecutionFailure(ArbitrageError):
    """A leg (or its approval) did not confirm successfully."""

    def __init__(self, message: str, transaction_hashes: Iterable[str] = ()) -> None:
        super().__init__(message)
        self.transaction_hashes = tuple(transaction_hashes)


class GasProfitNegative(ArbitrageError):
    """Gas cost consumes the whole expected profit."""


class RiskRejected(ArbitrageError):
    """The risk gate refused the opportunity."""

    def __init__(self, reasons: Iterable[str]) -> None:
        self.reasons = tuple(reasons)
        super().__init__("; ".join(self.reasons) or "rejected by risk gate")


class SystemDisabled(ArbitrageError):
    """Trading is disabled or an emergency stop is active."""


class ExecutionInFlight(ArbitrageError):
    """Another execution holds the single-flight slot."""
