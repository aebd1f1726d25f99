"""Pipeline wiring scanner, confidence oracle, risk gate and orchestrator.

:class:`ArbitrageTrader` owns the bounded opportunity queue between the scan
loop and the consumer, records what it sees and fans results out to SQLite,
metrics, Discord and registered observers.
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from collections import deque
from typing import Any, Callable, Iterable

from .engine.executor import ExecutionOrchestrator
from .engine.risk import RiskGate
from .engine.scanner import OpportunityScanner
from .errors import ArbitrageError, RiskRejected
from .metrics.exporter import RISK_DECISIONS_TOTAL, SKIPS_TOTAL
from .models import (
    Asset,
    ConfidenceAnnotation,
    ExecutionResult,
    ExecutionState,
    Opportunity,
)
from .notify import notify_execution
from .oracles import ConfidenceOracle
from .persistence.db import insert_execution, insert_opportunity

log = logging.getLogger(__name__)

Observer = Callable[[Opportunity, ExecutionResult], None]


class ArbitrageTrader:
    """Run the detect, admit, execute loop for a set of monitored assets."""

    def __init__(
        self,
        scanner: OpportunityScanner,
        risk_gate: RiskGate,
        orchestrator: ExecutionOrchestrator,
        settings: Any,
        confidence_oracle: ConfidenceOracle | None = None,
        db: sqlite3.Connection | None = None,
        notifier: Callable[[Opportunity, ExecutionResult, Any], None] = notify_execution,
        recent_limit: int = 1000,
    ) -> None:
        self.scanner = scanner
        self.risk_gate = risk_gate
        self.orchestrator = orchestrator
        self.settings = settings
        self.confidence_oracle = confidence_oracle
        self.db = db
        self.notifier = notifier
        self.recent_opportunities: deque[Opportunity] = deque(maxlen=recent_limit)
        self.recent_trades: deque[ExecutionResult] = deque(maxlen=recent_limit)
        self._observers: list[Observer] = []
        self._queue: asyncio.Queue[Opportunity] | None = None
        self._stop: asyncio.Event | None = None
        self._tasks: set[asyncio.Task] = set()

    def add_observer(self, callback: Observer) -> None:
        self._observers.append(callback)

    # -- single opportunity ------------------------------------------------

    def _record(self, opp: Opportunity) -> None:
        self.recent_opportunities.append(opp)
        if self.db is None:
            return
        try:
            insert_opportunity(self.db, opp)
        except sqlite3.Error as exc:
            log.error("failed to persist opportunity %s: %s", opp.opportunity_id, exc)

    async def _annotate(self, opp: Opportunity) -> ConfidenceAnnotation | None:
        if self.confidence_oracle is None:
            return None
        try:
            return await asyncio.wait_for(
                self.confidence_oracle.predict(opp),
                float(getattr(self.settings, "rpc_timeout_secs", 10.0)),
            )
        except Exception as exc:
            log.warning("confidence oracle failed for %s: %s", opp.opportunity_id, exc)
            return None

    def _complete(self, opp: Opportunity, result: ExecutionResult) -> None:
        self.recent_trades.append(result)
        if self.db is not None:
            try:
                insert_execution(self.db, result)
            except sqlite3.Error as exc:
                log.error("failed to persist execution %s: %s", opp.opportunity_id, exc)
        if result.state is not ExecutionState.REJECTED:
            self.notifier(opp, result, self.settings)
        for observer in list(self._observers):
            try:
                observer(opp, result)
            except Exception:
                log.exception("observer %r failed", observer)

    async def handle_opportunity(self, opp: Opportunity) -> ExecutionResult | None:
        """Admit and execute *opp*; ``None`` when trading is disabled."""

        self._record(opp)
        if not getattr(self.settings, "trading_enabled", False):
            log.debug("trading disabled; observed %s %dbp", opp.pair, opp.profit_bps)
            return None

        annotation = await self._annotate(opp)
        try:
            # Only confidence oracle predictions are gated here.
            threshold = float(self.settings.ai_confidence_threshold)
            if annotation is not None and annotation.confidence < threshold:
                RISK_DECISIONS_TOTAL.labels("reject", "confidence").inc()
                raise RiskRejected(
                    [
                        f"confidence {annotation.confidence:.2f} below threshold "
                        f"{threshold:.2f}"
                    ]
                )
            assessment = self.risk_gate.assess(opp, annotation)
            RISK_DECISIONS_TOTAL.labels(
                "approve" if assessment.should_execute else "reject",
                assessment.level.value,
            ).inc()
            if not assessment.should_execute:
                raise RiskRejected(assessment.reasons)
            result = await self.orchestrator.execute(
                opp.with_annotation(annotation),
                assessment.adjusted_position_size,
                assessment.adjusted_slippage_bps,
            )
        except ArbitrageError as exc:
            result = ExecutionResult(
                success=False,
                error=str(exc),
                error_kind=exc.kind,
                opportunity_id=opp.opportunity_id,
                state=ExecutionState.REJECTED,
            )
        except Exception as exc:
            log.exception("pipeline failed for %s", opp.opportunity_id)
            result = ExecutionResult(
                success=False,
                error=str(exc),
                error_kind=type(exc).__name__,
                opportunity_id=opp.opportunity_id,
                state=ExecutionState.FAILED,
            )
        self._complete(opp, result)
        return result

    # -- loop --------------------------------------------------------------

    @property
    def busy(self) -> bool:
        return self.orchestrator.in_flight

    async def _consume(self, queue: asyncio.Queue, stop: asyncio.Event) -> None:
        while not stop.is_set():
            try:
                opp = await asyncio.wait_for(queue.get(), 0.5)
            except asyncio.TimeoutError:
                continue
            if self.busy:
                SKIPS_TOTAL.labels("in_flight").inc()
                log.debug("execution in flight; dropped %s", opp.opportunity_id)
                continue
            task = asyncio.create_task(self.handle_opportunity(opp))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
            # let admission start before the next item is dequeued
            await asyncio.sleep(0)

    async def run(self, assets: Iterable[Asset]) -> None:
        """Scan and trade until :meth:`stop` or :meth:`emergency_stop`."""

        self._stop = asyncio.Event()
        self._queue = asyncio.Queue(maxsize=int(self.settings.opportunity_queue_size))
        scan_task = asyncio.create_task(self.scanner.run(assets, self._queue, self._stop))
        try:
            await self._consume(self._queue, self._stop)
        finally:
            self._stop.set()
            await scan_task
            if self._tasks:
                await asyncio.gather(*self._tasks)

    def stop(self) -> None:
        if self._stop is not None:
            self._stop.set()
        self.scanner.stop()

    def emergency_stop(self, reason: str = "emergency stop") -> None:
        """Halt executions, stop scanning and discard queued opportunities."""

        self.orchestrator.halt(reason)
        self.stop()
        dropped = 0
        if self._queue is not None:
            while not self._queue.empty():
                self._queue.get_nowait()
                dropped += 1
        log.critical("emergency stop: %s (dropped %d queued)", reason, dropped)

    def status(self) -> dict[str, Any]:
        return {
            "trading_enabled": bool(getattr(self.settings, "trading_enabled", False)),
            "scanner": self.scanner.stats(),
            "executor": self.orchestrator.stats(),
            "ledger": self.risk_gate.ledger.stats(),
            "recent_opportunities": len(self.recent_opportunities),
            "recent_trades": len(self.recent_trades),
            "queued": self._queue.qsize() if self._queue is not None else 0,
        }
