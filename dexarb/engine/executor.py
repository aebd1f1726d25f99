"""Execution orchestrator: revalidate, guard gas, approve and run legs in order.

Only one execution may be in flight at a time. Every failure inside
:meth:`ExecutionOrchestrator.execute` is converted into an
:class:`~dexarb.models.ExecutionResult`; the ledger's trade start/end calls
are always paired.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from dataclasses import replace
from decimal import ROUND_CEILING, Decimal
from typing import Any, Awaitable, Callable, TypeVar

from dexarb.adapters.base import VenueClient
from dexarb.adapters.registry import VenueRegistry
from dexarb.chain import ChainClient
from dexarb.errors import (
    ApprovalRequired,
    ArbitrageError,
    DataUnavailable,
    ExecutionInFlight,
    GasProfitNegative,
    InsufficientFunds,
    LegExecutionFailure,
    StaleOpportunity,
    SystemDisabled,
)
from dexarb.metrics.exporter import (
    ACTIVE_TRADES,
    EXECUTION_LATENCY,
    EXECUTIONS_TOTAL,
    PROFIT_TOTAL,
)
from dexarb.models import (
    Asset,
    ExecutionResult,
    ExecutionState,
    Opportunity,
    TradeLeg,
    TxReceipt,
)
from dexarb.oracles import PriceOracle
from dexarb.signer import Signer

from .ledger import PositionLedger
from .pricing import buffered_gas, min_amount_out, profit_bps

log = logging.getLogger(__name__)

T = TypeVar("T")

NATIVE_DECIMALS = 18
# Errors raised before any transaction is submitted.
REJECTION_KINDS = (SystemDisabled, ExecutionInFlight, StaleOpportunity, GasProfitNegative)


class ExecutionOrchestrator:
    """Turn an approved :class:`Opportunity` into on-chain transactions."""

    def __init__(
        self,
        registry: VenueRegistry,
        chain: ChainClient,
        signer: Signer | None,
        ledger: PositionLedger,
        settings: Any,
        price_oracle: PriceOracle | None = None,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        history_size: int = 1000,
    ) -> None:
        self.registry = registry
        self.chain = chain
        self.signer = signer
        self.ledger = ledger
        self.settings = settings
        self.price_oracle = price_oracle
        self._clock = clock
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self._halted = False
        self._history: deque[ExecutionResult] = deque(maxlen=history_size)
        self._state: ExecutionState | None = None

    # -- control -----------------------------------------------------------

    @property
    def in_flight(self) -> bool:
        return self._lock.locked()

    @property
    def halted(self) -> bool:
        return self._halted

    @property
    def state(self) -> ExecutionState | None:
        return self._state

    def halt(self, reason: str = "emergency stop") -> None:
        """Refuse new executions and stop any running one before its next leg."""

        self._halted = True
        log.critical("execution halted: %s", reason)

    def resume(self) -> None:
        self._halted = False
        log.warning("execution resumed")

    # -- helpers -----------------------------------------------------------

    async def _call(self, awaitable: Awaitable[T]) -> T:
        return await asyncio.wait_for(
            awaitable, float(getattr(self.settings, "rpc_timeout_secs", 10.0))
        )

    def _client(self, leg: TradeLeg) -> VenueClient:
        client = self.registry.get(leg.venue, leg.pool.chain_id)
        if client is None:
            raise DataUnavailable(f"no client registered for venue {leg.venue}")
        return client

    async def _wait(self, tx_id: str) -> TxReceipt:
        timeout = float(self.settings.confirmation_timeout_secs)
        return await asyncio.wait_for(
            self.chain.wait_for_receipt(tx_id, timeout),
            timeout + float(getattr(self.settings, "rpc_timeout_secs", 10.0)),
        )

    # -- stages ------------------------------------------------------------

    async def revalidate(
        self,
        opp: Opportunity,
        input_amount: int | None = None,
        slippage_bps: int | None = None,
    ) -> Opportunity:
        """Re-quote every leg and return a refreshed copy of *opp*.

        Raises :class:`StaleOpportunity` when current profit is below the
        configured minimum or has lost more than half of the detected profit.
        """

        amount = int(input_amount or opp.input_amount)
        slippage = (
            int(self.settings.max_slippage_bps) if slippage_bps is None else int(slippage_bps)
        )
        legs: list[TradeLeg] = []
        current = amount
        for leg in opp.legs:
            client = self._client(leg)
            try:
                out = int(
                    await self._call(
                        client.get_quote(leg.asset_in, leg.asset_out, current, leg.pool)
                    )
                )
            except ArbitrageError:
                raise
            except Exception as exc:
                raise DataUnavailable(f"re-quote on {leg.venue} failed: {exc}") from exc
            legs.append(
                replace(
                    leg, amount_in=current, min_amount_out=min_amount_out(out, slippage)
                )
            )
            current = out

        bps = profit_bps(amount, current)
        min_bps = int(self.settings.min_profit_threshold_bps)
        if bps < min_bps:
            raise StaleOpportunity(
                f"profit {bps}bp below threshold {min_bps}bp (detected {opp.profit_bps}bp)",
                current_bps=bps,
            )
        if opp.profit_bps > 0 and (opp.profit_bps - bps) * 100 > opp.profit_bps * 50:
            raise StaleOpportunity(
                f"profit degraded from {opp.profit_bps}bp to {bps}bp", current_bps=bps
            )
        return opp.revalidated(tuple(legs), bps, current - amount, self._clock())

    async def _price(self, address: str) -> Decimal:
        if self.price_oracle is None:
            raise DataUnavailable("no price oracle configured")
        data = await self._call(self.price_oracle.get_price(address))
        if data is None or data.price <= 0:
            raise DataUnavailable(f"no price for {address}")
        return Decimal(str(data.price))

    async def gas_cost_in(self, asset: Asset, cost_wei: int) -> int:
        """Convert a wei gas cost into raw units of *asset*."""

        native = {
            str(self.settings.native_asset_address).lower(),
            str(self.settings.wrapped_native_address).lower(),
        }
        if asset.key in native:
            return cost_wei
        native_usd = await self._price(self.settings.wrapped_native_address)
        asset_usd = await self._price(asset.address)
        cost = (
            Decimal(cost_wei)
            / (Decimal(10) ** NATIVE_DECIMALS)
            * native_usd
            / asset_usd
            * (Decimal(10) ** asset.decimals)
        )
        return int(cost.to_integral_value(rounding=ROUND_CEILING))

    async def check_gas(self, opp: Opportunity) -> int:
        """Return the buffered gas cost in origin-asset units or raise."""

        gas_price = int(await self._call(self.chain.gas_price()))
        ceiling = int(self.settings.max_gas_price_wei)
        if gas_price > ceiling:
            raise GasProfitNegative(f"gas price {gas_price} wei above ceiling {ceiling}")
        units = 0
        for leg in opp.legs:
            units += int(await self._call(self._client(leg).estimate_gas(leg)))
        cost = await self.gas_cost_in(opp.origin, buffered_gas(units) * gas_price)
        if opp.profit_amount - cost <= 0:
            raise GasProfitNegative(
                f"gas cost {cost} consumes profit {opp.profit_amount} ({opp.origin.symbol})"
            )
        return cost

    async def _check_allowance(self, leg: TradeLeg, owner: str, spender: str) -> None:
        allowance = int(
            await self._call(self.chain.get_allowance(leg.asset_in, owner, spender))
        )
        if allowance < leg.amount_in:
            raise ApprovalRequired(
                f"{leg.asset_in.symbol} allowance {allowance} < {leg.amount_in} for {spender}"
            )

    async def _approve(self, leg: TradeLeg, owner: str, spender: str) -> None:
        try:
            tx = await self._call(self.chain.build_approval(leg.asset_in, owner, spender))
            tx_id = await self._call(self.signer.sign_and_submit(tx))
            receipt = await self._wait(tx_id)
        except Exception as exc:
            raise LegExecutionFailure(
                f"approval of {leg.asset_in.symbol} for {leg.venue} failed: {exc}"
            ) from exc
        if not receipt.success:
            raise LegExecutionFailure(
                f"approval of {leg.asset_in.symbol} for {leg.venue} reverted ({tx_id})"
            )
        log.info("approved %s for %s (%s)", leg.asset_in.symbol, leg.venue, tx_id)

    async def ensure_allowances(self, opp: Opportunity, owner: str) -> None:
        for leg in opp.legs:
            if self.chain.is_native(leg.asset_in):
                continue
            spender = self._client(leg).router_address
            try:
                await self._check_allowance(leg, owner, spender)
            except ApprovalRequired as exc:
                log.info("%s; submitting approval", exc)
                await self._approve(leg, owner, spender)

    async def _run_legs(
        self, opp: Opportunity, hashes: list[str], receipts: list[TxReceipt]
    ) -> None:
        """Submit legs in order; confirmed ids go to *hashes*, every receipt to *receipts*."""

        for index, leg in enumerate(opp.legs, start=1):
            if index > 1:
                await self._sleep(float(self.settings.leg_delay_secs))
                if self._halted:
                    raise SystemDisabled(f"emergency halt before leg {index}")
            try:
                tx_id = await self._call(self._client(leg).execute_trade(leg, self.signer))
                receipt = await self._wait(tx_id)
            except ArbitrageError:
                raise
            except Exception as exc:
                raise LegExecutionFailure(f"leg {index} on {leg.venue} failed: {exc}") from exc
            receipts.append(receipt)
            if not receipt.success:
                raise LegExecutionFailure(
                    f"leg {index} on {leg.venue} reverted ({tx_id})", hashes
                )
            hashes.append(tx_id)
            log.info("leg %d/%d confirmed on %s: %s", index, len(opp.legs), leg.venue, tx_id)

    # -- entry point -------------------------------------------------------

    def _finish(self, result: ExecutionResult, started: float) -> ExecutionResult:
        result = replace(result, execution_time=time.perf_counter() - started)
        self._history.append(result)
        self._state = result.state
        outcome = "success" if result.success else (result.error_kind or "error")
        EXECUTIONS_TOTAL.labels(outcome).inc()
        EXECUTION_LATENCY.observe(result.execution_time)
        return result

    def _failure(
        self,
        opp: Opportunity,
        exc: BaseException,
        hashes: list[str] | tuple[str, ...] = (),
        gas_used: int = 0,
    ) -> ExecutionResult:
        kind = exc.kind if isinstance(exc, ArbitrageError) else type(exc).__name__
        if isinstance(exc, LegExecutionFailure) and exc.transaction_hashes:
            hashes = exc.transaction_hashes
        if isinstance(exc, REJECTION_KINDS) and not hashes:
            state = ExecutionState.REJECTED
        else:
            state = ExecutionState.FAILED
        return ExecutionResult(
            success=False,
            transaction_hashes=tuple(hashes),
            gas_used=gas_used,
            error=str(exc) or kind,
            error_kind=kind,
            opportunity_id=opp.opportunity_id,
            state=state,
        )

    async def execute(
        self,
        opp: Opportunity,
        input_amount: int | None = None,
        slippage_bps: int | None = None,
    ) -> ExecutionResult:
        """Execute *opp* and return its outcome; never raises."""

        started = time.perf_counter()
        refusal: ArbitrageError | None = None
        if self._halted:
            refusal = SystemDisabled("emergency halt active")
        elif not getattr(self.settings, "trading_enabled", False):
            refusal = SystemDisabled("trading disabled")
        elif self.signer is None:
            refusal = SystemDisabled("no signer configured")
        elif self._lock.locked():
            refusal = ExecutionInFlight("another execution is in flight")
        if refusal is not None:
            return self._finish(self._failure(opp, refusal), started)

        async with self._lock:
            self._state = ExecutionState.VALIDATED
            try:
                fresh = await self.revalidate(opp, input_amount, slippage_bps)
                await self.check_gas(fresh)
            except Exception as exc:
                log.info("execution of %s aborted: %s", opp.opportunity_id, exc)
                return self._finish(self._failure(opp, exc), started)

            self._state = ExecutionState.EXECUTING
            self.ledger.record_trade_start()
            ACTIVE_TRADES.inc()
            hashes: list[str] = []
            receipts: list[TxReceipt] = []
            success = False
            try:
                owner = await self.signer.get_address()
                before = int(await self._call(self.chain.get_balance(fresh.origin, owner)))
                if before < fresh.input_amount:
                    raise InsufficientFunds(
                        f"{fresh.origin.symbol} balance {before} < {fresh.input_amount}"
                    )
                await self.ensure_allowances(fresh, owner)
                await self._run_legs(fresh, hashes, receipts)
                after = int(await self._call(self.chain.get_balance(fresh.origin, owner)))
                success = True
                result = ExecutionResult(
                    success=True,
                    transaction_hashes=tuple(hashes),
                    realized_profit=after - before,
                    gas_used=sum(r.gas_used for r in receipts),
                    opportunity_id=opp.opportunity_id,
                    state=ExecutionState.SETTLED,
                )
                PROFIT_TOTAL.labels(fresh.origin.symbol).inc(after - before)
                log.info(
                    "settled %s %s: realized %d %s in %d legs",
                    opp.opportunity_id,
                    opp.pair,
                    after - before,
                    fresh.origin.symbol,
                    len(hashes),
                )
            except Exception as exc:
                log.error("execution of %s failed: %s", opp.opportunity_id, exc)
                result = self._failure(
                    opp, exc, hashes, sum(r.gas_used for r in receipts)
                )
            finally:
                self.ledger.record_trade_end(fresh.input_amount, success)
                ACTIVE_TRADES.dec()
            return self._finish(result, started)

    # -- reporting ---------------------------------------------------------

    def history(self, limit: int | None = None) -> list[ExecutionResult]:
        items = list(self._history)
        return items[-limit:] if limit else items

    def stats(self) -> dict[str, Any]:
        items = list(self._history)
        successes = [r for r in items if r.success]
        return {
            "total": len(items),
            "successful": len(successes),
            "failed": len(items) - len(successes),
            "total_profit": sum(r.realized_profit for r in successes),
            "avg_execution_time": (
                sum(r.execution_time for r in items) / len(items) if items else 0.0
            ),
            "in_flight": self.in_flight,
            "halted": self._halted,
        }
