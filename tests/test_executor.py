"""Execution orchestrator tests."""

from __future__ import annotations

import asyncio
from dataclasses import replace

from dexarb.adapters.registry import VenueRegistry
from dexarb.engine.executor import ExecutionOrchestrator
from dexarb.engine.ledger import PositionLedger
from dexarb.engine.scanner import OpportunityScanner
from dexarb.models import ExecutionState
from dexarb.oracles import StaticPriceOracle

from tests.dex_mocks import (
    USDC,
    WETH,
    FakeChain,
    FakeSigner,
    FakeVenue,
    make_settings,
    usdc_weth_pool,
)

START_BALANCE = 10_000 * 10**6


def _setup(settings=None, gas_price=10**9, balance=START_BALANCE, approve_ok=True, oracle=True):
    settings = settings or make_settings()
    chain = FakeChain({USDC.key: balance} if balance else {}, gas_price=gas_price)
    cheap = FakeVenue("cheap", [usdc_weth_pool("cheap", 30_000_000, 10_000)], chain)
    dear = FakeVenue("dear", [usdc_weth_pool("dear", 30_300_000, 10_000)], chain)
    registry = VenueRegistry([cheap, dear])
    opp = asyncio.run(OpportunityScanner(registry, settings).scan_once([USDC, WETH]))[0]
    ledger = PositionLedger()
    signer = FakeSigner(chain, approve_ok=approve_ok)
    prices = StaticPriceOracle({WETH.address: 3000.0, USDC.address: 1.0}) if oracle else None
    orch = ExecutionOrchestrator(
        registry, chain, signer, ledger, settings, price_oracle=prices
    )
    return orch, opp, chain, signer, ledger, cheap, dear


def test_successful_round_trip():
    orch, opp, chain, signer, ledger, cheap, dear = _setup()

    result = asyncio.run(orch.execute(opp))

    assert result.success, result.error
    assert result.transaction_hashes == ("0xcheap1", "0xdear1")
    assert result.gas_used == 200_000
    assert result.realized_profit == opp.profit_amount
    assert result.state is ExecutionState.SETTLED
    assert chain.balances[USDC.key] == START_BALANCE + opp.profit_amount
    # one approval per router
    assert len(signer.submitted) == 2
    snap = ledger.snapshot()
    assert snap.active_trades == 0
    assert snap.daily_trade_count == 1
    assert snap.daily_volume == opp.input_amount
    stats = orch.stats()
    assert stats["total"] == 1
    assert stats["successful"] == 1
    assert stats["total_profit"] == opp.profit_amount
    assert not stats["in_flight"]
    assert orch.history(1) == [result]


def test_existing_allowances_skip_approvals():
    orch, opp, chain, signer, _, cheap, dear = _setup()
    chain.allowances[(USDC.key, cheap.router_address)] = 10**30
    chain.allowances[(WETH.key, dear.router_address)] = 10**30

    result = asyncio.run(orch.execute(opp))

    assert result.success
    assert signer.submitted == []


def test_second_leg_failure_reports_first_leg_only():
    orch, opp, chain, _, ledger, cheap, dear = _setup()
    dear.revert = True

    result = asyncio.run(orch.execute(opp))

    assert not result.success
    assert result.transaction_hashes == ("0xcheap1",)
    assert result.error_kind == "LegExecutionFailure"
    # the reverted leg still burned gas
    assert result.gas_used == 200_000
    assert result.state is ExecutionState.FAILED
    snap = ledger.snapshot()
    assert snap.active_trades == 0
    assert snap.daily_volume == 0


def test_no_leg_after_failed_leg():
    orch, opp, _, _, _, cheap, dear = _setup()
    cheap.revert = True

    result = asyncio.run(orch.execute(opp))

    assert not result.success
    assert result.transaction_hashes == ()
    assert len(cheap.executed) == 1
    assert dear.executed == []


def test_degraded_profit_aborts_before_touching_funds():
    orch, opp, chain, signer, ledger, cheap, _ = _setup()
    inflated = replace(opp, profit_bps=200)

    result = asyncio.run(orch.execute(inflated))

    assert not result.success
    assert result.error_kind == "StaleOpportunity"
    assert result.state is ExecutionState.REJECTED
    assert chain.calls == []
    assert signer.submitted == []
    assert cheap.executed == []
    assert ledger.snapshot().daily_trade_count == 0


def test_profit_below_threshold_is_stale():
    orch, opp, chain, _, _, _, _ = _setup()
    orch.settings.min_profit_threshold_bps = 50

    result = asyncio.run(orch.execute(opp))

    assert result.error_kind == "StaleOpportunity"
    assert chain.calls == []


def test_moved_reserves_are_requoted():
    orch, opp, _, _, _, cheap, dear = _setup()
    # spread narrows from 1% to 0.83%, profit stays above half of detected
    dear.set_reserves("dear-pool", 30_250_000 * 10**6, 10_000 * 10**18)

    result = asyncio.run(orch.execute(opp))

    assert result.success, result.error
    assert 0 < result.realized_profit < opp.profit_amount
    assert cheap.executed[0].amount_in == opp.input_amount


def test_insufficient_funds():
    orch, opp, chain, _, ledger, cheap, _ = _setup(balance=0)

    result = asyncio.run(orch.execute(opp))

    assert result.error_kind == "InsufficientFunds"
    assert chain.calls == ["balance"]
    assert cheap.executed == []
    snap = ledger.snapshot()
    assert snap.active_trades == 0
    assert snap.daily_trade_count == 1


def test_gas_cost_exceeding_profit_aborts():
    orch, opp, chain, signer, ledger, _, _ = _setup(gas_price=50 * 10**9)

    result = asyncio.run(orch.execute(opp))

    assert result.error_kind == "GasProfitNegative"
    assert chain.calls == []
    assert signer.submitted == []
    assert ledger.snapshot().daily_trade_count == 0


def test_gas_price_ceiling():
    orch, opp, _, _, _, _, _ = _setup(gas_price=200 * 10**9)
    result = asyncio.run(orch.execute(opp))
    assert result.error_kind == "GasProfitNegative"
    assert "ceiling" in result.error


def test_gas_cannot_be_priced_without_oracle():
    orch, opp, chain, _, _, _, _ = _setup(oracle=False)
    result = asyncio.run(orch.execute(opp))
    assert result.error_kind == "DataUnavailable"
    assert chain.calls == []


def test_failed_approval_aborts_before_legs():
    orch, opp, _, _, ledger, cheap, _ = _setup(approve_ok=False)

    result = asyncio.run(orch.execute(opp))

    assert result.error_kind == "LegExecutionFailure"
    assert "approval" in result.error
    assert cheap.executed == []
    assert ledger.snapshot().active_trades == 0


def test_trading_disabled():
    orch, opp, chain, _, ledger, _, _ = _setup(make_settings(trading_enabled=False))
    result = asyncio.run(orch.execute(opp))
    assert result.error_kind == "SystemDisabled"
    assert chain.calls == []
    assert ledger.snapshot().daily_trade_count == 0


def test_missing_signer_refuses():
    orch, opp, chain, _, _, _, _ = _setup()
    orch.signer = None
    result = asyncio.run(orch.execute(opp))
    assert result.error_kind == "SystemDisabled"
    assert chain.calls == []


def test_single_flight():
    orch, opp, chain, _, _, cheap, _ = _setup()

    async def main():
        async with orch._lock:
            return await orch.execute(opp)

    result = asyncio.run(main())
    assert result.error_kind == "ExecutionInFlight"
    assert chain.calls == []
    assert cheap.executed == []


def test_halt_stops_before_next_leg():
    orch, opp, _, _, ledger, cheap, dear = _setup()

    async def halting_sleep(_secs):
        orch.halt("operator")

    orch._sleep = halting_sleep
    result = asyncio.run(orch.execute(opp))

    assert not result.success
    assert result.error_kind == "SystemDisabled"
    assert result.transaction_hashes == ("0xcheap1",)
    assert result.gas_used == 100_000
    assert dear.executed == []
    assert ledger.snapshot().active_trades == 0

    again = asyncio.run(orch.execute(opp))
    assert again.error_kind == "SystemDisabled"
    orch.resume()
    assert not orch.halted


def test_risk_adjusted_size_and_slippage():
    orch, opp, _, _, _, cheap, dear = _setup()
    half = opp.input_amount // 2

    result = asyncio.run(orch.execute(opp, input_amount=half, slippage_bps=100))

    assert result.success
    first = cheap.executed[0]
    assert first.amount_in == half
    assert first.min_amount_out == dear.executed[0].amount_in * 9_900 // 10_000
    assert result.realized_profit > 0
