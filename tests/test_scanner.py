"""Opportunity scanner tests against in-memory venues."""

from __future__ import annotations

import asyncio

from prometheus_client import REGISTRY

from dexarb.adapters.registry import VenueRegistry
from dexarb.engine.pricing import profit_bps
from dexarb.engine.scanner import OpportunityScanner
from dexarb.models import Asset, LiquidityPool
from dexarb.oracles import StaticPriceOracle

from tests.dex_mocks import DAI, USDC, WETH, FakeVenue, make_settings, usdc_weth_pool


def _skips(reason: str) -> float:
    return REGISTRY.get_sample_value("dexarb_skips_total", {"reason": reason}) or 0.0


def _venues():
    # WETH is 1% dearer on "dear" than on "cheap".
    cheap = FakeVenue("cheap", [usdc_weth_pool("cheap", 30_000_000, 10_000)])
    dear = FakeVenue("dear", [usdc_weth_pool("dear", 30_300_000, 10_000)])
    return cheap, dear


def test_scenario_one_percent_spread_yields_single_opportunity():
    cheap, dear = _venues()
    scanner = OpportunityScanner(VenueRegistry([cheap, dear]), make_settings())

    opportunities = asyncio.run(scanner.scan_once([USDC, WETH]))

    assert len(opportunities) == 1
    opp = opportunities[0]
    assert opp.buy_pool.venue == "cheap"
    assert opp.sell_pool.venue == "dear"
    # 1% spread minus two 30bp fees and a little price impact
    assert 35 <= opp.profit_bps <= 40
    assert [leg.venue for leg in opp.legs] == ["cheap", "dear"]
    assert opp.origin == USDC
    assert opp.input_amount == 1000 * 10**6
    assert opp.gas_estimate == 300_000
    assert abs(opp.confidence - 0.6) < 1e-9


def test_profit_identity_and_slippage_protected_legs():
    cheap, dear = _venues()
    scanner = OpportunityScanner(VenueRegistry([cheap, dear]), make_settings())
    opp = asyncio.run(scanner.scan_once([USDC, WETH]))[0]

    first, second = opp.legs
    returned = opp.input_amount + opp.profit_amount
    assert opp.profit_bps == profit_bps(opp.input_amount, returned)
    assert second.amount_in > first.min_amount_out
    assert first.min_amount_out == second.amount_in * 9_800 // 10_000
    assert second.min_amount_out == returned * 9_800 // 10_000


def test_threshold_filters_opportunities():
    cheap, dear = _venues()
    scanner = OpportunityScanner(
        VenueRegistry([cheap, dear]), make_settings(min_profit_threshold_bps=50)
    )
    assert asyncio.run(scanner.scan_once([USDC, WETH])) == []


def test_no_spread_no_opportunity():
    a = FakeVenue("cheap", [usdc_weth_pool("cheap", 30_000_000, 10_000)])
    b = FakeVenue("dear", [usdc_weth_pool("dear", 30_000_000, 10_000)])
    scanner = OpportunityScanner(VenueRegistry([a, b]), make_settings(min_profit_threshold_bps=0))
    assert asyncio.run(scanner.scan_once([USDC, WETH])) == []


def test_single_venue_pair_is_discarded():
    cheap, _ = _venues()
    scanner = OpportunityScanner(VenueRegistry([cheap]), make_settings())
    assert asyncio.run(scanner.scan_once([USDC, WETH])) == []
    assert cheap.quote_calls == 0


def test_failing_venue_is_skipped_not_fatal():
    cheap, dear = _venues()
    broken = FakeVenue("broken", [usdc_weth_pool("broken", 1, 1)])
    broken.fail_pools = True
    before = _skips("pool_error")
    scanner = OpportunityScanner(VenueRegistry([cheap, dear, broken]), make_settings())

    opportunities = asyncio.run(scanner.scan_once([USDC, WETH]))

    assert len(opportunities) == 1
    assert _skips("pool_error") == before + 1


def test_quote_failures_skip_combination():
    cheap, dear = _venues()
    flaky = FakeVenue("flaky", [usdc_weth_pool("flaky", 29_000_000, 10_000)])
    flaky.fail_quotes = True
    scanner = OpportunityScanner(VenueRegistry([cheap, dear, flaky]), make_settings())

    opportunities = asyncio.run(scanner.scan_once([USDC, WETH]))

    assert [(o.buy_pool.venue, o.sell_pool.venue) for o in opportunities] == [
        ("cheap", "dear")
    ]


def test_results_sorted_by_profit():
    cheap, dear = _venues()
    dearer = FakeVenue("dearer", [usdc_weth_pool("dearer", 30_600_000, 10_000)])
    scanner = OpportunityScanner(VenueRegistry([cheap, dear, dearer]), make_settings())

    opportunities = asyncio.run(scanner.scan_once([USDC, WETH]))

    bps = [o.profit_bps for o in opportunities]
    assert bps == sorted(bps, reverse=True)
    assert (opportunities[0].buy_pool.venue, opportunities[0].sell_pool.venue) == (
        "cheap",
        "dearer",
    )


def test_pairs_on_different_chains_are_skipped():
    cheap, dear = _venues()
    other_chain = Asset(DAI.address, "DAI", 18, 137)
    scanner = OpportunityScanner(VenueRegistry([cheap, dear]), make_settings())
    assert asyncio.run(scanner.scan_once([USDC, other_chain])) == []


def test_profit_usd_from_price_oracle():
    cheap, dear = _venues()
    oracle = StaticPriceOracle({USDC.address: 1.0})
    scanner = OpportunityScanner(VenueRegistry([cheap, dear]), make_settings(), price_oracle=oracle)
    opp = asyncio.run(scanner.scan_once([USDC, WETH]))[0]
    assert opp.profit_usd is not None
    assert abs(opp.profit_usd - opp.profit_amount / 10**6) < 1e-6


def test_same_venue_pools_are_not_paired():
    pool_a = usdc_weth_pool("cheap", 30_000_000, 10_000)
    pool_b = LiquidityPool(
        "cheap-pool-2", "cheap", USDC, WETH, 30_300_000 * 10**6, 10_000 * 10**18
    )
    only = FakeVenue("cheap", [pool_a, pool_b])
    scanner = OpportunityScanner(VenueRegistry([only]), make_settings())
    assert asyncio.run(scanner.scan_once([USDC, WETH])) == []


def test_run_pushes_to_queue_and_drops_when_full():
    cheap, dear = _venues()
    dearer = FakeVenue("dearer", [usdc_weth_pool("dearer", 30_600_000, 10_000)])
    scanner = OpportunityScanner(VenueRegistry([cheap, dear, dearer]), make_settings())
    before = _skips("queue_full")

    async def main():
        queue: asyncio.Queue = asyncio.Queue(maxsize=1)
        stop = asyncio.Event()
        task = asyncio.create_task(scanner.run([USDC, WETH], queue, stop))
        await asyncio.sleep(0.05)
        assert scanner.running
        stop.set()
        await asyncio.wait_for(task, 1)
        return queue

    queue = asyncio.run(main())
    assert queue.qsize() == 1
    assert _skips("queue_full") > before
    assert not scanner.running
    stats = scanner.stats()
    assert stats["assets_scanned"] == 2
    assert stats["last_scan_time"] is not None


def test_run_survives_tick_errors():
    cheap, dear = _venues()
    scanner = OpportunityScanner(VenueRegistry([cheap, dear]), make_settings())
    calls = []

    async def explode(assets):
        calls.append(1)
        raise RuntimeError("boom")

    scanner.scan_once = explode  # type: ignore[assignment]

    async def main():
        queue: asyncio.Queue = asyncio.Queue()
        task = asyncio.create_task(scanner.run([USDC, WETH], queue))
        await asyncio.sleep(0.05)
        scanner.stop()
        await asyncio.wait_for(task, 1)

    asyncio.run(main())
    assert len(calls) >= 2
