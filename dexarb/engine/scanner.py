"""Opportunity scanner.

Each tick enumerates every same-chain pair of monitored assets, gathers pools
from every venue registered for that chain and quotes a sample amount round
trip across each pair of distinct venues in both directions. Quoting, pool
discovery and gas estimation failures skip the affected combination; nothing
escapes the scan loop.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from itertools import combinations
from typing import Any, Awaitable, Callable, Iterable, Sequence, TypeVar

from dexarb.adapters.base import VenueClient
from dexarb.adapters.registry import VenueRegistry
from dexarb.metrics.exporter import (
    ERRORS_TOTAL,
    OPPORTUNITIES_TOTAL,
    SCAN_LATENCY,
    SCANS_TOTAL,
    SKIPS_TOTAL,
)
from dexarb.models import Asset, LiquidityPool, Opportunity, TradeLeg
from dexarb.oracles import PriceOracle

from .pricing import (
    confidence_heuristic,
    from_raw_units,
    min_amount_out,
    profit_bps,
    to_raw_units,
    whole_units,
)

log = logging.getLogger(__name__)

T = TypeVar("T")


class OpportunityScanner:
    """Periodic cross-venue scanner producing :class:`Opportunity` objects."""

    def __init__(
        self,
        registry: VenueRegistry,
        settings: Any,
        price_oracle: PriceOracle | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.registry = registry
        self.settings = settings
        self.price_oracle = price_oracle
        self._clock = clock
        self._running = False
        self._stop: asyncio.Event | None = None
        self._last_scan_time: float | None = None
        self._assets_scanned = 0
        self._opportunities_found = 0

    async def _call(self, awaitable: Awaitable[T]) -> T:
        return await asyncio.wait_for(
            awaitable, float(getattr(self.settings, "rpc_timeout_secs", 10.0))
        )

    def _skip(self, reason: str, venue: str, exc: BaseException) -> None:
        SKIPS_TOTAL.labels(reason).inc()
        ERRORS_TOTAL.labels(venue, "scan").inc()
        log.warning("skip %s on %s: %s", reason, venue, str(exc) or type(exc).__name__)

    # -- discovery ---------------------------------------------------------

    async def _pools(
        self, client: VenueClient, a: Asset, b: Asset
    ) -> tuple[str, list[LiquidityPool]]:
        try:
            pools = await self._call(client.get_pools(a, b))
        except Exception as exc:
            self._skip("pool_error", client.name, exc)
            return client.name, []
        return client.name, list(pools or [])

    async def _quote(
        self, pool: LiquidityPool, asset_in: Asset, asset_out: Asset, amount: int
    ) -> int:
        client = self.registry.get(pool.venue, pool.chain_id)
        if client is None:
            raise LookupError(f"no client for venue {pool.venue}")
        return int(await self._call(client.get_quote(asset_in, asset_out, amount, pool)))

    async def _round_trip(
        self,
        buy_pool: LiquidityPool,
        sell_pool: LiquidityPool,
        a: Asset,
        b: Asset,
        sample: int,
    ) -> tuple[int, int] | None:
        """Quote ``a -> b`` on *buy_pool* then ``b -> a`` on *sell_pool*."""

        try:
            mid = await self._quote(buy_pool, a, b, sample)
            if mid <= 0:
                return None
            out = await self._quote(sell_pool, b, a, mid)
        except Exception as exc:
            self._skip("quote_error", f"{buy_pool.venue}->{sell_pool.venue}", exc)
            return None
        return mid, out

    async def _gas(self, leg: TradeLeg) -> int:
        client = self.registry.get(leg.venue, leg.pool.chain_id)
        if client is None:
            raise LookupError(f"no client for venue {leg.venue}")
        return int(await self._call(client.estimate_gas(leg)))

    async def _profit_usd(self, asset: Asset, amount: int) -> float | None:
        if self.price_oracle is None:
            return None
        try:
            price = await self._call(self.price_oracle.get_price(asset.address))
        except Exception as exc:
            log.debug("price lookup failed for %s: %s", asset.symbol, exc)
            return None
        if price is None:
            return None
        return float(from_raw_units(amount, asset.decimals)) * price.price

    async def evaluate(
        self,
        a: Asset,
        b: Asset,
        pool_a: LiquidityPool,
        pool_b: LiquidityPool,
        sample: int,
    ) -> Opportunity | None:
        """Return the better round trip between two pools, if profitable."""

        a_first = await self._round_trip(pool_a, pool_b, a, b, sample)
        b_first = await self._round_trip(pool_b, pool_a, a, b, sample)
        net_a = a_first[1] - sample if a_first else 0
        net_b = b_first[1] - sample if b_first else 0

        if net_a > net_b:
            buy_pool, sell_pool, quotes, net = pool_a, pool_b, a_first, net_a
        else:
            buy_pool, sell_pool, quotes, net = pool_b, pool_a, b_first, net_b
        if quotes is None or net <= 0:
            return None

        mid, out = quotes
        slippage = int(self.settings.max_slippage_bps)
        legs = (
            TradeLeg(buy_pool.venue, a, b, sample, min_amount_out(mid, slippage), buy_pool),
            TradeLeg(sell_pool.venue, b, a, mid, min_amount_out(out, slippage), sell_pool),
        )
        try:
            gas = sum([await self._gas(leg) for leg in legs])
        except Exception as exc:
            self._skip("gas_error", buy_pool.venue, exc)
            return None

        bps = profit_bps(sample, out)
        avg_depth = (buy_pool.depth_of(a) + sell_pool.depth_of(a)) // 2
        cross_venue = buy_pool.venue != sell_pool.venue
        return Opportunity(
            opportunity_id=f"{a.symbol}-{b.symbol}-{uuid.uuid4().hex[:12]}",
            asset_a=a,
            asset_b=b,
            buy_pool=buy_pool,
            sell_pool=sell_pool,
            profit_bps=bps,
            profit_amount=out - sample,
            input_amount=sample,
            legs=legs,
            gas_estimate=gas,
            detected_at=self._clock(),
            confidence=confidence_heuristic(
                whole_units(avg_depth, a.decimals), bps, cross_venue
            ),
            profit_usd=await self._profit_usd(a, out - sample),
        )

    async def scan_pair(self, a: Asset, b: Asset) -> list[Opportunity]:
        """Return every profitable round trip for the pair ``a``/``b``."""

        clients = self.registry.for_chain(a.chain_id)
        results = await asyncio.gather(*(self._pools(c, a, b) for c in clients))
        by_venue = {venue: pools for venue, pools in results if pools}
        if len(by_venue) < 2:
            return []

        sample = to_raw_units(self.settings.quote_amount, a.decimals)
        found: list[Opportunity] = []
        for (_, pools_a), (_, pools_b) in combinations(by_venue.items(), 2):
            for pool_a in pools_a:
                for pool_b in pools_b:
                    opp = await self.evaluate(a, b, pool_a, pool_b, sample)
                    if opp is not None:
                        found.append(opp)
        return found

    async def scan_once(self, assets: Sequence[Asset]) -> list[Opportunity]:
        """Run a single tick and return opportunities sorted by profit."""

        started = time.perf_counter()
        pairs = [
            (a, b)
            for a, b in combinations(assets, 2)
            if a.chain_id == b.chain_id and not a.same_as(b)
        ]
        sem = asyncio.Semaphore(max(int(self.settings.scan_concurrency), 1))

        async def bounded(a: Asset, b: Asset) -> list[Opportunity]:
            async with sem:
                try:
                    return await self.scan_pair(a, b)
                except Exception as exc:
                    self._skip("pair_error", f"{a.symbol}/{b.symbol}", exc)
                    return []

        batches = await asyncio.gather(*(bounded(a, b) for a, b in pairs))
        threshold = int(self.settings.min_profit_threshold_bps)
        opportunities = [
            opp for batch in batches for opp in batch if opp.profit_bps >= threshold
        ]
        opportunities.sort(key=lambda o: o.profit_bps, reverse=True)

        self._assets_scanned = len(assets)
        self._last_scan_time = self._clock()
        self._opportunities_found += len(opportunities)
        SCANS_TOTAL.inc()
        SCAN_LATENCY.observe(time.perf_counter() - started)
        for opp in opportunities:
            OPPORTUNITIES_TOTAL.labels(opp.pair).inc()
        if opportunities:
            log.info(
                "scan found %d opportunities (best %s %dbp)",
                len(opportunities),
                opportunities[0].pair,
                opportunities[0].profit_bps,
            )
        return opportunities

    async def run(
        self,
        assets: Iterable[Asset],
        sink: asyncio.Queue,
        stop: asyncio.Event | None = None,
    ) -> None:
        """Scan every ``scan_interval_secs`` until *stop* is set."""

        assets = list(assets)
        self._stop = stop or asyncio.Event()
        self._running = True
        log.info("scanner started: %d assets", len(assets))
        try:
            while not self._stop.is_set():
                started = time.monotonic()
                try:
                    opportunities = await self.scan_once(assets)
                except Exception:
                    log.exception("scan tick failed")
                    opportunities = []
                for opp in opportunities:
                    try:
                        sink.put_nowait(opp)
                    except asyncio.QueueFull:
                        SKIPS_TOTAL.labels("queue_full").inc()
                        log.debug("queue full; dropped %s", opp.opportunity_id)
                remaining = float(self.settings.scan_interval_secs) - (
                    time.monotonic() - started
                )
                if remaining > 0:
                    try:
                        await asyncio.wait_for(self._stop.wait(), remaining)
                    except asyncio.TimeoutError:
                        pass
        finally:
            self._running = False
            log.info("scanner stopped")

    def stop(self) -> None:
        if self._stop is not None:
            self._stop.set()

    @property
    def running(self) -> bool:
        return self._running

    def stats(self) -> dict[str, Any]:
        return {
            "running": self._running,
            "assets_scanned": self._assets_scanned,
            "last_scan_time": self._last_scan_time,
            "opportunities_found": self._opportunities_found,
            "venues": len(self.registry),
        }
