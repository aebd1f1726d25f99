"""Position ledger: daily counters, in-flight trades and blacklists.

One :class:`threading.Lock` guards all state so the ledger can be shared by
asyncio tasks and worker threads alike. Daily counters reset lazily the first
time any operation observes a new UTC date.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Callable, Iterable

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class LedgerSnapshot:
    """Point-in-time copy of the ledger used by the risk gate."""

    daily_trade_count: int
    daily_volume: int
    active_trades: int
    last_trade_time: float
    blacklisted_assets: frozenset[str]
    blacklisted_venues: frozenset[str]


def _utc_day(ts: float) -> date:
    return datetime.fromtimestamp(ts, tz=timezone.utc).date()


class PositionLedger:
    """Mutable trading state shared by the risk gate and the orchestrator."""

    def __init__(
        self,
        blacklisted_assets: Iterable[str] = (),
        blacklisted_venues: Iterable[str] = (),
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._daily_trade_count = 0
        self._daily_volume = 0
        self._active_trades = 0
        self._last_trade_time = 0.0
        self._day = _utc_day(clock())
        self._blacklisted_assets = {a.lower() for a in blacklisted_assets if a}
        self._blacklisted_venues = {v for v in blacklisted_venues if v}

    @classmethod
    def from_settings(
        cls, settings: Any, clock: Callable[[], float] = time.time
    ) -> "PositionLedger":
        return cls(
            getattr(settings, "blacklisted_assets", ()) or (),
            getattr(settings, "blacklisted_venues", ()) or (),
            clock=clock,
        )

    def _roll_day(self) -> None:
        # Caller holds the lock.
        today = _utc_day(self._clock())
        if today != self._day:
            log.info(
                "daily reset %s -> %s (trades=%d volume=%d)",
                self._day,
                today,
                self._daily_trade_count,
                self._daily_volume,
            )
            self._day = today
            self._daily_trade_count = 0
            self._daily_volume = 0

    def record_trade_start(self) -> None:
        with self._lock:
            self._roll_day()
            self._active_trades += 1
            self._daily_trade_count += 1
            self._last_trade_time = self._clock()

    def record_trade_end(self, input_amount: int, success: bool) -> None:
        with self._lock:
            self._roll_day()
            self._active_trades = max(self._active_trades - 1, 0)
            if success:
                self._daily_volume += max(int(input_amount), 0)

    def add_asset_to_blacklist(self, address: str, reason: str) -> None:
        with self._lock:
            self._roll_day()
            self._blacklisted_assets.add(address.lower())
        log.warning("asset blacklisted: %s (%s)", address, reason)

    def remove_asset_from_blacklist(self, address: str) -> None:
        with self._lock:
            self._roll_day()
            self._blacklisted_assets.discard(address.lower())
        log.warning("asset removed from blacklist: %s", address)

    def add_venue_to_blacklist(self, name: str, reason: str) -> None:
        with self._lock:
            self._roll_day()
            self._blacklisted_venues.add(name)
        log.warning("venue blacklisted: %s (%s)", name, reason)

    def remove_venue_from_blacklist(self, name: str) -> None:
        with self._lock:
            self._roll_day()
            self._blacklisted_venues.discard(name)
        log.warning("venue removed from blacklist: %s", name)

    def is_asset_blacklisted(self, address: str) -> bool:
        with self._lock:
            self._roll_day()
            return address.lower() in self._blacklisted_assets

    def is_venue_blacklisted(self, name: str) -> bool:
        with self._lock:
            self._roll_day()
            return name in self._blacklisted_venues

    def snapshot(self) -> LedgerSnapshot:
        with self._lock:
            self._roll_day()
            return LedgerSnapshot(
                daily_trade_count=self._daily_trade_count,
                daily_volume=self._daily_volume,
                active_trades=self._active_trades,
                last_trade_time=self._last_trade_time,
                blacklisted_assets=frozenset(self._blacklisted_assets),
                blacklisted_venues=frozenset(self._blacklisted_venues),
            )

    def stats(self) -> dict[str, Any]:
        snap = self.snapshot()
        return {
            "daily_trade_count": snap.daily_trade_count,
            "daily_volume": snap.daily_volume,
            "active_trades": snap.active_trades,
            "last_trade_time": snap.last_trade_time,
            "blacklisted_assets": sorted(snap.blacklisted_assets),
            "blacklisted_venues": sorted(snap.blacklisted_venues),
        }
