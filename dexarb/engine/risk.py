"""Risk gate: additive scoring and admission decisions for opportunities.

Scores are integers; each factor below adds (or subtracts) a fixed number of
points. The gate reads settings and the ledger snapshot on every call and
never mutates either.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable

from dexarb.models import ConfidenceAnnotation, Opportunity, RiskAssessment, RiskLevel

from .ledger import LedgerSnapshot, PositionLedger
from .pricing import scale_pct, to_raw_units, whole_units

log = logging.getLogger(__name__)

LOW_MAX = 20
MEDIUM_MAX = 40
HIGH_MAX = 70

STABLECOINS = frozenset({"USDC", "USDT", "DAI", "BUSD"})
MAJOR_ASSETS = frozenset({"WETH", "WBTC", "WMATIC", "BNB", "WBNB", "WAVAX"})

MIN_SLIPPAGE_BPS = 10


def risk_level(score: int) -> RiskLevel:
    if score <= LOW_MAX:
        return RiskLevel.LOW
    if score <= MEDIUM_MAX:
        return RiskLevel.MEDIUM
    if score <= HIGH_MAX:
        return RiskLevel.HIGH
    return RiskLevel.CRITICAL


def position_size_pct(score: int) -> int:
    if score <= 15:
        return 100
    if score <= 30:
        return 85
    if score <= 50:
        return 70
    return 50


def adjusted_slippage(max_slippage_bps: int, score: int) -> int:
    if score <= 30:
        pct = 100
    elif score <= 50:
        pct = 70
    else:
        pct = 50
    return max(scale_pct(int(max_slippage_bps), pct), MIN_SLIPPAGE_BPS)


class RiskGate:
    """Score opportunities and decide whether they may execute."""

    def __init__(
        self,
        settings: Any,
        ledger: PositionLedger,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.settings = settings
        self.ledger = ledger
        self._clock = clock

    # -- factors -----------------------------------------------------------
    # Each factor returns its score delta and the reasons behind any penalty.

    def _asset_score(self, opp: Opportunity, snap: LedgerSnapshot) -> tuple[int, list[str]]:
        blacklisted = [
            a.symbol for a in (opp.asset_a, opp.asset_b) if a.key in snap.blacklisted_assets
        ]
        if blacklisted:
            return 100, [f"blacklisted asset: {', '.join(blacklisted)}"]
        symbols = {opp.asset_a.symbol.upper(), opp.asset_b.symbol.upper()}
        if symbols <= STABLECOINS:
            return -5, []
        if symbols & MAJOR_ASSETS:
            return -2, []
        return 10, [f"unknown assets {opp.pair}"]

    def _venue_score(self, opp: Opportunity, snap: LedgerSnapshot) -> tuple[int, list[str]]:
        venues = set(opp.venues)
        blacklisted = sorted(venues & snap.blacklisted_venues)
        if blacklisted:
            return 50, [f"blacklisted venue: {', '.join(blacklisted)}"]
        score = 0
        reasons: list[str] = []
        trusted = set(getattr(self.settings, "trusted_venues", ()) or ())
        untrusted = sorted(venues - trusted)
        if untrusted:
            score += 15
            reasons.append(f"untrusted venue: {', '.join(untrusted)}")
        if opp.is_cross_venue:
            score += 5
        return score, reasons

    def _liquidity_score(self, opp: Opportunity) -> tuple[int, list[str]]:
        origin = opp.origin
        depth = min(opp.buy_pool.depth_of(origin), opp.sell_pool.depth_of(origin))
        score = 0
        reasons: list[str] = []
        depth_units = whole_units(depth, origin.decimals)
        if depth_units < 10_000:
            score += 30
            reasons.append(f"very low liquidity ({depth_units} {origin.symbol})")
        elif depth_units < 100_000:
            score += 15
            reasons.append(f"low liquidity ({depth_units} {origin.symbol})")
        # Utilisation: input as a share of the shallower pool.
        if depth <= 0 or opp.input_amount * 100 > depth * 5:
            score += 25
            reasons.append("input above 5% of pool depth")
        elif opp.input_amount * 100 > depth * 2:
            score += 10
            reasons.append("input above 2% of pool depth")
        return score, reasons

    @staticmethod
    def _profit_score(opp: Opportunity) -> tuple[int, list[str]]:
        bps = opp.profit_bps
        if bps > 500:
            return 20, [f"suspiciously high profit {bps}bp"]
        if bps > 200:
            return 5, [f"unusually high profit {bps}bp"]
        if bps < 10:
            return 25, [f"profit {bps}bp below safety floor"]
        if bps < 20:
            return 10, [f"thin profit {bps}bp"]
        return 0, []

    @staticmethod
    def _annotation_score(annotation: ConfidenceAnnotation) -> tuple[int, list[str]]:
        score = 0
        reasons: list[str] = []
        if annotation.confidence < 0.5:
            score += 30
            reasons.append(f"low model confidence {annotation.confidence:.2f}")
        elif annotation.confidence < 0.7:
            score += 15
            reasons.append(f"moderate model confidence {annotation.confidence:.2f}")
        else:
            score -= 5
        if annotation.risk_score > 0.8:
            score += 25
            reasons.append(f"high predicted risk {annotation.risk_score:.2f}")
        elif annotation.risk_score > 0.6:
            score += 10
            reasons.append(f"elevated predicted risk {annotation.risk_score:.2f}")
        if annotation.execution_probability < 0.5:
            score += 20
            reasons.append(
                f"low execution probability {annotation.execution_probability:.2f}"
            )
        return score, reasons

    def _position_score(self, opp: Opportunity, snap: LedgerSnapshot) -> tuple[int, list[str]]:
        max_position = to_raw_units(
            getattr(self.settings, "max_position_size", 0), opp.origin.decimals
        )
        score = 0
        reasons: list[str] = []
        if opp.input_amount * 2 > max_position:
            score += 20
            reasons.append("input above half of max position size")
        multiplier = int(getattr(self.settings, "daily_volume_multiplier", 10))
        if snap.daily_volume + opp.input_amount > max_position * multiplier:
            score += 40
            reasons.append("daily volume ceiling would be exceeded")
        return score, reasons

    def _market_score(
        self, opp: Opportunity, snap: LedgerSnapshot, now: float
    ) -> tuple[int, list[str]]:
        score = 0
        reasons: list[str] = []
        if snap.active_trades >= int(self.settings.max_concurrent_trades):
            score += 15
            reasons.append(f"{snap.active_trades} trades already active")
        cooldown = float(getattr(self.settings, "cooldown_secs", 0.0))
        if snap.last_trade_time and now - snap.last_trade_time < cooldown:
            score += 10
            reasons.append("inside post-trade cooldown")
        age = opp.age(now)
        if age > 60:
            score += 15
            reasons.append(f"stale opportunity ({age:.0f}s old)")
        elif age > 30:
            score += 5
            reasons.append(f"aging opportunity ({age:.0f}s old)")
        return score, reasons

    # -- public API --------------------------------------------------------

    def breakdown(
        self,
        opp: Opportunity,
        annotation: ConfidenceAnnotation | None = None,
        snap: LedgerSnapshot | None = None,
    ) -> tuple[int, list[str]]:
        """Return the additive risk score for *opp* and the factor reasons behind it."""

        snap = snap or self.ledger.snapshot()
        annotation = annotation or opp.annotation
        factors = [
            self._asset_score(opp, snap),
            self._venue_score(opp, snap),
            self._liquidity_score(opp),
            self._profit_score(opp),
            self._position_score(opp, snap),
            self._market_score(opp, snap, self._clock()),
        ]
        if annotation is not None:
            factors.append(self._annotation_score(annotation))
        total = 0
        reasons: list[str] = []
        for delta, why in factors:
            total += delta
            reasons.extend(why)
        return total, reasons

    def score(
        self,
        opp: Opportunity,
        annotation: ConfidenceAnnotation | None = None,
        snap: LedgerSnapshot | None = None,
    ) -> int:
        """Return the additive risk score for *opp*."""

        return self.breakdown(opp, annotation, snap)[0]

    def assess(
        self, opp: Opportunity, annotation: ConfidenceAnnotation | None = None
    ) -> RiskAssessment:
        """Return the admission decision for *opp*.

        The effective profit bar rises with the score:
        ``profit_bps * 100 >= min_profit_threshold_bps * (100 + score)``.
        """

        snap = self.ledger.snapshot()
        score, factors = self.breakdown(opp, annotation, snap)
        level = risk_level(score)
        reasons: list[str] = []

        if score > HIGH_MAX:
            reasons.append(f"risk score {score} is critical")
        if snap.daily_trade_count >= int(self.settings.max_daily_trades):
            reasons.append(
                f"daily trade limit reached ({snap.daily_trade_count}/{self.settings.max_daily_trades})"
            )
        if snap.active_trades >= int(self.settings.max_concurrent_trades):
            reasons.append(
                f"max concurrent trades reached ({snap.active_trades}/{self.settings.max_concurrent_trades})"
            )
        min_bps = int(self.settings.min_profit_threshold_bps)
        if opp.profit_bps * 100 < min_bps * (100 + score):
            reasons.append(
                f"profit {opp.profit_bps}bp below risk-adjusted profit threshold "
                f"{min_bps * (100 + score) // 100}bp"
            )

        if reasons:
            log.info(
                "rejected %s %s score=%d: %s",
                opp.opportunity_id,
                opp.pair,
                score,
                "; ".join(factors + reasons),
            )
            return RiskAssessment(score, level, False, tuple(factors + reasons))

        reasons.append(f"approved at {level.value} risk (score {score})")
        return RiskAssessment(
            score=score,
            level=level,
            should_execute=True,
            reasons=tuple(factors + reasons),
            adjusted_position_size=scale_pct(opp.input_amount, position_size_pct(score)),
            adjusted_slippage_bps=adjusted_slippage(
                int(self.settings.max_slippage_bps), score
            ),
        )
