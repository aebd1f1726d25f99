"""Fixed-point helpers for quoting, slippage, gas and scoring.

All amounts are integers in smallest units; percentages are basis points.
Conversions to and from human units go through :class:`decimal.Decimal` so no
float rounding leaks into amounts.
"""

from __future__ import annotations

from decimal import Decimal

BPS = 10_000
GAS_BUFFER_NUM = 12
GAS_BUFFER_DEN = 10


def profit_bps(amount_in: int, amount_out: int) -> int:
    """Return ``(amount_out - amount_in) / amount_in`` in basis points.

    Integer division truncates toward zero so a tiny loss never rounds up to a
    one basis point gain.
    """

    if amount_in <= 0:
        return 0
    delta = amount_out - amount_in
    magnitude = abs(delta) * BPS // amount_in
    return magnitude if delta >= 0 else -magnitude


def min_amount_out(amount: int, slippage_bps: int) -> int:
    """Return the slippage-protected minimum for a quoted *amount*."""

    slippage_bps = min(max(int(slippage_bps), 0), BPS)
    return amount * (BPS - slippage_bps) // BPS


def scale_pct(amount: int, pct: int) -> int:
    """Return ``amount * pct / 100`` rounded down."""

    return amount * pct // 100


def constant_product_out(
    amount_in: int, reserve_in: int, reserve_out: int, fee_bps: int = 30
) -> int:
    """Return the output of an ``x * y = k`` swap after the pool fee.

    Matches the router math of Uniswap V2 style pools with the fee expressed
    in basis points instead of per-mille.
    """

    if amount_in <= 0 or reserve_in <= 0 or reserve_out <= 0:
        return 0
    amount_in_with_fee = amount_in * (BPS - fee_bps)
    numerator = amount_in_with_fee * reserve_out
    denominator = reserve_in * BPS + amount_in_with_fee
    return numerator // denominator


def buffered_gas(gas_units: int) -> int:
    """Apply the fixed x1.2 safety buffer to a gas estimate."""

    return gas_units * GAS_BUFFER_NUM // GAS_BUFFER_DEN


def to_raw_units(amount: float | str | Decimal, decimals: int) -> int:
    """Convert a human amount (``1.5`` WETH) into smallest units."""

    return int(Decimal(str(amount)) * (Decimal(10) ** decimals))


def from_raw_units(amount: int, decimals: int) -> Decimal:
    """Convert smallest units into a :class:`~decimal.Decimal` for display."""

    return Decimal(amount) / (Decimal(10) ** decimals)


def whole_units(amount: int, decimals: int) -> int:
    """Return the integer number of whole tokens contained in *amount*."""

    return amount // (10**decimals)


def confidence_heuristic(avg_depth_units: int, profit: int, cross_venue: bool) -> float:
    """Score how likely an opportunity survives to execution.

    Args:
        avg_depth_units: Average depth of both pools in whole input-asset units.
        profit: Profit in basis points.
        cross_venue: Whether the two legs execute on different venues.

    Returns:
        Confidence in ``[0, 1]``.
    """

    confidence = 0.5
    if avg_depth_units > 1_000_000:
        confidence += 0.2
    elif avg_depth_units > 100_000:
        confidence += 0.1

    if profit > 200:
        confidence += 0.15
    elif profit > 100:
        confidence += 0.1
    elif profit > 50:
        confidence += 0.05

    if cross_venue:
        confidence -= 0.1

    return min(max(confidence, 0.0), 1.0)
