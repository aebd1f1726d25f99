"""Fixed-point pricing helper tests."""

from decimal import Decimal

from dexarb.engine import pricing


def test_profit_bps_matches_round_trip_identity():
    amount_in = 1_000_000
    for amount_out in (1_000_000, 1_003_872, 1_100_000, 999_000):
        expected = (amount_out - amount_in) * 10_000 / amount_in
        assert abs(pricing.profit_bps(amount_in, amount_out) - expected) < 1


def test_profit_bps_truncates_toward_zero():
    assert pricing.profit_bps(10_000, 10_001) == 1
    assert pricing.profit_bps(100_000, 100_009) == 0
    assert pricing.profit_bps(100_000, 99_991) == 0
    assert pricing.profit_bps(0, 5) == 0


def test_min_amount_out_applies_slippage_and_clamps():
    assert pricing.min_amount_out(10_000, 200) == 9_800
    assert pricing.min_amount_out(10_000, 0) == 10_000
    assert pricing.min_amount_out(10_000, 20_000) == 0


def test_constant_product_out_uses_fee_in_bps():
    # 1000 in, 30bp fee, balanced 1e6 pool: the classic Uniswap V2 result.
    assert pricing.constant_product_out(1_000, 1_000_000, 1_000_000, 30) == 996
    assert pricing.constant_product_out(0, 1_000, 1_000) == 0
    assert pricing.constant_product_out(10, 0, 1_000) == 0


def test_gas_buffer_and_scaling():
    assert pricing.buffered_gas(100_000) == 120_000
    assert pricing.scale_pct(1_000, 85) == 850


def test_unit_conversions():
    assert pricing.to_raw_units("1.5", 18) == 1_500_000_000_000_000_000
    assert pricing.to_raw_units(1000, 6) == 1_000_000_000
    assert pricing.from_raw_units(2_500_000, 6) == Decimal("2.5")
    assert pricing.whole_units(2_500_000, 6) == 2


def test_confidence_heuristic_bands():
    assert pricing.confidence_heuristic(0, 0, False) == 0.5
    assert abs(pricing.confidence_heuristic(2_000_000, 250, False) - 0.85) < 1e-9
    assert abs(pricing.confidence_heuristic(200_000, 60, True) - 0.55) < 1e-9
    assert 0.0 <= pricing.confidence_heuristic(0, 0, True) <= 1.0
