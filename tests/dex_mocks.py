"""In-memory venue, chain and signer fakes for engine tests."""

from __future__ import annotations

import time
from types import SimpleNamespace

from dexarb.adapters.base import VenueClient
from dexarb.chain import MAX_UINT256
from dexarb.config import ZERO_ADDRESS
from dexarb.engine.pricing import constant_product_out, min_amount_out, profit_bps
from dexarb.models import Asset, LiquidityPool, Opportunity, TradeLeg, TxReceipt

WETH = Asset("0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2", "WETH", 18, 1)
USDC = Asset("0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48", "USDC", 6, 1)
DAI = Asset("0x6B175474E89094C44Da98b954EedeAC495271d0F", "DAI", 18, 1)
SHIB = Asset("0x95aD61b0a150d79219dCF64E1E6Cc01f0B64C4cE", "SHIB", 18, 1)


def make_settings(**overrides) -> SimpleNamespace:
    values = dict(
        trading_enabled=True,
        min_profit_threshold_bps=10,
        max_slippage_bps=200,
        max_position_size=1_000_000.0,
        max_gas_price_wei=100 * 10**9,
        ai_confidence_threshold=0.5,
        max_daily_trades=50,
        max_concurrent_trades=3,
        cooldown_secs=30.0,
        daily_volume_multiplier=10,
        trusted_venues=["cheap", "dear", "uniswap_v2", "sushiswap"],
        blacklisted_assets=[],
        blacklisted_venues=[],
        scan_interval_secs=0.01,
        quote_amount=1000,
        scan_concurrency=4,
        opportunity_queue_size=10,
        rpc_timeout_secs=1.0,
        confirmation_timeout_secs=1.0,
        leg_delay_secs=0.0,
        native_asset_address=ZERO_ADDRESS,
        wrapped_native_address=WETH.address,
        discord_webhook_url=None,
        discord_trade_notify=True,
        discord_error_notify=False,
    )
    values.update(overrides)
    return SimpleNamespace(**values)


def usdc_weth_pool(venue: str, usdc_whole: int, weth_whole: int, fee_bps: int = 30):
    return LiquidityPool(
        pool_id=f"{venue}-pool",
        venue=venue,
        asset_a=USDC,
        asset_b=WETH,
        reserve_a=usdc_whole * 10**6,
        reserve_b=weth_whole * 10**18,
        fee_bps=fee_bps,
        chain_id=1,
    )


class FakeChain:
    """Balances, allowances and receipts kept in dictionaries."""

    def __init__(self, balances=None, gas_price: int = 10**9) -> None:
        self.native_address = ZERO_ADDRESS
        self.balances: dict[str, int] = dict(balances or {})
        self.allowances: dict[tuple[str, str], int] = {}
        self.receipts: dict[str, bool] = {}
        self.calls: list[str] = []
        self._gas_price = gas_price

    def is_native(self, asset: Asset) -> bool:
        return asset.key == self.native_address

    async def get_balance(self, asset: Asset, owner: str) -> int:
        self.calls.append("balance")
        return self.balances.get(asset.key, 0)

    async def get_allowance(self, asset: Asset, owner: str, spender: str) -> int:
        self.calls.append("allowance")
        return self.allowances.get((asset.key, spender), 0)

    async def build_approval(self, asset, owner, spender, amount=MAX_UINT256) -> dict:
        self.calls.append("build_approval")
        return {"approve": (asset.key, spender, amount)}

    async def gas_price(self) -> int:
        return self._gas_price

    async def wait_for_receipt(self, tx_id: str, timeout: float) -> TxReceipt:
        return TxReceipt(tx_id, self.receipts.get(tx_id, True), gas_used=100_000)


class FakeSigner:
    """Signer that only understands approval transactions from :class:`FakeChain`."""

    def __init__(self, chain: FakeChain, approve_ok: bool = True) -> None:
        self.chain = chain
        self.approve_ok = approve_ok
        self.submitted: list[dict] = []

    async def get_address(self) -> str:
        return "0x000000000000000000000000000000000000bEEF"

    async def sign_and_submit(self, transaction: dict) -> str:
        self.submitted.append(transaction)
        tx_id = f"0xapprove{len(self.submitted)}"
        key, spender, amount = transaction["approve"]
        if self.approve_ok:
            self.chain.allowances[(key, spender)] = amount
        self.chain.receipts[tx_id] = self.approve_ok
        return tx_id


class FakeVenue(VenueClient):
    """Constant product venue quoting from mutable in-memory reserves."""

    model = "constant_product"

    def __init__(self, name, pools, chain: FakeChain | None = None, gas: int = 150_000):
        super().__init__(name, 1, f"0x{name}router")
        self.pools = list(pools)
        self.reserves = {p.pool_id: (p.reserve_a, p.reserve_b) for p in self.pools}
        self.chain = chain
        self.gas = gas
        self.fail_pools = False
        self.fail_quotes = False
        self.revert = False
        self.quote_calls = 0
        self.executed: list[TradeLeg] = []

    def set_reserves(self, pool_id: str, reserve_a: int, reserve_b: int) -> None:
        self.reserves[pool_id] = (reserve_a, reserve_b)

    def _out(self, asset_in: Asset, amount_in: int, pool: LiquidityPool) -> int:
        reserve_a, reserve_b = self.reserves[pool.pool_id]
        if asset_in.key == pool.asset_a.key:
            return constant_product_out(amount_in, reserve_a, reserve_b, pool.fee_bps)
        return constant_product_out(amount_in, reserve_b, reserve_a, pool.fee_bps)

    async def get_pools(self, asset_a, asset_b):
        if self.fail_pools:
            raise ConnectionError("rpc unavailable")
        wanted = {asset_a.key, asset_b.key}
        return [p for p in self.pools if {p.asset_a.key, p.asset_b.key} == wanted]

    async def get_quote(self, asset_in, asset_out, amount_in, pool):
        self.quote_calls += 1
        if self.fail_quotes:
            raise RuntimeError("quoter reverted")
        return self._out(asset_in, amount_in, pool)

    async def estimate_gas(self, leg):
        return self.gas

    async def execute_trade(self, leg, signer):
        self.executed.append(leg)
        tx_id = f"0x{self.name}{len(self.executed)}"
        if self.revert:
            self.chain.receipts[tx_id] = False
            return tx_id
        out = self._out(leg.asset_in, leg.amount_in, leg.pool)
        balances = self.chain.balances
        balances[leg.asset_in.key] = balances.get(leg.asset_in.key, 0) - leg.amount_in
        balances[leg.asset_out.key] = balances.get(leg.asset_out.key, 0) + out
        self.chain.receipts[tx_id] = True
        return tx_id


def make_opportunity(
    a: Asset = WETH,
    b: Asset = USDC,
    buy_venue: str = "uniswap_v2",
    sell_venue: str = "sushiswap",
    profit: int = 100,
    input_amount: int | None = None,
    depth_whole: int = 2_000_000,
    detected_at: float | None = None,
    annotation=None,
) -> Opportunity:
    """Build a two-leg opportunity without quoting; reserves only set depth."""

    input_amount = input_amount or 10**a.decimals
    pools = [
        LiquidityPool(
            pool_id=f"{venue}-pool",
            venue=venue,
            asset_a=a,
            asset_b=b,
            reserve_a=depth_whole * 10**a.decimals,
            reserve_b=depth_whole * 10**b.decimals,
        )
        for venue in (buy_venue, sell_venue)
    ]
    returned = input_amount + input_amount * profit // 10_000
    legs = (
        TradeLeg(buy_venue, a, b, input_amount, min_amount_out(input_amount, 200), pools[0]),
        TradeLeg(sell_venue, b, a, input_amount, min_amount_out(returned, 200), pools[1]),
    )
    return Opportunity(
        opportunity_id="opp-1",
        asset_a=a,
        asset_b=b,
        buy_pool=pools[0],
        sell_pool=pools[1],
        profit_bps=profit_bps(input_amount, returned),
        profit_amount=returned - input_amount,
        input_amount=input_amount,
        legs=legs,
        gas_estimate=300_000,
        detected_at=time.time() if detected_at is None else detected_at,
        annotation=annotation,
    )
