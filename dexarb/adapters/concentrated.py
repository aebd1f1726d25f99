"""Uniswap V3 style venue client (fee-tier pools, quoter and swap router)."""

from __future__ import annotations

import logging
import time
from typing import Any, Iterable

from web3 import AsyncWeb3, Web3

from dexarb.config import ZERO_ADDRESS
from dexarb.models import Asset, LiquidityPool, TradeLeg
from dexarb.signer import Signer

from .base import VenueClient

log = logging.getLogger(__name__)

DEFAULT_SWAP_GAS = 250_000
DEFAULT_FEE_TIERS = (500, 3000, 10000)

FACTORY_ABI = [
    {
        "name": "getPool",
        "type": "function",
        "stateMutability": "view",
        "inputs": [
            {"name": "tokenA", "type": "address"},
            {"name": "tokenB", "type": "address"},
            {"name": "fee", "type": "uint24"},
        ],
        "outputs": [{"name": "pool", "type": "address"}],
    }
]

POOL_ABI = [
    {
        "name": "liquidity",
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint128"}],
    }
]

QUOTER_ABI = [
    {
        "name": "quoteExactInputSingle",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "tokenIn", "type": "address"},
            {"name": "tokenOut", "type": "address"},
            {"name": "fee", "type": "uint24"},
            {"name": "amountIn", "type": "uint256"},
            {"name": "sqrtPriceLimitX96", "type": "uint160"},
        ],
        "outputs": [{"name": "amountOut", "type": "uint256"}],
    }
]

ROUTER_ABI = [
    {
        "name": "exactInputSingle",
        "type": "function",
        "stateMutability": "payable",
        "inputs": [
            {
                "name": "params",
                "type": "tuple",
                "components": [
                    {"name": "tokenIn", "type": "address"},
                    {"name": "tokenOut", "type": "address"},
                    {"name": "fee", "type": "uint24"},
                    {"name": "recipient", "type": "address"},
                    {"name": "deadline", "type": "uint256"},
                    {"name": "amountIn", "type": "uint256"},
                    {"name": "amountOutMinimum", "type": "uint256"},
                    {"name": "sqrtPriceLimitX96", "type": "uint160"},
                ],
            }
        ],
        "outputs": [{"name": "amountOut", "type": "uint256"}],
    }
]


def fee_tier_of(pool: LiquidityPool) -> int:
    """Return the on-chain fee tier (hundredths of a bp) for *pool*."""

    return int(pool.fee_bps) * 100


class ConcentratedLiquidityClient(VenueClient):
    """Venue client for concentrated liquidity pools, one pool per fee tier."""

    model = "concentrated_liquidity"

    def __init__(
        self,
        w3: AsyncWeb3,
        name: str,
        chain_id: int,
        factory: str,
        router: str,
        quoter: str,
        fee_tiers: Iterable[int] = DEFAULT_FEE_TIERS,
        deadline_secs: int = 1200,
    ) -> None:
        super().__init__(name, chain_id, Web3.to_checksum_address(router))
        self.w3 = w3
        self.fee_tiers = tuple(int(f) for f in fee_tiers)
        self.deadline_secs = int(deadline_secs)
        self.factory = w3.eth.contract(
            address=Web3.to_checksum_address(factory), abi=FACTORY_ABI
        )
        self.quoter = w3.eth.contract(
            address=Web3.to_checksum_address(quoter), abi=QUOTER_ABI
        )
        self.router = w3.eth.contract(address=self.router_address, abi=ROUTER_ABI)

    @classmethod
    def from_definition(
        cls, w3: AsyncWeb3, definition: dict[str, Any], deadline_secs: int = 1200
    ) -> "ConcentratedLiquidityClient":
        return cls(
            w3,
            name=definition["name"],
            chain_id=int(definition.get("chain_id", 1)),
            factory=definition["factory"],
            router=definition["router"],
            quoter=definition["quoter"],
            fee_tiers=definition.get("fee_tiers") or DEFAULT_FEE_TIERS,
            deadline_secs=deadline_secs,
        )

    async def get_pools(self, asset_a: Asset, asset_b: Asset) -> list[LiquidityPool]:
        a = Web3.to_checksum_address(asset_a.address)
        b = Web3.to_checksum_address(asset_b.address)
        pools: list[LiquidityPool] = []
        for fee in self.fee_tiers:
            address = await self.factory.functions.getPool(a, b, fee).call()
            if not address or address.lower() == ZERO_ADDRESS:
                continue
            pool = self.w3.eth.contract(address=address, abi=POOL_ABI)
            liquidity = int(await pool.functions.liquidity().call())
            if liquidity <= 0:
                continue
            pools.append(
                LiquidityPool(
                    pool_id=address,
                    venue=self.name,
                    asset_a=asset_a,
                    asset_b=asset_b,
                    fee_bps=fee // 100,
                    liquidity=liquidity,
                    chain_id=self.chain_id,
                )
            )
        return pools

    async def get_quote(
        self, asset_in: Asset, asset_out: Asset, amount_in: int, pool: LiquidityPool
    ) -> int:
        return int(
            await self.quoter.functions.quoteExactInputSingle(
                Web3.to_checksum_address(asset_in.address),
                Web3.to_checksum_address(asset_out.address),
                fee_tier_of(pool),
                int(amount_in),
                0,
            ).call()
        )

    def _swap_call(self, leg: TradeLeg, recipient: str) -> Any:
        params = (
            Web3.to_checksum_address(leg.asset_in.address),
            Web3.to_checksum_address(leg.asset_out.address),
            fee_tier_of(leg.pool),
            Web3.to_checksum_address(recipient),
            int(time.time()) + self.deadline_secs,
            int(leg.amount_in),
            int(leg.min_amount_out),
            0,
        )
        return self.router.functions.exactInputSingle(params)

    async def estimate_gas(self, leg: TradeLeg) -> int:
        try:
            return int(
                await self._swap_call(leg, ZERO_ADDRESS).estimate_gas(
                    {"from": ZERO_ADDRESS}
                )
            )
        except Exception as exc:
            log.debug("%s gas estimate fallback: %s", self.name, exc)
            return DEFAULT_SWAP_GAS

    async def execute_trade(self, leg: TradeLeg, signer: Signer) -> str:
        owner = await signer.get_address()
        tx = await self._swap_call(leg, owner).build_transaction({"from": owner})
        return await signer.sign_and_submit(dict(tx))
