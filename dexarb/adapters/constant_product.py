"""Uniswap V2 style venue client (factory, pair reserves and router)."""

from __future__ import annotations

import logging
import time
from typing import Any

from web3 import AsyncWeb3, Web3

from dexarb.config import ZERO_ADDRESS
from dexarb.errors import DataUnavailable
from dexarb.models import Asset, LiquidityPool, TradeLeg
from dexarb.signer import Signer

from .base import VenueClient

log = logging.getLogger(__name__)

DEFAULT_SWAP_GAS = 200_000

FACTORY_ABI = [
    {
        "name": "getPair",
        "type": "function",
        "stateMutability": "view",
        "inputs": [
            {"name": "tokenA", "type": "address"},
            {"name": "tokenB", "type": "address"},
        ],
        "outputs": [{"name": "pair", "type": "address"}],
    }
]

PAIR_ABI = [
    {
        "name": "getReserves",
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [
            {"name": "reserve0", "type": "uint112"},
            {"name": "reserve1", "type": "uint112"},
            {"name": "blockTimestampLast", "type": "uint32"},
        ],
    },
    {
        "name": "token0",
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "address"}],
    },
]

ROUTER_ABI = [
    {
        "name": "getAmountsOut",
        "type": "function",
        "stateMutability": "view",
        "inputs": [
            {"name": "amountIn", "type": "uint256"},
            {"name": "path", "type": "address[]"},
        ],
        "outputs": [{"name": "amounts", "type": "uint256[]"}],
    },
    {
        "name": "swapExactTokensForTokens",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "amountIn", "type": "uint256"},
            {"name": "amountOutMin", "type": "uint256"},
            {"name": "path", "type": "address[]"},
            {"name": "to", "type": "address"},
            {"name": "deadline", "type": "uint256"},
        ],
        "outputs": [{"name": "amounts", "type": "uint256[]"}],
    },
]


class ConstantProductClient(VenueClient):
    """Venue client for ``x * y = k`` pools behind a V2 router."""

    model = "constant_product"

    def __init__(
        self,
        w3: AsyncWeb3,
        name: str,
        chain_id: int,
        factory: str,
        router: str,
        fee_bps: int = 30,
        deadline_secs: int = 1200,
    ) -> None:
        super().__init__(name, chain_id, Web3.to_checksum_address(router))
        self.w3 = w3
        self.fee_bps = int(fee_bps)
        self.deadline_secs = int(deadline_secs)
        self.factory = w3.eth.contract(
            address=Web3.to_checksum_address(factory), abi=FACTORY_ABI
        )
        self.router = w3.eth.contract(address=self.router_address, abi=ROUTER_ABI)

    @classmethod
    def from_definition(
        cls, w3: AsyncWeb3, definition: dict[str, Any], deadline_secs: int = 1200
    ) -> "ConstantProductClient":
        return cls(
            w3,
            name=definition["name"],
            chain_id=int(definition.get("chain_id", 1)),
            factory=definition["factory"],
            router=definition["router"],
            fee_bps=int(definition.get("fee_bps", 30)),
            deadline_secs=deadline_secs,
        )

    async def get_pools(self, asset_a: Asset, asset_b: Asset) -> list[LiquidityPool]:
        a = Web3.to_checksum_address(asset_a.address)
        b = Web3.to_checksum_address(asset_b.address)
        pair_address = await self.factory.functions.getPair(a, b).call()
        if not pair_address or pair_address.lower() == ZERO_ADDRESS:
            return []
        pair = self.w3.eth.contract(address=pair_address, abi=PAIR_ABI)
        reserve0, reserve1, _ = await pair.functions.getReserves().call()
        token0 = await pair.functions.token0().call()
        if token0.lower() == asset_a.key:
            reserve_a, reserve_b = int(reserve0), int(reserve1)
        else:
            reserve_a, reserve_b = int(reserve1), int(reserve0)
        return [
            LiquidityPool(
                pool_id=pair_address,
                venue=self.name,
                asset_a=asset_a,
                asset_b=asset_b,
                reserve_a=reserve_a,
                reserve_b=reserve_b,
                fee_bps=self.fee_bps,
                liquidity=min(reserve_a, reserve_b),
                chain_id=self.chain_id,
            )
        ]

    async def get_quote(
        self, asset_in: Asset, asset_out: Asset, amount_in: int, pool: LiquidityPool
    ) -> int:
        path = [
            Web3.to_checksum_address(asset_in.address),
            Web3.to_checksum_address(asset_out.address),
        ]
        amounts = await self.router.functions.getAmountsOut(int(amount_in), path).call()
        if not amounts:
            raise DataUnavailable(f"{self.name}: empty quote for {asset_in.symbol}")
        return int(amounts[-1])

    def _swap_call(self, leg: TradeLeg, recipient: str) -> Any:
        path = [Web3.to_checksum_address(addr) for addr in leg.route]
        deadline = int(time.time()) + self.deadline_secs
        return self.router.functions.swapExactTokensForTokens(
            int(leg.amount_in),
            int(leg.min_amount_out),
            path,
            Web3.to_checksum_address(recipient),
            deadline,
        )

    async def estimate_gas(self, leg: TradeLeg) -> int:
        try:
            return int(
                await self._swap_call(leg, ZERO_ADDRESS).estimate_gas(
                    {"from": ZERO_ADDRESS}
                )
            )
        except Exception as exc:
            # Estimation reverts without a funded, approved sender.
            log.debug("%s gas estimate fallback: %s", self.name, exc)
            return DEFAULT_SWAP_GAS

    async def execute_trade(self, leg: TradeLeg, signer: Signer) -> str:
        owner = await signer.get_address()
        tx = await self._swap_call(leg, owner).build_transaction({"from": owner})
        return await signer.sign_and_submit(dict(tx))
