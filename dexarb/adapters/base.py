"""Abstract interface for DEX venue clients."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from dexarb.models import Asset, LiquidityPool, TradeLeg

if TYPE_CHECKING:  # pragma: no cover - typing only
    from dexarb.signer import Signer


class VenueClient(ABC):
    """Interface that every venue (DEX deployment) client implements.

    A client is identified by ``(name, chain_id)`` in the
    :class:`~dexarb.adapters.registry.VenueRegistry`. ``router_address`` is
    the contract that must hold an ERC-20 allowance before swaps.
    """

    model: str = ""

    def __init__(self, name: str, chain_id: int, router_address: str) -> None:
        self.name = name
        self.chain_id = int(chain_id)
        self.router_address = router_address

    @property
    def key(self) -> tuple[str, int]:
        return self.name, self.chain_id

    @abstractmethod
    async def get_pools(self, asset_a: Asset, asset_b: Asset) -> list[LiquidityPool]:
        """Return pools trading *asset_a* against *asset_b* (may be empty)."""

    @abstractmethod
    async def get_quote(
        self, asset_in: Asset, asset_out: Asset, amount_in: int, pool: LiquidityPool
    ) -> int:
        """Return the output amount for swapping *amount_in* through *pool*."""

    @abstractmethod
    async def estimate_gas(self, leg: TradeLeg) -> int:
        """Return the gas units expected to execute *leg*."""

    @abstractmethod
    async def execute_trade(self, leg: TradeLeg, signer: "Signer") -> str:
        """Build the swap for *leg*, submit it through *signer*, return the tx id."""

    def __repr__(self) -> str:  # pragma: no cover - debugging aid
        return f"<{type(self).__name__} {self.name}@{self.chain_id}>"
