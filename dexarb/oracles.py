"""Price and confidence oracle interfaces.

Market price ingestion and the learned confidence model live outside this
package; the engine only depends on these narrow interfaces.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from typing import Mapping

from .models import ConfidenceAnnotation, Opportunity, PriceData


class PriceOracle(ABC):
    """Best-effort spot prices keyed by asset address."""

    @abstractmethod
    async def get_price(self, address: str) -> PriceData | None:
        """Return the latest price for *address*, or ``None`` when unknown."""


class ConfidenceOracle(ABC):
    """Scores an opportunity's chance of executing profitably."""

    @abstractmethod
    async def predict(self, opportunity: Opportunity) -> ConfidenceAnnotation:
        """Return confidence, risk and execution probability for *opportunity*."""


class StaticPriceOracle(PriceOracle):
    """Price oracle backed by a fixed table of USD prices.

    Useful for dry runs and for pinning prices from configuration
    (``STATIC_PRICES='{"0xc02a...": 3200}'``).
    """

    def __init__(self, prices: Mapping[str, float] | None = None, source: str = "static"):
        self.source = source
        self._prices: dict[str, float] = {}
        for address, price in (prices or {}).items():
            self.set_price(address, price)

    def set_price(self, address: str, price: float) -> None:
        self._prices[address.lower()] = float(price)

    async def get_price(self, address: str) -> PriceData | None:
        price = self._prices.get(address.lower())
        if price is None:
            return None
        return PriceData(
            asset=address.lower(), price=price, timestamp=time.time(), source=self.source
        )
