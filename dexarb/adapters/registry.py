"""Venue registry keyed by ``(name, chain_id)``."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Iterator

from web3 import AsyncWeb3

from .base import VenueClient
from .concentrated import ConcentratedLiquidityClient
from .constant_product import ConstantProductClient

log = logging.getLogger(__name__)

# Quoting model name -> client class. Every class exposes ``from_definition``.
QUOTING_MODELS: dict[str, type[VenueClient]] = {
    ConstantProductClient.model: ConstantProductClient,
    ConcentratedLiquidityClient.model: ConcentratedLiquidityClient,
}


class VenueRegistry:
    """Lookup table of venue clients.

    Adding a venue means registering another client; no other component
    changes.
    """

    def __init__(self, clients: Iterable[VenueClient] = ()) -> None:
        self._clients: dict[tuple[str, int], VenueClient] = {}
        for client in clients:
            self.register(client)

    def register(self, client: VenueClient) -> None:
        if client.key in self._clients:
            log.warning("replacing venue client %s on chain %s", *client.key)
        self._clients[client.key] = client

    def get(self, name: str, chain_id: int) -> VenueClient | None:
        return self._clients.get((name, int(chain_id)))

    def for_chain(self, chain_id: int) -> list[VenueClient]:
        return [c for c in self._clients.values() if c.chain_id == int(chain_id)]

    def names(self) -> list[str]:
        return sorted({name for name, _ in self._clients})

    def __iter__(self) -> Iterator[VenueClient]:
        return iter(list(self._clients.values()))

    def __len__(self) -> int:
        return len(self._clients)


def build_registry(
    definitions: Iterable[dict[str, Any]], w3: AsyncWeb3, deadline_secs: int = 1200
) -> VenueRegistry:
    """Instantiate clients for each venue definition in *definitions*.

    Definitions with an unknown ``model`` or missing contract addresses are
    logged and skipped.
    """

    registry = VenueRegistry()
    for definition in definitions:
        model = str(definition.get("model", "constant_product"))
        cls = QUOTING_MODELS.get(model)
        if cls is None:
            log.warning(
                "venue %s: quoting model %s not implemented",
                definition.get("name"),
                model,
            )
            continue
        try:
            client = cls.from_definition(w3, definition, deadline_secs=deadline_secs)  # type: ignore[attr-defined]
        except (KeyError, ValueError, TypeError) as exc:
            log.warning("venue %s: invalid definition (%s)", definition.get("name"), exc)
            continue
        registry.register(client)
    return registry
