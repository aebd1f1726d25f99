"""Venue client implementations and the registry that indexes them."""

from .base import VenueClient
from .concentrated import ConcentratedLiquidityClient
from .constant_product import ConstantProductClient
from .registry import QUOTING_MODELS, VenueRegistry, build_registry

__all__ = [
    "VenueClient",
    "ConstantProductClient",
    "ConcentratedLiquidityClient",
    "VenueRegistry",
    "QUOTING_MODELS",
    "build_registry",
]
