"""Venue adapters: constant-product pairs and Liquidity Book pairs."""

from .base import VenueAdapter, call_with_retry, is_rate_limit_error
from .lb import LiquidityBookVenue
from .v2 import ConstantProductVenue

__all__ = [
    "VenueAdapter",
    "ConstantProductVenue",
    "LiquidityBookVenue",
    "call_with_retry",
    "is_rate_limit_error",
]
