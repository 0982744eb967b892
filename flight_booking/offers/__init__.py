"""Flight offer search and price-tier aggregation."""

from .aggregator import OfferAggregator, group_offers, parse_offer, pick_tiers
from .amadeus import AmadeusOfferProvider
from .base import OfferProvider, OfferProviderError

__all__ = [
    "AmadeusOfferProvider",
    "OfferAggregator",
    "OfferProvider",
    "OfferProviderError",
    "group_offers",
    "parse_offer",
    "pick_tiers",
]
