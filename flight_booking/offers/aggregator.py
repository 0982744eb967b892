"""Groups raw flight offers by airline and picks price tiers.

For each airline the offers are sorted by total price and three tiers
are picked by index: cheap = 0, middle = n // 2, high = n - 1. With
fewer than three offers the tiers collapse onto the same offer.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Optional

from flight_booking.models.airport import Airport
from flight_booking.models.offer import AirlineOfferSet, FlightOffer, OfferTier

from .airlines import airline_name
from .base import OfferProvider

logger = logging.getLogger(__name__)


def parse_offer(raw: dict[str, Any], default_currency: str = "USD") -> Optional[FlightOffer]:
    """Map one raw offer onto FlightOffer, or None if it is malformed."""
    try:
        carrier = raw["validatingAirlineCodes"][0]
        segments = raw["itineraries"][0]["segments"]
        price = raw["price"]
        return FlightOffer(
            airline=airline_name(carrier),
            flight_id=str(raw["id"]),
            departure_time=datetime.fromisoformat(segments[0]["departure"]["at"]),
            arrival_time=datetime.fromisoformat(segments[-1]["arrival"]["at"]),
            price=Decimal(str(price["total"])),
            currency=price.get("currency") or default_currency,
        )
    except (AttributeError, KeyError, IndexError, TypeError, ValueError, InvalidOperation) as e:
        logger.debug("Skipping malformed offer %r: %s", raw.get("id") if isinstance(raw, dict) else raw, e)
        return None


def group_offers(offers: Iterable[FlightOffer]) -> dict[str, list[FlightOffer]]:
    """Group by airline (first-seen order) and sort each group by price."""
    groups: dict[str, list[FlightOffer]] = {}
    for offer in offers:
        groups.setdefault(offer.airline, []).append(offer)
    for airline_offers in groups.values():
        airline_offers.sort(key=lambda o: o.price)
    return groups


def pick_tiers(sorted_offers: list[FlightOffer]) -> dict[OfferTier, FlightOffer]:
    """Cheap/Middle/High picks from one airline's price-sorted offers."""
    n = len(sorted_offers)
    if n == 0:
        return {}
    # n // 2 and n - 1 are in range for every n >= 1, so middle and high
    # land on the cheap offer itself when n == 1
    return {
        OfferTier.CHEAP: sorted_offers[0],
        OfferTier.MIDDLE: sorted_offers[n // 2],
        OfferTier.HIGH: sorted_offers[n - 1],
    }


class OfferAggregator:
    """Runs a search and returns tiered offers per airline.

    Never raises: provider failures are logged and reported as an empty
    mapping, which the dialog treats as "no flights".
    """

    def __init__(self, provider: OfferProvider, currency: str = "USD") -> None:
        self._provider = provider
        self._currency = currency

    async def query(
        self, source: Airport, destination: Airport, departure_date: date,
    ) -> AirlineOfferSet:
        try:
            raw_offers = await self._provider.search_offers(
                source.iata, destination.iata, departure_date,
            )
        except Exception:
            logger.exception(
                "Error querying flights %s→%s on %s",
                source.iata, destination.iata, departure_date,
            )
            return {}

        offers = [
            offer for offer in (parse_offer(raw, self._currency) for raw in raw_offers)
            if offer is not None
        ]
        if len(offers) < len(raw_offers):
            logger.warning("Dropped %d malformed offers", len(raw_offers) - len(offers))

        result: AirlineOfferSet = {}
        for airline, airline_offers in group_offers(offers).items():
            tiers = pick_tiers(airline_offers)
            if tiers:
                result[airline] = tiers

        logger.info(
            "Grouped %d offers into %d airlines for %s→%s",
            len(offers), len(result), source.iata, destination.iata,
        )
        return result
