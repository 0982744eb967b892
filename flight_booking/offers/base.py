"""Abstract flight-offer provider.

A provider runs one one-way search and returns the raw offer objects.
Each raw offer carries ``id``, ``validatingAirlineCodes``,
``itineraries[0].segments`` (first departure, last arrival) and
``price`` (``total``, ``currency``).
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import Any


class OfferProviderError(Exception):
    """Authentication or search against the offer source failed."""


class OfferProvider(ABC):
    @abstractmethod
    async def search_offers(
        self,
        origin: str,
        destination: str,
        departure_date: date,
    ) -> list[dict[str, Any]]:
        """Search one-way offers for one adult.

        Args:
            origin: Departure IATA code.
            destination: Arrival IATA code.
            departure_date: Day of departure.

        Returns:
            Raw offer dicts as returned by the source.

        Raises:
            OfferProviderError: on any auth or query failure.
        """
