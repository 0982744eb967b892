"""Wiring of the collaborators a BookingDialog needs.

One BookingServices instance is shared by every conversation in the
process: the airport cache and the offer token cache live inside it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from functools import partial
from typing import Awaitable, Callable, Optional

from flight_booking.config import Settings, settings as default_settings
from flight_booking.directory import AirportDirectory, fetch_airports
from flight_booking.extraction.base import AffirmationClassifier, SlotExtractor
from flight_booking.extraction.extractor import LLMAffirmationClassifier, LLMSlotExtractor
from flight_booking.extraction.llm import LLMClient
from flight_booking.offers.aggregator import OfferAggregator
from flight_booking.offers.amadeus import AmadeusOfferProvider

log = logging.getLogger("flight_booking.services")


@dataclass
class BookingServices:
    directory: AirportDirectory
    extractor: SlotExtractor
    classifier: AffirmationClassifier
    aggregator: OfferAggregator
    closers: list[Callable[[], Awaitable[None]]] = field(default_factory=list)

    async def aclose(self) -> None:
        """Close the HTTP clients owned by the services."""
        for close in self.closers:
            try:
                await close()
            except Exception:
                log.exception("Error closing service client")


def build_services(config: Optional[Settings] = None) -> BookingServices:
    """Construct the production collaborators from settings."""
    config = config or default_settings
    llm = LLMClient(config)
    provider = AmadeusOfferProvider(config)
    loader = partial(
        fetch_airports, config.airport_data_url, config.directory_timeout_seconds,
    )
    log.info("Building services (llm=%s)", llm.provider)
    return BookingServices(
        directory=AirportDirectory(loader=loader),
        extractor=LLMSlotExtractor(llm),
        classifier=LLMAffirmationClassifier(llm),
        aggregator=OfferAggregator(provider, currency=config.offer_currency),
        closers=[llm.close, provider.close],
    )
