"""Shared fakes for the booking dialog collaborators."""

from datetime import date
from typing import Any, Optional

import pytest

from flight_booking.config import Settings
from flight_booking.directory import AirportDirectory
from flight_booking.extraction.base import AffirmationClassifier, SlotExtractor
from flight_booking.models.booking import PartialSlots, SlotHint
from flight_booking.offers.aggregator import OfferAggregator
from flight_booking.offers.base import OfferProvider
from flight_booking.services import BookingServices

TODAY = date(2025, 5, 20)

AIRPORTS_DOC = {
    "KJFK": {
        "icao": "KJFK", "iata": "JFK", "name": "John F Kennedy International Airport",
        "city": "New York", "country": "US", "lat": 40.6398, "lon": -73.7789,
    },
    "KLAX": {
        "icao": "KLAX", "iata": "LAX", "name": "Los Angeles International Airport",
        "city": "Los Angeles", "country": "US", "lat": 33.9425, "lon": -118.408,
    },
    "LFPG": {
        "icao": "LFPG", "iata": "CDG", "name": "Charles de Gaulle International Airport",
        "city": "Paris", "country": "FR", "lat": 49.0128, "lon": 2.55,
    },
    "LFPO": {
        "icao": "LFPO", "iata": "ORY", "name": "Paris-Orly Airport",
        "city": "Paris", "country": "FR", "lat": 48.7253, "lon": 2.3594,
    },
    # Heliport without an IATA code
    "00AK": {"icao": "00AK", "iata": "", "name": "Lowell Field", "country": "US"},
}


def make_raw_offer(
    offer_id: str,
    carrier: str,
    price: str,
    departure: str = "2025-06-01T08:00:00",
    arrival: str = "2025-06-01T11:30:00",
    currency: str = "USD",
) -> dict[str, Any]:
    """A flight offer shaped like the Amadeus flight-offers response."""
    return {
        "type": "flight-offer",
        "id": offer_id,
        "validatingAirlineCodes": [carrier],
        "itineraries": [{
            "duration": "PT3H30M",
            "segments": [
                {"departure": {"iataCode": "JFK", "at": departure},
                 "arrival": {"iataCode": "ORD", "at": "2025-06-01T09:30:00"}},
                {"departure": {"iataCode": "ORD", "at": "2025-06-01T10:00:00"},
                 "arrival": {"iataCode": "LAX", "at": arrival}},
            ],
        }],
        "price": {"currency": currency, "total": price, "base": price},
    }


class CountingLoader:
    """Airport loader that counts how often it is invoked."""

    def __init__(self, doc: Any = None, error: Optional[Exception] = None) -> None:
        self.doc = AIRPORTS_DOC if doc is None else doc
        self.error = error
        self.calls = 0

    async def __call__(self) -> Any:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.doc


class FakeExtractor(SlotExtractor):
    """Returns canned PartialSlots keyed by (hint, text)."""

    def __init__(self, responses: Optional[dict] = None) -> None:
        self.responses: dict[tuple[SlotHint, str], PartialSlots] = responses or {}
        self.calls: list[tuple[str, SlotHint, Optional[date]]] = []

    def add(self, hint: SlotHint, text: str, **fields: Any) -> None:
        self.responses[(hint, text)] = PartialSlots(**fields)

    async def extract(self, text, hint, today=None):
        self.calls.append((text, hint, today))
        return self.responses.get((hint, text), PartialSlots())


class FakeClassifier(AffirmationClassifier):
    def __init__(self, yes: tuple[str, ...] = ("yes", "yes please", "correct")) -> None:
        self.yes = {y.lower() for y in yes}
        self.calls: list[str] = []

    async def is_affirmative(self, text):
        self.calls.append(text)
        return text.strip().lower() in self.yes


class FakeOfferProvider(OfferProvider):
    def __init__(self, offers: Optional[list] = None, error: Optional[Exception] = None) -> None:
        self.offers = offers or []
        self.error = error
        self.calls: list[tuple[str, str, date]] = []

    async def search_offers(self, origin, destination, departure_date):
        self.calls.append((origin, destination, departure_date))
        if self.error is not None:
            raise self.error
        return list(self.offers)


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        _env_file=None,
        llm_provider="ollama",
        amadeus_client_id="test-id",
        amadeus_client_secret="test-secret",
        max_collect_attempts=5,
        max_menu_airlines=3,
    )


@pytest.fixture
def extractor() -> FakeExtractor:
    return FakeExtractor()


@pytest.fixture
def classifier() -> FakeClassifier:
    return FakeClassifier()


@pytest.fixture
def offer_provider() -> FakeOfferProvider:
    return FakeOfferProvider(offers=[
        make_raw_offer("1", "DL", "320.00"),
        make_raw_offer("2", "DL", "210.50"),
        make_raw_offer("3", "AA", "199.99"),
        make_raw_offer("4", "DL", "450.00"),
    ])


@pytest.fixture
def services(extractor, classifier, offer_provider) -> BookingServices:
    return BookingServices(
        directory=AirportDirectory(loader=CountingLoader()),
        extractor=extractor,
        classifier=classifier,
        aggregator=OfferAggregator(offer_provider),
    )
