"""Tests for OfferAggregator: grouping by airline and price tiers."""

from datetime import date, datetime
from decimal import Decimal

import httpx
import pytest

from flight_booking.models.airport import Airport
from flight_booking.models.offer import FlightOffer, OfferTier
from flight_booking.offers.aggregator import OfferAggregator, group_offers, parse_offer, pick_tiers
from flight_booking.offers.airlines import airline_name
from flight_booking.offers.base import OfferProviderError

from conftest import FakeOfferProvider, make_raw_offer

JFK = Airport(iata="JFK", name="John F Kennedy International Airport")
LAX = Airport(iata="LAX", name="Los Angeles International Airport")
DAY = date(2025, 6, 1)


def _offer(flight_id: str, price: str, airline: str = "Delta Airlines") -> FlightOffer:
    return FlightOffer(
        airline=airline,
        flight_id=flight_id,
        departure_time=datetime(2025, 6, 1, 8, 0),
        arrival_time=datetime(2025, 6, 1, 11, 30),
        price=Decimal(price),
    )


class TestParseOffer:
    def test_fields(self):
        offer = parse_offer(make_raw_offer("7", "UA", "123.45", currency="EUR"))
        assert offer.airline == "United Airlines"
        assert offer.flight_id == "7"
        assert offer.departure_time == datetime(2025, 6, 1, 8, 0)
        # Arrival comes from the last segment
        assert offer.arrival_time == datetime(2025, 6, 1, 11, 30)
        assert offer.price == Decimal("123.45")
        assert offer.currency == "EUR"

    def test_unknown_carrier_falls_back_to_code(self):
        assert parse_offer(make_raw_offer("1", "ZZ", "10.00")).airline == "ZZ"

    def test_malformed_offer(self):
        raw = make_raw_offer("1", "DL", "10.00")
        raw["itineraries"] = []
        assert parse_offer(raw) is None

    def test_bad_price(self):
        assert parse_offer(make_raw_offer("1", "DL", "free")) is None

    @pytest.mark.parametrize("carrier", [None, 42, ""])
    def test_bad_carrier_code(self, carrier):
        raw = make_raw_offer("1", "DL", "10.00")
        raw["validatingAirlineCodes"] = [carrier]
        assert parse_offer(raw) is None

    def test_airline_name_lookup(self):
        assert airline_name("dl") == "Delta Airlines"
        assert airline_name("ZZ") == "ZZ"


class TestTiers:
    def test_five_offers(self):
        offers = [_offer(str(p), str(p)) for p in (100, 200, 300, 400, 500)]
        tiers = pick_tiers(offers)
        assert tiers[OfferTier.CHEAP].price == 100
        assert tiers[OfferTier.MIDDLE].price == 300
        assert tiers[OfferTier.HIGH].price == 500

    def test_single_offer(self):
        only = _offer("1", "150")
        tiers = pick_tiers([only])
        assert tiers[OfferTier.CHEAP] == tiers[OfferTier.MIDDLE] == tiers[OfferTier.HIGH] == only

    def test_two_offers(self):
        low, high = _offer("1", "100"), _offer("2", "200")
        tiers = pick_tiers([low, high])
        assert tiers[OfferTier.CHEAP] == low
        assert tiers[OfferTier.MIDDLE] == high
        assert tiers[OfferTier.HIGH] == high

    def test_empty(self):
        assert pick_tiers([]) == {}


class TestGrouping:
    def test_groups_sorted_by_price_in_first_seen_order(self):
        offers = [
            _offer("1", "300", "Delta Airlines"),
            _offer("2", "120", "American Airlines"),
            _offer("3", "100", "Delta Airlines"),
        ]
        groups = group_offers(offers)
        assert list(groups) == ["Delta Airlines", "American Airlines"]
        assert [o.flight_id for o in groups["Delta Airlines"]] == ["3", "1"]


class TestOfferAggregator:
    @pytest.mark.asyncio
    async def test_query_groups_and_tiers(self):
        provider = FakeOfferProvider(offers=[
            make_raw_offer(str(i), "DL", price)
            for i, price in enumerate(["500", "100", "300", "200", "400"])
        ] + [make_raw_offer("AA1", "AA", "250")])
        aggregator = OfferAggregator(provider)

        result = await aggregator.query(JFK, LAX, DAY)

        assert provider.calls == [("JFK", "LAX", DAY)]
        assert list(result) == ["Delta Airlines", "American Airlines"]
        delta = result["Delta Airlines"]
        assert delta[OfferTier.CHEAP].price == Decimal("100")
        assert delta[OfferTier.MIDDLE].price == Decimal("300")
        assert delta[OfferTier.HIGH].price == Decimal("500")
        american = result["American Airlines"]
        assert american[OfferTier.CHEAP] is american[OfferTier.HIGH]

    @pytest.mark.asyncio
    async def test_malformed_offers_skipped(self):
        bad = make_raw_offer("x", "DL", "10")
        del bad["price"]
        provider = FakeOfferProvider(offers=[bad, make_raw_offer("ok", "DL", "99.00")])
        result = await OfferAggregator(provider).query(JFK, LAX, DAY)
        assert result["Delta Airlines"][OfferTier.CHEAP].flight_id == "ok"

    @pytest.mark.asyncio
    async def test_bad_carrier_does_not_discard_good_offers(self):
        bad = make_raw_offer("x", "AA", "50.00")
        bad["validatingAirlineCodes"] = [None]
        provider = FakeOfferProvider(offers=[make_raw_offer("ok", "DL", "100.00"), bad])

        result = await OfferAggregator(provider).query(JFK, LAX, DAY)

        assert list(result) == ["Delta Airlines"]
        assert result["Delta Airlines"][OfferTier.CHEAP].flight_id == "ok"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [
        OfferProviderError("Failed to obtain access token: 401"),
        httpx.ReadTimeout("timed out"),
        RuntimeError("unexpected"),
    ])
    async def test_provider_failure_returns_empty(self, error):
        aggregator = OfferAggregator(FakeOfferProvider(error=error))
        assert await aggregator.query(JFK, LAX, DAY) == {}

    @pytest.mark.asyncio
    async def test_no_offers(self):
        assert await OfferAggregator(FakeOfferProvider(offers=[])).query(JFK, LAX, DAY) == {}
