"""Flight offer models produced by the offer aggregator."""

from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict


class OfferTier(str, Enum):
    """Rank of an offer within one airline's price-sorted list."""

    CHEAP = "cheap"
    MIDDLE = "middle"
    HIGH = "high"

    @property
    def label(self) -> str:
        return f"{self.value.capitalize()} Option"


TIER_ORDER = (OfferTier.CHEAP, OfferTier.MIDDLE, OfferTier.HIGH)


class FlightOffer(BaseModel):
    """A single priced one-way offer."""

    model_config = ConfigDict(frozen=True)

    airline: str
    flight_id: str
    departure_time: datetime
    arrival_time: datetime
    price: Decimal
    currency: str = "USD"


# airline display name -> tier -> offer, in first-seen airline order
AirlineOfferSet = dict[str, dict[OfferTier, FlightOffer]]
