"""Data models for the booking dialog."""

from .airport import Airport
from .booking import BookingSlots, DateRange, PartialSlots, SlotHint
from .events import BotMessage, EndOfConversation, OfferCard, OfferMenu, OutboundEvent, UserTurn
from .offer import AirlineOfferSet, FlightOffer, OfferTier
from .session import DialogStage, SessionState

__all__ = [
    "AirlineOfferSet",
    "Airport",
    "BookingSlots",
    "BotMessage",
    "DateRange",
    "DialogStage",
    "EndOfConversation",
    "FlightOffer",
    "OfferCard",
    "OfferMenu",
    "OfferTier",
    "OutboundEvent",
    "PartialSlots",
    "SessionState",
    "SlotHint",
    "UserTurn",
]
