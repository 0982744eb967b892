"""Inbound and outbound conversation events."""

from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional, Union

from pydantic import BaseModel, model_validator


class UserTurn(BaseModel):
    """One inbound turn: free text, a menu selection, or both."""

    text: Optional[str] = None
    selected_flight: Optional[str] = None

    @model_validator(mode="after")
    def require_content(self) -> "UserTurn":
        if self.text is None and self.selected_flight is None:
            raise ValueError("a turn needs text or selected_flight")
        return self


class BotMessage(BaseModel):
    type: Literal["message"] = "message"
    text: str


class OfferCard(BaseModel):
    """One selectable offer in the rendered menu."""

    airline: str
    tier: str
    flight_id: str
    departure_time: datetime
    arrival_time: datetime
    price: Decimal
    currency: str
    select_title: str


class OfferMenu(BaseModel):
    type: Literal["offer_menu"] = "offer_menu"
    cards: list[OfferCard] = []


class EndOfConversation(BaseModel):
    type: Literal["end_of_conversation"] = "end_of_conversation"


OutboundEvent = Union[BotMessage, OfferMenu, EndOfConversation]
