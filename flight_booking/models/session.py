"""Per-conversation dialog state."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from .booking import BookingSlots
from .offer import AirlineOfferSet, FlightOffer


class DialogStage(str, Enum):
    COLLECT_DESTINATION = "collect_destination"
    COLLECT_DATE = "collect_date"
    COLLECT_SOURCE = "collect_source"
    CONFIRM = "confirm"
    SEARCH = "search"
    SELECT = "select"
    COMPLETE = "complete"


class SessionState(BaseModel):
    """Mutable state owned by exactly one BookingDialog.

    ``menu`` indexes the offers shown in the last rendered menu by flight
    id so a selection resolves without scanning ``offers``.
    """

    stage: DialogStage = DialogStage.COLLECT_DESTINATION
    slots: BookingSlots = Field(default_factory=BookingSlots)
    offers: AirlineOfferSet = Field(default_factory=dict)
    menu: dict[str, FlightOffer] = Field(default_factory=dict)
    selected: Optional[FlightOffer] = None
    attempts: int = 0
