"""Slot models: what the dialog collects and what the extractor returns."""

from __future__ import annotations

from datetime import date
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .airport import Airport


class SlotHint(str, Enum):
    """Topic hint passed to the extractor with each utterance."""

    DESTINATION = "destination"
    SOURCE = "source"
    DATE = "date"
    CORRECTION = "correction"


class DateRange(BaseModel):
    """Inclusive travel window. A single date has ``start == end``."""

    model_config = ConfigDict(frozen=True)

    start: date
    end: date

    @model_validator(mode="after")
    def check_order(self) -> "DateRange":
        if self.end < self.start:
            raise ValueError(f"end {self.end} is before start {self.start}")
        return self

    @classmethod
    def for_travel(
        cls, start: Optional[date], end: Optional[date], today: date,
    ) -> Optional["DateRange"]:
        """Build a range that is valid for booking, or return None.

        A missing end means a single day. Both bounds must be today or
        later and the end must not precede the start.
        """
        if start is None:
            return None
        end = end or start
        if start < today or end < today or end < start:
            return None
        return cls(start=start, end=end)


class PartialSlots(BaseModel):
    """Best-effort extraction result; every field may be absent.

    Accepts the extractor's JSON keys (``src``, ``dst``, ``startDate``,
    ``endDate``) as well as the field names.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    source_code: Optional[str] = Field(default=None, alias="src")
    destination_code: Optional[str] = Field(default=None, alias="dst")
    start_date: Optional[date] = Field(default=None, alias="startDate")
    end_date: Optional[date] = Field(default=None, alias="endDate")

    @field_validator("source_code", "destination_code", mode="before")
    @classmethod
    def normalize_code(cls, v):
        if v is None:
            return None
        v = str(v).strip().upper()
        return v or None

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def blank_date_is_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    def is_empty(self) -> bool:
        return not any(
            (self.source_code, self.destination_code, self.start_date, self.end_date)
        )


class BookingSlots(BaseModel):
    """The booking form, filled one field group per validated step."""

    source: Optional[Airport] = None
    destination: Optional[Airport] = None
    dates: Optional[DateRange] = None

    def is_complete(self) -> bool:
        return (
            self.source is not None
            and self.destination is not None
            and self.dates is not None
        )
