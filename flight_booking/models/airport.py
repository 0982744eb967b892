"""Pydantic model for an airport record from the reference dataset."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Airport(BaseModel):
    """One airport, keyed by its IATA code.

    Built from an entry of the bulk airports document; ``lat``/``lon`` in
    the source map onto ``latitude``/``longitude``.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    iata: str
    name: str
    icao: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    latitude: Optional[float] = Field(default=None, alias="lat")
    longitude: Optional[float] = Field(default=None, alias="lon")

    @field_validator("iata")
    @classmethod
    def normalize_iata(cls, v: str) -> str:
        v = v.strip().upper()
        if len(v) != 3 or not v.isalpha():
            raise ValueError(f"not an IATA airport code: {v!r}")
        return v

    @property
    def label(self) -> str:
        """``Name (IATA)`` as shown in summaries."""
        return f"{self.name} ({self.iata})"
