"""Airport reference directory.

Loads the bulk airports document once per process and answers IATA
lookups from memory. The document is a JSON object keyed by airport
identifier (ICAO in the default dataset); each entry carries at least
``iata`` and ``name``.

The first load is single-flight: every caller that arrives while the
load is in progress awaits the same task, so N concurrent first lookups
trigger exactly one fetch. A failed load is not cached; the next lookup
starts a fresh attempt.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

import httpx
from pydantic import ValidationError

from flight_booking.config import settings
from flight_booking.models.airport import Airport

log = logging.getLogger("flight_booking.directory")

AirportLoader = Callable[[], Awaitable[Any]]


class DirectoryUnavailable(Exception):
    """The airport dataset could not be loaded."""


async def fetch_airports(
    url: str | None = None, timeout: float | None = None,
) -> Any:
    """Download the raw airports document."""
    url = url or settings.airport_data_url
    timeout = timeout if timeout is not None else settings.directory_timeout_seconds
    async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
        resp = await client.get(url)
        resp.raise_for_status()
        return resp.json()


class AirportDirectory:
    """Process-wide cache of airports keyed by upper-case IATA code."""

    def __init__(self, loader: Optional[AirportLoader] = None) -> None:
        self._loader = loader or fetch_airports
        self._airports: dict[str, Airport] | None = None
        self._loading: asyncio.Task[dict[str, Airport]] | None = None

    @property
    def loaded(self) -> bool:
        return self._airports is not None

    @property
    def size(self) -> int:
        return len(self._airports) if self._airports else 0

    async def resolve(self, code: str) -> Airport | None:
        """Look up an airport by IATA code, case-insensitively.

        Raises DirectoryUnavailable when the dataset cannot be loaded.
        """
        if not code:
            return None
        airports = await self._ensure_loaded()
        return airports.get(code.strip().upper())

    async def _ensure_loaded(self) -> dict[str, Airport]:
        if self._airports is not None:
            return self._airports

        if self._loading is None:
            self._loading = asyncio.ensure_future(self._load())

        task = self._loading
        try:
            airports = await asyncio.shield(task)
        except DirectoryUnavailable:
            # Let the next lookup retry; only the task we awaited is cleared
            if self._loading is task:
                self._loading = None
            raise
        return airports

    async def _load(self) -> dict[str, Airport]:
        log.info("Loading airport directory")
        try:
            raw = await self._loader()
        except Exception as e:
            log.error("Airport directory load failed: %s", e)
            raise DirectoryUnavailable(str(e)) from e

        if not isinstance(raw, dict):
            log.error("Airport directory document is not an object: %s", type(raw).__name__)
            raise DirectoryUnavailable("airports document must be a JSON object")

        self._airports = self._index(raw)
        log.info("Airport directory loaded: %d airports", len(self._airports))
        return self._airports

    @staticmethod
    def _index(raw: dict[str, Any]) -> dict[str, Airport]:
        airports: dict[str, Airport] = {}
        skipped = 0
        for key, entry in raw.items():
            if not isinstance(entry, dict) or not entry.get("iata"):
                continue
            data = dict(entry)
            data.setdefault("icao", key)
            try:
                airport = Airport(**data)
            except ValidationError:
                skipped += 1
                continue
            # First entry wins for duplicated codes
            airports.setdefault(airport.iata, airport)
        if skipped:
            log.debug("Skipped %d malformed airport entries", skipped)
        return airports
