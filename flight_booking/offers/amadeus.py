"""Amadeus Self-Service flight offers provider.

- OAuth2 client_credentials, token cached in memory and shared by every
  session using this provider
- The token is refreshed once it is within ``expiry_margin`` seconds of
  expiring; concurrent refreshes coalesce on a lock
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import date
from typing import Any, Callable, Optional

import httpx

from flight_booking.config import Settings, settings as default_settings

from .base import OfferProvider, OfferProviderError

logger = logging.getLogger(__name__)

TOKEN_PATH = "/v1/security/oauth2/token"
OFFERS_PATH = "/v2/shopping/flight-offers"


class AmadeusOfferProvider(OfferProvider):
    def __init__(
        self,
        config: Optional[Settings] = None,
        http: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = config or default_settings
        self._http = http or httpx.AsyncClient(
            base_url=self._config.amadeus_base_url,
            timeout=self._config.offer_timeout_seconds,
        )
        self._clock = clock
        self._expiry_margin = self._config.token_expiry_margin_seconds

        self._access_token: Optional[str] = None
        self._token_expiry: float = 0.0
        self._token_lock = asyncio.Lock()

    async def close(self) -> None:
        await self._http.aclose()

    # ------------------------------------------------------------------
    # Token cache
    # ------------------------------------------------------------------

    def _token_valid(self) -> bool:
        return (
            self._access_token is not None
            and self._clock() < self._token_expiry - self._expiry_margin
        )

    async def _get_access_token(self) -> str:
        if self._token_valid():
            return self._access_token  # type: ignore[return-value]
        async with self._token_lock:
            # Another caller may have refreshed while we waited
            if self._token_valid():
                return self._access_token  # type: ignore[return-value]
            return await self._authenticate()

    async def _authenticate(self) -> str:
        if not self._config.amadeus_client_id or not self._config.amadeus_client_secret:
            raise OfferProviderError(
                "Missing AMADEUS_CLIENT_ID or AMADEUS_CLIENT_SECRET"
            )

        data = {
            "grant_type": "client_credentials",
            "client_id": self._config.amadeus_client_id,
            "client_secret": self._config.amadeus_client_secret,
        }
        headers = {"Content-Type": "application/x-www-form-urlencoded"}

        try:
            resp = await self._http.post(TOKEN_PATH, data=data, headers=headers)
            resp.raise_for_status()
            payload: dict[str, Any] = resp.json()
            token = payload["access_token"]
            expires_in = int(payload.get("expires_in", 1799))
        except httpx.HTTPStatusError as e:
            raise OfferProviderError(
                f"Failed to obtain access token: {e.response.status_code} {e.response.text}"
            ) from e
        except (httpx.HTTPError, AttributeError, KeyError, TypeError, ValueError) as e:
            raise OfferProviderError(f"Failed to obtain access token: {e}") from e

        self._access_token = token
        self._token_expiry = self._clock() + expires_in
        logger.info("Amadeus token refreshed (expires in %ss)", expires_in)
        return token

    # ------------------------------------------------------------------
    # OfferProvider interface
    # ------------------------------------------------------------------

    async def search_offers(
        self,
        origin: str,
        destination: str,
        departure_date: date,
    ) -> list[dict[str, Any]]:
        token = await self._get_access_token()

        params = {
            "originLocationCode": origin,
            "destinationLocationCode": destination,
            "departureDate": departure_date.isoformat(),
            "adults": 1,
            "currencyCode": self._config.offer_currency,
            "max": self._config.offer_max_results,
        }

        try:
            resp = await self._http.get(
                OFFERS_PATH,
                params=params,
                headers={"Authorization": f"Bearer {token}"},
            )
            resp.raise_for_status()
            body = resp.json()
        except httpx.HTTPStatusError as e:
            raise OfferProviderError(
                f"Failed to fetch flight offers: {e.response.status_code} {e.response.text}"
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise OfferProviderError(f"Failed to fetch flight offers: {e}") from e

        data = body.get("data") if isinstance(body, dict) else None
        if not isinstance(data, list):
            raise OfferProviderError("Flight offers response has no data list")

        logger.info(
            "Amadeus returned %d offers for %s→%s on %s",
            len(data), origin, destination, departure_date,
        )
        return data
