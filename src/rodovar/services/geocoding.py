"""HTTP client for forward and reverse geocoding against a Nominatim service.

Geocoding is best effort: lookups that fail or find nothing are logged and
replaced with a fixed fallback coordinate, never raised to the caller.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Optional

import httpx

from ..config import settings
from ..errors import GeocodeMiss
from ..models.domain import UNKNOWN_COORDINATES, Coordinates

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Address:
    road: str
    neighborhood: str
    city: str
    state: str
    country: str
    formatted: Optional[str] = None


class NominatimClient:
    def __init__(
        self,
        base_url: str | None = None,
        country: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        backoff_seconds: float | None = None,
        user_agent: str | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = (base_url or settings.nominatim_base_url).rstrip("/")
        self.country = country or settings.geocode_country
        self.timeout = timeout if timeout is not None else settings.geocode_timeout_seconds
        self.max_retries = max_retries if max_retries is not None else settings.geocode_max_retries
        self.backoff_seconds = backoff_seconds if backoff_seconds is not None else settings.geocode_backoff_seconds
        self.user_agent = user_agent or settings.nominatim_user_agent
        self._transport = transport

    def _get_client(self) -> httpx.Client:
        return httpx.Client(
            timeout=httpx.Timeout(self.timeout, connect=5.0),
            headers={"User-Agent": self.user_agent},
            transport=self._transport,
        )

    def _request(self, path: str, params: dict) -> object:
        url = f"{self.base_url}/{path}"
        client = self._get_client()
        try:
            attempt = 0
            while True:
                try:
                    response = client.get(url, params={"format": "json", **params})
                    response.raise_for_status()
                    return response.json()
                except (httpx.TimeoutException, httpx.NetworkError) as e:
                    attempt += 1
                    if attempt > self.max_retries:
                        raise
                    wait_time = self.backoff_seconds * (2 ** (attempt - 1))
                    logger.debug(f"Geocoding network error, retrying in {wait_time:.1f}s (attempt {attempt}/{self.max_retries}): {e}")
                    time.sleep(wait_time)
        finally:
            client.close()

    def geocode(self, query: str) -> Coordinates:
        """Resolve free text to coordinates.

        Raises:
            GeocodeMiss: the service answered but found nothing.
            httpx.HTTPError: transport or HTTP failure after retries.
        """
        data = self._request("search", {"q": query, "limit": 1})
        if not isinstance(data, list) or not data:
            raise GeocodeMiss(query)
        try:
            return Coordinates(lat=float(data[0]["lat"]), lng=float(data[0]["lon"]))
        except (KeyError, TypeError, ValueError) as e:
            raise GeocodeMiss(query) from e

    def coordinates_for_city(self, city: str, state: str) -> Coordinates:
        """City centre, or the country centroid when the lookup fails."""
        query = f"{city.strip()}, {state.strip()}, {self.country}"
        try:
            return self.geocode(query)
        except (GeocodeMiss, httpx.HTTPError) as e:
            lat, lng = settings.country_centroid
            logger.warning(f"Geocoding '{query}' failed, using country centroid: {e}")
            return Coordinates(lat=lat, lng=lng)

    def coordinates_for_location(self, location: str, detailed_address: str | None = None) -> Coordinates:
        """Coordinates for a place name, preferring the detailed street address.

        Falls back from "address, place" to "place", and finally to the (0, 0)
        unknown sentinel.
        """
        queries = []
        if detailed_address and len(detailed_address) > 3:
            queries.append(f"{detailed_address}, {location}, {self.country}")
        queries.append(f"{location}, {self.country}")

        for query in queries:
            try:
                return self.geocode(query)
            except GeocodeMiss:
                logger.info(f"No geocoding result for '{query}'")
            except httpx.HTTPError as e:
                logger.warning(f"Geocoding '{query}' failed: {e}")
                break
        logger.warning(f"Could not geocode '{location}', storing unknown coordinates")
        return UNKNOWN_COORDINATES

    def reverse(self, point: Coordinates) -> Address | None:
        """Street address for a point, or None when nothing is known there."""
        try:
            data = self._request(
                "reverse",
                {"lat": point.lat, "lon": point.lng, "zoom": 18, "addressdetails": 1},
            )
        except httpx.HTTPError as e:
            logger.warning(f"Reverse geocoding ({point.lat}, {point.lng}) failed: {e}")
            return None
        if not isinstance(data, dict) or not data.get("address"):
            return None
        address = data["address"]
        return Address(
            road=address.get("road") or "",
            neighborhood=address.get("suburb") or address.get("neighbourhood") or "",
            city=address.get("city") or address.get("town") or address.get("village") or "",
            state=address.get("state") or "",
            country=address.get("country") or "",
            formatted=data.get("display_name"),
        )


def check_health(base_url: str | None = None) -> bool:
    """Check that the geocoding service answers a minimal search."""
    base = (base_url or settings.nominatim_base_url).rstrip("/")
    try:
        response = httpx.get(
            f"{base}/search",
            params={"format": "json", "q": settings.geocode_country, "limit": 1},
            headers={"User-Agent": settings.nominatim_user_agent},
            timeout=5.0,
        )
        response.raise_for_status()
        return isinstance(response.json(), list)
    except (httpx.HTTPError, ValueError):
        return False
