"""Turn a free-text location into a search center."""

from __future__ import annotations

from typing import Protocol

import httpx
import structlog

from ..config import GeocoderConfig
from ..errors import InvalidInputError, LocationNotFoundError
from .models import Coordinate


class GeoResolver(Protocol):
    def resolve(self, location_text: str) -> Coordinate:
        """Return the coordinate for ``location_text`` or raise LocationNotFoundError."""


class NominatimResolver:
    """Resolve locations through the OpenStreetMap Nominatim search API."""

    def __init__(
        self,
        config: GeocoderConfig | None = None,
        client: httpx.Client | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.config = config or GeocoderConfig()
        self._owns_client = client is None
        self._client = client or httpx.Client(
            follow_redirects=True,
            timeout=self.config.timeout,
            headers={"User-Agent": self.config.user_agent},
        )
        self.logger = logger or structlog.get_logger("maps_harvester.geocoder")
        self.display_name: str | None = None

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def resolve(self, location_text: str) -> Coordinate:
        query = (location_text or "").strip()
        if not query:
            raise LocationNotFoundError(location_text, "empty location")
        try:
            response = self._client.get(
                self.config.base_url, params={"format": "json", "limit": 1, "q": query}
            )
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            self.logger.error("geocode_failed", location=query, error=str(exc))
            raise LocationNotFoundError(query, str(exc)) from exc

        if not isinstance(payload, list) or not payload:
            raise LocationNotFoundError(query, "no match")
        best = payload[0]
        try:
            coordinate = Coordinate(latitude=float(best["lat"]), longitude=float(best["lon"]))
        except (KeyError, TypeError, ValueError, InvalidInputError) as exc:
            raise LocationNotFoundError(query, f"malformed result: {exc}") from exc
        self.display_name = best.get("display_name")
        self.logger.info(
            "location_geolocated",
            location=query,
            display_name=self.display_name,
            lat=coordinate.latitude,
            lng=coordinate.longitude,
        )
        return coordinate


__all__ = ["GeoResolver", "NominatimResolver"]
