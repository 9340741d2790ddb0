"""Google Distance Matrix lookup used by the quote endpoint."""

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Protocol

import httpx

from ridebook.config import settings
from ridebook.errors import ProviderError, RouteNotFound

logger = logging.getLogger(__name__)

_MAPS_UNAVAILABLE = "Distance service is unavailable, please try again"


@dataclass(frozen=True)
class Route:
    """Driving distance and duration between two places."""

    km: Decimal
    meters: int
    text: str
    duration_seconds: int
    duration_text: str

    @property
    def duration_minutes(self) -> int:
        return round(self.duration_seconds / 60)


class DistanceProvider(Protocol):
    async def distance(self, origin: str, destination: str) -> Route: ...


class GoogleDistanceMatrix:
    """Distance Matrix API client (metric units, driving mode)."""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://maps.googleapis.com/maps/api/distancematrix/json",
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url
        self._timeout = timeout
        self._transport = transport

    async def distance(self, origin: str, destination: str) -> Route:
        if not self._api_key:
            logger.error("GOOGLE_MAPS_API_KEY is not configured")
            raise ProviderError(_MAPS_UNAVAILABLE)

        params = {
            "origins": origin,
            "destinations": destination,
            "units": "metric",
            "mode": "driving",
            "key": self._api_key,
        }
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.get(self._base_url, params=params)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as e:
            logger.error("Distance Matrix request failed: %s", e)
            raise ProviderError(_MAPS_UNAVAILABLE) from e

        if data.get("status") != "OK":
            logger.warning(
                "Distance Matrix returned %s: %s",
                data.get("status"),
                data.get("error_message", "unknown error"),
            )
            raise RouteNotFound()

        try:
            element = data["rows"][0]["elements"][0]
        except (KeyError, IndexError):
            element = None

        if not element or element.get("status") != "OK":
            element_status = element.get("status") if element else None
            if element_status == "NOT_FOUND":
                raise RouteNotFound("One or both locations not found")
            if element_status == "ZERO_RESULTS":
                raise RouteNotFound("No route found between these locations")
            raise RouteNotFound()

        meters = int(element["distance"]["value"])
        km = (Decimal(meters) / 1000).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
        duration = element.get("duration") or {}
        return Route(
            km=km,
            meters=meters,
            text=element["distance"].get("text", ""),
            duration_seconds=int(duration.get("value", 0)),
            duration_text=duration.get("text", ""),
        )


def get_distance_provider() -> GoogleDistanceMatrix:
    """Create the configured distance provider (FastAPI dependency)."""
    return GoogleDistanceMatrix(
        api_key=settings.google_maps_api_key,
        base_url=settings.google_maps_base_url,
        timeout=settings.google_maps_timeout_seconds,
    )
