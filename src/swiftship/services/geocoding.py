"""Address geocoding collaborators.

Geocoding is best effort: every geocoder returns a typed outcome instead of
raising, so callers branch on ``outcome.ok`` and carry on without
coordinates when a lookup fails.

Exports:
    GeocodeResult: Successful lookup.
    GeocodeFailure: Failed lookup with a reason.
    Geocoder: Protocol implemented by every geocoder.
    RadarGeocoder: Radar forward-geocoding over httpx.
    KnownCityGeocoder: Offline lookup for major US cities.
    create_geocoder: Pick an implementation from settings.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Protocol, Union

import httpx
import structlog
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from src.swiftship.config import Settings

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class GeocodeResult:
    latitude: float
    longitude: float
    normalized_address: str
    ok: Literal[True] = True


@dataclass(frozen=True)
class GeocodeFailure:
    address: str
    reason: str
    ok: Literal[False] = False


GeocodeOutcome = Union[GeocodeResult, GeocodeFailure]


class Geocoder(Protocol):
    async def geocode(self, address: str) -> GeocodeOutcome: ...


# Transport hiccups only; 4xx answers are final.
_geocode_retry = retry(
    stop=stop_after_attempt(2),
    wait=wait_exponential(multiplier=0.5, min=0.5, max=2),
    retry=retry_if_exception_type((httpx.ConnectError, httpx.ReadTimeout)),
    reraise=True,
)


class RadarGeocoder:
    """Forward geocoding via the Radar API.

    Args:
        api_key: Radar secret or publishable key.
        base_url: API root, e.g. https://api.radar.io/v1.
        timeout: Per-request timeout in seconds.
    """

    def __init__(self, api_key: str, base_url: str = "https://api.radar.io/v1", timeout: float = 10.0) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            headers={"Authorization": self._api_key},
            timeout=self._timeout,
        )

    @_geocode_retry
    async def _forward(self, address: str) -> dict:
        async with self._client() as client:
            response = await client.get(
                f"{self._base_url}/geocode/forward",
                params={"query": address},
            )
            response.raise_for_status()
            return response.json()

    async def geocode(self, address: str) -> GeocodeOutcome:
        if not address or not address.strip():
            return GeocodeFailure(address=address, reason="empty address")

        try:
            data = await self._forward(address)
        except httpx.HTTPStatusError as exc:
            logger.warning("geocode_http_error", address=address, status_code=exc.response.status_code)
            return GeocodeFailure(address=address, reason=f"HTTP {exc.response.status_code}")
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("geocode_failed", address=address, error=str(exc), error_type=type(exc).__name__)
            return GeocodeFailure(address=address, reason=type(exc).__name__)

        addresses = data.get("addresses") or []
        if not addresses:
            logger.info("geocode_no_match", address=address)
            return GeocodeFailure(address=address, reason="no match")

        best = addresses[0]
        try:
            result = GeocodeResult(
                latitude=float(best["latitude"]),
                longitude=float(best["longitude"]),
                normalized_address=best.get("formattedAddress") or address,
            )
        except (KeyError, TypeError, ValueError):
            return GeocodeFailure(address=address, reason="malformed response")

        logger.info("geocode_resolved", address=address, normalized=result.normalized_address)
        return result


KNOWN_CITIES: dict[str, tuple[float, float, str]] = {
    "los angeles": (34.0522, -118.2437, "Los Angeles, CA, US"),
    "new york": (40.7128, -74.0060, "New York, NY, US"),
    "chicago": (41.8781, -87.6298, "Chicago, IL, US"),
    "houston": (29.7604, -95.3698, "Houston, TX, US"),
    "phoenix": (33.4484, -112.0740, "Phoenix, AZ, US"),
}


class KnownCityGeocoder:
    """Resolves addresses that name one of a few major US cities.

    Used when no geocoding API key is configured.
    """

    def __init__(self, cities: dict[str, tuple[float, float, str]] | None = None) -> None:
        self._cities = cities or KNOWN_CITIES

    async def geocode(self, address: str) -> GeocodeOutcome:
        lowered = (address or "").lower()
        for name, (lat, lon, label) in self._cities.items():
            if name in lowered:
                return GeocodeResult(latitude=lat, longitude=lon, normalized_address=label)
        return GeocodeFailure(address=address, reason="unknown city")


def create_geocoder(settings: Settings) -> Geocoder:
    if settings.GEOCODING_API_KEY:
        return RadarGeocoder(
            api_key=settings.GEOCODING_API_KEY,
            base_url=settings.GEOCODING_BASE_URL,
            timeout=settings.GEOCODING_TIMEOUT,
        )
    logger.info("geocoder_offline", hint="GEOCODING_API_KEY not set, using known-city table")
    return KnownCityGeocoder()
