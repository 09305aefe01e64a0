"""
Reverse geocoding client (OpenStreetMap Nominatim).

Turns coordinates into country / city / suburb / road metadata. Callers that
must not fail use ``CrimeAggregationService.location_context`` which swaps in
``LocationInfo.unknown()`` when this client raises.
"""

import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

import httpx
from httpx import AsyncClient, Timeout

from common.errors import UpstreamUnavailableError
from libs.config import config

logger = logging.getLogger(__name__)

UNKNOWN = "Unknown"


@dataclass
class LocationInfo:
    """Place metadata for a coordinate."""

    country: str = UNKNOWN
    city: str = UNKNOWN
    suburb: str = UNKNOWN
    road: str = UNKNOWN
    type: str = "unknown"
    display_name: str = "Unknown Location"

    @classmethod
    def unknown(cls) -> "LocationInfo":
        return cls()

    @classmethod
    def from_nominatim(cls, data: Dict[str, Any]) -> "LocationInfo":
        address = data.get("address") or {}
        return cls(
            country=address.get("country") or UNKNOWN,
            city=address.get("city") or address.get("town") or address.get("village") or UNKNOWN,
            suburb=address.get("suburb") or address.get("neighbourhood") or UNKNOWN,
            road=address.get("road") or UNKNOWN,
            type=data.get("type") or "unknown",
            display_name=data.get("display_name") or "Unknown Location",
        )

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


class NominatimResolver:
    """Async client for the Nominatim ``/reverse`` endpoint."""

    def __init__(self, base_url: Optional[str] = None, timeout_s: Optional[float] = None):
        self.base_url = base_url or config.NOMINATIM_URL
        # Nominatim's usage policy requires an identifying User-Agent
        self.client = AsyncClient(
            timeout=Timeout(timeout_s or config.GEOCODER_TIMEOUT_S),
            headers={"User-Agent": config.HTTP_USER_AGENT},
        )

    async def close(self):
        await self.client.aclose()

    async def reverse_geocode(self, lat: float, lng: float) -> LocationInfo:
        """
        Resolve a coordinate to place metadata.

        Raises:
            UpstreamUnavailableError: on transport errors, timeouts or non-2xx responses
        """
        try:
            response = await self.client.get(
                self.base_url, params={"format": "json", "lat": lat, "lon": lng}
            )
            response.raise_for_status()
            return LocationInfo.from_nominatim(response.json())
        except httpx.HTTPStatusError as e:
            raise UpstreamUnavailableError("nominatim", f"HTTP {e.response.status_code}") from e
        except httpx.RequestError as e:
            raise UpstreamUnavailableError("nominatim", str(e)) from e
        except ValueError as e:
            raise UpstreamUnavailableError("nominatim", f"invalid JSON: {e}") from e


# Global resolver instance
_resolver: Optional[NominatimResolver] = None


def get_location_resolver() -> NominatimResolver:
    """Get reverse geocoder instance (singleton)."""
    global _resolver
    if _resolver is None:
        _resolver = NominatimResolver()
    return _resolver
