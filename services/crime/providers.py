"""
Pluggable incident providers.

The aggregation service merges the local store with every configured
provider. A provider returns ``Incident`` objects tagged with its own source
name and raises ``UpstreamUnavailableError`` when it cannot answer; it never
decides on fallbacks itself.

``SyntheticIncidentProvider`` exists for demos without a live feed. It is
marked non-authoritative and is off unless ``ENABLE_SYNTHETIC_INCIDENTS`` is
set.
"""

import logging
import random
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import httpx
from httpx import AsyncClient, Timeout

from common.errors import UpstreamUnavailableError
from libs.config import Config
from libs.location_resolver import LocationInfo, NominatimResolver
from services.crime.scoring import utcnow
from services.crime.severity import map_external_category, map_external_severity
from services.crime.types import Category, Incident, Severity, Source

logger = logging.getLogger(__name__)

UK_POLICE_MAX_RECORDS = 20


class IncidentProvider(ABC):
    """Source of incidents near a point, other than the local store."""

    name: str = "provider"
    # False for generated data that must not back production guarantees
    authoritative: bool = True

    @abstractmethod
    async def fetch(self, lat: float, lng: float, radius_deg: float) -> List[Incident]:
        """
        Incidents near a point.

        Raises:
            UpstreamUnavailableError: when the source cannot be reached
        """

    async def close(self):
        pass


class UKPoliceProvider(IncidentProvider):
    """Street-level crimes from data.police.uk (England, Wales and Northern Ireland only)."""

    name = Source.UK_POLICE.value

    def __init__(self, base_url: Optional[str] = None, timeout_s: Optional[float] = None):
        self.base_url = base_url or Config.UK_POLICE_API_URL
        self.client = AsyncClient(timeout=Timeout(timeout_s or Config.EXTERNAL_FEED_TIMEOUT_S))

    async def close(self):
        await self.client.aclose()

    async def fetch(self, lat, lng, radius_deg):
        try:
            response = await self.client.get(self.base_url, params={"lat": lat, "lng": lng})
            response.raise_for_status()
            records = response.json()
        except httpx.HTTPStatusError as e:
            raise UpstreamUnavailableError(self.name, f"HTTP {e.response.status_code}") from e
        except httpx.RequestError as e:
            raise UpstreamUnavailableError(self.name, str(e)) from e
        except ValueError as e:
            raise UpstreamUnavailableError(self.name, f"invalid JSON: {e}") from e

        incidents = []
        for record in records[:UK_POLICE_MAX_RECORDS]:
            incident = self._to_incident(record)
            if incident is not None:
                incidents.append(incident)
        return incidents

    def _to_incident(self, record: Dict[str, Any]) -> Optional[Incident]:
        try:
            location = record["location"]
            lat = float(location["latitude"])
            lng = float(location["longitude"])
            month = datetime.strptime(record["month"] + "-01", "%Y-%m-%d")
        except (KeyError, TypeError, ValueError):
            logger.warning("Skipping malformed %s record: %r", self.name, record.get("id"))
            return None

        if not (-90 <= lat <= 90 and -180 <= lng <= 180):
            return None

        category = record.get("category", "")
        street = (location.get("street") or {}).get("name", "Unknown street")
        return Incident(
            id=f"uk_{record.get('id')}",
            lat=lat,
            lng=lng,
            category=map_external_category(category, self.name).value,
            description=f"{category} - {street}",
            severity=map_external_severity(category, self.name).value,
            occurred_at=month.replace(tzinfo=timezone.utc),
            source=self.name,
        )


# (category, description, severity)
BASE_CRIME_TYPES = [
    (Category.THEFT, "Property theft reported in the area", Severity.MEDIUM),
    (Category.HARASSMENT, "Verbal harassment incident", Severity.LOW),
    (Category.VANDALISM, "Property damage reported", Severity.LOW),
    (Category.OTHER, "Suspicious activity reported", Severity.LOW),
]
URBAN_CRIME_TYPES = [
    (Category.ROBBERY, "Armed robbery in urban area", Severity.HIGH),
    (Category.ASSAULT, "Physical altercation reported", Severity.MEDIUM),
]
TOURIST_CRIME_TYPES = [
    (Category.THEFT, "Pickpocketing in tourist area", Severity.MEDIUM),
    (Category.THEFT, "Bag snatching near attractions", Severity.MEDIUM),
]
SERIOUS_CRIME_TYPES = [
    (Category.ROBBERY, "Armed robbery reported", Severity.CRITICAL),
    (Category.ASSAULT, "Violent crime reported", Severity.HIGH),
]
LOW_CRIME_COUNTRIES = ("singapore", "japan", "switzerland", "norway", "denmark")
MODERATE_CRIME_COUNTRIES = ("united states", "united kingdom", "canada", "australia")


def crime_types_for_location(info: LocationInfo) -> list:
    """Plausible crime mix for a place. Demo heuristic only."""
    city = info.city.lower()
    country = info.country.lower()

    types = list(BASE_CRIME_TYPES)
    if "city" in city or "town" in city:
        types.extend(URBAN_CRIME_TYPES)
    if any(word in city for word in ("tourism", "center", "centre")):
        types.extend(TOURIST_CRIME_TYPES)

    if any(c in country for c in LOW_CRIME_COUNTRIES):
        return [t for t in types if t[2] != Severity.HIGH]
    if not any(c in country for c in MODERATE_CRIME_COUNTRIES):
        types.extend(SERIOUS_CRIME_TYPES)
    return types


class SyntheticIncidentProvider(IncidentProvider):
    """Generates plausible incidents around a point for offline demos."""

    name = Source.SYNTHETIC.value
    authoritative = False

    def __init__(
        self,
        resolver: Optional[NominatimResolver] = None,
        rng: Optional[random.Random] = None,
        clock=utcnow,
    ):
        self.resolver = resolver
        self.rng = rng or random.Random()
        self._clock = clock

    async def _location(self, lat, lng) -> LocationInfo:
        if self.resolver is None:
            return LocationInfo.unknown()
        try:
            return await self.resolver.reverse_geocode(lat, lng)
        except UpstreamUnavailableError as e:
            logger.info("Synthetic incidents without location context: %s", e)
            return LocationInfo.unknown()

    async def fetch(self, lat, lng, radius_deg):
        types = crime_types_for_location(await self._location(lat, lng))
        now = self._clock()
        batch = f"{int(now.timestamp() * 1000)}"

        incidents = []
        for i in range(self.rng.randint(2, 10)):
            category, description, severity = self.rng.choice(types)
            incidents.append(
                Incident(
                    id=f"global_{batch}_{i}",
                    lat=lat + (self.rng.random() - 0.5) * radius_deg * 2,
                    lng=lng + (self.rng.random() - 0.5) * radius_deg * 2,
                    category=category.value,
                    description=description,
                    severity=severity.value,
                    occurred_at=now - timedelta(days=self.rng.random() * 7),
                    source=self.name,
                )
            )
        return incidents


def build_providers(config=Config, resolver: Optional[NominatimResolver] = None) -> List[IncidentProvider]:
    """Providers enabled by configuration, in merge order."""
    providers: List[IncidentProvider] = []
    if config.ENABLE_SYNTHETIC_INCIDENTS:
        logger.warning("Synthetic incident generation is enabled; results are not authoritative")
        providers.append(SyntheticIncidentProvider(resolver=resolver))
    if config.ENABLE_UK_POLICE_FEED:
        providers.append(UKPoliceProvider())
    return providers
