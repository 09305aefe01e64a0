"""
Crime aggregation service.

Gathers incidents around a point from the local store and every registered
provider, merges them, and hands them to the scorer. Read paths never fail
because a source is down: failed or slow sources are logged and skipped.
"""

import asyncio
import logging
from datetime import timedelta
from typing import Dict, List, Optional, Sequence, Tuple

from common.constants import INCIDENT_WINDOW_DAYS, LOCAL_INCIDENT_LIMIT
from common.errors import UpstreamUnavailableError
from libs.config import Config
from libs.geo import BoundingBox
from libs.location_resolver import LocationInfo, NominatimResolver
from services.crime.providers import IncidentProvider
from services.crime.scoring import (
    DangerScorer,
    safety_level_from_average,
    safety_recommendations,
    safety_score_from_danger,
)
from services.crime.store import IncidentStore
from services.crime.types import Incident, ScoredIncident

logger = logging.getLogger(__name__)


def merge_incidents(*batches: Sequence[Incident]) -> List[Incident]:
    """Union of incident batches, keeping the first occurrence of each (source, id)."""
    seen = set()
    merged = []
    for batch in batches:
        for incident in batch:
            if incident.key in seen:
                continue
            seen.add(incident.key)
            merged.append(incident)
    return merged


class CrimeAggregationService:
    def __init__(
        self,
        store: IncidentStore,
        providers: Optional[List[IncidentProvider]] = None,
        resolver: Optional[NominatimResolver] = None,
        scorer: Optional[DangerScorer] = None,
        feed_timeout_s: Optional[float] = None,
    ):
        self.store = store
        self.providers = list(providers or [])
        self.resolver = resolver
        self.scorer = scorer or DangerScorer()
        self.feed_timeout_s = feed_timeout_s or Config.EXTERNAL_FEED_TIMEOUT_S

    async def _local_incidents(self, lat: float, lng: float, radius_deg: float) -> List[Incident]:
        since = self.scorer.now() - timedelta(days=INCIDENT_WINDOW_DAYS)
        try:
            return await self.store.find(
                BoundingBox.around(lat, lng, radius_deg),
                since=since,
                limit=LOCAL_INCIDENT_LIMIT,
                newest_first=True,
            )
        except UpstreamUnavailableError as e:
            logger.warning("Local incident store unavailable, continuing without it: %s", e)
            return []

    async def _provider_incidents(
        self, provider: IncidentProvider, lat: float, lng: float, radius_deg: float
    ) -> List[Incident]:
        try:
            return await asyncio.wait_for(
                provider.fetch(lat, lng, radius_deg), timeout=self.feed_timeout_s
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Provider %s timed out after %.1fs, using remaining sources",
                provider.name,
                self.feed_timeout_s,
            )
        except UpstreamUnavailableError as e:
            logger.warning("Provider %s unavailable, using remaining sources: %s", provider.name, e)
        except Exception:
            logger.error("Provider %s failed unexpectedly", provider.name, exc_info=True)
        return []

    async def incidents_near(self, lat: float, lng: float, radius_deg: float) -> List[Incident]:
        """
        Unscored incidents around a point from all sources.

        Args:
            lat: Latitude of the query point
            lng: Longitude of the query point
            radius_deg: Half-width of the bounding box, in degrees

        Returns:
            Local incidents (last 30 days, newest first, at most 50) followed by
            provider incidents, de-duplicated by (source, id)
        """
        batches = await asyncio.gather(
            self._local_incidents(lat, lng, radius_deg),
            *(self._provider_incidents(p, lat, lng, radius_deg) for p in self.providers),
        )
        return merge_incidents(*batches)

    async def crime_data(self, lat: float, lng: float, radius_deg: float) -> List[ScoredIncident]:
        incidents = await self.incidents_near(lat, lng, radius_deg)
        return self.scorer.rank(incidents, reference=(lat, lng))

    async def crime_stats(self, lat: float, lng: float, radius_deg: float) -> dict:
        now = self.scorer.now()
        scored = self.scorer.rank(await self.incidents_near(lat, lng, radius_deg), now=now)
        stats = self.scorer.aggregate(scored, now=now)
        safety_score = safety_score_from_danger(stats.average_danger_score)
        return {
            "stats": stats,
            "safety_level": safety_level_from_average(stats.average_danger_score),
            "safety_score": safety_score,
            "recommendations": safety_recommendations(safety_score, now),
        }

    async def route_safety(self, waypoints: Sequence[Tuple[float, float]]) -> dict:
        return await self.scorer.route_safety_score(waypoints, self.incidents_near)

    async def segment_analysis(self, waypoints: Sequence[Tuple[float, float]]) -> List[dict]:
        return await self.scorer.segment_analysis(waypoints, self.incidents_near)

    async def location_context(self, lat: float, lng: float) -> Dict[str, str]:
        """Place metadata for a point, or the Unknown placeholder if lookup fails."""
        if self.resolver is None:
            return LocationInfo.unknown().to_dict()
        try:
            return (await self.resolver.reverse_geocode(lat, lng)).to_dict()
        except UpstreamUnavailableError as e:
            logger.warning("Location lookup failed for (%s, %s): %s", lat, lng, e)
        except Exception:
            logger.error("Unexpected location lookup failure", exc_info=True)
        return LocationInfo.unknown().to_dict()

    async def report_incident(
        self,
        *,
        lat: float,
        lng: float,
        category: str,
        description: str,
        severity: str = "medium",
        occurred_at=None,
        reported_by: Optional[str] = None,
    ) -> Incident:
        """Persist a user report. Raises ``StorageError`` if the store rejects it."""
        incident = await self.store.add(
            lat=lat,
            lng=lng,
            category=category,
            description=description,
            severity=severity,
            occurred_at=occurred_at,
            reported_by=reported_by,
        )
        logger.info("Incident %s reported: %s/%s", incident.id, category, severity)
        return incident

    async def close(self):
        for provider in self.providers:
            await provider.close()
        if self.resolver is not None:
            await self.resolver.close()
