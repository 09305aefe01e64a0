"""
Route risk from news-derived danger zones.

Every zone contributes risk to a nearby route point:

    risk = base(severity) * distance_decay * time_decay * confidence
    distance_decay = max(0, 1 - distance_km / radius_km)
    time_decay = exp(-hours_since_published / decay_rate_hours)

Zones further than max(2 km, radius) from a point are skipped. A route's
safety score is ``max(1, 5 - 4 * total_risk / point_count)``.

Zones are cached per city and rebuilt from the news feed at most once per
``DANGER_ZONE_REFRESH_S``.
"""

import logging
import math
import time
from datetime import datetime, timezone
from typing import Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

from common.constants import RISK_FACTOR_THRESHOLD, ZONE_MAX_DISTANCE_KM
from libs.config import Config
from libs.geo import distance_km
from services.news_risk.gazetteer import City
from services.news_risk.news_client import NewsClient
from services.news_risk.types import DangerZone

logger = logging.getLogger(__name__)

Point = Tuple[float, float]

BASE_RISK = {
    "critical": 1.0,
    "high": 0.8,
    "medium": 0.5,
    "low": 0.2,
}
DEFAULT_BASE_RISK = 0.3

SAMPLING_DISTANCE_KM = 0.5
MIN_ROUTE_SAMPLES = 5
# Assumed route length when the caller does not send one
DEFAULT_ROUTE_KM = 5


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def hours_since(moment: datetime, now: datetime) -> float:
    return (now - moment).total_seconds() / 3600


def _zone_risk(point: Point, zone: DangerZone, now: datetime) -> Tuple[float, float]:
    """(risk, distance_km) of ``zone`` at ``point``; risk is 0 when out of range."""
    distance = distance_km(point[0], point[1], zone.lat, zone.lng)
    if distance > max(ZONE_MAX_DISTANCE_KM, zone.radius_km):
        return 0.0, distance

    base = BASE_RISK.get(zone.severity, DEFAULT_BASE_RISK)
    distance_decay = max(0.0, 1 - distance / zone.radius_km)
    time_decay = math.exp(-hours_since(zone.published_at, now) / zone.decay_rate_hours)
    risk = base * distance_decay * time_decay * zone.confidence
    return max(0.0, min(1.0, risk)), distance


def risk_at(point: Point, zone: DangerZone, now: datetime) -> float:
    return _zone_risk(point, zone, now)[0]


def time_ago(moment: datetime, now: datetime) -> str:
    hours = math.floor(hours_since(moment, now))
    if hours < 1:
        return "Just now"
    if hours < 24:
        return f"{hours}h ago"
    return f"{hours // 24}d ago"


def safety_recommendation(safety_score: float, risk_factors: List[dict]) -> str:
    if safety_score >= 4.5:
        return "This route appears very safe with no recent incidents reported."
    if safety_score >= 3.5:
        return "This route has moderate safety. Stay alert and consider traveling during daylight hours."
    if safety_score >= 2.5:
        nearby = ""
        if risk_factors:
            nearby = f" including {risk_factors[0]['description'][:50]}..."
        return (
            f"This route passes near areas with recent incidents{nearby}. "
            "Consider alternative routes or avoid traveling alone."
        )
    return (
        "This route has significant safety concerns. We strongly recommend finding "
        "an alternative route or using transportation instead of walking."
    )


def route_risk(points: Sequence[Point], zones: Sequence[DangerZone], now: Optional[datetime] = None) -> dict:
    """
    Total risk of a sampled route.

    Returns:
        Dict with safety_score (1..5, one decimal), total_risk, risk_factors
        (risk above 0.3, highest first) and a recommendation
    """
    now = now or utcnow()
    total = 0.0
    factors = []
    for index, point in enumerate(points):
        for zone in zones:
            risk, distance = _zone_risk(point, zone, now)
            total += risk
            if risk > RISK_FACTOR_THRESHOLD:
                factors.append(
                    {
                        "location": {"lat": point[0], "lng": point[1], "segment": index},
                        "zone_id": zone.id,
                        "risk": risk,
                        "distance_km": distance,
                        "description": zone.title,
                        "severity": zone.severity,
                        "time_ago": time_ago(zone.published_at, now),
                    }
                )
    factors.sort(key=lambda f: f["risk"], reverse=True)

    safety_score = max(1.0, 5 - 4 * total / len(points)) if points else 5.0
    return {
        "safety_score": round(safety_score, 1),
        "total_risk": total,
        "risk_factors": factors,
        "recommendation": safety_recommendation(safety_score, factors),
    }


def sample_route_points(coords: Sequence[Point], total_distance_m: Optional[float] = None) -> List[Point]:
    """
    Roughly one point every 500 m of route, never fewer than five, taken at
    evenly spaced indices of ``coords``.
    """
    if not coords:
        return []
    route_km = total_distance_m / 1000 if total_distance_m else DEFAULT_ROUTE_KM
    wanted = max(MIN_ROUTE_SAMPLES, math.ceil(route_km / SAMPLING_DISTANCE_KM))
    count = min(wanted, len(coords))
    return [tuple(coords[(i * len(coords)) // count]) for i in range(count)]


ZoneLoader = Callable[[], Awaitable[List[DangerZone]]]


class DangerZoneCache:
    """
    Per-city danger zones with a refresh interval.

    Each entry is replaced as one ``(zones, refreshed_at)`` tuple. Two
    requests may refresh the same city at once; the last write wins.
    """

    def __init__(
        self,
        refresh_interval_s: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.refresh_interval_s = (
            Config.DANGER_ZONE_REFRESH_S if refresh_interval_s is None else refresh_interval_s
        )
        self._clock = clock
        self._entries: Dict[str, Tuple[List[DangerZone], float]] = {}

    def peek(self, city: str) -> List[DangerZone]:
        entry = self._entries.get(city)
        return entry[0] if entry else []

    async def get(self, city: str, loader: ZoneLoader) -> List[DangerZone]:
        entry = self._entries.get(city)
        now = self._clock()
        if entry is not None and now - entry[1] < self.refresh_interval_s:
            return entry[0]

        try:
            zones = await loader()
        except Exception:
            logger.error("Danger zone refresh failed for %s, keeping previous zones", city, exc_info=True)
            return entry[0] if entry else []

        self._entries[city] = (zones, now)
        logger.info("Danger zones for %s refreshed: %d zones", city, len(zones))
        return zones

    def clear(self, city: Optional[str] = None):
        if city is None:
            self._entries.clear()
        else:
            self._entries.pop(city, None)


class RouteRiskService:
    """Danger zones and route risk for a supported city."""

    def __init__(
        self,
        news_client: NewsClient,
        cache: Optional[DangerZoneCache] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.news_client = news_client
        self.cache = cache or DangerZoneCache()
        self._clock = clock

    async def danger_zones(self, city: City) -> List[DangerZone]:
        async def load() -> List[DangerZone]:
            news = await self.news_client.fetch_city_news(city)
            return self.news_client.extractor.to_danger_zones(news["news"])

        return await self.cache.get(city.name, load)

    async def route_risk(
        self, city: City, coords: Sequence[Point], total_distance_m: Optional[float] = None
    ) -> dict:
        zones = await self.danger_zones(city)
        points = sample_route_points(coords, total_distance_m)
        result = route_risk(points, zones, self._clock())
        result["points_analyzed"] = len(points)
        result["zones_considered"] = len(zones)
        return result

    async def close(self):
        await self.news_client.close()
