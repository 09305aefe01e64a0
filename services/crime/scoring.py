"""
Danger scoring for crime incidents and routes.

An incident's danger score blends how severe it was with how recent it is:

    recency = clamp(1 - days_since / 30, 0, 1)
    danger  = severity_weight * 0.6 + recency * 0.4

Route and segment analysis sample points along a waypoint list and ask an
injected incident query for what is near each one. The query is async so the
samples are gathered concurrently; the scoring itself is pure.
"""

import asyncio
import logging
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

from common.constants import MAX_ROUTE_SAMPLES, RECENT_WINDOW_DAYS, ROUTE_SAMPLE_RADIUS_DEG
from libs.geo import distance_meters, midpoint, round_half_up
from services.crime.severity import severity_weight
from services.crime.types import CrimeStats, Incident, SafetyLevel, ScoredIncident

logger = logging.getLogger(__name__)

SEVERITY_FACTOR = 0.6
RECENCY_FACTOR = 0.4
RECENCY_WINDOW_DAYS = 30

Point = Tuple[float, float]
IncidentQuery = Callable[[float, float, float], Awaitable[List[Incident]]]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes from the store as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def days_between(earlier: datetime, later: datetime) -> float:
    return (as_utc(later) - as_utc(earlier)).total_seconds() / 86400


def recency_score(occurred_at: datetime, now: datetime) -> float:
    days_since = days_between(occurred_at, now)
    return min(1.0, max(0.0, 1 - days_since / RECENCY_WINDOW_DAYS))


def danger_score(incident: Incident, now: datetime) -> float:
    return (
        severity_weight(incident.severity) * SEVERITY_FACTOR
        + recency_score(incident.occurred_at, now) * RECENCY_FACTOR
    )


def safety_level_from_average(average: float) -> SafetyLevel:
    if average < 0.3:
        return SafetyLevel.SAFE
    if average < 0.6:
        return SafetyLevel.MODERATE
    return SafetyLevel.DANGEROUS


def safety_score_from_danger(average: float) -> int:
    """Map an average danger score (0..1) onto the 1..5 safety scale."""
    return max(1, min(5, round_half_up((1 - average) * 4 + 1)))


def safety_recommendations(safety_score: int, now: Optional[datetime] = None) -> List[str]:
    """Advice for a 1..5 safety score, with extra night-time advice."""
    if safety_score <= 2:
        recommendations = [
            "High risk route - consider alternative path",
            "Share location with emergency contact",
            "Keep emergency numbers ready",
        ]
    elif safety_score <= 3:
        recommendations = [
            "Moderate risk - stay alert",
            "Consider traveling with others",
            "Stick to well-lit areas",
        ]
    else:
        recommendations = [
            "Generally safe route",
            "Good choice for solo travel",
        ]

    hour = (now or datetime.now()).hour
    if hour < 6 or hour > 20:
        recommendations.append("Extra caution advised during night hours")
        recommendations.append("Use flashlight in poorly lit areas")
    return recommendations


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


class DangerScorer:
    """Scores, ranks and aggregates incidents; analyses routes."""

    def __init__(self, clock: Callable[[], datetime] = utcnow):
        self._clock = clock

    def now(self) -> datetime:
        return self._clock()

    def score(
        self,
        incident: Incident,
        now: Optional[datetime] = None,
        reference: Optional[Point] = None,
    ) -> ScoredIncident:
        now = now or self.now()
        distance = None
        if reference is not None:
            distance = round(distance_meters(reference[0], reference[1], incident.lat, incident.lng))
        return ScoredIncident(
            incident=incident,
            danger_score=danger_score(incident, now),
            recency_score=recency_score(incident.occurred_at, now),
            distance_m=distance,
        )

    def rank(
        self,
        incidents: Sequence[Incident],
        now: Optional[datetime] = None,
        reference: Optional[Point] = None,
    ) -> List[ScoredIncident]:
        """Score every incident and sort by danger, most dangerous first (stable)."""
        now = now or self.now()
        scored = [self.score(incident, now, reference) for incident in incidents]
        return sorted(scored, key=lambda s: s.danger_score, reverse=True)

    def aggregate(
        self, scored: Sequence[ScoredIncident], now: Optional[datetime] = None
    ) -> CrimeStats:
        now = now or self.now()
        recent_cutoff = now - timedelta(days=RECENT_WINDOW_DAYS)

        by_category: Dict[str, int] = Counter(s.incident.category for s in scored)
        by_severity: Dict[str, int] = Counter(s.incident.severity for s in scored)
        recent = sum(1 for s in scored if as_utc(s.incident.occurred_at) > recent_cutoff)

        return CrimeStats(
            total=len(scored),
            by_category=dict(by_category),
            by_severity=dict(by_severity),
            recent=recent,
            average_danger_score=_mean([s.danger_score for s in scored]),
        )

    async def _point_danger(
        self, lat: float, lng: float, incidents_near: IncidentQuery, now: datetime
    ) -> Tuple[int, float]:
        incidents = await incidents_near(lat, lng, ROUTE_SAMPLE_RADIUS_DEG)
        scores = [danger_score(incident, now) for incident in incidents]
        return len(scores), _mean(scores)

    async def route_safety_score(
        self,
        waypoints: Sequence[Point],
        incidents_near: IncidentQuery,
        now: Optional[datetime] = None,
    ) -> dict:
        """
        Score a route by sampling evenly spaced waypoints.

        Args:
            waypoints: Ordered (lat, lng) pairs
            incidents_near: Async query returning incidents around a point
            now: Reference time (defaults to the scorer clock)

        Returns:
            Dict with safety_score (1..5), danger_score, points_analyzed and
            recommendations
        """
        now = now or self.now()
        stride = max(1, len(waypoints) // MAX_ROUTE_SAMPLES)
        samples = list(waypoints[::stride])[:MAX_ROUTE_SAMPLES]

        results = await asyncio.gather(
            *(self._point_danger(lat, lng, incidents_near, now) for lat, lng in samples)
        )
        average = _mean([point_danger for _, point_danger in results])
        safety_score = safety_score_from_danger(average)

        return {
            "safety_score": safety_score,
            "danger_score": average,
            "points_analyzed": len(samples),
            "recommendations": safety_recommendations(safety_score, now),
        }

    async def segment_analysis(
        self,
        waypoints: Sequence[Point],
        incidents_near: IncidentQuery,
        now: Optional[datetime] = None,
    ) -> List[dict]:
        """Incident count and mean danger around the midpoint of each consecutive waypoint pair."""
        now = now or self.now()
        pairs = list(zip(waypoints, waypoints[1:]))
        midpoints = [midpoint(start, end) for start, end in pairs]

        results = await asyncio.gather(
            *(self._point_danger(lat, lng, incidents_near, now) for lat, lng in midpoints)
        )

        segments = []
        for (start, end), mid, (count, mean_danger) in zip(pairs, midpoints, results):
            segments.append(
                {
                    "start": {"lat": start[0], "lng": start[1]},
                    "end": {"lat": end[0], "lng": end[1]},
                    "midpoint": {"lat": mid[0], "lng": mid[1]},
                    "incident_count": count,
                    "danger_score": mean_danger,
                }
            )
        return segments
