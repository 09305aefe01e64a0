"""
Shared test fixtures.

This module provides reusable fixtures for:
- A fixed "now" so time-dependent scores are deterministic
- Factories for incidents and ratings
- In-memory incident and rating stores
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest

from services.crime.store import InMemoryIncidentStore
from services.crime.types import Incident
from services.ratings.store import InMemoryRatingStore
from services.ratings.types import Rating

# A Wednesday, mid-afternoon UTC
FIXED_NOW = datetime(2024, 5, 15, 14, 30, tzinfo=timezone.utc)


@pytest.fixture
def now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def make_incident(now):
    """
    Build an ``Incident`` relative to ``now``.

    Example:
        make_incident(category="theft", severity="medium", days_ago=1)
    """
    counter = {"n": 0}

    def _make(
        lat: float = 40.7128,
        lng: float = -74.0060,
        category: str = "theft",
        severity: str = "medium",
        days_ago: float = 0,
        source: str = "local",
        id: Optional[str] = None,
        description: str = "Test incident",
    ) -> Incident:
        counter["n"] += 1
        return Incident(
            id=id or f"inc-{counter['n']}",
            lat=lat,
            lng=lng,
            category=category,
            description=description,
            severity=severity,
            occurred_at=now - timedelta(days=days_ago),
            source=source,
        )

    return _make


@pytest.fixture
def make_rating(now):
    counter = {"n": 0}

    def _make(
        lat: float = 40.7589,
        lng: float = -73.9851,
        safety_score: int = 4,
        days_ago: float = 0,
        user_id: str = "usr_demo",
    ) -> Rating:
        counter["n"] += 1
        return Rating(
            id=str(counter["n"]),
            user_id=user_id,
            lat=lat,
            lng=lng,
            safety_score=safety_score,
            time_of_day="afternoon",
            day_of_week="wednesday",
            route_type="walking",
            created_at=now - timedelta(days=days_ago),
        )

    return _make


@pytest.fixture
def incident_store():
    return InMemoryIncidentStore()


@pytest.fixture
def rating_store():
    return InMemoryRatingStore()
