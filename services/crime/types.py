"""
Type definitions for the crime service.

This module contains the enums and the request-scoped data types used by the
scoring pipeline.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


class Category(str, Enum):
    """Incident category (closed set)."""

    THEFT = "theft"
    ASSAULT = "assault"
    ROBBERY = "robbery"
    HARASSMENT = "harassment"
    VANDALISM = "vandalism"
    BURGLARY = "burglary"
    VIOLENCE = "violence"
    OTHER = "other"


class Severity(str, Enum):
    """Incident severity level."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class SafetyLevel(str, Enum):
    SAFE = "safe"
    MODERATE = "moderate"
    DANGEROUS = "dangerous"


class Source(str, Enum):
    """Well-known incident sources. Feed adapters may use their own names."""

    LOCAL = "local"
    SYNTHETIC = "global-synthetic"
    UK_POLICE = "uk_police"


@dataclass
class Incident:
    """A crime incident from any source, unscored."""

    id: str
    lat: float
    lng: float
    category: str
    description: str
    occurred_at: datetime
    severity: str = Severity.MEDIUM.value
    source: str = Source.LOCAL.value
    reported_by: Optional[str] = None

    @property
    def key(self):
        """Identity used for de-duplication across sources."""
        return self.source, self.id


@dataclass
class ScoredIncident:
    """An incident with its per-request scores attached."""

    incident: Incident
    danger_score: float
    recency_score: float
    distance_m: Optional[int] = None

    def to_dict(self) -> dict:
        i = self.incident
        return {
            "id": i.id,
            "lat": i.lat,
            "lng": i.lng,
            "category": i.category,
            "description": i.description,
            "severity": i.severity,
            "incident_date": i.occurred_at,
            "source": i.source,
            "distance": self.distance_m,
            "danger_score": self.danger_score,
            "recency_score": self.recency_score,
        }


@dataclass
class CrimeStats:
    total: int = 0
    by_category: dict = field(default_factory=dict)
    by_severity: dict = field(default_factory=dict)
    recent: int = 0
    average_danger_score: float = 0.0
