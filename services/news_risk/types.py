"""
Type definitions for the news risk service.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional


class NewsSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


SEVERITY_ORDER = {
    NewsSeverity.CRITICAL.value: 4,
    NewsSeverity.HIGH.value: 3,
    NewsSeverity.MEDIUM.value: 2,
    NewsSeverity.LOW.value: 1,
}


def parse_published(value: Optional[str]) -> datetime:
    """Parse an ISO-8601 timestamp as returned by news APIs (``Z`` suffix allowed)."""
    if not value:
        return datetime.now(timezone.utc)
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class Article:
    id: str
    title: str
    description: str
    published_at: datetime
    source: str
    content: Optional[str] = None
    url: Optional[str] = None
    image_url: Optional[str] = None
    author: Optional[str] = None

    @property
    def text(self) -> str:
        return f"{self.title} {self.description} {self.content or ''}".lower()


@dataclass
class ArticleLocation:
    name: str
    lat: float
    lng: float
    confidence: float


@dataclass
class AnalyzedArticle:
    article: Article
    relevance: float
    severity: str
    locations: List[ArticleLocation] = field(default_factory=list)
    distance_km: Optional[float] = None

    def to_dict(self) -> dict:
        data = asdict(self.article)
        data.update(
            safety_score=self.relevance,
            severity=self.severity,
            locations=[asdict(loc) for loc in self.locations],
            distance_km=self.distance_km,
        )
        return data


@dataclass
class DangerZone:
    id: str
    title: str
    description: str
    lat: float
    lng: float
    severity: str
    radius_km: float
    decay_rate_hours: float
    confidence: float
    published_at: datetime
    safety_score: float
    source: str

    def to_dict(self) -> dict:
        return asdict(self)
