"""
Safety analysis of news articles.

Articles are scored for safety relevance with a fixed keyword vocabulary,
given a severity from keyword patterns, and tied to places through a
gazetteer lookup. Relevant articles become ``DangerZone`` objects that the
route risk model consumes.
"""

import re
from typing import Dict, List, Sequence, Tuple

from common.constants import NEWS_RELEVANCE_THRESHOLD, ZONE_MIN_CONFIDENCE, ZONE_MIN_RELEVANCE
from libs.geo import distance_km
from services.news_risk.gazetteer import CITIES, City
from services.news_risk.types import (
    AnalyzedArticle,
    Article,
    ArticleLocation,
    DangerZone,
    NewsSeverity,
)

SAFETY_KEYWORDS = (
    "crime", "theft", "robbery", "assault", "violence", "murder", "kidnapping",
    "harassment", "stalking", "attack", "incident", "police", "safety",
    "accident", "emergency", "danger", "warning", "alert", "security",
    "riots", "protest", "unrest", "disturbance", "lockdown", "curfew",
)
HIGH_IMPACT_KEYWORDS = ("murder", "rape", "kidnapping", "terrorism", "riot")

KEYWORD_WEIGHT = 0.1
HIGH_IMPACT_BONUS = 0.3

GAZETTEER_CONFIDENCE = 0.8
CITY_CENTER_CONFIDENCE = 0.5

# Checked in order, first match wins
SEVERITY_PATTERNS = (
    (NewsSeverity.CRITICAL, re.compile(r"murder|kill|death|fatal|terrorism|bomb")),
    (NewsSeverity.HIGH, re.compile(r"rape|kidnap|assault|robbery|violence")),
    (NewsSeverity.MEDIUM, re.compile(r"theft|harassment|fight|accident")),
)

# severity: (radius_km, decay_rate_hours)
ZONE_SHAPES: Dict[str, Tuple[float, float]] = {
    NewsSeverity.CRITICAL.value: (2.0, 72),
    NewsSeverity.HIGH.value: (1.5, 48),
    NewsSeverity.MEDIUM.value: (1.0, 24),
    NewsSeverity.LOW.value: (0.5, 12),
}
DEFAULT_ZONE_SHAPE = (1.0, 24)

_KEYWORD_PATTERNS = [re.compile(rf"\b{re.escape(k)}\b") for k in SAFETY_KEYWORDS]


def zone_shape(severity: str) -> Tuple[float, float]:
    return ZONE_SHAPES.get(severity, DEFAULT_ZONE_SHAPE)


class NewsSafetyExtractor:
    """Turns raw articles into scored, located articles and danger zones."""

    def __init__(self, gazetteer: Dict[str, City] = CITIES, threshold: float = NEWS_RELEVANCE_THRESHOLD):
        self.gazetteer = gazetteer
        self.threshold = threshold

    def relevance(self, article: Article) -> float:
        """
        Safety relevance in [0, 1].

        Every whole-word occurrence of a safety keyword adds 0.1 and every
        distinct high-impact keyword present adds 0.3.
        """
        text = article.text
        matches = sum(len(pattern.findall(text)) for pattern in _KEYWORD_PATTERNS)
        high_impact = sum(1 for keyword in HIGH_IMPACT_KEYWORDS if keyword in text)
        return min(1.0, KEYWORD_WEIGHT * matches + HIGH_IMPACT_BONUS * high_impact)

    def severity_of(self, article: Article) -> str:
        text = f"{article.title} {article.description}".lower()
        for severity, pattern in SEVERITY_PATTERNS:
            if pattern.search(text):
                return severity.value
        return NewsSeverity.LOW.value

    def extract_locations(self, article: Article, city_center: City) -> List[ArticleLocation]:
        text = article.text
        locations = [
            ArticleLocation(name=name, lat=city.lat, lng=city.lng, confidence=GAZETTEER_CONFIDENCE)
            for name, city in self.gazetteer.items()
            if name in text
        ]
        if not locations:
            locations.append(
                ArticleLocation(
                    name="City Center",
                    lat=city_center.lat,
                    lng=city_center.lng,
                    confidence=CITY_CENTER_CONFIDENCE,
                )
            )
        return locations

    def analyze(self, articles: Sequence[Article], city_center: City) -> List[AnalyzedArticle]:
        """Relevant articles with severity and locations, most relevant then newest first."""
        analyzed = []
        for article in articles:
            relevance = self.relevance(article)
            if relevance < self.threshold:
                continue
            locations = self.extract_locations(article, city_center)
            first = locations[0]
            analyzed.append(
                AnalyzedArticle(
                    article=article,
                    relevance=relevance,
                    severity=self.severity_of(article),
                    locations=locations,
                    distance_km=distance_km(city_center.lat, city_center.lng, first.lat, first.lng),
                )
            )
        analyzed.sort(key=lambda a: (a.relevance, a.article.published_at), reverse=True)
        return analyzed

    def to_danger_zones(self, relevant: Sequence[AnalyzedArticle]) -> List[DangerZone]:
        zones = []
        for item in relevant:
            if item.relevance < ZONE_MIN_RELEVANCE:
                continue
            radius_km, decay_rate_hours = zone_shape(item.severity)
            for location in item.locations:
                if location.confidence <= ZONE_MIN_CONFIDENCE:
                    continue
                zones.append(
                    DangerZone(
                        id=f"{item.article.id}-{location.name}",
                        title=item.article.title,
                        description=item.article.description,
                        lat=location.lat,
                        lng=location.lng,
                        severity=item.severity,
                        radius_km=radius_km,
                        decay_rate_hours=decay_rate_hours,
                        confidence=location.confidence,
                        published_at=item.article.published_at,
                        safety_score=item.relevance,
                        source=item.article.source,
                    )
                )
        return zones
