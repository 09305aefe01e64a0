"""
City news feed client.

Queries NewsAPI and GNews (whichever have keys configured) through httpx and
runs the articles through ``NewsSafetyExtractor``. When no source is
configured, or every configured source fails, a synthetic alert set is
generated for the city instead. Synthetic results are flagged
``is_cached_alert`` and are never treated as real reporting.
"""

import logging
import math
import random
import time
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional, Tuple

import httpx
from httpx import AsyncClient, Timeout

from common.constants import NEWS_CACHE_BUCKET_S
from common.errors import UpstreamUnavailableError
from libs.config import Config
from services.news_risk.extractor import NewsSafetyExtractor
from services.news_risk.gazetteer import City
from services.news_risk.types import (
    SEVERITY_ORDER,
    AnalyzedArticle,
    Article,
    ArticleLocation,
    parse_published,
)

logger = logging.getLogger(__name__)

NEWS_PAGE_SIZE = 30
NEWS_LOOKBACK_DAYS = 7


class NewsSource(ABC):
    name: str = "news"

    def __init__(self, api_key: str, timeout_s: Optional[float] = None):
        self.api_key = api_key
        self.client = AsyncClient(timeout=Timeout(timeout_s or Config.NEWS_TIMEOUT_S))

    async def close(self):
        await self.client.aclose()

    async def fetch(self, city: City, page_size: int) -> List[Article]:
        """
        Recent safety news for a city.

        Raises:
            UpstreamUnavailableError: on transport errors, non-2xx responses
                or an error payload
        """
        try:
            return await self._fetch(city, page_size)
        except httpx.HTTPStatusError as e:
            raise UpstreamUnavailableError(self.name, f"HTTP {e.response.status_code}") from e
        except httpx.RequestError as e:
            raise UpstreamUnavailableError(self.name, str(e)) from e
        except (KeyError, TypeError, ValueError) as e:
            raise UpstreamUnavailableError(self.name, f"unexpected payload: {e}") from e

    @abstractmethod
    async def _fetch(self, city: City, page_size: int) -> List[Article]:
        pass


class NewsAPISource(NewsSource):
    name = "newsapi"
    base_url = "https://newsapi.org/v2/everything"

    async def _fetch(self, city, page_size):
        since = datetime.now(timezone.utc) - timedelta(days=NEWS_LOOKBACK_DAYS)
        response = await self.client.get(
            self.base_url,
            params={
                "q": f"{city.name} AND (crime OR safety OR police OR incident OR theft OR robbery)",
                "apiKey": self.api_key,
                "language": "en",
                "sortBy": "publishedAt",
                "pageSize": page_size,
                "from": since.isoformat(),
            },
        )
        response.raise_for_status()
        data = response.json()
        if data.get("status") != "ok":
            raise UpstreamUnavailableError(self.name, data.get("message") or "unknown error")

        return [
            Article(
                id=item.get("url") or f"newsapi-{i}",
                title=item.get("title") or "",
                description=item.get("description") or "",
                content=item.get("content"),
                url=item.get("url"),
                source=(item.get("source") or {}).get("name") or "NewsAPI",
                published_at=parse_published(item.get("publishedAt")),
                image_url=item.get("urlToImage"),
                author=item.get("author"),
            )
            for i, item in enumerate(data["articles"])
        ]


class GNewsSource(NewsSource):
    name = "gnews"
    base_url = "https://gnews.io/api/v4/search"

    async def _fetch(self, city, page_size):
        response = await self.client.get(
            self.base_url,
            params={
                "q": f"{city.name} safety crime incident",
                "lang": "en",
                "country": "in",
                "max": page_size,
                "apikey": self.api_key,
            },
        )
        response.raise_for_status()
        return [
            Article(
                id=item.get("url") or f"gnews-{i}",
                title=item.get("title") or "",
                description=item.get("description") or "",
                content=item.get("content"),
                url=item.get("url"),
                source=(item.get("source") or {}).get("name") or "GNews",
                published_at=parse_published(item.get("publishedAt")),
                image_url=item.get("image"),
            )
            for i, item in enumerate(response.json()["articles"])
        ]


def build_news_sources(config=Config) -> List[NewsSource]:
    sources: List[NewsSource] = []
    if config.NEWS_API_KEY:
        sources.append(NewsAPISource(config.NEWS_API_KEY))
    if config.GNEWS_API_KEY:
        sources.append(GNewsSource(config.GNEWS_API_KEY))
    return sources


# (kind, titles, descriptions, severities, place names)
ALERT_TEMPLATES = [
    (
        "police_patrol",
        [
            "{city} Police Increase Night Patrols After Recent Incidents",
            "Enhanced Security Measures Deployed in {city} Markets",
            "Police Step Up Vigilance in {city} Commercial Areas",
        ],
        [
            "Local authorities have enhanced security measures in {city} following reports of petty theft in crowded areas.",
            "Police department announces increased patrolling in busy market areas of {city} during peak hours.",
        ],
        ["medium", "high"],
        ["Market District", "Commercial Area", "City Center"],
    ),
    (
        "infrastructure",
        [
            "New LED Street Lighting Initiative Launched in {city}",
            "Emergency Call Boxes Set Up in {city} Public Areas",
        ],
        [
            "Municipal corporation completes installation of LED street lights on major roads to improve pedestrian safety at night.",
            "Emergency communication devices installed at strategic locations to help citizens report incidents quickly.",
        ],
        ["low"],
        ["Main Roads", "Residential Areas", "Public Spaces"],
    ),
    (
        "safety_campaign",
        [
            "Traffic Police Conduct Safety Awareness Drive in {city}",
            "Community Safety Meeting Held in {city}",
        ],
        [
            "Awareness campaign launched to educate commuters about road safety, focusing on accidents during peak hours.",
            "Community leaders meet with local authorities to discuss safety measures and neighborhood watch programs.",
        ],
        ["low", "medium"],
        ["Educational District", "Community Centers"],
    ),
    (
        "crime_prevention",
        [
            "Anti-Theft Drive Launched in {city} Markets",
            "CCTV Surveillance Expanded in {city} Public Areas",
        ],
        [
            "Police launch a special drive against pickpocketing and petty theft in busy commercial areas.",
            "Additional CCTV cameras installed in parks, markets and transport hubs for enhanced security.",
        ],
        ["medium", "high"],
        ["City Center", "Market Areas", "Transportation Hubs"],
    ),
]

# Relevance range per severity for generated alerts
_ALERT_RELEVANCE = {
    "critical": (0.8, 0.2),
    "high": (0.6, 0.2),
    "medium": (0.4, 0.2),
    "low": (0.2, 0.2),
}


class SyntheticNewsGenerator:
    """Plausible local safety alerts for a city, used when no feed answers."""

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    def generate(self, city: City, now: Optional[datetime] = None) -> List[AnalyzedArticle]:
        now = now or datetime.now(timezone.utc)
        stamp = int(now.timestamp() * 1000)
        alerts = []
        for i in range(self.rng.randint(4, 7)):
            kind, titles, descriptions, severities, places = self.rng.choice(ALERT_TEMPLATES)
            severity = self.rng.choice(severities)
            description = self.rng.choice(descriptions).format(city=city.display_name)
            low, spread = _ALERT_RELEVANCE[severity]
            alerts.append(
                AnalyzedArticle(
                    article=Article(
                        id=f"mock-{kind}-{i}-{stamp}",
                        title=self.rng.choice(titles).format(city=city.display_name),
                        description=description,
                        content=f"{description} Local authorities continue to monitor the situation.",
                        source=f"{city.display_name} Safety Alerts",
                        published_at=now - timedelta(hours=self.rng.randint(1, 47)),
                    ),
                    relevance=low + self.rng.random() * spread,
                    severity=severity,
                    locations=[
                        ArticleLocation(
                            name=self.rng.choice(places),
                            lat=city.lat + (self.rng.random() - 0.5) * 0.02,
                            lng=city.lng + (self.rng.random() - 0.5) * 0.02,
                            confidence=0.7 + self.rng.random() * 0.2,
                        )
                    ],
                    distance_km=round(0.2 + self.rng.random() * 2.8, 1),
                )
            )
        alerts.sort(
            key=lambda a: (SEVERITY_ORDER.get(a.severity, 0), a.article.published_at),
            reverse=True,
        )
        return alerts


class NewsClient:
    """
    Safety news for supported cities.

    Results from real sources are cached per (city, 30-minute bucket).
    """

    def __init__(
        self,
        sources: Optional[List[NewsSource]] = None,
        extractor: Optional[NewsSafetyExtractor] = None,
        synthetic: Optional[SyntheticNewsGenerator] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.sources = list(sources or [])
        self.extractor = extractor or NewsSafetyExtractor()
        self.synthetic = synthetic or SyntheticNewsGenerator()
        self._clock = clock
        self._cache: Dict[Tuple[str, int], dict] = {}

    def _cache_key(self, city: City) -> Tuple[str, int]:
        return city.name, int(self._clock() // NEWS_CACHE_BUCKET_S)

    async def close(self):
        for source in self.sources:
            await source.close()

    async def fetch_city_news(self, city: City) -> dict:
        key = self._cache_key(city)
        cached = self._cache.get(key)
        if cached is not None:
            logger.debug("News cache hit for %s", city.name)
            return cached

        if not self.sources:
            logger.info("No news API keys configured, using synthetic alerts for %s", city.name)
            return self._synthetic_result(city, errors=None)

        page_size = math.ceil(NEWS_PAGE_SIZE / len(self.sources))
        articles: List[Article] = []
        errors = []
        for source in self.sources:
            try:
                articles = await source.fetch(city, page_size)
            except UpstreamUnavailableError as e:
                logger.warning("News source %s failed for %s: %s", source.name, city.name, e)
                errors.append({"source": source.name, "error": str(e)})
                continue
            if articles:
                break

        if not articles:
            return self._synthetic_result(city, errors=errors or None)

        relevant = self.extractor.analyze(articles, city)
        result = {
            "city": city.name,
            "coordinates": city.to_dict(),
            "total_articles": len(articles),
            "safety_articles": len(relevant),
            "news": relevant,
            "sources": [s.name for s in self.sources],
            "errors": errors or None,
            "last_updated": datetime.now(timezone.utc),
            "is_mock_data": False,
            "is_cached_alert": False,
        }
        # Only the current bucket is ever read again
        self._cache = {k: v for k, v in self._cache.items() if k[1] == key[1]}
        self._cache[key] = result
        logger.info("Fetched %d safety articles for %s", len(relevant), city.name)
        return result

    def _synthetic_result(self, city: City, errors: Optional[list]) -> dict:
        alerts = self.synthetic.generate(city)
        return {
            "city": city.name,
            "coordinates": city.to_dict(),
            "total_articles": len(alerts),
            "safety_articles": len(alerts),
            "news": alerts,
            "sources": ["cached-alerts"],
            "errors": errors,
            "last_updated": datetime.now(timezone.utc),
            "is_mock_data": True,
            "is_cached_alert": True,
            "note": "Could not fetch latest news. Using cached alerts.",
        }
