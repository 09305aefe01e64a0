# pytest services/news_risk/tests/test_extractor.py -q

from datetime import timedelta

import pytest

from services.news_risk.extractor import (
    CITY_CENTER_CONFIDENCE,
    GAZETTEER_CONFIDENCE,
    NewsSafetyExtractor,
    zone_shape,
)
from services.news_risk.gazetteer import get_city
from services.news_risk.types import AnalyzedArticle, Article, ArticleLocation

pytestmark = pytest.mark.unit

DELHI = get_city("delhi")


@pytest.fixture
def extractor():
    return NewsSafetyExtractor()


@pytest.fixture
def article(now):
    def _make(title, description="", content=None, id="a1", hours_ago=1):
        return Article(
            id=id,
            title=title,
            description=description,
            content=content,
            published_at=now - timedelta(hours=hours_ago),
            source="Test Wire",
        )

    return _make


# ----------------------------
# Relevance
# ----------------------------
def test_relevance_counts_each_keyword_occurrence(extractor, article):
    a = article("Police report theft", "Police ask shoppers to watch bags")
    # police x2, theft x1
    assert extractor.relevance(a) == pytest.approx(0.3)


def test_relevance_matches_whole_words_only(extractor, article):
    a = article("Policeman honoured", "Securityguard training ends")
    assert extractor.relevance(a) == 0


def test_high_impact_keywords_add_bonus(extractor, article):
    a = article("Murder suspect held", "")
    # murder keyword 0.1 + high impact 0.3
    assert extractor.relevance(a) == pytest.approx(0.4)


def test_relevance_is_capped(extractor, article):
    a = article("Murder, kidnapping and terrorism", "crime " * 20)
    assert extractor.relevance(a) == 1.0


def test_severity_first_pattern_wins(extractor, article):
    assert extractor.severity_of(article("Robbery ends in fatal shooting")) == "critical"
    assert extractor.severity_of(article("Robbery at jewellery store")) == "high"
    assert extractor.severity_of(article("Accident on ring road")) == "medium"
    assert extractor.severity_of(article("Street lights upgraded")) == "low"


def test_severity_ignores_content(extractor, article):
    a = article("Street lights upgraded", "", content="Years ago a murder happened here")
    assert extractor.severity_of(a) == "low"


# ----------------------------
# Locations
# ----------------------------
def test_gazetteer_locations(extractor, article):
    a = article("Police alert in Pune", "Crime rising in Nagpur too")

    locations = extractor.extract_locations(a, DELHI)

    assert {loc.name for loc in locations} == {"pune", "nagpur"}
    assert all(loc.confidence == GAZETTEER_CONFIDENCE for loc in locations)


def test_city_center_fallback(extractor, article):
    locations = extractor.extract_locations(article("Police alert issued"), DELHI)

    assert len(locations) == 1
    assert locations[0].name == "City Center"
    assert (locations[0].lat, locations[0].lng) == (DELHI.lat, DELHI.lng)
    assert locations[0].confidence == CITY_CENTER_CONFIDENCE


# ----------------------------
# Analysis and zones
# ----------------------------
def test_analyze_filters_and_orders(extractor, article):
    weak = article("Police meeting", id="weak")
    older = article("Robbery and assault reported", "Police investigate", id="older", hours_ago=5)
    newer = article("Theft and assault reported", "Police investigate", id="newer", hours_ago=1)
    strongest = article("Murder probe", "Police say murder suspect fled", id="strongest")

    analyzed = extractor.analyze([weak, older, newer, strongest], DELHI)

    assert [a.article.id for a in analyzed] == ["strongest", "newer", "older"]
    assert analyzed[0].severity == "critical"
    assert analyzed[0].distance_km == pytest.approx(0.0)


def test_analyze_records_distance_to_first_location(extractor, article):
    a = article("Robbery and assault in Mumbai", "Police investigate")

    analyzed = extractor.analyze([a], DELHI)

    assert analyzed[0].distance_km > 1000


def test_danger_zones_from_articles(extractor, article):
    a = article("Robbery reported", "Police investigate assault", id="x1")
    zones = extractor.to_danger_zones(extractor.analyze([a], DELHI))

    assert len(zones) == 1
    zone = zones[0]
    assert zone.id == "x1-City Center"
    assert zone.severity == "high"
    assert (zone.radius_km, zone.decay_rate_hours) == (1.5, 48)
    assert zone.confidence == CITY_CENTER_CONFIDENCE
    assert zone.safety_score == pytest.approx(0.3)


def test_weakly_relevant_articles_build_no_zones(extractor, article):
    weak = AnalyzedArticle(
        article=article("Minor disturbance reported", id="weak"),
        relevance=0.2,
        severity="low",
        locations=[ArticleLocation(name="Connaught Place", lat=DELHI.lat, lng=DELHI.lng, confidence=0.8)],
    )
    strong = AnalyzedArticle(
        article=article("Robbery reported", id="strong"),
        relevance=0.6,
        severity="high",
        locations=[ArticleLocation(name="Connaught Place", lat=DELHI.lat, lng=DELHI.lng, confidence=0.8)],
    )

    zones = extractor.to_danger_zones([weak, strong])

    assert [z.id for z in zones] == ["strong-Connaught Place"]


def test_zone_shape_defaults():
    assert zone_shape("critical") == (2.0, 72)
    assert zone_shape("low") == (0.5, 12)
    assert zone_shape("unheard-of") == (1.0, 24)
