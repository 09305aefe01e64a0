# pytest services/crime/tests/test_aggregation.py -q

import asyncio
from unittest.mock import AsyncMock

import pytest

from common.errors import StorageError, UpstreamUnavailableError
from libs.location_resolver import LocationInfo
from services.crime.aggregation import CrimeAggregationService, merge_incidents
from services.crime.providers import IncidentProvider
from services.crime.scoring import DangerScorer
from services.crime.store import InMemoryIncidentStore
from services.crime.types import SafetyLevel

pytestmark = pytest.mark.unit


class StaticProvider(IncidentProvider):
    def __init__(self, name, incidents=None, error=None, delay=0.0):
        self.name = name
        self.incidents = incidents or []
        self.error = error
        self.delay = delay
        self.closed = False

    async def fetch(self, lat, lng, radius_deg):
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return list(self.incidents)

    async def close(self):
        self.closed = True


class BrokenStore(InMemoryIncidentStore):
    async def find(self, box, since, limit, newest_first=True):
        raise UpstreamUnavailableError("incident_store", "connection refused")

    async def add(self, **fields):
        raise StorageError("Failed to store incident")


def _service(now, store=None, providers=None, resolver=None, feed_timeout_s=None):
    return CrimeAggregationService(
        store=store if store is not None else InMemoryIncidentStore(),
        providers=providers,
        resolver=resolver,
        scorer=DangerScorer(clock=lambda: now),
        feed_timeout_s=feed_timeout_s,
    )


# ----------------------------
# Merging
# ----------------------------
def test_merge_keeps_first_occurrence_per_source_and_id(make_incident):
    a = make_incident(id="1", source="local", description="first")
    dup = make_incident(id="1", source="local", description="second")
    other_source = make_incident(id="1", source="uk_police")

    merged = merge_incidents([a], [dup, other_source])

    assert [(i.source, i.id) for i in merged] == [("local", "1"), ("uk_police", "1")]
    assert merged[0].description == "first"


# ----------------------------
# Gathering from sources
# ----------------------------
@pytest.mark.asyncio
async def test_local_store_window_is_thirty_days(now, make_incident):
    store = InMemoryIncidentStore(
        [make_incident(days_ago=2), make_incident(days_ago=29), make_incident(days_ago=31)]
    )
    service = _service(now, store=store)

    incidents = await service.incidents_near(40.7128, -74.0060, 0.01)

    assert len(incidents) == 2
    assert incidents[0].occurred_at > incidents[1].occurred_at


@pytest.mark.asyncio
async def test_local_incidents_come_before_provider_incidents(now, make_incident):
    local = make_incident(id="a")
    remote = make_incident(id="b", source="feed")
    service = _service(
        now,
        store=InMemoryIncidentStore([local]),
        providers=[StaticProvider("feed", [remote])],
    )

    incidents = await service.incidents_near(40.7128, -74.0060, 0.01)

    assert [i.id for i in incidents] == ["a", "b"]


@pytest.mark.asyncio
async def test_unavailable_provider_is_skipped(now, make_incident):
    service = _service(
        now,
        store=InMemoryIncidentStore([make_incident()]),
        providers=[StaticProvider("feed", error=UpstreamUnavailableError("feed", "HTTP 503"))],
    )

    incidents = await service.incidents_near(40.7128, -74.0060, 0.01)

    assert len(incidents) == 1


@pytest.mark.asyncio
async def test_slow_provider_times_out(now, make_incident):
    slow = StaticProvider("slow", [make_incident(source="slow")], delay=1.0)
    service = _service(now, providers=[slow], feed_timeout_s=0.01)

    assert await service.incidents_near(40.7128, -74.0060, 0.01) == []


@pytest.mark.asyncio
async def test_unexpected_provider_error_is_skipped(now):
    service = _service(now, providers=[StaticProvider("feed", error=RuntimeError("bug"))])
    assert await service.incidents_near(0, 0, 0.01) == []


@pytest.mark.asyncio
async def test_store_outage_leaves_provider_results(now, make_incident):
    service = _service(
        now,
        store=BrokenStore(),
        providers=[StaticProvider("feed", [make_incident(source="feed")])],
    )

    incidents = await service.incidents_near(40.7128, -74.0060, 0.01)

    assert [i.source for i in incidents] == ["feed"]


# ----------------------------
# Queries
# ----------------------------
@pytest.mark.asyncio
async def test_crime_data_is_ranked_with_distances(now, make_incident):
    store = InMemoryIncidentStore(
        [
            make_incident(severity="low", days_ago=10),
            make_incident(lat=40.7138, severity="critical", days_ago=0),
        ]
    )
    service = _service(now, store=store)

    scored = await service.crime_data(40.7128, -74.0060, 0.01)

    assert scored[0].incident.severity == "critical"
    assert scored[0].distance_m == 111
    assert scored[1].distance_m == 0


@pytest.mark.asyncio
async def test_crime_stats_for_empty_area(now):
    result = await _service(now).crime_stats(0, 0, 0.01)

    assert result["stats"].total == 0
    assert result["safety_level"] == SafetyLevel.SAFE
    assert result["safety_score"] == 5
    assert result["recommendations"][0] == "Generally safe route"


@pytest.mark.asyncio
async def test_crime_stats_counts(now, make_incident):
    store = InMemoryIncidentStore(
        [
            make_incident(category="theft", severity="high", days_ago=0),
            make_incident(category="assault", severity="critical", days_ago=0),
        ]
    )

    result = await _service(now, store=store).crime_stats(40.7128, -74.0060, 0.01)

    stats = result["stats"]
    assert stats.total == 2
    assert stats.by_category == {"theft": 1, "assault": 1}
    assert stats.recent == 2
    # (0.85 + 1.0) / 2
    assert stats.average_danger_score == pytest.approx(0.925)
    assert result["safety_level"] == SafetyLevel.DANGEROUS
    assert result["safety_score"] == 1


# ----------------------------
# Location context
# ----------------------------
@pytest.mark.asyncio
async def test_location_context_without_resolver(now):
    context = await _service(now).location_context(1, 2)
    assert context["country"] == "Unknown"
    assert context["display_name"] == "Unknown Location"


@pytest.mark.asyncio
async def test_location_context_falls_back_on_lookup_failure(now):
    resolver = AsyncMock()
    resolver.reverse_geocode.side_effect = UpstreamUnavailableError("nominatim", "timeout")

    context = await _service(now, resolver=resolver).location_context(1, 2)

    assert context == LocationInfo.unknown().to_dict()


@pytest.mark.asyncio
async def test_location_context_uses_resolver(now):
    resolver = AsyncMock()
    resolver.reverse_geocode.return_value = LocationInfo(country="France", city="Paris")

    context = await _service(now, resolver=resolver).location_context(48.85, 2.35)

    assert context["city"] == "Paris"


# ----------------------------
# Reporting
# ----------------------------
@pytest.mark.asyncio
async def test_report_incident_is_visible_to_queries(now):
    service = _service(now)

    incident = await service.report_incident(
        lat=40.7128,
        lng=-74.0060,
        category="theft",
        description="Phone snatched",
        severity="high",
        occurred_at=now,
    )

    assert incident.id == "1"
    assert incident.source == "local"
    found = await service.incidents_near(40.7128, -74.0060, 0.01)
    assert [i.id for i in found] == ["1"]


@pytest.mark.asyncio
async def test_report_incident_propagates_storage_error(now):
    service = _service(now, store=BrokenStore())
    with pytest.raises(StorageError):
        await service.report_incident(
            lat=0, lng=0, category="theft", description="x", severity="low"
        )


@pytest.mark.asyncio
async def test_close_closes_providers(now):
    provider = StaticProvider("feed")
    await _service(now, providers=[provider]).close()
    assert provider.closed is True
