# pytest services/crime/tests/test_main.py -q

import pytest
from fastapi.testclient import TestClient

from common.errors import StorageError
from services.crime.aggregation import CrimeAggregationService
from services.crime.main import app, get_crime_service
from services.crime.scoring import DangerScorer
from services.crime.store import InMemoryIncidentStore

pytestmark = pytest.mark.unit


class FailingWriteStore(InMemoryIncidentStore):
    async def add(self, **fields):
        raise StorageError("Failed to store incident")


@pytest.fixture
def make_service(now):
    def _make(incidents=None, store=None):
        return CrimeAggregationService(
            store=store or InMemoryIncidentStore(incidents or []),
            providers=[],
            resolver=None,
            scorer=DangerScorer(clock=lambda: now),
        )

    return _make


@pytest.fixture
def client():
    yield TestClient(app)
    app.dependency_overrides.clear()


# ----------------------------
# Status endpoints
# ----------------------------
def test_root_and_health(client):
    r = client.get("/")
    assert r.status_code == 200
    assert r.json() == {"service": "crime", "status": "running"}

    r = client.get("/health")
    assert r.json()["status"] == "ok"


def test_metrics_exposes_business_counters(client):
    r = client.get("/metrics")
    assert r.status_code == 200
    assert "crime_queries_total" in r.text


# ----------------------------
# Crime data
# ----------------------------
def test_get_crime_data(client, make_service, make_incident):
    service = make_service(
        [
            make_incident(severity="low", days_ago=3),
            make_incident(lat=40.7138, severity="high", days_ago=1),
        ]
    )
    app.dependency_overrides[get_crime_service] = lambda: service

    r = client.get("/api/crime", params={"lat": 40.7128, "lng": -74.0060})

    assert r.status_code == 200
    d = r.json()
    assert d["total"] == 2
    assert d["crimes"][0]["severity"] == "high"
    assert d["crimes"][0]["distance"] == 111
    assert d["search_area"] == {"center": {"lat": 40.7128, "lng": -74.006}, "radius": 0.01}
    assert d["location"]["country"] == "Unknown"


def test_get_crime_data_rejects_bad_coordinates(client, make_service):
    app.dependency_overrides[get_crime_service] = lambda: make_service()
    r = client.get("/api/crime", params={"lat": 95, "lng": 0})
    assert r.status_code == 422


def test_get_crime_stats(client, make_service, make_incident):
    service = make_service(
        [
            make_incident(category="theft", severity="medium", days_ago=0),
            make_incident(category="theft", severity="low", days_ago=20),
        ]
    )
    app.dependency_overrides[get_crime_service] = lambda: service

    r = client.get("/api/crime/stats", params={"lat": 40.7128, "lng": -74.0060, "radius": 0.02})

    assert r.status_code == 200
    d = r.json()
    assert d["stats"]["total"] == 2
    assert d["stats"]["by_category"] == {"theft": 2}
    assert d["stats"]["recent"] == 1
    assert d["safety_level"] in ("safe", "moderate", "dangerous")
    assert 1 <= d["safety_score"] <= 5
    assert d["search_area"]["radius"] == 0.02


# ----------------------------
# Reporting
# ----------------------------
def test_report_crime(client, make_service):
    service = make_service()
    app.dependency_overrides[get_crime_service] = lambda: service

    r = client.post(
        "/api/crime/report",
        json={
            "lat": 40.7128,
            "lng": -74.0060,
            "category": "harassment",
            "description": "Followed near the station",
            "severity": "high",
        },
    )

    assert r.status_code == 201
    d = r.json()
    assert d["id"] == "1"
    assert d["category"] == "harassment"
    assert d["severity"] == "high"

    r = client.get("/api/crime", params={"lat": 40.7128, "lng": -74.0060})
    assert r.json()["total"] == 1


def test_report_crime_defaults_severity(client, make_service):
    app.dependency_overrides[get_crime_service] = lambda: make_service()
    r = client.post(
        "/api/crime/report",
        json={"lat": 1, "lng": 1, "category": "theft", "description": "Bike stolen"},
    )
    assert r.status_code == 201
    assert r.json()["severity"] == "medium"


def test_report_crime_rejects_unknown_category(client, make_service):
    app.dependency_overrides[get_crime_service] = lambda: make_service()
    r = client.post(
        "/api/crime/report",
        json={"lat": 1, "lng": 1, "category": "jaywalking", "description": "x"},
    )
    assert r.status_code == 422


def test_report_crime_storage_failure(client, make_service):
    app.dependency_overrides[get_crime_service] = lambda: make_service(store=FailingWriteStore())
    r = client.post(
        "/api/crime/report",
        json={"lat": 1, "lng": 1, "category": "theft", "description": "Bike stolen"},
    )
    assert r.status_code == 500
    assert r.json()["detail"] == "Failed to report crime"


# ----------------------------
# Route safety
# ----------------------------
def test_route_safety_needs_two_waypoints(client, make_service):
    app.dependency_overrides[get_crime_service] = lambda: make_service()
    r = client.post("/api/crime/route-safety", json={"waypoints": [{"lat": 1, "lng": 1}]})
    assert r.status_code == 400


def test_route_safety(client, make_service, make_incident):
    service = make_service([make_incident(lat=40.0, lng=-74.0, severity="critical")])
    app.dependency_overrides[get_crime_service] = lambda: service

    r = client.post(
        "/api/crime/route-safety",
        json={"waypoints": [{"lat": 40.0, "lng": -74.0}, {"lat": 40.1, "lng": -74.0}]},
    )

    assert r.status_code == 200
    d = r.json()
    assert d["analysis"]["points_analyzed"] == 2
    assert d["analysis"]["safety_score"] == 3
    assert len(d["segments"]) == 1
    assert d["segments"][0]["midpoint"]["lat"] == pytest.approx(40.05)
    assert d["segments"][0]["incident_count"] == 0
