# Run:
# uvicorn services.crime.main:app --host 0.0.0.0 --port 20001 --reload
# Docs: http://127.0.0.1:20001/docs

import logging
from datetime import datetime
from typing import Dict, List, Optional

from dotenv import load_dotenv
from fastapi import Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

# Load environment variables from .env file before reading configuration
load_dotenv()

from common.constants import DEFAULT_CRIME_RADIUS_DEG
from common.errors import StorageError
from libs.config import Config
from libs.fastapi_service import FastAPIServiceFactory, ServiceAppConfig
from libs.location_resolver import get_location_resolver
from services.crime.aggregation import CrimeAggregationService
from services.crime.providers import build_providers
from services.crime.store import build_incident_store
from services.crime.types import Category, SafetyLevel, Severity

logger = logging.getLogger(__name__)

factory = FastAPIServiceFactory(
    ServiceAppConfig(
        title="Crime Data Service",
        description="Crime incidents, area statistics and route safety analysis.",
        service_name="crime",
    )
)
app = factory.create_app()

# Business metrics
CRIME_QUERIES_TOTAL = factory.add_business_metric(
    "crime_queries_total", "Total crime data and statistics queries", ["kind"]
)
CRIME_REPORTS_TOTAL = factory.add_business_metric(
    "crime_reports_total", "Total incidents reported by users"
)
ROUTE_SAFETY_REQUESTS_TOTAL = factory.add_business_metric(
    "crime_route_safety_requests_total", "Total route safety analyses"
)

_resolver = get_location_resolver()
crime_service = CrimeAggregationService(
    store=build_incident_store(Config.STORAGE_BACKEND),
    providers=build_providers(Config, resolver=_resolver),
    resolver=_resolver,
)


def get_crime_service() -> CrimeAggregationService:
    return crime_service


@app.on_event("shutdown")
async def shutdown():
    await crime_service.close()


# ========= Schemas =========


class Point(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class SearchArea(BaseModel):
    center: Point
    radius: float


class IncidentOut(BaseModel):
    id: str
    lat: float
    lng: float
    category: str
    description: str
    severity: str
    incident_date: datetime
    source: str
    distance: Optional[int] = None
    danger_score: float
    recency_score: float


class CrimeDataResponse(BaseModel):
    crimes: List[IncidentOut]
    location: Dict[str, str]
    total: int
    search_area: SearchArea
    timestamp: datetime


class CrimeStatsOut(BaseModel):
    total: int
    by_category: Dict[str, int]
    by_severity: Dict[str, int]
    recent: int
    average_danger_score: float


class CrimeStatsResponse(BaseModel):
    stats: CrimeStatsOut
    safety_level: SafetyLevel
    safety_score: int
    location: Dict[str, str]
    recommendations: List[str]
    search_area: SearchArea


class ReportIncidentRequest(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    category: Category
    description: str = Field(..., min_length=1, max_length=1000)
    severity: Severity = Severity.MEDIUM
    incident_date: Optional[datetime] = None
    user_id: Optional[str] = None


class ReportIncidentResponse(BaseModel):
    id: str
    lat: float
    lng: float
    category: str
    description: str
    severity: str
    incident_date: datetime
    location: Dict[str, str]


class RouteSafetyRequest(BaseModel):
    waypoints: List[Point]


class RouteSegment(BaseModel):
    start: Point
    end: Point
    midpoint: Point
    incident_count: int
    danger_score: float


class RouteAnalysis(BaseModel):
    safety_score: int
    danger_score: float
    points_analyzed: int
    recommendations: List[str]


class RouteSafetyResponse(BaseModel):
    waypoints: List[Point]
    segments: List[RouteSegment]
    analysis: RouteAnalysis
    timestamp: datetime


# ========= Endpoints =========


@app.get("/api/crime", response_model=CrimeDataResponse, tags=["Crime"])
async def get_crime_data(
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    radius: float = Query(DEFAULT_CRIME_RADIUS_DEG, gt=0, le=1, description="Box half-width in degrees"),
    service: CrimeAggregationService = Depends(get_crime_service),
):
    CRIME_QUERIES_TOTAL.labels(kind="incidents").inc()

    scored = await service.crime_data(lat, lng, radius)
    location = await service.location_context(lat, lng)

    return CrimeDataResponse(
        crimes=[IncidentOut(**s.to_dict()) for s in scored],
        location=location,
        total=len(scored),
        search_area=SearchArea(center=Point(lat=lat, lng=lng), radius=radius),
        timestamp=datetime.utcnow(),
    )


@app.get("/api/crime/stats", response_model=CrimeStatsResponse, tags=["Crime"])
async def get_crime_stats(
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    radius: float = Query(DEFAULT_CRIME_RADIUS_DEG, gt=0, le=1),
    service: CrimeAggregationService = Depends(get_crime_service),
):
    CRIME_QUERIES_TOTAL.labels(kind="stats").inc()

    result = await service.crime_stats(lat, lng, radius)
    stats = result["stats"]
    location = await service.location_context(lat, lng)

    return CrimeStatsResponse(
        stats=CrimeStatsOut(
            total=stats.total,
            by_category=stats.by_category,
            by_severity=stats.by_severity,
            recent=stats.recent,
            average_danger_score=stats.average_danger_score,
        ),
        safety_level=result["safety_level"],
        safety_score=result["safety_score"],
        location=location,
        recommendations=result["recommendations"],
        search_area=SearchArea(center=Point(lat=lat, lng=lng), radius=radius),
    )


@app.post(
    "/api/crime/report",
    response_model=ReportIncidentResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Crime"],
)
async def report_crime(
    body: ReportIncidentRequest,
    service: CrimeAggregationService = Depends(get_crime_service),
):
    try:
        incident = await service.report_incident(
            lat=body.lat,
            lng=body.lng,
            category=body.category.value,
            description=body.description,
            severity=body.severity.value,
            occurred_at=body.incident_date,
            reported_by=body.user_id,
        )
    except StorageError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to report crime",
        )

    CRIME_REPORTS_TOTAL.inc()
    location = await service.location_context(body.lat, body.lng)

    return ReportIncidentResponse(
        id=incident.id,
        lat=incident.lat,
        lng=incident.lng,
        category=incident.category,
        description=incident.description,
        severity=incident.severity,
        incident_date=incident.occurred_at,
        location=location,
    )


@app.post("/api/crime/route-safety", response_model=RouteSafetyResponse, tags=["Crime"])
async def get_route_safety(
    body: RouteSafetyRequest,
    service: CrimeAggregationService = Depends(get_crime_service),
):
    if len(body.waypoints) < 2:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="At least 2 waypoints are required for route analysis",
        )

    ROUTE_SAFETY_REQUESTS_TOTAL.inc()
    waypoints = [(p.lat, p.lng) for p in body.waypoints]

    analysis = await service.route_safety(waypoints)
    segments = await service.segment_analysis(waypoints)

    return RouteSafetyResponse(
        waypoints=body.waypoints,
        segments=[RouteSegment(**s) for s in segments],
        analysis=RouteAnalysis(**analysis),
        timestamp=datetime.utcnow(),
    )
