# Run:
# uvicorn services.news_risk.main:app --host 0.0.0.0 --port 20003 --reload
# Docs: http://127.0.0.1:20003/docs

import logging
from datetime import datetime
from typing import List, Optional

from dotenv import load_dotenv
from fastapi import Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

# Load environment variables from .env file before reading configuration
load_dotenv()

from libs.config import Config
from libs.fastapi_service import FastAPIServiceFactory, ServiceAppConfig
from services.news_risk.gazetteer import City, get_city, search_cities, supported_cities
from services.news_risk.news_client import NewsClient, build_news_sources
from services.news_risk.route_risk import RouteRiskService

logger = logging.getLogger(__name__)

factory = FastAPIServiceFactory(
    ServiceAppConfig(
        title="News Risk Service",
        description="Safety news, news-derived danger zones and route risk for supported cities.",
        service_name="news_risk",
    )
)
app = factory.create_app()

# Business metrics
NEWS_REQUESTS_TOTAL = factory.add_business_metric(
    "news_requests_total", "Total city news requests", ["synthetic"]
)
ROUTE_RISK_REQUESTS_TOTAL = factory.add_business_metric(
    "news_route_risk_requests_total", "Total news-based route risk analyses"
)

route_risk_service = RouteRiskService(NewsClient(sources=build_news_sources(Config)))


def get_route_risk_service() -> RouteRiskService:
    return route_risk_service


@app.on_event("shutdown")
async def shutdown():
    await route_risk_service.close()


def _require_city(name: str) -> City:
    city = get_city(name)
    if city is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"City {name} not found in database",
        )
    return city


# ========= Schemas =========


class Point(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class CityOut(BaseModel):
    name: str
    display_name: str
    lat: float
    lng: float
    state: str


class LocationOut(BaseModel):
    name: str
    lat: float
    lng: float
    confidence: float


class NewsArticleOut(BaseModel):
    id: str
    title: str
    description: str
    content: Optional[str] = None
    url: Optional[str] = None
    source: str
    published_at: datetime
    image_url: Optional[str] = None
    author: Optional[str] = None
    safety_score: float
    severity: str
    locations: List[LocationOut]
    distance_km: Optional[float] = None


class SourceError(BaseModel):
    source: str
    error: str


class CityNewsResponse(BaseModel):
    city: str
    coordinates: CityOut
    total_articles: int
    safety_articles: int
    news: List[NewsArticleOut]
    sources: List[str]
    errors: Optional[List[SourceError]] = None
    last_updated: datetime
    is_mock_data: bool
    is_cached_alert: bool
    note: Optional[str] = None


class DangerZoneOut(BaseModel):
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


class DangerZonesResponse(BaseModel):
    city: str
    zones: List[DangerZoneOut]
    total: int


class RouteRiskRequest(BaseModel):
    city: str
    coordinates: List[Point] = Field(..., min_length=1)
    total_distance_m: Optional[float] = Field(None, gt=0)


class RiskLocation(BaseModel):
    lat: float
    lng: float
    segment: int


class RiskFactor(BaseModel):
    location: RiskLocation
    zone_id: str
    risk: float
    distance_km: float
    description: str
    severity: str
    time_ago: str


class RouteRiskResponse(BaseModel):
    city: str
    safety_score: float
    total_risk: float
    risk_factors: List[RiskFactor]
    recommendation: str
    points_analyzed: int
    zones_considered: int


# ========= Endpoints =========


@app.get("/v1/news/cities", response_model=List[CityOut], tags=["News"])
async def list_cities(q: Optional[str] = Query(None, description="Filter by city or state name")):
    cities = search_cities(q) if q else supported_cities()
    return [CityOut(**c.to_dict()) for c in cities]


@app.get("/v1/news/{city}", response_model=CityNewsResponse, tags=["News"])
async def get_city_news(
    city: str,
    service: RouteRiskService = Depends(get_route_risk_service),
):
    target = _require_city(city)
    result = await service.news_client.fetch_city_news(target)
    NEWS_REQUESTS_TOTAL.labels(synthetic=str(result["is_cached_alert"]).lower()).inc()

    return CityNewsResponse(
        **{k: v for k, v in result.items() if k not in ("news", "coordinates")},
        coordinates=CityOut(**result["coordinates"]),
        news=[NewsArticleOut(**item.to_dict()) for item in result["news"]],
    )


@app.get("/v1/news/{city}/danger-zones", response_model=DangerZonesResponse, tags=["News"])
async def get_danger_zones(
    city: str,
    service: RouteRiskService = Depends(get_route_risk_service),
):
    target = _require_city(city)
    zones = await service.danger_zones(target)
    return DangerZonesResponse(
        city=target.name,
        zones=[DangerZoneOut(**z.to_dict()) for z in zones],
        total=len(zones),
    )


@app.post("/v1/news/route-risk", response_model=RouteRiskResponse, tags=["News"])
async def get_route_risk(
    body: RouteRiskRequest,
    service: RouteRiskService = Depends(get_route_risk_service),
):
    target = _require_city(body.city)
    ROUTE_RISK_REQUESTS_TOTAL.inc()

    result = await service.route_risk(
        target,
        [(p.lat, p.lng) for p in body.coordinates],
        total_distance_m=body.total_distance_m,
    )
    return RouteRiskResponse(city=target.name, **result)
