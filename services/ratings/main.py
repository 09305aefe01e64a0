# Run:
# uvicorn services.ratings.main:app --host 0.0.0.0 --port 20002 --reload
# Docs: http://127.0.0.1:20002/docs

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

from dotenv import load_dotenv
from fastapi import Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

# Load environment variables from .env file before reading configuration
load_dotenv()

from common.constants import (
    DEFAULT_HEATMAP_RADIUS_DEG,
    DEFAULT_LOCATION_RADIUS_DEG,
    HEATMAP_WINDOW_DAYS,
    LOCATION_RATINGS_LIMIT,
    MAX_COMMENT_LENGTH,
)
from common.errors import StorageError, UpstreamUnavailableError
from libs.config import Config
from libs.fastapi_service import FastAPIServiceFactory, ServiceAppConfig
from libs.geo import BoundingBox
from services.ratings.heatmap import build_heatmap, location_summary
from services.ratings.store import RatingStore, build_rating_store
from services.ratings.types import RouteType, TimeOfDay, day_of_week_for, time_of_day_for

logger = logging.getLogger(__name__)

factory = FastAPIServiceFactory(
    ServiceAppConfig(
        title="Route Rating Service",
        description="User safety ratings of routes and the safety heatmap built from them.",
        service_name="ratings",
    )
)
app = factory.create_app()

# Business metrics
RATINGS_SUBMITTED_TOTAL = factory.add_business_metric(
    "ratings_submitted_total", "Total route ratings submitted", ["route_type"]
)
HEATMAP_REQUESTS_TOTAL = factory.add_business_metric(
    "ratings_heatmap_requests_total", "Total safety heatmap requests"
)

rating_store = build_rating_store(Config.STORAGE_BACKEND)


def get_rating_store() -> RatingStore:
    return rating_store


def get_clock() -> Callable[[], datetime]:
    """Local wall clock; time-of-day buckets follow the server's local hour."""
    return lambda: datetime.now().astimezone()


# ========= Schemas =========


class Point(BaseModel):
    lat: float
    lng: float


class RateRouteRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    safety_score: int = Field(..., ge=1, le=5)
    comment: Optional[str] = Field(None, max_length=MAX_COMMENT_LENGTH)
    route_type: RouteType = RouteType.WALKING


class RatingOut(BaseModel):
    id: str
    lat: float
    lng: float
    safety_score: int
    comment: Optional[str] = None
    time_of_day: TimeOfDay
    day_of_week: str
    route_type: RouteType
    created_at: datetime


class HeatmapPoint(BaseModel):
    lat: float
    lng: float
    intensity: float
    average_score: float
    rating_count: int


class HeatmapResponse(BaseModel):
    heatmap_points: List[HeatmapPoint]
    center: Point
    radius: float
    total_ratings: int


class LocationRatingsResponse(BaseModel):
    ratings: List[RatingOut]
    average_score: float
    total_ratings: int
    location: Point


def _rating_out(rating) -> RatingOut:
    return RatingOut(
        id=rating.id,
        lat=rating.lat,
        lng=rating.lng,
        safety_score=rating.safety_score,
        comment=rating.comment,
        time_of_day=rating.time_of_day,
        day_of_week=rating.day_of_week,
        route_type=rating.route_type,
        created_at=rating.created_at,
    )


# ========= Endpoints =========


@app.post(
    "/api/ratings",
    response_model=RatingOut,
    status_code=status.HTTP_201_CREATED,
    tags=["Ratings"],
)
async def rate_route(
    body: RateRouteRequest,
    store: RatingStore = Depends(get_rating_store),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    now = clock()
    try:
        rating = await store.add(
            user_id=body.user_id,
            lat=body.lat,
            lng=body.lng,
            safety_score=body.safety_score,
            comment=body.comment,
            time_of_day=time_of_day_for(now).value,
            day_of_week=day_of_week_for(now),
            route_type=body.route_type.value,
            created_at=now.astimezone(timezone.utc),
        )
    except StorageError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to store rating",
        )

    RATINGS_SUBMITTED_TOTAL.labels(route_type=rating.route_type).inc()
    logger.info("Rating %s stored: score=%s at (%s, %s)", rating.id, rating.safety_score, rating.lat, rating.lng)
    return _rating_out(rating)


@app.get("/api/ratings/heatmap", response_model=HeatmapResponse, tags=["Ratings"])
async def get_safety_heatmap(
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    radius: float = Query(DEFAULT_HEATMAP_RADIUS_DEG, gt=0, le=1, description="Box half-width in degrees"),
    store: RatingStore = Depends(get_rating_store),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    HEATMAP_REQUESTS_TOTAL.inc()
    since = clock().astimezone(timezone.utc) - timedelta(days=HEATMAP_WINDOW_DAYS)

    try:
        ratings = await store.find(BoundingBox.around(lat, lng, radius), since=since)
    except UpstreamUnavailableError as e:
        logger.warning("Rating store unavailable for heatmap, returning no points: %s", e)
        ratings = []

    points = []
    for cell in build_heatmap(ratings):
        cell["average_score"] = round(cell["average_score"], 1)
        points.append(HeatmapPoint(**cell))

    return HeatmapResponse(
        heatmap_points=points,
        center=Point(lat=lat, lng=lng),
        radius=radius,
        total_ratings=len(ratings),
    )


@app.get("/api/ratings/location", response_model=LocationRatingsResponse, tags=["Ratings"])
async def get_location_ratings(
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    radius: float = Query(DEFAULT_LOCATION_RADIUS_DEG, gt=0, le=1),
    store: RatingStore = Depends(get_rating_store),
):
    try:
        ratings = await store.find(BoundingBox.around(lat, lng, radius), limit=LOCATION_RATINGS_LIMIT)
    except UpstreamUnavailableError as e:
        logger.warning("Rating store unavailable for location ratings, returning none: %s", e)
        ratings = []

    summary = location_summary(ratings)
    return LocationRatingsResponse(
        ratings=[_rating_out(r) for r in ratings],
        average_score=summary["average_score"],
        total_ratings=summary["total_ratings"],
        location=Point(lat=lat, lng=lng),
    )
