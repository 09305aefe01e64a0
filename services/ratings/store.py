"""
Rating store implementations, selected at startup from ``STORAGE_BACKEND``.
"""

import itertools
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Callable, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from common.errors import StorageError, UpstreamUnavailableError
from libs.geo import BoundingBox
from models.rating import Rating as RatingRow
from services.ratings.types import Rating

logger = logging.getLogger(__name__)


def _as_utc(value: datetime) -> datetime:
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


class RatingStore(ABC):
    @abstractmethod
    async def find(
        self,
        box: BoundingBox,
        since: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[Rating]:
        """Ratings inside ``box`` (created at or after ``since``), newest first."""

    @abstractmethod
    async def add(
        self,
        *,
        user_id: str,
        lat: float,
        lng: float,
        safety_score: int,
        comment: Optional[str],
        time_of_day: str,
        day_of_week: str,
        route_type: str,
        created_at: datetime,
    ) -> Rating:
        """Persist a rating. Raises ``StorageError`` on failure."""


class InMemoryRatingStore(RatingStore):
    def __init__(self, ratings: Optional[List[Rating]] = None):
        self._ratings: List[Rating] = list(ratings or [])
        self._ids = itertools.count(len(self._ratings) + 1)

    async def find(self, box, since=None, limit=None):
        matches = [r for r in self._ratings if box.contains(r.lat, r.lng)]
        if since is not None:
            matches = [r for r in matches if _as_utc(r.created_at) >= _as_utc(since)]
        matches.sort(key=lambda r: _as_utc(r.created_at), reverse=True)
        return matches[:limit] if limit else matches

    async def add(self, **fields):
        rating = Rating(id=str(next(self._ids)), **fields)
        self._ratings.append(rating)
        return rating


def _row_to_rating(row: RatingRow) -> Rating:
    return Rating(
        id=str(row.id),
        user_id=row.user_id,
        lat=float(row.lat),
        lng=float(row.lng),
        safety_score=row.safety_score,
        comment=row.comment,
        time_of_day=row.time_of_day,
        day_of_week=row.day_of_week,
        route_type=row.route_type,
        created_at=row.created_at,
    )


class SqlRatingStore(RatingStore):
    def __init__(self, session_factory: Callable[[], AsyncSession]):
        self._session_factory = session_factory

    async def find(self, box, since=None, limit=None):
        stmt = select(RatingRow).where(
            RatingRow.lat.between(box.lat_min, box.lat_max),
            RatingRow.lng.between(box.lng_min, box.lng_max),
        )
        if since is not None:
            stmt = stmt.where(RatingRow.created_at >= since)
        stmt = stmt.order_by(RatingRow.created_at.desc())
        if limit:
            stmt = stmt.limit(limit)
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                return [_row_to_rating(row) for row in result.scalars().all()]
        except (SQLAlchemyError, OSError) as e:
            raise UpstreamUnavailableError("rating_store", repr(e)) from e

    async def add(self, **fields):
        row = RatingRow(**fields)
        try:
            async with self._session_factory() as session:
                session.add(row)
                await session.commit()
                await session.refresh(row)
        except (SQLAlchemyError, OSError) as e:
            logger.exception("Rating write failed: user_id=%s", fields.get("user_id"))
            raise StorageError("Failed to store rating") from e
        return _row_to_rating(row)


def build_rating_store(backend: str) -> RatingStore:
    if backend == "postgres":
        from libs.db import get_session_factory

        logger.info("Using PostgreSQL rating store")
        return SqlRatingStore(get_session_factory())
    if backend != "memory":
        raise ValueError(f"Unknown STORAGE_BACKEND '{backend}'")
    logger.info("Using in-memory rating store")
    return InMemoryRatingStore()
