"""
Incident store implementations.

``IncidentStore`` is the query interface the aggregation service depends on.
Two implementations are provided and one is selected at startup from
``STORAGE_BACKEND``:

- ``SqlIncidentStore``: PostgreSQL through async SQLAlchemy
- ``InMemoryIncidentStore``: process-local list, for demos and tests
"""

import itertools
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Callable, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from common.errors import StorageError, UpstreamUnavailableError
from libs.geo import BoundingBox
from models.incident import Incident as IncidentRow
from services.crime.scoring import as_utc, utcnow
from services.crime.severity import normalize_severity
from services.crime.types import Incident, Source

logger = logging.getLogger(__name__)


class IncidentStore(ABC):
    """Queryable record store for locally reported incidents."""

    @abstractmethod
    async def find(
        self,
        box: BoundingBox,
        since: datetime,
        limit: int,
        newest_first: bool = True,
    ) -> List[Incident]:
        """
        Incidents inside ``box`` that occurred at or after ``since``.

        Raises:
            UpstreamUnavailableError: when the backing store cannot be queried
        """

    @abstractmethod
    async def add(
        self,
        *,
        lat: float,
        lng: float,
        category: str,
        description: str,
        severity: str,
        occurred_at: Optional[datetime] = None,
        reported_by: Optional[str] = None,
    ) -> Incident:
        """
        Persist a new incident and return it with its id.

        Raises:
            StorageError: when the write fails
        """


class InMemoryIncidentStore(IncidentStore):
    def __init__(self, incidents: Optional[List[Incident]] = None):
        self._incidents: List[Incident] = list(incidents or [])
        self._ids = itertools.count(len(self._incidents) + 1)

    async def find(self, box, since, limit, newest_first=True):
        since = as_utc(since)
        matches = [
            i
            for i in self._incidents
            if box.contains(i.lat, i.lng) and as_utc(i.occurred_at) >= since
        ]
        matches.sort(key=lambda i: as_utc(i.occurred_at), reverse=newest_first)
        return matches[:limit]

    async def add(
        self,
        *,
        lat,
        lng,
        category,
        description,
        severity,
        occurred_at=None,
        reported_by=None,
    ):
        incident = Incident(
            id=str(next(self._ids)),
            lat=lat,
            lng=lng,
            category=category,
            description=description,
            severity=severity,
            occurred_at=occurred_at or utcnow(),
            source=Source.LOCAL.value,
            reported_by=reported_by,
        )
        self._incidents.append(incident)
        return incident


def _row_to_incident(row: IncidentRow) -> Incident:
    return Incident(
        id=str(row.id),
        lat=float(row.lat),
        lng=float(row.lng),
        category=row.category,
        description=row.description,
        severity=normalize_severity(row.severity).value,
        occurred_at=row.incident_date,
        source=Source.LOCAL.value,
        reported_by=row.reported_by,
    )


class SqlIncidentStore(IncidentStore):
    def __init__(self, session_factory: Callable[[], AsyncSession]):
        self._session_factory = session_factory

    async def find(self, box, since, limit, newest_first=True):
        order = IncidentRow.incident_date.desc() if newest_first else IncidentRow.incident_date.asc()
        stmt = (
            select(IncidentRow)
            .where(
                IncidentRow.lat.between(box.lat_min, box.lat_max),
                IncidentRow.lng.between(box.lng_min, box.lng_max),
                IncidentRow.incident_date >= since,
            )
            .order_by(order)
            .limit(limit)
        )
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                return [_row_to_incident(row) for row in result.scalars().all()]
        except (SQLAlchemyError, OSError) as e:
            raise UpstreamUnavailableError("incident_store", repr(e)) from e

    async def add(
        self,
        *,
        lat,
        lng,
        category,
        description,
        severity,
        occurred_at=None,
        reported_by=None,
    ):
        row = IncidentRow(
            lat=lat,
            lng=lng,
            category=category,
            description=description,
            severity=severity,
            incident_date=occurred_at or utcnow(),
            reported_by=reported_by,
        )
        try:
            async with self._session_factory() as session:
                session.add(row)
                await session.commit()
                await session.refresh(row)
        except (SQLAlchemyError, OSError) as e:
            logger.exception("Incident write failed: category=%s", category)
            raise StorageError("Failed to store incident") from e
        return _row_to_incident(row)


def build_incident_store(backend: str) -> IncidentStore:
    """Select the store implementation for ``STORAGE_BACKEND``."""
    if backend == "postgres":
        from libs.db import get_session_factory

        logger.info("Using PostgreSQL incident store")
        return SqlIncidentStore(get_session_factory())
    if backend != "memory":
        raise ValueError(f"Unknown STORAGE_BACKEND '{backend}'")
    logger.info("Using in-memory incident store")
    return InMemoryIncidentStore()
