"""
Live-location sharing.

A share is a short-lived record of a user's position, readable by anyone with
its id. Shares live in a ``LiveLocationStore`` chosen at startup from
``LIVE_LOCATION_BACKEND``: an in-process dict (expired entries removed by
``sweep_expired``) or Redis (entries written with SETEX so Redis drops them
at expiry).
"""

import logging
import math
import uuid
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional

from common.constants import LIVE_LOCATION_KEY_PREFIX
from common.errors import StorageError
from libs.redis_client import RedisClient

logger = logging.getLogger(__name__)


class ShareNotFoundError(Exception):
    pass


class ShareExpiredError(Exception):
    pass


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class LiveLocationShare:
    share_id: str
    lat: float
    lng: float
    started_at: datetime
    expires_at: datetime
    user_id: Optional[str] = None
    last_update: Optional[datetime] = None
    is_active: bool = True

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at or not self.is_active

    def to_json(self) -> dict:
        data = asdict(self)
        for key in ("started_at", "expires_at", "last_update"):
            if data[key] is not None:
                data[key] = data[key].isoformat()
        return data

    @classmethod
    def from_json(cls, data: dict) -> "LiveLocationShare":
        data = dict(data)
        for key in ("started_at", "expires_at", "last_update"):
            if data.get(key):
                data[key] = datetime.fromisoformat(data[key])
        return cls(**data)


class LiveLocationStore(ABC):
    @abstractmethod
    def save(self, share: LiveLocationShare, now: datetime) -> None:
        """Insert or replace a share. Raises ``StorageError`` if it cannot be written."""

    @abstractmethod
    def get(self, share_id: str) -> Optional[LiveLocationShare]:
        pass

    @abstractmethod
    def delete(self, share_id: str) -> None:
        pass


class InMemoryLiveLocationStore(LiveLocationStore):
    def __init__(self):
        self._shares: Dict[str, LiveLocationShare] = {}

    def save(self, share, now):
        self._shares[share.share_id] = share

    def get(self, share_id):
        return self._shares.get(share_id)

    def delete(self, share_id):
        self._shares.pop(share_id, None)

    def sweep_expired(self, now: Optional[datetime] = None) -> int:
        """Drop expired shares; returns how many were removed."""
        now = now or utcnow()
        expired = [sid for sid, share in self._shares.items() if share.is_expired(now)]
        for share_id in expired:
            del self._shares[share_id]
        if expired:
            logger.info("Swept %d expired live-location shares", len(expired))
        return len(expired)

    def __len__(self):
        return len(self._shares)


class RedisLiveLocationStore(LiveLocationStore):
    def __init__(self, redis_client: RedisClient):
        self.redis = redis_client

    @staticmethod
    def _key(share_id: str) -> str:
        return f"{LIVE_LOCATION_KEY_PREFIX}{share_id}"

    def save(self, share, now):
        ttl = max(1, math.ceil((share.expires_at - now).total_seconds()))
        if not self.redis.set_json(self._key(share.share_id), share.to_json(), ttl=ttl):
            raise StorageError(f"Failed to store live-location share {share.share_id}")

    def get(self, share_id):
        data = self.redis.get_json(self._key(share_id))
        return LiveLocationShare.from_json(data) if data else None

    def delete(self, share_id):
        self.redis.delete(self._key(share_id))


def build_live_location_store(backend: str) -> LiveLocationStore:
    if backend == "redis":
        from libs.redis_client import get_redis_client

        logger.info("Using Redis live-location store")
        return RedisLiveLocationStore(get_redis_client())
    if backend != "memory":
        raise ValueError(f"Unknown LIVE_LOCATION_BACKEND '{backend}'")
    logger.info("Using in-memory live-location store")
    return InMemoryLiveLocationStore()


class LiveLocationService:
    """Start, read and move live-location shares."""

    def __init__(self, store: LiveLocationStore, clock: Callable[[], datetime] = utcnow):
        self.store = store
        self._clock = clock

    def start(self, lat: float, lng: float, duration_min: int, user_id: Optional[str] = None) -> LiveLocationShare:
        now = self._clock()
        share = LiveLocationShare(
            share_id=uuid.uuid4().hex,
            user_id=user_id,
            lat=lat,
            lng=lng,
            started_at=now,
            expires_at=now + timedelta(minutes=duration_min),
        )
        self.store.save(share, now)
        logger.info("Live-location share %s started for %d minutes", share.share_id, duration_min)
        return share

    def _active(self, share_id: str, now: datetime) -> LiveLocationShare:
        share = self.store.get(share_id)
        if share is None:
            raise ShareNotFoundError(share_id)
        if share.is_expired(now):
            self.store.delete(share_id)
            raise ShareExpiredError(share_id)
        return share

    def get(self, share_id: str) -> LiveLocationShare:
        """
        Raises:
            ShareNotFoundError: unknown id (or already removed)
            ShareExpiredError: the share has passed its expiry; it is removed
        """
        return self._active(share_id, self._clock())

    def update(self, share_id: str, lat: float, lng: float) -> LiveLocationShare:
        now = self._clock()
        share = self._active(share_id, now)
        share.lat = lat
        share.lng = lng
        share.last_update = now
        self.store.save(share, now)
        return share
