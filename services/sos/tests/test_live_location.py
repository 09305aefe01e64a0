# pytest services/sos/tests/test_live_location.py -q

from datetime import timedelta

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from common.errors import StorageError
from libs.redis_client import RedisClient
from services.sos.live_location import (
    InMemoryLiveLocationStore,
    LiveLocationService,
    LiveLocationShare,
    RedisLiveLocationStore,
    ShareExpiredError,
    ShareNotFoundError,
    build_live_location_store,
)

pytestmark = pytest.mark.unit


class Clock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class FakeRedis:
    """Just enough of redis.Redis for RedisClient."""

    def __init__(self, fail_writes=False):
        self.data = {}
        self.ttls = {}
        self.fail_writes = fail_writes

    def setex(self, key, ttl, value):
        if self.fail_writes:
            raise RedisConnectionError("down")
        self.data[key] = value
        self.ttls[key] = ttl
        return True

    def get(self, key):
        return self.data.get(key)

    def delete(self, key):
        return 1 if self.data.pop(key, None) is not None else 0


@pytest.fixture
def clock(now):
    return Clock(now)


@pytest.fixture
def service(clock):
    return LiveLocationService(InMemoryLiveLocationStore(), clock=clock)


# ----------------------------
# Service
# ----------------------------
def test_start_creates_share(service, now):
    share = service.start(53.34, -6.26, 30, user_id="usr_1")

    assert len(share.share_id) == 32
    assert share.started_at == now
    assert share.expires_at == now + timedelta(minutes=30)
    assert share.is_active
    assert service.get(share.share_id) is share


def test_share_ids_are_unique(service):
    ids = {service.start(0, 0, 5).share_id for _ in range(20)}
    assert len(ids) == 20


def test_unknown_share(service):
    with pytest.raises(ShareNotFoundError):
        service.get("missing")


def test_update_moves_share(service, clock):
    share = service.start(53.34, -6.26, 30)
    clock.advance(minutes=5)

    updated = service.update(share.share_id, 53.35, -6.27)

    assert (updated.lat, updated.lng) == (53.35, -6.27)
    assert updated.last_update == clock.now


def test_share_valid_until_expiry(service, clock):
    share = service.start(0, 0, 10)
    clock.advance(minutes=10)
    assert service.get(share.share_id).share_id == share.share_id


def test_expired_share_is_gone_then_removed(service, clock):
    share = service.start(0, 0, 10)
    clock.advance(minutes=10, seconds=1)

    with pytest.raises(ShareExpiredError):
        service.get(share.share_id)
    with pytest.raises(ShareNotFoundError):
        service.get(share.share_id)


def test_expired_share_cannot_be_updated(service, clock):
    share = service.start(0, 0, 1)
    clock.advance(minutes=2)
    with pytest.raises(ShareExpiredError):
        service.update(share.share_id, 1, 1)


# ----------------------------
# In-memory store
# ----------------------------
def test_sweep_removes_only_expired(now):
    store = InMemoryLiveLocationStore()
    service = LiveLocationService(store, clock=lambda: now)
    short = service.start(0, 0, 5)
    long = service.start(0, 0, 60)

    removed = store.sweep_expired(now + timedelta(minutes=6))

    assert removed == 1
    assert len(store) == 1
    assert store.get(short.share_id) is None
    assert store.get(long.share_id) is not None


def test_inactive_share_counts_as_expired(now):
    share = LiveLocationShare("s1", 0, 0, now, now + timedelta(hours=1), is_active=False)
    assert share.is_expired(now)


# ----------------------------
# Redis store
# ----------------------------
def test_redis_store_round_trip_with_ttl(now):
    fake = FakeRedis()
    store = RedisLiveLocationStore(RedisClient(client=fake))
    service = LiveLocationService(store, clock=lambda: now)

    share = service.start(53.34, -6.26, 15, user_id="usr_1")

    key = f"live_location:{share.share_id}"
    assert fake.ttls[key] == 15 * 60
    loaded = store.get(share.share_id)
    assert loaded == share
    assert loaded.expires_at.tzinfo is not None


def test_redis_store_ttl_never_below_one_second(now):
    fake = FakeRedis()
    store = RedisLiveLocationStore(RedisClient(client=fake))
    share = LiveLocationShare("s1", 0, 0, now, now + timedelta(milliseconds=200))

    store.save(share, now)

    assert fake.ttls["live_location:s1"] == 1


def test_redis_store_write_failure_raises(now):
    store = RedisLiveLocationStore(RedisClient(client=FakeRedis(fail_writes=True)))
    with pytest.raises(StorageError):
        LiveLocationService(store, clock=lambda: now).start(0, 0, 5)


def test_redis_store_delete(now):
    fake = FakeRedis()
    store = RedisLiveLocationStore(RedisClient(client=fake))
    share = LiveLocationService(store, clock=lambda: now).start(0, 0, 5)

    store.delete(share.share_id)

    assert store.get(share.share_id) is None


def test_build_store_rejects_unknown_backend():
    assert isinstance(build_live_location_store("memory"), InMemoryLiveLocationStore)
    with pytest.raises(ValueError):
        build_live_location_store("etcd")
