# pytest libs/tests/test_redis_client.py -q

from unittest.mock import MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from libs.redis_client import RedisClient

pytestmark = pytest.mark.unit


@pytest.fixture
def redis_mock():
    return MagicMock()


def test_set_with_ttl_uses_setex(redis_mock):
    client = RedisClient(client=redis_mock)

    assert client.set("k", "v", ttl=30) is True

    redis_mock.setex.assert_called_once_with("k", 30, "v")
    redis_mock.set.assert_not_called()


def test_set_without_ttl(redis_mock):
    RedisClient(client=redis_mock).set("k", "v")
    redis_mock.set.assert_called_once_with("k", "v")


def test_json_helpers(redis_mock):
    client = RedisClient(client=redis_mock)
    redis_mock.get.return_value = '{"lat": 1.5}'

    assert client.set_json("k", {"lat": 1.5}, ttl=5) is True
    redis_mock.setex.assert_called_once_with("k", 5, '{"lat": 1.5}')
    assert client.get_json("k") == {"lat": 1.5}


def test_errors_do_not_raise(redis_mock):
    redis_mock.get.side_effect = RedisConnectionError("down")
    redis_mock.setex.side_effect = RedisConnectionError("down")
    client = RedisClient(client=redis_mock)

    assert client.get("k") is None
    assert client.get_json("k") is None
    assert client.set("k", "v", ttl=1) is False


def test_invalid_json_is_ignored(redis_mock):
    redis_mock.get.return_value = "not json"
    assert RedisClient(client=redis_mock).get_json("k") is None
