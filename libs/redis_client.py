"""
Redis connection client for the live-location share store.

Connection settings come from ``REDIS_HOST``, ``REDIS_PORT``, ``REDIS_DB``,
``REDIS_USERNAME`` and ``REDIS_PASSWORD``. Operations never raise on Redis
errors: reads return ``None`` and writes return ``False``.
"""

import json
import logging
import os
from typing import Any, Optional

import redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)


class RedisClient:
    """Redis client wrapper."""

    _instance: Optional["RedisClient"] = None

    def __init__(self, client: Optional[redis.Redis] = None):
        if client is not None:
            self._client = client
            return

        host = os.getenv("REDIS_HOST", "localhost")
        port = int(os.getenv("REDIS_PORT", "6379"))
        db = int(os.getenv("REDIS_DB", "0"))

        connection_kwargs = {
            "host": host,
            "port": port,
            "db": db,
            "decode_responses": True,
            "socket_connect_timeout": 5,
            "socket_timeout": 5,
            "retry_on_timeout": True,
            "health_check_interval": 30,
        }
        # Username only when Redis has ACLs enabled
        username = os.getenv("REDIS_USERNAME")
        if username:
            connection_kwargs["username"] = username
        password = os.getenv("REDIS_PASSWORD")
        if password:
            connection_kwargs["password"] = password.strip()

        self._client = redis.Redis(**connection_kwargs)
        logger.info(f"Redis client configured: host={host}, port={port}, db={db}")

    @classmethod
    def get_instance(cls) -> "RedisClient":
        """Get singleton instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def get(self, key: str) -> Optional[str]:
        try:
            return self._client.get(key)
        except (RedisConnectionError, RedisError) as e:
            logger.error(f"Redis GET error for key {key}: {e}")
            return None

    def set(self, key: str, value: str, ttl: Optional[int] = None) -> bool:
        """Set value in Redis, with SETEX when a TTL is given."""
        try:
            if ttl:
                return bool(self._client.setex(key, ttl, value))
            return bool(self._client.set(key, value))
        except (RedisConnectionError, RedisError) as e:
            logger.error(f"Redis SET error for key {key}: {e}")
            return False

    def delete(self, key: str) -> bool:
        try:
            return bool(self._client.delete(key))
        except (RedisConnectionError, RedisError) as e:
            logger.error(f"Redis DELETE error for key {key}: {e}")
            return False

    def set_json(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        try:
            json_str = json.dumps(value, default=str)
        except (TypeError, ValueError) as e:
            logger.error(f"JSON serialization error for key {key}: {e}")
            return False
        return self.set(key, json_str, ttl)

    def get_json(self, key: str) -> Optional[Any]:
        json_str = self.get(key)
        if json_str is None:
            return None
        try:
            return json.loads(json_str)
        except (TypeError, ValueError) as e:
            logger.error(f"JSON deserialization error for key {key}: {e}")
            return None


def get_redis_client() -> RedisClient:
    """Get Redis client instance."""
    return RedisClient.get_instance()
