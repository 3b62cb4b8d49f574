"""Redis connection and the read-through cache used by the services."""

import json
from collections.abc import Callable
from typing import Any, TypeVar, cast

import redis
import structlog

from telecare.config import settings

logger = structlog.get_logger(__name__)

T = TypeVar("T")

_redis_client: redis.Redis | None = None


def get_redis_client() -> redis.Redis:
    """Shared Redis client, created on first use."""
    global _redis_client

    if _redis_client is None:
        _redis_client = redis.Redis(
            host=settings.redis_host,
            port=settings.redis_port,
            username=settings.redis_username,
            password=settings.redis_password or None,
            decode_responses=settings.redis_decode_responses,
            socket_connect_timeout=5,
            socket_timeout=5,
            health_check_interval=30,
        )

    return _redis_client


async def check_redis_connection() -> bool:
    """Ping Redis; used by startup and the health endpoint."""
    try:
        return bool(get_redis_client().ping())
    except redis.RedisError as e:
        logger.warning("redis_unreachable", error=str(e))
        return False


def close_redis_connection() -> None:
    global _redis_client

    if _redis_client is not None:
        _redis_client.close()
        _redis_client = None


class CacheManager:
    """
    Thin JSON cache over Redis.

    The cache is an optimisation only: doctor profiles, user profiles and the
    refresh-token revocation list all fall back to the database or to a
    safe default when Redis is unavailable. Every operation therefore
    returns ``fallback`` instead of raising.
    """

    def __init__(self, redis_client: redis.Redis):
        self.redis = redis_client

    def _run(self, op: str, key: str, call: Callable[[], T], fallback: T) -> T:
        try:
            return call()
        except (redis.RedisError, TypeError, ValueError) as e:
            logger.warning("cache_unavailable", op=op, key=key, error=str(e))
            return fallback

    def _write(self, key: str, value: str, ttl: int | None) -> bool:
        if ttl:
            self.redis.setex(key, ttl, value)
        else:
            self.redis.set(key, value)
        return True

    def set(self, key: str, value: str, ttl: int | None = None) -> bool:
        """Store a plain string, expiring after ``ttl`` seconds if given."""
        return self._run("set", key, lambda: self._write(key, value, ttl), False)

    def exists(self, key: str) -> bool:
        return self._run("exists", key, lambda: bool(self.redis.exists(key)), False)

    def delete(self, key: str) -> bool:
        def drop() -> bool:
            self.redis.delete(key)
            return True

        return self._run("delete", key, drop, False)

    def get_json(self, key: str) -> Any | None:
        """Cached JSON value, or None on a miss."""

        def load() -> Any | None:
            raw = cast(str | None, self.redis.get(key))
            return json.loads(raw) if raw else None

        return self._run("get", key, load, None)

    def set_json(self, key: str, value: Any, ttl: int | None = None) -> bool:
        """
        Serialize ``value`` and store it.

        UUIDs, dates and decimals are written with ``str`` so cached rows
        can be read back without a custom decoder.
        """
        return self._run(
            "set",
            key,
            lambda: self._write(key, json.dumps(value, default=str), ttl),
            False,
        )

    def delete_pattern(self, pattern: str) -> int:
        """
        Drop every key matching ``pattern``, e.g. ``doctor:list:*``.

        Returns:
            Number of keys removed
        """

        def purge() -> int:
            keys = cast(list[str], self.redis.keys(pattern))
            return cast(int, self.redis.delete(*keys)) if keys else 0

        return self._run("delete_pattern", pattern, purge, 0)
