"""
Redis Connection Manager
Connection pool shared by the API (enqueueing) and the RQ workers (dequeueing).
"""

import logging
from functools import lru_cache
from typing import Optional

from redis import Redis, ConnectionPool
from redis.exceptions import RedisError

from forgecraft.core.config import settings

logger = logging.getLogger(__name__)


def mask_redis_url(url: str) -> str:
    """redis://:password@host:port -> redis://***@host:port"""
    if "@" in url:
        return f"redis://***@{url.rsplit('@', 1)[-1]}"
    return url


class RedisManager:
    """Lazily created connection pool plus a single client bound to it."""

    def __init__(self, url: Optional[str] = None):
        self.url = url or settings.REDIS_URL
        self._pool: Optional[ConnectionPool] = None
        self._client: Optional[Redis] = None

    def get_connection(self) -> Redis:
        """Get a Redis connection from the pool."""
        if self._client is None:
            self._pool = ConnectionPool.from_url(
                self.url,
                max_connections=10,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
                decode_responses=False  # RQ stores pickled payloads
            )
            self._client = Redis(connection_pool=self._pool)
            logger.info(f"Created Redis connection pool for {mask_redis_url(self.url)}")

        return self._client

    def health_check(self) -> dict:
        """
        Ping Redis.

        Returns:
            dict with connected flag, server version or the error
        """
        try:
            client = self.get_connection()
            client.ping()
            version = client.info("server").get("redis_version", "unknown")
        except RedisError as e:
            logger.error(f"Redis health check failed: {e}")
            return {"connected": False, "error": str(e), "url": mask_redis_url(self.url)}

        return {"connected": True, "redis_version": version, "url": mask_redis_url(self.url)}

    def close(self):
        """Close all connections in the pool."""
        if self._pool:
            self._pool.disconnect()
            logger.info("Redis connection pool closed")
        self._pool = None
        self._client = None


@lru_cache()
def get_redis_manager() -> RedisManager:
    """Get the process-wide Redis manager."""
    return RedisManager()


def get_redis() -> Redis:
    """Get a Redis connection (convenience function)."""
    return get_redis_manager().get_connection()


def redis_health_check() -> dict:
    """Check Redis health (convenience function)."""
    return get_redis_manager().health_check()


class Queues:
    """Queue names used by the API and the workers."""
    GENERATION = "generation"
    DEFAULT = "default"


__all__ = [
    "RedisManager",
    "mask_redis_url",
    "get_redis_manager",
    "get_redis",
    "redis_health_check",
    "Queues"
]
