"""
Redis Connection Manager
Lazily creates one pooled Redis client for the optional validation cache.

Unlike a hard dependency, Redis being down must not break validation:
get_redis_client() returns None when no connection can be made, and the
caller falls back to uncached validation.
"""
import os
import redis
from typing import Any, Dict, Optional
import logging

logger = logging.getLogger(__name__)


def redis_settings_from_env() -> Dict[str, Any]:
    """Connection settings from REDIS_* environment variables."""
    return {
        "host": os.getenv('REDIS_HOST', 'localhost'),
        "port": int(os.getenv('REDIS_PORT', '6379')),
        "db": int(os.getenv('REDIS_DB', '0')),
        "password": os.getenv('REDIS_PASSWORD', None),
        "max_connections": int(os.getenv('REDIS_MAX_CONNECTIONS', '10')),
        "socket_timeout": float(os.getenv('REDIS_SOCKET_TIMEOUT', '5.0')),
        "socket_connect_timeout": float(os.getenv('REDIS_CONNECT_TIMEOUT', '5.0')),
    }


class RedisConnectionManager:
    """
    Process-wide holder of the pooled client.

    The first successful connection is reused; a failed attempt is logged
    and retried on the next call.
    """

    _client: Optional[redis.Redis] = None

    @classmethod
    def connect(cls, settings: Optional[Dict[str, Any]] = None) -> Optional[redis.Redis]:
        if cls._client is not None:
            return cls._client

        settings = settings or redis_settings_from_env()
        try:
            pool = redis.ConnectionPool(decode_responses=True, **settings)
            client = redis.Redis(connection_pool=pool)
            client.ping()
        except redis.RedisError as e:
            logger.warning(
                f"Redis unavailable at {settings['host']}:{settings['port']} "
                f"(validation cache disabled): {e}"
            )
            return None

        logger.info(f"Redis connected: {settings['host']}:{settings['port']} (db={settings['db']})")
        cls._client = client
        return client

    @classmethod
    def ping(cls) -> bool:
        """Check if Redis connection is alive"""
        if cls._client is None:
            return False
        try:
            return bool(cls._client.ping())
        except redis.RedisError as e:
            logger.warning(f"Redis ping failed: {e}")
            return False

    @classmethod
    def close(cls):
        if cls._client is not None:
            cls._client.close()
            cls._client = None
            logger.info("Redis connection closed")


def get_redis_client() -> Optional[redis.Redis]:
    """
    Get the shared Redis client.

    Returns:
        redis.Redis, or None when Redis cannot be reached
    """
    return RedisConnectionManager.connect()
