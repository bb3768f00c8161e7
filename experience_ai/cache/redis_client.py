"""
Redis Client Management
Handles the async Redis connection backing the durable analysis cache
"""

from functools import lru_cache

import redis.asyncio as redis
from loguru import logger

from ..config import settings


@lru_cache(maxsize=1)
def get_redis_client() -> redis.Redis:
    """
    Get Redis client singleton

    The client connects lazily on first command, so building it never
    raises; callers ping before relying on it.

    Returns:
        redis.Redis: Async Redis client
    """
    client = redis.from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
        socket_timeout=5,
        socket_connect_timeout=5
    )
    logger.info(f"Redis client created: {settings.REDIS_HOST}:{settings.REDIS_PORT} (DB: {settings.REDIS_DB})")
    return client


async def check_redis_health() -> bool:
    """
    Check if Redis is healthy

    Returns:
        bool: True if Redis is accessible
    """
    if not settings.REDIS_ENABLED:
        return False

    try:
        client = get_redis_client()
        await client.ping()
        return True
    except Exception as e:
        logger.warning(f"Redis health check failed: {e}")
        return False
