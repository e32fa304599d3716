"""Redis client lifecycle."""

from typing import Optional

import redis.asyncio as redis
import structlog
from redis.exceptions import RedisError

from authcore.config import get_settings

logger = structlog.get_logger(__name__)

# Global Redis client
_redis_client: Optional[redis.Redis] = None


async def get_redis() -> Optional[redis.Redis]:
    """Get or create the Redis client.

    Returns:
        Redis client or None if the connection fails
    """
    global _redis_client

    if _redis_client is not None:
        return _redis_client

    settings = get_settings()
    client = redis.from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
    )

    try:
        await client.ping()
    except (RedisError, OSError) as e:
        logger.warning("redis_connection_failed", error=str(e))
        # Release the client's pool; the next call retries from scratch
        await client.aclose()
        return None

    _redis_client = client
    logger.info("redis_connected", url=settings.redis_url.split("@")[-1])
    return _redis_client


async def close_redis() -> None:
    """Close the Redis connection."""
    global _redis_client

    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None
        logger.info("redis_connection_closed")
