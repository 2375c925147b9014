"""
Redis client for the metrics stream.

Only the API process publishes; the engine never talks to Redis directly.
"""
import logging
from typing import Optional

from redis.asyncio import Redis as AsyncRedis
from redis.exceptions import RedisError

from fundmon.core.config import settings

logger = logging.getLogger(__name__)

metrics_redis: Optional[AsyncRedis] = None


def get_metrics_redis() -> AsyncRedis:
    """Lazily create the shared async client."""
    global metrics_redis
    if metrics_redis is None:
        metrics_redis = AsyncRedis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            max_connections=settings.REDIS_MAX_CONNECTIONS,
        )
    return metrics_redis


async def connect_metrics_stream() -> Optional[AsyncRedis]:
    """
    Client for the metrics stream, or None when Redis does not answer.

    A missing Redis only disables stream publishing; metrics still go to the
    log and the in-memory buffer.
    """
    client = get_metrics_redis()
    try:
        await client.ping()
    except (RedisError, OSError) as e:
        logger.warning(f"Metrics stream disabled, Redis unreachable at {settings.REDIS_URL}: {e}")
        await close_metrics_redis()
        return None
    return client


async def close_metrics_redis() -> None:
    global metrics_redis
    if metrics_redis is not None:
        await metrics_redis.aclose()
        metrics_redis = None
