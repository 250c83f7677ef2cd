# portal/core/redis.py
import logging
from typing import Optional

from redis.asyncio import ConnectionPool, Redis

logger = logging.getLogger(__name__)

_redis_client: Optional[Redis] = None


def init_redis(url: str | None, socket_timeout: float = 1.0) -> None:
    """Create the shared client. Without a URL the limiter runs disabled."""
    global _redis_client
    if _redis_client is not None or not url:
        return
    pool = ConnectionPool.from_url(
        url,
        decode_responses=True,
        socket_timeout=socket_timeout,
        socket_connect_timeout=socket_timeout,
    )
    _redis_client = Redis(connection_pool=pool)
    logger.info("Redis client initialised")


def get_redis() -> Redis | None:
    return _redis_client


async def close_redis() -> None:
    global _redis_client
    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None
