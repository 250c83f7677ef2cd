import logging
from datetime import datetime, timezone

from fastapi import Depends, Request

from portal.core.config import settings
from portal.core.errors import RateLimited
from portal.core.redis import get_redis
from portal.core.request_ip import get_rate_limit_identity

logger = logging.getLogger(__name__)


def sanitize_path(path: str) -> str:
    return path.replace("/", ":")


class RateLimiter:
    """Fixed-window request counter shared through Redis."""

    def __init__(self, client=None):
        self.client = client

    async def hit(self, identity: str, path: str, limit: int, period: int) -> None:
        if self.client is None:
            return
        ts = int(datetime.now(timezone.utc).timestamp())
        window = ts - (ts % period)
        key = f"ratelimit:{identity}:{sanitize_path(path)}:{window}"
        try:
            val = await self.client.incr(key)
            if val == 1:
                await self.client.expire(key, period)
        except Exception as e:
            logger.exception("Rate limit check failed (redis): %s", e)
            return
        if val > limit:
            logger.warning("Rate limit exceeded for %s on %s", identity, path)
            raise RateLimited()


_warned_disabled = False


def get_rate_limiter() -> RateLimiter:
    global _warned_disabled
    client = get_redis()
    if client is None and not _warned_disabled:
        logger.warning("REDIS_URL not configured; rate limiting disabled")
        _warned_disabled = True
    return RateLimiter(client)


def auth_rate_limit(limit: int | None = None, period: int | None = None):
    """Dependency factory throttling a route per client IP."""
    async def _dep(request: Request, limiter: RateLimiter = Depends(get_rate_limiter)):
        await limiter.hit(
            identity=get_rate_limit_identity(request),
            path=request.url.path,
            limit=limit or settings.AUTH_RATE_LIMIT,
            period=period or settings.AUTH_RATE_PERIOD_SECONDS,
        )

    return Depends(_dep)
