"""
Rate Limiter Service using Redis sorted sets (sliding window).
"""
import time
import uuid

import redis.asyncio as redis
import structlog

from app.config import settings

logger = structlog.get_logger()


class RateLimiter:
    """Per-client rate limiter using Redis sorted sets."""

    def __init__(self, redis_url: str = None, limit: int = None, window: int = None):
        self.redis_url = redis_url or settings.REDIS_URL
        self._redis = None
        self.limit = limit or settings.RATE_LIMIT_MAX_REQUESTS
        self.window = window or settings.RATE_LIMIT_WINDOW_SECONDS

    async def get_redis(self):
        if self._redis is None:
            self._redis = redis.from_url(self.redis_url)
        return self._redis

    async def is_allowed(self, client_key: str) -> tuple[bool, int]:
        """
        Check if request is allowed for the client.

        Returns:
            (allowed: bool, retry_after: int)
        """
        key = f"ratelimit:{client_key}"
        now = time.time()
        window_start = now - self.window

        try:
            r = await self.get_redis()
            # First, clean up old entries and count current requests
            pipe = r.pipeline()
            pipe.zremrangebyscore(key, 0, window_start)
            pipe.zcard(key)
            results = await pipe.execute()

            request_count = results[1]

            if request_count >= self.limit:
                # Over limit - calculate retry_after
                oldest = await r.zrange(key, 0, 0, withscores=True)
                if oldest:
                    retry_after = int(self.window - (now - oldest[0][1]))
                else:
                    retry_after = self.window
                return False, max(retry_after, 1)

            # Under limit - add the request
            await r.zadd(key, {f"{now}:{uuid.uuid4().hex[:8]}": now})
            await r.expire(key, self.window)

            return True, 0

        except (redis.RedisError, OSError) as e:
            # If Redis is down, allow the request (fail open)
            logger.warning("rate_limiter_unavailable", error=str(e))
            return True, 0

    async def close(self):
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None


# Singleton instance
rate_limiter = RateLimiter()
