import logging
from typing import Optional

import redis
from fastapi import HTTPException, Request, status

from ..services.redis import redis_client
from .cache import CacheKeys

logger = logging.getLogger(__name__)


class RateLimiter:
    """Fixed-window rate limiting using Redis"""

    def __init__(self, requests: int = 100, window: int = 60):
        self.requests = requests
        self.window = window

    async def check_rate_limit(self, request: Request, user_id: Optional[str] = None):
        """Check if request exceeds rate limit"""

        identifier = user_id or request.client.host
        key = CacheKeys.RATE_LIMIT.format(identifier=identifier, endpoint=request.url.path)

        try:
            current = redis_client.incr(key)
            if current == 1:
                redis_client.expire(key, self.window)
        except redis.RedisError as e:
            # Requests are let through while Redis is down
            logger.warning("Rate limit check skipped for %s: %s", identifier, e)
            return 0

        if current > self.requests:
            ttl = redis_client.ttl(key)
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail=f"Rate limit exceeded. Try again in {ttl} seconds"
            )

        return current


default_limiter = RateLimiter(requests=100, window=60)
upload_limiter = RateLimiter(requests=30, window=60)
auth_limiter = RateLimiter(requests=5, window=300)
