"""
nanoedit/middleware/rate_limiter.py

Sliding-window limit on job submission. Status polling is not limited;
clients poll every two seconds by design.
"""

from fastapi import Request
from fastapi.responses import JSONResponse
import logging
import time
import redis
from typing import Dict, Tuple

from nanoedit.config import settings
from nanoedit.schemas.errors import ErrorCode
from nanoedit.schemas.response import error_response

logger = logging.getLogger(__name__)


class RateLimiter:
    def __init__(self, storage: str = None):
        self.memory: Dict[str, list] = {}
        self.storage = storage or (
            "memory" if settings.FASTAPI_CONFIG == "testing" else "redis"
        )
        if self.storage == "redis":
            self.redis = redis.from_url(settings.CELERY_BROKER_URL)

    def is_allowed(
        self, key: str, limit: int = 100, window: int = 3600
    ) -> bool:
        if self.storage == "redis":
            return self._redis_check(key, limit, window)
        return self._memory_check(key, limit, window)

    def reset(self):
        self.memory.clear()

    def _redis_check(self, key: str, limit: int, window: int) -> bool:
        try:
            pipe = self.redis.pipeline()
            now = time.time()
            pipe.zremrangebyscore(key, 0, now - window)
            pipe.zcard(key)
            pipe.zadd(key, {str(now): now})
            pipe.expire(key, window)
            results = pipe.execute()
            return results[1] < limit
        except redis.RedisError as e:
            logger.warning(f"Rate limiter unavailable, allowing request: {e}")
            return True  # Fail open

    def _memory_check(self, key: str, limit: int, window: int) -> bool:
        now = time.time()
        if key not in self.memory:
            self.memory[key] = []

        self.memory[key] = [
            req for req in self.memory[key] if now - req < window
        ]

        if len(self.memory[key]) >= limit:
            return False

        self.memory[key].append(now)
        return True


# Global instance
limiter = RateLimiter()

# (method, path) -> (limit, window seconds)
LIMITS: Dict[Tuple[str, str], Tuple[int, int]] = {
    ("POST", "/api/generate-image"): (
        settings.GENERATE_RATE_LIMIT,
        settings.GENERATE_RATE_WINDOW,
    ),
}


async def rate_limit_middleware(request: Request, call_next):
    path = request.url.path.rstrip("/") or "/"
    rule = LIMITS.get((request.method, path))
    if rule is None:
        return await call_next(request)

    limit, window = rule
    client_ip = request.client.host if request.client else "unknown"

    if not limiter.is_allowed(f"rate:{client_ip}:{path}", limit, window):
        logger.warning(f"Rate limit exceeded for {client_ip} on {path}")
        return JSONResponse(
            status_code=429,
            content=error_response(code=ErrorCode.RATE_LIMIT_EXCEEDED),
            headers={"Retry-After": str(window)},
        )

    return await call_next(request)
