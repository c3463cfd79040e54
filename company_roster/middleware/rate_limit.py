"""
Rate Limiting Middleware

Per-caller rate limiting using Redis.

ARCHITECTURE: Token bucket per caller user id, stored in a Redis hash so that
every worker process shares the same buckets. The refill-and-spend step runs
as one Lua script, so concurrent requests from different workers can never
spend the same token.

PRODUCTION NOTES:
- Redis is a single point of failure; when it errors the limiter lets
  traffic through rather than rejecting it
- Needs to run after CallerMiddleware has set request.state.user_id
"""
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from typing import Optional
import redis
import redis.asyncio as aioredis
import time
import logging
from company_roster.config import get_settings
from company_roster.core.exceptions import RateLimitExceeded

logger = logging.getLogger(__name__)
settings = get_settings()

BUCKET_TTL_SECONDS = 60

# KEYS[1] = bucket key
# ARGV = refill rate (tokens/second), burst, now (unix seconds), ttl
# Returns {allowed (0/1), retry_after (seconds)}
TOKEN_BUCKET_LUA = """
local rate = tonumber(ARGV[1])
local burst = tonumber(ARGV[2])
local now = tonumber(ARGV[3])
local ttl = tonumber(ARGV[4])

local bucket = redis.call('HMGET', KEYS[1], 'tokens', 'ts')
local tokens = tonumber(bucket[1])
local ts = tonumber(bucket[2])
if tokens == nil or ts == nil then
    tokens = burst
    ts = now
end

local elapsed = math.max(0, now - ts)
tokens = math.min(burst, tokens + elapsed * rate)

local allowed = 0
local retry_after = 0
if tokens >= 1 then
    tokens = tokens - 1
    allowed = 1
else
    retry_after = math.floor((1 - tokens) / rate) + 1
end

redis.call('HSET', KEYS[1], 'tokens', tostring(tokens), 'ts', tostring(now))
redis.call('EXPIRE', KEYS[1], ttl)
return {allowed, retry_after}
"""


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Token bucket rate limiter per caller.

    redis_client is anything exposing redis.asyncio's register_script();
    when omitted, a client is built from REDIS_URL.
    """

    def __init__(
        self,
        app,
        enabled: Optional[bool] = None,
        redis_client=None,
        rate_per_minute: Optional[int] = None,
        burst: Optional[int] = None,
    ):
        super().__init__(app)

        self.enabled = settings.RATE_LIMIT_ENABLED if enabled is None else enabled
        self.rate_per_minute = rate_per_minute or settings.RATE_LIMIT_PER_MINUTE
        self.burst = burst or settings.RATE_LIMIT_BURST
        self.redis_client = redis_client
        self.bucket_script = None

        if self.enabled:
            if self.redis_client is None:
                # Connects lazily on first command
                self.redis_client = aioredis.from_url(
                    settings.REDIS_URL,
                    decode_responses=True,
                    socket_connect_timeout=5
                )
            self.bucket_script = self.redis_client.register_script(TOKEN_BUCKET_LUA)

        self.excluded_paths = [
            "/docs",
            "/redoc",
            "/openapi.json",
            "/health",
        ]

    async def dispatch(self, request: Request, call_next):
        """Apply rate limiting per caller."""

        if not self.enabled:
            return await call_next(request)

        if any(request.url.path.startswith(path) for path in self.excluded_paths):
            return await call_next(request)

        user_id = getattr(request.state, "user_id", None)
        if not user_id:
            return await call_next(request)

        allowed, retry_after = await self._check_rate_limit(user_id)

        if not allowed:
            logger.warning(
                f"Rate limit exceeded for caller {user_id}",
                extra={"user_id": user_id}
            )
            exc = RateLimitExceeded(retry_after)
            return JSONResponse(
                status_code=exc.status_code,
                content={
                    "detail": exc.detail,
                    "type": "rate_limit_exceeded",
                    "retry_after": retry_after
                },
                headers=exc.headers
            )

        return await call_next(request)

    async def _check_rate_limit(self, user_id: str) -> tuple[bool, int]:
        """
        Spend one token from the caller's bucket.

        Returns: (allowed: bool, retry_after: int)
        """
        try:
            allowed, retry_after = await self.bucket_script(
                keys=[f"rate_limit:{user_id}"],
                args=[
                    self.rate_per_minute / 60.0,
                    self.burst,
                    time.time(),
                    BUCKET_TTL_SECONDS,
                ],
            )
        except redis.RedisError as e:
            logger.error(f"Redis error in rate limiting: {e}")
            # Fail open
            return True, 0

        return bool(int(allowed)), int(retry_after)
