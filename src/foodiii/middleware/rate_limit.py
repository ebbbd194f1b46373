"""Rate limiting middleware — fixed per-minute windows in Redis.

Learn: one counter per client IP, bucket and minute, under keys like
"foodiii:rl:{ip}:{bucket}:{minute}". The credential endpoints (user and
restaurant login/register) share a stricter "auth" bucket to slow down
password guessing.

Without Redis (not configured, or down) requests pass unlimited.
"""

import time

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

logger = structlog.get_logger()

AUTH_PATHS = (
    "/api/v1/auth/login",
    "/api/v1/auth/register",
    "/api/v1/restaurants/login",
    "/api/v1/restaurants/register",
)


def is_auth_path(path: str) -> bool:
    return path.rstrip("/") in AUTH_PATHS


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Per-IP request limits, counted in Redis."""

    def __init__(self, app, default_rpm: int = 100, auth_rpm: int = 10):
        super().__init__(app)
        self.default_rpm = default_rpm
        self.auth_rpm = auth_rpm

    async def dispatch(self, request: Request, call_next) -> Response:
        from foodiii.db.redis import get_redis

        try:
            redis = get_redis()
        except RuntimeError:
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        bucket = "auth" if is_auth_path(request.url.path) else "api"
        rpm = self.auth_rpm if bucket == "auth" else self.default_rpm
        key = f"foodiii:rl:{client_ip}:{bucket}:{int(time.time() // 60)}"

        try:
            count = await redis.incr(key)
            if count == 1:
                await redis.expire(key, 120)
        except Exception as e:
            logger.warning("foodiii.rate_limit.redis_error", error=str(e))
            return await call_next(request)

        if count > rpm:
            logger.info(
                "foodiii.rate_limit.exceeded",
                client_ip=client_ip,
                bucket=bucket,
            )
            return JSONResponse(
                status_code=429,
                content={"detail": "Rate limit exceeded. Try again later."},
                headers={"Retry-After": "60"},
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(rpm)
        response.headers["X-RateLimit-Remaining"] = str(max(0, rpm - count))
        return response
