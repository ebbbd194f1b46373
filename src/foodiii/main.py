"""FastAPI application factory.

Learn: create_app() builds the app and everything it owns:
- the Connection Registry and Order Event Publisher (on app.state, so
  routes and the WebSocket endpoint share one instance per app)
- middleware, the REST API under /api/v1, and /ws/admin

Lifespan connects Redis (optional) at startup and releases Redis and
the database pool at shutdown.
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from foodiii import __version__
from foodiii.api import api_router
from foodiii.config import settings
from foodiii.realtime.publisher import OrderEventPublisher
from foodiii.realtime.registry import ConnectionRegistry

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(
        "foodiii.starting",
        version=__version__,
        environment=settings.environment,
        port=settings.port,
    )

    from foodiii.db.redis import close_redis, init_redis
    try:
        await init_redis()
        logger.info("foodiii.redis_connected", url=settings.redis_url)
    except Exception as e:
        # Redis only backs rate limiting; run without it
        logger.warning("foodiii.redis_unavailable", error=str(e))

    yield

    await app.state.publisher.drain()
    logger.info("foodiii.shutdown", admin_connections=len(app.state.registry))
    app.state.registry.clear()
    await close_redis()

    from foodiii.db.engine import engine
    await engine.dispose()


def create_app() -> FastAPI:
    """Build and return the FastAPI application."""
    app = FastAPI(
        title="Foodiii",
        description="Food ordering platform with real-time admin order updates",
        version=__version__,
        lifespan=lifespan,
    )

    registry = ConnectionRegistry()
    app.state.registry = registry
    app.state.publisher = OrderEventPublisher(registry)

    # Starlette runs middleware in reverse order of registration.
    # Request flow: RequestId → Security → RateLimit → CORS → handler
    from foodiii.middleware.rate_limit import RateLimitMiddleware
    from foodiii.middleware.request_id import RequestIdMiddleware
    from foodiii.middleware.security import SecurityHeadersMiddleware

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(
        RateLimitMiddleware,
        default_rpm=settings.rate_limit_rpm,
        auth_rpm=settings.rate_limit_auth_rpm,
    )
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestIdMiddleware)

    app.include_router(api_router)

    from foodiii.realtime.websocket import router as ws_router
    app.include_router(ws_router)

    return app


# Default app instance (used by uvicorn: foodiii.main:app)
app = create_app()
