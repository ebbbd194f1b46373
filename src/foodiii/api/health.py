"""Health check endpoint.

Learn: reports whether the server can reach its database and Redis,
and how many admin dashboards are currently subscribed to order updates.
"""

from fastapi import APIRouter, Request
from sqlalchemy import text

from foodiii import __version__
from foodiii.db.engine import engine

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """Check server health and dependency connectivity."""
    checks = {"server": "ok", "version": __version__}

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except Exception as e:
        checks["database"] = f"error: {e}"

    try:
        from foodiii.db.redis import get_redis

        await get_redis().ping()
        checks["redis"] = "ok"
    except Exception as e:
        checks["redis"] = f"error: {e}"

    registry = getattr(request.app.state, "registry", None)
    status = "healthy" if all(
        v == "ok" for k, v in checks.items() if k != "version"
    ) else "degraded"

    return {
        "status": status,
        **checks,
        "admin_connections": len(registry) if registry is not None else 0,
    }
