"""API route aggregation.

All routers registered here get mounted in main.py under /api/v1.

Learn: Auth is applied per route here rather than at include_router
level, because every router mixes principals:
- catalog: public reads, admin writes (require_admin)
- orders: customer routes (get_current_user), admin routes (require_admin)
- restaurants: register/login open, the rest needs a restaurant token
"""

from fastapi import APIRouter

from foodiii.api.auth import router as auth_router
from foodiii.api.catalog import router as catalog_router
from foodiii.api.health import router as health_router
from foodiii.api.orders import router as orders_router
from foodiii.api.restaurants import router as restaurants_router

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(health_router, tags=["health"])
api_router.include_router(auth_router, tags=["auth"])
api_router.include_router(catalog_router, tags=["catalog"])
api_router.include_router(orders_router, tags=["orders"])
api_router.include_router(restaurants_router, tags=["restaurants"])
