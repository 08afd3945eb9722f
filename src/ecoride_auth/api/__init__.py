"""API route aggregation.

All routers registered here get mounted in main.py.

Learn: Both routers are open at the router level. The profile routes
declare get_current_user themselves, because login, register, signin and
refresh must stay reachable without a token.
"""

from fastapi import APIRouter

from ecoride_auth.api.auth import router as auth_router
from ecoride_auth.api.health import router as health_router

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(health_router, tags=["health"])
api_router.include_router(auth_router, tags=["auth"])
