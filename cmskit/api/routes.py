from fastapi import APIRouter
from cmskit.api.routes_health import router as health_router
from cmskit.api.routes_navigation import router as navigation_router

router = APIRouter()
router.include_router(health_router, tags=["health"])

admin_router = APIRouter()
admin_router.include_router(navigation_router, tags=["navigation"])
