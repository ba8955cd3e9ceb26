"""
API v1 Router
"""

from fastapi import APIRouter
from . import requests, works
from .profiles import me_router
from .profiles import router as profiles_router

router = APIRouter()

# Include resource routers
router.include_router(requests.router, prefix="/requests", tags=["Requests"])
router.include_router(works.router, prefix="/works", tags=["Works"])
router.include_router(profiles_router, prefix="/profiles", tags=["Profiles"])
router.include_router(me_router, prefix="/me", tags=["Profiles"])


@router.get("/", tags=["API"])
async def api_root():
    """API root: version and available endpoints."""
    return {
        "api": "v1",
        "version": "0.1.0",
        "endpoints": [
            "/requests",
            "/requests/{id}/messages",
            "/works",
            "/profiles/{id}",
            "/me",
        ],
    }
