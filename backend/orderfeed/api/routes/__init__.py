"""
API routes module.
"""

from fastapi import APIRouter

from orderfeed.api.routes import (
    health,
    realtime,
)

# Main API router (mounted at /api/v1)
api_router = APIRouter()

api_router.include_router(health.router)
api_router.include_router(realtime.router)
