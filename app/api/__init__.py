"""
API routes initialization.

This module aggregates all API routers and provides a single router
to include in the main application.
"""

from fastapi import APIRouter

from app.api.routes import ai, videos

# Create main API router
api_router = APIRouter()

# Include video summary routes
api_router.include_router(videos.router)

# Include direct model routes
api_router.include_router(ai.router)
