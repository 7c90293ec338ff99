"""
API Routes Module.

This module combines all route modules into a single router for the image validation system.
"""
from fastapi import APIRouter

from .health import router as health_router
from .images import router as images_router

# Combined router that includes all sub-routers
router = APIRouter()

router.include_router(health_router)
router.include_router(images_router)

__all__ = ["router"]
