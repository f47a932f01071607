"""API v1 module.

Contains all v1 API routes.
"""

from fastapi import APIRouter

from sealdrop.api.v1.entries import router as entries_router
from sealdrop.api.v1.usage import router as usage_router

router = APIRouter(prefix="/api/v1")
router.include_router(entries_router)
router.include_router(usage_router)

__all__ = ["router"]
