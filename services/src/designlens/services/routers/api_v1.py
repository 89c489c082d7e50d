"""API v1 aggregate router."""

from __future__ import annotations

from fastapi import APIRouter

from .designs import router as designs_router
from .evaluations import router as evaluations_router

router = APIRouter(prefix="/api/v1")
router.include_router(designs_router)
router.include_router(evaluations_router)

__all__ = ["router"]
