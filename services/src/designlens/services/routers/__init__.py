"""Router package exports."""

from __future__ import annotations

from .api_v1 import router as api_router
from .designs import router as designs_router
from .evaluations import router as evaluations_router
from .health import router as health_router

__all__ = [
    "api_router",
    "designs_router",
    "evaluations_router",
    "health_router",
]
