"""Health and metrics endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Request, Response

from ..config import ServiceSettings
from ..metrics import render
from .dependencies import get_settings

__all__ = ["router", "get_service_version", "health", "metrics_endpoint"]


router = APIRouter(prefix="/api/v1", tags=["health"])


_METRICS_MEDIA_TYPE = "text/plain; version=0.0.4"


def get_service_version(request: Request) -> str:
    """Return the service version attached to the application state."""

    return getattr(request.app.state, "service_version", "unknown")


@router.get("/healthz")
async def health(
    version: str = Depends(get_service_version),
    settings: ServiceSettings = Depends(get_settings),
) -> dict[str, Any]:
    return {
        "status": "ok",
        "version": version,
        "design_source_configured": bool(settings.figma_access_token),
        "critique_model_configured": bool(settings.critique_api_key),
    }


@router.get("/metrics")
async def metrics_endpoint(version: str = Depends(get_service_version)) -> Response:
    """Return the Prometheus metrics payload without implicit charsets."""

    response = Response(content=render(version).encode("utf-8"))
    response.headers["Content-Type"] = _METRICS_MEDIA_TYPE
    return response
