"""Dependency injection helpers for FastAPI routers."""

from __future__ import annotations

from typing import cast

from fastapi import Request

from ..cache import ParseCache
from ..config import ServiceSettings
from ..figma_client import FigmaClient
from ..ledger import DesignLedger
from ..orchestrator import EvaluationOrchestrator
from ..resilience import ServiceResilienceExecutor, ServiceResilienceRegistry

__all__ = [
    "get_design_source_resilience",
    "get_figma_client",
    "get_ledger",
    "get_orchestrator",
    "get_parse_cache",
    "get_resilience_registry",
    "get_settings",
]


def get_settings(request: Request) -> ServiceSettings:
    """Return the service settings configured for the application."""

    return cast(ServiceSettings, request.app.state.settings)


def get_ledger(request: Request) -> DesignLedger:
    """Return the design ledger stored on the application state."""

    return cast(DesignLedger, request.app.state.ledger)


def get_orchestrator(request: Request) -> EvaluationOrchestrator:
    return cast(EvaluationOrchestrator, request.app.state.orchestrator)


def get_figma_client(request: Request) -> FigmaClient:
    return cast(FigmaClient, request.app.state.figma_client)


def get_parse_cache(request: Request) -> ParseCache:
    return cast(ParseCache, request.app.state.parse_cache)


def get_resilience_registry(request: Request) -> ServiceResilienceRegistry:
    """Return the resilience registry stored on the application state."""

    return cast(ServiceResilienceRegistry, request.app.state.resilience_registry)


def get_design_source_resilience(request: Request) -> ServiceResilienceExecutor:
    """Return the design source resilience executor."""

    return cast(ServiceResilienceExecutor, get_resilience_registry(request).design_source)
