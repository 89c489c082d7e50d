"""FastAPI application factory for the DesignLens services."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from contextvars import ContextVar
from typing import AsyncIterator, Final

from fastapi import FastAPI, HTTPException, Request, Response, status
from fastapi.exceptions import RequestValidationError
from starlette.datastructures import MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from .cache import ParseCache
from .config import ServiceSettings
from .critique import FrameCritic
from .figma_client import FigmaClient
from .http import (
    TRACE_ID_HEADER,
    default_error_responses,
    ensure_trace_id,
    get_trace_context,
    http_exception_to_response,
    internal_error_response,
    request_validation_response,
    resolve_trace_id,
    service_error_response,
)
from .ledger import DesignLedger
from .metrics import record_request
from .middleware import BodySizeLimitMiddleware
from .model_client import CritiqueModelClient
from .orchestrator import EvaluationOrchestrator
from .persistence import LedgerPersistence
from .resilience import ResiliencePolicy, ServiceResilienceRegistry
from .routers import api_router, health_router
from .service_errors import ServiceError

LOGGER = logging.getLogger(__name__)

SERVICE_VERSION: Final[str] = "0.4.0"


class TraceMiddleware:
    """ASGI middleware that applies trace IDs and unified error handling."""

    def __init__(self, app: ASGIApp, *, trace_context: ContextVar[str]) -> None:
        self.app = app
        self._trace_context = trace_context

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request = Request(scope, receive)
        trace_id = resolve_trace_id(request.headers.get(TRACE_ID_HEADER))
        token = self._trace_context.set(trace_id)
        scope.setdefault("state", {})
        scope["state"]["trace_id"] = trace_id  # type: ignore[index]

        status_holder: dict[str, int | None] = {"status": None}

        async def send_wrapper(message: Message) -> None:
            if message["type"] == "http.response.start":
                headers = MutableHeaders(scope=message)
                headers.setdefault(TRACE_ID_HEADER, trace_id)
                status_holder["status"] = message.get("status")
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except HTTPException as exc:
            status_holder["status"] = exc.status_code
            await http_exception_to_response(exc, trace_id)(scope, receive, send)
        except RequestValidationError as exc:
            status_holder["status"] = status.HTTP_400_BAD_REQUEST
            await request_validation_response(exc, trace_id)(scope, receive, send)
        except ServiceError as exc:
            status_holder["status"] = exc.status_code
            await service_error_response(exc, trace_id)(scope, receive, send)
        except Exception as exc:  # pragma: no cover - defensive guard
            LOGGER.exception(
                "Unhandled error processing %s %s",
                request.method,
                request.url.path,
                exc_info=exc,
            )
            status_holder["status"] = status.HTTP_500_INTERNAL_SERVER_ERROR
            await internal_error_response(trace_id)(scope, receive, send)
        finally:
            self._trace_context.reset(token)
            status_code = status_holder["status"] or status.HTTP_500_INTERNAL_SERVER_ERROR
            record_request(request.method, status_code)


def _resilience_registry(settings: ServiceSettings) -> ServiceResilienceRegistry:
    return ServiceResilienceRegistry(
        {
            "critique": ResiliencePolicy(
                name="critique",
                timeout_seconds=float(settings.critique_timeout_seconds),
                max_attempts=1,
                circuit_failure_threshold=None,
            ),
            "design_source": ResiliencePolicy(
                name="design_source",
                timeout_seconds=float(settings.design_source_timeout_seconds),
                max_attempts=1,
                circuit_failure_threshold=5,
                circuit_reset_seconds=30.0,
            ),
        }
    )


def create_app(
    settings: ServiceSettings | None = None,
    *,
    figma_client: FigmaClient | None = None,
    critique_client: CritiqueModelClient | None = None,
) -> FastAPI:
    """Construct the FastAPI application.

    Upstream clients may be injected, which tests use to supply clients backed
    by ``httpx.MockTransport``.
    """

    service_settings = settings or ServiceSettings.from_environment()
    design_source = figma_client or FigmaClient(settings=service_settings)
    model_client = critique_client or CritiqueModelClient(settings=service_settings)

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        try:
            yield
        finally:
            await design_source.aclose()
            await model_client.aclose()

    application = FastAPI(
        title="DesignLens Services",
        version=SERVICE_VERSION,
        responses=default_error_responses(),
        lifespan=lifespan,
    )
    registry = _resilience_registry(service_settings)
    ledger = DesignLedger(LedgerPersistence(settings=service_settings))
    application.state.settings = service_settings
    application.state.service_version = SERVICE_VERSION
    application.state.resilience_registry = registry
    application.state.ledger = ledger
    application.state.figma_client = design_source
    application.state.critique_client = model_client
    application.state.parse_cache = ParseCache(service_settings.parse_cache_ttl_seconds)
    application.state.orchestrator = EvaluationOrchestrator(
        settings=service_settings,
        ledger=ledger,
        design_source=design_source,
        critic=FrameCritic(client=model_client, executor=registry.critique),
        resilience=registry,
    )

    async def http_exception_handler(_: Request, exc: Exception) -> Response:
        trace_id = ensure_trace_id()
        if isinstance(exc, HTTPException):
            return http_exception_to_response(exc, trace_id)
        return internal_error_response(trace_id)

    async def validation_exception_handler(_: Request, exc: Exception) -> Response:
        trace_id = ensure_trace_id()
        if isinstance(exc, RequestValidationError):
            return request_validation_response(exc, trace_id)
        return internal_error_response(trace_id)

    async def service_exception_handler(_: Request, exc: Exception) -> Response:
        trace_id = ensure_trace_id()
        if isinstance(exc, ServiceError):
            return service_error_response(exc, trace_id)
        return internal_error_response(trace_id)

    application.add_exception_handler(HTTPException, http_exception_handler)
    application.add_exception_handler(RequestValidationError, validation_exception_handler)
    application.add_exception_handler(ServiceError, service_exception_handler)

    application.add_middleware(
        BodySizeLimitMiddleware,
        limit=service_settings.max_request_body_bytes,
    )
    application.add_middleware(
        TraceMiddleware,
        trace_context=get_trace_context(),
    )

    application.include_router(health_router)
    application.include_router(api_router)

    @application.get("/", include_in_schema=False)
    async def service_index(request: Request) -> dict[str, str]:
        """Return a lightweight service manifest for manual checks."""

        version = getattr(request.app.state, "service_version", SERVICE_VERSION)
        return {
            "service": "designlens",
            "version": version,
            "api_base": "/api/v1",
        }

    return application


__all__ = ["SERVICE_VERSION", "TraceMiddleware", "create_app"]
