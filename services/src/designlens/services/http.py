"""HTTP utilities shared across the DesignLens service stack."""

from __future__ import annotations

import logging
from contextvars import ContextVar
from typing import Any, Final, NoReturn
from uuid import UUID, uuid4

from fastapi import HTTPException, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .models.errors import ErrorResponse
from .service_errors import DEFAULT_ERROR_DEFINITION, ERROR_DEFINITIONS, ServiceError

LOGGER = logging.getLogger(__name__)

TRACE_ID_HEADER: Final[str] = "x-trace-id"
_TRACE_ID_CONTEXT: ContextVar[str] = ContextVar("designlens_trace_id", default="")

DEFAULT_ERROR_RESPONSES: Final[dict[int | str, dict[str, Any]]] = {
    status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
    status.HTTP_404_NOT_FOUND: {"model": ErrorResponse},
    status.HTTP_502_BAD_GATEWAY: {"model": ErrorResponse},
    status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ErrorResponse},
}


def default_error_responses() -> dict[int | str, dict[str, Any]]:
    """Return a copy of the default error response mapping for routers."""

    return {status_code: dict(schema) for status_code, schema in DEFAULT_ERROR_RESPONSES.items()}


def resolve_trace_id(candidate: str | None) -> str:
    """Return a valid UUIDv4 string, preferring the provided candidate."""

    if candidate:
        try:
            UUID(candidate)
            return candidate
        except ValueError:
            LOGGER.debug("Ignoring invalid trace identifier: %s", candidate)
    return str(uuid4())


def ensure_trace_id() -> str:
    """Return the active trace identifier, creating one if absent."""

    trace_id = _TRACE_ID_CONTEXT.get()
    if not trace_id:
        trace_id = str(uuid4())
        _TRACE_ID_CONTEXT.set(trace_id)
    return trace_id


def get_trace_context() -> ContextVar[str]:
    """Expose the trace identifier context variable for middleware use."""

    return _TRACE_ID_CONTEXT


def build_error_payload(
    *, code: str, message: str, details: dict[str, Any], trace_id: str
) -> ErrorResponse:
    """Construct an error payload following the shared contract."""

    return ErrorResponse(code=code, message=message, details=details, trace_id=trace_id)


def http_exception_to_response(exc: HTTPException, trace_id: str) -> JSONResponse:
    """Translate an ``HTTPException`` into a JSON response with trace headers."""

    headers = dict(exc.headers or {})
    headers.setdefault(TRACE_ID_HEADER, trace_id)

    detail = exc.detail
    if isinstance(detail, ErrorResponse):
        payload = detail
    elif isinstance(detail, dict):
        payload_data = dict(detail)
        payload_data.setdefault("code", "INTERNAL")
        payload_data.setdefault("message", "Internal server error.")
        payload_data.setdefault("details", {})
        payload_data["trace_id"] = trace_id
        payload = ErrorResponse.model_validate(payload_data)
    else:
        code = "NOT_FOUND" if exc.status_code == status.HTTP_404_NOT_FOUND else "INTERNAL"
        payload = ErrorResponse(
            code=code,
            message=str(detail),
            details={},
            trace_id=trace_id,
        )

    return JSONResponse(
        status_code=exc.status_code,
        content=payload.model_dump(),
        headers=headers,
    )


def service_error_response(exc: ServiceError, trace_id: str) -> JSONResponse:
    """Render a ``ServiceError`` using the shared error model."""

    payload = build_error_payload(
        code=exc.code,
        message=exc.message,
        details=exc.details,
        trace_id=trace_id,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=payload.model_dump(),
        headers={TRACE_ID_HEADER: trace_id},
    )


def request_validation_response(exc: RequestValidationError, trace_id: str) -> JSONResponse:
    """Render request validation failures using the shared error model."""

    payload = build_error_payload(
        code="VALIDATION",
        message="Request validation failed.",
        details={"errors": _sanitize_details(list(exc.errors()))},
        trace_id=trace_id,
    )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=payload.model_dump(),
        headers={TRACE_ID_HEADER: trace_id},
    )


def internal_error_response(trace_id: str) -> JSONResponse:
    """Generate a generic internal error response with trace context."""

    payload = build_error_payload(
        code="INTERNAL",
        message="Internal server error.",
        details={},
        trace_id=trace_id,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=payload.model_dump(),
        headers={TRACE_ID_HEADER: trace_id},
    )


def _sanitize_details(details: Any) -> Any:
    """Convert exception instances inside details into serialisable values."""

    if isinstance(details, Exception):
        return str(details)
    if isinstance(details, dict):
        return {key: _sanitize_details(value) for key, value in details.items()}
    if isinstance(details, (list, tuple)):
        return [_sanitize_details(item) for item in details]
    return details


def raise_service_error(
    *,
    status_code: int | None = None,
    code: str,
    message: str | None,
    details: dict[str, Any],
) -> NoReturn:
    """Raise a structured ``ServiceError`` and log it."""

    safe_details = _sanitize_details(details)
    definition = ERROR_DEFINITIONS.get(code, DEFAULT_ERROR_DEFINITION)
    payload_message = message or definition.message
    final_status = status_code or definition.status_code
    LOGGER.info(
        "service.error",
        extra={"extra_payload": {"code": code, "message": payload_message, **safe_details}},
    )
    raise ServiceError(
        code=code,
        status_code=final_status,
        message=payload_message,
        details=safe_details,
    )


def raise_validation_error(*, message: str, details: dict[str, Any]) -> NoReturn:
    """Raise a validation error."""

    raise_service_error(code="VALIDATION", message=message, details=details)


def raise_not_found(*, message: str, details: dict[str, Any]) -> NoReturn:
    """Raise a ``NOT_FOUND`` error for a missing design or version."""

    raise_service_error(code="NOT_FOUND", message=message, details=details)


__all__: list[str] = [
    "DEFAULT_ERROR_RESPONSES",
    "TRACE_ID_HEADER",
    "build_error_payload",
    "default_error_responses",
    "ensure_trace_id",
    "get_trace_context",
    "http_exception_to_response",
    "internal_error_response",
    "request_validation_response",
    "resolve_trace_id",
    "raise_not_found",
    "raise_service_error",
    "raise_validation_error",
    "service_error_response",
]
