"""Central service error definitions and helper exception types."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict

from fastapi import status


@dataclass(frozen=True)
class ErrorDefinition:
    code: str
    message: str
    status_code: int


ERROR_DEFINITIONS: Dict[str, ErrorDefinition] = {
    "INTERNAL": ErrorDefinition("INTERNAL", "Internal server error.", status.HTTP_500_INTERNAL_SERVER_ERROR),
    "VALIDATION": ErrorDefinition("VALIDATION", "Validation failed.", status.HTTP_400_BAD_REQUEST),
    "NOT_FOUND": ErrorDefinition("NOT_FOUND", "Resource not found.", status.HTTP_404_NOT_FOUND),
    "CONFLICT": ErrorDefinition("CONFLICT", "Conflict occurred.", status.HTTP_409_CONFLICT),
    "RATE_LIMIT": ErrorDefinition("RATE_LIMIT", "Rate limit exceeded.", status.HTTP_429_TOO_MANY_REQUESTS),
    "UPSTREAM_ERROR": ErrorDefinition("UPSTREAM_ERROR", "Design source request failed.", status.HTTP_502_BAD_GATEWAY),
    "MODEL_ERROR": ErrorDefinition("MODEL_ERROR", "Model execution failed.", status.HTTP_502_BAD_GATEWAY),
    "TIMEOUT": ErrorDefinition("TIMEOUT", "Operation timed out.", status.HTTP_504_GATEWAY_TIMEOUT),
    "PERSISTENCE_FAILED": ErrorDefinition(
        "PERSISTENCE_FAILED",
        "Failed to persist evaluation data.",
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    ),
}

DEFAULT_ERROR_DEFINITION = ErrorDefinition(
    "UNEXPECTED_ERROR",
    "Unexpected error occurred.",
    status.HTTP_500_INTERNAL_SERVER_ERROR,
)


class ServiceError(Exception):
    """Structured error for router responses."""

    def __init__(
        self,
        *,
        code: str,
        status_code: int,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}
        self.status_code = status_code


__all__ = ["DEFAULT_ERROR_DEFINITION", "ERROR_DEFINITIONS", "ErrorDefinition", "ServiceError"]
