"""Error translation shared by the design and evaluation routers."""

from __future__ import annotations

from typing import NoReturn

from ..http import raise_not_found, raise_service_error, raise_validation_error
from ..ledger import (
    DesignNotFoundError,
    InvalidRevertError,
    InvalidTransitionError,
    LedgerError,
    VersionNotFoundError,
)
from ..persistence import PersistenceError, VersionConflictError

__all__ = ["raise_ledger_error", "raise_persistence_error"]


def raise_ledger_error(exc: LedgerError) -> NoReturn:
    """Map a ledger failure onto the shared error contract."""

    if isinstance(exc, DesignNotFoundError):
        raise_not_found(message=str(exc), details={"design_id": exc.design_id})
    if isinstance(exc, VersionNotFoundError):
        raise_not_found(
            message=str(exc),
            details={"design_id": exc.design_id, "version": exc.target},
        )
    if isinstance(exc, InvalidRevertError):
        raise_validation_error(
            message=str(exc),
            details={"design_id": exc.design_id, "version_id": exc.version_id},
        )
    if isinstance(exc, InvalidTransitionError):
        raise_service_error(
            code="CONFLICT",
            message=str(exc),
            details={"current": exc.current, "target": exc.target},
        )
    raise_service_error(code="INTERNAL", message=str(exc), details={})


def raise_persistence_error(exc: PersistenceError, *, details: dict[str, str]) -> NoReturn:
    if isinstance(exc, VersionConflictError):
        raise_service_error(code="CONFLICT", message=str(exc), details=details)
    raise_service_error(code="PERSISTENCE_FAILED", message=None, details={**details, "error": str(exc)})
