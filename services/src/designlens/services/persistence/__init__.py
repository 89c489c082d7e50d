"""Persistence helpers for the ledger."""

from .atomic import locked_path, read_json, write_json_atomic
from .ledger_store import LedgerPersistence, PersistenceError, VersionConflictError

__all__ = [
    "LedgerPersistence",
    "PersistenceError",
    "VersionConflictError",
    "locked_path",
    "read_json",
    "write_json_atomic",
]
