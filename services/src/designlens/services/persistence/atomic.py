"""Shared atomic file write utilities for persistence modules."""

from __future__ import annotations

import errno
import json
import os
import time
from contextlib import contextmanager
from pathlib import Path
from threading import Lock, RLock
from typing import IO, Any, Iterator
from uuid import uuid4

_PATH_LOCKS: dict[str, RLock] = {}
_PATH_LOCKS_GUARD = Lock()


@contextmanager
def locked_path(target: Path) -> Iterator[None]:
    """Serialise access to ``target`` within the process."""

    key = str(target)
    with _PATH_LOCKS_GUARD:
        lock = _PATH_LOCKS.get(key)
        if lock is None:
            lock = RLock()
            _PATH_LOCKS[key] = lock
    lock.acquire()
    try:
        yield
    finally:
        lock.release()


def flush_handle(handle: IO[Any], *, durable: bool) -> None:
    """Flush file buffers and optionally fsync for durability."""

    handle.flush()
    if durable:
        os.fsync(handle.fileno())


_TRANSIENT_ERRNOS = {errno.EACCES, errno.EPERM}
_TRANSIENT_WINERRORS = {5, 32}


def replace_file(
    temp_path: Path,
    target_path: Path,
    *,
    attempts: int = 5,
    delay: float = 0.05,
) -> None:
    """Atomically replace ``target_path`` with retry support on Windows."""

    last_error: OSError | None = None
    for attempt in range(attempts):
        try:
            temp_path.replace(target_path)
            return
        except OSError as exc:
            winerror = getattr(exc, "winerror", None)
            if exc.errno not in _TRANSIENT_ERRNOS and winerror not in _TRANSIENT_WINERRORS:
                raise
            last_error = exc
            if attempt == attempts - 1:
                break
            time.sleep(delay * (attempt + 1))
    if last_error is not None:
        raise last_error


def write_json_atomic(path: Path, payload: dict[str, Any], *, durable: bool = True) -> None:
    """Write JSON to disk using an atomic rename."""

    path.parent.mkdir(parents=True, exist_ok=True)
    with locked_path(path):
        temp_path = path.parent / f".{path.name}.{uuid4().hex}.tmp"
        try:
            with temp_path.open("w", encoding="utf-8") as handle:
                json.dump(payload, handle, indent=2, ensure_ascii=False)
                flush_handle(handle, durable=durable)
            replace_file(temp_path, path)
        finally:
            if temp_path.exists():
                temp_path.unlink()


def read_json(path: Path) -> dict[str, Any]:
    """Load a JSON object from disk."""

    with path.open("r", encoding="utf-8") as handle:
        data = json.load(handle)
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object in {path}")
    return data


__all__ = [
    "flush_handle",
    "locked_path",
    "read_json",
    "replace_file",
    "write_json_atomic",
]
