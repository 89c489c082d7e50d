"""Lightweight Prometheus-style metrics utilities for the service."""

from __future__ import annotations

from collections import Counter
from threading import Lock
from typing import Iterable

_COUNTERS: Counter[str] = Counter()
_LOCK = Lock()


def record_request(method: str, status_code: int) -> None:
    """Track an HTTP request labelled by method and status code."""

    labels = f'method="{method.lower()}",status="{status_code}"'
    sample = f"designlens_requests_total{{{labels}}}"
    with _LOCK:
        _COUNTERS[sample] += 1


def record_frame(status: str) -> None:
    """Track a completed frame evaluation labelled by its outcome."""

    sample = f'designlens_frames_total{{status="{status}"}}'
    with _LOCK:
        _COUNTERS[sample] += 1


def _snapshot(prefix: str) -> Iterable[tuple[str, int]]:
    """Return a snapshot of counters whose sample starts with ``prefix``."""

    with _LOCK:
        return sorted(item for item in _COUNTERS.items() if item[0].startswith(prefix))


def render(service_version: str) -> str:
    """Render metrics using the Prometheus text exposition format."""

    lines = [
        "# HELP designlens_requests_total Count of HTTP requests processed by the DesignLens service",
        "# TYPE designlens_requests_total counter",
    ]
    requests = list(_snapshot("designlens_requests_total"))
    for sample, value in requests:
        lines.append(f"{sample} {value}")
    if not requests:
        lines.append('designlens_requests_total{method="none",status="0"} 0')

    lines.extend(
        [
            "# HELP designlens_frames_total Count of frames evaluated, by outcome",
            "# TYPE designlens_frames_total counter",
        ]
    )
    frames = list(_snapshot("designlens_frames_total"))
    for sample, value in frames:
        lines.append(f"{sample} {value}")
    if not frames:
        lines.append('designlens_frames_total{status="done"} 0')

    lines.extend(
        [
            "# HELP designlens_service_info Static service metadata",
            "# TYPE designlens_service_info gauge",
            f'designlens_service_info{{version="{service_version}"}} 1',
        ]
    )
    return "\n".join(lines) + "\n"


__all__ = ["record_frame", "record_request", "render"]
