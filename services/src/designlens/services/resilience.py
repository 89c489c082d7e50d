"""Resilience helpers for upstream service calls."""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Generic, TypeVar

LOGGER = logging.getLogger("designlens.services.resilience")

T = TypeVar("T")


class CircuitOpenError(RuntimeError):
    """Raised when a service circuit breaker refuses new work."""


@dataclass(frozen=True)
class ResiliencePolicy:
    """Configuration for service retries, timeouts, and circuit breaking."""

    name: str
    timeout_seconds: float
    max_attempts: int = 1
    backoff_seconds: float = 0.5
    circuit_failure_threshold: int | None = 3
    circuit_reset_seconds: float = 30.0


class CircuitBreaker:
    """Simple circuit breaker state machine."""

    def __init__(self, *, failure_threshold: int, reset_seconds: float) -> None:
        if failure_threshold <= 0:
            raise ValueError("failure_threshold must be greater than zero.")
        if reset_seconds < 0:
            raise ValueError("reset_seconds may not be negative.")
        self._failure_threshold = failure_threshold
        self._reset_seconds = reset_seconds
        self._failure_count = 0
        self._state = "closed"
        self._opened_at = 0.0
        self._lock = threading.Lock()

    @property
    def state(self) -> str:
        with self._lock:
            return self._state

    def allow(self) -> bool:
        with self._lock:
            if self._state == "open":
                if self._reset_seconds == 0 or (
                    time.monotonic() - self._opened_at >= self._reset_seconds
                ):
                    self._state = "half-open"
                    return True
                return False
            return True

    def record_success(self) -> None:
        with self._lock:
            self._failure_count = 0
            self._state = "closed"

    def record_failure(self) -> None:
        with self._lock:
            self._failure_count += 1
            if self._state == "half-open" or self._failure_count >= self._failure_threshold:
                self._state = "open"
                self._opened_at = time.monotonic()


class ServiceResilienceExecutor(Generic[T]):
    """Execute async service operations with resilience controls."""

    def __init__(self, policy: ResiliencePolicy) -> None:
        if policy.max_attempts <= 0:
            raise ValueError("policy.max_attempts must be at least 1")
        if policy.timeout_seconds is not None and policy.timeout_seconds < 0:
            raise ValueError("policy.timeout_seconds may not be negative")
        self._policy = policy
        self._breaker: CircuitBreaker | None = None
        if policy.circuit_failure_threshold is not None:
            self._breaker = CircuitBreaker(
                failure_threshold=policy.circuit_failure_threshold,
                reset_seconds=policy.circuit_reset_seconds,
            )

    @property
    def policy(self) -> ResiliencePolicy:
        return self._policy

    async def run(
        self,
        *,
        label: str | None = None,
        operation: Callable[[], Awaitable[T]],
    ) -> T:
        """Await ``operation`` honoring retry, timeout, and circuit breaker rules."""

        name = label or self._policy.name
        if self._breaker is not None and not self._breaker.allow():
            LOGGER.warning("service.circuit_open", extra={"extra_payload": {"service": name}})
            raise CircuitOpenError(f"Service '{name}' circuit is open")

        attempts = self._policy.max_attempts
        timeout = self._policy.timeout_seconds
        backoff = max(0.0, self._policy.backoff_seconds)
        last_error: BaseException | None = None

        for attempt in range(1, attempts + 1):
            try:
                if timeout and timeout > 0:
                    async with asyncio.timeout(timeout):
                        result = await operation()
                else:
                    result = await operation()
            except asyncio.CancelledError:
                raise
            except TimeoutError as exc:
                last_error = exc
                self._record_failure()
                LOGGER.warning(
                    "service.timeout",
                    extra={
                        "extra_payload": {
                            "service": name,
                            "attempt": attempt,
                            "timeout_seconds": timeout,
                        }
                    },
                )
            except Exception as exc:  # noqa: BLE001 - funnel through retries
                last_error = exc
                self._record_failure()
                LOGGER.warning(
                    "service.failure",
                    extra={
                        "extra_payload": {
                            "service": name,
                            "attempt": attempt,
                            "error": str(exc),
                        }
                    },
                )
            else:
                if self._breaker is not None:
                    self._breaker.record_success()
                return result

            if attempt < attempts and backoff:
                await asyncio.sleep(backoff * attempt)

        assert last_error is not None
        raise last_error

    def _record_failure(self) -> None:
        if self._breaker is not None:
            self._breaker.record_failure()


class ServiceResilienceRegistry:
    """Registry of resilience executors keyed by service name."""

    def __init__(self, policies: Dict[str, ResiliencePolicy]) -> None:
        self._executors: Dict[str, ServiceResilienceExecutor[Any]] = {
            name: ServiceResilienceExecutor(policy) for name, policy in policies.items()
        }

    def get(self, name: str) -> ServiceResilienceExecutor[Any]:
        try:
            return self._executors[name]
        except KeyError as exc:
            raise KeyError(f"No resilience policy registered for service '{name}'") from exc

    def __getitem__(self, name: str) -> ServiceResilienceExecutor[Any]:
        return self.get(name)

    @property
    def critique(self) -> ServiceResilienceExecutor[Any]:
        return self.get("critique")

    @property
    def design_source(self) -> ServiceResilienceExecutor[Any]:
        return self.get("design_source")


__all__ = [
    "CircuitBreaker",
    "CircuitOpenError",
    "ResiliencePolicy",
    "ServiceResilienceExecutor",
    "ServiceResilienceRegistry",
]
