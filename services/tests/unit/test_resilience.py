import asyncio

import pytest

from designlens.services import resilience as resilience_module
from designlens.services.resilience import (
    CircuitBreaker,
    CircuitOpenError,
    ResiliencePolicy,
    ServiceResilienceExecutor,
    ServiceResilienceRegistry,
)


def test_service_resilience_executor_retries_then_succeeds(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    sleep_calls: list[float] = []

    async def fake_sleep(delay: float) -> None:
        sleep_calls.append(delay)

    monkeypatch.setattr(resilience_module.asyncio, "sleep", fake_sleep)

    policy = ResiliencePolicy(
        name="retry-demo",
        timeout_seconds=0.0,
        max_attempts=3,
        backoff_seconds=0.1,
        circuit_failure_threshold=5,
        circuit_reset_seconds=60.0,
    )

    executor = ServiceResilienceExecutor(policy)
    attempts: list[int] = []

    async def flaky_operation() -> str:
        attempts.append(len(attempts))
        if len(attempts) < 3:
            raise ValueError("boom")
        return "ok"

    result = asyncio.run(executor.run(operation=flaky_operation))

    assert result == "ok"
    assert len(attempts) == 3
    assert sleep_calls == [0.1, 0.2]
    assert executor._breaker.state == "closed"  # type: ignore[attr-defined]


def test_service_resilience_executor_opens_circuit_after_failures() -> None:
    policy = ResiliencePolicy(
        name="failing-service",
        timeout_seconds=0.0,
        max_attempts=2,
        backoff_seconds=0.0,
        circuit_failure_threshold=2,
        circuit_reset_seconds=600.0,
    )
    executor = ServiceResilienceExecutor(policy)

    async def failing_operation() -> None:
        raise RuntimeError("nope")

    with pytest.raises(RuntimeError):
        asyncio.run(executor.run(operation=failing_operation))

    with pytest.raises(CircuitOpenError):
        asyncio.run(executor.run(operation=failing_operation))


def test_policy_without_threshold_never_opens_circuit() -> None:
    policy = ResiliencePolicy(
        name="unguarded",
        timeout_seconds=0.0,
        backoff_seconds=0.0,
        circuit_failure_threshold=None,
    )
    executor = ServiceResilienceExecutor(policy)
    calls: list[int] = []

    async def failing_operation() -> None:
        calls.append(1)
        raise RuntimeError("nope")

    for _ in range(5):
        with pytest.raises(RuntimeError):
            asyncio.run(executor.run(operation=failing_operation))
    assert len(calls) == 5


def test_service_resilience_executor_honors_timeouts() -> None:
    policy = ResiliencePolicy(
        name="timeout-service",
        timeout_seconds=0.01,
        max_attempts=1,
        backoff_seconds=0.0,
        circuit_failure_threshold=3,
        circuit_reset_seconds=600.0,
    )
    executor = ServiceResilienceExecutor(policy)

    async def slow_operation() -> str:
        await asyncio.sleep(0.5)
        return "done"

    with pytest.raises(TimeoutError):
        asyncio.run(executor.run(operation=slow_operation))


def test_half_open_failure_reopens_circuit(monkeypatch: pytest.MonkeyPatch) -> None:
    clock = {"now": 100.0}
    monkeypatch.setattr(resilience_module.time, "monotonic", lambda: clock["now"])

    breaker = CircuitBreaker(failure_threshold=1, reset_seconds=10.0)
    breaker.record_failure()
    assert breaker.state == "open"
    assert not breaker.allow()

    clock["now"] += 11.0
    assert breaker.allow()
    assert breaker.state == "half-open"
    breaker.record_failure()
    assert breaker.state == "open"


def test_circuit_breaker_rejects_invalid_configuration() -> None:
    with pytest.raises(ValueError):
        CircuitBreaker(failure_threshold=0, reset_seconds=1.0)
    with pytest.raises(ValueError):
        CircuitBreaker(failure_threshold=1, reset_seconds=-1.0)


def test_registry_exposes_named_executors() -> None:
    registry = ServiceResilienceRegistry(
        {
            "critique": ResiliencePolicy(name="critique", timeout_seconds=1.0),
            "design_source": ResiliencePolicy(name="design_source", timeout_seconds=1.0),
        }
    )

    assert registry.critique.policy.name == "critique"
    assert registry["design_source"].policy.name == "design_source"
    with pytest.raises(KeyError):
        registry.get("analytics")
