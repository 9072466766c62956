"""
Unit tests for circuit breaker implementation.
"""
import asyncio

import pytest

from eldermind.core.circuit_breaker import CircuitBreaker, CircuitState, CircuitBreakerOpenError


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


async def succeed():
    return "success"


async def fail():
    raise RuntimeError("test error")


async def call_failing(cb):
    with pytest.raises(RuntimeError):
        await cb.call_async(fail)


@pytest.mark.asyncio
async def test_circuit_breaker_closed_state():
    """Test circuit breaker in closed state (normal operation)."""
    cb = CircuitBreaker("test", failure_threshold=0.5, time_window_seconds=60)

    assert cb.state == CircuitState.CLOSED
    assert await cb.call_async(succeed) == "success"


@pytest.mark.asyncio
async def test_circuit_breaker_needs_minimum_requests():
    cb = CircuitBreaker("test", failure_threshold=0.5, min_requests_for_threshold=5)

    for _ in range(4):
        await call_failing(cb)

    assert cb.state == CircuitState.CLOSED

    await call_failing(cb)
    assert cb.state == CircuitState.OPEN


@pytest.mark.asyncio
async def test_circuit_breaker_stays_closed_below_threshold():
    cb = CircuitBreaker("test", failure_threshold=0.5, min_requests_for_threshold=4)

    for _ in range(3):
        await cb.call_async(succeed)
    await call_failing(cb)

    assert cb.state == CircuitState.CLOSED


@pytest.mark.asyncio
async def test_circuit_breaker_open_state_rejects_calls():
    """Test circuit breaker in open state (bypasses service)."""
    cb = CircuitBreaker("test", min_requests_for_threshold=1)
    await call_failing(cb)
    calls = []

    async def tracked():
        calls.append(1)

    with pytest.raises(CircuitBreakerOpenError):
        await cb.call_async(tracked)
    assert calls == []


@pytest.mark.asyncio
async def test_half_open_success_closes():
    clock = FakeClock()
    cb = CircuitBreaker("test", min_requests_for_threshold=1, open_duration_seconds=30, clock=clock)
    await call_failing(cb)
    assert cb.state == CircuitState.OPEN

    clock.now += 30
    assert cb.state == CircuitState.HALF_OPEN

    assert await cb.call_async(succeed) == "success"
    assert cb.state == CircuitState.CLOSED


@pytest.mark.asyncio
async def test_half_open_failure_reopens():
    clock = FakeClock()
    cb = CircuitBreaker("test", min_requests_for_threshold=1, open_duration_seconds=30, clock=clock)
    await call_failing(cb)

    clock.now += 31
    await call_failing(cb)

    assert cb.state == CircuitState.OPEN


@pytest.mark.asyncio
async def test_old_failures_leave_the_window():
    clock = FakeClock()
    cb = CircuitBreaker("test", time_window_seconds=60, min_requests_for_threshold=3, clock=clock)
    await call_failing(cb)
    await call_failing(cb)

    clock.now += 61
    await call_failing(cb)

    assert cb.state == CircuitState.CLOSED
    assert cb.get_metrics()["recent_requests"] == 1


@pytest.mark.asyncio
async def test_circuit_breaker_metrics():
    """Test circuit breaker metrics."""
    cb = CircuitBreaker("test")

    await cb.call_async(succeed)
    await call_failing(cb)

    metrics = cb.get_metrics()
    assert metrics["name"] == "test"
    assert metrics["state"] == "closed"
    assert metrics["recent_requests"] == 2
    assert metrics["recent_failures"] == 1
    assert metrics["error_rate"] == 0.5


@pytest.mark.asyncio
async def test_cancelled_half_open_call_frees_the_slot():
    clock = FakeClock()
    cb = CircuitBreaker("test", min_requests_for_threshold=1, open_duration_seconds=30, clock=clock)
    await call_failing(cb)
    clock.now += 30
    assert cb.state == CircuitState.HALF_OPEN

    started = asyncio.Event()

    async def hang():
        started.set()
        await asyncio.sleep(3600)

    task = asyncio.create_task(cb.call_async(hang))
    await started.wait()
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    # Cancellation is not an outcome: still half-open, and the next call goes through
    assert cb.state == CircuitState.HALF_OPEN
    assert await cb.call_async(succeed) == "success"
    assert cb.state == CircuitState.CLOSED
