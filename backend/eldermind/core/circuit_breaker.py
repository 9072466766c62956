"""
Circuit breaker for the LLM dependency.

- Opens when the error rate over a sliding window reaches the threshold
  (only once the window holds at least `min_requests_for_threshold` calls)
- Stays open for `open_duration_seconds`, rejecting calls immediately
- Half-open: lets a single trial call through; success closes the circuit,
  failure re-opens it
"""
import time
from collections import deque
from enum import Enum
from threading import Lock
from typing import Any, Awaitable, Callable, Deque, Optional, Tuple

from eldermind.core.logging import get_logger

logger = get_logger(__name__)


class CircuitState(Enum):
    """Circuit breaker states."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreakerOpenError(Exception):
    """Raised when the circuit is open and the call was rejected."""


class CircuitBreaker:
    """Failure-rate circuit breaker guarding async calls."""

    def __init__(
        self,
        name: str,
        failure_threshold: float = 0.5,
        time_window_seconds: int = 60,
        open_duration_seconds: int = 30,
        min_requests_for_threshold: int = 10,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.name = name
        self.failure_threshold = failure_threshold
        self.time_window_seconds = time_window_seconds
        self.open_duration_seconds = open_duration_seconds
        self.min_requests_for_threshold = min_requests_for_threshold
        self._clock = clock

        self._state = CircuitState.CLOSED
        self._lock = Lock()
        self._history: Deque[Tuple[float, bool]] = deque()  # (timestamp, success)
        self._opened_at: Optional[float] = None
        self._trial_in_flight = False

    @property
    def state(self) -> CircuitState:
        """Current state, advancing OPEN to HALF_OPEN once the open period elapsed."""
        with self._lock:
            self._refresh()
            return self._state

    def _refresh(self) -> None:
        now = self._clock()
        cutoff = now - self.time_window_seconds
        while self._history and self._history[0][0] < cutoff:
            self._history.popleft()

        if (
            self._state == CircuitState.OPEN
            and self._opened_at is not None
            and now - self._opened_at >= self.open_duration_seconds
        ):
            self._state = CircuitState.HALF_OPEN
            self._trial_in_flight = False
            logger.info("circuit_breaker_half_open", circuit_breaker=self.name)

    def _open(self, now: float, **fields: Any) -> None:
        self._state = CircuitState.OPEN
        self._opened_at = now
        self._trial_in_flight = False
        logger.warning("circuit_breaker_opened", circuit_breaker=self.name, **fields)

    def _acquire(self) -> None:
        with self._lock:
            self._refresh()
            if self._state == CircuitState.OPEN:
                raise CircuitBreakerOpenError(f"Circuit breaker {self.name} is OPEN")
            if self._state == CircuitState.HALF_OPEN:
                if self._trial_in_flight:
                    raise CircuitBreakerOpenError(f"Circuit breaker {self.name} is HALF_OPEN, trial call in flight")
                self._trial_in_flight = True

    def _record(self, success: bool) -> None:
        now = self._clock()
        with self._lock:
            if self._state == CircuitState.HALF_OPEN:
                if success:
                    self._state = CircuitState.CLOSED
                    self._opened_at = None
                    self._trial_in_flight = False
                    self._history.clear()
                    logger.info("circuit_breaker_closed", circuit_breaker=self.name)
                else:
                    self._open(now, reason="half_open_trial_failed")
                return

            self._history.append((now, success))
            total = len(self._history)
            if total < self.min_requests_for_threshold:
                return
            failures = sum(1 for _, ok in self._history if not ok)
            error_rate = failures / total
            if error_rate >= self.failure_threshold:
                self._open(now, error_rate=error_rate, failures=failures, total=total)

    def _release(self) -> None:
        """Free the half-open trial slot without recording an outcome."""
        with self._lock:
            self._trial_in_flight = False

    async def call_async(self, func: Callable[..., Awaitable[Any]], *args: Any, **kwargs: Any) -> Any:
        """
        Await `func(*args, **kwargs)` under circuit breaker protection.

        A cancelled call counts as neither success nor failure.

        Raises:
            CircuitBreakerOpenError: if the circuit rejects the call
        """
        self._acquire()
        try:
            result = await func(*args, **kwargs)
        except Exception:
            self._record(False)
            raise
        except BaseException:
            self._release()
            raise
        self._record(True)
        return result

    def get_metrics(self) -> dict:
        """Snapshot for health reporting."""
        with self._lock:
            self._refresh()
            total = len(self._history)
            failures = sum(1 for _, ok in self._history if not ok)
            return {
                "name": self.name,
                "state": self._state.value,
                "recent_requests": total,
                "recent_failures": failures,
                "error_rate": failures / total if total else 0.0,
            }
