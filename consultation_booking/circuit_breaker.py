"""Circuit breaker for notification providers.

Pattern: three states with a failure threshold and a cool-down.

States:
- CLOSED: calls pass through
- OPEN: provider considered down, calls fail immediately
- HALF_OPEN: cool-down elapsed, one trial call decides the next state
"""
import logging
import threading
import time
from enum import Enum
from typing import Any, Callable

logger = logging.getLogger(__name__)


class CircuitState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreakerOpen(Exception):
    """Raised instead of calling a provider whose circuit is open."""
    pass


class CircuitBreaker:
    """Per-provider breaker. Thread-safe: channels run in worker threads."""

    def __init__(self, name: str, failure_threshold: int = 5, timeout: float = 60):
        """
        Args:
            name: Provider name, used in log lines
            failure_threshold: Consecutive failures before opening
            timeout: Seconds to stay open before a trial call
        """
        self.name = name
        self.failure_threshold = failure_threshold
        self.timeout = timeout
        self.failure_count = 0
        self.last_failure_time = None
        self._state = CircuitState.CLOSED
        self._lock = threading.Lock()

    @property
    def state(self) -> str:
        return self._state.value

    def call(self, func: Callable, *args, **kwargs) -> Any:
        """
        Run ``func`` unless the circuit is open.

        Raises:
            CircuitBreakerOpen: If the provider is in cool-down
            Exception: Whatever ``func`` raises
        """
        with self._lock:
            if self._state == CircuitState.OPEN:
                remaining = self._seconds_until_trial()
                if remaining > 0:
                    raise CircuitBreakerOpen(
                        f"{self.name} circuit is open, retry after {remaining:.1f}s"
                    )
                self._state = CircuitState.HALF_OPEN
                logger.info("%s circuit half-open", self.name)

        try:
            result = func(*args, **kwargs)
        except Exception:
            self._record_failure()
            raise

        self._record_success()
        return result

    def reset(self) -> None:
        with self._lock:
            self._state = CircuitState.CLOSED
            self.failure_count = 0
            self.last_failure_time = None

    def _seconds_until_trial(self) -> float:
        if self.last_failure_time is None:
            return 0
        return max(0.0, self.timeout - (time.monotonic() - self.last_failure_time))

    def _record_success(self):
        with self._lock:
            self.failure_count = 0
            if self._state == CircuitState.HALF_OPEN:
                self._state = CircuitState.CLOSED
                logger.info("%s circuit closed", self.name)

    def _record_failure(self):
        with self._lock:
            self.failure_count += 1
            self.last_failure_time = time.monotonic()

            if self._state == CircuitState.HALF_OPEN:
                self._state = CircuitState.OPEN
                logger.warning("%s circuit reopened after failed trial call", self.name)
            elif self.failure_count >= self.failure_threshold:
                self._state = CircuitState.OPEN
                logger.error(
                    "%s circuit opened after %d failures, cool-down %ss",
                    self.name, self.failure_count, self.timeout,
                )
