"""Per-client rate limiting."""
import threading
import time
from collections import defaultdict
from typing import Callable, Dict, List


class RateLimitExceeded(Exception):
    """Raised when rate limit is exceeded."""
    def __init__(self, message: str, retry_after: int):
        super().__init__(message)
        self.message = message
        self.retry_after = retry_after


class RateLimiter:
    """
    In-memory sliding-window limiter keyed by client (usually the IP).

    Good for: single-process deployments.
    NOT for: several workers or hosts, each would keep its own window.

    ``check_rate_limit(key, record=False)`` only inspects the window; the
    login limiter uses it so successful logins are never counted, and calls
    ``record`` after a failed attempt.
    """

    def __init__(
        self,
        requests: int,
        window_seconds: int,
        message: str = "Too many requests",
        clock: Callable[[], float] = time.time,
    ):
        self.max_requests = requests
        self.window_seconds = window_seconds
        self.message = message
        self.clock = clock

        # {key: [timestamp1, timestamp2, ...]}
        self.request_log: Dict[str, List[float]] = defaultdict(list)
        self.lock = threading.Lock()
        self._last_sweep = clock()

    def _prune(self, key: str, now: float) -> List[float]:
        cutoff = now - self.window_seconds
        recent = [ts for ts in self.request_log[key] if ts > cutoff]
        if recent:
            self.request_log[key] = recent
        else:
            self.request_log.pop(key, None)
        return recent

    def _sweep(self, now: float):
        """Drop clients whose whole window has expired, at most once per window."""
        if now - self._last_sweep < self.window_seconds:
            return
        for key in list(self.request_log):
            self._prune(key, now)
        self._last_sweep = now

    def check_rate_limit(self, key: str, record: bool = True):
        """
        Check if a request from ``key`` is within the limit.

        Args:
            key: Client identifier
            record: Count this request toward the window

        Raises:
            RateLimitExceeded: If the window is already full
        """
        with self.lock:
            now = self.clock()
            self._sweep(now)
            recent = self._prune(key, now)

            if len(recent) >= self.max_requests:
                retry_after = int(self.window_seconds - (now - min(recent))) + 1
                raise RateLimitExceeded(self.message, retry_after=retry_after)

            if record:
                self.request_log[key].append(now)

    def record(self, key: str):
        """Count one request for ``key`` without checking."""
        with self.lock:
            self.request_log[key].append(self.clock())

    def reset(self, key: str):
        with self.lock:
            self.request_log.pop(key, None)

    def get_limit_info(self, key: str) -> Dict:
        """Get current rate limit status for a client."""
        with self.lock:
            current_count = len(self._prune(key, self.clock()))
            return {
                "limit": self.max_requests,
                "remaining": max(0, self.max_requests - current_count),
                "reset_in": self.window_seconds,
            }
