import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

from app.rate_limit.base import BaseRateLimiter
from app.rate_limit.models import RateLimitPolicy, RateLimitResult


@dataclass
class _Window:
    count: int
    resets_at: float


class InMemoryRateLimiter(BaseRateLimiter):
    """Fixed-window limiter kept in process memory.

    Limits apply per worker process only. Safe to share between the worker
    pool's threads.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._windows: dict[str, _Window] = {}
        self._lock = threading.Lock()

    def check(self, key: str, policy: RateLimitPolicy) -> RateLimitResult:
        now = self._clock()
        with self._lock:
            self._prune(now)
            window = self._windows.get(key)
            if window is None or now >= window.resets_at:
                window = _Window(count=0, resets_at=now + policy.window_seconds)
                self._windows[key] = window

            window.count += 1
            allowed = window.count <= policy.requests
            remaining = max(0, policy.requests - window.count)
            retry_after = 0.0 if allowed else max(0.0, window.resets_at - now)

        return RateLimitResult(
            allowed=allowed,
            remaining=remaining,
            retry_after_seconds=retry_after,
        )

    def _prune(self, now: float) -> None:
        expired = [key for key, window in self._windows.items() if now >= window.resets_at]
        for key in expired:
            del self._windows[key]
