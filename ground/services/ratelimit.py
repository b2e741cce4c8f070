from __future__ import annotations

import threading
import time
from collections import defaultdict, deque
from collections.abc import Callable

from ground.config import settings


class LoginRateLimiter:
    """Sliding-window counter of login attempts per remote address."""

    def __init__(self, attempts: int, window_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.attempts = max(1, int(attempts))
        self.window_seconds = window_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._buckets: dict[str, deque[float]] = defaultdict(deque)

    def hit(self, address: str) -> bool:
        """Records an attempt from ``address``; returns False once it is over the limit."""
        now = self._clock()
        with self._lock:
            for key in list(self._buckets):
                bucket = self._buckets[key]
                while bucket and now - bucket[0] > self.window_seconds:
                    bucket.popleft()
                if not bucket:
                    del self._buckets[key]
            bucket = self._buckets[address]
            bucket.append(now)
            return len(bucket) <= self.attempts

    def reset(self) -> None:
        with self._lock:
            self._buckets.clear()


login_rate_limiter = LoginRateLimiter(
    settings.login_rate_limit_attempts,
    settings.login_rate_limit_window_seconds,
)
