"""Fixed-window request rate limiting keyed by user id."""

import time
from dataclasses import dataclass
from typing import Callable, Dict

from examgrader.config import RATE_LIMIT_MAX_REQUESTS, RATE_LIMIT_WINDOW_SECONDS


@dataclass
class RateLimitStatus:
    allowed: bool
    remaining: int


@dataclass
class _Window:
    count: int
    reset_at: float


class RateLimiter:
    """
    In-process limiter. One instance is owned by the application and handed to
    request handlers; it is not shared across worker processes.
    """

    def __init__(self, max_requests: int = RATE_LIMIT_MAX_REQUESTS,
                 window_seconds: float = RATE_LIMIT_WINDOW_SECONDS,
                 clock: Callable[[], float] = time.monotonic, sweep_threshold: int = 1000):
        self.max_requests = max_requests
        self.sweep_threshold = sweep_threshold
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: Dict[str, _Window] = {}

    def check(self, key: str) -> RateLimitStatus:
        now = self._clock()
        window = self._windows.get(key)

        if window is None or now > window.reset_at:
            if window is None and len(self._windows) >= self.sweep_threshold:
                self._sweep(now)
            self._windows[key] = _Window(count=1, reset_at=now + self.window_seconds)
            return RateLimitStatus(allowed=True, remaining=self.max_requests - 1)

        if window.count >= self.max_requests:
            return RateLimitStatus(allowed=False, remaining=0)

        window.count += 1
        return RateLimitStatus(allowed=True, remaining=self.max_requests - window.count)

    def _sweep(self, now: float):
        """Drop windows that have already expired."""
        expired = [key for key, window in self._windows.items() if now > window.reset_at]
        for key in expired:
            del self._windows[key]

    def reset(self, key: str):
        self._windows.pop(key, None)

    def __len__(self) -> int:
        return len(self._windows)
