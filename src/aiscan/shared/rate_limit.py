"""In-memory fixed-window rate limiter for single-instance deployments."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable


@dataclass(frozen=True)
class RateLimitResult:
    success: bool
    remaining: int
    reset_at: float  # monotonic clock seconds


@dataclass
class _Window:
    count: int
    reset_at: float


class RateLimiter:
    """Allows ``max_requests`` per ``window_seconds`` for each key.

    Expired windows are swept at most once per window so the store does
    not grow without bound.
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._store: dict[str, _Window] = {}
        self._last_cleanup = clock()

    def _cleanup(self, now: float) -> None:
        if now - self._last_cleanup < self.window_seconds:
            return
        self._last_cleanup = now
        for key in [k for k, w in self._store.items() if now > w.reset_at]:
            del self._store[key]

    def check(self, key: str) -> RateLimitResult:
        """Record a request for ``key`` and say whether it is allowed."""
        now = self._clock()
        self._cleanup(now)

        window = self._store.get(key)
        if window is None or now > window.reset_at:
            window = _Window(count=1, reset_at=now + self.window_seconds)
            self._store[key] = window
            return RateLimitResult(True, self.max_requests - 1, window.reset_at)

        if window.count >= self.max_requests:
            return RateLimitResult(False, 0, window.reset_at)

        window.count += 1
        return RateLimitResult(True, self.max_requests - window.count, window.reset_at)

    def __len__(self) -> int:
        return len(self._store)
